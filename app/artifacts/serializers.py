from __future__ import annotations

from typing import Any

from app.artifacts.base import BaseSerializer, serialize_value
from app.registry.artifacts import named_artifact, serializer


@serializer("Contact")
class ContactSerializer(BaseSerializer):
    def fields(self, row: Any) -> dict[str, Any]:
        return {
            "public_id": row.public_id,
            "name": row.name,
            "email": row.email,
            "age": row.age,
            "type": row.type,
            "created_at": serialize_value(row.created_at),
        }


@serializer("Contact", internal=True)
class InternalContactSerializer(ContactSerializer):
    def fields(self, row: Any) -> dict[str, Any]:
        payload = super().fields(row)
        payload.update(
            {
                "id": str(row.id),
                "phone": row.phone,
                "updated_at": serialize_value(row.updated_at),
            }
        )
        return payload


@serializer("Order")
class OrderSerializer(BaseSerializer):
    """Shared by both caller scopes; internal callers also see raw foreign keys."""

    def fields(self, row: Any) -> dict[str, Any]:
        customer = row.customer
        payload = {
            "public_id": row.public_id,
            "status": row.status,
            "total": row.total,
            "currency": row.currency,
            "notes": row.notes,
            "customer": customer.public_id if customer is not None else None,
            "created_at": serialize_value(row.created_at),
            "updated_at": serialize_value(row.updated_at),
        }
        if self.is_internal:
            payload["id"] = str(row.id)
            payload["customer_uuid"] = serialize_value(row.customer_uuid)
        return payload


@named_artifact("serializers.DashboardWidgetSerializer")
class DashboardWidgetSerializer(BaseSerializer):
    def fields(self, row: Any) -> dict[str, Any]:
        return {
            "id": str(row.id),
            "public_id": row.public_id,
            "name": row.name,
            "component": row.component,
            "grid_options": serialize_value(row.grid_options or {}),
            "options": serialize_value(row.options or {}),
            "dashboard_uuid": serialize_value(row.dashboard_uuid),
            "created_at": serialize_value(row.created_at),
        }

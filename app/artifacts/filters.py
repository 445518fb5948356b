from __future__ import annotations

import uuid

from sqlalchemy.orm import Query

from app.artifacts.base import BaseFilter
from app.models.common import is_public_id
from app.models.contact import Contact
from app.models.order import Order
from app.registry.artifacts import entity_filter

CLOSED_ORDER_STATUSES = ("completed", "canceled")


@entity_filter("Order")
class OrderFilter(BaseFilter):
    def active(self, query: Query, value: str) -> Query:
        if str(value or "").strip().lower() in {"1", "true", "yes"}:
            return query.filter(Order.status.not_in(CLOSED_ORDER_STATUSES))
        return query

    def customer(self, query: Query, value: str) -> Query:
        text = str(value or "").strip()
        if is_public_id(text):
            return query.join(Contact, Contact.id == Order.customer_uuid).filter(Contact.public_id == text)
        try:
            return query.filter(Order.customer_uuid == uuid.UUID(text))
        except ValueError:
            # Unknown customer reference matches nothing.
            return query.filter(Order.customer_uuid.is_(None), Order.customer_uuid.is_not(None))

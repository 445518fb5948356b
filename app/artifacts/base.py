from __future__ import annotations

import uuid
from datetime import date, datetime
from decimal import Decimal, InvalidOperation
from typing import Any, ClassVar, Iterable

from pydantic import BaseModel, ValidationError
from sqlalchemy.inspection import inspect as sa_inspect
from sqlalchemy.orm import Query

from app.core.errors import ValidationFailed
from app.registry.entities import EntityDescriptor
from app.schemas.query_plan import RelationDirective

SYSTEM_FIELDS = {"id", "public_id", "created_at", "updated_at"}


def serialize_value(value: Any) -> Any:
    if isinstance(value, dict):
        return {key: serialize_value(val) for key, val in value.items()}
    if isinstance(value, (list, tuple)):
        return [serialize_value(item) for item in value]
    if isinstance(value, (datetime, date)):
        return value.isoformat()
    if isinstance(value, uuid.UUID):
        return str(value)
    if isinstance(value, Decimal):
        return float(value)
    return value


def row_to_dict(row: Any) -> dict[str, Any]:
    mapper = sa_inspect(type(row))
    return {column.key: serialize_value(getattr(row, column.key)) for column in mapper.columns}


class BaseSerializer:
    """Baseline serializer: every column, with identifiers shaped by caller scope.

    Public callers see the public id as ``id``; internal callers get the
    primary key as ``id`` and the public id alongside it.
    """

    def __init__(self, descriptor: EntityDescriptor, *, is_internal: bool = False):
        self.descriptor = descriptor
        self.is_internal = is_internal

    def fields(self, row: Any) -> dict[str, Any]:
        return row_to_dict(row)

    def _shape_identifiers(self, payload: dict[str, Any]) -> dict[str, Any]:
        if "public_id" not in payload:
            return payload
        if self.is_internal:
            return payload
        shaped = dict(payload)
        shaped["id"] = shaped.pop("public_id")
        return shaped

    def nested(self, row: Any) -> dict[str, Any]:
        return self._shape_identifiers(row_to_dict(row))

    def to_dict(self, row: Any, relations: RelationDirective | None = None) -> dict[str, Any]:
        payload = self._shape_identifiers(self.fields(row))
        if relations is None:
            return payload
        props = sa_inspect(type(row)).relationships
        for name in relations.count:
            related = getattr(row, name)
            if props[name].uselist:
                payload[f"{name}_count"] = len(related)
            else:
                payload[f"{name}_count"] = 0 if related is None else 1
        for name in relations.contain:
            related = getattr(row, name)
            if props[name].uselist:
                payload[name] = [self.nested(item) for item in related]
            else:
                payload[name] = None if related is None else self.nested(related)
        return payload

    def collection(self, rows: Iterable[Any], relations: RelationDirective | None = None) -> list[dict[str, Any]]:
        return [self.to_dict(row, relations) for row in rows]


TYPE_NAMES = {
    int: "integer",
    float: "number",
    Decimal: "number",
    bool: "boolean",
    str: "string",
    dict: "object",
    uuid.UUID: "UUID",
    datetime: "datetime",
    date: "date",
}


def _coerce_column_value(python_type: type, value: Any) -> Any:
    """Return ``value`` converted for the column, raising ``ValueError`` on a mismatch."""
    if python_type is bool:
        if isinstance(value, bool):
            return value
        raise ValueError(value)
    if python_type is int:
        if isinstance(value, int) and not isinstance(value, bool):
            return value
        if isinstance(value, str) and value.strip().lstrip("-").isdigit():
            return int(value.strip())
        raise ValueError(value)
    if python_type in (float, Decimal):
        if isinstance(value, bool) or not isinstance(value, (int, float, str)):
            raise ValueError(value)
        try:
            number = Decimal(str(value).strip())
        except InvalidOperation:
            raise ValueError(value)
        if not number.is_finite():
            raise ValueError(value)
        return float(number) if python_type is float else number
    if python_type is str:
        if isinstance(value, str):
            return value
        raise ValueError(value)
    if python_type is dict:
        if isinstance(value, (dict, list)):
            return value
        raise ValueError(value)
    if python_type is uuid.UUID:
        if isinstance(value, uuid.UUID):
            return value
        if isinstance(value, str):
            return uuid.UUID(value.strip())
        raise ValueError(value)
    if python_type is datetime:
        if isinstance(value, datetime):
            return value
        if isinstance(value, str):
            return datetime.fromisoformat(value.strip().replace("Z", "+00:00"))
        raise ValueError(value)
    if python_type is date:
        if isinstance(value, date) and not isinstance(value, datetime):
            return value
        if isinstance(value, str):
            return date.fromisoformat(value.strip())
        raise ValueError(value)
    return value


def _dedupe(messages: list[str]) -> list[str]:
    return list(dict.fromkeys(messages))


class BaseValidator:
    """Column-driven payload rules; subclasses may add a pydantic ``schema``."""

    schema: ClassVar[type[BaseModel] | None] = None

    def __init__(self, descriptor: EntityDescriptor, *, action: str = "create"):
        self.descriptor = descriptor
        self.action = action

    @property
    def is_update(self) -> bool:
        return self.action == "update"

    def coerce_columns(self, payload: dict[str, Any]) -> tuple[list[str], dict[str, Any]]:
        columns = {column.key: column for column in self.descriptor.model.__table__.columns}
        messages: list[str] = []
        coerced: dict[str, Any] = {}
        for key, value in payload.items():
            column = columns.get(key)
            if column is None or value is None:
                continue
            try:
                python_type = column.type.python_type
            except NotImplementedError:
                continue
            try:
                converted = _coerce_column_value(python_type, value)
            except (TypeError, ValueError, AttributeError):
                name = TYPE_NAMES.get(python_type, python_type.__name__)
                messages.append(f"{key} must be a valid {name}")
                continue
            length = getattr(column.type, "length", None)
            if python_type is str and length and len(converted) > length:
                messages.append(f"{key} must be at most {length} characters")
                continue
            coerced[key] = converted
        return messages, coerced

    def column_messages(self, payload: dict[str, Any]) -> list[str]:
        columns = {column.key: column for column in self.descriptor.model.__table__.columns}
        mutable = [name for name in columns if name not in SYSTEM_FIELDS]
        messages = [f"{key} is not a known field" for key in payload if key not in mutable]
        for key, value in payload.items():
            if key in mutable and value is None and not columns[key].nullable:
                messages.append(f"{key} may not be null")
        if self.is_update:
            if not payload:
                messages.append("no fields to update")
            return messages
        for name in mutable:
            column = columns[name]
            if column.nullable or column.default is not None or column.server_default is not None:
                continue
            if name not in payload:
                messages.append(f"{name} is required")
        return messages

    def schema_messages(self, payload: dict[str, Any]) -> tuple[list[str], dict[str, Any]]:
        if self.schema is None:
            return [], {}
        try:
            validated = self.schema.model_validate(payload)
        except ValidationError as exc:
            messages = []
            for error in exc.errors():
                field = ".".join(str(part) for part in error.get("loc", ())) or "payload"
                if error.get("type") == "missing":
                    if self.is_update:
                        continue
                    messages.append(f"{field} is required")
                else:
                    messages.append(f"{field}: {error.get('msg')}")
            return messages, {}
        return [], validated.model_dump(exclude_unset=True)

    def validate(self, payload: Any) -> dict[str, Any]:
        if not isinstance(payload, dict):
            raise ValidationFailed(["payload must be a JSON object"])
        messages = self.column_messages(payload)
        type_messages, column_values = self.coerce_columns(payload)
        schema_messages, schema_values = self.schema_messages(payload)
        messages = _dedupe(messages + type_messages + schema_messages)
        if messages:
            raise ValidationFailed(messages)
        cleaned = dict(payload)
        cleaned.update(column_values)
        cleaned.update({key: value for key, value in schema_values.items() if key in payload})
        return cleaned


class BaseFilter:
    """Entity-specific query-param handlers.

    Each public method ``name(self, query, value)`` consumes the query key
    ``name``; keys claimed this way bypass the generic field grammar.
    """

    def __init__(self, descriptor: EntityDescriptor, params: list[tuple[str, str]], *, is_internal: bool = False):
        self.descriptor = descriptor
        self.params = list(params)
        self.is_internal = is_internal

    @classmethod
    def handled_keys(cls) -> frozenset[str]:
        base = set(dir(BaseFilter))
        return frozenset(
            name for name in dir(cls) if not name.startswith("_") and name not in base and callable(getattr(cls, name))
        )

    def apply(self, query: Query) -> Query:
        handled = self.handled_keys()
        for key, value in self.params:
            if key in handled:
                query = getattr(self, key)(query, value)
        return query

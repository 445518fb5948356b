from __future__ import annotations

import uuid
from datetime import date, datetime, timedelta, timezone
from decimal import Decimal, InvalidOperation
from typing import Any, Iterable, Mapping

from sqlalchemy import String, asc, cast, desc, or_
from sqlalchemy.orm import Query, selectinload

from app.core.config import settings
from app.core.errors import InvalidFilterError
from app.registry.entities import EntityDescriptor
from app.schemas.query_plan import FilterSpec, Pagination, QueryPlan, RelationDirective, SortSpec

COUNT_KEYS = ("count", "with_count")
CONTAIN_KEYS = ("contain", "with", "expand")
CONTROL_KEYS = frozenset({"limit", "page", "sort", "query", *COUNT_KEYS, *CONTAIN_KEYS})

# Longest suffix first so "_notIn" wins over "_not" and "_isNotNull" over "_isNull".
OPERATOR_SUFFIXES: tuple[tuple[str, str], ...] = tuple(
    sorted(
        (
            ("_like", "like"),
            ("_not", "notEq"),
            ("_gt", "gt"),
            ("_lt", "lt"),
            ("_gte", "gte"),
            ("_lte", "lte"),
            ("_in", "in"),
            ("_notIn", "notIn"),
            ("_isNull", "isNull"),
            ("_isNotNull", "isNotNull"),
        ),
        key=lambda item: len(item[0]),
        reverse=True,
    )
)
SORT_ALIASES = {"latest": "desc", "oldest": "asc"}


def param_items(raw_params: Any) -> list[tuple[str, str]]:
    if raw_params is None:
        return []
    if hasattr(raw_params, "multi_items"):
        pairs = raw_params.multi_items()
    elif hasattr(raw_params, "items"):
        pairs = raw_params.items()
    else:
        pairs = raw_params
    items: list[tuple[str, str]] = []
    for key, value in pairs:
        if isinstance(value, (list, tuple)):
            items.extend((str(key), "" if v is None else str(v)) for v in value)
        else:
            items.append((str(key), "" if value is None else str(value)))
    return items


def split_operator(key: str) -> tuple[str, str]:
    for suffix, operator in OPERATOR_SUFFIXES:
        if key.endswith(suffix) and len(key) > len(suffix):
            return key[: -len(suffix)], operator
    return key, "eq"


def _cast_comparable(raw: str) -> Any:
    text = raw.strip()
    for caster in (int, float):
        try:
            return caster(text)
        except ValueError:
            pass
    try:
        if "T" in text or " " in text:
            return datetime.fromisoformat(text.replace("Z", "+00:00"))
        return date.fromisoformat(text)
    except ValueError:
        return raw


def _split_list(key: str, raw: str) -> list[str]:
    values = [part.strip() for part in raw.split(",")]
    values = [part for part in values if part]
    if not values:
        raise InvalidFilterError(key, "expected a comma separated list of values")
    return values


def _filter_value(key: str, operator: str, raw: str) -> Any:
    if operator == "like":
        return f"%{raw}%"
    if operator in {"gt", "lt", "gte", "lte"}:
        return _cast_comparable(raw)
    if operator in {"in", "notIn"}:
        return _split_list(key, raw)
    if operator in {"isNull", "isNotNull"}:
        return None
    return raw


def _positive_int(param: str, raw: str, upper: int | None = None) -> int:
    try:
        value = int(str(raw).strip())
    except ValueError:
        raise InvalidFilterError(param, "must be a positive integer")
    if value < 1:
        raise InvalidFilterError(param, "must be a positive integer")
    if upper is not None and value > upper:
        raise InvalidFilterError(param, f"must not exceed {upper}")
    return value


def _parse_sort(descriptor: EntityDescriptor, raw: str) -> list[SortSpec]:
    text = raw.strip()
    if text.lower() in SORT_ALIASES:
        return [SortSpec(field=descriptor.timestamp_field, direction=SORT_ALIASES[text.lower()])]

    sortable = descriptor.sortable_fields()
    specs: list[SortSpec] = []
    seen: set[str] = set()
    for segment in text.split(","):
        segment = segment.strip()
        if not segment:
            continue
        direction = "asc"
        if segment.startswith("-"):
            field, direction = segment[1:], "desc"
        elif ":" in segment:
            field, _, raw_direction = segment.partition(":")
            direction = raw_direction.strip().lower() or "asc"
            if direction not in {"asc", "desc"}:
                raise InvalidFilterError("sort", f'unknown direction "{raw_direction}"')
        else:
            field = segment
        field = field.strip()
        if field not in sortable:
            raise InvalidFilterError("sort", f'field "{field}" cannot be sorted')
        if field in seen:
            continue
        seen.add(field)
        specs.append(SortSpec(field=field, direction=direction))
    return specs


def _relation_names(descriptor: EntityDescriptor, raw_values: Iterable[str]) -> tuple[str, ...]:
    names: list[str] = []
    relations = descriptor.relations
    for raw in raw_values:
        for name in raw.split(","):
            name = name.strip()
            if name and name in relations and name not in names:
                names.append(name)
    return tuple(names)


def compile_query(
    descriptor: EntityDescriptor,
    raw_params: Mapping[str, str | list[str]] | Any,
    *,
    reserved_keys: Iterable[str] = (),
    default_limit: int | None = None,
    max_limit: int | None = None,
) -> QueryPlan:
    max_limit = int(max_limit or settings.QUERY_MAX_LIMIT)
    limit = min(int(default_limit or settings.QUERY_DEFAULT_LIMIT), max_limit)
    page = 1
    sort: list[SortSpec] = []
    keyword: str | None = None
    count_values: list[str] = []
    contain_values: list[str] = []
    filters: list[FilterSpec] = []
    seen_control: set[str] = set()
    reserved = set(reserved_keys)
    marker = settings.INTERNAL_PARAM_PREFIX

    for key, raw in param_items(raw_params):
        if key in reserved or (marker and key.startswith(marker)):
            continue
        if key in COUNT_KEYS:
            count_values.append(raw)
            continue
        if key in CONTAIN_KEYS:
            contain_values.append(raw)
            continue
        if key in CONTROL_KEYS:
            # Repeated control keys: the first occurrence is authoritative.
            if key in seen_control:
                continue
            seen_control.add(key)
            if key == "limit":
                limit = min(_positive_int("limit", raw), max_limit)
            elif key == "page":
                page = _positive_int("page", raw, settings.QUERY_MAX_PAGE)
            elif key == "sort":
                sort = _parse_sort(descriptor, raw)
            elif key == "query":
                keyword = raw.strip() or None
            continue

        if key in descriptor.filterable_fields:
            field, operator = key, "eq"
        else:
            field, operator = split_operator(key)
        if field not in descriptor.filterable_fields:
            raise InvalidFilterError(key, f'"{field}" is not a filterable field of {descriptor.entity_type}')
        filters.append(
            FilterSpec(field=field, operator=operator, raw_value=raw, value=_filter_value(key, operator, raw))
        )

    return QueryPlan(
        filters=filters,
        sort=sort,
        pagination=Pagination(limit=limit, page=page),
        relations=RelationDirective(
            count=_relation_names(descriptor, count_values),
            contain=_relation_names(descriptor, contain_values),
        ),
        keyword=keyword,
    )


def compile_relations(descriptor: EntityDescriptor, raw_params: Any) -> RelationDirective:
    """Relation directives only, for single-record operations."""
    items = param_items(raw_params)
    return RelationDirective(
        count=_relation_names(descriptor, [raw for key, raw in items if key in COUNT_KEYS]),
        contain=_relation_names(descriptor, [raw for key, raw in items if key in CONTAIN_KEYS]),
    )


def _bad_filter_value(column_key: str, kind: str) -> InvalidFilterError:
    return InvalidFilterError(column_key, f"expected a {kind} value")


def _coerce_bool_filter_value(column_key: str, value):
    if isinstance(value, bool):
        return value
    text = str(value or "").strip().lower()
    if text in {"1", "true", "yes", "y", "on"}:
        return True
    if text in {"0", "false", "no", "n", "off"}:
        return False
    raise _bad_filter_value(column_key, "boolean")


def _coerce_number_filter_value(column_key: str, value, python_type):
    if value is None:
        return None
    if python_type in {int, float} and isinstance(value, (int, float)):
        return python_type(value)
    if python_type is Decimal and isinstance(value, Decimal):
        return value
    text = str(value).strip()
    if not text:
        raise _bad_filter_value(column_key, "number")
    try:
        if python_type is int:
            return int(text)
        if python_type is float:
            return float(text)
        if python_type is Decimal:
            return Decimal(text)
        return python_type(text)
    except (ValueError, TypeError, InvalidOperation):
        raise _bad_filter_value(column_key, "number")


def _coerce_date_filter_value(column_key: str, value):
    if isinstance(value, date) and not isinstance(value, datetime):
        return value
    text = str(value or "").strip()
    if not text:
        raise _bad_filter_value(column_key, "date")
    try:
        # Accept either YYYY-MM-DD or full ISO datetime and take its date part.
        if "T" in text or " " in text:
            return datetime.fromisoformat(text.replace("Z", "+00:00")).date()
        return date.fromisoformat(text)
    except ValueError:
        raise _bad_filter_value(column_key, "date")


def _coerce_datetime_filter_value(column_key: str, value):
    if isinstance(value, datetime):
        parsed = value
    else:
        text = str(value or "").strip()
        if not text:
            raise _bad_filter_value(column_key, "datetime")
        try:
            if "T" not in text and " " not in text and len(text) == 10:
                # Date-only filter value for timestamp columns -> start of the day.
                parsed = datetime.combine(date.fromisoformat(text), datetime.min.time())
            else:
                parsed = datetime.fromisoformat(text.replace("Z", "+00:00"))
        except ValueError:
            raise _bad_filter_value(column_key, "datetime")
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed


def _column_python_type(column):
    try:
        return column.property.columns[0].type.python_type
    except (AttributeError, IndexError, NotImplementedError):
        return None


def coerce_filter_value(column, value):
    python_type = _column_python_type(column)
    if python_type is None:
        return value
    if python_type is uuid.UUID:
        if isinstance(value, uuid.UUID):
            return value
        try:
            return uuid.UUID(str(value or "").strip())
        except ValueError:
            raise _bad_filter_value(column.key, "UUID")
    if python_type is bool:
        return _coerce_bool_filter_value(column.key, value)
    if python_type in {int, float, Decimal}:
        return _coerce_number_filter_value(column.key, value, python_type)
    if python_type is date:
        return _coerce_date_filter_value(column.key, value)
    if python_type is datetime:
        return _coerce_datetime_filter_value(column.key, value)
    return value


def _is_date_only_filter_literal(raw_value) -> bool:
    if not isinstance(raw_value, str):
        return False
    text = raw_value.strip()
    if not text or "T" in text or " " in text:
        return False
    try:
        date.fromisoformat(text)
        return True
    except ValueError:
        return False


def _filter_criterion(col, spec: FilterSpec):
    op = spec.operator
    if op == "isNull":
        return col.is_(None)
    if op == "isNotNull":
        return col.is_not(None)
    if op == "like":
        target = col if _column_python_type(col) is str else cast(col, String)
        return target.ilike(spec.value)
    if op in {"in", "notIn"}:
        values = [coerce_filter_value(col, item) for item in spec.value]
        return col.in_(values) if op == "in" else col.not_in(values)

    value = coerce_filter_value(col, spec.raw_value)
    if _column_python_type(col) is datetime and op in {"eq", "notEq"} and _is_date_only_filter_literal(spec.raw_value):
        day_expr = (col >= value) & (col < value + timedelta(days=1))
        return day_expr if op == "eq" else ~day_expr
    if op == "eq":
        return col == value
    if op == "notEq":
        return col != value
    if op == "gt":
        return col > value
    if op == "lt":
        return col < value
    if op == "gte":
        return col >= value
    return col <= value


def apply_query_plan(q: Query, model, plan: QueryPlan, *, include_sort: bool = True, include_page: bool = False) -> Query:
    for spec in plan.filters:
        q = q.filter(_filter_criterion(getattr(model, spec.field), spec))
    if include_sort:
        for s in plan.sort:
            col = getattr(model, s.field)
            q = q.order_by(asc(col) if s.direction == "asc" else desc(col))
    if include_page:
        q = q.offset(plan.pagination.offset).limit(plan.pagination.limit)
    return q


def apply_relations(q: Query, model, relations: RelationDirective) -> Query:
    for name in dict.fromkeys(relations.contain + relations.count):
        q = q.options(selectinload(getattr(model, name)))
    return q


def apply_keyword_search(q: Query, descriptor: EntityDescriptor, keyword: str | None) -> Query:
    if not keyword or not descriptor.searchable_fields:
        return q
    pattern = f"%{keyword}%"
    clauses = [cast(getattr(descriptor.model, name), String).ilike(pattern) for name in descriptor.searchable_fields]
    return q.filter(or_(*clauses))

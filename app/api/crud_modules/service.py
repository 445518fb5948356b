from __future__ import annotations

import logging
import uuid
from contextlib import contextmanager
from typing import Any, Iterator

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.inspection import inspect as sa_inspect
from sqlalchemy.orm import Query, Session

from app.core.errors import NotFound, PersistenceError
from app.models.common import is_public_id
from app.registry.artifacts import Resolver
from app.schemas.query_plan import QueryPlan, RelationDirective
from app.services.query_compiler import (
    apply_keyword_search,
    apply_query_plan,
    apply_relations,
    compile_query,
    compile_relations,
)

from .context import RequestContext

_LOG = logging.getLogger("app.crud")


def _state(ctx: RequestContext, state: str) -> None:
    _LOG.debug("%s %s v%s state=%s", ctx.action, ctx.descriptor.entity_type, ctx.api_version, state)


def _serializer(ctx: RequestContext):
    return Resolver.instantiate(ctx.binding.serializer, ctx.descriptor, is_internal=ctx.is_internal)


def _reserved_keys(ctx: RequestContext) -> frozenset[str]:
    if ctx.binding.filter is None:
        return frozenset()
    return ctx.binding.filter.handled_keys()


def _compile(ctx: RequestContext) -> QueryPlan:
    return compile_query(ctx.descriptor, list(ctx.params), reserved_keys=_reserved_keys(ctx))


def _filtered_query(ctx: RequestContext, db: Session) -> Query:
    query = db.query(ctx.model)
    if ctx.binding.filter is not None:
        entity_filter = Resolver.instantiate(
            ctx.binding.filter, ctx.descriptor, list(ctx.params), is_internal=ctx.is_internal
        )
        query = entity_filter.apply(query)
    return query


def _wrap_collection(ctx: RequestContext, items: list[dict[str, Any]]) -> Any:
    if ctx.is_internal:
        return {ctx.descriptor.plural_name: items}
    return items


def _primary_key_value(model: type, record_id: str) -> Any:
    pk = sa_inspect(model).primary_key
    if len(pk) != 1:
        return None
    try:
        python_type = pk[0].type.python_type
    except NotImplementedError:
        python_type = str
    if python_type is uuid.UUID:
        try:
            return uuid.UUID(str(record_id))
        except ValueError:
            return None
    if python_type is int:
        try:
            return int(record_id)
        except ValueError:
            return None
    return record_id


def _load_record_or_404(ctx: RequestContext, db: Session, record_id: str, relations: RelationDirective | None = None):
    model = ctx.model
    query = db.query(model)
    if relations is not None:
        query = apply_relations(query, model, relations)
    row = None
    public_field = ctx.descriptor.public_id_field
    if public_field and is_public_id(record_id):
        row = query.filter(getattr(model, public_field) == record_id).first()
    else:
        pk_value = _primary_key_value(model, record_id)
        if pk_value is not None:
            pk_column = sa_inspect(model).primary_key[0]
            row = query.filter(pk_column == pk_value).first()
    if row is None:
        raise NotFound(ctx.descriptor.label)
    return row


@contextmanager
def _store_errors_as_500(ctx: RequestContext, db: Session) -> Iterator[None]:
    try:
        yield
    except SQLAlchemyError as exc:
        db.rollback()
        _LOG.warning("persistence failure action=%s entity=%s", ctx.action, ctx.descriptor.entity_type, exc_info=True)
        detail = getattr(exc, "orig", None) or exc
        raise PersistenceError(str(detail)) from exc


def _commit_or_500(ctx: RequestContext, db: Session) -> None:
    with _store_errors_as_500(ctx, db):
        db.commit()


def query_records(ctx: RequestContext, db: Session) -> Any:
    plan = _compile(ctx)
    _state(ctx, "compiled")
    with _store_errors_as_500(ctx, db):
        query = apply_query_plan(_filtered_query(ctx, db), ctx.model, plan, include_page=True)
        rows = apply_relations(query, ctx.model, plan.relations).all()
        _state(ctx, "executed")
        items = _serializer(ctx).collection(rows, plan.relations)
    return _wrap_collection(ctx, items)


def search_records(ctx: RequestContext, db: Session) -> Any:
    plan = _compile(ctx)
    _state(ctx, "compiled")
    with _store_errors_as_500(ctx, db):
        query = apply_keyword_search(_filtered_query(ctx, db), ctx.descriptor, plan.keyword)
        query = apply_query_plan(query, ctx.model, plan, include_page=True)
        rows = apply_relations(query, ctx.model, plan.relations).all()
        _state(ctx, "executed")
        items = _serializer(ctx).collection(rows, plan.relations)
    return _wrap_collection(ctx, items)


def count_records(ctx: RequestContext, db: Session) -> dict[str, int]:
    plan = _compile(ctx)
    with _store_errors_as_500(ctx, db):
        query = apply_query_plan(_filtered_query(ctx, db), ctx.model, plan, include_sort=False)
        return {"count": query.count()}


def find_record(ctx: RequestContext, db: Session, record_id: str) -> dict[str, Any]:
    relations = compile_relations(ctx.descriptor, list(ctx.params))
    with _store_errors_as_500(ctx, db):
        row = _load_record_or_404(ctx, db, record_id, relations)
        return {ctx.descriptor.singular_name: _serializer(ctx).to_dict(row, relations)}


def create_record(ctx: RequestContext, db: Session, payload: Any) -> dict[str, Any]:
    validator = Resolver.instantiate(ctx.binding.validator, ctx.descriptor, action="create")
    data = validator.validate(payload)
    _state(ctx, "validated")
    row = ctx.model(**data)
    db.add(row)
    _commit_or_500(ctx, db)
    _state(ctx, "executed")
    relations = compile_relations(ctx.descriptor, list(ctx.params))
    with _store_errors_as_500(ctx, db):
        db.refresh(row)
        return {ctx.descriptor.singular_name: _serializer(ctx).to_dict(row, relations)}


def update_record(ctx: RequestContext, db: Session, record_id: str, payload: Any) -> dict[str, Any]:
    validator = Resolver.instantiate(ctx.binding.validator, ctx.descriptor, action="update")
    data = validator.validate(payload)
    _state(ctx, "validated")
    with _store_errors_as_500(ctx, db):
        row = _load_record_or_404(ctx, db, record_id)
    for key, value in data.items():
        setattr(row, key, value)
    db.add(row)
    _commit_or_500(ctx, db)
    _state(ctx, "executed")
    relations = compile_relations(ctx.descriptor, list(ctx.params))
    with _store_errors_as_500(ctx, db):
        db.refresh(row)
        return {ctx.descriptor.singular_name: _serializer(ctx).to_dict(row, relations)}


def delete_record(ctx: RequestContext, db: Session, record_id: str) -> dict[str, Any]:
    with _store_errors_as_500(ctx, db):
        row = _load_record_or_404(ctx, db, record_id)
        snapshot = _serializer(ctx).to_dict(row)
    db.delete(row)
    _commit_or_500(ctx, db)
    _LOG.info("deleted %s %s", ctx.descriptor.entity_type, record_id)
    return {"status": "success", "message": "Resource deleted", "data": snapshot}

from __future__ import annotations

from typing import Any

from fastapi import APIRouter, Body, Depends, Request
from sqlalchemy.orm import Session

from app.core.deps import get_api_version, get_caller_scope
from app.db.session import get_db

from .context import RequestContext, build_context
from .service import (
    count_records,
    create_record,
    delete_record,
    find_record,
    query_records,
    search_records,
    update_record,
)

router = APIRouter()


def _context(resource: str, version: int, request: Request, is_internal: bool, action: str) -> RequestContext:
    return build_context(
        resource,
        api_version=version,
        is_internal=is_internal,
        action=action,
        params=request.query_params,
    )


@router.get("/{resource}")
def query_resource(
    resource: str,
    request: Request,
    version: int = Depends(get_api_version),
    is_internal: bool = Depends(get_caller_scope),
    db: Session = Depends(get_db),
):
    return query_records(_context(resource, version, request, is_internal, "query"), db)


@router.get("/{resource}/search")
def search_resource(
    resource: str,
    request: Request,
    version: int = Depends(get_api_version),
    is_internal: bool = Depends(get_caller_scope),
    db: Session = Depends(get_db),
):
    return search_records(_context(resource, version, request, is_internal, "search"), db)


@router.get("/{resource}/count")
def count_resource(
    resource: str,
    request: Request,
    version: int = Depends(get_api_version),
    is_internal: bool = Depends(get_caller_scope),
    db: Session = Depends(get_db),
):
    return count_records(_context(resource, version, request, is_internal, "count"), db)


@router.get("/{resource}/{record_id}")
def find_resource(
    resource: str,
    record_id: str,
    request: Request,
    version: int = Depends(get_api_version),
    is_internal: bool = Depends(get_caller_scope),
    db: Session = Depends(get_db),
):
    return find_record(_context(resource, version, request, is_internal, "read"), db, record_id)


@router.post("/{resource}", status_code=201)
def create_resource(
    resource: str,
    request: Request,
    payload: Any = Body(...),
    version: int = Depends(get_api_version),
    is_internal: bool = Depends(get_caller_scope),
    db: Session = Depends(get_db),
):
    return create_record(_context(resource, version, request, is_internal, "create"), db, payload)


@router.api_route("/{resource}/{record_id}", methods=["PUT", "PATCH"])
def update_resource(
    resource: str,
    record_id: str,
    request: Request,
    payload: Any = Body(...),
    version: int = Depends(get_api_version),
    is_internal: bool = Depends(get_caller_scope),
    db: Session = Depends(get_db),
):
    return update_record(_context(resource, version, request, is_internal, "update"), db, record_id, payload)


@router.delete("/{resource}/{record_id}")
def delete_resource(
    resource: str,
    record_id: str,
    request: Request,
    version: int = Depends(get_api_version),
    is_internal: bool = Depends(get_caller_scope),
    db: Session = Depends(get_db),
):
    return delete_record(_context(resource, version, request, is_internal, "delete"), db, record_id)

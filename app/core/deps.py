import hmac

from fastapi import Request

from app.core.config import settings
from app.core.errors import InvalidFilterError


def is_internal_request(request: Request) -> bool:
    token = settings.INTERNAL_SERVICE_TOKEN
    if not token:
        return False
    supplied = request.headers.get(settings.INTERNAL_TOKEN_HEADER) or ""
    return hmac.compare_digest(supplied.encode(), token.encode())


def get_caller_scope(request: Request) -> bool:
    is_internal = is_internal_request(request)
    request.state.is_internal = is_internal
    return is_internal


def get_api_version(request: Request) -> int:
    """Version segment of ``/api/v<N>/...``; unversioned mounts use the configured default."""
    version = request.path_params.get("version", settings.DEFAULT_API_VERSION)
    if version < 1:
        raise InvalidFilterError("version", "must be a positive integer")
    return version

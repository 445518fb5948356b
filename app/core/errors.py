from __future__ import annotations

import logging
from typing import Any

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse

_LOG = logging.getLogger("app.http")


class ApiError(Exception):
    status_code = 500
    status = "error"

    def __init__(self, message: Any = "Internal error"):
        super().__init__(message if isinstance(message, str) else repr(message))
        self.message = message

    def envelope(self) -> dict[str, Any]:
        return {"status": self.status, "message": self.message}


class UnknownEntityType(ApiError):
    """Descriptor lookup miss. Fatal when raised while wiring the app."""

    status_code = 404
    status = "failed"

    def __init__(self, entity_type: str):
        super().__init__(f'Unknown entity type "{entity_type}"')
        self.entity_type = entity_type

    def envelope(self) -> dict[str, Any]:
        return {"status": self.status, "message": "Resource not found"}


class ArtifactConstructionError(ApiError):
    """A resolved serializer/validator/filter could not be built: a deployment defect."""

    status_code = 500

    def __init__(self, reference: str, detail: str):
        super().__init__(f'Unable to construct "{reference}": {detail}')
        self.reference = reference


class InvalidFilterError(ApiError):
    status_code = 400

    def __init__(self, parameter: str, detail: str):
        super().__init__(f'Invalid parameter "{parameter}": {detail}')
        self.parameter = parameter
        self.detail = detail

    def envelope(self) -> dict[str, Any]:
        return {"status": self.status, "message": self.message, "parameter": self.parameter}


class ValidationFailed(ApiError):
    status_code = 400

    def __init__(self, messages: list[str]):
        super().__init__(list(messages))
        self.messages = list(messages)


class NotFound(ApiError):
    status_code = 404
    status = "failed"

    def __init__(self, resource_label: str = "Resource"):
        super().__init__(f"{resource_label} not found")


class PersistenceError(ApiError):
    status_code = 500


def request_validation_messages(errors: list[dict[str, Any]]) -> list[str]:
    messages = []
    for error in errors:
        loc = list(error.get("loc", ()))
        # Drop the source ("body", "path", ...) and JSON positions from the field name.
        names = [str(part) for part in loc[1:] if isinstance(part, str)]
        field = ".".join(names) or (str(loc[0]) if loc else "payload")
        if error.get("type") == "missing":
            messages.append(f"{field} is required")
        else:
            messages.append(f"{field}: {error.get('msg')}")
    return list(dict.fromkeys(messages))


def install_error_handlers(app: FastAPI) -> None:
    @app.exception_handler(ApiError)
    async def _api_error_handler(request: Request, exc: ApiError):
        return JSONResponse(exc.envelope(), status_code=exc.status_code)

    @app.exception_handler(RequestValidationError)
    async def _request_validation_handler(request: Request, exc: RequestValidationError):
        failure = ValidationFailed(request_validation_messages(exc.errors()))
        return JSONResponse(failure.envelope(), status_code=failure.status_code)

    @app.exception_handler(Exception)
    async def _unhandled_error_handler(request: Request, exc: Exception):
        _LOG.error("unhandled error on %s %s", request.method, request.url.path, exc_info=exc)
        return JSONResponse(ApiError().envelope(), status_code=500)

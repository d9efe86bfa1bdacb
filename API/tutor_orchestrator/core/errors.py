"""
Domain exceptions and the HTTP error envelope.

Every error response, including validation and unhandled failures, uses the same
shape as an orchestration result: `{"success": false, "error": "<message>", ...}`.
"""
import logging
import uuid

from fastapi import HTTPException, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse

logger = logging.getLogger(__name__)

REQUEST_ID_HEADER = "x-request-id"

_STATUS_CODES = {
    400: "bad_request",
    404: "not_found",
    405: "method_not_allowed",
    422: "validation_error",
}


class CollaboratorError(Exception):
    """A downstream collaborator returned a non-success status or could not be reached."""

    def __init__(self, message: str, *, status_code: int | None = None):
        super().__init__(message)
        self.status_code = status_code


class StateStoreError(Exception):
    """The hot state cache could not be read or written."""


class DurableStoreError(Exception):
    """The durable session store could not be read or written."""


def get_request_id(request: Request) -> str:
    return getattr(request.state, "request_id", "unknown")


def error_envelope(request: Request, status_code: int, message: str, *, code: str | None = None, details=None) -> JSONResponse:
    content = {
        "success": False,
        "error": message,
        "code": code or _STATUS_CODES.get(status_code, "http_error"),
        "requestId": get_request_id(request),
    }
    if details:
        content["details"] = details
    return JSONResponse(status_code=status_code, content=content)


async def http_exception_handler(request: Request, exc: HTTPException):
    return error_envelope(request, exc.status_code, str(exc.detail))


async def validation_exception_handler(request: Request, exc: RequestValidationError):
    details = [{"field": ".".join(str(p) for p in err.get("loc", ())), "msg": err.get("msg", "")} for err in exc.errors()]
    return error_envelope(request, 422, "Request validation failed", details=details)


async def unhandled_exception_handler(request: Request, exc: Exception):
    logger.exception("Unhandled exception | request_id=%s", get_request_id(request), exc_info=exc)
    return error_envelope(request, 500, "Internal server error", code="internal_error")


async def request_id_middleware(request: Request, call_next):
    request.state.request_id = request.headers.get(REQUEST_ID_HEADER) or uuid.uuid4().hex
    response = await call_next(request)
    response.headers[REQUEST_ID_HEADER] = request.state.request_id
    return response

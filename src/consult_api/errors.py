"""Error taxonomy for the consultation workflow and the FastAPI handlers that render it."""

from typing import Any
from typing import Optional

import pydantic
from fastapi import Request
from fastapi import status
from fastapi.responses import JSONResponse
from loguru import logger

from consult_api.monitoring.logger import log_response_info

# JSON-RPC style numeric codes used by tRPC clients, keyed by the string code
RPC_ERROR_NUMBERS = {
    "PARSE_ERROR": -32700,
    "BAD_REQUEST": -32600,
    "INTERNAL_SERVER_ERROR": -32603,
    "BAD_GATEWAY": -32603,
    "UNAUTHORIZED": -32001,
    "FORBIDDEN": -32003,
    "NOT_FOUND": -32004,
    "METHOD_NOT_SUPPORTED": -32005,
    "CONFLICT": -32009,
    "PRECONDITION_FAILED": -32012,
}

__all__ = [
    "WorkflowError",
    "ValidationError",
    "ParseError",
    "NotFoundError",
    "ConflictError",
    "StateError",
    "ForbiddenError",
    "UpstreamError",
    "AuthenticationError",
    "MethodNotSupportedError",
    "error_envelope",
    "handle_broad_exceptions",
    "handle_workflow_errors",
    "handle_pydantic_validation_errors",
]


class WorkflowError(Exception):
    """Base class for errors surfaced to callers as a structured code/message pair."""

    code = "INTERNAL_SERVER_ERROR"
    http_status = status.HTTP_500_INTERNAL_SERVER_ERROR

    def __init__(self, message: str, **details: Any):
        super().__init__(message)
        self.message = message
        self.details = details


class ValidationError(WorkflowError):
    """Bad input: empty summary, non-positive amount, caller not allowed to submit."""

    code = "BAD_REQUEST"
    http_status = status.HTTP_400_BAD_REQUEST


class ParseError(ValidationError):
    """Procedure input is not valid JSON."""

    code = "PARSE_ERROR"


class NotFoundError(WorkflowError):
    """Missing request, assignment, order or advisor."""

    code = "NOT_FOUND"
    http_status = status.HTTP_404_NOT_FOUND


class ConflictError(WorkflowError):
    """State already advanced by a racing actor (or a replayed call)."""

    code = "CONFLICT"
    http_status = status.HTTP_409_CONFLICT


class StateError(WorkflowError):
    """Operation invalid for the current request status."""

    code = "PRECONDITION_FAILED"
    http_status = status.HTTP_412_PRECONDITION_FAILED


class ForbiddenError(WorkflowError):
    """Caller is authenticated but does not own the resource."""

    code = "FORBIDDEN"
    http_status = status.HTTP_403_FORBIDDEN


class UpstreamError(WorkflowError):
    """Payment gateway or auth layer failure."""

    code = "BAD_GATEWAY"
    http_status = status.HTTP_502_BAD_GATEWAY


class AuthenticationError(UpstreamError):
    """No validated identity was forwarded by the auth layer."""

    code = "UNAUTHORIZED"
    http_status = status.HTTP_401_UNAUTHORIZED


class MethodNotSupportedError(WorkflowError):
    """Query called with POST or mutation called with GET."""

    code = "METHOD_NOT_SUPPORTED"
    http_status = status.HTTP_405_METHOD_NOT_ALLOWED


def error_envelope(code: str, message: str, http_status: int, path: Optional[str] = None) -> dict:
    """Build a tRPC-shaped error body."""
    return {
        "error": {
            "message": message,
            "code": RPC_ERROR_NUMBERS.get(code, -32603),
            "data": {
                "code": code,
                "httpStatus": http_status,
                "path": path,
            },
        }
    }


def _procedure_path(request: Request) -> Optional[str]:
    return request.path_params.get("procedure") if hasattr(request, "path_params") else None


# fastapi docs on middlewares: https://fastapi.tiangolo.com/tutorial/middleware/
async def handle_broad_exceptions(request: Request, call_next):
    """Handle any exception that goes unhandled by a more specific exception handler."""
    try:
        return await call_next(request)
    except Exception as err:  # pylint: disable=broad-except
        error_response = error_envelope(
            "INTERNAL_SERVER_ERROR",
            "Internal server error",
            status.HTTP_500_INTERNAL_SERVER_ERROR,
            _procedure_path(request),
        )

        # Get request body from request state (set by RequestContextMiddleware)
        request_body = getattr(request.state, "request_body", None)

        logger.opt(exception=err).error(
            f"Unhandled exception: {type(err).__name__}: {str(err)}",
            http_status=500,
            http_method=request.method,
            url_path=str(request.url.path),
            error_type=type(err).__name__,
            error_message=str(err),
            request_body=request_body,
        )

        response = JSONResponse(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            content=error_response,
        )
        log_response_info(response)
        return response


async def handle_workflow_errors(request: Request, exc: WorkflowError) -> JSONResponse:
    """
    Render a WorkflowError as a tRPC error envelope.

    Parameters
    ----------
    request : Request
        FastAPI request object
    exc : WorkflowError
        Domain error raised by the workflow controller or transport

    Returns
    -------
    JSONResponse
        Error envelope with the HTTP status mapped from the error class
    """
    error_type = type(exc).__name__
    error_response = error_envelope(exc.code, exc.message, exc.http_status, _procedure_path(request))

    request_body = getattr(request.state, "request_body", None)

    logger.warning(
        f"Workflow error: {error_type}: {exc.message}",
        http_status=exc.http_status,
        http_method=request.method,
        url_path=str(request.url.path),
        error_type=error_type,
        error_code=exc.code,
        error_details=exc.details,
        request_body=request_body,
    )

    response = JSONResponse(
        status_code=exc.http_status,
        content=error_response,
    )
    log_response_info(response)
    return response


# fastapi docs on error handlers: https://fastapi.tiangolo.com/tutorial/handling-errors/
async def handle_pydantic_validation_errors(request: Request, exc: pydantic.ValidationError) -> JSONResponse:
    """Handle Pydantic validation errors raised while parsing procedure input."""
    errors = exc.errors()
    message = "; ".join(
        f"{'.'.join(str(part) for part in error['loc']) or 'input'}: {error['msg']}" for error in errors
    )
    error_response = error_envelope(
        "BAD_REQUEST",
        message or "Invalid input",
        status.HTTP_400_BAD_REQUEST,
        _procedure_path(request),
    )

    request_body = getattr(request.state, "request_body", None)

    logger.warning(
        f"Validation error: {len(errors)} validation errors",
        http_status=400,
        http_method=request.method,
        url_path=str(request.url.path),
        error_type="ValidationError",
        validation_errors=errors,
        request_body=request_body,
    )

    response = JSONResponse(
        status_code=status.HTTP_400_BAD_REQUEST,
        content=error_response,
    )
    log_response_info(response)

    return response

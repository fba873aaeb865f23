from fastapi import Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse

from metricspulse.core.config import request_logger
from metricspulse.core.exceptions.types import (
    AppException,
    AuthenticationException,
    DatabaseException,
    ExternalServiceException,
    RetryExhaustedException,
    TimeoutException,
)


def _error_content(exc: AppException, message: str | None = None) -> dict:
    content: dict = {"detail": message or exc.message, "code": exc.code}
    if exc.details:
        content["details"] = exc.details
    return content


async def general_exception_handler(request: Request, exc: AppException):
    """
    Handles application exceptions by returning a JSON response with the error message.

    Args:
        request: The request object.
        exc (AppException): The exception instance.

    Returns:
        JSONResponse: A response containing the error message, code and status code.
    """
    if exc.status_code >= 500:
        request_logger.error(
            f"{exc.__class__.__name__}: {exc} | path={request.url.path}"
        )
    else:
        request_logger.warning(
            f"{exc.__class__.__name__}: {exc} | path={request.url.path}"
        )
    return JSONResponse(status_code=exc.status_code, content=_error_content(exc))


async def database_exception_handler(request: Request, exc: DatabaseException):
    """
    Handles database exceptions without leaking driver messages to the client.

    Returns:
        JSONResponse: A response with a generic message and status code 500.
    """
    request_logger.error(f"DatabaseException: {exc} | path={request.url.path}")
    return JSONResponse(
        status_code=exc.status_code,
        content={"detail": "A database error occurred.", "code": exc.code},
    )


async def authentication_exception_handler(
    request: Request, exc: AuthenticationException
):
    """
    Handles authentication exceptions by returning a JSON response.

    Returns:
        JSONResponse: A response containing the error message and status code 401.
    """
    request_logger.warning(f"AuthenticationException: {exc}")
    return JSONResponse(
        status_code=exc.status_code,
        content=_error_content(exc),
        headers={"WWW-Authenticate": "Bearer"},
    )


async def external_service_exception_handler(
    request: Request, exc: ExternalServiceException
):
    """
    Handles upstream provider failures.

    Returns:
        JSONResponse: A response with a client-safe message and the upstream-derived status.
    """
    request_logger.error(
        f"ExternalServiceException: {exc} | service={exc.service} "
        f"code={exc.provider_code or 'N/A'} request_id={exc.request_id or 'N/A'}"
    )
    return JSONResponse(
        status_code=exc.status_code,
        content=_error_content(
            exc, "Unable to connect to payment processor. Please try again later."
        ),
    )


async def retry_exhausted_exception_handler(
    request: Request, exc: RetryExhaustedException
):
    """
    Handles operations that failed on every retry by reporting the last error.

    Returns:
        JSONResponse: A response carrying the status of the last underlying error.
    """
    last_error = exc.last_error
    request_logger.error(
        f"RetryExhaustedException: {exc} | attempts={exc.attempts} last_error={last_error!r}"
    )
    if isinstance(last_error, ExternalServiceException):
        return await external_service_exception_handler(request, last_error)
    if isinstance(last_error, AppException):
        return JSONResponse(
            status_code=last_error.status_code, content=_error_content(last_error)
        )
    return JSONResponse(status_code=exc.status_code, content=_error_content(exc))


async def timeout_exception_handler(request: Request, exc: TimeoutException):
    """
    Handles exceeded time budgets.

    Returns:
        JSONResponse: A response containing the error message and status code 408.
    """
    request_logger.warning(f"TimeoutException: {exc} | path={request.url.path}")
    return JSONResponse(status_code=exc.status_code, content=_error_content(exc))


async def request_validation_exception_handler(
    request: Request, exc: RequestValidationError
):
    """
    Handles invalid query/body parameters as plain 400 responses.

    Returns:
        JSONResponse: A response listing the validation errors with status code 400.
    """
    errors = [
        {
            "loc": list(error.get("loc", ())),
            "msg": error.get("msg", ""),
        }
        for error in exc.errors()
    ]
    request_logger.warning(f"RequestValidationError: {errors} | path={request.url.path}")
    return JSONResponse(
        status_code=status.HTTP_400_BAD_REQUEST,
        content={
            "detail": "Invalid request parameters.",
            "code": "VALIDATION_ERROR",
            "details": {"errors": errors},
        },
    )


exception_schema = {
    status.HTTP_500_INTERNAL_SERVER_ERROR: {
        "description": "Internal Server Error",
        "content": {
            "application/json": {
                "example": {
                    "detail": "Some internal server error message",
                    "code": "INTERNAL_ERROR",
                },
            }
        },
    },
    status.HTTP_400_BAD_REQUEST: {
        "description": "Bad Request",
        "content": {
            "application/json": {
                "example": {"detail": "Invalid request parameters.", "code": "VALIDATION_ERROR"},
            }
        },
    },
    status.HTTP_401_UNAUTHORIZED: {
        "description": "Authentication Error",
        "content": {
            "application/json": {
                "example": {"detail": "Authentication failed.", "code": "AUTHENTICATION_ERROR"},
            }
        },
    },
}


__all__ = [
    "general_exception_handler",
    "database_exception_handler",
    "authentication_exception_handler",
    "external_service_exception_handler",
    "retry_exhausted_exception_handler",
    "timeout_exception_handler",
    "request_validation_exception_handler",
    "exception_schema",
]

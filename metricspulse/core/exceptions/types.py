from fastapi import status


class AppException(Exception):
    """Base application exception."""

    code: str = "INTERNAL_ERROR"

    def __init__(
        self,
        message: str,
        status_code: int | None = None,
        details: dict | None = None,
    ):
        self.message = message
        self.status_code = status_code or status.HTTP_500_INTERNAL_SERVER_ERROR
        self.details = details
        super().__init__(message)


class InternalException(AppException):
    """Exception raised for unexpected internal failures."""

    def __init__(
        self,
        message: str = "An internal error occurred.",
        details: dict | None = None,
    ):
        super().__init__(message, status.HTTP_500_INTERNAL_SERVER_ERROR, details)


class DatabaseException(AppException):
    """Exception raised for database-related errors."""

    code = "DATABASE_ERROR"

    def __init__(self, message: str = "A database error occurred."):
        super().__init__(message, status.HTTP_500_INTERNAL_SERVER_ERROR)


class AuthenticationException(AppException):
    """Exception raised for authentication-related errors."""

    code = "AUTHENTICATION_ERROR"

    def __init__(self, message: str = "Authentication failed."):
        super().__init__(message, status.HTTP_401_UNAUTHORIZED)


class ForbiddenException(AppException):
    """Exception raised when access is forbidden."""

    code = "AUTHORIZATION_ERROR"

    def __init__(self, message: str = "Access forbidden."):
        super().__init__(message, status.HTTP_403_FORBIDDEN)


class NotFoundException(AppException):
    """Exception raised when a resource is not found."""

    code = "NOT_FOUND"

    def __init__(self, message: str = "Resource not found."):
        super().__init__(message, status.HTTP_404_NOT_FOUND)


class WorkspaceNotFoundException(NotFoundException):
    """Exception raised when the caller has no workspace."""

    def __init__(self, message: str = "Workspace not found."):
        super().__init__(message)


class BadRequestException(AppException):
    """Exception raised for bad request errors."""

    code = "BAD_REQUEST"

    def __init__(self, message: str = "Bad request.", details: dict | None = None):
        super().__init__(message, status.HTTP_400_BAD_REQUEST, details)


class ValidationException(BadRequestException):
    """Exception raised when input or payload validation fails."""

    code = "VALIDATION_ERROR"

    def __init__(
        self, message: str = "Invalid data provided.", details: dict | None = None
    ):
        super().__init__(message, details)


class NotConnectedException(BadRequestException):
    """Exception raised when a workspace has no usable billing connection."""

    code = "STRIPE_NOT_CONNECTED"

    def __init__(
        self,
        message: str = "No Stripe connection found. Please connect your Stripe account first.",
    ):
        super().__init__(message)


class WebhookSignatureException(BadRequestException):
    """Base exception for webhook authenticity failures."""

    code = "WEBHOOK_SIGNATURE_INVALID"

    def __init__(self, message: str = "Invalid webhook signature."):
        super().__init__(message)


class MissingSignatureException(WebhookSignatureException):
    """Exception raised when the signature header is absent."""

    code = "WEBHOOK_SIGNATURE_MISSING"

    def __init__(self, message: str = "Missing Stripe-Signature header"):
        super().__init__(message)


class InvalidSignatureException(WebhookSignatureException):
    """Exception raised when the signature does not match the payload."""

    def __init__(self, message: str = "Invalid signature"):
        super().__init__(message)


class InvalidWebhookMetadataException(WebhookSignatureException):
    """Exception raised when request metadata (content type, length) is unacceptable."""

    code = "WEBHOOK_INVALID_METADATA"

    def __init__(self, message: str = "Invalid webhook request metadata"):
        super().__init__(message)


class PayloadTooLargeException(InvalidWebhookMetadataException):
    """Exception raised when the webhook body exceeds the size cap."""

    code = "PAYLOAD_TOO_LARGE"

    def __init__(self, message: str = "Webhook payload too large"):
        super().__init__(message)
        self.status_code = status.HTTP_413_REQUEST_ENTITY_TOO_LARGE


class ExternalServiceException(AppException):
    """Exception raised when an upstream provider call fails."""

    code = "EXTERNAL_SERVICE_ERROR"

    def __init__(
        self,
        message: str = "An external service error occurred.",
        service: str = "stripe",
        status_code: int = status.HTTP_502_BAD_GATEWAY,
        provider_code: str | None = None,
        error_type: str | None = None,
        request_id: str | None = None,
        retryable: bool = True,
        details: dict | None = None,
    ):
        super().__init__(message, status_code, details)
        self.service = service
        self.provider_code = provider_code
        self.error_type = error_type
        self.request_id = request_id
        self.retryable = retryable


class TimeoutException(AppException):
    """Exception raised when an operation exceeds its time budget."""

    code = "TIMEOUT"

    def __init__(
        self, message: str = "Request timed out. Please try again.", details: dict | None = None
    ):
        super().__init__(message, status.HTTP_408_REQUEST_TIMEOUT, details)


class RetryExhaustedException(AppException):
    """Exception raised when a retried operation keeps failing."""

    code = "RETRY_EXHAUSTED"

    def __init__(
        self,
        message: str,
        attempts: int,
        last_error: BaseException,
    ):
        status_code = (
            last_error.status_code
            if isinstance(last_error, AppException)
            else status.HTTP_500_INTERNAL_SERVER_ERROR
        )
        super().__init__(message, status_code, {"attempts": attempts})
        self.attempts = attempts
        self.last_error = last_error


__all__ = [
    "AppException",
    "InternalException",
    "DatabaseException",
    "AuthenticationException",
    "ForbiddenException",
    "NotFoundException",
    "WorkspaceNotFoundException",
    "BadRequestException",
    "ValidationException",
    "NotConnectedException",
    "WebhookSignatureException",
    "MissingSignatureException",
    "InvalidSignatureException",
    "InvalidWebhookMetadataException",
    "PayloadTooLargeException",
    "ExternalServiceException",
    "TimeoutException",
    "RetryExhaustedException",
]

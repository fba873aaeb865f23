"""
Tests for exception types and their HTTP handlers.
"""

import json
from unittest.mock import MagicMock

import pytest

from metricspulse.core.exceptions.handlers import (
    authentication_exception_handler,
    database_exception_handler,
    external_service_exception_handler,
    general_exception_handler,
    retry_exhausted_exception_handler,
    timeout_exception_handler,
)
from metricspulse.core.exceptions.types import (
    AppException,
    AuthenticationException,
    DatabaseException,
    ExternalServiceException,
    InvalidSignatureException,
    MissingSignatureException,
    NotConnectedException,
    PayloadTooLargeException,
    RetryExhaustedException,
    TimeoutException,
    WorkspaceNotFoundException,
)


@pytest.fixture
def request_mock():
    request = MagicMock()
    request.url.path = "/test"
    return request


def body_of(response) -> dict:
    return json.loads(response.body)


class TestExceptionTypes:

    def test_app_exception_defaults_to_500(self):
        exc = AppException("boom")
        assert exc.status_code == 500
        assert exc.message == "boom"
        assert exc.code == "INTERNAL_ERROR"

    def test_not_connected_is_bad_request(self):
        exc = NotConnectedException()
        assert exc.status_code == 400
        assert exc.code == "STRIPE_NOT_CONNECTED"
        assert "connect your Stripe account" in exc.message

    def test_signature_exceptions_are_bad_request(self):
        assert MissingSignatureException().status_code == 400
        assert MissingSignatureException().message == "Missing Stripe-Signature header"
        assert InvalidSignatureException().message == "Invalid signature"

    def test_payload_too_large_is_413(self):
        assert PayloadTooLargeException().status_code == 413

    def test_workspace_not_found_is_404(self):
        assert WorkspaceNotFoundException().status_code == 404

    def test_timeout_is_408(self):
        assert TimeoutException().status_code == 408

    def test_external_service_defaults(self):
        exc = ExternalServiceException()
        assert exc.status_code == 502
        assert exc.retryable is True
        assert exc.service == "stripe"

    def test_retry_exhausted_takes_status_of_last_error(self):
        last = ExternalServiceException("down", status_code=502)
        exc = RetryExhaustedException("failed", attempts=3, last_error=last)
        assert exc.status_code == 502
        assert exc.attempts == 3
        assert exc.details == {"attempts": 3}

    def test_retry_exhausted_with_plain_error_is_500(self):
        exc = RetryExhaustedException("failed", attempts=1, last_error=RuntimeError())
        assert exc.status_code == 500


class TestExceptionHandlers:

    async def test_general_handler(self, request_mock):
        response = await general_exception_handler(
            request_mock, NotConnectedException()
        )
        assert response.status_code == 400
        assert body_of(response)["code"] == "STRIPE_NOT_CONNECTED"

    async def test_general_handler_includes_details(self, request_mock):
        response = await general_exception_handler(
            request_mock, AppException("x", status_code=503, details={"a": 1})
        )
        assert response.status_code == 503
        assert body_of(response)["details"] == {"a": 1}

    async def test_database_handler_hides_driver_message(self, request_mock):
        response = await database_exception_handler(
            request_mock, DatabaseException("psycopg exploded at row 7")
        )
        assert response.status_code == 500
        assert body_of(response)["detail"] == "A database error occurred."

    async def test_authentication_handler_sets_www_authenticate(self, request_mock):
        response = await authentication_exception_handler(
            request_mock, AuthenticationException("Not authenticated")
        )
        assert response.status_code == 401
        assert response.headers["WWW-Authenticate"] == "Bearer"

    async def test_external_service_handler(self, request_mock):
        response = await external_service_exception_handler(
            request_mock, ExternalServiceException("upstream said no", status_code=502)
        )
        assert response.status_code == 502
        assert (
            body_of(response)["detail"]
            == "Unable to connect to payment processor. Please try again later."
        )

    async def test_retry_exhausted_handler_reports_last_error(self, request_mock):
        last = ExternalServiceException("down")
        response = await retry_exhausted_exception_handler(
            request_mock,
            RetryExhaustedException("failed", attempts=3, last_error=last),
        )
        assert response.status_code == 502
        assert body_of(response)["code"] == "EXTERNAL_SERVICE_ERROR"

    async def test_timeout_handler(self, request_mock):
        response = await timeout_exception_handler(request_mock, TimeoutException())
        assert response.status_code == 408
        assert body_of(response)["code"] == "TIMEOUT"

from typing import Any

import httpx
from pydantic import ValidationError

from metricspulse.core.config import settings, stripe_logger
from metricspulse.core.exceptions.types import (
    ExternalServiceException,
    TimeoutException,
)
from metricspulse.core.services.payment.stripe.types import ListResponse

# Stripe caps list pages at 100 objects
PAGE_SIZE = 100

NON_RETRYABLE_STATUSES = frozenset({400, 401, 403, 404})


class StripeClient:
    """
    Read-only Stripe API client for a connected account.

    The client authenticates with the connected account's access token and
    classifies failures into the application's exception taxonomy. It never
    retries: retrying is the job of ``RetryController``.

    Example:
        >>> async with StripeClient(connection.access_token) as client:
        ...     subscriptions = await client.list_subscriptions("active", limit=100)
    """

    def __init__(
        self,
        access_token: str,
        base_url: str | None = None,
        timeout: float | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
    ):
        if not access_token or not access_token.strip():
            raise ValueError("Stripe access token must not be empty")
        self._client = httpx.AsyncClient(
            base_url=base_url or settings.STRIPE_API_BASE_URL,
            timeout=httpx.Timeout(timeout or settings.STRIPE_TIMEOUT_SECONDS),
            auth=httpx.BasicAuth(access_token, ""),
            transport=transport,
        )

    async def __aenter__(self) -> "StripeClient":
        return self

    async def __aexit__(self, *exc_info: Any) -> None:
        await self.aclose()

    async def aclose(self) -> None:
        await self._client.aclose()

    async def _request(
        self,
        method: str,
        endpoint: str,
        *,
        params: list[tuple[str, Any]] | None = None,
    ) -> dict[str, Any]:
        """
        Make a single HTTP request to the Stripe API.

        Raises
        ------
            ExternalServiceException
                For HTTP errors and network failures. ``retryable`` is True for
                5xx, 429 and network errors, False for 400/401/403/404.
            TimeoutException
                When the request exceeds the configured timeout.
        """
        try:
            resp: httpx.Response = await self._client.request(
                method, endpoint, params=params
            )
            resp.raise_for_status()
        except httpx.HTTPStatusError as exc:
            raise self._classify_status_error(method, endpoint, exc) from exc
        except httpx.TimeoutException as exc:
            stripe_logger.warning(f"Stripe {method} {endpoint} timed out: {exc}")
            raise TimeoutException(
                "Stripe request timed out. Please try again.",
                details={"endpoint": endpoint},
            ) from exc
        except httpx.TransportError as exc:
            stripe_logger.warning(
                f"Stripe {method} {endpoint} network error: {exc.__class__.__name__}: {exc}"
            )
            raise ExternalServiceException(
                message="Unable to connect to Stripe. Please try again later.",
                error_type="network_error",
                retryable=True,
            ) from exc

        stripe_logger.info(
            f"Stripe {method} {endpoint} succeeded (Request-Id: {resp.headers.get('Request-Id', 'N/A')})"
        )
        try:
            return resp.json()
        except ValueError as exc:
            raise ExternalServiceException(
                message="Stripe returned a non-JSON response.",
                error_type="invalid_response",
                retryable=True,
            ) from exc

    @staticmethod
    def _classify_status_error(
        method: str, endpoint: str, exc: httpx.HTTPStatusError
    ) -> ExternalServiceException:
        status = exc.response.status_code
        request_id = exc.response.headers.get("Request-Id")

        try:
            err_body = exc.response.json()
        except ValueError:
            err_body = {"error": {"message": exc.response.text}}

        error_data = err_body.get("error", {}) if isinstance(err_body, dict) else {}
        error_type = error_data.get("type")
        error_code = error_data.get("code")
        error_message = error_data.get("message") or f"Stripe API error {status}"

        stripe_logger.error(
            f"Stripe error: {method} {endpoint} {status} {error_type or 'unknown'} | "
            f"Code: {error_code or 'N/A'} | Request-Id: {request_id or 'N/A'} | "
            f"Message: {error_message}"
        )

        retryable = status >= 500 or status == 429
        if status in NON_RETRYABLE_STATUSES:
            retryable = False

        return ExternalServiceException(
            message=error_message,
            status_code=status if status in NON_RETRYABLE_STATUSES else 502,
            provider_code=error_code,
            error_type=error_type,
            request_id=request_id,
            retryable=retryable,
            details={"upstream_status": status},
        )

    async def _list(
        self,
        endpoint: str,
        limit: int,
        params: list[tuple[str, Any]],
    ) -> list[dict[str, Any]]:
        """
        Page through a list endpoint with ``starting_after`` until ``limit``
        objects are collected or Stripe reports no more pages.
        """
        collected: list[dict[str, Any]] = []
        starting_after: str | None = None

        while len(collected) < limit:
            page_params = list(params)
            page_params.append(("limit", min(PAGE_SIZE, limit - len(collected))))
            if starting_after:
                page_params.append(("starting_after", starting_after))

            body = await self._request("GET", endpoint, params=page_params)
            try:
                page = ListResponse.model_validate(body)
            except ValidationError as exc:
                stripe_logger.error(f"Unexpected list response from Stripe {endpoint}: {exc}")
                raise ExternalServiceException(
                    message="Stripe returned an unexpected response.",
                    error_type="invalid_response",
                    retryable=False,
                ) from exc
            collected.extend(page.data)

            if not page.has_more or not page.data:
                break
            starting_after = page.data[-1].get("id")
            if not starting_after:
                break

        return collected[:limit]

    async def list_subscriptions(
        self, status: str, limit: int = PAGE_SIZE
    ) -> list[dict[str, Any]]:
        """
        List subscriptions with the given status, prices expanded.

        Returns raw Stripe objects; callers validate the fields they use.
        """
        return await self._list(
            "/v1/subscriptions",
            limit,
            [("status", status), ("expand[]", "data.items.data.price")],
        )

    async def list_customers(self, limit: int = PAGE_SIZE) -> list[dict[str, Any]]:
        """List customers with their subscriptions expanded."""
        return await self._list(
            "/v1/customers",
            limit,
            [("expand[]", "data.subscriptions")],
        )

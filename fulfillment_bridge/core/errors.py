"""
Error taxonomy shared by every supplier adapter.

Adapters raise these (or let httpx errors escape); the router and the sync
engines pass anything they catch through ``translate_error`` so callers only
ever see one of the kinds below, never a supplier-specific exception.
"""

from __future__ import annotations

import asyncio
from typing import Any

import httpx


class FulfillmentError(Exception):
    """Base class for all orchestration-layer failures."""

    code = "FULFILLMENT_ERROR"

    def __init__(
        self,
        message: str,
        provider: str = "",
        code: str | None = None,
        details: dict[str, Any] | None = None,
    ) -> None:
        super().__init__(message)
        self.message = message
        self.provider = provider
        if code is not None:
            self.code = code
        self.details = details or {}

    def to_dict(self) -> dict[str, Any]:
        return {
            "error": type(self).__name__,
            "code": self.code,
            "provider": self.provider,
            "message": self.message,
            "details": self.details,
        }


class ProviderUnavailableError(FulfillmentError):
    """Unknown, disabled or incapable provider. Caller error, not retried."""

    code = "PROVIDER_UNAVAILABLE"


class RateLimitError(FulfillmentError):
    code = "RATE_LIMIT"

    def __init__(self, provider: str, retry_after: float | None = None) -> None:
        super().__init__(
            f"Rate limit exceeded for {provider}",
            provider,
            details={"retry_after": retry_after},
        )
        self.retry_after = retry_after


class ProductNotFoundError(FulfillmentError):
    code = "PRODUCT_NOT_FOUND"

    def __init__(self, provider: str, product_id: str) -> None:
        super().__init__(
            f"Product {product_id} not found on {provider}",
            provider,
            details={"product_id": product_id},
        )
        self.product_id = product_id


class OrderCreationError(FulfillmentError):
    """The supplier definitively rejected the order."""

    code = "ORDER_CREATION_FAILED"

    def __init__(
        self, provider: str, reason: str, details: dict[str, Any] | None = None
    ) -> None:
        super().__init__(f"supplier {provider} rejected: {reason}", provider, details=details)
        self.reason = reason


class TransportError(FulfillmentError):
    """
    Network failure or timeout.

    The supplier-side outcome is unknown: the call may or may not have taken
    effect, so callers must not treat this as a rejection.
    """

    code = "TRANSPORT_ERROR"


class HealthCheckFailure(FulfillmentError):
    """Raised by health probes only; consumed by the health monitor."""

    code = "HEALTH_CHECK_FAILED"


class OrderValidationError(FulfillmentError):
    code = "ORDER_INVALID"

    def __init__(self, problems: list[str], provider: str = "") -> None:
        super().__init__(
            "Invalid order request: " + "; ".join(problems),
            provider,
            details={"problems": problems},
        )
        self.problems = problems


class SupplierError(FulfillmentError):
    """The supplier answered with an error that has no narrower kind."""

    code = "SUPPLIER_ERROR"

    def __init__(
        self, provider: str, status_code: int, message: str, body: Any = None
    ) -> None:
        super().__init__(
            message,
            provider,
            details={"status_code": status_code, "body": body},
        )
        self.status_code = status_code
        self.body = body


def _error_message(body: Any, fallback: str) -> str:
    """Dig a human readable reason out of a supplier error body."""
    if isinstance(body, dict):
        for key in ("error", "message", "error_message", "reason", "result"):
            value = body.get(key)
            if isinstance(value, dict):
                value = value.get("message") or value.get("reason")
            if isinstance(value, str) and value:
                return value
    if isinstance(body, str) and body:
        return body[:200]
    return fallback


def error_from_response(provider: str, response: httpx.Response) -> FulfillmentError:
    """Map a non-2xx supplier response onto the taxonomy."""
    status = response.status_code
    if status == 429:
        retry_after = response.headers.get("retry-after")
        try:
            return RateLimitError(provider, float(retry_after) if retry_after else None)
        except ValueError:
            return RateLimitError(provider)

    try:
        body: Any = response.json()
    except ValueError:
        body = response.text

    message = _error_message(body, f"{provider} returned HTTP {status}")
    if status >= 500:
        return TransportError(
            message, provider, details={"status_code": status, "body": body}
        )
    return SupplierError(provider, status, message, body)


def translate_error(
    exc: BaseException, provider: str, operation: str, subject: str = ""
) -> FulfillmentError:
    """
    Convert any exception raised while talking to *provider* into the
    common taxonomy.

    *operation* names the contract method that was running; it decides how a
    generic ``SupplierError`` is narrowed.  *subject* is the product or order
    id the operation was about, used for not-found errors.
    """
    if isinstance(exc, SupplierError):
        if operation == "create_order":
            return OrderCreationError(provider, exc.message, details=exc.details)
        if operation == "get_item" and exc.status_code == 404:
            return ProductNotFoundError(provider, subject)
        return exc
    if isinstance(exc, FulfillmentError):
        if not exc.provider:
            exc.provider = provider
        return exc
    if isinstance(exc, (asyncio.TimeoutError, httpx.TimeoutException)):
        return TransportError(
            f"{operation} on {provider} timed out; supplier outcome unknown",
            provider,
            details={"operation": operation},
        )
    if isinstance(exc, httpx.HTTPStatusError):
        return translate_error(
            error_from_response(provider, exc.response), provider, operation, subject
        )
    if isinstance(exc, httpx.TransportError):
        return TransportError(
            f"{operation} on {provider} failed: {exc}",
            provider,
            details={"operation": operation, "exception": type(exc).__name__},
        )
    # a local fault in the adapter, not a network failure; do not retry it blindly
    return TransportError(
        f"{operation} on {provider} failed unexpectedly: {exc}",
        provider,
        code="ADAPTER_ERROR",
        details={"operation": operation, "exception": type(exc).__name__},
    )

"""
Rate-table collaborator (``statement_engine.rates``).

``RateProvider`` is the boundary the async orchestrator awaits once per
generation call.  ``HttpRateProvider`` is the stock implementation: it
fetches a JSON rate table from an FX endpoint over httpx.

URL forms accepted for the endpoint:

    https://fx.example/latest/{base}   -> placeholder replaced
    https://fx.example/latest?key=abc  -> &base=USD appended
    https://fx.example/latest          -> /USD appended

The response may carry the table under ``rates`` or at the root.  The
provider applies no retry or backoff policy.
"""

from __future__ import annotations

import os
from collections.abc import Mapping
from decimal import Decimal
from typing import Any, Protocol, runtime_checkable
from urllib.parse import quote

import httpx

from statement_kernel.exceptions import ConfigurationError, RateFetchError
from statement_kernel.logging_config import get_logger

from statement_engine.currency import RateTable, normalize_rate_table

logger = get_logger("engine.rates")

FX_API_URL_ENV = "FX_API_URL"


@runtime_checkable
class RateProvider(Protocol):
    """Supplies a rate table anchored to ``base``."""

    async def fetch_rates(self, base: str) -> Mapping[str, Decimal]: ...


def build_rates_url(url: str, base: str) -> str:
    """Place ``base`` into the endpoint URL."""
    if "{base}" in url:
        return url.replace("{base}", base)
    if "?" in url:
        return f"{url}&base={quote(base)}"
    return f"{url}/{quote(base)}"


def extract_rates(payload: Any, base: str) -> Mapping[str, Any]:
    """Pull the rate mapping out of a decoded response body."""
    if isinstance(payload, Mapping) and payload.get("rates"):
        payload = payload["rates"]
    if not isinstance(payload, Mapping) or not payload:
        raise RateFetchError(base, "response did not contain a rate table")
    return payload


class HttpRateProvider:
    """
    Fetches rate tables from an HTTP FX endpoint.

    Args:
        url: Endpoint URL, optionally containing ``{base}``.
        timeout: HTTP timeout in seconds.
        transport: Optional httpx transport (tests pass ``httpx.MockTransport``).

    Usage:
    ```python
    provider = HttpRateProvider("https://fx.example/latest/{base}")
    rates = await provider.fetch_rates("USD")
    await provider.aclose()
    ```
    """

    def __init__(
        self,
        url: str,
        timeout: float = 30.0,
        transport: httpx.AsyncBaseTransport | None = None,
    ):
        if not url:
            raise ConfigurationError("FX rate endpoint URL is not configured")
        self.url = url
        self.timeout = timeout
        self._transport = transport
        self._client: httpx.AsyncClient | None = None

    @classmethod
    def from_env(cls, env_var: str = FX_API_URL_ENV, **kwargs: Any) -> HttpRateProvider:
        """Build a provider from the endpoint URL held in ``env_var``."""
        url = os.environ.get(env_var)
        if not url:
            raise ConfigurationError(f"{env_var} not configured")
        return cls(url, **kwargs)

    async def _ensure_client(self) -> httpx.AsyncClient:
        if self._client is None:
            self._client = httpx.AsyncClient(timeout=self.timeout, transport=self._transport)
        return self._client

    async def aclose(self) -> None:
        """Close the underlying HTTP client."""
        if self._client is not None:
            await self._client.aclose()
            self._client = None

    async def __aenter__(self) -> HttpRateProvider:
        return self

    async def __aexit__(self, *exc: Any) -> None:
        await self.aclose()

    async def fetch_rates(self, base: str) -> RateTable:
        """
        Fetch the table for ``base``.

        Raises:
            RateFetchError: non-2xx status, transport failure, or a body
                that is not a JSON rate mapping.
            InvalidRateError: a rate in the body is not a positive number.
        """
        base = base.strip().upper()
        client = await self._ensure_client()
        url = build_rates_url(self.url, base)

        try:
            response = await client.get(url)
        except httpx.HTTPError as exc:
            logger.error(
                "rate_fetch_transport_error",
                extra={"base_currency": base, "error": str(exc)},
            )
            raise RateFetchError(base, str(exc)) from exc

        if not response.is_success:
            logger.error(
                "rate_fetch_failed",
                extra={"base_currency": base, "status_code": response.status_code},
            )
            raise RateFetchError(
                base,
                f"Failed to fetch rates ({response.status_code})",
                status_code=response.status_code,
            )

        try:
            payload = response.json()
        except ValueError as exc:
            raise RateFetchError(base, "response body is not JSON") from exc

        table = dict(normalize_rate_table(extract_rates(payload, base)))
        # The base is worth one unit of itself whether or not the API lists it
        table.setdefault(base, Decimal("1"))
        rates = normalize_rate_table(table)

        logger.info(
            "rate_table_fetched",
            extra={"base_currency": base, "currency_count": len(rates)},
        )
        return rates

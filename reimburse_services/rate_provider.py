"""
HttpRateProvider -- exchange rates from an exchangerate-api style endpoint.

Responsibility:
    Fetch ``{currency: rate}`` for one unit of a base currency with a short,
    bounded timeout.  Every failure (timeout, transport error, non-2xx
    status, malformed payload) is reported as ``RateProviderError`` so the
    exchange-rate cache can degrade uniformly.

Architecture position:
    Services -- outbound I/O boundary.  Implements the ``RateProvider``
    protocol from ``reimburse_kernel.domain.collaborators``.

Wire format:
    ``GET {base_url}/{BASE}`` returns JSON with a ``rates`` object mapping
    currency codes to numbers, e.g.
    ``{"base": "USD", "rates": {"USD": 1, "EUR": 0.92, ...}}``.
"""

from __future__ import annotations

from decimal import Decimal, InvalidOperation

import httpx

from reimburse_kernel.exceptions import RateProviderError
from reimburse_kernel.logging_config import get_logger

logger = get_logger("services.rate_provider")

DEFAULT_BASE_URL = "https://api.exchangerate-api.com/v4/latest"
DEFAULT_TIMEOUT_SECONDS = 3.0


class HttpRateProvider:
    """Rate provider backed by an HTTP JSON API.

    Args:
        base_url: Endpoint prefix; the base currency is appended as a path
            segment.
        timeout: Request timeout in seconds, applied to connect and read.
        client: Optional pre-built ``httpx.Client`` (tests pass one with a
            ``MockTransport``).  When omitted the provider owns its client.
    """

    def __init__(
        self,
        base_url: str = DEFAULT_BASE_URL,
        timeout: float = DEFAULT_TIMEOUT_SECONDS,
        client: httpx.Client | None = None,
    ):
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout
        self._owns_client = client is None
        self._client = client or httpx.Client(timeout=timeout)

    def fetch_rates(self, base_currency: str) -> dict[str, Decimal]:
        url = f"{self.base_url}/{base_currency}"
        logger.debug("rate_fetch_started", extra={"base_currency": base_currency, "url": url})

        try:
            response = self._client.get(url, timeout=self.timeout)
            response.raise_for_status()
            payload = response.json()
        except httpx.TimeoutException as e:
            raise RateProviderError(
                base_currency, f"timed out after {self.timeout}s",
            ) from e
        except httpx.HTTPStatusError as e:
            raise RateProviderError(
                base_currency, f"HTTP {e.response.status_code} from provider",
            ) from e
        except httpx.RequestError as e:
            raise RateProviderError(base_currency, f"request failed: {e}") from e
        except ValueError as e:
            raise RateProviderError(base_currency, "response is not valid JSON") from e

        return self._parse_rates(base_currency, payload)

    @staticmethod
    def _parse_rates(base_currency: str, payload: object) -> dict[str, Decimal]:
        if not isinstance(payload, dict) or not isinstance(payload.get("rates"), dict):
            raise RateProviderError(base_currency, "response has no 'rates' object")

        rates: dict[str, Decimal] = {}
        for code, value in payload["rates"].items():
            try:
                # str() first so 0.92 becomes Decimal("0.92"), not its binary expansion
                rate = Decimal(str(value))
            except (InvalidOperation, ValueError) as e:
                raise RateProviderError(
                    base_currency, f"rate for {code} is not numeric: {value!r}",
                ) from e
            if not rate.is_finite() or rate <= 0:
                raise RateProviderError(
                    base_currency, f"rate for {code} must be positive, got {value!r}",
                )
            rates[str(code).upper()] = rate

        if not rates:
            raise RateProviderError(base_currency, "response contains no rates")
        return rates

    def close(self) -> None:
        if self._owns_client:
            self._client.close()

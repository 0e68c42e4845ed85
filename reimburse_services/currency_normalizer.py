"""
CurrencyNormalizer -- convert claim amounts into a single currency.

Responsibility:
    Convert one amount, or a batch of items, into a target currency using
    the exchange-rate cache.  Conversion is best effort: a missing target
    rate yields the original amount and a warning, never an exception.
    ``convert_or_none`` reports the missing rate as None instead.

Architecture position:
    Services -- sits between the claim service (totals, dashboards,
    auto-approve thresholds) and ``ExchangeRateCache``.

Invariants enforced:
    - Identity: converting into the same currency does no cache lookup.
    - Batch cost: N items in K source currencies cost at most K cache
      lookups (one per distinct non-target currency), regardless of N.
    - Raw converted amounts are not rounded; ``total()`` rounds once to the
      target currency's minor unit.
"""

from __future__ import annotations

from collections.abc import Iterable, Mapping, Sequence
from dataclasses import dataclass
from decimal import ROUND_HALF_UP, Decimal
from typing import Any, Protocol

from reimburse_kernel.domain.currency import CurrencyRegistry
from reimburse_kernel.logging_config import get_logger
from reimburse_services.exchange_rate_cache import ExchangeRateCache

logger = get_logger("services.currency_normalizer")


class MonetaryItem(Protocol):
    """Anything with an ``amount`` and a ``currency`` (claims included)."""

    amount: Decimal
    currency: str


@dataclass(frozen=True)
class ConvertedItem:
    """One batch input paired with its amount in ``target_currency``."""

    item: Any
    converted_amount: Decimal
    target_currency: str


class CurrencyNormalizer:
    """Converts amounts through an ``ExchangeRateCache``.

    Args:
        cache: Rate source.
        timeout: Per-lookup wait passed through to the cache.
    """

    def __init__(self, cache: ExchangeRateCache, timeout: float | None = None):
        self._cache = cache
        self._timeout = timeout

    def convert(self, amount: Decimal, from_currency: str, to_currency: str) -> Decimal:
        """Convert ``amount`` from one currency to another.

        Returns ``amount`` unchanged when no rate for the target is known.

        Raises:
            InvalidCurrencyError: either code is not registered.
        """
        converted = self.convert_or_none(amount, from_currency, to_currency)
        return amount if converted is None else converted

    def convert_or_none(
        self,
        amount: Decimal,
        from_currency: str,
        to_currency: str,
    ) -> Decimal | None:
        """Like ``convert`` but returns None when no rate is available.

        Callers that compare the result against a limit in ``to_currency``
        use this so an unconverted amount is never mistaken for a converted one.
        """
        source = CurrencyRegistry.validate(from_currency)
        target = CurrencyRegistry.validate(to_currency)
        if source == target:
            return amount
        rates = self._cache.get_rates(source, timeout=self._timeout)
        rate = self._rate_for(source, target, rates)
        return None if rate is None else amount * rate

    def convert_batch(
        self,
        items: Sequence[MonetaryItem],
        target_currency: str,
    ) -> list[ConvertedItem]:
        """Convert every item into ``target_currency``, preserving order."""
        target = CurrencyRegistry.validate(target_currency)
        sources = [CurrencyRegistry.validate(item.currency) for item in items]
        distinct = sorted(set(sources) - {target})

        tables = self._cache.get_many(distinct, timeout=self._timeout) if distinct else {}
        logger.debug(
            "currency_batch_prefetched",
            extra={
                "item_count": len(items),
                "source_currencies": distinct,
                "target_currency": target,
            },
        )

        converted: list[ConvertedItem] = []
        for item, source in zip(items, sources):
            if source == target:
                value = item.amount
            else:
                value = self._apply(item.amount, source, target, tables[source])
            converted.append(ConvertedItem(item, value, target))
        return converted

    def total(self, items: Iterable[MonetaryItem], target_currency: str) -> Decimal:
        """Sum of ``items`` in ``target_currency``, rounded to its minor unit."""
        target = CurrencyRegistry.validate(target_currency)
        converted = self.convert_batch(list(items), target)
        raw = sum((c.converted_amount for c in converted), Decimal("0"))
        return raw.quantize(
            CurrencyRegistry.get_info(target).quantize_exponent,
            rounding=ROUND_HALF_UP,
        )

    @staticmethod
    def _rate_for(
        source: str,
        target: str,
        rates: Mapping[str, Decimal],
    ) -> Decimal | None:
        rate = rates.get(target)
        if rate is None:
            logger.warning(
                "exchange_rate_missing",
                extra={"from_currency": source, "to_currency": target},
            )
        return rate

    @classmethod
    def _apply(
        cls,
        amount: Decimal,
        source: str,
        target: str,
        rates: Mapping[str, Decimal],
    ) -> Decimal:
        rate = cls._rate_for(source, target, rates)
        return amount if rate is None else amount * rate

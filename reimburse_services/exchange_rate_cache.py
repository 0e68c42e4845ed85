"""
ExchangeRateCache -- single-flight, TTL-bounded exchange-rate snapshots.

Responsibility:
    Serve ``{currency: rate}`` tables per base currency.  A snapshot is
    fresh for ``ttl_seconds`` (default one hour); stale bases are refreshed
    through the injected ``RateProvider`` on the cache's worker pool.

Architecture position:
    Services -- wraps the outbound rate provider.  Consumed by
    ``CurrencyNormalizer`` and, through it, by the claim service.

Invariants enforced:
    - Single-flight: at most one provider call per base currency is in
      flight.  Concurrent callers for that base share one
      ``concurrent.futures.Future``; different bases refresh concurrently.
    - Snapshots are replaced wholesale under the lock and their rate tables
      are read-only mappings, so a reader never sees a half-updated table.
    - Waiter cancellation: a caller whose ``timeout`` expires stops waiting
      and is served stale or fallback rates.  The shared fetch keeps running
      and still lands its snapshot for everyone else.

Failure modes:
    - ``get_rates`` never raises on provider failure or after ``close()``.
      It serves the stale snapshot when one exists, otherwise the static
      fallback table, and emits a ``provider_degraded`` observability event.
    - ``InvalidCurrencyError`` for an unregistered base currency.
"""

from __future__ import annotations

import threading
import time
from collections.abc import Iterable, Mapping
from concurrent.futures import Future, ThreadPoolExecutor
from concurrent.futures import TimeoutError as FutureTimeoutError
from dataclasses import dataclass
from datetime import datetime
from decimal import Decimal
from types import MappingProxyType

from reimburse_kernel.domain.clock import Clock, SystemClock
from reimburse_kernel.domain.collaborators import RateProvider
from reimburse_kernel.domain.currency import CurrencyRegistry
from reimburse_kernel.exceptions import RateProviderError
from reimburse_kernel.logging_config import get_logger
from reimburse_services.observability import log_provider_degraded, log_rate_refresh

logger = get_logger("services.exchange_rate_cache")

DEFAULT_TTL_SECONDS = 3600

# USD-based table served when the provider is down and nothing is cached.
FALLBACK_RATES: Mapping[str, Decimal] = MappingProxyType({
    "USD": Decimal("1"),
    "EUR": Decimal("0.92"),
    "GBP": Decimal("0.79"),
    "INR": Decimal("83.12"),
    "JPY": Decimal("149.50"),
    "AUD": Decimal("1.52"),
    "CAD": Decimal("1.36"),
    "CHF": Decimal("0.88"),
    "CNY": Decimal("7.24"),
    "AED": Decimal("3.67"),
})


@dataclass(frozen=True)
class ExchangeRateSnapshot:
    """Rates for one unit of ``base_currency`` as fetched at ``fetched_at``."""

    base_currency: str
    rates: Mapping[str, Decimal]
    fetched_at: datetime


@dataclass(frozen=True)
class BaseCurrencyStatus:
    base_currency: str
    fetched_at: datetime
    age_seconds: float
    is_stale: bool
    rate_count: int


@dataclass(frozen=True)
class CacheStatus:
    """Point-in-time view of the cache for diagnostics."""

    ttl_seconds: float
    entries: tuple[BaseCurrencyStatus, ...]
    in_flight: frozenset[str]

    def entry_for(self, base_currency: str) -> BaseCurrencyStatus | None:
        for entry in self.entries:
            if entry.base_currency == base_currency:
                return entry
        return None


class ExchangeRateCache:
    """Per-base exchange-rate cache with single-flight refresh.

    Args:
        provider: Outbound rate source.
        ttl_seconds: Snapshot freshness window.
        clock: Time source for ``fetched_at`` and staleness checks.
        fallback_rates: Static table used when nothing better is available.
        fallback_base: Base currency of ``fallback_rates``.
        max_workers: Worker threads for concurrent refreshes of
            different bases.
    """

    def __init__(
        self,
        provider: RateProvider,
        *,
        ttl_seconds: float = DEFAULT_TTL_SECONDS,
        clock: Clock | None = None,
        fallback_rates: Mapping[str, Decimal] | None = None,
        fallback_base: str = "USD",
        max_workers: int = 4,
    ):
        self._provider = provider
        self._ttl_seconds = ttl_seconds
        self._clock = clock or SystemClock()
        self._fallback_rates = MappingProxyType(
            dict(fallback_rates if fallback_rates is not None else FALLBACK_RATES)
        )
        self._fallback_base = CurrencyRegistry.validate(fallback_base)
        self._executor = ThreadPoolExecutor(
            max_workers=max_workers, thread_name_prefix="rate-refresh",
        )
        self._lock = threading.Lock()
        self._snapshots: dict[str, ExchangeRateSnapshot] = {}
        self._in_flight: dict[str, Future] = {}
        self._closed = False

    @property
    def ttl_seconds(self) -> float:
        return self._ttl_seconds

    # ------------------------------------------------------------------
    # Reads
    # ------------------------------------------------------------------

    def get_rates(
        self,
        base_currency: str,
        timeout: float | None = None,
    ) -> Mapping[str, Decimal]:
        """Return the rate table for ``base_currency``.

        Args:
            base_currency: ISO 4217 code of the base.
            timeout: Seconds to wait for an in-flight refresh.  None waits
                for the refresh to finish.

        Raises:
            InvalidCurrencyError: ``base_currency`` is not registered.
        """
        base = CurrencyRegistry.validate(base_currency)
        fresh, future = self._acquire(base)
        if fresh is not None:
            return fresh
        return self._await(base, future, timeout)

    def get_many(
        self,
        base_currencies: Iterable[str],
        timeout: float | None = None,
    ) -> dict[str, Mapping[str, Decimal]]:
        """Return rate tables for several bases.

        Every stale base is scheduled before any result is awaited, so the
        refreshes overlap.
        """
        bases = [CurrencyRegistry.validate(b) for b in base_currencies]
        pending: dict[str, Future] = {}
        tables: dict[str, Mapping[str, Decimal]] = {}

        for base in dict.fromkeys(bases):
            fresh, future = self._acquire(base)
            if fresh is not None:
                tables[base] = fresh
            else:
                pending[base] = future

        for base, future in pending.items():
            tables[base] = self._await(base, future, timeout)

        return tables

    def status(self) -> CacheStatus:
        """Snapshot ages and in-flight bases.  No side effects."""
        now = self._clock.now()
        with self._lock:
            snapshots = list(self._snapshots.values())
            in_flight = frozenset(self._in_flight)

        entries = []
        for snap in sorted(snapshots, key=lambda s: s.base_currency):
            age = (now - snap.fetched_at).total_seconds()
            entries.append(BaseCurrencyStatus(
                base_currency=snap.base_currency,
                fetched_at=snap.fetched_at,
                age_seconds=age,
                is_stale=age >= self._ttl_seconds,
                rate_count=len(snap.rates),
            ))

        return CacheStatus(
            ttl_seconds=self._ttl_seconds,
            entries=tuple(entries),
            in_flight=in_flight,
        )

    # ------------------------------------------------------------------
    # Maintenance
    # ------------------------------------------------------------------

    def invalidate(self, base_currency: str | None = None) -> None:
        """Drop one snapshot, or every snapshot when no base is given.

        In-flight refreshes are not cancelled; they store their result
        when they finish.
        """
        with self._lock:
            if base_currency is None:
                self._snapshots.clear()
            else:
                self._snapshots.pop(CurrencyRegistry.validate(base_currency), None)
        logger.info(
            "exchange_rate_cache_invalidated",
            extra={"base_currency": base_currency or "*"},
        )

    def close(self, wait: bool = True) -> None:
        """Shut the worker pool down.

        Later reads still answer: fresh snapshots as usual, otherwise stale
        or fallback rates without contacting the provider.
        """
        with self._lock:
            self._closed = True
        self._executor.shutdown(wait=wait)

    def __enter__(self) -> ExchangeRateCache:
        return self

    def __exit__(self, *exc) -> None:
        self.close()

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------

    def _is_fresh(self, snapshot: ExchangeRateSnapshot) -> bool:
        age = (self._clock.now() - snapshot.fetched_at).total_seconds()
        return age < self._ttl_seconds

    def _acquire(
        self, base: str,
    ) -> tuple[Mapping[str, Decimal] | None, Future | None]:
        """Return fresh rates, or the (possibly shared) refresh future."""
        with self._lock:
            snapshot = self._snapshots.get(base)
            if snapshot is not None and self._is_fresh(snapshot):
                logger.debug("exchange_rate_cache_hit", extra={"base_currency": base})
                return snapshot.rates, None

            if not self._closed:
                future = self._in_flight.get(base)
                if future is None:
                    future = self._executor.submit(self._refresh, base)
                    self._in_flight[base] = future
                else:
                    logger.debug(
                        "exchange_rate_refresh_joined", extra={"base_currency": base},
                    )
                return None, future

        return self._degraded(base, reason="cache closed"), None

    def _await(
        self,
        base: str,
        future: Future,
        timeout: float | None,
    ) -> Mapping[str, Decimal]:
        try:
            return future.result(timeout=timeout)
        except FutureTimeoutError:
            logger.info(
                "exchange_rate_wait_abandoned",
                extra={"base_currency": base, "timeout_seconds": timeout},
            )
            return self._degraded(base, reason=f"caller gave up after {timeout}s")

    def _refresh(self, base: str) -> Mapping[str, Decimal]:
        """Worker body: fetch, store, and never raise."""
        t0 = time.monotonic()
        try:
            try:
                fetched = self._provider.fetch_rates(base)
            except RateProviderError as exc:
                return self._degraded(base, reason=exc.reason, exc_code=exc.code)
            except Exception as exc:
                logger.exception(
                    "exchange_rate_provider_error", extra={"base_currency": base},
                )
                return self._degraded(
                    base, reason=f"{type(exc).__name__}: {exc}",
                )

            rates = dict(fetched)
            rates.setdefault(base, Decimal("1"))
            snapshot = ExchangeRateSnapshot(
                base_currency=base,
                rates=MappingProxyType(rates),
                fetched_at=self._clock.now(),
            )
            with self._lock:
                self._snapshots[base] = snapshot

            log_rate_refresh(
                base_currency=base,
                outcome="fetched",
                rate_count=len(rates),
                duration_ms=(time.monotonic() - t0) * 1000,
            )
            return snapshot.rates
        finally:
            with self._lock:
                self._in_flight.pop(base, None)

    def _degraded(
        self,
        base: str,
        *,
        reason: str,
        exc_code: str | None = None,
    ) -> Mapping[str, Decimal]:
        """Stale snapshot if one exists, else the fallback table."""
        with self._lock:
            stale = self._snapshots.get(base)

        if stale is not None:
            log_provider_degraded(
                base_currency=base,
                served="stale",
                reason=reason,
                exc_code=exc_code,
                snapshot_age_seconds=(self._clock.now() - stale.fetched_at).total_seconds(),
            )
            return stale.rates

        log_provider_degraded(
            base_currency=base,
            served="fallback",
            reason=reason,
            exc_code=exc_code,
        )
        return self.fallback_rates_for(base)

    def fallback_rates_for(self, base: str) -> Mapping[str, Decimal]:
        """Static fallback table re-expressed for ``base``.

        Bases missing from the table get an identity-only table, so
        conversions out of them return the original amount.
        """
        base = CurrencyRegistry.validate(base)
        table = self._fallback_rates
        if base == self._fallback_base:
            return table
        pivot = table.get(base)
        if pivot is None:
            return MappingProxyType({base: Decimal("1")})
        cross = {code: rate / pivot for code, rate in table.items()}
        cross[base] = Decimal("1")
        return MappingProxyType(cross)

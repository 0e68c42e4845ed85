"""
Pytest fixtures for the reimbursement core test suite.

Provides:
- File-backed SQLite engines per test (shared across threads for race tests)
- A controllable fake rate provider and a cache/normalizer built on it
- Claim service wiring with injectable policies and identities
- Captured structured logs
"""

import json
import logging
import threading
import time
from decimal import Decimal
from io import StringIO
from uuid import UUID, uuid4

import pytest
from sqlalchemy.orm import sessionmaker

from reimburse_kernel.db.engine import build_engine, create_tables
from reimburse_kernel.domain.clock import DeterministicClock
from reimburse_kernel.exceptions import RateProviderError
from reimburse_kernel.logging_config import (
    LogContext,
    StructuredFormatter,
    configure_logging,
    reset_logging,
)
from reimburse_kernel.services.claim_repository import SqlClaimRepository
from reimburse_services.claim_service import ClaimService
from reimburse_services.currency_normalizer import CurrencyNormalizer
from reimburse_services.directory import InMemoryPolicyStore, StaticIdentityProvider
from reimburse_services.exchange_rate_cache import ExchangeRateCache

# USD-based table chosen so cross rates are exact decimals.
USD_TABLE = {
    "USD": Decimal("1"),
    "EUR": Decimal("0.5"),
    "GBP": Decimal("0.25"),
    "INR": Decimal("80"),
    "JPY": Decimal("100"),
}


def pytest_configure(config):
    """Register custom markers."""
    config.addinivalue_line(
        "markers", "slow_locks: mark test as potentially waiting for DB locks"
    )


# =============================================================================
# Logging fixtures
# =============================================================================


@pytest.fixture(autouse=True, scope="session")
def _configure_test_logging():
    """Configure structured logging for the test suite."""
    reset_logging()
    configure_logging(level=logging.DEBUG)
    yield
    reset_logging()


@pytest.fixture(autouse=True)
def _clear_log_context():
    """Clear LogContext between tests to prevent cross-test contamination."""
    LogContext.clear()
    yield
    LogContext.clear()


@pytest.fixture
def captured_logs():
    """
    Capture reimburse logs as parsed JSON dicts.

    Usage::

        def test_something(captured_logs, claim_service):
            claim_service.submit(...)
            logs = captured_logs()
            assert any(r["message"] == "claim_submitted" for r in logs)
    """
    stream = StringIO()
    handler = logging.StreamHandler(stream)
    handler.setFormatter(StructuredFormatter())
    root = logging.getLogger("reimburse")
    previous_level = root.level
    root.setLevel(logging.DEBUG)
    root.addHandler(handler)

    def _get_records() -> list[dict]:
        lines = stream.getvalue().strip().split("\n")
        return [json.loads(line) for line in lines if line]

    yield _get_records

    root.removeHandler(handler)
    root.setLevel(previous_level)


# =============================================================================
# Clock
# =============================================================================


@pytest.fixture
def deterministic_clock():
    """Provide a deterministic clock for testing."""
    return DeterministicClock()


# =============================================================================
# Rates
# =============================================================================


class FakeRateProvider:
    """In-process rate provider with call counting and failure switches.

    ``gate``: when set, every fetch blocks until the event is set, which
    lets tests pile callers onto one in-flight refresh.
    """

    def __init__(self, table: dict[str, Decimal] | None = None, delay: float = 0.0):
        self.table = dict(table or USD_TABLE)
        self.delay = delay
        self.fail = False
        self.gate: threading.Event | None = None
        self.calls: list[str] = []
        self._lock = threading.Lock()

    def fetch_rates(self, base_currency: str) -> dict[str, Decimal]:
        with self._lock:
            self.calls.append(base_currency)
        if self.gate is not None:
            self.gate.wait(timeout=10)
        if self.delay:
            time.sleep(self.delay)
        if self.fail:
            raise RateProviderError(base_currency, "provider down")
        pivot = self.table.get(base_currency)
        if pivot is None:
            raise RateProviderError(base_currency, "unsupported base")
        return {code: rate / pivot for code, rate in self.table.items()}

    def calls_for(self, base_currency: str) -> int:
        with self._lock:
            return self.calls.count(base_currency)


@pytest.fixture
def rate_provider():
    return FakeRateProvider()


@pytest.fixture
def rate_cache(rate_provider, deterministic_clock):
    cache = ExchangeRateCache(rate_provider, clock=deterministic_clock, max_workers=4)
    yield cache
    cache.close(wait=False)


@pytest.fixture
def normalizer(rate_cache):
    return CurrencyNormalizer(rate_cache)


# =============================================================================
# Database
# =============================================================================


@pytest.fixture
def engine(tmp_path):
    """File-backed SQLite engine so several threads see the same database."""
    eng = build_engine(f"sqlite:///{tmp_path / 'claims.db'}", sqlite_busy_timeout=10.0)
    create_tables(eng)
    yield eng
    eng.dispose()


@pytest.fixture
def session_factory(engine):
    return sessionmaker(bind=engine, expire_on_commit=False)


@pytest.fixture
def repository(session_factory):
    return SqlClaimRepository(session_factory)


# =============================================================================
# Directory and service wiring
# =============================================================================


@pytest.fixture
def company_id() -> UUID:
    return uuid4()


@pytest.fixture
def owner_id() -> UUID:
    return uuid4()


@pytest.fixture
def admin_id() -> UUID:
    return uuid4()


@pytest.fixture
def policy_store():
    return InMemoryPolicyStore()


@pytest.fixture
def identity(company_id, admin_id):
    """Company with one admin and no default approver."""
    return StaticIdentityProvider(admins={company_id: {admin_id}})


@pytest.fixture
def make_service(repository, policy_store, identity, normalizer, deterministic_clock):
    """Factory for ClaimService with overridable collaborators."""

    def _make(**overrides) -> ClaimService:
        kwargs = {
            "repository": repository,
            "policies": policy_store,
            "identity": identity,
            "normalizer": normalizer,
            "clock": deterministic_clock,
            "reporting_currency": "USD",
        }
        kwargs.update(overrides)
        return ClaimService(**kwargs)

    return _make


@pytest.fixture
def claim_service(make_service):
    return make_service()


@pytest.fixture
def new_claim(claim_service, owner_id, company_id):
    """Factory creating a DRAFT claim for the default owner."""

    def _create(amount="100.00", currency="USD", owner=None, **kwargs):
        return claim_service.create_claim(
            owner or owner_id, company_id, Decimal(amount), currency, **kwargs,
        )

    return _create

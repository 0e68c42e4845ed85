"""
ReimburseConfig schema.

Frozen dataclasses that the loader fills from YAML.  The runtime reads
only these types; nothing outside ``reimburse_config`` touches YAML.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from decimal import Decimal
from uuid import UUID

from reimburse_kernel.domain.policy import ApprovalPolicy

# ---------------------------------------------------------------------------
# Exchange rates
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class RateCacheSettings:
    """Exchange-rate cache and provider settings."""

    ttl_seconds: float = 3600
    fetch_timeout_seconds: float = 3.0
    wait_timeout_seconds: float | None = None
    provider_url: str = "https://api.exchangerate-api.com/v4/latest"
    fallback_base: str = "USD"
    fallback_rates: dict[str, Decimal] = field(default_factory=dict)
    max_workers: int = 4


# ---------------------------------------------------------------------------
# Persistence
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class DatabaseSettings:
    url: str = "sqlite:///reimburse.db"
    echo: bool = False
    sqlite_busy_timeout: float = 5.0


# ---------------------------------------------------------------------------
# Directory (identities and policies)
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class CompanyDirectory:
    """Admins and fallback approver for one company."""

    company_id: UUID
    reporting_currency: str = "USD"
    admins: tuple[UUID, ...] = ()
    default_approver: UUID | None = None


@dataclass(frozen=True)
class DirectorySettings:
    companies: tuple[CompanyDirectory, ...] = ()
    policies: tuple[ApprovalPolicy, ...] = ()


# ---------------------------------------------------------------------------
# Root
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class ReimburseConfig:
    """Complete runtime configuration."""

    rate_cache: RateCacheSettings = field(default_factory=RateCacheSettings)
    database: DatabaseSettings = field(default_factory=DatabaseSettings)
    directory: DirectorySettings = field(default_factory=DirectorySettings)
    log_level: str = "INFO"
    checksum: str = ""

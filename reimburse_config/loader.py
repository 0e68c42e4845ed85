"""
Configuration Loader (``reimburse_config.loader``).

Responsibility
--------------
Loads YAML files and parses them into the frozen dataclasses of
``reimburse_config.schema``.  The single public entry point for runtime
configuration is ``reimburse_config.get_active_config()``; this module is
its internal tooling.

Invariants enforced
-------------------
* All parse errors raise ``ValueError`` or ``KeyError`` with descriptive
  messages; required fields have no silent defaults.
* Policies are checked with ``validate_policy`` as they are parsed, so a
  malformed policy fails at load time (``InvalidPolicyError``).
* ``compute_checksum`` produces a deterministic SHA-256 hash of the
  merged source data for change detection.

Failure modes
-------------
* Missing YAML file  -> ``FileNotFoundError`` propagates.
* Malformed YAML  -> ``yaml.YAMLError`` propagates.
* Missing required keys  -> ``KeyError`` propagates.
* Bad UUID / decimal / currency values  -> ``ValueError``.
"""

from __future__ import annotations

import hashlib
import json
from decimal import Decimal, InvalidOperation
from pathlib import Path
from typing import Any
from uuid import UUID

import yaml

from reimburse_config.schema import (
    CompanyDirectory,
    DatabaseSettings,
    DirectorySettings,
    RateCacheSettings,
    ReimburseConfig,
)
from reimburse_kernel.domain.currency import CurrencyRegistry
from reimburse_kernel.domain.policy import ApprovalPolicy, PolicyApprover, validate_policy


def load_yaml_file(path: Path) -> dict[str, Any]:
    """
    Load a single YAML file and return its contents as a dict.

    Raises:
        FileNotFoundError: if the file does not exist.
        yaml.YAMLError: if the file contains invalid YAML.
        ValueError: if the top level is not a mapping.
    """
    with open(path) as f:
        data = yaml.safe_load(f) or {}
    if not isinstance(data, dict):
        raise ValueError(f"{path}: top-level YAML must be a mapping, got {type(data).__name__}")
    return data


def merge_dicts(base: dict[str, Any], override: dict[str, Any]) -> dict[str, Any]:
    """Recursively overlay ``override`` on ``base``.  Lists are replaced, not merged."""
    merged = dict(base)
    for key, value in override.items():
        if isinstance(value, dict) and isinstance(merged.get(key), dict):
            merged[key] = merge_dicts(merged[key], value)
        else:
            merged[key] = value
    return merged


def parse_uuid(value: Any, field_name: str) -> UUID:
    try:
        return value if isinstance(value, UUID) else UUID(str(value))
    except ValueError as exc:
        raise ValueError(f"{field_name}: not a UUID: {value!r}") from exc


def parse_decimal(value: Any, field_name: str) -> Decimal:
    # str() first: YAML floats must not carry their binary expansion
    try:
        parsed = Decimal(str(value))
    except InvalidOperation as exc:
        raise ValueError(f"{field_name}: not a decimal: {value!r}") from exc
    if not parsed.is_finite():
        raise ValueError(f"{field_name}: must be finite, got {value!r}")
    return parsed


def parse_currency(value: Any, field_name: str) -> str:
    if not CurrencyRegistry.is_valid(value):
        raise ValueError(f"{field_name}: unknown currency {value!r}")
    return CurrencyRegistry.validate(value)


def parse_rate_cache(data: dict[str, Any]) -> RateCacheSettings:
    """Parse ``rate_cache``; every key is optional."""
    defaults = RateCacheSettings()
    fallback = {
        parse_currency(code, "rate_cache.fallback_rates"): parse_decimal(
            rate, f"rate_cache.fallback_rates.{code}",
        )
        for code, rate in (data.get("fallback_rates") or {}).items()
    }
    wait = data.get("wait_timeout_seconds", defaults.wait_timeout_seconds)
    settings = RateCacheSettings(
        ttl_seconds=float(data.get("ttl_seconds", defaults.ttl_seconds)),
        fetch_timeout_seconds=float(
            data.get("fetch_timeout_seconds", defaults.fetch_timeout_seconds)
        ),
        wait_timeout_seconds=float(wait) if wait is not None else None,
        provider_url=str(data.get("provider_url", defaults.provider_url)),
        fallback_base=parse_currency(
            data.get("fallback_base", defaults.fallback_base), "rate_cache.fallback_base",
        ),
        fallback_rates=fallback,
        max_workers=int(data.get("max_workers", defaults.max_workers)),
    )
    if settings.ttl_seconds <= 0:
        raise ValueError(f"rate_cache.ttl_seconds must be positive, got {settings.ttl_seconds}")
    if settings.fetch_timeout_seconds <= 0:
        raise ValueError("rate_cache.fetch_timeout_seconds must be positive")
    if settings.max_workers < 1:
        raise ValueError("rate_cache.max_workers must be at least 1")
    return settings


def parse_database(data: dict[str, Any]) -> DatabaseSettings:
    defaults = DatabaseSettings()
    return DatabaseSettings(
        url=str(data.get("url", defaults.url)),
        echo=bool(data.get("echo", defaults.echo)),
        sqlite_busy_timeout=float(
            data.get("sqlite_busy_timeout", defaults.sqlite_busy_timeout)
        ),
    )


def parse_policy(data: dict[str, Any]) -> ApprovalPolicy:
    """
    Parse and validate an ``ApprovalPolicy``.

    Approvers without an explicit ``sequence`` take their 1-based list
    position.

    Raises:
        KeyError: if ``subject_id`` or an approver's ``user_id`` is missing.
        ValueError: on malformed ids or numbers.
        InvalidPolicyError: if the parsed policy violates policy invariants.
    """
    subject_id = parse_uuid(data["subject_id"], "policy.subject_id")
    approvers = tuple(
        PolicyApprover(
            user_id=parse_uuid(a["user_id"], "policy.approvers.user_id"),
            sequence=int(a.get("sequence", index)),
            is_required=bool(a.get("is_required", False)),
        )
        for index, a in enumerate(data.get("approvers") or [], start=1)
    )
    manager = data.get("manager_id")
    company = data.get("company_id")
    threshold = data.get("auto_approve_below")
    policy_currency = data.get("policy_currency")

    policy = ApprovalPolicy(
        subject_id=subject_id,
        approvers=approvers,
        manager_id=parse_uuid(manager, "policy.manager_id") if manager else None,
        manager_is_approver=bool(data.get("manager_is_approver", False)),
        is_sequential=bool(data.get("is_sequential", False)),
        min_approval_percentage=parse_decimal(
            data.get("min_approval_percentage", 50), "policy.min_approval_percentage",
        ),
        description=str(data.get("description", "")),
        company_id=parse_uuid(company, "policy.company_id") if company else None,
        auto_approve_below=(
            parse_decimal(threshold, "policy.auto_approve_below")
            if threshold is not None else None
        ),
        policy_currency=(
            parse_currency(policy_currency, "policy.policy_currency")
            if policy_currency is not None else None
        ),
    )
    return validate_policy(policy)


def parse_company(data: dict[str, Any]) -> CompanyDirectory:
    default_approver = data.get("default_approver")
    return CompanyDirectory(
        company_id=parse_uuid(data["company_id"], "company.company_id"),
        reporting_currency=parse_currency(
            data.get("reporting_currency", "USD"), "company.reporting_currency",
        ),
        admins=tuple(
            parse_uuid(a, "company.admins") for a in data.get("admins") or []
        ),
        default_approver=(
            parse_uuid(default_approver, "company.default_approver")
            if default_approver else None
        ),
    )


def parse_directory(data: dict[str, Any]) -> DirectorySettings:
    return DirectorySettings(
        companies=tuple(parse_company(c) for c in data.get("companies") or []),
        policies=tuple(parse_policy(p) for p in data.get("policies") or []),
    )


def parse_config(data: dict[str, Any]) -> ReimburseConfig:
    """Parse a merged configuration mapping into ``ReimburseConfig``."""
    return ReimburseConfig(
        rate_cache=parse_rate_cache(data.get("rate_cache") or {}),
        database=parse_database(data.get("database") or {}),
        directory=parse_directory(data.get("directory") or {}),
        log_level=str(data.get("log_level", "INFO")).upper(),
        checksum=compute_checksum(data),
    )


def compute_checksum(data: dict[str, Any]) -> str:
    """
    Compute SHA-256 checksum of canonical JSON serialization.

    Identical ``data`` always produces identical checksums.
    """
    canonical = json.dumps(data, sort_keys=True, default=str)
    return hashlib.sha256(canonical.encode()).hexdigest()

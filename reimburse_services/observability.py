"""
Observability hooks for the exchange-rate cache and the approval workflow.

Emits structured log events for dashboards and alerting:
- Rate refreshes: rate_refresh (outcome, duration, rate count).
- Provider degradation: provider_degraded (serving stale or fallback rates).
- Stuck claims: policy_stuck (SUBMITTED with nobody left to ask).

All events use a consistent ``observability_event`` field and stable extra
fields so log aggregators can parse and build metrics.

Usage:
    from reimburse_services.observability import (
        log_rate_refresh,
        log_provider_degraded,
        log_policy_stuck,
    )
    log_rate_refresh(base_currency="USD", outcome="fetched", rate_count=160)
    log_provider_degraded(base_currency="USD", served="stale", reason="timeout")
    log_policy_stuck(claim_id=str(claim.claim_id), subject_id=str(claim.owner_id))
"""

from __future__ import annotations

from typing import Any

from reimburse_kernel.logging_config import get_logger

logger = get_logger("services.observability")

EVENT_RATE_REFRESH = "rate_refresh"
EVENT_PROVIDER_DEGRADED = "provider_degraded"
EVENT_POLICY_STUCK = "policy_stuck"


def log_rate_refresh(
    *,
    base_currency: str,
    outcome: str,
    rate_count: int | None = None,
    duration_ms: float | None = None,
    **extra: Any,
) -> None:
    """Log the end of one provider refresh for ``base_currency``.

    ``outcome`` is "fetched" on success, "stale" or "fallback" on failure.
    """
    payload: dict[str, Any] = {
        "observability_event": EVENT_RATE_REFRESH,
        "base_currency": base_currency,
        "outcome": outcome,
        **extra,
    }
    if rate_count is not None:
        payload["rate_count"] = rate_count
    if duration_ms is not None:
        payload["duration_ms"] = round(duration_ms, 2)
    logger.info("exchange_rate_refresh", extra=payload)


def log_provider_degraded(
    *,
    base_currency: str,
    served: str,
    reason: str,
    exc_code: str | None = None,
    snapshot_age_seconds: float | None = None,
    **extra: Any,
) -> None:
    """Log when callers are served stale or fallback rates."""
    payload: dict[str, Any] = {
        "observability_event": EVENT_PROVIDER_DEGRADED,
        "base_currency": base_currency,
        "served": served,
        "reason": reason,
        **extra,
    }
    if exc_code is not None:
        payload["exc_code"] = exc_code
    if snapshot_age_seconds is not None:
        payload["snapshot_age_seconds"] = round(snapshot_age_seconds, 1)
    logger.warning("exchange_rate_provider_degraded", extra=payload)


def log_policy_stuck(
    *,
    claim_id: str,
    subject_id: str,
    current_approver_id: str | None = None,
    reason: str | None = None,
    **extra: Any,
) -> None:
    """Log a claim that stays SUBMITTED because its policy cannot progress.

    Operators repair the policy; the claim keeps its current approver.
    """
    payload: dict[str, Any] = {
        "observability_event": EVENT_POLICY_STUCK,
        "claim_id": claim_id,
        "subject_id": subject_id,
        **extra,
    }
    if current_approver_id is not None:
        payload["current_approver_id"] = current_approver_id
    if reason is not None:
        payload["reason"] = reason
    logger.warning("approval_policy_stuck", extra=payload)

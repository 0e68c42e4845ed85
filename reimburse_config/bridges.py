"""
Config -> Runtime Bridges.

Functions that turn a ``ReimburseConfig`` into the collaborators the claim
service consumes.  These live in reimburse_config (the producer) because
the kernel must NEVER import reimburse_config.

Usage:
    from reimburse_config.bridges import build_policy_store, build_rate_cache

    config = get_active_config()
    policies = build_policy_store(config)
    cache = build_rate_cache(config)
"""

from __future__ import annotations

from reimburse_config.schema import ReimburseConfig
from reimburse_kernel.domain.clock import Clock
from reimburse_kernel.domain.collaborators import RateProvider
from reimburse_services.directory import InMemoryPolicyStore, StaticIdentityProvider
from reimburse_services.exchange_rate_cache import ExchangeRateCache
from reimburse_services.rate_provider import HttpRateProvider


def build_policy_store(config: ReimburseConfig) -> InMemoryPolicyStore:
    """Policy store holding every configured policy."""
    return InMemoryPolicyStore(config.directory.policies)


def build_identity_provider(config: ReimburseConfig) -> StaticIdentityProvider:
    """Identity provider with the configured admins and default approvers."""
    companies = config.directory.companies
    return StaticIdentityProvider(
        admins={c.company_id: c.admins for c in companies},
        default_approvers={
            c.company_id: c.default_approver
            for c in companies
            if c.default_approver is not None
        },
    )


def build_rate_provider(config: ReimburseConfig) -> HttpRateProvider:
    settings = config.rate_cache
    return HttpRateProvider(
        base_url=settings.provider_url,
        timeout=settings.fetch_timeout_seconds,
    )


def build_rate_cache(
    config: ReimburseConfig,
    provider: RateProvider | None = None,
    clock: Clock | None = None,
) -> ExchangeRateCache:
    """Exchange-rate cache from ``config.rate_cache``.

    ``provider`` defaults to an ``HttpRateProvider`` built from the same
    settings.  An empty configured fallback table keeps the built-in one.
    """
    settings = config.rate_cache
    return ExchangeRateCache(
        provider or build_rate_provider(config),
        ttl_seconds=settings.ttl_seconds,
        clock=clock,
        fallback_rates=settings.fallback_rates or None,
        fallback_base=settings.fallback_base,
        max_workers=settings.max_workers,
    )

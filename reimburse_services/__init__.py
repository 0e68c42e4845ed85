"""
Services around the approval core: the claim state machine, exchange rates, currency
normalization, directory collaborators and observability hooks.
"""

from reimburse_services.claim_service import ClaimDiagnosis, ClaimService, build_claim_service
from reimburse_services.currency_normalizer import ConvertedItem, CurrencyNormalizer
from reimburse_services.directory import InMemoryPolicyStore, StaticIdentityProvider
from reimburse_services.exchange_rate_cache import (
    FALLBACK_RATES,
    BaseCurrencyStatus,
    CacheStatus,
    ExchangeRateCache,
    ExchangeRateSnapshot,
)
from reimburse_services.rate_provider import HttpRateProvider

__all__ = [
    "FALLBACK_RATES",
    "BaseCurrencyStatus",
    "CacheStatus",
    "ClaimDiagnosis",
    "ClaimService",
    "ConvertedItem",
    "CurrencyNormalizer",
    "ExchangeRateCache",
    "ExchangeRateSnapshot",
    "HttpRateProvider",
    "InMemoryPolicyStore",
    "StaticIdentityProvider",
    "build_claim_service",
]

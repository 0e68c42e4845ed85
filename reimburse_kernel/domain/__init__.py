"""
Pure domain layer.

Immutable value objects and collaborator protocols with NO dependencies on:
- ORM (SQLAlchemy)
- Database
- HTTP
- Wall-clock time (see ``clock.py`` for the injectable Clock)
"""

from reimburse_kernel.domain.claim import (
    CLAIM_TRANSITIONS,
    TERMINAL_CLAIM_STATUSES,
    ApprovalAction,
    ApprovalEvent,
    ApprovalStats,
    CategoryTotal,
    Claim,
    ClaimAnalytics,
    ClaimListing,
    ClaimStatus,
    MonthlyTotal,
    SpenderTotal,
    StatusTotals,
    TransitionResult,
)
from reimburse_kernel.domain.clock import Clock, DeterministicClock, SystemClock
from reimburse_kernel.domain.collaborators import (
    ClaimRepository,
    IdentityProvider,
    PolicyStore,
    RateProvider,
)
from reimburse_kernel.domain.currency import CurrencyInfo, CurrencyRegistry
from reimburse_kernel.domain.policy import (
    ApprovalPolicy,
    PolicyApprover,
    validate_policy,
)

__all__ = [
    "CLAIM_TRANSITIONS",
    "TERMINAL_CLAIM_STATUSES",
    "ApprovalAction",
    "ApprovalEvent",
    "ApprovalPolicy",
    "ApprovalStats",
    "CategoryTotal",
    "Claim",
    "ClaimAnalytics",
    "ClaimListing",
    "ClaimRepository",
    "ClaimStatus",
    "Clock",
    "CurrencyInfo",
    "CurrencyRegistry",
    "DeterministicClock",
    "IdentityProvider",
    "MonthlyTotal",
    "PolicyApprover",
    "PolicyStore",
    "RateProvider",
    "SpenderTotal",
    "StatusTotals",
    "SystemClock",
    "TransitionResult",
    "validate_policy",
]

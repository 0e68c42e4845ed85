"""
Claim domain types (``reimburse_kernel.domain.claim``).

Responsibility
--------------
Pure value objects for expense claims: the lifecycle state machine table,
the append-only approval history record, and the frozen claim snapshot
that the repository returns on every read.

Architecture position
---------------------
**Kernel domain layer** -- pure value objects.  ZERO I/O.  No imports
from ``db/``, ``models/``, ``services/`` or outer layers.

Invariants enforced
-------------------
* CL-1: Lifecycle -- ``CLAIM_TRANSITIONS`` defines the only legal status
  changes.  APPROVED and REJECTED are terminal.
* CL-2: ``current_approver_id`` is non-null only while SUBMITTED
  (checked in ``Claim.__post_init__``).
* CL-3: ``history`` is append-only and non-decreasing in time
  (``Claim.with_event`` refuses an event older than the last one).
"""

from __future__ import annotations

from dataclasses import dataclass, field, replace
from datetime import date, datetime
from decimal import Decimal
from enum import Enum
from uuid import UUID


# =========================================================================
# Claim Status Lifecycle (CL-1)
# =========================================================================


class ClaimStatus(str, Enum):
    """Claim lifecycle states."""

    DRAFT = "draft"
    SUBMITTED = "submitted"
    APPROVED = "approved"
    REJECTED = "rejected"


CLAIM_TRANSITIONS: dict[ClaimStatus, frozenset[ClaimStatus]] = {
    ClaimStatus.DRAFT: frozenset({
        ClaimStatus.SUBMITTED,
        # zero-approver policy or no fallback approver: finalized on submit
        ClaimStatus.APPROVED,
    }),
    ClaimStatus.SUBMITTED: frozenset({
        ClaimStatus.SUBMITTED,
        ClaimStatus.APPROVED,
        ClaimStatus.REJECTED,
    }),
    ClaimStatus.APPROVED: frozenset(),
    ClaimStatus.REJECTED: frozenset(),
}

TERMINAL_CLAIM_STATUSES: frozenset[ClaimStatus] = frozenset({
    ClaimStatus.APPROVED,
    ClaimStatus.REJECTED,
})


class ApprovalAction(str, Enum):
    """Actions recorded in a claim's approval history."""

    SUBMITTED = "submitted"
    APPROVED = "approved"
    REJECTED = "rejected"


# =========================================================================
# History Record
# =========================================================================


@dataclass(frozen=True)
class ApprovalEvent:
    """One immutable entry in a claim's approval history."""

    actor_id: UUID
    action: ApprovalAction
    timestamp: datetime
    comments: str = ""


# =========================================================================
# Claim Snapshot
# =========================================================================


@dataclass(frozen=True)
class Claim:
    """Immutable snapshot of an expense claim.

    ``version`` is the optimistic-concurrency token: a write carrying a
    version other than the stored one is rejected with ``ConflictError``.
    """

    claim_id: UUID
    owner_id: UUID
    company_id: UUID
    amount: Decimal
    currency: str
    status: ClaimStatus = ClaimStatus.DRAFT
    current_approver_id: UUID | None = None
    history: tuple[ApprovalEvent, ...] = ()
    description: str = ""
    category: str = "Other"
    expense_date: date | None = None
    paid_by: str = "employee"
    remarks: str = ""
    created_at: datetime | None = None
    submitted_at: datetime | None = None
    decided_at: datetime | None = None
    rejection_reason: str | None = None
    version: int = 0

    def __post_init__(self) -> None:
        # CL-2
        if self.current_approver_id is not None and self.status != ClaimStatus.SUBMITTED:
            raise ValueError(
                f"Claim {self.claim_id}: current_approver_id must be empty "
                f"while status is {self.status.value}"
            )

    @property
    def is_terminal(self) -> bool:
        return self.status in TERMINAL_CLAIM_STATUSES

    def with_event(self, event: ApprovalEvent, **changes) -> Claim:
        """Return a copy with ``event`` appended and ``changes`` applied (CL-3)."""
        if self.history and event.timestamp < self.history[-1].timestamp:
            raise ValueError(
                f"Claim {self.claim_id}: history event at {event.timestamp} "
                f"precedes last event at {self.history[-1].timestamp}"
            )
        return replace(self, history=self.history + (event,), **changes)

    def approvers_who_approved(self) -> frozenset[UUID]:
        """Actors with at least one APPROVED event."""
        return frozenset(
            e.actor_id for e in self.history if e.action == ApprovalAction.APPROVED
        )


# =========================================================================
# Transition Result
# =========================================================================


@dataclass(frozen=True)
class TransitionResult:
    """Outcome of a state-machine operation.

    ``policy_stuck`` is set when the claim stays SUBMITTED because the
    engine found no one left to ask; operators must repair the policy.
    """

    claim: Claim
    previous_status: ClaimStatus
    reason: str = ""
    policy_stuck: bool = False

    @property
    def changed_status(self) -> bool:
        return self.claim.status != self.previous_status


@dataclass(frozen=True)
class StatusTotals:
    """Claim amounts per status, normalized into one currency."""

    currency: str
    totals: dict[ClaimStatus, Decimal] = field(default_factory=dict)

    def total_for(self, status: ClaimStatus) -> Decimal:
        return self.totals.get(status, Decimal("0"))


@dataclass(frozen=True)
class ClaimListing:
    """Claims visible to an actor plus their normalized per-status totals."""

    claims: tuple[Claim, ...]
    totals: StatusTotals


@dataclass(frozen=True)
class ApprovalStats:
    """Approver dashboard figures."""

    approver_id: UUID
    currency: str
    pending_count: int
    pending_amount: Decimal
    approved_today: int
    rejected_today: int


@dataclass(frozen=True)
class CategoryTotal:
    name: str
    amount: Decimal
    count: int
    percentage: Decimal


@dataclass(frozen=True)
class MonthlyTotal:
    """Claims whose expense date falls in the month starting ``month``."""

    month: date
    amount: Decimal
    count: int
    approved: int
    pending: int
    rejected: int


@dataclass(frozen=True)
class SpenderTotal:
    owner_id: UUID
    amount: Decimal
    count: int


@dataclass(frozen=True)
class ClaimAnalytics:
    """Spending breakdowns over the claims an actor may see.

    Amounts are normalized into ``currency`` and rounded to its minor unit.
    ``top_spenders`` is only filled in for company admins.
    """

    currency: str
    claim_count: int
    total_amount: Decimal
    approved_amount: Decimal
    pending_amount: Decimal
    average_amount: Decimal
    categories: tuple[CategoryTotal, ...]
    monthly: tuple[MonthlyTotal, ...]
    top_spenders: tuple[SpenderTotal, ...]

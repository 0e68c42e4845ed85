"""
Approval policy domain types (``reimburse_kernel.domain.policy``).

Responsibility
--------------
Immutable description of who must approve a subject employee's claims
and under what threshold.  Policies are read-only to the resolution
engine: evaluation never mutates them.

Invariants enforced (``validate_policy``)
-----------------------------------------
* AP-1: ``min_approval_percentage`` lies in [0, 100].
* AP-2: approver user ids are unique within a policy.
* AP-3: sequence numbers are unique; when ``is_sequential`` they are the
  contiguous range ``1..N``.
* AP-4: ``auto_approve_below`` (when set) is positive and
  ``policy_currency`` is a registered currency.

A policy with zero approvers and ``manager_is_approver=False`` is legal:
any single authorized approval finalizes the claim.
"""

from __future__ import annotations

from dataclasses import dataclass
from decimal import Decimal
from uuid import UUID

from reimburse_kernel.domain.currency import CurrencyRegistry
from reimburse_kernel.exceptions import InvalidCurrencyError, InvalidPolicyError


@dataclass(frozen=True)
class PolicyApprover:
    """One entry in a policy's ordered approver list."""

    user_id: UUID
    sequence: int
    is_required: bool = False


@dataclass(frozen=True)
class ApprovalPolicy:
    """Company-defined approval rule bound to one subject employee."""

    subject_id: UUID
    approvers: tuple[PolicyApprover, ...] = ()
    manager_id: UUID | None = None
    manager_is_approver: bool = False
    is_sequential: bool = False
    min_approval_percentage: Decimal = Decimal("50")
    description: str = ""
    company_id: UUID | None = None
    auto_approve_below: Decimal | None = None
    policy_currency: str | None = None

    @property
    def has_manager_gate(self) -> bool:
        return self.manager_is_approver and self.manager_id is not None

    @property
    def approvers_by_sequence(self) -> tuple[PolicyApprover, ...]:
        # sorted() is stable, so equal sequences keep list order
        return tuple(sorted(self.approvers, key=lambda a: a.sequence))

    @property
    def required_approvers(self) -> tuple[PolicyApprover, ...]:
        return tuple(a for a in self.approvers_by_sequence if a.is_required)


def validate_policy(policy: ApprovalPolicy) -> ApprovalPolicy:
    """Check AP-1..AP-4 and return the policy unchanged.

    Raises:
        InvalidPolicyError: describing the first violated constraint.
    """
    subject = str(policy.subject_id)
    pct = policy.min_approval_percentage

    if not isinstance(pct, Decimal) or not pct.is_finite() or not (0 <= pct <= 100):
        raise InvalidPolicyError(
            subject, f"min_approval_percentage must be within [0, 100], got {pct}",
        )

    user_ids = [a.user_id for a in policy.approvers]
    if len(set(user_ids)) != len(user_ids):
        raise InvalidPolicyError(subject, "approver user ids must be unique")

    sequences = [a.sequence for a in policy.approvers]
    if len(set(sequences)) != len(sequences):
        raise InvalidPolicyError(subject, "approver sequence numbers must be unique")

    if policy.is_sequential and sorted(sequences) != list(range(1, len(sequences) + 1)):
        raise InvalidPolicyError(
            subject,
            f"sequential policy needs contiguous sequences 1..{len(sequences)}, "
            f"got {sorted(sequences)}",
        )

    if policy.auto_approve_below is not None:
        if policy.auto_approve_below <= 0:
            raise InvalidPolicyError(subject, "auto_approve_below must be positive")
        if policy.policy_currency is None:
            raise InvalidPolicyError(
                subject, "auto_approve_below requires policy_currency",
            )
        try:
            CurrencyRegistry.validate(policy.policy_currency)
        except InvalidCurrencyError as exc:
            raise InvalidPolicyError(subject, str(exc)) from exc

    return policy

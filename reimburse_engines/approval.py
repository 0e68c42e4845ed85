"""
reimburse_engines.approval -- Pure approval-resolution engine.

Responsibility:
    Given a claim's approval history and the subject's approval policy
    (or None), decide whether the claim is now APPROVED or still SUBMITTED,
    and who should be asked next.  Also answers the two submit-time
    questions: who the first approver is, and whether the amount falls
    under the policy's auto-approve threshold.

Architecture position:
    Engines -- pure calculation layer, zero I/O.
    May only import reimburse_kernel/domain/ types.

Invariants enforced:
    - Idempotence: the same (history, policy) always yields the same
      Verdict; evaluation never mutates its inputs.
    - Deterministic rule ordering: ``RESOLUTION_RULES`` is a fixed tuple
      evaluated top to bottom; the first rule returning a Verdict wins.
    - Monotonicity: adding an APPROVED event by a listed approver never
      turns an APPROVED verdict back into SUBMITTED.
    - Ceiling threshold: ``needed = ceil(total * pct / 100)`` computed in
      exact decimal arithmetic (3 approvers at 50% need 2).

Failure modes:
    - Never raises for a valid policy.  A policy that can no longer be
      satisfied yields SUBMITTED with ``next_approver_id=None``
      (``Verdict.is_stuck``); the state machine surfaces it.
"""

from __future__ import annotations

from collections.abc import Callable, Sequence
from dataclasses import dataclass
from decimal import ROUND_CEILING, Decimal
from uuid import UUID

from reimburse_engines.tracer import traced_engine
from reimburse_kernel.domain.claim import ApprovalAction, ApprovalEvent, ClaimStatus
from reimburse_kernel.domain.policy import ApprovalPolicy, PolicyApprover

ENGINE_NAME = "approval_resolution"
ENGINE_VERSION = "1.0"


@dataclass(frozen=True)
class Verdict:
    """Result of one engine evaluation.

    ``status`` is APPROVED or SUBMITTED; the engine never rejects.
    ``rule`` names the table entry that produced the verdict.
    """

    status: ClaimStatus
    next_approver_id: UUID | None = None
    reason: str = ""
    rule: str = ""

    @property
    def is_approved(self) -> bool:
        return self.status == ClaimStatus.APPROVED

    @property
    def is_stuck(self) -> bool:
        return self.status == ClaimStatus.SUBMITTED and self.next_approver_id is None


@dataclass(frozen=True)
class _Facts:
    """Inputs shared by every rule in one evaluation."""

    policy: ApprovalPolicy | None
    approved_by: frozenset[UUID]


Rule = Callable[[_Facts], "Verdict | None"]


def required_approvals(total: int, percentage: Decimal) -> int:
    """Approvals needed out of ``total`` to reach ``percentage`` (ceiling)."""
    exact = Decimal(total) * Decimal(percentage) / Decimal(100)
    return int(exact.to_integral_value(rounding=ROUND_CEILING))


def _ordered_candidates(policy: ApprovalPolicy) -> tuple[PolicyApprover, ...]:
    if policy.is_sequential:
        return policy.approvers_by_sequence
    return policy.approvers


# -------------------------------------------------------------------------
# Rule table
# -------------------------------------------------------------------------


def _no_policy(facts: _Facts) -> Verdict | None:
    if facts.policy is not None:
        return None
    if facts.approved_by:
        return Verdict(
            ClaimStatus.APPROVED,
            reason="No approval policy: approved by an authorized approver",
            rule="no_policy",
        )
    return Verdict(
        ClaimStatus.SUBMITTED,
        reason="No approval policy: awaiting any authorized approver",
        rule="no_policy",
    )


def _manager_gate(facts: _Facts) -> Verdict | None:
    policy = facts.policy
    if not policy.has_manager_gate or policy.manager_id in facts.approved_by:
        return None
    return Verdict(
        ClaimStatus.SUBMITTED,
        next_approver_id=policy.manager_id,
        reason="Manager approval required first",
        rule="manager_gate",
    )


def _required_approvers(facts: _Facts) -> Verdict | None:
    for approver in facts.policy.required_approvers:
        if approver.user_id not in facts.approved_by:
            return Verdict(
                ClaimStatus.SUBMITTED,
                next_approver_id=approver.user_id,
                reason=f"Required approver (sequence {approver.sequence}) has not approved",
                rule="required_approvers",
            )
    return None


def _empty_approver_list(facts: _Facts) -> Verdict | None:
    if facts.policy.approvers:
        return None
    return Verdict(
        ClaimStatus.APPROVED,
        reason="Policy lists no approvers beyond the gates already passed",
        rule="empty_approver_list",
    )


def _percentage_threshold(facts: _Facts) -> Verdict:
    policy = facts.policy
    total = len(policy.approvers)
    approved = sum(1 for a in policy.approvers if a.user_id in facts.approved_by)
    needed = required_approvals(total, policy.min_approval_percentage)

    if approved >= needed:
        return Verdict(
            ClaimStatus.APPROVED,
            reason=f"{approved}/{total} approvals meet {policy.min_approval_percentage}% "
                   f"(needed {needed})",
            rule="percentage_threshold",
        )

    for approver in _ordered_candidates(policy):
        if approver.user_id not in facts.approved_by:
            return Verdict(
                ClaimStatus.SUBMITTED,
                next_approver_id=approver.user_id,
                reason=f"{approved}/{needed} approvals collected",
                rule="percentage_threshold",
            )

    return Verdict(
        ClaimStatus.SUBMITTED,
        reason=f"{approved}/{needed} approvals collected and no approver left to ask",
        rule="percentage_threshold",
    )


RESOLUTION_RULES: tuple[tuple[str, Rule], ...] = (
    ("no_policy", _no_policy),
    ("manager_gate", _manager_gate),
    ("required_approvers", _required_approvers),
    ("empty_approver_list", _empty_approver_list),
    ("percentage_threshold", _percentage_threshold),
)


# -------------------------------------------------------------------------
# Public API
# -------------------------------------------------------------------------


@traced_engine(ENGINE_NAME, ENGINE_VERSION, fingerprint_fields=("history", "policy"))
def resolve_approval(
    history: Sequence[ApprovalEvent],
    policy: ApprovalPolicy | None,
) -> Verdict:
    """Evaluate the rule table against a claim's history.

    Args:
        history: Approval events in append order.  Only APPROVED events
            matter; SUBMITTED and REJECTED entries are ignored.
        policy: The subject's policy, or None when none is bound.

    Returns:
        The first Verdict produced by ``RESOLUTION_RULES``.
    """
    facts = _Facts(
        policy=policy,
        approved_by=frozenset(
            e.actor_id for e in history if e.action == ApprovalAction.APPROVED
        ),
    )
    for _name, rule in RESOLUTION_RULES:
        verdict = rule(facts)
        if verdict is not None:
            return verdict
    # _percentage_threshold always returns; unreachable for a non-empty table
    raise AssertionError("approval rule table produced no verdict")


def initial_approver(
    policy: ApprovalPolicy | None,
    default_approver: UUID | None,
) -> UUID | None:
    """Pick the first approver when a claim is submitted.

    Order: manager gate, the engine's next approver on an empty history,
    the first listed approver (sequence order if sequential), the company
    default approver.  None means nobody can approve and the claim is
    finalized on submit.
    """
    if policy is None:
        return default_approver

    if policy.has_manager_gate:
        return policy.manager_id

    verdict = resolve_approval((), policy)
    if verdict.next_approver_id is not None:
        return verdict.next_approver_id

    candidates = _ordered_candidates(policy)
    if candidates:
        return candidates[0].user_id

    return default_approver


def evaluate_auto_approval(
    policy: ApprovalPolicy | None,
    normalized_amount: Decimal | None,
) -> Verdict | None:
    """Return an APPROVED verdict when the amount is under the auto-approve line.

    ``normalized_amount`` must already be expressed in
    ``policy.policy_currency``.  Returns None when the policy has no
    threshold or the amount is at or above it.
    """
    if policy is None or policy.auto_approve_below is None or normalized_amount is None:
        return None
    if normalized_amount < policy.auto_approve_below:
        return Verdict(
            ClaimStatus.APPROVED,
            reason=(
                f"Auto-approved: {normalized_amount} {policy.policy_currency} "
                f"below threshold {policy.auto_approve_below}"
            ),
            rule="auto_approve_below",
        )
    return None

"""
reimburse_services.claim_service -- Expense claim state machine.

Responsibility:
    Drives a claim through DRAFT -> SUBMITTED -> {APPROVED, REJECTED}.
    Validates the actor and the claim's status, asks the pure approval
    engine for a verdict, applies it, and persists the new snapshot with
    an appended history event.  Also answers the read-side questions
    operators and dashboards ask: visible claims with normalized totals,
    approver statistics, spending analytics, and stuck-claim diagnosis.

Architecture position:
    Services -- orchestrates kernel persistence (``ClaimRepository``),
    the pure engine (``reimburse_engines.approval``) and currency
    normalization.  Collaborators are injected; nothing here opens a
    database connection or an HTTP client itself.

Invariants enforced:
    CL-1 -- Only transitions listed in ``CLAIM_TRANSITIONS`` are applied.
    CL-2 -- ``current_approver_id`` is cleared on every terminal status.
    CL-4 -- Every write carries the version that was read; a concurrent
            writer loses with ``ConflictError`` and the claim is unchanged.
    - Rejection is unconditional: a rejection by an authorized actor is
      terminal regardless of policy.
    - A claim the engine cannot move forward stays SUBMITTED with its
      approver unchanged and is reported as policy-stuck.

Failure modes:
    - ClaimNotFoundError for unknown ids.
    - NotClaimOwnerError / UnauthorizedApproverError / AuthorizationError.
    - InvalidTransitionError for operations on the wrong status.
    - InvalidActionError, InvalidAmountError, InvalidCurrencyError.
    - ConflictError when ``expected_version`` is stale or a concurrent
      write won the race.
"""

from __future__ import annotations

from dataclasses import dataclass, replace
from datetime import date, datetime, time, timezone
from decimal import ROUND_HALF_UP, Decimal, InvalidOperation
from pathlib import Path
from typing import TYPE_CHECKING
from uuid import UUID, uuid4

from reimburse_engines.approval import (
    Verdict,
    evaluate_auto_approval,
    initial_approver,
    resolve_approval,
)
from reimburse_kernel.domain.claim import (
    CLAIM_TRANSITIONS,
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
from reimburse_kernel.domain.clock import Clock, SystemClock
from reimburse_kernel.domain.collaborators import (
    ClaimRepository,
    IdentityProvider,
    PolicyStore,
    RateProvider,
)
from reimburse_kernel.domain.currency import CurrencyRegistry
from reimburse_kernel.domain.policy import ApprovalPolicy
from reimburse_kernel.exceptions import (
    AuthorizationError,
    ConflictError,
    InvalidActionError,
    InvalidAmountError,
    InvalidTransitionError,
    NotClaimOwnerError,
    UnauthorizedApproverError,
)
from reimburse_kernel.logging_config import LogContext, get_logger
from reimburse_services.currency_normalizer import CurrencyNormalizer
from reimburse_services.observability import log_policy_stuck

if TYPE_CHECKING:
    from sqlalchemy.orm import Session, sessionmaker

logger = get_logger("services.claim_service")

TOP_SPENDER_LIMIT = 10


@dataclass(frozen=True)
class ClaimDiagnosis:
    """Engine re-evaluation of a claim for operators.

    ``expected_approver_id`` is who the engine would ask next; it differs
    from ``claim.current_approver_id`` only when the policy changed after
    the last transition.
    """

    claim: Claim
    has_policy: bool
    verdict: Verdict | None
    is_stuck: bool

    @property
    def expected_approver_id(self) -> UUID | None:
        return self.verdict.next_approver_id if self.verdict else None


def _coerce_amount(amount: object) -> Decimal:
    if isinstance(amount, bool):
        raise InvalidAmountError(amount)
    try:
        value = amount if isinstance(amount, Decimal) else Decimal(str(amount))
    except (InvalidOperation, ValueError) as exc:
        raise InvalidAmountError(amount) from exc
    if not value.is_finite() or value <= 0:
        raise InvalidAmountError(amount)
    return value


def _coerce_action(action: ApprovalAction | str) -> ApprovalAction:
    try:
        parsed = ApprovalAction(action)
    except ValueError as exc:
        raise InvalidActionError(str(action)) from exc
    if parsed == ApprovalAction.SUBMITTED:
        raise InvalidActionError(parsed.value)
    return parsed


def _claim_date(claim: Claim) -> date:
    if claim.expense_date is not None:
        return claim.expense_date
    return claim.created_at.astimezone(timezone.utc).date()


def _month_start(day: date) -> date:
    return day.replace(day=1)


def _shift_month(month: date, offset: int) -> date:
    index = month.year * 12 + month.month - 1 + offset
    return date(index // 12, index % 12 + 1, 1)


class ClaimService:
    """Claim lifecycle operations.

    Args:
        repository: Claim persistence with optimistic concurrency.
        policies: Approval policy lookup by subject employee.
        identity: Admin checks and company default approvers.
        normalizer: Currency conversion for thresholds and totals.
        clock: Time source for history timestamps.
        reporting_currency: Currency for totals when the caller names none.
    """

    def __init__(
        self,
        repository: ClaimRepository,
        policies: PolicyStore,
        identity: IdentityProvider,
        normalizer: CurrencyNormalizer,
        clock: Clock | None = None,
        reporting_currency: str = "USD",
    ) -> None:
        self._repository = repository
        self._policies = policies
        self._identity = identity
        self._normalizer = normalizer
        self._clock = clock or SystemClock()
        self._reporting_currency = CurrencyRegistry.validate(reporting_currency)

    # =====================================================================
    # Draft management
    # =====================================================================

    def create_claim(
        self,
        owner_id: UUID,
        company_id: UUID,
        amount: Decimal | int | str,
        currency: str,
        *,
        description: str = "",
        category: str = "Other",
        expense_date: date | None = None,
        paid_by: str = "employee",
        remarks: str = "",
    ) -> Claim:
        """Create a DRAFT claim owned by ``owner_id``."""
        claim = Claim(
            claim_id=uuid4(),
            owner_id=owner_id,
            company_id=company_id,
            amount=_coerce_amount(amount),
            currency=CurrencyRegistry.validate(currency),
            description=description,
            category=category,
            expense_date=expense_date,
            paid_by=paid_by,
            remarks=remarks,
            created_at=self._clock.now(),
        )
        with LogContext.bind(
            claim_id=claim.claim_id, actor_id=owner_id, company_id=company_id,
        ):
            stored = self._repository.add(claim)
            logger.info(
                "claim_created",
                extra={"amount": str(stored.amount), "currency": stored.currency},
            )
        return stored

    def update_draft(
        self,
        claim_id: UUID,
        actor_id: UUID,
        *,
        amount: Decimal | int | str | None = None,
        currency: str | None = None,
        description: str | None = None,
        category: str | None = None,
        expense_date: date | None = None,
        paid_by: str | None = None,
        remarks: str | None = None,
        expected_version: int | None = None,
    ) -> Claim:
        """Edit a DRAFT claim.  Only the owner may edit; None leaves a field as is."""
        claim = self._load(claim_id, expected_version)
        with LogContext.bind(
            claim_id=claim_id, actor_id=actor_id, company_id=claim.company_id,
        ):
            if claim.owner_id != actor_id:
                raise NotClaimOwnerError(str(actor_id), str(claim_id), "edit")
            if claim.status != ClaimStatus.DRAFT:
                raise InvalidTransitionError(str(claim_id), claim.status.value, "edit")

            changes: dict[str, object] = {}
            if amount is not None:
                changes["amount"] = _coerce_amount(amount)
            if currency is not None:
                changes["currency"] = CurrencyRegistry.validate(currency)
            for name, value in (
                ("description", description),
                ("category", category),
                ("expense_date", expense_date),
                ("paid_by", paid_by),
                ("remarks", remarks),
            ):
                if value is not None:
                    changes[name] = value

            if not changes:
                return claim

            saved = self._repository.save(replace(claim, **changes))
            logger.info("claim_draft_updated", extra={"fields": sorted(changes)})
            return saved

    def delete_draft(
        self,
        claim_id: UUID,
        actor_id: UUID,
        expected_version: int | None = None,
    ) -> None:
        """Delete a DRAFT claim.  Allowed for the owner or a company admin."""
        claim = self._load(claim_id, expected_version)
        with LogContext.bind(
            claim_id=claim_id, actor_id=actor_id, company_id=claim.company_id,
        ):
            if claim.owner_id != actor_id and not self._identity.is_admin(
                actor_id, claim.company_id,
            ):
                raise NotClaimOwnerError(str(actor_id), str(claim_id), "delete")
            if claim.status != ClaimStatus.DRAFT:
                raise InvalidTransitionError(str(claim_id), claim.status.value, "delete")

            self._repository.delete(claim)
            logger.info("claim_deleted")

    # =====================================================================
    # Transitions
    # =====================================================================

    def submit(
        self,
        claim_id: UUID,
        actor_id: UUID,
        expected_version: int | None = None,
    ) -> TransitionResult:
        """Submit a DRAFT claim for approval.

        The first approver comes from the subject's policy, falling back to
        the company default approver.  With nobody to ask, or an amount
        under the policy's auto-approve threshold, the claim is finalized
        as APPROVED immediately.
        """
        claim = self._load(claim_id, expected_version)
        with LogContext.bind(
            claim_id=claim_id, actor_id=actor_id, company_id=claim.company_id,
        ):
            if claim.owner_id != actor_id:
                raise NotClaimOwnerError(str(actor_id), str(claim_id), "submit")
            if claim.status != ClaimStatus.DRAFT:
                raise InvalidTransitionError(str(claim_id), claim.status.value, "submit")

            now = self._clock.now()
            policy = self._policies.find_policy(claim.owner_id)
            event = ApprovalEvent(actor_id, ApprovalAction.SUBMITTED, now)

            auto = evaluate_auto_approval(policy, self._amount_in_policy_currency(claim, policy))
            approver = None
            if auto is not None:
                reason = auto.reason
            else:
                approver = initial_approver(policy, None)
                if approver is None:
                    approver = self._identity.default_approver(claim.company_id)
                reason = (
                    "Submitted for approval"
                    if approver is not None
                    else "No approver configured: approved on submit"
                )

            if approver is None:
                updated = self._transition(
                    claim, event, ClaimStatus.APPROVED, "submit",
                    submitted_at=now, decided_at=now,
                )
            else:
                updated = self._transition(
                    claim, event, ClaimStatus.SUBMITTED, "submit",
                    current_approver_id=approver, submitted_at=now,
                )

            saved = self._repository.save(updated)
            logger.info(
                "claim_submitted",
                extra={
                    "status": saved.status.value,
                    "current_approver_id": str(approver) if approver else None,
                    "has_policy": policy is not None,
                    "reason": reason,
                },
            )
            return TransitionResult(saved, ClaimStatus.DRAFT, reason)

    def act(
        self,
        claim_id: UUID,
        actor_id: UUID,
        action: ApprovalAction | str,
        comments: str = "",
        expected_version: int | None = None,
    ) -> TransitionResult:
        """Record an approve/reject decision on a SUBMITTED claim.

        The actor must be the current approver or a company admin.
        Rejection is terminal.  Approval re-runs the engine: the claim is
        finalized, reassigned to the next approver, or left in place and
        flagged as policy-stuck.
        """
        parsed = _coerce_action(action)
        operation = "approve" if parsed == ApprovalAction.APPROVED else "reject"
        claim = self._load(claim_id, expected_version)
        with LogContext.bind(
            claim_id=claim_id, actor_id=actor_id, company_id=claim.company_id,
        ):
            if claim.status != ClaimStatus.SUBMITTED:
                raise InvalidTransitionError(str(claim_id), claim.status.value, operation)
            if actor_id != claim.current_approver_id and not self._identity.is_admin(
                actor_id, claim.company_id,
            ):
                raise UnauthorizedApproverError(
                    str(actor_id),
                    str(claim_id),
                    str(claim.current_approver_id) if claim.current_approver_id else None,
                )

            now = self._clock.now()
            event = ApprovalEvent(actor_id, parsed, now, comments)
            stuck = False
            policy: ApprovalPolicy | None = None

            if parsed == ApprovalAction.REJECTED:
                reason = f"Rejected by {actor_id}"
                updated = self._transition(
                    claim, event, ClaimStatus.REJECTED, operation,
                    current_approver_id=None,
                    decided_at=now,
                    rejection_reason=comments,
                )
            else:
                policy = self._policies.find_policy(claim.owner_id)
                verdict = resolve_approval(claim.history + (event,), policy)
                reason = verdict.reason
                if verdict.is_approved:
                    updated = self._transition(
                        claim, event, ClaimStatus.APPROVED, operation,
                        current_approver_id=None, decided_at=now,
                    )
                elif verdict.next_approver_id is not None:
                    updated = self._transition(
                        claim, event, ClaimStatus.SUBMITTED, operation,
                        current_approver_id=verdict.next_approver_id,
                    )
                else:
                    stuck = True
                    updated = self._transition(
                        claim, event, ClaimStatus.SUBMITTED, operation,
                    )

            saved = self._repository.save(updated)

            if stuck:
                log_policy_stuck(
                    claim_id=str(claim_id),
                    subject_id=str(claim.owner_id),
                    current_approver_id=(
                        str(saved.current_approver_id) if saved.current_approver_id else None
                    ),
                    reason=reason,
                )
            logger.info(
                f"claim_{saved.status.value}" if saved.is_terminal else "claim_reassigned",
                extra={
                    "action": parsed.value,
                    "current_approver_id": (
                        str(saved.current_approver_id) if saved.current_approver_id else None
                    ),
                    "reason": reason,
                },
            )
            return TransitionResult(saved, ClaimStatus.SUBMITTED, reason, policy_stuck=stuck)

    # =====================================================================
    # Reads
    # =====================================================================

    def get_claim(self, claim_id: UUID, actor_id: UUID) -> Claim:
        """Return a claim the actor may see.

        Visible to the owner, company admins, the current approver, and
        anyone who appears in the claim's history.
        """
        claim = self._repository.get(claim_id)
        if (
            claim.owner_id == actor_id
            or claim.current_approver_id == actor_id
            or any(e.actor_id == actor_id for e in claim.history)
            or self._identity.is_admin(actor_id, claim.company_id)
        ):
            return claim
        raise AuthorizationError(str(actor_id), str(claim_id), "view")

    def list_claims(
        self,
        actor_id: UUID,
        company_id: UUID,
        status: ClaimStatus | None = None,
        currency: str | None = None,
    ) -> ClaimListing:
        """Claims visible to the actor, newest first, with per-status totals.

        Admins see every claim in the company.  Everyone else sees their own
        claims plus those waiting on them or already acted on by them.
        """
        target = CurrencyRegistry.validate(currency or self._reporting_currency)
        claims = sorted(
            self._visible_claims(actor_id, company_id, status),
            key=lambda c: c.created_at,
            reverse=True,
        )
        exponent = CurrencyRegistry.get_info(target).quantize_exponent
        sums = {s: Decimal("0") for s in ClaimStatus}
        for converted in self._normalizer.convert_batch(claims, target):
            sums[converted.item.status] += converted.converted_amount
        totals = StatusTotals(
            currency=target,
            totals={s: v.quantize(exponent, rounding=ROUND_HALF_UP) for s, v in sums.items()},
        )
        return ClaimListing(claims=tuple(claims), totals=totals)

    def approval_stats(
        self,
        approver_id: UUID,
        company_id: UUID,
        currency: str | None = None,
        as_of: datetime | None = None,
    ) -> ApprovalStats:
        """Dashboard figures for one approver.

        "Today" is the UTC calendar day of ``as_of`` (default: now).  A
        decided claim counts once, by the approver's latest decision on it.
        """
        target = CurrencyRegistry.validate(currency or self._reporting_currency)
        as_of = as_of or self._clock.now()
        day_start = datetime.combine(
            as_of.astimezone(timezone.utc).date(), time.min, tzinfo=timezone.utc,
        )

        pending = self._repository.list_pending_for_approver(approver_id, company_id)
        approved_today = rejected_today = 0
        for claim in self._repository.list_acted_on_by(approver_id, company_id):
            if not claim.is_terminal:
                continue
            decisions = [
                e for e in claim.history
                if e.actor_id == approver_id
                and e.action in (ApprovalAction.APPROVED, ApprovalAction.REJECTED)
            ]
            latest = max(decisions, key=lambda e: e.timestamp)
            if not (day_start <= latest.timestamp <= as_of):
                continue
            if latest.action == ApprovalAction.APPROVED:
                approved_today += 1
            else:
                rejected_today += 1

        return ApprovalStats(
            approver_id=approver_id,
            currency=target,
            pending_count=len(pending),
            pending_amount=self._normalizer.total(pending, target),
            approved_today=approved_today,
            rejected_today=rejected_today,
        )

    def claim_analytics(
        self,
        actor_id: UUID,
        company_id: UUID,
        currency: str | None = None,
        as_of: datetime | None = None,
        months: int = 6,
    ) -> ClaimAnalytics:
        """Category, monthly and per-employee spending over visible claims.

        Visibility follows ``list_claims``.  A claim is dated by its
        ``expense_date``, or the UTC day it was created when that is unset.
        ``monthly`` covers the ``months`` calendar months ending with the
        month of ``as_of`` (default: now), oldest first, empty months
        included.  All amounts go through one ``convert_batch`` call.
        """
        if months < 1:
            raise ValueError(f"months must be at least 1, got {months}")
        target = CurrencyRegistry.validate(currency or self._reporting_currency)
        exponent = CurrencyRegistry.get_info(target).quantize_exponent
        as_of = as_of or self._clock.now()

        def rounded(value: Decimal) -> Decimal:
            return value.quantize(exponent, rounding=ROUND_HALF_UP)

        claims = self._visible_claims(actor_id, company_id)
        converted = [
            (c.item, c.converted_amount)
            for c in self._normalizer.convert_batch(claims, target)
        ]
        grand_total = sum((amount for _, amount in converted), Decimal("0"))

        by_category: dict[str, list[Decimal]] = {}
        for claim, amount in converted:
            name = (claim.category or "Other").strip() or "Other"
            by_category.setdefault(name, []).append(amount)
        categories = sorted(
            (
                CategoryTotal(
                    name=name,
                    amount=rounded(sum(amounts, Decimal("0"))),
                    count=len(amounts),
                    percentage=(
                        (sum(amounts, Decimal("0")) * 100 / grand_total).quantize(
                            Decimal("0.1"), rounding=ROUND_HALF_UP,
                        )
                        if grand_total
                        else Decimal("0.0")
                    ),
                )
                for name, amounts in by_category.items()
            ),
            key=lambda c: (-c.amount, c.name),
        )

        current_month = _month_start(as_of.astimezone(timezone.utc).date())
        month_starts = [_shift_month(current_month, -i) for i in range(months - 1, -1, -1)]
        buckets: dict[date, list[tuple[Claim, Decimal]]] = {m: [] for m in month_starts}
        for claim, amount in converted:
            bucket = buckets.get(_month_start(_claim_date(claim)))
            if bucket is not None:
                bucket.append((claim, amount))
        monthly = tuple(
            MonthlyTotal(
                month=month,
                amount=rounded(sum((a for _, a in entries), Decimal("0"))),
                count=len(entries),
                approved=sum(1 for c, _ in entries if c.status == ClaimStatus.APPROVED),
                pending=sum(1 for c, _ in entries if c.status == ClaimStatus.SUBMITTED),
                rejected=sum(1 for c, _ in entries if c.status == ClaimStatus.REJECTED),
            )
            for month, entries in buckets.items()
        )

        top_spenders: tuple[SpenderTotal, ...] = ()
        if self._identity.is_admin(actor_id, company_id):
            by_owner: dict[UUID, list[Decimal]] = {}
            for claim, amount in converted:
                by_owner.setdefault(claim.owner_id, []).append(amount)
            top_spenders = tuple(sorted(
                (
                    SpenderTotal(owner, rounded(sum(amounts, Decimal("0"))), len(amounts))
                    for owner, amounts in by_owner.items()
                ),
                key=lambda s: (-s.amount, str(s.owner_id)),
            )[:TOP_SPENDER_LIMIT])

        def status_total(status: ClaimStatus) -> Decimal:
            return rounded(sum(
                (amount for claim, amount in converted if claim.status == status),
                Decimal("0"),
            ))

        return ClaimAnalytics(
            currency=target,
            claim_count=len(converted),
            total_amount=rounded(grand_total),
            approved_amount=status_total(ClaimStatus.APPROVED),
            pending_amount=status_total(ClaimStatus.SUBMITTED),
            average_amount=rounded(
                grand_total / len(converted) if converted else Decimal("0")
            ),
            categories=tuple(categories),
            monthly=monthly,
            top_spenders=top_spenders,
        )

    def diagnose(self, claim_id: UUID) -> ClaimDiagnosis:
        """Re-evaluate the engine for a claim without changing it."""
        claim = self._repository.get(claim_id)
        policy = self._policies.find_policy(claim.owner_id)
        if claim.status != ClaimStatus.SUBMITTED:
            return ClaimDiagnosis(claim, policy is not None, None, False)
        verdict = resolve_approval(claim.history, policy)
        return ClaimDiagnosis(
            claim=claim,
            has_policy=policy is not None,
            verdict=verdict,
            is_stuck=policy is not None and verdict.is_stuck,
        )

    def find_stuck_claims(self, company_id: UUID) -> list[ClaimDiagnosis]:
        """SUBMITTED claims in the company whose policy cannot progress."""
        stuck = []
        for claim in self._repository.list_for_company(
            company_id, status=ClaimStatus.SUBMITTED,
        ):
            diagnosis = self.diagnose(claim.claim_id)
            if diagnosis.is_stuck:
                stuck.append(diagnosis)
        if stuck:
            logger.warning(
                "stuck_claims_found",
                extra={"company_id": str(company_id), "count": len(stuck)},
            )
        return stuck

    # =====================================================================
    # Internals
    # =====================================================================

    def _visible_claims(
        self,
        actor_id: UUID,
        company_id: UUID,
        status: ClaimStatus | None = None,
    ) -> list[Claim]:
        """Whole company for admins; own, pending-on and acted-on claims otherwise."""
        if self._identity.is_admin(actor_id, company_id):
            return list(self._repository.list_for_company(company_id, status=status))

        merged: dict[UUID, Claim] = {}
        for batch in (
            self._repository.list_for_company(company_id, owner_id=actor_id),
            self._repository.list_pending_for_approver(actor_id, company_id),
            self._repository.list_acted_on_by(actor_id, company_id),
        ):
            for claim in batch:
                merged[claim.claim_id] = claim
        return [c for c in merged.values() if status is None or c.status == status]

    def _load(self, claim_id: UUID, expected_version: int | None) -> Claim:
        claim = self._repository.get(claim_id)
        if expected_version is not None and claim.version != expected_version:
            raise ConflictError(str(claim_id), expected_version)
        return claim

    @staticmethod
    def _transition(
        claim: Claim,
        event: ApprovalEvent,
        new_status: ClaimStatus,
        operation: str,
        **changes,
    ) -> Claim:
        """Append ``event`` and move to ``new_status`` if CL-1 allows it."""
        if new_status not in CLAIM_TRANSITIONS[claim.status]:
            raise InvalidTransitionError(str(claim.claim_id), claim.status.value, operation)
        return claim.with_event(event, status=new_status, **changes)

    def _amount_in_policy_currency(
        self,
        claim: Claim,
        policy: ApprovalPolicy | None,
    ) -> Decimal | None:
        """Claim amount in the policy's threshold currency, or None.

        None when there is no threshold or no rate to convert with; either
        way the claim goes to a human approver.
        """
        if policy is None or policy.auto_approve_below is None:
            return None
        converted = self._normalizer.convert_or_none(
            claim.amount, claim.currency, policy.policy_currency,
        )
        if converted is None:
            logger.warning(
                "auto_approval_skipped",
                extra={
                    "currency": claim.currency,
                    "policy_currency": policy.policy_currency,
                    "reason": "no exchange rate",
                },
            )
        return converted


def build_claim_service(
    session_factory: sessionmaker[Session],
    config_path: Path | str | None = None,
    clock: Clock | None = None,
    provider: RateProvider | None = None,
    reporting_currency: str = "USD",
) -> ClaimService:
    """Build a ClaimService from configuration (single entrypoint for production).

    Loads config via get_active_config(config_path), builds the policy
    store, identity provider and rate cache from it, and wires them to a
    SQL repository on ``session_factory``.

    Args:
        session_factory: SQLAlchemy session factory for claim persistence.
        config_path: Optional YAML merged over the packaged defaults.
        clock: Optional clock shared by the service and the rate cache.
        provider: Optional rate provider; default is the configured HTTP one.
        reporting_currency: Currency for totals when callers name none.
    """
    from reimburse_config import get_active_config
    from reimburse_config.bridges import (
        build_identity_provider,
        build_policy_store,
        build_rate_cache,
    )
    from reimburse_kernel.services.claim_repository import SqlClaimRepository

    config = get_active_config(config_path)
    clock = clock or SystemClock()
    cache = build_rate_cache(config, provider=provider, clock=clock)
    return ClaimService(
        repository=SqlClaimRepository(session_factory),
        policies=build_policy_store(config),
        identity=build_identity_provider(config),
        normalizer=CurrencyNormalizer(cache, timeout=config.rate_cache.wait_timeout_seconds),
        clock=clock,
        reporting_currency=reporting_currency,
    )

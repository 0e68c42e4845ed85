"""
Tests for ClaimService -- the claim lifecycle state machine.

Covers:
- create_claim() / update_draft() / delete_draft(): ownership, DRAFT guard,
  amount and currency validation
- submit(): policy first approver, company default approver, approved on
  submit when nobody can approve, auto-approve threshold in policy currency
- act(): approve/reject/reassign, sequential A -> B, percentage threshold,
  admin override, unauthorized actor, wrong status, invalid action
- Stuck policies: act() flags them, diagnose() and find_stuck_claims()
  surface them
- get_claim() visibility, list_claims() totals, approval_stats(),
  claim_analytics() breakdowns
- expected_version conflicts
"""

from datetime import date, datetime, timedelta, timezone
from decimal import Decimal
from uuid import uuid4

import pytest

from reimburse_kernel.domain.claim import ApprovalAction, ClaimStatus
from reimburse_kernel.domain.policy import ApprovalPolicy, PolicyApprover
from reimburse_kernel.exceptions import (
    AuthorizationError,
    ClaimNotFoundError,
    ConflictError,
    InvalidActionError,
    InvalidAmountError,
    InvalidCurrencyError,
    InvalidTransitionError,
    NotClaimOwnerError,
    UnauthorizedApproverError,
)
from reimburse_services.directory import StaticIdentityProvider


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


def sequential_policy(subject_id, *approver_ids, pct="100", **kwargs):
    return ApprovalPolicy(
        subject_id=subject_id,
        approvers=tuple(
            PolicyApprover(user_id=uid, sequence=i)
            for i, uid in enumerate(approver_ids, start=1)
        ),
        is_sequential=True,
        min_approval_percentage=Decimal(pct),
        **kwargs,
    )


class UncheckedPolicyStore:
    """Policy store that hands out policies without validating them."""

    def __init__(self, policy):
        self.policy = policy

    def find_policy(self, subject_id):
        return self.policy if subject_id == self.policy.subject_id else None


@pytest.fixture
def approver_a():
    return uuid4()


@pytest.fixture
def approver_b():
    return uuid4()


@pytest.fixture
def default_approver():
    return uuid4()


@pytest.fixture
def service_with_default(make_service, company_id, admin_id, default_approver):
    identity = StaticIdentityProvider(
        admins={company_id: {admin_id}},
        default_approvers={company_id: default_approver},
    )
    return make_service(identity=identity)


@pytest.fixture
def a_then_b(policy_store, owner_id, approver_a, approver_b):
    policy = sequential_policy(owner_id, approver_a, approver_b)
    policy_store.put(policy)
    return policy


# ---------------------------------------------------------------------------
# Drafts
# ---------------------------------------------------------------------------


class TestCreateClaim:

    def test_creates_draft(self, claim_service, owner_id, company_id, deterministic_clock):
        claim = claim_service.create_claim(
            owner_id, company_id, "12.50", "eur",
            description="Taxi", category="Travel",
        )

        assert claim.status == ClaimStatus.DRAFT
        assert claim.amount == Decimal("12.50")
        assert claim.currency == "EUR"
        assert claim.current_approver_id is None
        assert claim.history == ()
        assert claim.created_at == deterministic_clock.now()
        assert claim.version == 1

    def test_persisted(self, claim_service, new_claim, owner_id):
        claim = new_claim(description="Hotel")
        stored = claim_service.get_claim(claim.claim_id, owner_id)
        assert stored.description == "Hotel"
        assert stored.amount == Decimal("100.00")

    @pytest.mark.parametrize("amount", [0, "-1", "abc", "", True, "NaN", "Infinity", None])
    def test_invalid_amount(self, claim_service, owner_id, company_id, amount):
        with pytest.raises(InvalidAmountError):
            claim_service.create_claim(owner_id, company_id, amount, "USD")

    def test_invalid_currency(self, new_claim):
        with pytest.raises(InvalidCurrencyError):
            new_claim(currency="ABC")

    def test_logs_creation(self, new_claim, captured_logs):
        claim = new_claim()
        created = [r for r in captured_logs() if r["message"] == "claim_created"]
        assert created[0]["claim_id"] == str(claim.claim_id)
        assert created[0]["currency"] == "USD"


class TestUpdateDraft:

    def test_owner_edits(self, claim_service, new_claim, owner_id):
        claim = new_claim()

        updated = claim_service.update_draft(
            claim.claim_id, owner_id, amount="42", currency="GBP", remarks="fixed",
        )

        assert updated.amount == Decimal("42")
        assert updated.currency == "GBP"
        assert updated.remarks == "fixed"
        assert updated.version == 2

    def test_no_changes_is_noop(self, claim_service, new_claim, owner_id):
        claim = new_claim()
        assert claim_service.update_draft(claim.claim_id, owner_id).version == 1

    def test_non_owner_rejected(self, claim_service, new_claim, admin_id):
        claim = new_claim()
        with pytest.raises(NotClaimOwnerError) as exc_info:
            claim_service.update_draft(claim.claim_id, admin_id, amount="1")
        assert exc_info.value.operation == "edit"

    def test_only_drafts(self, claim_service, new_claim, owner_id):
        claim = new_claim()
        claim_service.submit(claim.claim_id, owner_id)
        with pytest.raises(InvalidTransitionError):
            claim_service.update_draft(claim.claim_id, owner_id, amount="1")

    def test_stale_version(self, claim_service, new_claim, owner_id):
        claim = new_claim()
        claim_service.update_draft(claim.claim_id, owner_id, remarks="first")
        with pytest.raises(ConflictError):
            claim_service.update_draft(
                claim.claim_id, owner_id, remarks="second", expected_version=1,
            )

    def test_invalid_amount(self, claim_service, new_claim, owner_id):
        claim = new_claim()
        with pytest.raises(InvalidAmountError):
            claim_service.update_draft(claim.claim_id, owner_id, amount="-5")


class TestDeleteDraft:

    def test_owner_deletes(self, claim_service, new_claim, owner_id):
        claim = new_claim()
        claim_service.delete_draft(claim.claim_id, owner_id)
        with pytest.raises(ClaimNotFoundError):
            claim_service.get_claim(claim.claim_id, owner_id)

    def test_admin_deletes(self, claim_service, new_claim, admin_id, owner_id):
        claim = new_claim()
        claim_service.delete_draft(claim.claim_id, admin_id)
        with pytest.raises(ClaimNotFoundError):
            claim_service.get_claim(claim.claim_id, owner_id)

    def test_stranger_rejected(self, claim_service, new_claim):
        claim = new_claim()
        with pytest.raises(NotClaimOwnerError):
            claim_service.delete_draft(claim.claim_id, uuid4())

    def test_submitted_claim_not_deletable(self, claim_service, new_claim, owner_id):
        claim = new_claim()
        claim_service.submit(claim.claim_id, owner_id)
        with pytest.raises(InvalidTransitionError) as exc_info:
            claim_service.delete_draft(claim.claim_id, owner_id)
        assert exc_info.value.operation == "delete"

    def test_unknown_claim(self, claim_service, owner_id):
        with pytest.raises(ClaimNotFoundError):
            claim_service.delete_draft(uuid4(), owner_id)


# ---------------------------------------------------------------------------
# Submit
# ---------------------------------------------------------------------------


class TestSubmit:

    def test_no_policy_no_default_approves_immediately(
        self, claim_service, new_claim, owner_id, deterministic_clock,
    ):
        claim = new_claim()

        result = claim_service.submit(claim.claim_id, owner_id)

        assert result.claim.status == ClaimStatus.APPROVED
        assert result.previous_status == ClaimStatus.DRAFT
        assert result.claim.current_approver_id is None
        assert result.claim.submitted_at == deterministic_clock.now()
        assert result.claim.decided_at == deterministic_clock.now()
        assert "No approver configured" in result.reason
        assert [e.action for e in result.claim.history] == [ApprovalAction.SUBMITTED]

    def test_no_policy_goes_to_default_approver(
        self, service_with_default, new_claim, owner_id, default_approver,
    ):
        claim = new_claim()

        result = service_with_default.submit(claim.claim_id, owner_id)

        assert result.claim.status == ClaimStatus.SUBMITTED
        assert result.claim.current_approver_id == default_approver
        assert result.claim.decided_at is None

    def test_policy_names_first_approver(
        self, service_with_default, new_claim, owner_id, a_then_b, approver_a,
    ):
        claim = new_claim()
        result = service_with_default.submit(claim.claim_id, owner_id)
        assert result.claim.current_approver_id == approver_a

    def test_manager_gate_comes_first(
        self, claim_service, policy_store, new_claim, owner_id, approver_a,
    ):
        manager = uuid4()
        policy_store.put(sequential_policy(
            owner_id, approver_a, manager_id=manager, manager_is_approver=True,
        ))

        result = claim_service.submit(new_claim().claim_id, owner_id)

        assert result.claim.current_approver_id == manager

    def test_empty_policy_uses_default_approver(
        self, service_with_default, policy_store, new_claim, owner_id, default_approver,
    ):
        policy_store.put(ApprovalPolicy(subject_id=owner_id))
        result = service_with_default.submit(new_claim().claim_id, owner_id)
        assert result.claim.current_approver_id == default_approver

    def test_only_owner_submits(self, claim_service, new_claim, admin_id):
        claim = new_claim()
        with pytest.raises(NotClaimOwnerError):
            claim_service.submit(claim.claim_id, admin_id)

    def test_double_submit(self, service_with_default, new_claim, owner_id):
        claim = new_claim()
        service_with_default.submit(claim.claim_id, owner_id)
        with pytest.raises(InvalidTransitionError):
            service_with_default.submit(claim.claim_id, owner_id)

    def test_stale_expected_version(self, claim_service, new_claim, owner_id):
        claim = new_claim()
        with pytest.raises(ConflictError):
            claim_service.submit(claim.claim_id, owner_id, expected_version=7)
        assert claim_service.get_claim(claim.claim_id, owner_id).status == ClaimStatus.DRAFT

    def test_unconvertible_amount_never_auto_approves(
        self, claim_service, policy_store, new_claim, owner_id, approver_a,
        rate_provider, captured_logs,
    ):
        # 100 KWD is roughly 325 USD; KWD is outside the fallback table.
        policy_store.put(sequential_policy(
            owner_id, approver_a,
            auto_approve_below=Decimal("200"), policy_currency="USD",
        ))
        rate_provider.fail = True
        claim = new_claim(amount="100", currency="KWD")

        result = claim_service.submit(claim.claim_id, owner_id)

        assert result.claim.status == ClaimStatus.SUBMITTED
        assert result.claim.current_approver_id == approver_a
        assert not result.reason.startswith("Auto-approved")
        skipped = [r for r in captured_logs() if r["message"] == "auto_approval_skipped"]
        assert skipped[0]["policy_currency"] == "USD"


class TestAutoApproval:

    @pytest.fixture
    def threshold_policy(self, policy_store, owner_id, approver_a):
        policy = sequential_policy(
            owner_id, approver_a,
            auto_approve_below=Decimal("50"), policy_currency="USD",
        )
        policy_store.put(policy)
        return policy

    def test_below_threshold_after_conversion(
        self, claim_service, new_claim, owner_id, threshold_policy,
    ):
        # 20 EUR is 40 USD at the test rates.
        claim = new_claim(amount="20", currency="EUR")

        result = claim_service.submit(claim.claim_id, owner_id)

        assert result.claim.status == ClaimStatus.APPROVED
        assert result.claim.current_approver_id is None
        assert result.reason.startswith("Auto-approved")

    def test_at_or_above_threshold_needs_approval(
        self, claim_service, new_claim, owner_id, threshold_policy, approver_a,
    ):
        claim = new_claim(amount="25", currency="EUR")

        result = claim_service.submit(claim.claim_id, owner_id)

        assert result.claim.status == ClaimStatus.SUBMITTED
        assert result.claim.current_approver_id == approver_a


# ---------------------------------------------------------------------------
# Approver actions
# ---------------------------------------------------------------------------


class TestAct:

    def test_sequential_a_then_b(
        self, claim_service, new_claim, owner_id, a_then_b, approver_a, approver_b,
        captured_logs,
    ):
        claim = new_claim()
        claim_service.submit(claim.claim_id, owner_id)

        first = claim_service.act(claim.claim_id, approver_a, ApprovalAction.APPROVED)
        assert first.claim.status == ClaimStatus.SUBMITTED
        assert first.claim.current_approver_id == approver_b
        assert not first.changed_status

        second = claim_service.act(claim.claim_id, approver_b, "approved", comments="ok")
        assert second.claim.status == ClaimStatus.APPROVED
        assert second.claim.current_approver_id is None
        assert second.claim.decided_at is not None
        assert [e.actor_id for e in second.claim.history] == [
            owner_id, approver_a, approver_b,
        ]
        assert second.claim.history[-1].comments == "ok"

        messages = [r["message"] for r in captured_logs()]
        assert "claim_reassigned" in messages
        assert "claim_approved" in messages

    def test_reject_is_terminal(
        self, claim_service, new_claim, owner_id, a_then_b, approver_a,
    ):
        claim = new_claim()
        claim_service.submit(claim.claim_id, owner_id)

        result = claim_service.act(
            claim.claim_id, approver_a, ApprovalAction.REJECTED, comments="no receipt",
        )

        assert result.claim.status == ClaimStatus.REJECTED
        assert result.claim.rejection_reason == "no receipt"
        assert result.claim.current_approver_id is None
        assert result.claim.decided_at is not None
        with pytest.raises(InvalidTransitionError):
            claim_service.act(claim.claim_id, approver_a, ApprovalAction.APPROVED)

    def test_percentage_threshold_parallel(
        self, claim_service, policy_store, new_claim, owner_id,
    ):
        a, b, c = uuid4(), uuid4(), uuid4()
        policy_store.put(ApprovalPolicy(
            subject_id=owner_id,
            approvers=(
                PolicyApprover(a, 1), PolicyApprover(b, 2), PolicyApprover(c, 3),
            ),
            min_approval_percentage=Decimal("50"),
        ))
        claim = new_claim()
        assert claim_service.submit(claim.claim_id, owner_id).claim.current_approver_id == a

        after_a = claim_service.act(claim.claim_id, a, ApprovalAction.APPROVED)
        assert after_a.claim.current_approver_id == b

        after_b = claim_service.act(claim.claim_id, b, ApprovalAction.APPROVED)
        assert after_b.claim.status == ClaimStatus.APPROVED

    def test_no_policy_single_approval_finalizes(
        self, service_with_default, new_claim, owner_id, default_approver,
    ):
        claim = new_claim()
        service_with_default.submit(claim.claim_id, owner_id)

        result = service_with_default.act(
            claim.claim_id, default_approver, ApprovalAction.APPROVED,
        )

        assert result.claim.status == ClaimStatus.APPROVED

    def test_unauthorized_approver(
        self, claim_service, new_claim, owner_id, a_then_b, approver_a, approver_b,
    ):
        claim = new_claim()
        claim_service.submit(claim.claim_id, owner_id)

        with pytest.raises(UnauthorizedApproverError) as exc_info:
            claim_service.act(claim.claim_id, approver_b, ApprovalAction.APPROVED)

        assert exc_info.value.current_approver_id == str(approver_a)
        assert claim_service.get_claim(claim.claim_id, owner_id).version == 2

    def test_admin_approval_does_not_satisfy_policy(
        self, claim_service, new_claim, owner_id, a_then_b, approver_a, admin_id,
    ):
        claim = new_claim()
        claim_service.submit(claim.claim_id, owner_id)

        result = claim_service.act(claim.claim_id, admin_id, ApprovalAction.APPROVED)

        assert result.claim.status == ClaimStatus.SUBMITTED
        assert result.claim.current_approver_id == approver_a
        assert result.claim.history[-1].actor_id == admin_id

    def test_admin_can_reject(self, claim_service, new_claim, owner_id, a_then_b, admin_id):
        claim = new_claim()
        claim_service.submit(claim.claim_id, owner_id)

        result = claim_service.act(claim.claim_id, admin_id, ApprovalAction.REJECTED)

        assert result.claim.status == ClaimStatus.REJECTED

    def test_act_on_draft(self, claim_service, new_claim, admin_id):
        claim = new_claim()
        with pytest.raises(InvalidTransitionError) as exc_info:
            claim_service.act(claim.claim_id, admin_id, ApprovalAction.APPROVED)
        assert exc_info.value.operation == "approve"

    @pytest.mark.parametrize("action", ["escalate", "submitted", ApprovalAction.SUBMITTED])
    def test_invalid_action(self, claim_service, action):
        with pytest.raises(InvalidActionError):
            claim_service.act(uuid4(), uuid4(), action)

    def test_stale_expected_version(
        self, claim_service, new_claim, owner_id, a_then_b, approver_a,
    ):
        claim = new_claim()
        claim_service.submit(claim.claim_id, owner_id)
        with pytest.raises(ConflictError):
            claim_service.act(
                claim.claim_id, approver_a, ApprovalAction.APPROVED, expected_version=1,
            )


# ---------------------------------------------------------------------------
# Stuck policies
# ---------------------------------------------------------------------------


class TestStuckPolicy:

    @pytest.fixture
    def stuck_service(self, make_service, owner_id, approver_a, approver_b):
        # Threshold above 100% can never be met by the listed approvers.
        policy = sequential_policy(owner_id, approver_a, approver_b, pct="150")
        return make_service(policies=UncheckedPolicyStore(policy))

    def _exhaust(self, service, claim, owner_id, approver_a, approver_b):
        service.submit(claim.claim_id, owner_id)
        service.act(claim.claim_id, approver_a, ApprovalAction.APPROVED)
        return service.act(claim.claim_id, approver_b, ApprovalAction.APPROVED)

    def test_act_flags_stuck_claim(
        self, stuck_service, new_claim, owner_id, approver_a, approver_b, captured_logs,
    ):
        result = self._exhaust(stuck_service, new_claim(), owner_id, approver_a, approver_b)

        assert result.policy_stuck
        assert result.claim.status == ClaimStatus.SUBMITTED
        assert result.claim.current_approver_id == approver_b

        stuck_logs = [r for r in captured_logs() if r["message"] == "approval_policy_stuck"]
        assert stuck_logs[0]["observability_event"] == "policy_stuck"
        assert stuck_logs[0]["current_approver_id"] == str(approver_b)

    def test_diagnose_and_find(
        self, stuck_service, new_claim, owner_id, company_id, approver_a, approver_b,
    ):
        claim = new_claim()
        self._exhaust(stuck_service, claim, owner_id, approver_a, approver_b)

        diagnosis = stuck_service.diagnose(claim.claim_id)
        assert diagnosis.is_stuck
        assert diagnosis.has_policy
        assert diagnosis.expected_approver_id is None

        found = stuck_service.find_stuck_claims(company_id)
        assert [d.claim.claim_id for d in found] == [claim.claim_id]

    def test_healthy_claims_not_reported(
        self, claim_service, new_claim, owner_id, company_id, a_then_b, approver_a,
    ):
        claim = new_claim()
        claim_service.submit(claim.claim_id, owner_id)

        diagnosis = claim_service.diagnose(claim.claim_id)

        assert not diagnosis.is_stuck
        assert diagnosis.expected_approver_id == approver_a
        assert claim_service.find_stuck_claims(company_id) == []

    def test_diagnose_draft_has_no_verdict(self, claim_service, new_claim):
        diagnosis = claim_service.diagnose(new_claim().claim_id)
        assert diagnosis.verdict is None
        assert not diagnosis.is_stuck


# ---------------------------------------------------------------------------
# Reads
# ---------------------------------------------------------------------------


class TestGetClaim:

    def test_visibility(
        self, claim_service, new_claim, owner_id, admin_id, a_then_b,
        approver_a, approver_b,
    ):
        claim = new_claim()
        claim_service.submit(claim.claim_id, owner_id)

        assert claim_service.get_claim(claim.claim_id, owner_id)
        assert claim_service.get_claim(claim.claim_id, admin_id)
        assert claim_service.get_claim(claim.claim_id, approver_a)
        with pytest.raises(AuthorizationError):
            claim_service.get_claim(claim.claim_id, approver_b)

        claim_service.act(claim.claim_id, approver_a, ApprovalAction.APPROVED)
        # A stays visible through the history, B is now current.
        assert claim_service.get_claim(claim.claim_id, approver_a)
        assert claim_service.get_claim(claim.claim_id, approver_b)

    def test_stranger_denied(self, claim_service, new_claim):
        claim = new_claim()
        with pytest.raises(AuthorizationError) as exc_info:
            claim_service.get_claim(claim.claim_id, uuid4())
        assert exc_info.value.operation == "view"


class TestListClaims:

    @pytest.fixture
    def populated(
        self, service_with_default, new_claim, owner_id, default_approver,
        deterministic_clock,
    ):
        """Draft 100 USD, pending 10 EUR, rejected 160 INR, oldest first."""
        draft = new_claim(amount="100", currency="USD")
        deterministic_clock.advance(60)
        pending = new_claim(amount="10", currency="EUR")
        service_with_default.submit(pending.claim_id, owner_id)
        deterministic_clock.advance(60)
        rejected = new_claim(amount="160", currency="INR")
        service_with_default.submit(rejected.claim_id, owner_id)
        service_with_default.act(rejected.claim_id, default_approver, ApprovalAction.REJECTED)
        return draft, pending, rejected

    def test_owner_sees_own_claims_newest_first(
        self, service_with_default, populated, owner_id, company_id,
    ):
        draft, pending, rejected = populated

        listing = service_with_default.list_claims(owner_id, company_id)

        assert [c.claim_id for c in listing.claims] == [
            rejected.claim_id, pending.claim_id, draft.claim_id,
        ]
        totals = listing.totals
        assert totals.currency == "USD"
        assert totals.total_for(ClaimStatus.DRAFT) == Decimal("100.00")
        assert totals.total_for(ClaimStatus.SUBMITTED) == Decimal("20.00")
        assert totals.total_for(ClaimStatus.REJECTED) == Decimal("2.00")
        assert totals.total_for(ClaimStatus.APPROVED) == Decimal("0.00")

    def test_totals_in_requested_currency(
        self, service_with_default, populated, owner_id, company_id,
    ):
        listing = service_with_default.list_claims(owner_id, company_id, currency="EUR")
        assert listing.totals.currency == "EUR"
        assert listing.totals.total_for(ClaimStatus.DRAFT) == Decimal("50.00")
        assert listing.totals.total_for(ClaimStatus.SUBMITTED) == Decimal("10.00")

    def test_status_filter(self, service_with_default, populated, owner_id, company_id):
        _, pending, _ = populated
        listing = service_with_default.list_claims(
            owner_id, company_id, status=ClaimStatus.SUBMITTED,
        )
        assert [c.claim_id for c in listing.claims] == [pending.claim_id]

    def test_approver_sees_pending_and_acted_on(
        self, service_with_default, populated, default_approver, company_id,
    ):
        _, pending, rejected = populated

        listing = service_with_default.list_claims(default_approver, company_id)

        assert {c.claim_id for c in listing.claims} == {
            pending.claim_id, rejected.claim_id,
        }

    def test_admin_sees_whole_company(
        self, service_with_default, populated, admin_id, company_id,
    ):
        other = service_with_default.create_claim(uuid4(), company_id, "5", "USD")

        listing = service_with_default.list_claims(admin_id, company_id)

        assert len(listing.claims) == 4
        assert other.claim_id in {c.claim_id for c in listing.claims}

    def test_other_company_hidden(self, service_with_default, populated, owner_id):
        listing = service_with_default.list_claims(owner_id, uuid4())
        assert listing.claims == ()


class TestApprovalStats:

    def test_pending_and_decided_today(
        self, service_with_default, new_claim, owner_id, company_id,
        default_approver,
    ):
        pending_usd = new_claim(amount="30", currency="USD")
        pending_eur = new_claim(amount="10", currency="EUR")
        approved = new_claim(amount="1", currency="USD")
        rejected = new_claim(amount="1", currency="USD")
        for claim in (pending_usd, pending_eur, approved, rejected):
            service_with_default.submit(claim.claim_id, owner_id)
        service_with_default.act(approved.claim_id, default_approver, ApprovalAction.APPROVED)
        service_with_default.act(rejected.claim_id, default_approver, ApprovalAction.REJECTED)

        stats = service_with_default.approval_stats(default_approver, company_id)

        assert stats.pending_count == 2
        assert stats.pending_amount == Decimal("50.00")
        assert stats.currency == "USD"
        assert stats.approved_today == 1
        assert stats.rejected_today == 1

    def test_yesterdays_decisions_not_counted(
        self, service_with_default, new_claim, owner_id, company_id,
        default_approver, deterministic_clock,
    ):
        claim = new_claim()
        service_with_default.submit(claim.claim_id, owner_id)
        service_with_default.act(claim.claim_id, default_approver, ApprovalAction.APPROVED)

        stats = service_with_default.approval_stats(
            default_approver, company_id,
            as_of=deterministic_clock.now() + timedelta(days=1),
        )

        assert stats.approved_today == 0
        assert stats.pending_count == 0
        assert stats.pending_amount == Decimal("0.00")


class TestClaimAnalytics:

    @pytest.fixture
    def spending(self, service_with_default, new_claim, owner_id, default_approver):
        """Clock sits at 2024-01-01; rates: 1 EUR = 2 USD, 80 INR = 1 USD."""
        draft = new_claim(
            amount="100", currency="USD", category="Travel",
            expense_date=date(2024, 1, 5),
        )
        pending = new_claim(
            amount="10", currency="EUR", category=" Travel ",
            expense_date=date(2023, 12, 20),
        )
        rejected = new_claim(
            amount="160", currency="INR", category="Meals",
            expense_date=date(2023, 6, 1),
        )
        approved = new_claim(amount="30", currency="USD", category="Meals")
        for claim in (pending, rejected, approved):
            service_with_default.submit(claim.claim_id, owner_id)
        service_with_default.act(rejected.claim_id, default_approver, ApprovalAction.REJECTED)
        service_with_default.act(approved.claim_id, default_approver, ApprovalAction.APPROVED)
        return draft, pending, rejected, approved

    def test_owner_breakdown(self, service_with_default, spending, owner_id, company_id):
        analytics = service_with_default.claim_analytics(owner_id, company_id)

        assert analytics.currency == "USD"
        assert analytics.claim_count == 4
        assert analytics.total_amount == Decimal("152.00")
        assert analytics.approved_amount == Decimal("30.00")
        assert analytics.pending_amount == Decimal("20.00")
        assert analytics.average_amount == Decimal("38.00")
        assert [(c.name, c.amount, c.count, c.percentage) for c in analytics.categories] == [
            ("Travel", Decimal("120.00"), 2, Decimal("78.9")),
            ("Meals", Decimal("32.00"), 2, Decimal("21.1")),
        ]
        assert analytics.top_spenders == ()

    def test_monthly_window(self, service_with_default, spending, owner_id, company_id):
        monthly = service_with_default.claim_analytics(owner_id, company_id).monthly

        assert [m.month for m in monthly] == [
            date(2023, 8, 1), date(2023, 9, 1), date(2023, 10, 1),
            date(2023, 11, 1), date(2023, 12, 1), date(2024, 1, 1),
        ]
        december, january = monthly[-2], monthly[-1]
        assert (december.amount, december.count, december.pending) == (Decimal("20.00"), 1, 1)
        assert (january.amount, january.count, january.approved) == (Decimal("130.00"), 2, 1)
        # The June claim is older than the window.
        assert sum(m.count for m in monthly) == 3
        assert all(m.amount == Decimal("0.00") for m in monthly[:4])

    def test_window_crosses_year_boundary(
        self, service_with_default, spending, owner_id, company_id,
    ):
        analytics = service_with_default.claim_analytics(
            owner_id, company_id, months=3,
            as_of=datetime(2024, 2, 15, tzinfo=timezone.utc),
        )
        assert [m.month for m in analytics.monthly] == [
            date(2023, 12, 1), date(2024, 1, 1), date(2024, 2, 1),
        ]
        assert analytics.monthly[-1].count == 0

    def test_requested_currency(self, service_with_default, spending, owner_id, company_id):
        analytics = service_with_default.claim_analytics(owner_id, company_id, currency="EUR")
        assert analytics.currency == "EUR"
        assert analytics.total_amount == Decimal("76.00")

    def test_one_lookup_per_source_currency(
        self, service_with_default, spending, owner_id, company_id, rate_provider,
    ):
        rate_provider.calls.clear()
        service_with_default.claim_analytics(owner_id, company_id)
        assert sorted(rate_provider.calls) == ["EUR", "INR"]

    def test_approver_sees_only_claims_they_handled(
        self, service_with_default, spending, default_approver, company_id,
    ):
        analytics = service_with_default.claim_analytics(default_approver, company_id)

        assert analytics.claim_count == 3
        assert analytics.total_amount == Decimal("52.00")
        assert analytics.top_spenders == ()

    def test_admin_gets_top_spenders(
        self, service_with_default, spending, admin_id, owner_id, company_id,
    ):
        big_spender = uuid4()
        service_with_default.create_claim(big_spender, company_id, "500", "USD")

        analytics = service_with_default.claim_analytics(admin_id, company_id)

        assert analytics.claim_count == 5
        assert [(s.owner_id, s.amount, s.count) for s in analytics.top_spenders] == [
            (big_spender, Decimal("500.00"), 1),
            (owner_id, Decimal("152.00"), 4),
        ]

    def test_no_claims(self, service_with_default, owner_id, company_id):
        analytics = service_with_default.claim_analytics(owner_id, company_id)

        assert analytics.claim_count == 0
        assert analytics.total_amount == Decimal("0.00")
        assert analytics.average_amount == Decimal("0.00")
        assert analytics.categories == ()
        assert len(analytics.monthly) == 6

    def test_months_must_be_positive(self, service_with_default, owner_id, company_id):
        with pytest.raises(ValueError, match="months"):
            service_with_default.claim_analytics(owner_id, company_id, months=0)

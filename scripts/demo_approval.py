#!/usr/bin/env python3
"""
Walk one expense claim through a sequential two-approver policy.

Creates a throwaway SQLite database, binds a policy (approvers A then B,
100% threshold) to an employee, and runs: create -> submit -> A approves
-> B approves.  Rates come from a fixed in-process table, so the demo
needs no network.

Usage:
    python3 scripts/demo_approval.py
    python3 scripts/demo_approval.py --db /tmp/demo.db --json-logs
"""

import argparse
import logging
import sys
import tempfile
from decimal import Decimal
from pathlib import Path
from uuid import uuid4

# Add project root to path
ROOT = Path(__file__).resolve().parent.parent
sys.path.insert(0, str(ROOT))

from sqlalchemy.orm import sessionmaker

from reimburse_kernel.db.engine import build_engine, create_tables
from reimburse_kernel.domain.claim import ApprovalAction
from reimburse_kernel.domain.policy import ApprovalPolicy, PolicyApprover
from reimburse_kernel.logging_config import configure_logging
from reimburse_kernel.services.claim_repository import SqlClaimRepository
from reimburse_services.claim_service import ClaimService
from reimburse_services.currency_normalizer import CurrencyNormalizer
from reimburse_services.directory import InMemoryPolicyStore, StaticIdentityProvider
from reimburse_services.exchange_rate_cache import FALLBACK_RATES, ExchangeRateCache


class FixedRateProvider:
    """Serves the fallback table as if it were live."""

    def fetch_rates(self, base_currency):
        pivot = FALLBACK_RATES[base_currency]
        return {code: rate / pivot for code, rate in FALLBACK_RATES.items()}


def _show(label, result):
    claim = result.claim
    approver = claim.current_approver_id or "-"
    print(f"{label:<14} status={claim.status.value:<9} approver={approver}  ({result.reason})")


def main() -> int:
    parser = argparse.ArgumentParser(description="Sequential approval demo")
    parser.add_argument("--db", type=Path, default=None, help="SQLite file (default: temp)")
    parser.add_argument("--json-logs", action="store_true", help="Emit JSON logs on stderr")
    args = parser.parse_args()

    if args.json_logs:
        configure_logging(level=logging.INFO)

    db_path = args.db or Path(tempfile.mkdtemp()) / "demo.db"
    engine = build_engine(f"sqlite:///{db_path}")
    create_tables(engine)

    company, employee, approver_a, approver_b = uuid4(), uuid4(), uuid4(), uuid4()
    policies = InMemoryPolicyStore([
        ApprovalPolicy(
            subject_id=employee,
            company_id=company,
            approvers=(
                PolicyApprover(approver_a, sequence=1),
                PolicyApprover(approver_b, sequence=2),
            ),
            is_sequential=True,
            min_approval_percentage=Decimal("100"),
            description="Two-step finance sign-off",
        ),
    ])

    with ExchangeRateCache(FixedRateProvider()) as cache:
        service = ClaimService(
            repository=SqlClaimRepository(sessionmaker(bind=engine, expire_on_commit=False)),
            policies=policies,
            identity=StaticIdentityProvider(),
            normalizer=CurrencyNormalizer(cache),
            reporting_currency="USD",
        )

        claim = service.create_claim(
            employee, company, Decimal("120.50"), "EUR",
            description="Client dinner", category="Meals",
        )
        print(f"created        claim={claim.claim_id} {claim.amount} {claim.currency}")

        _show("submitted", service.submit(claim.claim_id, employee))
        _show("A approved", service.act(claim.claim_id, approver_a, ApprovalAction.APPROVED))
        _show("B approved", service.act(claim.claim_id, approver_b, ApprovalAction.APPROVED))

        listing = service.list_claims(employee, company)
        print("\nTotals (USD):")
        for status, total in listing.totals.totals.items():
            print(f"  {status.value:<10} {total}")

    print(f"\nDatabase: {db_path}")
    return 0


if __name__ == "__main__":
    sys.exit(main())

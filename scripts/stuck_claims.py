#!/usr/bin/env python3
"""
List SUBMITTED claims whose approval policy can no longer progress.

A stuck claim keeps its current approver but the engine has nobody left to
ask; the fix is to repair the subject's policy in configuration.

Usage:
    python3 scripts/stuck_claims.py --config prod.yaml COMPANY_ID
    python3 scripts/stuck_claims.py --config prod.yaml COMPANY_ID --create-tables
"""

import argparse
import sys
from pathlib import Path
from uuid import UUID

# Add project root to path
ROOT = Path(__file__).resolve().parent.parent
sys.path.insert(0, str(ROOT))

from reimburse_config import get_active_config
from reimburse_kernel.db.engine import create_tables, get_session_factory, init_engine_from_url
from reimburse_kernel.logging_config import configure_logging
from reimburse_services.claim_service import build_claim_service


def main() -> int:
    parser = argparse.ArgumentParser(description="Report policy-stuck claims")
    parser.add_argument("company_id", type=UUID)
    parser.add_argument("--config", type=Path, default=None, help="YAML config override")
    parser.add_argument("--create-tables", action="store_true", help="Create missing tables")
    args = parser.parse_args()

    config = get_active_config(args.config)
    configure_logging(level=config.log_level)

    db = config.database
    engine = init_engine_from_url(
        db.url, echo=db.echo, sqlite_busy_timeout=db.sqlite_busy_timeout,
    )
    if args.create_tables:
        create_tables(engine)

    service = build_claim_service(get_session_factory(), config_path=args.config)
    stuck = service.find_stuck_claims(args.company_id)

    if not stuck:
        print("No stuck claims.")
        return 0

    for diagnosis in stuck:
        claim = diagnosis.claim
        print(
            f"{claim.claim_id}  owner={claim.owner_id}  "
            f"approver={claim.current_approver_id}  "
            f"{claim.amount} {claim.currency}  -- {diagnosis.verdict.reason}"
        )
    return 1


if __name__ == "__main__":
    sys.exit(main())

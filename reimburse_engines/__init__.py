"""
Pure calculation engines for the reimbursement core.

Engines take frozen domain values and return frozen results.  They never
touch the database, the clock, or the network.
"""

from reimburse_engines.approval import (
    RESOLUTION_RULES,
    Verdict,
    evaluate_auto_approval,
    initial_approver,
    required_approvals,
    resolve_approval,
)
from reimburse_engines.tracer import compute_input_fingerprint, traced_engine

__all__ = [
    "RESOLUTION_RULES",
    "Verdict",
    "compute_input_fingerprint",
    "evaluate_auto_approval",
    "initial_approver",
    "required_approvals",
    "resolve_approval",
    "traced_engine",
]

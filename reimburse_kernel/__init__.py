"""
Reimbursement Kernel

The decision core of the expense-reimbursement workflow:
- Claim lifecycle state machine with optimistic concurrency
- Immutable, append-only approval history
- Typed exceptions and structured JSON logging
"""

__version__ = "0.1.0"

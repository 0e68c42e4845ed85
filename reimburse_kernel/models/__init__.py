"""SQLAlchemy ORM models. Importing this package registers every table."""

from reimburse_kernel.models.claim import ApprovalEventModel, ClaimModel

__all__ = [
    "ApprovalEventModel",
    "ClaimModel",
]

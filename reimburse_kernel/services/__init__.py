"""Kernel services - persistence-facing implementations of domain protocols."""

from reimburse_kernel.services.claim_repository import SqlClaimRepository

__all__ = ["SqlClaimRepository"]

"""
Collaborator protocols consumed by the approval core.

The kernel never reaches into a database, directory service, or HTTP API
directly; it receives implementations of these protocols by constructor
injection.  Concrete implementations live in ``reimburse_kernel.services``
(SQL repository) and ``reimburse_services`` (HTTP rate provider, in-memory
policy store and identity provider).
"""

from __future__ import annotations

from decimal import Decimal
from typing import Protocol
from uuid import UUID

from reimburse_kernel.domain.claim import Claim, ClaimStatus
from reimburse_kernel.domain.policy import ApprovalPolicy


class PolicyStore(Protocol):
    """Looks up the approval policy bound to a subject employee."""

    def find_policy(self, subject_id: UUID) -> ApprovalPolicy | None:
        """Return the bound policy, or None when no policy exists."""
        ...


class IdentityProvider(Protocol):
    """Authorization and company-wide fallback approver lookups."""

    def is_admin(self, actor_id: UUID, company_id: UUID) -> bool:
        ...

    def default_approver(self, company_id: UUID) -> UUID | None:
        """Fallback approver used when no policy names anyone."""
        ...


class RateProvider(Protocol):
    """Outbound exchange-rate source with a short, bounded timeout."""

    def fetch_rates(self, base_currency: str) -> dict[str, Decimal]:
        """Return ``{currency: rate}`` for one unit of ``base_currency``.

        Raises:
            RateProviderError: on any transport or payload failure.
        """
        ...


class ClaimRepository(Protocol):
    """Claim persistence with optimistic-concurrency support.

    Every read returns a ``Claim`` carrying its ``version``.  ``save`` and
    ``delete`` fail with ``ConflictError`` if that version is stale.
    """

    def get(self, claim_id: UUID) -> Claim:
        ...

    def add(self, claim: Claim) -> Claim:
        ...

    def save(self, claim: Claim) -> Claim:
        """Persist ``claim`` if its version is current; return it with version+1."""
        ...

    def delete(self, claim: Claim) -> None:
        ...

    def list_for_company(
        self,
        company_id: UUID,
        owner_id: UUID | None = None,
        status: ClaimStatus | None = None,
    ) -> list[Claim]:
        ...

    def list_pending_for_approver(self, approver_id: UUID, company_id: UUID) -> list[Claim]:
        ...

    def list_acted_on_by(self, actor_id: UUID, company_id: UUID) -> list[Claim]:
        """Claims whose history contains an approve/reject by ``actor_id``."""
        ...

"""
reimburse_kernel.services.claim_repository -- SQLAlchemy claim persistence.

Responsibility:
    Load and store ``Claim`` snapshots with their append-only approval
    history.  Implements the ``ClaimRepository`` protocol.

Architecture position:
    Kernel > Services.  May import from domain/, models/, db/.

Invariants enforced:
    CL-3 -- History is append-only: ``save`` inserts only the events past
            the persisted count and refuses a shorter history.
    CL-4 -- Optimistic concurrency: ``save``/``delete`` are conditional on
            the version that was read.  Exactly one of two racing writers
            succeeds; the other gets ``ConflictError``.

Failure modes:
    - ClaimNotFoundError if the claim id does not exist.
    - ConflictError if the stored version differs from the claim's.
    - ImmutabilityViolationError if a save would drop persisted history.
    - Any failure rolls the transaction back (``session_scope``).
"""

from __future__ import annotations

from dataclasses import replace
from uuid import UUID

from sqlalchemy import delete, func, select, update
from sqlalchemy.orm import Session, sessionmaker

from reimburse_kernel.db.engine import session_scope
from reimburse_kernel.domain.claim import ApprovalAction, Claim, ClaimStatus
from reimburse_kernel.exceptions import (
    ClaimNotFoundError,
    ConflictError,
    ImmutabilityViolationError,
)
from reimburse_kernel.logging_config import get_logger
from reimburse_kernel.models.claim import ApprovalEventModel, ClaimModel

logger = get_logger("kernel.claim_repository")


class SqlClaimRepository:
    """Claim repository backed by a SQLAlchemy session factory.

    Each call runs in its own transaction.
    """

    def __init__(self, session_factory: sessionmaker[Session]):
        self._session_factory = session_factory

    # ------------------------------------------------------------------
    # Single-claim operations
    # ------------------------------------------------------------------

    def get(self, claim_id: UUID) -> Claim:
        with session_scope(self._session_factory) as session:
            model = session.get(ClaimModel, claim_id)
            if model is None:
                raise ClaimNotFoundError(str(claim_id))
            return model.to_dto()

    def add(self, claim: Claim) -> Claim:
        with session_scope(self._session_factory) as session:
            session.add(ClaimModel.from_dto(claim))
            session.flush()
            for position, event in enumerate(claim.history):
                session.add(ApprovalEventModel.from_dto(claim.claim_id, position, event))

        logger.debug("claim_inserted", extra={"claim_id": str(claim.claim_id)})
        return replace(claim, version=1)

    def save(self, claim: Claim) -> Claim:
        with session_scope(self._session_factory) as session:
            result = session.execute(
                update(ClaimModel)
                .where(
                    ClaimModel.id == claim.claim_id,
                    ClaimModel.version == claim.version,
                )
                .values(
                    amount=claim.amount,
                    currency=claim.currency,
                    status=claim.status.value,
                    current_approver_id=claim.current_approver_id,
                    description=claim.description,
                    category=claim.category,
                    expense_date=claim.expense_date,
                    paid_by=claim.paid_by,
                    remarks=claim.remarks,
                    submitted_at=claim.submitted_at,
                    decided_at=claim.decided_at,
                    rejection_reason=claim.rejection_reason,
                    version=ClaimModel.version + 1,
                )
                .execution_options(synchronize_session=False)
            )
            if result.rowcount == 0:
                self._raise_write_miss(session, claim)

            persisted = session.scalar(
                select(func.count())
                .select_from(ApprovalEventModel)
                .where(ApprovalEventModel.claim_id == claim.claim_id)
            )
            if persisted > len(claim.history):
                raise ImmutabilityViolationError(
                    entity_type="Claim",
                    entity_id=str(claim.claim_id),
                    reason=(
                        f"history has {persisted} persisted events but the "
                        f"update carries {len(claim.history)}"
                    ),
                )
            for position in range(persisted, len(claim.history)):
                session.add(ApprovalEventModel.from_dto(
                    claim.claim_id, position, claim.history[position],
                ))

        logger.debug(
            "claim_saved",
            extra={"claim_id": str(claim.claim_id), "version": claim.version + 1},
        )
        return replace(claim, version=claim.version + 1)

    def delete(self, claim: Claim) -> None:
        """Delete a DRAFT claim at the version that was read."""
        with session_scope(self._session_factory) as session:
            result = session.execute(
                delete(ClaimModel)
                .where(
                    ClaimModel.id == claim.claim_id,
                    ClaimModel.version == claim.version,
                    ClaimModel.status == ClaimStatus.DRAFT.value,
                )
                .execution_options(synchronize_session=False)
            )
            if result.rowcount == 0:
                self._raise_write_miss(session, claim)

        logger.debug("claim_deleted", extra={"claim_id": str(claim.claim_id)})

    @staticmethod
    def _raise_write_miss(session: Session, claim: Claim) -> None:
        stored = session.scalar(
            select(ClaimModel.version).where(ClaimModel.id == claim.claim_id)
        )
        if stored is None:
            raise ClaimNotFoundError(str(claim.claim_id))
        raise ConflictError(str(claim.claim_id), claim.version)

    # ------------------------------------------------------------------
    # Queries
    # ------------------------------------------------------------------

    def list_for_company(
        self,
        company_id: UUID,
        owner_id: UUID | None = None,
        status: ClaimStatus | None = None,
    ) -> list[Claim]:
        stmt = select(ClaimModel).where(ClaimModel.company_id == company_id)
        if owner_id is not None:
            stmt = stmt.where(ClaimModel.owner_id == owner_id)
        if status is not None:
            stmt = stmt.where(ClaimModel.status == status.value)
        return self._fetch(stmt)

    def list_pending_for_approver(self, approver_id: UUID, company_id: UUID) -> list[Claim]:
        stmt = select(ClaimModel).where(
            ClaimModel.company_id == company_id,
            ClaimModel.status == ClaimStatus.SUBMITTED.value,
            ClaimModel.current_approver_id == approver_id,
        )
        return self._fetch(stmt)

    def list_acted_on_by(self, actor_id: UUID, company_id: UUID) -> list[Claim]:
        acted = select(ApprovalEventModel.claim_id).where(
            ApprovalEventModel.actor_id == actor_id,
            ApprovalEventModel.action.in_(
                [ApprovalAction.APPROVED.value, ApprovalAction.REJECTED.value]
            ),
        )
        stmt = select(ClaimModel).where(
            ClaimModel.company_id == company_id,
            ClaimModel.id.in_(acted),
        )
        return self._fetch(stmt)

    def _fetch(self, stmt) -> list[Claim]:
        stmt = stmt.order_by(ClaimModel.created_at, ClaimModel.id)
        with session_scope(self._session_factory) as session:
            return [model.to_dto() for model in session.scalars(stmt)]

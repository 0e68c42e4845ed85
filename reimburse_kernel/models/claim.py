"""
Module: reimburse_kernel.models.claim
Responsibility: ORM persistence for expense claims and their approval history.

Architecture position: Kernel > Models.  May import from db/base.py and
    exceptions only.

Invariants enforced:
    CL-1 -- DB check constraint limits status values.
    CL-2 -- DB check constraint: current_approver_id is NULL unless submitted.
    CL-3 -- Approval events are append-only: ORM before_update/before_delete
            listeners raise ImmutabilityViolationError.
    CL-4 -- ``version`` is the optimistic-concurrency token; the repository
            only updates a row whose stored version matches the one read.

Failure modes:
    - IntegrityError on a status/approver combination the constraints reject.
    - ImmutabilityViolationError on approval event UPDATE/DELETE.
"""

from __future__ import annotations

from datetime import date, datetime, timezone
from decimal import Decimal
from typing import TYPE_CHECKING
from uuid import UUID

from sqlalchemy import (
    CheckConstraint,
    Date,
    DateTime,
    ForeignKey,
    Index,
    Integer,
    Numeric,
    String,
    Text,
    UniqueConstraint,
    event,
)
from sqlalchemy.orm import Mapped, mapped_column, relationship

from reimburse_kernel.db.base import Base, UUIDString
from reimburse_kernel.exceptions import ImmutabilityViolationError

if TYPE_CHECKING:
    from reimburse_kernel.domain.claim import ApprovalEvent, Claim


def _as_utc(value: datetime | None) -> datetime | None:
    """SQLite drops tzinfo on DateTime(timezone=True); stored values are UTC."""
    if value is None or value.tzinfo is not None:
        return value
    return value.replace(tzinfo=timezone.utc)


class ClaimModel(Base):
    """Persistent expense claim.

    Contract:
        Status transitions are lifecycle-constrained by the claim service.
        The row is only ever updated through a version-checked UPDATE.
    """

    __tablename__ = "expense_claims"

    __table_args__ = (
        CheckConstraint(
            "status IN ('draft', 'submitted', 'approved', 'rejected')",
            name="ck_expense_claims_valid_status",
        ),
        CheckConstraint(
            "current_approver_id IS NULL OR status = 'submitted'",
            name="ck_expense_claims_approver_only_when_submitted",
        ),
        CheckConstraint("amount > 0", name="ck_expense_claims_positive_amount"),
        Index("ix_expense_claims_company_owner", "company_id", "owner_id"),
        Index(
            "ix_expense_claims_pending_approver",
            "company_id", "current_approver_id", "status",
        ),
    )

    owner_id: Mapped[UUID] = mapped_column(UUIDString(), nullable=False)
    company_id: Mapped[UUID] = mapped_column(UUIDString(), nullable=False)
    amount: Mapped[Decimal] = mapped_column(Numeric(38, 9), nullable=False)
    currency: Mapped[str] = mapped_column(String(3), nullable=False)
    status: Mapped[str] = mapped_column(String(20), nullable=False, default="draft")
    current_approver_id: Mapped[UUID | None] = mapped_column(
        UUIDString(), nullable=True,
    )
    description: Mapped[str] = mapped_column(Text, default="", nullable=False)
    category: Mapped[str] = mapped_column(String(100), default="Other", nullable=False)
    expense_date: Mapped[date | None] = mapped_column(Date, nullable=True)
    paid_by: Mapped[str] = mapped_column(String(50), default="employee", nullable=False)
    remarks: Mapped[str] = mapped_column(Text, default="", nullable=False)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
    submitted_at: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True), nullable=True,
    )
    decided_at: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True), nullable=True,
    )
    rejection_reason: Mapped[str | None] = mapped_column(Text, nullable=True)
    version: Mapped[int] = mapped_column(Integer, nullable=False, default=1)

    events: Mapped[list["ApprovalEventModel"]] = relationship(
        "ApprovalEventModel",
        back_populates="claim",
        order_by="ApprovalEventModel.position",
        lazy="selectin",
    )

    def __repr__(self) -> str:
        return f"<Claim {self.id} status={self.status} v{self.version}>"

    def to_dto(self) -> Claim:
        """Convert ORM model to frozen domain DTO."""
        from reimburse_kernel.domain.claim import Claim as ClaimDTO, ClaimStatus

        return ClaimDTO(
            claim_id=self.id,
            owner_id=self.owner_id,
            company_id=self.company_id,
            amount=self.amount,
            currency=self.currency,
            status=ClaimStatus(self.status),
            current_approver_id=self.current_approver_id,
            history=tuple(e.to_dto() for e in self.events),
            description=self.description,
            category=self.category,
            expense_date=self.expense_date,
            paid_by=self.paid_by,
            remarks=self.remarks,
            created_at=_as_utc(self.created_at),
            submitted_at=_as_utc(self.submitted_at),
            decided_at=_as_utc(self.decided_at),
            rejection_reason=self.rejection_reason,
            version=self.version,
        )

    @classmethod
    def from_dto(cls, dto: Claim) -> ClaimModel:
        """Create ORM model (without history) from a domain DTO."""
        return cls(
            id=dto.claim_id,
            owner_id=dto.owner_id,
            company_id=dto.company_id,
            amount=dto.amount,
            currency=dto.currency,
            status=dto.status.value,
            current_approver_id=dto.current_approver_id,
            description=dto.description,
            category=dto.category,
            expense_date=dto.expense_date,
            paid_by=dto.paid_by,
            remarks=dto.remarks,
            created_at=dto.created_at,
            submitted_at=dto.submitted_at,
            decided_at=dto.decided_at,
            rejection_reason=dto.rejection_reason,
            version=1,
        )


class ApprovalEventModel(Base):
    """Persistent approval history entry. Append-only.

    ``position`` is the 0-based index in the claim's history; the unique
    constraint makes a double-append of the same slot fail.
    """

    __tablename__ = "approval_events"

    __table_args__ = (
        UniqueConstraint("claim_id", "position", name="uq_approval_events_position"),
        CheckConstraint(
            "action IN ('submitted', 'approved', 'rejected')",
            name="ck_approval_events_valid_action",
        ),
        Index("ix_approval_events_actor", "actor_id", "action"),
    )

    claim_id: Mapped[UUID] = mapped_column(
        UUIDString(),
        ForeignKey("expense_claims.id", ondelete="CASCADE"),
        nullable=False,
    )
    position: Mapped[int] = mapped_column(Integer, nullable=False)
    actor_id: Mapped[UUID] = mapped_column(UUIDString(), nullable=False)
    action: Mapped[str] = mapped_column(String(20), nullable=False)
    comments: Mapped[str] = mapped_column(Text, default="", nullable=False)
    timestamp: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)

    claim: Mapped["ClaimModel"] = relationship("ClaimModel", back_populates="events")

    def __repr__(self) -> str:
        return (
            f"<ApprovalEvent claim={self.claim_id} #{self.position} "
            f"{self.action} by {self.actor_id}>"
        )

    def to_dto(self) -> ApprovalEvent:
        from reimburse_kernel.domain.claim import (
            ApprovalAction,
            ApprovalEvent as ApprovalEventDTO,
        )

        return ApprovalEventDTO(
            actor_id=self.actor_id,
            action=ApprovalAction(self.action),
            timestamp=_as_utc(self.timestamp),
            comments=self.comments,
        )

    @classmethod
    def from_dto(cls, claim_id: UUID, position: int, dto: ApprovalEvent) -> ApprovalEventModel:
        return cls(
            claim_id=claim_id,
            position=position,
            actor_id=dto.actor_id,
            action=dto.action.value,
            comments=dto.comments,
            timestamp=dto.timestamp,
        )


# =============================================================================
# ORM-Level Immutability for History (Append-Only)
# =============================================================================


@event.listens_for(ApprovalEventModel, "before_update")
def prevent_event_update(mapper, connection, target):
    """Prevent updates to approval history records."""
    raise ImmutabilityViolationError(
        entity_type="ApprovalEvent",
        entity_id=f"{target.claim_id}#{target.position}",
        reason="Approval history is append-only -- cannot modify",
    )


@event.listens_for(ApprovalEventModel, "before_delete")
def prevent_event_delete(mapper, connection, target):
    """Prevent deletion of approval history records."""
    raise ImmutabilityViolationError(
        entity_type="ApprovalEvent",
        entity_id=f"{target.claim_id}#{target.position}",
        reason="Approval history is append-only -- cannot delete",
    )

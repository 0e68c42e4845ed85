"""
Typed Exception Hierarchy for the Reimbursement Kernel.

===============================================================================
WHY TYPED EXCEPTIONS
===============================================================================

Callers (HTTP routing, batch jobs, operator scripts) must react to errors
by TYPE, never by parsing message strings:

    try:
        service.act(claim_id, actor_id, ApprovalAction.APPROVED)
    except ConflictError:
        # re-read the claim and retry
        ...
    except AuthorizationError as e:
        api_response(code=e.code, actor=str(e.actor_id))

Every exception therefore carries:
  1. a ``code`` class attribute (machine-readable, API-safe)
  2. structured attributes (not just a message string)

===============================================================================
EXCEPTION HIERARCHY
===============================================================================

    ReimburseError (base)
    |
    +-- ValidationError
    |   +-- InvalidTransitionError
    |   +-- InvalidActionError
    |   +-- InvalidAmountError
    |   +-- InvalidCurrencyError
    |   +-- InvalidPolicyError
    |
    +-- AuthorizationError
    |   +-- NotClaimOwnerError
    |   +-- UnauthorizedApproverError
    |
    +-- ClaimNotFoundError
    |
    +-- ConcurrencyError
    |   +-- ConflictError
    |
    +-- ImmutabilityViolationError
    |
    +-- RateProviderError

===============================================================================
ERROR CODES - QUICK REFERENCE
===============================================================================

Category        | Code                        | When Raised
----------------|-----------------------------|-----------------------------------------
Validation      | INVALID_TRANSITION          | submit on non-draft, act on non-submitted
                | INVALID_ACTION              | act() with an action other than approve/reject
                | INVALID_AMOUNT              | Non-positive or non-decimal amount
                | INVALID_CURRENCY            | Not a registered ISO 4217 code
                | INVALID_POLICY              | Malformed approval policy
----------------|-----------------------------|-----------------------------------------
Authorization   | NOT_CLAIM_OWNER             | Non-owner submits/edits/deletes a claim
                | UNAUTHORIZED_APPROVER       | Actor is neither current approver nor admin
----------------|-----------------------------|-----------------------------------------
Lookup          | CLAIM_NOT_FOUND             | Claim ID doesn't exist
----------------|-----------------------------|-----------------------------------------
Concurrency     | CLAIM_VERSION_CONFLICT      | Stale version token on write (retry)
----------------|-----------------------------|-----------------------------------------
Immutability    | IMMUTABILITY_VIOLATION      | Mutating an appended approval event
----------------|-----------------------------|-----------------------------------------
Rates           | RATE_PROVIDER_FAILURE       | Outbound rate fetch failed (internal only)

ProviderDegraded and PolicyStuck are NOT exceptions: they are operational
conditions reported through structured log events (see
``reimburse_services.observability``) and result flags.
===============================================================================
"""

from __future__ import annotations

from typing import Any


class ReimburseError(Exception):
    """
    Base exception for all reimbursement kernel errors.

    All subclasses must have a `code` class attribute for machine-readable
    error identification.
    """

    code: str = "REIMBURSE_ERROR"


# Validation exceptions


class ValidationError(ReimburseError):
    """Base exception for illegal transitions and malformed input."""

    code: str = "VALIDATION_ERROR"


class InvalidTransitionError(ValidationError):
    """Operation not legal from the claim's current status."""

    code: str = "INVALID_TRANSITION"

    def __init__(self, claim_id: str, current_status: str, operation: str):
        self.claim_id = claim_id
        self.current_status = current_status
        self.operation = operation
        super().__init__(
            f"Cannot {operation} claim {claim_id}: status is {current_status}"
        )


class InvalidActionError(ValidationError):
    """Approver action is not one of approved/rejected."""

    code: str = "INVALID_ACTION"

    def __init__(self, action: str):
        self.action = action
        super().__init__(f"Invalid approver action: '{action}'")


class InvalidAmountError(ValidationError):
    """Claim amount is not a positive decimal."""

    code: str = "INVALID_AMOUNT"

    def __init__(self, amount: Any):
        self.amount = str(amount)
        super().__init__(f"Claim amount must be a positive decimal, got {amount!r}")


class InvalidCurrencyError(ValidationError):
    """Invalid ISO 4217 currency code provided."""

    code: str = "INVALID_CURRENCY"

    def __init__(self, currency: str):
        self.currency = currency
        super().__init__(f"Invalid ISO 4217 currency code: '{currency}'")


class InvalidPolicyError(ValidationError):
    """Approval policy is malformed."""

    code: str = "INVALID_POLICY"

    def __init__(self, subject_id: str, reason: str):
        self.subject_id = subject_id
        self.reason = reason
        super().__init__(f"Invalid approval policy for {subject_id}: {reason}")


# Authorization exceptions


class AuthorizationError(ReimburseError):
    """Actor is not allowed to perform the operation."""

    code: str = "AUTHORIZATION_ERROR"

    def __init__(self, actor_id: str, claim_id: str, operation: str):
        self.actor_id = actor_id
        self.claim_id = claim_id
        self.operation = operation
        super().__init__(
            f"Actor {actor_id} is not authorized to {operation} claim {claim_id}"
        )


class NotClaimOwnerError(AuthorizationError):
    """Only the claim owner may perform this operation."""

    code: str = "NOT_CLAIM_OWNER"


class UnauthorizedApproverError(AuthorizationError):
    """Actor is neither the current approver nor a company administrator."""

    code: str = "UNAUTHORIZED_APPROVER"

    def __init__(self, actor_id: str, claim_id: str, current_approver_id: str | None):
        self.current_approver_id = current_approver_id
        super().__init__(actor_id, claim_id, "act on")


# Lookup exceptions


class ClaimNotFoundError(ReimburseError):
    """Claim with given ID was not found."""

    code: str = "CLAIM_NOT_FOUND"

    def __init__(self, claim_id: str):
        self.claim_id = claim_id
        super().__init__(f"Claim not found: {claim_id}")


# Concurrency exceptions


class ConcurrencyError(ReimburseError):
    """Base exception for concurrency-related errors."""

    code: str = "CONCURRENCY_ERROR"


class ConflictError(ConcurrencyError):
    """Optimistic concurrency conflict: the claim changed since it was read."""

    code: str = "CLAIM_VERSION_CONFLICT"

    def __init__(self, claim_id: str, expected_version: int):
        self.claim_id = claim_id
        self.expected_version = expected_version
        super().__init__(
            f"Claim {claim_id} was modified by another transaction "
            f"(expected version {expected_version}); re-read and retry"
        )


# Immutability exceptions


class ImmutabilityViolationError(ReimburseError):
    """Attempted to modify or delete an immutable record."""

    code: str = "IMMUTABILITY_VIOLATION"

    def __init__(self, entity_type: str, entity_id: str, reason: str):
        self.entity_type = entity_type
        self.entity_id = entity_id
        self.reason = reason
        super().__init__(f"Cannot modify {entity_type} {entity_id}: {reason}")


# Rate provider exceptions


class RateProviderError(ReimburseError):
    """Outbound exchange-rate fetch failed.

    Raised by rate providers only.  The exchange-rate cache absorbs it and
    degrades to stale or fallback data; it never reaches conversion callers.
    """

    code: str = "RATE_PROVIDER_FAILURE"

    def __init__(self, base_currency: str, reason: str):
        self.base_currency = base_currency
        self.reason = reason
        super().__init__(f"Rate fetch for {base_currency} failed: {reason}")

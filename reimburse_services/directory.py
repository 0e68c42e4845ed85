"""
In-memory directory collaborators: approval policies and identities.

``InMemoryPolicyStore`` implements ``PolicyStore`` and
``StaticIdentityProvider`` implements ``IdentityProvider``.  Both are
populated from configuration (see ``reimburse_config``) or directly in
tests.  Policies are validated on the way in, so the engine only ever
sees well-formed ones.
"""

from __future__ import annotations

import threading
from collections.abc import Iterable, Mapping
from uuid import UUID

from reimburse_kernel.domain.policy import ApprovalPolicy, validate_policy
from reimburse_kernel.logging_config import get_logger

logger = get_logger("services.directory")


class InMemoryPolicyStore:
    """Policies keyed by subject employee id."""

    def __init__(self, policies: Iterable[ApprovalPolicy] = ()):
        self._lock = threading.Lock()
        self._policies: dict[UUID, ApprovalPolicy] = {}
        for policy in policies:
            self.put(policy)

    def find_policy(self, subject_id: UUID) -> ApprovalPolicy | None:
        with self._lock:
            return self._policies.get(subject_id)

    def put(self, policy: ApprovalPolicy) -> None:
        """Bind ``policy`` to its subject, replacing any previous binding.

        Raises:
            InvalidPolicyError: the policy is malformed.
        """
        validate_policy(policy)
        with self._lock:
            replaced = policy.subject_id in self._policies
            self._policies[policy.subject_id] = policy
        logger.debug(
            "approval_policy_bound",
            extra={"subject_id": str(policy.subject_id), "replaced": replaced},
        )

    def remove(self, subject_id: UUID) -> None:
        with self._lock:
            self._policies.pop(subject_id, None)

    def __len__(self) -> int:
        with self._lock:
            return len(self._policies)


class StaticIdentityProvider:
    """Fixed admin sets and default approvers per company.

    Args:
        admins: ``{company_id: {admin user ids}}``.
        default_approvers: ``{company_id: user id}`` used when no policy
            names an approver.
    """

    def __init__(
        self,
        admins: Mapping[UUID, Iterable[UUID]] | None = None,
        default_approvers: Mapping[UUID, UUID] | None = None,
    ):
        self._admins: dict[UUID, frozenset[UUID]] = {
            company: frozenset(users) for company, users in (admins or {}).items()
        }
        self._default_approvers: dict[UUID, UUID] = dict(default_approvers or {})

    def is_admin(self, actor_id: UUID, company_id: UUID) -> bool:
        return actor_id in self._admins.get(company_id, frozenset())

    def default_approver(self, company_id: UUID) -> UUID | None:
        return self._default_approvers.get(company_id)

"""
workflow_engines.recipients -- Notification recipient resolution.

Responsibility:
    Turn abstract ``RecipientSpec`` values into concrete user ids for one
    submission, delegating group lookups to a ``UserDirectory``.

Architecture position:
    Engines -- pure calculation layer.  Group lookups go through the
    ``UserDirectory`` protocol; the engine itself holds no state.

Invariants enforced:
    - Unknown recipients are not errors: an unknown user id, an empty
      form field, a non-string field value or a missing approver resolves
      to the empty set.
    - Resolution across the recipients of one rule is a deduplicated
      union.

Failure modes:
    - Exceptions raised by the directory propagate unchanged.
"""

from __future__ import annotations

from collections.abc import Iterable, Mapping
from dataclasses import dataclass, field
from types import MappingProxyType
from typing import Any

from workflow_kernel.domain.collaborators import UserDirectory
from workflow_kernel.domain.workflow import (
    ApproverRecipient,
    BusinessRoleRecipient,
    FieldValueRecipient,
    PermissionRecipient,
    RecipientSpec,
    RoleRecipient,
    SubmitterRecipient,
    UserRecipient,
)


@dataclass(frozen=True)
class RecipientContext:
    """Submission facts a recipient spec may refer to."""

    submitter_id: str
    approver_id: str | None = None
    form_data: Mapping[str, Any] = field(default_factory=dict)

    def __post_init__(self) -> None:
        object.__setattr__(self, "form_data", MappingProxyType(dict(self.form_data)))


def resolve(
    spec: RecipientSpec,
    context: RecipientContext,
    directory: UserDirectory,
) -> frozenset[str]:
    """Resolve one recipient spec to a set of user ids."""
    match spec:
        case UserRecipient(value=user_id):
            if user_id and directory.is_known_user(user_id):
                return frozenset({user_id})
            return frozenset()
        case RoleRecipient(role_id=role_id):
            return frozenset(directory.users_with_role(role_id)) if role_id else frozenset()
        case BusinessRoleRecipient(business_role_id=business_role_id):
            if not business_role_id:
                return frozenset()
            return frozenset(directory.users_with_business_role(business_role_id))
        case PermissionRecipient(permission_code=permission_code):
            if not permission_code:
                return frozenset()
            return frozenset(directory.users_with_permission(permission_code))
        case FieldValueRecipient(value=field_name):
            candidate = context.form_data.get(field_name) if field_name else None
            if isinstance(candidate, str) and candidate and directory.is_known_user(candidate):
                return frozenset({candidate})
            return frozenset()
        case SubmitterRecipient():
            return frozenset({context.submitter_id}) if context.submitter_id else frozenset()
        case ApproverRecipient():
            return frozenset({context.approver_id}) if context.approver_id else frozenset()
    return frozenset()


def resolve_all(
    specs: Iterable[RecipientSpec],
    context: RecipientContext,
    directory: UserDirectory,
) -> tuple[str, ...]:
    """Union of every spec's recipients, ordered by first appearance.

    Ids produced by set-valued lookups are sorted so the order is stable.
    """
    ordered: dict[str, None] = {}
    for spec in specs:
        for user_id in sorted(resolve(spec, context, directory)):
            ordered.setdefault(user_id, None)
    return tuple(ordered)

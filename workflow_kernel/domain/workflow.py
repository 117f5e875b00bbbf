"""
Canonical workflow definition types (``workflow_kernel.domain.workflow``).

Responsibility
--------------
Pure value objects for workflow state machines: states, transitions,
notification rules with their recipient specs, the full authored
``WorkflowDefinition``, the reduced ``WorkflowConfig`` embedded in a form,
and the ``ValidationResult`` the validator returns.

Architecture position
---------------------
**Kernel domain layer** -- pure value objects.  ZERO I/O.  No imports
from ``db/``, ``models/`` or outer layers.

Invariants enforced
-------------------
None.  These types carry shape only; every semantic check lives in
``workflow_engines.validation``.  Every field has a default so that a
partially authored definition can be represented and validated.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import ClassVar, Union


class NotificationPriority(str, Enum):
    """Delivery priority of a transition notification."""

    LOW = "low"
    NORMAL = "normal"
    HIGH = "high"
    CRITICAL = "critical"


class NotificationChannel(str, Enum):
    """Delivery channel of a transition notification."""

    IN_APP = "in_app"
    EMAIL = "email"
    SMS = "sms"
    WEB_PUSH = "web_push"


# =========================================================================
# Recipient specs (tagged union, one variant per wire ``type``)
# =========================================================================


@dataclass(frozen=True)
class UserRecipient:
    """A specific user; ``value`` is the user id."""

    type: ClassVar[str] = "user"
    value: str = ""


@dataclass(frozen=True)
class RoleRecipient:
    """All holders of a global role."""

    type: ClassVar[str] = "role"
    role_id: str = ""


@dataclass(frozen=True)
class BusinessRoleRecipient:
    """All holders of a business role."""

    type: ClassVar[str] = "business_role"
    business_role_id: str = ""


@dataclass(frozen=True)
class PermissionRecipient:
    """All users holding a capability such as ``project:approve``."""

    type: ClassVar[str] = "permission"
    permission_code: str = ""


@dataclass(frozen=True)
class FieldValueRecipient:
    """The user whose id was submitted in form field ``value``."""

    type: ClassVar[str] = "field_value"
    value: str = ""


@dataclass(frozen=True)
class SubmitterRecipient:
    """Whoever submitted the form."""

    type: ClassVar[str] = "submitter"


@dataclass(frozen=True)
class ApproverRecipient:
    """The approver acting on the submission."""

    type: ClassVar[str] = "approver"


RecipientSpec = Union[
    UserRecipient,
    RoleRecipient,
    BusinessRoleRecipient,
    PermissionRecipient,
    FieldValueRecipient,
    SubmitterRecipient,
    ApproverRecipient,
]

RECIPIENT_TYPES: dict[str, type] = {
    cls.type: cls
    for cls in (
        UserRecipient,
        RoleRecipient,
        BusinessRoleRecipient,
        PermissionRecipient,
        FieldValueRecipient,
        SubmitterRecipient,
        ApproverRecipient,
    )
}


# =========================================================================
# Definition model
# =========================================================================


@dataclass(frozen=True)
class NotificationRule:
    """Notification emitted when a transition fires.

    Templates use ``{{variable}}`` placeholders; missing variables render
    as empty strings.
    """

    recipients: tuple[RecipientSpec, ...] = ()
    title_template: str = ""
    body_template: str = ""
    priority: NotificationPriority = NotificationPriority.NORMAL
    channels: frozenset[NotificationChannel] = frozenset({NotificationChannel.IN_APP})


@dataclass(frozen=True)
class State:
    """A lifecycle stage.  ``color`` and ``icon`` are presentation hints."""

    code: str = ""
    name: str = ""
    description: str = ""
    color: str = ""
    icon: str = ""
    is_final: bool = False


@dataclass(frozen=True)
class Transition:
    """A permission-gated edge between two states.

    ``permission`` of ``None`` (or empty) means anyone may invoke it.
    """

    from_state: str = ""
    to_state: str = ""
    action: str = ""
    label: str = ""
    permission: str | None = None
    requires_comment: bool = False
    notifications: tuple[NotificationRule, ...] = ()

    @property
    def display_label(self) -> str:
        return self.label or self.action


@dataclass(frozen=True)
class WorkflowDefinition:
    """A named state machine as authored.

    Contract: frozen.  Validity is decided by ``validate()``, never by
    construction -- an instance may be incomplete.
    """

    code: str = ""
    name: str = ""
    version: str = ""
    description: str = ""
    initial_state: str = ""
    states: tuple[State, ...] = ()
    transitions: tuple[Transition, ...] = ()
    is_active: bool = True

    @property
    def state_codes(self) -> tuple[str, ...]:
        return tuple(s.code for s in self.states)


@dataclass(frozen=True)
class WorkflowConfig:
    """Reduced workflow embedded in a form definition."""

    workflow_code: str = ""
    initial_state: str = ""
    states: tuple[str, ...] = ()
    transitions: tuple[Transition, ...] = ()


@dataclass(frozen=True)
class FormDefinition:
    """A form with its optional embedded workflow.

    Field layout (steps/fields) is owned by the form renderer and is not
    modelled here.
    """

    form_code: str = ""
    title: str = ""
    description: str = ""
    version: str = ""
    module: str = ""
    accessible_verticals: tuple[str, ...] = ()
    workflow: WorkflowConfig | None = None
    is_active: bool = True


# =========================================================================
# Validation result
# =========================================================================


SEVERITY_ERROR = "error"
SEVERITY_WARNING = "warning"


@dataclass(frozen=True)
class Issue:
    """One validation finding.  ``field`` is a dotted/bracketed path."""

    field: str
    message: str
    severity: str = SEVERITY_ERROR


@dataclass(frozen=True)
class ValidationResult:
    """Result of workflow validation.

    Contract: ``valid`` is True only when ``errors`` is empty; warnings
    never block validity.
    """

    errors: tuple[Issue, ...] = ()
    warnings: tuple[Issue, ...] = ()

    @property
    def valid(self) -> bool:
        return len(self.errors) == 0

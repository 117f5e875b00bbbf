"""
Pure domain layer.

Value objects and protocols with NO dependencies on:
- ORM (SQLAlchemy)
- Database
- I/O

All domain objects are immutable and deterministic.
"""

from workflow_kernel.domain.clock import Clock, DeterministicClock, SystemClock
from workflow_kernel.domain.collaborators import NotificationDispatcher, UserDirectory
from workflow_kernel.domain.execution import (
    Actor,
    CommentRequired,
    ExecutionError,
    FormSubmission,
    InvalidTransition,
    NotificationRequest,
    StateConflict,
    TransitionRecord,
    TransitionResult,
    UnauthorizedTransition,
    WorkflowAction,
    WorkflowStats,
)
from workflow_kernel.domain.workflow import (
    RECIPIENT_TYPES,
    ApproverRecipient,
    BusinessRoleRecipient,
    FieldValueRecipient,
    FormDefinition,
    Issue,
    NotificationChannel,
    NotificationPriority,
    NotificationRule,
    PermissionRecipient,
    RecipientSpec,
    RoleRecipient,
    State,
    SubmitterRecipient,
    Transition,
    UserRecipient,
    ValidationResult,
    WorkflowConfig,
    WorkflowDefinition,
)

__all__ = [
    "Clock",
    "DeterministicClock",
    "SystemClock",
    "NotificationDispatcher",
    "UserDirectory",
    "Actor",
    "CommentRequired",
    "ExecutionError",
    "FormSubmission",
    "InvalidTransition",
    "NotificationRequest",
    "StateConflict",
    "TransitionRecord",
    "TransitionResult",
    "UnauthorizedTransition",
    "WorkflowAction",
    "WorkflowStats",
    "RECIPIENT_TYPES",
    "ApproverRecipient",
    "BusinessRoleRecipient",
    "FieldValueRecipient",
    "FormDefinition",
    "Issue",
    "NotificationChannel",
    "NotificationPriority",
    "NotificationRule",
    "PermissionRecipient",
    "RecipientSpec",
    "RoleRecipient",
    "State",
    "SubmitterRecipient",
    "Transition",
    "UserRecipient",
    "ValidationResult",
    "WorkflowConfig",
    "WorkflowDefinition",
]

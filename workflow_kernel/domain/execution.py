"""
Runtime execution types (``workflow_kernel.domain.execution``).

Responsibility
--------------
Pure value objects for applying transitions at runtime: the submission
entity whose state moves, the invoking actor, the typed execution
failures, the transition result, history records and the notification
requests handed to the dispatcher.

Architecture position
---------------------
**Kernel domain layer** -- pure value objects.  ZERO I/O.

Invariants enforced
-------------------
* Execution failures are values, not exceptions: every failure path of
  ``apply`` returns a ``TransitionResult`` whose ``error`` is one of the
  ``ExecutionError`` subclasses below.
* ``TransitionResult.success`` is True iff ``error`` is None.
"""

from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass, field
from datetime import datetime
from types import MappingProxyType
from typing import Any, ClassVar
from uuid import UUID

from workflow_kernel.domain.workflow import NotificationChannel, NotificationPriority


def _frozen_mapping(data: Mapping[str, Any] | None) -> Mapping[str, Any]:
    return MappingProxyType(dict(data or {}))


@dataclass(frozen=True)
class Actor:
    """The principal invoking a transition."""

    user_id: str
    capabilities: frozenset[str] = frozenset()


@dataclass(frozen=True)
class FormSubmission:
    """A form submission whose lifecycle a workflow governs.

    ``version`` is the optimistic-concurrency token; it increases by one on
    every state write.
    """

    submission_id: UUID
    form_code: str
    current_state: str
    submitter_id: str
    form_data: Mapping[str, Any] = field(default_factory=dict)
    form_title: str = ""
    approver_id: str | None = None
    version: int = 0

    def __post_init__(self) -> None:
        object.__setattr__(self, "form_data", _frozen_mapping(self.form_data))


# =========================================================================
# Execution errors (returned, never raised)
# =========================================================================


@dataclass(frozen=True)
class ExecutionError:
    """Base for typed transition failures."""

    code: ClassVar[str] = "EXECUTION_ERROR"
    action: str

    @property
    def message(self) -> str:
        return f"Transition '{self.action}' failed"


@dataclass(frozen=True)
class UnauthorizedTransition(ExecutionError):
    """Actor lacks the capability the transition requires."""

    code: ClassVar[str] = "UNAUTHORIZED_TRANSITION"
    permission: str = ""

    @property
    def message(self) -> str:
        return f"Action '{self.action}' requires permission '{self.permission}'"


@dataclass(frozen=True)
class CommentRequired(ExecutionError):
    """Transition requires a non-empty comment and none was supplied."""

    code: ClassVar[str] = "COMMENT_REQUIRED"

    @property
    def message(self) -> str:
        return f"Action '{self.action}' requires a comment"


@dataclass(frozen=True)
class InvalidTransition(ExecutionError):
    """Transition does not start from the entity's current state."""

    code: ClassVar[str] = "INVALID_TRANSITION"
    current_state: str = ""
    from_state: str = ""

    @property
    def message(self) -> str:
        if self.from_state:
            return (
                f"Action '{self.action}' starts from '{self.from_state}' "
                f"but the submission is in '{self.current_state}'"
            )
        return f"No transition '{self.action}' from state '{self.current_state}'"


@dataclass(frozen=True)
class StateConflict(ExecutionError):
    """Concurrent writers kept winning the compare-and-swap."""

    code: ClassVar[str] = "STATE_CONFLICT"
    submission_id: str = ""
    attempts: int = 0

    @property
    def message(self) -> str:
        return (
            f"Submission {self.submission_id} changed concurrently; "
            f"gave up after {self.attempts} attempt(s)"
        )


# =========================================================================
# Results, history, notifications
# =========================================================================


@dataclass(frozen=True)
class NotificationRequest:
    """One rendered notification for one resolved recipient."""

    recipient_id: str
    title: str
    body: str
    priority: NotificationPriority
    channels: frozenset[NotificationChannel]
    submission_id: UUID | None = None
    workflow_code: str = ""
    action: str = ""
    from_state: str = ""
    to_state: str = ""


@dataclass(frozen=True)
class TransitionResult:
    """Result of applying a workflow transition."""

    success: bool
    new_state: str | None = None
    error: ExecutionError | None = None
    reason: str = ""
    notifications: tuple[NotificationRequest, ...] = ()


@dataclass(frozen=True)
class TransitionRecord:
    """Immutable workflow history entry for one successful transition."""

    record_id: UUID
    submission_id: UUID
    workflow_code: str
    from_state: str
    to_state: str
    action: str
    actor_id: str
    comment: str | None
    occurred_at: datetime


@dataclass(frozen=True)
class WorkflowAction:
    """An action the actor may invoke from the current state."""

    action: str
    label: str
    to_state: str
    requires_comment: bool = False


@dataclass(frozen=True)
class WorkflowStats:
    """Submission counts per state for one form."""

    form_code: str
    total: int
    by_state: Mapping[str, int] = field(default_factory=dict)

    def __post_init__(self) -> None:
        object.__setattr__(self, "by_state", _frozen_mapping(self.by_state))

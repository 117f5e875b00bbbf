"""
workflow_services.transition_executor -- Workflow transition execution.

Responsibility:
    Apply a named action to a form submission: pick the transition for the
    submission's current state, check permission and comment rules, write
    the new state and its history record with one compare-and-swap, and hand the
    rendered notifications to the relay.  Thin coordinator -- permission
    and rule checks are the pure functions below, recipients and templates
    come from workflow_engines, persistence from the SubmissionStore.

Architecture position:
    Services layer.  May import from workflow_engines/ (pure engines) and
    workflow_kernel/ (domain, logging, exceptions).

Invariants enforced:
    - Check order: unauthorized, then missing comment, then wrong state.
    - The single state write is a compare-and-swap on the submission
      version; a lost race reloads and re-evaluates, up to
      ``max_retries`` retries, then returns ``StateConflict``.
    - The history record travels with the compare-and-swap, so history
      order always matches the state chain.
    - The submission is untouched on every failure path.
    - The first permission-gated transition records its actor as the
      submission's approver; ungated transitions never set it.
    - Notifications are dispatched after the write and never affect the
      transition result.
    - Every outcome emits one ``WORKFLOW_TRANSITION`` trace record.

Failure modes:
    - Returned, not raised: UnauthorizedTransition, CommentRequired,
      InvalidTransition, StateConflict.
    - Raised: SubmissionNotFoundError, FormNotFoundError,
      FormWorkflowMissingError (lookups that precede any transition).
"""

from __future__ import annotations

import time
from collections.abc import Iterable
from typing import Any
from uuid import UUID, uuid4

from workflow_engines.recipients import RecipientContext, resolve_all
from workflow_engines.templates import render_template
from workflow_kernel.domain.clock import Clock, SystemClock
from workflow_kernel.domain.collaborators import UserDirectory
from workflow_kernel.domain.execution import (
    Actor,
    CommentRequired,
    FormSubmission,
    InvalidTransition,
    NotificationRequest,
    StateConflict,
    TransitionRecord,
    TransitionResult,
    UnauthorizedTransition,
    WorkflowAction,
)
from workflow_kernel.domain.workflow import Transition, WorkflowConfig, WorkflowDefinition
from workflow_kernel.exceptions import FormWorkflowMissingError
from workflow_kernel.logging_config import LogContext, get_logger
from workflow_services.notification_relay import NotificationRelay
from workflow_services.submission_store import SubmissionStore
from workflow_services.workflow_repository import FormRegistry

logger = get_logger("services.transition_executor")

# Trace message and outcome codes for structured logging
TRACE_TYPE_WORKFLOW_TRANSITION = "WORKFLOW_TRANSITION"
OUTCOME_SUCCESS = "success"
OUTCOME_UNAUTHORIZED = "unauthorized"
OUTCOME_COMMENT_REQUIRED = "comment_required"
OUTCOME_INVALID_TRANSITION = "invalid_transition"
OUTCOME_STATE_CONFLICT = "state_conflict"

_OUTCOME_BY_ERROR = {
    UnauthorizedTransition: OUTCOME_UNAUTHORIZED,
    CommentRequired: OUTCOME_COMMENT_REQUIRED,
    InvalidTransition: OUTCOME_INVALID_TRANSITION,
    StateConflict: OUTCOME_STATE_CONFLICT,
}

WorkflowLike = WorkflowConfig | WorkflowDefinition


def _emit_workflow_trace(
    workflow_code: str,
    action: str,
    submission_id: UUID,
    from_state: str,
    outcome: str,
    reason: str,
    duration_ms: float,
    to_state: str | None = None,
    attempts: int = 1,
    notification_count: int = 0,
) -> None:
    """Emit a structured workflow transition record."""
    record: dict[str, Any] = {
        "trace_type": TRACE_TYPE_WORKFLOW_TRANSITION,
        "workflow": workflow_code,
        "action": action,
        "entity_id": str(submission_id),
        "from_state": from_state,
        "outcome": outcome,
        "reason": reason,
        "duration_ms": round(duration_ms, 3),
        "attempts": attempts,
        "notification_count": notification_count,
    }
    if to_state is not None:
        record["to_state"] = to_state
    logger.info("workflow_transition", extra=record)


# ---------------------------------------------------------------------------
# Pure contract
# ---------------------------------------------------------------------------


def list_eligible_transitions(workflow: WorkflowLike, current_state: str) -> tuple[Transition, ...]:
    """Transitions leaving ``current_state``, in author order."""
    return tuple(t for t in workflow.transitions if t.from_state == current_state)


def authorize(transition: Transition, capabilities: Iterable[str]) -> bool:
    """True if the transition is unrestricted or its permission is held."""
    if not transition.permission:
        return True
    return transition.permission in frozenset(capabilities)


def apply(
    transition: Transition,
    entity: FormSubmission,
    comment: str | None,
    actor: Actor,
) -> TransitionResult:
    """Decide whether ``actor`` may fire ``transition`` on ``entity``.

    Pure: the entity is not modified.  On success ``new_state`` is the
    transition target; writing it is the caller's job.
    """
    if not authorize(transition, actor.capabilities):
        error = UnauthorizedTransition(action=transition.action, permission=transition.permission or "")
        return TransitionResult(success=False, error=error, reason=error.message)

    if transition.requires_comment and (comment is None or not comment.strip()):
        error = CommentRequired(action=transition.action)
        return TransitionResult(success=False, error=error, reason=error.message)

    if transition.from_state != entity.current_state:
        error = InvalidTransition(
            action=transition.action,
            current_state=entity.current_state,
            from_state=transition.from_state,
        )
        return TransitionResult(success=False, error=error, reason=error.message)

    return TransitionResult(
        success=True,
        new_state=transition.to_state,
        reason=f"{entity.current_state} -> {transition.to_state} via {transition.action}",
    )


def available_actions(
    workflow: WorkflowLike,
    current_state: str,
    capabilities: Iterable[str],
) -> tuple[WorkflowAction, ...]:
    """Eligible transitions the holder of ``capabilities`` may invoke."""
    held = frozenset(capabilities)
    return tuple(
        WorkflowAction(
            action=t.action,
            label=t.display_label,
            to_state=t.to_state,
            requires_comment=t.requires_comment,
        )
        for t in list_eligible_transitions(workflow, current_state)
        if authorize(t, held)
    )


def build_notifications(
    transition: Transition,
    submission: FormSubmission,
    actor: Actor,
    directory: UserDirectory,
    workflow_code: str = "",
) -> tuple[NotificationRequest, ...]:
    """Resolve and render every notification rule of a fired transition.

    One request per unique recipient per rule.  The acting user is the
    approver unless the submission already names one.
    """
    approver_id = submission.approver_id or actor.user_id
    recipient_context = RecipientContext(
        submitter_id=submission.submitter_id,
        approver_id=approver_id,
        form_data=submission.form_data,
    )
    base: dict[str, Any] = {
        "submitter_name": directory.display_name(submission.submitter_id) or submission.submitter_id,
        "approver_name": directory.display_name(approver_id) or approver_id,
        "form_title": submission.form_title,
        "current_state": transition.to_state,
        "form_data": dict(submission.form_data),
        "action": transition.action,
        "from_state": transition.from_state,
        "to_state": transition.to_state,
    }

    requests: list[NotificationRequest] = []
    for rule in transition.notifications:
        for recipient_id in resolve_all(rule.recipients, recipient_context, directory):
            context = {
                **base,
                "recipient_id": recipient_id,
                "recipient_name": directory.display_name(recipient_id) or recipient_id,
            }
            requests.append(
                NotificationRequest(
                    recipient_id=recipient_id,
                    title=render_template(rule.title_template, context),
                    body=render_template(rule.body_template, context),
                    priority=rule.priority,
                    channels=rule.channels,
                    submission_id=submission.submission_id,
                    workflow_code=workflow_code,
                    action=transition.action,
                    from_state=transition.from_state,
                    to_state=transition.to_state,
                )
            )
    return tuple(requests)


# ---------------------------------------------------------------------------
# TransitionExecutor
# ---------------------------------------------------------------------------


class TransitionExecutor:
    """Executes workflow transitions against stored submissions.

    Thin coordinator -- decisions come from ``apply``, recipients and
    templates from workflow_engines, persistence from the SubmissionStore.
    """

    def __init__(
        self,
        store: SubmissionStore,
        forms: FormRegistry,
        directory: UserDirectory,
        relay: NotificationRelay,
        clock: Clock | None = None,
        max_retries: int = 3,
    ) -> None:
        self._store = store
        self._forms = forms
        self._directory = directory
        self._relay = relay
        self._clock = clock or SystemClock()
        self._max_retries = max_retries

    @property
    def max_retries(self) -> int:
        return self._max_retries

    def workflow_for(self, form_code: str) -> WorkflowConfig:
        """Embedded workflow of a form.

        Raises:
            FormNotFoundError: Unknown form.
            FormWorkflowMissingError: Form has no workflow.
        """
        form = self._forms.get_form(form_code)
        if form.workflow is None:
            raise FormWorkflowMissingError(form_code)
        return form.workflow

    def execute(
        self,
        submission_id: UUID,
        action: str,
        actor: Actor,
        comment: str | None = None,
    ) -> TransitionResult:
        """Fire ``action`` on a submission on behalf of ``actor``."""
        t0 = time.monotonic()
        submission = self._store.get(submission_id)
        workflow = self.workflow_for(submission.form_code)

        with LogContext.bind(
            actor_id=actor.user_id,
            submission_id=str(submission_id),
            workflow_code=workflow.workflow_code or None,
        ):
            attempts = 0
            while True:
                attempts += 1
                from_state = submission.current_state
                transition = self._find_transition(workflow, from_state, action)
                if transition is None:
                    return self._fail(
                        workflow, submission, action, t0, attempts,
                        InvalidTransition(action=action, current_state=from_state),
                    )

                decision = apply(transition, submission, comment, actor)
                if not decision.success:
                    return self._finish(workflow, submission, action, t0, attempts, decision)

                record = TransitionRecord(
                    record_id=uuid4(),
                    submission_id=submission_id,
                    workflow_code=workflow.workflow_code,
                    from_state=from_state,
                    to_state=transition.to_state,
                    action=action,
                    actor_id=actor.user_id,
                    comment=comment,
                    occurred_at=self._clock.now(),
                )
                updated = self._store.compare_and_set(
                    submission_id,
                    submission.version,
                    transition.to_state,
                    approver_id=actor.user_id if transition.permission else None,
                    record=record,
                )
                if updated is not None:
                    break

                logger.info(
                    "transition_version_conflict",
                    extra={"attempt": attempts, "expected_version": submission.version},
                )
                if attempts > self._max_retries:
                    return self._fail(
                        workflow, submission, action, t0, attempts,
                        StateConflict(action=action, submission_id=str(submission_id), attempts=attempts),
                    )
                submission = self._store.get(submission_id)

            notifications = build_notifications(
                transition, submission, actor, self._directory, workflow.workflow_code,
            )
            self._relay.submit(notifications)

            result = TransitionResult(
                success=True,
                new_state=transition.to_state,
                reason=decision.reason,
                notifications=notifications,
            )
            return self._finish(workflow, submission, action, t0, attempts, result)

    @staticmethod
    def _find_transition(workflow: WorkflowLike, current_state: str, action: str) -> Transition | None:
        """The transition for ``action`` from ``current_state``.

        When the action exists only from other states, that transition is
        returned so ``apply`` reports the state mismatch.
        """
        for t in list_eligible_transitions(workflow, current_state):
            if t.action == action:
                return t
        for t in workflow.transitions:
            if t.action == action:
                return t
        return None

    def _fail(
        self,
        workflow: WorkflowConfig,
        submission: FormSubmission,
        action: str,
        t0: float,
        attempts: int,
        error: InvalidTransition | StateConflict,
    ) -> TransitionResult:
        result = TransitionResult(success=False, error=error, reason=error.message)
        return self._finish(workflow, submission, action, t0, attempts, result)

    def _finish(
        self,
        workflow: WorkflowConfig,
        submission: FormSubmission,
        action: str,
        t0: float,
        attempts: int,
        result: TransitionResult,
    ) -> TransitionResult:
        outcome = OUTCOME_SUCCESS if result.success else _OUTCOME_BY_ERROR[type(result.error)]
        _emit_workflow_trace(
            workflow_code=workflow.workflow_code,
            action=action,
            submission_id=submission.submission_id,
            from_state=submission.current_state,
            outcome=outcome,
            reason=result.reason,
            duration_ms=(time.monotonic() - t0) * 1000,
            to_state=result.new_state,
            attempts=attempts,
            notification_count=len(result.notifications),
        )
        return result

"""
workflow_services.submission_service -- Submission lifecycle queries.

Responsibility:
    Create submissions at their workflow's initial state, edit their form
    data while they are still there, and answer the questions a
    submission screen asks: the submission itself, the form's submission
    list, its history, the actions the viewer may take, and per-state
    counts for a form.

Architecture position:
    Services layer.  Transitions themselves go through
    ``TransitionExecutor``; this service never writes a state change.
    Data edits are version-guarded like transitions, so an edit and a
    transition racing on the same submission cannot both win.
"""

from __future__ import annotations

from collections.abc import Mapping
from typing import Any
from uuid import UUID, uuid4

from workflow_kernel.domain.execution import (
    Actor,
    FormSubmission,
    TransitionRecord,
    WorkflowAction,
    WorkflowStats,
)
from workflow_kernel.exceptions import (
    FormWorkflowMissingError,
    OptimisticLockError,
    SubmissionNotEditableError,
)
from workflow_kernel.logging_config import get_logger
from workflow_services.submission_store import SubmissionStore
from workflow_services.transition_executor import available_actions
from workflow_services.workflow_repository import FormRegistry

logger = get_logger("services.submission_service")


class SubmissionService:
    """Creates and inspects form submissions."""

    def __init__(self, store: SubmissionStore, forms: FormRegistry) -> None:
        self._store = store
        self._forms = forms

    def create_submission(
        self,
        form_code: str,
        submitter_id: str,
        form_data: Mapping[str, Any] | None = None,
    ) -> FormSubmission:
        """Store a new submission in the form workflow's initial state.

        Raises:
            FormNotFoundError: Unknown form.
            FormWorkflowMissingError: Form has no workflow.
        """
        form = self._forms.get_form(form_code)
        if form.workflow is None:
            raise FormWorkflowMissingError(form_code)

        submission = self._store.add(
            FormSubmission(
                submission_id=uuid4(),
                form_code=form_code,
                current_state=form.workflow.initial_state,
                submitter_id=submitter_id,
                form_data=form_data or {},
                form_title=form.title,
            )
        )
        logger.info(
            "submission_created",
            extra={
                "form_code": form_code,
                "submission_id": str(submission.submission_id),
                "initial_state": submission.current_state,
            },
        )
        return submission

    def get(self, submission_id: UUID) -> FormSubmission:
        return self._store.get(submission_id)

    def list_submissions(
        self,
        form_code: str,
        state: str | None = None,
        submitter_id: str | None = None,
    ) -> tuple[FormSubmission, ...]:
        """Submissions of a form, optionally narrowed to one state or one submitter."""
        return self._store.list_for_form(form_code, state=state, submitter_id=submitter_id)

    def update_form_data(self, submission_id: UUID, form_data: Mapping[str, Any]) -> FormSubmission:
        """Replace a submission's form data while it is still in its initial state.

        Raises:
            SubmissionNotFoundError: Unknown submission.
            FormWorkflowMissingError: Form has no workflow.
            SubmissionNotEditableError: The submission has left the initial state.
            OptimisticLockError: A transition or another edit landed first.
        """
        submission = self._store.get(submission_id)
        form = self._forms.get_form(submission.form_code)
        if form.workflow is None:
            raise FormWorkflowMissingError(submission.form_code)
        if submission.current_state != form.workflow.initial_state:
            raise SubmissionNotEditableError(str(submission_id), submission.current_state)

        updated = self._store.replace_form_data(submission_id, submission.version, form_data)
        if updated is None:
            raise OptimisticLockError("FormSubmission", str(submission_id))
        logger.info(
            "submission_data_updated",
            extra={"submission_id": str(submission_id), "version": updated.version},
        )
        return updated

    def history(self, submission_id: UUID) -> tuple[TransitionRecord, ...]:
        return self._store.history(submission_id)

    def available_actions(self, submission_id: UUID, actor: Actor) -> tuple[WorkflowAction, ...]:
        """Actions ``actor`` may take on the submission right now."""
        submission = self._store.get(submission_id)
        form = self._forms.get_form(submission.form_code)
        if form.workflow is None:
            return ()
        return available_actions(form.workflow, submission.current_state, actor.capabilities)

    def stats(self, form_code: str) -> WorkflowStats:
        by_state = self._store.count_by_state(form_code)
        return WorkflowStats(form_code=form_code, total=sum(by_state.values()), by_state=by_state)

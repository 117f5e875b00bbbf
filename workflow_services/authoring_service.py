"""
workflow_services.authoring_service -- Validated edits to stored workflows.

Responsibility:
    Load a stored workflow, apply one immutable edit from
    ``workflow_engines.authoring``, re-validate, and persist the result
    only if it is valid and nobody changed the stored definition in the
    meantime.

Architecture position:
    Services layer.  Edit semantics live in workflow_engines.authoring;
    persistence in WorkflowRepository.

Failure modes:
    - Edit errors (UnknownStateError, LastStateRemovalError,
      TransitionIndexError) propagate before anything is written.
    - OptimisticLockError: the stored definition changed during the edit.
    - WorkflowValidationError: ``attach_to_form`` with an invalid workflow.
"""

from __future__ import annotations

from collections.abc import Callable
from typing import Any

from workflow_engines.authoring import EditOutcome, embed_workflow, new_workflow_draft, propose
from workflow_kernel.domain.workflow import FormDefinition, WorkflowDefinition
from workflow_kernel.logging_config import get_logger
from workflow_services.workflow_repository import WorkflowRepository

logger = get_logger("services.authoring_service")


class AuthoringService:
    """Authoring surface over the workflow repository."""

    def __init__(self, repository: WorkflowRepository) -> None:
        self._repository = repository

    def create_workflow(self, code: str, name: str) -> WorkflowDefinition:
        """Store a fresh draft workflow and return it."""
        draft = new_workflow_draft(code=code, name=name)
        self._repository.save_workflow(draft)
        return draft

    def edit_workflow(
        self,
        code: str,
        edit: Callable[..., WorkflowDefinition],
        *args: Any,
        **kwargs: Any,
    ) -> EditOutcome:
        """Apply ``edit`` to the stored workflow ``code``.

        The edited definition is saved only when it validates; the outcome
        is returned either way so the caller can show the issues.
        """
        checksum = self._repository.get_checksum(code)
        current = self._repository.get_workflow(code)
        outcome = propose(current, edit, *args, **kwargs)

        if outcome.accepted:
            self._repository.save_workflow(outcome.definition, expected_checksum=checksum)
        logger.info(
            "workflow_edit_proposed",
            extra={
                "workflow_code": code,
                "edit": getattr(edit, "__name__", repr(edit)),
                "accepted": outcome.accepted,
                "error_count": len(outcome.validation.errors),
                "warning_count": len(outcome.validation.warnings),
            },
        )
        return outcome

    def attach_to_form(self, form_code: str, workflow_code: str) -> FormDefinition:
        """Embed the stored workflow into the stored form."""
        form = self._repository.get_form(form_code)
        definition = self._repository.get_workflow(workflow_code)
        return self._repository.save_form(embed_workflow(form, definition))

"""
workflow_services.workflow_repository -- Stored workflow and form definitions.

Responsibility:
    Persist ``WorkflowDefinition`` records keyed by ``code`` and
    ``FormDefinition`` records keyed by ``form_code`` as JSON wire
    documents, and read them back as frozen domain values.

Architecture position:
    Services layer.  The only code that touches the definition ORM
    models.  Uses the wire codec from workflow_config.

Invariants enforced:
    - A workflow is re-validated on save; definitions with errors are
      refused.
    - A form's embedded workflow is checked against its own states before
      save: the initial state and every transition endpoint are declared.
    - The stored checksum always matches the stored document.
    - ``save_workflow(..., expected_checksum=...)`` is an optimistic write:
      it fails if the stored definition changed since it was read.

Failure modes:
    - WorkflowValidationError: saving an invalid definition.
    - WorkflowNotFoundError / FormNotFoundError: lookup misses.
    - OptimisticLockError: checksum mismatch on a guarded save.

Transaction boundary:
    Methods flush; the caller owns commit/rollback on the session.
"""

from __future__ import annotations

import threading
from typing import Protocol

from sqlalchemy import select
from sqlalchemy.orm import Session

from workflow_config.loader import (
    DEFAULT_RULE_DEFAULTS,
    RuleDefaults,
    compute_checksum,
    form_to_dict,
    parse_form,
    parse_workflow,
    workflow_to_dict,
)
from workflow_engines.validation import validate
from workflow_kernel.domain.workflow import (
    FormDefinition,
    Issue,
    ValidationResult,
    WorkflowConfig,
    WorkflowDefinition,
)
from workflow_kernel.exceptions import (
    FormNotFoundError,
    OptimisticLockError,
    WorkflowNotFoundError,
    WorkflowValidationError,
)
from workflow_kernel.logging_config import get_logger
from workflow_kernel.models.workflow import FormDefinitionModel, WorkflowDefinitionModel

logger = get_logger("services.workflow_repository")


class FormRegistry(Protocol):
    """Read access to form definitions, as the executor needs it."""

    def get_form(self, form_code: str) -> FormDefinition:
        """Raises FormNotFoundError if absent."""
        ...


def check_embedded_workflow(config: WorkflowConfig) -> ValidationResult:
    """Structural check of a form-embedded workflow.

    The reduced config carries state codes only, so state names and final
    flags cannot be checked here.
    """
    codes = set(config.states)
    errors: list[Issue] = []
    if not config.states:
        errors.append(Issue("workflow.states", "At least one state is required"))
    if config.initial_state not in codes:
        errors.append(
            Issue(
                "workflow.initial_state",
                f'Initial state "{config.initial_state}" does not exist in states list',
            )
        )
    for index, t in enumerate(config.transitions):
        for value, key, role in ((t.from_state, "from", "Source"), (t.to_state, "to", "Target")):
            if value not in codes:
                errors.append(
                    Issue(
                        f"workflow.transitions[{index}].{key}",
                        f'Transition {index + 1}: {role} state "{value}" does not exist',
                    )
                )
    return ValidationResult(errors=tuple(errors))


class InMemoryFormRegistry:
    """Dictionary-backed FormRegistry for tests and embedded use."""

    def __init__(self, forms: list[FormDefinition] | None = None) -> None:
        self._lock = threading.Lock()
        self._forms: dict[str, FormDefinition] = {f.form_code: f for f in forms or ()}

    def save_form(self, form: FormDefinition) -> FormDefinition:
        if form.workflow is not None:
            result = check_embedded_workflow(form.workflow)
            if not result.valid:
                raise WorkflowValidationError(form.workflow.workflow_code, result)
        with self._lock:
            self._forms[form.form_code] = form
        return form

    def get_form(self, form_code: str) -> FormDefinition:
        with self._lock:
            form = self._forms.get(form_code)
        if form is None:
            raise FormNotFoundError(form_code)
        return form


class WorkflowRepository:
    """SQLAlchemy-backed store for workflow and form definitions."""

    def __init__(
        self,
        session: Session,
        defaults: RuleDefaults = DEFAULT_RULE_DEFAULTS,
    ) -> None:
        self._session = session
        self._defaults = defaults

    # -- workflows ---------------------------------------------------------

    def save_workflow(
        self,
        definition: WorkflowDefinition,
        expected_checksum: str | None = None,
    ) -> str:
        """Insert or replace a workflow definition.  Returns its checksum.

        Args:
            definition: The definition to store.
            expected_checksum: If given, the checksum the caller last read;
                the save fails when the stored definition no longer has it.

        Raises:
            WorkflowValidationError: If the definition has errors.
            OptimisticLockError: If ``expected_checksum`` is stale.
        """
        result = validate(definition)
        if not result.valid:
            raise WorkflowValidationError(definition.code, result)

        checksum = compute_checksum(definition)
        model = self._workflow_row(definition.code)

        if expected_checksum is not None:
            stored = model.checksum if model is not None else None
            if stored != expected_checksum:
                raise OptimisticLockError("WorkflowDefinition", definition.code)

        if model is None:
            model = WorkflowDefinitionModel(code=definition.code)
            self._session.add(model)
        model.name = definition.name
        model.version = definition.version
        model.is_active = definition.is_active
        model.document = workflow_to_dict(definition)
        model.checksum = checksum
        self._session.flush()

        logger.info(
            "workflow_saved",
            extra={
                "workflow_code": definition.code,
                "workflow_version": definition.version,
                "checksum": checksum,
                "warning_count": len(result.warnings),
            },
        )
        return checksum

    def get_workflow(self, code: str) -> WorkflowDefinition:
        model = self._workflow_row(code)
        if model is None:
            raise WorkflowNotFoundError(code)
        return parse_workflow(model.document, defaults=self._defaults)

    def get_checksum(self, code: str) -> str:
        model = self._workflow_row(code)
        if model is None:
            raise WorkflowNotFoundError(code)
        return model.checksum

    def list_workflows(self, active_only: bool = False) -> tuple[WorkflowDefinition, ...]:
        stmt = select(WorkflowDefinitionModel).order_by(WorkflowDefinitionModel.code)
        if active_only:
            stmt = stmt.where(WorkflowDefinitionModel.is_active.is_(True))
        return tuple(
            parse_workflow(m.document, defaults=self._defaults)
            for m in self._session.scalars(stmt).all()
        )

    def delete_workflow(self, code: str) -> None:
        model = self._workflow_row(code)
        if model is None:
            raise WorkflowNotFoundError(code)
        self._session.delete(model)
        self._session.flush()
        logger.info("workflow_deleted", extra={"workflow_code": code})

    def _workflow_row(self, code: str) -> WorkflowDefinitionModel | None:
        return self._session.execute(
            select(WorkflowDefinitionModel).where(WorkflowDefinitionModel.code == code)
        ).scalar_one_or_none()

    # -- forms -------------------------------------------------------------

    def save_form(self, form: FormDefinition) -> FormDefinition:
        """Insert or replace a form definition.

        Raises:
            WorkflowValidationError: If the embedded workflow references
                undeclared states.
        """
        if form.workflow is not None:
            result = check_embedded_workflow(form.workflow)
            if not result.valid:
                raise WorkflowValidationError(form.workflow.workflow_code, result)

        model = self._form_row(form.form_code)
        if model is None:
            model = FormDefinitionModel(form_code=form.form_code)
            self._session.add(model)
        model.title = form.title
        model.document = form_to_dict(form)
        self._session.flush()

        logger.info(
            "form_saved",
            extra={
                "form_code": form.form_code,
                "workflow_code": form.workflow.workflow_code if form.workflow else None,
            },
        )
        return form

    def get_form(self, form_code: str) -> FormDefinition:
        model = self._form_row(form_code)
        if model is None:
            raise FormNotFoundError(form_code)
        return parse_form(model.document, defaults=self._defaults)

    def _form_row(self, form_code: str) -> FormDefinitionModel | None:
        return self._session.execute(
            select(FormDefinitionModel).where(FormDefinitionModel.form_code == form_code)
        ).scalar_one_or_none()

"""
Typed Exception Hierarchy for the Workflow Kernel.

===============================================================================
WHAT IS RAISED AND WHAT IS RETURNED
===============================================================================

Two kinds of failure exist in this system and they travel differently:

  1. Structural problems in a workflow definition (unreachable states,
     duplicate transitions, ...) are REPORTED as a ``ValidationResult``
     by ``workflow_engines.validation.validate``.  They are never raised:
     validation is advisory until the definition is saved or embedded.

  2. Runtime transition failures (unauthorized, missing comment, wrong
     state, lost race) are RETURNED as typed ``ExecutionError`` values
     inside a ``TransitionResult`` (see ``workflow_kernel.domain.execution``)
     so the caller can render a message without unwinding.

Everything in this module is the third kind: programming or integration
errors that callers catch by type -- a malformed wire document, a missing
record, an attempt to persist a definition that failed validation.

===============================================================================
EXCEPTION HIERARCHY
===============================================================================

    WorkflowKernelError (base)
    |
    +-- DefinitionError
    |   +-- WorkflowFormatError
    |   +-- WorkflowValidationError
    |   +-- UnknownStateError
    |   +-- LastStateRemovalError
    |   +-- TransitionIndexError
    |
    +-- NotFoundError
    |   +-- WorkflowNotFoundError
    |   +-- FormNotFoundError
    |   +-- SubmissionNotFoundError
    |   +-- FormWorkflowMissingError
    |
    +-- SubmissionNotEditableError
    |
    +-- ConfigurationError
    |
    +-- ConcurrencyError
        +-- OptimisticLockError

===============================================================================
ERROR CODES - QUICK REFERENCE
===============================================================================

Category      | Code                       | When Raised
--------------|----------------------------|------------------------------------
Definition    | WORKFLOW_FORMAT_ERROR      | Wire document has the wrong shape
              | WORKFLOW_VALIDATION_FAILED | Saving/embedding an invalid workflow
              | UNKNOWN_STATE              | Edit references a missing state code
              | LAST_STATE_REMOVAL         | Edit would leave zero states
              | TRANSITION_INDEX_ERROR     | Edit references a missing transition
--------------|----------------------------|------------------------------------
Not found     | WORKFLOW_NOT_FOUND         | No workflow stored under the code
              | FORM_NOT_FOUND             | No form stored under the code
              | SUBMISSION_NOT_FOUND       | No submission with the id
              | FORM_WORKFLOW_MISSING      | Form has no embedded workflow
--------------|----------------------------|------------------------------------
Submission    | SUBMISSION_NOT_EDITABLE    | Data edit after the submission left its initial state
--------------|----------------------------|------------------------------------
Config        | CONFIGURATION_ERROR        | Settings file is invalid
--------------|----------------------------|------------------------------------
Concurrency   | OPTIMISTIC_LOCK_CONFLICT   | Version mismatch on a direct write
"""

from __future__ import annotations

from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from workflow_kernel.domain.workflow import ValidationResult


class WorkflowKernelError(Exception):
    """
    Base exception for all workflow kernel errors.

    All subclasses carry a ``code`` class attribute for machine-readable
    error identification.
    """

    code: str = "WORKFLOW_KERNEL_ERROR"


# Definition-related exceptions


class DefinitionError(WorkflowKernelError):
    """Base exception for workflow definition errors."""

    code: str = "DEFINITION_ERROR"


class WorkflowFormatError(DefinitionError):
    """A wire document does not have the shape of a workflow definition.

    Missing keys are not format errors (they default and are reported by
    the validator); a list where a mapping belongs, or an unknown recipient
    type, is.
    """

    code: str = "WORKFLOW_FORMAT_ERROR"

    def __init__(self, path: str, reason: str):
        self.path = path
        self.reason = reason
        super().__init__(f"Malformed workflow document at '{path}': {reason}")


class WorkflowValidationError(DefinitionError):
    """A definition with validation errors was about to be saved or embedded."""

    code: str = "WORKFLOW_VALIDATION_FAILED"

    def __init__(self, workflow_code: str, result: ValidationResult):
        self.workflow_code = workflow_code
        self.result = result
        super().__init__(
            f"Workflow '{workflow_code}' failed validation: "
            f"{len(result.errors)} error(s)"
        )


class UnknownStateError(DefinitionError):
    """An authoring edit references a state code that is not declared."""

    code: str = "UNKNOWN_STATE"

    def __init__(self, state_code: str):
        self.state_code = state_code
        super().__init__(f"State not found in workflow: {state_code}")


class LastStateRemovalError(DefinitionError):
    """An authoring edit would remove the only remaining state."""

    code: str = "LAST_STATE_REMOVAL"

    def __init__(self, state_code: str):
        self.state_code = state_code
        super().__init__(
            f"Cannot remove state '{state_code}': a workflow needs at least one state"
        )


class TransitionIndexError(DefinitionError):
    """An authoring edit references a transition or rule position that does not exist."""

    code: str = "TRANSITION_INDEX_ERROR"

    def __init__(self, index: int, size: int):
        self.index = index
        self.size = size
        super().__init__(f"Index {index} out of range (size {size})")


# Lookup exceptions


class NotFoundError(WorkflowKernelError):
    """Base exception for missing records."""

    code: str = "NOT_FOUND"


class WorkflowNotFoundError(NotFoundError):
    """No workflow definition is stored under the given code."""

    code: str = "WORKFLOW_NOT_FOUND"

    def __init__(self, workflow_code: str):
        self.workflow_code = workflow_code
        super().__init__(f"Workflow not found: {workflow_code}")


class FormNotFoundError(NotFoundError):
    """No form definition is stored under the given code."""

    code: str = "FORM_NOT_FOUND"

    def __init__(self, form_code: str):
        self.form_code = form_code
        super().__init__(f"Form not found: {form_code}")


class SubmissionNotFoundError(NotFoundError):
    """No submission exists with the given id."""

    code: str = "SUBMISSION_NOT_FOUND"

    def __init__(self, submission_id: str):
        self.submission_id = submission_id
        super().__init__(f"Submission not found: {submission_id}")


class FormWorkflowMissingError(NotFoundError):
    """The form has no embedded workflow configuration."""

    code: str = "FORM_WORKFLOW_MISSING"

    def __init__(self, form_code: str):
        self.form_code = form_code
        super().__init__(f"Form '{form_code}' has no workflow attached")


# Submission exceptions


class SubmissionNotEditableError(WorkflowKernelError):
    """Form data can only change while the submission is in its initial state."""

    code: str = "SUBMISSION_NOT_EDITABLE"

    def __init__(self, submission_id: str, current_state: str):
        self.submission_id = submission_id
        self.current_state = current_state
        super().__init__(
            f"Submission {submission_id} is in state '{current_state}' "
            "and its form data can no longer be edited"
        )


# Configuration exceptions


class ConfigurationError(WorkflowKernelError):
    """Engine settings could not be loaded."""

    code: str = "CONFIGURATION_ERROR"

    def __init__(self, source: str, reason: str):
        self.source = source
        self.reason = reason
        super().__init__(f"Invalid configuration in {source}: {reason}")


# Concurrency-related exceptions


class ConcurrencyError(WorkflowKernelError):
    """Base exception for concurrency-related errors."""

    code: str = "CONCURRENCY_ERROR"


class OptimisticLockError(ConcurrencyError):
    """Optimistic locking conflict detected."""

    code: str = "OPTIMISTIC_LOCK_CONFLICT"

    def __init__(self, entity_type: str, entity_id: str):
        self.entity_type = entity_type
        self.entity_id = entity_id
        super().__init__(
            f"Optimistic lock conflict on {entity_type} {entity_id}: "
            "entity was modified concurrently"
        )

"""ORM models for the workflow kernel."""

from workflow_kernel.models.workflow import (
    FormDefinitionModel,
    FormSubmissionModel,
    TransitionRecordModel,
    WorkflowDefinitionModel,
)

__all__ = [
    "FormDefinitionModel",
    "FormSubmissionModel",
    "TransitionRecordModel",
    "WorkflowDefinitionModel",
]

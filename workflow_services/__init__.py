"""
workflow_services -- stateful coordinators over the pure workflow engines.

Architecture position:
    Services layer.  May import workflow_kernel, workflow_engines and
    workflow_config.  Nothing below this layer imports it.
"""

from workflow_services.authoring_service import AuthoringService
from workflow_services.notification_relay import NotificationRelay
from workflow_services.static_directory import StaticUserDirectory
from workflow_services.submission_service import SubmissionService
from workflow_services.submission_store import (
    InMemorySubmissionStore,
    SqlSubmissionStore,
    SubmissionStore,
)
from workflow_services.transition_executor import (
    TransitionExecutor,
    apply,
    authorize,
    available_actions,
    build_notifications,
    list_eligible_transitions,
)
from workflow_services.workflow_orchestrator import (
    WorkflowOrchestrator,
    build_workflow_orchestrator,
)
from workflow_services.workflow_repository import (
    FormRegistry,
    InMemoryFormRegistry,
    WorkflowRepository,
)

__all__ = [
    "AuthoringService",
    "FormRegistry",
    "InMemoryFormRegistry",
    "InMemorySubmissionStore",
    "NotificationRelay",
    "SqlSubmissionStore",
    "StaticUserDirectory",
    "SubmissionService",
    "SubmissionStore",
    "TransitionExecutor",
    "WorkflowOrchestrator",
    "WorkflowRepository",
    "apply",
    "authorize",
    "available_actions",
    "build_notifications",
    "build_workflow_orchestrator",
    "list_eligible_transitions",
]

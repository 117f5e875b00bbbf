"""
workflow_services.workflow_orchestrator -- Wiring for the runtime services.

Responsibility:
    Creates the notification relay, transition executor and submission
    service exactly once from ``EngineSettings`` and the host-supplied
    collaborators.  No service constructs another internally.

Architecture position:
    Services -- top of the service layer; the only place runtime services
    are composed.

Usage:
    from workflow_services.workflow_orchestrator import build_workflow_orchestrator

    orchestrator = build_workflow_orchestrator(directory, dispatcher, forms)
    submission = orchestrator.submissions.create_submission(...)
    orchestrator.executor.execute(submission.submission_id, "submit", actor)
"""

from __future__ import annotations

from pathlib import Path

from workflow_config.settings import EngineSettings, get_settings
from workflow_kernel.db.engine import create_tables, init_engine_from_url
from workflow_kernel.domain.clock import Clock, SystemClock
from workflow_kernel.domain.collaborators import NotificationDispatcher, UserDirectory
from workflow_kernel.logging_config import configure_logging, get_logger
from workflow_services.notification_relay import NotificationRelay
from workflow_services.submission_service import SubmissionService
from workflow_services.submission_store import SqlSubmissionStore, SubmissionStore
from workflow_services.transition_executor import TransitionExecutor
from workflow_services.workflow_repository import FormRegistry

logger = get_logger("services.workflow_orchestrator")


class WorkflowOrchestrator:
    """Holds one instance of each runtime service.

    Non-goals:
        - Does NOT own database transactions; stores manage their own scope.
    """

    def __init__(
        self,
        settings: EngineSettings,
        store: SubmissionStore,
        forms: FormRegistry,
        directory: UserDirectory,
        dispatcher: NotificationDispatcher,
        clock: Clock | None = None,
    ) -> None:
        self._settings = settings
        self._clock = clock or SystemClock()

        self.store = store
        self.forms = forms
        self.directory = directory
        self.relay = NotificationRelay(dispatcher, max_attempts=settings.notification_max_attempts)
        self.executor = TransitionExecutor(
            store=store,
            forms=forms,
            directory=directory,
            relay=self.relay,
            clock=self._clock,
            max_retries=settings.cas_max_retries,
        )
        self.submissions = SubmissionService(store, forms)

    @property
    def settings(self) -> EngineSettings:
        return self._settings

    @property
    def clock(self) -> Clock:
        return self._clock


def build_workflow_orchestrator(
    directory: UserDirectory,
    dispatcher: NotificationDispatcher,
    forms: FormRegistry,
    config_path: Path | str | None = None,
    clock: Clock | None = None,
) -> WorkflowOrchestrator:
    """Build an orchestrator backed by the configured database.

    Loads settings via ``get_settings``, configures logging at the
    configured level, initializes the engine from ``database_url`` and
    creates any missing tables.
    """
    settings = get_settings(config_path)
    configure_logging(level=settings.log_level)
    init_engine_from_url(settings.database_url)
    create_tables()
    logger.info(
        "workflow_orchestrator_built",
        extra={
            "cas_max_retries": settings.cas_max_retries,
            "notification_max_attempts": settings.notification_max_attempts,
        },
    )
    return WorkflowOrchestrator(
        settings=settings,
        store=SqlSubmissionStore(),
        forms=forms,
        directory=directory,
        dispatcher=dispatcher,
        clock=clock,
    )

"""
Pytest fixtures for the workflow engine test suite.

Provides:
- Structured logging setup and log capture
- In-memory SQLite engine and sessions (fresh schema per test)
- A deterministic clock, a static user directory and a recording
  notification dispatcher
- A sample purchase-approval workflow and the form that embeds it
"""

import json
import logging
from io import StringIO
from typing import Generator

import pytest
from sqlalchemy.orm import Session

from workflow_engines.authoring import to_workflow_config
from workflow_kernel.db.engine import (
    create_tables,
    drop_tables,
    get_session,
    init_engine_from_url,
    reset_engine,
)
from workflow_kernel.domain.clock import DeterministicClock
from workflow_kernel.domain.execution import NotificationRequest
from workflow_kernel.domain.workflow import (
    ApproverRecipient,
    FormDefinition,
    NotificationChannel,
    NotificationPriority,
    NotificationRule,
    RoleRecipient,
    State,
    SubmitterRecipient,
    Transition,
    WorkflowDefinition,
)
from workflow_kernel.logging_config import (
    LogContext,
    StructuredFormatter,
    configure_logging,
    reset_logging,
)
from workflow_services.notification_relay import NotificationRelay
from workflow_services.static_directory import StaticUserDirectory
from workflow_services.submission_service import SubmissionService
from workflow_services.submission_store import InMemorySubmissionStore
from workflow_services.transition_executor import TransitionExecutor
from workflow_services.workflow_repository import InMemoryFormRegistry


# =============================================================================
# Logging fixtures
# =============================================================================


@pytest.fixture(autouse=True, scope="session")
def _configure_test_logging():
    """Configure structured logging for the test suite."""
    reset_logging()
    configure_logging(level=logging.DEBUG)
    yield
    reset_logging()


@pytest.fixture(autouse=True)
def _clear_log_context():
    """Clear LogContext between tests to prevent cross-test contamination."""
    LogContext.clear()
    yield
    LogContext.clear()


@pytest.fixture
def captured_logs():
    """
    Capture workflow_kernel logs as parsed JSON dicts.

    Usage::

        def test_something(captured_logs, executor):
            executor.execute(...)
            logs = captured_logs()
            assert any(r["message"] == "workflow_transition" for r in logs)
    """
    stream = StringIO()
    handler = logging.StreamHandler(stream)
    handler.setFormatter(StructuredFormatter())
    root = logging.getLogger("workflow_kernel")
    previous_level = root.level
    root.setLevel(logging.DEBUG)
    root.addHandler(handler)

    def _get_records() -> list[dict]:
        lines = stream.getvalue().strip().split("\n")
        return [json.loads(line) for line in lines if line]

    yield _get_records

    root.removeHandler(handler)
    root.setLevel(previous_level)


# =============================================================================
# Database fixtures
# =============================================================================


@pytest.fixture
def db_engine():
    """Fresh in-memory SQLite engine with the full schema."""
    engine = init_engine_from_url("sqlite://")
    create_tables()
    yield engine
    drop_tables()
    reset_engine()


@pytest.fixture
def session(db_engine) -> Generator[Session, None, None]:
    """Session on the test engine.  Uncommitted work is rolled back."""
    sess = get_session()
    try:
        yield sess
    finally:
        sess.rollback()
        sess.close()


# =============================================================================
# Collaborators
# =============================================================================


class RecordingDispatcher:
    """NotificationDispatcher that records deliveries.

    Recipients listed in ``failing_recipients`` raise on dispatch.
    """

    def __init__(self, failing_recipients: set[str] | None = None):
        self.delivered: list[NotificationRequest] = []
        self.failing_recipients: set[str] = set(failing_recipients or ())
        self.calls = 0

    def dispatch(self, request: NotificationRequest) -> None:
        self.calls += 1
        if request.recipient_id in self.failing_recipients:
            raise ConnectionError(f"mail relay refused {request.recipient_id}")
        self.delivered.append(request)


@pytest.fixture
def clock() -> DeterministicClock:
    return DeterministicClock()


@pytest.fixture
def directory() -> StaticUserDirectory:
    return StaticUserDirectory(
        users={
            "alice": "Alice Able",
            "bob": "Bob Baker",
            "carol": "Carol Chen",
            "dave": "Dave Diaz",
        },
        roles={"finance_reviewers": ["bob", "carol"]},
        business_roles={"cost_center_owner": ["dave"]},
        permissions={"purchase:approve": ["bob", "carol"]},
    )


@pytest.fixture
def dispatcher() -> RecordingDispatcher:
    return RecordingDispatcher()


@pytest.fixture
def relay(dispatcher) -> NotificationRelay:
    return NotificationRelay(dispatcher, max_attempts=3)


# =============================================================================
# Sample workflow
# =============================================================================


def purchase_approval_workflow() -> WorkflowDefinition:
    """Draft -> pending review -> approved / rejected, with a return loop."""
    return WorkflowDefinition(
        code="purchase_approval",
        name="Purchase Approval",
        version="1.0.0",
        description="Two-step approval for purchase requests",
        initial_state="draft",
        states=(
            State(code="draft", name="Draft", color="gray", icon="edit"),
            State(code="pending_review", name="Pending Review", color="amber", icon="clock"),
            State(code="approved", name="Approved", color="green", icon="check", is_final=True),
            State(code="rejected", name="Rejected", color="red", icon="x", is_final=True),
        ),
        transitions=(
            Transition(
                from_state="draft",
                to_state="pending_review",
                action="submit",
                label="Submit for review",
                notifications=(
                    NotificationRule(
                        recipients=(RoleRecipient(role_id="finance_reviewers"),),
                        title_template="{{form_title}} awaiting review",
                        body_template="{{submitter_name}} submitted a request for {{form_data.amount}}.",
                    ),
                ),
            ),
            Transition(
                from_state="pending_review",
                to_state="approved",
                action="approve",
                label="Approve",
                permission="purchase:approve",
                notifications=(
                    NotificationRule(
                        recipients=(SubmitterRecipient(), ApproverRecipient()),
                        title_template="Approved: {{form_title}}",
                        body_template="Hello {{recipient_name}}, {{approver_name}} approved the request.",
                        priority=NotificationPriority.HIGH,
                        channels=frozenset({NotificationChannel.IN_APP, NotificationChannel.EMAIL}),
                    ),
                ),
            ),
            Transition(
                from_state="pending_review",
                to_state="rejected",
                action="reject",
                label="Reject",
                permission="purchase:approve",
                requires_comment=True,
            ),
            Transition(
                from_state="pending_review",
                to_state="draft",
                action="return",
                label="Return for edits",
                permission="purchase:approve",
            ),
        ),
    )


@pytest.fixture
def purchase_workflow() -> WorkflowDefinition:
    return purchase_approval_workflow()


@pytest.fixture
def purchase_form(purchase_workflow) -> FormDefinition:
    return FormDefinition(
        form_code="purchase_request",
        title="Purchase Request",
        version="1",
        module="procurement",
        workflow=to_workflow_config(purchase_workflow),
    )


# =============================================================================
# Services
# =============================================================================


@pytest.fixture
def submission_store() -> InMemorySubmissionStore:
    return InMemorySubmissionStore()


@pytest.fixture
def form_registry(purchase_form) -> InMemoryFormRegistry:
    return InMemoryFormRegistry([purchase_form])


@pytest.fixture
def executor(submission_store, form_registry, directory, relay, clock) -> TransitionExecutor:
    return TransitionExecutor(
        store=submission_store,
        forms=form_registry,
        directory=directory,
        relay=relay,
        clock=clock,
    )


@pytest.fixture
def submission_service(submission_store, form_registry) -> SubmissionService:
    return SubmissionService(submission_store, form_registry)

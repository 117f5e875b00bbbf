"""
Tests for workflow and form definition persistence.

Tests cover:
- save/get/list/delete of workflow definitions (SQLite)
- Re-validation on save; invalid definitions refused
- Checksum-guarded optimistic saves
- Form definitions and embedded workflow checks
- InMemoryFormRegistry
"""

from dataclasses import replace

import pytest

from workflow_config.loader import compute_checksum
from workflow_engines.authoring import to_workflow_config, update_transition
from workflow_kernel.domain.workflow import FormDefinition, WorkflowConfig
from workflow_kernel.exceptions import (
    FormNotFoundError,
    OptimisticLockError,
    WorkflowNotFoundError,
    WorkflowValidationError,
)
from workflow_services.workflow_repository import (
    InMemoryFormRegistry,
    WorkflowRepository,
    check_embedded_workflow,
)


@pytest.fixture
def repository(session) -> WorkflowRepository:
    return WorkflowRepository(session)


class TestSaveWorkflow:

    def test_save_and_load(self, repository, purchase_workflow):
        checksum = repository.save_workflow(purchase_workflow)
        assert checksum == compute_checksum(purchase_workflow)
        assert repository.get_workflow("purchase_approval") == purchase_workflow
        assert repository.get_checksum("purchase_approval") == checksum

    def test_save_replaces(self, repository, purchase_workflow):
        repository.save_workflow(purchase_workflow)
        renamed = replace(purchase_workflow, name="Purchase Approval (2024)")
        repository.save_workflow(renamed)
        assert repository.get_workflow("purchase_approval").name == "Purchase Approval (2024)"
        assert len(repository.list_workflows()) == 1

    def test_invalid_definition_refused(self, repository, purchase_workflow):
        broken = update_transition(purchase_workflow, 0, to_state="nowhere")
        with pytest.raises(WorkflowValidationError) as exc_info:
            repository.save_workflow(broken)
        assert exc_info.value.result.errors[0].field == "transitions[0].to"
        with pytest.raises(WorkflowNotFoundError):
            repository.get_workflow("purchase_approval")

    def test_saved_log(self, repository, purchase_workflow, captured_logs):
        repository.save_workflow(purchase_workflow)
        saved = [r for r in captured_logs() if r["message"] == "workflow_saved"]
        assert saved[0]["workflow_code"] == "purchase_approval"


class TestOptimisticSave:

    def test_matching_checksum(self, repository, purchase_workflow):
        checksum = repository.save_workflow(purchase_workflow)
        renamed = replace(purchase_workflow, name="Renamed")
        assert repository.save_workflow(renamed, expected_checksum=checksum) == compute_checksum(renamed)

    def test_stale_checksum(self, repository, purchase_workflow):
        stale = repository.save_workflow(purchase_workflow)
        repository.save_workflow(replace(purchase_workflow, name="Someone else"))
        with pytest.raises(OptimisticLockError) as exc_info:
            repository.save_workflow(replace(purchase_workflow, name="Mine"), expected_checksum=stale)
        assert exc_info.value.entity_id == "purchase_approval"
        assert repository.get_workflow("purchase_approval").name == "Someone else"

    def test_expected_checksum_for_missing_row(self, repository, purchase_workflow):
        with pytest.raises(OptimisticLockError):
            repository.save_workflow(purchase_workflow, expected_checksum="0" * 64)


class TestListAndDelete:

    def test_list_ordered_by_code(self, repository, purchase_workflow):
        repository.save_workflow(replace(purchase_workflow, code="zeta_flow"))
        repository.save_workflow(replace(purchase_workflow, code="alpha_flow", is_active=False))
        assert [w.code for w in repository.list_workflows()] == ["alpha_flow", "zeta_flow"]
        assert [w.code for w in repository.list_workflows(active_only=True)] == ["zeta_flow"]

    def test_delete(self, repository, purchase_workflow):
        repository.save_workflow(purchase_workflow)
        repository.delete_workflow("purchase_approval")
        assert repository.list_workflows() == ()
        with pytest.raises(WorkflowNotFoundError):
            repository.delete_workflow("purchase_approval")

    def test_missing_lookups(self, repository):
        with pytest.raises(WorkflowNotFoundError):
            repository.get_workflow("ghost")
        with pytest.raises(WorkflowNotFoundError):
            repository.get_checksum("ghost")


class TestForms:

    def test_save_and_load(self, repository, purchase_form):
        repository.save_form(purchase_form)
        assert repository.get_form("purchase_request") == purchase_form

    def test_form_without_workflow(self, repository):
        form = FormDefinition(form_code="contact", title="Contact Us")
        repository.save_form(form)
        assert repository.get_form("contact").workflow is None

    def test_embedded_workflow_checked(self, repository, purchase_form):
        broken = replace(purchase_form, workflow=replace(purchase_form.workflow, initial_state="ghost"))
        with pytest.raises(WorkflowValidationError) as exc_info:
            repository.save_form(broken)
        assert exc_info.value.result.errors[0].field == "workflow.initial_state"

    def test_missing_form(self, repository):
        with pytest.raises(FormNotFoundError):
            repository.get_form("ghost")


class TestCheckEmbeddedWorkflow:

    def test_valid_config(self, purchase_workflow):
        assert check_embedded_workflow(to_workflow_config(purchase_workflow)).valid is True

    def test_issues(self, purchase_workflow):
        config = to_workflow_config(update_transition(purchase_workflow, 1, from_state="limbo"))
        result = check_embedded_workflow(config)
        assert [e.field for e in result.errors] == ["workflow.transitions[1].from"]
        assert result.errors[0].message == 'Transition 2: Source state "limbo" does not exist'

    def test_empty_config(self):
        result = check_embedded_workflow(WorkflowConfig(workflow_code="empty"))
        assert [e.field for e in result.errors] == ["workflow.states", "workflow.initial_state"]


class TestInMemoryFormRegistry:

    def test_get_and_save(self, purchase_form):
        registry = InMemoryFormRegistry()
        with pytest.raises(FormNotFoundError):
            registry.get_form("purchase_request")
        registry.save_form(purchase_form)
        assert registry.get_form("purchase_request") is purchase_form

    def test_rejects_broken_embedded_workflow(self, purchase_form):
        broken = replace(purchase_form, workflow=replace(purchase_form.workflow, states=("draft",)))
        with pytest.raises(WorkflowValidationError):
            InMemoryFormRegistry().save_form(broken)

"""
Tests for the pure workflow graph validator.

Tests cover:
- validate: required fields, identifier format, state and transition
  passes, reachability, dead ends, final-state advisories
- Duplicate transitions: every member of a duplicate group is flagged
- Edge cases: static workflow, single terminal state, unknown initial state
- Determinism: issue order and repeated calls
- compute_reachable_states closure
- validate_state / validate_transition single-item checks
"""

from dataclasses import replace

import pytest

from workflow_engines.validation import (
    compute_reachable_states,
    is_identifier,
    validate,
    validate_state,
    validate_transition,
)
from workflow_kernel.domain.workflow import (
    SEVERITY_ERROR,
    SEVERITY_WARNING,
    State,
    Transition,
    WorkflowDefinition,
)

IDENTIFIER_RULE = "must contain only lowercase letters, numbers, and underscores"


# =========================================================================
# Factory helpers
# =========================================================================


def make_state(code: str, is_final: bool = False, name: str | None = None) -> State:
    return State(code=code, name=code.replace("_", " ").title() if name is None else name, is_final=is_final)


def make_transition(from_state: str, to_state: str, action: str, **kwargs) -> Transition:
    return Transition(from_state=from_state, to_state=to_state, action=action, **kwargs)


def make_workflow(
    states: tuple[State, ...] = (),
    transitions: tuple[Transition, ...] = (),
    initial_state: str | None = None,
    code: str = "test_flow",
    name: str = "Test Flow",
    version: str = "1.0.0",
) -> WorkflowDefinition:
    if initial_state is None:
        initial_state = states[0].code if states else ""
    return WorkflowDefinition(
        code=code,
        name=name,
        version=version,
        initial_state=initial_state,
        states=states,
        transitions=transitions,
    )


def messages(issues) -> list[str]:
    return [issue.message for issue in issues]


def fields(issues) -> list[str]:
    return [issue.field for issue in issues]


# =========================================================================
# Whole-workflow validation
# =========================================================================


class TestCompleteWorkflow:

    def test_sample_workflow_is_clean(self, purchase_workflow):
        result = validate(purchase_workflow)
        assert result.valid is True
        assert result.errors == ()
        assert result.warnings == ()

    def test_severity_is_carried(self):
        result = validate(WorkflowDefinition())
        assert all(issue.severity == SEVERITY_ERROR for issue in result.errors)
        assert all(issue.severity == SEVERITY_WARNING for issue in result.warnings)


class TestBasicFields:

    def test_empty_definition(self):
        result = validate(WorkflowDefinition())
        assert result.valid is False
        assert messages(result.errors) == [
            "Workflow code is required",
            "Workflow name is required",
            "Version is required",
            "At least one state is required",
        ]
        assert fields(result.errors) == ["code", "name", "version", "states"]

    def test_whitespace_counts_as_missing(self):
        workflow = make_workflow(states=(make_state("done", is_final=True),), name="   ")
        assert messages(validate(workflow).errors) == ["Workflow name is required"]

    @pytest.mark.parametrize("code", ["Purchase", "purchase-approval", "purchase approval", "ünï"])
    def test_code_format(self, code):
        workflow = make_workflow(states=(make_state("done", is_final=True),), code=code)
        assert messages(validate(workflow).errors) == [f"Workflow code {IDENTIFIER_RULE}"]


class TestStatesPass:

    def test_duplicate_state_code_flags_later_occurrence(self):
        workflow = make_workflow(
            states=(make_state("a"), make_state("a", is_final=True, name="Again")),
        )
        result = validate(workflow)
        assert fields(result.errors) == ["states[1].code"]
        assert messages(result.errors) == ['State 2: Duplicate state code "a"']

    def test_missing_code_and_name(self):
        workflow = make_workflow(
            states=(make_state("done", is_final=True), State(code="", name="")),
            initial_state="done",
        )
        result = validate(workflow)
        assert messages(result.errors) == [
            "State 2: Code is required",
            "State 2: Name is required",
        ]
        assert fields(result.errors) == ["states[1].code", "states[1].name"]

    def test_state_code_format(self):
        workflow = make_workflow(states=(State(code="Done", name="Done", is_final=True),))
        result = validate(workflow)
        assert f"State 1: Code {IDENTIFIER_RULE}" in messages(result.errors)

    def test_empty_states_skips_state_checks(self):
        result = validate(make_workflow(initial_state="draft"))
        assert messages(result.errors) == ["At least one state is required"]


class TestInitialState:

    def test_initial_state_required(self):
        workflow = make_workflow(states=(make_state("done", is_final=True),), initial_state="")
        result = validate(workflow)
        assert messages(result.errors) == ["Initial state is required"]

    def test_unknown_initial_state_is_one_error(self):
        workflow = make_workflow(
            states=(make_state("a"), make_state("b", is_final=True)),
            transitions=(make_transition("a", "b", "x"),),
            initial_state="ghost",
        )
        result = validate(workflow)
        assert fields(result.errors) == ["initial_state"]
        assert messages(result.errors) == ['Initial state "ghost" does not exist in states list']

    def test_unknown_initial_state_still_checks_graph(self):
        workflow = make_workflow(
            states=(make_state("a"), make_state("b", is_final=True)),
            transitions=(make_transition("a", "b", "x"),),
            initial_state="ghost",
        )
        result = validate(workflow)
        assert messages(result.warnings) == [
            'State "A" (a) is unreachable from the initial state',
            'State "B" (b) is unreachable from the initial state',
        ]


class TestReachabilityAndDeadEnds:

    def test_unreachable_state_warning(self):
        workflow = make_workflow(
            states=(make_state("start"), make_state("done", is_final=True), make_state("orphan", is_final=True)),
            transitions=(make_transition("start", "done", "finish"),),
        )
        result = validate(workflow)
        assert result.valid is True
        assert fields(result.warnings) == ["states[2]"]
        assert messages(result.warnings) == ['State "Orphan" (orphan) is unreachable from the initial state']

    def test_dead_end_warning(self):
        workflow = make_workflow(
            states=(make_state("start"), make_state("stuck"), make_state("done", is_final=True)),
            transitions=(
                make_transition("start", "stuck", "park"),
                make_transition("start", "done", "finish"),
            ),
        )
        result = validate(workflow)
        assert messages(result.warnings) == ['Non-final state "Stuck" has no outgoing transitions']

    def test_unreachable_then_dead_end_per_state(self):
        workflow = make_workflow(
            states=(make_state("start"), make_state("orphan"), make_state("done", is_final=True)),
            transitions=(make_transition("start", "done", "finish"),),
        )
        result = validate(workflow)
        assert messages(result.warnings) == [
            'State "Orphan" (orphan) is unreachable from the initial state',
            'Non-final state "Orphan" has no outgoing transitions',
        ]

    def test_back_edges_keep_states_reachable(self):
        workflow = make_workflow(
            states=(make_state("a"), make_state("b"), make_state("c", is_final=True)),
            transitions=(
                make_transition("a", "b", "forward"),
                make_transition("b", "a", "back"),
                make_transition("b", "c", "finish"),
            ),
        )
        assert validate(workflow).warnings == ()

    def test_no_final_state_warning(self):
        workflow = make_workflow(
            states=(make_state("a"), make_state("b")),
            transitions=(make_transition("a", "b", "go"), make_transition("b", "a", "back")),
        )
        result = validate(workflow)
        assert result.valid is True
        assert messages(result.warnings) == [
            "No final states defined - workflow may not have clear completion criteria",
        ]
        assert fields(result.warnings) == ["states"]


class TestTransitionsPass:

    def test_unknown_endpoints(self):
        workflow = make_workflow(
            states=(make_state("a"), make_state("done", is_final=True)),
            transitions=(
                make_transition("a", "done", "finish"),
                make_transition("nowhere", "elsewhere", "jump"),
            ),
        )
        result = validate(workflow)
        assert fields(result.errors) == ["transitions[1].from", "transitions[1].to"]
        assert messages(result.errors) == [
            'Transition 2: Source state "nowhere" does not exist',
            'Transition 2: Target state "elsewhere" does not exist',
        ]

    def test_missing_fields(self):
        workflow = make_workflow(
            states=(make_state("done", is_final=True),),
            transitions=(Transition(),),
        )
        result = validate(workflow)
        assert messages(result.errors) == [
            "Transition 1: Source state is required",
            "Transition 1: Target state is required",
            "Transition 1: Action is required",
        ]

    def test_action_format(self):
        workflow = make_workflow(
            states=(make_state("a"), make_state("done", is_final=True)),
            transitions=(make_transition("a", "done", "Finish!"),),
        )
        result = validate(workflow)
        assert fields(result.errors) == ["transitions[0].action"]
        assert messages(result.errors) == [f"Transition 1: Action {IDENTIFIER_RULE}"]

    def test_transition_from_final_state_warns(self):
        workflow = make_workflow(
            states=(make_state("a"), make_state("done", is_final=True)),
            transitions=(
                make_transition("a", "done", "finish"),
                make_transition("done", "a", "reopen"),
            ),
        )
        result = validate(workflow)
        assert result.valid is True
        assert fields(result.warnings) == ["transitions[1]"]
        assert messages(result.warnings) == ['Transition from final state "Done" (done)']


class TestDuplicateTransitions:

    def test_every_member_of_group_is_flagged(self):
        workflow = make_workflow(
            states=(make_state("a"), make_state("b", is_final=True), make_state("c", is_final=True)),
            transitions=(
                make_transition("a", "b", "x"),
                make_transition("a", "b", "x"),
                make_transition("a", "c", "y"),
            ),
        )
        result = validate(workflow)
        duplicates = [e for e in result.errors if "Duplicate transition" in e.message]
        assert len(duplicates) == 2
        assert fields(duplicates) == ["transitions[0]", "transitions[1]"]
        assert messages(duplicates) == [
            "Transition 1: Duplicate transition (a --x--> b)",
            "Transition 2: Duplicate transition (a --x--> b)",
        ]

    def test_label_and_permission_do_not_disambiguate(self):
        workflow = make_workflow(
            states=(make_state("a"), make_state("b", is_final=True)),
            transitions=(
                make_transition("a", "b", "x", label="First", permission="p:one"),
                make_transition("a", "b", "x", label="Second", permission="p:two", requires_comment=True),
            ),
        )
        duplicates = [e for e in validate(workflow).errors if "Duplicate transition" in e.message]
        assert len(duplicates) == 2

    def test_same_action_different_target_is_not_duplicate(self):
        workflow = make_workflow(
            states=(make_state("a"), make_state("b", is_final=True), make_state("c", is_final=True)),
            transitions=(make_transition("a", "b", "x"), make_transition("a", "c", "x")),
        )
        assert validate(workflow).valid is True


class TestEdgeCases:

    def test_single_terminal_state(self):
        workflow = make_workflow(states=(make_state("done", is_final=True),), initial_state="done")
        result = validate(workflow)
        assert result.valid is True
        assert result.errors == ()
        assert result.warnings == ()

    def test_static_workflow_warns_only(self):
        workflow = make_workflow(states=(make_state("draft"), make_state("done", is_final=True)))
        result = validate(workflow)
        assert result.valid is True
        assert "No transitions defined - workflow will be static" in messages(result.warnings)

    def test_static_warning_field(self):
        workflow = make_workflow(states=(make_state("draft"),))
        result = validate(workflow)
        static = [w for w in result.warnings if w.field == "transitions"]
        assert messages(static) == ["No transitions defined - workflow will be static"]


class TestDeterminism:

    def test_idempotent(self, purchase_workflow):
        broken = replace(purchase_workflow, initial_state="ghost", code="Bad Code")
        assert validate(broken) == validate(broken)

    def test_input_is_not_modified(self, purchase_workflow):
        snapshot = replace(purchase_workflow)
        validate(purchase_workflow)
        assert purchase_workflow == snapshot

    def test_issue_order_follows_input(self):
        workflow = make_workflow(
            states=(State(code="", name="Nameless"), make_state("a"), make_state("a")),
            transitions=(
                make_transition("a", "zzz", "go"),
                make_transition("yyy", "a", "back"),
            ),
            initial_state="a",
        )
        result = validate(workflow)
        assert fields(result.errors) == [
            "states[0].code",
            "states[2].code",
            "transitions[0].to",
            "transitions[1].from",
        ]


class TestTracing:

    def test_validate_emits_engine_trace(self, captured_logs, purchase_workflow):
        validate(purchase_workflow)
        traces = [r for r in captured_logs() if r["message"] == "WORKFLOW_ENGINE_TRACE"]
        assert len(traces) == 1
        assert traces[0]["engine_name"] == "workflow_validator"
        assert len(traces[0]["input_fingerprint"]) == 16

    def test_fingerprint_is_stable(self, captured_logs, purchase_workflow):
        validate(purchase_workflow)
        validate(purchase_workflow)
        prints = [r["input_fingerprint"] for r in captured_logs() if r["message"] == "WORKFLOW_ENGINE_TRACE"]
        assert prints[0] == prints[1]


# =========================================================================
# Reachability closure
# =========================================================================


class TestComputeReachableStates:

    def test_contains_initial_state(self):
        assert compute_reachable_states("start", ()) == frozenset({"start"})

    def test_follows_chains_and_cycles(self):
        transitions = (
            make_transition("a", "b", "x"),
            make_transition("b", "c", "x"),
            make_transition("c", "a", "x"),
            make_transition("d", "a", "x"),
        )
        assert compute_reachable_states("a", transitions) == frozenset({"a", "b", "c"})

    def test_order_independent(self):
        transitions = [
            make_transition("a", "b", "x"),
            make_transition("b", "c", "y"),
            make_transition("c", "d", "z"),
        ]
        assert compute_reachable_states("a", transitions) == compute_reachable_states(
            "a", list(reversed(transitions))
        )

    def test_undeclared_endpoints_extend_closure(self):
        assert compute_reachable_states("a", (make_transition("a", "ghost", "x"),)) == {"a", "ghost"}


# =========================================================================
# Single-item validators
# =========================================================================


class TestValidateState:

    def test_valid_state(self):
        assert validate_state(make_state("draft")) == ()

    def test_missing_everything(self):
        issues = validate_state(State())
        assert fields(issues) == ["code", "name"]
        assert messages(issues) == ["State code is required", "State name is required"]

    def test_bad_code(self):
        assert messages(validate_state(State(code="Draft", name="Draft"))) == [
            f"State code {IDENTIFIER_RULE}",
        ]


class TestValidateTransition:

    STATES = (make_state("a"), make_state("b", is_final=True))

    def test_valid_transition(self):
        assert validate_transition(make_transition("a", "b", "go"), self.STATES) == ()

    def test_missing_fields(self):
        issues = validate_transition(Transition(), self.STATES)
        assert fields(issues) == ["from", "to", "action"]
        assert messages(issues) == [
            "Source state is required",
            "Target state is required",
            "Action is required",
        ]

    def test_unknown_states_and_bad_action(self):
        issues = validate_transition(make_transition("x", "y", "Go"), self.STATES)
        assert messages(issues) == [
            'Source state "x" does not exist',
            'Target state "y" does not exist',
            f"Action {IDENTIFIER_RULE}",
        ]


class TestIsIdentifier:

    @pytest.mark.parametrize("value", ["draft", "state_2", "a", "0"])
    def test_accepts(self, value):
        assert is_identifier(value)

    @pytest.mark.parametrize("value", ["", None, "Draft", "in-review", "a b", "draft\n"])
    def test_rejects(self, value):
        assert not is_identifier(value)

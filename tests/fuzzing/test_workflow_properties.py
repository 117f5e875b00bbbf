"""
Hypothesis-based fuzzing of workflow definitions.

Arbitrary, often malformed, definitions are generated from a small pool
of state codes so that references collide and graphs form cycles.

Boundaries fuzzed here:
- Reachability closure against a fixed-point reference
- validate: total (never raises), deterministic, valid iff no errors
- Authoring edits never mutate their input
- apply: success moves to the transition target, failures carry an error
"""

from dataclasses import replace
from uuid import uuid4

from hypothesis import HealthCheck, given, settings
from hypothesis import strategies as st
from hypothesis.strategies import composite

from workflow_engines.authoring import add_state, remove_transition, update_state
from workflow_engines.validation import compute_reachable_states, validate
from workflow_kernel.domain.execution import Actor, FormSubmission
from workflow_kernel.domain.workflow import State, Transition, WorkflowDefinition
from workflow_services.transition_executor import apply

STATE_POOL = ["draft", "review", "approved", "rejected", "", "Bad Code", "1st"]
ACTION_POOL = ["submit", "approve", "reject", "return", "", "Go!"]

FUZZ_SETTINGS = settings(max_examples=150, suppress_health_check=[HealthCheck.too_slow])


@composite
def states(draw):
    return State(
        code=draw(st.sampled_from(STATE_POOL)),
        name=draw(st.sampled_from(["", "Draft", "Review", "Done"])),
        is_final=draw(st.booleans()),
    )


@composite
def transitions(draw):
    return Transition(
        from_state=draw(st.sampled_from(STATE_POOL)),
        to_state=draw(st.sampled_from(STATE_POOL)),
        action=draw(st.sampled_from(ACTION_POOL)),
        label=draw(st.sampled_from(["", "Submit"])),
        permission=draw(st.one_of(st.none(), st.sampled_from(["", "purchase:approve"]))),
        requires_comment=draw(st.booleans()),
    )


@composite
def workflows(draw):
    return WorkflowDefinition(
        code=draw(st.sampled_from(["purchase_approval", "", "Bad Code"])),
        name=draw(st.sampled_from(["Purchase Approval", "", "   "])),
        version=draw(st.sampled_from(["1.0.0", ""])),
        initial_state=draw(st.sampled_from(STATE_POOL)),
        states=tuple(draw(st.lists(states(), max_size=6))),
        transitions=tuple(draw(st.lists(transitions(), max_size=10))),
    )


def fixed_point_closure(initial_state, edges):
    reachable = {initial_state}
    changed = True
    while changed:
        changed = False
        for t in edges:
            if t.from_state in reachable and t.to_state not in reachable:
                reachable.add(t.to_state)
                changed = True
    return frozenset(reachable)


class TestReachabilityFuzzing:

    @given(initial=st.sampled_from(STATE_POOL), edges=st.lists(transitions(), max_size=15))
    @FUZZ_SETTINGS
    def test_matches_fixed_point(self, initial, edges):
        assert compute_reachable_states(initial, edges) == fixed_point_closure(initial, edges)

    @given(initial=st.sampled_from(STATE_POOL), edges=st.lists(transitions(), max_size=15))
    @FUZZ_SETTINGS
    def test_closure_is_closed(self, initial, edges):
        closure = compute_reachable_states(initial, edges)
        assert initial in closure
        for t in edges:
            if t.from_state in closure:
                assert t.to_state in closure


class TestValidationFuzzing:

    @given(workflow=workflows())
    @FUZZ_SETTINGS
    def test_valid_iff_no_errors(self, workflow):
        result = validate(workflow)
        assert result.valid == (len(result.errors) == 0)
        assert all(issue.message for issue in result.errors + result.warnings)

    @given(workflow=workflows())
    @FUZZ_SETTINGS
    def test_deterministic(self, workflow):
        assert validate(workflow) == validate(workflow)

    @given(workflow=workflows())
    @FUZZ_SETTINGS
    def test_every_dangling_reference_is_an_error(self, workflow):
        declared = {s.code for s in workflow.states}
        result = validate(workflow)
        for index, t in enumerate(workflow.transitions):
            if t.to_state and t.to_state not in declared:
                assert f"transitions[{index}].to" in {e.field for e in result.errors}


class TestAuthoringFuzzing:

    @given(workflow=workflows())
    @FUZZ_SETTINGS
    def test_edits_leave_input_untouched(self, workflow):
        snapshot = replace(workflow)
        add_state(workflow)
        if workflow.transitions:
            remove_transition(workflow, 0)
        if workflow.states:
            update_state(workflow, workflow.states[0].code, code="renamed")
        assert workflow == snapshot


class TestApplyFuzzing:

    @given(
        transition=transitions(),
        current_state=st.sampled_from(STATE_POOL),
        capabilities=st.frozensets(st.sampled_from(["purchase:approve", "other"])),
        comment=st.one_of(st.none(), st.sampled_from(["", "  ", "ok"])),
    )
    @FUZZ_SETTINGS
    def test_outcome_shape(self, transition, current_state, capabilities, comment):
        submission = FormSubmission(
            submission_id=uuid4(),
            form_code="purchase_request",
            current_state=current_state,
            submitter_id="alice",
        )
        result = apply(transition, submission, comment, Actor(user_id="bob", capabilities=capabilities))

        assert result.success == (result.error is None)
        if result.success:
            assert result.new_state == transition.to_state
            assert transition.from_state == current_state
        else:
            assert result.new_state is None
            assert result.reason == result.error.message
        assert submission.current_state == current_state

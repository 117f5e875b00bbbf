"""
workflow_engines.validation -- Pure structural validation of workflow definitions.

Responsibility:
    Check a ``WorkflowDefinition`` for structural soundness before it is
    saved or attached to a form: required fields, identifier format,
    duplicate state codes and transitions, dangling state references,
    reachability from the initial state, dead-end states and the presence
    of a final state.

Architecture position:
    Engines -- pure calculation layer, zero I/O.
    May only import workflow_kernel/domain types.

Invariants enforced:
    - Codes (workflow, state, action) match ``^[a-z0-9_]+$``.
    - ``initial_state`` is a declared state.
    - Transition endpoints are declared states.
    - ``(from, to, action)`` is unique; EVERY member of a duplicate group
      is reported, not only the later ones.
    - Unreachable states, non-final dead ends, transitions leaving a final
      state and a missing final state are warnings, not errors.

Failure modes:
    - Never raises for an incomplete definition; every problem becomes an
      ``Issue`` in the returned ``ValidationResult``.

Determinism:
    Issues are collected in one pass and ordered by input position: basic
    fields, states, initial state, per-state reachability, transitions,
    then workflow-level advisories.  Identical input yields an identical
    result.
"""

from __future__ import annotations

import re
from collections import Counter, deque
from collections.abc import Iterable

from workflow_engines.tracer import traced_engine
from workflow_kernel.domain.workflow import (
    SEVERITY_ERROR,
    SEVERITY_WARNING,
    Issue,
    State,
    Transition,
    ValidationResult,
    WorkflowDefinition,
)

IDENTIFIER_PATTERN = re.compile(r"^[a-z0-9_]+$")

IDENTIFIER_RULE = "must contain only lowercase letters, numbers, and underscores"


def _is_blank(value: str | None) -> bool:
    return value is None or value.strip() == ""


def is_identifier(value: str | None) -> bool:
    """True if ``value`` is a non-empty lowercase/digit/underscore identifier."""
    return value is not None and IDENTIFIER_PATTERN.fullmatch(value) is not None


class _IssueCollector:
    """Accumulates errors and warnings in the order they are found."""

    def __init__(self) -> None:
        self.errors: list[Issue] = []
        self.warnings: list[Issue] = []

    def error(self, field: str, message: str) -> None:
        self.errors.append(Issue(field=field, message=message, severity=SEVERITY_ERROR))

    def warning(self, field: str, message: str) -> None:
        self.warnings.append(Issue(field=field, message=message, severity=SEVERITY_WARNING))

    def result(self) -> ValidationResult:
        return ValidationResult(errors=tuple(self.errors), warnings=tuple(self.warnings))


# ---------------------------------------------------------------------------
# Reachability
# ---------------------------------------------------------------------------


def compute_reachable_states(
    initial_state: str,
    transitions: Iterable[Transition],
) -> frozenset[str]:
    """Return every state code reachable from ``initial_state``.

    The closure always contains ``initial_state`` itself (zero transitions
    followed).  Endpoints are taken as written; transitions that reference
    undeclared states still extend the closure.
    """
    outgoing: dict[str, list[str]] = {}
    for t in transitions:
        outgoing.setdefault(t.from_state, []).append(t.to_state)

    reachable = {initial_state}
    queue = deque([initial_state])
    while queue:
        current = queue.popleft()
        for target in outgoing.get(current, ()):
            if target not in reachable:
                reachable.add(target)
                queue.append(target)
    return frozenset(reachable)


# ---------------------------------------------------------------------------
# Whole-definition validation
# ---------------------------------------------------------------------------


@traced_engine("workflow_validator", "1.0", fingerprint_fields=("workflow",))
def validate(workflow: WorkflowDefinition) -> ValidationResult:
    """Validate a (possibly partial) workflow definition.

    Returns:
        ValidationResult whose ``valid`` is True iff no errors were found.
    """
    issues = _IssueCollector()

    _check_basic_fields(workflow, issues)

    if not workflow.states:
        issues.error("states", "At least one state is required")
    else:
        state_codes = _check_states(workflow.states, issues)
        _check_initial_state(workflow.initial_state, state_codes, issues)
        _check_state_graph(workflow, issues)

    _check_transitions(workflow, issues)

    if not any(s.is_final for s in workflow.states):
        issues.warning(
            "states",
            "No final states defined - workflow may not have clear completion criteria",
        )

    return issues.result()


def _check_basic_fields(workflow: WorkflowDefinition, issues: _IssueCollector) -> None:
    if _is_blank(workflow.code):
        issues.error("code", "Workflow code is required")
    elif not is_identifier(workflow.code):
        issues.error("code", f"Workflow code {IDENTIFIER_RULE}")

    if _is_blank(workflow.name):
        issues.error("name", "Workflow name is required")

    if _is_blank(workflow.version):
        issues.error("version", "Version is required")


def _check_states(states: tuple[State, ...], issues: _IssueCollector) -> set[str]:
    """Check each state; return the set of valid, first-seen state codes."""
    seen: set[str] = set()
    for index, state in enumerate(states):
        label = f"State {index + 1}"
        if _is_blank(state.code):
            issues.error(f"states[{index}].code", f"{label}: Code is required")
        elif not is_identifier(state.code):
            issues.error(f"states[{index}].code", f"{label}: Code {IDENTIFIER_RULE}")
        elif state.code in seen:
            issues.error(
                f"states[{index}].code",
                f'{label}: Duplicate state code "{state.code}"',
            )
        else:
            seen.add(state.code)

        if _is_blank(state.name):
            issues.error(f"states[{index}].name", f"{label}: Name is required")
    return seen


def _check_initial_state(
    initial_state: str,
    state_codes: set[str],
    issues: _IssueCollector,
) -> None:
    if _is_blank(initial_state):
        issues.error("initial_state", "Initial state is required")
    elif initial_state not in state_codes:
        issues.error(
            "initial_state",
            f'Initial state "{initial_state}" does not exist in states list',
        )


def _check_state_graph(workflow: WorkflowDefinition, issues: _IssueCollector) -> None:
    """Unreachable and dead-end warnings, per state in author order."""
    reachable = compute_reachable_states(workflow.initial_state, workflow.transitions)
    sources = {t.from_state for t in workflow.transitions}

    for index, state in enumerate(workflow.states):
        if state.code not in reachable and state.code != workflow.initial_state:
            issues.warning(
                f"states[{index}]",
                f'State "{state.name}" ({state.code}) is unreachable from the initial state',
            )
        if not state.is_final and state.code not in sources:
            issues.warning(
                f"states[{index}]",
                f'Non-final state "{state.name}" has no outgoing transitions',
            )


def _check_transitions(workflow: WorkflowDefinition, issues: _IssueCollector) -> None:
    if not workflow.transitions:
        # A workflow made only of terminal states is complete as declared.
        if not workflow.states or not all(s.is_final for s in workflow.states):
            issues.warning("transitions", "No transitions defined - workflow will be static")
        return

    state_codes = {s.code for s in workflow.states}
    first_state_by_code: dict[str, State] = {}
    for state in workflow.states:
        first_state_by_code.setdefault(state.code, state)

    triples = Counter((t.from_state, t.to_state, t.action) for t in workflow.transitions)

    for index, transition in enumerate(workflow.transitions):
        label = f"Transition {index + 1}"
        _check_endpoint(transition.from_state, "from", "Source", index, state_codes, issues)
        _check_endpoint(transition.to_state, "to", "Target", index, state_codes, issues)

        if _is_blank(transition.action):
            issues.error(f"transitions[{index}].action", f"{label}: Action is required")
        elif not is_identifier(transition.action):
            issues.error(f"transitions[{index}].action", f"{label}: Action {IDENTIFIER_RULE}")

        source = first_state_by_code.get(transition.from_state)
        if source is not None and source.is_final:
            issues.warning(
                f"transitions[{index}]",
                f'Transition from final state "{source.name}" ({source.code})',
            )

        if triples[(transition.from_state, transition.to_state, transition.action)] > 1:
            issues.error(
                f"transitions[{index}]",
                f"{label}: Duplicate transition "
                f"({transition.from_state} --{transition.action}--> {transition.to_state})",
            )


def _check_endpoint(
    value: str,
    key: str,
    role: str,
    index: int,
    state_codes: set[str],
    issues: _IssueCollector,
) -> None:
    field = f"transitions[{index}].{key}"
    if _is_blank(value):
        issues.error(field, f"Transition {index + 1}: {role} state is required")
    elif value not in state_codes:
        issues.error(field, f'Transition {index + 1}: {role} state "{value}" does not exist')


# ---------------------------------------------------------------------------
# Single-item validation (editor side panels)
# ---------------------------------------------------------------------------


def validate_state(state: State) -> tuple[Issue, ...]:
    """Validate one state in isolation.  Fields are relative to the state."""
    issues = _IssueCollector()
    if _is_blank(state.code):
        issues.error("code", "State code is required")
    elif not is_identifier(state.code):
        issues.error("code", f"State code {IDENTIFIER_RULE}")
    if _is_blank(state.name):
        issues.error("name", "State name is required")
    return tuple(issues.errors)


def validate_transition(
    transition: Transition,
    states: Iterable[State],
) -> tuple[Issue, ...]:
    """Validate one transition against a state list.  Fields are relative."""
    state_codes = {s.code for s in states}
    issues = _IssueCollector()

    for value, key, role in (
        (transition.from_state, "from", "Source"),
        (transition.to_state, "to", "Target"),
    ):
        if _is_blank(value):
            issues.error(key, f"{role} state is required")
        elif value not in state_codes:
            issues.error(key, f'{role} state "{value}" does not exist')

    if _is_blank(transition.action):
        issues.error("action", "Action is required")
    elif not is_identifier(transition.action):
        issues.error("action", f"Action {IDENTIFIER_RULE}")
    return tuple(issues.errors)

"""
workflow_engines.authoring -- Immutable edits to workflow definitions.

Responsibility:
    Every authoring operation (add/update/remove a state, transition or
    notification rule, change the initial state) takes a
    ``WorkflowDefinition`` and returns a NEW one.  ``propose`` pairs an
    edit with re-validation so callers accept a definition only when it
    is valid.

Architecture position:
    Engines -- pure calculation layer, zero I/O.

Invariants enforced:
    - Inputs are never mutated; every edit returns a fresh frozen value.
    - A workflow keeps at least one state.
    - Removing a state removes every transition that starts or ends there.
    - Renaming a state rewrites the initial state and transition endpoints
      that referred to the old code.
    - Embedding a definition into a form requires a valid definition.

Failure modes:
    - UnknownStateError: edit names a state code that is not declared.
    - LastStateRemovalError: edit would remove the only state.
    - TransitionIndexError: transition or rule index out of range.
    - WorkflowValidationError: ``embed_workflow`` on an invalid definition.
"""

from __future__ import annotations

from collections.abc import Callable
from dataclasses import dataclass, replace
from typing import Any

from workflow_engines.validation import validate
from workflow_kernel.domain.workflow import (
    FormDefinition,
    NotificationRule,
    State,
    Transition,
    ValidationResult,
    WorkflowConfig,
    WorkflowDefinition,
)
from workflow_kernel.exceptions import (
    LastStateRemovalError,
    TransitionIndexError,
    UnknownStateError,
    WorkflowValidationError,
)

DRAFT_VERSION = "1.0.0"
DRAFT_STATE = State(
    code="draft",
    name="Draft",
    description="Initial draft state",
    color="gray",
    icon="edit",
    is_final=False,
)


@dataclass(frozen=True)
class EditOutcome:
    """An edited definition and its validation result."""

    definition: WorkflowDefinition
    validation: ValidationResult

    @property
    def accepted(self) -> bool:
        return self.validation.valid


def new_workflow_draft(code: str = "", name: str = "") -> WorkflowDefinition:
    """Starting point for a new workflow: one non-final ``draft`` state."""
    return WorkflowDefinition(
        code=code,
        name=name,
        version=DRAFT_VERSION,
        initial_state=DRAFT_STATE.code,
        states=(DRAFT_STATE,),
    )


# ---------------------------------------------------------------------------
# States
# ---------------------------------------------------------------------------


def _state_index(definition: WorkflowDefinition, code: str) -> int:
    for index, state in enumerate(definition.states):
        if state.code == code:
            return index
    raise UnknownStateError(code)


def add_state(definition: WorkflowDefinition, state: State | None = None) -> WorkflowDefinition:
    """Append a state.  Without ``state`` a numbered placeholder is added."""
    if state is None:
        position = len(definition.states) + 1
        state = State(
            code=f"state_{position}",
            name=f"State {position}",
            color="blue",
            icon="star",
        )
    return replace(definition, states=definition.states + (state,))


def update_state(definition: WorkflowDefinition, code: str, **changes: Any) -> WorkflowDefinition:
    """Replace fields of the first state with ``code``."""
    index = _state_index(definition, code)
    updated = replace(definition.states[index], **changes)
    states = definition.states[:index] + (updated,) + definition.states[index + 1:]

    if updated.code == code:
        return replace(definition, states=states)

    def rename(value: str) -> str:
        return updated.code if value == code else value

    transitions = tuple(
        replace(t, from_state=rename(t.from_state), to_state=rename(t.to_state))
        for t in definition.transitions
    )
    return replace(
        definition,
        states=states,
        transitions=transitions,
        initial_state=rename(definition.initial_state),
    )


def remove_state(definition: WorkflowDefinition, code: str) -> WorkflowDefinition:
    """Remove a state and every transition touching it."""
    index = _state_index(definition, code)
    if len(definition.states) == 1:
        raise LastStateRemovalError(code)
    return replace(
        definition,
        states=definition.states[:index] + definition.states[index + 1:],
        transitions=tuple(
            t for t in definition.transitions
            if t.from_state != code and t.to_state != code
        ),
    )


def set_initial_state(definition: WorkflowDefinition, code: str) -> WorkflowDefinition:
    _state_index(definition, code)
    return replace(definition, initial_state=code)


# ---------------------------------------------------------------------------
# Transitions and notification rules
# ---------------------------------------------------------------------------


def _check_index(index: int, size: int) -> None:
    if not 0 <= index < size:
        raise TransitionIndexError(index, size)


def _replace_transition(
    definition: WorkflowDefinition,
    index: int,
    transition: Transition,
) -> WorkflowDefinition:
    transitions = list(definition.transitions)
    transitions[index] = transition
    return replace(definition, transitions=tuple(transitions))


def add_transition(
    definition: WorkflowDefinition,
    transition: Transition | None = None,
) -> WorkflowDefinition:
    """Append a transition.  Without ``transition`` a blank one is added."""
    return replace(
        definition,
        transitions=definition.transitions + (transition or Transition(),),
    )


def update_transition(definition: WorkflowDefinition, index: int, **changes: Any) -> WorkflowDefinition:
    _check_index(index, len(definition.transitions))
    return _replace_transition(
        definition, index, replace(definition.transitions[index], **changes),
    )


def remove_transition(definition: WorkflowDefinition, index: int) -> WorkflowDefinition:
    _check_index(index, len(definition.transitions))
    return replace(
        definition,
        transitions=definition.transitions[:index] + definition.transitions[index + 1:],
    )


def add_notification(
    definition: WorkflowDefinition,
    index: int,
    rule: NotificationRule | None = None,
) -> WorkflowDefinition:
    """Append a notification rule to transition ``index``."""
    _check_index(index, len(definition.transitions))
    transition = definition.transitions[index]
    return _replace_transition(
        definition,
        index,
        replace(transition, notifications=transition.notifications + (rule or NotificationRule(),)),
    )


def remove_notification(
    definition: WorkflowDefinition,
    index: int,
    rule_index: int,
) -> WorkflowDefinition:
    _check_index(index, len(definition.transitions))
    transition = definition.transitions[index]
    _check_index(rule_index, len(transition.notifications))
    notifications = (
        transition.notifications[:rule_index] + transition.notifications[rule_index + 1:]
    )
    return _replace_transition(definition, index, replace(transition, notifications=notifications))


# ---------------------------------------------------------------------------
# Re-validation and embedding
# ---------------------------------------------------------------------------


def propose(
    definition: WorkflowDefinition,
    edit: Callable[..., WorkflowDefinition],
    *args: Any,
    **kwargs: Any,
) -> EditOutcome:
    """Apply ``edit`` and validate the result.

    The input definition is untouched whatever the outcome; the caller
    keeps ``outcome.definition`` only if ``outcome.accepted``.
    """
    edited = edit(definition, *args, **kwargs)
    return EditOutcome(definition=edited, validation=validate(edited))


def to_workflow_config(definition: WorkflowDefinition) -> WorkflowConfig:
    """Reduce a definition to the form-embedded configuration."""
    return WorkflowConfig(
        workflow_code=definition.code,
        initial_state=definition.initial_state,
        states=definition.state_codes,
        transitions=definition.transitions,
    )


def embed_workflow(form: FormDefinition, definition: WorkflowDefinition) -> FormDefinition:
    """Attach a validated workflow to a form.

    Raises:
        WorkflowValidationError: If the definition has validation errors.
    """
    result = validate(definition)
    if not result.valid:
        raise WorkflowValidationError(definition.code, result)
    return replace(form, workflow=to_workflow_config(definition))

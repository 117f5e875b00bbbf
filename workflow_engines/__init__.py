"""
Module: workflow_engines
Responsibility:
    Package entrypoint that re-exports the public symbols of the pure
    workflow engines.  This is the canonical import surface for
    workflow_services and operator scripts.

Architecture position:
    Engines -- pure calculation layer, zero I/O.
    May only import workflow_kernel (domain, exceptions, logging).
    MUST NOT import workflow_config or workflow_services.

Invariants enforced:
    - Purity: engines never read the clock or touch storage.
    - Determinism: identical inputs always produce identical outputs.

Usage:
    from workflow_engines import validate, resolve_all, render_template
    from workflow_engines.authoring import propose, add_state
"""

from workflow_engines.authoring import (
    EditOutcome,
    add_notification,
    add_state,
    add_transition,
    embed_workflow,
    new_workflow_draft,
    propose,
    remove_notification,
    remove_state,
    remove_transition,
    set_initial_state,
    to_workflow_config,
    update_state,
    update_transition,
)
from workflow_engines.recipients import RecipientContext, resolve, resolve_all
from workflow_engines.templates import lookup_path, render_template
from workflow_engines.tracer import compute_input_fingerprint, traced_engine
from workflow_engines.validation import (
    IDENTIFIER_PATTERN,
    compute_reachable_states,
    is_identifier,
    validate,
    validate_state,
    validate_transition,
)

__all__ = [
    # Validation
    "IDENTIFIER_PATTERN",
    "compute_reachable_states",
    "is_identifier",
    "validate",
    "validate_state",
    "validate_transition",
    # Recipients
    "RecipientContext",
    "resolve",
    "resolve_all",
    # Templates
    "lookup_path",
    "render_template",
    # Authoring
    "EditOutcome",
    "add_notification",
    "add_state",
    "add_transition",
    "embed_workflow",
    "new_workflow_draft",
    "propose",
    "remove_notification",
    "remove_state",
    "remove_transition",
    "set_initial_state",
    "to_workflow_config",
    "update_state",
    "update_transition",
    # Tracing
    "compute_input_fingerprint",
    "traced_engine",
]

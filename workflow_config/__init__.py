"""
workflow_config -- engine settings and the workflow wire codec.

Responsibility:
    ``get_settings()`` is the single entrypoint for runtime settings.  The
    ``loader`` module converts workflow and form documents (YAML/JSON)
    to and from the frozen domain types.

Architecture position:
    Configuration -- sits above ``workflow_kernel`` and
    ``workflow_engines`` and below ``workflow_services``.  The kernel and
    engines MUST NEVER import from ``workflow_config``.
"""

from workflow_config.loader import (
    DEFAULT_RULE_DEFAULTS,
    RuleDefaults,
    compute_checksum,
    form_to_dict,
    load_form_file,
    load_workflow_file,
    parse_form,
    parse_notification_rule,
    parse_recipient,
    parse_transition,
    parse_workflow,
    transition_result_to_dict,
    validate_document,
    validation_result_to_dict,
    workflow_to_dict,
)
from workflow_config.settings import EngineSettings, get_settings, load_settings

__all__ = [
    "DEFAULT_RULE_DEFAULTS",
    "EngineSettings",
    "RuleDefaults",
    "compute_checksum",
    "form_to_dict",
    "get_settings",
    "load_form_file",
    "load_settings",
    "load_workflow_file",
    "parse_form",
    "parse_notification_rule",
    "parse_recipient",
    "parse_transition",
    "parse_workflow",
    "transition_result_to_dict",
    "validate_document",
    "validation_result_to_dict",
    "workflow_to_dict",
]

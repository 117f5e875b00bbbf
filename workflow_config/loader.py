"""
Wire Codec (``workflow_config.loader``).

Responsibility
--------------
Loads workflow and form definition documents (YAML or JSON -- JSON is a
YAML subset, so ``yaml.safe_load`` reads both) and converts between the
plain wire shape and the frozen ``workflow_kernel.domain`` types.

Architecture position
---------------------
**Config layer** -- sits above ``workflow_kernel`` and ``workflow_engines``
and below ``workflow_services``.  The kernel and engines never import it.

Invariants enforced
-------------------
* Lenient about MISSING keys: absent fields take the domain defaults so a
  partially authored document still parses and can be validated.
* Strict about WRONG SHAPES: a non-mapping where a mapping belongs, a
  non-list where a list belongs, or an unknown recipient ``type``,
  ``priority`` or ``channel`` raises ``WorkflowFormatError`` naming the
  offending path.
* Serialization is the inverse shape: ``from``/``to`` keys, recipient
  ``type`` tags, ``valid``/``errors``/``warnings``.
* ``compute_checksum`` is a deterministic SHA-256 of the canonical JSON.

Failure modes
-------------
* Missing file  -> ``FileNotFoundError`` propagates.
* Malformed YAML  -> ``yaml.YAMLError`` propagates.
* Wrong shape  -> ``WorkflowFormatError``.
"""

from __future__ import annotations

import hashlib
import json
from dataclasses import dataclass
from pathlib import Path
from typing import Any

import yaml

from workflow_engines.validation import validate
from workflow_kernel.domain.execution import ExecutionError, NotificationRequest, TransitionResult
from workflow_kernel.domain.workflow import (
    RECIPIENT_TYPES,
    ApproverRecipient,
    BusinessRoleRecipient,
    FieldValueRecipient,
    FormDefinition,
    Issue,
    NotificationChannel,
    NotificationPriority,
    NotificationRule,
    PermissionRecipient,
    RecipientSpec,
    RoleRecipient,
    State,
    SubmitterRecipient,
    Transition,
    UserRecipient,
    ValidationResult,
    WorkflowConfig,
    WorkflowDefinition,
)
from workflow_kernel.exceptions import WorkflowFormatError


@dataclass(frozen=True)
class RuleDefaults:
    """Priority and channels applied to notification rules that omit them."""

    priority: NotificationPriority = NotificationPriority.NORMAL
    channels: frozenset[NotificationChannel] = frozenset({NotificationChannel.IN_APP})


DEFAULT_RULE_DEFAULTS = RuleDefaults()


# ---------------------------------------------------------------------------
# Files
# ---------------------------------------------------------------------------


def load_yaml_file(path: Path | str) -> Any:
    """
    Load a single YAML (or JSON) file.

    Postconditions:
        - Returns the parsed document; an empty file yields ``{}``.
    Raises:
        FileNotFoundError: if the file does not exist.
        yaml.YAMLError: if the file contains invalid YAML.
        UnicodeDecodeError: if the file is not UTF-8 text.
    """
    with open(path, encoding="utf-8") as f:
        document = yaml.safe_load(f)
    return {} if document is None else document


def load_workflow_file(
    path: Path | str,
    defaults: RuleDefaults = DEFAULT_RULE_DEFAULTS,
) -> WorkflowDefinition:
    """Load and parse a workflow definition document."""
    return parse_workflow(load_yaml_file(path), defaults=defaults)


def load_form_file(
    path: Path | str,
    defaults: RuleDefaults = DEFAULT_RULE_DEFAULTS,
) -> FormDefinition:
    """Load and parse a form definition document."""
    return parse_form(load_yaml_file(path), defaults=defaults)


# ---------------------------------------------------------------------------
# Shape helpers
# ---------------------------------------------------------------------------


def _join(path: str, key: str) -> str:
    return f"{path}.{key}" if path else key


def _mapping(value: Any, path: str) -> dict[str, Any]:
    if value is None:
        return {}
    if not isinstance(value, dict):
        raise WorkflowFormatError(path, f"expected a mapping, got {type(value).__name__}")
    return value


def _list(value: Any, path: str) -> list[Any]:
    if value is None:
        return []
    if not isinstance(value, list):
        raise WorkflowFormatError(path, f"expected a list, got {type(value).__name__}")
    return value


def _text(data: dict[str, Any], key: str, path: str) -> str:
    value = data.get(key)
    if value is None:
        return ""
    if isinstance(value, str):
        return value
    # YAML reads unquoted versions such as 1.0 as numbers.
    if isinstance(value, (int, float)) and not isinstance(value, bool):
        return str(value)
    raise WorkflowFormatError(_join(path, key), f"expected a string, got {type(value).__name__}")


def _flag(data: dict[str, Any], key: str, path: str, default: bool) -> bool:
    value = data.get(key)
    if value is None:
        return default
    if not isinstance(value, bool):
        raise WorkflowFormatError(_join(path, key), f"expected a boolean, got {type(value).__name__}")
    return value


def _enum(enum_type: type, value: Any, path: str) -> Any:
    try:
        return enum_type(value)
    except ValueError:
        allowed = ", ".join(member.value for member in enum_type)
        raise WorkflowFormatError(path, f"unknown value {value!r} (expected one of: {allowed})") from None


# ---------------------------------------------------------------------------
# Parsing
# ---------------------------------------------------------------------------


def parse_recipient(data: Any, path: str = "recipient") -> RecipientSpec:
    """Parse one recipient spec; ``type`` selects the variant."""
    data = _mapping(data, path)
    kind = _text(data, "type", path)
    if kind not in RECIPIENT_TYPES:
        raise WorkflowFormatError(f"{path}.type", f"unknown recipient type {kind!r}")

    match kind:
        case "user":
            return UserRecipient(value=_text(data, "value", path))
        case "role":
            return RoleRecipient(role_id=_text(data, "role_id", path))
        case "business_role":
            return BusinessRoleRecipient(business_role_id=_text(data, "business_role_id", path))
        case "permission":
            code = _text(data, "permission_code", path) or _text(data, "value", path)
            return PermissionRecipient(permission_code=code)
        case "field_value":
            return FieldValueRecipient(value=_text(data, "value", path))
        case "submitter":
            return SubmitterRecipient()
        case _:
            return ApproverRecipient()


def parse_notification_rule(
    data: Any,
    path: str = "notification",
    defaults: RuleDefaults = DEFAULT_RULE_DEFAULTS,
) -> NotificationRule:
    """Parse a notification rule; omitted priority/channels take ``defaults``."""
    data = _mapping(data, path)

    priority = defaults.priority
    if data.get("priority") is not None:
        priority = _enum(NotificationPriority, data["priority"], f"{path}.priority")

    channels = defaults.channels
    if data.get("channels") is not None:
        channels = frozenset(
            _enum(NotificationChannel, value, f"{path}.channels[{i}]")
            for i, value in enumerate(_list(data["channels"], f"{path}.channels"))
        )

    return NotificationRule(
        recipients=tuple(
            parse_recipient(item, f"{path}.recipients[{i}]")
            for i, item in enumerate(_list(data.get("recipients"), f"{path}.recipients"))
        ),
        title_template=_text(data, "title_template", path),
        body_template=_text(data, "body_template", path),
        priority=priority,
        channels=channels,
    )


def parse_state(data: Any, path: str = "state") -> State:
    data = _mapping(data, path)
    return State(
        code=_text(data, "code", path),
        name=_text(data, "name", path),
        description=_text(data, "description", path),
        color=_text(data, "color", path),
        icon=_text(data, "icon", path),
        is_final=_flag(data, "is_final", path, False),
    )


def parse_transition(
    data: Any,
    path: str = "transition",
    defaults: RuleDefaults = DEFAULT_RULE_DEFAULTS,
) -> Transition:
    """Parse a transition.  An empty ``permission`` means unrestricted."""
    data = _mapping(data, path)
    return Transition(
        from_state=_text(data, "from", path),
        to_state=_text(data, "to", path),
        action=_text(data, "action", path),
        label=_text(data, "label", path),
        permission=_text(data, "permission", path) or None,
        requires_comment=_flag(data, "requires_comment", path, False),
        notifications=tuple(
            parse_notification_rule(item, f"{path}.notifications[{i}]", defaults)
            for i, item in enumerate(_list(data.get("notifications"), f"{path}.notifications"))
        ),
    )


def _parse_transitions(
    data: dict[str, Any],
    path: str,
    defaults: RuleDefaults,
) -> tuple[Transition, ...]:
    prefix = _join(path, "transitions")
    return tuple(
        parse_transition(item, f"{prefix}[{i}]", defaults)
        for i, item in enumerate(_list(data.get("transitions"), prefix))
    )


def parse_workflow(
    data: Any,
    path: str = "",
    defaults: RuleDefaults = DEFAULT_RULE_DEFAULTS,
) -> WorkflowDefinition:
    """Parse a (possibly partial) workflow definition document."""
    data = _mapping(data, path or "workflow")
    prefix = _join(path, "states")
    return WorkflowDefinition(
        code=_text(data, "code", path),
        name=_text(data, "name", path),
        version=_text(data, "version", path),
        description=_text(data, "description", path),
        initial_state=_text(data, "initial_state", path),
        states=tuple(
            parse_state(item, f"{prefix}[{i}]")
            for i, item in enumerate(_list(data.get("states"), prefix))
        ),
        transitions=_parse_transitions(data, path, defaults),
        is_active=_flag(data, "is_active", path, True),
    )


def parse_workflow_config(
    data: Any,
    path: str = "workflow",
    defaults: RuleDefaults = DEFAULT_RULE_DEFAULTS,
) -> WorkflowConfig:
    """Parse a form-embedded workflow.

    ``states`` may list bare codes or full state mappings; only the codes
    are kept.
    """
    data = _mapping(data, path)
    codes: list[str] = []
    for i, item in enumerate(_list(data.get("states"), f"{path}.states")):
        if isinstance(item, str):
            codes.append(item)
        else:
            codes.append(parse_state(item, f"{path}.states[{i}]").code)
    return WorkflowConfig(
        workflow_code=_text(data, "workflow_code", path),
        initial_state=_text(data, "initial_state", path),
        states=tuple(codes),
        transitions=_parse_transitions(data, path, defaults),
    )


def parse_form(
    data: Any,
    path: str = "form",
    defaults: RuleDefaults = DEFAULT_RULE_DEFAULTS,
) -> FormDefinition:
    """Parse a form definition.  Steps and fields are ignored."""
    data = _mapping(data, path)
    verticals = _list(data.get("accessible_verticals"), f"{path}.accessible_verticals")
    for i, vertical in enumerate(verticals):
        if not isinstance(vertical, str):
            raise WorkflowFormatError(f"{path}.accessible_verticals[{i}]", "expected a string")
    workflow = data.get("workflow")
    return FormDefinition(
        form_code=_text(data, "form_code", path),
        title=_text(data, "title", path),
        description=_text(data, "description", path),
        version=_text(data, "version", path),
        module=_text(data, "module", path),
        accessible_verticals=tuple(verticals),
        workflow=None if workflow is None else parse_workflow_config(workflow, f"{path}.workflow", defaults),
        is_active=_flag(data, "is_active", path, True),
    )


def validate_document(
    data: Any,
    defaults: RuleDefaults = DEFAULT_RULE_DEFAULTS,
) -> ValidationResult:
    """Parse a raw workflow document leniently and validate it.

    A wrong-shaped document is reported as a single error at the
    offending path rather than raised.
    """
    try:
        definition = parse_workflow(data, defaults=defaults)
    except WorkflowFormatError as exc:
        return ValidationResult(errors=(Issue(field=exc.path, message=exc.reason),))
    return validate(definition)


# ---------------------------------------------------------------------------
# Serialization
# ---------------------------------------------------------------------------


def recipient_to_dict(spec: RecipientSpec) -> dict[str, Any]:
    match spec:
        case UserRecipient(value=value) | FieldValueRecipient(value=value):
            return {"type": spec.type, "value": value}
        case RoleRecipient(role_id=role_id):
            return {"type": spec.type, "role_id": role_id}
        case BusinessRoleRecipient(business_role_id=business_role_id):
            return {"type": spec.type, "business_role_id": business_role_id}
        case PermissionRecipient(permission_code=permission_code):
            return {"type": spec.type, "permission_code": permission_code}
    return {"type": spec.type}


def _channels_to_list(channels: frozenset[NotificationChannel]) -> list[str]:
    return [channel.value for channel in NotificationChannel if channel in channels]


def notification_rule_to_dict(rule: NotificationRule) -> dict[str, Any]:
    return {
        "recipients": [recipient_to_dict(r) for r in rule.recipients],
        "title_template": rule.title_template,
        "body_template": rule.body_template,
        "priority": rule.priority.value,
        "channels": _channels_to_list(rule.channels),
    }


def state_to_dict(state: State) -> dict[str, Any]:
    return {
        "code": state.code,
        "name": state.name,
        "description": state.description,
        "color": state.color,
        "icon": state.icon,
        "is_final": state.is_final,
    }


def transition_to_dict(transition: Transition) -> dict[str, Any]:
    return {
        "from": transition.from_state,
        "to": transition.to_state,
        "action": transition.action,
        "label": transition.label,
        "permission": transition.permission or "",
        "requires_comment": transition.requires_comment,
        "notifications": [notification_rule_to_dict(n) for n in transition.notifications],
    }


def workflow_to_dict(definition: WorkflowDefinition) -> dict[str, Any]:
    return {
        "code": definition.code,
        "name": definition.name,
        "version": definition.version,
        "description": definition.description,
        "initial_state": definition.initial_state,
        "states": [state_to_dict(s) for s in definition.states],
        "transitions": [transition_to_dict(t) for t in definition.transitions],
        "is_active": definition.is_active,
    }


def workflow_config_to_dict(config: WorkflowConfig) -> dict[str, Any]:
    return {
        "workflow_code": config.workflow_code,
        "initial_state": config.initial_state,
        "states": list(config.states),
        "transitions": [transition_to_dict(t) for t in config.transitions],
    }


def form_to_dict(form: FormDefinition) -> dict[str, Any]:
    return {
        "form_code": form.form_code,
        "title": form.title,
        "description": form.description,
        "version": form.version,
        "module": form.module,
        "accessible_verticals": list(form.accessible_verticals),
        "workflow": None if form.workflow is None else workflow_config_to_dict(form.workflow),
        "is_active": form.is_active,
    }


def _issue_to_dict(issue: Issue) -> dict[str, str]:
    return {"field": issue.field, "message": issue.message, "severity": issue.severity}


def validation_result_to_dict(result: ValidationResult) -> dict[str, Any]:
    return {
        "valid": result.valid,
        "errors": [_issue_to_dict(i) for i in result.errors],
        "warnings": [_issue_to_dict(i) for i in result.warnings],
    }


def _error_to_dict(error: ExecutionError) -> dict[str, Any]:
    return {"code": error.code, "action": error.action, "message": error.message}


def _request_to_dict(request: NotificationRequest) -> dict[str, Any]:
    return {
        "recipient_id": request.recipient_id,
        "title": request.title,
        "body": request.body,
        "priority": request.priority.value,
        "channels": _channels_to_list(request.channels),
    }


def transition_result_to_dict(result: TransitionResult) -> dict[str, Any]:
    return {
        "success": result.success,
        "new_state": result.new_state,
        "error": None if result.error is None else _error_to_dict(result.error),
        "reason": result.reason,
        "notifications": [_request_to_dict(n) for n in result.notifications],
    }


def compute_checksum(definition: WorkflowDefinition) -> str:
    """
    Compute SHA-256 checksum of the canonical JSON serialization.

    Postconditions:
        - Identical definitions always produce identical checksums.
    """
    canonical = json.dumps(workflow_to_dict(definition), sort_keys=True, default=str)
    return hashlib.sha256(canonical.encode()).hexdigest()

"""
workflow_engines.templates -- ``{{variable}}`` rendering for notification text.

Responsibility:
    Substitute ``{{name}}`` and dotted ``{{form_data.field}}`` placeholders
    in notification title/body templates.

Architecture position:
    Engines -- pure calculation layer, zero I/O.

Invariants enforced:
    - Rendering never raises: a missing variable, a path through a
      non-mapping, or a ``None`` value renders as the empty string.
    - Every ``{{...}}`` is a placeholder.  Its trimmed content is a
      dot-separated path whose segments are taken verbatim, so form
      field keys may contain hyphens or spaces.
    - Text outside placeholders is returned unchanged.

Variables supplied by the executor:
    submitter_name, approver_name, form_title, current_state, form_data.<field>,
    recipient_id, recipient_name, action, from_state, to_state.
"""

from __future__ import annotations

import json
import re
from collections.abc import Mapping
from typing import Any

PLACEHOLDER_PATTERN = re.compile(r"\{\{\s*([^{}]*?)\s*\}\}")

_MISSING = object()


def lookup_path(context: Mapping[str, Any], path: str) -> Any:
    """Follow a dotted path through nested mappings.

    Returns ``None`` when any segment is absent or a non-mapping is reached.
    """
    current: Any = context
    for segment in path.split("."):
        if not isinstance(current, Mapping):
            return None
        current = current.get(segment, _MISSING)
        if current is _MISSING:
            return None
    return current


def _to_text(value: Any) -> str:
    if value is None:
        return ""
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, str):
        return value
    if isinstance(value, (Mapping, list, tuple)):
        return json.dumps(value, sort_keys=True, default=str)
    return str(value)


def render_template(template: str, context: Mapping[str, Any]) -> str:
    """Render ``template`` against ``context``."""
    if not template:
        return ""
    return PLACEHOLDER_PATTERN.sub(
        lambda match: _to_text(lookup_path(context, match.group(1))),
        template,
    )

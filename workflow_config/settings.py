"""
Engine Settings (``workflow_config.settings``).

Responsibility
--------------
Load the runtime settings of the workflow engine from an optional YAML
file.  ``get_settings()`` is the ONLY place that reads the
``WORKFLOW_ENGINE_CONFIG`` environment variable; services receive an
``EngineSettings`` value and never look at files or the environment.

Invariants enforced
-------------------
* Unknown keys are rejected, so a misspelt setting never silently falls
  back to its default.
* ``cas_max_retries`` and ``notification_max_attempts`` are positive
  integers; ``default_priority`` and ``default_channels`` are known enum
  values; ``log_level`` is a standard logging level name.

Failure modes
-------------
* ``ConfigurationError`` for an unreadable value, unknown key or a
  document that is not a mapping.
* Missing file  -> ``FileNotFoundError`` propagates.
"""

from __future__ import annotations

import os
from dataclasses import dataclass, fields
from pathlib import Path
from typing import Any

import yaml

from workflow_config.loader import RuleDefaults
from workflow_kernel.domain.workflow import NotificationChannel, NotificationPriority
from workflow_kernel.exceptions import ConfigurationError
from workflow_kernel.logging_config import get_logger

_logger = get_logger("config")

CONFIG_ENV_VAR = "WORKFLOW_ENGINE_CONFIG"

_LOG_LEVELS = ("DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL")


@dataclass(frozen=True)
class EngineSettings:
    """Runtime settings shared by the services layer."""

    database_url: str = "sqlite://"
    log_level: str = "INFO"
    cas_max_retries: int = 3
    notification_max_attempts: int = 3
    default_priority: str = NotificationPriority.NORMAL.value
    default_channels: tuple[str, ...] = (NotificationChannel.IN_APP.value,)

    def rule_defaults(self) -> RuleDefaults:
        """Defaults applied to parsed notification rules."""
        return RuleDefaults(
            priority=NotificationPriority(self.default_priority),
            channels=frozenset(NotificationChannel(c) for c in self.default_channels),
        )


def _positive_int(source: str, key: str, value: Any) -> int:
    if isinstance(value, bool) or not isinstance(value, int) or value < 1:
        raise ConfigurationError(source, f"{key} must be a positive integer, got {value!r}")
    return value


def _settings_from_mapping(source: str, data: Any) -> EngineSettings:
    if not isinstance(data, dict):
        raise ConfigurationError(source, "settings document must be a mapping")

    known = {f.name for f in fields(EngineSettings)}
    unknown = sorted(set(data) - known)
    if unknown:
        raise ConfigurationError(source, f"unknown setting(s): {', '.join(unknown)}")

    values: dict[str, Any] = {}
    if "database_url" in data:
        if not isinstance(data["database_url"], str) or not data["database_url"]:
            raise ConfigurationError(source, "database_url must be a non-empty string")
        values["database_url"] = data["database_url"]
    if "log_level" in data:
        level = str(data["log_level"]).upper()
        if level not in _LOG_LEVELS:
            raise ConfigurationError(source, f"log_level must be one of {', '.join(_LOG_LEVELS)}")
        values["log_level"] = level
    for key in ("cas_max_retries", "notification_max_attempts"):
        if key in data:
            values[key] = _positive_int(source, key, data[key])
    if "default_priority" in data:
        try:
            values["default_priority"] = NotificationPriority(data["default_priority"]).value
        except ValueError:
            raise ConfigurationError(
                source, f"unknown default_priority {data['default_priority']!r}",
            ) from None
    if "default_channels" in data:
        raw = data["default_channels"]
        if not isinstance(raw, list) or not raw:
            raise ConfigurationError(source, "default_channels must be a non-empty list")
        try:
            values["default_channels"] = tuple(NotificationChannel(c).value for c in raw)
        except ValueError:
            raise ConfigurationError(source, f"unknown channel in default_channels: {raw!r}") from None

    return EngineSettings(**values)


def load_settings(path: Path | str) -> EngineSettings:
    """Parse an engine settings YAML file.

    Raises:
        ConfigurationError: If the document or any value is invalid.
        FileNotFoundError: If the file does not exist.
    """
    with open(path, encoding="utf-8") as f:
        try:
            data = yaml.safe_load(f)
        except yaml.YAMLError as exc:
            raise ConfigurationError(str(path), f"invalid YAML: {exc}") from exc
        except UnicodeDecodeError as exc:
            raise ConfigurationError(str(path), f"not UTF-8 text: {exc}") from exc
    return _settings_from_mapping(str(path), {} if data is None else data)


def get_settings(config_path: Path | str | None = None) -> EngineSettings:
    """The single settings entrypoint.

    Resolution order: explicit ``config_path``, then the
    ``WORKFLOW_ENGINE_CONFIG`` environment variable, then built-in
    defaults.  Emits a ``WORKFLOW_CONFIG_TRACE`` log record.
    """
    path = config_path or os.environ.get(CONFIG_ENV_VAR) or None
    settings = load_settings(path) if path else EngineSettings()

    _logger.info(
        "WORKFLOW_CONFIG_TRACE",
        extra={
            "trace_type": "WORKFLOW_CONFIG_TRACE",
            "config_source": str(path) if path else "defaults",
            "cas_max_retries": settings.cas_max_retries,
            "notification_max_attempts": settings.notification_max_attempts,
            "default_priority": settings.default_priority,
            "default_channels": list(settings.default_channels),
        },
    )
    return settings

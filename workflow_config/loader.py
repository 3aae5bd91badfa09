"""
Settings Loader (``workflow_config.loader``).

Responsibility
--------------
Loads a YAML settings file and parses it into the frozen dataclasses of
``workflow_config.schema``, then applies environment overrides.  The
single public entry point for callers is ``workflow_config.get_settings()``.

Invariants enforced
-------------------
* Every parsed object is a frozen dataclass from ``schema.py``.
* Unknown keys in a section raise ``ValueError``; a typo never silently
  falls back to a default.
* ``compute_checksum`` is a deterministic SHA-256 over the file contents
  after overrides, for change detection.

Failure modes
-------------
* Missing YAML file  -> ``FileNotFoundError`` propagates.
* Malformed YAML  -> ``yaml.YAMLError`` propagates.
* Missing ``settings_id``  -> ``KeyError`` propagates.
* Wrong value types  -> ``ValueError``.
"""

from __future__ import annotations

import hashlib
import json
from collections.abc import Mapping
from dataclasses import fields
from pathlib import Path
from typing import Any

import yaml

from workflow_config.schema import (
    BootstrapSettings,
    DatabaseSettings,
    LoggingSettings,
    WorkflowSettings,
)

_LOG_LEVELS = ("DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL")


def load_yaml_file(path: Path) -> dict[str, Any]:
    """
    Load a single YAML file and return its contents as a dict.

    Raises:
        FileNotFoundError: if the file does not exist.
        yaml.YAMLError: if the file contains invalid YAML.
    """
    with open(path) as f:
        return yaml.safe_load(f) or {}


def _check_keys(section: str, data: Mapping[str, Any], cls: type) -> None:
    allowed = {f.name for f in fields(cls)}
    unknown = set(data) - allowed
    if unknown:
        raise ValueError(
            f"Unknown key(s) in '{section}' settings: {', '.join(sorted(unknown))}"
        )


def _as_int(section: str, key: str, value: Any) -> int:
    if isinstance(value, bool) or not isinstance(value, int):
        raise ValueError(f"'{section}.{key}' must be an integer, got {value!r}")
    return value


def _as_bool(section: str, key: str, value: Any) -> bool:
    if not isinstance(value, bool):
        raise ValueError(f"'{section}.{key}' must be true or false, got {value!r}")
    return value


def parse_database(data: Mapping[str, Any]) -> DatabaseSettings:
    """Parse a DatabaseSettings from a dict."""
    _check_keys("database", data, DatabaseSettings)
    defaults = DatabaseSettings()
    url = data.get("url", defaults.url)
    if not isinstance(url, str) or not url:
        raise ValueError(f"'database.url' must be a non-empty string, got {url!r}")
    return DatabaseSettings(
        url=url,
        echo=_as_bool("database", "echo", data.get("echo", defaults.echo)),
        pool_size=_as_int("database", "pool_size", data.get("pool_size", defaults.pool_size)),
        max_overflow=_as_int(
            "database", "max_overflow", data.get("max_overflow", defaults.max_overflow)
        ),
        pool_pre_ping=_as_bool(
            "database", "pool_pre_ping", data.get("pool_pre_ping", defaults.pool_pre_ping)
        ),
        pool_timeout=_as_int(
            "database", "pool_timeout", data.get("pool_timeout", defaults.pool_timeout)
        ),
        pool_recycle=_as_int(
            "database", "pool_recycle", data.get("pool_recycle", defaults.pool_recycle)
        ),
    )


def parse_log_level(value: Any) -> str:
    """Normalize a level name; ``ValueError`` for anything unknown."""
    level = str(value).strip().upper()
    if level not in _LOG_LEVELS:
        raise ValueError(f"Unknown log level {value!r}")
    return level


def parse_logging(data: Mapping[str, Any]) -> LoggingSettings:
    """Parse a LoggingSettings from a dict."""
    _check_keys("logging", data, LoggingSettings)
    defaults = LoggingSettings()
    return LoggingSettings(
        level=parse_log_level(data.get("level", defaults.level)),
        log_notifications=_as_bool(
            "logging",
            "log_notifications",
            data.get("log_notifications", defaults.log_notifications),
        ),
    )


def parse_bootstrap(data: Mapping[str, Any]) -> BootstrapSettings:
    """Parse a BootstrapSettings from a dict."""
    _check_keys("bootstrap", data, BootstrapSettings)
    defaults = BootstrapSettings()
    address = data.get("admin_address", defaults.admin_address)
    return BootstrapSettings(
        admin_address=str(address) if address else None,
        name=str(data.get("name", defaults.name)),
        email=str(data.get("email") or defaults.email),
    )


def apply_env_overrides(
    data: dict[str, Any],
    environ: Mapping[str, str],
) -> dict[str, Any]:
    """
    Return a copy of ``data`` with environment overrides applied.

    ``WORKFLOW_DATABASE_URL`` wins over ``DATABASE_URL``;
    ``WORKFLOW_LOG_LEVEL`` replaces ``logging.level``.
    """
    result = {key: dict(value) if isinstance(value, Mapping) else value
              for key, value in data.items()}

    url = environ.get("WORKFLOW_DATABASE_URL") or environ.get("DATABASE_URL")
    if url:
        result.setdefault("database", {})["url"] = url

    level = environ.get("WORKFLOW_LOG_LEVEL")
    if level:
        result.setdefault("logging", {})["level"] = level

    return result


def parse_settings(data: Mapping[str, Any]) -> WorkflowSettings:
    """
    Parse a complete ``WorkflowSettings`` from a dict.

    Raises:
        KeyError: if ``settings_id`` is missing.
        ValueError: on unknown keys or wrongly typed values.
    """
    unknown = set(data) - {"settings_id", "database", "logging", "bootstrap"}
    if unknown:
        raise ValueError(f"Unknown settings section(s): {', '.join(sorted(unknown))}")

    return WorkflowSettings(
        settings_id=data["settings_id"],
        database=parse_database(data.get("database") or {}),
        logging=parse_logging(data.get("logging") or {}),
        bootstrap=parse_bootstrap(data.get("bootstrap") or {}),
        checksum=compute_checksum(dict(data)),
    )


def compute_checksum(data: dict[str, Any]) -> str:
    """
    Compute SHA-256 checksum of canonical JSON serialization.

    Identical ``data`` always produces identical checksums.
    """
    canonical = json.dumps(data, sort_keys=True, default=str)
    return hashlib.sha256(canonical.encode()).hexdigest()

"""
workflow_config -- single public entrypoint for workflow settings.

Responsibility:
    Provides the ONLY way to obtain settings at runtime through
    ``get_settings()``.  No other component reads settings files or
    environment variables directly.

Architecture position:
    Configuration.  Sits above ``workflow_kernel``; the kernel never
    imports from ``workflow_config`` at runtime.

Failure modes:
    - ``FileNotFoundError`` -- the requested settings file does not exist.
    - ``ValueError`` -- unknown keys, wrong value types or an unknown log
      level.

Audit relevance:
    Every successful ``get_settings()`` call emits a
    ``WORKFLOW_CONFIG_TRACE`` log entry with the settings id, checksum and
    database dialect.
"""

from __future__ import annotations

import logging
import os
from collections.abc import Mapping
from pathlib import Path

from workflow_config.loader import apply_env_overrides, load_yaml_file, parse_settings
from workflow_config.schema import (
    BootstrapSettings,
    DatabaseSettings,
    LoggingSettings,
    WorkflowSettings,
)

_logger = logging.getLogger("workflow_kernel.config")

# Default settings sets directory
_DEFAULT_SETTINGS_DIR = Path(__file__).parent / "sets"
DEFAULT_SETTINGS_PATH = _DEFAULT_SETTINGS_DIR / "default.yaml"


def get_settings(
    path: Path | str | None = None,
    environ: Mapping[str, str] | None = None,
) -> WorkflowSettings:
    """The ONLY public settings entrypoint.

    Args:
        path: YAML settings file.  Defaults to ``sets/default.yaml``.
        environ: Environment used for overrides.  Defaults to ``os.environ``.

    Returns:
        Parsed, frozen ``WorkflowSettings``.
    """
    settings_path = Path(path) if path is not None else DEFAULT_SETTINGS_PATH
    raw = load_yaml_file(settings_path)
    data = apply_env_overrides(raw, os.environ if environ is None else environ)
    settings = parse_settings(data)

    _logger.info(
        "WORKFLOW_CONFIG_TRACE",
        extra={
            "settings_id": settings.settings_id,
            "checksum": settings.checksum,
            "settings_path": str(settings_path),
            "dialect": settings.database.url.split(":", 1)[0],
        },
    )
    return settings


__all__ = [
    "BootstrapSettings",
    "DEFAULT_SETTINGS_PATH",
    "DatabaseSettings",
    "LoggingSettings",
    "WorkflowSettings",
    "get_settings",
]

"""
WorkflowSettings schema.

YAML fragments are parsed into these types by the loader; the coordinator
factory consumes them.  Every type is a frozen dataclass so a loaded
settings object can be shared freely between threads.
"""

from __future__ import annotations

from dataclasses import dataclass, field

# ---------------------------------------------------------------------------
# Database
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class DatabaseSettings:
    """Engine and pool options passed to ``build_engine``."""

    url: str = "sqlite://"
    echo: bool = False
    pool_size: int = 10
    max_overflow: int = 5
    pool_pre_ping: bool = True
    pool_timeout: int = 30
    pool_recycle: int = 1800


# ---------------------------------------------------------------------------
# Logging
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class LoggingSettings:
    level: str = "INFO"
    log_notifications: bool = True  # attach a LoggingEventSink


# ---------------------------------------------------------------------------
# Bootstrap
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class BootstrapSettings:
    """The principal registered as the first Admin on an empty directory."""

    admin_address: str | None = None
    name: str = "Platform Admin"
    email: str = ""


@dataclass(frozen=True)
class WorkflowSettings:
    """Complete settings for one deployment."""

    settings_id: str
    database: DatabaseSettings = field(default_factory=DatabaseSettings)
    logging: LoggingSettings = field(default_factory=LoggingSettings)
    bootstrap: BootstrapSettings = field(default_factory=BootstrapSettings)
    checksum: str = ""

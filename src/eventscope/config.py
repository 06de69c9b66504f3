"""Application configuration for eventscope.

Defines configuration models for identity, the buffered event logger, the
durable persister, the query repository, and the read API. Every section has
defaults, so an empty JSON object is a valid configuration.

Example usage:
    # Load from config file
    config = AppConfig.load_from_file(config_path)

    # Save new configuration
    config.save_to_file(config_path)
"""

from __future__ import annotations

__all__ = [
    "AppConfig",
    "ApiConfig",
    "ContextConfig",
    "EventLoggerConfig",
    "IdentityConfig",
    "LoggingConfig",
    "LoggerMode",
    "PersisterConfig",
    "QueryConfig",
    "generate_agent_id",
]

import json
import os
import uuid
from pathlib import Path
from typing import Literal

from pydantic import BaseModel, Field, ValidationError, model_validator

from eventscope.constants import (
    DEFAULT_API_HOST,
    DEFAULT_API_PORT,
    DEFAULT_BATCH_SIZE,
    DEFAULT_CONFIG_TAG,
    DEFAULT_CONTEXT_TTL_SECONDS,
    DEFAULT_DATA_DIR,
    DEFAULT_LOGGER_FLUSH_INTERVAL_SECONDS,
    DEFAULT_LOGGER_QUEUE_CAPACITY,
    DEFAULT_MAX_RESULT_SIZE,
    DEFAULT_PAGE_SIZE,
    DEFAULT_PERSISTER_FLUSH_INTERVAL_SECONDS,
    DEFAULT_PERSISTER_QUEUE_CAPACITY,
    DEFAULT_RECEIVER_HOST,
    DEFAULT_RECEIVER_PORT,
    DEFAULT_SHUTDOWN_GRACE_SECONDS,
    MAX_PAGE_SIZE,
    PRIORITY_NAMES,
)
from eventscope.exceptions import ConfigurationError

LoggerMode = Literal["direct", "buffered", "remote"]

# Sinks that ship lines to another process; only valid in remote mode
_REMOTE_SINKS: frozenset[str] = frozenset({"socket"})


def generate_agent_id() -> str:
    """Generate an agent instance id for this process.

    Format: {uuid8}-{pid}. Generated each startup unless configured.

    Returns:
        Agent id (e.g., "a1b2c3d4-4242").
    """
    return f"{uuid.uuid4().hex[:8]}-{os.getpid()}"


# =============================================================================
# Sections
# =============================================================================


class LoggingConfig(BaseModel):
    """System logging configuration.

    Attributes:
        log_dir: Directory for system.jsonl and diagnostics.jsonl. None keeps
            system logging on stderr only.
        log_level: Level for the stderr console handler.
    """

    log_dir: str | None = None
    log_level: Literal["DEBUG", "INFO", "WARNING", "ERROR"] = "INFO"


class IdentityConfig(BaseModel):
    """Identity stamped on every captured event.

    Attributes:
        aid: Agent/application instance id. Generated when not given.
        config_tag: Provenance tag stored in the CONFIG_FILE column.
    """

    aid: str = Field(default_factory=generate_agent_id, min_length=1)
    config_tag: str = Field(default=DEFAULT_CONFIG_TAG, min_length=1)


class ContextConfig(BaseModel):
    """Correlation context settings.

    Attributes:
        ttl_seconds: Scopes idle longer than this are cleaned up as leaked.
    """

    ttl_seconds: float = Field(default=DEFAULT_CONTEXT_TTL_SECONDS, gt=0)


class EventLoggerConfig(BaseModel):
    """Buffered event logger configuration.

    Attributes:
        mode: direct (synchronous), buffered (queue to local sink) or
            remote (queue to transport sink). Fixed at construction.
        sink: Registered sink name (console, persister, file, socket).
        queue_capacity: Bounded queue size; full queue drops events.
        flush_interval_seconds: Worker wait between drains.
        shutdown_grace_seconds: Upper bound for the final drain.
        default_level: Threshold for namespaces without an override.
        levels: Per-namespace thresholds, matched by longest dotted prefix.
        file_path: Target file for the file sink.
        host: Receiver host for the socket sink.
        port: Receiver port for the socket sink.
    """

    mode: LoggerMode = "buffered"
    sink: str = Field(default="persister", min_length=1)
    queue_capacity: int = Field(default=DEFAULT_LOGGER_QUEUE_CAPACITY, ge=1)
    flush_interval_seconds: float = Field(default=DEFAULT_LOGGER_FLUSH_INTERVAL_SECONDS, gt=0)
    shutdown_grace_seconds: float = Field(default=DEFAULT_SHUTDOWN_GRACE_SECONDS, ge=0)
    default_level: Literal["TRACE", "DEBUG", "INFO", "WARN", "ERROR"] = "TRACE"
    levels: dict[str, str] = Field(default_factory=dict)
    file_path: str | None = None
    host: str = DEFAULT_RECEIVER_HOST
    port: int = Field(default=DEFAULT_RECEIVER_PORT, ge=1, le=65535)

    @model_validator(mode="after")
    def _check_mode_and_sink(self) -> "EventLoggerConfig":
        if self.mode == "remote" and self.sink not in _REMOTE_SINKS:
            raise ValueError(f"mode 'remote' needs a transport sink, got '{self.sink}'")
        if self.mode != "remote" and self.sink in _REMOTE_SINKS:
            raise ValueError(f"sink '{self.sink}' is only valid in mode 'remote'")
        if self.sink == "file" and not self.file_path:
            raise ValueError("sink 'file' requires file_path")
        for namespace, level in self.levels.items():
            if level.upper() not in PRIORITY_NAMES:
                raise ValueError(f"unknown level '{level}' for namespace '{namespace}'")
        return self


class PersisterConfig(BaseModel):
    """Durable persister configuration.

    Attributes:
        store: Registered store backend name.
        db_path: SQLite database file. ":memory:" is not supported since the
            worker and readers use separate connections.
        batch_size: Flush when this many events are pending.
        flush_interval_seconds: Flush pending events at least this often.
        queue_capacity: Bounded intake queue size.
        shutdown_grace_seconds: Upper bound for the final drain and flush.
    """

    store: str = Field(default="sqlite", min_length=1)
    db_path: str = Field(default=str(Path(DEFAULT_DATA_DIR) / "events.db"), min_length=1)
    batch_size: int = Field(default=DEFAULT_BATCH_SIZE, ge=1)
    flush_interval_seconds: float = Field(default=DEFAULT_PERSISTER_FLUSH_INTERVAL_SECONDS, gt=0)
    queue_capacity: int = Field(default=DEFAULT_PERSISTER_QUEUE_CAPACITY, ge=1)
    shutdown_grace_seconds: float = Field(default=DEFAULT_SHUTDOWN_GRACE_SECONDS, ge=0)


class QueryConfig(BaseModel):
    """Query repository limits.

    Attributes:
        default_page_size: Page size when the caller gives none.
        max_page_size: Upper clamp for the page size.
        max_result_size: Ceiling on the window reachable by pagination.
    """

    default_page_size: int = Field(default=DEFAULT_PAGE_SIZE, ge=1)
    max_page_size: int = Field(default=MAX_PAGE_SIZE, ge=1)
    max_result_size: int = Field(default=DEFAULT_MAX_RESULT_SIZE, ge=1)

    @model_validator(mode="after")
    def _check_page_sizes(self) -> "QueryConfig":
        if self.default_page_size > self.max_page_size:
            raise ValueError("default_page_size must not exceed max_page_size")
        return self


class ApiConfig(BaseModel):
    """Read API server configuration.

    Attributes:
        host: Bind address.
        port: Bind port.
        api_key: When set, every request must carry it in X-API-Key.
    """

    host: str = DEFAULT_API_HOST
    port: int = Field(default=DEFAULT_API_PORT, ge=1, le=65535)
    api_key: str | None = None


# =============================================================================
# Application Configuration
# =============================================================================


class AppConfig(BaseModel):
    """Main application configuration for eventscope.

    Attributes:
        logging: System logging (stderr level, optional JSONL directory).
        identity: Agent id and config tag stamped on events.
        context: Correlation context settings.
        event_logger: Buffered event logger mode, sink and thresholds.
        persister: Store location and batching.
        query: Page and result size limits.
        api: HTTP bind address and optional API key.
    """

    logging: LoggingConfig = Field(default_factory=LoggingConfig)
    identity: IdentityConfig = Field(default_factory=IdentityConfig)
    context: ContextConfig = Field(default_factory=ContextConfig)
    event_logger: EventLoggerConfig = Field(default_factory=EventLoggerConfig)
    persister: PersisterConfig = Field(default_factory=PersisterConfig)
    query: QueryConfig = Field(default_factory=QueryConfig)
    api: ApiConfig = Field(default_factory=ApiConfig)

    def save_to_file(self, config_path: Path) -> None:
        """Save configuration to JSON file.

        Creates parent directories if they don't exist.

        Args:
            config_path: Path where the config JSON file should be saved.
        """
        config_path.parent.mkdir(parents=True, exist_ok=True)

        with open(config_path, "w", encoding="utf-8") as f:
            json.dump(self.model_dump(), f, indent=2)

        config_path.chmod(0o600)

    @classmethod
    def load_from_file(cls, config_path: Path) -> "AppConfig":
        """Load configuration from JSON file.

        Args:
            config_path: Path to the config JSON file.

        Returns:
            AppConfig instance with loaded configuration.

        Raises:
            ConfigurationError: If the file is missing, not JSON, or fails validation.
        """
        if not config_path.exists():
            raise ConfigurationError(f"Configuration file not found: {config_path}")

        try:
            with open(config_path, "r", encoding="utf-8") as f:
                data = json.load(f)
        except json.JSONDecodeError as e:
            raise ConfigurationError(f"Invalid JSON in config file {config_path}: {e}") from e
        except OSError as e:
            raise ConfigurationError(f"Could not read config file {config_path}: {e}") from e

        try:
            return cls.model_validate(data)
        except ValidationError as e:
            errors = []
            for error in e.errors():
                loc = ".".join(str(x) for x in error["loc"])
                errors.append(f"  - {loc}: {error['msg']}")
            raise ConfigurationError(
                f"Invalid configuration in {config_path}:\n" + "\n".join(errors)
            ) from e

"""Application-wide constants for eventscope.

Constants that define pipeline behavior.
For user-configurable settings per deployment, see config.py.
"""

import os

__all__ = [
    # Application identity
    "APP_NAME",
    "DEFAULT_DATA_DIR",
    "DEFAULT_LOG_DIR",
    "DEFAULT_CONFIG_TAG",
    # Event model
    "PRIORITY_NAMES",
    "RESERVED_KEY_AID",
    "RESERVED_KEY_CID",
    "RESERVED_KEY_EID",
    "RESERVED_KEYS",
    "TRACE_ID_KEY",
    "CALLER_KEY",
    "INTERNAL_NAMESPACE_PREFIX",
    "DIAGNOSTIC_NAMESPACE_PREFIX",
    "CONTROL_SYNTAX_MARKERS",
    # Correlation context
    "DEFAULT_CONTEXT_TTL_SECONDS",
    "CONTEXT_TTL_CHECK_THROTTLE_SECONDS",
    # Buffered event logger
    "DEFAULT_LOGGER_QUEUE_CAPACITY",
    "DEFAULT_LOGGER_FLUSH_INTERVAL_SECONDS",
    "DEFAULT_SHUTDOWN_GRACE_SECONDS",
    # Durable persister
    "DEFAULT_PERSISTER_QUEUE_CAPACITY",
    "DEFAULT_BATCH_SIZE",
    "DEFAULT_PERSISTER_FLUSH_INTERVAL_SECONDS",
    "PERSISTER_POLL_SECONDS",
    "SQLITE_BUSY_TIMEOUT_SECONDS",
    # Storage schema
    "EVENT_TABLE",
    "EVENT_ATTR_TABLE",
    # Query
    "DEFAULT_PAGE_SIZE",
    "MAX_PAGE_SIZE",
    "DEFAULT_MAX_RESULT_SIZE",
    # Transport
    "DEFAULT_RECEIVER_HOST",
    "DEFAULT_RECEIVER_PORT",
    "SOCKET_CONNECT_TIMEOUT_SECONDS",
    # API
    "DEFAULT_API_HOST",
    "DEFAULT_API_PORT",
    "API_KEY_HEADER",
]

from platformdirs import user_data_dir, user_log_dir

# ============================================================================
# Application Identity
# ============================================================================

# Application name used for directory names, logger names, etc.
APP_NAME: str = "eventscope"

# Platform-specific default locations
# - macOS: ~/Library/Application Support/eventscope, ~/Library/Logs/eventscope
# - Linux: ~/.local/share/eventscope, ~/.local/state/eventscope/log
DEFAULT_DATA_DIR: str = user_data_dir(APP_NAME)
DEFAULT_LOG_DIR: str = user_log_dir(APP_NAME)

# Provenance tag written into every event header (CONFIG_FILE column).
# "C:AP" marks events produced under the agent-process configuration.
DEFAULT_CONFIG_TAG: str = "C:AP"

# ============================================================================
# Event Model
# ============================================================================

# Fixed priority scale, lowest to highest
PRIORITY_NAMES: tuple[str, ...] = ("TRACE", "DEBUG", "INFO", "WARN", "ERROR")

# Reserved wire keys carrying header fields through the attribute section
RESERVED_KEY_AID: str = "AID"
RESERVED_KEY_CID: str = "CID"
RESERVED_KEY_EID: str = "EID"
RESERVED_KEYS: frozenset[str] = frozenset({RESERVED_KEY_AID, RESERVED_KEY_CID, RESERVED_KEY_EID})

# Correlation keys
TRACE_ID_KEY: str = "trace_id"
CALLER_KEY: str = "caller"

# Namespaces used by the pipeline for its own events
INTERNAL_NAMESPACE_PREFIX: str = "eventscope"
DIAGNOSTIC_NAMESPACE_PREFIX: str = "eventscope.diagnostics"

# Payload fragments that identify persistence statements. Lines carrying them
# are never ingested, so the persister's own log output cannot loop back.
CONTROL_SYNTAX_MARKERS: tuple[str, ...] = ("INSERT", "VALUES (", "CREATE TABLE")

# ============================================================================
# Correlation Context
# ============================================================================

# Scopes untouched for this long are treated as leaked and cleaned up
DEFAULT_CONTEXT_TTL_SECONDS: float = 300.0

# TTL checks run at most once per interval per thread
CONTEXT_TTL_CHECK_THROTTLE_SECONDS: float = 0.1

# ============================================================================
# Buffered Event Logger
# ============================================================================

DEFAULT_LOGGER_QUEUE_CAPACITY: int = 2000
DEFAULT_LOGGER_FLUSH_INTERVAL_SECONDS: float = 0.01

# Upper bound for the final drain of any stage on shutdown
DEFAULT_SHUTDOWN_GRACE_SECONDS: float = 5.0

# ============================================================================
# Durable Persister
# ============================================================================

DEFAULT_PERSISTER_QUEUE_CAPACITY: int = 10000
DEFAULT_BATCH_SIZE: int = 100
DEFAULT_PERSISTER_FLUSH_INTERVAL_SECONDS: float = 5.0

# Queue poll timeout inside the persister worker; bounds flush latency
PERSISTER_POLL_SECONDS: float = 0.1

SQLITE_BUSY_TIMEOUT_SECONDS: float = 30.0

# ============================================================================
# Storage Schema
# ============================================================================

EVENT_TABLE: str = "EVENT"
EVENT_ATTR_TABLE: str = "EVENT_ATTR"

# ============================================================================
# Query
# ============================================================================

DEFAULT_PAGE_SIZE: int = 100
MAX_PAGE_SIZE: int = 1000

# Ceiling on the window reachable through pagination for one predicate
DEFAULT_MAX_RESULT_SIZE: int = 100_000

# ============================================================================
# Transport
# ============================================================================

DEFAULT_RECEIVER_HOST: str = "127.0.0.1"
DEFAULT_RECEIVER_PORT: int = 9876
SOCKET_CONNECT_TIMEOUT_SECONDS: float = 2.0

# ============================================================================
# API
# ============================================================================

DEFAULT_API_HOST: str = "127.0.0.1"
DEFAULT_API_PORT: int = 8765
API_KEY_HEADER: str = "X-API-Key"

# Allow operators to point the default store somewhere else without a config file
if os.environ.get("EVENTSCOPE_DATA_DIR"):
    DEFAULT_DATA_DIR = os.environ["EVENTSCOPE_DATA_DIR"]

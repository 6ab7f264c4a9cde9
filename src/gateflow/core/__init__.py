"""
gateflow.core — errors, logging, settings and timestamp primitives.

Nothing in this package knows about workflows; orchestration, connectors and
the HTTP surface all build on it.
"""

from gateflow.core.errors import (
    ConfigError,
    ErrorCategory,
    ErrorContext,
    GateflowError,
    InternalError,
    InvalidPathError,
    InvalidWorkflowError,
    PathNotFound,
    StoreError,
    StoreThrottled,
    StoreUnavailable,
    UpstreamError,
    UpstreamFailure,
    UpstreamTimeout,
    UpstreamUnavailable,
    WorkflowTimeout,
)
from gateflow.core.logging import LogContext, bind_context, configure_logging, get_logger
from gateflow.core.timestamps import to_execution_timestamp, utc_now

__all__ = [
    # errors
    "ConfigError",
    "ErrorCategory",
    "ErrorContext",
    "GateflowError",
    "InternalError",
    "InvalidPathError",
    "InvalidWorkflowError",
    "PathNotFound",
    "StoreError",
    "StoreThrottled",
    "StoreUnavailable",
    "UpstreamError",
    "UpstreamFailure",
    "UpstreamTimeout",
    "UpstreamUnavailable",
    "WorkflowTimeout",
    # logging
    "LogContext",
    "bind_context",
    "configure_logging",
    "get_logger",
    # timestamps
    "to_execution_timestamp",
    "utc_now",
]

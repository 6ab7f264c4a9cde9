"""
Structured error types for gateflow.

Every failure a workflow run can end in is a ``GateflowError`` subclass.
The class says *which* step family failed (upstream, shaping, storage, the
run-level deadline) so the inbound caller never has to guess, and the
instance carries the metadata the HTTP surface and the logs need.

Manifesto:
    - **Typed Error Hierarchy:** One class per terminal outcome
    - **Explicit Retry Semantics:** Each error knows if a retry could help,
      even though the workflow itself never retries
    - **Rich Context:** Errors carry workflow, step, url and status metadata
    - **Error Chaining:** The original exception is kept as ``cause``

Architecture:
    ::

        GateflowError  (category, code, retryable, context, cause)
          ├── UpstreamFailure            (UPSTREAM)
          │     ├── UpstreamUnavailable    connect / DNS / transport
          │     ├── UpstreamTimeout        call exceeded its own budget
          │     └── UpstreamError          non-2xx status
          ├── PathNotFound               (SHAPING)
          ├── StoreError                 (STORAGE)
          │     ├── StoreUnavailable
          │     └── StoreThrottled
          ├── WorkflowTimeout            (TIMEOUT)
          ├── ConfigError                (CONFIG)
          │     └── InvalidWorkflowError
          └── InternalError              (INTERNAL)

Usage:
    from gateflow.core.errors import UpstreamError

    if response.status_code >= 300:
        raise UpstreamError(response.status_code, body=response.text).with_context(url=url)

Tags:
    error-handling, exception-hierarchy, gateflow, observability

Doc-Types:
    - API Reference
    - Error Handling Guide
"""

from __future__ import annotations

from collections.abc import Sequence
from dataclasses import dataclass, field
from enum import Enum
from typing import Any


class ErrorCategory(str, Enum):
    """Which part of the pipeline an error belongs to."""

    UPSTREAM = "UPSTREAM"         # External fetch failed
    SHAPING = "SHAPING"           # Path resolution / field extraction
    STORAGE = "STORAGE"           # Record store write failed
    TIMEOUT = "TIMEOUT"           # Run-level deadline exceeded
    CONFIG = "CONFIG"             # Invalid settings or workflow definition
    INTERNAL = "INTERNAL"         # Bugs, unexpected state


@dataclass
class ErrorContext:
    """
    Structured metadata attached to an error.

    Attributes:
        workflow: Name of the workflow being run
        step: Name of the step that failed
        run_id: Run identifier
        url: Upstream URL that was being accessed
        http_status: HTTP status code if applicable
        metadata: Additional key-value pairs
    """

    workflow: str | None = None
    step: str | None = None
    run_id: str | None = None
    url: str | None = None
    http_status: int | None = None
    metadata: dict[str, Any] = field(default_factory=dict)

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary for logging."""
        result = {}
        for key in ["workflow", "step", "run_id", "url", "http_status"]:
            value = getattr(self, key)
            if value is not None:
                result[key] = value
        if self.metadata:
            result.update(self.metadata)
        return result


class GateflowError(Exception):
    """
    Base exception for all gateflow errors.

    Subclasses set ``default_category``, ``default_retryable`` and ``code``
    so that raising sites only need a message.

    Attributes:
        message: Human-readable description
        category: ErrorCategory for routing
        code: Stable machine-readable error kind (e.g. ``UpstreamTimeout``)
        retryable: Whether the same call could succeed later
        retry_after: Optional seconds to wait before a retry
        context: ErrorContext with structured metadata
        cause: Underlying exception, if any
    """

    default_category: ErrorCategory = ErrorCategory.INTERNAL
    default_retryable: bool = False
    code: str = "GateflowError"

    def __init__(
        self,
        message: str,
        *,
        category: ErrorCategory | None = None,
        retryable: bool | None = None,
        retry_after: int | None = None,
        context: ErrorContext | None = None,
        cause: BaseException | None = None,
    ):
        super().__init__(message)
        self.message = message
        self.category = category or self.default_category
        self.retryable = retryable if retryable is not None else self.default_retryable
        self.retry_after = retry_after
        self.context = context or ErrorContext()
        self.cause = cause

        if cause is not None:
            self.__cause__ = cause

    def with_context(self, **kwargs: Any) -> GateflowError:
        """
        Add context to this error (fluent API).

        Known ``ErrorContext`` fields are set directly; anything else lands
        in ``context.metadata``. Fields already set are not overwritten, so
        the innermost raiser wins over outer layers re-annotating the error.
        """
        for key, value in kwargs.items():
            if value is None:
                continue
            if hasattr(self.context, key) and key != "metadata":
                if getattr(self.context, key) is None:
                    setattr(self.context, key, value)
            else:
                self.context.metadata.setdefault(key, value)
        return self

    def to_dict(self) -> dict[str, Any]:
        """Convert error to dictionary for logging/serialization."""
        result = {
            "error_type": self.code,
            "message": self.message,
            "category": self.category.value,
            "retryable": self.retryable,
        }
        if self.retry_after is not None:
            result["retry_after"] = self.retry_after
        context_dict = self.context.to_dict()
        if context_dict:
            result["context"] = context_dict
        if self.cause is not None:
            result["cause"] = str(self.cause)
        return result

    def __repr__(self) -> str:
        return f"{self.__class__.__name__}({self.message!r}, category={self.category.value})"


# =============================================================================
# UPSTREAM ERRORS
# =============================================================================


class UpstreamFailure(GateflowError):
    """Base for every failure of the outbound fetch."""

    default_category = ErrorCategory.UPSTREAM
    code = "UpstreamFailure"


class UpstreamUnavailable(UpstreamFailure):
    """Connection, DNS or transport failure reaching the upstream."""

    default_retryable = True
    code = "UpstreamUnavailable"


class UpstreamTimeout(UpstreamFailure):
    """The upstream call exceeded its own timeout budget."""

    default_retryable = True
    code = "UpstreamTimeout"

    def __init__(self, message: str = "Upstream call timed out", *, timeout: float | None = None, **kwargs: Any):
        super().__init__(message, **kwargs)
        self.timeout = timeout


class UpstreamError(UpstreamFailure):
    """The upstream answered with a non-2xx status code."""

    code = "UpstreamError"

    def __init__(self, status_code: int, body: Any = None, message: str | None = None, **kwargs: Any):
        super().__init__(message or f"Upstream returned HTTP {status_code}", **kwargs)
        self.status_code = status_code
        self.body = body
        self.context.http_status = status_code
        # 5xx and 429 are the only statuses worth a retry
        self.retryable = status_code >= 500 or status_code == 429


# =============================================================================
# SHAPING ERRORS
# =============================================================================


class PathNotFound(GateflowError):
    """A source path did not resolve against the execution context."""

    default_category = ErrorCategory.SHAPING
    code = "PathNotFound"

    def __init__(self, paths: str | Sequence[str], message: str | None = None, **kwargs: Any):
        tried = (paths,) if isinstance(paths, str) else tuple(paths)
        super().__init__(message or f"Path not found: {' | '.join(tried)}", **kwargs)
        self.paths = tried
        self.context.metadata.setdefault("paths", list(tried))


class InvalidPathError(GateflowError):
    """A path expression is syntactically invalid."""

    default_category = ErrorCategory.CONFIG
    code = "InvalidPath"

    def __init__(self, expression: str, reason: str):
        super().__init__(f"Invalid path {expression!r}: {reason}")
        self.expression = expression


# =============================================================================
# STORAGE ERRORS
# =============================================================================


class StoreError(GateflowError):
    """Base for every failure of the record store write."""

    default_category = ErrorCategory.STORAGE
    code = "StoreError"


class StoreUnavailable(StoreError):
    """The store could not be reached or rejected the write."""

    default_retryable = True
    code = "StoreUnavailable"


class StoreThrottled(StoreError):
    """The store refused the write because of capacity limits."""

    default_retryable = True
    code = "StoreThrottled"

    def __init__(self, message: str = "Record store throttled the write", *, retry_after: int | None = 1, **kwargs: Any):
        super().__init__(message, retry_after=retry_after, **kwargs)


# =============================================================================
# RUN-LEVEL ERRORS
# =============================================================================


class WorkflowTimeout(GateflowError):
    """The run exceeded its overall deadline; no partial result is returned."""

    default_category = ErrorCategory.TIMEOUT
    code = "WorkflowTimeout"

    def __init__(self, timeout: float, elapsed: float | None = None, message: str | None = None, **kwargs: Any):
        msg = message or f"Workflow timed out after {timeout}s"
        if message is None and elapsed is not None:
            msg += f" (ran for {elapsed:.2f}s)"
        super().__init__(msg, **kwargs)
        self.timeout = timeout
        self.elapsed = elapsed


class ConfigError(GateflowError):
    """Missing or invalid configuration."""

    default_category = ErrorCategory.CONFIG
    code = "ConfigError"


class InvalidWorkflowError(ConfigError):
    """A workflow definition violates the structural rules."""

    code = "InvalidWorkflow"


class InternalError(GateflowError):
    """Unexpected failure inside a step (a bug, not an outcome)."""

    code = "InternalError"


__all__ = [
    "ErrorCategory",
    "ErrorContext",
    "GateflowError",
    "UpstreamFailure",
    "UpstreamUnavailable",
    "UpstreamTimeout",
    "UpstreamError",
    "PathNotFound",
    "InvalidPathError",
    "StoreError",
    "StoreUnavailable",
    "StoreThrottled",
    "WorkflowTimeout",
    "ConfigError",
    "InvalidWorkflowError",
    "InternalError",
]

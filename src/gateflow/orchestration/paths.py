"""Path expressions — a small path language over the execution context.

Steps address data by path instead of by code, which keeps workflow
definitions declarative and statically checkable.

Grammar::

    path     := root segment*
    root     := "$"          the context document
              | "$$"         the execution metadata supplied by the host
    segment  := "." name     dictionary key (letters, digits, "_", "-")
              | "[" int "]"  list index (negative counts from the end)
              | "[" quoted "]"  dictionary key in single or double quotes

Examples::

    $                               the whole document
    $.http.body                     response body
    $.http.headers.Date[0]          first value of the Date header
    $['odd.key']                    key containing a dot
    $$.Execution.StartTime          invocation start time

Execution metadata (``$$``) is not part of the document. The runner builds
it before step 1 from the run id, workflow name, start time and inbound
trigger; see :meth:`WorkflowContext.metadata_document`.
"""

from __future__ import annotations

import re
from collections.abc import Mapping, Sequence
from dataclasses import dataclass
from functools import lru_cache
from typing import Any

from gateflow.core.errors import InvalidPathError, PathNotFound

_NAME = re.compile(r"[A-Za-z0-9_\-]+")
_INDEX = re.compile(r"\[(-?\d+)\]")
_QUOTED = re.compile(r"""\[(?:'((?:[^'\\]|\\.)*)'|"((?:[^"\\]|\\.)*)")\]""")

# Sentinel for "no value" (None is a legitimate JSON value)
_MISSING = object()

Segment = str | int


@dataclass(frozen=True)
class ParsedPath:
    """A compiled path: which root it starts from and the segments to walk."""

    expression: str
    metadata_root: bool
    segments: tuple[Segment, ...]


@lru_cache(maxsize=512)
def parse_path(expression: str) -> ParsedPath:
    """Compile a path expression.

    Raises:
        InvalidPathError: If the expression does not follow the grammar.
    """
    if not isinstance(expression, str) or not expression.startswith("$"):
        raise InvalidPathError(str(expression), "must start with '$'")

    metadata_root = expression.startswith("$$")
    pos = 2 if metadata_root else 1
    segments: list[Segment] = []

    while pos < len(expression):
        char = expression[pos]
        if char == ".":
            match = _NAME.match(expression, pos + 1)
            if not match:
                raise InvalidPathError(expression, f"expected a name after '.' at offset {pos}")
            segments.append(match.group(0))
            pos = match.end()
        elif char == "[":
            match = _INDEX.match(expression, pos)
            if match:
                segments.append(int(match.group(1)))
                pos = match.end()
                continue
            match = _QUOTED.match(expression, pos)
            if not match:
                raise InvalidPathError(expression, f"unterminated or invalid '[' at offset {pos}")
            raw = match.group(1) if match.group(1) is not None else match.group(2)
            segments.append(re.sub(r"\\(.)", r"\1", raw))
            pos = match.end()
        else:
            raise InvalidPathError(expression, f"unexpected {char!r} at offset {pos}")

    return ParsedPath(expression=expression, metadata_root=metadata_root, segments=tuple(segments))


def _walk(value: Any, segments: Sequence[Segment]) -> Any:
    for segment in segments:
        if isinstance(segment, int):
            if not isinstance(value, list | tuple):
                return _MISSING
            try:
                value = value[segment]
            except IndexError:
                return _MISSING
        else:
            if not isinstance(value, Mapping) or segment not in value:
                return _MISSING
            value = value[segment]
    return value


def resolve_path(
    expression: str,
    document: Any,
    metadata: Mapping[str, Any] | None = None,
) -> Any:
    """Resolve one path against a document (and optional ``$$`` metadata).

    Raises:
        PathNotFound: If any segment does not exist.
        InvalidPathError: If the expression is malformed.
    """
    parsed = parse_path(expression)
    root = (metadata or {}) if parsed.metadata_root else document
    value = _walk(root, parsed.segments)
    if value is _MISSING:
        raise PathNotFound(expression)
    return value


def resolve_first(
    expressions: str | Sequence[str],
    document: Any,
    metadata: Mapping[str, Any] | None = None,
) -> Any:
    """Resolve the first expression that exists, in order.

    A single string behaves like :func:`resolve_path`. A sequence is an
    ordered fallback chain; ``PathNotFound`` lists every path tried.
    """
    if isinstance(expressions, str):
        return resolve_path(expressions, document, metadata)

    for expression in expressions:
        try:
            return resolve_path(expression, document, metadata)
        except PathNotFound:
            continue
    raise PathNotFound(tuple(expressions))


def path_exists(expression: str, document: Any, metadata: Mapping[str, Any] | None = None) -> bool:
    """Check whether a path resolves, without raising."""
    try:
        resolve_path(expression, document, metadata)
    except PathNotFound:
        return False
    return True


__all__ = [
    "ParsedPath",
    "parse_path",
    "path_exists",
    "resolve_first",
    "resolve_path",
]

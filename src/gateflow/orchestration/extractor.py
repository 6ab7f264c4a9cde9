"""Field extractor — reshape the execution context through path mappings.

A mapping is ``{destination_field: source}`` where ``source`` is a path
expression or an ordered tuple of fallback paths (the first that resolves
wins). Two modes:

- ``filter``: mapped fields are merged into the document, everything else
  is left untouched.
- ``final``: the document is replaced by exactly the mapped fields.

A source that does not resolve raises ``PathNotFound``; fields are never
silently omitted, because persisting or returning incomplete data is worse
than failing the run.
"""

from __future__ import annotations

from collections.abc import Mapping, Sequence
from enum import Enum
from typing import Any

from gateflow.orchestration.paths import parse_path, resolve_first
from gateflow.orchestration.workflow_context import WorkflowContext

SourcePaths = str | tuple[str, ...]
FieldMapping = Mapping[str, SourcePaths]


class ExtractMode(str, Enum):
    """How extracted fields are applied to the context."""

    FILTER = "filter"
    FINAL = "final"


def source_paths(source: SourcePaths) -> tuple[str, ...]:
    """Normalize a mapping source to a tuple of path expressions."""
    if isinstance(source, str):
        return (source,)
    return tuple(source)


def validate_mapping(mapping: FieldMapping) -> None:
    """Compile every path in a mapping (raises InvalidPathError / ValueError)."""
    if not mapping:
        raise ValueError("Field mapping must not be empty")
    for dest, source in mapping.items():
        if not isinstance(dest, str) or not dest:
            raise ValueError(f"Destination field must be a non-empty string, got {dest!r}")
        paths = source_paths(source)
        if not paths:
            raise ValueError(f"Field {dest!r} has no source path")
        for path in paths:
            parse_path(path)


def extract_record(
    document: Any,
    mapping: FieldMapping,
    metadata: Mapping[str, Any] | None = None,
) -> dict[str, Any]:
    """Build a record with exactly the mapped fields resolved from ``document``."""
    return {dest: resolve_first(source, document, metadata) for dest, source in mapping.items()}


def extract(
    context: WorkflowContext,
    mapping: FieldMapping,
    mode: ExtractMode | str = ExtractMode.FILTER,
) -> WorkflowContext:
    """Apply a mapping to a context and return the new context.

    Raises:
        PathNotFound: If any source does not resolve.
    """
    mode = ExtractMode(mode)
    record = extract_record(context.document, mapping, context.metadata_document())
    if mode == ExtractMode.FINAL:
        return context.replaced(record)
    return context.with_updates(record)


def describe_mapping(mapping: FieldMapping) -> dict[str, Any]:
    """Serializable view of a mapping (fallback chains become lists)."""
    return {
        dest: source if isinstance(source, str) else list(source)
        for dest, source in mapping.items()
    }


def mapping_from_dict(data: Mapping[str, str | Sequence[str]]) -> dict[str, SourcePaths]:
    """Inverse of :func:`describe_mapping`."""
    return {dest: source if isinstance(source, str) else tuple(source) for dest, source in data.items()}


__all__ = [
    "ExtractMode",
    "FieldMapping",
    "SourcePaths",
    "describe_mapping",
    "extract",
    "extract_record",
    "mapping_from_dict",
    "source_paths",
    "validate_mapping",
]

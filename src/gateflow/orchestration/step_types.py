"""Step Types — typed descriptors for the four workflow step kinds.

Manifesto:
A Workflow is a short list of Steps, and every step is one of four kinds:
fetch (outbound HTTP GET), transform (filter-mode field extraction),
persist (record store write) and shape (final-mode field extraction).
This module defines the ``Step`` descriptor and its factory methods so
that workflow authors never assemble raw configuration.

ARCHITECTURE
────────────
::

    Step
      ├── .fetch(name, url, timeout_seconds)     ── outbound GET → ``http``
      ├── .transform(name, mapping)              ── merge mapped fields
      ├── .persist(name, item, key_field)        ── store write → ``ddb``
      └── .shape(name, mapping)                  ── replace document

    StepType      ── enum: FETCH, TRANSFORM, PERSIST, SHAPE

Steps are frozen: field mappings are wrapped in read-only proxies, so a
definition built at startup cannot drift between requests.

Example::

    from gateflow.orchestration import Step

    Step.fetch("fetch", "https://wttr.in/?format=3")
    Step.transform("filter", {
        "weather": "$.http.body",
        "event_date": ("$.http.headers.Date[0]", "$$.Execution.StartTime"),
    })
    Step.persist("persist", {"weather": "$.weather", "timest": "$.event_date"})
    Step.shape("shape", {"weather": "$.weather", "ddb_status": "$.ddb.status_code"})

Tags:
    gateflow, orchestration, step-types, fetch, transform, persist, shape

Doc-Types:
    api-reference
"""

from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass, field
from enum import Enum
from types import MappingProxyType
from typing import Any

from gateflow.core.errors import InvalidPathError, InvalidWorkflowError
from gateflow.orchestration.extractor import (
    FieldMapping,
    describe_mapping,
    mapping_from_dict,
    validate_mapping,
)

DEFAULT_FETCH_TIMEOUT = 10.0


class StepType(str, Enum):
    """Kind of workflow step."""

    FETCH = "fetch"
    TRANSFORM = "transform"
    PERSIST = "persist"
    SHAPE = "shape"


def _freeze(mapping: FieldMapping | None) -> Mapping[str, Any]:
    return MappingProxyType(dict(mapping or {}))


@dataclass(frozen=True)
class Step:
    """
    A single step within a workflow.

    Use the factory methods rather than constructing directly; only the
    fields relevant to ``step_type`` are set.

    Attributes:
        name: Unique step name within the workflow
        step_type: Which of the four kinds this step is
        url: Upstream URL (fetch)
        method: HTTP method (fetch; GET only)
        timeout_seconds: Per-call budget (fetch)
        passthrough_query: Forward the trigger's query string upstream (fetch)
        mapping: Field mapping (transform, shape) or record item (persist)
        key_field: Partition key attribute of the record (persist)
        result_field: Document field the step writes its result into
    """

    name: str
    step_type: StepType
    url: str | None = None
    method: str = "GET"
    timeout_seconds: float | None = None
    passthrough_query: bool = False
    mapping: Mapping[str, Any] = field(default_factory=lambda: MappingProxyType({}))
    key_field: str | None = None
    result_field: str | None = None

    def __post_init__(self):
        object.__setattr__(self, "mapping", _freeze(self.mapping))
        self._validate()

    def _validate(self) -> None:
        if not self.name:
            raise InvalidWorkflowError("Step name must not be empty")

        if self.step_type == StepType.FETCH:
            if not self.url or not self.url.startswith(("http://", "https://")):
                raise InvalidWorkflowError(f"Fetch step '{self.name}' needs an absolute http(s) url, got {self.url!r}")
            if self.method.upper() != "GET":
                raise InvalidWorkflowError(f"Fetch step '{self.name}' only supports GET, got {self.method!r}")
            if self.timeout_seconds is not None and self.timeout_seconds <= 0:
                raise InvalidWorkflowError(f"Fetch step '{self.name}' timeout must be positive")
        else:
            try:
                validate_mapping(self.mapping)
            except (ValueError, InvalidPathError) as e:
                raise InvalidWorkflowError(f"Step '{self.name}': {e}") from e

        if self.step_type == StepType.PERSIST:
            if not self.key_field:
                raise InvalidWorkflowError(f"Persist step '{self.name}' needs a key_field")
            if self.key_field not in self.mapping:
                raise InvalidWorkflowError(
                    f"Persist step '{self.name}' key_field {self.key_field!r} is not in its item mapping"
                )

    # =========================================================================
    # Factories
    # =========================================================================

    @classmethod
    def fetch(
        cls,
        name: str,
        url: str,
        timeout_seconds: float = DEFAULT_FETCH_TIMEOUT,
        passthrough_query: bool = False,
        result_field: str = "http",
    ) -> Step:
        """Outbound GET to a statically configured URL."""
        return cls(
            name=name,
            step_type=StepType.FETCH,
            url=url,
            timeout_seconds=timeout_seconds,
            passthrough_query=passthrough_query,
            result_field=result_field,
        )

    @classmethod
    def transform(cls, name: str, mapping: FieldMapping) -> Step:
        """Filter-mode extraction: merge mapped fields into the document."""
        return cls(name=name, step_type=StepType.TRANSFORM, mapping=mapping)

    @classmethod
    def persist(
        cls,
        name: str,
        item: FieldMapping,
        key_field: str = "timest",
        result_field: str = "ddb",
    ) -> Step:
        """Write one record built from ``item`` to the record store."""
        return cls(
            name=name,
            step_type=StepType.PERSIST,
            mapping=item,
            key_field=key_field,
            result_field=result_field,
        )

    @classmethod
    def shape(cls, name: str, mapping: FieldMapping) -> Step:
        """Final-mode extraction: the document becomes exactly the mapped fields."""
        return cls(name=name, step_type=StepType.SHAPE, mapping=mapping)

    # =========================================================================
    # Serialization
    # =========================================================================

    def to_dict(self) -> dict[str, Any]:
        """Serialize to dictionary for display / JSON."""
        result: dict[str, Any] = {"name": self.name, "type": self.step_type.value}
        if self.step_type == StepType.FETCH:
            result.update(
                url=self.url,
                method=self.method,
                timeout_seconds=self.timeout_seconds,
                passthrough_query=self.passthrough_query,
            )
        elif self.step_type == StepType.PERSIST:
            result.update(item=describe_mapping(self.mapping), key_field=self.key_field)
        else:
            result["mapping"] = describe_mapping(self.mapping)
        if self.result_field:
            result["result_field"] = self.result_field
        return result

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> Step:
        """Inverse of :meth:`to_dict`."""
        step_type = StepType(data["type"])
        if step_type == StepType.FETCH:
            return cls.fetch(
                name=data["name"],
                url=data["url"],
                timeout_seconds=data.get("timeout_seconds") or DEFAULT_FETCH_TIMEOUT,
                passthrough_query=data.get("passthrough_query", False),
                result_field=data.get("result_field", "http"),
            )
        if step_type == StepType.PERSIST:
            return cls.persist(
                name=data["name"],
                item=mapping_from_dict(data["item"]),
                key_field=data.get("key_field", "timest"),
                result_field=data.get("result_field", "ddb"),
            )
        if step_type == StepType.TRANSFORM:
            return cls.transform(data["name"], mapping_from_dict(data["mapping"]))
        return cls.shape(data["name"], mapping_from_dict(data["mapping"]))

    def __repr__(self) -> str:
        return f"Step({self.name!r}, {self.step_type.value})"

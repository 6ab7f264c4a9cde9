"""
External fetcher — one outbound HTTP GET per run.

The target URL comes from the workflow definition, never from the inbound
request; at most the trigger's query string is forwarded when the fetch step
enables passthrough. There is no retry here: a failed call is terminal for
the run.

Error mapping::

    httpx.TimeoutException      → UpstreamTimeout
    httpx.TransportError        → UpstreamUnavailable   (connect, DNS, protocol)
    non-2xx response            → UpstreamError         (status + body kept)

The call is a plain ``await`` on ``httpx.AsyncClient.get``; cancelling the
awaiting task (run-level deadline) cancels the request and releases the
connection.
"""

from __future__ import annotations

import json
from dataclasses import dataclass, field
from typing import Any

import httpx

from gateflow.core.errors import UpstreamError, UpstreamTimeout, UpstreamUnavailable
from gateflow.core.logging import get_logger

logger = get_logger(__name__)

DEFAULT_USER_AGENT = "gateflow/0.1"


@dataclass(frozen=True)
class FetchRequest:
    """What to fetch: a static URL, optional passthrough query, a budget."""

    url: str
    timeout_seconds: float = 10.0
    query: dict[str, str] = field(default_factory=dict)
    method: str = "GET"


@dataclass(frozen=True)
class FetchedResponse:
    """Result of a successful fetch.

    ``headers`` maps canonical header names (``Content-Type``) to every value
    received, in order, so paths like ``$.http.headers.Date[0]`` are stable.
    """

    status_code: int
    body: Any
    headers: dict[str, list[str]]

    def to_document(self) -> dict[str, Any]:
        """The value written under the fetch step's result field."""
        return {
            "status_code": self.status_code,
            "body": self.body,
            "headers": {name: list(values) for name, values in self.headers.items()},
        }


def canonical_header_name(name: str) -> str:
    """``content-type`` → ``Content-Type``."""
    return "-".join(part.capitalize() for part in name.split("-"))


def collect_headers(headers: httpx.Headers) -> dict[str, list[str]]:
    result: dict[str, list[str]] = {}
    for name, value in headers.multi_items():
        result.setdefault(canonical_header_name(name), []).append(value)
    return result


def decode_body(response: httpx.Response) -> Any:
    """Parsed JSON when the content type says JSON, text otherwise."""
    content_type = response.headers.get("content-type", "").lower()
    if "json" in content_type and response.content:
        try:
            return response.json()
        except (json.JSONDecodeError, UnicodeDecodeError):
            logger.warning("fetch.invalid_json", url=str(response.request.url))
    return response.text


class ExternalFetcher:
    """Issues single-attempt GETs through an ``httpx.AsyncClient``.

    The client can be injected (shared connection pool, test transport);
    otherwise one is created lazily and closed by :meth:`aclose`.
    """

    def __init__(
        self,
        client: httpx.AsyncClient | None = None,
        *,
        transport: httpx.AsyncBaseTransport | None = None,
        user_agent: str = DEFAULT_USER_AGENT,
    ) -> None:
        self._client = client
        self._owns_client = client is None
        self._transport = transport
        self._user_agent = user_agent

    @property
    def client(self) -> httpx.AsyncClient:
        if self._client is None:
            self._client = httpx.AsyncClient(
                transport=self._transport,
                headers={"User-Agent": self._user_agent},
                follow_redirects=True,
            )
        return self._client

    async def fetch(self, request: FetchRequest) -> FetchedResponse:
        """Perform the GET.

        Raises:
            UpstreamTimeout: The call exceeded ``request.timeout_seconds``.
            UpstreamUnavailable: Connection/DNS/transport failure.
            UpstreamError: Non-2xx status code.
        """
        if request.method.upper() != "GET":
            raise ValueError(f"Only GET is supported, got {request.method!r}")

        logger.debug("fetch.start", url=request.url, query=request.query or None)
        try:
            response = await self.client.get(
                request.url,
                params=request.query or None,
                timeout=httpx.Timeout(request.timeout_seconds),
            )
        except httpx.TimeoutException as e:
            raise UpstreamTimeout(
                f"Upstream did not answer within {request.timeout_seconds}s",
                timeout=request.timeout_seconds,
                cause=e,
            ).with_context(url=request.url) from e
        except httpx.TransportError as e:
            raise UpstreamUnavailable(
                f"Upstream unreachable: {e.__class__.__name__}: {e}",
                cause=e,
            ).with_context(url=request.url) from e

        body = decode_body(response)
        if not response.is_success:
            raise UpstreamError(response.status_code, body=body).with_context(url=request.url)

        logger.debug("fetch.complete", url=request.url, status_code=response.status_code)
        return FetchedResponse(
            status_code=response.status_code,
            body=body,
            headers=collect_headers(response.headers),
        )

    async def aclose(self) -> None:
        if self._client is not None and self._owns_client:
            await self._client.aclose()
            self._client = None

    async def __aenter__(self) -> ExternalFetcher:
        return self

    async def __aexit__(self, *args: Any) -> None:
        await self.aclose()

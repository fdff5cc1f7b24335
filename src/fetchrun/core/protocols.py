"""Protocol definitions for dispatcher collaborators."""

from dataclasses import dataclass, field
from types import MappingProxyType
from typing import Any, Mapping, Protocol

from ..errors import MalformedPayload, TransportError


@dataclass(frozen=True)
class RequestSpec:
    """Immutable description of one HTTP request. Identity is the URL."""

    url: str
    method: str = "GET"
    headers: Mapping[str, str] = field(default_factory=dict)
    body: bytes | None = None

    def __post_init__(self):
        object.__setattr__(self, "method", self.method.upper())
        object.__setattr__(self, "headers", MappingProxyType(dict(self.headers)))

    def __hash__(self):
        return hash(self.url)


@dataclass
class Response:
    """HTTP response container."""

    url: str
    status: int
    content: bytes
    headers: dict[str, str]


@dataclass(frozen=True)
class ExtractedRecord:
    """Structured payload pulled from a successful response."""

    source_url: str
    payload: Any


class HttpClient(Protocol):
    """Sends a request, returning a response or raising TransportError."""

    async def send(self, spec: RequestSpec, timeout: float) -> Response:
        ...


class ResultSink(Protocol):
    """Stores one extracted record, raising SinkError on failure."""

    def store(self, record: ExtractedRecord) -> None:
        ...


class FailureReporter(Protocol):
    """Notified once for each request that ends in failure."""

    def notify(self, spec: RequestSpec, reason: TransportError | MalformedPayload) -> None:
        ...

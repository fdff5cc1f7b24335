"""Shared fakes for dispatcher tests."""

import asyncio
from collections import defaultdict

import pytest

from fetchrun.config import RunSettings
from fetchrun.core import ExtractedRecord, RequestSpec, Response
from fetchrun.errors import SinkError, TransportError

GOOD_BODY = b'{"data":{"items":[1,2]}}'


class FakeClient:
    """HttpClient stub driven by a per-URL behaviour.

    A behaviour is one of: bytes/str (body to return), an exception instance
    (raised), "timeout" (sleeps past any deadline), or a list of these
    consumed one per attempt.
    """

    def __init__(self, behaviours=None, default=GOOD_BODY, latency: float = 0.0):
        self.behaviours = dict(behaviours or {})
        self.default = default
        self.latency = latency
        self.calls: dict[str, int] = defaultdict(int)
        self.order: list[str] = []
        self.active: set[str] = set()
        self.overlapped = False
        self.in_flight = 0
        self.peak_in_flight = 0

    def _next(self, url):
        behaviour = self.behaviours.get(url, self.default)
        if isinstance(behaviour, list):
            index = min(self.calls[url] - 1, len(behaviour) - 1)
            behaviour = behaviour[index]
        return behaviour

    async def send(self, spec: RequestSpec, timeout: float) -> Response:
        self.calls[spec.url] += 1
        self.order.append(spec.url)
        if spec.url in self.active:
            self.overlapped = True
        self.active.add(spec.url)
        self.in_flight += 1
        self.peak_in_flight = max(self.peak_in_flight, self.in_flight)
        try:
            behaviour = self._next(spec.url)
            if behaviour == "timeout":
                await asyncio.sleep(timeout * 20)
            if self.latency:
                await asyncio.sleep(self.latency)
            if isinstance(behaviour, BaseException):
                raise behaviour
            if isinstance(behaviour, str):
                behaviour = behaviour.encode("utf-8")
            return Response(url=spec.url, status=200, content=behaviour, headers={})
        finally:
            self.in_flight -= 1
            self.active.discard(spec.url)

    @property
    def total_calls(self) -> int:
        return sum(self.calls.values())


class MemorySink:
    def __init__(self, fail_for=()):
        self.records: list[ExtractedRecord] = []
        self.fail_for = set(fail_for)

    def store(self, record: ExtractedRecord) -> None:
        if record.source_url in self.fail_for:
            raise SinkError(f"disk full for {record.source_url}")
        self.records.append(record)


class MemoryReporter:
    def __init__(self):
        self.failures: list[tuple[RequestSpec, Exception]] = []

    def notify(self, spec, reason) -> None:
        self.failures.append((spec, reason))

    def urls(self) -> list[str]:
        return [spec.url for spec, _ in self.failures]


@pytest.fixture
def make_client():
    return FakeClient


@pytest.fixture
def sink():
    return MemorySink()


@pytest.fixture
def reporter():
    return MemoryReporter()


@pytest.fixture
def make_settings():
    def _builder(**overrides) -> RunSettings:
        base = {
            "min_concurrency": 1,
            "max_concurrency": 2,
            "max_retries": 1,
            "request_timeout": 0.05,
            "max_requests_per_run": 0,
        }
        base.update(overrides)
        return RunSettings(**base)

    return _builder


@pytest.fixture
def refused():
    return TransportError("connection refused")

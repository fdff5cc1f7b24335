"""Core dispatcher components."""

from .fetcher import HttpFetcher
from .protocols import (
    ExtractedRecord,
    FailureReporter,
    HttpClient,
    RequestSpec,
    Response,
    ResultSink,
)

__all__ = [
    "ExtractedRecord",
    "FailureReporter",
    "HttpClient",
    "HttpFetcher",
    "RequestSpec",
    "Response",
    "ResultSink",
]

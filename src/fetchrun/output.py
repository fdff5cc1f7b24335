"""Streaming JSONL sinks for extracted records and failed requests."""

import json
from pathlib import Path
from typing import TextIO

import structlog

from .core import ExtractedRecord, RequestSpec
from .errors import MalformedPayload, SinkError, TransportError

log = structlog.get_logger(__name__)


class StreamingOutputWriter:
    """Writes dicts to JSONL format one at a time."""

    def __init__(self, output_path: str | Path):
        self.output_path = Path(output_path)
        self._file: TextIO | None = None
        self._count = 0

    def __enter__(self):
        self.output_path.parent.mkdir(parents=True, exist_ok=True)
        self._file = open(self.output_path, "w", encoding="utf-8")
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        if self._file is not None:
            self._file.close()
            self._file = None

    def write_one(self, row: dict):
        """Write a single row to the output file."""
        if self._file is None:
            raise RuntimeError(f"{type(self).__name__} must be used as context manager")

        self._file.write(json.dumps(row, ensure_ascii=False) + "\n")
        self._file.flush()
        self._count += 1

    @property
    def count(self) -> int:
        """Number of rows written."""
        return self._count


class DatasetSink(StreamingOutputWriter):
    """ResultSink storing one {"url", "body"} line per record."""

    def store(self, record: ExtractedRecord) -> None:
        try:
            self.write_one({"url": record.source_url, "body": record.payload})
        except (OSError, TypeError, ValueError) as e:
            raise SinkError(f"could not write record for {record.source_url}: {e}") from e


class FailureLog(StreamingOutputWriter):
    """FailureReporter that logs each failure and appends it to a JSONL file."""

    def notify(self, spec: RequestSpec, reason: TransportError | MalformedPayload) -> None:
        kind = "malformed_payload" if isinstance(reason, MalformedPayload) else "transport_error"
        log.warning("request_failed", url=spec.url, method=spec.method, reason=kind, error=str(reason))
        self.write_one({
            "url": spec.url,
            "method": spec.method,
            "reason": kind,
            "error": str(reason),
        })


class LoggingFailureReporter:
    """FailureReporter that only logs."""

    def notify(self, spec: RequestSpec, reason: TransportError | MalformedPayload) -> None:
        log.warning("request_failed", url=spec.url, method=spec.method, error=str(reason))

"""Payload extraction from JSON response bodies."""

import json
from dataclasses import dataclass
from typing import Any

from .core import ExtractedRecord
from .errors import MalformedPayload


@dataclass(frozen=True)
class Decoded:
    """Successful decode: the value found at the extractor's path."""

    value: Any


def parse_path(path: str | tuple[str, ...] | list[str]) -> tuple[str, ...]:
    """Turn 'data.items' into ('data', 'items')."""
    if isinstance(path, str):
        return tuple(part for part in path.split(".") if part)
    return tuple(path)


class Extractor:
    """Extract the value at a fixed path from a JSON document."""

    def __init__(self, path: str | tuple[str, ...] | list[str] = "data.items"):
        self.path = parse_path(path)

    def decode(self, body: bytes | str) -> Decoded | MalformedPayload:
        """Decode a body, returning a tagged result instead of raising."""
        if isinstance(body, bytes):
            try:
                body = body.decode("utf-8")
            except UnicodeDecodeError as e:
                return MalformedPayload(f"body is not UTF-8: {e}", self.path)

        try:
            document = json.loads(body)
        except (ValueError, RecursionError) as e:
            return MalformedPayload(f"body is not JSON: {e}", self.path)

        value = document
        for depth, key in enumerate(self.path):
            if isinstance(value, dict) and key in value:
                value = value[key]
            elif isinstance(value, list) and key.isdigit() and int(key) < len(value):
                value = value[int(key)]
            else:
                missing = ".".join(self.path[: depth + 1])
                return MalformedPayload(f"expected a value at '{missing}'", self.path)

        return Decoded(value)

    def extract(self, body: bytes | str, source_url: str) -> ExtractedRecord | MalformedPayload:
        """Build an ExtractedRecord for source_url, or report why it is malformed."""
        result = self.decode(body)
        if isinstance(result, MalformedPayload):
            return result
        return ExtractedRecord(source_url=source_url, payload=result.value)

"""Loading request specs from JSON / JSONL files."""

import json
from pathlib import Path
from typing import Any

from .core import RequestSpec


def spec_from_dict(data: dict[str, Any]) -> RequestSpec:
    """Build a RequestSpec from a mapping.

    The body may be given as ``body`` or ``payload`` (str or bytes), or as a
    ``json`` value which is serialised.
    """
    if "url" not in data:
        raise ValueError(f"request is missing 'url': {data!r}")

    body = data.get("body", data.get("payload"))
    if body is None and "json" in data:
        body = json.dumps(data["json"], ensure_ascii=False)
    if isinstance(body, str):
        body = body.encode("utf-8")

    return RequestSpec(
        url=data["url"],
        method=data.get("method", "GET"),
        headers={str(k): str(v) for k, v in (data.get("headers") or {}).items()},
        body=body,
    )


def load_requests(path: str | Path) -> list[RequestSpec]:
    """Load specs from a JSON array, a single JSON object, or JSON Lines."""
    text = Path(path).read_text(encoding="utf-8").strip()
    if not text:
        return []

    if text.startswith("["):
        items = json.loads(text)
    else:
        try:
            items = [json.loads(text)]
        except json.JSONDecodeError:
            items = [json.loads(line) for line in text.splitlines() if line.strip()]

    specs = []
    for item in items:
        if isinstance(item, str):
            specs.append(RequestSpec(url=item))
        else:
            specs.append(spec_from_dict(item))
    return specs

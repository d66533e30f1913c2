from __future__ import annotations

import json
from pathlib import Path
from typing import Any

from pydantic import ValidationError

from .config import _load_yaml
from .snapshot import UsageSnapshot


SNAPSHOT_SUFFIXES = (".json", ".yaml", ".yml")


def _load_json(path: Path) -> dict[str, Any]:
    try:
        raw = json.loads(path.read_text(encoding="utf-8"))
    except json.JSONDecodeError as exc:
        raise ValueError(f"Failed to parse JSON: {path} (line {exc.lineno})") from exc
    if not isinstance(raw, dict):
        raise ValueError(f"Usage snapshot must be a JSON object: {path}")
    return raw


def load_usage_snapshot(path: str | Path) -> UsageSnapshot:
    """Read a device snapshot plus per-consumer snapshots for one component."""
    p = Path(path)
    suffix = p.suffix.lower()
    if suffix not in SNAPSHOT_SUFFIXES:
        raise ValueError(f"Unsupported snapshot format: {p.suffix} (expected .json/.yaml/.yml)")
    if not p.exists():
        raise FileNotFoundError(str(path))

    raw = _load_json(p) if suffix == ".json" else _load_yaml(p)
    try:
        return UsageSnapshot.model_validate(raw)
    except ValidationError as exc:
        raise ValueError(f"Invalid usage snapshot: {p}\n{exc}") from exc

from __future__ import annotations

import json
from pathlib import Path
from typing import Any

import structlog
from pydantic import ValidationError

from ..errors import RegistryError
from ..history import coerce_samples
from ..models import MonitoringRecord
from .memory import InMemoryRegistry


logger = structlog.get_logger(__name__)


def _write_state_atomic(path: Path, payload: dict[str, Any]) -> None:
    path.parent.mkdir(parents=True, exist_ok=True)
    tmp = path.with_name(f"{path.name}.tmp")
    tmp.write_text(json.dumps(payload, ensure_ascii=False, sort_keys=True), encoding="utf-8")
    tmp.replace(path)


def load_state(path: Path) -> list[MonitoringRecord]:
    """
    Decode records from a state file. Malformed entries are skipped so one bad
    record (or an older format) never takes the whole registry down.
    """
    if not path.exists():
        return []
    try:
        raw = json.loads(path.read_text(encoding="utf-8") or "{}")
    except (OSError, json.JSONDecodeError) as e:
        raise RegistryError(f"Cannot read registry state {path}: {e}") from e

    items = raw.get("targets") if isinstance(raw, dict) else None
    if not isinstance(items, list):
        return []

    records: list[MonitoringRecord] = []
    for item in items:
        if not isinstance(item, dict):
            continue
        item = dict(item)
        item["check_history"] = coerce_samples(item.get("check_history"))
        try:
            records.append(MonitoringRecord.from_dict(item))
        except ValidationError as e:
            logger.warning("Skipping invalid target in state file", target_id=item.get("target_id"), error=str(e))
    return records


class JsonFileRegistry(InMemoryRegistry):
    """In-memory registry mirrored to a JSON state file after every write."""

    def __init__(self, path: str | Path):
        self.path = Path(path)
        super().__init__(load_state(self.path))
        logger.info("Loaded registry state", path=str(self.path), targets=len(self._records))

    def _after_write(self) -> None:
        payload = {"targets": [r.to_dict() for r in self._records.values()]}
        try:
            _write_state_atomic(self.path, payload)
        except OSError as e:
            raise RegistryError(f"Cannot write registry state {self.path}: {e}") from e

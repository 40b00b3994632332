from __future__ import annotations

from pathlib import Path
from typing import Any

import structlog
import yaml

from ..models import MonitoringRecord
from .base import ApplicationRegistry


logger = structlog.get_logger(__name__)


def load_targets_file(path: str | Path) -> list[MonitoringRecord]:
    """Read target definitions from YAML (a ``targets:`` list of record mappings)."""
    with open(path, "r", encoding="utf-8") as f:
        data: Any = yaml.safe_load(f) or {}
    if isinstance(data, dict):
        data = data.get("targets", [])
    if not isinstance(data, list):
        raise ValueError("Targets YAML must be a list or a mapping with a 'targets' list")
    return [MonitoringRecord.from_dict(entry) for entry in data]


async def seed_registry(registry: ApplicationRegistry, path: str | Path) -> int:
    """Register targets from ``path`` that the registry does not know yet."""
    added = 0
    for record in load_targets_file(path):
        if await registry.get(record.target_id) is not None:
            continue
        await registry.register(record)
        added += 1
    logger.info("Seeded registry", path=str(path), added=added)
    return added

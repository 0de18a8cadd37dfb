from __future__ import annotations

import json
import logging
from pathlib import Path

from autoheal.core.metadata import HealingRecord

log = logging.getLogger(__name__)


class HealingAuditLogger:
    """Persists healing records as a human-readable JSON array."""

    def __init__(self, root: str | Path = "artifacts", filename: str = "healing_history.json") -> None:
        self.root = Path(root)
        self.root.mkdir(parents=True, exist_ok=True)
        self.history_path = self.root / filename

    def write(self, record: HealingRecord) -> None:
        payload = [item.to_dict() for item in self.read()]
        payload.append(record.to_dict())
        self.history_path.write_text(json.dumps(payload, indent=2), encoding="utf-8")

    def read(self) -> list[HealingRecord]:
        if not self.history_path.exists():
            return []
        try:
            payload = json.loads(self.history_path.read_text(encoding="utf-8"))
            if not isinstance(payload, list):
                raise ValueError("healing history must be a JSON array")
            return [HealingRecord.from_dict(item) for item in payload]
        except (ValueError, KeyError, TypeError) as exc:
            log.warning("Ignoring unreadable healing history at %s: %s", self.history_path, exc)
            return []

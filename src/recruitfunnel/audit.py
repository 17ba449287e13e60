"""Append-only audit trail."""

from __future__ import annotations

import json
import threading
from pathlib import Path
from typing import Any

import pendulum


class AuditLogger:
    """Append-only audit logger writing JSON lines."""

    def __init__(self, path: Path):
        self._path = path
        self._path.parent.mkdir(parents=True, exist_ok=True)
        self._lock = threading.Lock()

    @property
    def path(self) -> Path:
        return self._path

    def append(self, record: dict[str, Any]) -> None:
        entry = {"recorded_at": pendulum.now("UTC").to_iso8601_string(), **record}
        line = json.dumps(entry, ensure_ascii=False, default=str)
        with self._lock, self._path.open("a", encoding="utf-8") as handle:
            handle.write(line)
            handle.write("\n")

"""Persistent input history for interpreter sessions."""

import json
import logging
import threading
from pathlib import Path
from typing import Iterable

logger = logging.getLogger(__name__)


class HistoryStore:
    """Best-effort JSON store for one implementation's input history.

    Failures never propagate: a history that cannot be read loads as empty,
    and a history that cannot be written is logged and dropped.
    """

    def __init__(self, path: Path, max_size: int = 500):
        self.path = Path(path)
        self.max_size = max_size
        self._lock = threading.Lock()

    def _bounded(self, entries: list[str]) -> list[str]:
        if self.max_size <= 0:
            return []
        # oldest entries go first
        return entries[-self.max_size:]

    def load(self) -> list[str]:
        """Load saved entries, oldest first."""
        with self._lock:
            if not self.path.exists():
                return []
            try:
                with open(self.path, encoding="utf-8") as f:
                    data = json.load(f)
            except (json.JSONDecodeError, OSError) as e:
                logger.warning(f"Could not read history {self.path}: {e}")
                return []
            if not isinstance(data, list):
                logger.warning(f"Ignoring malformed history in {self.path}")
                return []
            return self._bounded([str(entry) for entry in data])

    def save(self, entries: Iterable[str]):
        """Write entries to disk, keeping only the newest max_size."""
        entries = self._bounded(list(entries))
        with self._lock:
            try:
                self.path.parent.mkdir(parents=True, exist_ok=True)
                with open(self.path, "w", encoding="utf-8") as f:
                    json.dump(entries, f, indent=1)
            except OSError as e:
                logger.warning(f"Could not save history {self.path}: {e}")

"""JSON-file document collection used when MongoDB is not configured."""

from __future__ import annotations

import json
import logging
from pathlib import Path
from threading import RLock
from typing import Any

LOGGER = logging.getLogger(__name__)


class JsonFileCollection:
    """List-of-documents JSON file with a re-entrant lock.

    Callers hold ``lock`` around read-modify-write sequences so each
    repository operation is applied as a single atomic rewrite.
    """

    def __init__(self, path: Path) -> None:
        path.parent.mkdir(parents=True, exist_ok=True)
        self.path = path
        self.lock = RLock()

    def read(self) -> list[dict[str, Any]]:
        """Read list payload from JSON file with empty fallback."""
        if not self.path.exists():
            return []
        try:
            payload = json.loads(self.path.read_text(encoding="utf-8"))
        except ValueError:
            LOGGER.warning("file_store_corrupted", extra={"path": str(self.path)})
            return []
        return payload if isinstance(payload, list) else []

    def write(self, items: list[dict[str, Any]]) -> None:
        """Persist list payload to JSON file via temp file + rename."""
        tmp_path = self.path.with_suffix(self.path.suffix + ".tmp")
        tmp_path.write_text(
            json.dumps(items, ensure_ascii=False, indent=2), encoding="utf-8"
        )
        tmp_path.replace(self.path)

"""File-backed store: the whole snapshot lives in one JSON document."""

from __future__ import annotations

import json
import logging
import os
import tempfile
from pathlib import Path
from typing import Any

from inventory_connector.errors import StoreWriteError
from inventory_connector.store import MemorySkuStore

logger = logging.getLogger(__name__)


class JsonFileSkuStore(MemorySkuStore):
    """Reads the document once and rewrites it after every change."""

    def __init__(self, path: Path | str, **kwargs: Any) -> None:
        self.path = Path(path)
        super().__init__(self._read(), **kwargs)

    def _read(self) -> dict:
        if not self.path.exists():
            return {}
        try:
            with self.path.open("r", encoding="utf-8") as f:
                data = json.load(f)
        except (OSError, json.JSONDecodeError) as exc:
            raise StoreWriteError(f"Cannot read store file {self.path}: {exc}") from exc
        if not isinstance(data, dict):
            raise StoreWriteError(f"Store file {self.path} does not hold a JSON object")
        return data

    def _persist(self) -> None:
        # Temp file + os.replace: readers see either the old or the new
        # document, never a partial one.
        try:
            self.path.parent.mkdir(parents=True, exist_ok=True)
            fd, tmp_name = tempfile.mkstemp(
                prefix=self.path.name, suffix=".tmp", dir=self.path.parent
            )
            try:
                with os.fdopen(fd, "w", encoding="utf-8") as f:
                    json.dump(self.snapshot(), f, indent=2, ensure_ascii=False)
                os.replace(tmp_name, self.path)
            except BaseException:
                Path(tmp_name).unlink(missing_ok=True)
                raise
        except OSError as exc:
            logger.error("Error writing store file %s: %s", self.path, exc)
            raise StoreWriteError(f"Cannot write store file {self.path}: {exc}") from exc


__all__ = ["JsonFileSkuStore"]

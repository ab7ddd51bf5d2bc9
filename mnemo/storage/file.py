"""
File storage backend

JSON file persistence in the export format:
    {"version": "1.0.0", "exported_at": ISO-8601, "units": [...]}

The file is read lazily on first access and rewritten atomically (temp file
in the same directory, then os.replace) after every mutation.
"""

import json
import logging
import os
import tempfile
from pathlib import Path
from typing import List, Optional, Union

from pydantic import ValidationError

from ..common.errors import StorageError
from ..common.schemas import ExportData, MemoryUnit, QueryFilter
from .memory import MemoryStorage

logger = logging.getLogger("mnemo.storage.file")


class FileStorage(MemoryStorage):
    """StorageAdapter persisted to a single JSON file"""

    def __init__(self, path: Union[str, Path], pretty_print: bool = False):
        """
        Initialize file storage.

        Args:
            path: JSON file to read and write (created on first save)
            pretty_print: Indent the JSON output
        """
        super().__init__()
        self.path = Path(path).expanduser()
        self.pretty_print = pretty_print
        self._loaded = False

    def _ensure_loaded(self) -> None:
        if self._loaded:
            return

        if self.path.exists():
            try:
                with open(self.path, encoding="utf-8") as f:
                    data = ExportData.model_validate(json.load(f))
            except (json.JSONDecodeError, ValidationError, OSError) as e:
                raise StorageError(f"Failed to read memory file {self.path}: {e}") from e

            for unit in data.units:
                self._units[unit.id] = unit
            logger.info("Loaded %d units from %s", len(data.units), self.path)

        self._loaded = True

    def _persist(self) -> None:
        data = ExportData(units=list(self._units.values()))
        content = data.model_dump_json(indent=2 if self.pretty_print else None)

        try:
            self.path.parent.mkdir(parents=True, exist_ok=True)
            fd, tmp_path = tempfile.mkstemp(
                dir=self.path.parent, prefix=f".{self.path.name}.", suffix=".tmp"
            )
            try:
                with os.fdopen(fd, "w", encoding="utf-8") as f:
                    f.write(content)
                os.replace(tmp_path, self.path)
            except BaseException:
                os.unlink(tmp_path)
                raise
        except OSError as e:
            raise StorageError(f"Failed to write memory file {self.path}: {e}") from e

    # =========================================================================
    # StorageAdapter
    # =========================================================================

    def save_units(self, units: List[MemoryUnit]) -> None:
        self._ensure_loaded()
        super().save_units(units)
        self._persist()

    def get_unit(self, unit_id: str) -> Optional[MemoryUnit]:
        self._ensure_loaded()
        return super().get_unit(unit_id)

    def get_all_units(self) -> List[MemoryUnit]:
        self._ensure_loaded()
        return super().get_all_units()

    def query_units(self, filter: QueryFilter) -> List[MemoryUnit]:
        self._ensure_loaded()
        return super().query_units(filter)

    def delete_unit(self, unit_id: str) -> None:
        self._ensure_loaded()
        super().delete_unit(unit_id)
        self._persist()

    def clear(self) -> None:
        self._ensure_loaded()
        super().clear()
        self._persist()

    def count(self) -> int:
        self._ensure_loaded()
        return super().count()

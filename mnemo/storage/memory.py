"""
In-memory storage backend

Keeps units in a dict for the lifetime of the process. Useful for tests and
for short-lived memory spaces.
"""

from typing import Dict, List, Optional

from ..common.filters import matches_filter
from ..common.schemas import ExportData, MemoryUnit, QueryFilter


class MemoryStorage:
    """Dict-backed StorageAdapter; stores and returns copies of units"""

    def __init__(self):
        self._units: Dict[str, MemoryUnit] = {}

    def save_units(self, units: List[MemoryUnit]) -> None:
        for unit in units:
            self._units[unit.id] = unit.model_copy(deep=True)

    def get_unit(self, unit_id: str) -> Optional[MemoryUnit]:
        unit = self._units.get(unit_id)
        return unit.model_copy(deep=True) if unit else None

    def get_all_units(self) -> List[MemoryUnit]:
        return [u.model_copy(deep=True) for u in self._units.values()]

    def query_units(self, filter: QueryFilter) -> List[MemoryUnit]:
        return [
            u.model_copy(deep=True)
            for u in self._units.values()
            if matches_filter(u, filter)
        ]

    def delete_unit(self, unit_id: str) -> None:
        self._units.pop(unit_id, None)

    def clear(self) -> None:
        self._units.clear()

    def count(self) -> int:
        return len(self._units)

    def export(self) -> ExportData:
        return ExportData(units=self.get_all_units())

    def import_data(self, data: ExportData) -> None:
        """Merge exported units into this store (same id overwrites)"""
        self.save_units(data.units)

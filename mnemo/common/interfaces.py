"""
Collaborator Interfaces

The three narrow contracts the core depends on. Any backend that provides
these methods can be injected; nothing inspects concrete types.
"""

from typing import List, Optional, Protocol, Type, TypeVar, runtime_checkable

from pydantic import BaseModel

from .schemas import ExportData, MemoryUnit, QueryFilter

T = TypeVar("T", bound=BaseModel)


@runtime_checkable
class EmbeddingProvider(Protocol):
    """Maps texts to fixed-length vectors, same length and order as input"""

    def embed(self, texts: List[str]) -> List[List[float]]:
        ...


@runtime_checkable
class LLMProvider(Protocol):
    """Text completion plus schema-validated JSON completion"""

    def complete(
        self,
        prompt: str,
        *,
        system: Optional[str] = None,
        temperature: Optional[float] = None,
        max_tokens: Optional[int] = None,
    ) -> str:
        ...

    def complete_json(self, prompt: str, schema: Type[T]) -> T:
        ...


@runtime_checkable
class StorageAdapter(Protocol):
    """Persistence for memory units; the index only ever reads all units"""

    def save_units(self, units: List[MemoryUnit]) -> None:
        ...

    def get_unit(self, unit_id: str) -> Optional[MemoryUnit]:
        ...

    def get_all_units(self) -> List[MemoryUnit]:
        ...

    def query_units(self, filter: QueryFilter) -> List[MemoryUnit]:
        ...

    def delete_unit(self, unit_id: str) -> None:
        ...

    def clear(self) -> None:
        ...

    def export(self) -> ExportData:
        ...

    def import_data(self, data: ExportData) -> None:
        ...

"""
OpenBooks Backend — Abstract Document Store Interface
=====================================================

What:  Abstract base class defining the contract every persistence backend
       honours, so PhotoStore never branches on which one it was given.
How:   Concrete implementations inherit from DocumentStore:
       - JsonFileStore:    whole aggregate as a single JSON document
       - CosmosDocumentStore: one item per entity, partitioned by "type"
Who:   Built once by build_document_store() at startup and injected into
       PhotoStore.

Consistency contract:
    save_all() on the file backend is atomic (temp file + rename).
    save_all() on the partitioned backend is a sequence of independent
    per-item writes. A failure part-way leaves the remote store with some
    items newer than others. Callers must not assume all-or-nothing.

    No backend retries. Every method may raise the transport's own
    exception, and callers see it unmodified.
"""

from abc import ABC, abstractmethod
from typing import Any, Dict, Iterable, List, Optional

from openbooks.models.entities import Aggregate, ItemRef


class DocumentStore(ABC):
    """Uniform load/save/per-item operations over one physical backend."""

    #: Short provider name reported by the status endpoint
    provider: str = "abstract"

    @abstractmethod
    async def load_all(self) -> Optional[Aggregate]:
        """
        Load the full aggregate.

        Returns:
            The aggregate, or None when the backend holds no data yet
            (the caller then seeds).
        """
        ...

    @abstractmethod
    async def save_all(
        self, aggregate: Aggregate, removed: Iterable[ItemRef] = ()
    ) -> None:
        """
        Persist the whole aggregate.

        Args:
            aggregate: The state to write.
            removed:   Items deleted from the aggregate since the last save.
                       Backends that overwrite the whole document may ignore it.
        """
        ...

    @abstractmethod
    async def upsert_one(self, kind: str, record: Dict[str, Any]) -> None:
        """Insert or replace one entity record of the given type."""
        ...

    @abstractmethod
    async def delete_one(self, kind: str, item_id: str) -> None:
        """Delete one entity record. Absent items are not an error."""
        ...

    @abstractmethod
    async def query_by_type(self, kind: str) -> List[Dict[str, Any]]:
        """All records of one entity type, in stored order."""
        ...

    async def describe(self) -> Dict[str, Any]:
        """Provider name and size information for the status endpoint."""
        return {"provider": self.provider, "size_bytes": 0}

    async def close(self) -> None:
        """Release client resources. Default: nothing to release."""
        return None

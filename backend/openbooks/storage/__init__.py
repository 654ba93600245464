"""
OpenBooks Backend — Storage Package
===================================

What:  Persistence backends behind one DocumentStore interface.

Backend Inventory:
    - DocumentStore (abstract): load_all / save_all / upsert_one /
      delete_one / query_by_type
    - JsonFileStore: single JSON document on disk
    - CosmosDocumentStore: one Cosmos DB item per entity, partitioned by type

build_document_store() picks the backend once, from DB_PROVIDER.
"""

from openbooks.config import Settings
from openbooks.storage.base import DocumentStore
from openbooks.storage.file_store import JsonFileStore


def build_document_store(settings: Settings) -> DocumentStore:
    """Construct the configured backend. Raises ConfigurationError when incomplete."""
    if settings.db_provider == "cosmos":
        from openbooks.storage.cosmos_store import CosmosDocumentStore

        return CosmosDocumentStore(
            connection_string=settings.cosmos_connection_string,
            endpoint=settings.cosmos_endpoint,
            key=settings.cosmos_key,
            database_name=settings.cosmos_db_name,
            container_name=settings.cosmos_container,
        )
    return JsonFileStore(settings.db_file)


__all__ = ["DocumentStore", "JsonFileStore", "build_document_store"]

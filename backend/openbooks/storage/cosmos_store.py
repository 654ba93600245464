"""
OpenBooks Backend — Cosmos DB Document Store (partitioned backend)
==================================================================

What:  Stores every entity as an independent Cosmos DB item, tagged with a
       "type" discriminator that is also the partition key.
How:   azure-cosmos async client. The database and container are created on
       first use (createIfNotExists) and cached for the process lifetime.
Who:   Selected with DB_PROVIDER=cosmos.

Env:
    COSMOS_CONNECTION_STRING  (or COSMOS_ENDPOINT + COSMOS_KEY)
    COSMOS_DB_NAME            (default: openbooksdb)
    COSMOS_CONTAINER          (default: openbooks)

Item layout:
    {id, type: "user",    name, role}
    {id, type: "post",    title, image_url, ...}
    {id, type: "like",    postId, userId, at}           id defaults to postId:userId
    {id, type: "rating",  postId, userId, rating, at}   id defaults to postId:userId
    {id, type: "comment", postId, who, text, at}
    {id: "meta", type: "meta", activeUserId}

Consistency:
    save_all() is NOT atomic. It upserts meta, then every entity one at a
    time, then deletes the removed items, each as its own request. There is
    no batch and no transaction; an exception part-way propagates with the
    container holding a mix of old and new items. Nothing is retried.
"""

import asyncio
import logging
from typing import Any, Dict, Iterable, List, Optional

from azure.cosmos import PartitionKey
from azure.cosmos.aio import CosmosClient
from azure.cosmos.exceptions import CosmosResourceNotFoundError

from openbooks.exceptions import ConfigurationError
from openbooks.models.entities import (
    COLLECTIONS,
    DEFAULT_ACTIVE_USER_ID,
    ENTITY_KINDS,
    META,
    USER,
    Aggregate,
    ItemRef,
    record_item_id,
)
from openbooks.storage.base import DocumentStore

logger = logging.getLogger(__name__)

TYPE_QUERY = "SELECT * FROM c WHERE c.type = @type"


class CosmosDocumentStore(DocumentStore):
    """Partitioned remote-document backend."""

    provider = "cosmos"

    def __init__(
        self,
        connection_string: Optional[str] = None,
        endpoint: Optional[str] = None,
        key: Optional[str] = None,
        database_name: str = "openbooksdb",
        container_name: str = "openbooks",
    ):
        if connection_string:
            self._client = CosmosClient.from_connection_string(connection_string)
        elif endpoint and key:
            self._client = CosmosClient(endpoint, credential=key)
        else:
            raise ConfigurationError(
                message=(
                    "Missing Cosmos config "
                    "(COSMOS_CONNECTION_STRING or COSMOS_ENDPOINT+COSMOS_KEY)"
                ),
                missing=[
                    name
                    for name, value in (("COSMOS_ENDPOINT", endpoint), ("COSMOS_KEY", key))
                    if not value
                ],
            )
        self.database_name = database_name
        self.container_name = container_name
        self._container = None
        self._container_lock = asyncio.Lock()

    async def _get_container(self):
        """Create the database/container if absent; cached after the first call."""
        if self._container is not None:
            return self._container
        async with self._container_lock:
            if self._container is None:
                database = await self._client.create_database_if_not_exists(
                    id=self.database_name
                )
                self._container = await database.create_container_if_not_exists(
                    id=self.container_name,
                    partition_key=PartitionKey(path="/type"),
                )
                logger.info(
                    "Cosmos container ready: %s/%s",
                    self.database_name,
                    self.container_name,
                )
        return self._container

    async def _read_meta(self) -> Optional[Dict[str, Any]]:
        container = await self._get_container()
        try:
            return await container.read_item(item=META, partition_key=META)
        except CosmosResourceNotFoundError:
            return None

    # ── DocumentStore ─────────────────────────────────────────────────────

    async def load_all(self) -> Optional[Aggregate]:
        meta = await self._read_meta()
        records = {kind: await self.query_by_type(kind) for kind in ENTITY_KINDS}
        users = records[USER]

        if meta is None and not users:
            logger.info("Cosmos container %s is empty", self.container_name)
            return None

        active_user_id = (meta or {}).get("activeUserId")
        if not active_user_id:
            active_user_id = users[0]["id"] if users else DEFAULT_ACTIVE_USER_ID

        document: Dict[str, Any] = {"activeUserId": active_user_id}
        for kind in ENTITY_KINDS:
            document[COLLECTIONS[kind]] = records[kind]

        aggregate = Aggregate.from_document(document)
        logger.info(
            "Loaded aggregate from Cosmos: %d users, %d posts",
            len(aggregate.users),
            len(aggregate.posts),
        )
        return aggregate

    async def save_all(
        self, aggregate: Aggregate, removed: Iterable[ItemRef] = ()
    ) -> None:
        document = aggregate.to_document()
        removed = list(removed)

        await self.upsert_one(META, {"activeUserId": document["activeUserId"]})
        count = 1
        for kind in ENTITY_KINDS:
            for record in document[COLLECTIONS[kind]]:
                await self.upsert_one(kind, record)
                count += 1
        for ref in removed:
            await self.delete_one(ref.kind, ref.item_id)

        logger.debug("Cosmos save: %d upserts, %d deletes", count, len(removed))

    async def upsert_one(self, kind: str, record: Dict[str, Any]) -> None:
        container = await self._get_container()
        if kind == META:
            item = {"id": META, "type": META, "activeUserId": record["activeUserId"]}
        else:
            item = {**record, "type": kind, "id": record_item_id(kind, record)}
        await container.upsert_item(body=item)

    async def delete_one(self, kind: str, item_id: str) -> None:
        container = await self._get_container()
        try:
            await container.delete_item(item=item_id, partition_key=kind)
        except CosmosResourceNotFoundError:
            logger.debug("Cosmos delete: %s/%s already absent", kind, item_id)

    async def query_by_type(self, kind: str) -> List[Dict[str, Any]]:
        container = await self._get_container()
        items = container.query_items(
            query=TYPE_QUERY,
            parameters=[{"name": "@type", "value": kind}],
            partition_key=kind,
        )
        return [item async for item in items]

    async def close(self) -> None:
        await self._client.close()

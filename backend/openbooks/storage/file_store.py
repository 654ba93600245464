"""
OpenBooks Backend — JSON File Document Store
============================================

What:  Persists the whole aggregate as one pretty-printed JSON document.
How:   aiofiles for non-blocking reads/writes. Every save writes a uniquely
       named temp file beside the target and renames it over the target,
       so readers never observe a half-written document.
Who:   Selected with DB_PROVIDER=file (the default).

The per-item operations (upsert_one, delete_one, query_by_type) are
read-modify-write cycles over the same document. PhotoStore only uses
load_all/save_all; the per-item calls exist so both backends expose the same
capability set.
"""

import json
import logging
import uuid
from pathlib import Path
from typing import Any, Dict, Iterable, List, Optional, Union

import aiofiles
import aiofiles.os

from openbooks.models.entities import (
    COLLECTIONS,
    DEFAULT_ACTIVE_USER_ID,
    META,
    Aggregate,
    ItemRef,
    record_item_id,
)
from openbooks.storage.base import DocumentStore

logger = logging.getLogger(__name__)


def _empty_document() -> Dict[str, Any]:
    document: Dict[str, Any] = {"activeUserId": DEFAULT_ACTIVE_USER_ID}
    for collection in COLLECTIONS.values():
        document[collection] = []
    return document


class JsonFileStore(DocumentStore):
    """Single-file snapshot backend."""

    provider = "file"

    def __init__(self, path: Union[str, Path]):
        self.path = Path(path)
        self.path.parent.mkdir(parents=True, exist_ok=True)
        logger.info("JsonFileStore initialized with path=%s", self.path.resolve())

    # ── Raw document I/O ──────────────────────────────────────────────────

    async def _read_document(self) -> Optional[Dict[str, Any]]:
        if not await aiofiles.os.path.exists(self.path):
            return None
        async with aiofiles.open(self.path, "r", encoding="utf-8") as f:
            raw = await f.read()
        return json.loads(raw)

    async def _write_document(self, document: Dict[str, Any]) -> None:
        # Serialize before the first await: the document is a snapshot of the
        # aggregate at the moment the save started.
        payload = json.dumps(document, indent=2, ensure_ascii=False)
        tmp_path = self.path.with_name(f".{self.path.name}.{uuid.uuid4().hex}.tmp")
        try:
            async with aiofiles.open(tmp_path, "w", encoding="utf-8") as f:
                await f.write(payload)
            await aiofiles.os.replace(tmp_path, self.path)
        except OSError:
            if await aiofiles.os.path.exists(tmp_path):
                await aiofiles.os.remove(tmp_path)
            raise
        logger.debug("Wrote %s (%d bytes)", self.path.name, len(payload))

    # ── DocumentStore ─────────────────────────────────────────────────────

    async def load_all(self) -> Optional[Aggregate]:
        document = await self._read_document()
        if document is None:
            logger.info("No data file at %s", self.path)
            return None
        aggregate = Aggregate.from_document(document)
        logger.info(
            "Loaded aggregate from %s: %d users, %d posts",
            self.path.name,
            len(aggregate.users),
            len(aggregate.posts),
        )
        return aggregate

    async def save_all(
        self, aggregate: Aggregate, removed: Iterable[ItemRef] = ()
    ) -> None:
        # Whole-document overwrite already drops removed items.
        await self._write_document(aggregate.to_document())

    async def upsert_one(self, kind: str, record: Dict[str, Any]) -> None:
        document = await self._read_document() or _empty_document()
        if kind == META:
            document["activeUserId"] = record["activeUserId"]
        else:
            collection = document.setdefault(COLLECTIONS[kind], [])
            item_id = record_item_id(kind, record)
            for index, existing in enumerate(collection):
                if record_item_id(kind, existing) == item_id:
                    collection[index] = record
                    break
            else:
                collection.insert(0, record)
        await self._write_document(document)

    async def delete_one(self, kind: str, item_id: str) -> None:
        document = await self._read_document()
        if document is None:
            return
        collection = document.get(COLLECTIONS[kind], [])
        document[COLLECTIONS[kind]] = [
            r for r in collection if record_item_id(kind, r) != item_id
        ]
        await self._write_document(document)

    async def query_by_type(self, kind: str) -> List[Dict[str, Any]]:
        document = await self._read_document()
        if document is None:
            return []
        if kind == META:
            return [{"id": META, "activeUserId": document.get("activeUserId")}]
        return list(document.get(COLLECTIONS[kind], []))

    async def describe(self) -> Dict[str, Any]:
        size = 0
        if await aiofiles.os.path.exists(self.path):
            size = (await aiofiles.os.stat(self.path)).st_size
        return {"provider": self.provider, "size_bytes": size}

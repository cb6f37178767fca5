"""MongoDB implementation of Store.

Each table maps to a collection. The `_id` of a document is the item's key
sub-document, built in table key order so equality matches are stable.
Multi-item writes use a transaction and therefore need a replica set.
"""

from collections.abc import Iterator, Mapping, Sequence
from contextlib import contextmanager
from typing import Any

import structlog
from pymongo.asynchronous.client_session import AsyncClientSession
from pymongo.asynchronous.collection import AsyncCollection
from pymongo.asynchronous.database import AsyncDatabase
from pymongo.errors import DocumentTooLarge, DuplicateKeyError, OperationFailure, PyMongoError

from seqalloc.core.store.base import (
    AttributeEquals,
    AttributeNotExists,
    Condition,
    Item,
    ItemNotExists,
    Table,
    WriteOp,
)
from seqalloc.errors import CapacityError, ConflictError, InfrastructureError

logger = structlog.get_logger(__name__)

# Server-side error code for documents over the BSON size limit
BSON_OBJECT_TOO_LARGE = 10334
# Concurrent transaction touched the same document
WRITE_CONFLICT = 112


@contextmanager
def translate_errors(table: str) -> Iterator[None]:
    """Map driver exceptions onto the store error taxonomy."""
    try:
        yield
    except DuplicateKeyError as e:
        raise ConflictError(f"Conditional check failed for {table}") from e
    except DocumentTooLarge as e:
        raise CapacityError(f"Item too large for {table}: {e}") from e
    except OperationFailure as e:
        if e.code == BSON_OBJECT_TOO_LARGE:
            raise CapacityError(f"Item too large for {table}: {e}") from e
        if e.code == WRITE_CONFLICT:
            raise ConflictError(f"Transaction conflict on {table}") from e
        raise InfrastructureError(f"MongoDB operation failed on {table}: {e}") from e
    except PyMongoError as e:
        raise InfrastructureError(f"MongoDB error on {table}: {e}") from e


class MongoStore:
    """Store backed by an async MongoDB database."""

    def __init__(self, database: AsyncDatabase[dict[str, Any]]) -> None:
        self.database = database

    async def on_start(self, tables: Sequence[Table]) -> None:
        """Create indexes so key prefix queries don't scan."""
        for table in tables:
            if len(table.key) > 1:
                with translate_errors(table.name):
                    await self._collection(table).create_index([(name, 1) for name in table.key])
        logger.debug("mongo_store_started", tables=[table.name for table in tables])

    async def on_stop(self) -> None:
        """The client is owned by Core and closed there."""

    async def get(self, table: Table, key: Mapping[str, Any]) -> Item | None:
        with translate_errors(table.name):
            return await self._collection(table).find_one({"_id": table.key_of(key)}, projection={"_id": False})

    async def put(self, table: Table, item: Item, condition: Condition | None = None) -> None:
        with translate_errors(table.name):
            await self._put(table, item, condition)

    async def transact_write(self, ops: Sequence[WriteOp]) -> None:
        tables = ",".join(sorted({op.table.name for op in ops}))
        with translate_errors(tables):
            async with self.database.client.start_session() as session:
                async with await session.start_transaction():
                    for op in ops:
                        await self._put(op.table, op.item, op.condition, session=session)

    async def query(self, table: Table, key_prefix: Mapping[str, Any]) -> list[Item]:
        with translate_errors(table.name):
            cursor = self._collection(table).find(dict(key_prefix), projection={"_id": False})
            cursor = cursor.sort([(name, 1) for name in table.key])
            return await cursor.to_list()

    def _collection(self, table: Table) -> AsyncCollection[dict[str, Any]]:
        return self.database.get_collection(table.name)

    async def _put(
        self, table: Table, item: Item, condition: Condition | None, session: AsyncClientSession | None = None
    ) -> None:
        """Conditional put. Conflicts surface as ConflictError or DuplicateKeyError."""
        collection = self._collection(table)
        doc_id = table.key_of(item)
        document = {"_id": doc_id, **item}

        match condition:
            case None:
                await collection.replace_one({"_id": doc_id}, document, upsert=True, session=session)
            case ItemNotExists():
                # A second insert for the same _id fails with DuplicateKeyError
                await collection.insert_one(document, session=session)
            case AttributeEquals(name=name, value=value):
                result = await collection.replace_one({"_id": doc_id, name: value}, document, session=session)
                if result.matched_count == 0:
                    raise ConflictError(f"Conditional check failed for {table.name} {doc_id}: {name} != {value!r}")
            case AttributeNotExists(name=name):
                # Upsert when absent; when the attribute is present the upsert collides on _id
                await collection.replace_one({"_id": doc_id, name: {"$exists": False}}, document, upsert=True, session=session)

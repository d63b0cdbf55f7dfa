from typing import Any

from pymongo import AsyncMongoClient
from pymongo.asynchronous.change_stream import AsyncChangeStream
from pymongo.asynchronous.database import AsyncDatabase
from pymongo.errors import PyMongoError

from shared.clients.store.StoreClientInterface import StoreClientInterface, WatchSubscription
from shared.clients.store.models.ChangeEvent import ChangeEvent, WATCHED_OPERATIONS
from shared.helper.errors import WatchSubscriptionError
from shared.helper.HelperConfig import HelperConfig
from shared.models.config import EnvConfig


class MongodbWatchSubscription(WatchSubscription):
    """Wraps a pymongo AsyncChangeStream and converts its events to ChangeEvent."""

    def __init__(self, collection_name: str, stream: AsyncChangeStream):
        self._collection_name = collection_name
        self._stream = stream
        self._closed = False

    async def next_event(self) -> ChangeEvent:
        if self._closed:
            raise StopAsyncIteration
        try:
            change = await self._stream.next()
        except StopAsyncIteration:
            raise
        except PyMongoError as exc:
            raise WatchSubscriptionError(f"Change stream on '{self._collection_name}' failed: {exc}") from exc
        document_key = change.get("documentKey") or {}
        return ChangeEvent(
            operation_type=change.get("operationType", ""),
            collection_name=self._collection_name,
            document_id=str(document_key.get("_id")),
            full_document=change.get("fullDocument"),
            resume_token=change.get("_id"),
        )

    async def close(self) -> None:
        if self._closed:
            return
        self._closed = True
        await self._stream.close()


class StoreClientMongodb(StoreClientInterface):
    def __init__(self, helper_config: HelperConfig):
        super().__init__(helper_config=helper_config)
        self._uri = self.get_config_val("URI", default=None, val_type="string")
        self._database_name = self.get_config_val("DATABASE", default=None, val_type="string")
        self._mongo: AsyncMongoClient | None = None
        self._db: AsyncDatabase | None = None

    ##########################################
    ################ GETTER ##################
    ##########################################

    ################ GENERAL ##################
    def _get_engine_name(self) -> str:
        return "MongoDB"

    ################ CONFIG ##################
    def _get_required_config(self) -> list[EnvConfig]:
        return [
            EnvConfig(env_key="URI", val_type="string", default=None),
            EnvConfig(env_key="DATABASE", val_type="string", default=None),
        ]

    def get_database(self) -> AsyncDatabase:
        """
        Returns the booted database handle.

        Raises:
            Exception: If boot() has not been called.
        """
        if self._db is None:
            raise Exception("MongoDB client not initialised. Call boot() before making requests.")
        return self._db

    ##########################################
    ############### LIFECYCLE ################
    ##########################################

    async def boot(self) -> None:
        # tz_aware so stored lastEmbeddingUpdate values compare against UTC now
        self._mongo = AsyncMongoClient(
            self._uri,
            tz_aware=True,
            serverSelectionTimeoutMS=int(self.timeout * 1000),
        )
        self._db = self._mongo[self._database_name]

    async def close(self) -> None:
        if self._mongo is not None:
            await self._mongo.close()
            self._mongo = None
            self._db = None

    async def do_healthcheck(self) -> bool:
        try:
            await self.get_database().command("ping")
            return True
        except PyMongoError as exc:
            self.logging.error("MongoDB healthcheck failed: %s", exc)
            return False

    ##########################################
    ############### REQUESTS #################
    ##########################################

    async def do_list_collections(self) -> list[str]:
        names = await self.get_database().list_collection_names()
        return sorted(name for name in names if not name.startswith("system."))

    async def do_distinct_values(self, collection_name: str, field: str, filter: dict | None = None) -> list[Any]:
        values = await self.get_database()[collection_name].distinct(field, filter or {})
        return [value for value in values if value is not None]

    async def do_find_one(self, collection_name: str, filter: dict) -> dict | None:
        return await self.get_database()[collection_name].find_one(filter)

    async def do_count(self, collection_name: str, filter: dict) -> int:
        return await self.get_database()[collection_name].count_documents(filter)

    async def do_find(self, collection_name: str, filter: dict, skip: int = 0, limit: int = 50) -> list[dict]:
        cursor = self.get_database()[collection_name].find(filter).sort("_id", 1).skip(skip).limit(limit)
        return await cursor.to_list(length=limit)

    async def do_update_one(self, collection_name: str, document_id: Any, fields: dict, upsert: bool = False) -> bool:
        result = await self.get_database()[collection_name].update_one(
            {"_id": document_id},
            {"$set": fields},
            upsert=upsert,
        )
        return result.matched_count > 0 or result.upserted_id is not None

    async def do_watch(self, collection_name: str, resume_token: Any | None = None) -> WatchSubscription:
        pipeline = [{"$match": {"operationType": {"$in": list(WATCHED_OPERATIONS)}}}]
        try:
            stream = await self.get_database()[collection_name].watch(
                pipeline,
                full_document="updateLookup",
                resume_after=resume_token,
            )
        except PyMongoError as exc:
            raise WatchSubscriptionError(f"Could not open change stream on '{collection_name}': {exc}") from exc
        return MongodbWatchSubscription(collection_name, stream)

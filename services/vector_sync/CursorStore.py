"""Watch cursor persistence.

Cursors are kept in memory by default, which survives reconnects but not
restarts. With a cursor collection configured they are also upserted into the
document store and reloaded on start.
"""

from datetime import datetime, timezone
from typing import Any

from shared.clients.store.StoreClientInterface import StoreClientInterface
from shared.helper.HelperConfig import HelperConfig
from shared.models.change_feed import WatchCursor


class CursorStore:
    """In-memory cursor store."""

    def __init__(self, helper_config: HelperConfig) -> None:
        self.logging = helper_config.get_logger()
        self._cursors: dict[str, WatchCursor] = {}

    async def do_load(self, collection_name: str) -> WatchCursor | None:
        return self._cursors.get(collection_name)

    async def do_save(self, collection_name: str, resume_token: Any) -> WatchCursor:
        cursor = WatchCursor(
            collection_name=collection_name,
            resume_token=resume_token,
            updated_at=datetime.now(timezone.utc),
        )
        self._cursors[collection_name] = cursor
        return cursor


class StoreBackedCursorStore(CursorStore):
    """Cursor store that also persists every cursor into a store collection.

    A failing write is logged and the in-memory cursor kept; the feed then
    resumes from an older position after a restart, which only repeats work.
    """

    def __init__(self, helper_config: HelperConfig, store_client: StoreClientInterface, cursor_collection: str) -> None:
        super().__init__(helper_config=helper_config)
        self._store_client = store_client
        self._cursor_collection = cursor_collection

    async def do_load(self, collection_name: str) -> WatchCursor | None:
        cursor = await super().do_load(collection_name)
        if cursor is not None:
            return cursor
        try:
            stored = await self._store_client.do_find_one(self._cursor_collection, {"_id": collection_name})
        except Exception as exc:
            self.logging.warning("Loading cursor of '%s' failed: %s. Starting from now.", collection_name, exc)
            return None
        if not stored or stored.get("resumeToken") is None:
            return None
        cursor = WatchCursor(
            collection_name=collection_name,
            resume_token=stored["resumeToken"],
            updated_at=stored.get("updatedAt"),
        )
        self._cursors[collection_name] = cursor
        return cursor

    async def do_save(self, collection_name: str, resume_token: Any) -> WatchCursor:
        cursor = await super().do_save(collection_name, resume_token)
        try:
            await self._store_client.do_update_one(
                self._cursor_collection,
                collection_name,
                {"resumeToken": resume_token, "updatedAt": cursor.updated_at},
                upsert=True,
            )
        except Exception as exc:
            self.logging.warning("Persisting cursor of '%s' failed: %s", collection_name, exc)
        return cursor

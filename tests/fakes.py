"""In-memory collaborators for the vector sync tests."""

import asyncio
import copy
from typing import Any

from shared.clients.index.models.IndexCreateOutcome import IndexCreateOutcome
from shared.clients.store.StoreClientInterface import WatchSubscription
from shared.clients.store.models.ChangeEvent import ChangeEvent
from shared.helper.errors import PermanentProviderError, TransientProviderError
from shared.models.index import IndexDescriptor


def _matches(document: dict, filter: dict | None) -> bool:
    return all(document.get(key) == value for key, value in (filter or {}).items())


class FakeSubscription(WatchSubscription):
    """Feed driven by the test: push events or exceptions, they are delivered in order."""

    def __init__(self) -> None:
        self._items: asyncio.Queue = asyncio.Queue()
        self.closed = False

    def push(self, item: ChangeEvent | Exception) -> None:
        self._items.put_nowait(item)

    async def next_event(self) -> ChangeEvent:
        item = await self._items.get()
        if isinstance(item, BaseException):
            raise item
        return item

    async def close(self) -> None:
        self.closed = True


class FakeStore:
    def __init__(self, collections: dict[str, list[dict]] | None = None) -> None:
        self.collections: dict[str, list[dict]] = collections or {}
        self.updates: list[tuple[str, Any, dict]] = []
        self.watch_calls: list[tuple[str, Any]] = []
        # per collection: subscriptions (or exceptions) handed out by do_watch in order
        self.subscriptions: dict[str, list[FakeSubscription | Exception]] = {}
        self.fail_collections: set[str] = set()
        self.fail_updates: set[Any] = set()

    async def do_list_collections(self) -> list[str]:
        return sorted(self.collections)

    async def do_distinct_values(self, collection_name: str, field: str, filter: dict | None = None) -> list[Any]:
        if collection_name in self.fail_collections:
            raise RuntimeError(f"collection {collection_name} unavailable")
        values = []
        for document in self.collections.get(collection_name, []):
            value = document.get(field)
            if value is not None and value not in values and _matches(document, filter):
                values.append(value)
        return values

    async def do_find_one(self, collection_name: str, filter: dict) -> dict | None:
        for document in self.collections.get(collection_name, []):
            if _matches(document, filter):
                return copy.deepcopy(document)
        return None

    async def do_count(self, collection_name: str, filter: dict) -> int:
        return sum(1 for document in self.collections.get(collection_name, []) if _matches(document, filter))

    async def do_find(self, collection_name: str, filter: dict, skip: int = 0, limit: int = 50) -> list[dict]:
        matching = [copy.deepcopy(d) for d in self.collections.get(collection_name, []) if _matches(d, filter)]
        return matching[skip:skip + limit]

    async def do_update_one(self, collection_name: str, document_id: Any, fields: dict, upsert: bool = False) -> bool:
        if document_id in self.fail_updates:
            raise RuntimeError("write failed")
        self.updates.append((collection_name, document_id, fields))
        documents = self.collections.setdefault(collection_name, [])
        for document in documents:
            if document.get("_id") == document_id:
                document.update(fields)
                return True
        if upsert:
            documents.append({"_id": document_id, **fields})
            return True
        return False

    async def do_watch(self, collection_name: str, resume_token: Any | None = None) -> WatchSubscription:
        self.watch_calls.append((collection_name, resume_token))
        scripted = self.subscriptions.get(collection_name) or []
        if not scripted:
            # nothing scripted: an idle feed
            return FakeSubscription()
        item = scripted.pop(0)
        if isinstance(item, Exception):
            raise item
        return item


class FakeEmbedClient:
    """Returns a fixed vector; texts containing a key of ``failures`` raise that error."""

    def __init__(self, vector: list[float] | None = None) -> None:
        self.vector = vector or [0.1, 0.2, 0.3]
        self.calls: list[str] = []
        self.failures: dict[str, Exception] = {}
        # errors raised by the next calls, in order, before succeeding
        self.scripted_errors: list[Exception] = []
        # seconds each call takes
        self.delay = 0.0

    async def do_embed_text(self, text: str, model: str | None = None) -> list[float]:
        self.calls.append(text)
        if self.delay:
            await asyncio.sleep(self.delay)
        if self.scripted_errors:
            raise self.scripted_errors.pop(0)
        for marker, exc in self.failures.items():
            if marker in text:
                raise exc
        return list(self.vector)


class FakeIndexClient:
    def __init__(self, outcomes: dict[str, Any] | None = None) -> None:
        self.outcomes = outcomes or {}
        self.created: list[IndexDescriptor] = []

    def get_engine_name(self) -> str:
        return "fake"

    async def do_create_index(self, descriptor: IndexDescriptor):
        self.created.append(descriptor)
        outcome = self.outcomes.get(descriptor.name, IndexCreateOutcome.OK)
        if isinstance(outcome, Exception):
            raise outcome
        return outcome


def transient(message: str = "rate limited") -> TransientProviderError:
    return TransientProviderError(message, status_code=429)


def permanent(message: str = "bad request") -> PermanentProviderError:
    return PermanentProviderError(message, status_code=400)

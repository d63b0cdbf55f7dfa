import asyncio

from services.vector_sync.CursorStore import CursorStore, StoreBackedCursorStore
from tests.fakes import FakeStore


def test_in_memory_cursor_round_trip(helper_config):
    cursors = CursorStore(helper_config)

    async def scenario():
        assert await cursors.do_load("notes") is None
        await cursors.do_save("notes", {"_data": "t1"})
        await cursors.do_save("notes", {"_data": "t2"})
        return await cursors.do_load("notes")

    cursor = asyncio.run(scenario())

    assert cursor.collection_name == "notes"
    assert cursor.resume_token == {"_data": "t2"}
    assert cursor.updated_at.tzinfo is not None


def test_store_backed_cursor_survives_a_restart(helper_config):
    store = FakeStore()

    asyncio.run(StoreBackedCursorStore(helper_config, store, "cursors").do_save("notes", {"_data": "t9"}))
    reloaded = asyncio.run(StoreBackedCursorStore(helper_config, store, "cursors").do_load("notes"))

    assert store.collections["cursors"][0]["_id"] == "notes"
    assert reloaded.resume_token == {"_data": "t9"}


def test_failing_cursor_write_keeps_the_in_memory_cursor(helper_config):
    store = FakeStore()
    store.fail_updates.add("notes")
    cursors = StoreBackedCursorStore(helper_config, store, "cursors")

    async def scenario():
        await cursors.do_save("notes", {"_data": "t1"})
        return await cursors.do_load("notes")

    assert asyncio.run(scenario()).resume_token == {"_data": "t1"}
    assert "cursors" not in store.collections


def test_failing_cursor_read_starts_from_now(helper_config):
    store = FakeStore()

    async def broken_find_one(collection_name, filter):
        raise RuntimeError("not primary")

    store.do_find_one = broken_find_one

    assert asyncio.run(StoreBackedCursorStore(helper_config, store, "cursors").do_load("notes")) is None

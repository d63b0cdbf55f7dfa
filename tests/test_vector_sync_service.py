import asyncio

from services.vector_sync.VectorSyncService import VectorSyncService
from shared.clients.index.models.IndexCreateOutcome import IndexCreateOutcome
from shared.clients.store.models.ChangeEvent import ChangeEvent
from shared.models.embedding import BackfillOptions
from shared.models.index import IndexEnsureStatus
from tests.fakes import FakeEmbedClient, FakeIndexClient, FakeStore, FakeSubscription


def _store() -> FakeStore:
    return FakeStore({
        "orders": [
            {"_id": "o1", "type": "paintOrder", "orderNumber": "PO-1", "color": "Ocean blue", "liters": 4},
            {"_id": "o2", "type": "paintOrder", "orderNumber": "PO-2", "color": "Forest green", "liters": 2},
        ],
        "customers": [
            {"_id": "c1", "name": "Brush & Roll Ltd", "customerCode": "C-77"},
        ],
    })


def _service(helper_config, settings, store, index_client=None):
    embed = FakeEmbedClient()
    service = VectorSyncService(helper_config, store, embed, index_client, settings)
    return service, embed


def test_setup_ensures_one_index_per_type(helper_config, settings):
    index_client = FakeIndexClient({"universal_vector_customers": IndexCreateOutcome.ALREADY_EXISTS})
    service, _ = _service(helper_config, settings, _store(), index_client)

    results = asyncio.run(service.do_setup())

    assert {result.descriptor.name: result.status for result in results} == {
        "universal_vector_customers": IndexEnsureStatus.ALREADY_EXISTS,
        "universal_vector_paintOrder": IndexEnsureStatus.CREATED,
    }


def test_setup_without_index_client_is_skipped(helper_config, settings):
    service, _ = _service(helper_config, settings, _store())

    assert asyncio.run(service.do_setup()) == []


def test_generate_backfills_every_collection(helper_config, settings):
    store = _store()
    service, embed = _service(helper_config, settings, store)

    total = asyncio.run(service.do_generate(BackfillOptions()))

    assert (total.processed, total.updated, total.errors) == (3, 3, 0)
    assert len(embed.calls) == 3
    assert not service.worker_pool.is_running
    assert service.get_metrics().embeddings_generated == 3


def test_generate_restricted_to_collections(helper_config, settings):
    service, embed = _service(helper_config, settings, _store())

    total = asyncio.run(service.do_generate(collections=["customers"]))

    assert total.updated == 1
    assert "Brush & Roll Ltd" in embed.calls[0]


def test_watch_runs_one_watcher_per_collection(helper_config, settings):
    store = _store()
    orders_feed = FakeSubscription()
    store.subscriptions["orders"] = [orders_feed]
    service, _ = _service(helper_config, settings, store)

    async def scenario():
        await service.do_start_watch()
        while not service.is_healthy() or any(status["state"] != "streaming" for status in service.get_watch_status().values()):
            await asyncio.sleep(0.01)
        orders_feed.push(ChangeEvent(
            operation_type="update",
            collection_name="orders",
            document_id="o1",
            full_document={"_id": "o1", "type": "paintOrder", "orderNumber": "PO-1", "color": "Sunset orange"},
            resume_token={"_data": "r1"},
        ))
        for _ in range(200):
            if store.updates:
                break
            await asyncio.sleep(0.01)
        statuses = service.get_watch_status()
        await service.do_stop()
        return statuses

    statuses = asyncio.run(scenario())

    assert sorted(statuses) == ["customers", "orders"]
    assert store.updates[0][1] == "o1"
    assert "Sunset orange" in store.updates[0][2]["semanticText"]
    assert not service.is_running
    assert not service.is_healthy()


def test_discovery_fills_the_service_registry(helper_config, settings):
    service, _ = _service(helper_config, settings, _store())

    asyncio.run(service.discovery.do_discover())

    assert service.registry is service.discovery.registry
    assert sorted(profile.get_key() for profile in service.list_profiles()) == [
        "customers:customers",
        "orders:paintOrder",
    ]

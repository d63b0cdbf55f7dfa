import asyncio
from datetime import datetime, timezone

from services.vector_sync.BackfillService import BackfillService
from services.vector_sync.EmbeddingOrchestrator import EmbeddingOrchestrator
from shared.models.embedding import BackfillOptions
from shared.models.profile import DocumentTypeProfile
from tests.fakes import FakeEmbedClient, FakeStore

PROFILE = DocumentTypeProfile(type_name="invoice", source_collection="documents", text_fields=["title"])


def _documents() -> list[dict]:
    documents = [
        {"_id": index, "type": "invoice", "tenantId": "acme" if index % 2 else "globex", "title": f"Invoice number {index}"}
        for index in range(1, 8)
    ]
    documents.append({"_id": 100, "type": "contract", "title": "Some contract"})
    return documents


def _backfill(helper_config, settings, store):
    embed = FakeEmbedClient()
    orchestrator = EmbeddingOrchestrator(helper_config, store, embed, settings)
    return BackfillService(helper_config, store, orchestrator, settings), embed


def test_pages_through_all_documents_of_the_type(helper_config, settings):
    store = FakeStore({"documents": _documents()})
    backfill, embed = _backfill(helper_config, settings, store)
    find_calls = []
    original_find = store.do_find

    async def recording_find(collection_name, filter, skip=0, limit=50):
        find_calls.append((skip, limit))
        return await original_find(collection_name, filter, skip=skip, limit=limit)

    store.do_find = recording_find

    result = asyncio.run(backfill.do_run_backfill(PROFILE, BackfillOptions(batch_size=3)))

    assert (result.processed, result.updated) == (7, 7)
    assert find_calls == [(0, 3), (3, 3), (6, 3)]
    assert len(embed.calls) == 7


def test_tenant_filter_applies_to_the_query(helper_config, settings):
    store = FakeStore({"documents": _documents()})
    backfill, _ = _backfill(helper_config, settings, store)

    result = asyncio.run(backfill.do_run_backfill(PROFILE, BackfillOptions(tenant_id="acme")))

    assert result.processed == 4
    assert sorted(update[1] for update in store.updates) == [1, 3, 5, 7]


def test_document_type_filter_excludes_other_types(helper_config, settings):
    store = FakeStore({"documents": _documents()})
    backfill, embed = _backfill(helper_config, settings, store)

    result = asyncio.run(backfill.do_run_backfill(PROFILE, BackfillOptions(document_type="contract")))

    assert result.processed == 0
    assert embed.calls == []


def test_rerun_skips_fresh_documents(helper_config, settings):
    store = FakeStore({"documents": _documents()})
    backfill, embed = _backfill(helper_config, settings, store)

    asyncio.run(backfill.do_run_backfill(PROFILE))
    second = asyncio.run(backfill.do_run_backfill(PROFILE))

    assert (second.processed, second.skipped, second.updated) == (7, 7, 0)
    assert len(embed.calls) == 7


def test_run_all_reports_per_profile(helper_config, settings):
    store = FakeStore({"documents": _documents()})
    backfill, _ = _backfill(helper_config, settings, store)
    contract = DocumentTypeProfile(type_name="contract", source_collection="documents", text_fields=["title"])

    results = asyncio.run(backfill.do_run_all([PROFILE, contract], BackfillOptions(dry_run=True)))

    assert results["documents:invoice"].updated == 7
    assert results["documents:contract"].updated == 1
    assert store.updates == []


def test_stored_timestamp_is_utc(helper_config, settings):
    store = FakeStore({"documents": _documents()[:1]})
    backfill, _ = _backfill(helper_config, settings, store)

    asyncio.run(backfill.do_run_backfill(PROFILE))

    stored = store.collections["documents"][0]["lastEmbeddingUpdate"]
    assert stored.tzinfo is not None
    assert stored <= datetime.now(timezone.utc)

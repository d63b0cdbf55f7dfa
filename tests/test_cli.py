import asyncio

import pytest

from services.vector_sync import vector_sync


def test_defaults_run_everything():
    args = vector_sync.parse_args([])

    assert args.mode == "all"
    assert not args.force and not args.dry_run
    assert args.collections is None


def test_backfill_filters():
    args = vector_sync.parse_args([
        "--mode=generate", "--tenant=acme", "--document-type", "paintInvoice",
        "--batch-size", "20", "--collections", "orders, invoices", "--force",
    ])

    assert (args.mode, args.tenant, args.document_type, args.batch_size) == ("generate", "acme", "paintInvoice", 20)
    assert vector_sync._split_collections(args.collections) == ["orders", "invoices"]
    assert args.force


def test_unknown_mode_is_rejected():
    with pytest.raises(SystemExit):
        vector_sync.parse_args(["--mode=rebuild"])


def test_missing_configuration_exits_with_2(monkeypatch):
    for key in ("STORE_ENGINE", "STORE_MONGODB_URI", "EMBED_ENGINE"):
        monkeypatch.delenv(key, raising=False)

    assert asyncio.run(vector_sync.main(["--mode=generate"])) == 2

import pytest
from pymongo.errors import OperationFailure

from shared.clients.index.mongodb.IndexClientMongodb import IndexClientMongodb
from shared.clients.index.models.IndexCreateOutcome import IndexCreateOutcome
from shared.helper.errors import IndexCreationError
from shared.models.config import VectorSyncSettings


def test_list_values_need_brackets(helper_config, monkeypatch):
    monkeypatch.setenv("VECTOR_SYNC_COLLECTIONS", "[orders, invoices ,]")
    assert helper_config.get_list_val("VECTOR_SYNC_COLLECTIONS") == ["orders", "invoices"]

    monkeypatch.setenv("VECTOR_SYNC_COLLECTIONS", "orders,invoices")
    with pytest.raises(ValueError, match="must be in the format"):
        helper_config.get_list_val("VECTOR_SYNC_COLLECTIONS")


def test_missing_value_without_default_is_an_error(helper_config, monkeypatch):
    monkeypatch.delenv("STORE_ENGINE", raising=False)

    with pytest.raises(ValueError, match="STORE_ENGINE"):
        helper_config.get_string_val("STORE_ENGINE")
    assert helper_config.get_string_val("STORE_ENGINE", default="mongodb") == "mongodb"


def test_settings_from_environment(helper_config, monkeypatch):
    monkeypatch.setenv("VECTOR_SYNC_BATCH_SIZE", "25")
    monkeypatch.setenv("VECTOR_SYNC_QUIESCENCE_WINDOW", "12.5")
    monkeypatch.setenv("VECTOR_SYNC_COLLECTIONS", "[orders]")
    monkeypatch.setenv("VECTOR_SYNC_CURSOR_COLLECTION", "vector_sync_cursors")
    monkeypatch.setenv("EMBED_MODEL", "nomic-embed-text")

    settings = VectorSyncSettings.from_helper_config(helper_config)

    assert settings.batch_size == 25
    assert settings.quiescence_window == 12.5
    assert settings.collections == ["orders"]
    assert settings.cursor_collection == "vector_sync_cursors"
    assert settings.embedding_model == "nomic-embed-text"
    assert settings.freshness_window == 7 * 24 * 60 * 60


def test_invalid_number_is_a_configuration_error(helper_config, monkeypatch):
    monkeypatch.setenv("VECTOR_SYNC_WORKERS", "many")

    with pytest.raises(ValueError, match="not a valid number"):
        VectorSyncSettings.from_helper_config(helper_config)


def test_out_of_range_value_is_rejected(helper_config, monkeypatch):
    monkeypatch.setenv("VECTOR_SYNC_WORKERS", "0")

    with pytest.raises(ValueError):
        VectorSyncSettings.from_helper_config(helper_config)


@pytest.fixture
def index_client(helper_config, monkeypatch):
    monkeypatch.setenv("STORE_MONGODB_URI", "mongodb://localhost:27017")
    monkeypatch.setenv("STORE_MONGODB_DATABASE", "app")
    monkeypatch.delenv("INDEX_MONGODB_URI", raising=False)
    monkeypatch.delenv("INDEX_MONGODB_DATABASE", raising=False)
    return IndexClientMongodb(helper_config)


def test_index_client_falls_back_to_store_settings(index_client):
    assert index_client._uri == "mongodb://localhost:27017"
    assert index_client._database_name == "app"


def test_index_failures_are_classified(index_client):
    assert index_client._classify_failure(OperationFailure("Index already exists", code=68)) == IndexCreateOutcome.ALREADY_EXISTS
    assert index_client._classify_failure(OperationFailure("no such command", code=59)) == IndexCreateOutcome.UNSUPPORTED
    assert index_client._classify_failure(
        OperationFailure("Search index commands are only supported with Atlas", code=8)
    ) == IndexCreateOutcome.UNSUPPORTED

    with pytest.raises(IndexCreationError):
        index_client._classify_failure(OperationFailure("not authorized", code=13))

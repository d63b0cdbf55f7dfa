import asyncio

from services.vector_sync.IndexService import IndexManager, build_index_descriptor
from shared.clients.index.models.IndexCreateOutcome import IndexCreateOutcome
from shared.helper.errors import IndexCreationError
from shared.models.index import IndexEnsureStatus
from shared.models.profile import DocumentTypeProfile
from tests.fakes import FakeIndexClient


def _profile(type_name: str = "invoice") -> DocumentTypeProfile:
    return DocumentTypeProfile(
        type_name=type_name,
        source_collection="documents",
        identifier_fields=["customerId", "lineItems[0].productCode", "tenantId"],
    )


def test_descriptor_fields(settings):
    descriptor = build_index_descriptor(_profile(), settings)

    assert descriptor.name == "universal_vector_invoice"
    assert descriptor.target_collection == "documents"
    assert descriptor.filter_paths == ["tenantId", "type", "deleted", "customerId", "lineItems.productCode"]
    assert descriptor.to_definition()["fields"][0] == {
        "type": "vector",
        "path": "embedding",
        "numDimensions": 1536,
        "similarity": "cosine",
    }


def test_ensure_maps_backend_outcomes(helper_config, settings):
    client = FakeIndexClient({
        "universal_vector_a": IndexCreateOutcome.OK,
        "universal_vector_b": IndexCreateOutcome.ALREADY_EXISTS,
        "universal_vector_c": IndexCreateOutcome.UNSUPPORTED,
        "universal_vector_d": IndexCreationError("quota exceeded"),
    })
    manager = IndexManager(helper_config, client, settings)

    results = asyncio.run(manager.do_ensure_all([_profile(name) for name in "abcd"]))

    assert [result.status for result in results] == [
        IndexEnsureStatus.CREATED,
        IndexEnsureStatus.ALREADY_EXISTS,
        IndexEnsureStatus.UNSUPPORTED_BY_BACKEND,
        IndexEnsureStatus.FAILED,
    ]
    assert results[3].detail == "quota exceeded"


def test_dry_run_creates_nothing(helper_config, settings):
    client = FakeIndexClient()
    manager = IndexManager(helper_config, client, settings)

    result = asyncio.run(manager.do_ensure_index(build_index_descriptor(_profile(), settings), dry_run=True))

    assert result.status == IndexEnsureStatus.DRY_RUN
    assert client.created == []


def test_unexpected_backend_outcome_is_a_failure(helper_config, settings):
    client = FakeIndexClient({"universal_vector_invoice": None})
    manager = IndexManager(helper_config, client, settings)

    result = asyncio.run(manager.do_ensure_index(build_index_descriptor(_profile(), settings)))

    assert result.status == IndexEnsureStatus.FAILED
    assert "None" in result.detail

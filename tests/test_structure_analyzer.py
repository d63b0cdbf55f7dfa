from datetime import datetime, timezone

from bson import ObjectId

from services.vector_sync.StructureAnalyzer import analyze_document_structure, is_identifier_name, parse_iso_datetime


def _invoice() -> dict:
    return {
        "_id": ObjectId(),
        "type": "paintInvoice",
        "title": "Wall paint for office",
        "invoiceNumber": "INV-202401-0007",
        "customerId": "C-17",
        "totalAmount": 1250,
        "purchaseDate": "2024-01-15T00:00:00Z",
        "dueAt": datetime(2024, 2, 15, tzinfo=timezone.utc),
        "customer": {"name": "Acme GmbH", "postalCode": "10115"},
        "lineItems": [{"sku": "P-1", "quantity": 2}, {"sku": "P-2", "quantity": 1}],
        "tags": [],
        "paid": True,
        "notes": None,
        "deleted": False,
        "embedding": [0.1, 0.2],
        "semanticText": "old summary",
        "lastEmbeddingUpdate": datetime(2024, 1, 1, tzinfo=timezone.utc),
    }


def test_classifies_every_category():
    structure = analyze_document_structure(_invoice())

    assert structure.text_fields == ["title", "invoiceNumber", "customer.name", "lineItems[0].sku"]
    assert structure.identifier_fields == ["customerId", "customer.postalCode"]
    assert structure.numeric_fields == ["totalAmount", "lineItems[0].quantity"]
    assert structure.date_fields == ["purchaseDate", "dueAt"]
    assert structure.array_fields == ["lineItems", "tags"]
    assert structure.object_fields == ["customer", "lineItems[0]"]


def test_skips_deny_listed_null_and_discriminator_fields():
    structure = analyze_document_structure(_invoice())
    every_path = (
        structure.text_fields + structure.identifier_fields + structure.numeric_fields
        + structure.date_fields + structure.array_fields + structure.object_fields
    )

    for skipped in ("_id", "type", "notes", "deleted", "embedding", "semanticText", "lastEmbeddingUpdate", "paid"):
        assert skipped not in every_path


def test_deny_list_applies_to_nested_keys():
    structure = analyze_document_structure({"audit": {"created_by": "admin", "comment": "imported"}})

    assert structure.object_fields == ["audit"]
    assert structure.text_fields == ["audit.comment"]


def test_id_named_string_wins_over_date():
    structure = analyze_document_structure({"batchId": "2024-01-15"})

    assert structure.identifier_fields == ["batchId"]
    assert structure.date_fields == []


def test_only_first_array_element_is_inspected():
    structure = analyze_document_structure({"items": [{"label": "first"}, {"other": "ignored"}]})

    assert structure.text_fields == ["items[0].label"]


def test_analysis_is_pure():
    document = _invoice()

    assert analyze_document_structure(document) == analyze_document_structure(document)


def test_empty_document_yields_empty_structure():
    structure = analyze_document_structure({"_id": ObjectId(), "deleted": False})

    assert structure.model_dump() == {
        "text_fields": [], "identifier_fields": [], "numeric_fields": [],
        "date_fields": [], "array_fields": [], "object_fields": [],
    }


def test_parse_iso_datetime():
    assert parse_iso_datetime("2024-01-15T00:00:00Z") == datetime(2024, 1, 15, tzinfo=timezone.utc)
    assert parse_iso_datetime("2024-01-15") == datetime(2024, 1, 15)
    assert parse_iso_datetime("15.01.2024") is None
    assert parse_iso_datetime("2024-01-15 and more") is None


def test_identifier_token_anywhere_in_the_name():
    assert is_identifier_name("CODENAME")
    assert is_identifier_name("idNumber")
    assert is_identifier_name("customerId")
    assert not is_identifier_name("title")

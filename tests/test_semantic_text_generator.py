from datetime import datetime, timezone

from services.vector_sync.SemanticTextGenerator import (
    MAX_SEMANTIC_TEXT_LENGTH,
    generate_keywords,
    generate_semantic_summary,
    generate_semantic_text,
    get_nested_value,
)
from services.vector_sync.StructureAnalyzer import analyze_document_structure
from shared.models.profile import DocumentTypeProfile

INVOICE = {
    "type": "paintInvoice",
    "invoiceNumber": "INV-202401-0007",
    "totalAmount": 1250,
    "purchaseDate": "2024-01-15T00:00:00Z",
}


def test_invoice_summary(invoice_profile):
    assert generate_semantic_text(INVOICE, invoice_profile) == (
        "Document type: paintInvoice. invoiceNumber: INV-202401-0007. totalAmount: 1250. purchaseDate: 2024-01-15"
    )


def test_invoice_summary_from_analyzed_profile():
    structure = analyze_document_structure(INVOICE)
    profile = DocumentTypeProfile(type_name="paintInvoice", source_collection="invoices", **structure.model_dump())

    assert generate_semantic_text(INVOICE, profile) == (
        "Document type: paintInvoice. invoiceNumber: INV-202401-0007. totalAmount: 1250. purchaseDate: 2024-01-15"
    )


def test_summary_is_deterministic(invoice_profile):
    first = generate_semantic_summary(dict(INVOICE, _id="a1"), invoice_profile)
    second = generate_semantic_summary(dict(INVOICE, _id="a1"), invoice_profile)

    assert first.text == second.text
    assert first.keywords == second.keywords


def test_fragment_order_and_formatting():
    profile = DocumentTypeProfile(
        type_name="order",
        source_collection="orders",
        text_fields=["title", "customer.name", "empty"],
        identifier_fields=["orderCode"],
        numeric_fields=["weight", "unitPrice", "lineItems[0].quantity"],
        date_fields=["shippedAt"],
        array_fields=["lineItems", "tags"],
    )
    document = {
        "type": "order",
        "title": "  Spring restock  ",
        "customer": {"name": "Acme"},
        "empty": "   ",
        "orderCode": "O-1",
        "weight": 12,
        "unitPrice": 9.0,
        "lineItems": [{"quantity": 3}, {"quantity": 4}],
        "tags": [],
        "shippedAt": datetime(2024, 3, 1, 17, 30, tzinfo=timezone.utc),
    }

    assert generate_semantic_text(document, profile) == (
        "Document type: order. title: Spring restock. name: Acme. orderCode: O-1. "
        "unitPrice: 9. quantity: 3. shippedAt: 2024-03-01. lineItems: 2 items"
    )


def test_keywords_are_lower_cased(invoice_profile):
    profile = invoice_profile.model_copy(update={"text_fields": ["title"]})
    document = dict(INVOICE, title="Wall Paint")

    assert generate_keywords(document, profile) == "wall paint title inv-202401-0007 invoicenumber paintinvoice"


def test_document_without_content_is_not_embeddable():
    profile = DocumentTypeProfile(type_name="notes", source_collection="notes", discriminated=False)

    summary = generate_semantic_summary({"_id": "n1", "deleted": False}, profile)

    assert summary.text == ""
    assert summary.type_name == "notes"
    assert not summary.is_embeddable()


def test_long_text_is_truncated():
    profile = DocumentTypeProfile(type_name="doc", source_collection="docs", text_fields=["body"])

    summary = generate_semantic_summary({"_id": "d1", "body": "x" * 9000}, profile)

    assert len(summary.text) == MAX_SEMANTIC_TEXT_LENGTH + 3
    assert summary.text.endswith("...")


def test_get_nested_value():
    document = {"a": {"b": [{"c": 1}, {"c": 2}]}, "matrix": [[5]]}

    assert get_nested_value(document, "a.b[1].c") == 2
    assert get_nested_value(document, "matrix[0][0]") == 5
    assert get_nested_value(document, "a.b[7].c") is None
    assert get_nested_value(document, "a.missing") is None

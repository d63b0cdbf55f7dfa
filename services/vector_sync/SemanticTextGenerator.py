"""Semantic text generator.

Turns a document and its type profile into the deterministic summary that is
sent to the embedding provider, plus a lower-cased keyword blob for lexical
fallback search. Same inputs always give byte-identical output; staleness
checks and tests depend on it.
"""

import logging
import re
from datetime import date, datetime
from decimal import Decimal
from typing import Any

from bson import Decimal128

from services.vector_sync.StructureAnalyzer import DISCRIMINATOR_FIELD, is_number, parse_iso_datetime
from shared.logging.logging_setup import LOGGER_NAME
from shared.models.profile import DocumentTypeProfile, SemanticSummary

NUMERIC_ALLOW_TOKENS = ("amount", "count", "content", "value", "price", "quantity")
FRAGMENT_SEPARATOR = ". "

# size guards, the stored text lives on the source document
MAX_SEMANTIC_TEXT_LENGTH = 8000
MAX_KEYWORDS_LENGTH = 4000

_ARRAY_SEGMENT = re.compile(r"^(?P<key>.*)\[(?P<index>\d+)\]$")

_MISSING = object()

logger = logging.getLogger(LOGGER_NAME)


def get_nested_value(document: Any, path: str) -> Any:
    """Resolve a dot-notation path, including ``name[0]`` array segments.

    Args:
        document (Any): The document (or sub-document) to read from.
        path (str): E.g. "customer.name" or "lineItems[0].quantity".

    Returns:
        Any: The value, or None if any segment is missing.
    """
    current = document
    for segment in path.split("."):
        current = _resolve_segment(current, segment)
        if current is _MISSING:
            return None
    return current


def _resolve_segment(current: Any, segment: str) -> Any:
    indexes: list[int] = []
    match = _ARRAY_SEGMENT.match(segment)
    # "matrix[0][0]" nests, peel indexes from the right
    while match:
        indexes.insert(0, int(match.group("index")))
        segment = match.group("key")
        match = _ARRAY_SEGMENT.match(segment)

    if not isinstance(current, dict) or segment not in current:
        return _MISSING
    current = current[segment]
    for index in indexes:
        if not isinstance(current, list) or index >= len(current):
            return _MISSING
        current = current[index]
    return current


def get_leaf_name(path: str) -> str:
    return path.rsplit(".", 1)[-1]


def format_number(value: Any) -> str:
    """Render a number the way it reads in a sentence (1250.0 → "1250")."""
    if isinstance(value, Decimal128):
        value = value.to_decimal()
    if isinstance(value, Decimal):
        return format(value.normalize(), "f") if value == value.to_integral_value() else str(value)
    if isinstance(value, float) and value.is_integer():
        return str(int(value))
    return str(value)


def format_date(value: Any) -> str:
    """Render the ISO date portion of a datetime, date or ISO string."""
    if isinstance(value, datetime):
        return value.date().isoformat()
    if isinstance(value, date):
        return value.isoformat()
    if isinstance(value, str):
        parsed = parse_iso_datetime(value)
        return parsed.date().isoformat() if parsed is not None else value.strip()
    return str(value)


def resolve_type_name(document: dict) -> str | None:
    """Discriminator value of the document, if it carries one.

    Implicit collection-named types are not emitted, so a document without
    any content fields stays below the embeddable length.
    """
    discriminator = document.get(DISCRIMINATOR_FIELD)
    if isinstance(discriminator, str) and discriminator.strip():
        return discriminator
    return None


def generate_semantic_text(document: dict, profile: DocumentTypeProfile) -> str:
    """Build the summary text of a document.

    Fragments in fixed order: document type, text fields, identifiers,
    allow-listed numerics, dates, array sizes; joined with ". ".

    Args:
        document (dict): The document's current field values.
        profile (DocumentTypeProfile): The profile of the document's type.

    Returns:
        str: The summary text, possibly empty.
    """
    fragments: list[str] = []

    type_name = resolve_type_name(document)
    if type_name:
        fragments.append(f"Document type: {type_name}")

    for path in profile.text_fields:
        value = get_nested_value(document, path)
        if isinstance(value, str) and value.strip():
            fragments.append(f"{get_leaf_name(path)}: {value.strip()}")

    for path in profile.identifier_fields:
        value = get_nested_value(document, path)
        if value is not None and value != "":
            fragments.append(f"{get_leaf_name(path)}: {value}")

    for path in profile.numeric_fields:
        leaf = get_leaf_name(path)
        if not any(token in leaf.lower() for token in NUMERIC_ALLOW_TOKENS):
            continue
        value = get_nested_value(document, path)
        if is_number(value):
            fragments.append(f"{leaf}: {format_number(value)}")

    for path in profile.date_fields:
        value = get_nested_value(document, path)
        if value:
            fragments.append(f"{get_leaf_name(path)}: {format_date(value)}")

    for path in profile.array_fields:
        value = get_nested_value(document, path)
        if isinstance(value, list) and value:
            fragments.append(f"{get_leaf_name(path)}: {len(value)} items")

    return FRAGMENT_SEPARATOR.join(fragments)


def generate_keywords(document: dict, profile: DocumentTypeProfile) -> str:
    """Build the lower-cased keyword blob of a document.

    Contains every present text and identifier value together with its
    field's leaf name, followed by the document type.

    Args:
        document (dict): The document's current field values.
        profile (DocumentTypeProfile): The profile of the document's type.

    Returns:
        str: Space-joined keywords.
    """
    keywords: list[str] = []

    for path in profile.text_fields:
        value = get_nested_value(document, path)
        if isinstance(value, str) and value.strip():
            keywords.append(value.strip().lower())
            keywords.append(get_leaf_name(path).lower())

    for path in profile.identifier_fields:
        value = get_nested_value(document, path)
        if value is not None and value != "":
            keywords.append(str(value).lower())
            keywords.append(get_leaf_name(path).lower())

    type_name = resolve_type_name(document)
    if type_name:
        keywords.append(type_name.lower())

    return " ".join(keywords)


def _truncate(value: str, limit: int, label: str, document_id: str) -> str:
    if len(value) <= limit:
        return value
    logger.warning("%s truncated from %d to %d characters for document %s", label, len(value), limit, document_id)
    return value[:limit] + "..."


def generate_semantic_summary(document: dict, profile: DocumentTypeProfile) -> SemanticSummary:
    """Derive the full semantic summary of a document.

    Args:
        document (dict): The document's current field values.
        profile (DocumentTypeProfile): The profile of the document's type.

    Returns:
        SemanticSummary: Text and keywords; check is_embeddable() before embedding.
    """
    document_id = str(document.get("_id", document.get("id", "")))
    text = _truncate(generate_semantic_text(document, profile), MAX_SEMANTIC_TEXT_LENGTH, "Semantic text", document_id)
    keywords = _truncate(generate_keywords(document, profile), MAX_KEYWORDS_LENGTH, "Searchable content", document_id)
    return SemanticSummary(
        document_id=document_id,
        type_name=resolve_type_name(document) or profile.type_name,
        text=text,
        keywords=keywords,
    )

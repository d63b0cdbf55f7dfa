"""Structure analyzer.

Classifies the fields of one example document into semantic categories.
Documents are arbitrary nested dicts as returned by the store; the analysis
is a pure recursive walk over that value tree.
"""

import re
from datetime import date, datetime
from decimal import Decimal
from typing import Any

from bson import Decimal128, ObjectId

from shared.models.profile import DocumentStructure

# system, audit and soft-delete bookkeeping, plus the embedding record itself
# (classifying it would feed the pipeline's output back into its input)
DENY_LISTED_FIELDS = frozenset({
    "_id", "__v",
    "deleted", "deleted_at", "deleted_by",
    "created_date", "last_updated", "created_by", "updated_by",
    "embedding", "semanticText", "searchableContent", "lastEmbeddingUpdate", "ragMetadata",
})

# the discriminator is emitted as "Document type" and always indexed as a filter
DISCRIMINATOR_FIELD = "type"

IDENTIFIER_NAME_TOKENS = ("id", "code")

_ISO_DATE_PREFIX = re.compile(r"^\d{4}-\d{2}-\d{2}")


def parse_iso_datetime(value: str) -> datetime | None:
    """Parse an ISO-8601 date or datetime string.

    Args:
        value (str): Candidate string, e.g. "2024-01-15" or "2024-01-15T00:00:00Z".

    Returns:
        datetime | None: The parsed value, or None if the string is not an ISO date.
    """
    candidate = value.strip()
    if not _ISO_DATE_PREFIX.match(candidate):
        return None
    if candidate.endswith(("Z", "z")):
        candidate = candidate[:-1] + "+00:00"
    try:
        return datetime.fromisoformat(candidate)
    except ValueError:
        return None


def is_identifier_name(field_name: str) -> bool:
    lowered = field_name.lower()
    return any(token in lowered for token in IDENTIFIER_NAME_TOKENS)


def is_number(value: Any) -> bool:
    # bool is an int subclass but carries no numeric meaning here
    if isinstance(value, bool):
        return False
    return isinstance(value, (int, float, Decimal, Decimal128))


def analyze_document_structure(document: dict) -> DocumentStructure:
    """Classify every field path of an example document.

    Precedence per field: deny-listed or discriminator → skipped; None → skipped;
    list → array (first element inspected as ``name[0]``); dict → object
    (properties inspected); string named like an id/code → identifier;
    ISO date string → date; other string → text; number → numeric;
    datetime/date → date; ObjectId → identifier. Anything else is skipped.

    Args:
        document (dict): One representative document.

    Returns:
        DocumentStructure: Field paths per category, in document key order.
    """
    structure = DocumentStructure()
    for key, value in document.items():
        if key == DISCRIMINATOR_FIELD:
            continue
        _analyze_field(structure, key, value, "")
    return structure


def _analyze_field(structure: DocumentStructure, key: str, value: Any, parent_path: str) -> None:
    full_path = f"{parent_path}.{key}" if parent_path else key

    if key in DENY_LISTED_FIELDS:
        return
    if value is None:
        return

    if isinstance(value, list):
        structure.array_fields.append(full_path)
        if value:
            _analyze_field(structure, f"{key}[0]", value[0], parent_path)
        return

    if isinstance(value, dict):
        structure.object_fields.append(full_path)
        for sub_key, sub_value in value.items():
            _analyze_field(structure, sub_key, sub_value, full_path)
        return

    if isinstance(value, str):
        if is_identifier_name(key):
            structure.identifier_fields.append(full_path)
        elif parse_iso_datetime(value) is not None:
            structure.date_fields.append(full_path)
        else:
            structure.text_fields.append(full_path)
        return

    if is_number(value):
        structure.numeric_fields.append(full_path)
        return

    if isinstance(value, (datetime, date)):
        structure.date_fields.append(full_path)
        return

    if isinstance(value, ObjectId):
        structure.identifier_fields.append(full_path)

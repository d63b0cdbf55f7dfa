"""Pydantic models for inferred document structure and derived summaries.

Hierarchy:
  DocumentStructure   : field classification of one example document.
  DocumentTypeProfile : structure plus the identity of the document type it describes.
  SemanticSummary     : deterministic text + keywords derived from a document and its profile.
"""

from datetime import datetime

from pydantic import BaseModel

MIN_SEMANTIC_TEXT_LENGTH = 10


class DocumentStructure(BaseModel):
    """Field paths of an example document, grouped by semantic category.

    Paths use dot notation for nested objects and ``name[0]`` for the first
    element of an array. Order follows the example document's key order.
    """

    text_fields: list[str] = []
    identifier_fields: list[str] = []
    numeric_fields: list[str] = []
    date_fields: list[str] = []
    array_fields: list[str] = []
    object_fields: list[str] = []


class DocumentTypeProfile(DocumentStructure):
    """Best-effort structural profile of one document type.

    Re-derived on demand from a single representative document; never
    persisted as an authoritative schema.

    Attributes:
        type_name:         Discriminator value, or the collection name for implicit types.
        source_collection: Collection the type lives in.
        discriminated:     True if documents carry the type in their discriminator field.
        sample_count:      Number of matching documents at discovery time.
        discovered_at:     When this profile was derived.
    """

    type_name: str
    source_collection: str
    discriminated: bool = True
    sample_count: int = 0
    discovered_at: datetime | None = None

    def get_key(self) -> str:
        """Registry key of this profile, unique across collections."""
        return make_profile_key(self.source_collection, self.type_name)

    def get_filter(self, discriminator_field: str = "type") -> dict:
        """Store query selecting the documents of this type."""
        return {discriminator_field: self.type_name} if self.discriminated else {}


class SemanticSummary(BaseModel):
    """Embedding input derived from a document. Regenerated, never mutated."""

    document_id: str
    type_name: str | None = None
    text: str
    keywords: str

    def is_embeddable(self) -> bool:
        """Whether the text is long enough to be worth an embedding."""
        return len(self.text) >= MIN_SEMANTIC_TEXT_LENGTH


def make_profile_key(collection_name: str, type_name: str) -> str:
    return f"{collection_name}:{type_name}"

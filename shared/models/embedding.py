"""Pydantic models for embedding records and batch bookkeeping."""

from datetime import datetime
from enum import Enum

from pydantic import BaseModel, Field

SEMANTIC_VERSION = "2.0"
RECORD_SOURCE = "vector-sync"

# field names of the embedding record as stored on the source document
FIELD_EMBEDDING = "embedding"
FIELD_SEMANTIC_TEXT = "semanticText"
FIELD_SEARCHABLE_CONTENT = "searchableContent"
FIELD_GENERATED_AT = "lastEmbeddingUpdate"
FIELD_RAG_METADATA = "ragMetadata"


class EmbeddingRecord(BaseModel):
    """Embedding of one document, stored back onto the document itself.

    Always written as a single field-set so readers never see a half-written record.

    Attributes:
        document_id:        ID of the source document.
        vector:             The embedding vector.
        semantic_text:      Summary the vector was computed from.
        searchable_content: Lower-cased keyword blob for lexical fallback search.
        model_id:           Embedding model that produced the vector.
        generated_at:       When the vector was generated (UTC).
        trigger:            What caused the generation ("backfill", "insert", "update", ...).
    """

    document_id: str
    vector: list[float]
    semantic_text: str
    searchable_content: str
    model_id: str
    generated_at: datetime
    trigger: str = "backfill"

    def to_store_fields(self) -> dict:
        """Field-set written onto the source document with one update."""
        return {
            FIELD_EMBEDDING: self.vector,
            FIELD_SEMANTIC_TEXT: self.semantic_text,
            FIELD_SEARCHABLE_CONTENT: self.searchable_content,
            FIELD_GENERATED_AT: self.generated_at,
            FIELD_RAG_METADATA: {
                "embeddingModel": self.model_id,
                "semanticVersion": SEMANTIC_VERSION,
                "generatedAt": self.generated_at,
                "source": RECORD_SOURCE,
                "autoGenerated": True,
                "trigger": self.trigger,
            },
        }


class BatchOptions(BaseModel):
    """
    Attributes:
        force:   Re-embed even if the stored embedding is still fresh.
        dry_run: Count would-be updates without calling the provider or writing.
        trigger: Recorded in the embedding metadata.
    """

    force: bool = False
    dry_run: bool = False
    trigger: str = "backfill"


class DocumentOutcome(str, Enum):
    UPDATED = "updated"
    SKIPPED = "skipped"
    ERROR = "error"


class BatchResult(BaseModel):
    """Counts of one batch run. processed == updated + skipped + errors."""

    processed: int = 0
    updated: int = 0
    skipped: int = 0
    errors: int = 0

    def record(self, outcome: DocumentOutcome) -> None:
        self.processed += 1
        if outcome == DocumentOutcome.UPDATED:
            self.updated += 1
        elif outcome == DocumentOutcome.SKIPPED:
            self.skipped += 1
        else:
            self.errors += 1

    def merge(self, other: "BatchResult") -> "BatchResult":
        return BatchResult(
            processed=self.processed + other.processed,
            updated=self.updated + other.updated,
            skipped=self.skipped + other.skipped,
            errors=self.errors + other.errors,
        )


class EmbedAttemptStatus(str, Enum):
    SUCCESS = "success"
    TRANSIENT_ERROR = "transient_error"
    PERMANENT_ERROR = "permanent_error"


class EmbedAttemptResult(BaseModel):
    """Outcome of a bounded-attempt embedding request. Never raised, always returned."""

    status: EmbedAttemptStatus
    vector: list[float] | None = None
    error: str | None = None
    attempts: int = 0

    def is_success(self) -> bool:
        return self.status == EmbedAttemptStatus.SUCCESS


class BackfillOptions(BaseModel):
    """
    Attributes:
        force:         Re-embed documents whose embedding is still fresh.
        dry_run:       Count would-be updates without calling the provider or writing.
        tenant_id:     Only documents with this tenantId.
        document_type: Only documents with this type discriminator.
        batch_size:    Page size; falls back to the configured batch size.
    """

    force: bool = False
    dry_run: bool = False
    tenant_id: str | None = None
    document_type: str | None = None
    batch_size: int | None = Field(default=None, ge=1)

    def to_batch_options(self) -> BatchOptions:
        return BatchOptions(force=self.force, dry_run=self.dry_run, trigger="backfill")

"""Generic change feed event model, backend-independent."""

from typing import Any

from pydantic import BaseModel

WATCHED_OPERATIONS = ("insert", "update", "replace")


class ChangeEvent(BaseModel):
    """
    Represents a single document mutation reported by a store's change feed.

    Attributes:
        operation_type:  "insert", "update" or "replace".
        collection_name: Collection the mutation happened in.
        document_id:     Stringified ID of the mutated document.
        full_document:   Snapshot of the document after the mutation, if the backend provided one.
        resume_token:    Opaque position to resume the feed after this event.
    """

    operation_type: str
    collection_name: str
    document_id: str
    full_document: dict[str, Any] | None = None
    resume_token: Any | None = None

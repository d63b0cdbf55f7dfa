"""Pydantic models for change feed bookkeeping."""

from datetime import datetime
from enum import Enum
from typing import Any

from pydantic import BaseModel


class WatchState(str, Enum):
    CONNECTING = "connecting"
    STREAMING = "streaming"
    RECONNECTING = "reconnecting"
    STOPPED = "stopped"


class WatchCursor(BaseModel):
    """Per-collection position in the change feed. None means "start from now"."""

    collection_name: str
    resume_token: Any | None = None
    updated_at: datetime | None = None


class UpdateTask(BaseModel):
    """Transient unit of work between a trigger and the embedding write."""

    document_id: str
    collection_name: str
    type_name: str
    enqueued_at: datetime
    reason: str

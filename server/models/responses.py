from datetime import datetime

from pydantic import BaseModel


class WatcherStatus(BaseModel):
    state: str
    reconnects: int
    last_error: str | None
    pending_updates: int


class HealthResponse(BaseModel):
    healthy: bool
    running: bool
    watchers: dict[str, WatcherStatus]


class ProfileItem(BaseModel):
    type_name: str
    source_collection: str
    discriminated: bool
    sample_count: int
    discovered_at: datetime | None
    text_fields: list[str]
    identifier_fields: list[str]
    numeric_fields: list[str]
    date_fields: list[str]
    array_fields: list[str]
    object_fields: list[str]


class ProfilesResponse(BaseModel):
    profiles: list[ProfileItem]
    total: int


class BackfillAccepted(BaseModel):
    status: str
    profiles: list[str]

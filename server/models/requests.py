from pydantic import BaseModel, Field


class BackfillRequest(BaseModel):
    collections: list[str] | None = None
    tenant_id: str | None = None
    document_type: str | None = None
    batch_size: int | None = Field(default=None, ge=1)
    force: bool = False
    dry_run: bool = False

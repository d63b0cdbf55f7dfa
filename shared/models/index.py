"""Pydantic models for vector index definitions."""

from enum import Enum

from pydantic import BaseModel


class IndexDescriptor(BaseModel):
    """Vector index definition for one document type."""

    name: str
    target_collection: str
    type_name: str
    vector_path: str = "embedding"
    dimensions: int
    similarity_metric: str = "cosine"
    filter_paths: list[str] = []

    def to_definition(self) -> dict:
        """Backend-neutral field list in the vectorSearch index format."""
        fields: list[dict] = [
            {
                "type": "vector",
                "path": self.vector_path,
                "numDimensions": self.dimensions,
                "similarity": self.similarity_metric,
            }
        ]
        fields.extend({"type": "filter", "path": path} for path in self.filter_paths)
        return {"fields": fields}


class IndexEnsureStatus(str, Enum):
    CREATED = "created"
    ALREADY_EXISTS = "already_exists"
    UNSUPPORTED_BY_BACKEND = "unsupported_by_backend"
    DRY_RUN = "dry_run"
    FAILED = "failed"


class IndexEnsureResult(BaseModel):
    descriptor: IndexDescriptor
    status: IndexEnsureStatus
    detail: str | None = None

"""Vector index descriptors and their idempotent creation."""

import json
import re

from services.vector_sync.StructureAnalyzer import DISCRIMINATOR_FIELD
from shared.clients.index.IndexClientInterface import IndexClientInterface
from shared.clients.index.models.IndexCreateOutcome import IndexCreateOutcome
from shared.helper.HelperConfig import HelperConfig
from shared.models.config import VectorSyncSettings
from shared.models.embedding import FIELD_EMBEDDING
from shared.models.index import IndexDescriptor, IndexEnsureResult, IndexEnsureStatus
from shared.models.profile import DocumentTypeProfile

TENANT_FIELD = "tenantId"
SOFT_DELETE_FIELD = "deleted"

_ARRAY_INDEX = re.compile(r"\[\d+\]")
_INVALID_NAME_CHARS = re.compile(r"[^A-Za-z0-9_-]")


def to_filter_path(field_path: str) -> str:
    """Array element paths are indexed without the position: "items[0].code" → "items.code"."""
    return _ARRAY_INDEX.sub("", field_path)


def build_index_name(prefix: str, type_name: str) -> str:
    return f"{prefix}_{_INVALID_NAME_CHARS.sub('_', type_name)}"


def build_index_descriptor(profile: DocumentTypeProfile, settings: VectorSyncSettings) -> IndexDescriptor:
    """Derive the vector index definition of one document type.

    Filters always cover tenant isolation, the type discriminator and the
    soft-delete marker, followed by every identifier field of the profile.

    Args:
        profile (DocumentTypeProfile): The profile of the type.
        settings (VectorSyncSettings): Supplies dimensions, metric and name prefix.

    Returns:
        IndexDescriptor: The descriptor, with duplicate filter paths removed.
    """
    filter_paths: list[str] = []
    for path in [TENANT_FIELD, DISCRIMINATOR_FIELD, SOFT_DELETE_FIELD, *profile.identifier_fields]:
        path = to_filter_path(path)
        if path not in filter_paths:
            filter_paths.append(path)

    return IndexDescriptor(
        name=build_index_name(settings.index_prefix, profile.type_name),
        target_collection=profile.source_collection,
        type_name=profile.type_name,
        vector_path=FIELD_EMBEDDING,
        dimensions=settings.vector_dimensions,
        similarity_metric=settings.similarity_metric,
        filter_paths=filter_paths,
    )


class IndexManager:
    """Ensures one vector index per document type exists."""

    def __init__(self, helper_config: HelperConfig, index_client: IndexClientInterface, settings: VectorSyncSettings) -> None:
        self.logging = helper_config.get_logger()
        self._index_client = index_client
        self._settings = settings

    ##########################################
    ################ ENSURE ##################
    ##########################################

    async def do_ensure_index(self, descriptor: IndexDescriptor, dry_run: bool = False) -> IndexEnsureResult:
        """Create the index, treating "already exists" as success.

        A backend without vector search support is reported with the full
        definition so an operator can create the index by hand.

        Args:
            descriptor (IndexDescriptor): The index to ensure.
            dry_run (bool): Log the definition instead of creating it.

        Returns:
            IndexEnsureResult: The outcome; never raises for backend failures.
        """
        definition = json.dumps({"name": descriptor.name, "type": "vectorSearch", "definition": descriptor.to_definition()}, indent=2)

        if dry_run:
            self.logging.info("[dry-run] Index '%s' on '%s':\n%s", descriptor.name, descriptor.target_collection, definition)
            return IndexEnsureResult(descriptor=descriptor, status=IndexEnsureStatus.DRY_RUN)

        try:
            outcome = await self._index_client.do_create_index(descriptor)
        except Exception as exc:
            self.logging.error("Creating index '%s' on '%s' failed: %s", descriptor.name, descriptor.target_collection, exc)
            return IndexEnsureResult(descriptor=descriptor, status=IndexEnsureStatus.FAILED, detail=str(exc))

        if outcome == IndexCreateOutcome.OK:
            self.logging.info("Created index '%s' on '%s'.", descriptor.name, descriptor.target_collection)
            return IndexEnsureResult(descriptor=descriptor, status=IndexEnsureStatus.CREATED)
        if outcome == IndexCreateOutcome.ALREADY_EXISTS:
            self.logging.info("Index '%s' on '%s' already exists.", descriptor.name, descriptor.target_collection)
            return IndexEnsureResult(descriptor=descriptor, status=IndexEnsureStatus.ALREADY_EXISTS)
        if outcome != IndexCreateOutcome.UNSUPPORTED:
            self.logging.error("Index backend returned unexpected outcome %r for '%s'.", outcome, descriptor.name)
            return IndexEnsureResult(descriptor=descriptor, status=IndexEnsureStatus.FAILED, detail=f"Unexpected outcome: {outcome!r}")

        self.logging.warning(
            "The '%s' index backend does not support vector search. Create index '%s' on collection '%s' manually "
            "(e.g. in the Atlas UI) with this definition:\n%s",
            self._index_client.get_engine_name(),
            descriptor.name,
            descriptor.target_collection,
            definition,
        )
        return IndexEnsureResult(
            descriptor=descriptor,
            status=IndexEnsureStatus.UNSUPPORTED_BY_BACKEND,
            detail="Vector search is not supported by the index backend.",
        )

    async def do_ensure_all(self, profiles: list[DocumentTypeProfile], dry_run: bool = False) -> list[IndexEnsureResult]:
        """Ensure the index of every profile. A failing index never stops the others.

        Args:
            profiles (list[DocumentTypeProfile]): The profiles to index.
            dry_run (bool): Log definitions instead of creating them.

        Returns:
            list[IndexEnsureResult]: One result per profile, in input order.
        """
        results = []
        for profile in profiles:
            descriptor = build_index_descriptor(profile, self._settings)
            results.append(await self.do_ensure_index(descriptor, dry_run=dry_run))

        summary: dict[str, int] = {}
        for result in results:
            summary[result.status.value] = summary.get(result.status.value, 0) + 1
        self.logging.info("Index setup finished: %s", ", ".join(f"{count} {status}" for status, count in sorted(summary.items())) or "nothing to do")
        return results

"""Backfill processor.

Pages through every document of a type and hands each page to the embedding
orchestrator. Fresh documents are skipped by the orchestrator, so a backfill
can be interrupted and re-run at any time.
"""

from services.vector_sync.EmbeddingOrchestrator import EmbeddingOrchestrator
from services.vector_sync.IndexService import TENANT_FIELD
from services.vector_sync.StructureAnalyzer import DISCRIMINATOR_FIELD
from shared.clients.store.StoreClientInterface import StoreClientInterface
from shared.helper.HelperConfig import HelperConfig
from shared.models.config import VectorSyncSettings
from shared.models.embedding import BackfillOptions, BatchResult
from shared.models.profile import DocumentTypeProfile


class BackfillService:
    def __init__(
        self,
        helper_config: HelperConfig,
        store_client: StoreClientInterface,
        orchestrator: EmbeddingOrchestrator,
        settings: VectorSyncSettings,
    ) -> None:
        self.logging = helper_config.get_logger()
        self._store_client = store_client
        self._orchestrator = orchestrator
        self._settings = settings

    def build_query(self, profile: DocumentTypeProfile, options: BackfillOptions) -> dict | None:
        """Store query of a backfill run, or None if the type filter excludes the profile.

        Freshness is deliberately not part of the query: the matching set must
        not shrink while paging by offset.
        """
        query = profile.get_filter(DISCRIMINATOR_FIELD)
        if options.document_type:
            if profile.discriminated and profile.type_name != options.document_type:
                return None
            query[DISCRIMINATOR_FIELD] = options.document_type
        if options.tenant_id:
            query[TENANT_FIELD] = options.tenant_id
        return query

    async def do_run_backfill(self, profile: DocumentTypeProfile, options: BackfillOptions | None = None) -> BatchResult:
        """Embed all matching documents of one type, page by page.

        Args:
            profile (DocumentTypeProfile): The type to backfill.
            options (BackfillOptions | None): Filters, page size, force and dry-run.

        Returns:
            BatchResult: Cumulative counts over all pages.
        """
        options = options or BackfillOptions()
        result = BatchResult()

        query = self.build_query(profile, options)
        if query is None:
            return result

        collection_name = profile.source_collection
        batch_size = options.batch_size or self._settings.batch_size
        total = await self._store_client.do_count(collection_name, query)
        if total == 0:
            self.logging.info("No documents to backfill for '%s' in '%s'.", profile.type_name, collection_name)
            return result

        self.logging.info(
            "Backfilling %d documents of '%s' in '%s'%s...",
            total, profile.type_name, collection_name, " (dry run)" if options.dry_run else "",
        )
        batch_options = options.to_batch_options()
        skip = 0
        while skip < total:
            page = await self._store_client.do_find(collection_name, query, skip=skip, limit=batch_size)
            if not page:
                break
            result = result.merge(await self._orchestrator.do_process_batch(page, profile, batch_options))
            skip += len(page)
            self.logging.info(
                "Progress '%s': %d/%d (%d%%)",
                profile.type_name, min(skip, total), total, round(min(skip, total) / total * 100),
            )

        self.logging.info(
            "Backfill of '%s' done: %d processed, %d updated, %d skipped, %d errors.",
            profile.type_name, result.processed, result.updated, result.skipped, result.errors,
        )
        return result

    async def do_run_all(self, profiles: list[DocumentTypeProfile], options: BackfillOptions | None = None) -> dict[str, BatchResult]:
        """Backfill several types one after another.

        Args:
            profiles (list[DocumentTypeProfile]): The types to backfill.
            options (BackfillOptions | None): Applied to every type.

        Returns:
            dict[str, BatchResult]: Result per profile key ("collection:type").
        """
        results: dict[str, BatchResult] = {}
        for profile in profiles:
            try:
                results[profile.get_key()] = await self.do_run_backfill(profile, options)
            except Exception as exc:
                # a store failure ends this type only
                self.logging.error("Backfill of '%s' in '%s' failed: %s", profile.type_name, profile.source_collection, exc)
                results[profile.get_key()] = BatchResult()
        return results

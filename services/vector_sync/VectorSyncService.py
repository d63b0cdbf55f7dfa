"""Vector sync runtime.

Wires discovery, index setup, backfill and the change feed coordinators around
one shared worker pool and one metrics instance. Used by the CLI runner and by
the status API.
"""

import asyncio

from services.vector_sync.BackfillService import BackfillService
from services.vector_sync.ChangeFeedCoordinator import ChangeFeedCoordinator
from services.vector_sync.CursorStore import CursorStore, StoreBackedCursorStore
from services.vector_sync.DiscoveryService import DiscoveryService
from services.vector_sync.EmbeddingOrchestrator import EmbeddingOrchestrator
from services.vector_sync.IndexService import IndexManager
from services.vector_sync.ProfileRegistry import ProfileRegistry
from services.vector_sync.SyncMetrics import MetricsReporter, MetricsSnapshot, SyncMetrics
from services.vector_sync.WorkerPool import WorkerPool
from shared.clients.embed.EmbedClientInterface import EmbedClientInterface
from shared.clients.index.IndexClientInterface import IndexClientInterface
from shared.clients.store.StoreClientInterface import StoreClientInterface
from shared.helper.HelperConfig import HelperConfig
from shared.models.config import VectorSyncSettings
from shared.models.embedding import BackfillOptions, BatchResult
from shared.models.index import IndexEnsureResult
from shared.models.profile import DocumentTypeProfile


class VectorSyncService:
    def __init__(
        self,
        helper_config: HelperConfig,
        store_client: StoreClientInterface,
        embed_client: EmbedClientInterface,
        index_client: IndexClientInterface | None,
        settings: VectorSyncSettings,
    ) -> None:
        self.logging = helper_config.get_logger()
        self._helper_config = helper_config
        self._store_client = store_client
        self._settings = settings

        self.metrics = SyncMetrics()
        self.registry = ProfileRegistry()
        self.worker_pool = WorkerPool(helper_config, worker_count=settings.worker_count, queue_size=settings.queue_size)
        self.metrics.set_pending_source(self.worker_pool)

        self.discovery = DiscoveryService(helper_config, store_client, settings, registry=self.registry)
        self.orchestrator = EmbeddingOrchestrator(
            helper_config, store_client, embed_client, settings, metrics=self.metrics, worker_pool=self.worker_pool
        )
        self.backfill = BackfillService(helper_config, store_client, self.orchestrator, settings)
        self.index_manager = IndexManager(helper_config, index_client, settings) if index_client is not None else None

        if settings.cursor_collection:
            self.cursor_store: CursorStore = StoreBackedCursorStore(helper_config, store_client, settings.cursor_collection)
        else:
            self.cursor_store = CursorStore(helper_config)

        self._reporter = MetricsReporter(helper_config, self.metrics, settings.metrics_log_interval)
        self.coordinators: dict[str, ChangeFeedCoordinator] = {}
        self._running = False

    ##########################################
    ################ GETTER ##################
    ##########################################

    @property
    def is_running(self) -> bool:
        return self._running

    def is_healthy(self) -> bool:
        """Running, and every watcher is streaming or connecting."""
        if not self._running:
            return False
        return all(coordinator.is_healthy() for coordinator in self.coordinators.values())

    def get_watch_status(self) -> dict[str, dict]:
        return {
            name: {
                "state": coordinator.state.value,
                "reconnects": coordinator.reconnect_count,
                "last_error": coordinator.last_error,
                "pending_updates": coordinator.pending_updates,
            }
            for name, coordinator in self.coordinators.items()
        }

    def get_metrics(self) -> MetricsSnapshot:
        return self.metrics.snapshot()

    def list_profiles(self) -> list[DocumentTypeProfile]:
        return self.registry.list_profiles()

    ##########################################
    ################ MODES ###################
    ##########################################

    async def do_discover(self, collections: list[str] | None = None) -> list[DocumentTypeProfile]:
        return await self.discovery.do_discover(collections)

    async def do_setup(self, dry_run: bool = False, collections: list[str] | None = None) -> list[IndexEnsureResult]:
        """Discover document types and ensure one vector index per type.

        Args:
            dry_run (bool): Log index definitions instead of creating them.
            collections (list[str] | None): Restrict to these collections.

        Returns:
            list[IndexEnsureResult]: One result per discovered type.
        """
        if self.index_manager is None:
            self.logging.warning("No index client configured, skipping index setup.")
            return []
        profiles = await self._ensure_profiles(collections)
        return await self.index_manager.do_ensure_all(profiles, dry_run=dry_run)

    async def do_generate(self, options: BackfillOptions | None = None, collections: list[str] | None = None) -> BatchResult:
        """Backfill every discovered type.

        Args:
            options (BackfillOptions | None): Filters, page size, force and dry-run.
            collections (list[str] | None): Restrict to these collections.

        Returns:
            BatchResult: Counts summed over all types.
        """
        profiles = await self._ensure_profiles(collections)
        started_pool = not self.worker_pool.is_running
        if started_pool:
            await self.worker_pool.do_start()
        try:
            results = await self.backfill.do_run_all(profiles, options)
        finally:
            if started_pool and not self._running:
                await self.worker_pool.do_stop(self._settings.shutdown_grace_period)

        total = BatchResult()
        for result in results.values():
            total = total.merge(result)
        self.logging.info(
            "Generation finished: %d processed, %d updated, %d skipped, %d errors.",
            total.processed, total.updated, total.skipped, total.errors,
        )
        return total

    async def do_start_watch(self, collections: list[str] | None = None) -> None:
        """Start the worker pool, the metrics reporter and one watcher per collection.

        Args:
            collections (list[str] | None): Restrict to these collections.
        """
        if self._running:
            return
        profiles = await self._ensure_profiles(collections)
        await self.worker_pool.do_start()
        await self._reporter.do_start()
        self._running = True

        for collection_name in sorted({profile.source_collection for profile in profiles}):
            coordinator = ChangeFeedCoordinator(
                helper_config=self._helper_config,
                collection_name=collection_name,
                store_client=self._store_client,
                discovery=self.discovery,
                orchestrator=self.orchestrator,
                worker_pool=self.worker_pool,
                cursor_store=self.cursor_store,
                settings=self._settings,
                metrics=self.metrics,
            )
            self.coordinators[collection_name] = coordinator
            coordinator.start()
        self.logging.info("Watching %d collections.", len(self.coordinators))

    async def do_stop(self) -> None:
        """Stop all watchers, drain the worker pool within the grace period, stop reporting."""
        grace = self._settings.shutdown_grace_period
        await asyncio.gather(*(coordinator.do_stop(grace) for coordinator in self.coordinators.values()))
        await self.worker_pool.do_stop(grace)
        await self._reporter.do_stop()
        self._running = False
        self.logging.info("Vector sync stopped.")

    ##########################################
    ################ HELPER ##################
    ##########################################

    async def _ensure_profiles(self, collections: list[str] | None) -> list[DocumentTypeProfile]:
        profiles = await self.discovery.do_discover(collections)
        if not profiles:
            self.logging.warning("No document types discovered.")
        return profiles

"""Change feed coordinator.

One coordinator supervises the change feed of one collection:

    CONNECTING -> STREAMING -> RECONNECTING -> CONNECTING ... -> STOPPED

Events are filtered (loop prevention, unknown types), debounced per document
and handed to the shared worker pool. The watch cursor only advances over a
contiguous prefix of finished events, so a restart never skips an event whose
embedding was not written yet.
"""

import asyncio
from datetime import datetime, timezone
from functools import partial

from services.vector_sync.CursorStore import CursorStore
from services.vector_sync.DiscoveryService import DiscoveryService
from services.vector_sync.EmbeddingOrchestrator import EmbeddingOrchestrator, is_embedding_recent
from services.vector_sync.StructureAnalyzer import DISCRIMINATOR_FIELD
from services.vector_sync.SyncMetrics import SyncMetrics
from services.vector_sync.WorkerPool import WorkerPool, WorkerPoolStoppedError
from shared.clients.store.StoreClientInterface import StoreClientInterface, WatchSubscription
from shared.clients.store.models.ChangeEvent import ChangeEvent
from shared.helper.HelperConfig import HelperConfig
from shared.models.change_feed import UpdateTask, WatchState
from shared.models.config import VectorSyncSettings
from shared.models.embedding import BatchOptions, DocumentOutcome
from shared.models.profile import DocumentTypeProfile


class _PendingUpdate:
    """A debounced event waiting to be dispatched."""

    def __init__(self, seq: int, event: ChangeEvent, profile: DocumentTypeProfile) -> None:
        self.seq = seq
        self.event = event
        self.profile = profile
        self.dispatched = False
        self.task: asyncio.Task | None = None


class ChangeFeedCoordinator:
    def __init__(
        self,
        helper_config: HelperConfig,
        collection_name: str,
        store_client: StoreClientInterface,
        discovery: DiscoveryService,
        orchestrator: EmbeddingOrchestrator,
        worker_pool: WorkerPool,
        cursor_store: CursorStore,
        settings: VectorSyncSettings,
        metrics: SyncMetrics | None = None,
    ) -> None:
        self.logging = helper_config.get_logger()
        self.collection_name = collection_name
        self._store_client = store_client
        self._discovery = discovery
        self._orchestrator = orchestrator
        self._worker_pool = worker_pool
        self._cursor_store = cursor_store
        self._settings = settings
        self._metrics = metrics or orchestrator.metrics

        self._state = WatchState.STOPPED
        self._stop_event = asyncio.Event()
        self._run_task: asyncio.Task | None = None
        self.reconnect_count = 0
        self.last_error: str | None = None

        # debounce and dispatch bookkeeping
        self._pending: dict[str, _PendingUpdate] = {}
        self._dispatch_tasks: set[asyncio.Task] = set()

        # cursor bookkeeping: events are numbered in arrival order
        self._next_seq = 0
        self._next_commit = 0
        self._tokens: dict[int, object] = {}
        self._finished: set[int] = set()
        self._commit_lock = asyncio.Lock()

    ##########################################
    ################ GETTER ##################
    ##########################################

    @property
    def state(self) -> WatchState:
        return self._state

    @property
    def pending_updates(self) -> int:
        return len(self._pending) + len(self._dispatch_tasks)

    def is_healthy(self) -> bool:
        return self._state in (WatchState.CONNECTING, WatchState.STREAMING)

    def _set_state(self, state: WatchState) -> None:
        if state != self._state:
            self.logging.debug("Watcher '%s': %s -> %s", self.collection_name, self._state.value, state.value)
        self._state = state

    ##########################################
    ############### LIFECYCLE ################
    ##########################################

    def start(self) -> asyncio.Task:
        """Run the coordinator in a background task."""
        if self._run_task is None or self._run_task.done():
            self._stop_event.clear()
            self._set_state(WatchState.CONNECTING)
            self._run_task = asyncio.create_task(self.do_run(), name=f"watch-{self.collection_name}")
        return self._run_task

    async def do_stop(self, grace_period: float | None = None) -> None:
        """Stop watching, let dispatched updates finish within the grace period.

        Debounced updates that were not dispatched yet are abandoned; the
        cursor never moved past them.

        Args:
            grace_period (float | None): Seconds to wait for in-flight updates.
        """
        grace_period = self._settings.shutdown_grace_period if grace_period is None else grace_period
        self._stop_event.set()
        if self._run_task is not None:
            await asyncio.gather(self._run_task, return_exceptions=True)
            self._run_task = None

        for pending in list(self._pending.values()):
            if pending.task is not None and not pending.dispatched:
                pending.task.cancel()
        self._pending.clear()

        if self._dispatch_tasks:
            _, still_running = await asyncio.wait(set(self._dispatch_tasks), timeout=grace_period)
            if still_running:
                self.logging.warning(
                    "Watcher '%s': abandoning %d updates after %.1fs grace period.",
                    self.collection_name, len(still_running), grace_period,
                )
                for task in still_running:
                    task.cancel()
                await asyncio.gather(*still_running, return_exceptions=True)
        self._set_state(WatchState.STOPPED)

    async def do_run(self) -> None:
        """Supervise the change feed until stopped. Never returns because of a feed error."""
        while not self._stop_event.is_set():
            self._set_state(WatchState.CONNECTING)
            cursor = await self._cursor_store.do_load(self.collection_name)
            try:
                subscription = await self._store_client.do_watch(
                    self.collection_name,
                    resume_token=cursor.resume_token if cursor else None,
                )
            except Exception as exc:
                await self._reconnect(exc)
                continue

            self._set_state(WatchState.STREAMING)
            self.logging.info("Watching '%s' for changes%s.", self.collection_name, " (resumed)" if cursor else "")
            try:
                await self._stream(subscription)
            except Exception as exc:
                if self._stop_event.is_set():
                    break
                await self._reconnect(exc)
            finally:
                await self._close_subscription(subscription)

        self._set_state(WatchState.STOPPED)
        self.logging.info("Watcher '%s' stopped.", self.collection_name)

    async def _reconnect(self, exc: Exception) -> None:
        self._set_state(WatchState.RECONNECTING)
        self.reconnect_count += 1
        self.last_error = str(exc)
        self._metrics.record_reconnect(self.collection_name)
        self.logging.warning(
            "Change feed of '%s' failed: %s. Reconnect #%d in %.1fs.",
            self.collection_name, exc, self.reconnect_count, self._settings.reconnect_delay,
        )
        try:
            await asyncio.wait_for(self._stop_event.wait(), timeout=self._settings.reconnect_delay)
        except asyncio.TimeoutError:
            pass

    async def _close_subscription(self, subscription: WatchSubscription) -> None:
        try:
            await subscription.close()
        except Exception as exc:
            self.logging.debug("Closing change feed of '%s' failed: %s", self.collection_name, exc)

    ##########################################
    ############### STREAMING ################
    ##########################################

    async def _stream(self, subscription: WatchSubscription) -> None:
        stop_waiter = asyncio.create_task(self._stop_event.wait())
        try:
            while True:
                next_event = asyncio.create_task(self._next_event(subscription))
                done, _ = await asyncio.wait({next_event, stop_waiter}, return_when=asyncio.FIRST_COMPLETED)
                if next_event not in done:
                    next_event.cancel()
                    await asyncio.gather(next_event, return_exceptions=True)
                    return
                event = next_event.result()
                if event is None:
                    raise ConnectionError("change feed ended unexpectedly")
                await self.do_handle_event(event)
        finally:
            stop_waiter.cancel()

    async def _next_event(self, subscription: WatchSubscription) -> ChangeEvent | None:
        try:
            return await subscription.next_event()
        except StopAsyncIteration:
            return None

    async def do_handle_event(self, event: ChangeEvent) -> None:
        """Filter, debounce and dispatch one change event.

        Args:
            event (ChangeEvent): The event as delivered by the feed.
        """
        self._metrics.record_event()
        seq = self._next_seq
        self._next_seq += 1
        self._tokens[seq] = event.resume_token

        try:
            profile = await self._accept_event(event)
        except Exception as exc:
            self.logging.error("Watcher '%s': handling event for %s failed: %s", self.collection_name, event.document_id, exc)
            profile = None
        if profile is None:
            await self._finish(seq)
            return

        previous = self._pending.get(event.document_id)
        if previous is not None and not previous.dispatched:
            previous.task.cancel()
            self._metrics.record_debounced()
            await self._finish(previous.seq)

        pending = _PendingUpdate(seq, event, profile)
        pending.task = asyncio.create_task(self._dispatch_after_delay(pending))
        self._pending[event.document_id] = pending

    async def _accept_event(self, event: ChangeEvent) -> DocumentTypeProfile | None:
        document = event.full_document
        if document is None:
            self.logging.debug("Watcher '%s': event for %s carries no document, dropped.", self.collection_name, event.document_id)
            return None

        # the pipeline's own write shows up as an update with a brand-new embedding
        if is_embedding_recent(document, self._settings.quiescence_window):
            self._metrics.record_dropped_quiescent()
            self.logging.debug("Watcher '%s': %s was embedded moments ago, dropped.", self.collection_name, event.document_id)
            return None

        type_name = document.get(DISCRIMINATOR_FIELD)
        if not isinstance(type_name, str) or not type_name.strip():
            type_name = self.collection_name

        profile = self._discovery.registry.get(self.collection_name, type_name)
        if profile is not None:
            return profile

        try:
            profile = await self._discovery.do_discover_type(self.collection_name, type_name)
        except Exception as exc:
            self._metrics.record_dropped_unknown_type()
            self.logging.error(
                "Watcher '%s': discovering unknown type '%s' failed: %s. Event for %s dropped.",
                self.collection_name, type_name, exc, event.document_id,
            )
            return None
        if profile is None:
            self._metrics.record_dropped_unknown_type()
            self.logging.warning("Watcher '%s': no profile for type '%s', event dropped.", self.collection_name, type_name)
        return profile

    ##########################################
    ################ DISPATCH ################
    ##########################################

    async def _dispatch_after_delay(self, pending: _PendingUpdate) -> None:
        if self._settings.debounce_delay > 0:
            await asyncio.sleep(self._settings.debounce_delay)

        # from here on the update is in flight and no longer cancelled by newer events
        pending.dispatched = True
        if self._pending.get(pending.event.document_id) is pending:
            del self._pending[pending.event.document_id]
        current = asyncio.current_task()
        self._dispatch_tasks.add(current)
        try:
            task = UpdateTask(
                document_id=pending.event.document_id,
                collection_name=self.collection_name,
                type_name=pending.profile.type_name,
                enqueued_at=datetime.now(timezone.utc),
                reason=pending.event.operation_type,
            )
            future = await self._worker_pool.enqueue(
                partial(self._run_update, task, pending.event.full_document, pending.profile)
            )
            await future
        except WorkerPoolStoppedError:
            self.logging.warning("Watcher '%s': worker pool stopped, update of %s abandoned.", self.collection_name, pending.event.document_id)
        except asyncio.CancelledError:
            raise
        except Exception as exc:
            self.logging.error("Watcher '%s': update of %s failed: %s", self.collection_name, pending.event.document_id, exc)
            await self._finish(pending.seq)
        else:
            await self._finish(pending.seq)
        finally:
            self._dispatch_tasks.discard(current)

    async def _run_update(self, task: UpdateTask, document: dict, profile: DocumentTypeProfile) -> DocumentOutcome:
        # quiescence was checked on arrival, the freshness window does not apply to live changes
        options = BatchOptions(force=True, trigger=task.reason)
        outcome = await self._orchestrator.do_process_document(document, profile, options)
        self.logging.debug("Watcher '%s': %s %s -> %s", self.collection_name, task.reason, task.document_id, outcome.value)
        return outcome

    ##########################################
    ################ CURSOR ##################
    ##########################################

    async def _finish(self, seq: int) -> None:
        """Mark an event finished and persist the cursor if a contiguous prefix completed."""
        async with self._commit_lock:
            self._finished.add(seq)
            token = None
            advanced = False
            while self._next_commit in self._finished:
                self._finished.discard(self._next_commit)
                candidate = self._tokens.pop(self._next_commit, None)
                if candidate is not None:
                    token = candidate
                    advanced = True
                self._next_commit += 1
            if advanced:
                await self._cursor_store.do_save(self.collection_name, token)

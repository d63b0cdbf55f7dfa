"""Runtime counters of the vector sync pipeline and their periodic reporter."""

import asyncio
from datetime import datetime, timezone

from pydantic import BaseModel

from shared.helper.HelperConfig import HelperConfig


class MetricsSnapshot(BaseModel):
    started_at: datetime
    last_activity: datetime | None = None
    documents_processed: int = 0
    embeddings_generated: int = 0
    documents_skipped: int = 0
    errors: int = 0
    events_received: int = 0
    events_dropped_quiescent: int = 0
    events_dropped_unknown_type: int = 0
    events_debounced: int = 0
    reconnects: dict[str, int] = {}
    pending_updates: int = 0


class SyncMetrics:
    """Plain counters, mutated from the event loop only."""

    def __init__(self) -> None:
        self.started_at = datetime.now(timezone.utc)
        self.last_activity: datetime | None = None
        self.documents_processed = 0
        self.embeddings_generated = 0
        self.documents_skipped = 0
        self.errors = 0
        self.events_received = 0
        self.events_dropped_quiescent = 0
        self.events_dropped_unknown_type = 0
        self.events_debounced = 0
        self.reconnects: dict[str, int] = {}
        self._pending_source = None

    def _touch(self) -> None:
        self.last_activity = datetime.now(timezone.utc)

    def record_updated(self) -> None:
        self.documents_processed += 1
        self.embeddings_generated += 1
        self._touch()

    def record_skipped(self) -> None:
        self.documents_processed += 1
        self.documents_skipped += 1
        self._touch()

    def record_error(self) -> None:
        self.documents_processed += 1
        self.errors += 1
        self._touch()

    def record_event(self) -> None:
        self.events_received += 1
        self._touch()

    def record_dropped_quiescent(self) -> None:
        self.events_dropped_quiescent += 1

    def record_dropped_unknown_type(self) -> None:
        self.events_dropped_unknown_type += 1

    def record_debounced(self) -> None:
        self.events_debounced += 1

    def record_reconnect(self, collection_name: str) -> None:
        self.reconnects[collection_name] = self.reconnects.get(collection_name, 0) + 1

    def set_pending_source(self, source) -> None:
        """Object with a ``pending`` attribute, usually the worker pool."""
        self._pending_source = source

    def snapshot(self) -> MetricsSnapshot:
        return MetricsSnapshot(
            started_at=self.started_at,
            last_activity=self.last_activity,
            documents_processed=self.documents_processed,
            embeddings_generated=self.embeddings_generated,
            documents_skipped=self.documents_skipped,
            errors=self.errors,
            events_received=self.events_received,
            events_dropped_quiescent=self.events_dropped_quiescent,
            events_dropped_unknown_type=self.events_dropped_unknown_type,
            events_debounced=self.events_debounced,
            reconnects=dict(self.reconnects),
            pending_updates=self._pending_source.pending if self._pending_source is not None else 0,
        )


class MetricsReporter:
    """Logs a metrics snapshot every interval until stopped."""

    def __init__(self, helper_config: HelperConfig, metrics: SyncMetrics, interval: float) -> None:
        self.logging = helper_config.get_logger()
        self._metrics = metrics
        self._interval = interval
        self._task: asyncio.Task | None = None

    async def do_start(self) -> None:
        if self._interval <= 0 or self._task is not None:
            return
        self._task = asyncio.create_task(self._run(), name="vector-sync-metrics")

    async def do_stop(self) -> None:
        if self._task is None:
            return
        self._task.cancel()
        await asyncio.gather(self._task, return_exceptions=True)
        self._task = None

    async def _run(self) -> None:
        while True:
            await asyncio.sleep(self._interval)
            snapshot = self._metrics.snapshot()
            self.logging.info(
                "Metrics: %d processed, %d embedded, %d skipped, %d errors, %d events, %d pending, reconnects %s",
                snapshot.documents_processed,
                snapshot.embeddings_generated,
                snapshot.documents_skipped,
                snapshot.errors,
                snapshot.events_received,
                snapshot.pending_updates,
                snapshot.reconnects or "{}",
            )

"""Embedding orchestrator.

Turns documents into embedding records: freshness check, semantic summary,
provider call with bounded retries, and one atomic write back onto the source
document. Per-document failures are counted, never raised.
"""

import asyncio
from datetime import datetime, timedelta, timezone
from functools import partial

from services.vector_sync.SemanticTextGenerator import generate_semantic_summary
from services.vector_sync.StructureAnalyzer import parse_iso_datetime
from services.vector_sync.SyncMetrics import SyncMetrics
from services.vector_sync.WorkerPool import WorkerPool, WorkerPoolStoppedError
from shared.clients.embed.EmbedClientInterface import EmbedClientInterface
from shared.clients.store.StoreClientInterface import StoreClientInterface
from shared.helper.errors import PermanentProviderError, TransientProviderError
from shared.helper.HelperConfig import HelperConfig
from shared.helper.retry import create_embed_retry_policy
from shared.models.config import VectorSyncSettings
from shared.models.embedding import (
    FIELD_EMBEDDING,
    FIELD_GENERATED_AT,
    BatchOptions,
    BatchResult,
    DocumentOutcome,
    EmbedAttemptResult,
    EmbedAttemptStatus,
    EmbeddingRecord,
)
from shared.models.profile import DocumentTypeProfile


def get_embedding_generated_at(document: dict) -> datetime | None:
    """When the document's stored embedding was generated, as an aware UTC datetime.

    Args:
        document (dict): The source document.

    Returns:
        datetime | None: None if the document has no embedding or no usable timestamp.
    """
    if not document.get(FIELD_EMBEDDING):
        return None
    generated_at = document.get(FIELD_GENERATED_AT)
    if isinstance(generated_at, str):
        generated_at = parse_iso_datetime(generated_at)
    if not isinstance(generated_at, datetime):
        return None
    if generated_at.tzinfo is None:
        # naive values from the store are UTC
        generated_at = generated_at.replace(tzinfo=timezone.utc)
    return generated_at


def is_embedding_recent(document: dict, window_seconds: float, now: datetime | None = None) -> bool:
    """Whether the stored embedding was generated within the last ``window_seconds``."""
    generated_at = get_embedding_generated_at(document)
    if generated_at is None:
        return False
    now = now or datetime.now(timezone.utc)
    return now - generated_at < timedelta(seconds=window_seconds)


class EmbeddingOrchestrator:
    def __init__(
        self,
        helper_config: HelperConfig,
        store_client: StoreClientInterface,
        embed_client: EmbedClientInterface,
        settings: VectorSyncSettings,
        metrics: SyncMetrics | None = None,
        worker_pool: WorkerPool | None = None,
    ) -> None:
        self.logging = helper_config.get_logger()
        self._store_client = store_client
        self._embed_client = embed_client
        self._settings = settings
        self.metrics = metrics or SyncMetrics()
        self._worker_pool = worker_pool

    def attach_worker_pool(self, worker_pool: WorkerPool) -> None:
        self._worker_pool = worker_pool

    ##########################################
    ################ BATCH ###################
    ##########################################

    async def do_process_batch(
        self,
        documents: list[dict],
        profile: DocumentTypeProfile,
        options: BatchOptions | None = None,
    ) -> BatchResult:
        """Embed a batch of documents of one type.

        With a running worker pool attached, documents are fanned out to it so
        batch work shares the provider budget with live updates; otherwise they
        are processed one after another. Must not be called from a pool worker.

        Args:
            documents (list[dict]): Documents of the profile's type.
            profile (DocumentTypeProfile): Their type profile.
            options (BatchOptions | None): force / dry_run / trigger.

        Returns:
            BatchResult: Counts with processed == updated + skipped + errors.
        """
        options = options or BatchOptions()
        result = BatchResult()

        if self._worker_pool is not None and self._worker_pool.is_running:
            futures = []
            for document in documents:
                try:
                    futures.append(await self._worker_pool.enqueue(partial(self.do_process_document, document, profile, options)))
                except WorkerPoolStoppedError:
                    self.logging.warning(
                        "Worker pool stopped, %d documents of '%s' were not processed.",
                        len(documents) - len(futures), profile.type_name,
                    )
                    break
            outcomes = list(await asyncio.gather(*futures, return_exceptions=True))
            for _ in range(len(documents) - len(futures)):
                self.metrics.record_error()
                outcomes.append(DocumentOutcome.ERROR)
        else:
            outcomes = [await self.do_process_document(document, profile, options) for document in documents]

        for document, outcome in zip(documents, outcomes):
            if isinstance(outcome, BaseException):
                self.logging.error("Processing document %s failed: %s", document.get("_id"), outcome)
                outcome = DocumentOutcome.ERROR
            result.record(outcome)

        self.logging.debug(
            "Batch of '%s': %d processed, %d updated, %d skipped, %d errors",
            profile.type_name, result.processed, result.updated, result.skipped, result.errors,
        )
        return result

    ##########################################
    ############### DOCUMENT #################
    ##########################################

    async def do_process_document(
        self,
        document: dict,
        profile: DocumentTypeProfile,
        options: BatchOptions | None = None,
    ) -> DocumentOutcome:
        """Embed one document and store the record on it.

        Args:
            document (dict): The document's current snapshot.
            profile (DocumentTypeProfile): Its type profile.
            options (BatchOptions | None): force / dry_run / trigger.

        Returns:
            DocumentOutcome: UPDATED, SKIPPED or ERROR.
        """
        options = options or BatchOptions()
        outcome = await self._process_document(document, profile, options)
        if outcome == DocumentOutcome.UPDATED:
            self.metrics.record_updated()
        elif outcome == DocumentOutcome.SKIPPED:
            self.metrics.record_skipped()
        else:
            self.metrics.record_error()
        return outcome

    async def _process_document(self, document: dict, profile: DocumentTypeProfile, options: BatchOptions) -> DocumentOutcome:
        document_id = document.get("_id")

        if not options.force and is_embedding_recent(document, self._settings.freshness_window):
            self.logging.debug("Document %s has a fresh embedding, skipping.", document_id)
            return DocumentOutcome.SKIPPED

        summary = generate_semantic_summary(document, profile)
        if not summary.is_embeddable():
            self.logging.debug("Document %s has too little content to embed (%d chars), skipping.", document_id, len(summary.text))
            return DocumentOutcome.SKIPPED

        if options.dry_run:
            self.logging.info("[dry-run] Would embed document %s: %s", document_id, summary.text[:100])
            return DocumentOutcome.UPDATED

        attempt = await self.do_embed_with_retry(summary.text)
        if self._settings.rate_limit_delay > 0:
            await asyncio.sleep(self._settings.rate_limit_delay)
        if not attempt.is_success():
            self.logging.error(
                "Embedding document %s failed after %d attempts (%s): %s",
                document_id, attempt.attempts, attempt.status.value, attempt.error,
            )
            return DocumentOutcome.ERROR

        record = EmbeddingRecord(
            document_id=summary.document_id,
            vector=attempt.vector,
            semantic_text=summary.text,
            searchable_content=summary.keywords,
            model_id=self._settings.embedding_model,
            generated_at=datetime.now(timezone.utc),
            trigger=options.trigger,
        )
        try:
            matched = await self._store_client.do_update_one(profile.source_collection, document_id, record.to_store_fields())
        except Exception as exc:
            self.logging.error("Writing embedding of document %s failed: %s", document_id, exc)
            return DocumentOutcome.ERROR

        if not matched:
            self.logging.warning("Document %s vanished before its embedding was written, skipping.", document_id)
            return DocumentOutcome.SKIPPED
        return DocumentOutcome.UPDATED

    ##########################################
    ################ EMBED ###################
    ##########################################

    async def do_embed_with_retry(self, text: str) -> EmbedAttemptResult:
        """Request an embedding with bounded retries and exponential backoff.

        Transient failures are retried up to the configured attempt count,
        permanent ones end the request at once. Unexpected exceptions from
        the provider client are treated as transient.

        Args:
            text (str): The semantic text to embed.

        Returns:
            EmbedAttemptResult: Success with the vector, or the last error.
        """
        policy = create_embed_retry_policy(
            max_attempts=self._settings.max_retries,
            base_delay_seconds=self._settings.retry_base_delay,
            max_delay_seconds=self._settings.retry_max_delay,
            logger=self.logging,
        )
        attempts = 0
        vector: list[float] | None = None
        try:
            async for attempt in policy:
                with attempt:
                    attempts = attempt.retry_state.attempt_number
                    vector = await self._request_embedding(text)
        except TransientProviderError as exc:
            return EmbedAttemptResult(status=EmbedAttemptStatus.TRANSIENT_ERROR, error=str(exc), attempts=attempts)
        except PermanentProviderError as exc:
            return EmbedAttemptResult(status=EmbedAttemptStatus.PERMANENT_ERROR, error=str(exc), attempts=attempts)
        return EmbedAttemptResult(status=EmbedAttemptStatus.SUCCESS, vector=vector, attempts=attempts)

    async def _request_embedding(self, text: str) -> list[float]:
        try:
            return await self._embed_client.do_embed_text(text, model=self._settings.embedding_model)
        except (TransientProviderError, PermanentProviderError):
            raise
        except Exception as exc:
            raise TransientProviderError(f"Embedding request failed: {exc!r}") from exc

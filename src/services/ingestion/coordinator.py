"""Drives one document from ``uploaded`` to ``complete``.

Pipeline stages: **fetch -> extract -> normalize -> chunk -> embed -> store**.

The :class:`IngestionCoordinator` owns a document while it is being
processed.  Each stage boundary is recorded as a status change through the
store's ``update_document_metadata`` (which merges and validates the
transition inside a transaction), so a poller always sees where the
document is:

    uploaded -> processing   bytes fetched from object storage and extracted
    processing -> chunking   normalized text persisted, extractor metadata merged
    chunking -> embedding    chunk list computed, ``totalChunks`` recorded
    embedding -> complete    all batches done, ``successfulChunks`` recorded

A failure in fetch, extraction or chunking moves the document to ``error``
with the reason and a timestamp.  Failures of individual chunks during
embedding are isolated and counted; the document completes even when no
chunk could be stored.

Documents created directly from text (no ``fileUrl``) skip fetch and
extraction but still pass through ``processing``.

Only one run per document id executes at a time.  A second trigger for a
document that is already running is skipped and logged.
"""

from __future__ import annotations

import asyncio
import time
from datetime import datetime, timezone
from typing import TYPE_CHECKING

import structlog

from src.models.document import Document, DocumentStatus, IngestionOutcome
from src.models.rag import DocumentChunk
from src.services.ingestion.extractors.registry import detect_file_type
from src.utils.concurrency import run_in_batches
from src.utils.errors import CitewiseError, ExtractionError, FetchError, IngestionError
from src.utils.logging import bind_context, clear_context
from src.utils.retry import RetryPolicy
from src.utils.text_normalizer import normalize, strip_toc_blocks

if TYPE_CHECKING:
    from src.interfaces.document_store import IDocumentStore
    from src.interfaces.object_storage_provider import IObjectStorageProvider
    from src.interfaces.vector_store_provider import IVectorStoreProvider
    from src.services.embedding_generator import EmbeddingGenerator
    from src.services.ingestion.chunker import TextChunker
    from src.services.ingestion.extractors.registry import ExtractorRegistry
    from src.services.toc_filter import TocFilter

logger = structlog.get_logger(logger_name=__name__)


def _now() -> datetime:
    return datetime.now(tz=timezone.utc)  # noqa: UP017


class IngestionCoordinator:
    """Runs the ingestion state machine for single documents.

    Parameters
    ----------
    store:
        Document and chunk persistence; owner of the metadata transaction.
    object_storage:
        Where uploaded bytes live.  Resolved once at startup.
    extractors:
        Per-format text extraction.
    chunker:
        Splits normalized text and maps chunks back to original lines.
    embedding_generator:
        Embeds chunk text with the retry/shrink/fallback policy.
    vector_store:
        Receives the chunk vectors.
    toc_filter:
        Optional; when given, each chunk's noise confidence is recorded.
    batch_size, batch_delay:
        Chunks embedded concurrently per batch, and the pause between batches.
    strip_toc:
        Remove leading table-of-contents blocks before normalization.
    fetch_policy:
        Retry policy for reading bytes from object storage.
    """

    def __init__(
        self,
        store: IDocumentStore,
        object_storage: IObjectStorageProvider,
        extractors: ExtractorRegistry,
        chunker: TextChunker,
        embedding_generator: EmbeddingGenerator,
        vector_store: IVectorStoreProvider,
        toc_filter: TocFilter | None = None,
        batch_size: int = 3,
        batch_delay: float = 0.5,
        strip_toc: bool = True,
        fetch_policy: RetryPolicy | None = None,
    ) -> None:
        self._store = store
        self._object_storage = object_storage
        self._extractors = extractors
        self._chunker = chunker
        self._embedding_generator = embedding_generator
        self._vector_store = vector_store
        self._toc_filter = toc_filter
        self._batch_size = batch_size
        self._batch_delay = batch_delay
        self._strip_toc = strip_toc
        self._fetch_policy = fetch_policy or RetryPolicy(
            max_attempts=3, base_delay=1.0, retry_on=(FetchError,), name="fetch"
        )
        self._locks: dict[str, asyncio.Lock] = {}

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------

    def is_running(self, document_id: str) -> bool:
        lock = self._locks.get(document_id)
        return lock is not None and lock.locked()

    async def ingest(self, document_id: str) -> IngestionOutcome:
        """Process ``document_id`` through the full pipeline.

        Returns
        -------
        IngestionOutcome
            ``skipped=True`` when the document is already complete, already
            being ingested, or not in a startable state.  Otherwise the
            final status (``complete`` or ``error``) and chunk tallies.

        Raises
        ------
        NotFoundError
            If no document has this id.
        """
        document = await self._store.get_document(document_id)

        if document.status is DocumentStatus.COMPLETE:
            logger.info("ingestion_already_complete", document_id=document_id)
            return self._skipped(document, "Document is already complete")

        lock = self._locks.setdefault(document_id, asyncio.Lock())
        if lock.locked():
            logger.info("ingestion_already_running", document_id=document_id)
            return self._skipped(document, "Ingestion already in progress")

        async with lock:
            # Re-read inside the lock; a run that just finished may have moved it.
            document = await self._store.get_document(document_id)
            if document.status is not DocumentStatus.UPLOADED:
                logger.info(
                    "ingestion_not_startable",
                    document_id=document_id,
                    status=document.status.value,
                )
                return self._skipped(
                    document, f"Cannot ingest a document in status '{document.status.value}'"
                )

            start = time.monotonic()
            bind_context(document_id=document_id)
            try:
                outcome = await self._run(document, start)
            except CitewiseError as exc:
                logger.error("ingestion_failed", error=exc.message, error_type=type(exc).__name__)
                await self._fail(document_id, exc.message)
                outcome = IngestionOutcome(
                    document_id=document_id,
                    status=DocumentStatus.ERROR,
                    reason=exc.message,
                    ingestion_time=round(time.monotonic() - start, 2),
                )
            except Exception as exc:
                logger.exception("ingestion_crashed", error=str(exc))
                await self._fail(document_id, f"Unexpected error: {exc}")
                raise
            finally:
                clear_context("document_id")
                self._locks.pop(document_id, None)
            return outcome

    # ------------------------------------------------------------------
    # Stages
    # ------------------------------------------------------------------

    async def _run(self, document: Document, start: float) -> IngestionOutcome:
        document_id = document.id

        await self._store.update_document_metadata(
            document_id,
            processing_status=DocumentStatus.PROCESSING,
            processing_progress=0,
            processing_message="Extracting text",
        )
        original_text, extraction = await self._extract(document)

        prepared = strip_toc_blocks(original_text) if self._strip_toc else original_text
        normalized = normalize(prepared)
        if not normalized:
            raise ExtractionError(message="No text could be extracted from the document")

        await self._store.update_document_content(document_id, normalized)
        await self._store.update_document_metadata(
            document_id,
            processing_status=DocumentStatus.CHUNKING,
            processing_message="Chunking text",
            extraction=extraction,
        )

        chunks = self._score_chunks(
            self._chunker.chunk(document_id, normalized, original_text=original_text)
        )
        if not chunks:
            raise IngestionError(message="Chunking produced no chunks")
        total = len(chunks)
        unmapped = sum(1 for chunk in chunks if not chunk.metadata.has_line_range)
        if unmapped:
            logger.warning("line_mapping_desync", unmapped_chunks=unmapped, total_chunks=total)

        await self._store.update_document_metadata(
            document_id,
            processing_status=DocumentStatus.EMBEDDING,
            total_chunks=total,
            unmapped_chunks=unmapped,
            processing_message=f"processed 0 of {total} chunks",
        )

        async def _report(processed: int, _batch: list[object]) -> None:
            await self._store.update_document_metadata(
                document_id,
                processing_progress=round(processed / total * 100),
                processing_message=f"processed {processed} of {total} chunks",
            )

        results = await run_in_batches(
            chunks,
            self._embed_and_store,
            batch_size=self._batch_size,
            delay=self._batch_delay,
            on_batch_done=_report,
        )

        failures = [r for r in results if isinstance(r, BaseException)]
        for failure in failures:
            logger.warning("chunk_store_failed", error=str(failure))
        successful = total - len(failures)
        degraded = sum(1 for r in results if r is True)
        if successful == 0:
            logger.warning("no_chunks_stored", total_chunks=total)

        await self._store.update_document_metadata(
            document_id,
            processing_status=DocumentStatus.COMPLETE,
            processing_progress=100,
            processing_message=f"processed {total} of {total} chunks",
            successful_chunks=successful,
            degraded_chunks=degraded,
            completed_at=_now(),
        )

        elapsed = round(time.monotonic() - start, 2)
        logger.info(
            "ingestion_complete",
            total_chunks=total,
            successful_chunks=successful,
            degraded_chunks=degraded,
            unmapped_chunks=unmapped,
            elapsed_s=elapsed,
        )
        return IngestionOutcome(
            document_id=document_id,
            status=DocumentStatus.COMPLETE,
            total_chunks=total,
            successful_chunks=successful,
            degraded_chunks=degraded,
            unmapped_chunks=unmapped,
            ingestion_time=elapsed,
        )

    async def _extract(self, document: Document) -> tuple[str, dict[str, object]]:
        metadata = document.metadata
        if not metadata.file_url:
            # Text documents carry their content from creation.
            return document.content, {}

        data = await self._fetch_policy.run(self._object_storage.get, metadata.file_url)
        file_type = metadata.file_type or detect_file_type(metadata.file_name or "")
        result = await self._extractors.extract(file_type, data)
        logger.info("document_extracted", file_type=file_type, chars=len(result.text))
        return result.text, dict(result.metadata)

    def _score_chunks(self, chunks: list[DocumentChunk]) -> list[DocumentChunk]:
        if self._toc_filter is None:
            return chunks
        scored: list[DocumentChunk] = []
        for chunk in chunks:
            confidence = self._toc_filter.score(chunk.content).confidence
            metadata = chunk.metadata.model_copy(update={"noise_score": confidence})
            scored.append(chunk.model_copy(update={"metadata": metadata}))
        return scored

    async def _embed_and_store(self, chunk: DocumentChunk) -> bool:
        """Embed and persist one chunk; returns whether its vector is degraded."""
        result = await self._embedding_generator.embed_for_storage(chunk.content)
        if result.degraded:
            chunk = chunk.model_copy(
                update={"metadata": chunk.metadata.model_copy(update={"degraded": True})}
            )
        await self._vector_store.add_chunks([chunk], [result.vector])
        await self._store.add_chunks([chunk])
        return result.degraded

    async def _fail(self, document_id: str, reason: str) -> None:
        await self._store.update_document_metadata(
            document_id,
            processing_status=DocumentStatus.ERROR,
            processing_message="Processing failed",
            processing_error=reason,
            error_timestamp=_now(),
        )

    @staticmethod
    def _skipped(document: Document, reason: str) -> IngestionOutcome:
        metadata = document.metadata
        return IngestionOutcome(
            document_id=document.id,
            status=document.status,
            skipped=True,
            reason=reason,
            total_chunks=metadata.total_chunks or 0,
            successful_chunks=metadata.successful_chunks or 0,
            degraded_chunks=metadata.degraded_chunks,
            unmapped_chunks=metadata.unmapped_chunks,
        )

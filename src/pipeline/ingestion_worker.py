"""Background hand-off of ingestion runs.

Upload requests return as soon as the file bytes are stored.  The actual
ingestion is handed to the :class:`IngestionWorker`: an ``asyncio.Queue``
drained by consumer tasks started in the FastAPI lifespan.

Every hand-off becomes an :class:`IngestionJob` in a bounded registry
(``cachetools.LRUCache``) that the HTTP layer exposes for polling.  A job
whose run raises (store unavailable, unexpected crash) is retried up to
``max_attempts`` times with a linear delay; a run that ends with the
document in ``error`` is a finished job, not a retry candidate, because the
state machine does not allow leaving ``error``.  A crashed run marks the
document ``error`` before it raises, so the retry that finds it there fails
the job and keeps the crash message.

A document that already has a queued or running job is not queued twice;
:meth:`IngestionWorker.enqueue` returns the existing job.
"""

from __future__ import annotations

import asyncio
import contextlib
import uuid
from datetime import datetime, timezone
from enum import Enum
from typing import TYPE_CHECKING

from cachetools import LRUCache
from pydantic import BaseModel, ConfigDict, Field

from src.models.document import DocumentStatus, IngestionOutcome
from src.utils.errors import NotFoundError
from src.utils.logging import get_logger

if TYPE_CHECKING:
    from src.services.ingestion.coordinator import IngestionCoordinator

_logger = get_logger(__name__)


def _now() -> datetime:
    return datetime.now(tz=timezone.utc)  # noqa: UP017


class JobState(str, Enum):  # noqa: UP042 — StrEnum requires Python 3.11+
    QUEUED = "queued"
    RUNNING = "running"
    SUCCEEDED = "succeeded"
    FAILED = "failed"
    SKIPPED = "skipped"

    @property
    def is_active(self) -> bool:
        return self in (JobState.QUEUED, JobState.RUNNING)


class IngestionJob(BaseModel):
    """One hand-off of a document to the worker."""

    model_config = ConfigDict(frozen=True)

    job_id: str
    document_id: str
    state: JobState = JobState.QUEUED
    attempts: int = Field(default=0, ge=0)
    error: str | None = None
    outcome: IngestionOutcome | None = None
    created_at: datetime = Field(default_factory=_now)
    updated_at: datetime = Field(default_factory=_now)


class IngestionWorker:
    """Queue-backed runner for :meth:`IngestionCoordinator.ingest`.

    Parameters
    ----------
    coordinator:
        Executes the ingestion state machine.
    max_attempts:
        Runs per job before it is marked failed.
    retry_delay:
        Base seconds between attempts; attempt *n* waits ``n * retry_delay``.
    concurrency:
        Number of consumer tasks.
    max_jobs:
        Size of the job registry; the least recently touched jobs fall out.
    """

    def __init__(
        self,
        coordinator: IngestionCoordinator,
        max_attempts: int = 3,
        retry_delay: float = 2.0,
        concurrency: int = 1,
        max_jobs: int = 1000,
    ) -> None:
        if max_attempts < 1:
            raise ValueError("max_attempts must be at least 1")
        self._coordinator = coordinator
        self._max_attempts = max_attempts
        self._retry_delay = retry_delay
        self._concurrency = max(1, concurrency)
        self._queue: asyncio.Queue[str] = asyncio.Queue()
        self._jobs: LRUCache[str, IngestionJob] = LRUCache(maxsize=max_jobs)
        self._active_by_document: dict[str, str] = {}
        self._tasks: list[asyncio.Task[None]] = []

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    @property
    def running(self) -> bool:
        return any(not task.done() for task in self._tasks)

    async def start(self) -> None:
        if self.running:
            return
        self._tasks = [
            asyncio.create_task(self._consume(), name=f"ingestion-worker-{i}")
            for i in range(self._concurrency)
        ]
        _logger.info("ingestion_worker_started", consumers=self._concurrency)

    async def stop(self) -> None:
        for task in self._tasks:
            task.cancel()
        for task in self._tasks:
            with contextlib.suppress(asyncio.CancelledError):
                await task
        self._tasks = []
        _logger.info("ingestion_worker_stopped", pending=self._queue.qsize())

    async def join(self) -> None:
        """Wait until every queued job has been processed."""
        await self._queue.join()

    # ------------------------------------------------------------------
    # Jobs
    # ------------------------------------------------------------------

    def enqueue(self, document_id: str) -> IngestionJob:
        active_id = self._active_by_document.get(document_id)
        if active_id is not None:
            existing = self._jobs.get(active_id)
            if existing is not None and existing.state.is_active:
                _logger.info(
                    "ingestion_job_deduplicated", document_id=document_id, job_id=active_id
                )
                return existing

        job = IngestionJob(job_id=str(uuid.uuid4()), document_id=document_id)
        self._jobs[job.job_id] = job
        self._active_by_document[document_id] = job.job_id
        self._queue.put_nowait(job.job_id)
        _logger.info("ingestion_job_queued", document_id=document_id, job_id=job.job_id)
        return job

    def get_job(self, job_id: str) -> IngestionJob:
        job = self._jobs.get(job_id)
        if job is None:
            raise NotFoundError(message=f"Ingestion job not found: {job_id}")
        return job

    def list_jobs(self, document_id: str | None = None) -> list[IngestionJob]:
        jobs = [job for job in self._jobs.values() if document_id in (None, job.document_id)]
        return sorted(jobs, key=lambda job: job.created_at)

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------

    async def _consume(self) -> None:
        while True:
            job_id = await self._queue.get()
            try:
                await self._process(job_id)
            finally:
                self._queue.task_done()

    def _update(self, job: IngestionJob, **changes: object) -> IngestionJob:
        updated = job.model_copy(update={**changes, "updated_at": _now()})
        self._jobs[job.job_id] = updated
        active_id = self._active_by_document.get(job.document_id)
        if not updated.state.is_active and active_id == job.job_id:
            del self._active_by_document[job.document_id]
        return updated

    async def _process(self, job_id: str) -> None:
        job = self._jobs.get(job_id)
        if job is None:
            _logger.warning("ingestion_job_evicted", job_id=job_id)
            return

        for attempt in range(1, self._max_attempts + 1):
            job = self._update(job, state=JobState.RUNNING, attempts=attempt)
            try:
                outcome = await self._coordinator.ingest(job.document_id)
            except NotFoundError as exc:
                self._update(job, state=JobState.FAILED, error=exc.message)
                _logger.warning(
                    "ingestion_job_document_missing", job_id=job_id, document_id=job.document_id
                )
                return
            except Exception as exc:
                _logger.warning(
                    "ingestion_job_attempt_failed",
                    job_id=job_id,
                    document_id=job.document_id,
                    attempt=attempt,
                    max_attempts=self._max_attempts,
                    error=str(exc),
                )
                job = self._update(job, error=str(exc))
                if attempt < self._max_attempts:
                    await asyncio.sleep(self._retry_delay * attempt)
                continue

            if outcome.status is DocumentStatus.ERROR:
                # A crashed attempt leaves the document in error; the retry skips it.
                state = JobState.FAILED
                error = job.error or outcome.reason
            elif outcome.skipped:
                state = JobState.SKIPPED
                error = None
            elif outcome.status is DocumentStatus.COMPLETE:
                state = JobState.SUCCEEDED
                error = None
            else:
                state = JobState.FAILED
                error = outcome.reason
            self._update(job, state=state, outcome=outcome, error=error)
            _logger.info(
                "ingestion_job_finished",
                job_id=job_id,
                document_id=job.document_id,
                state=state.value,
                attempts=attempt,
            )
            return

        self._update(job, state=JobState.FAILED)
        _logger.error(
            "ingestion_job_exhausted",
            job_id=job_id,
            document_id=job.document_id,
            attempts=self._max_attempts,
            error=job.error,
        )

"""Background ingestion worker for Citewise."""

from src.pipeline.ingestion_worker import IngestionJob, IngestionWorker, JobState

__all__ = [
    "IngestionJob",
    "IngestionWorker",
    "JobState",
]

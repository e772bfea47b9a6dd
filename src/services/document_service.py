"""Document upload, listing, status and deletion.

Upload stores the raw bytes and returns; ingestion is triggered separately
(the HTTP layer hands the new document to the ingestion worker).  The
object storage provider is injected, already resolved at startup.

Upload flow:
  1. the file type is detected from the extension; unsupported types are
     rejected before anything is written
  2. the document row is created in ``pending`` with empty content
  3. the bytes are written to ``{document_id}/{sanitized_file_name}``
  4. on success the document moves to ``uploaded`` with its ``fileUrl``;
     on failure it moves to ``error`` with the reason and a timestamp and
     the :class:`StorageError` propagates

Deleting a document removes its vectors, its row (chunks cascade) and,
best effort, its stored file.
"""

from __future__ import annotations

import uuid
from datetime import datetime, timezone
from typing import TYPE_CHECKING

import structlog

from src.models.document import Document, DocumentMetadata, DocumentStatus, DocumentStatusView
from src.services.ingestion.extractors.registry import detect_file_type, sanitize_file_name
from src.utils.errors import StorageError

if TYPE_CHECKING:
    from src.interfaces.document_store import IDocumentStore
    from src.interfaces.object_storage_provider import IObjectStorageProvider
    from src.interfaces.vector_store_provider import IVectorStoreProvider

logger = structlog.get_logger(logger_name=__name__)

_CONTENT_TYPES: dict[str, str] = {
    "pdf": "application/pdf",
    "docx": "application/vnd.openxmlformats-officedocument.wordprocessingml.document",
    "doc": "application/msword",
    "txt": "text/plain",
    "md": "text/markdown",
    "html": "text/html",
    "csv": "text/csv",
    "xlsx": "application/vnd.openxmlformats-officedocument.spreadsheetml.sheet",
    "xls": "application/vnd.ms-excel",
}


def _now() -> datetime:
    return datetime.now(tz=timezone.utc)  # noqa: UP017


class DocumentService:
    """Owns the document records outside of an ingestion run."""

    def __init__(
        self,
        store: IDocumentStore,
        object_storage: IObjectStorageProvider,
        vector_store: IVectorStoreProvider,
    ) -> None:
        self._store = store
        self._object_storage = object_storage
        self._vector_store = vector_store

    # ------------------------------------------------------------------
    # Create
    # ------------------------------------------------------------------

    async def upload(
        self,
        title: str,
        file_name: str,
        data: bytes,
        user_id: str | None = None,
    ) -> Document:
        """Store an uploaded file and create its document in ``uploaded``.

        Raises
        ------
        UnsupportedFileTypeError
            If the extension is not supported.  Nothing is stored.
        StorageError
            If the bytes could not be written.  The document is left in
            ``error``.
        """
        file_type = detect_file_type(file_name)
        sanitized = sanitize_file_name(file_name)

        document = Document(
            id=str(uuid.uuid4()),
            title=title,
            metadata=DocumentMetadata(
                file_type=file_type,
                file_name=file_name,
                sanitized_file_name=sanitized,
                size=len(data),
                uploaded_at=_now(),
            ),
            user_id=user_id,
        )
        await self._store.create_document(document)
        logger.info(
            "document_created",
            document_id=document.id,
            file_type=file_type,
            size=len(data),
        )

        path = f"{document.id}/{sanitized}"
        try:
            url = await self._object_storage.put(path, data, _CONTENT_TYPES.get(file_type))
        except StorageError as exc:
            logger.error("document_upload_failed", document_id=document.id, error=exc.message)
            await self._store.update_document_metadata(
                document.id,
                processing_status=DocumentStatus.ERROR,
                processing_message="Upload failed",
                processing_error=f"Failed to store file: {exc.message}",
                error_timestamp=_now(),
            )
            raise

        await self._store.update_document_metadata(
            document.id,
            processing_status=DocumentStatus.UPLOADED,
            processing_message="File uploaded",
            file_url=url,
        )
        return await self._store.get_document(document.id)

    async def create_text_document(
        self,
        title: str,
        content: str,
        user_id: str | None = None,
    ) -> Document:
        """Create a document from raw text; it starts ``uploaded`` with no file."""
        document = Document(
            id=str(uuid.uuid4()),
            title=title,
            content=content,
            metadata=DocumentMetadata(
                file_type="txt",
                size=len(content.encode("utf-8")),
                uploaded_at=_now(),
            ),
            user_id=user_id,
        )
        await self._store.create_document(document)
        await self._store.update_document_metadata(
            document.id,
            processing_status=DocumentStatus.UPLOADED,
            processing_message="Text received",
        )
        logger.info("text_document_created", document_id=document.id, chars=len(content))
        return await self._store.get_document(document.id)

    # ------------------------------------------------------------------
    # Read
    # ------------------------------------------------------------------

    async def get_document(self, document_id: str) -> Document:
        return await self._store.get_document(document_id)

    async def list_documents(self, limit: int | None = None) -> list[Document]:
        return await self._store.list_documents(limit=limit)

    async def get_status(self, document_id: str) -> DocumentStatusView:
        document = await self._store.get_document(document_id)
        return DocumentStatusView.from_metadata(document.metadata)

    # ------------------------------------------------------------------
    # Delete
    # ------------------------------------------------------------------

    async def delete_document(self, document_id: str) -> None:
        """Delete a document with its chunks, vectors and stored file.

        Raises
        ------
        NotFoundError
            If no document has this id.
        """
        document = await self._store.get_document(document_id)

        await self._vector_store.delete_by_document(document_id)
        await self._store.delete_document(document_id)

        sanitized = document.metadata.sanitized_file_name
        if document.metadata.file_url and sanitized:
            try:
                await self._object_storage.delete(f"{document_id}/{sanitized}")
            except StorageError as exc:
                # The record is gone; an orphaned file is only wasted space.
                logger.warning(
                    "stored_file_delete_failed", document_id=document_id, error=exc.message
                )

        logger.info("document_deleted", document_id=document_id)

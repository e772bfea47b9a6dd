"""Unit tests for document, chunk and chat models."""

from __future__ import annotations

import pytest
from pydantic import ValidationError

from src.models import (
    ChunkMetadata,
    Citation,
    Document,
    DocumentMetadata,
    DocumentStatus,
    DocumentStatusView,
    Message,
    MessageRole,
    merge_metadata,
)
from src.utils.errors import InvalidStatusTransitionError

# ======================================================================
# DocumentStatus
# ======================================================================


class TestDocumentStatus:
    @pytest.mark.parametrize(
        ("source", "target"),
        [
            (DocumentStatus.PENDING, DocumentStatus.UPLOADED),
            (DocumentStatus.UPLOADED, DocumentStatus.PROCESSING),
            (DocumentStatus.PROCESSING, DocumentStatus.CHUNKING),
            (DocumentStatus.CHUNKING, DocumentStatus.EMBEDDING),
            (DocumentStatus.EMBEDDING, DocumentStatus.COMPLETE),
        ],
    )
    def test_forward_steps_allowed(self, source: DocumentStatus, target: DocumentStatus) -> None:
        assert source.can_transition_to(target) is True

    @pytest.mark.parametrize("source", list(DocumentStatus))
    def test_error_reachable_from_anywhere(self, source: DocumentStatus) -> None:
        assert source.can_transition_to(DocumentStatus.ERROR) is True

    def test_skipping_a_state_rejected(self) -> None:
        assert DocumentStatus.UPLOADED.can_transition_to(DocumentStatus.CHUNKING) is False

    def test_moving_backwards_rejected(self) -> None:
        assert DocumentStatus.COMPLETE.can_transition_to(DocumentStatus.UPLOADED) is False

    def test_error_is_absorbing(self) -> None:
        assert DocumentStatus.ERROR.can_transition_to(DocumentStatus.UPLOADED) is False
        assert DocumentStatus.ERROR.can_transition_to(DocumentStatus.COMPLETE) is False

    def test_terminal_states(self) -> None:
        assert DocumentStatus.COMPLETE.is_terminal
        assert DocumentStatus.ERROR.is_terminal
        assert not DocumentStatus.EMBEDDING.is_terminal

    def test_string_values(self) -> None:
        assert DocumentStatus.COMPLETE == "complete"
        assert DocumentStatus("error") is DocumentStatus.ERROR


# ======================================================================
# merge_metadata
# ======================================================================


class TestMergeMetadata:
    def test_only_named_fields_change(self) -> None:
        current = DocumentMetadata(file_name="report.pdf", size=120)
        merged = merge_metadata(current, processing_progress=40)

        assert merged.processing_progress == 40
        assert merged.file_name == "report.pdf"
        assert merged.size == 120
        assert current.processing_progress == 0

    def test_extraction_merged_by_key(self) -> None:
        current = DocumentMetadata(extraction={"pageCount": 3})
        merged = merge_metadata(current, extraction={"sheetNames": ["A"]})

        assert merged.extraction == {"pageCount": 3, "sheetNames": ["A"]}

    def test_extraction_key_overwritten(self) -> None:
        current = DocumentMetadata(extraction={"pageCount": 3})
        merged = merge_metadata(current, extraction={"pageCount": 5})
        assert merged.extraction == {"pageCount": 5}

    def test_legal_status_change(self) -> None:
        merged = merge_metadata(DocumentMetadata(), processing_status="uploaded")
        assert merged.processing_status is DocumentStatus.UPLOADED

    def test_same_status_is_a_no_op(self) -> None:
        current = DocumentMetadata(processing_status=DocumentStatus.EMBEDDING)
        merged = merge_metadata(current, processing_status=DocumentStatus.EMBEDDING)
        assert merged.processing_status is DocumentStatus.EMBEDDING

    def test_illegal_status_change_rejected(self) -> None:
        current = DocumentMetadata(processing_status=DocumentStatus.COMPLETE)

        with pytest.raises(InvalidStatusTransitionError, match="complete"):
            merge_metadata(current, processing_status=DocumentStatus.PROCESSING)

    def test_unknown_field_rejected(self) -> None:
        with pytest.raises(ValueError, match="bogus"):
            merge_metadata(DocumentMetadata(), bogus=1)

    def test_invalid_value_rejected(self) -> None:
        with pytest.raises(ValidationError):
            merge_metadata(DocumentMetadata(), processing_progress=150)


# ======================================================================
# Serialization
# ======================================================================


class TestSerialization:
    def test_metadata_uses_camel_case_aliases(self) -> None:
        metadata = DocumentMetadata(total_chunks=4, successful_chunks=4)
        dumped = metadata.model_dump(by_alias=True)

        assert dumped["totalChunks"] == 4
        assert dumped["processingStatus"] == DocumentStatus.PENDING

    def test_metadata_accepts_aliases_and_names(self) -> None:
        by_alias = DocumentMetadata.model_validate({"fileName": "a.txt"})
        by_name = DocumentMetadata(file_name="a.txt")
        assert by_alias == by_name

    def test_status_view_from_metadata(self) -> None:
        metadata = DocumentMetadata(
            processing_status=DocumentStatus.UPLOADED,
            processing_progress=10,
            processing_message="Stored",
        )
        view = DocumentStatusView.from_metadata(metadata)

        assert view.status is DocumentStatus.UPLOADED
        assert view.progress == 10
        assert view.message == "Stored"
        assert view.error is None

    def test_document_status_shortcut(self) -> None:
        document = Document(
            id="doc-1",
            title="Report",
            metadata=DocumentMetadata(processing_status=DocumentStatus.UPLOADED),
        )
        assert document.status is DocumentStatus.UPLOADED
        assert document.content == ""

    def test_models_are_frozen(self) -> None:
        document = Document(id="doc-1", title="Report")
        with pytest.raises(ValidationError):
            document.title = "Other"  # type: ignore[misc]


# ======================================================================
# Chunks and chat
# ======================================================================


class TestChunkAndChatModels:
    def test_line_range_flag(self) -> None:
        assert ChunkMetadata(start_line=2, end_line=4).has_line_range
        assert not ChunkMetadata().has_line_range

    def test_line_numbers_are_one_based(self) -> None:
        with pytest.raises(ValidationError):
            ChunkMetadata(start_line=0, end_line=1)

    def test_citation_defaults(self) -> None:
        citation = Citation(id="citation-c-1-1", text="quote", document_id="doc-1")

        assert citation.document == "Unknown Document"
        assert citation.model_dump(by_alias=True)["documentId"] == "doc-1"

    def test_message_defaults_to_no_citations(self) -> None:
        message = Message(id="m1", conversation_id="c1", role=MessageRole.USER, content="hi")
        assert message.citations == []
        assert message.role == "user"

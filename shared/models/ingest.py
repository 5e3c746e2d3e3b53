"""Pydantic models for the upload boundary and ingestion results."""

from enum import Enum
from typing import Literal

from pydantic import BaseModel, Field, model_validator

from shared.models.document import Document, Folder


class IngestErrorKind(str, Enum):
    DUPLICATE_DETECTED = "duplicate_detected"
    UNSUPPORTED_FORMAT = "unsupported_format"
    EXTRACTION_DEGRADED = "extraction_degraded"
    INDEXING_FAILED = "indexing_failed"
    OVERSIZE = "oversize"
    STORAGE_FAILED = "storage_failed"


class IngestError(BaseModel):
    """One failed or degraded entry. Collected, never raised past the batch."""

    kind: IngestErrorKind
    path: str
    message: str
    document_id: str | None = None


class DuplicateCheckResult(BaseModel):
    """Outcome of a DuplicateGuard check for a single incoming file."""

    is_duplicate: bool
    content_hash: str
    name_hash: str
    matched_document: Document | None = None
    similar_documents: list[Document] = []

    @model_validator(mode="after")
    def _match_required(self) -> "DuplicateCheckResult":
        if self.is_duplicate and self.matched_document is None:
            raise ValueError("a duplicate result must name the matched document")
        return self


class UploadItem(BaseModel):
    """One file handed over by the upload-handling collaborator."""

    content: bytes = Field(repr=False)
    original_filename: str
    declared_media_type: str = "application/octet-stream"
    target_folder_id: str | None = None


class ArchiveSummary(BaseModel):
    extracted_count: int = 0
    folders_created: list[Folder] = []
    documents_created: list[Document] = []
    duplicates: list[Document] = []
    errors: list[IngestError] = []


class UploadOutcome(BaseModel):
    """Per-file result of the upload boundary."""

    filename: str
    type: Literal["document", "archive"]
    outcome: Literal["created", "duplicate", "error"]
    document: Document | None = None
    archive_summary: ArchiveSummary | None = None
    similar_documents: list[Document] = []
    error: IngestError | None = None

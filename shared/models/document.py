"""Pydantic models for the ingested corpus.

Hierarchy:
  Folder        — node of the per-owner folder tree, carries the vector namespace.
  Document      — one accepted upload, identified by its content hash.
  Chunk         — fixed-size word slice of a document's normalized text.
  ChunkOrigin   — tagged variant describing where a chunk's document came from.
"""

from datetime import datetime
from typing import Annotated, Literal

from pydantic import BaseModel, Field, field_validator, model_validator


class Folder(BaseModel):
    """Folder record. ``vector_namespace`` is fixed at creation and never rewritten."""

    id: str
    owner_id: str
    name: str
    parent_id: str | None = None
    vector_namespace: str
    color: str = "blue"
    created_at: datetime | None = None

    model_config = {"from_attributes": True}


class UploadOrigin(BaseModel):
    """Chunk belongs to a document uploaded as a standalone file."""

    kind: Literal["upload"] = "upload"
    original_name: str


class ArchiveOrigin(BaseModel):
    """Chunk belongs to a document extracted from an archive entry."""

    kind: Literal["archive"] = "archive"
    archive_name: str
    entry_path: str

    @field_validator("entry_path")
    @classmethod
    def _entry_path_not_empty(cls, value: str) -> str:
        if not value.strip():
            raise ValueError("entry_path must not be empty")
        return value


ChunkOrigin = Annotated[UploadOrigin | ArchiveOrigin, Field(discriminator="kind")]


class Document(BaseModel):
    """Document record as persisted by the document store."""

    id: str
    owner_id: str
    display_name: str
    original_name: str
    media_type: str
    byte_size: int
    storage_path: str
    content_hash: str
    name_hash: str
    folder_id: str | None = None
    origin: ChunkOrigin | None = None

    # visibility flags
    is_active: bool = True
    is_favorite: bool = False
    is_public: bool = True
    admin_only: bool = False

    created_at: datetime | None = None

    model_config = {"from_attributes": True}


class Chunk(BaseModel):
    """A single indexed slice of a document.

    ``id`` is always ``{document_id}_chunk_{chunk_index}`` so re-deriving the
    chunks of an unchanged document yields the same identifiers.
    """

    id: str
    document_id: str
    text: str
    token_count: int
    chunk_index: int = Field(ge=0)
    start_offset: int = Field(ge=0)
    end_offset: int = Field(ge=0)

    @model_validator(mode="after")
    def _check_identity(self) -> "Chunk":
        if self.id != make_chunk_id(self.document_id, self.chunk_index):
            raise ValueError(f"chunk id '{self.id}' does not match document/index")
        if self.end_offset < self.start_offset:
            raise ValueError("end_offset must not precede start_offset")
        return self


def make_chunk_id(document_id: str, chunk_index: int) -> str:
    return f"{document_id}_chunk_{chunk_index}"

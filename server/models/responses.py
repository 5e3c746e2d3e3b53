from pydantic import BaseModel

from shared.models.document import Document
from shared.models.ingest import UploadOutcome


class UploadResponse(BaseModel):
    outcomes: list[UploadOutcome]
    created: int
    duplicates: int
    errors: int


class DeleteResponse(BaseModel):
    document: Document
    hard: bool


class ReindexResponse(BaseModel):
    document_id: str
    chunk_count: int

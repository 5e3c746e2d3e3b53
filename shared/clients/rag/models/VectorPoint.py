"""VectorPoint model — metadata stored alongside each chunk vector in the RAG backend."""

from pydantic import BaseModel, field_validator

from shared.models.document import ChunkOrigin


class VectorPoint(BaseModel):
    """Payload stored alongside each chunk vector.

    The namespace field is mandatory and enforced on every upsert, query and
    delete: a query scoped to one folder namespace must never see points
    written under another.

    Attributes:
        namespace:     MANDATORY — vector namespace of the document's folder.
        document_id:   Id of the owning document row.
        chunk_id:      ``{document_id}_chunk_{chunk_index}``.
        chunk_index:   Zero-based position of this chunk within the document.
        title:         Display name of the document, used as citation text.
        owner_id:      Uploading user.
        folder_id:     Folder the document lives in, if any.
        media_type:    Declared media type of the source file.
        chunk_text:    Raw text of this chunk.
        token_count:   Number of words in the chunk.
        content_hash:  SHA-256 of the source bytes, identical across all chunks of a document.
        origin:        Where the document came from (standalone upload or archive entry).
    """

    namespace: str
    document_id: str
    chunk_id: str
    chunk_index: int
    title: str
    owner_id: str
    folder_id: str | None = None
    media_type: str | None = None
    chunk_text: str | None = None
    token_count: int = 0
    content_hash: str | None = None
    origin: ChunkOrigin | None = None

    @field_validator("namespace")
    @classmethod
    def _namespace_required(cls, value: str) -> str:
        if not value or not value.strip():
            raise ValueError("namespace must be set on every vector point")
        return value

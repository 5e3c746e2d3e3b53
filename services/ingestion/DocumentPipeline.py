"""Single-document ingestion path shared by direct uploads and archive entries.

Order: size check, duplicate check, media type, target folder, extraction,
chunking, indexing, byte storage, row insert. The document id is allocated
up front so the chunk ids written to the index are already final when the
row is inserted.
"""

from pathlib import PurePosixPath

from shared.helper.HelperConfig import HelperConfig
from shared.models.document import ChunkOrigin, Document, UploadOrigin
from shared.models.ingest import IngestError, IngestErrorKind, UploadOutcome
from shared.storage.DocumentStore import DocumentStore
from shared.storage.FileStore import FileStore
from shared.storage.FolderStore import FolderStore
from shared.storage.exceptions import DuplicateDetected, NotFound
from shared.storage.tables import new_id
from services.ingestion import Chunker
from services.ingestion.ContentNormalizer import ContentNormalizer
from services.ingestion.DuplicateGuard import DuplicateGuard
from services.vector_index.VectorIndex import ChunkMetadata, IndexingFailed, VectorIndex


def display_name_for(filename: str) -> str:
    return PurePosixPath(filename.replace("\\", "/")).name or filename


class DocumentPipeline:
    def __init__(
        self,
        helper_config: HelperConfig,
        duplicate_guard: DuplicateGuard,
        normalizer: ContentNormalizer,
        vector_index: VectorIndex,
        document_store: DocumentStore,
        folder_store: FolderStore,
        file_store: FileStore,
    ) -> None:
        self.logging = helper_config.get_logger()
        self._guard = duplicate_guard
        self._normalizer = normalizer
        self._index = vector_index
        self._documents = document_store
        self._folders = folder_store
        self._files = file_store
        self.chunk_size_words = int(helper_config.get_ranged_val("CHUNK_SIZE_WORDS", 10, 10000, default=800))
        self.max_bytes = int(helper_config.get_number_val("UPLOAD_MAX_BYTES", default=100 * 1024 * 1024))

    def _error(self, filename: str, kind: IngestErrorKind, message: str, document_id: str | None = None) -> UploadOutcome:
        return UploadOutcome(
            filename=filename,
            type="document",
            outcome="error",
            error=IngestError(kind=kind, path=filename, message=message, document_id=document_id),
        )

    async def ingest(
        self,
        content: bytes,
        filename: str,
        owner_id: str,
        declared_media_type: str | None = None,
        folder_id: str | None = None,
        origin: ChunkOrigin | None = None,
        max_bytes: int | None = None,
    ) -> UploadOutcome:
        """Run one file through the pipeline. Never raises for per-file problems.

        Args:
            content (bytes): File bytes.
            filename (str): Original name, or the entry path inside an archive.
            owner_id (str): Uploading user.
            declared_media_type (str | None): Media type reported by the client.
            folder_id (str | None): Target folder; ``None`` files into the shared namespace.
            origin (ChunkOrigin | None): Provenance stored on every chunk.
            max_bytes (int | None): Size limit overriding ``UPLOAD_MAX_BYTES``.

        Returns:
            UploadOutcome: ``created`` (possibly with a degraded-extraction or
                indexing error attached), ``duplicate`` or ``error``.
        """
        limit = self.max_bytes if max_bytes is None else max_bytes
        if len(content) > limit:
            self.logging.warning("Skipping '%s': %d bytes exceeds limit of %d.", filename, len(content), limit)
            return self._error(filename, IngestErrorKind.OVERSIZE, f"{len(content)} bytes exceeds limit of {limit} bytes")

        check = await self._guard.check(content, filename, owner_id)
        if check.is_duplicate:
            return UploadOutcome(
                filename=filename,
                type="document",
                outcome="duplicate",
                document=check.matched_document,
                similar_documents=check.similar_documents,
            )

        media_type = self._normalizer.resolve_media_type(declared_media_type, filename)
        if not self._normalizer.supports(media_type):
            self.logging.warning("Skipping '%s': unsupported media type '%s'.", filename, media_type)
            return self._error(filename, IngestErrorKind.UNSUPPORTED_FORMAT, f"unsupported media type '{media_type}'")

        try:
            namespace = await self._folders.get_namespace(folder_id, owner_id=owner_id)
        except NotFound as exc:
            return self._error(filename, IngestErrorKind.STORAGE_FAILED, str(exc))

        warning: IngestError | None = None
        extraction = self._normalizer.extract_with_diagnostic(content, media_type, label=filename)
        if extraction.degraded:
            warning = IngestError(kind=IngestErrorKind.EXTRACTION_DEGRADED, path=filename, message=extraction.reason or "no text extracted")

        document_id = new_id()
        display_name = display_name_for(filename)
        origin = origin or UploadOrigin(original_name=display_name)
        chunks = Chunker.chunk(extraction.text, self.chunk_size_words, document_id)
        metadata = ChunkMetadata(
            title=display_name,
            owner_id=owner_id,
            folder_id=folder_id,
            media_type=media_type,
            content_hash=check.content_hash,
            origin=origin,
        )
        try:
            await self._index.upsert(document_id, chunks, namespace, metadata)
        except IndexingFailed as exc:
            # document is still stored, retry through reindex
            warning = IngestError(kind=IngestErrorKind.INDEXING_FAILED, path=filename, message=str(exc), document_id=document_id)

        try:
            storage_path = self._files.save(check.content_hash, display_name, content)
        except OSError as exc:
            self.logging.error("Could not store bytes of '%s': %s", filename, exc)
            await self._drop_index_entries(document_id)
            return self._error(filename, IngestErrorKind.STORAGE_FAILED, f"file write failed: {exc}")

        document = Document(
            id=document_id,
            owner_id=owner_id,
            display_name=display_name,
            original_name=display_name,
            media_type=media_type,
            byte_size=len(content),
            storage_path=storage_path,
            content_hash=check.content_hash,
            name_hash=check.name_hash,
            folder_id=folder_id,
            origin=origin,
        )
        try:
            document = await self._documents.create(document)
        except DuplicateDetected as exc:
            await self._drop_index_entries(document_id)
            return UploadOutcome(
                filename=filename,
                type="document",
                outcome="duplicate",
                document=exc.existing,
                similar_documents=check.similar_documents,
            )
        except Exception:
            await self._drop_index_entries(document_id)
            raise

        if warning is not None and warning.document_id is None:
            warning = warning.model_copy(update={"document_id": document.id})
        self.logging.info("Ingested '%s' as document id=%s (%d chunk(s)).", filename, document.id, len(chunks))
        return UploadOutcome(
            filename=filename,
            type="document",
            outcome="created",
            document=document,
            similar_documents=check.similar_documents,
            error=warning,
        )

    async def _drop_index_entries(self, document_id: str) -> None:
        try:
            await self._index.delete_document(document_id)
        except IndexingFailed as exc:
            self.logging.error("Could not drop index entries of document id=%s: %s", document_id, exc)

"""Upload boundary.

Takes the ordered list of uploaded files and runs them one after another,
routing archives to the ArchiveIngestor and everything else through the
single-document pipeline. Sequential on purpose: at most one file's bytes
and text are in flight per request.
"""

from shared.helper.HelperConfig import HelperConfig
from shared.models.document import Document, UploadOrigin
from shared.models.ingest import DuplicateCheckResult, IngestError, IngestErrorKind, UploadItem, UploadOutcome
from shared.storage.DocumentStore import DocumentStore
from shared.storage.FileStore import FileStore
from shared.storage.FolderStore import FolderStore
from services.ingestion import Chunker
from services.ingestion.ArchiveIngestor import ArchiveIngestor, is_archive
from services.ingestion.ContentNormalizer import ContentNormalizer
from services.ingestion.DocumentPipeline import DocumentPipeline
from services.ingestion.DuplicateGuard import DuplicateGuard
from services.vector_index.VectorIndex import ChunkMetadata, VectorIndex


class IngestService:
    def __init__(
        self,
        helper_config: HelperConfig,
        pipeline: DocumentPipeline,
        archive_ingestor: ArchiveIngestor,
        duplicate_guard: DuplicateGuard,
        normalizer: ContentNormalizer,
        vector_index: VectorIndex,
        document_store: DocumentStore,
        folder_store: FolderStore,
        file_store: FileStore,
    ) -> None:
        self.logging = helper_config.get_logger()
        self._pipeline = pipeline
        self._archives = archive_ingestor
        self._guard = duplicate_guard
        self._normalizer = normalizer
        self._index = vector_index
        self._documents = document_store
        self._folders = folder_store
        self._files = file_store

    ##########################################
    ################ UPLOADS #################
    ##########################################

    async def ingest_uploads(self, items: list[UploadItem], owner_id: str) -> list[UploadOutcome]:
        """Process uploaded files in order, one outcome per file."""
        outcomes: list[UploadOutcome] = []
        for item in items:
            try:
                outcome = await self._ingest_item(item, owner_id)
            except Exception as exc:
                # failure is reported as this file's outcome
                self.logging.exception("Ingestion of '%s' failed: %s", item.original_filename, exc)
                outcome = UploadOutcome(
                    filename=item.original_filename,
                    type="archive" if is_archive(item.original_filename, item.declared_media_type) else "document",
                    outcome="error",
                    error=IngestError(kind=IngestErrorKind.STORAGE_FAILED, path=item.original_filename, message=str(exc)),
                )
            outcomes.append(outcome)
        created = sum(1 for o in outcomes if o.outcome == "created")
        self.logging.info("Upload batch of %d file(s) for owner '%s': %d created.", len(items), owner_id, created)
        return outcomes

    async def _ingest_item(self, item: UploadItem, owner_id: str) -> UploadOutcome:
        if not is_archive(item.original_filename, item.declared_media_type):
            return await self._pipeline.ingest(
                item.content,
                item.original_filename,
                owner_id,
                declared_media_type=item.declared_media_type,
                folder_id=item.target_folder_id,
            )

        if len(item.content) > self._pipeline.max_bytes:
            return UploadOutcome(
                filename=item.original_filename,
                type="archive",
                outcome="error",
                error=IngestError(
                    kind=IngestErrorKind.OVERSIZE,
                    path=item.original_filename,
                    message=f"{len(item.content)} bytes exceeds limit of {self._pipeline.max_bytes} bytes",
                ),
            )
        summary = await self._archives.ingest(
            item.content,
            owner_id,
            target_folder_id=item.target_folder_id,
            archive_name=item.original_filename,
        )
        # an archive that yields nothing but errors is an error outcome
        failed = bool(summary.errors) and not summary.documents_created and not summary.duplicates
        return UploadOutcome(
            filename=item.original_filename,
            type="archive",
            outcome="error" if failed else "created",
            archive_summary=summary,
            error=summary.errors[0] if failed else None,
        )

    async def check_duplicate(self, content: bytes, filename: str, owner_id: str) -> DuplicateCheckResult:
        """Pre-upload check without any writes."""
        return await self._guard.check(content, filename, owner_id)

    ##########################################
    ############### DOCUMENTS ################
    ##########################################

    async def delete_document(self, document_id: str, hard: bool = False) -> Document:
        """Soft or hard delete. Chunks are always dropped from the index.

        Raises:
            NotFound: If the document does not exist.
            IndexingFailed: If the index delete fails; the row is left untouched.
        """
        document = await self._documents.get(document_id)
        await self._index.delete_document(document_id)
        if not hard:
            return await self._documents.deactivate(document_id)

        await self._documents.delete(document_id)
        # bytes are shared by hash, keep them while another row points at them
        if await self._documents.count_by_content_hash(document.content_hash) == 0:
            self._files.remove(document.storage_path)
        self.logging.info("Hard-deleted document id=%s ('%s').", document.id, document.display_name)
        return document

    async def reindex_document(self, document_id: str) -> int:
        """Re-extract and re-index a stored document. Safe to repeat.

        Returns:
            int: Number of chunks now indexed for the document.

        Raises:
            NotFound: If the document or its folder does not exist.
            IndexingFailed: If the index backend fails again.
        """
        document = await self._documents.get(document_id)
        if not document.is_active:
            raise ValueError(f"Document '{document_id}' is deleted and cannot be reindexed.")
        content = self._files.read(document.storage_path)
        namespace = await self._folders.get_namespace(document.folder_id)
        extraction = self._normalizer.extract_with_diagnostic(content, document.media_type, label=document.display_name)
        chunks = Chunker.chunk(extraction.text, self._pipeline.chunk_size_words, document.id)
        metadata = ChunkMetadata(
            title=document.display_name,
            owner_id=document.owner_id,
            folder_id=document.folder_id,
            media_type=document.media_type,
            content_hash=document.content_hash,
            origin=document.origin or UploadOrigin(original_name=document.original_name),
        )
        return await self._index.upsert(document.id, chunks, namespace, metadata)

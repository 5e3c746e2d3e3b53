"""Tests for the upload boundary and document lifecycle."""

from pathlib import Path

import pytest
from sqlalchemy.exc import OperationalError

from conftest import build_services, make_zip, run_scenario, words
from services.vector_index.VectorIndex import IndexingFailed
from shared.models.ingest import IngestErrorKind, UploadItem
from shared.storage.exceptions import NotFound


class TestUploads:
    def test_mixed_batch_in_order(self, services):
        """Documents and archives in one batch give one outcome each, in order."""

        async def scenario(s):
            return await s.ingest_service.ingest_uploads([
                UploadItem(content=b"first doc", original_filename="one.txt"),
                UploadItem(content=make_zip({"x/two.txt": b"second doc"}), original_filename="bundle.zip",
                           declared_media_type="application/zip"),
                UploadItem(content=b"third doc", original_filename="three.md"),
            ], "rep-1")

        outcomes = run_scenario(services, scenario)
        assert [(o.filename, o.type, o.outcome) for o in outcomes] == [
            ("one.txt", "document", "created"),
            ("bundle.zip", "archive", "created"),
            ("three.md", "document", "created"),
        ]
        assert len(outcomes[1].archive_summary.documents_created) == 1

    def test_document_fields(self, services):
        """Created documents carry hashes, media type and stored bytes."""

        async def scenario(s):
            return await s.ingest_service.ingest_uploads(
                [UploadItem(content=words(1000).encode(), original_filename="Guide.txt",
                            declared_media_type="application/octet-stream")], "rep-1")

        [outcome] = run_scenario(services, scenario)
        doc = outcome.document
        assert doc.media_type == "text/plain"
        assert doc.byte_size == len(words(1000).encode())
        assert len(doc.content_hash) == 64
        assert Path(doc.storage_path).read_bytes() == words(1000).encode()
        # 1000 words at the default 800 per chunk
        assert services.rag_client.points and len(services.rag_client.points) == 2

    def test_oversize_upload(self, tmp_path):
        """Files above UPLOAD_MAX_BYTES are rejected per file."""
        services = build_services(tmp_path, UPLOAD_MAX_BYTES=10)

        async def scenario(s):
            return await s.ingest_service.ingest_uploads([
                UploadItem(content=b"way more than ten bytes", original_filename="big.txt"),
                UploadItem(content=b"small", original_filename="small.txt"),
            ], "rep-1")

        big, small = run_scenario(services, scenario)
        assert big.outcome == "error"
        assert big.error.kind == IngestErrorKind.OVERSIZE
        assert small.outcome == "created"

    def test_unsupported_format(self, services):
        """Unsupported files are skipped with an error."""

        async def scenario(s):
            return await s.ingest_service.ingest_uploads(
                [UploadItem(content=b"\x7fELF", original_filename="tool.bin")], "rep-1")

        [outcome] = run_scenario(services, scenario)
        assert outcome.outcome == "error"
        assert outcome.error.kind == IngestErrorKind.UNSUPPORTED_FORMAT

    def test_degraded_extraction_keeps_document(self, services):
        """An unreadable PDF is stored without chunks and flagged."""

        async def scenario(s):
            return await s.ingest_service.ingest_uploads(
                [UploadItem(content=b"%PDF-1.4 broken", original_filename="scan.pdf")], "rep-1")

        [outcome] = run_scenario(services, scenario)
        assert outcome.outcome == "created"
        assert services.rag_client.points == {}

    def test_unknown_folder(self, services):
        """A target folder that does not exist is an error outcome."""

        async def scenario(s):
            return await s.ingest_service.ingest_uploads(
                [UploadItem(content=b"text", original_filename="a.txt", target_folder_id="missing")], "rep-1")

        [outcome] = run_scenario(services, scenario)
        assert outcome.outcome == "error"

    def test_archive_of_only_errors(self, services):
        """An unreadable archive is an error outcome with its summary."""

        async def scenario(s):
            return await s.ingest_service.ingest_uploads(
                [UploadItem(content=b"garbage", original_filename="broken.zip")], "rep-1")

        [outcome] = run_scenario(services, scenario)
        assert outcome.type == "archive"
        assert outcome.outcome == "error"
        assert outcome.archive_summary.errors


class TestIndexingFailure:
    def test_document_kept_when_indexing_fails(self, services):
        """Indexing failures still persist the document and report the error."""

        async def scenario(s):
            s.embed_client.fail = True
            [outcome] = await s.ingest_service.ingest_uploads(
                [UploadItem(content=b"merchant services overview", original_filename="overview.txt")], "rep-1")
            stored = await s.document_store.get(outcome.document.id)
            return outcome, stored

        outcome, stored = run_scenario(services, scenario)
        assert outcome.outcome == "created"
        assert outcome.error.kind == IngestErrorKind.INDEXING_FAILED
        assert outcome.error.document_id == stored.id

    def test_reindex_after_recovery(self, services):
        """Reindexing after the backend recovers makes the document searchable."""

        async def scenario(s):
            s.embed_client.fail = True
            [outcome] = await s.ingest_service.ingest_uploads(
                [UploadItem(content=b"merchant services overview", original_filename="overview.txt")], "rep-1")
            s.embed_client.fail = False
            first = await s.ingest_service.reindex_document(outcome.document.id)
            second = await s.ingest_service.reindex_document(outcome.document.id)
            return first, second, await s.vector_index.count(outcome.document.id)

        first, second, count = run_scenario(services, scenario)
        assert first == second == count == 1


class TestDelete:
    def test_soft_delete_drops_chunks(self, services):
        """Soft delete deactivates the row and removes its chunks."""

        async def scenario(s):
            [outcome] = await s.ingest_service.ingest_uploads(
                [UploadItem(content=b"to be removed", original_filename="old.txt")], "rep-1")
            deleted = await s.ingest_service.delete_document(outcome.document.id)
            return deleted, await s.vector_index.count(outcome.document.id)

        deleted, count = run_scenario(services, scenario)
        assert deleted.is_active is False
        assert count == 0

    def test_hard_delete_removes_row_and_file(self, services):
        """Hard delete removes the row and the stored bytes."""

        async def scenario(s):
            [outcome] = await s.ingest_service.ingest_uploads(
                [UploadItem(content=b"gone for good", original_filename="gone.txt")], "rep-1")
            await s.ingest_service.delete_document(outcome.document.id, hard=True)
            with pytest.raises(NotFound):
                await s.document_store.get(outcome.document.id)
            return outcome.document

        document = run_scenario(services, scenario)
        assert not Path(document.storage_path).exists()

    def test_delete_unknown(self, services):
        """Deleting an unknown id raises NotFound."""

        async def scenario(s):
            with pytest.raises(NotFound):
                await s.ingest_service.delete_document("nope")

        run_scenario(services, scenario)

    def test_delete_keeps_row_when_index_down(self, services):
        """A failing index delete leaves the document untouched."""

        async def scenario(s):
            [outcome] = await s.ingest_service.ingest_uploads(
                [UploadItem(content=b"stays", original_filename="stays.txt")], "rep-1")
            s.rag_client.fail_writes = True
            with pytest.raises(IndexingFailed):
                await s.ingest_service.delete_document(outcome.document.id)
            return await s.document_store.get(outcome.document.id)

        assert run_scenario(services, scenario).is_active


class TestFolderOwnership:
    def test_upload_into_foreign_folder_rejected(self, services):
        """Uploading into another owner's folder is a storage error and writes nothing."""

        async def scenario(s):
            private, _ = await s.folder_store.get_or_create("rep-1", "Private")
            [outcome] = await s.ingest_service.ingest_uploads(
                [UploadItem(content=b"planted text", original_filename="plant.txt", target_folder_id=private.id)], "rep-2")
            return outcome, await s.document_store.list_by_folder(private.id)

        outcome, docs = run_scenario(services, scenario)
        assert outcome.outcome == "error"
        assert outcome.error.kind == IngestErrorKind.STORAGE_FAILED
        assert docs == []
        assert services.rag_client.points == {}

    def test_archive_into_foreign_folder_rejected(self, services):
        """An archive aimed at another owner's folder creates no folders or documents."""

        async def scenario(s):
            private, _ = await s.folder_store.get_or_create("rep-1", "Private")
            [outcome] = await s.ingest_service.ingest_uploads([UploadItem(
                content=make_zip({"rates/a.txt": b"rate a"}),
                original_filename="bundle.zip",
                target_folder_id=private.id,
            )], "rep-2")
            return outcome

        outcome = run_scenario(services, scenario)
        assert outcome.type == "archive"
        assert outcome.outcome == "error"
        assert outcome.error.kind == IngestErrorKind.STORAGE_FAILED
        assert outcome.archive_summary.folders_created == []
        assert outcome.archive_summary.documents_created == []


class TestUnexpectedFailures:
    def test_database_error_stays_with_its_file(self, services):
        """A database error on one file becomes that file's error outcome."""

        async def scenario(s):
            original_check = s.duplicate_guard.check

            async def flaky_check(content, filename, owner_id):
                if filename == "locked.txt":
                    raise OperationalError("SELECT documents", {}, Exception("database is locked"))
                return await original_check(content, filename, owner_id)

            s.duplicate_guard.check = flaky_check
            return await s.ingest_service.ingest_uploads([
                UploadItem(content=b"first doc", original_filename="one.txt"),
                UploadItem(content=b"second doc", original_filename="locked.txt"),
                UploadItem(content=b"third doc", original_filename="three.txt"),
            ], "rep-1")

        outcomes = run_scenario(services, scenario)
        assert [o.outcome for o in outcomes] == ["created", "error", "created"]
        assert outcomes[1].error.kind == IngestErrorKind.STORAGE_FAILED
        assert outcomes[1].error.path == "locked.txt"


class TestReindexProvenance:
    def test_archive_origin_survives_reindex(self, services):
        """Reindexing keeps the archive provenance on every chunk."""

        async def scenario(s):
            summary = await s.archive_ingestor.ingest(
                make_zip({"docs/guide.txt": b"merchant onboarding guide"}), "rep-1", archive_name="bundle.zip")
            [document] = summary.documents_created
            stored = await s.document_store.get(document.id)
            await s.ingest_service.reindex_document(document.id)
            return stored

        stored = run_scenario(services, scenario)
        expected = {"kind": "archive", "archive_name": "bundle.zip", "entry_path": "docs/guide.txt"}
        assert stored.origin.model_dump() == expected
        [point] = services.rag_client.points.values()
        assert point["payload"]["origin"] == expected

    def test_upload_origin_recorded(self, services):
        """Standalone uploads record their original name as provenance."""

        async def scenario(s):
            [outcome] = await s.ingest_service.ingest_uploads(
                [UploadItem(content=b"rate sheet", original_filename="rates.txt")], "rep-1")
            return await s.document_store.get(outcome.document.id)

        stored = run_scenario(services, scenario)
        assert stored.origin.model_dump() == {"kind": "upload", "original_name": "rates.txt"}


class TestPipelineOrder:
    def test_size_checked_before_duplicates(self, services):
        """An oversize copy of a stored file is reported as oversize, not as a duplicate."""

        async def scenario(s):
            await s.pipeline.ingest(b"tiny rate sheet", "rates.txt", "rep-1")
            return await s.pipeline.ingest(b"tiny rate sheet", "rates-copy.txt", "rep-1", max_bytes=4)

        outcome = run_scenario(services, scenario)
        assert outcome.outcome == "error"
        assert outcome.error.kind == IngestErrorKind.OVERSIZE

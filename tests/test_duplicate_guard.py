"""Tests for content fingerprints and duplicate detection."""

import pytest

from conftest import run_scenario
from services.ingestion.DuplicateGuard import (
    compute_content_hash,
    compute_name_hash,
    name_similarity,
    normalize_filename,
)
from shared.models.ingest import UploadItem
from shared.storage.exceptions import DuplicateDetected


class TestFingerprints:
    def test_content_hash_deterministic(self):
        """Same bytes give the same hash, different bytes a different one."""
        assert compute_content_hash(b"rate sheet") == compute_content_hash(b"rate sheet")
        assert compute_content_hash(b"rate sheet") != compute_content_hash(b"rate sheet v2")
        assert len(compute_content_hash(b"")) == 64

    def test_filename_normalization(self):
        """Case, extension, directories and punctuation do not matter."""
        assert normalize_filename("Sales/Clover_Pricing-2024.PDF") == "clover pricing 2024"
        assert compute_name_hash("Clover Pricing 2024.pdf") == compute_name_hash("clover_pricing_2024.docx")

    def test_name_similarity(self):
        """Near-identical names score high, unrelated names low."""
        assert name_similarity("Clover Pricing 2024.pdf", "clover_pricing_2024 (1).pdf") >= 0.8
        assert name_similarity("Clover Pricing.pdf", "TSYS onboarding.docx") < 0.5


class TestDuplicateCheck:
    def test_reupload_is_duplicate_of_first(self, services):
        """Uploading the same bytes twice returns the first document's id."""

        async def scenario(s):
            item = UploadItem(content=b"Quantic POS supports archery shops.", original_filename="pos.txt")
            [first] = await s.ingest_service.ingest_uploads([item], "rep-1")
            [second] = await s.ingest_service.ingest_uploads([item], "rep-2")
            return first, second

        first, second = run_scenario(services, scenario)
        assert first.outcome == "created"
        assert second.outcome == "duplicate"
        assert second.document.id == first.document.id

    def test_duplicate_ignores_filename(self, services):
        """Identical content under another name is still a duplicate."""

        async def scenario(s):
            await s.ingest_service.ingest_uploads([UploadItem(content=b"same bytes", original_filename="a.txt")], "rep-1")
            return await s.ingest_service.check_duplicate(b"same bytes", "totally-different.txt", "rep-1")

        result = run_scenario(services, scenario)
        assert result.is_duplicate
        assert result.matched_document.original_name == "a.txt"

    def test_similar_names_reported_not_blocked(self, services):
        """A similarly named file with new content is created, with a warning."""

        async def scenario(s):
            await s.ingest_service.ingest_uploads(
                [UploadItem(content=b"old pricing", original_filename="Clover Pricing 2024.txt")], "rep-1")
            return await s.ingest_service.ingest_uploads(
                [UploadItem(content=b"new pricing", original_filename="clover_pricing_2024 (1).txt")], "rep-1")

        [outcome] = run_scenario(services, scenario)
        assert outcome.outcome == "created"
        assert [d.original_name for d in outcome.similar_documents] == ["Clover Pricing 2024.txt"]

    def test_soft_delete_frees_content(self, services):
        """After a soft delete the same bytes can be uploaded again."""

        async def scenario(s):
            item = UploadItem(content=b"brochure text", original_filename="brochure.txt")
            [first] = await s.ingest_service.ingest_uploads([item], "rep-1")
            await s.ingest_service.delete_document(first.document.id)
            [again] = await s.ingest_service.ingest_uploads([item], "rep-1")
            return first, again

        first, again = run_scenario(services, scenario)
        assert again.outcome == "created"
        assert again.document.id != first.document.id


class TestStorageConstraint:
    def test_second_active_row_raises_duplicate(self, services):
        """The unique index rejects a second active row with the same hash."""

        async def scenario(s):
            [first] = await s.ingest_service.ingest_uploads(
                [UploadItem(content=b"race bytes", original_filename="race.txt")], "rep-1")
            clone = first.document.model_copy(update={"id": "other-id"})
            with pytest.raises(DuplicateDetected) as info:
                await s.document_store.create(clone)
            return first, info.value

        first, error = run_scenario(services, scenario)
        assert error.existing.id == first.document.id

    def test_lost_race_becomes_duplicate_outcome(self, services, monkeypatch):
        """When the check misses a concurrent insert, the outcome is still a duplicate."""
        original_check = services.duplicate_guard.check

        async def racing_check(content, filename, owner_id):
            result = await original_check(content, filename, owner_id)
            return result.model_copy(update={"is_duplicate": False, "matched_document": None})

        async def scenario(s):
            item = UploadItem(content=b"racing upload " * 20, original_filename="race.txt")
            [first] = await s.ingest_service.ingest_uploads([item], "rep-1")
            monkeypatch.setattr(s.duplicate_guard, "check", racing_check)
            [second] = await s.ingest_service.ingest_uploads([item], "rep-2")
            return first, second

        first, second = run_scenario(services, scenario)
        assert second.outcome == "duplicate"
        assert second.document.id == first.document.id
        # index entries of the losing upload were dropped
        doc_ids = {p["payload"]["document_id"] for p in services.rag_client.points.values()}
        assert doc_ids == {first.document.id}

"""Zip archive expansion into the folder tree.

Each entry's directory path becomes nested folders below the target folder
and each file entry goes through the single-document pipeline. A bad entry
is recorded in the summary and the walk continues with the next one.
"""

import io
import zipfile
import zlib
from pathlib import PurePosixPath

from shared.helper.HelperConfig import HelperConfig
from shared.models.document import ArchiveOrigin
from shared.models.ingest import ArchiveSummary, IngestError, IngestErrorKind
from shared.storage.FolderStore import FolderStore
from shared.storage.exceptions import NotFound
from services.ingestion.DocumentPipeline import DocumentPipeline

ARCHIVE_EXTENSIONS = (".zip",)
ARCHIVE_MEDIA_TYPES = ("application/zip", "application/x-zip-compressed", "multipart/x-zip")

# OS metadata that archivers add next to real content
_JUNK_DIRS = {"__MACOSX"}
_JUNK_FILES = {".DS_Store", "Thumbs.db", "desktop.ini"}


def is_archive(filename: str, media_type: str | None = None) -> bool:
    if media_type and media_type.split(";", 1)[0].strip().lower() in ARCHIVE_MEDIA_TYPES:
        return True
    return PurePosixPath(filename).suffix.lower() in ARCHIVE_EXTENSIONS


def split_entry_path(name: str) -> tuple[list[str], str]:
    """Split a zip entry name into (directory parts, filename).

    Empty, ``.`` and ``..`` segments are dropped so a crafted entry cannot
    climb above the target folder.
    """
    parts = [p for p in name.replace("\\", "/").split("/") if p not in ("", ".", "..")]
    if name.endswith("/"):
        return parts, ""
    if not parts:
        return [], ""
    return parts[:-1], parts[-1]


def is_junk(dirs: list[str], filename: str) -> bool:
    if any(d in _JUNK_DIRS for d in dirs):
        return True
    return filename in _JUNK_FILES or filename.startswith("._")


class ArchiveIngestor:
    def __init__(self, helper_config: HelperConfig, pipeline: DocumentPipeline, folder_store: FolderStore) -> None:
        self.logging = helper_config.get_logger()
        self._pipeline = pipeline
        self._folders = folder_store
        self.max_entry_bytes = int(helper_config.get_number_val("ARCHIVE_MAX_ENTRY_BYTES", default=50 * 1024 * 1024))

    async def ingest(
        self,
        archive_bytes: bytes,
        owner_id: str,
        target_folder_id: str | None = None,
        archive_name: str = "archive.zip",
    ) -> ArchiveSummary:
        """Expand an archive into folders and documents.

        Args:
            archive_bytes (bytes): The zip file content.
            owner_id (str): Owner of every created folder and document.
            target_folder_id (str | None): Folder the archive's top level lands in.
            archive_name (str): Original archive filename, kept as chunk provenance.

        Returns:
            ArchiveSummary: Counts plus the created folders, created documents,
                skipped duplicates and per-entry errors. Never raises for bad
                entries or an unreadable archive.
        """
        summary = ArchiveSummary()
        if target_folder_id is not None:
            try:
                await self._folders.get_owned(target_folder_id, owner_id)
            except NotFound as exc:
                summary.errors.append(IngestError(kind=IngestErrorKind.STORAGE_FAILED, path=archive_name, message=str(exc)))
                return summary

        try:
            zf = zipfile.ZipFile(io.BytesIO(archive_bytes))
        except (zipfile.BadZipFile, zipfile.LargeZipFile, ValueError) as exc:
            self.logging.error("Cannot open archive '%s': %s", archive_name, exc)
            summary.errors.append(IngestError(kind=IngestErrorKind.UNSUPPORTED_FORMAT, path=archive_name, message=f"unreadable archive: {exc}"))
            return summary

        # per-run cache of resolved directory paths
        folder_cache: dict[tuple[str, ...], str | None] = {(): target_folder_id}

        with zf:
            for info in zf.infolist():
                dirs, filename = split_entry_path(info.filename)
                if is_junk(dirs, filename):
                    continue

                try:
                    folder_id = await self._resolve_folder(owner_id, dirs, folder_cache, summary)
                except (NotFound, ValueError) as exc:
                    summary.errors.append(IngestError(kind=IngestErrorKind.STORAGE_FAILED, path=info.filename, message=str(exc)))
                    continue
                except Exception as exc:
                    self.logging.exception("Cannot create folders for '%s' in '%s': %s", info.filename, archive_name, exc)
                    summary.errors.append(IngestError(kind=IngestErrorKind.STORAGE_FAILED, path=info.filename, message=str(exc)))
                    continue

                if info.is_dir() or not filename:
                    continue

                if is_archive(filename):
                    summary.errors.append(IngestError(kind=IngestErrorKind.UNSUPPORTED_FORMAT, path=info.filename, message="nested archives are not expanded"))
                    continue
                if info.file_size > self.max_entry_bytes:
                    summary.errors.append(IngestError(
                        kind=IngestErrorKind.OVERSIZE,
                        path=info.filename,
                        message=f"{info.file_size} bytes exceeds entry limit of {self.max_entry_bytes} bytes",
                    ))
                    continue

                try:
                    content = zf.read(info)
                except (zipfile.BadZipFile, zlib.error, NotImplementedError, RuntimeError, EOFError) as exc:
                    # CRC mismatch, unsupported compression or encrypted entry
                    self.logging.warning("Skipping corrupt entry '%s' in '%s': %s", info.filename, archive_name, exc)
                    summary.errors.append(IngestError(kind=IngestErrorKind.UNSUPPORTED_FORMAT, path=info.filename, message=f"unreadable entry: {exc}"))
                    continue
                summary.extracted_count += 1

                try:
                    outcome = await self._pipeline.ingest(
                        content,
                        filename,
                        owner_id,
                        folder_id=folder_id,
                        origin=ArchiveOrigin(archive_name=archive_name, entry_path=info.filename),
                        max_bytes=self.max_entry_bytes,
                    )
                except Exception as exc:
                    self.logging.exception("Entry '%s' of '%s' failed: %s", info.filename, archive_name, exc)
                    summary.errors.append(IngestError(kind=IngestErrorKind.STORAGE_FAILED, path=info.filename, message=str(exc)))
                    continue
                if outcome.error is not None:
                    summary.errors.append(outcome.error.model_copy(update={"path": info.filename}))
                if outcome.outcome == "created":
                    summary.documents_created.append(outcome.document)
                elif outcome.outcome == "duplicate":
                    summary.duplicates.append(outcome.document)

        self.logging.info(
            "Archive '%s': %d extracted, %d folder(s) created, %d document(s) created, %d duplicate(s), %d error(s).",
            archive_name, summary.extracted_count, len(summary.folders_created),
            len(summary.documents_created), len(summary.duplicates), len(summary.errors),
        )
        return summary

    async def _resolve_folder(
        self,
        owner_id: str,
        dirs: list[str],
        cache: dict[tuple[str, ...], str | None],
        summary: ArchiveSummary,
    ) -> str | None:
        """Folder id for a directory path, creating missing levels."""
        key = tuple(dirs)
        if key in cache:
            return cache[key]
        parent_id = await self._resolve_folder(owner_id, dirs[:-1], cache, summary)
        folder, created = await self._folders.get_or_create(owner_id, dirs[-1], parent_id)
        if created:
            summary.folders_created.append(folder)
        cache[key] = folder.id
        return folder.id

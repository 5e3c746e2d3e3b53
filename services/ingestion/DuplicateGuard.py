"""Identity and similarity fingerprints for incoming files.

The guard only reports. It never deletes or blocks; the caller decides
whether to abort, and the storage-level unique index stays the final
authority when two identical uploads race.
"""

import hashlib
import re
from difflib import SequenceMatcher
from pathlib import PurePosixPath

from shared.helper.HelperConfig import HelperConfig
from shared.models.ingest import DuplicateCheckResult
from shared.storage.DocumentStore import DocumentStore


def compute_content_hash(content: bytes) -> str:
    return hashlib.sha256(content).hexdigest()


def name_tokens(filename: str) -> list[str]:
    """Lowercased filename tokens without directory or extension."""
    stem = PurePosixPath(filename.replace("\\", "/")).name
    if "." in stem.strip("."):
        stem = stem.rsplit(".", 1)[0]
    return re.findall(r"[a-z0-9]+", stem.lower())


def normalize_filename(filename: str) -> str:
    return " ".join(name_tokens(filename))


def compute_name_hash(filename: str) -> str:
    return hashlib.sha256(normalize_filename(filename).encode("utf-8")).hexdigest()


def name_similarity(a: str, b: str) -> float:
    """Token-level similarity ratio of two filenames, 0.0 to 1.0."""
    tokens_a, tokens_b = name_tokens(a), name_tokens(b)
    if not tokens_a and not tokens_b:
        return 1.0
    return SequenceMatcher(None, tokens_a, tokens_b, autojunk=False).ratio()


class DuplicateGuard:
    def __init__(self, helper_config: HelperConfig, document_store: DocumentStore) -> None:
        self.logging = helper_config.get_logger()
        self._documents = document_store
        self._threshold = float(helper_config.get_ranged_val("NAME_SIMILARITY_THRESHOLD", 0.0, 1.0, default=0.8))
        self._candidate_limit = int(helper_config.get_number_val("NAME_SIMILARITY_CANDIDATES", default=200))

    async def check(self, content: bytes, filename: str, owner_id: str) -> DuplicateCheckResult:
        """Fingerprint an incoming file and compare it against active documents.

        Args:
            content (bytes): The full file content.
            filename (str): Original filename, used for the similarity pass.
            owner_id (str): Uploader; their recent documents widen the candidate set.

        Returns:
            DuplicateCheckResult: ``is_duplicate`` with the matched document when
                identical bytes are already stored, plus any similarly named
                documents as a non-blocking warning.
        """
        content_hash = compute_content_hash(content)
        name_hash = compute_name_hash(filename)

        matched = await self._documents.get_active_by_content_hash(content_hash)
        if matched is not None:
            self.logging.info(
                "Duplicate upload '%s': identical to document id=%s ('%s').",
                filename, matched.id, matched.display_name,
            )

        candidates = {d.id: d for d in await self._documents.list_by_name_hash(name_hash)}
        for doc in await self._documents.list_recent_by_owner(owner_id, limit=self._candidate_limit):
            candidates.setdefault(doc.id, doc)
        if matched is not None:
            candidates.pop(matched.id, None)

        similar = [
            doc for doc in candidates.values()
            if name_similarity(filename, doc.original_name) >= self._threshold
        ]
        if similar:
            self.logging.info("Upload '%s' resembles %d existing document(s).", filename, len(similar))

        return DuplicateCheckResult(
            is_duplicate=matched is not None,
            matched_document=matched,
            similar_documents=similar,
            content_hash=content_hash,
            name_hash=name_hash,
        )

"""Namespace-scoped chunk index on top of a RAG backend and an embed client.

Every point carries its folder namespace, and every query and delete is
filtered by it, so a query scoped to one folder never sees another's chunks.
"""

import uuid

from pydantic import BaseModel

from shared.clients.embed.EmbedClientInterface import EmbedClientInterface
from shared.clients.rag.RAGClientInterface import RAGClientInterface
from shared.clients.rag.models.VectorPoint import VectorPoint
from shared.helper.HelperConfig import HelperConfig
from shared.models.document import Chunk, ChunkOrigin
from shared.models.search import VectorHit

# payload fields used in filters, indexed as keywords
FILTER_FIELDS = ("namespace", "document_id", "owner_id")


class ChunkMetadata(BaseModel):
    """Document-level fields copied onto every chunk payload."""

    title: str
    owner_id: str
    folder_id: str | None = None
    media_type: str | None = None
    content_hash: str | None = None
    origin: ChunkOrigin | None = None


class IndexingFailed(Exception):
    """The embed or vector backend rejected an index operation."""


def make_point_id(chunk_id: str) -> str:
    """Deterministic UUID5 so re-indexing a chunk overwrites rather than duplicates."""
    return str(uuid.uuid5(uuid.NAMESPACE_OID, chunk_id))


def match_value(key: str, value) -> dict:
    return {"key": key, "match": {"value": value}}


def match_any(key: str, values: list) -> dict:
    return {"key": key, "match": {"any": list(values)}}


class VectorIndex:
    def __init__(
        self,
        helper_config: HelperConfig,
        rag_client: RAGClientInterface,
        embed_client: EmbedClientInterface,
    ) -> None:
        self.logging = helper_config.get_logger()
        self._rag = rag_client
        self._embed = embed_client
        self._upsert_batch_size = int(helper_config.get_number_val("UPSERT_BATCH_SIZE", default=100))

    async def ensure_collection(self) -> None:
        """Create the collection sized for the embed model, plus filter indexes."""
        if await self._rag.do_existence_check():
            return
        vector_size, distance = await self._embed.do_fetch_embedding_vector_size()
        await self._rag.do_create_collection(vector_size=vector_size, distance=distance)
        for field in FILTER_FIELDS:
            await self._rag.do_create_payload_index(field)
        self.logging.info("Created vector collection (size=%d, distance=%s).", vector_size, distance)

    ##########################################
    ################ WRITES ##################
    ##########################################

    async def upsert(self, document_id: str, chunks: list[Chunk], namespace: str, metadata: ChunkMetadata) -> int:
        """Replace the indexed chunk set of a document.

        Prior entries of the document are removed first, whatever namespace
        they were written under, so calling this twice with the same chunks
        leaves exactly one copy. An empty ``chunks`` list just clears the
        document from the index.

        Returns:
            int: Number of points written.

        Raises:
            IndexingFailed: If embedding, delete or upsert fails.
        """
        if not namespace:
            raise ValueError("namespace is required")
        for c in chunks:
            if c.document_id != document_id:
                raise ValueError(f"chunk '{c.id}' does not belong to document '{document_id}'")

        try:
            vectors = await self._embed.do_embed([c.text for c in chunks]) if chunks else []
        except Exception as exc:
            self.logging.error("Embedding failed for document id=%s: %s", document_id, exc)
            raise IndexingFailed(f"embedding failed: {exc}") from exc

        points: list[dict] = []
        for c, vector in zip(chunks, vectors):
            payload = VectorPoint(
                namespace=namespace,
                document_id=document_id,
                chunk_id=c.id,
                chunk_index=c.chunk_index,
                chunk_text=c.text,
                token_count=c.token_count,
                **metadata.model_dump(exclude={"origin"}),
                origin=metadata.origin,
            )
            points.append({
                "id": make_point_id(c.id),
                "vector": vector,
                "payload": payload.model_dump(mode="json"),
            })

        try:
            await self._rag.do_delete_points_by_filter([match_value("document_id", document_id)])
            for batch_start in range(0, len(points), self._upsert_batch_size):
                await self._rag.do_upsert_points(points[batch_start: batch_start + self._upsert_batch_size])
        except Exception as exc:
            self.logging.error("Vector upsert failed for document id=%s: %s", document_id, exc)
            raise IndexingFailed(f"vector upsert failed: {exc}") from exc

        self.logging.info("Indexed document id=%s: %d chunk(s) in '%s'.", document_id, len(points), namespace)
        return len(points)

    async def delete_document(self, document_id: str) -> None:
        try:
            await self._rag.do_delete_points_by_filter([match_value("document_id", document_id)])
        except Exception as exc:
            raise IndexingFailed(f"vector delete failed: {exc}") from exc
        self.logging.info("Removed indexed chunks of document id=%s.", document_id)

    ##########################################
    ################ READS ###################
    ##########################################

    async def count(self, document_id: str) -> int:
        return await self._rag.do_count([match_value("document_id", document_id)])

    async def query(self, namespaces: list[str] | str, text: str, k: int = 5) -> list[VectorHit]:
        """Top-``k`` chunks for ``text``, restricted to ``namespaces``, best first.

        An empty namespace list matches nothing rather than everything.
        """
        if isinstance(namespaces, str):
            namespaces = [namespaces]
        namespaces = [ns for ns in dict.fromkeys(namespaces) if ns]
        if not namespaces or not text.strip() or k <= 0:
            return []

        vector = (await self._embed.do_embed(text))[0]
        result = await self._rag.do_search(vector, [match_any("namespace", namespaces)], limit=k)

        hits: list[VectorHit] = []
        for point in result.result:
            payload = point.get("payload") or {}
            # backend filter is trusted, but never hand out a foreign namespace
            if payload.get("namespace") not in namespaces:
                continue
            hits.append(VectorHit(
                chunk_id=payload.get("chunk_id", ""),
                document_id=payload.get("document_id", ""),
                score=float(point.get("score", 0.0)),
                text=payload.get("chunk_text"),
                title=payload.get("title"),
                namespace=payload["namespace"],
                chunk_index=int(payload.get("chunk_index", 0)),
            ))
        hits.sort(key=lambda h: h.score, reverse=True)
        return hits[:k]

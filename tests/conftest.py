"""Shared pytest configuration: in-process fakes for the external backends."""

import asyncio
import io
import logging
import math
import re
import zipfile
import zlib
from pathlib import Path

import httpx
import pytest

from server.core.AppServices import AppServices
from shared.clients.rag.models.SearchResult import SearchResult
from shared.helper.HelperConfig import HelperConfig
from shared.models.search import WebAnswer

VECTOR_SIZE = 64


def make_config(tmp_path: Path, **overrides) -> HelperConfig:
    """HelperConfig over an in-memory database and a temporary upload dir."""
    values = {
        "DATABASE_URL": "sqlite+aiosqlite://",
        "UPLOAD_DIR": str(tmp_path / "uploads"),
        "APP_API_KEY": "test-key",
    }
    values.update({k.upper(): str(v) for k, v in overrides.items()})
    return HelperConfig(logger=logging.getLogger("knowledge_bridge.tests"), overrides=values)


def embed_text(text: str) -> list[float]:
    """Hashed bag-of-words vector, L2-normalised. Same words, same vector."""
    vector = [0.0] * VECTOR_SIZE
    for token in re.findall(r"[a-z0-9]+", text.lower()):
        vector[zlib.crc32(token.encode()) % VECTOR_SIZE] += 1.0
    norm = math.sqrt(sum(v * v for v in vector))
    return [v / norm for v in vector] if norm else vector


def _matches(payload: dict, filters: list[dict]) -> bool:
    for condition in filters:
        value = payload.get(condition["key"])
        match = condition["match"]
        if "value" in match and value != match["value"]:
            return False
        if "any" in match and value not in match["any"]:
            return False
    return True


class FakeClientBase:
    """Lifecycle methods shared by all fakes."""

    client_type = "fake"

    def __init__(self):
        self.booted = False

    async def boot(self) -> None:
        self.booted = True

    async def close(self) -> None:
        self.booted = False

    async def do_healthcheck(self) -> httpx.Response:
        return httpx.Response(200)

    def get_client_type(self) -> str:
        return self.client_type


class FakeRAGClient(FakeClientBase):
    """Vector backend holding points in a dict, with cosine scoring."""

    client_type = "rag"

    def __init__(self):
        super().__init__()
        self.points: dict[str, dict] = {}
        self.collection_exists = False
        self.vector_size = None
        self.payload_indexes: list[str] = []
        self.fail_writes = False
        self.upsert_calls = 0

    async def do_existence_check(self) -> bool:
        return self.collection_exists

    async def do_create_collection(self, vector_size: int = 768, distance: str = "Cosine"):
        self.collection_exists = True
        self.vector_size = vector_size

    async def do_create_payload_index(self, field_name: str):
        self.payload_indexes.append(field_name)

    async def do_upsert_points(self, points: list[dict]):
        if self.fail_writes:
            raise httpx.ConnectError("vector backend down")
        self.upsert_calls += 1
        for point in points:
            self.points[point["id"]] = point

    async def do_delete_points_by_filter(self, filters: list[dict]) -> None:
        if not filters:
            raise ValueError("Refusing to delete points with an empty filter.")
        if self.fail_writes:
            raise httpx.ConnectError("vector backend down")
        for point_id in [pid for pid, p in self.points.items() if _matches(p["payload"], filters)]:
            del self.points[point_id]

    async def do_search(self, vector: list[float], filters: list[dict], limit: int) -> SearchResult:
        scored = []
        for point in self.points.values():
            if not _matches(point["payload"], filters):
                continue
            score = sum(a * b for a, b in zip(vector, point["vector"]))
            scored.append({"id": point["id"], "score": score, "payload": point["payload"]})
        scored.sort(key=lambda p: p["score"], reverse=True)
        return SearchResult(result=scored[:limit])

    async def do_count(self, filters: list[dict]) -> int:
        return sum(1 for p in self.points.values() if _matches(p["payload"], filters))


class FakeEmbedClient(FakeClientBase):
    client_type = "embed"

    def __init__(self):
        super().__init__()
        self.fail = False
        self.calls = 0

    async def do_fetch_embedding_vector_size(self):
        return VECTOR_SIZE, "Cosine"

    async def do_embed(self, texts):
        if self.fail:
            raise httpx.ConnectError("embedding backend down")
        self.calls += 1
        texts = [texts] if isinstance(texts, str) else texts
        return [embed_text(t) for t in texts]


class FakeWebClient(FakeClientBase):
    client_type = "web"

    def __init__(self, text: str = "Web answer.", citations: list[str] | None = None):
        super().__init__()
        self.text = text
        self.citations = citations if citations is not None else ["https://example.com/source"]
        self.fail = False
        self.queries: list[str] = []

    async def do_search(self, query: str) -> WebAnswer:
        self.queries.append(query)
        if self.fail:
            raise httpx.ConnectError("web search down")
        return WebAnswer(text=self.text, citations=self.citations)


def build_services(tmp_path: Path, **overrides) -> AppServices:
    """AppServices over fakes and a fresh in-memory database."""
    return AppServices(
        make_config(tmp_path, **overrides),
        rag_client=FakeRAGClient(),
        embed_client=FakeEmbedClient(),
        web_client=FakeWebClient(),
    )


def run_scenario(services: AppServices, scenario):
    """Boot ``services``, await ``scenario(services)`` and close, in one event loop."""

    async def _main():
        await services.boot()
        try:
            return await scenario(services)
        finally:
            await services.close()

    return asyncio.run(_main())


def make_zip(entries: dict[str, bytes], compression: int = zipfile.ZIP_STORED) -> bytes:
    """Zip archive with the given entries; names ending in '/' become directories."""
    buffer = io.BytesIO()
    with zipfile.ZipFile(buffer, "w", compression=compression) as zf:
        for name, content in entries.items():
            if name.endswith("/"):
                zf.writestr(zipfile.ZipInfo(name), b"")
            else:
                zf.writestr(name, content)
    return buffer.getvalue()


def words(count: int, prefix: str = "word") -> str:
    return " ".join(f"{prefix}{i}" for i in range(count))


@pytest.fixture
def services(tmp_path: Path) -> AppServices:
    return build_services(tmp_path)

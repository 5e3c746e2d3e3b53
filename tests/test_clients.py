"""Tests for the HTTP collaborator clients against a mocked transport."""

import asyncio
import json
import logging

import httpx
import pytest

from shared.clients.embed.ollama.EmbedClientOllama import EmbedClientOllama
from shared.clients.rag.RAGClientManager import RAGClientManager
from shared.clients.rag.qdrant.RAGClientQdrant import RAGClientQdrant
from shared.clients.web.WebClientManager import WebClientManager
from shared.clients.web.perplexity.WebClientPerplexity import WebClientPerplexity
from shared.helper.HelperConfig import HelperConfig


def config(**overrides) -> HelperConfig:
    return HelperConfig(logger=logging.getLogger("tests"), overrides=overrides)


def mount(client, handler, requests):
    """Swap the client's transport for a recording mock."""

    def recording(request: httpx.Request) -> httpx.Response:
        requests.append(request)
        return handler(request)

    client._client = httpx.AsyncClient(transport=httpx.MockTransport(recording))


class TestQdrant:
    def test_search_sends_must_filter(self):
        """Searches wrap conditions in a must filter and parse scored points."""
        client = RAGClientQdrant(config(RAG_QDRANT_BASE_URL="http://qdrant:6333"))
        requests = []

        def handler(request):
            return httpx.Response(200, json={"result": [{"id": "p1", "score": 0.9, "payload": {"namespace": "ns"}}], "status": "ok", "time": 0.01})

        async def scenario():
            mount(client, handler, requests)
            return await client.do_search([0.1, 0.2], [{"key": "namespace", "match": {"any": ["ns"]}}], 5)

        result = asyncio.run(scenario())
        body = json.loads(requests[0].content)
        assert requests[0].url.path == "/collections/knowledge_chunks/points/search"
        assert body["filter"] == {"must": [{"key": "namespace", "match": {"any": ["ns"]}}]}
        assert body["limit"] == 5
        assert result.result[0]["score"] == 0.9

    def test_delete_refuses_empty_filter(self):
        """Deleting without a filter would wipe the collection and is refused."""
        client = RAGClientQdrant(config(RAG_QDRANT_BASE_URL="http://qdrant:6333"))
        with pytest.raises(ValueError):
            asyncio.run(client.do_delete_points_by_filter([]))

    def test_error_status_raises(self):
        """Non-2xx responses raise when raise_on_error is set."""
        client = RAGClientQdrant(config(RAG_QDRANT_BASE_URL="http://qdrant:6333"))

        async def scenario():
            mount(client, lambda r: httpx.Response(500, text="boom"), [])
            await client.do_count([{"key": "document_id", "match": {"value": "d"}}])

        with pytest.raises(httpx.HTTPStatusError):
            asyncio.run(scenario())

    def test_request_before_boot(self):
        """Requests on an unbooted client fail fast."""
        client = RAGClientQdrant(config(RAG_QDRANT_BASE_URL="http://qdrant:6333"))
        with pytest.raises(RuntimeError):
            asyncio.run(client.do_existence_check())

    def test_missing_base_url(self):
        """Construction fails without the required base URL."""
        with pytest.raises(ValueError):
            RAGClientQdrant(config())


class TestOllama:
    def test_embed_batches_and_truncates(self):
        """Texts are truncated to the model limit and sent in batches."""
        client = EmbedClientOllama(config(EMBED_OLLAMA_BASE_URL="http://ollama:11434", EMBED_BATCH_SIZE="2", EMBED_MODEL_MAX_CHARS="5"))
        requests = []

        def handler(request):
            texts = json.loads(request.content)["input"]
            return httpx.Response(200, json={"embeddings": [[float(len(t))] for t in texts]})

        async def scenario():
            mount(client, handler, requests)
            return await client.do_embed(["a", "bb", "cccccccc"])

        vectors = asyncio.run(scenario())
        assert vectors == [[1.0], [2.0], [5.0]]
        assert len(requests) == 2

    def test_vector_size_from_model_info(self):
        """The embedding length is read from the model details."""
        client = EmbedClientOllama(config(EMBED_OLLAMA_BASE_URL="http://ollama:11434"))
        assert client.extract_vector_size_from_model_info({"model_info": {"nomic-bert.embedding_length": 768}}) == 768


class TestPerplexity:
    def test_payload(self):
        """The payload carries the sales system prompt and recency filter."""
        client = WebClientPerplexity(config(WEB_PERPLEXITY_API_KEY="pplx"))
        payload = client.get_search_payload("best POS for gyms")
        assert payload["messages"][1] == {"role": "user", "content": "best POS for gyms"}
        assert "merchant services" in payload["messages"][0]["content"]
        assert payload["max_tokens"] == 500
        assert payload["search_recency_filter"] == "month"

    def test_search_returns_answer_and_citations(self):
        """Answer text and citations are extracted from the response."""
        client = WebClientPerplexity(config(WEB_PERPLEXITY_API_KEY="pplx"))
        requests = []

        def handler(request):
            return httpx.Response(200, json={
                "choices": [{"message": {"content": "Clover works well."}}],
                "citations": ["https://clover.com"],
            })

        async def scenario():
            mount(client, handler, requests)
            return await client.do_search("best POS")

        answer = asyncio.run(scenario())
        assert answer.text == "Clover works well."
        assert answer.citations == ["https://clover.com"]
        assert requests[0].headers["Authorization"] == "Bearer pplx"

    def test_empty_answer_rejected(self):
        """A response without choices is an error."""
        client = WebClientPerplexity(config(WEB_PERPLEXITY_API_KEY="pplx"))
        with pytest.raises(ValueError):
            client.extract_answer({"choices": []})


class TestManagers:
    def test_unknown_engine(self):
        """An unknown engine name is a configuration error."""
        with pytest.raises(ValueError):
            RAGClientManager(config(RAG_ENGINE="nosuchdb"))

    def test_web_disabled(self):
        """WEB_ENGINE=none disables web search."""
        assert WebClientManager(config(WEB_ENGINE="none")).get_client() is None

    def test_default_engines(self):
        """Qdrant is the default vector backend."""
        manager = RAGClientManager(config(RAG_QDRANT_BASE_URL="http://qdrant:6333"))
        assert manager.get_client().get_engine_name() == "qdrant"

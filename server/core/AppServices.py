"""Wiring of clients, stores and services for one running process."""

import httpx

from shared.clients.embed.EmbedClientInterface import EmbedClientInterface
from shared.clients.embed.EmbedClientManager import EmbedClientManager
from shared.clients.rag.RAGClientInterface import RAGClientInterface
from shared.clients.rag.RAGClientManager import RAGClientManager
from shared.clients.web.WebClientInterface import WebClientInterface
from shared.clients.web.WebClientManager import WebClientManager
from shared.helper.HelperConfig import HelperConfig
from shared.storage.Database import Database
from shared.storage.DocumentStore import DocumentStore
from shared.storage.FAQStore import FAQStore
from shared.storage.FileStore import FileStore
from shared.storage.FolderStore import FolderStore
from shared.storage.WebSearchLogStore import WebSearchLogStore
from services.ingestion.ArchiveIngestor import ArchiveIngestor
from services.ingestion.ContentNormalizer import ContentNormalizer
from services.ingestion.DocumentPipeline import DocumentPipeline
from services.ingestion.DuplicateGuard import DuplicateGuard
from services.ingestion.IngestService import IngestService
from services.retrieval.RetrievalRouter import RetrievalRouter
from services.vector_index.VectorIndex import VectorIndex


class AppServices:
    def __init__(
        self,
        helper_config: HelperConfig,
        rag_client: RAGClientInterface,
        embed_client: EmbedClientInterface,
        web_client: WebClientInterface | None,
        database: Database | None = None,
    ) -> None:
        self.helper_config = helper_config
        self.logging = helper_config.get_logger()
        self.rag_client = rag_client
        self.embed_client = embed_client
        self.web_client = web_client
        self.database = database or Database(helper_config)

        self.document_store = DocumentStore(helper_config, self.database)
        self.folder_store = FolderStore(helper_config, self.database)
        self.faq_store = FAQStore(helper_config, self.database)
        self.web_log_store = WebSearchLogStore(helper_config, self.database)
        self.file_store = FileStore(helper_config)

        self.vector_index = VectorIndex(helper_config, rag_client, embed_client)
        self.duplicate_guard = DuplicateGuard(helper_config, self.document_store)
        self.normalizer = ContentNormalizer(helper_config)
        self.pipeline = DocumentPipeline(
            helper_config,
            duplicate_guard=self.duplicate_guard,
            normalizer=self.normalizer,
            vector_index=self.vector_index,
            document_store=self.document_store,
            folder_store=self.folder_store,
            file_store=self.file_store,
        )
        self.archive_ingestor = ArchiveIngestor(helper_config, self.pipeline, self.folder_store)
        self.ingest_service = IngestService(
            helper_config,
            pipeline=self.pipeline,
            archive_ingestor=self.archive_ingestor,
            duplicate_guard=self.duplicate_guard,
            normalizer=self.normalizer,
            vector_index=self.vector_index,
            document_store=self.document_store,
            folder_store=self.folder_store,
            file_store=self.file_store,
        )
        self.retrieval_router = RetrievalRouter(
            helper_config,
            faq_store=self.faq_store,
            vector_index=self.vector_index,
            folder_store=self.folder_store,
            web_client=web_client,
            web_log_store=self.web_log_store,
        )

    @classmethod
    def from_config(cls, helper_config: HelperConfig) -> "AppServices":
        """Build with the engines selected by RAG_ENGINE, EMBED_ENGINE and WEB_ENGINE."""
        return cls(
            helper_config,
            rag_client=RAGClientManager(helper_config=helper_config).get_client(),
            embed_client=EmbedClientManager(helper_config=helper_config).get_client(),
            web_client=WebClientManager(helper_config=helper_config).get_client(),
        )

    def _clients(self) -> list:
        return [c for c in (self.rag_client, self.embed_client, self.web_client) if c is not None]

    async def boot(self) -> None:
        """Open the database and clients, check connectivity, ensure the collection.

        Vector and embedding backends are required; an unreachable web
        search backend only disables the last retrieval tier.

        Raises:
            Exception: If the vector or embedding backend is not reachable.
        """
        await self.database.boot()
        self.logging.info("Booting all clients...")
        for client in self._clients():
            await client.boot()

        for client in (self.rag_client, self.embed_client):
            result: httpx.Response = await client.do_healthcheck()
            if not result.is_success:
                raise Exception(
                    f"{client.get_client_type().upper()} client '{client.__class__.__name__}' is not reachable "
                    f"(status {result.status_code})."
                )
        if self.web_client is not None:
            try:
                result = await self.web_client.do_healthcheck()
                if not result.is_success:
                    self.logging.warning("Web search backend answered %d. Web fallback may fail.", result.status_code)
            except httpx.HTTPError as exc:
                self.logging.warning("Web search backend not reachable: %s. Web fallback may fail.", exc)

        await self.vector_index.ensure_collection()
        self.logging.info("All clients booted successfully.")

    async def close(self) -> None:
        for client in self._clients():
            await client.close()
        await self.database.close()
        self.logging.info("All clients closed.")

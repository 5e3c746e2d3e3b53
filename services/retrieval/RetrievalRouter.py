"""Tiered answer routing: curated FAQ, then indexed documents, then web search.

The first source whose best score reaches the caller's sensitivity answers.
Web search has no score and is always the last resort, so a query is never
left without a result; every web answer is logged for admin review.
"""

from shared.clients.web.WebClientInterface import WebClientInterface
from shared.helper.HelperConfig import HelperConfig
from shared.models.search import (
    ConversationTurn,
    FAQMatch,
    QueryRequest,
    QueryResponse,
    SearchResultItem,
    SearchSource,
    VectorHit,
)
from shared.storage.FAQStore import FAQStore
from shared.storage.FolderStore import SHARED_NAMESPACE, FolderStore
from shared.storage.WebSearchLogStore import WebSearchLogStore
from services.vector_index.VectorIndex import VectorIndex

REASON_BELOW_THRESHOLD = "below-threshold"
REASON_SOURCE_UNAVAILABLE = "source-unavailable"
REASON_SEARCH_ORDER = "search-order"
REASON_WEB_UNAVAILABLE = "web-unavailable"


def trim_conversation(history: list[ConversationTurn], max_turns: int) -> list[ConversationTurn]:
    """Most recent ``max_turns`` turns, oldest first."""
    if max_turns <= 0:
        return []
    return list(history[-max_turns:])


class RetrievalRouter:
    def __init__(
        self,
        helper_config: HelperConfig,
        faq_store: FAQStore | None,
        vector_index: VectorIndex | None,
        folder_store: FolderStore,
        web_client: WebClientInterface | None,
        web_log_store: WebSearchLogStore,
    ) -> None:
        self.logging = helper_config.get_logger()
        self._faq = faq_store
        self._index = vector_index
        self._folders = folder_store
        self._web = web_client
        self._web_log = web_log_store
        self.top_k = int(helper_config.get_number_val("SEARCH_TOP_K", default=5))
        self.candidate_k = int(helper_config.get_number_val("SEARCH_CANDIDATE_K", default=20))
        self.max_turns = int(helper_config.get_number_val("CONVERSATION_MAX_TURNS", default=6))
        self.default_sensitivity = float(helper_config.get_ranged_val("SEARCH_SENSITIVITY", 0.3, 1.0, default=0.75))
        self.default_order = [
            SearchSource(value)
            for value in helper_config.get_choice_list_val(
                "SEARCH_ORDER",
                choices=[source.value for source in SearchSource],
                default=[SearchSource.FAQ.value, SearchSource.DOCUMENTS.value, SearchSource.WEB.value],
            )
        ]

    async def answer(self, request: QueryRequest) -> QueryResponse:
        """Route ``request`` through its search order and return the first confident answer.

        Args:
            request (QueryRequest): Query text, caller, order, sensitivity and scope.

        Returns:
            QueryResponse: Results with their source. Falls through to web
                search when no internal source reaches the sensitivity.
        """
        order = list(self.default_order if request.search_order is None else request.search_order)
        if request.sensitivity is None:
            request = request.model_copy(update={"sensitivity": self.default_sensitivity})
        context = trim_conversation(request.conversation, self.max_turns)
        consulted = 0

        for source in order:
            if source == SearchSource.WEB:
                break
            search = {
                SearchSource.FAQ: self._search_faq if self._faq is not None else None,
                SearchSource.DOCUMENTS: self._search_documents if self._index is not None else None,
            }[source]
            if search is None:
                continue
            try:
                results = await search(request)
            except Exception as exc:
                self.logging.error("Source '%s' failed for query %r, skipping: %s", source.value, request.query[:80], exc)
                continue
            consulted += 1
            if results:
                self.logging.info("Query %r answered from %s (best score %.2f).", request.query[:80], source.value, results[0].score)
                return QueryResponse(query=request.query, source=source, results=results, context=context)

        if order and order[0] == SearchSource.WEB:
            reason = REASON_SEARCH_ORDER
        elif consulted:
            reason = REASON_BELOW_THRESHOLD
        else:
            reason = REASON_SOURCE_UNAVAILABLE
        return await self._search_web(request, reason, context)

    ##########################################
    ################ SOURCES #################
    ##########################################

    async def _search_faq(self, request: QueryRequest) -> list[SearchResultItem]:
        matches: list[FAQMatch] = await self._faq.search(request.query, category=request.category, limit=self.top_k)
        if not matches or matches[0].confidence < request.sensitivity:
            return []
        return [
            SearchResultItem(
                source=SearchSource.FAQ,
                content=m.answer,
                score=m.confidence,
                citation=f"FAQ: {m.question}",
            )
            for m in matches
            if m.confidence >= request.sensitivity
        ]

    async def _search_documents(self, request: QueryRequest) -> list[SearchResultItem]:
        namespaces = await self.resolve_namespaces(request.owner_id, request.folder_ids)
        hits: list[VectorHit] = await self._index.query(namespaces, request.query, self.candidate_k)
        if not hits or hits[0].score < request.sensitivity:
            return []

        # best chunk per document
        best: dict[str, VectorHit] = {}
        for hit in hits:
            if hit.score < request.sensitivity:
                break
            best.setdefault(hit.document_id, hit)
        return [
            SearchResultItem(
                source=SearchSource.DOCUMENTS,
                content=hit.text or "",
                score=hit.score,
                citation=hit.title,
                document_id=hit.document_id,
                chunk_id=hit.chunk_id,
            )
            for hit in list(best.values())[: self.top_k]
        ]

    async def resolve_namespaces(self, owner_id: str, folder_ids: list[str]) -> list[str]:
        """Namespaces a query may read: the given folders of the owner with their
        subfolders, or, when none are given, every folder of the owner plus the
        shared root. Folders of other owners are ignored."""
        if folder_ids:
            return await self._folders.list_descendant_namespaces(folder_ids, owner_id=owner_id)
        return [SHARED_NAMESPACE, *await self._folders.list_owner_namespaces(owner_id)]

    async def _search_web(self, request: QueryRequest, reason: str, context: list[ConversationTurn]) -> QueryResponse:
        if self._web is None:
            self.logging.warning("No web search configured; query %r left unanswered.", request.query[:80])
            return QueryResponse(query=request.query, source=SearchSource.WEB, results=[], reason=REASON_WEB_UNAVAILABLE, context=context)
        try:
            answer = await self._web.do_search(request.query)
        except Exception as exc:
            self.logging.error("Web search failed for query %r: %s", request.query[:80], exc)
            return QueryResponse(query=request.query, source=SearchSource.WEB, results=[], reason=REASON_WEB_UNAVAILABLE, context=context)

        try:
            await self._web_log.record(
                query=request.query,
                response=answer.text,
                reason=reason,
                citations=answer.citations,
                owner_id=request.owner_id,
            )
        except Exception as exc:
            self.logging.error("Could not log web search for review: %s", exc)

        item = SearchResultItem(
            source=SearchSource.WEB,
            content=answer.text,
            score=0.0,
            citation=", ".join(answer.citations) or None,
        )
        return QueryResponse(query=request.query, source=SearchSource.WEB, results=[item], reason=reason, context=context)

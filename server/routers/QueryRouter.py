from fastapi import APIRouter, Depends, Request

from server.dependencies.auth import verify_api_key
from shared.models.search import QueryRequest, QueryResponse

router = APIRouter(prefix="/query", tags=["query"])


@router.post("")
async def query_knowledge(
    request: Request,
    body: QueryRequest,
    _: None = Depends(verify_api_key),
) -> QueryResponse:
    """Answer a question from the FAQ, the indexed documents or the web.

    Args:
        request (Request): FastAPI request (provides app.state.services).
        body (QueryRequest): Query text, caller, search order and sensitivity.
        _ (None): Auth dependency result (unused).

    Returns:
        QueryResponse: Results with the source that produced them.
    """
    request.app.state.logging.info("Query received — owner_id=%s query=%r", body.owner_id, body.query[:80])
    return await request.app.state.services.retrieval_router.answer(body)

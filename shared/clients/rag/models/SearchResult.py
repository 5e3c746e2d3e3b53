from pydantic import BaseModel


class SearchResult(BaseModel):
    """Structured output of a similarity search against the RAG backend.

    Attributes:
        result: Scored points, best first. Each point is a dict with
                ``id``, ``score`` and ``payload`` keys.
        status: Backend status string (e.g. "ok").
        time:   Time taken by the backend to execute the request.
    """

    result: list[dict]
    status: str = "ok"
    time: float = 0

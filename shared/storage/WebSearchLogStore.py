"""Review log of queries that were answered from the web instead of internal knowledge."""

from sqlalchemy import select

from shared.helper.HelperConfig import HelperConfig
from shared.storage.Database import Database
from shared.storage.tables import WebSearchLogRow


class WebSearchLogStore:
    def __init__(self, helper_config: HelperConfig, database: Database) -> None:
        self.logging = helper_config.get_logger()
        self._db = database

    async def record(
        self,
        query: str,
        response: str,
        reason: str,
        citations: list[str] | None = None,
        owner_id: str | None = None,
    ) -> str:
        row = WebSearchLogRow(
            owner_id=owner_id,
            user_query=query,
            web_response=response,
            reason=reason,
            citations=list(citations or []),
        )
        async with self._db.session() as session:
            session.add(row)
            await session.commit()
        self.logging.info("Web search logged for review: %r (reason=%s)", query[:80], reason)
        return row.id

    async def list_unreviewed(self, limit: int = 50) -> list[dict]:
        async with self._db.session() as session:
            result = await session.execute(
                select(WebSearchLogRow)
                .where(WebSearchLogRow.admin_reviewed.is_(False))
                .order_by(WebSearchLogRow.created_at.desc())
                .limit(limit)
            )
            return [
                {
                    "id": r.id,
                    "owner_id": r.owner_id,
                    "user_query": r.user_query,
                    "web_response": r.web_response,
                    "reason": r.reason,
                    "citations": r.citations,
                    "created_at": r.created_at.isoformat() if r.created_at else None,
                }
                for r in result.scalars().all()
            ]

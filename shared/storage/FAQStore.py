"""Curated FAQ lookup.

Keyword search in two passes: SQL narrows the candidates with ILIKE on any
query keyword, then each candidate gets a confidence score equal to the
share of query keywords it covers.
"""

import re

from sqlalchemy import String, and_, cast, or_, select

from shared.helper.HelperConfig import HelperConfig
from shared.models.faq import FAQEntry
from shared.models.search import FAQMatch
from shared.storage.Database import Database
from shared.storage.tables import FAQEntryRow

_STOP_WORDS = {
    "the", "and", "for", "with", "from", "what", "which", "who", "how", "are", "is", "can",
    "does", "do", "you", "your", "our", "about", "any", "there", "this", "that", "have",
    "has", "was", "were", "will", "would", "should", "could", "into", "onto", "tell", "me",
    "please", "need", "want", "get", "give", "some", "all", "best", "good",
}


def _normalize_token(token: str) -> str:
    # crude plural folding, "options" and "option" should match
    if len(token) > 3 and token.endswith("s") and not token.endswith("ss"):
        return token[:-1]
    return token


def extract_keywords(text: str) -> list[str]:
    """Lowercased, de-pluralised keywords without stop words, in order.

    Words shorter than three letters are dropped unless written as an
    acronym ("AI", "QR").
    """
    if not text:
        return []
    keywords = []
    for word in re.findall(r"[A-Za-z0-9]+", text):
        lowered = word.lower()
        if lowered in _STOP_WORDS:
            continue
        if len(word) >= 3 or (len(word) == 2 and word.isupper()):
            keywords.append(_normalize_token(lowered))
    return list(dict.fromkeys(keywords))


def score_entry(keywords: list[str], entry: FAQEntry) -> float:
    """Fraction of ``keywords`` present in the entry's question, answer, category and tags."""
    if not keywords:
        return 0.0
    haystack = " ".join([entry.question, entry.answer, entry.category, " ".join(entry.tags)])
    tokens = {_normalize_token(w) for w in re.findall(r"[a-z0-9]+", haystack.lower())}
    hits = sum(1 for kw in keywords if kw in tokens)
    return hits / len(keywords)


class FAQStore:
    def __init__(self, helper_config: HelperConfig, database: Database) -> None:
        self.logging = helper_config.get_logger()
        self._db = database
        self._candidate_limit = int(helper_config.get_number_val("FAQ_CANDIDATE_LIMIT", default=200))

    async def add(self, entry: FAQEntry) -> FAQEntry:
        row = FAQEntryRow(**entry.model_dump(exclude={"id"}, exclude_none=True))
        async with self._db.session() as session:
            session.add(row)
            await session.commit()
        return FAQEntry.model_validate(row)

    async def search(
        self,
        query: str,
        category: str | None = None,
        tags: list[str] | None = None,
        limit: int = 5,
    ) -> list[FAQMatch]:
        """Score active FAQ entries against ``query``, best first.

        Ties on confidence are broken by priority, then by the shorter question.
        """
        keywords = extract_keywords(query)
        if not keywords:
            return []

        conditions = []
        for kw in keywords[:10]:
            pattern = f"%{kw}%"
            conditions.append(
                or_(
                    FAQEntryRow.question.ilike(pattern),
                    FAQEntryRow.answer.ilike(pattern),
                    FAQEntryRow.category.ilike(pattern),
                    # tags are a JSON list, matched on its serialized text
                    cast(FAQEntryRow.tags, String).ilike(pattern),
                )
            )
        filters = [FAQEntryRow.is_active.is_(True), or_(*conditions)]
        if category:
            filters.append(FAQEntryRow.category == category)

        async with self._db.session() as session:
            result = await session.execute(
                select(FAQEntryRow).where(and_(*filters)).limit(self._candidate_limit)
            )
            rows = list(result.scalars().all())

        wanted_tags = {t.lower() for t in (tags or [])}
        matches: list[FAQMatch] = []
        for row in rows:
            entry = FAQEntry.model_validate(row)
            if wanted_tags and not wanted_tags & {t.lower() for t in entry.tags}:
                continue
            confidence = score_entry(keywords, entry)
            if confidence <= 0:
                continue
            matches.append(FAQMatch(
                entry_id=entry.id,
                question=entry.question,
                answer=entry.answer,
                category=entry.category,
                confidence=confidence,
                priority=entry.priority,
            ))

        matches.sort(key=lambda m: (-m.confidence, -m.priority, len(m.question)))
        self.logging.debug("FAQ search for %r: %d candidate(s), %d scored.", query[:80], len(rows), len(matches))
        return matches[:limit]

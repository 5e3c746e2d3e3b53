from pydantic import BaseModel


class FAQEntry(BaseModel):
    """Curated question/answer pair. Maintained by the knowledge admins, read-only here."""

    id: str | None = None
    question: str
    answer: str
    category: str
    tags: list[str] = []
    priority: int = 0
    is_active: bool = True

    model_config = {"from_attributes": True}

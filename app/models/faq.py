"""Host-authored FAQ entries for a property."""
from datetime import datetime
from typing import Optional

from sqlmodel import Field, SQLModel

from app.models.conversation import utcnow


class PropertyFAQ(SQLModel, table=True):
    """
    A question/answer pair scoped to one property.

    Answers may contain bullet lines ("- ..." or "• ...").
    """
    __tablename__ = "property_faq"

    id: Optional[int] = Field(default=None, primary_key=True)
    property_id: str = Field(index=True, nullable=False)
    question: str = Field(max_length=60)
    answer: str = Field(max_length=400)
    created_at: datetime = Field(default_factory=utcnow)
    updated_at: datetime = Field(default_factory=utcnow)

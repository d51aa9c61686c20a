import enum
import uuid
from datetime import datetime

from sqlalchemy import String, Integer, Float, DateTime, Index
from sqlalchemy.orm import Mapped, mapped_column
from sqlalchemy.sql import func

from ..database import Base


class ContentSuggestionStatus(str, enum.Enum):
    PENDING = "pending"
    IN_PROGRESS = "in_progress"
    RESOLVED = "resolved"
    DISMISSED = "dismissed"


def normalize_term(term: str) -> str:
    """Casefolded, whitespace-collapsed form used to match search terms."""
    return " ".join(term.casefold().split())


def _normalized_term_default(context) -> str:
    return normalize_term(context.get_current_parameters()["term"])


class ContentSuggestion(Base):
    """Content-gap signal aggregated per search term that returned nothing."""

    __tablename__ = "content_suggestions"
    __table_args__ = (
        Index("idx_content_suggestions_status_priority", "status", "priority_score"),
        Index("uq_content_suggestions_normalized_term", "normalized_term", unique=True),
    )

    id: Mapped[str] = mapped_column(String, primary_key=True, default=lambda: str(uuid.uuid4()))
    term: Mapped[str] = mapped_column(String, nullable=False)
    normalized_term: Mapped[str] = mapped_column(
        String, nullable=False, default=_normalized_term_default
    )
    search_count: Mapped[int] = mapped_column(Integer, nullable=False, default=1)
    priority_score: Mapped[float] = mapped_column(Float, nullable=False, default=1.0)
    status: Mapped[str] = mapped_column(
        String(20), nullable=False, default=ContentSuggestionStatus.PENDING.value
    )
    last_searched_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now()
    )
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now()
    )

    def __repr__(self) -> str:
        return f"<ContentSuggestion(term={self.term!r}, search_count={self.search_count})>"

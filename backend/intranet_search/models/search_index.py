"""
Search index model holding one embedded row per searchable content item.

The table is a derived projection of the content tables: it is replaced
wholesale by every rebuild and ``content_id`` is intentionally not a foreign
key.
"""

import uuid
from datetime import datetime
from typing import List

from pgvector.sqlalchemy import Vector
from sqlalchemy import String, Text, DateTime, JSON, UniqueConstraint, Index
from sqlalchemy.orm import Mapped, mapped_column
from sqlalchemy.sql import func

from ..core.config import settings
from ..database import Base


# pgvector on PostgreSQL, a JSON list of floats everywhere else
EmbeddingType = Vector(settings.EMBEDDING_DIMENSIONS).with_variant(JSON(), "sqlite")


class SearchIndexEntry(Base):
    """One indexed content item with its embedding."""

    __tablename__ = "search_index"
    __table_args__ = (
        UniqueConstraint("content_type", "content_id", name="uq_search_index_content"),
        Index("idx_search_index_content_type", "content_type"),
    )

    id: Mapped[str] = mapped_column(String, primary_key=True, default=lambda: str(uuid.uuid4()))
    content_type: Mapped[str] = mapped_column(String(32), nullable=False)
    content_id: Mapped[str] = mapped_column(String, nullable=False)
    title: Mapped[str] = mapped_column(String(200), nullable=False, server_default="")
    content: Mapped[str] = mapped_column(Text, nullable=False, server_default="")
    embedding: Mapped[List[float]] = mapped_column(EmbeddingType, nullable=False)
    # "metadata" is reserved on declarative classes
    metadata_: Mapped[dict] = mapped_column("metadata", JSON, nullable=False, default=dict)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now()
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now(), onupdate=func.now()
    )

    def __repr__(self) -> str:
        return f"<SearchIndexEntry({self.content_type}/{self.content_id})>"

import uuid
from datetime import datetime

from sqlalchemy import String, Integer, Float, DateTime, JSON
from sqlalchemy.orm import Mapped, mapped_column
from sqlalchemy.sql import func

from ..database import Base


class SearchTrend(Base):
    """Persisted snapshot of an analytics report for one period."""

    __tablename__ = "search_trends"

    id: Mapped[str] = mapped_column(String, primary_key=True, default=lambda: str(uuid.uuid4()))
    period: Mapped[str] = mapped_column(String(20), nullable=False)
    period_start: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
    period_end: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
    top_queries: Mapped[list] = mapped_column(JSON, nullable=False, default=list)
    no_result_queries: Mapped[list] = mapped_column(JSON, nullable=False, default=list)
    avg_latency_ms: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    total_searches: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    success_rate: Mapped[float] = mapped_column(Float, nullable=False, default=0.0)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now()
    )

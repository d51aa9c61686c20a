from pydantic import BaseModel, Field, field_validator
from datetime import datetime
from typing import List, Optional


class AnalyticsRequest(BaseModel):
    period: str = Field(default="weekly", description="Label stored with the trend snapshot")
    start_date: Optional[datetime] = Field(default=None, description="Window start (default: 7 days ago)")
    end_date: Optional[datetime] = Field(default=None, description="Window end (default: now)")

    @field_validator('end_date')
    @classmethod
    def validate_end_after_start(cls, v, info):
        start = info.data.get('start_date')
        if v is not None and start is not None and v < start:
            raise ValueError('end_date must be after start_date')
        return v


class QueryCount(BaseModel):
    query: str
    count: int


class AnalyticsPeriod(BaseModel):
    type: str
    start: datetime
    end: datetime


class AnalyticsResponse(BaseModel):
    message: Optional[str] = None
    top_queries: List[QueryCount] = Field(default_factory=list)
    no_result_queries: List[QueryCount] = Field(default_factory=list)
    success_rate: float = 0.0
    avg_latency_ms: int = 0
    total_searches: int = 0
    insights: Optional[str] = None
    period: Optional[AnalyticsPeriod] = None


class ContentRecommendation(BaseModel):
    theme: str
    variations: List[str]
    search_count: int
    suggestion_ids: List[str]
    ai_recommendation: str


class ContentGapReport(BaseModel):
    success: bool = True
    message: Optional[str] = None
    total_gaps: int = 0
    recommendations: List[ContentRecommendation] = Field(default_factory=list)

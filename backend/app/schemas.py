from __future__ import annotations

from pydantic import BaseModel, ConfigDict, Field

from app.services.cache import CacheState


class PerformanceMetricRead(BaseModel):
	model_config = ConfigDict(from_attributes=True)

	endpoint: str
	timestamp: float
	duration: int = Field(ge=0)
	success: bool
	error: str | None = None


class MetricsSummary(BaseModel):
	endpoint: str | None = None
	call_count: int
	average_response_time_ms: float
	recent_call_count: int
	recent_failed_count: int


class SessionCacheStatus(BaseModel):
	cached: bool
	state: CacheState
	refresh_pending: bool

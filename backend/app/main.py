from __future__ import annotations

from contextlib import asynccontextmanager
import logging
from typing import Annotated, Any

from fastapi import Depends, FastAPI, HTTPException, Query, Response
from fastapi.responses import PlainTextResponse

from app.schemas import MetricsSummary, PerformanceMetricRead, SessionCacheStatus
from app.services.session import (
	NoCachedSessionError,
	SessionCacheManager,
	SessionEndpointProvider,
)
from app.settings import get_settings

settings = get_settings()
logger = logging.getLogger(__name__)


def build_session_cache() -> SessionCacheManager:
	provider = SessionEndpointProvider(
		settings.session_url_value(),
		timeout=settings.fetch_timeout_seconds,
		token=settings.session_token_value(),
	)
	return SessionCacheManager(
		provider=provider,
		fetch_timeout_seconds=settings.fetch_timeout_seconds,
	)


session_cache = build_session_cache()


def get_session_cache() -> SessionCacheManager:
	return session_cache


SessionCacheDependency = Annotated[SessionCacheManager, Depends(get_session_cache)]


@asynccontextmanager
async def lifespan(_: FastAPI):
	settings.validate_runtime()
	logger.info("Session cache fronting %s.", settings.session_url_value())
	yield


app = FastAPI(
	title="Session Cache API",
	version="0.1.0",
	lifespan=lifespan,
)


def _cache_control_header(manager: SessionCacheManager) -> str:
	max_age = int(manager.cache.cache_duration_seconds)
	stale_window = int(manager.cache.stale_window_seconds)
	return f"private, max-age={max_age}, stale-while-revalidate={stale_window}"


@app.get("/api/session")
async def read_session(
	response: Response,
	manager: SessionCacheDependency,
	force_refresh: bool = False,
) -> Any:
	try:
		session_data = await manager.get_session(force_refresh=force_refresh)
	except NoCachedSessionError as exc:
		raise HTTPException(status_code=502, detail=str(exc)) from exc

	response.headers["Cache-Control"] = _cache_control_header(manager)
	return session_data


@app.get("/api/session/status", response_model=SessionCacheStatus)
def read_session_status(manager: SessionCacheDependency) -> SessionCacheStatus:
	return SessionCacheStatus(
		cached=manager.is_cached(),
		state=manager.cache_state(),
		refresh_pending=manager.refresh_pending,
	)


@app.delete("/api/session/cache", status_code=204)
def clear_session_cache(manager: SessionCacheDependency) -> Response:
	manager.clear_cache()
	return Response(status_code=204)


@app.get("/api/metrics", response_model=list[PerformanceMetricRead])
def list_metrics(
	manager: SessionCacheDependency,
	endpoint: str | None = None,
) -> list[PerformanceMetricRead]:
	return [
		PerformanceMetricRead.model_validate(metric)
		for metric in manager.monitor.get_metrics(endpoint)
	]


@app.get("/api/metrics/summary", response_model=MetricsSummary)
def read_metrics_summary(
	manager: SessionCacheDependency,
	endpoint: str | None = None,
	minutes: Annotated[float, Query(gt=0)] = 5,
) -> MetricsSummary:
	monitor = manager.monitor
	recent_calls = [
		metric
		for metric in monitor.get_recent_calls(minutes)
		if endpoint is None or metric.endpoint == endpoint
	]
	return MetricsSummary(
		endpoint=endpoint,
		call_count=monitor.get_call_count(endpoint),
		average_response_time_ms=monitor.get_average_response_time(endpoint),
		recent_call_count=len(recent_calls),
		recent_failed_count=sum(1 for metric in recent_calls if not metric.success),
	)


@app.get("/api/metrics/report", response_class=PlainTextResponse)
def read_metrics_report(manager: SessionCacheDependency) -> str:
	return manager.monitor.generate_report()


@app.delete("/api/metrics", status_code=204)
def clear_metrics(manager: SessionCacheDependency) -> Response:
	manager.monitor.clear_metrics()
	return Response(status_code=204)

from __future__ import annotations

import asyncio
import logging
from time import monotonic
from typing import Any, Callable

import httpx

from app.services.cache import CacheState, TTLCache
from app.services.debounce import debounce_async
from app.services.performance import SESSION_ENDPOINT, PerformanceMonitor

CACHE_DURATION_SECONDS = 30.0
STALE_WINDOW_SECONDS = 60.0
REFRESH_DEBOUNCE_SECONDS = 1.0
FETCH_TIMEOUT_SECONDS = 10.0
SESSION_CACHE_KEY = "session"

logger = logging.getLogger(__name__)


class SessionFetchError(RuntimeError):
	"""Raised when the session endpoint cannot return a usable payload."""

	def __init__(self, message: str, status_code: int | None = None) -> None:
		super().__init__(message)
		self.status_code = status_code


class NoCachedSessionError(SessionFetchError):
	"""Raised when a session fetch fails and nothing was ever cached to fall back on."""


class SessionEndpointProvider:
	def __init__(
		self,
		url: str,
		timeout: float = FETCH_TIMEOUT_SECONDS,
		token: str | None = None,
		transport: httpx.AsyncBaseTransport | None = None,
	) -> None:
		self.url = url
		self.timeout = timeout
		self.token = token
		self.transport = transport

	async def fetch_session(self) -> httpx.Response:
		"""Request the current session; status handling is left to the caller."""
		headers = {"Content-Type": "application/json"}
		if self.token:
			headers["Authorization"] = f"Bearer {self.token}"

		try:
			async with httpx.AsyncClient(timeout=self.timeout, transport=self.transport) as client:
				return await client.get(self.url, headers=headers)
		except (httpx.HTTPError, httpx.InvalidURL) as exc:
			raise SessionFetchError(f"Session request failed: {exc}") from exc


class SessionCacheManager:
	"""Serve the current session from memory, revalidating it in the background when stale.

	Fresh entries are returned as-is. Stale entries are returned immediately while a
	debounced refresh runs. Expired or missing entries, and forced refreshes, wait for
	a refresh. Every refresh path shares one in-flight fetch.
	"""

	def __init__(
		self,
		provider: SessionEndpointProvider,
		cache: TTLCache[Any] | None = None,
		monitor: PerformanceMonitor | None = None,
		endpoint: str = SESSION_ENDPOINT,
		cache_key: str = SESSION_CACHE_KEY,
		cache_duration_seconds: float = CACHE_DURATION_SECONDS,
		stale_window_seconds: float = STALE_WINDOW_SECONDS,
		refresh_debounce_seconds: float = REFRESH_DEBOUNCE_SECONDS,
		fetch_timeout_seconds: float = FETCH_TIMEOUT_SECONDS,
		now: Callable[[], float] | None = None,
	) -> None:
		clock = now or monotonic
		self.provider = provider
		self.cache = cache or TTLCache[Any](
			cache_duration_seconds=cache_duration_seconds,
			stale_window_seconds=stale_window_seconds,
			now=clock,
		)
		self.monitor = monitor or PerformanceMonitor(session_endpoint=endpoint, now=clock)
		self.endpoint = endpoint
		self.cache_key = cache_key
		self.fetch_timeout_seconds = fetch_timeout_seconds
		self._refresh = debounce_async(self._refresh_session, refresh_debounce_seconds)

	@property
	def refresh_pending(self) -> bool:
		return self._refresh.pending

	async def get_session(self, force_refresh: bool = False) -> Any:
		entry = self.cache.get_entry(self.cache_key)
		state = self.cache.state(self.cache_key)

		if entry is not None and not force_refresh:
			if state == "fresh":
				logger.debug("Returning cached session data.")
				return entry.value

			if state == "stale":
				logger.debug("Serving stale session data while revalidating.")
				if not self._refresh.pending:
					self._refresh().add_done_callback(_log_background_failure)
				return entry.value

		return await asyncio.shield(self._refresh.run_now())

	def clear_cache(self) -> None:
		"""Drop the cached session; a refresh already in flight still completes."""
		self.cache.delete(self.cache_key)
		logger.info("Session cache cleared.")

	def is_cached(self) -> bool:
		return self.cache.state(self.cache_key) == "fresh"

	def cache_state(self) -> CacheState:
		return self.cache.state(self.cache_key)

	async def _refresh_session(self) -> Any:
		start_time = self.monitor.now()
		logger.info("Fetching fresh session data from %s.", self.endpoint)

		try:
			data = await self._fetch_payload()
		except SessionFetchError as exc:
			self.monitor.track_api_call(self.endpoint, start_time, False, str(exc))
			entry = self.cache.get_entry(self.cache_key)
			if entry is not None:
				logger.warning("Session fetch failed, returning last cached session: %s", exc)
				return entry.value
			raise NoCachedSessionError(str(exc), status_code=exc.status_code) from exc

		self.cache.set(self.cache_key, data)
		self.monitor.track_api_call(self.endpoint, start_time, True)
		logger.info("Session cache updated with fresh data.")
		return data

	async def _fetch_payload(self) -> Any:
		try:
			response = await asyncio.wait_for(
				self.provider.fetch_session(),
				timeout=self.fetch_timeout_seconds,
			)
		except SessionFetchError:
			raise
		except asyncio.TimeoutError as exc:
			raise SessionFetchError(
				f"Session fetch timed out after {self.fetch_timeout_seconds:g}s.",
			) from exc
		except Exception as exc:
			raise SessionFetchError(f"Session request failed: {exc}") from exc

		if not response.is_success:
			raise SessionFetchError(
				f"Session fetch failed: {response.status_code}",
				status_code=response.status_code,
			)

		try:
			return response.json()
		except Exception as exc:
			raise SessionFetchError(
				"Session endpoint returned an invalid JSON body.",
				status_code=response.status_code,
			) from exc


def _log_background_failure(future: asyncio.Future[Any]) -> None:
	if future.cancelled():
		return

	exc = future.exception()
	if exc is not None:
		logger.error("Background session refresh failed.", exc_info=exc)

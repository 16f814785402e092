from __future__ import annotations

from dataclasses import dataclass
from time import monotonic
from typing import Callable, Generic, Literal, TypeVar

CacheValue = TypeVar("CacheValue")
CacheState = Literal["fresh", "stale", "expired", "empty"]


@dataclass(slots=True, frozen=True)
class CacheEntry(Generic[CacheValue]):
	value: CacheValue
	fetched_at: float
	fresh_for: float

	@property
	def fresh_until(self) -> float:
		return self.fetched_at + self.fresh_for


class TTLCache(Generic[CacheValue]):
	"""Store values in-process with a fresh window followed by a stale-while-revalidate window.

	Entries past both windows stay in memory so callers can still fall back to them
	when a refresh fails.
	"""

	def __init__(
		self,
		cache_duration_seconds: float = 30.0,
		stale_window_seconds: float = 60.0,
		now: Callable[[], float] | None = None,
	) -> None:
		if cache_duration_seconds < 0 or stale_window_seconds < 0:
			raise ValueError("Cache durations cannot be negative.")

		self.cache_duration_seconds = cache_duration_seconds
		self.stale_window_seconds = stale_window_seconds
		self._entries: dict[str, CacheEntry[CacheValue]] = {}
		self._now = now or monotonic

	def get_entry(self, key: str) -> CacheEntry[CacheValue] | None:
		return self._entries.get(key)

	def state(self, key: str) -> CacheState:
		entry = self._entries.get(key)
		if entry is None:
			return "empty"

		now = self._now()
		if now < entry.fresh_until:
			return "fresh"
		if now < entry.fresh_until + self.stale_window_seconds:
			return "stale"
		return "expired"

	def get(self, key: str) -> CacheValue | None:
		if self.state(key) != "fresh":
			return None
		return self._entries[key].value

	def get_stale(self, key: str) -> CacheValue | None:
		entry = self._entries.get(key)
		if entry is None:
			return None
		return entry.value

	def set(self, key: str, value: CacheValue) -> CacheValue:
		self._entries[key] = CacheEntry(
			value=value,
			fetched_at=self._now(),
			fresh_for=self.cache_duration_seconds,
		)
		return value

	def delete(self, key: str) -> None:
		self._entries.pop(key, None)

	def clear(self) -> None:
		self._entries.clear()

from __future__ import annotations

from collections import deque
from dataclasses import dataclass
import logging
from time import monotonic
from typing import Callable

MAX_METRICS = 100
SLOW_CALL_THRESHOLD_MS = 1000
REPORT_WINDOW_MINUTES = 5
SESSION_ENDPOINT = "/api/auth/session"

logger = logging.getLogger(__name__)


@dataclass(slots=True, frozen=True)
class PerformanceMetric:
	endpoint: str
	timestamp: float
	duration: int
	success: bool
	error: str | None = None


class PerformanceMonitor:
	"""Keep the most recent API call outcomes in a bounded, oldest-first buffer."""

	def __init__(
		self,
		max_metrics: int = MAX_METRICS,
		session_endpoint: str = SESSION_ENDPOINT,
		now: Callable[[], float] | None = None,
	) -> None:
		if max_metrics <= 0:
			raise ValueError("max_metrics must be positive.")

		self.max_metrics = max_metrics
		self.session_endpoint = session_endpoint
		self.now = now or monotonic
		self._metrics: deque[PerformanceMetric] = deque(maxlen=max_metrics)

	def track_api_call(
		self,
		endpoint: str,
		start_time: float,
		success: bool,
		error: str | None = None,
	) -> PerformanceMetric:
		"""Record one call; ``start_time`` must come from the monitor's clock."""
		timestamp = self.now()
		duration = max(0, round((timestamp - start_time) * 1000))
		metric = PerformanceMetric(
			endpoint=endpoint,
			timestamp=timestamp,
			duration=duration,
			success=success,
			error=error,
		)
		self._metrics.append(metric)

		if duration > SLOW_CALL_THRESHOLD_MS:
			logger.warning("Slow API call detected: %s took %dms", endpoint, duration)
		if not success:
			logger.error("API call failed: %s - %s", endpoint, error)

		return metric

	def get_metrics(self, endpoint: str | None = None) -> list[PerformanceMetric]:
		if endpoint is None:
			return list(self._metrics)
		return [metric for metric in self._metrics if metric.endpoint == endpoint]

	def get_average_response_time(self, endpoint: str | None = None) -> float:
		return _average_duration(self.get_metrics(endpoint))

	def get_call_count(self, endpoint: str | None = None) -> int:
		return len(self.get_metrics(endpoint))

	def get_recent_calls(self, minutes: float = REPORT_WINDOW_MINUTES) -> list[PerformanceMetric]:
		cutoff = self.now() - minutes * 60
		return [metric for metric in self._metrics if metric.timestamp > cutoff]

	def clear_metrics(self) -> None:
		self._metrics.clear()

	def generate_report(self) -> str:
		recent_calls = self.get_recent_calls(REPORT_WINDOW_MINUTES)
		session_calls = [
			metric for metric in recent_calls if self.session_endpoint in metric.endpoint
		]
		failed_calls = [metric for metric in recent_calls if not metric.success]

		return "\n".join((
			f"Performance Report (Last {REPORT_WINDOW_MINUTES} minutes):",
			f"- Total API calls: {len(recent_calls)}",
			f"- Session API calls: {len(session_calls)}",
			f"- Average session response time: {_average_duration(session_calls):.2f}ms",
			f"- Failed calls: {len(failed_calls)}",
		))


def _average_duration(metrics: list[PerformanceMetric]) -> float:
	if not metrics:
		return 0
	return sum(metric.duration for metric in metrics) / len(metrics)

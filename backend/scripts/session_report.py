from __future__ import annotations

import argparse
import asyncio
from dataclasses import asdict
import json
import logging

from app.services.performance import SESSION_ENDPOINT, PerformanceMonitor
from app.services.session import (
	SessionCacheManager,
	SessionEndpointProvider,
)
from app.settings import get_settings

SEPARATOR = "=" * 50
SAMPLE_CALLS = (
	(SESSION_ENDPOINT, 150, True, None),
	(SESSION_ENDPOINT, 120, True, None),
	(SESSION_ENDPOINT, 180, True, None),
	(SESSION_ENDPOINT, 90, True, None),
	(SESSION_ENDPOINT, 200, False, "Network error"),
)


def replay_sample_calls(monitor: PerformanceMonitor) -> None:
	for index, (endpoint, duration_ms, success, error) in enumerate(SAMPLE_CALLS, start=1):
		start_time = monitor.now() - duration_ms / 1000
		monitor.track_api_call(endpoint, start_time, success, error)
		outcome = "SUCCESS" if success else "FAILED"
		print(f"Call {index}: {endpoint} - {duration_ms}ms - {outcome}")


async def exercise_session_cache(manager: SessionCacheManager, calls: int, force_refresh: bool) -> int:
	results = await asyncio.gather(
		*(manager.get_session(force_refresh=force_refresh) for _ in range(calls)),
		return_exceptions=True,
	)
	failures = [result for result in results if isinstance(result, Exception)]
	for failure in failures[:1]:
		print(f"Session lookup failed: {failure}")
	return len(results) - len(failures)


def print_report(monitor: PerformanceMonitor, as_json: bool) -> None:
	print(SEPARATOR)
	print("PERFORMANCE REPORT")
	print(SEPARATOR)
	print(monitor.generate_report())

	session_metrics = monitor.get_metrics(monitor.session_endpoint)
	print(SEPARATOR)
	print("DETAILED METRICS")
	print(SEPARATOR)
	print(f"Session API calls: {len(session_metrics)}")
	print(
		"Average response time: "
		f"{monitor.get_average_response_time(monitor.session_endpoint):.2f}ms",
	)
	print(f"Failed calls: {sum(1 for metric in session_metrics if not metric.success)}")

	if as_json:
		for metric in session_metrics:
			print(json.dumps(asdict(metric), ensure_ascii=False))


def main() -> None:
	parser = argparse.ArgumentParser(
		description="Exercise the session cache and print its performance report.",
	)
	parser.add_argument("--url", help="Session endpoint URL. Defaults to SESSION_CACHE_SESSION_URL.")
	parser.add_argument("--calls", type=int, default=10, help="Number of concurrent session lookups.")
	parser.add_argument("--force", action="store_true", help="Bypass fresh cache entries.")
	parser.add_argument(
		"--simulate",
		action="store_true",
		help="Replay fixed sample calls instead of contacting the session endpoint.",
	)
	parser.add_argument("--json", action="store_true", help="Print each session metric as JSON.")
	parser.add_argument("--verbose", action="store_true", help="Log cache decisions.")
	args = parser.parse_args()

	logging.basicConfig(level=logging.DEBUG if args.verbose else logging.WARNING)

	if args.simulate:
		monitor = PerformanceMonitor()
		replay_sample_calls(monitor)
		print_report(monitor, args.json)
		return

	settings = get_settings()
	provider = SessionEndpointProvider(
		args.url or settings.session_url_value(),
		timeout=settings.fetch_timeout_seconds,
		token=settings.session_token_value(),
	)
	manager = SessionCacheManager(provider=provider, fetch_timeout_seconds=settings.fetch_timeout_seconds)
	succeeded = asyncio.run(exercise_session_cache(manager, max(args.calls, 1), args.force))
	print(f"Resolved {succeeded}/{max(args.calls, 1)} lookups, cache state: {manager.cache_state()}")
	print_report(manager.monitor, args.json)


if __name__ == "__main__":
	main()

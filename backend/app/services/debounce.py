"""Timer-based debouncing and single-flight coalescing for asyncio callers."""

from __future__ import annotations

import asyncio
import inspect
from typing import Any, Awaitable, Callable, Generic, TypeVar

T = TypeVar("T")


class Debouncer:
	"""Run ``func`` once the calls have been quiet for ``wait_seconds``.

	Each call cancels the previously scheduled one, so only the last call of a
	burst executes, with that call's arguments. Nothing is returned to callers.
	"""

	def __init__(self, func: Callable[..., Any], wait_seconds: float) -> None:
		self._func = func
		self._wait_seconds = wait_seconds
		self._handle: asyncio.TimerHandle | None = None
		self._tasks: set[asyncio.Task[Any]] = set()

	@property
	def pending(self) -> bool:
		return self._handle is not None

	def __call__(self, *args: Any, **kwargs: Any) -> None:
		loop = asyncio.get_running_loop()
		self.cancel()
		self._handle = loop.call_later(self._wait_seconds, self._fire, args, kwargs)

	def cancel(self) -> None:
		if self._handle is not None:
			self._handle.cancel()
			self._handle = None

	def _fire(self, args: tuple[Any, ...], kwargs: dict[str, Any]) -> None:
		self._handle = None
		result = self._func(*args, **kwargs)
		if inspect.isawaitable(result):
			task = asyncio.ensure_future(result)
			self._tasks.add(task)
			task.add_done_callback(self._tasks.discard)


class SingleFlight(Generic[T]):
	"""Delay an async call and share one execution between overlapping callers.

	While a cycle is outstanding, whether still waiting on its timer or already
	running, every caller receives the same future. The cycle is cleared as soon
	as ``func`` settles, so the next call starts a new one.

	A cycle belongs to the event loop that created it. A caller on another loop
	abandons that cycle and starts a fresh one.
	"""

	def __init__(self, func: Callable[..., Awaitable[T]], wait_seconds: float) -> None:
		self._func = func
		self._wait_seconds = wait_seconds
		self._loop: asyncio.AbstractEventLoop | None = None
		self._future: asyncio.Future[T] | None = None
		self._handle: asyncio.TimerHandle | None = None
		self._task: asyncio.Task[None] | None = None

	@property
	def pending(self) -> bool:
		return self._future is not None and not self._owned_by_other_loop()

	def __call__(self, *args: Any, **kwargs: Any) -> asyncio.Future[T]:
		loop = asyncio.get_running_loop()
		self._abandon_foreign_cycle()
		if self._future is not None:
			return self._future

		self._loop = loop
		self._future = loop.create_future()
		self._handle = loop.call_later(self._wait_seconds, self._start, args, kwargs)
		return self._future

	def run_now(self, *args: Any, **kwargs: Any) -> asyncio.Future[T]:
		"""Join the outstanding cycle, skipping whatever is left of its delay."""
		loop = asyncio.get_running_loop()
		self._abandon_foreign_cycle()
		if self._future is None:
			self._loop = loop
			self._future = loop.create_future()
			self._start(args, kwargs)
		elif self._handle is not None:
			self._handle.cancel()
			self._start(args, kwargs)
		return self._future

	def _owned_by_other_loop(self) -> bool:
		try:
			loop = asyncio.get_running_loop()
		except RuntimeError:
			return self._loop is None or self._loop.is_closed()
		return loop is not self._loop

	def _abandon_foreign_cycle(self) -> None:
		if self._future is None or not self._owned_by_other_loop():
			return

		old_loop, future, handle = self._loop, self._future, self._handle
		self._handle = None
		self._release(future)
		if old_loop is not None and not old_loop.is_closed():
			if handle is not None:
				old_loop.call_soon_threadsafe(handle.cancel)
			old_loop.call_soon_threadsafe(future.cancel)

	def _start(self, args: tuple[Any, ...], kwargs: dict[str, Any]) -> None:
		self._handle = None
		self._task = asyncio.ensure_future(self._run(self._future, args, kwargs))

	async def _run(
		self,
		future: asyncio.Future[T],
		args: tuple[Any, ...],
		kwargs: dict[str, Any],
	) -> None:
		try:
			result = await self._func(*args, **kwargs)
		except asyncio.CancelledError:
			self._release(future)
			if not future.done():
				future.cancel()
			raise
		except Exception as exc:
			self._release(future)
			if not future.done():
				future.set_exception(exc)
		else:
			self._release(future)
			if not future.done():
				future.set_result(result)

	def _release(self, future: asyncio.Future[T]) -> None:
		if self._future is future:
			self._loop = None
			self._future = None
			self._task = None


def debounce(func: Callable[..., Any], wait_seconds: float) -> Debouncer:
	return Debouncer(func, wait_seconds)


def debounce_async(func: Callable[..., Awaitable[T]], wait_seconds: float) -> SingleFlight[T]:
	return SingleFlight(func, wait_seconds)

"""Utilities for running work after the HTTP response has been sent."""

from __future__ import annotations

import atexit
from concurrent.futures import Future, ThreadPoolExecutor
from contextvars import copy_context
from threading import Lock
from typing import Any, Callable

from structlog.contextvars import bind_contextvars, get_contextvars


class BackgroundScheduler:
    """Run deferred tasks on a thread pool, carrying structlog context along.

    Tasks are independent of each other and cannot be cancelled once
    scheduled. :meth:`shutdown` blocks until every scheduled task settles.
    """

    def __init__(self, *, max_workers: int = 4) -> None:
        self._executor = ThreadPoolExecutor(max_workers=max_workers, thread_name_prefix="relay-task")

    def schedule(
        self,
        func: Callable[..., Any],
        /,
        *args: Any,
        trace_id: str | None = None,
        **kwargs: Any,
    ) -> Future:
        """Submit *func* to the shared thread pool and return a Future."""

        context = copy_context()

        if trace_id is not None:
            existing_trace = context.run(lambda: get_contextvars().get("trace_id"))

            if existing_trace != trace_id:

                context.run(lambda: bind_contextvars(trace_id=trace_id))

        def runner() -> Any:
            return context.run(func, *args, **kwargs)

        return self._executor.submit(runner)

    def shutdown(self, *, wait: bool = True) -> None:
        self._executor.shutdown(wait=wait)


_default_scheduler: BackgroundScheduler | None = None
_default_lock = Lock()


def get_scheduler() -> BackgroundScheduler:
    """Return the process-wide scheduler, drained at interpreter exit."""

    global _default_scheduler
    with _default_lock:
        if _default_scheduler is None:
            _default_scheduler = BackgroundScheduler()
            atexit.register(_default_scheduler.shutdown)
        return _default_scheduler

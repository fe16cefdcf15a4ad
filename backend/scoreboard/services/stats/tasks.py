"""Background work: per-clock tick loops and best-effort fire-and-forget jobs."""

import threading
from typing import Callable, Dict

from flask import has_app_context

from scoreboard import socketio


def run_in_app_context(app, fn, *args):
    if has_app_context():
        return fn(*args)
    with app.app_context():
        return fn(*args)


class _TickHandle:
    def __init__(self, clock_id: str):
        self.clock_id = clock_id
        self.cancelled = False
        # set when schedule() is called again while this loop is alive
        self.renewed = False


class TickScheduler:
    """Registry of running tick loops keyed by clock id.

    ``schedule`` starts at most one loop per id. The loop calls tick_fn
    every ``interval`` seconds until it is cancelled or tick_fn returns
    False.
    """

    def __init__(self, app, interval: float = 1.0):
        self.app = app
        self.interval = interval
        self._guard = threading.Lock()
        self._handles: Dict[str, _TickHandle] = {}

    def is_active(self, clock_id: str) -> bool:
        with self._guard:
            return clock_id in self._handles

    def schedule(self, clock_id: str, tick_fn: Callable[[], bool]) -> bool:
        with self._guard:
            existing = self._handles.get(clock_id)
            if existing is not None:
                existing.renewed = True
                return False
            handle = self._handles[clock_id] = _TickHandle(clock_id)
        self.app.logger.info(f"[tick-schedule] clock={clock_id} interval={self.interval}s")
        socketio.start_background_task(self._loop, handle, tick_fn)
        return True

    def cancel(self, clock_id: str) -> bool:
        with self._guard:
            handle = self._handles.pop(clock_id, None)
        if handle is None:
            return False
        handle.cancelled = True
        self.app.logger.info(f"[tick-cancel] clock={clock_id}")
        return True

    def cancel_all(self) -> None:
        with self._guard:
            handles = list(self._handles.values())
            self._handles.clear()
        for handle in handles:
            handle.cancelled = True

    def _loop(self, handle: _TickHandle, tick_fn: Callable[[], bool]) -> None:
        try:
            while not handle.cancelled:
                socketio.sleep(self.interval)
                if handle.cancelled:
                    break
                try:
                    keep_going = run_in_app_context(self.app, tick_fn)
                except Exception:
                    self.app.logger.exception(f"[tick-error] clock={handle.clock_id}")
                    continue
                if keep_going:
                    continue
                with self._guard:
                    if handle.renewed and not handle.cancelled:
                        handle.renewed = False
                        continue
                    if self._handles.get(handle.clock_id) is handle:
                        del self._handles[handle.clock_id]
                    break
        finally:
            with self._guard:
                if self._handles.get(handle.clock_id) is handle:
                    del self._handles[handle.clock_id]


class BestEffortDispatcher:
    """Runs jobs whose failure must never reach the caller.

    Failures are logged and dropped, never retried. With ``inline`` the
    job runs before submit() returns.
    """

    def __init__(self, app, inline: bool = False):
        self.app = app
        self.inline = inline

    def submit(self, label: str, fn: Callable, *args) -> None:
        if self.inline:
            self._run(label, fn, args)
        else:
            socketio.start_background_task(self._run, label, fn, args)

    def _run(self, label, fn, args):
        try:
            run_in_app_context(self.app, fn, *args)
        except Exception as exc:
            self.app.logger.warning(f"[{label}-failed] {exc!r}")

"""Bounded per-submission status watchers.

After a document is opened for signing, a watcher asks the backend to
recompute that submission's status every ``interval`` seconds and stops by
itself after ``max_ticks`` ticks. At most one watcher runs per submission.
The registry belongs to a session and is torn down with it.
"""

from __future__ import annotations

import logging
import threading
from dataclasses import dataclass, field
from typing import Callable

logger = logging.getLogger("hrsign.watcher")

DEFAULT_INTERVAL = 10.0
DEFAULT_MAX_TICKS = 12


@dataclass
class _Watch:
    key: str
    stop: threading.Event = field(default_factory=threading.Event)
    done: threading.Event = field(default_factory=threading.Event)
    ticks: int = 0
    thread: threading.Thread | None = None


class SubmissionWatchers:
    def __init__(self, on_tick: Callable[[str], None],
                 interval: float = DEFAULT_INTERVAL,
                 max_ticks: int = DEFAULT_MAX_TICKS):
        self._on_tick = on_tick
        self.interval = interval
        self.max_ticks = max_ticks
        self._lock = threading.Lock()
        self._active: dict[str, _Watch] = {}

    def __enter__(self) -> SubmissionWatchers:
        return self

    def __exit__(self, *exc) -> None:
        self.stop_all()

    def start(self, local_id: int | str) -> bool:
        """Start watching ``local_id``. Returns False if already watched."""
        key = str(local_id)
        with self._lock:
            if key in self._active:
                return False
            watch = _Watch(key)
            watch.thread = threading.Thread(
                target=self._run, args=(watch,), name=f"hrsign-watch-{key}", daemon=True,
            )
            self._active[key] = watch
        logger.debug("watching submission %s (%d x %.1fs)", key, self.max_ticks, self.interval)
        watch.thread.start()
        return True

    def stop(self, local_id: int | str) -> None:
        with self._lock:
            watch = self._active.pop(str(local_id), None)
        if watch:
            watch.stop.set()

    def stop_all(self) -> None:
        with self._lock:
            watches = list(self._active.values())
            self._active.clear()
        for watch in watches:
            watch.stop.set()
        if watches:
            logger.debug("stopped %d watcher(s)", len(watches))

    def is_watching(self, local_id: int | str) -> bool:
        with self._lock:
            return str(local_id) in self._active

    def active_ids(self) -> list[str]:
        with self._lock:
            return sorted(self._active)

    def wait(self, local_id: int | str, timeout: float | None = None) -> bool:
        """Block until the watcher for ``local_id`` finishes. True if it did."""
        with self._lock:
            watch = self._active.get(str(local_id))
        if watch is None:
            return True
        return watch.done.wait(timeout)

    def _run(self, watch: _Watch) -> None:
        try:
            while watch.ticks < self.max_ticks:
                if watch.stop.wait(self.interval):
                    return
                watch.ticks += 1
                try:
                    self._on_tick(watch.key)
                except Exception:
                    logger.warning("status tick %d for %s failed", watch.ticks, watch.key, exc_info=True)
            logger.debug("watcher for %s finished after %d ticks", watch.key, watch.ticks)
        finally:
            with self._lock:
                if self._active.get(watch.key) is watch:
                    del self._active[watch.key]
            watch.done.set()

"""Background housekeeping tasks that run independently of request handling."""

from __future__ import annotations

import logging
from threading import Event, Lock, Thread
from typing import Callable, Optional

LOGGER = logging.getLogger(__name__)


class PeriodicTask:
    """Run ``action`` every ``interval_seconds`` on a daemon thread until stopped.

    Failures inside ``action`` are logged and the schedule continues.
    """

    def __init__(self, action: Callable[[], object], *, interval_seconds: float, name: str) -> None:
        if interval_seconds <= 0:
            raise ValueError("interval_seconds must be positive")
        self._action = action
        self._interval = interval_seconds
        self._name = name
        self._stop = Event()
        self._lock = Lock()
        self._thread: Optional[Thread] = None

    @property
    def running(self) -> bool:
        with self._lock:
            return self._thread is not None and self._thread.is_alive()

    def start(self) -> None:
        with self._lock:
            if self._thread is not None and self._thread.is_alive():
                return
            self._stop.clear()
            self._thread = Thread(target=self._run, name=self._name, daemon=True)
            self._thread.start()
        LOGGER.info("Started %s (every %.0fs)", self._name, self._interval)

    def stop(self, timeout: float = 5.0) -> None:
        with self._lock:
            worker = self._thread
            self._thread = None
        if worker is None:
            return
        self._stop.set()
        worker.join(timeout)
        LOGGER.info("Stopped %s", self._name)

    def _run(self) -> None:
        while not self._stop.wait(self._interval):
            try:
                self._action()
            except Exception:  # pylint: disable=broad-except
                LOGGER.exception("%s failed", self._name)

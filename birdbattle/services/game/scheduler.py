import threading
import time
from typing import Any, Callable, Dict, Hashable


class TimerScheduler:
    """Keyed one-shot timers on top of a background-task launcher.

    - At most one live timer per key; scheduling again supersedes the old one
    - A timer only fires if its deadline is still the one recorded for its
      key, so ``cancel`` is exact even while the worker is sleeping
    - ``start_task`` is ``socketio.start_background_task`` in production
    """

    def __init__(self, start_task: Callable[..., Any], logger, sleep: Callable[[float], None] = time.sleep):
        self._start_task = start_task
        self._sleep = sleep
        self._lock = threading.Lock()
        self._deadlines: Dict[Hashable, float] = {}
        self.logger = logger

    def schedule(self, key: Hashable, delay_sec: float, callback: Callable[..., Any], *args) -> float:
        deadline = time.time() + delay_sec
        with self._lock:
            self._deadlines[key] = deadline
        self.logger.info(f"[timer-set] key={key} delay={delay_sec}s")
        self._start_task(self._runner, key, deadline, callback, args)
        return deadline

    def cancel(self, key: Hashable) -> bool:
        with self._lock:
            cancelled = self._deadlines.pop(key, None) is not None
        if cancelled:
            self.logger.info(f"[timer-cancel] key={key}")
        return cancelled

    def pending(self, key: Hashable) -> bool:
        with self._lock:
            return key in self._deadlines

    def _runner(self, key: Hashable, deadline: float, callback: Callable[..., Any], args) -> None:
        sleep_for = max(0.0, deadline - time.time())
        if sleep_for:
            self._sleep(sleep_for)
        with self._lock:
            if self._deadlines.get(key) != deadline:
                self.logger.info(f"[timer-abort] key={key} superseded or cancelled")
                return
            del self._deadlines[key]
        self.logger.info(f"[timer-fire] key={key}")
        try:
            callback(*args)
        except Exception:
            self.logger.exception(f"[timer-error] key={key}")

    def every(self, interval_sec: float, callback: Callable[[], Any]) -> None:
        """Run ``callback`` forever, ``interval_sec`` apart, on a background task."""

        def _loop():
            while True:
                self._sleep(interval_sec)
                try:
                    callback()
                except Exception:
                    self.logger.exception('[timer-error] periodic task failed')

        self._start_task(_loop)

"""Cancellable periodic runner for the update cycle."""

from __future__ import annotations

import logging
import threading
import time
from typing import Callable, Optional


class Scheduler:
    """Runs ``task`` immediately on start, then once per interval.

    At most one loop runs at a time. Cancellation is cooperative: ``stop``
    wakes a loop waiting on its timer, but a task already running finishes
    before the loop exits.
    """

    def __init__(
        self,
        task: Callable[[], object],
        clock: Callable[[], float] = time.monotonic,
        name: str = "ip-checker",
    ) -> None:
        self._task = task
        self._clock = clock
        self._name = name
        self._lock = threading.RLock()
        self._thread: Optional[threading.Thread] = None
        self._stop_event: Optional[threading.Event] = None
        self._wake_event: Optional[threading.Event] = None
        self._interval: Optional[float] = None

    @property
    def running(self) -> bool:
        with self._lock:
            return self._is_running()

    @property
    def interval(self) -> Optional[float]:
        with self._lock:
            return self._interval if self._is_running() else None

    def _is_running(self) -> bool:
        return (
            self._thread is not None
            and self._thread.is_alive()
            and self._stop_event is not None
            and not self._stop_event.is_set()
        )

    def start(self, interval: float) -> bool:
        if interval <= 0:
            raise ValueError("interval must be positive")
        with self._lock:
            if self._is_running():
                logging.debug("IP checker already running; ignoring start.")
                return False
            stop_event = threading.Event()
            wake_event = threading.Event()
            thread = threading.Thread(
                target=self._loop,
                args=(interval, stop_event, wake_event),
                name=self._name,
                daemon=True,
            )
            self._thread = thread
            self._stop_event = stop_event
            self._wake_event = wake_event
            self._interval = interval
            thread.start()
        logging.info("IP checker started with %ss interval.", _format_seconds(interval))
        return True

    def stop(self, timeout: Optional[float] = None) -> None:
        """Signal the loop to exit and optionally wait up to ``timeout`` seconds."""
        with self._lock:
            thread = self._thread
            if thread is None or self._stop_event is None or self._wake_event is None:
                return
            if not self._stop_event.is_set():
                self._stop_event.set()
                self._wake_event.set()
                logging.info("IP checker stopping.")
        if timeout is not None and thread is not threading.current_thread():
            thread.join(timeout)
            if thread.is_alive():
                logging.warning(
                    "IP checker did not stop within %ss; an update is still in flight.",
                    _format_seconds(timeout),
                )

    def restart(self, interval: float, timeout: Optional[float] = None) -> bool:
        # The join happens outside the lock so state readers are not blocked.
        self.stop(timeout=timeout)
        return self.start(interval)

    def trigger(self) -> bool:
        """Run one extra check as soon as the loop is free."""
        with self._lock:
            if not self._is_running() or self._wake_event is None:
                return False
            self._wake_event.set()
            return True

    def _loop(
        self,
        interval: float,
        stop_event: threading.Event,
        wake_event: threading.Event,
    ) -> None:
        next_tick = self._clock()
        while not stop_event.is_set():
            self._run_task()
            now = self._clock()
            next_tick += interval
            if next_tick <= now:
                # Skip ticks missed while the task ran.
                missed = int((now - next_tick) // interval) + 1
                next_tick += missed * interval
            while not stop_event.is_set():
                delay = min(max(0.0, next_tick - self._clock()), threading.TIMEOUT_MAX)
                woke = wake_event.wait(timeout=delay)
                if stop_event.is_set():
                    break
                if woke:
                    wake_event.clear()
                    self._run_task()
                    continue
                break
        logging.debug("IP checker loop exited.")

    def _run_task(self) -> None:
        try:
            self._task()
        except Exception:  # noqa: BLE001 - a failed tick must not end the loop
            logging.exception("IP check raised; waiting for next tick.")


def _format_seconds(value: float) -> str:
    return f"{value:g}"

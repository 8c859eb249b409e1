"""
Background reload scheduling.

Each source with a reload interval gets its own daemon thread that waits
on a shared stop event for the interval, then asks the root to reload
that source. Threads never coordinate with each other, so a slow source
only delays its own next tick.
"""

import logging as _logging
import threading as _threading
import typing as _typing

import strata.sources.base as sources_base

_logger = _logging.getLogger(__name__)

ReloadCallback = _typing.Callable[[sources_base.Source], _typing.Any]


class ReloadScheduler:
    """Runs one polling thread per reloadable source until stopped."""

    def __init__(self, callback: ReloadCallback) -> None:
        self._callback = callback
        self._stop = _threading.Event()
        self._threads: list[_threading.Thread] = []
        self._lock = _threading.Lock()

    @property
    def stopped(self) -> bool:
        return self._stop.is_set()

    @property
    def active_count(self) -> int:
        return sum(1 for thread in self._threads if thread.is_alive())

    def schedule(self, source: sources_base.Source) -> bool:
        """
        Start polling ``source`` if it has a reload interval.

        Returns:
            True if a thread was started.
        """
        interval = source.reload_interval
        if interval is None:
            return False
        with self._lock:
            if self._stop.is_set():
                return False
            thread = _threading.Thread(
                target=self._run,
                args=(source, interval.total_seconds()),
                daemon=True,
                name=f"strata-reload-{source.name}",
            )
            self._threads.append(thread)
            thread.start()
        _logger.debug("Scheduled reload of %s every %s", source.name, interval)
        return True

    def _run(self, source: sources_base.Source, seconds: float) -> None:
        while not self._stop.wait(seconds):
            try:
                self._callback(source)
            except Exception:
                # A failing tick must not end the polling loop.
                _logger.exception("Reload of %s failed", source.name)

    def stop(self, timeout: float = 5.0) -> None:
        """Signal every thread to stop and wait up to ``timeout`` seconds each."""
        with self._lock:
            self._stop.set()
            threads = list(self._threads)
        current = _threading.current_thread()
        for thread in threads:
            if thread is not current:
                thread.join(timeout)
            if thread.is_alive():
                _logger.debug("Reload thread %s still running after stop", thread.name)

"""
Monitor — periodic refresh on a background thread.

Runs a detection cycle every ``interval`` seconds and hands each
published report to the configured sinks. Only one refresh runs at a
time; stopping the monitor cancels the in-flight refresh through its
CancelToken.

The loop thread is a daemon, so it never keeps the process alive.
"""

from __future__ import annotations

import logging
import threading
from collections.abc import Callable, Sequence

from sysprobe.adapters.base import CancelToken
from sysprobe.core.engine.detection import DetectionEngine
from sysprobe.core.models.report import DetectionReport
from sysprobe.core.persistence.history import ReportSink
from sysprobe.core.use_cases.refresh import publish

logger = logging.getLogger(__name__)

DEFAULT_INTERVAL_S = 30.0


class Monitor:
    """Periodic detection loop around one engine."""

    def __init__(
        self,
        engine: DetectionEngine,
        sinks: Sequence[ReportSink] = (),
        interval: float = DEFAULT_INTERVAL_S,
        on_report: Callable[[DetectionReport], None] | None = None,
    ):
        if interval <= 0:
            raise ValueError(f"interval must be positive, got {interval}")
        self._engine = engine
        self._sinks = list(sinks)
        self._interval = interval
        self._on_report = on_report

        self._stop = threading.Event()
        self._refresh_lock = threading.Lock()
        self._current: CancelToken | None = None
        self._thread: threading.Thread | None = None
        self._cycles = 0

    @property
    def engine(self) -> DetectionEngine:
        return self._engine

    @property
    def interval(self) -> float:
        return self._interval

    @property
    def cycles(self) -> int:
        """Completed (non-cancelled) cycles so far."""
        return self._cycles

    @property
    def running(self) -> bool:
        return self._thread is not None and self._thread.is_alive()

    def run_once(self) -> DetectionReport:
        """Run one refresh now and publish it to the sinks."""
        with self._refresh_lock:
            token = CancelToken()
            self._current = token
            if self._stop.is_set():
                token.cancel()
            try:
                report = self._engine.refresh(token)
            finally:
                self._current = None
            if not report.cancelled:
                self._cycles += 1

        if report.cancelled:
            return report

        publish(report, self._sinks)
        if self._on_report is not None:
            try:
                self._on_report(report)
            except Exception as e:
                logger.error("Report callback failed for %s: %s", report.report_id, e)
        return report

    def start(self) -> threading.Thread:
        """Start the loop on a daemon thread. Returns the thread."""
        if self.running:
            assert self._thread is not None
            return self._thread

        self._stop.clear()
        self._thread = threading.Thread(target=self._loop, daemon=True, name="sysprobe-monitor")
        self._thread.start()
        logger.info("Monitor started (refresh every %.0fs)", self._interval)
        return self._thread

    def stop(self, timeout: float | None = 5.0) -> None:
        """Stop the loop and cancel any refresh in flight."""
        self._stop.set()
        token = self._current
        if token is not None:
            token.cancel()
        thread = self._thread
        if thread is not None and thread is not threading.current_thread():
            thread.join(timeout)
        logger.info("Monitor stopped after %d cycles", self._cycles)

    def _loop(self) -> None:
        while not self._stop.is_set():
            try:
                self.run_once()
            except Exception as e:
                logger.error("Monitor cycle failed: %s", e)
            if self._stop.wait(self._interval):
                break

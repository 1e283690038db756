"""
scheduler.py -- Fixed-rate tick driver.

Every firing runs `session.tick()` and then hands the fresh state to the
registered sinks:
  display sinks -- receive `session.display_snapshot()`
  chart sinks   -- receive `session.chart_payload()`

Ticks are never skipped or merged: if a firing runs late, the following
ones run back-to-back until the schedule catches up.
"""

from __future__ import annotations

import logging
import threading
import time
from typing import Any, Callable

import config
from session import TickResult, TradingSession


logger = logging.getLogger(__name__)

Sink = Callable[[dict[str, Any]], None]


class TickScheduler:
    def __init__(
        self,
        session: TradingSession,
        interval_sec: float = 1.0,
        *,
        max_consecutive_errors: int = config.MAX_CONSECUTIVE_ERRORS,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self.session = session
        self.interval_sec = max(0.0, float(interval_sec))
        self.max_consecutive_errors = max(1, int(max_consecutive_errors))
        self.clock = clock
        self.display_sinks: list[Sink] = []
        self.chart_sinks: list[Sink] = []
        self.ticks_run = 0
        self.consecutive_errors = 0
        self._stop = threading.Event()
        self._thread: threading.Thread | None = None

    def add_display_sink(self, sink: Sink) -> None:
        self.display_sinks.append(sink)

    def add_chart_sink(self, sink: Sink) -> None:
        self.chart_sinks.append(sink)

    # ------------------ Publishing ------------------

    def _publish(self, sinks: list[Sink], payload: dict[str, Any], kind: str) -> None:
        for sink in sinks:
            try:
                sink(payload)
            except Exception:
                logger.exception("%s sink %r failed", kind, sink)

    def publish(self) -> None:
        try:
            display = self.session.display_snapshot()
            chart = self.session.chart_payload()
        except Exception:
            logger.exception("Building dashboard payloads failed")
            return
        self._publish(self.display_sinks, display, "display")
        self._publish(self.chart_sinks, chart, "chart")

    # ------------------ Loop ------------------

    def run_once(self, now: float | None = None) -> TickResult | None:
        try:
            result = self.session.tick(now)
        except Exception as e:
            self.consecutive_errors += 1
            logger.exception("Tick failed (%d): %s", self.consecutive_errors, e)
            if self.consecutive_errors >= self.max_consecutive_errors and self.session.bot.active:
                self.session.set_bot_active(False)
                logger.error("Bot stopped after %d consecutive tick errors", self.consecutive_errors)
            self.publish()
            return None

        self.consecutive_errors = 0
        self.ticks_run += 1
        self.publish()
        return result

    def run(self, ticks: int | None = None) -> None:
        """Block and tick at a fixed rate until stopped (or `ticks` have run)."""
        next_fire = self.clock() + self.interval_sec
        done = 0
        while not self._stop.is_set():
            if ticks is not None and done >= ticks:
                break
            delay = next_fire - self.clock()
            if delay > 0 and self._stop.wait(delay):
                break
            self.run_once()
            done += 1
            next_fire += self.interval_sec

    def start(self) -> threading.Thread:
        if self._thread is not None and self._thread.is_alive():
            return self._thread
        self._stop.clear()
        self._thread = threading.Thread(target=self.run, daemon=True, name="tick-scheduler")
        self._thread.start()
        logger.info("Tick scheduler started (every %.3fs)", self.interval_sec)
        return self._thread

    def stop(self, timeout: float | None = None) -> None:
        self._stop.set()
        if self._thread is not None:
            self._thread.join(timeout)
            self._thread = None

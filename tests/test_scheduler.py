import unittest
from unittest import mock

import numpy as np

from dashboard import StatusBoard
from scheduler import TickScheduler
from session import TradingSession


def _session() -> TradingSession:
    return TradingSession(rng=np.random.default_rng(9), now=0.0)


class TickSchedulerTests(unittest.TestCase):
    def test_run_once_ticks_then_publishes(self):
        session = _session()
        board = StatusBoard()
        sched = TickScheduler(session, interval_sec=0.0)
        sched.add_display_sink(board.publish_display)
        sched.add_chart_sink(board.publish_chart)

        result = sched.run_once(now=1.0)
        self.assertIsNotNone(result)
        self.assertEqual(board.display()["price"], result.price)
        self.assertEqual(board.chart()["values"][-1], result.price)
        self.assertEqual(len(board.chart()["values"]), 61)
        self.assertEqual(sched.ticks_run, 1)

    def test_failing_sink_does_not_block_others(self):
        session = _session()
        seen = []

        def broken(_payload):
            raise RuntimeError("render failed")

        sched = TickScheduler(session, interval_sec=0.0)
        sched.add_display_sink(broken)
        sched.add_display_sink(seen.append)
        with self.assertLogs("scheduler", level="ERROR"):
            sched.run_once(now=1.0)
        self.assertEqual(len(seen), 1)

    def test_tick_errors_stop_bot_after_limit(self):
        session = _session()
        session.set_bot_active(True)
        sched = TickScheduler(session, interval_sec=0.0, max_consecutive_errors=3)
        with mock.patch.object(session, "tick", side_effect=RuntimeError("boom")):
            with self.assertLogs("scheduler", level="ERROR"):
                for _ in range(2):
                    self.assertIsNone(sched.run_once())
                self.assertTrue(session.bot.active)
                sched.run_once()
        self.assertFalse(session.bot.active)
        self.assertEqual(sched.consecutive_errors, 3)
        # Recovers once ticks succeed again.
        sched.run_once(now=5.0)
        self.assertEqual(sched.consecutive_errors, 0)

    def test_run_executes_requested_ticks(self):
        session = _session()
        published = []
        sched = TickScheduler(session, interval_sec=0.0)
        sched.add_chart_sink(published.append)
        sched.run(ticks=3)
        self.assertEqual(sched.ticks_run, 3)
        self.assertEqual(len(published), 3)
        self.assertEqual(len(session.series), 63)

    def test_late_ticks_are_not_skipped(self):
        session = _session()
        # Clock jumps far past several deadlines between firings.
        times = iter([0.0, 10.0, 10.0, 10.0, 10.0])
        sched = TickScheduler(session, interval_sec=1.0, clock=lambda: next(times))
        sched.run(ticks=4)
        self.assertEqual(sched.ticks_run, 4)

    def test_payload_failure_after_tick_error_does_not_escape(self):
        session = _session()
        seen = []
        sched = TickScheduler(session, interval_sec=0.0)
        sched.add_display_sink(seen.append)
        with mock.patch.object(session, "tick", side_effect=RuntimeError("boom")), \
                mock.patch.object(session, "display_snapshot", side_effect=RuntimeError("broken state")):
            with self.assertLogs("scheduler", level="ERROR"):
                self.assertIsNone(sched.run_once())
                sched.run(ticks=2)
        self.assertEqual(sched.consecutive_errors, 3)
        self.assertEqual(seen, [])

    def test_stop_before_run(self):
        sched = TickScheduler(_session(), interval_sec=0.0)
        sched.stop()
        sched.run()
        self.assertEqual(sched.ticks_run, 0)

    def test_start_and_stop_thread(self):
        sched = TickScheduler(_session(), interval_sec=0.01)
        thread = sched.start()
        self.assertTrue(thread.is_alive())
        sched.stop(timeout=2.0)
        self.assertFalse(thread.is_alive())


if __name__ == "__main__":
    unittest.main()

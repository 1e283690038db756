import os
import unittest
from unittest import mock

import numpy as np

import bot
import config
from dashboard import DASHBOARD_HTML, StatusBoard
from session import TradingSession


def _session() -> TradingSession:
    return TradingSession(rng=np.random.default_rng(0), volatility=0.0, seed_points=0)


class HandleActionTests(unittest.TestCase):
    def test_trade_buy_fills(self):
        session = _session()
        code, body = bot.handle_action(session, {"action": "trade", "side": "buy", "amount": "0.1"})
        self.assertEqual(code, 200)
        self.assertTrue(body["ok"])
        self.assertEqual(body["trade"]["side"], "buy")
        self.assertAlmostEqual(session.ledger.cash_balance, 5745.75, places=8)

    def test_invalid_amounts_rejected_at_boundary(self):
        session = _session()
        for amount in ("abc", "", 0, -1, "nan", None, True):
            code, body = bot.handle_action(session, {"action": "trade", "side": "buy", "amount": amount})
            self.assertEqual(code, 400, msg=repr(amount))
            self.assertEqual(body["error"], "invalid_amount")
        self.assertEqual(len(session.history), 0)

    def test_insufficient_funds_reported(self):
        session = _session()
        code, body = bot.handle_action(session, {"action": "trade", "side": "buy", "amount": 1})
        self.assertEqual(code, 400)
        self.assertEqual(body["error"], "insufficient_funds")
        self.assertEqual(body["message"], "Insufficient USD balance")
        self.assertEqual(session.ledger.cash_balance, 10000.0)

    def test_bad_side(self):
        code, _ = bot.handle_action(_session(), {"action": "trade", "side": "short", "amount": 1})
        self.assertEqual(code, 400)

    def test_bot_toggle(self):
        session = _session()
        code, body = bot.handle_action(session, {"action": "bot", "active": True})
        self.assertEqual((code, body["message"]), (200, "Active"))
        self.assertTrue(session.bot.active)
        bot.handle_action(session, {"action": "bot", "active": "false"})
        self.assertFalse(session.bot.active)
        self.assertEqual(session.bot.status, "Stopped")

    def test_threshold_updates(self):
        session = _session()
        code, _ = bot.handle_action(session, {"action": "set_take_profit", "value": "2.5"})
        self.assertEqual(code, 200)
        self.assertEqual(session.bot_cfg.take_profit_pct, 2.5)
        code, _ = bot.handle_action(session, {"action": "set_stop_loss", "value": "-1"})
        self.assertEqual(code, 400)
        code, _ = bot.handle_action(session, {"action": "set_stop_loss", "value": "lots"})
        self.assertEqual(code, 400)
        self.assertEqual(session.bot_cfg.stop_loss_pct, 2.0)

    def test_suggest_amount(self):
        code, body = bot.handle_action(_session(), {"action": "suggest_amount", "side": "buy", "fraction": 1})
        self.assertEqual(code, 200)
        self.assertEqual(body["amount"], round(10000.0 / 42500.0 * 0.99, 5))

    def test_unknown_action(self):
        code, body = bot.handle_action(_session(), {"action": "withdraw"})
        self.assertEqual(code, 400)
        self.assertIn("unknown action", body["message"])


class StatusBoardTests(unittest.TestCase):
    def test_keeps_latest_payloads(self):
        board = StatusBoard()
        self.assertEqual(board.display(), {})
        board.publish_display({"price": 1.0})
        board.publish_display({"price": 2.0})
        board.publish_chart({"pair": "BTC/USD", "labels": ["a"], "values": [2.0]})
        self.assertEqual(board.display(), {"price": 2.0})
        self.assertEqual(board.chart()["values"], [2.0])
        self.assertGreater(board.updated_at, 0.0)

    def test_page_polls_api(self):
        self.assertIn("/api/status", DASHBOARD_HTML)
        self.assertIn("/api/action", DASHBOARD_HTML)


class ConfigTests(unittest.TestCase):
    def test_env_helper_casts_and_falls_back(self):
        with mock.patch.dict(os.environ, {"X_FLOAT": "2.5", "X_BAD": "nope", "X_BOOL": "yes"}):
            self.assertEqual(config._env("X_FLOAT", 1.0, float), 2.5)
            self.assertEqual(config._env("X_BAD", 3, int), 3)
            self.assertTrue(config._env("X_BOOL", False, bool))
            self.assertEqual(config._env("X_MISSING", "d"), "d")

    def test_optional_seed(self):
        with mock.patch.dict(os.environ, {"RANDOM_SEED": "42"}):
            self.assertEqual(config._optional_int("RANDOM_SEED"), 42)
        with mock.patch.dict(os.environ, {"RANDOM_SEED": ""}):
            self.assertIsNone(config._optional_int("RANDOM_SEED"))


if __name__ == "__main__":
    unittest.main()

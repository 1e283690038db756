import random
import unittest

from ledger import InvalidAmount, Ledger, Rejection, Trade, parse_amount


class LedgerTests(unittest.TestCase):
    def test_buy_debits_cash_with_fee(self):
        ledger = Ledger(cash_balance=10000.0)
        trade = ledger.execute("buy", 0.1, 42500.0, fee_rate=0.001, timestamp=1000.0)
        self.assertIsInstance(trade, Trade)
        self.assertEqual(trade.side, "buy")
        self.assertAlmostEqual(trade.notional, 4250.0, places=8)
        self.assertAlmostEqual(trade.fee, 4.25, places=8)
        self.assertAlmostEqual(ledger.cash_balance, 5745.75, places=8)
        self.assertAlmostEqual(ledger.asset_holdings, 0.1, places=12)
        self.assertEqual(trade.status, "Filled")
        self.assertEqual(trade.note, "Manual Trade")

    def test_sell_credits_cash_net_of_fee(self):
        ledger = Ledger(cash_balance=0.0, asset_holdings=0.5)
        trade = ledger.execute("sell", 0.2, 40000.0, fee_rate=0.001, note="Take Profit Triggered")
        self.assertIsInstance(trade, Trade)
        self.assertAlmostEqual(ledger.cash_balance, 0.2 * 40000.0 * 0.999, places=8)
        self.assertAlmostEqual(ledger.asset_holdings, 0.3, places=12)

    def test_sell_snaps_dust_to_zero(self):
        ledger = Ledger(cash_balance=0.0, asset_holdings=0.1)
        ledger.execute("sell", 0.1 - 5e-9, 40000.0)
        self.assertEqual(ledger.asset_holdings, 0.0)
        self.assertFalse(ledger.has_position())

    def test_insufficient_funds_leaves_balances_untouched(self):
        ledger = Ledger(cash_balance=100.0)
        result = ledger.execute("buy", 1.0, 42500.0)
        self.assertIsInstance(result, Rejection)
        self.assertEqual(result.reason, "insufficient_funds")
        self.assertEqual(ledger.cash_balance, 100.0)
        self.assertEqual(ledger.asset_holdings, 0.0)

    def test_buy_needs_room_for_fee(self):
        ledger = Ledger(cash_balance=4250.0)
        result = ledger.execute("buy", 0.1, 42500.0, fee_rate=0.001)
        self.assertIsInstance(result, Rejection)
        self.assertEqual(ledger.cash_balance, 4250.0)

    def test_insufficient_holdings_rejected(self):
        ledger = Ledger(cash_balance=0.0, asset_holdings=0.05)
        result = ledger.execute("sell", 0.1, 42500.0)
        self.assertIsInstance(result, Rejection)
        self.assertEqual(result.reason, "insufficient_holdings")
        self.assertEqual(result.message, "Insufficient BTC balance")
        self.assertEqual(ledger.asset_holdings, 0.05)

    def test_non_positive_quantity_is_noop(self):
        ledger = Ledger(cash_balance=10000.0)
        for qty in (0.0, -0.5, float("nan")):
            result = ledger.execute("buy", qty, 42500.0)
            self.assertIsInstance(result, Rejection)
            self.assertEqual(result.reason, "invalid_amount")
        self.assertEqual(ledger.cash_balance, 10000.0)
        self.assertEqual(ledger.asset_holdings, 0.0)
        # Rejections do not consume trade ids.
        trade = ledger.execute("buy", 0.01, 42500.0)
        self.assertEqual(trade.trade_id, 1)

    def test_unknown_side_raises(self):
        with self.assertRaises(ValueError):
            Ledger().execute("hold", 1.0, 42500.0)

    def test_trade_ids_increment(self):
        ledger = Ledger(cash_balance=10000.0)
        a = ledger.execute("buy", 0.01, 42500.0)
        b = ledger.execute("sell", 0.01, 42500.0)
        self.assertEqual((a.trade_id, b.trade_id), (1, 2))

    def test_balances_never_negative(self):
        rng = random.Random(1234)
        ledger = Ledger(cash_balance=10000.0)
        price = 42500.0
        for _ in range(500):
            price *= 1 + rng.uniform(-0.01, 0.01)
            side = rng.choice(["buy", "sell"])
            qty = rng.uniform(-0.05, 0.4)
            ledger.execute(side, qty, price)
            self.assertGreaterEqual(ledger.cash_balance, 0.0)
            self.assertGreaterEqual(ledger.asset_holdings, 0.0)

    def test_snapshot_restore(self):
        ledger = Ledger(cash_balance=10000.0)
        ledger.execute("buy", 0.1, 42500.0)
        restored = Ledger()
        restored.restore_state(ledger.snapshot_state())
        self.assertEqual(restored.snapshot_state(), ledger.snapshot_state())
        self.assertEqual(restored.execute("sell", 0.05, 42000.0).trade_id, 2)


class ParseAmountTests(unittest.TestCase):
    def test_accepts_positive_numbers(self):
        self.assertEqual(parse_amount("0.25"), 0.25)
        self.assertEqual(parse_amount(3), 3.0)

    def test_rejects_bad_input(self):
        for raw in (None, "", "abc", "0", -1, "nan", "inf", True):
            with self.assertRaises(InvalidAmount, msg=repr(raw)):
                parse_amount(raw)


if __name__ == "__main__":
    unittest.main()

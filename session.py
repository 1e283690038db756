"""
Paper-trading session.

One `TradingSession` owns everything the dashboard mutates:
- simulated price + bounded chart series
- cash/holdings ledger and trade history
- bot config + runtime state
- the seedable random source

`tick()` is the simulation step only; publishing to display/chart sinks is
the scheduler's job.
"""

from __future__ import annotations

from dataclasses import dataclass, replace
import logging
import math
import threading
import time
from typing import Any

import numpy as np

import bot_engine as be
import config
from ledger import DEFAULT_FEE_RATE, Ledger, Rejection, Trade, norm_side
from market import DEFAULT_VOLATILITY, PriceGenerator, PriceSeries
from trade_history import TradeHistory


logger = logging.getLogger(__name__)

SNAPSHOT_VERSION = "paper-v1"


def _now() -> float:
    return time.time()


def _check_threshold(name: str, value: float) -> None:
    if not math.isfinite(value) or value <= 0:
        raise ValueError(f"{name} must be > 0, got {value}")


def _rng_state(rng: np.random.Generator) -> dict:
    return dict(rng.bit_generator.state)


def _rng_from_state(state: dict | None) -> np.random.Generator:
    if not isinstance(state, dict) or "bit_generator" not in state:
        return np.random.default_rng()
    bit_generator = getattr(np.random, str(state["bit_generator"]))()
    bit_generator.state = state
    return np.random.Generator(bit_generator)


@dataclass(frozen=True)
class TickResult:
    timestamp: float
    price: float
    bot_status: str
    bot_phase: str
    trades: tuple[Trade, ...] = ()
    rejections: tuple[Rejection, ...] = ()


class TradingSession:
    def __init__(
        self,
        *,
        rng: np.random.Generator | None = None,
        initial_price: float = 42500.0,
        starting_balance: float = 10000.0,
        volatility: float = DEFAULT_VOLATILITY,
        fee_rate: float = DEFAULT_FEE_RATE,
        bot_cfg: be.BotConfig | None = None,
        history_limit: int = 50,
        price_window: int = 100,
        seed_points: int = 60,
        tick_interval_sec: float = 1.0,
        display_trades: int = 10,
        pair_display: str = "BTC/USD",
        now: float | None = None,
    ) -> None:
        if initial_price <= 0:
            raise ValueError(f"initial_price must be positive, got {initial_price}")
        self.lock = threading.RLock()
        self.rng = rng if rng is not None else np.random.default_rng()
        self.generator = PriceGenerator(self.rng, volatility)
        self.bot_cfg = bot_cfg or be.BotConfig()
        _check_threshold("take_profit_pct", self.bot_cfg.take_profit_pct)
        _check_threshold("stop_loss_pct", self.bot_cfg.stop_loss_pct)
        self.fee_rate = float(fee_rate)
        self.starting_balance = float(starting_balance)
        self.tick_interval_sec = float(tick_interval_sec)
        self.display_trades = max(0, int(display_trades))
        self.pair_display = pair_display

        self.ledger = Ledger(cash_balance=starting_balance, dust_threshold=self.bot_cfg.dust_threshold)
        self.history = TradeHistory(limit=history_limit)
        self.series = PriceSeries(maxlen=price_window)
        self.bot = be.BotState()

        self.price = float(initial_price)
        if seed_points > 0:
            self.price = self.generator.seed_series(
                self.series,
                initial_price,
                seed_points,
                now=_now() if now is None else float(now),
                interval_sec=self.tick_interval_sec,
            )

    @classmethod
    def from_config(cls) -> "TradingSession":
        bot_cfg = be.BotConfig(
            take_profit_pct=config.TAKE_PROFIT_PCT,
            stop_loss_pct=config.STOP_LOSS_PCT,
            dust_threshold=config.DUST_THRESHOLD,
            entry_basis="average" if config.BOT_ENTRY_BASIS == "average" else "last",
        )
        session = cls(
            rng=np.random.default_rng(config.RANDOM_SEED),
            initial_price=config.INITIAL_PRICE,
            starting_balance=config.STARTING_BALANCE,
            volatility=config.VOLATILITY,
            fee_rate=config.FEE_RATE,
            bot_cfg=bot_cfg,
            history_limit=config.HISTORY_LIMIT,
            price_window=config.PRICE_WINDOW,
            seed_points=config.SEED_POINTS,
            tick_interval_sec=config.TICK_INTERVAL_MS / 1000.0,
            display_trades=config.DISPLAY_TRADES,
            pair_display=config.PAIR_DISPLAY,
        )
        if config.BOT_AUTOSTART:
            session.set_bot_active(True)
        return session

    # ------------------ Simulation ------------------

    def _draw(self) -> float:
        return float(self.rng.random())

    def _market_view(self) -> be.MarketView:
        return be.MarketView(
            price=self.price,
            cash_balance=self.ledger.cash_balance,
            asset_holdings=self.ledger.asset_holdings,
            recent_prices=self.series.recent(self.bot_cfg.dip_lookback),
        )

    def _execute(self, side: str, quantity: float, note: str, timestamp: float, source: str) -> Trade | Rejection:
        holdings_before = self.ledger.asset_holdings
        result = self.ledger.execute(
            side, quantity, self.price, self.fee_rate, note, timestamp=timestamp
        )
        if isinstance(result, Rejection):
            logger.warning(
                "%s %s %.8f rejected: %s", source, result.side, result.quantity, result.message
            )
            if source == "bot":
                self.bot = be.apply_rejection(self.bot, result)
            return result

        self.history.record(result)
        self.bot = be.apply_fill(self.bot, result, holdings_before, self.bot_cfg)
        logger.info(
            "Filled #%d %s %.8f @ $%.2f (fee $%.4f) [%s]",
            result.trade_id, result.side, result.quantity, result.price, result.fee, result.note,
        )
        return result

    def tick(self, now: float | None = None) -> TickResult:
        with self.lock:
            ts = _now() if now is None else float(now)
            self.price = self.generator.next(self.price)
            self.series.append(ts, self.price)

            self.bot, intents = be.evaluate(self.bot, self._market_view(), self.bot_cfg, draw=self._draw)
            trades: list[Trade] = []
            rejections: list[Rejection] = []
            for intent in intents:
                result = self._execute(intent.side, intent.quantity, intent.note, ts, source="bot")
                if isinstance(result, Rejection):
                    rejections.append(result)
                else:
                    trades.append(result)

            logger.debug("tick price=%.2f status=%s", self.price, self.bot.status)
            return TickResult(
                timestamp=ts,
                price=self.price,
                bot_status=self.bot.status,
                bot_phase=be.derive_phase(self.bot, self._market_view(), self.bot_cfg),
                trades=tuple(trades),
                rejections=tuple(rejections),
            )

    # ------------------ Commands ------------------

    def manual_trade(self, side: str, quantity: float, now: float | None = None) -> Trade | Rejection:
        side = norm_side(side)
        with self.lock:
            ts = _now() if now is None else float(now)
            return self._execute(side, quantity, "Manual Trade", ts, source="manual")

    def set_bot_active(self, active: bool) -> tuple[bool, str]:
        with self.lock:
            self.bot = be.set_active(self.bot, active)
            status = self.bot.status
        logger.info("Bot %s", "started" if active else "stopped")
        return True, status

    def set_take_profit(self, value: float) -> tuple[bool, str]:
        if not math.isfinite(value) or value <= 0:
            return False, "take profit must be > 0"
        with self.lock:
            self.bot_cfg = replace(self.bot_cfg, take_profit_pct=float(value))
        return True, f"take profit set to {value:.2f}%"

    def set_stop_loss(self, value: float) -> tuple[bool, str]:
        if not math.isfinite(value) or value <= 0:
            return False, "stop loss must be > 0"
        with self.lock:
            self.bot_cfg = replace(self.bot_cfg, stop_loss_pct=float(value))
        return True, f"stop loss set to {value:.2f}%"

    def suggest_amount(self, side: str, fraction: float) -> float:
        """Quantity for a quick-fill button; buys keep 1% headroom for fees."""
        side = norm_side(side)
        if not math.isfinite(fraction) or fraction <= 0:
            return 0.0
        fraction = min(1.0, fraction)
        with self.lock:
            if side == "buy":
                amount = self.ledger.cash_balance / self.price * fraction * 0.99
            else:
                amount = self.ledger.asset_holdings * fraction
        return round(amount, 5)

    # ------------------ Display ------------------

    def win_rate_pct(self) -> int:
        return self.history.win_rate_pct()

    def total_profit(self) -> float:
        return self.ledger.portfolio_value(self.price) - self.starting_balance

    def display_snapshot(self) -> dict[str, Any]:
        with self.lock:
            return {
                "pair": self.pair_display,
                "price": self.price,
                "cash_balance": self.ledger.cash_balance,
                "asset_holdings": self.ledger.asset_holdings,
                "holdings_value": self.ledger.holdings_value(self.price),
                "portfolio_value": self.ledger.portfolio_value(self.price),
                "bot_active": self.bot.active,
                "bot_status": self.bot.status,
                "bot_phase": be.derive_phase(self.bot, self._market_view(), self.bot_cfg),
                "take_profit_pct": self.bot_cfg.take_profit_pct,
                "stop_loss_pct": self.bot_cfg.stop_loss_pct,
                "trade_history": [t.to_dict() for t in self.history.query(self.display_trades)],
                "trade_count": len(self.history),
                "win_rate_pct": self.win_rate_pct(),
                "total_profit": self.total_profit(),
            }

    def chart_payload(self) -> dict[str, Any]:
        with self.lock:
            return {
                "pair": self.pair_display,
                "labels": self.series.labels(),
                "values": self.series.values(),
            }

    # ------------------ Snapshot ------------------

    def to_dict(self) -> dict[str, Any]:
        with self.lock:
            return {
                "version": SNAPSHOT_VERSION,
                "pair": self.pair_display,
                "price": self.price,
                "starting_balance": self.starting_balance,
                "fee_rate": self.fee_rate,
                "volatility": self.generator.volatility,
                "tick_interval_sec": self.tick_interval_sec,
                "display_trades": self.display_trades,
                "ledger": self.ledger.snapshot_state(),
                "history": self.history.to_list(),
                "history_limit": self.history.limit,
                "series": self.series.to_list(),
                "price_window": self.series.maxlen,
                "bot": be.to_dict(self.bot),
                "bot_config": be.config_to_dict(self.bot_cfg),
                "rng": _rng_state(self.rng),
            }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "TradingSession":
        session = cls(
            rng=_rng_from_state(data.get("rng")),
            initial_price=float(data.get("price", 42500.0)),
            starting_balance=float(data.get("starting_balance", 10000.0)),
            volatility=float(data.get("volatility", DEFAULT_VOLATILITY)),
            fee_rate=float(data.get("fee_rate", DEFAULT_FEE_RATE)),
            bot_cfg=be.config_from_dict(data.get("bot_config", {}) or {}),
            history_limit=int(data.get("history_limit", 50)),
            price_window=int(data.get("price_window", 100)),
            seed_points=0,
            tick_interval_sec=float(data.get("tick_interval_sec", 1.0)),
            display_trades=int(data.get("display_trades", 10)),
            pair_display=str(data.get("pair", "BTC/USD")),
        )
        session.ledger.restore_state(data.get("ledger", {}) or {})
        session.history = TradeHistory.from_list(data.get("history", []), limit=session.history.limit)
        session.series = PriceSeries.from_list(data.get("series", []), maxlen=session.series.maxlen)
        session.bot = be.from_dict(data.get("bot", {}) or {})
        return session

"""
bot_engine.py

Auto-trading bot decision core.

Design goals:
- Pure reducer: (state, market view) -> (next_state, order intents)
- Idle / Scanning / Holding phases derived from state, never stored
- Exit on take-profit or stop-loss, entry on a short dip plus a random gate
- The runtime executes intents and feeds fills/rejections back in
"""

from __future__ import annotations

from dataclasses import dataclass, replace
from typing import Callable, Literal

from ledger import Rejection, Trade


Side = Literal["buy", "sell"]
BotPhase = Literal["Idle", "Scanning", "Holding"]
EntryBasis = Literal["last", "average"]

NOTE_TAKE_PROFIT = "Take Profit Triggered"
NOTE_STOP_LOSS = "Stop Loss Triggered"
NOTE_DIP = "Dip Detected"

STATUS_IDLE = "Idle"
STATUS_SCANNING = "Scanning market..."
STATUS_BOUGHT_DIP = "Bought the dip"


@dataclass(frozen=True)
class BotConfig:
    take_profit_pct: float = 1.5
    stop_loss_pct: float = 2.0
    dust_threshold: float = 1e-8
    dip_lookback: int = 5
    dip_trigger_pct: float = -0.1
    # Entry fires only when a uniform [0, 1) draw exceeds this.
    dip_gate: float = 0.7
    dip_buy_fraction: float = 0.5
    entry_basis: EntryBasis = "last"


@dataclass(frozen=True)
class BotState:
    active: bool = False
    entry_price: float = 0.0
    status: str = STATUS_IDLE


@dataclass(frozen=True)
class MarketView:
    price: float
    cash_balance: float
    asset_holdings: float
    recent_prices: tuple[float, ...] = ()


@dataclass(frozen=True)
class OrderIntent:
    side: Side
    quantity: float
    note: str


# --------------------------- Helpers ---------------------------


def derive_phase(state: BotState, market: MarketView, cfg: BotConfig) -> BotPhase:
    if not state.active:
        return "Idle"
    if market.asset_holdings > cfg.dust_threshold:
        return "Holding"
    return "Scanning"


def pnl_pct(entry_price: float, price: float) -> float:
    return (price - entry_price) / entry_price * 100.0


def dip_pct(prices: tuple[float, ...], lookback: int) -> float | None:
    """Percent change across the last `lookback` prices, None until the window fills."""
    if lookback < 2 or len(prices) < lookback:
        return None
    window = prices[-lookback:]
    first, last = window[0], window[-1]
    if first <= 0:
        return None
    return (last - first) / first * 100.0


def _signed(pct: float) -> str:
    return f"{'+' if pct > 0 else ''}{pct:.2f}%"


# --------------------------- Transitions ---------------------------


def _evaluate_position(state: BotState, market: MarketView, cfg: BotConfig) -> tuple[BotState, list[OrderIntent]]:
    if state.entry_price <= 0:
        return replace(state, status="Holding (no entry price)"), []

    pnl = pnl_pct(state.entry_price, market.price)
    if pnl >= cfg.take_profit_pct:
        intent = OrderIntent(side="sell", quantity=market.asset_holdings, note=NOTE_TAKE_PROFIT)
        return replace(state, status=f"Sold at +{pnl:.2f}%"), [intent]
    if pnl <= -cfg.stop_loss_pct:
        intent = OrderIntent(side="sell", quantity=market.asset_holdings, note=NOTE_STOP_LOSS)
        return replace(state, status=f"Stopped at {pnl:.2f}%"), [intent]
    return replace(state, status=f"Holding (P&L: {_signed(pnl)})"), []


def _scan_for_entry(
    state: BotState,
    market: MarketView,
    cfg: BotConfig,
    draw: Callable[[], float],
) -> tuple[BotState, list[OrderIntent]]:
    drop = dip_pct(market.recent_prices, cfg.dip_lookback)
    # draw() is consumed only when the dip condition holds.
    if drop is not None and drop < cfg.dip_trigger_pct and draw() > cfg.dip_gate:
        quantity = market.cash_balance * cfg.dip_buy_fraction / market.price
        intent = OrderIntent(side="buy", quantity=quantity, note=NOTE_DIP)
        return replace(state, status=STATUS_BOUGHT_DIP), [intent]
    return replace(state, status=STATUS_SCANNING), []


def evaluate(
    state: BotState,
    market: MarketView,
    cfg: BotConfig,
    draw: Callable[[], float],
) -> tuple[BotState, list[OrderIntent]]:
    """
    Pure reducer for one tick.

    Emits at most one intent.  The status is written before the runtime
    tries the order; `apply_rejection` overwrites it if the order bounces.
    """
    phase = derive_phase(state, market, cfg)
    if phase == "Idle":
        return replace(state, status=STATUS_IDLE), []
    if phase == "Holding":
        return _evaluate_position(state, market, cfg)
    return _scan_for_entry(state, market, cfg, draw)


def apply_fill(state: BotState, trade: Trade, holdings_before: float, cfg: BotConfig) -> BotState:
    """
    Move the reference entry price after a fill.

    Any buy counts, manual or bot-issued.  With `entry_basis="average"` the
    reference is the quantity-weighted cost of everything held.
    """
    if trade.side != "buy":
        return state
    if cfg.entry_basis == "average" and holdings_before > cfg.dust_threshold and state.entry_price > 0:
        total = holdings_before + trade.quantity
        basis = (state.entry_price * holdings_before + trade.price * trade.quantity) / total
        return replace(state, entry_price=basis)
    return replace(state, entry_price=trade.price)


def apply_rejection(state: BotState, rejection: Rejection) -> BotState:
    return replace(state, status=f"Order rejected: {rejection.message}")


def set_active(state: BotState, active: bool) -> BotState:
    return replace(state, active=bool(active), status="Active" if active else "Stopped")


# --------------------------- Snapshot ---------------------------


def to_dict(state: BotState) -> dict:
    return {
        "active": state.active,
        "entry_price": state.entry_price,
        "status": state.status,
    }


def from_dict(data: dict) -> BotState:
    return BotState(
        active=bool(data.get("active", False)),
        entry_price=float(data.get("entry_price", 0.0)),
        status=str(data.get("status", STATUS_IDLE)),
    )


def config_to_dict(cfg: BotConfig) -> dict:
    return dict(cfg.__dict__)


def config_from_dict(data: dict, base: BotConfig | None = None) -> BotConfig:
    base = base or BotConfig()
    basis = str(data.get("entry_basis", base.entry_basis))
    return BotConfig(
        take_profit_pct=float(data.get("take_profit_pct", base.take_profit_pct)),
        stop_loss_pct=float(data.get("stop_loss_pct", base.stop_loss_pct)),
        dust_threshold=float(data.get("dust_threshold", base.dust_threshold)),
        dip_lookback=int(data.get("dip_lookback", base.dip_lookback)),
        dip_trigger_pct=float(data.get("dip_trigger_pct", base.dip_trigger_pct)),
        dip_gate=float(data.get("dip_gate", base.dip_gate)),
        dip_buy_fraction=float(data.get("dip_buy_fraction", base.dip_buy_fraction)),
        entry_basis="average" if basis == "average" else "last",
    )

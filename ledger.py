"""
ledger.py -- Cash/holdings ledger for the paper account.

The ledger is the only thing allowed to move money:
- `execute()` fills a market order at the given price or rejects it whole.
- Rejections are returned, not raised, so the bot and the HTTP layer can
  decide how to surface them.

Both balances stay non-negative after every call.
"""

from __future__ import annotations

from dataclasses import asdict, dataclass
import logging
import math
import time
from typing import Any, Literal


logger = logging.getLogger(__name__)

Side = Literal["buy", "sell"]
RejectReason = Literal["invalid_amount", "insufficient_funds", "insufficient_holdings"]

DEFAULT_FEE_RATE = 0.001
DUST_THRESHOLD = 1e-8

_VALID_SIDES = {"buy", "sell"}


class InvalidAmount(ValueError):
    """User input that is not a finite, positive number."""


def _to_float(value: Any, default: float = 0.0) -> float:
    try:
        return float(value)
    except (TypeError, ValueError):
        return float(default)


def _to_int(value: Any, default: int = 0) -> int:
    try:
        return int(value)
    except (TypeError, ValueError):
        return int(default)


def parse_amount(value: Any) -> float:
    """Validate a raw trade amount at the input boundary."""
    if isinstance(value, bool):
        raise InvalidAmount("Please enter a valid amount")
    try:
        amount = float(value)
    except (TypeError, ValueError) as exc:
        raise InvalidAmount("Please enter a valid amount") from exc
    if not math.isfinite(amount) or amount <= 0:
        raise InvalidAmount("Please enter a valid amount")
    return amount


def norm_side(value: Any) -> Side:
    side = str(value or "").strip().lower()
    if side not in _VALID_SIDES:
        raise ValueError(f"unknown side: {value!r}")
    return side  # type: ignore[return-value]


@dataclass(frozen=True)
class Trade:
    trade_id: int
    timestamp: float
    side: Side
    price: float
    quantity: float
    notional: float
    fee: float
    note: str
    status: str = "Filled"

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)

    @classmethod
    def from_dict(cls, row: dict[str, Any]) -> "Trade":
        return cls(
            trade_id=_to_int(row.get("trade_id"), 0),
            timestamp=_to_float(row.get("timestamp")),
            side=norm_side(row.get("side")),
            price=_to_float(row.get("price")),
            quantity=_to_float(row.get("quantity")),
            notional=_to_float(row.get("notional")),
            fee=_to_float(row.get("fee")),
            note=str(row.get("note") or ""),
            status=str(row.get("status") or "Filled"),
        )


@dataclass(frozen=True)
class Rejection:
    side: str
    quantity: float
    price: float
    reason: RejectReason
    message: str
    note: str = ""


class Ledger:
    def __init__(
        self,
        *,
        cash_balance: float = 10000.0,
        asset_holdings: float = 0.0,
        dust_threshold: float = DUST_THRESHOLD,
    ) -> None:
        if cash_balance < 0 or asset_holdings < 0:
            raise ValueError("ledger balances must be non-negative")
        self.cash_balance = float(cash_balance)
        self.asset_holdings = float(asset_holdings)
        self.dust_threshold = float(dust_threshold)
        self._next_trade_id: int = 1

    # ------------------ Core API ------------------

    def execute(
        self,
        side: str,
        quantity: float,
        price: float,
        fee_rate: float = DEFAULT_FEE_RATE,
        note: str = "Manual Trade",
        *,
        timestamp: float | None = None,
    ) -> Trade | Rejection:
        side = norm_side(side)
        qty = _to_float(quantity)
        if not math.isfinite(qty) or qty <= 0:
            return Rejection(side, qty, float(price), "invalid_amount", "Please enter a valid amount", note)
        if price <= 0:
            raise ValueError(f"fill price must be positive, got {price}")

        notional = qty * float(price)
        fee = notional * float(fee_rate)

        if side == "buy":
            cost = notional + fee
            if self.cash_balance < cost:
                return Rejection(side, qty, float(price), "insufficient_funds", "Insufficient USD balance", note)
            self.cash_balance -= cost
            self.asset_holdings += qty
        else:
            if self.asset_holdings < qty:
                return Rejection(side, qty, float(price), "insufficient_holdings", "Insufficient BTC balance", note)
            self.cash_balance += notional - fee
            self.asset_holdings -= qty
            if self.asset_holdings < self.dust_threshold:
                self.asset_holdings = 0.0

        trade = Trade(
            trade_id=self._next_trade_id,
            timestamp=_to_float(timestamp, time.time()),
            side=side,
            price=float(price),
            quantity=qty,
            notional=notional,
            fee=fee,
            note=str(note or ""),
        )
        self._next_trade_id += 1
        return trade

    # ------------------ Queries ------------------

    def holdings_value(self, price: float) -> float:
        return self.asset_holdings * float(price)

    def portfolio_value(self, price: float) -> float:
        return self.cash_balance + self.holdings_value(price)

    def has_position(self) -> bool:
        return self.asset_holdings > self.dust_threshold

    # ------------------ Snapshot ------------------

    def snapshot_state(self) -> dict[str, Any]:
        return {
            "cash_balance": float(self.cash_balance),
            "asset_holdings": float(self.asset_holdings),
            "dust_threshold": float(self.dust_threshold),
            "trade_id_counter": int(self._next_trade_id),
        }

    def restore_state(self, payload: dict[str, Any]) -> None:
        if not isinstance(payload, dict):
            return
        self.cash_balance = max(0.0, _to_float(payload.get("cash_balance"), self.cash_balance))
        self.asset_holdings = max(0.0, _to_float(payload.get("asset_holdings"), self.asset_holdings))
        self.dust_threshold = max(0.0, _to_float(payload.get("dust_threshold"), self.dust_threshold))
        self._next_trade_id = max(1, _to_int(payload.get("trade_id_counter"), 1))

"""
trade_history.py -- Bounded, newest-first log of filled trades.
"""

from __future__ import annotations

import math
from typing import Any

from ledger import Trade


class TradeHistory:
    def __init__(self, limit: int = 50) -> None:
        self.limit = max(1, int(limit))
        self._trades: list[Trade] = []

    def __len__(self) -> int:
        return len(self._trades)

    def record(self, trade: Trade) -> None:
        self._trades.insert(0, trade)
        if len(self._trades) > self.limit:
            del self._trades[self.limit:]

    def query(self, limit: int | None = None) -> list[Trade]:
        if limit is None:
            return list(self._trades)
        return self._trades[: max(0, int(limit))]

    def sells(self) -> list[Trade]:
        return [t for t in self._trades if t.side == "sell"]

    def win_rate_pct(self) -> int:
        """Share of sells closed by take-profit, rounded half-up to a whole percent."""
        sells = self.sells()
        if not sells:
            return 0
        wins = sum(1 for t in sells if "Profit" in t.note)
        return int(math.floor(wins / len(sells) * 100.0 + 0.5))

    # ------------------ Snapshot ------------------

    def to_list(self) -> list[dict[str, Any]]:
        return [t.to_dict() for t in self._trades]

    @classmethod
    def from_list(cls, rows: Any, limit: int = 50) -> "TradeHistory":
        history = cls(limit=limit)
        if not isinstance(rows, list):
            return history
        for row in rows[: history.limit]:
            if not isinstance(row, dict):
                continue
            try:
                history._trades.append(Trade.from_dict(row))
            except ValueError:
                continue
        return history

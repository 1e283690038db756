"""
market.py -- Synthetic BTC/USD price feed.

Two pieces:
- `PriceGenerator` steps the price with a bounded multiplicative random walk.
- `PriceSeries` is the bounded (timestamp, price) window fed to the chart.

The random source is injected (a numpy Generator) so a fixed seed replays
the exact same path.
"""

from __future__ import annotations

from collections import deque
from datetime import datetime, timezone
from typing import Any, Iterable

import numpy as np


DEFAULT_VOLATILITY = 0.002


class PriceGenerator:
    def __init__(self, rng: np.random.Generator, volatility: float = DEFAULT_VOLATILITY) -> None:
        volatility = float(volatility)
        if not (0.0 <= volatility < 1.0):
            raise ValueError(f"volatility must be in [0, 1), got {volatility}")
        self.rng = rng
        self.volatility = volatility

    def next(self, current_price: float, volatility: float | None = None) -> float:
        """Return `current_price * (1 + u * volatility)` with u uniform in [-1, 1)."""
        if current_price <= 0:
            raise ValueError(f"price must be positive, got {current_price}")
        vol = self.volatility if volatility is None else float(volatility)
        factor = float(self.rng.uniform(-1.0, 1.0)) * vol
        return float(current_price) * (1.0 + factor)

    def seed_series(
        self,
        series: "PriceSeries",
        initial_price: float,
        count: int,
        now: float,
        interval_sec: float,
    ) -> float:
        """
        Backfill `count` points ending one interval before `now`.

        Startup points use half the tick amplitude so the opening chart looks
        calm.  Returns the last seeded price (the session's opening price).
        """
        price = float(initial_price)
        for i in range(int(count), 0, -1):
            price = self.next(price, self.volatility / 2.0)
            series.append(now - i * interval_sec, price)
        return price


class PriceSeries:
    def __init__(self, maxlen: int = 100, points: Iterable[tuple[float, float]] = ()) -> None:
        self.maxlen = max(1, int(maxlen))
        self._points: deque[tuple[float, float]] = deque(maxlen=self.maxlen)
        for ts, px in points:
            self.append(ts, px)

    def __len__(self) -> int:
        return len(self._points)

    def append(self, timestamp: float, price: float) -> None:
        self._points.append((float(timestamp), float(price)))

    def values(self) -> list[float]:
        return [p for _, p in self._points]

    def timestamps(self) -> list[float]:
        return [t for t, _ in self._points]

    def recent(self, n: int) -> tuple[float, ...]:
        if n <= 0:
            return ()
        return tuple(self.values()[-n:])

    def last(self) -> float | None:
        return self._points[-1][1] if self._points else None

    def labels(self) -> list[str]:
        return [
            datetime.fromtimestamp(ts, tz=timezone.utc).strftime("%H:%M:%S")
            for ts in self.timestamps()
        ]

    # ------------------ Snapshot ------------------

    def to_list(self) -> list[list[float]]:
        return [[t, p] for t, p in self._points]

    @classmethod
    def from_list(cls, rows: Any, maxlen: int = 100) -> "PriceSeries":
        series = cls(maxlen=maxlen)
        if not isinstance(rows, list):
            return series
        for row in rows:
            try:
                ts, px = float(row[0]), float(row[1])
            except (TypeError, ValueError, IndexError):
                continue
            series.append(ts, px)
        return series

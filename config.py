"""
config.py -- All tunable parameters for the paper-trading dashboard.

Every value here is loaded from environment variables so you can tweak the
simulation (or a local .env file) without touching code.

HOW TO READ THIS FILE:
  Each config value has a comment explaining:
    1. What it controls
    2. What happens if you raise/lower it
    3. The default and why it was chosen
"""

import os

# ---------------------------------------------------------------------------
# Helper: read an env var with a typed default
# ---------------------------------------------------------------------------

def _env(name, default, cast=str):
    """
    Read an environment variable and cast it to the right type.
    If the var is missing or empty, return *default* (already the right type).
    """
    raw = os.environ.get(name, "")
    if not raw:
        return default
    try:
        # Special handling for booleans -- "true"/"1"/"yes" are all truthy
        if cast is bool:
            return raw.strip().lower() in ("true", "1", "yes")
        return cast(raw)
    except (ValueError, TypeError):
        return default


def _optional_int(name):
    """Like _env but returns None when the var is unset or not an integer."""
    raw = os.environ.get(name, "").strip()
    if not raw:
        return None
    try:
        return int(raw)
    except ValueError:
        return None


# ---------------------------------------------------------------------------
# Market simulation
# ---------------------------------------------------------------------------

# Human-readable pair name for logs, the chart payload and the dashboard.
PAIR_DISPLAY: str = _env("PAIR_DISPLAY", "BTC/USD")

# Price the random walk starts from before the startup series is seeded.
INITIAL_PRICE: float = _env("INITIAL_PRICE", 42500.0, float)

# Maximum per-tick move as a fraction of price (0.002 = 0.2%).
# Raising it: choppier chart, take-profit/stop-loss fire sooner.
# Must stay below 1.0 or a single draw could push the price to zero.
VOLATILITY: float = _env("VOLATILITY", 0.002, float)

# Milliseconds between ticks.  1000 gives a one-point-per-second chart.
TICK_INTERVAL_MS: int = _env("TICK_INTERVAL_MS", 1000, int)

# Chart window: how many (timestamp, price) points are kept.
PRICE_WINDOW: int = _env("PRICE_WINDOW", 100, int)

# Synthetic points generated at startup so the chart is never empty.
SEED_POINTS: int = _env("SEED_POINTS", 60, int)

# Seed for the session random source.  Unset = fresh entropy every start.
# Set it to replay exactly the same price path and bot decisions.
RANDOM_SEED = _optional_int("RANDOM_SEED")

# ---------------------------------------------------------------------------
# Account & fees
# ---------------------------------------------------------------------------

# Fake USD the session starts with.  Total profit is measured against this.
STARTING_BALANCE: float = _env("STARTING_BALANCE", 10000.0, float)

# Fee charged on every fill as a fraction of notional (0.001 = 0.1%).
FEE_RATE: float = _env("FEE_RATE", 0.001, float)

# Holdings below this are treated as a closed position and snapped to 0.
DUST_THRESHOLD: float = _env("DUST_THRESHOLD", 1e-8, float)

# Filled trades kept in memory (newest first).
HISTORY_LIMIT: int = _env("HISTORY_LIMIT", 50, int)

# Trades included in each dashboard snapshot.
DISPLAY_TRADES: int = _env("DISPLAY_TRADES", 10, int)

# ---------------------------------------------------------------------------
# Auto-trading bot
# ---------------------------------------------------------------------------

# Unrealized gain (%) at which the bot sells the whole position.
TAKE_PROFIT_PCT: float = _env("TAKE_PROFIT_PCT", 1.5, float)

# Unrealized loss (%) at which the bot sells the whole position.
STOP_LOSS_PCT: float = _env("STOP_LOSS_PCT", 2.0, float)

# Reference price the bot measures P&L against:
# "last"    = price of the most recent buy, manual or bot
# "average" = quantity-weighted cost basis of all held coins
BOT_ENTRY_BASIS: str = _env("BOT_ENTRY_BASIS", "last")

# Start with the bot switched on.  Off by default, like the dashboard toggle.
BOT_AUTOSTART: bool = _env("BOT_AUTOSTART", False, bool)

# ---------------------------------------------------------------------------
# Runtime
# ---------------------------------------------------------------------------

# Consecutive failed ticks before the bot is switched off.
MAX_CONSECUTIVE_ERRORS: int = _env("MAX_CONSECUTIVE_ERRORS", 5, int)

# Python log level.  DEBUG shows every tick; INFO shows fills and controls.
LOG_LEVEL: str = _env("LOG_LEVEL", "INFO")

# Dashboard HTTP port.  Set to 0 to run headless.
HEALTH_PORT: int = _env("PORT", _env("HEALTH_PORT", 8080, int), int)


# ---------------------------------------------------------------------------
# Startup banner -- printed when the dashboard launches
# ---------------------------------------------------------------------------

def print_banner():
    """Print a clear summary of all active settings so you know what's running."""
    lines = [
        "",
        "=" * 60,
        "  PAPER TRADING DASHBOARD",
        "=" * 60,
        f"  Pair:            {PAIR_DISPLAY} (simulated)",
        f"  Initial price:   ${INITIAL_PRICE:,.2f}",
        f"  Volatility:      {VOLATILITY * 100:.2f}% per tick",
        f"  Tick interval:   {TICK_INTERVAL_MS}ms",
        f"  Starting cash:   ${STARTING_BALANCE:,.2f}",
        f"  Fee:             {FEE_RATE * 100:.2f}% per fill",
        f"  Take profit:     {TAKE_PROFIT_PCT:.2f}%",
        f"  Stop loss:       {STOP_LOSS_PCT:.2f}%",
        f"  Entry basis:     {BOT_ENTRY_BASIS}",
        f"  Bot autostart:   {'yes' if BOT_AUTOSTART else 'no'}",
        f"  Random seed:     {RANDOM_SEED if RANDOM_SEED is not None else 'entropy'}",
        f"  Dashboard port:  {HEALTH_PORT or 'disabled'}",
        f"  Log level:       {LOG_LEVEL}",
        "=" * 60,
        "",
    ]
    print("\n".join(lines))

"""
Paper-trading dashboard runtime.

Wires the pieces together:
- one `TradingSession` (price walk, ledger, bot)
- a fixed-rate `TickScheduler` publishing to the dashboard board
- a small JSON/HTML HTTP server for manual trades and bot controls
"""

from __future__ import annotations

import json
import logging
import signal
import threading
from http.server import BaseHTTPRequestHandler, HTTPServer
from math import isfinite
from socketserver import ThreadingMixIn
from typing import Any

import config
import dashboard
from ledger import InvalidAmount, Rejection, parse_amount
from scheduler import TickScheduler
from session import TradingSession


logger = logging.getLogger(__name__)


def setup_logging() -> None:
    level = getattr(logging, config.LOG_LEVEL.upper(), logging.INFO)
    logging.basicConfig(
        level=level,
        format="%(asctime)s [%(levelname)s] %(name)s - %(message)s",
    )


def _parse_pct(value: Any) -> float:
    try:
        pct = float(value)
    except (TypeError, ValueError) as exc:
        raise ValueError("invalid numeric value") from exc
    if not isfinite(pct):
        raise ValueError("invalid numeric value")
    return pct


def _parse_bool(value: Any) -> bool:
    if isinstance(value, bool):
        return value
    return str(value).strip().lower() in ("true", "1", "yes", "on")


def handle_action(session: TradingSession, body: dict) -> tuple[int, dict]:
    """
    Validate and apply one dashboard action.

    Returns (http_status, json_body).  All user input is checked here so the
    session only ever sees well-formed numbers.
    """
    action = str(body.get("action") or "").strip()

    if action == "trade":
        side = str(body.get("side") or "").strip().lower()
        if side not in ("buy", "sell"):
            return 400, {"ok": False, "message": "side must be buy or sell"}
        try:
            amount = parse_amount(body.get("amount"))
        except InvalidAmount as e:
            return 400, {"ok": False, "message": str(e), "error": "invalid_amount"}
        result = session.manual_trade(side, amount)
        if isinstance(result, Rejection):
            return 400, {"ok": False, "message": result.message, "error": result.reason}
        return 200, {"ok": True, "message": f"{side} {result.quantity:.8f} filled", "trade": result.to_dict()}

    if action == "bot":
        ok, msg = session.set_bot_active(_parse_bool(body.get("active", False)))
        return 200, {"ok": ok, "message": msg}

    if action in ("set_take_profit", "set_stop_loss"):
        try:
            value = _parse_pct(body.get("value"))
        except ValueError as e:
            return 400, {"ok": False, "message": str(e)}
        if action == "set_take_profit":
            ok, msg = session.set_take_profit(value)
        else:
            ok, msg = session.set_stop_loss(value)
        return (200 if ok else 400), {"ok": ok, "message": msg}

    if action == "suggest_amount":
        side = str(body.get("side") or "").strip().lower()
        if side not in ("buy", "sell"):
            return 400, {"ok": False, "message": "side must be buy or sell"}
        try:
            fraction = _parse_pct(body.get("fraction", 1.0))
        except ValueError as e:
            return 400, {"ok": False, "message": str(e)}
        amount = session.suggest_amount(side, fraction)
        return 200, {"ok": True, "message": f"{amount:.5f}", "amount": amount}

    return 400, {"ok": False, "message": f"unknown action: {action}"}


class ThreadingHTTPServer(ThreadingMixIn, HTTPServer):
    daemon_threads = True

    session: TradingSession
    board: dashboard.StatusBoard


class DashboardHandler(BaseHTTPRequestHandler):
    server: ThreadingHTTPServer

    def log_message(self, fmt: str, *args: Any) -> None:  # noqa: D401
        logger.debug("HTTP %s - %s", self.address_string(), fmt % args)

    def _send_json(self, data: dict, code: int = 200) -> None:
        payload = json.dumps(data).encode("utf-8")
        self.send_response(code)
        self.send_header("Content-Type", "application/json")
        self.send_header("Cache-Control", "no-store, no-cache, must-revalidate, max-age=0")
        self.send_header("Content-Length", str(len(payload)))
        self.end_headers()
        self.wfile.write(payload)

    def _read_json(self) -> dict:
        n = int(self.headers.get("Content-Length", "0") or "0")
        if n <= 0:
            return {}
        raw = self.rfile.read(n)
        try:
            body = json.loads(raw.decode("utf-8"))
        except Exception as exc:
            raise ValueError("invalid request body") from exc
        if not isinstance(body, dict):
            raise ValueError("invalid request body")
        return body

    def do_GET(self) -> None:  # noqa: N802
        try:
            if self.path == "/" or self.path.startswith("/?"):
                body = dashboard.DASHBOARD_HTML.encode("utf-8")
                self.send_response(200)
                self.send_header("Content-Type", "text/html; charset=utf-8")
                self.send_header("Content-Length", str(len(body)))
                self.end_headers()
                self.wfile.write(body)
                return

            if self.path.startswith("/api/status"):
                self._send_json(self.server.board.display() or self.server.session.display_snapshot())
                return

            if self.path.startswith("/api/chart"):
                chart = self.server.board.chart()
                if not chart.get("values"):
                    chart = self.server.session.chart_payload()
                self._send_json(chart)
                return

            if self.path.startswith("/api/snapshot"):
                self._send_json(self.server.session.to_dict())
                return

            self._send_json({"error": "not found"}, 404)
        except Exception:
            logger.exception("Unhandled exception in GET %s", self.path)
            self._send_json({"error": "internal server error"}, 500)

    def do_POST(self) -> None:  # noqa: N802
        try:
            if not self.path.startswith("/api/action"):
                self._send_json({"ok": False, "message": "not found"}, 404)
                return
            try:
                body = self._read_json()
            except ValueError:
                self._send_json({"ok": False, "message": "invalid request body"}, 400)
                return

            code, payload = handle_action(self.server.session, body)
            if code == 200:
                # Push the post-action state right away instead of waiting a tick.
                self.server.board.publish_display(self.server.session.display_snapshot())
            self._send_json(payload, code)
        except Exception:
            logger.exception("Unhandled exception in /api/action")
            self._send_json({"ok": False, "message": "internal server error"}, 500)


def start_http_server(
    session: TradingSession,
    board: dashboard.StatusBoard,
    port: int = config.HEALTH_PORT,
) -> ThreadingHTTPServer | None:
    if port <= 0:
        return None
    server = ThreadingHTTPServer(("0.0.0.0", int(port)), DashboardHandler)
    server.session = session
    server.board = board
    thread = threading.Thread(target=server.serve_forever, daemon=True, name="dashboard-server")
    thread.start()
    logger.info("Dashboard server started on :%s", port)
    return server


def run() -> None:
    setup_logging()
    config.print_banner()

    session = TradingSession.from_config()
    board = dashboard.StatusBoard()
    scheduler = TickScheduler(session, interval_sec=config.TICK_INTERVAL_MS / 1000.0)
    scheduler.add_display_sink(board.publish_display)
    scheduler.add_chart_sink(board.publish_chart)
    scheduler.publish()

    def _handle_signal(signum, _frame):
        logger.info("Signal %s received", signum)
        scheduler.stop()

    signal.signal(signal.SIGTERM, _handle_signal)
    signal.signal(signal.SIGINT, _handle_signal)

    server = start_http_server(session, board)
    try:
        logger.info("Entering tick loop (every %sms)", config.TICK_INTERVAL_MS)
        scheduler.run()
    finally:
        if server is not None:
            server.shutdown()
        logger.info(
            "Session ended: portfolio $%.2f, %d trades",
            session.ledger.portfolio_value(session.price),
            len(session.history),
        )


if __name__ == "__main__":
    run()

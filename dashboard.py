"""
dashboard.py -- Web dashboard for the paper-trading simulator.

Serves a single-page dark-theme dashboard via the runtime's HTTP server.
No external dependencies -- the HTML/CSS/JS is a Python string constant.

Two public symbols:
  StatusBoard     -- display/chart sink that keeps the latest published payloads
  DASHBOARD_HTML  -- the full HTML page (served on GET /)
"""

from __future__ import annotations

import threading
import time
from typing import Any


class StatusBoard:
    """
    Holds whatever the scheduler published last.

    HTTP handlers read from here instead of the session so a page refresh
    never waits on the tick lock.
    """

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._display: dict[str, Any] = {}
        self._chart: dict[str, Any] = {"labels": [], "values": []}
        self.updated_at = 0.0

    def publish_display(self, snapshot: dict[str, Any]) -> None:
        with self._lock:
            self._display = dict(snapshot)
            self.updated_at = time.time()

    def publish_chart(self, payload: dict[str, Any]) -> None:
        with self._lock:
            self._chart = {
                "pair": payload.get("pair", ""),
                "labels": list(payload.get("labels", [])),
                "values": list(payload.get("values", [])),
            }

    def display(self) -> dict[str, Any]:
        with self._lock:
            return dict(self._display)

    def chart(self) -> dict[str, Any]:
        with self._lock:
            return dict(self._chart)


# ---------------------------------------------------------------------------
# HTML page
# ---------------------------------------------------------------------------

DASHBOARD_HTML = r"""<!DOCTYPE html>
<html lang="en">
<head>
<meta charset="utf-8">
<meta name="viewport" content="width=device-width,initial-scale=1">
<title>Paper Trading Dashboard</title>
<style>
*{margin:0;padding:0;box-sizing:border-box}
body{background:#0d1117;color:#c9d1d9;font-family:'Cascadia Mono','Fira Code',monospace;font-size:14px;padding:16px}
.header{display:flex;align-items:center;gap:16px;margin-bottom:20px;flex-wrap:wrap}
.header h1{font-size:20px;color:#f0f6fc}
.badge{padding:4px 10px;border-radius:4px;font-size:12px;font-weight:700;background:#f0883e;color:#0d1117}
.cards{display:grid;grid-template-columns:repeat(auto-fill,minmax(170px,1fr));gap:12px;margin-bottom:20px}
.card{background:#161b22;border:1px solid #30363d;border-radius:8px;padding:14px}
.card .label{font-size:11px;color:#8b949e;text-transform:uppercase;margin-bottom:4px}
.card .value{font-size:20px;font-weight:700;color:#f0f6fc}
.sections{display:grid;grid-template-columns:2fr 1fr;gap:16px;margin-bottom:20px}
@media(max-width:900px){.sections{grid-template-columns:1fr}}
.section{background:#161b22;border:1px solid #30363d;border-radius:8px;padding:16px}
.section h2{font-size:14px;color:#f0f6fc;margin-bottom:12px;border-bottom:1px solid #30363d;padding-bottom:8px}
canvas{width:100%;height:260px}
table{width:100%;border-collapse:collapse}
th,td{padding:4px 8px;text-align:right;font-size:12px}
th{color:#8b949e}
.buy{color:#3fb950}.sell{color:#f85149}
.up{color:#3fb950}.down{color:#f85149}
input{background:#0d1117;color:#c9d1d9;border:1px solid #30363d;border-radius:4px;padding:6px;width:100%;margin:4px 0}
button{background:#21262d;color:#c9d1d9;border:1px solid #30363d;border-radius:4px;padding:6px 10px;cursor:pointer;margin:2px}
button.active{border-color:#58a6ff;color:#58a6ff}
.ctrl-msg{font-size:12px;min-height:16px;margin-top:6px}
.ctrl-msg.ok{color:#3fb950}.ctrl-msg.err{color:#f85149}
</style>
</head>
<body>
<div class="header"><h1 id="pair">BTC/USD</h1><span class="badge">SIMULATED</span></div>

<div class="cards">
  <div class="card"><div class="label">Price</div><div class="value" id="price">-</div></div>
  <div class="card"><div class="label">Portfolio</div><div class="value" id="portfolio">-</div></div>
  <div class="card"><div class="label">Cash</div><div class="value" id="cash">-</div></div>
  <div class="card"><div class="label">Holdings</div><div class="value" id="holdings">-</div></div>
  <div class="card"><div class="label">Total Profit</div><div class="value" id="profit">-</div></div>
  <div class="card"><div class="label">Trades / Win rate</div><div class="value" id="stats">-</div></div>
</div>

<div class="sections">
  <div class="section"><h2>Price</h2><canvas id="chart" width="800" height="260"></canvas></div>
  <div class="section">
    <h2>Trade</h2>
    <button id="tab-buy" class="active" onclick="setSide('buy')">Buy</button>
    <button id="tab-sell" onclick="setSide('sell')">Sell</button>
    <input id="amount" placeholder="Amount (BTC)">
    <button onclick="quick(0.25)">25%</button><button onclick="quick(0.5)">50%</button>
    <button onclick="quick(0.75)">75%</button><button onclick="quick(1)">Max</button>
    <button id="execute" onclick="trade()">Buy BTC</button>
    <h2 style="margin-top:16px">Bot</h2>
    <div>Status: <span id="bot-status">Idle</span></div>
    <label><input type="checkbox" id="bot-toggle" style="width:auto" onchange="toggleBot(this.checked)"> enabled</label>
    <div>Take profit % <input id="tp" type="number" step="0.1" onchange="setPct('set_take_profit', this.value)"></div>
    <div>Stop loss % <input id="sl" type="number" step="0.1" onchange="setPct('set_stop_loss', this.value)"></div>
    <div class="ctrl-msg" id="ctrl-msg">&nbsp;</div>
  </div>
</div>

<div class="section">
  <h2>Recent Trades</h2>
  <table><thead><tr><th>Time</th><th>Side</th><th>Price</th><th>Amount</th><th>Total</th><th>Note</th></tr></thead>
  <tbody id="history"></tbody></table>
</div>

<script>
const API = '/api/status', CHART = '/api/chart', ACTION = '/api/action';
let side = 'buy';
const usd = n => new Intl.NumberFormat('en-US', {style: 'currency', currency: 'USD'}).format(n);

function showMsg(text, ok) {
  const el = document.getElementById('ctrl-msg');
  el.textContent = text;
  el.className = 'ctrl-msg ' + (ok ? 'ok' : 'err');
  setTimeout(() => { el.innerHTML = '&nbsp;'; el.className = 'ctrl-msg'; }, 5000);
}

async function post(body) {
  try {
    const r = await fetch(ACTION, {method: 'POST', headers: {'Content-Type': 'application/json'}, body: JSON.stringify(body)});
    const d = await r.json();
    showMsg(d.message || (r.ok ? 'ok' : 'error'), r.ok);
    return d;
  } catch(e) { showMsg('Network error', false); return {}; }
}

function setSide(s) {
  side = s;
  document.getElementById('tab-buy').className = s === 'buy' ? 'active' : '';
  document.getElementById('tab-sell').className = s === 'sell' ? 'active' : '';
  document.getElementById('execute').textContent = s === 'buy' ? 'Buy BTC' : 'Sell BTC';
}
async function quick(f) {
  const d = await post({action: 'suggest_amount', side: side, fraction: f});
  if (d.amount !== undefined) document.getElementById('amount').value = d.amount.toFixed(5);
}
async function trade() {
  await post({action: 'trade', side: side, amount: document.getElementById('amount').value});
  document.getElementById('amount').value = '';
  poll();
}
function toggleBot(on) { post({action: 'bot', active: on}); }
function setPct(action, v) { post({action: action, value: v}); }

function drawChart(c) {
  const cv = document.getElementById('chart'), ctx = cv.getContext('2d');
  const v = c.values || [];
  ctx.clearRect(0, 0, cv.width, cv.height);
  if (v.length < 2) return;
  const lo = Math.min(...v), hi = Math.max(...v), span = (hi - lo) || 1;
  ctx.strokeStyle = v[v.length - 1] >= v[0] ? '#3fb950' : '#f85149';
  ctx.lineWidth = 2;
  ctx.beginPath();
  v.forEach((p, i) => {
    const x = i / (v.length - 1) * cv.width, y = cv.height - (p - lo) / span * (cv.height - 10) - 5;
    i ? ctx.lineTo(x, y) : ctx.moveTo(x, y);
  });
  ctx.stroke();
}

function update(s) {
  if (!s || s.price === undefined) return;
  document.getElementById('pair').textContent = s.pair;
  document.getElementById('price').textContent = usd(s.price);
  document.getElementById('portfolio').textContent = usd(s.portfolio_value);
  document.getElementById('cash').textContent = usd(s.cash_balance);
  document.getElementById('holdings').textContent = s.asset_holdings.toFixed(4) + ' BTC';
  const p = document.getElementById('profit');
  p.textContent = (s.total_profit >= 0 ? '+' : '') + usd(s.total_profit);
  p.className = 'value ' + (s.total_profit >= 0 ? 'up' : 'down');
  document.getElementById('stats').textContent = s.trade_count + ' / ' + s.win_rate_pct + '%';
  document.getElementById('bot-status').textContent = s.bot_status;
  document.getElementById('bot-toggle').checked = s.bot_active;
  const tp = document.getElementById('tp'), sl = document.getElementById('sl');
  if (document.activeElement !== tp) tp.value = s.take_profit_pct;
  if (document.activeElement !== sl) sl.value = s.stop_loss_pct;
  document.getElementById('history').innerHTML = (s.trade_history || []).map(t =>
    '<tr><td>' + new Date(t.timestamp * 1000).toLocaleTimeString() + '</td>' +
    '<td class="' + t.side + '">' + t.side.toUpperCase() + '</td>' +
    '<td>' + usd(t.price) + '</td><td>' + t.quantity.toFixed(4) + '</td>' +
    '<td>' + usd(t.notional) + '</td><td>' + t.note + '</td></tr>').join('');
}

async function poll() {
  try {
    const [a, b] = await Promise.all([fetch(API), fetch(CHART)]);
    if (a.ok) update(await a.json());
    if (b.ok) drawChart(await b.json());
  } catch(e) {}
}
poll();
setInterval(poll, 1000);
</script>
</body>
</html>
"""

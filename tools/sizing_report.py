"""
Print a sizing table (lot, margin, risk, buffer, tier) for every instrument.

Usage:
    python tools/sizing_report.py --balance 250 --stop-loss 50
    python tools/sizing_report.py --balance 250 --stop-loss 50 --category volatility
    python tools/sizing_report.py --balance 250 --stop-loss 50 --api-url http://127.0.0.1:8000

Without --api-url the numbers are computed in-process. With it, each row is
fetched from a running service's POST /api/calculate.
"""

import argparse
import json
import sys
from pathlib import Path
from typing import Any, Dict, List, Optional

import requests

repo_root = Path(__file__).resolve().parents[1]
if str(repo_root) not in sys.path:
    sys.path.append(str(repo_root))

from backend.risk.instruments import get_default_catalog
from backend.risk.risk_engine import AccountState, size_position
from backend.risk.validation import validate_calculation_inputs

COLUMNS = (
    ("symbol_id", "Symbol", 28),
    ("recommended_lot_size", "Lot", 8),
    ("margin_required", "Margin", 12),
    ("risk_amount", "Risk", 10),
    ("drawdown_buffer_percentage", "Buffer %", 9),
    ("warning_tier", "Tier", 9),
    ("stack_count", "Stack", 6),
)


def parse_args(argv: Optional[List[str]] = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Synthetic index sizing table")
    parser.add_argument("--balance", type=float, required=True, help="Account balance in USD")
    parser.add_argument("--stop-loss", type=float, required=True, help="Stop loss distance in points")
    parser.add_argument("--target-margin", type=float, default=35.0, help="Stacking target margin %% (default 35)")
    parser.add_argument("--category", help="Only instruments in this category (e.g. volatility, crash, boom)")
    parser.add_argument("--api-url", help="Base URL of a running service; compute locally when omitted")
    parser.add_argument("--json", action="store_true", help="Emit JSON rows instead of a table")
    return parser.parse_args(argv)


def local_rows(args: argparse.Namespace) -> List[Dict[str, Any]]:
    account = AccountState(balance=args.balance, target_margin_percent=args.target_margin)
    rows: List[Dict[str, Any]] = []
    for spec in get_default_catalog():
        if args.category and spec.category != args.category:
            continue
        result = size_position(account, args.stop_loss, spec)
        rows.append(_row(result.symbol_id, {
            "recommended_lot_size": result.recommended_lot_size,
            "margin_required": result.margin_required,
            "risk_amount": result.risk_amount,
            "drawdown_buffer_percentage": result.drawdown_buffer_percentage,
            "warning_tier": result.warning_tier.value,
            "stack_count": result.stacking_plan.position_count,
        }))
    return rows


def remote_rows(args: argparse.Namespace, session: Optional[requests.Session] = None) -> List[Dict[str, Any]]:
    base = args.api_url.rstrip("/")
    session = session or requests.Session()
    symbols = session.get(f"{base}/api/symbols", timeout=10)
    symbols.raise_for_status()
    rows: List[Dict[str, Any]] = []
    for item in symbols.json():
        if args.category and item.get("category") != args.category:
            continue
        resp = session.post(
            f"{base}/api/calculate",
            json={
                "symbol": item["symbol_id"],
                "stop_loss_points": args.stop_loss,
                "balance": args.balance,
                "target_margin_percent": args.target_margin,
            },
            timeout=10,
        )
        if resp.status_code != 200:
            print(f"{item['symbol_id']}: HTTP {resp.status_code} {resp.text}", file=sys.stderr)
            continue
        data = resp.json()
        data["stack_count"] = (data.get("stacking_plan") or {}).get("position_count")
        rows.append(_row(item["symbol_id"], data))
    return rows


def _row(symbol_id: str, data: Dict[str, Any]) -> Dict[str, Any]:
    row = {key: data.get(key) for key, _, _ in COLUMNS}
    row["symbol_id"] = symbol_id
    return row


def render_table(rows: List[Dict[str, Any]]) -> str:
    header = " ".join(title.ljust(width) for _, title, width in COLUMNS)
    lines = [header, "-" * len(header)]
    for row in rows:
        lines.append(" ".join(str(row.get(key, "")).ljust(width) for key, _, width in COLUMNS))
    return "\n".join(lines)


def main(argv: Optional[List[str]] = None) -> int:
    args = parse_args(argv)
    check = validate_calculation_inputs(args.stop_loss, args.balance)
    if not check.valid:
        for error in check.errors:
            print(error, file=sys.stderr)
        return 2
    rows = remote_rows(args) if args.api_url else local_rows(args)
    if args.json:
        print(json.dumps(rows, indent=2))
    else:
        print(render_table(rows))
    return 0


if __name__ == "__main__":
    sys.exit(main())

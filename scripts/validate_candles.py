#!/usr/bin/env python3
"""
Validate the candles endpoint of a running server.

Checks performed:
- HTTP 200 and JSON array (or the {error, details} payload on failure)
- Required fields present with correct types
- Parseable timestamps in strictly increasing order (oldest → newest)
- No more candles than requested
- Optionally, that no returned candle is still outside the robust band of the
  returned window (--check-band)

Usage examples:
  python scripts/validate_candles.py --symbol BTCUSDT --interval 1h --limit 100
  python scripts/validate_candles.py --host 127.0.0.1 --port 3000 --symbol ETHUSDT --interval 1m --realtime
"""

import argparse
import sys
from typing import Any, List, Tuple

import httpx
from dateutil import parser as dateparser


REQUIRED_FIELDS = ["time", "open", "high", "low", "close", "volume"]


def parse_args() -> argparse.Namespace:
    p = argparse.ArgumentParser(description="Validate candles endpoint response.")
    p.add_argument("--host", default="localhost", help="Server host (default: localhost)")
    p.add_argument("--port", type=int, default=3000, help="Server port (default: 3000)")
    p.add_argument("--symbol", required=True, help="Symbol (e.g., BTCUSDT)")
    p.add_argument("--interval", required=True, help="Interval (e.g., 1m, 5m, 1h, 4h, 1d)")
    p.add_argument("--limit", type=int, default=100, help="Number of candles to request")
    p.add_argument("--realtime", action="store_true", help="Query /api/realtime/candles instead of /api/candles")
    p.add_argument("--check-band", action="store_true", help="Report candles still outside the median/MAD band")
    p.add_argument("--print-sample", type=int, default=0, help="Print first N items for visual inspection")
    return p.parse_args()


def is_number(x: Any) -> bool:
    return isinstance(x, (int, float)) and not isinstance(x, bool)


def validate_item(item: dict) -> Tuple[bool, str]:
    for f in REQUIRED_FIELDS:
        if f not in item:
            return False, f"missing field: {f}"

    for f in REQUIRED_FIELDS[1:]:
        if not is_number(item[f]):
            return False, f"{f} must be a number"

    try:
        dateparser.isoparse(item["time"])
    except (TypeError, ValueError):
        return False, f"invalid time: {item['time']}"

    if item["volume"] < 0:
        return False, "negative volume"

    return True, ""


def validate_ordering(items: List[dict]) -> Tuple[bool, str]:
    times = [dateparser.isoparse(it["time"]) for it in items]
    for i in range(1, len(times)):
        if times[i] <= times[i - 1]:
            return False, f"times not strictly increasing at index {i}: {times[i-1]} -> {times[i]}"
    return True, ""


def remaining_outliers(items: List[dict]) -> List[int]:
    """Indexes of candles whose high/low is outside median ± 5·1.4826·MAD of the returned window."""
    from core.sanitizer import compute_bounds
    from core.schemas import Candle

    candles = [Candle(**it) for it in items]
    bounds = compute_bounds(candles)
    return [i for i, c in enumerate(candles) if bounds.is_outlier(c)]


def main() -> int:
    args = parse_args()
    prefix = "realtime/candles" if args.realtime else "candles"
    url = f"http://{args.host}:{args.port}/api/{prefix}/{args.symbol}/{args.interval}"
    params = {} if args.realtime else {"limit": args.limit}
    print(f"[Info] Requesting: {url} {params or ''}")

    try:
        resp = httpx.get(url, params=params, timeout=30.0)
    except httpx.HTTPError as e:
        print(f"[Error] Request failed: {e}")
        return 2

    try:
        data = resp.json()
    except ValueError as e:
        print(f"[Error] Invalid JSON (HTTP {resp.status_code}): {e}")
        return 2

    if resp.status_code != 200:
        if isinstance(data, dict) and "error" in data:
            print(f"[Error] HTTP {resp.status_code}: {data['error']} ({data.get('details', '-')})")
        else:
            print(f"[Error] HTTP {resp.status_code}: {resp.text[:300]}")
        return 2

    if not isinstance(data, list):
        print("[Error] Response is not a list")
        return 2

    if not data:
        print("[Error] Empty list")
        return 1

    if not args.realtime and len(data) > args.limit:
        print(f"[Error] Got {len(data)} candles, requested at most {args.limit}")
        return 1

    for idx, item in enumerate(data):
        ok, msg = validate_item(item)
        if not ok:
            print(f"[Error] Item {idx} invalid: {msg}")
            return 1

    ok, msg = validate_ordering(data)
    if not ok:
        print(f"[Error] Ordering check failed: {msg}")
        return 1

    if args.check_band:
        outliers = remaining_outliers(data)
        if outliers:
            print(f"[Warn] {len(outliers)} candle(s) outside the band of the returned window: {outliers[:10]}")
        else:
            print("[Info] No candle outside the band of the returned window")

    if args.print_sample > 0:
        sample = data[: args.print_sample]
        print(f"[Info] Sample ({len(sample)} of {len(data)}):")
        for it in sample:
            print(it)

    print(f"[OK] Validated {len(data)} candles for {args.symbol} {args.interval}")
    return 0


if __name__ == "__main__":
    sys.exit(main())

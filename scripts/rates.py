#!/usr/bin/env python3
"""
Exchange-rate cache diagnostics.

Usage:
    python scripts/rates.py status USD EUR          # warm bases, print cache status
    python scripts/rates.py convert 120.50 EUR USD  # convert one amount
    python scripts/rates.py --config my.yaml status INR

Rates come from the configured provider (``rate_cache.provider_url``).  When
the provider is unreachable the cache serves the fallback table, and the
``provider_degraded`` log line on stderr says so.
"""

import argparse
import logging
import sys
from decimal import Decimal, InvalidOperation
from pathlib import Path

# Add project root to path
ROOT = Path(__file__).resolve().parent.parent
sys.path.insert(0, str(ROOT))

from reimburse_config import get_active_config
from reimburse_config.bridges import build_rate_cache
from reimburse_kernel.exceptions import InvalidCurrencyError
from reimburse_kernel.logging_config import configure_logging
from reimburse_services.currency_normalizer import CurrencyNormalizer


def cmd_status(cache, bases: list[str]) -> int:
    tables = cache.get_many(bases)
    for base, rates in tables.items():
        print(f"{base}: {len(rates)} rates")

    status = cache.status()
    print(f"\nTTL: {status.ttl_seconds:.0f}s")
    if not status.entries:
        print("No cached snapshots (provider unavailable, fallback served).")
    for entry in status.entries:
        state = "STALE" if entry.is_stale else "fresh"
        print(
            f"  {entry.base_currency}  {state:5}  age={entry.age_seconds:8.1f}s  "
            f"fetched_at={entry.fetched_at.isoformat()}  rates={entry.rate_count}"
        )
    if status.in_flight:
        print(f"  in flight: {', '.join(sorted(status.in_flight))}")
    return 0


def cmd_convert(cache, amount: str, source: str, target: str) -> int:
    try:
        value = Decimal(amount)
    except InvalidOperation:
        print(f"Error: not a decimal amount: {amount!r}", file=sys.stderr)
        return 2
    converted = CurrencyNormalizer(cache).convert(value, source, target)
    print(f"{value} {source.upper()} = {converted} {target.upper()}")
    return 0


def main() -> int:
    parser = argparse.ArgumentParser(description="Exchange-rate cache diagnostics")
    parser.add_argument("--config", type=Path, default=None, help="YAML config override")
    parser.add_argument("--verbose", "-v", action="store_true", help="Debug logging")
    sub = parser.add_subparsers(dest="command", required=True)

    p_status = sub.add_parser("status", help="Warm bases and print cache status")
    p_status.add_argument("bases", nargs="*", default=["USD"])

    p_convert = sub.add_parser("convert", help="Convert an amount")
    p_convert.add_argument("amount")
    p_convert.add_argument("source")
    p_convert.add_argument("target")

    args = parser.parse_args()
    config = get_active_config(args.config)
    configure_logging(
        level=logging.DEBUG if args.verbose else config.log_level,
    )

    with build_rate_cache(config) as cache:
        try:
            if args.command == "status":
                return cmd_status(cache, args.bases)
            return cmd_convert(cache, args.amount, args.source, args.target)
        except InvalidCurrencyError as e:
            print(f"Error: {e}", file=sys.stderr)
            return 2


if __name__ == "__main__":
    sys.exit(main())

"""CLI printing one exchange rate as JSON."""

from __future__ import annotations

import argparse
import json
import sys
from datetime import date
from typing import Any, Sequence

from fx_resolver import FxResolver
from fx_resolver.errors import ExchangeRateError
from fx_resolver.models import Frequency, RateSource
from fx_resolver.utils.date_range import parse_date

__all__ = ["lookup_rate", "parse_args", "main"]


def parse_args(argv: Sequence[str] | None = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description=__doc__)
    parser.add_argument("--from", dest="from_currency", required=True, help="Currency to convert from")
    parser.add_argument("--to", dest="to_currency", required=True, help="Currency to convert to")
    parser.add_argument("--date", dest="day", type=parse_date, default=date.today(), help="YYYY-MM-DD")
    parser.add_argument("--source", type=RateSource.parse, default=RateSource.ECB)
    parser.add_argument("--frequency", type=Frequency.parse, default=Frequency.DAILY)
    parser.add_argument("--db", dest="db_url", help="Database DSN (defaults to the bundled SQLite file)")
    return parser.parse_args(argv)


def lookup_rate(
    resolver: FxResolver,
    from_currency: str,
    to_currency: str,
    day: date,
    source: RateSource,
    frequency: Frequency,
) -> dict[str, Any]:
    """Return the JSON payload for one lookup; ``rate`` is ``None`` when unavailable."""

    rate = resolver.get_rate(from_currency, to_currency, day, source, frequency)
    return {
        "from_currency": from_currency.upper(),
        "to_currency": to_currency.upper(),
        "date": day.isoformat(),
        "source": source.value,
        "frequency": frequency.value,
        "rate": None if rate is None else str(rate),
    }


def main(argv: Sequence[str] | None = None, *, resolver: FxResolver | None = None) -> int:
    args = parse_args(argv)
    owns_resolver = resolver is None
    resolver = resolver or FxResolver(args.db_url)
    try:
        payload = lookup_rate(
            resolver, args.from_currency, args.to_currency, args.day, args.source, args.frequency
        )
    except ExchangeRateError as exc:
        print(json.dumps({"error": str(exc)}), file=sys.stderr)
        return 2
    finally:
        if owns_resolver:
            resolver.close()

    if payload["rate"] is None:
        message = (
            f"No exchange rate available for {payload['from_currency']} -> "
            f"{payload['to_currency']} on {payload['date']}"
        )
        print(json.dumps({"error": message}))
        return 1
    print(json.dumps(payload))
    return 0


if __name__ == "__main__":  # pragma: no cover - CLI entry point
    raise SystemExit(main())

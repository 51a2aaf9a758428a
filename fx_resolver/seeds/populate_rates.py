"""CLI + helpers for seeding the durable store with historical bank rates."""

from __future__ import annotations

import argparse
from datetime import date
from typing import Sequence

from fx_resolver import FxResolver
from fx_resolver.models import RateSource
from fx_resolver.utils.date_range import parse_date
from fx_resolver.utils.logger import get_logger

LOGGER = get_logger(__name__)

__all__ = ["seed_rates", "parse_args", "main"]


def parse_args(argv: Sequence[str] | None = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description=__doc__)
    parser.add_argument("--from", dest="start", required=True, help="Earliest date (YYYY-MM-DD)")
    parser.add_argument(
        "--source",
        dest="sources",
        action="append",
        type=RateSource.parse,
        help="Rate source to seed (repeatable, defaults to every source)",
    )
    parser.add_argument("--db", dest="db_url", help="Database DSN (defaults to the bundled SQLite file)")
    parser.add_argument(
        "--latest",
        action="store_true",
        help="Also fetch the latest batch of every source",
    )
    return parser.parse_args(argv)


def seed_rates(
    start: str | date,
    *,
    sources: Sequence[RateSource | str] | None = None,
    db_url: str | None = None,
    latest: bool = False,
    resolver: FxResolver | None = None,
) -> bool:
    """Ingest every rate from ``start`` onwards for the selected sources.

    The pegged-currency table in use is written to the durable store as well.
    Returns ``True`` when every targeted (source, frequency) pair reaches ``start``.
    """

    start_date = parse_date(start)
    owns_resolver = resolver is None
    resolver = resolver or FxResolver(db_url)
    try:
        pegs = resolver.durable.insert_pegged_currencies(list(resolver.pegs))
        LOGGER.info("Pegged currencies: inserted %s, updated %s", pegs.inserted, pegs.updated)

        covered = resolver.ensure_minimum_date_range(start_date, sources)
        if not covered:
            LOGGER.warning("Some sources could not be seeded back to %s", start_date)
        if latest:
            summary = resolver.update_rates()
            if not summary.ok:
                covered = False
        LOGGER.info("Seeding finished (complete: %s)", covered)
        return covered
    finally:
        if owns_resolver:
            resolver.close()


def main(argv: Sequence[str] | None = None) -> int:
    args = parse_args(argv)
    ok = seed_rates(args.start, sources=args.sources, db_url=args.db_url, latest=args.latest)
    return 0 if ok else 1


if __name__ == "__main__":  # pragma: no cover - CLI entry point
    raise SystemExit(main())

"""SQLAlchemy powered durable store for SQLite, MySQL and Postgres."""

from __future__ import annotations

from datetime import date, datetime
from typing import Any, Sequence

from sqlalchemy import create_engine, text
from sqlalchemy.engine import Engine

from fx_resolver.db.base_backend import DurableStore, PersistenceResult
from fx_resolver.models import Frequency, PeggedCurrency, RateRecord, RateSource, quantize_rate
from fx_resolver.utils.logger import get_logger

LOGGER = get_logger(__name__)

SCHEMA_SQL_RATES = """
CREATE TABLE IF NOT EXISTS exchange_rates (
    rate_date DATE NOT NULL,
    currency_code VARCHAR(3) NOT NULL,
    source VARCHAR(8) NOT NULL,
    frequency VARCHAR(10) NOT NULL,
    rate NUMERIC(18, 5) NOT NULL,
    created_at TIMESTAMP NOT NULL DEFAULT CURRENT_TIMESTAMP,
    PRIMARY KEY(rate_date, currency_code, source, frequency)
);
"""

SCHEMA_SQL_PEGGED = """
CREATE TABLE IF NOT EXISTS pegged_currencies (
    currency_code VARCHAR(3) NOT NULL,
    pegged_to VARCHAR(3) NOT NULL,
    rate NUMERIC(18, 5) NOT NULL,
    PRIMARY KEY(currency_code)
);
"""

SELECT_RATE_SQL = """
SELECT rate FROM exchange_rates
WHERE rate_date = :rate_date AND currency_code = :currency_code
  AND source = :source AND frequency = :frequency
"""
INSERT_RATE_SQL = """
INSERT INTO exchange_rates(rate_date, currency_code, source, frequency, rate)
VALUES(:rate_date, :currency_code, :source, :frequency, :rate)
"""
UPDATE_RATE_SQL = """
UPDATE exchange_rates SET rate = :rate
WHERE rate_date = :rate_date AND currency_code = :currency_code
  AND source = :source AND frequency = :frequency
"""

SELECT_PEG_SQL = "SELECT pegged_to, rate FROM pegged_currencies WHERE currency_code = :currency_code"
INSERT_PEG_SQL = """
INSERT INTO pegged_currencies(currency_code, pegged_to, rate)
VALUES(:currency_code, :pegged_to, :rate)
"""
UPDATE_PEG_SQL = """
UPDATE pegged_currencies SET pegged_to = :pegged_to, rate = :rate
WHERE currency_code = :currency_code
"""


class RelationalBackend(DurableStore):
    """Durable store over any SQLAlchemy URL.

    Dates are bound as ISO strings and rates as decimal strings so the same
    statements work on drivers without native ``Decimal``/``date`` adapters.
    """

    def __init__(self, url: str) -> None:
        self.url = url
        self._engine_instance: Engine | None = None

    def _get_engine(self) -> Engine:
        if self._engine_instance is None:
            self._engine_instance = create_engine(self.url, future=True)
        return self._engine_instance

    def ensure_schema(self) -> None:
        engine = self._get_engine()
        with engine.begin() as connection:
            LOGGER.info("Ensuring exchange_rates schema exists")
            connection.execute(text("SELECT 1"))
            connection.execute(text(SCHEMA_SQL_RATES))
            connection.execute(text(SCHEMA_SQL_PEGGED))

    def insert_rates(self, rows: Sequence[RateRecord]) -> PersistenceResult:
        result = PersistenceResult()
        if not rows:
            return result
        engine = self._get_engine()
        with engine.begin() as connection:
            for row in rows:
                params = {
                    "rate_date": row.rate_date.isoformat(),
                    "currency_code": row.currency,
                    "source": row.source.value,
                    "frequency": row.frequency.value,
                    "rate": str(row.rate),
                }
                saved = connection.execute(text(SELECT_RATE_SQL), params).scalar()
                if saved is None:
                    connection.execute(text(INSERT_RATE_SQL), params)
                    result.inserted += 1
                elif quantize_rate(saved) != row.rate:
                    connection.execute(text(UPDATE_RATE_SQL), params)
                    result.updated += 1
        return result

    def fetch_range(
        self,
        start: date | None = None,
        end: date | None = None,
        *,
        source: RateSource | None = None,
        frequency: Frequency | None = None,
    ) -> list[RateRecord]:
        where_clauses: list[str] = []
        params: dict[str, Any] = {}
        if start is not None:
            where_clauses.append("rate_date >= :start_date")
            params["start_date"] = start.isoformat()
        if end is not None:
            where_clauses.append("rate_date < :end_date")
            params["end_date"] = end.isoformat()
        if source is not None:
            where_clauses.append("source = :source")
            params["source"] = source.value
        if frequency is not None:
            where_clauses.append("frequency = :frequency")
            params["frequency"] = frequency.value
        query = "SELECT rate_date, currency_code, source, frequency, rate FROM exchange_rates"
        if where_clauses:
            query += " WHERE " + " AND ".join(where_clauses)
        query += " ORDER BY rate_date, currency_code"

        engine = self._get_engine()
        with engine.connect() as connection:
            return [
                RateRecord(
                    rate_date=_normalise_rate_date(mapping["rate_date"]),
                    currency=mapping["currency_code"],
                    source=mapping["source"],
                    frequency=mapping["frequency"],
                    rate=quantize_rate(mapping["rate"]),
                )
                for mapping in connection.execute(text(query), params).mappings()
            ]

    def pegged_currencies(self) -> list[PeggedCurrency]:
        engine = self._get_engine()
        with engine.connect() as connection:
            rows = connection.execute(
                text(
                    "SELECT currency_code, pegged_to, rate FROM pegged_currencies "
                    "ORDER BY currency_code"
                )
            ).mappings()
            return [
                PeggedCurrency(row["currency_code"], row["pegged_to"], quantize_rate(row["rate"]))
                for row in rows
            ]

    def insert_pegged_currencies(self, rows: Sequence[PeggedCurrency]) -> PersistenceResult:
        result = PersistenceResult()
        if not rows:
            return result
        engine = self._get_engine()
        with engine.begin() as connection:
            for row in rows:
                params = {
                    "currency_code": row.currency,
                    "pegged_to": row.pegged_to,
                    "rate": str(row.rate),
                }
                saved = connection.execute(text(SELECT_PEG_SQL), params).mappings().first()
                if saved is None:
                    connection.execute(text(INSERT_PEG_SQL), params)
                    result.inserted += 1
                elif saved["pegged_to"] != row.pegged_to or quantize_rate(saved["rate"]) != row.rate:
                    connection.execute(text(UPDATE_PEG_SQL), params)
                    result.updated += 1
        return result

    def close(self) -> None:
        if self._engine_instance is not None:
            self._engine_instance.dispose()
            self._engine_instance = None


def _normalise_rate_date(value: object) -> date:
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    return date.fromisoformat(str(value)[:10])


__all__ = ["RelationalBackend"]

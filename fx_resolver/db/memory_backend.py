"""Process-local durable store, mainly for tests and embedding."""

from __future__ import annotations

import threading
from datetime import date
from decimal import Decimal
from typing import Sequence

from fx_resolver.db.base_backend import DurableStore, PersistenceResult
from fx_resolver.models import Frequency, PeggedCurrency, RateRecord, RateSource

_RowKey = tuple[date, str, RateSource, Frequency]


class MemoryBackend(DurableStore):
    """Dictionary backed store with the same upsert semantics as the SQL backends."""

    def __init__(
        self,
        rates: Sequence[RateRecord] = (),
        pegs: Sequence[PeggedCurrency] = (),
    ) -> None:
        self._rates: dict[_RowKey, Decimal] = {}
        self._pegs: dict[str, PeggedCurrency] = {}
        self._lock = threading.Lock()
        self.insert_calls = 0
        self.insert_rates(rates)
        self.insert_pegged_currencies(pegs)
        self.insert_calls = 0

    def ensure_schema(self) -> None:
        return None

    def insert_rates(self, rows: Sequence[RateRecord]) -> PersistenceResult:
        result = PersistenceResult()
        with self._lock:
            self.insert_calls += 1
            for row in rows:
                key = (row.rate_date, row.currency, row.source, row.frequency)
                previous = self._rates.get(key)
                if previous is None:
                    result.inserted += 1
                elif previous != row.rate:
                    result.updated += 1
                else:
                    continue
                self._rates[key] = row.rate
        return result

    def fetch_range(
        self,
        start: date | None = None,
        end: date | None = None,
        *,
        source: RateSource | None = None,
        frequency: Frequency | None = None,
    ) -> list[RateRecord]:
        with self._lock:
            items = list(self._rates.items())
        records = [
            RateRecord(rate_date, currency, row_source, row_frequency, rate)
            for (rate_date, currency, row_source, row_frequency), rate in items
            if (start is None or rate_date >= start)
            and (end is None or rate_date < end)
            and (source is None or row_source is source)
            and (frequency is None or row_frequency is frequency)
        ]
        records.sort(key=lambda record: (record.rate_date, record.currency))
        return records

    def pegged_currencies(self) -> list[PeggedCurrency]:
        with self._lock:
            return list(self._pegs.values())

    def insert_pegged_currencies(self, rows: Sequence[PeggedCurrency]) -> PersistenceResult:
        result = PersistenceResult()
        with self._lock:
            for row in rows:
                previous = self._pegs.get(row.currency)
                if previous == row:
                    continue
                if previous is None:
                    result.inserted += 1
                else:
                    result.updated += 1
                self._pegs[row.currency] = row
        return result

    def __len__(self) -> int:
        with self._lock:
            return len(self._rates)


__all__ = ["MemoryBackend"]

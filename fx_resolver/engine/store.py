"""In-memory, authoritative index of ingested rates.

Rates are kept per (source, frequency) pair as ``currency -> date -> value``
together with the earliest date known for the pair (the "min date" or floor).
The floor bounds the backward date walk of the resolver and tells the
ingestion layer whether older history still has to be fetched.
"""

from __future__ import annotations

import threading
from collections import defaultdict
from dataclasses import dataclass, field
from datetime import date
from decimal import Decimal
from typing import Dict, Iterable, List, Tuple

from fx_resolver.errors import ConflictingRateError, MissingMinDateError
from fx_resolver.models import COMPARISON_PRECISION, Frequency, RateRecord, RateSource
from fx_resolver.utils.logger import get_logger

LOGGER = get_logger(__name__)

PairKey = Tuple[RateSource, Frequency]

#: Floor value of a pair that holds no rates yet.
NO_MIN_DATE = date.max


@dataclass(slots=True)
class BatchResult:
    """Outcome of replaying a batch of records through :meth:`RateStore.put`."""

    added: List[RateRecord] = field(default_factory=list)
    duplicates: int = 0
    conflicts: List[Tuple[RateRecord, RateRecord]] = field(default_factory=list)
    skipped: int = 0

    def merge(self, other: "BatchResult") -> None:
        self.added.extend(other.added)
        self.duplicates += other.duplicates
        self.conflicts.extend(other.conflicts)
        self.skipped += other.skipped


class RateStore:
    """Thread-safe rate index with one minimum-date floor per (source, frequency).

    Mutations for a pair are serialised through that pair's re-entrant lock;
    callers that need several mutations to appear atomic (a whole ingested
    batch plus its floor update) can hold :meth:`lock` around them. Reads are
    single dictionary lookups and never block.
    """

    def __init__(
        self,
        pairs: Iterable[PairKey],
        *,
        comparison_precision: int = COMPARISON_PRECISION,
    ) -> None:
        self.comparison_precision = comparison_precision
        self._rates: Dict[PairKey, Dict[str, Dict[date, Decimal]]] = {}
        self._min_dates: Dict[PairKey, date] = {pair: NO_MIN_DATE for pair in pairs}
        self._locks: Dict[PairKey, threading.RLock] = {}
        self._locks_guard = threading.Lock()

    @classmethod
    def from_records(
        cls,
        pairs: Iterable[PairKey],
        records: Iterable[RateRecord],
        *,
        comparison_precision: int = COMPARISON_PRECISION,
    ) -> "RateStore":
        """Build a store and bulk load ``records`` into it."""

        store = cls(pairs, comparison_precision=comparison_precision)
        result = store.load(records)
        if result.conflicts:
            raise ConflictingRateError(result.conflicts)
        return store

    def lock(self, source: RateSource, frequency: Frequency) -> threading.RLock:
        key = (source, frequency)
        with self._locks_guard:
            lock = self._locks.get(key)
            if lock is None:
                lock = self._locks[key] = threading.RLock()
            return lock

    def pairs(self) -> list[PairKey]:
        return list(self._min_dates)

    # ------------------------------------------------------------------ writes

    def put(self, record: RateRecord) -> bool:
        """Insert ``record`` unless its tuple is already stored.

        Returns ``True`` when the record was newly added and ``False`` when an
        equal value (at :attr:`comparison_precision`) was already present.
        A disagreeing value raises :class:`ConflictingRateError`.
        """

        with self.lock(record.source, record.frequency):
            dates = self._rates.setdefault(record.pair_key, {}).setdefault(record.currency, {})
            saved = dates.get(record.rate_date)
            if saved is None:
                dates[record.rate_date] = record.rate
                return True
            if self._rounded(saved) != self._rounded(record.rate):
                stored = RateRecord(
                    record.rate_date, record.currency, record.source, record.frequency, saved
                )
                LOGGER.error(
                    "Saved exchange rate differs from new value. Currency: %s. Saved rate: %s. "
                    "New rate: %s. Source: %s. Frequency: %s",
                    record.currency,
                    saved,
                    record.rate,
                    record.source.value,
                    record.frequency.value,
                )
                raise ConflictingRateError([(stored, record)])
            return False

    def put_many(self, records: Iterable[RateRecord], *, lower_floor: bool = True) -> BatchResult:
        """Replay ``records`` through :meth:`put`, collecting conflicts.

        Each pair's inserts and its floor update happen under the pair lock.
        Records for pairs without min-date bookkeeping are skipped.
        """

        result = BatchResult()
        grouped: Dict[PairKey, List[RateRecord]] = defaultdict(list)
        for record in records:
            grouped[record.pair_key].append(record)

        for (source, frequency), rows in grouped.items():
            if (source, frequency) not in self._min_dates:
                LOGGER.warning(
                    "Skipping %s rates for unregistered source %s with frequency %s",
                    len(rows),
                    source.value,
                    frequency.value,
                )
                result.skipped += len(rows)
                continue
            with self.lock(source, frequency):
                for row in rows:
                    try:
                        if self.put(row):
                            result.added.append(row)
                        else:
                            result.duplicates += 1
                    except ConflictingRateError as exc:
                        result.conflicts.extend(exc.conflicts)
                if lower_floor:
                    self.lower_min_date_if_needed(
                        source, frequency, min(row.rate_date for row in rows)
                    )
        return result

    def load(self, records: Iterable[RateRecord]) -> BatchResult:
        """Bulk load records read from durable storage."""

        result = self.put_many(records)
        LOGGER.debug(
            "Loaded %s rates (%s already known, %s conflicts)",
            len(result.added),
            result.duplicates,
            len(result.conflicts),
        )
        return result

    def correct(self, record: RateRecord) -> Decimal | None:
        """Overwrite the value for ``record``'s tuple, bypassing conflict checks.

        Returns the previous value, or ``None`` if the tuple was absent.
        """

        with self.lock(record.source, record.frequency):
            if record.pair_key not in self._min_dates:
                raise MissingMinDateError(record.source, record.frequency)
            dates = self._rates.setdefault(record.pair_key, {}).setdefault(record.currency, {})
            previous = dates.get(record.rate_date)
            dates[record.rate_date] = record.rate
            self.lower_min_date_if_needed(record.source, record.frequency, record.rate_date)
            return previous

    def lower_min_date_if_needed(
        self, source: RateSource, frequency: Frequency, candidate: date
    ) -> bool:
        """Lower the floor to ``candidate`` if it precedes the current floor."""

        with self.lock(source, frequency):
            current = self.min_date(source, frequency)
            if candidate < current:
                self._min_dates[(source, frequency)] = candidate
                return True
            return False

    # ------------------------------------------------------------------- reads

    def min_date(self, source: RateSource, frequency: Frequency) -> date:
        try:
            return self._min_dates[(source, frequency)]
        except KeyError:
            raise MissingMinDateError(source, frequency) from None

    def has_currency(self, source: RateSource, frequency: Frequency, currency: str) -> bool:
        return currency in self._rates.get((source, frequency), {})

    def get(
        self, source: RateSource, frequency: Frequency, currency: str, day: date
    ) -> Decimal | None:
        return self._rates.get((source, frequency), {}).get(currency, {}).get(day)

    def currencies(self, source: RateSource, frequency: Frequency) -> list[str]:
        return sorted(self._rates.get((source, frequency), {}))

    def month_records(
        self,
        source: RateSource,
        frequency: Frequency,
        currency: str,
        year: int,
        month: int,
    ) -> list[RateRecord]:
        """Return every stored record of ``currency`` within one calendar month."""

        dates = dict(self._rates.get((source, frequency), {}).get(currency, {}))
        return [
            RateRecord(day, currency, source, frequency, value)
            for day, value in sorted(dates.items())
            if day.year == year and day.month == month
        ]

    def __len__(self) -> int:
        return sum(
            len(dates)
            for currencies in list(self._rates.values())
            for dates in list(currencies.values())
        )

    def _rounded(self, value: Decimal) -> Decimal:
        return round(value, self.comparison_precision)


__all__ = ["BatchResult", "NO_MIN_DATE", "PairKey", "RateStore"]

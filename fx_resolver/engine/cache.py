"""Month-keyed rate cache with sliding expiry.

Lookups tend to arrive serially and cluster within one calendar month, so the
cache holds whole months keyed by (source, frequency, currency, year, month).
The first ingestion of a month populates it and later lookups in the same
month become a dictionary hit. Entries expire after a period without access;
expiry is evaluated lazily on the next access to the key, there is no
background sweeper. The rate store stays authoritative: losing an entry only
costs a slower lookup.
"""

from __future__ import annotations

import threading
import time
from dataclasses import dataclass
from datetime import date, timedelta
from types import MappingProxyType
from typing import Callable, Dict, Iterable, Mapping, NamedTuple

from fx_resolver.models import Frequency, RateRecord, RateSource

DEFAULT_SLIDING_EXPIRY = timedelta(minutes=30)


class CacheKey(NamedTuple):
    source: RateSource
    frequency: Frequency
    currency: str
    year: int
    month: int


@dataclass(slots=True)
class _CacheEntry:
    # Replaced wholesale on every write so readers never see a half-updated month.
    rates: Mapping[date, RateRecord]
    last_access: float


class MonthlyRateCache:
    """Thread-safe cache of per-month, per-currency rate lists."""

    def __init__(
        self,
        sliding_expiry: timedelta | float | None = None,
        *,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        if sliding_expiry is None:
            sliding_expiry = DEFAULT_SLIDING_EXPIRY
        if isinstance(sliding_expiry, timedelta):
            sliding_expiry = sliding_expiry.total_seconds()
        if sliding_expiry <= 0:
            raise ValueError("sliding_expiry must be positive")
        self.sliding_expiry_seconds = float(sliding_expiry)
        self._clock = clock
        self._entries: Dict[CacheKey, _CacheEntry] = {}
        self._lock = threading.Lock()

    def get_rate(
        self, currency: str, day: date, source: RateSource, frequency: Frequency
    ) -> RateRecord | None:
        """Return the cached record for ``day`` or ``None`` if not cached."""

        key = CacheKey(source, frequency, currency, day.year, day.month)
        with self._lock:
            entry = self._live_entry(key)
            if entry is None:
                return None
            entry.last_access = self._clock()
            return entry.rates.get(day)

    def is_month_cached(
        self,
        currency: str,
        year: int,
        month: int,
        source: RateSource,
        frequency: Frequency,
    ) -> bool:
        key = CacheKey(source, frequency, currency, year, month)
        with self._lock:
            entry = self._live_entry(key)
            if entry is None:
                return False
            entry.last_access = self._clock()
            return True

    def store_month(
        self,
        records: Iterable[RateRecord],
        currency: str,
        year: int,
        month: int,
        source: RateSource,
        frequency: Frequency,
    ) -> None:
        """Replace the cached month with ``records`` (rows outside the month are ignored)."""

        key = CacheKey(source, frequency, currency, year, month)
        rates = {
            record.rate_date: record
            for record in records
            if record.rate_date.year == year and record.rate_date.month == month
        }
        with self._lock:
            self._entries[key] = _CacheEntry(MappingProxyType(rates), self._clock())

    def upsert(self, record: RateRecord) -> None:
        """Insert or overwrite a single day, keeping the rest of the month."""

        key = CacheKey(
            record.source,
            record.frequency,
            record.currency,
            record.rate_date.year,
            record.rate_date.month,
        )
        with self._lock:
            entry = self._live_entry(key)
            rates = dict(entry.rates) if entry is not None else {}
            rates[record.rate_date] = record
            self._entries[key] = _CacheEntry(MappingProxyType(rates), self._clock())

    def clear(self) -> None:
        with self._lock:
            self._entries.clear()

    def __len__(self) -> int:
        with self._lock:
            return len(self._entries)

    def _live_entry(self, key: CacheKey) -> _CacheEntry | None:
        """Return the entry for ``key``, evicting it if it has expired.

        Must be called with ``self._lock`` held.
        """

        entry = self._entries.get(key)
        if entry is None:
            return None
        if self._clock() - entry.last_access > self.sliding_expiry_seconds:
            del self._entries[key]
            return None
        return entry


__all__ = ["CacheKey", "DEFAULT_SLIDING_EXPIRY", "MonthlyRateCache"]

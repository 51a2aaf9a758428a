"""Keep the rate store covering the dates callers ask for.

Every ingestion path (durable reload, historical fetch, latest refresh,
single-rate correction) goes through the same steps: insert into the
:class:`~fx_resolver.engine.store.RateStore` under the pair lock, lower the
pair's floor, persist the new rows and refresh the touched months of the
:class:`~fx_resolver.engine.cache.MonthlyRateCache` from the store.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import date
from typing import Callable, Iterable, Sequence

from fx_resolver.db.base_backend import DurableStore
from fx_resolver.engine.cache import MonthlyRateCache
from fx_resolver.engine.store import NO_MIN_DATE, BatchResult, PairKey, RateStore
from fx_resolver.errors import (
    ConflictingRateError,
    IngestionError,
    ProviderError,
    UnsupportedFrequencyError,
)
from fx_resolver.ingestion.singleflight import SingleFlight
from fx_resolver.models import Frequency, RateRecord, RateSource
from fx_resolver.providers.base import RateProvider
from fx_resolver.providers.registry import ProviderRegistry
from fx_resolver.utils.date_range import month_ranges, start_of_month
from fx_resolver.utils.logger import get_logger

LOGGER = get_logger(__name__)


@dataclass(slots=True)
class RefreshSummary:
    """Outcome of :meth:`IngestionOrchestrator.refresh_latest`."""

    added: dict[PairKey, int] = field(default_factory=dict)
    failed: dict[RateSource, str] = field(default_factory=dict)

    @property
    def ok(self) -> bool:
        return not self.failed


class IngestionOrchestrator:
    """Fetch, store, persist and cache rates for registered providers."""

    def __init__(
        self,
        store: RateStore,
        durable: DurableStore,
        registry: ProviderRegistry,
        cache: MonthlyRateCache,
        *,
        today: Callable[[], date] = date.today,
    ) -> None:
        self.store = store
        self.durable = durable
        self.registry = registry
        self.cache = cache
        self._today = today
        self._flight = SingleFlight()

    # ------------------------------------------------------------ coverage

    def ensure_minimum_date_range(
        self,
        min_date: date,
        sources: Iterable[RateSource | str] | None = None,
    ) -> bool:
        """Make every targeted (source, frequency) pair cover ``min_date``.

        Returns ``True`` only when every pair covers it afterwards. Provider
        failures raise :class:`IngestionError`.
        """

        providers = (
            list(self.registry)
            if sources is None
            else [self.registry.get(source) for source in sources]
        )
        covered = True
        for provider in providers:
            for frequency in provider.frequencies:
                covered = self.ensure_pair(provider, frequency, min_date) and covered
        return covered

    def ensure_pair(self, provider: RateProvider, frequency: Frequency, min_date: date) -> bool:
        """Single-flight coverage check for one (source, frequency) pair."""

        key = ("ensure", provider.source, frequency)
        while True:
            if self.covers(provider.source, frequency, min_date):
                return True
            covered, shared = self._flight.do(
                key, lambda: self._ensure_pair(provider, frequency, min_date)
            )
            if not shared or not covered:
                return covered
            # The shared call may have targeted a later date; re-check ours.

    def covers(self, source: RateSource, frequency: Frequency, min_date: date) -> bool:
        floor = self.store.min_date(source, frequency)
        return floor != NO_MIN_DATE and start_of_month(floor) <= start_of_month(min_date)

    def _ensure_pair(self, provider: RateProvider, frequency: Frequency, min_date: date) -> bool:
        source = provider.source
        if self.covers(source, frequency, min_date):
            return True

        self.reload(source, frequency, min_date)
        if self.covers(source, frequency, min_date):
            return True

        floor = self.store.min_date(source, frequency)
        upper = self._today() if floor == NO_MIN_DATE else floor
        start, end = min(min_date, upper), max(min_date, upper)
        records = self._fetch_history(provider, frequency, start, end)
        if not records:
            LOGGER.error(
                "Fetching historical rates failed for source %s with frequency %s between %s and %s: "
                "no rates returned",
                source.value,
                frequency.value,
                start,
                end,
            )
            return False
        self.ingest(records)
        return self.covers(source, frequency, min_date)

    def reload(self, source: RateSource, frequency: Frequency, min_date: date) -> BatchResult:
        """Load durable rows from the start of ``min_date``'s month up to the current floor."""

        floor = self.store.min_date(source, frequency)
        end = None if floor == NO_MIN_DATE else floor
        rows = self.durable.fetch_range(
            start_of_month(min_date), end, source=source, frequency=frequency
        )
        with self.store.lock(source, frequency):
            result = self.store.load(rows)
            self._refresh_cache(result.added)
        if rows:
            LOGGER.info(
                "Reloaded %s %s/%s rates from durable storage",
                len(result.added),
                source.value,
                frequency.value,
            )
        if result.conflicts:
            raise ConflictingRateError(result.conflicts)
        return result

    def backfill(
        self,
        provider: RateProvider,
        frequency: Frequency,
        day: date,
        lookback_start: date,
        currencies: Sequence[str] = (),
    ) -> bool:
        """Fill gaps between the floor and ``day`` after a failed resolution.

        Ensures coverage of ``lookback_start`` first; when the floor already
        precedes ``day`` the bounded window ``[max(floor, lookback_start), day]``
        is fetched, unless every month of the window is cached for all of
        ``currencies``.
        """

        covered = self.ensure_pair(provider, frequency, lookback_start)
        floor = self.store.min_date(provider.source, frequency)
        if floor == NO_MIN_DATE or floor > day:
            return covered
        start = max(floor, lookback_start)
        if currencies and self._window_cached(provider.source, frequency, currencies, start, day):
            LOGGER.debug(
                "Skipping %s/%s back-fill for %s to %s: months already cached",
                provider.source.value,
                frequency.value,
                start,
                day,
            )
            return covered

        def fill() -> bool:
            records = self._fetch_history(provider, frequency, start, day)
            if not records:
                LOGGER.warning(
                    "No %s/%s rates returned between %s and %s",
                    provider.source.value,
                    frequency.value,
                    start,
                    day,
                )
                return False
            self.ingest(records)
            return True

        filled, _ = self._flight.do(("history", provider.source, frequency, start, day), fill)
        return filled

    def _window_cached(
        self,
        source: RateSource,
        frequency: Frequency,
        currencies: Sequence[str],
        start: date,
        end: date,
    ) -> bool:
        return all(
            self.cache.is_month_cached(currency, chunk.start.year, chunk.start.month, source, frequency)
            for chunk in month_ranges(start, end)
            for currency in currencies
        )

    # -------------------------------------------------------------- refresh

    def refresh_latest(self) -> RefreshSummary:
        """Fetch the latest batch of every source and frequency.

        A failing source is logged and skipped; the remaining sources are still
        refreshed.
        """

        summary = RefreshSummary()
        for provider in self.registry:
            try:
                for frequency in provider.frequencies:
                    records, _ = self._flight.do(
                        ("latest", provider.source, frequency),
                        lambda: provider.fetch_latest(frequency),
                    )
                    if not records:
                        LOGGER.warning(
                            "Latest %s/%s batch was empty", provider.source.value, frequency.value
                        )
                        summary.added[(provider.source, frequency)] = 0
                        continue
                    self.reload(
                        provider.source, frequency, min(record.rate_date for record in records)
                    )
                    result = self.ingest(records)
                    summary.added[(provider.source, frequency)] = len(result.added)
            except Exception as exc:  # noqa: BLE001 - one source must not block the others
                LOGGER.error("Updating rates for source %s failed: %s", provider.source.value, exc)
                summary.failed[provider.source] = str(exc)
        LOGGER.info(
            "Refreshed latest rates: %s new, %s failed sources",
            sum(summary.added.values()),
            len(summary.failed),
        )
        return summary

    # ----------------------------------------------------------- correction

    def correct_rate(self, record: RateRecord) -> None:
        """Overwrite one stored rate everywhere, leaving its neighbours untouched."""

        provider = self.registry.get(record.source)
        if not provider.supports(record.frequency):
            raise UnsupportedFrequencyError(record.source, record.frequency)
        with self.store.lock(record.source, record.frequency):
            self.durable.insert_rates([record])
            previous = self.store.correct(record)
            self.cache.upsert(record)
        LOGGER.info(
            "Corrected %s/%s rate %s (previous value %s)",
            record.source.value,
            record.frequency.value,
            record,
            previous,
        )

    # --------------------------------------------------------------- ingest

    def ingest(self, records: Sequence[RateRecord]) -> BatchResult:
        """Store, persist and cache a batch; conflicts are raised after the batch completes."""

        result = BatchResult()
        for (source, frequency), rows in _group_by_pair(records).items():
            with self.store.lock(source, frequency):
                pair_result = self.store.put_many(rows)
                self._refresh_cache(pair_result.added)
            result.merge(pair_result)
        if result.added:
            persisted = self.durable.insert_rates(result.added)
            LOGGER.info(
                "Ingested %s rates (%s duplicates, %s persisted)",
                len(result.added),
                result.duplicates,
                persisted.total,
            )
        if result.conflicts:
            raise ConflictingRateError(result.conflicts)
        return result

    def _fetch_history(
        self, provider: RateProvider, frequency: Frequency, start: date, end: date
    ) -> list[RateRecord]:
        LOGGER.info(
            "Fetching %s/%s rates from %s to %s",
            provider.source.value,
            frequency.value,
            start,
            end,
        )
        try:
            return provider.fetch_history(frequency, start, end)
        except ProviderError as exc:
            raise IngestionError(
                f"Fetching {frequency.value} rates from {provider.source.value} "
                f"between {start} and {end} failed: {exc}"
            ) from exc

    def _refresh_cache(self, added: Iterable[RateRecord]) -> None:
        months = {
            (*record.pair_key, record.currency, record.rate_date.year, record.rate_date.month)
            for record in added
        }
        for source, frequency, currency, year, month in months:
            self.cache.store_month(
                self.store.month_records(source, frequency, currency, year, month),
                currency,
                year,
                month,
                source,
                frequency,
            )


def _group_by_pair(records: Iterable[RateRecord]) -> dict[PairKey, list[RateRecord]]:
    grouped: dict[PairKey, list[RateRecord]] = {}
    for record in records:
        grouped.setdefault(record.pair_key, []).append(record)
    return grouped


__all__ = ["IngestionOrchestrator", "RefreshSummary"]

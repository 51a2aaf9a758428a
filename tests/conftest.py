"""Shared fakes for the fx_resolver test-suite."""

from __future__ import annotations

import threading
from datetime import date
from decimal import Decimal
from typing import Callable, Iterable, Sequence

import pytest

from fx_resolver import FxResolver
from fx_resolver.db.memory_backend import MemoryBackend
from fx_resolver.engine.pegged import PeggedCurrencyTable
from fx_resolver.engine.resolver import RateResolver
from fx_resolver.engine.store import RateStore
from fx_resolver.models import Frequency, QuoteType, RateRecord, RateSource
from fx_resolver.providers.base import RateFetcher, RateProvider
from fx_resolver.providers.registry import ProviderRegistry

TODAY = date(2024, 1, 31)


def rate(
    day: date,
    currency: str,
    value: str | float,
    source: RateSource = RateSource.ECB,
    frequency: Frequency = Frequency.DAILY,
) -> RateRecord:
    return RateRecord(day, currency, source, frequency, Decimal(str(value)))


class FakeClock:
    def __init__(self, start: float = 1000.0) -> None:
        self.now = start

    def advance(self, seconds: float) -> None:
        self.now += seconds

    def __call__(self) -> float:
        return self.now


class FakeFeed:
    """In-memory stand-in for a bank API, recording every fetch."""

    def __init__(
        self,
        records: Iterable[RateRecord] = (),
        latest: Iterable[RateRecord] = (),
    ) -> None:
        self.records = list(records)
        self.latest_records = list(latest)
        self.history_calls: list[tuple[Frequency, date, date]] = []
        self.latest_calls: list[Frequency] = []
        self.error: Exception | None = None
        self.delay: threading.Event | None = None
        self._lock = threading.Lock()

    def _history(self, frequency: Frequency) -> Callable[[date, date], list[RateRecord]]:
        def fetch(start: date, end: date) -> list[RateRecord]:
            with self._lock:
                self.history_calls.append((frequency, start, end))
            if self.delay is not None:
                self.delay.wait(timeout=5)
            if self.error is not None:
                raise self.error
            return [
                record
                for record in self.records
                if record.frequency is frequency and start <= record.rate_date <= end
            ]

        return fetch

    def _latest(self, frequency: Frequency) -> Callable[[], list[RateRecord]]:
        def fetch() -> list[RateRecord]:
            self.latest_calls.append(frequency)
            if self.error is not None:
                raise self.error
            return [record for record in self.latest_records if record.frequency is frequency]

        return fetch

    def provider(
        self,
        source: RateSource = RateSource.ECB,
        currency: str = "EUR",
        quote_type: QuoteType = QuoteType.INDIRECT,
        frequencies: Sequence[Frequency] = (Frequency.DAILY, Frequency.MONTHLY),
    ) -> RateProvider:
        return RateProvider(
            source,
            currency,
            quote_type,
            {
                frequency: RateFetcher(latest=self._latest(frequency), history=self._history(frequency))
                for frequency in frequencies
            },
        )


def mxcb_provider(feed: FakeFeed) -> RateProvider:
    return feed.provider(RateSource.MXCB, "MXN", QuoteType.DIRECT, (Frequency.MONTHLY,))


def build_resolver(
    records: Iterable[RateRecord],
    providers: Sequence[RateProvider] | None = None,
) -> RateResolver:
    """Resolver over a store pre-loaded with ``records`` and no ingestion."""

    providers = providers or [FakeFeed().provider(), mxcb_provider(FakeFeed())]
    registry = ProviderRegistry(providers)
    store = RateStore.from_records(registry.pairs(), records)
    return RateResolver(store, PeggedCurrencyTable.defaults(), registry)


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def make_fx(clock: FakeClock) -> Callable[..., FxResolver]:
    def factory(
        *providers: RateProvider,
        durable: MemoryBackend | None = None,
        **kwargs,
    ) -> FxResolver:
        return FxResolver(
            durable if durable is not None else MemoryBackend(),
            providers=list(providers) or [FakeFeed().provider()],
            today=lambda: TODAY,
            clock=clock,
            **kwargs,
        )

    return factory

"""Provider descriptor and per-frequency fetch capabilities."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import date
from types import MappingProxyType
from typing import Callable, Mapping, Sequence

from fx_resolver.errors import UnsupportedFrequencyError
from fx_resolver.models import Frequency, QuoteType, RateRecord, RateSource

LatestFetch = Callable[[], Sequence[RateRecord]]
HistoryFetch = Callable[[date, date], Sequence[RateRecord]]


@dataclass(frozen=True, slots=True)
class RateFetcher:
    """Fetch operations of one published frequency.

    ``history`` receives an inclusive ``[start, end]`` window. Both callables
    may return an empty sequence when the provider has nothing for the window.
    """

    latest: LatestFetch
    history: HistoryFetch


@dataclass(frozen=True, slots=True)
class ProviderDescriptor:
    source: RateSource
    currency: str
    quote_type: QuoteType
    frequencies: frozenset[Frequency]


class RateProvider:
    """A rate source together with the frequencies it can fetch.

    Capabilities are declared through the ``fetchers`` mapping; callers ask
    :meth:`supports` instead of testing the provider's type.
    """

    def __init__(
        self,
        source: RateSource | str,
        currency: str,
        quote_type: QuoteType | str,
        fetchers: Mapping[Frequency | str, RateFetcher],
    ) -> None:
        if not fetchers:
            raise ValueError("A provider must support at least one frequency")
        self._fetchers: Mapping[Frequency, RateFetcher] = MappingProxyType(
            {Frequency.parse(freq): fetcher for freq, fetcher in fetchers.items()}
        )
        self.descriptor = ProviderDescriptor(
            source=RateSource.parse(source),
            currency=currency.upper(),
            quote_type=QuoteType(quote_type),
            frequencies=frozenset(self._fetchers),
        )

    @property
    def source(self) -> RateSource:
        return self.descriptor.source

    @property
    def currency(self) -> str:
        return self.descriptor.currency

    @property
    def quote_type(self) -> QuoteType:
        return self.descriptor.quote_type

    @property
    def frequencies(self) -> list[Frequency]:
        """Supported frequencies in declaration order of :class:`Frequency`."""

        return [freq for freq in Frequency if freq in self._fetchers]

    def supports(self, frequency: Frequency | str) -> bool:
        return Frequency.parse(frequency) in self._fetchers

    def fetch_latest(self, frequency: Frequency | str) -> list[RateRecord]:
        return list(self._fetcher(frequency).latest())

    def fetch_history(
        self, frequency: Frequency | str, start: date, end: date
    ) -> list[RateRecord]:
        if start > end:
            raise ValueError("start date must not be after end date")
        return list(self._fetcher(frequency).history(start, end))

    def _fetcher(self, frequency: Frequency | str) -> RateFetcher:
        frequency = Frequency.parse(frequency)
        try:
            return self._fetchers[frequency]
        except KeyError:
            raise UnsupportedFrequencyError(self.source, frequency) from None

    def __repr__(self) -> str:
        freqs = ",".join(freq.value for freq in self.frequencies)
        return f"RateProvider({self.source.value}, {self.currency}, {self.quote_type.value}, [{freqs}])"


__all__ = ["HistoryFetch", "LatestFetch", "ProviderDescriptor", "RateFetcher", "RateProvider"]

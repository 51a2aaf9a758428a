"""Lookup of registered providers by rate source."""

from __future__ import annotations

from typing import Iterable, Iterator

from fx_resolver.errors import UnsupportedSourceError
from fx_resolver.models import Frequency, RateSource
from fx_resolver.providers.base import RateProvider


class ProviderRegistry:
    """Immutable ``RateSource -> RateProvider`` index built at startup."""

    def __init__(self, providers: Iterable[RateProvider]) -> None:
        self._providers: dict[RateSource, RateProvider] = {}
        for provider in providers:
            if provider.source in self._providers:
                raise ValueError(f"Provider for source {provider.source.value} registered twice")
            self._providers[provider.source] = provider

    def get(self, source: RateSource | str) -> RateProvider:
        try:
            key = RateSource.parse(source)
        except ValueError as exc:
            raise UnsupportedSourceError(str(exc)) from None
        try:
            return self._providers[key]
        except KeyError:
            raise UnsupportedSourceError(f"No provider registered for source {key.value}") from None

    def sources(self) -> list[RateSource]:
        return list(self._providers)

    def find_by_currency(self, currency: str) -> list[RateProvider]:
        """Return every provider whose base currency is ``currency``."""

        code = currency.upper()
        return [provider for provider in self._providers.values() if provider.currency == code]

    def pairs(self) -> list[tuple[RateSource, Frequency]]:
        """Every (source, frequency) combination the registered providers publish."""

        return [
            (provider.source, frequency)
            for provider in self._providers.values()
            for frequency in provider.frequencies
        ]

    def __contains__(self, source: object) -> bool:
        return source in self._providers

    def __iter__(self) -> Iterator[RateProvider]:
        return iter(self._providers.values())

    def __len__(self) -> int:
        return len(self._providers)


__all__ = ["ProviderRegistry"]

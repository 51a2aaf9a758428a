"""Cross-rate resolution over the rate store.

A provider quotes every currency against its own base currency, so a request
for an arbitrary pair is answered by one of:

* a direct lookup when one side is the provider currency,
* triangulation through the provider currency when neither side is,
* a pegged-currency leg when the looked-up currency has no quotes of its own.

Direct lookups walk backward one day at a time until a stored rate is found or
the pair's minimum date is passed.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import date
from decimal import Decimal
from enum import Enum
from typing import FrozenSet

from fx_resolver.engine.cache import MonthlyRateCache
from fx_resolver.engine.pegged import PeggedCurrencyTable
from fx_resolver.engine.store import RateStore
from fx_resolver.errors import PegCycleError, UnsupportedFrequencyError
from fx_resolver.models import Frequency, QuoteType, RateSource
from fx_resolver.providers.base import RateProvider
from fx_resolver.providers.registry import ProviderRegistry
from fx_resolver.utils.date_range import days_back
from fx_resolver.utils.logger import get_logger

LOGGER = get_logger(__name__)

ONE = Decimal(1)


class ResolutionFailure(str, Enum):
    NOT_SUPPORTED_CURRENCY = "not_supported_currency"
    NO_RATE_FOUND = "no_rate_found"


@dataclass(frozen=True, slots=True)
class Resolution:
    """Either a resolved ``rate`` or the reason it could not be resolved."""

    rate: Decimal | None = None
    failure: ResolutionFailure | None = None

    @property
    def ok(self) -> bool:
        return self.failure is None

    @classmethod
    def found(cls, rate: Decimal) -> "Resolution":
        return cls(rate=rate)

    @classmethod
    def failed(cls, failure: ResolutionFailure) -> "Resolution":
        return cls(failure=failure)


class RateResolver:
    """Resolve ``from -> to`` rates for one (source, frequency) series."""

    def __init__(
        self,
        store: RateStore,
        pegs: PeggedCurrencyTable,
        registry: ProviderRegistry,
        cache: MonthlyRateCache | None = None,
    ) -> None:
        self.store = store
        self.pegs = pegs
        self.registry = registry
        self.cache = cache

    def resolve(
        self,
        from_currency: str,
        to_currency: str,
        day: date,
        source: RateSource | str,
        frequency: Frequency | str,
    ) -> Resolution:
        """Resolve the amount of ``to_currency`` bought by one ``from_currency``.

        Data gaps are returned as failed :class:`Resolution` values. Faults
        (unknown source, unsupported frequency, missing min-date bookkeeping,
        a pegged cycle) are raised.
        """

        provider = self.registry.get(source)
        frequency = Frequency.parse(frequency)
        if not provider.supports(frequency):
            raise UnsupportedFrequencyError(provider.source, frequency)
        return self._resolve(
            from_currency.upper(), to_currency.upper(), day, provider, frequency, frozenset()
        )

    def _resolve(
        self,
        from_currency: str,
        to_currency: str,
        day: date,
        provider: RateProvider,
        frequency: Frequency,
        visited: FrozenSet[str],
    ) -> Resolution:
        if from_currency == to_currency:
            return Resolution.found(ONE)

        base = provider.currency
        if base not in (from_currency, to_currency):
            first = self._resolve(from_currency, base, day, provider, frequency, visited)
            if not first.ok:
                return first
            second = self._resolve(base, to_currency, day, provider, frequency, visited)
            if not second.ok:
                return second
            return Resolution.found(first.rate * second.rate)

        lookup = to_currency if from_currency == base else from_currency
        if not self.store.has_currency(provider.source, frequency, lookup):
            return self._resolve_pegged(
                from_currency, to_currency, lookup, day, provider, frequency, visited
            )

        value = self._find_on_or_before(lookup, day, provider.source, frequency)
        if value is None:
            return Resolution.failed(ResolutionFailure.NO_RATE_FOUND)
        return Resolution.found(
            self._convert(value, provider.quote_type, to_base=to_currency == base)
        )

    def _resolve_pegged(
        self,
        from_currency: str,
        to_currency: str,
        lookup: str,
        day: date,
        provider: RateProvider,
        frequency: Frequency,
        visited: FrozenSet[str],
    ) -> Resolution:
        peg = self.pegs.get(lookup)
        if peg is None:
            return Resolution.failed(ResolutionFailure.NOT_SUPPORTED_CURRENCY)
        if lookup in visited:
            chain = " -> ".join([*sorted(visited), lookup])
            raise PegCycleError(f"Pegged currency resolution revisited {lookup}: {chain}")

        base = provider.currency
        leg = self._resolve(
            base, peg.pegged_to, day, provider, frequency, visited | {lookup}
        )
        if not leg.ok:
            return leg
        if to_currency == base:
            return Resolution.found(peg.rate / leg.rate)
        return Resolution.found(leg.rate / peg.rate)

    def _find_on_or_before(
        self, currency: str, day: date, source: RateSource, frequency: Frequency
    ) -> Decimal | None:
        floor = self.store.min_date(source, frequency)
        for candidate in days_back(day, floor):
            if self.cache is not None:
                cached = self.cache.get_rate(currency, candidate, source, frequency)
                if cached is not None:
                    return cached.rate
            value = self.store.get(source, frequency, currency, candidate)
            if value is not None:
                if candidate != day:
                    LOGGER.debug(
                        "No %s rate for %s on %s, using %s",
                        currency,
                        source.value,
                        day,
                        candidate,
                    )
                return value
        return None

    @staticmethod
    def _convert(value: Decimal, quote_type: QuoteType, *, to_base: bool) -> Decimal:
        # Direct quotes price the foreign currency in base units; indirect quotes
        # price one base unit in the foreign currency.
        if quote_type is QuoteType.DIRECT:
            return value if to_base else ONE / value
        return ONE / value if to_base else value


__all__ = ["RateResolver", "Resolution", "ResolutionFailure"]

"""Public exchange-rate operations built on the resolver and the orchestrator."""

from __future__ import annotations

from datetime import date, datetime
from decimal import Decimal
from typing import Iterable

from fx_resolver.currencies import normalise_currency
from fx_resolver.engine.resolver import ONE, RateResolver, Resolution, ResolutionFailure
from fx_resolver.errors import UnsupportedFrequencyError
from fx_resolver.ingestion.orchestrator import IngestionOrchestrator, RefreshSummary
from fx_resolver.models import Frequency, RateRecord, RateSource
from fx_resolver.providers.base import RateProvider
from fx_resolver.utils.date_range import add_months, parse_date, start_of_month
from fx_resolver.utils.logger import get_logger

LOGGER = get_logger(__name__)

DEFAULT_LOOKBACK_MONTHS = 1


class ExchangeRateRepository:
    """Resolve rates on demand, ingesting missing history before giving up."""

    def __init__(
        self,
        resolver: RateResolver,
        orchestrator: IngestionOrchestrator,
        *,
        lookback_months: int = DEFAULT_LOOKBACK_MONTHS,
    ) -> None:
        if lookback_months < 0:
            raise ValueError("lookback_months must not be negative")
        self.resolver = resolver
        self.orchestrator = orchestrator
        self.lookback_months = lookback_months

    def get_rate(
        self,
        from_currency: str,
        to_currency: str,
        day: date | datetime | str,
        source: RateSource | str,
        frequency: Frequency | str,
    ) -> Decimal | None:
        """Return the rate converting ``from_currency`` into ``to_currency``.

        The latest rate published on or before ``day`` is used. ``None`` means
        no rate is available even after fetching the missing history; invalid
        currency codes and configuration faults raise.
        """

        from_code = normalise_currency(from_currency)
        to_code = normalise_currency(to_currency)
        day = parse_date(day)
        provider = self.resolver.registry.get(source)
        frequency = Frequency.parse(frequency)
        if not provider.supports(frequency):
            raise UnsupportedFrequencyError(provider.source, frequency)
        if from_code == to_code:
            return ONE

        lookback_start = add_months(day, -self.lookback_months)
        floor = self.orchestrator.store.min_date(provider.source, frequency)
        if floor > day:
            self.orchestrator.ensure_pair(provider, frequency, start_of_month(lookback_start))

        resolution = self._resolve(from_code, to_code, day, provider, frequency)
        if resolution.ok:
            return resolution.rate

        if resolution.failure is ResolutionFailure.NO_RATE_FOUND:
            LOGGER.debug(
                "No rate for %s -> %s on %s (%s/%s), fetching missing rates",
                from_code,
                to_code,
                day,
                provider.source.value,
                frequency.value,
            )
            currencies = sorted({from_code, to_code} - {provider.currency})
            self.orchestrator.backfill(provider, frequency, day, lookback_start, currencies)
            resolution = self._resolve(from_code, to_code, day, provider, frequency)
            if resolution.ok:
                return resolution.rate

        LOGGER.error(
            "No %s %s exchange rate found for %s -> %s on %s (%s). Earliest available date: %s",
            provider.source.value,
            frequency.value,
            from_code,
            to_code,
            day,
            resolution.failure.value,
            self.orchestrator.store.min_date(provider.source, frequency),
        )
        return None

    def update_rates(self) -> RefreshSummary:
        """Refresh the latest batch of every source; failures are logged per source."""

        return self.orchestrator.refresh_latest()

    def ensure_minimum_date_range(
        self,
        min_date: date | datetime | str,
        sources: Iterable[RateSource | str] | None = None,
    ) -> bool:
        return self.orchestrator.ensure_minimum_date_range(parse_date(min_date), sources)

    def update_single_rate(self, record: RateRecord) -> None:
        self.orchestrator.correct_rate(record)

    def _resolve(
        self,
        from_currency: str,
        to_currency: str,
        day: date,
        provider: RateProvider,
        frequency: Frequency,
    ) -> Resolution:
        return self.resolver.resolve(from_currency, to_currency, day, provider.source, frequency)


__all__ = ["DEFAULT_LOOKBACK_MONTHS", "ExchangeRateRepository"]

"""Catalogue of the banks served by the exchange-rate API."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import date, timedelta
from typing import Callable, Sequence

import requests

from fx_resolver.models import Frequency, QuoteType, RateRecord, RateSource
from fx_resolver.providers.base import RateFetcher, RateProvider
from fx_resolver.providers.external_api import BankApiClient, ExternalApiConfig
from fx_resolver.utils.date_range import month_ranges, split_ranges

#: Longest window the API accepts for one daily time-series request.
MAX_DAILY_QUERY_DAYS = 180
#: Days re-read by the daily "latest" batch so previously missed days are filled.
DEFAULT_LATEST_WINDOW_DAYS = 4


@dataclass(frozen=True, slots=True)
class BankDefinition:
    source: RateSource
    bank_id: str
    currency: str
    quote_type: QuoteType
    frequencies: tuple[Frequency, ...]


BANKS: tuple[BankDefinition, ...] = (
    BankDefinition(
        RateSource.ECB, "EUECB", "EUR", QuoteType.INDIRECT, (Frequency.DAILY, Frequency.MONTHLY)
    ),
    BankDefinition(RateSource.HMRC, "GBHMRC", "GBP", QuoteType.INDIRECT, (Frequency.MONTHLY,)),
    BankDefinition(RateSource.MNB, "HUCB", "HUF", QuoteType.DIRECT, (Frequency.DAILY,)),
    BankDefinition(RateSource.PLCB, "PLCB", "PLN", QuoteType.DIRECT, (Frequency.DAILY,)),
    BankDefinition(RateSource.SECB, "SECB", "SEK", QuoteType.DIRECT, (Frequency.DAILY,)),
    BankDefinition(RateSource.MXCB, "MXCB", "MXN", QuoteType.DIRECT, (Frequency.MONTHLY,)),
)


def daily_fetcher(
    client: BankApiClient,
    *,
    latest_window_days: int = DEFAULT_LATEST_WINDOW_DAYS,
    today: Callable[[], date] = date.today,
) -> RateFetcher:
    def history(start: date, end: date) -> list[RateRecord]:
        records: list[RateRecord] = []
        for period in split_ranges(start, end, MAX_DAILY_QUERY_DAYS):
            records.extend(client.daily_rates(period))
        return records

    def latest() -> list[RateRecord]:
        end = today()
        return history(end - timedelta(days=latest_window_days), end)

    return RateFetcher(latest=latest, history=history)


def periodic_fetcher(client: BankApiClient, frequency: Frequency) -> RateFetcher:
    """Fetcher for rates published per week, fortnight or month; history is read month by month."""

    def history(start: date, end: date) -> list[RateRecord]:
        records: list[RateRecord] = []
        for period in month_ranges(start, end):
            records.extend(client.periodic_rates(frequency, period.start.year, period.start.month))
        return records

    def latest() -> list[RateRecord]:
        return client.periodic_rates(frequency)

    return RateFetcher(latest=latest, history=history)


def build_bank_provider(
    bank: BankDefinition,
    config: ExternalApiConfig,
    *,
    session: requests.Session | None = None,
    latest_window_days: int = DEFAULT_LATEST_WINDOW_DAYS,
    today: Callable[[], date] = date.today,
) -> RateProvider:
    client = BankApiClient(config, bank_id=bank.bank_id, source=bank.source, session=session)
    fetchers = {
        frequency: (
            daily_fetcher(client, latest_window_days=latest_window_days, today=today)
            if frequency is Frequency.DAILY
            else periodic_fetcher(client, frequency)
        )
        for frequency in bank.frequencies
    }
    return RateProvider(bank.source, bank.currency, bank.quote_type, fetchers)


def build_bank_providers(
    config: ExternalApiConfig | None = None,
    *,
    session: requests.Session | None = None,
    banks: Sequence[BankDefinition] = BANKS,
    latest_window_days: int = DEFAULT_LATEST_WINDOW_DAYS,
    today: Callable[[], date] = date.today,
) -> list[RateProvider]:
    """Build one provider per catalogued bank, sharing ``session`` when given."""

    config = config or ExternalApiConfig.from_env()
    return [
        build_bank_provider(
            bank,
            config,
            session=session,
            latest_window_days=latest_window_days,
            today=today,
        )
        for bank in banks
    ]


__all__ = [
    "BANKS",
    "BankDefinition",
    "DEFAULT_LATEST_WINDOW_DAYS",
    "MAX_DAILY_QUERY_DAYS",
    "build_bank_provider",
    "build_bank_providers",
    "daily_fetcher",
    "periodic_fetcher",
]

"""Exception hierarchy for fx_resolver.

Data gaps ("no rate for this date", "currency not supported by the source") are
not exceptions; the resolver reports them as :class:`~fx_resolver.engine.resolver.Resolution`
values. Everything below signals a configuration or system defect, or an
upstream failure that a caller explicitly waited on.
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Sequence

if TYPE_CHECKING:  # pragma: no cover - imported only for type checking
    from fx_resolver.models import Frequency, RateRecord, RateSource


class ExchangeRateError(Exception):
    """Base class for every error raised by fx_resolver."""


class InvalidCurrencyCodeError(ExchangeRateError, ValueError):
    """Raised for empty or unknown ISO-4217 currency codes."""


class UnsupportedSourceError(ExchangeRateError):
    """Raised when no provider is registered for a rate source."""


class UnsupportedFrequencyError(ExchangeRateError):
    """Raised when a provider is asked for a frequency it does not publish."""

    def __init__(self, source: "RateSource", frequency: "Frequency") -> None:
        super().__init__(f"Provider {source.value} does not support frequency {frequency.value}")
        self.source = source
        self.frequency = frequency


class MissingMinDateError(ExchangeRateError):
    """Raised when minimum-date bookkeeping is missing for a (source, frequency) pair."""

    def __init__(self, source: "RateSource", frequency: "Frequency") -> None:
        super().__init__(
            f"Couldn't find min FX date for source {source.value} with frequency {frequency.value}"
        )
        self.source = source
        self.frequency = frequency


class ConflictingRateError(ExchangeRateError):
    """Raised when an ingested value disagrees with the stored one for the same tuple.

    ``conflicts`` holds ``(stored, incoming)`` record pairs.
    """

    def __init__(self, conflicts: Sequence[tuple["RateRecord", "RateRecord"]]) -> None:
        self.conflicts = list(conflicts)
        details = "; ".join(
            f"{incoming.currency}-{incoming.rate_date:%Y-%m-%d} "
            f"({incoming.source.value}/{incoming.frequency.value}): "
            f"saved {stored.rate}, new {incoming.rate}"
            for stored, incoming in self.conflicts[:5]
        )
        more = f" (+{len(self.conflicts) - 5} more)" if len(self.conflicts) > 5 else ""
        super().__init__(f"Conflicting exchange rates: {details}{more}")


class PegCycleError(ExchangeRateError):
    """Raised when pegged currencies reference each other in a loop."""


class ProviderError(ExchangeRateError):
    """Raised when an upstream rate provider request fails."""


class IngestionError(ExchangeRateError):
    """Raised when a targeted ingestion cannot reach its provider."""


__all__ = [
    "ConflictingRateError",
    "ExchangeRateError",
    "IngestionError",
    "InvalidCurrencyCodeError",
    "MissingMinDateError",
    "PegCycleError",
    "ProviderError",
    "UnsupportedFrequencyError",
    "UnsupportedSourceError",
]

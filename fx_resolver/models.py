"""Data models shared across the resolution engine, providers and stores."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import date, datetime
from decimal import Decimal
from enum import Enum
from typing import Any

#: Number of decimal places a rate value is stored with.
RATE_PRECISION = 5
#: Places used when checking whether two values for the same tuple disagree.
COMPARISON_PRECISION = 10

_RATE_QUANTUM = Decimal(1).scaleb(-RATE_PRECISION)


class RateSource(str, Enum):
    """Upstream institutions publishing exchange rates."""

    ECB = "ECB"
    HMRC = "HMRC"
    MNB = "MNB"
    PLCB = "PLCB"
    SECB = "SECB"
    MXCB = "MXCB"

    @classmethod
    def parse(cls, value: "RateSource | str") -> "RateSource":
        if isinstance(value, cls):
            return value
        try:
            return cls(str(value).strip().upper())
        except ValueError:
            supported = ", ".join(member.value for member in cls)
            raise ValueError(f"Unsupported rate source {value!r}. Supported values: {supported}") from None


class Frequency(str, Enum):
    """Publication cadence of a rate series."""

    DAILY = "daily"
    WEEKLY = "weekly"
    BIWEEKLY = "biweekly"
    MONTHLY = "monthly"

    @classmethod
    def parse(cls, value: "Frequency | str") -> "Frequency":
        if isinstance(value, cls):
            return value
        normalised = str(value).strip().lower().replace("-", "").replace("_", "")
        try:
            return cls(normalised)
        except ValueError:
            supported = ", ".join(member.value for member in cls)
            raise ValueError(f"Unsupported frequency {value!r}. Supported values: {supported}") from None


class QuoteType(str, Enum):
    """How a provider expresses its rates.

    If the provider currency is EUR:
    - direct: 1 USD = 0.92819 EUR (foreign currency priced in provider currency)
    - indirect: 1 EUR = 1.08238 USD (provider currency priced in foreign currency)
    """

    DIRECT = "direct"
    INDIRECT = "indirect"


def quantize_rate(value: Any) -> Decimal:
    """Convert ``value`` to a :class:`Decimal` with :data:`RATE_PRECISION` places."""

    if not isinstance(value, Decimal):
        # ``str`` avoids binary float artefacts such as 1.0856000000000001.
        value = Decimal(str(value))
    return value.quantize(_RATE_QUANTUM)


@dataclass(slots=True)
class RateRecord:
    """A single published rate of ``currency`` against the provider currency."""

    rate_date: date
    currency: str
    source: RateSource
    frequency: Frequency
    rate: Decimal

    def __post_init__(self) -> None:
        if isinstance(self.rate_date, datetime):
            self.rate_date = self.rate_date.date()
        self.currency = self.currency.upper()
        self.source = RateSource.parse(self.source)
        self.frequency = Frequency.parse(self.frequency)
        self.rate = quantize_rate(self.rate)

    @property
    def pair_key(self) -> tuple[RateSource, Frequency]:
        return (self.source, self.frequency)

    def __str__(self) -> str:
        return f"{self.currency} - {self.rate_date:%Y-%m-%d}: {self.rate}"


@dataclass(frozen=True, slots=True)
class PeggedCurrency:
    """1 unit of ``currency`` equals ``rate`` units of ``pegged_to``."""

    currency: str
    pegged_to: str
    rate: Decimal

    def __post_init__(self) -> None:
        object.__setattr__(self, "currency", self.currency.upper())
        object.__setattr__(self, "pegged_to", self.pegged_to.upper())
        object.__setattr__(self, "rate", quantize_rate(self.rate))


__all__ = [
    "COMPARISON_PRECISION",
    "RATE_PRECISION",
    "Frequency",
    "PeggedCurrency",
    "QuoteType",
    "RateRecord",
    "RateSource",
    "quantize_rate",
]

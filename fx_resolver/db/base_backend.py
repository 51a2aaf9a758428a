"""Durable store interface used by the ingestion layer."""

from __future__ import annotations

from abc import ABC, abstractmethod
from dataclasses import dataclass
from datetime import date
from typing import Sequence

from fx_resolver.models import Frequency, PeggedCurrency, RateRecord, RateSource


@dataclass(slots=True)
class PersistenceResult:
    """Represents how many rows were inserted or updated in a batch."""

    inserted: int = 0
    updated: int = 0

    @property
    def total(self) -> int:
        return self.inserted + self.updated

    def merge(self, other: "PersistenceResult") -> None:
        self.inserted += other.inserted
        self.updated += other.updated


class DurableStore(ABC):
    """Common interface implemented by every persistence backend.

    ``insert_rates`` is an upsert keyed on (date, currency, source, frequency):
    replaying an identical row changes nothing, a different value overwrites.
    """

    @abstractmethod
    def ensure_schema(self) -> None:
        """Create required tables/collections and verify connectivity."""

    @abstractmethod
    def insert_rates(self, rows: Sequence[RateRecord]) -> PersistenceResult:
        """Insert or update rates in bulk."""

    @abstractmethod
    def fetch_range(
        self,
        start: date | None = None,
        end: date | None = None,
        *,
        source: RateSource | None = None,
        frequency: Frequency | None = None,
    ) -> list[RateRecord]:
        """Return rates with ``start <= rate_date < end`` ordered by date."""

    @abstractmethod
    def pegged_currencies(self) -> list[PeggedCurrency]:
        """Return every configured pegged currency."""

    @abstractmethod
    def insert_pegged_currencies(self, rows: Sequence[PeggedCurrency]) -> PersistenceResult:
        """Insert or update pegged currency definitions."""

    def close(self) -> None:  # pragma: no cover - optional cleanup hook
        """Backends may override to release connections/resources."""


__all__ = ["DurableStore", "PersistenceResult"]

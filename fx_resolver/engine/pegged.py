"""Read-only table of currencies whose rate to an anchor currency is fixed."""

from __future__ import annotations

from decimal import Decimal
from types import MappingProxyType
from typing import Iterable, Iterator, Mapping

from fx_resolver.errors import PegCycleError
from fx_resolver.models import PeggedCurrency

DEFAULT_PEGGED_CURRENCIES: tuple[PeggedCurrency, ...] = tuple(
    PeggedCurrency(currency, anchor, Decimal(rate))
    for currency, anchor, rate in (
        ("XCD", "USD", "0.37007"),
        ("DJF", "USD", "0.00562"),
        ("HKD", "USD", "0.12850"),
        ("BAM", "EUR", "0.60000"),
        ("XPF", "EUR", "0.00838"),
        ("BND", "SGD", "1.00000"),
        ("MOP", "HKD", "0.16890"),
        ("AWG", "USD", "0.55866"),
        ("BSD", "USD", "1.00000"),
        ("BHD", "USD", "2.65957"),
        ("BBD", "USD", "0.50000"),
        ("BZD", "USD", "0.49600"),
        ("ANG", "USD", "0.55900"),
        ("ERN", "USD", "0.06667"),
        ("JOD", "USD", "1.41044"),
        ("OMR", "USD", "2.60078"),
        ("PAB", "USD", "1.00000"),
        ("QAR", "USD", "0.27473"),
        ("SAR", "USD", "0.26667"),
        ("TMT", "USD", "0.29777"),
        ("AED", "USD", "0.27229"),
        ("XOF", "EUR", "0.00152"),
        ("CVE", "EUR", "0.00907"),
        ("XAF", "EUR", "0.00152"),
        ("KMF", "EUR", "0.00203"),
    )
)


class PeggedCurrencyTable:
    """Immutable mapping ``currency -> PeggedCurrency`` loaded once at startup.

    Pegs that form a loop (``A -> B -> A``) are rejected on construction so the
    resolver's pegged recursion always terminates.
    """

    __slots__ = ("_pegs",)

    def __init__(self, pegs: Iterable[PeggedCurrency] = ()) -> None:
        table: dict[str, PeggedCurrency] = {}
        for peg in pegs:
            table[peg.currency] = peg
        self._validate_acyclic(table)
        self._pegs: Mapping[str, PeggedCurrency] = MappingProxyType(table)

    @classmethod
    def defaults(cls) -> "PeggedCurrencyTable":
        return cls(DEFAULT_PEGGED_CURRENCIES)

    def get(self, currency: str) -> PeggedCurrency | None:
        """Return the peg for ``currency`` or ``None`` when it floats freely."""

        return self._pegs.get(currency)

    def __contains__(self, currency: object) -> bool:
        return currency in self._pegs

    def __iter__(self) -> Iterator[PeggedCurrency]:
        return iter(self._pegs.values())

    def __len__(self) -> int:
        return len(self._pegs)

    @staticmethod
    def _validate_acyclic(table: Mapping[str, PeggedCurrency]) -> None:
        for start in table:
            chain = [start]
            current = table[start].pegged_to
            while current in table:
                if current in chain:
                    loop = " -> ".join([*chain[chain.index(current):], current])
                    raise PegCycleError(f"Pegged currencies form a cycle: {loop}")
                chain.append(current)
                current = table[current].pegged_to


__all__ = ["DEFAULT_PEGGED_CURRENCIES", "PeggedCurrencyTable"]

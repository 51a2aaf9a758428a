"""Rate store, pegged currencies, monthly cache and cross-rate resolution."""

from fx_resolver.engine.cache import MonthlyRateCache
from fx_resolver.engine.pegged import DEFAULT_PEGGED_CURRENCIES, PeggedCurrencyTable
from fx_resolver.engine.resolver import RateResolver, Resolution, ResolutionFailure
from fx_resolver.engine.store import RateStore

__all__ = [
    "DEFAULT_PEGGED_CURRENCIES",
    "MonthlyRateCache",
    "PeggedCurrencyTable",
    "RateResolver",
    "RateStore",
    "Resolution",
    "ResolutionFailure",
]

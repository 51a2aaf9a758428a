"""Rate providers: descriptors, the bank API client and the registry."""

from fx_resolver.providers.base import ProviderDescriptor, RateFetcher, RateProvider
from fx_resolver.providers.registry import ProviderRegistry

__all__ = ["ProviderDescriptor", "ProviderRegistry", "RateFetcher", "RateProvider"]

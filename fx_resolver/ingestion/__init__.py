"""On-demand ingestion of provider rates into the store, durable store and cache."""

from fx_resolver.ingestion.orchestrator import IngestionOrchestrator, RefreshSummary
from fx_resolver.ingestion.singleflight import SingleFlight

__all__ = ["IngestionOrchestrator", "RefreshSummary", "SingleFlight"]

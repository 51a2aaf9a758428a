"""MongoDB durable store."""

from __future__ import annotations

from datetime import date, datetime, timezone
from decimal import Decimal
from typing import Any, Sequence

from fx_resolver.db.base_backend import DurableStore, PersistenceResult
from fx_resolver.errors import ExchangeRateError
from fx_resolver.models import Frequency, PeggedCurrency, RateRecord, RateSource, quantize_rate
from fx_resolver.utils.logger import get_logger

try:  # pragma: no cover - optional dependency
    from bson.decimal128 import Decimal128
    from pymongo import MongoClient, UpdateOne
    from pymongo.collection import Collection
    from pymongo.errors import PyMongoError
except ModuleNotFoundError:  # pragma: no cover - handled dynamically
    Decimal128 = None  # type: ignore[assignment,misc]
    MongoClient = None  # type: ignore[assignment,misc]
    UpdateOne = None  # type: ignore[assignment,misc]
    Collection = None  # type: ignore[assignment,misc]
    PyMongoError = Exception  # type: ignore[assignment,misc]

LOGGER = get_logger(__name__)

RATE_KEY_FIELDS = ("rate_date", "currency_code", "source", "frequency")


class MongoBackend(DurableStore):
    """Durable store persisting rates and pegs inside MongoDB collections."""

    def __init__(self, url: str, *, database: str | None = None) -> None:
        if MongoClient is None:  # pragma: no cover - defensive
            raise ModuleNotFoundError("pymongo is required for MongoDB backends")
        self.url = url
        self._client = MongoClient(url)
        db = self._client.get_default_database() if database is None else self._client[database]
        if db is None:
            raise ValueError("MongoDB connection URI must include a database name")
        self._rates: Collection = db["exchange_rates"]
        self._pegs: Collection = db["pegged_currencies"]

    def ensure_schema(self) -> None:
        try:
            LOGGER.info("Ensuring MongoDB exchange rate collections exist")
            self._client.admin.command("ping")
            self._rates.create_index([(field, 1) for field in RATE_KEY_FIELDS], unique=True)
            self._pegs.create_index([("currency_code", 1)], unique=True)
        except PyMongoError as exc:  # pragma: no cover - error path
            raise ExchangeRateError(f"Failed to ensure MongoDB schema: {exc}") from exc

    def insert_rates(self, rows: Sequence[RateRecord]) -> PersistenceResult:
        result = PersistenceResult()
        if not rows:
            return result
        operations = []
        for row in rows:
            key = {
                "rate_date": row.rate_date.isoformat(),
                "currency_code": row.currency,
                "source": row.source.value,
                "frequency": row.frequency.value,
            }
            operations.append(
                UpdateOne(
                    key,
                    {
                        "$set": {"rate": _to_bson_decimal(row.rate)},
                        "$setOnInsert": {"created_at": datetime.now(timezone.utc)},
                    },
                    upsert=True,
                )
            )
        try:
            outcome = self._rates.bulk_write(operations, ordered=False)
        except PyMongoError as exc:  # pragma: no cover - error path
            raise ExchangeRateError(f"Failed to insert MongoDB rates: {exc}") from exc
        result.inserted += getattr(outcome, "upserted_count", len(operations))
        result.updated += getattr(outcome, "modified_count", 0)
        return result

    def fetch_range(
        self,
        start: date | None = None,
        end: date | None = None,
        *,
        source: RateSource | None = None,
        frequency: Frequency | None = None,
    ) -> list[RateRecord]:
        query: dict[str, Any] = {}
        if start is not None or end is not None:
            range_query: dict[str, str] = {}
            if start is not None:
                range_query["$gte"] = start.isoformat()
            if end is not None:
                range_query["$lt"] = end.isoformat()
            query["rate_date"] = range_query
        if source is not None:
            query["source"] = source.value
        if frequency is not None:
            query["frequency"] = frequency.value
        docs = self._rates.find(query).sort([("rate_date", 1), ("currency_code", 1)])
        return [
            RateRecord(
                rate_date=date.fromisoformat(doc["rate_date"]),
                currency=doc["currency_code"],
                source=doc["source"],
                frequency=doc["frequency"],
                rate=_from_bson_decimal(doc["rate"]),
            )
            for doc in docs
        ]

    def pegged_currencies(self) -> list[PeggedCurrency]:
        return [
            PeggedCurrency(doc["currency_code"], doc["pegged_to"], _from_bson_decimal(doc["rate"]))
            for doc in self._pegs.find({}).sort("currency_code", 1)
        ]

    def insert_pegged_currencies(self, rows: Sequence[PeggedCurrency]) -> PersistenceResult:
        result = PersistenceResult()
        if not rows:
            return result
        operations = [
            UpdateOne(
                {"currency_code": row.currency},
                {"$set": {"pegged_to": row.pegged_to, "rate": _to_bson_decimal(row.rate)}},
                upsert=True,
            )
            for row in rows
        ]
        try:
            outcome = self._pegs.bulk_write(operations, ordered=False)
        except PyMongoError as exc:  # pragma: no cover - error path
            raise ExchangeRateError(f"Failed to insert MongoDB pegged currencies: {exc}") from exc
        result.inserted += getattr(outcome, "upserted_count", len(operations))
        result.updated += getattr(outcome, "modified_count", 0)
        return result

    def close(self) -> None:  # pragma: no cover - trivial cleanup
        self._client.close()


def _to_bson_decimal(value: Decimal) -> Any:
    return Decimal128(str(value))


def _from_bson_decimal(value: Any) -> Decimal:
    if hasattr(value, "to_decimal"):
        value = value.to_decimal()
    return quantize_rate(value)


__all__ = ["MongoBackend"]

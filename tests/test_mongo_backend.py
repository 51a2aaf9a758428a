"""Mongo backend tests that monkeypatch pymongo primitives."""

from __future__ import annotations

from datetime import date
from decimal import Decimal
from typing import Any, Dict, List

import pytest

from conftest import rate
from fx_resolver.db import mongo_backend as mongo_module
from fx_resolver.models import Frequency, PeggedCurrency, RateSource


class _DummyDecimal128:
    def __init__(self, value: str) -> None:
        self.value = value

    def to_decimal(self) -> Decimal:
        return Decimal(self.value)


class _DummyCursor:
    def __init__(self, docs: List[Dict[str, Any]]) -> None:
        self._docs = docs

    def sort(self, field, direction: int = 1) -> List[Dict[str, Any]]:
        keys = field if isinstance(field, list) else [(field, direction)]
        docs = list(self._docs)
        for name, order in reversed(keys):
            docs.sort(key=lambda doc: doc[name], reverse=order == -1)
        return docs


class _DummyCollection:
    def __init__(self) -> None:
        self.docs: Dict[tuple, Dict[str, Any]] = {}
        self.indexes: list[tuple[tuple[tuple[str, int], ...], bool]] = []

    def __bool__(self) -> bool:  # pragma: no cover - behavioural parity with pymongo
        raise NotImplementedError("Collection truthiness is undefined")

    def create_index(self, fields: list[tuple[str, int]], unique: bool) -> None:
        self.indexes.append((tuple(fields), unique))

    def bulk_write(self, operations: list["_DummyUpdateOne"], ordered: bool) -> "_DummyBulkResult":
        assert ordered is False
        result = _DummyBulkResult()
        for op in operations:
            key = tuple(sorted(op.filter.items()))
            existing = self.docs.get(key)
            new_doc = {**op.filter, **(existing or {}), **op.update["$set"]}
            if existing is None:
                new_doc.update(op.update.get("$setOnInsert", {}))
                result.upserted_count += 1
            elif _plain(existing) != _plain(new_doc):
                result.modified_count += 1
            self.docs[key] = new_doc
        return result

    def find(self, query: Dict[str, Any]) -> _DummyCursor:
        docs = list(self.docs.values())
        range_query = query.get("rate_date", {})
        if "$gte" in range_query:
            docs = [doc for doc in docs if doc["rate_date"] >= range_query["$gte"]]
        if "$lt" in range_query:
            docs = [doc for doc in docs if doc["rate_date"] < range_query["$lt"]]
        for field in ("source", "frequency"):
            if field in query:
                docs = [doc for doc in docs if doc[field] == query[field]]
        return _DummyCursor(docs)


def _plain(doc: Dict[str, Any]) -> Dict[str, Any]:
    return {
        key: value.value if isinstance(value, _DummyDecimal128) else value
        for key, value in doc.items()
        if key != "created_at"
    }


class _DummyBulkResult:
    def __init__(self) -> None:
        self.upserted_count = 0
        self.modified_count = 0


class _DummyUpdateOne:
    def __init__(
        self, filter: Dict[str, str], update: Dict[str, Dict[str, Any]], *, upsert: bool
    ) -> None:
        assert upsert is True
        self.filter = filter
        self.update = update


class _DummyDatabase(dict):
    def __getitem__(self, name: str) -> _DummyCollection:  # type: ignore[override]
        if name not in self:
            self[name] = _DummyCollection()
        return dict.__getitem__(self, name)


class _DummyClient:
    def __init__(self, url: str) -> None:
        self.url = url
        self.admin = self
        self.closed = False
        self.databases: Dict[str, _DummyDatabase] = {}

    def __getitem__(self, name: str) -> _DummyDatabase:
        return self.databases.setdefault(name, _DummyDatabase())

    def get_default_database(self) -> _DummyDatabase:
        return self.__getitem__("default")

    def command(self, name: str) -> None:
        assert name == "ping"

    def close(self) -> None:
        self.closed = True


@pytest.fixture(autouse=True)
def patch_mongo_client(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setattr(mongo_module, "MongoClient", _DummyClient)
    monkeypatch.setattr(mongo_module, "PyMongoError", RuntimeError)
    monkeypatch.setattr(mongo_module, "UpdateOne", _DummyUpdateOne)
    monkeypatch.setattr(mongo_module, "Decimal128", _DummyDecimal128)


def test_mongo_backend_roundtrip() -> None:
    backend = mongo_module.MongoBackend("mongodb://example.com/", database="fx")
    backend.ensure_schema()

    result = backend.insert_rates(
        [
            rate(date(2024, 1, 2), "USD", "1.09"),
            rate(date(2024, 1, 1), "USD", "1.08"),
            rate(date(2024, 1, 1), "GBP", "0.86", RateSource.HMRC, Frequency.MONTHLY),
        ]
    )
    assert result.inserted == 3

    update = backend.insert_rates([rate(date(2024, 1, 1), "USD", "1.10")])
    assert (update.inserted, update.updated) == (0, 1)

    fetched = backend.fetch_range(date(2024, 1, 1), date(2024, 1, 2), source=RateSource.ECB)
    assert [(row.rate_date, row.currency, row.rate) for row in fetched] == [
        (date(2024, 1, 1), "USD", Decimal("1.10"))
    ]
    assert len(backend.fetch_range(frequency=Frequency.MONTHLY)) == 1

    backend.close()


def test_mongo_backend_creates_unique_indexes() -> None:
    backend = mongo_module.MongoBackend("mongodb://example.com/fx")
    backend.ensure_schema()

    rates = backend._rates
    assert rates.indexes == [
        ((("rate_date", 1), ("currency_code", 1), ("source", 1), ("frequency", 1)), True)
    ]


def test_mongo_backend_pegs() -> None:
    backend = mongo_module.MongoBackend("mongodb://example.com/", database="fx")

    backend.insert_pegged_currencies(
        [PeggedCurrency("HKD", "USD", Decimal("0.1285")), PeggedCurrency("AED", "USD", Decimal("0.27229"))]
    )

    assert [peg.currency for peg in backend.pegged_currencies()] == ["AED", "HKD"]

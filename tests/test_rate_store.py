"""Rate store insert, conflict and floor bookkeeping tests."""

from __future__ import annotations

from datetime import date
from decimal import Decimal

import pytest

from conftest import rate
from fx_resolver.engine.store import NO_MIN_DATE, RateStore
from fx_resolver.errors import ConflictingRateError, MissingMinDateError
from fx_resolver.models import Frequency, RateRecord, RateSource

ECB_DAILY = (RateSource.ECB, Frequency.DAILY)


def test_put_is_idempotent_for_equal_values() -> None:
    store = RateStore([ECB_DAILY])

    assert store.put(rate(date(2024, 1, 15), "USD", "1.0856")) is True
    assert store.put(rate(date(2024, 1, 15), "usd", 1.0856)) is False
    assert len(store) == 1
    assert store.get(RateSource.ECB, Frequency.DAILY, "USD", date(2024, 1, 15)) == Decimal("1.08560")


def test_put_rejects_disagreeing_value() -> None:
    store = RateStore([ECB_DAILY])
    store.put(rate(date(2024, 1, 15), "USD", "1.0856"))

    with pytest.raises(ConflictingRateError) as excinfo:
        store.put(rate(date(2024, 1, 15), "USD", "1.0900"))

    stored, incoming = excinfo.value.conflicts[0]
    assert stored.rate == Decimal("1.0856")
    assert incoming.rate == Decimal("1.0900")
    assert store.get(RateSource.ECB, Frequency.DAILY, "USD", date(2024, 1, 15)) == Decimal("1.0856")


def test_values_equal_after_quantisation_are_duplicates() -> None:
    store = RateStore([ECB_DAILY], comparison_precision=10)
    store.put(rate(date(2024, 1, 15), "USD", "1.085600001"))

    assert store.put(rate(date(2024, 1, 15), "USD", "1.0856")) is False


def test_put_many_collects_conflicts_and_keeps_other_rows() -> None:
    store = RateStore([ECB_DAILY])
    store.put(rate(date(2024, 1, 15), "USD", "1.0856"))

    result = store.put_many(
        [
            rate(date(2024, 1, 15), "USD", "1.2"),
            rate(date(2024, 1, 15), "GBP", "0.86"),
            rate(date(2024, 1, 12), "USD", "1.09"),
        ]
    )

    assert len(result.conflicts) == 1
    assert [str(record) for record in result.added] == [
        "GBP - 2024-01-15: 0.86000",
        "USD - 2024-01-12: 1.09000",
    ]
    assert store.min_date(*ECB_DAILY) == date(2024, 1, 12)


def test_put_many_skips_unregistered_pairs() -> None:
    store = RateStore([ECB_DAILY])

    result = store.put_many([rate(date(2024, 1, 1), "USD", 1, RateSource.HMRC, Frequency.MONTHLY)])

    assert result.skipped == 1
    assert len(store) == 0


def test_floor_only_moves_backwards() -> None:
    store = RateStore([ECB_DAILY])
    assert store.min_date(*ECB_DAILY) == NO_MIN_DATE

    assert store.lower_min_date_if_needed(RateSource.ECB, Frequency.DAILY, date(2024, 2, 1))
    assert not store.lower_min_date_if_needed(RateSource.ECB, Frequency.DAILY, date(2024, 3, 1))
    assert store.min_date(*ECB_DAILY) == date(2024, 2, 1)


def test_min_date_for_unknown_pair_is_a_fault() -> None:
    store = RateStore([ECB_DAILY])

    with pytest.raises(MissingMinDateError, match="Couldn't find min FX date for source HMRC"):
        store.min_date(RateSource.HMRC, Frequency.MONTHLY)


def test_correct_overwrites_without_conflict() -> None:
    store = RateStore([ECB_DAILY])
    store.put(rate(date(2024, 1, 10), "USD", "1.10"))

    previous = store.correct(rate(date(2024, 1, 10), "USD", "1.30"))

    assert previous == Decimal("1.10")
    assert store.get(RateSource.ECB, Frequency.DAILY, "USD", date(2024, 1, 10)) == Decimal("1.3")


def test_month_records_are_limited_to_one_month() -> None:
    store = RateStore.from_records(
        [ECB_DAILY],
        [
            rate(date(2024, 1, 31), "USD", "1.08"),
            rate(date(2024, 2, 1), "USD", "1.09"),
            rate(date(2024, 2, 2), "USD", "1.10"),
        ],
    )

    records = store.month_records(RateSource.ECB, Frequency.DAILY, "USD", 2024, 2)

    assert [record.rate_date for record in records] == [date(2024, 2, 1), date(2024, 2, 2)]
    assert all(isinstance(record, RateRecord) for record in records)


def test_from_records_raises_on_conflicting_input() -> None:
    with pytest.raises(ConflictingRateError):
        RateStore.from_records(
            [ECB_DAILY],
            [rate(date(2024, 1, 2), "USD", "1.1"), rate(date(2024, 1, 2), "USD", "1.2")],
        )

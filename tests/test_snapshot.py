from decimal import Decimal

import pytest

from evenup.services.snapshot import (
    InconsistentLedger,
    assert_conserved,
    currencies_of,
    currency_totals,
    has_activity,
    ledger_tolerance,
    normalize_snapshot,
    snapshot_from_rows,
)


def test_normalize_snapshot_coerces_amounts():
    snapshot = normalize_snapshot({"a": {"INR": 1, "USD": 0.1, "EUR": "2.50"}})
    assert snapshot == {"a": {"INR": Decimal(1), "USD": Decimal("0.1"), "EUR": Decimal("2.50")}}


def test_normalize_snapshot_rejects_garbage():
    with pytest.raises(ValueError):
        normalize_snapshot({"a": {"INR": "ten"}})


def test_currencies_in_first_appearance_order():
    snapshot = {"a": {"USD": 1}, "b": {"INR": 1, "USD": -1}, "c": {"EUR": 0, "INR": -1}}
    assert currencies_of(snapshot) == ["USD", "INR", "EUR"]
    assert currency_totals(snapshot) == {"USD": 0, "INR": 0, "EUR": 0}


def test_tolerance_follows_minor_unit():
    assert ledger_tolerance("INR", Decimal("1e-6")) == Decimal("1e-8")
    assert ledger_tolerance("JPY", Decimal("1e-6")) == Decimal("1e-6")
    assert ledger_tolerance("KWD", Decimal("1e-6")) == Decimal("1e-9")


def test_assert_conserved():
    assert_conserved({"a": {"INR": 10}, "b": {"INR": -10}})

    with pytest.raises(InconsistentLedger):
        assert_conserved({"a": {"INR": "10.50"}, "b": {"INR": -10}})


def test_has_activity():
    assert has_activity({}) is False
    assert has_activity({"a": {}}) is False
    assert has_activity({"a": {"INR": 0}}) is True


def test_snapshot_from_rows_sums_duplicates():
    rows = [
        {"member_id": "b", "currency": "INR", "amount": Decimal("5")},
        {"member_id": "a", "currency": "INR", "amount": Decimal("-2")},
        {"member_id": "b", "currency": "INR", "amount": Decimal("-3")},
    ]

    snapshot = snapshot_from_rows(rows)

    assert list(snapshot) == ["b", "a"]
    assert snapshot == {"b": {"INR": Decimal(2)}, "a": {"INR": Decimal(-2)}}

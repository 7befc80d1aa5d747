"""Unit tests for the daily record engine."""

from __future__ import annotations

from datetime import UTC, datetime
from decimal import Decimal

import pytest

from daily_stock import catalog, core_logic
from daily_stock.errors import (
    DuplicateRecordError,
    ProductNotFoundError,
    RecordNotFoundError,
    ValidationError,
)


@pytest.fixture
def cola(context):
    return catalog.create_product(
        context, name="Coca-Cola", category="Drinks", cost_price="0.80", selling_price="1.50")


def _water_day(context, water, **overrides):
    values = {
        "product_id": water.product_id,
        "date": "2024-01-10",
        "opening_stock": 20,
        "added_stock": 10,
        "sold_stock": 25,
    }
    values.update(overrides)
    return core_logic.create_record(context, **values)


# ---------------------------------------------------------------------------
# Derived values
# ---------------------------------------------------------------------------


def test_compute_derived_matches_worked_example():
    derived = core_logic.compute_derived(20, 10, 25, Decimal("0.30"), Decimal("0.80"))

    assert derived == core_logic.DerivedFields(
        closing_stock=5, amount_sold=Decimal("20.00"), profit=Decimal("12.50"))


def test_compute_derived_allows_negative_closing_stock():
    derived = core_logic.compute_derived(2, 0, 5, Decimal("1.00"), Decimal("2.00"))
    assert derived.closing_stock == -3
    assert derived.amount_sold == Decimal("10.00")


def test_compute_derived_zero_sales_has_zero_money():
    derived = core_logic.compute_derived(4, 6, 0, Decimal("0.30"), Decimal("0.80"))
    assert derived.closing_stock == 10
    assert derived.amount_sold == Decimal("0.00")
    assert derived.profit == Decimal("0.00")


def test_compute_derived_does_not_drift_over_many_days():
    total = Decimal("0.00")
    for _ in range(1000):
        total += core_logic.compute_derived(0, 0, 3, Decimal("0.10"), Decimal("0.20")).profit
    assert total == Decimal("300.00")


def test_compute_derived_profit_can_be_negative():
    derived = core_logic.compute_derived(5, 0, 2, Decimal("1.00"), Decimal("0.75"))
    assert derived.profit == Decimal("-0.50")


# ---------------------------------------------------------------------------
# create_record
# ---------------------------------------------------------------------------


def test_create_record_stores_derived_fields(context, water):
    stamp = datetime(2024, 1, 10, 18, 0, tzinfo=UTC)

    record = _water_day(context, water, timestamp=stamp)

    assert record.closing_stock == 5
    assert record.amount_sold == Decimal("20.00")
    assert record.profit == Decimal("12.50")
    assert record.created_at == record.updated_at == stamp
    assert context.store.get_record(record.record_id) == record


def test_create_record_defaults_stock_to_zero(context, water):
    record = core_logic.create_record(context, product_id=water.product_id, date="2024-01-10")
    assert (record.opening_stock, record.added_stock, record.sold_stock) == (0, 0, 0)
    assert record.closing_stock == 0


def test_create_record_rejects_duplicate_and_keeps_first(context, water):
    first = _water_day(context, water)

    with pytest.raises(DuplicateRecordError):
        _water_day(context, water, sold_stock=1)

    assert context.store.list_records() == [first]


def test_create_record_same_date_different_products(context, water, cola):
    _water_day(context, water)
    _water_day(context, cola)
    assert len(context.store.list_records()) == 2


def test_create_record_unknown_product_raises(context):
    with pytest.raises(ProductNotFoundError):
        core_logic.create_record(context, product_id="ghost", date="2024-01-10")
    assert context.store.list_records() == []


@pytest.mark.parametrize(
    ("overrides", "field"),
    [
        ({"date": "10/01/2024"}, "date"),
        ({"date": "2024-02-30"}, "date"),
        ({"sold_stock": -1}, "sold_stock"),
        ({"opening_stock": 1.5}, "opening_stock"),
        ({"added_stock": "many"}, "added_stock"),
        ({"sold_stock": 10**27}, "sold_stock"),
        ({"added_stock": "--5"}, "added_stock"),
    ],
)
def test_create_record_rejects_invalid_inputs(context, water, overrides, field):
    with pytest.raises(ValidationError) as excinfo:
        _water_day(context, water, **overrides)
    assert excinfo.value.field == field
    assert context.store.list_records() == []


# ---------------------------------------------------------------------------
# update_record / delete_record
# ---------------------------------------------------------------------------


def test_update_record_recomputes_derived_fields(context, water):
    record = _water_day(context, water)
    later = datetime(2024, 1, 10, 21, 0, tzinfo=UTC)

    updated = core_logic.update_record(context, record.record_id, {"sold_stock": 30}, timestamp=later)

    assert updated.closing_stock == 0
    assert updated.amount_sold == Decimal("24.00")
    assert updated.profit == Decimal("15.00")
    assert updated.opening_stock == 20
    assert updated.created_at == record.created_at
    assert updated.updated_at == later
    assert context.store.get_record(record.record_id) == updated


def test_update_record_uses_new_product_prices(context, water, cola):
    record = _water_day(context, water)

    updated = core_logic.update_record(context, record.record_id, {"product_id": cola.product_id})

    assert updated.product_id == cola.product_id
    assert updated.amount_sold == Decimal("37.50")
    assert updated.profit == Decimal("17.50")


def test_update_record_picks_up_changed_product_prices(context, water):
    record = _water_day(context, water)
    catalog.update_product(context, water.product_id, {"selling_price": "1.00"})

    updated = core_logic.update_record(context, record.record_id, {})

    assert updated.amount_sold == Decimal("25.00")
    assert updated.profit == Decimal("17.50")


def test_update_record_unknown_id_raises(context):
    with pytest.raises(RecordNotFoundError) as excinfo:
        core_logic.update_record(context, "ghost", {"sold_stock": 1})
    assert excinfo.value.record_id == "ghost"


def test_update_record_unknown_product_raises(context, water):
    record = _water_day(context, water)
    with pytest.raises(ProductNotFoundError):
        core_logic.update_record(context, record.record_id, {"product_id": "ghost"})
    assert context.store.get_record(record.record_id) == record


@pytest.mark.parametrize("derived", ["closing_stock", "amount_sold", "profit"])
def test_update_record_rejects_derived_fields(context, water, derived):
    record = _water_day(context, water)
    with pytest.raises(ValidationError) as excinfo:
        core_logic.update_record(context, record.record_id, {derived: 99})
    assert excinfo.value.field == derived


def test_update_record_refuses_moving_onto_taken_date(context, water):
    _water_day(context, water, date="2024-01-09")
    second = _water_day(context, water, date="2024-01-10")

    with pytest.raises(DuplicateRecordError):
        core_logic.update_record(context, second.record_id, {"date": "2024-01-09"})

    assert context.store.get_record(second.record_id).date == "2024-01-10"


def test_update_record_can_restate_its_own_date(context, water):
    record = _water_day(context, water)
    updated = core_logic.update_record(context, record.record_id, {"date": "2024-01-10", "added_stock": 0})
    assert updated.closing_stock == -5


def test_delete_record_reports_outcome(context, water):
    record = _water_day(context, water)
    assert core_logic.delete_record(context, record.record_id) is True
    assert core_logic.delete_record(context, record.record_id) is False
    assert context.store.list_records() == []


# ---------------------------------------------------------------------------
# Carry-forward
# ---------------------------------------------------------------------------


def test_carry_forward_uses_latest_earlier_closing(context, water):
    _water_day(context, water, date="2024-01-05", opening_stock=7, added_stock=0, sold_stock=0)
    _water_day(context, water, date="2024-01-08", opening_stock=12, added_stock=0, sold_stock=0)

    record = core_logic.create_record_with_carry_forward(
        context, product_id=water.product_id, date="2024-01-10", added_stock=5, sold_stock=3)

    assert record.opening_stock == 12
    assert record.closing_stock == 14


def test_carry_forward_starts_at_zero_without_history(context, water):
    record = core_logic.create_record_with_carry_forward(
        context, product_id=water.product_id, date="2024-01-10", added_stock=4)
    assert record.opening_stock == 0
    assert record.closing_stock == 4


def test_carry_forward_clamps_oversold_history_to_zero(context, water):
    _water_day(context, water, date="2024-01-09", opening_stock=2, added_stock=0, sold_stock=5)

    record = core_logic.create_record_with_carry_forward(
        context, product_id=water.product_id, date="2024-01-10")

    assert record.opening_stock == 0


def test_carry_forward_respects_explicit_opening(context, water):
    _water_day(context, water, date="2024-01-09")
    record = core_logic.create_record_with_carry_forward(
        context, product_id=water.product_id, date="2024-01-10", opening_stock=3)
    assert record.opening_stock == 3

"""Tests for the in-memory and workbook-backed record stores."""

from __future__ import annotations

from datetime import UTC, datetime
from decimal import Decimal

import pytest

from daily_stock import data_manager, storage
from daily_stock.errors import DuplicateRecordError


STAMP = datetime(2024, 1, 10, 8, 0, tzinfo=UTC)


def _product(product_id: str = "P-1", name: str = "Water") -> data_manager.ProductRow:
    return data_manager.ProductRow(
        product_id=product_id,
        name=name,
        category="Drinks",
        cost_price=Decimal("0.30"),
        selling_price=Decimal("0.80"),
        created_at=STAMP,
        updated_at=STAMP,
    )


def _record(record_id: str, product_id: str = "P-1", date: str = "2024-01-10",
            closing: int = 5) -> data_manager.DailyRecordRow:
    return data_manager.DailyRecordRow(
        record_id=record_id,
        product_id=product_id,
        date=date,
        opening_stock=20,
        added_stock=10,
        sold_stock=25,
        closing_stock=closing,
        amount_sold=Decimal("20.00"),
        profit=Decimal("12.50"),
        created_at=STAMP,
        updated_at=STAMP,
    )


@pytest.fixture
def memory_store() -> storage.MemoryStore:
    return storage.MemoryStore()


@pytest.fixture
def workbook_store(master_workbook_path) -> storage.WorkbookStore:
    workbook = data_manager.open_workbook(master_workbook_path)
    return storage.WorkbookStore(workbook, master_workbook_path)


@pytest.fixture(params=["memory", "workbook"])
def store(request) -> storage.RecordStore:
    """Run a test against both backends."""

    return request.getfixturevalue(f"{request.param}_store")


# ---------------------------------------------------------------------------
# Shared behaviour
# ---------------------------------------------------------------------------


def test_products_are_listed_in_insertion_order(store):
    store.insert_product(_product("P-2", "Zebra Cola"))
    store.insert_product(_product("P-1", "Apple Juice"))

    assert [p.product_id for p in store.list_products()] == ["P-2", "P-1"]
    assert store.get_product("P-1").name == "Apple Juice"
    assert store.get_product("P-missing") is None


def test_insert_product_refuses_existing_id(store):
    store.insert_product(_product())
    with pytest.raises(KeyError):
        store.insert_product(_product())


def test_replace_product_overwrites_values(store):
    store.insert_product(_product())
    store.replace_product(_product(name="Sparkling Water"))
    assert store.get_product("P-1").name == "Sparkling Water"


def test_insert_record_refuses_duplicate_product_date(store):
    store.insert_product(_product())
    store.insert_record(_record("R-1"))

    with pytest.raises(DuplicateRecordError) as excinfo:
        store.insert_record(_record("R-2"))

    assert excinfo.value.product_id == "P-1"
    assert excinfo.value.date == "2024-01-10"
    assert [r.record_id for r in store.list_records()] == ["R-1"]


def test_same_product_on_different_dates_is_allowed(store):
    store.insert_product(_product())
    store.insert_record(_record("R-1", date="2024-01-09"))
    store.insert_record(_record("R-2", date="2024-01-10"))

    assert store.find_record("P-1", "2024-01-09").record_id == "R-1"
    assert store.find_record("P-1", "2024-01-11") is None
    assert [r.record_id for r in store.records_for_product("P-1")] == ["R-1", "R-2"]


def test_delete_product_cascades_to_its_records(store):
    store.insert_product(_product("P-1"))
    store.insert_product(_product("P-2", "Fanta"))
    store.insert_record(_record("R-1", "P-1", "2024-01-09"))
    store.insert_record(_record("R-2", "P-2", "2024-01-09"))
    store.insert_record(_record("R-3", "P-1", "2024-01-10"))

    removed = store.delete_product("P-1")

    assert removed == 2
    assert store.get_product("P-1") is None
    assert [r.record_id for r in store.list_records()] == ["R-2"]


def test_delete_unknown_product_removes_nothing(store):
    store.insert_product(_product())
    assert store.delete_product("P-missing") == 0
    assert len(store.list_products()) == 1


def test_replace_record_updates_stored_values(store):
    store.insert_product(_product())
    store.insert_record(_record("R-1"))

    store.replace_record(_record("R-1", closing=9))

    assert store.get_record("R-1").closing_stock == 9


def test_delete_record_reports_whether_anything_was_removed(store):
    store.insert_product(_product())
    store.insert_record(_record("R-1"))

    assert store.delete_record("R-1") is True
    assert store.delete_record("R-1") is False
    assert store.get_record("R-1") is None


def test_lock_is_reentrant(store):
    with store.lock:
        with store.lock:
            store.insert_product(_product())
    assert store.get_product("P-1") is not None


# ---------------------------------------------------------------------------
# Backend specifics
# ---------------------------------------------------------------------------


def test_memory_store_replace_requires_existing_rows(memory_store):
    with pytest.raises(KeyError):
        memory_store.replace_product(_product())
    with pytest.raises(KeyError):
        memory_store.replace_record(_record("R-1"))


def test_memory_store_persist_is_a_no_op(memory_store):
    memory_store.insert_product(_product())
    memory_store.persist()
    assert len(memory_store.list_products()) == 1


def test_workbook_store_reuses_cached_scan(workbook_store, monkeypatch):
    workbook_store.insert_product(_product())
    assert workbook_store.get_product("P-1") is not None

    calls = []
    original = data_manager.iter_products

    def _tracking(workbook):
        calls.append(workbook)
        return original(workbook)

    monkeypatch.setattr(data_manager, "iter_products", _tracking)
    workbook_store.list_products()
    workbook_store.get_product("P-1")
    assert calls == []

    workbook_store.insert_product(_product("P-2", "Fanta"))
    workbook_store.list_products()
    assert len(calls) == 1


def test_workbook_store_persist_writes_to_data_file(workbook_store, master_workbook_path):
    workbook_store.insert_product(_product())
    workbook_store.insert_record(_record("R-1"))
    workbook_store.persist()

    reopened = data_manager.open_workbook(master_workbook_path)
    assert [p.product_id for p in data_manager.iter_products(reopened)] == ["P-1"]
    assert [r.record_id for r in data_manager.iter_daily_records(reopened)] == ["R-1"]


def test_workbook_store_without_data_file_cannot_persist(master_workbook_path):
    store = storage.WorkbookStore(data_manager.open_workbook(master_workbook_path))
    with pytest.raises(RuntimeError):
        store.persist()

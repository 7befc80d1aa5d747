"""Storage backends for products and daily records.

The record engine talks to an abstract :class:`RecordStore` so the same rules
run against an in-memory store (tests, demos) or the Excel workbook used in
production. Each store owns a re-entrant mutation lock; callers hold
``store.lock`` around any check-then-write sequence so that, for example, the
``(product_id, date)`` uniqueness check and the insert happen atomically.

Both backends enforce the two relational rules of the persisted layout
themselves: deleting a product cascades to its daily records, and inserting a
second record for the same product and date is refused.
"""

from __future__ import annotations

import threading
from abc import ABC, abstractmethod
from pathlib import Path
from typing import Any, Dict, List, Optional

from openpyxl.workbook import Workbook

from . import data_manager, log
from .errors import DuplicateRecordError


class RecordStore(ABC):
    """Repository interface consumed by the catalog, engine, and query layer."""

    def __init__(self) -> None:
        self.lock = threading.RLock()

    @abstractmethod
    def list_products(self) -> List[data_manager.ProductRow]:
        """Return every stored product in insertion order."""

    @abstractmethod
    def get_product(self, product_id: str) -> Optional[data_manager.ProductRow]:
        """Return the product with ``product_id`` or ``None``."""

    @abstractmethod
    def insert_product(self, product: data_manager.ProductRow) -> None:
        """Store a new product."""

    @abstractmethod
    def replace_product(self, product: data_manager.ProductRow) -> None:
        """Overwrite an existing product with the same id."""

    @abstractmethod
    def delete_product(self, product_id: str) -> int:
        """Remove a product and its records; return how many records went with it."""

    @abstractmethod
    def list_records(self) -> List[data_manager.DailyRecordRow]:
        """Return every stored daily record in insertion order."""

    @abstractmethod
    def get_record(self, record_id: str) -> Optional[data_manager.DailyRecordRow]:
        """Return the record with ``record_id`` or ``None``."""

    @abstractmethod
    def insert_record(self, record: data_manager.DailyRecordRow) -> None:
        """Store a new record, refusing a duplicate ``(product_id, date)``."""

    @abstractmethod
    def replace_record(self, record: data_manager.DailyRecordRow) -> None:
        """Overwrite an existing record with the same id."""

    @abstractmethod
    def delete_record(self, record_id: str) -> bool:
        """Remove a record; return ``False`` when it did not exist."""

    def find_record(self, product_id: str, date: str) -> Optional[data_manager.DailyRecordRow]:
        """Return the record stored for ``product_id`` on ``date``, if any."""

        for record in self.list_records():
            if record.product_id == product_id and record.date == date:
                return record
        return None

    def records_for_product(self, product_id: str) -> List[data_manager.DailyRecordRow]:
        """Return every record referencing ``product_id``."""

        return [record for record in self.list_records() if record.product_id == product_id]

    def persist(self) -> None:
        """Flush pending changes to durable storage. In-memory stores do nothing."""


class MemoryStore(RecordStore):
    """Dictionary-backed store. Dicts keep insertion order, which listings expose."""

    def __init__(self) -> None:
        super().__init__()
        self._products: Dict[str, data_manager.ProductRow] = {}
        self._records: Dict[str, data_manager.DailyRecordRow] = {}

    def list_products(self) -> List[data_manager.ProductRow]:
        return list(self._products.values())

    def get_product(self, product_id: str) -> Optional[data_manager.ProductRow]:
        return self._products.get(product_id)

    def insert_product(self, product: data_manager.ProductRow) -> None:
        with self.lock:
            if product.product_id in self._products:
                raise KeyError(f"Product already stored: {product.product_id}")
            self._products[product.product_id] = product

    def replace_product(self, product: data_manager.ProductRow) -> None:
        with self.lock:
            if product.product_id not in self._products:
                raise KeyError(f"Product not stored: {product.product_id}")
            self._products[product.product_id] = product

    def delete_product(self, product_id: str) -> int:
        with self.lock:
            self._products.pop(product_id, None)
            orphaned = [rid for rid, rec in self._records.items() if rec.product_id == product_id]
            for record_id in orphaned:
                del self._records[record_id]
            return len(orphaned)

    def list_records(self) -> List[data_manager.DailyRecordRow]:
        return list(self._records.values())

    def get_record(self, record_id: str) -> Optional[data_manager.DailyRecordRow]:
        return self._records.get(record_id)

    def insert_record(self, record: data_manager.DailyRecordRow) -> None:
        with self.lock:
            if self.find_record(record.product_id, record.date) is not None:
                raise DuplicateRecordError(record.product_id, record.date)
            self._records[record.record_id] = record

    def replace_record(self, record: data_manager.DailyRecordRow) -> None:
        with self.lock:
            if record.record_id not in self._records:
                raise KeyError(f"Record not stored: {record.record_id}")
            self._records[record.record_id] = record

    def delete_record(self, record_id: str) -> bool:
        with self.lock:
            return self._records.pop(record_id, None) is not None


class WorkbookStore(RecordStore):
    """Store backed by an ``openpyxl`` workbook.

    Sheet scans are memoized in cache buckets keyed by entity set so repeated
    reads do not rescan the workbook. Every mutation invalidates the affected
    buckets. Changes stay in memory until
    :meth:`persist` saves the workbook to ``data_file``.
    """

    def __init__(self, workbook: Workbook, data_file: Optional[Path] = None) -> None:
        super().__init__()
        self.workbook = workbook
        self.data_file = data_file
        self._cache: Dict[str, Dict[str, Any]] = {}

    def _get_cache_bucket(self, name: str) -> Dict[str, Any]:
        bucket = self._cache.get(name)
        if bucket is None:
            log.debug("Initializing cache bucket '%s'", name)
            bucket = {}
            self._cache[name] = bucket
        return bucket

    def _invalidate_cache(self, *names: str) -> None:
        if not names:
            return
        log.debug("Invalidating cache buckets: %s", ", ".join(names))
        for name in names:
            self._cache.pop(name, None)

    def _ensure_products_cache(self) -> Dict[str, Any]:
        bucket = self._get_cache_bucket("products")
        if "all" not in bucket:
            all_products = list(data_manager.iter_products(self.workbook))
            bucket["all"] = all_products
            bucket["by_id"] = {product.product_id: product for product in all_products}
            log.debug("Populated products cache with %d entries", len(all_products))
        return bucket

    def _ensure_records_cache(self) -> Dict[str, Any]:
        bucket = self._get_cache_bucket("records")
        if "all" not in bucket:
            all_records = list(data_manager.iter_daily_records(self.workbook))
            bucket["all"] = all_records
            bucket["by_id"] = {record.record_id: record for record in all_records}
            bucket["by_key"] = {(record.product_id, record.date): record for record in all_records}
            log.debug("Populated records cache with %d entries", len(all_records))
        return bucket

    def list_products(self) -> List[data_manager.ProductRow]:
        with self.lock:
            return list(self._ensure_products_cache()["all"])

    def get_product(self, product_id: str) -> Optional[data_manager.ProductRow]:
        with self.lock:
            return self._ensure_products_cache()["by_id"].get(product_id)

    def insert_product(self, product: data_manager.ProductRow) -> None:
        with self.lock:
            if self.get_product(product.product_id) is not None:
                raise KeyError(f"Product already stored: {product.product_id}")
            data_manager.append_product(self.workbook, product)
            self._invalidate_cache("products")

    def replace_product(self, product: data_manager.ProductRow) -> None:
        with self.lock:
            data_manager.replace_product(self.workbook, product)
            self._invalidate_cache("products")

    def delete_product(self, product_id: str) -> int:
        with self.lock:
            removed = data_manager.delete_rows(
                self.workbook, data_manager.DAILY_RECORDS_SHEET, "ProductID", product_id)
            data_manager.delete_rows(
                self.workbook, data_manager.PRODUCTS_SHEET, "ProductID", product_id)
            self._invalidate_cache("products", "records")
            return removed

    def list_records(self) -> List[data_manager.DailyRecordRow]:
        with self.lock:
            return list(self._ensure_records_cache()["all"])

    def get_record(self, record_id: str) -> Optional[data_manager.DailyRecordRow]:
        with self.lock:
            return self._ensure_records_cache()["by_id"].get(record_id)

    def find_record(self, product_id: str, date: str) -> Optional[data_manager.DailyRecordRow]:
        with self.lock:
            return self._ensure_records_cache()["by_key"].get((product_id, date))

    def insert_record(self, record: data_manager.DailyRecordRow) -> None:
        with self.lock:
            if self.find_record(record.product_id, record.date) is not None:
                raise DuplicateRecordError(record.product_id, record.date)
            data_manager.append_daily_record(self.workbook, record)
            self._invalidate_cache("records")

    def replace_record(self, record: data_manager.DailyRecordRow) -> None:
        with self.lock:
            data_manager.replace_daily_record(self.workbook, record)
            self._invalidate_cache("records")

    def delete_record(self, record_id: str) -> bool:
        with self.lock:
            removed = data_manager.delete_rows(
                self.workbook, data_manager.DAILY_RECORDS_SHEET, "RecordID", record_id)
            self._invalidate_cache("records")
            return removed > 0

    def persist(self) -> None:
        """Save the workbook to ``data_file``.

        Raises:
            RuntimeError: If the store was built without a destination path.
        """

        if self.data_file is None:
            raise RuntimeError("WorkbookStore has no data file to persist to")
        with self.lock:
            data_manager.save_workbook(self.workbook, destination=self.data_file)
        log.info("Persisted workbook '%s'", self.data_file)

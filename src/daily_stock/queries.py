"""Read-side helpers: joined record listings and previous-closing lookups."""

from __future__ import annotations

from dataclasses import dataclass
from typing import List, Optional

from . import log
from .data_manager import DailyRecordRow, ProductRow
from .errors import InternalConsistencyError, RecordNotFoundError
from .runtime import RuntimeContext
from .validation import parse_iso_date, require_text


@dataclass(frozen=True)
class RecordWithProduct:
    """A daily record joined with the product it references."""

    record: DailyRecordRow
    product: ProductRow

    @property
    def total_stock(self) -> int:
        """Stock available during the day before sales: opening plus added."""

        return self.record.opening_stock + self.record.added_stock


def _join(context: RuntimeContext, record: DailyRecordRow) -> RecordWithProduct:
    product = context.store.get_product(record.product_id)
    if product is None:
        log.error(
            "Daily record '%s' references missing product '%s'",
            record.record_id,
            record.product_id,
        )
        raise InternalConsistencyError(
            f"Product not found for record {record.record_id}")
    return RecordWithProduct(record=record, product=product)


def list_records(context: RuntimeContext, date: Optional[str] = None) -> List[RecordWithProduct]:
    """Return daily records joined with their products.

    Args:
        context (RuntimeContext): Runtime context providing the store.
        date (str | None): When non-empty, only records for this exact
            ``YYYY-MM-DD`` date are returned. ``None`` or ``""`` lists all.

    Returns:
        list[RecordWithProduct]: Joined rows in insertion order.

    Raises:
        ValidationError: If ``date`` is not an ISO date.
        InternalConsistencyError: If a record references a missing product.
    """

    records = context.store.list_records()
    if date:
        date = parse_iso_date("date", date)
        records = [record for record in records if record.date == date]
    return [_join(context, record) for record in records]


def get_record(context: RuntimeContext, record_id: str) -> RecordWithProduct:
    """Resolve a single record joined with its product.

    Raises:
        RecordNotFoundError: If ``record_id`` is not stored.
        InternalConsistencyError: If the record's product is missing.
    """

    record = context.store.get_record(record_id)
    if record is None:
        log.warning("Record lookup failed for id '%s'", record_id)
        raise RecordNotFoundError(record_id)
    return _join(context, record)


def get_previous_closing_stock(context: RuntimeContext, product_id: str, before_date: str) -> int:
    """Return the closing stock of the latest record strictly before ``before_date``.

    Any earlier date qualifies, not only the previous calendar day, so stock
    carries forward across days with no record (a closed weekend, say).
    Zero-padded ISO dates sort correctly as strings. Returns ``0`` when the
    product has no earlier record. The product itself need not exist.

    Raises:
        ValidationError: If ``before_date`` is not an ISO date.
    """

    product_id = require_text("product_id", product_id)
    before_date = parse_iso_date("date", before_date)
    earlier = [
        record
        for record in context.store.records_for_product(product_id)
        if record.date < before_date
    ]
    if not earlier:
        return 0
    latest = max(earlier, key=lambda record: record.date)
    log.debug(
        "Previous closing stock for '%s' before %s is %d (from %s)",
        product_id,
        before_date,
        latest.closing_stock,
        latest.date,
    )
    return latest.closing_stock

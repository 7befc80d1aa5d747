"""Business logic layer for the daily stock tracker.

This module is the daily record engine. Every record mutation passes through
here: inputs are validated, the referenced product is resolved, the derived
fields are computed by :func:`compute_derived`, and the result is written to
the store held by the :class:`~daily_stock.runtime.RuntimeContext`.

Derived fields (closing stock, amount sold, profit) are never taken from the
caller. They are recomputed from the stock quantities and the product's
current prices on every create and update.
"""

from __future__ import annotations

from dataclasses import dataclass, replace
from datetime import datetime
from decimal import ROUND_HALF_UP, Decimal
from typing import Any, Mapping, Optional

from . import log
from .constants import CENT
from .data_manager import DailyRecordRow, ProductRow
from .errors import DuplicateRecordError, ProductNotFoundError, RecordNotFoundError
from .queries import get_previous_closing_stock
from .runtime import RuntimeContext, generate_id, resolve_timestamp
from .validation import validate_record_fields


@dataclass(frozen=True)
class DerivedFields:
    """Values computed from a record's stock movements and its product prices."""

    closing_stock: int
    amount_sold: Decimal
    profit: Decimal


def compute_derived(
    opening: int,
    added: int,
    sold: int,
    cost_price: Decimal,
    selling_price: Decimal,
) -> DerivedFields:
    """Compute closing stock, revenue, and profit for one product-day.

    ``closing = opening + added - sold`` is not clamped: a negative result
    means more was sold than was on hand, and is reported rather than hidden.
    Money is computed in :class:`~decimal.Decimal` and rounded half-up to
    cents, so repeated computations never drift.

    Args:
        opening (int): Stock at the start of the day.
        added (int): Stock received during the day.
        sold (int): Units sold during the day.
        cost_price (Decimal): Product unit cost.
        selling_price (Decimal): Product unit selling price.

    Returns:
        DerivedFields: Closing stock, amount sold, and profit.
    """

    closing = opening + added - sold
    amount_sold = (Decimal(sold) * selling_price).quantize(CENT, rounding=ROUND_HALF_UP)
    profit = (Decimal(sold) * (selling_price - cost_price)).quantize(CENT, rounding=ROUND_HALF_UP)
    return DerivedFields(closing_stock=closing, amount_sold=amount_sold, profit=profit)


def _resolve_product(context: RuntimeContext, product_id: str) -> ProductRow:
    product = context.store.get_product(product_id)
    if product is None:
        log.warning("Product lookup failed for id '%s'", product_id)
        raise ProductNotFoundError(product_id)
    return product


def _derive_for(product: ProductRow, opening: int, added: int, sold: int) -> DerivedFields:
    return compute_derived(opening, added, sold, product.cost_price, product.selling_price)


def create_record(
    context: RuntimeContext,
    *,
    product_id: Any,
    date: Any,
    opening_stock: Any = 0,
    added_stock: Any = 0,
    sold_stock: Any = 0,
    timestamp: Optional[datetime] = None,
) -> DailyRecordRow:
    """Validate, derive, and store a new daily record.

    The product lookup, the uniqueness check, and the insert run under the
    store's mutation lock, so two concurrent creates for the same product and
    date cannot both succeed.

    Args:
        context (RuntimeContext): Runtime context providing the store.
        product_id (Any): Identifier of an existing product.
        date (Any): ``YYYY-MM-DD`` string or :class:`datetime.date`.
        opening_stock (Any): Units on hand at the start of the day.
        added_stock (Any): Units received during the day.
        sold_stock (Any): Units sold during the day.
        timestamp (datetime | None): Creation time. Defaults to now in UTC.

    Returns:
        DailyRecordRow: The stored record including derived fields.

    Raises:
        ValidationError: If an input is malformed or out of range.
        ProductNotFoundError: If ``product_id`` is unknown.
        DuplicateRecordError: If a record already exists for the product and
            date.
    """

    fields = validate_record_fields(
        {
            "product_id": product_id,
            "date": date,
            "opening_stock": opening_stock,
            "added_stock": added_stock,
            "sold_stock": sold_stock,
        }
    )
    now = resolve_timestamp(timestamp)

    with context.store.lock:
        product = _resolve_product(context, fields["product_id"])
        if context.store.find_record(fields["product_id"], fields["date"]) is not None:
            log.warning(
                "Duplicate record rejected for product '%s' on %s",
                fields["product_id"],
                fields["date"],
            )
            raise DuplicateRecordError(fields["product_id"], fields["date"])

        derived = _derive_for(
            product, fields["opening_stock"], fields["added_stock"], fields["sold_stock"])
        record = DailyRecordRow(
            record_id=generate_id(),
            product_id=fields["product_id"],
            date=fields["date"],
            opening_stock=fields["opening_stock"],
            added_stock=fields["added_stock"],
            sold_stock=fields["sold_stock"],
            closing_stock=derived.closing_stock,
            amount_sold=derived.amount_sold,
            profit=derived.profit,
            created_at=now,
            updated_at=now,
        )
        context.store.insert_record(record)

    log.info(
        "Recorded %s for product '%s' (opening=%d, added=%d, sold=%d, closing=%d, amount=%s, profit=%s)",
        record.date,
        record.product_id,
        record.opening_stock,
        record.added_stock,
        record.sold_stock,
        record.closing_stock,
        record.amount_sold,
        record.profit,
    )
    return record


def update_record(
    context: RuntimeContext,
    record_id: str,
    fields: Mapping[str, Any],
    *,
    timestamp: Optional[datetime] = None,
) -> DailyRecordRow:
    """Merge ``fields`` into a stored record and recompute its derived values.

    Unspecified inputs keep their stored values. The derived fields are always
    recomputed, even when only one stock quantity changes, using the prices of
    the (possibly new) product. Moving a record onto a product and date that
    another record already occupies is refused.

    Args:
        context (RuntimeContext): Runtime context providing the store.
        record_id (str): Identifier of the record to update.
        fields (Mapping[str, Any]): Any of ``product_id``, ``date``,
            ``opening_stock``, ``added_stock``, ``sold_stock``.
        timestamp (datetime | None): Update time. Defaults to now in UTC.

    Returns:
        DailyRecordRow: The stored record after recomputation.

    Raises:
        ValidationError: If a field is unknown, derived, or invalid.
        RecordNotFoundError: If ``record_id`` is unknown.
        ProductNotFoundError: If the target product is unknown.
        DuplicateRecordError: If the new product/date pair is taken.
    """

    cleaned = validate_record_fields(fields, partial=True)

    with context.store.lock:
        existing = context.store.get_record(record_id)
        if existing is None:
            log.warning("Record lookup failed for id '%s'", record_id)
            raise RecordNotFoundError(record_id)

        merged = replace(existing, **cleaned)
        product = _resolve_product(context, merged.product_id)

        if (merged.product_id, merged.date) != (existing.product_id, existing.date):
            clash = context.store.find_record(merged.product_id, merged.date)
            if clash is not None and clash.record_id != record_id:
                log.warning(
                    "Update of '%s' rejected: product '%s' already has a record on %s",
                    record_id,
                    merged.product_id,
                    merged.date,
                )
                raise DuplicateRecordError(merged.product_id, merged.date)

        derived = _derive_for(product, merged.opening_stock, merged.added_stock, merged.sold_stock)
        updated = replace(
            merged,
            closing_stock=derived.closing_stock,
            amount_sold=derived.amount_sold,
            profit=derived.profit,
            updated_at=resolve_timestamp(timestamp),
        )
        context.store.replace_record(updated)

    log.info(
        "Updated record '%s' (closing=%d, amount=%s, profit=%s)",
        record_id,
        updated.closing_stock,
        updated.amount_sold,
        updated.profit,
    )
    return updated


def delete_record(context: RuntimeContext, record_id: str) -> bool:
    """Remove a record. Unknown ids are ignored.

    Returns:
        bool: ``True`` when a record was removed.
    """

    removed = context.store.delete_record(record_id)
    if removed:
        log.info("Deleted record '%s'", record_id)
    else:
        log.debug("Delete requested for unknown record '%s'", record_id)
    return removed


def create_record_with_carry_forward(
    context: RuntimeContext,
    *,
    product_id: Any,
    date: Any,
    added_stock: Any = 0,
    sold_stock: Any = 0,
    opening_stock: Any = None,
    timestamp: Optional[datetime] = None,
) -> DailyRecordRow:
    """Create a record, filling opening stock from the latest earlier record.

    When ``opening_stock`` is ``None`` it is taken from
    :func:`~daily_stock.queries.get_previous_closing_stock`. A negative
    carried-over closing stock opens the day at zero, since opening stock
    cannot be negative.
    """

    with context.store.lock:
        if opening_stock is None:
            previous = get_previous_closing_stock(context, product_id, date)
            opening_stock = max(previous, 0)
            log.info(
                "Opening stock for '%s' on %s carried forward as %d",
                product_id,
                date,
                opening_stock,
            )
        return create_record(
            context,
            product_id=product_id,
            date=date,
            opening_stock=opening_stock,
            added_stock=added_stock,
            sold_stock=sold_stock,
            timestamp=timestamp,
        )

"""Product catalog operations.

Products carry the prices the record engine uses to derive revenue and
profit. Deleting a product cascades to every daily record that references it.
"""

from __future__ import annotations

from dataclasses import replace
from datetime import datetime
from decimal import ROUND_HALF_UP, Decimal
from typing import Any, List, Mapping, Optional

from . import log
from .constants import CENT, SAMPLE_PRODUCTS
from .data_manager import ProductRow
from .errors import ProductNotFoundError
from .runtime import RuntimeContext, generate_id, resolve_timestamp
from .validation import validate_product_fields


def list_products(context: RuntimeContext) -> List[ProductRow]:
    """Return every product sorted by category then name, ignoring case."""

    products = context.store.list_products()
    return sorted(products, key=lambda p: (p.category.casefold(), p.name.casefold()))


def get_product(context: RuntimeContext, product_id: str) -> ProductRow:
    """Resolve a product by id.

    Raises:
        ProductNotFoundError: If ``product_id`` is not stored.
    """

    product = context.store.get_product(product_id)
    if product is None:
        log.warning("Product lookup failed for id '%s'", product_id)
        raise ProductNotFoundError(product_id)
    return product


def create_product(
    context: RuntimeContext,
    *,
    name: Any,
    category: Any,
    cost_price: Any,
    selling_price: Any,
    timestamp: Optional[datetime] = None,
) -> ProductRow:
    """Validate and store a new product.

    Args:
        context (RuntimeContext): Runtime context providing the store.
        name (Any): Display name; must be non-empty text.
        category (Any): Grouping label; must be non-empty text.
        cost_price (Any): Unit cost, positive with at most two decimals.
        selling_price (Any): Unit selling price, positive with at most two
            decimals.
        timestamp (datetime | None): Creation time. Defaults to now in UTC.

    Returns:
        ProductRow: The stored product, with a new id and timestamps.

    Raises:
        ValidationError: If any field fails validation.
    """

    fields = validate_product_fields(
        {
            "name": name,
            "category": category,
            "cost_price": cost_price,
            "selling_price": selling_price,
        }
    )
    now = resolve_timestamp(timestamp)
    product = ProductRow(
        product_id=generate_id(),
        created_at=now,
        updated_at=now,
        **fields,
    )
    context.store.insert_product(product)
    log.info(
        "Created product '%s' (%s / %s, cost=%s, selling=%s)",
        product.product_id,
        product.category,
        product.name,
        product.cost_price,
        product.selling_price,
    )
    return product


def update_product(
    context: RuntimeContext,
    product_id: str,
    fields: Mapping[str, Any],
    *,
    timestamp: Optional[datetime] = None,
) -> ProductRow:
    """Merge ``fields`` into an existing product and refresh ``updated_at``.

    Only ``name``, ``category``, ``cost_price``, and ``selling_price`` may be
    changed. Daily records already written keep the amounts derived from the
    old prices; they are recomputed only when the record itself is updated.

    Raises:
        ProductNotFoundError: If ``product_id`` is not stored.
        ValidationError: If a field name is unknown or a value is invalid.
    """

    cleaned = validate_product_fields(fields, partial=True)
    with context.store.lock:
        existing = get_product(context, product_id)
        updated = replace(existing, updated_at=resolve_timestamp(timestamp), **cleaned)
        context.store.replace_product(updated)
    log.info("Updated product '%s' fields: %s", product_id, ", ".join(sorted(cleaned)) or "-")
    return updated


def delete_product(context: RuntimeContext, product_id: str) -> int:
    """Remove a product and every daily record referencing it.

    Deleting an unknown id is not an error.

    Returns:
        int: Number of daily records removed by the cascade.
    """

    with context.store.lock:
        existed = context.store.get_product(product_id) is not None
        removed = context.store.delete_product(product_id)
    if existed:
        log.info("Deleted product '%s' and %d daily record(s)", product_id, removed)
    else:
        log.debug("Delete requested for unknown product '%s'", product_id)
    return removed


def product_margin(product: ProductRow) -> Decimal:
    """Return the markup of ``product`` as a percentage of its cost price.

    ``(selling - cost) / cost * 100``, rounded to one decimal place.
    """

    markup = (product.selling_price - product.cost_price) / product.cost_price * 100
    return markup.quantize(Decimal("0.1"), rounding=ROUND_HALF_UP)


def seed_sample_products(context: RuntimeContext) -> List[ProductRow]:
    """Insert the demo catalogue, skipping names already present in a category.

    Returns:
        list[ProductRow]: The products that were created.
    """

    existing = {(p.category.casefold(), p.name.casefold()) for p in context.store.list_products()}
    created: List[ProductRow] = []
    for name, category, cost, selling in SAMPLE_PRODUCTS:
        if (category.casefold(), name.casefold()) in existing:
            continue
        created.append(
            create_product(
                context,
                name=name,
                category=category,
                cost_price=Decimal(cost).quantize(CENT),
                selling_price=Decimal(selling).quantize(CENT),
            )
        )
    log.info("Seeded %d sample product(s)", len(created))
    return created

"""Input validation for products and daily records.

Every rule is a small predicate or parser so it can be tested on its own and
reused by the catalog, the record engine, and the CLI. Parsers return the
normalized value and raise :class:`~daily_stock.errors.ValidationError` naming
the offending field.
"""

from __future__ import annotations

import re
from datetime import date as date_type, datetime
from decimal import Decimal, InvalidOperation
from typing import Any, Dict, Mapping

from . import log
from .constants import CENT, MAX_PRICE, MAX_STOCK
from .errors import ValidationError


ISO_DATE_PATTERN = re.compile(r"^\d{4}-\d{2}-\d{2}$")
INTEGER_PATTERN = re.compile(r"-?\d+", re.ASCII)

PRODUCT_FIELDS = ("name", "category", "cost_price", "selling_price")
RECORD_INPUT_FIELDS = ("product_id", "date", "opening_stock", "added_stock", "sold_stock")
DERIVED_FIELDS = ("closing_stock", "amount_sold", "profit")


def is_iso_date(value: object) -> bool:
    """Return ``True`` when ``value`` is a ``YYYY-MM-DD`` string naming a real day."""

    if not isinstance(value, str) or not ISO_DATE_PATTERN.match(value):
        return False
    try:
        date_type.fromisoformat(value)
    except ValueError:
        return False
    return True


def is_non_negative_integer(value: object) -> bool:
    """Return ``True`` for ints (not bools) between zero and ``MAX_STOCK``."""

    return isinstance(value, int) and not isinstance(value, bool) and 0 <= value <= MAX_STOCK


def is_positive_money(value: object) -> bool:
    """Return ``True`` for Decimals in ``(0, MAX_PRICE]`` with at most two fractional digits."""

    if not isinstance(value, Decimal) or not value.is_finite():
        return False
    return 0 < value <= MAX_PRICE and value == value.quantize(CENT)


def require_text(field: str, value: Any) -> str:
    """Return ``value`` stripped of surrounding whitespace, rejecting blanks."""

    if not isinstance(value, str) or not value.strip():
        log.warning("Validation failed for '%s': empty text", field)
        raise ValidationError(field, "must be a non-empty string")
    return value.strip()


def parse_money(field: str, value: Any) -> Decimal:
    """Convert ``value`` into a positive, cent-precision :class:`Decimal`.

    Strings, ints, and Decimals are accepted. Floats go through ``str`` first so
    ``0.8`` becomes ``Decimal("0.8")`` rather than its binary expansion.

    Raises:
        ValidationError: If the value is not numeric, not positive, above
            ``MAX_PRICE``, or carries more than two fractional digits.
    """

    if isinstance(value, bool) or value is None:
        raise ValidationError(field, "must be a decimal amount")
    try:
        amount = value if isinstance(value, Decimal) else Decimal(str(value).strip())
    except InvalidOperation as exc:
        log.warning("Validation failed for '%s': %r is not a decimal", field, value)
        raise ValidationError(field, "must be a decimal amount") from exc

    if not amount.is_finite() or amount <= 0:
        log.warning("Validation failed for '%s': %s is not positive", field, value)
        raise ValidationError(field, "must be greater than zero")
    if amount > MAX_PRICE:
        log.warning("Validation failed for '%s': %s exceeds %s", field, value, MAX_PRICE)
        raise ValidationError(field, f"must not exceed {MAX_PRICE}")
    if amount != amount.quantize(CENT):
        log.warning("Validation failed for '%s': %s has more than two decimals", field, value)
        raise ValidationError(field, "must have at most two decimal places")
    return amount.quantize(CENT)


def parse_stock(field: str, value: Any) -> int:
    """Convert ``value`` into a non-negative integer stock quantity.

    Accepts ints and strings of ASCII digits up to ``MAX_STOCK``. Bools and
    fractional numbers are rejected so that ``True`` never sneaks in as one unit.
    """

    if isinstance(value, str):
        text = value.strip()
        try:
            if not INTEGER_PATTERN.fullmatch(text):
                raise ValueError(text)
            value = int(text)
        except ValueError as exc:
            log.warning("Validation failed for '%s': %r is not an integer", field, value)
            raise ValidationError(field, "must be a whole number") from exc
    if isinstance(value, bool) or not isinstance(value, int):
        log.warning("Validation failed for '%s': %r is not an integer", field, value)
        raise ValidationError(field, "must be a whole number")
    if value < 0:
        log.warning("Validation failed for '%s': %s is negative", field, value)
        raise ValidationError(field, "must be zero or greater")
    if value > MAX_STOCK:
        log.warning("Validation failed for '%s': %s exceeds %d", field, value, MAX_STOCK)
        raise ValidationError(field, f"must not exceed {MAX_STOCK}")
    return value


def parse_iso_date(field: str, value: Any) -> str:
    """Return a ``YYYY-MM-DD`` string for ``value``.

    :class:`datetime.date` instances are formatted; strings must already be
    zero-padded ISO dates because the query layer compares them as text.
    """

    if isinstance(value, datetime):
        return value.date().isoformat()
    if isinstance(value, date_type):
        return value.isoformat()
    if not is_iso_date(value):
        log.warning("Validation failed for '%s': %r is not an ISO date", field, value)
        raise ValidationError(field, "must be a date formatted as YYYY-MM-DD")
    return value


def validate_product_fields(fields: Mapping[str, Any], *, partial: bool = False) -> Dict[str, Any]:
    """Validate product input and return the normalized values.

    Args:
        fields (Mapping[str, Any]): Raw field values keyed by attribute name.
        partial (bool): When ``True`` missing fields are allowed, matching the
            semantics of an update. Otherwise every field in
            ``PRODUCT_FIELDS`` is required.

    Returns:
        dict[str, Any]: Normalized values for the fields that were supplied.

    Raises:
        ValidationError: On unknown field names, missing required fields, or
            invalid values.
    """

    unknown = sorted(set(fields) - set(PRODUCT_FIELDS))
    if unknown:
        raise ValidationError(unknown[0], "is not a product field")
    if not partial:
        for name in PRODUCT_FIELDS:
            if name not in fields:
                raise ValidationError(name, "is required")

    cleaned: Dict[str, Any] = {}
    for name, value in fields.items():
        if name in ("name", "category"):
            cleaned[name] = require_text(name, value)
        else:
            cleaned[name] = parse_money(name, value)
    return cleaned


def validate_record_fields(fields: Mapping[str, Any], *, partial: bool = False) -> Dict[str, Any]:
    """Validate daily record input and return the normalized values.

    Derived fields are never accepted from callers; supplying one is a
    validation error rather than a silent drop. On creation the stock fields
    default to zero, as the stored columns do.
    """

    for name in DERIVED_FIELDS:
        if name in fields:
            raise ValidationError(name, "is derived and cannot be set directly")
    unknown = sorted(set(fields) - set(RECORD_INPUT_FIELDS))
    if unknown:
        raise ValidationError(unknown[0], "is not a daily record field")

    source = dict(fields)
    if not partial:
        for name in ("product_id", "date"):
            if name not in source:
                raise ValidationError(name, "is required")
        for name in ("opening_stock", "added_stock", "sold_stock"):
            source.setdefault(name, 0)

    cleaned: Dict[str, Any] = {}
    for name, value in source.items():
        if name == "product_id":
            cleaned[name] = require_text(name, value)
        elif name == "date":
            cleaned[name] = parse_iso_date(name, value)
        else:
            cleaned[name] = parse_stock(name, value)
    return cleaned

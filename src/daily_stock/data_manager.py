"""Data access layer for the daily stock tracker.

This module provides low-level helpers that read from and write to the Excel
workbook backing the tracker. Business logic belongs elsewhere.

The public API is designed around three responsibilities:

1. Configuration handling: finding and parsing ``config.ini``.
2. Workbook lifecycle: opening and persisting the Excel file.
3. Sheet operations: loading structured rows and appending, replacing, or
   deleting individual rows.
"""


from __future__ import annotations

import configparser
from dataclasses import dataclass
from datetime import UTC, datetime
from decimal import Decimal
from pathlib import Path
from typing import Iterable, Optional, Sequence

from openpyxl.workbook import Workbook
import openpyxl

from . import log
from .constants import DEFAULT_LOW_STOCK_THRESHOLD, SHEET_COLUMNS, SheetName


CONFIG_FILE_NAME = "config.ini"
PRODUCTS_SHEET = SheetName.PRODUCTS.value
DAILY_RECORDS_SHEET = SheetName.DAILY_RECORDS.value


@dataclass(frozen=True)
class ConfigSettings:
    """Typed representation of the ``config.ini`` settings we care about."""

    data_file: Path
    shop_name: str
    schema_version: str
    low_stock_threshold: int = DEFAULT_LOW_STOCK_THRESHOLD


@dataclass(frozen=True)
class ProductRow:
    """In-memory view of a row from the ``Products`` sheet."""

    product_id: str
    name: str
    category: str
    cost_price: Decimal
    selling_price: Decimal
    created_at: datetime
    updated_at: datetime


@dataclass(frozen=True)
class DailyRecordRow:
    """In-memory view of a row from the ``DailyRecords`` sheet."""

    record_id: str
    product_id: str
    date: str
    opening_stock: int
    added_stock: int
    sold_stock: int
    closing_stock: int
    amount_sold: Decimal
    profit: Decimal
    created_at: datetime
    updated_at: datetime


def find_config_file(explicit_path: Optional[Path] = None) -> Path:
    """Locate the configuration file that controls how the data layer behaves.

    If the caller provides ``explicit_path`` the value is returned immediately
    without any verification. Otherwise the function walks up from the current
    working directory toward the filesystem root looking for a file named
    ``CONFIG_FILE_NAME``; the first match wins.

    Args:
        explicit_path (Path | None): Optional path to use instead of performing
            the upward search.

    Returns:
        Path: The path provided by the caller or the discovered configuration
            file.

    Raises:
        FileNotFoundError: If no parent directory contains ``CONFIG_FILE_NAME``.
    """

    if explicit_path:
        return explicit_path

    current = Path.cwd()
    for p in (current, *current.parents):
        candidate = p / CONFIG_FILE_NAME
        if candidate.exists():
            return candidate

    raise FileNotFoundError(
        f"Configuration file not found: {CONFIG_FILE_NAME}")


def read_config(config_path: Path) -> configparser.ConfigParser:
    """Load ``config.ini`` and return a populated ``ConfigParser`` instance.

    Args:
        config_path (Path): Path to the configuration file, relative or
            absolute. ``~`` is expanded.

    Returns:
        configparser.ConfigParser: Parser containing the raw configuration.

    Raises:
        FileNotFoundError: If ``config_path`` does not exist.
    """

    config_path = config_path.expanduser().resolve()
    if not config_path.exists():
        raise FileNotFoundError(f"Configuration file not found: {config_path}")

    parser = configparser.ConfigParser()
    parser.read(config_path)
    return parser


def parse_settings(parser: configparser.ConfigParser, *, base_path: Optional[Path] = None) -> ConfigSettings:
    """Convert a ``ConfigParser`` into strongly typed :class:`ConfigSettings`.

    Relative ``DataFile`` entries are anchored to ``base_path`` (or the current
    working directory) and resolved. ``[Reports] LowStockThreshold`` is
    optional and defaults to ``DEFAULT_LOW_STOCK_THRESHOLD``.

    Args:
        parser (configparser.ConfigParser): Parsed configuration data.
        base_path (Path | None): Directory used to anchor relative paths.

    Returns:
        ConfigSettings: Immutable settings container.

    Raises:
        KeyError: If a required section or option is missing, or the threshold
            is not an integer.
    """

    try:
        data_file_raw = parser.get("System", "DataFile")
        shop_name = parser.get("System", "ShopName")
        schema_version = parser.get("System", "SchemaVersion")
    except (configparser.NoSectionError, configparser.NoOptionError) as exc:
        raise KeyError(f"Missing required configuration entry: {exc}") from exc

    try:
        threshold = parser.getint(
            "Reports", "LowStockThreshold", fallback=DEFAULT_LOW_STOCK_THRESHOLD)
    except ValueError as exc:
        raise KeyError(f"Invalid LowStockThreshold: {exc}") from exc

    data_file_path = Path(data_file_raw)
    if not data_file_path.is_absolute():
        if base_path is None:
            base_path = Path.cwd()
        data_file_path = (base_path / data_file_path).resolve()

    return ConfigSettings(
        data_file=data_file_path,
        shop_name=shop_name,
        schema_version=schema_version,
        low_stock_threshold=threshold,
    )


def open_workbook(data_file: Path) -> Workbook:
    """Open the tracker workbook and return a live ``openpyxl`` workbook.

    Raises:
        FileNotFoundError: If ``data_file`` does not exist after expansion and
            resolution.
    """

    data_file = Path(data_file).expanduser().resolve()
    if not data_file.exists():
        raise FileNotFoundError(f"Workbook not found: {data_file}")

    wb = openpyxl.load_workbook(data_file)
    return wb


def save_workbook(workbook: Workbook, destination: Path) -> None:
    """Persist the workbook to ``destination``, creating parent folders."""

    dest = Path(destination).expanduser().resolve()
    dest.parent.mkdir(parents=True, exist_ok=True)
    workbook.save(dest)


def refresh_workbook(data_file: Path) -> Workbook:
    """Reload the workbook from disk, discarding any unsaved in-memory changes."""

    return open_workbook(data_file)


def verify_sheets(workbook: Workbook) -> None:
    """Check that both tracker sheets exist with the expected header row.

    Raises:
        KeyError: If a sheet is missing or its header differs from
            ``SHEET_COLUMNS``.
    """

    for sheet_name, columns in SHEET_COLUMNS.items():
        if sheet_name not in workbook.sheetnames:
            raise KeyError(f"Workbook is missing sheet: {sheet_name}")
        header = [cell.value for cell in workbook[sheet_name][1]]
        if header[: len(columns)] != list(columns):
            raise KeyError(f"Unexpected header on sheet {sheet_name}: {header}")


def iter_products(workbook: Workbook) -> Iterable[ProductRow]:
    """Iterate over product rows, skipping the header and blank rows."""

    sheet = workbook[PRODUCTS_SHEET]
    for raw in sheet.iter_rows(min_row=2, values_only=True):
        if any(cell is not None for cell in raw):
            yield deserialize_product(raw)


def iter_daily_records(workbook: Workbook) -> Iterable[DailyRecordRow]:
    """Iterate over daily record rows in sheet order.

    Header and fully empty rows are ignored. Sheet order is insertion order,
    which the query layer preserves when listing records.
    """

    sheet = workbook[DAILY_RECORDS_SHEET]
    for raw in sheet.iter_rows(min_row=2, values_only=True):
        if any(cell is not None for cell in raw):
            yield deserialize_daily_record(raw)


def append_product(workbook: Workbook, record: ProductRow) -> None:
    """Append a product row to the ``Products`` worksheet."""

    sheet = workbook[PRODUCTS_SHEET]
    sheet.append(serialize_product(record))


def append_daily_record(workbook: Workbook, record: DailyRecordRow) -> None:
    """Append a daily record row to the ``DailyRecords`` worksheet."""

    sheet = workbook[DAILY_RECORDS_SHEET]
    sheet.append(serialize_daily_record(record))


def replace_product(workbook: Workbook, record: ProductRow) -> None:
    """Overwrite the row whose ``ProductID`` matches ``record.product_id``.

    Raises:
        KeyError: If no row carries the product id.
    """

    _replace_row(workbook, PRODUCTS_SHEET, "ProductID",
                 record.product_id, serialize_product(record))


def replace_daily_record(workbook: Workbook, record: DailyRecordRow) -> None:
    """Overwrite the row whose ``RecordID`` matches ``record.record_id``.

    Raises:
        KeyError: If no row carries the record id.
    """

    _replace_row(workbook, DAILY_RECORDS_SHEET, "RecordID",
                 record.record_id, serialize_daily_record(record))


def _replace_row(workbook: Workbook, sheet_name: str, key_column: str, key_value: str, values: Sequence[object]) -> None:
    row_index = locate_row(workbook, sheet_name, key_column, key_value)
    if row_index is None:
        raise KeyError(f"Row not found in {sheet_name}: {key_value}")

    sheet = workbook[sheet_name]
    for column, value in enumerate(values, start=1):
        sheet.cell(row=row_index, column=column, value=value)


def delete_rows(workbook: Workbook, sheet_name: str, key_column: str, key_value: str) -> int:
    """Delete every row whose ``key_column`` equals ``key_value``.

    Rows are removed bottom-up so earlier indices stay valid while deleting.

    Args:
        workbook (Workbook): Workbook providing access to ``sheet_name``.
        sheet_name (str): Worksheet to prune.
        key_column (str): Header title of the column to match on.
        key_value (str): Value identifying the rows to remove.

    Returns:
        int: Number of rows removed. Zero when nothing matched.

    Raises:
        KeyError: If ``key_column`` is not present in the worksheet header.
    """

    sheet = workbook[sheet_name]
    key_col_index = _column_index(workbook, sheet_name, key_column)
    matches = [
        row_idx
        for row_idx, row in enumerate(sheet.iter_rows(min_row=2, values_only=True), start=2)
        if row[key_col_index - 1] == key_value
    ]
    for row_idx in reversed(matches):
        sheet.delete_rows(row_idx)
    return len(matches)


def locate_row(workbook: Workbook, sheet_name: str, key_column: str, key_value: str) -> Optional[int]:
    """Find a row by matching a key value within the specified worksheet.

    Args:
        workbook (Workbook): Workbook providing access to ``sheet_name``.
        sheet_name (str): Name of the worksheet to search.
        key_column (str): Header title identifying the lookup column.
        key_value (str): Value to match within the key column.

    Returns:
        int | None: 1-based Excel row index when a match is found, otherwise
            ``None``.

    Raises:
        KeyError: If ``key_column`` is not present in the worksheet header.
    """

    sheet = workbook[sheet_name]
    key_col_index = _column_index(workbook, sheet_name, key_column)

    for row_idx, row in enumerate(sheet.iter_rows(min_row=2, values_only=True), start=2):
        if row[key_col_index - 1] == key_value:
            return row_idx

    return None


def _column_index(workbook: Workbook, sheet_name: str, column: str) -> int:
    # Build header -> column index map
    header_cells = list(workbook[sheet_name][1])
    header_map = {cell.value: idx + 1 for idx, cell in enumerate(header_cells)}
    if column not in header_map:
        raise KeyError(f"Unknown column: {column}")
    return header_map[column]


def serialize_product(record: ProductRow) -> list[object]:
    """Convert a product dataclass into the worksheet column ordering.

    Prices are written as text so the workbook never holds a binary float
    approximation of a money value.
    """

    return [
        record.product_id,
        record.name,
        record.category,
        str(record.cost_price),
        str(record.selling_price),
        record.created_at.isoformat(),
        record.updated_at.isoformat(),
    ]


def serialize_daily_record(record: DailyRecordRow) -> list[object]:
    """Convert a daily record dataclass into the worksheet column ordering."""

    return [
        record.record_id,
        record.product_id,
        record.date,
        record.opening_stock,
        record.added_stock,
        record.sold_stock,
        record.closing_stock,
        str(record.amount_sold),
        str(record.profit),
        record.created_at.isoformat(),
        record.updated_at.isoformat(),
    ]


def deserialize_product(raw_row: Sequence[object]) -> ProductRow:
    """Convert a raw worksheet row into a strongly typed product record.

    Numeric cells are normalized into :class:`~decimal.Decimal` via ``str`` to
    sidestep cells Excel may have turned into floats.
    """

    product_id, name, category, cost_raw, selling_raw, created_raw, updated_raw = raw_row[:7]
    return ProductRow(
        product_id=str(product_id),
        name=str(name) if name is not None else "",
        category=str(category) if category is not None else "",
        cost_price=_to_decimal(cost_raw),
        selling_price=_to_decimal(selling_raw),
        created_at=_to_datetime(created_raw),
        updated_at=_to_datetime(updated_raw),
    )


def deserialize_daily_record(raw_row: Sequence[object]) -> DailyRecordRow:
    """Convert a raw worksheet row into a strongly typed daily record.

    Excel may hand dates back as ``datetime`` objects if someone edits the
    sheet by hand; those are folded back into ``YYYY-MM-DD`` text.
    """

    (
        record_id,
        product_id,
        date_raw,
        opening_raw,
        added_raw,
        sold_raw,
        closing_raw,
        amount_raw,
        profit_raw,
        created_raw,
        updated_raw,
    ) = raw_row[:11]

    if isinstance(date_raw, datetime):
        date_text = date_raw.date().isoformat()
    else:
        date_text = str(date_raw) if date_raw is not None else ""

    return DailyRecordRow(
        record_id=str(record_id),
        product_id=str(product_id),
        date=date_text,
        opening_stock=int(opening_raw or 0),
        added_stock=int(added_raw or 0),
        sold_stock=int(sold_raw or 0),
        closing_stock=int(closing_raw or 0),
        amount_sold=_to_decimal(amount_raw),
        profit=_to_decimal(profit_raw),
        created_at=_to_datetime(created_raw),
        updated_at=_to_datetime(updated_raw),
    )


def _to_decimal(raw: object) -> Decimal:
    return Decimal(str(raw)) if raw is not None else Decimal("0.00")


def _to_datetime(raw: object) -> datetime:
    if isinstance(raw, datetime):
        return raw
    if raw is None:
        log.warning("Row is missing a timestamp; defaulting to epoch")
        return datetime.fromtimestamp(0, UTC)
    return datetime.fromisoformat(str(raw))

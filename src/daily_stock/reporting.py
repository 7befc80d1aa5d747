"""Summaries and exports over a set of joined daily records.

Callers filter records (usually to one date) with
:func:`daily_stock.queries.list_records` and pass the result here. Nothing in
this module touches the store.
"""

from __future__ import annotations

import csv
import io
from dataclasses import dataclass
from decimal import Decimal
from pathlib import Path
from typing import Iterable, List, Optional, Sequence

from . import log
from .constants import CENT, CSV_HEADERS, DEFAULT_LOW_STOCK_THRESHOLD
from .queries import RecordWithProduct


@dataclass(frozen=True)
class DailySummary:
    """Totals shown on the dashboard for a set of records."""

    total_sales: Decimal
    total_profit: Decimal
    total_sold_items: int
    total_added: int
    profit_margin: Decimal
    record_count: int


def profit_margin(total_sales: Decimal, total_profit: Decimal) -> Decimal:
    """Return profit as a percentage of sales, or ``0`` when there were no sales."""

    if total_sales == 0:
        return Decimal("0")
    return total_profit / total_sales * 100


def summarize_records(records: Iterable[RecordWithProduct]) -> DailySummary:
    """Reduce ``records`` into sales, profit, and item totals."""

    total_sales = Decimal("0.00")
    total_profit = Decimal("0.00")
    total_sold = 0
    total_added = 0
    count = 0
    for row in records:
        total_sales += row.record.amount_sold
        total_profit += row.record.profit
        total_sold += row.record.sold_stock
        total_added += row.record.added_stock
        count += 1

    summary = DailySummary(
        total_sales=total_sales,
        total_profit=total_profit,
        total_sold_items=total_sold,
        total_added=total_added,
        profit_margin=profit_margin(total_sales, total_profit),
        record_count=count,
    )
    log.debug(
        "Summarized %d record(s): sales=%s profit=%s sold=%d",
        count,
        total_sales,
        total_profit,
        total_sold,
    )
    return summary


def _money(value: Decimal) -> str:
    return str(value.quantize(CENT))


def csv_rows(records: Iterable[RecordWithProduct]) -> List[List[str]]:
    """Return one row of export cells per record, in export column order."""

    rows: List[List[str]] = []
    for row in records:
        record = row.record
        rows.append(
            [
                row.product.name,
                row.product.category,
                str(record.opening_stock),
                str(record.added_stock),
                str(row.total_stock),
                str(record.sold_stock),
                _money(record.amount_sold),
                str(record.closing_stock),
                _money(record.profit),
            ]
        )
    return rows


def export_csv(records: Iterable[RecordWithProduct], headers: Sequence[str] = CSV_HEADERS) -> str:
    """Render ``records`` as CSV text with a header line.

    Lines end with ``\\n`` and there is no trailing newline. Fields containing
    a comma or quote are quoted by :mod:`csv`.
    """

    buffer = io.StringIO()
    writer = csv.writer(buffer, lineterminator="\n")
    writer.writerow(headers)
    writer.writerows(csv_rows(records))
    return buffer.getvalue().rstrip("\n")


def default_export_name(date: Optional[str]) -> str:
    """Return the default export file name for ``date`` (or all dates)."""

    return f"daily-stock-{date}.csv" if date else "daily-stock-all.csv"


def write_csv_report(records: Iterable[RecordWithProduct], destination: Path) -> Path:
    """Write the CSV export to ``destination`` and return the resolved path."""

    dest = Path(destination).expanduser().resolve()
    dest.parent.mkdir(parents=True, exist_ok=True)
    dest.write_text(export_csv(records) + "\n", encoding="utf-8")
    log.info("Exported CSV report to '%s'", dest)
    return dest


def is_low_stock(row: RecordWithProduct, threshold: int = DEFAULT_LOW_STOCK_THRESHOLD) -> bool:
    """Return ``True`` when the record closed below ``threshold`` units.

    Negative closing stock (oversold) always counts as low.
    """

    return row.record.closing_stock < threshold


def low_stock_records(
    records: Iterable[RecordWithProduct],
    threshold: int = DEFAULT_LOW_STOCK_THRESHOLD,
) -> List[RecordWithProduct]:
    return [row for row in records if is_low_stock(row, threshold)]


def profit_ranking(records: Iterable[RecordWithProduct]) -> List[RecordWithProduct]:
    """Return profitable records sorted by profit, highest first."""

    profitable = [row for row in records if row.record.profit > 0]
    return sorted(profitable, key=lambda row: row.record.profit, reverse=True)

"""Constants shared across the daily stock tracker modules.

Keeps sheet names, column layouts, and reporting defaults in one place so the
storage backends, the record engine, and the CLI agree on them.
"""

from __future__ import annotations

from decimal import Decimal
from enum import Enum
from typing import Mapping, Sequence


# Central schema version expected by all layers when validating workbooks.
EXPECTED_SCHEMA_VERSION = "1.0.0"

# Records whose closing stock falls below this value are flagged as low stock.
DEFAULT_LOW_STOCK_THRESHOLD = 10

# Monetary values are stored with two fractional digits.
CENT = Decimal("0.01")

# Largest accepted unit price and stock quantity, matching the workbook's
# decimal(10,2) and 32-bit integer columns.
MAX_PRICE = Decimal("99999999.99")
MAX_STOCK = 2**31 - 1


class SheetName(str, Enum):
    """Enumerate the workbook sheet names managed by the data layer."""

    PRODUCTS = "Products"
    DAILY_RECORDS = "DailyRecords"


SHEET_COLUMNS: Mapping[str, Sequence[str]] = {
    SheetName.PRODUCTS.value: [
        "ProductID",
        "Name",
        "Category",
        "CostPrice",
        "SellingPrice",
        "CreatedAt",
        "UpdatedAt",
    ],
    SheetName.DAILY_RECORDS.value: [
        "RecordID",
        "ProductID",
        "Date",
        "OpeningStock",
        "AddedStock",
        "SoldStock",
        "ClosingStock",
        "AmountSold",
        "Profit",
        "CreatedAt",
        "UpdatedAt",
    ],
}

CSV_HEADERS: Sequence[str] = (
    "Item Name",
    "Category",
    "Opening Stock",
    "Added Stock",
    "Total Stock",
    "Sold Stock",
    "Amount Sold",
    "Closing Stock",
    "Profit",
)

# Catalogue used to demo the tool on a fresh workbook.
SAMPLE_PRODUCTS: Sequence[tuple[str, str, str, str]] = (
    ("Coca-Cola", "Drinks", "0.80", "1.50"),
    ("Water", "Drinks", "0.30", "0.80"),
    ("Fanta", "Drinks", "0.80", "1.50"),
    ("Sprite", "Drinks", "0.80", "1.50"),
    ("Chicken", "Meat & Protein", "5.00", "8.00"),
    ("Fish", "Meat & Protein", "6.00", "10.00"),
    ("Pork", "Meat & Protein", "4.50", "7.50"),
    ("Sausage", "Meat & Protein", "3.00", "5.00"),
    ("Meatballs", "Meat & Protein", "3.50", "6.00"),
    ("Beans", "Meat & Protein", "1.00", "2.50"),
    ("Samosas", "Snacks", "0.50", "1.20"),
    ("Scones", "Snacks", "0.40", "1.00"),
    ("Fritters", "Snacks", "0.45", "1.10"),
    ("Crackers", "Snacks", "1.00", "2.00"),
    ("Two-Crunch", "Snacks", "0.60", "1.50"),
    ("Lay's", "Snacks", "1.20", "2.50"),
    ("Popcorn", "Snacks", "0.80", "2.00"),
)


__all__ = [
    "EXPECTED_SCHEMA_VERSION",
    "DEFAULT_LOW_STOCK_THRESHOLD",
    "CENT",
    "MAX_PRICE",
    "MAX_STOCK",
    "SheetName",
    "SHEET_COLUMNS",
    "CSV_HEADERS",
    "SAMPLE_PRODUCTS",
]

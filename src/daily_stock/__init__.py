"""Daily stock tracker: per-product opening, added, and sold stock with derived totals.

Importing the package sets up the shared ``daily_stock`` logger used by every
layer. Full INFO history goes to a rotating file under ``.logs`` (or the
directory named by ``DAILY_STOCK_LOG_DIR``); only warnings reach stderr so the
CLI's stdout stays usable for CSV output.
"""

import logging
import os
import sys
from logging.handlers import RotatingFileHandler
from pathlib import Path


__version__ = "0.1.0"

PROJECT_ROOT = Path(__file__).resolve().parents[2]
LOG_DIR = Path(os.environ.get("DAILY_STOCK_LOG_DIR", PROJECT_ROOT / ".logs"))
LOG_FILE = LOG_DIR / "daily_stock.log"
LOG_FORMAT = "%(asctime)s | %(name)s | %(levelname)s | %(message)s"
LOG_DATE_FORMAT = "%Y-%m-%d %H:%M:%S"
LOG_MAX_BYTES = 1_000_000
LOG_BACKUP_COUNT = 5


def _stock_log_file_handler(formatter: logging.Formatter) -> RotatingFileHandler | None:
    """Return the rotating stock-history handler, or ``None`` when the directory is unwritable."""

    try:
        LOG_DIR.mkdir(parents=True, exist_ok=True)
        handler = RotatingFileHandler(
            LOG_FILE,
            maxBytes=LOG_MAX_BYTES,
            backupCount=LOG_BACKUP_COUNT,
            encoding="utf-8",
        )
    except OSError as exc:
        print(f"Warning: stock history will not be written to '{LOG_FILE}': {exc}", file=sys.stderr)
        return None
    handler.setLevel(logging.INFO)
    handler.setFormatter(formatter)
    return handler


def _build_stock_logger() -> logging.Logger:
    logger = logging.getLogger("daily_stock")
    if logger.handlers:
        return logger

    logger.setLevel(logging.INFO)
    formatter = logging.Formatter(fmt=LOG_FORMAT, datefmt=LOG_DATE_FORMAT)

    file_handler = _stock_log_file_handler(formatter)
    if file_handler is not None:
        logger.addHandler(file_handler)

    # Warnings only; stdout carries command output.
    console_handler = logging.StreamHandler(sys.stderr)
    console_handler.setLevel(logging.WARNING)
    console_handler.setFormatter(formatter)
    logger.addHandler(console_handler)
    return logger


log = _build_stock_logger()
log.info("Daily stock tracker %s ready; history file %s", __version__, LOG_FILE)

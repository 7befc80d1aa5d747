"""Runtime context shared by the catalog, record engine, and query layer.

A :class:`RuntimeContext` bundles the parsed configuration with the storage
backend every operation runs against. Production code builds one from
``config.ini`` and the Excel workbook; tests and demos use an in-memory store.
"""

from __future__ import annotations

import uuid
from dataclasses import dataclass
from datetime import UTC, datetime
from pathlib import Path
from typing import Optional

from . import data_manager, log
from .constants import EXPECTED_SCHEMA_VERSION
from .storage import MemoryStore, RecordStore, WorkbookStore


@dataclass(frozen=True)
class RuntimeContext:
    """Container for configuration and the storage backend used by every layer."""

    settings: data_manager.ConfigSettings
    store: RecordStore


def resolve_timestamp(candidate: Optional[datetime] = None) -> datetime:
    """Return ``candidate`` or, when ``None``, the current timezone-aware UTC time."""

    return candidate if candidate is not None else datetime.now(UTC)


def generate_id() -> str:
    """Return a new opaque identifier for a product or daily record."""

    return str(uuid.uuid4())


def load_runtime_context(config_path: Optional[Path] = None) -> RuntimeContext:
    """Load configuration settings and a workbook-backed store.

    Args:
        config_path (Path | None): Optional override path for the configuration
            file. When omitted the data layer searches upward from the current
            working directory.

    Returns:
        RuntimeContext: Context whose store reads and writes the configured
            workbook.

    Raises:
        FileNotFoundError: If the configuration file or workbook cannot be
            located.
        KeyError: When mandatory configuration options are missing or the
            workbook lacks the expected sheets.
    """
    located_config = data_manager.find_config_file(config_path)
    resolved_config = Path(located_config).expanduser().resolve()
    parser = data_manager.read_config(resolved_config)
    settings = data_manager.parse_settings(parser, base_path=resolved_config.parent)
    workbook = data_manager.open_workbook(settings.data_file)
    data_manager.verify_sheets(workbook)
    log.info("Loaded runtime context for workbook '%s'", settings.data_file)
    return RuntimeContext(settings=settings, store=WorkbookStore(workbook, settings.data_file))


def memory_context(settings: Optional[data_manager.ConfigSettings] = None) -> RuntimeContext:
    """Build a context backed by a fresh :class:`MemoryStore`."""

    if settings is None:
        settings = data_manager.ConfigSettings(
            data_file=Path("daily_stock.xlsx"),
            shop_name="In-memory",
            schema_version=EXPECTED_SCHEMA_VERSION,
        )
    return RuntimeContext(settings=settings, store=MemoryStore())


def ensure_schema_version(context: RuntimeContext) -> None:
    """Validate workbook compatibility before mutating state.

    Raises:
        RuntimeError: If the schema version declared in the configuration does
            not match ``EXPECTED_SCHEMA_VERSION``.
    """
    if context.settings.schema_version != EXPECTED_SCHEMA_VERSION:
        log.error(
            "Workbook schema mismatch: expected %s, found %s",
            EXPECTED_SCHEMA_VERSION,
            context.settings.schema_version,
        )
        raise RuntimeError(
            "Workbook schema mismatch: expected %s, found %s"
            % (EXPECTED_SCHEMA_VERSION, context.settings.schema_version)
        )

    log.debug("Schema version '%s' validated", context.settings.schema_version)


def persist_context(context: RuntimeContext) -> None:
    """Persist any in-memory changes held by the context's store."""

    context.store.persist()


def refresh_context(context: RuntimeContext) -> RuntimeContext:
    """Reload the workbook to discard unsaved modifications.

    Returns a new context with a freshly opened workbook and empty caches.
    In-memory contexts have nothing to reload and are returned unchanged.

    Raises:
        FileNotFoundError: If the backing workbook cannot be reloaded.
    """
    store = context.store
    if not isinstance(store, WorkbookStore):
        return context
    workbook = data_manager.refresh_workbook(context.settings.data_file)
    log.info("Reloaded workbook '%s'", context.settings.data_file)
    return RuntimeContext(
        settings=context.settings,
        store=WorkbookStore(workbook, context.settings.data_file),
    )

"""Command-line entry points for the daily stock tracker.

All orchestration in this module is limited to argparse wiring, translating
command-line arguments into calls on the catalog, record engine, query, and
reporting modules, and printing their results. Exit codes mirror the HTTP
statuses a web front-end would return for the same outcome.
"""

from __future__ import annotations

import argparse
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Callable, Dict, Iterable, List, Mapping, MutableMapping, Optional, Sequence

from . import catalog, core_logic, log, queries, reporting, runtime
from .data_manager import DailyRecordRow, ProductRow
from .errors import (
    DuplicateRecordError,
    InternalConsistencyError,
    NotFoundError,
    ValidationError,
)

EXIT_OK = 0
EXIT_FAILURE = 1
EXIT_VALIDATION = 2
EXIT_CONFIG = 3
EXIT_NOT_FOUND = 4
EXIT_DUPLICATE = 5


@dataclass(frozen=True)
class CommandSpec:
    """Describe how a CLI sub-command is configured and executed."""

    name: str
    help_text: str
    register: Callable[[argparse._SubParsersAction[argparse.ArgumentParser]], argparse.ArgumentParser]
    execute: Callable[[runtime.RuntimeContext, argparse.Namespace], int]
    mutates: bool = False


def build_parser() -> argparse.ArgumentParser:
    """Construct the top-level CLI argument parser."""
    parser = argparse.ArgumentParser(
        prog="daily-stock",
        description="Track daily stock movements, sales, and profit per product.",
    )
    parser.add_argument(
        "--config",
        type=Path,
        default=None,
        help="Optional path to config.ini (defaults to a search upward from the working directory).",
    )
    return parser


def configure_subcommands(
    parser: argparse.ArgumentParser,
) -> Mapping[str, CommandSpec]:
    """Wire all CLI sub-commands onto the supplied parser."""
    subparsers = parser.add_subparsers(dest="command", required=True, title="commands")
    write_specs = register_write_commands(subparsers)
    read_specs = register_read_commands(subparsers)
    return build_command_table([*write_specs.values(), *read_specs.values()])


def register_write_commands(
    subparsers: argparse._SubParsersAction[argparse.ArgumentParser],
) -> Dict[str, CommandSpec]:
    """Declare mutating CLI commands."""
    specs = {
        "add-product": register_add_product_command(subparsers),
        "update-product": register_update_product_command(subparsers),
        "delete-product": register_delete_product_command(subparsers),
        "seed-products": register_seed_products_command(subparsers),
        "add-record": register_add_record_command(subparsers),
        "update-record": register_update_record_command(subparsers),
        "delete-record": register_delete_record_command(subparsers),
    }
    for spec in specs.values():
        spec.register(subparsers)
    return specs


def register_read_commands(
    subparsers: argparse._SubParsersAction[argparse.ArgumentParser],
) -> Dict[str, CommandSpec]:
    """Declare read-only CLI commands such as listings and reports."""
    specs = {
        "products": register_products_command(subparsers),
        "records": register_records_command(subparsers),
        "previous-stock": register_previous_stock_command(subparsers),
        "summary": register_summary_command(subparsers),
        "export-csv": register_export_csv_command(subparsers),
    }
    for spec in specs.values():
        spec.register(subparsers)
    return specs


def _add_price_arguments(parser: argparse.ArgumentParser, *, required: bool) -> None:
    parser.add_argument("--name", required=required)
    parser.add_argument("--category", required=required)
    parser.add_argument("--cost-price", required=required)
    parser.add_argument("--selling-price", required=required)


def _add_stock_arguments(parser: argparse.ArgumentParser) -> None:
    parser.add_argument("--opening", default=None, help="Opening stock.")
    parser.add_argument("--added", default=None, help="Stock added during the day.")
    parser.add_argument("--sold", default=None, help="Units sold during the day.")


def register_add_product_command(
    subparsers: argparse._SubParsersAction[argparse.ArgumentParser],
) -> CommandSpec:
    """Register the parser and executor for ``add-product``."""
    name = "add-product"
    help_text = "Add a product to the catalog."

    def registrar(action: argparse._SubParsersAction[argparse.ArgumentParser]) -> argparse.ArgumentParser:
        parser = action.add_parser(name, help=help_text)
        _add_price_arguments(parser, required=True)
        parser.set_defaults(command=name)
        return parser

    return CommandSpec(name=name, help_text=help_text, register=registrar, execute=run_add_product, mutates=True)


def register_update_product_command(
    subparsers: argparse._SubParsersAction[argparse.ArgumentParser],
) -> CommandSpec:
    """Register the parser and executor for ``update-product``."""
    name = "update-product"
    help_text = "Change a product's name, category, or prices."

    def registrar(action: argparse._SubParsersAction[argparse.ArgumentParser]) -> argparse.ArgumentParser:
        parser = action.add_parser(name, help=help_text)
        parser.add_argument("--product-id", required=True)
        _add_price_arguments(parser, required=False)
        parser.set_defaults(command=name)
        return parser

    return CommandSpec(name=name, help_text=help_text, register=registrar, execute=run_update_product, mutates=True)


def register_delete_product_command(
    subparsers: argparse._SubParsersAction[argparse.ArgumentParser],
) -> CommandSpec:
    """Register the parser and executor for ``delete-product``."""
    name = "delete-product"
    help_text = "Delete a product and all of its daily records."

    def registrar(action: argparse._SubParsersAction[argparse.ArgumentParser]) -> argparse.ArgumentParser:
        parser = action.add_parser(name, help=help_text)
        parser.add_argument("--product-id", required=True)
        parser.set_defaults(command=name)
        return parser

    return CommandSpec(name=name, help_text=help_text, register=registrar, execute=run_delete_product, mutates=True)


def register_seed_products_command(
    subparsers: argparse._SubParsersAction[argparse.ArgumentParser],
) -> CommandSpec:
    """Register the parser and executor for ``seed-products``."""
    name = "seed-products"
    help_text = "Add the sample drinks, protein, and snack catalogue."

    def registrar(action: argparse._SubParsersAction[argparse.ArgumentParser]) -> argparse.ArgumentParser:
        parser = action.add_parser(name, help=help_text)
        parser.set_defaults(command=name)
        return parser

    return CommandSpec(name=name, help_text=help_text, register=registrar, execute=run_seed_products, mutates=True)


def register_add_record_command(
    subparsers: argparse._SubParsersAction[argparse.ArgumentParser],
) -> CommandSpec:
    """Register the parser and executor for ``add-record``."""
    name = "add-record"
    help_text = "Record a product's stock movements for one day."

    def registrar(action: argparse._SubParsersAction[argparse.ArgumentParser]) -> argparse.ArgumentParser:
        parser = action.add_parser(name, help=help_text)
        parser.add_argument("--product-id", required=True)
        parser.add_argument("--date", required=True, help="Day in YYYY-MM-DD format.")
        _add_stock_arguments(parser)
        parser.set_defaults(command=name)
        return parser

    return CommandSpec(name=name, help_text=help_text, register=registrar, execute=run_add_record, mutates=True)


def register_update_record_command(
    subparsers: argparse._SubParsersAction[argparse.ArgumentParser],
) -> CommandSpec:
    """Register the parser and executor for ``update-record``."""
    name = "update-record"
    help_text = "Change a daily record and recompute its totals."

    def registrar(action: argparse._SubParsersAction[argparse.ArgumentParser]) -> argparse.ArgumentParser:
        parser = action.add_parser(name, help=help_text)
        parser.add_argument("--record-id", required=True)
        parser.add_argument("--product-id", default=None)
        parser.add_argument("--date", default=None)
        _add_stock_arguments(parser)
        parser.set_defaults(command=name)
        return parser

    return CommandSpec(name=name, help_text=help_text, register=registrar, execute=run_update_record, mutates=True)


def register_delete_record_command(
    subparsers: argparse._SubParsersAction[argparse.ArgumentParser],
) -> CommandSpec:
    """Register the parser and executor for ``delete-record``."""
    name = "delete-record"
    help_text = "Delete a daily record."

    def registrar(action: argparse._SubParsersAction[argparse.ArgumentParser]) -> argparse.ArgumentParser:
        parser = action.add_parser(name, help=help_text)
        parser.add_argument("--record-id", required=True)
        parser.set_defaults(command=name)
        return parser

    return CommandSpec(name=name, help_text=help_text, register=registrar, execute=run_delete_record, mutates=True)


def register_products_command(
    subparsers: argparse._SubParsersAction[argparse.ArgumentParser],
) -> CommandSpec:
    """Register the parser and executor for ``products``."""
    name = "products"
    help_text = "List products by category and name."

    def registrar(action: argparse._SubParsersAction[argparse.ArgumentParser]) -> argparse.ArgumentParser:
        parser = action.add_parser(name, help=help_text)
        parser.set_defaults(command=name)
        return parser

    return CommandSpec(name=name, help_text=help_text, register=registrar, execute=run_products)


def register_records_command(
    subparsers: argparse._SubParsersAction[argparse.ArgumentParser],
) -> CommandSpec:
    """Register the parser and executor for ``records``."""
    name = "records"
    help_text = "List daily records, optionally for one date."

    def registrar(action: argparse._SubParsersAction[argparse.ArgumentParser]) -> argparse.ArgumentParser:
        parser = action.add_parser(name, help=help_text)
        parser.add_argument("--date", default=None)
        parser.set_defaults(command=name)
        return parser

    return CommandSpec(name=name, help_text=help_text, register=registrar, execute=run_records)


def register_previous_stock_command(
    subparsers: argparse._SubParsersAction[argparse.ArgumentParser],
) -> CommandSpec:
    """Register the parser and executor for ``previous-stock``."""
    name = "previous-stock"
    help_text = "Show the closing stock carried into a date."

    def registrar(action: argparse._SubParsersAction[argparse.ArgumentParser]) -> argparse.ArgumentParser:
        parser = action.add_parser(name, help=help_text)
        parser.add_argument("--product-id", required=True)
        parser.add_argument("--date", required=True)
        parser.set_defaults(command=name)
        return parser

    return CommandSpec(name=name, help_text=help_text, register=registrar, execute=run_previous_stock)


def register_summary_command(
    subparsers: argparse._SubParsersAction[argparse.ArgumentParser],
) -> CommandSpec:
    """Register the parser and executor for ``summary``."""
    name = "summary"
    help_text = "Show sales, profit, and item totals."

    def registrar(action: argparse._SubParsersAction[argparse.ArgumentParser]) -> argparse.ArgumentParser:
        parser = action.add_parser(name, help=help_text)
        parser.add_argument("--date", default=None)
        parser.set_defaults(command=name)
        return parser

    return CommandSpec(name=name, help_text=help_text, register=registrar, execute=run_summary)


def register_export_csv_command(
    subparsers: argparse._SubParsersAction[argparse.ArgumentParser],
) -> CommandSpec:
    """Register the parser and executor for ``export-csv``."""
    name = "export-csv"
    help_text = "Export daily records as CSV."

    def registrar(action: argparse._SubParsersAction[argparse.ArgumentParser]) -> argparse.ArgumentParser:
        parser = action.add_parser(name, help=help_text)
        parser.add_argument("--date", default=None)
        parser.add_argument("--output", type=Path, default=None,
                            help="Write to this file instead of standard output.")
        parser.set_defaults(command=name)
        return parser

    return CommandSpec(name=name, help_text=help_text, register=registrar, execute=run_export_csv)


def load_runtime_context(config_path: Optional[Path] = None) -> runtime.RuntimeContext:
    """Resolve the runtime context for CLI operations."""
    context = runtime.load_runtime_context(config_path)
    runtime.ensure_schema_version(context)
    return context


def dispatch_command(
    context: runtime.RuntimeContext,
    args: argparse.Namespace,
    command_table: Mapping[str, CommandSpec],
) -> int:
    """Dispatch the parsed arguments to the configured executor."""
    if not hasattr(args, "command") or args.command is None:
        raise KeyError("No command specified")
    spec = command_table.get(args.command)
    if spec is None:
        raise KeyError(f"Unknown command: {args.command}")
    return spec.execute(context, args)


def build_command_table(
    specs: Iterable[CommandSpec],
) -> MutableMapping[str, CommandSpec]:
    """Build an index of command specifications keyed by command name."""
    table: Dict[str, CommandSpec] = {}
    for spec in specs:
        if spec.name in table:
            raise ValueError(f"Duplicate command name: {spec.name}")
        table[spec.name] = spec
    return table


def _supplied(pairs: Mapping[str, Any]) -> Dict[str, Any]:
    return {key: value for key, value in pairs.items() if value is not None}


def translate_add_product(args: argparse.Namespace) -> Mapping[str, Any]:
    """Translate CLI args into create-product keyword arguments."""
    return {
        "name": args.name,
        "category": args.category,
        "cost_price": args.cost_price,
        "selling_price": args.selling_price,
    }


def translate_update_product(args: argparse.Namespace) -> Mapping[str, Any]:
    """Translate CLI args into the partial fields of a product update."""
    return _supplied(
        {
            "name": args.name,
            "category": args.category,
            "cost_price": args.cost_price,
            "selling_price": args.selling_price,
        }
    )


def translate_add_record(args: argparse.Namespace) -> Mapping[str, Any]:
    """Translate CLI args into create-record keyword arguments.

    A missing ``--opening`` stays ``None`` so the engine carries forward the
    previous closing stock.
    """
    return {
        "product_id": args.product_id,
        "date": args.date,
        "opening_stock": args.opening,
        "added_stock": args.added if args.added is not None else 0,
        "sold_stock": args.sold if args.sold is not None else 0,
    }


def translate_update_record(args: argparse.Namespace) -> Mapping[str, Any]:
    """Translate CLI args into the partial fields of a record update."""
    return _supplied(
        {
            "product_id": args.product_id,
            "date": args.date,
            "opening_stock": args.opening,
            "added_stock": args.added,
            "sold_stock": args.sold,
        }
    )


def format_product(product: ProductRow) -> str:
    """Render one product as a single output line."""
    return (
        f"{product.product_id}  {product.category:<16} {product.name:<16} "
        f"cost={product.cost_price}  selling={product.selling_price}  "
        f"margin={catalog.product_margin(product)}%"
    )


def format_record(record: DailyRecordRow) -> str:
    """Render the stored values of one record as a single output line."""
    return (
        f"{record.record_id}  {record.date}  opening={record.opening_stock}  "
        f"added={record.added_stock}  sold={record.sold_stock}  closing={record.closing_stock}  "
        f"amount={record.amount_sold}  profit={record.profit}"
    )


def format_joined_record(row: queries.RecordWithProduct, threshold: int) -> str:
    """Render a joined record, flagging low stock."""
    flag = "  LOW STOCK" if reporting.is_low_stock(row, threshold) else ""
    return f"{row.product.name:<16} {format_record(row.record)}{flag}"


def _emit(lines: Iterable[str]) -> None:
    for line in lines:
        print(line)


def run_add_product(context: runtime.RuntimeContext, args: argparse.Namespace) -> int:
    """Execute the create-product workflow."""
    product = catalog.create_product(context, **translate_add_product(args))
    _emit([format_product(product)])
    return EXIT_OK


def run_update_product(context: runtime.RuntimeContext, args: argparse.Namespace) -> int:
    """Execute the update-product workflow."""
    product = catalog.update_product(context, args.product_id, translate_update_product(args))
    _emit([format_product(product)])
    return EXIT_OK


def run_delete_product(context: runtime.RuntimeContext, args: argparse.Namespace) -> int:
    """Execute the delete-product workflow."""
    removed = catalog.delete_product(context, args.product_id)
    _emit([f"Deleted product {args.product_id} ({removed} daily record(s) removed)"])
    return EXIT_OK


def run_seed_products(context: runtime.RuntimeContext, args: argparse.Namespace) -> int:
    """Execute the sample-catalogue workflow."""
    created = catalog.seed_sample_products(context)
    _emit([f"Added {len(created)} sample product(s)"])
    return EXIT_OK


def run_add_record(context: runtime.RuntimeContext, args: argparse.Namespace) -> int:
    """Execute the create-record workflow with opening stock carry-forward."""
    record = core_logic.create_record_with_carry_forward(context, **translate_add_record(args))
    _emit([format_record(record)])
    return EXIT_OK


def run_update_record(context: runtime.RuntimeContext, args: argparse.Namespace) -> int:
    """Execute the update-record workflow."""
    record = core_logic.update_record(context, args.record_id, translate_update_record(args))
    _emit([format_record(record)])
    return EXIT_OK


def run_delete_record(context: runtime.RuntimeContext, args: argparse.Namespace) -> int:
    """Execute the delete-record workflow."""
    core_logic.delete_record(context, args.record_id)
    _emit([f"Deleted record {args.record_id}"])
    return EXIT_OK


def run_products(context: runtime.RuntimeContext, args: argparse.Namespace) -> int:
    """List the catalog."""
    _emit(format_product(product) for product in catalog.list_products(context))
    return EXIT_OK


def run_records(context: runtime.RuntimeContext, args: argparse.Namespace) -> int:
    """List joined daily records."""
    threshold = context.settings.low_stock_threshold
    rows = queries.list_records(context, args.date)
    _emit(format_joined_record(row, threshold) for row in rows)
    return EXIT_OK


def run_previous_stock(context: runtime.RuntimeContext, args: argparse.Namespace) -> int:
    """Print the closing stock carried into ``--date``."""
    stock = queries.get_previous_closing_stock(context, args.product_id, args.date)
    _emit([str(stock)])
    return EXIT_OK


def run_summary(context: runtime.RuntimeContext, args: argparse.Namespace) -> int:
    """Print the dashboard totals for ``--date`` (or all dates)."""
    rows = queries.list_records(context, args.date)
    summary = reporting.summarize_records(rows)
    low = reporting.low_stock_records(rows, context.settings.low_stock_threshold)
    lines: List[str] = [
        f"Total sales:      {summary.total_sales}",
        f"Total profit:     {summary.total_profit} ({summary.profit_margin:.1f}% margin)",
        f"Items sold:       {summary.total_sold_items}",
        f"Stock added:      {summary.total_added}",
        f"Low stock items:  {len(low)}",
    ]
    ranking = reporting.profit_ranking(rows)
    if ranking:
        lines.append("Profit by product:")
        lines.extend(f"  {row.product.name:<16} {row.record.profit}" for row in ranking)
    _emit(lines)
    return EXIT_OK


def run_export_csv(context: runtime.RuntimeContext, args: argparse.Namespace) -> int:
    """Write the CSV export to ``--output`` or standard output."""
    rows = queries.list_records(context, args.date)
    if args.output is None:
        _emit([reporting.export_csv(rows)])
    else:
        path = reporting.write_csv_report(rows, args.output)
        _emit([f"Exported {len(rows)} record(s) to {path}"])
    return EXIT_OK


def handle_cli_error(error: Exception) -> int:
    """Convert raised exceptions into exit codes."""
    if isinstance(error, ValidationError):
        log.error("%s", error)
        return EXIT_VALIDATION
    if isinstance(error, NotFoundError):
        log.error("%s", error)
        return EXIT_NOT_FOUND
    if isinstance(error, DuplicateRecordError):
        log.error("%s", error)
        return EXIT_DUPLICATE
    if isinstance(error, InternalConsistencyError):
        log.error("Internal consistency failure: %s", error)
        return EXIT_FAILURE
    if isinstance(error, (FileNotFoundError, KeyError)):
        log.error("%s", error)
        return EXIT_CONFIG
    log.error("%s", error)
    return EXIT_FAILURE


def persist_store(context: runtime.RuntimeContext) -> None:
    """Persist workbook changes after successful execution."""
    try:
        runtime.persist_context(context)
    except PermissionError as error:
        raise RuntimeError(str(error)) from error


def main(argv: Sequence[str] | None = None) -> int:
    """CLI entry point that orchestrates parsing and execution."""
    parser = build_parser()
    command_table = configure_subcommands(parser)
    args = parser.parse_args(argv)
    try:
        context = load_runtime_context(getattr(args, "config", None))
        exit_code = dispatch_command(context, args, command_table)
        if exit_code == EXIT_OK and command_table[args.command].mutates:
            persist_store(context)
        return exit_code
    except Exception as error:  # pragma: no cover - centralised error handler tested separately
        return handle_cli_error(error)

"""Command-line entry point for the CRM maintenance tools."""

from __future__ import annotations

import argparse
import asyncio
import logging
import sys
from importlib import metadata
from typing import Optional, Sequence

from src.config.config_manager import ConfigManager, ConfigurationError, FirestoreConfig
from src.core.conditions import Condition, build_condition, build_date_range, parse_condition
from src.core.confirmation_gate import ConfirmationGate
from src.core.document_store import DocumentStore, FirestoreDocumentStore, create_firestore_client
from src.core.orchestrator import MaintenanceOrchestrator, resolve_collections
from src.monitoring.metrics import MaintenanceMetrics
from src.utils.error_handling import ParseError, StoreAccessError
from src.utils.tracing import CorrelationIdFilter

from .reporting import RULE, emit, outcome_lines, preview_lines

PACKAGE_NAME = "crm-maintenance"
FALLBACK_VERSION = "1.0.0"

EXIT_OK = 0
EXIT_FAILED = 1
EXIT_USAGE = 2

logger = logging.getLogger(__name__)


def _package_version() -> str:
    try:
        return metadata.version(PACKAGE_NAME)
    except metadata.PackageNotFoundError:
        return FALLBACK_VERSION


def _add_deletion_arguments(parser: argparse.ArgumentParser,
                            default_collections: str,
                            default_limit: int) -> None:
    parser.add_argument("-f", "--from", dest="start", required=True,
                        help="Start date (YYYY-MM-DD or ISO format), inclusive.")
    parser.add_argument("-t", "--to", dest="end", required=True,
                        help="End date (YYYY-MM-DD or ISO format), inclusive; bare dates cover the whole day.")
    parser.add_argument("-c", "--collections", default=default_collections,
                        help=f'Comma-separated collections or "all" (default: {default_collections}).')
    parser.add_argument("-w", "--where",
                        help="Extra condition, e.g. source==email or routingMethod==metadata.")
    parser.add_argument("--field", help="Field for the extra condition.")
    parser.add_argument("-o", "--operator", default="==",
                        help="Operator for --field: ==, !=, <, <=, >, >=, contains (default: ==).")
    parser.add_argument("-v", "--value", help="Value for --field.")
    parser.add_argument("-d", "--dry-run", action="store_true",
                        help="Show what would be deleted without deleting.")
    parser.add_argument("-l", "--limit", type=int, default=default_limit,
                        help=f"Limit results per collection, 0 for unlimited (default: {default_limit}).")
    parser.add_argument("-y", "--yes", action="store_true",
                        help="Skip the confirmation prompt (the grace delay still applies).")
    parser.add_argument("--metrics-file",
                        help="Write Prometheus textfile metrics for the run to this path.")


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="crm-maintenance",
        description="CRM document store maintenance utilities.",
    )
    parser.add_argument("--version", action="store_true", help="Print version and exit.")

    common = argparse.ArgumentParser(add_help=False)
    common.add_argument("--config-dir", default="config",
                        help="Directory containing base.yaml and <environment>.yaml.")
    common.add_argument("--environment", default="dev", help="Configuration environment.")
    common.add_argument("--env-file", help="Optional .env file to load.")

    subparsers = parser.add_subparsers(dest="command")

    by_date = subparsers.add_parser(
        "delete-by-date-range",
        parents=[common],
        help="Delete documents created in a date range, optionally filtered by a condition.",
    )
    _add_deletion_arguments(by_date, default_collections="all", default_limit=1000)

    notes = subparsers.add_parser(
        "delete-notes",
        parents=[common],
        help="Delete notes matching a condition within a date range.",
    )
    _add_deletion_arguments(notes, default_collections="notes", default_limit=100)

    subparsers.add_parser("query", parents=[common], help="Interactive query/delete console.")
    subparsers.add_parser("validate-config", parents=[common], help="Load and validate configuration.")
    return parser


def _configure_logging(settings: ConfigManager) -> None:
    logging_config = settings.get_logging_config()
    logging.basicConfig(
        level=getattr(logging, logging_config.level, logging.INFO),
        format=logging_config.format,
        datefmt='%Y-%m-%d %H:%M:%S',
    )
    for handler in logging.getLogger().handlers:
        if not any(isinstance(f, CorrelationIdFilter) for f in handler.filters):
            handler.addFilter(CorrelationIdFilter())


def _load_settings(args: argparse.Namespace) -> ConfigManager:
    return ConfigManager(
        config_path=args.config_dir,
        environment=args.environment,
        env_file=args.env_file,
    )


def _validate_config(config_dir: str, environment: str) -> None:
    settings = ConfigManager(config_path=config_dir, environment=environment)
    settings.get_firestore_config()
    settings.get_maintenance_config()
    settings.get_logging_config()


def _create_store(firestore_config: FirestoreConfig) -> DocumentStore:
    client = create_firestore_client(
        project_id=firestore_config.project_id,
        credentials_path=firestore_config.credentials_path,
        database=firestore_config.database,
    )
    store = FirestoreDocumentStore(client)
    store.max_batch_size = firestore_config.max_batch_size
    return store


def condition_from_args(args: argparse.Namespace) -> Optional[Condition]:
    """Build the optional condition from --where or --field/--operator/--value"""
    if args.where and (args.field or args.value):
        raise ParseError("Use either --where or --field/--operator/--value, not both")
    if args.where:
        return parse_condition(args.where)
    if args.field or args.value:
        if not args.field or not args.value:
            raise ParseError("--field and --value must be given together")
        return build_condition(args.field, args.operator, args.value)
    return None


async def _delete_command(args: argparse.Namespace, settings: ConfigManager) -> int:
    maintenance = settings.get_maintenance_config()
    try:
        date_range = build_date_range(args.start, args.end)
        condition = condition_from_args(args)
        collections = resolve_collections(args.collections, maintenance.collections, maintenance.aliases)
        if args.limit < 0:
            raise ParseError("--limit must be zero (unlimited) or positive")
    except ParseError as e:
        print(f"Error: {e}", file=sys.stderr)
        return EXIT_USAGE

    print("\nDELETE OPERATION SUMMARY")
    print(RULE)
    print(f"Date Range: {date_range.start.isoformat()} to {date_range.end.isoformat()}")
    print(f"Collections: {', '.join(collections)}")
    if condition:
        print(f"Additional Condition: {condition.describe()}")
    print(f"Limit per collection: {args.limit if args.limit > 0 else 'unlimited'}")
    print(f"Mode: {'DRY RUN (no deletion)' if args.dry_run else 'LIVE (will delete)'}")
    print(RULE)

    try:
        store = _create_store(settings.get_firestore_config())
    except StoreAccessError as e:
        print(f"Error: {e}", file=sys.stderr)
        return EXIT_FAILED

    metrics = MaintenanceMetrics()
    gate = ConfirmationGate(
        dry_run=args.dry_run,
        assume_yes=args.yes,
        grace_seconds=maintenance.grace_seconds,
    )
    orchestrator = MaintenanceOrchestrator(
        store,
        gate,
        chunk_size=store.max_batch_size,
        preview_size=maintenance.preview_size,
        timestamp_field=maintenance.timestamp_field,
        metrics=metrics,
        on_preview=lambda summary: emit(preview_lines(summary)),
    )

    summary = await orchestrator.run(collections, date_range, condition, args.limit)
    emit(outcome_lines(summary))

    if args.metrics_file:
        try:
            metrics.write_textfile(args.metrics_file)
        except OSError as e:
            logger.error(f"Failed to write metrics file {args.metrics_file}: {e}")

    return summary.exit_code


async def _query_command(args: argparse.Namespace, settings: ConfigManager) -> int:
    from .console import QueryConsole

    try:
        store = _create_store(settings.get_firestore_config())
    except StoreAccessError as e:
        print(f"Error: {e}", file=sys.stderr)
        return EXIT_FAILED

    console = QueryConsole(store, settings.get_maintenance_config())
    return await console.run()


def main(argv: Optional[Sequence[str]] = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)

    if args.version:
        print(f"{PACKAGE_NAME} {_package_version()}")
        return EXIT_OK

    if not args.command:
        parser.print_help()
        return EXIT_OK

    if args.command == "validate-config":
        try:
            _validate_config(args.config_dir, args.environment)
        except ConfigurationError as e:
            print(f"Configuration error: {e}", file=sys.stderr)
            return EXIT_USAGE
        print("Configuration is valid")
        return EXIT_OK

    try:
        settings = _load_settings(args)
    except ConfigurationError as e:
        print(f"Configuration error: {e}", file=sys.stderr)
        return EXIT_USAGE
    _configure_logging(settings)

    if args.command == "query":
        return asyncio.run(_query_command(args, settings))
    return asyncio.run(_delete_command(args, settings))


if __name__ == '__main__':
    raise SystemExit(main())

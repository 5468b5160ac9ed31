"""Command line entry point for the WooCommerce ⇄ Google Sheets product sync."""

from __future__ import annotations

import argparse
import logging
import sys
import webbrowser
from pathlib import Path

import settings as settings_module
from sheetsync import google_credentials
from sheetsync.catalog_client import WooCommerceClient
from sheetsync.errors import SyncError
from sheetsync.logging_config import configure_logging
from sheetsync.sheets_client import build_grid_store
from sheetsync.sync_service import SyncService, parse_field_selection

logger = logging.getLogger("sheetsync.cli")

FIELDS_HELP = (
    'fields to bring to the sheet (export) or to save to the site (import); use "*" for all'
)


def build_service(config: settings_module.SyncSettings) -> SyncService:
    """Wire the WooCommerce client and the Google grid store together."""

    config.validate()
    catalog = WooCommerceClient(
        config.api_url,
        config.consumer_key,
        config.consumer_secret,
        per_page=config.per_page,
        timeout=config.timeout_seconds,
    )
    credentials = google_credentials.load_credentials(
        Path(config.client_secret_path).expanduser(),
        Path(config.token_path).expanduser(),
    )
    grid_store = build_grid_store(credentials, sheet_title=config.sheet_title)
    return SyncService(catalog, grid_store, spreadsheet_name=config.spreadsheet_name)


def command_export(args: argparse.Namespace, config: settings_module.SyncSettings) -> int:
    selection = parse_field_selection(args.fields)
    service = build_service(config)
    result = service.export(selection)
    if result.is_noop:
        return 0

    print(f"Exported {result.record_count} products to {result.spreadsheet_url}")
    if args.open_browser and result.spreadsheet_url:
        webbrowser.open(result.spreadsheet_url)
    return 0


def command_import(args: argparse.Namespace, config: settings_module.SyncSettings) -> int:
    selection = parse_field_selection(args.fields)
    service = build_service(config)
    result = service.import_(selection, dry_run=args.dry_run)
    if result.is_noop:
        return 0

    if result.dry_run:
        print(f"{len(result.updates)} field changes found, nothing was saved.")
    else:
        print(f"Updated {len(result.updated_ids)} products ({len(result.updates)} field changes).")
    return 0


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="Sync WooCommerce products with a Google Sheet")
    parser.add_argument("-v", "--verbose", action="store_true", help="Enable debug logging")
    subparsers = parser.add_subparsers(dest="command", required=True)

    export_parser = subparsers.add_parser("export", help="Write products to the spreadsheet")
    export_parser.add_argument("-f", "--fields", nargs="+", required=True, help=FIELDS_HELP)
    export_parser.add_argument(
        "--no-browser",
        dest="open_browser",
        action="store_false",
        help="Do not open the spreadsheet after exporting",
    )
    export_parser.set_defaults(func=command_export)

    import_parser = subparsers.add_parser("import", help="Save spreadsheet edits to the products")
    import_parser.add_argument("-f", "--fields", nargs="+", required=True, help=FIELDS_HELP)
    import_parser.add_argument(
        "-t",
        "--dry-run",
        action="store_true",
        help="Report the changes but do not save them",
    )
    import_parser.set_defaults(func=command_import)

    return parser


def main(argv: list[str] | None = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)
    config = settings_module.load_settings()
    configure_logging(logging.DEBUG if args.verbose else logging.INFO)
    try:
        return args.func(args, config)
    except SyncError as exc:
        logger.error("%s - exiting", exc)
        return 1


if __name__ == "__main__":
    sys.exit(main())

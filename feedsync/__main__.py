"""
Línea de comandos de Shopify Feed Sync.

Uso:
    python -m feedsync sync [--incremental]
    python -m feedsync feed [--vendor V] [--product-type T] [--min-price N] [--max-price N]
    python -m feedsync status | stats | logs | products | validate | report | cleanup | test-connection
    python -m feedsync exports | history | delete-export NAME
    python -m feedsync config [--shop-url URL] [--token T] [--currency C] [--higher-variant-policy P] [--check]
"""

import argparse
import asyncio
import json
import logging
import sys
from typing import Any, List, Optional

from feedsync.core.logging_config import setup_logging
from feedsync.services.control import ControlSurface
from feedsync.utils.error_handler import AppException, create_error_response, log_error

logger = logging.getLogger(__name__)


def _to_jsonable(data: Any) -> Any:
    if isinstance(data, list):
        return [_to_jsonable(item) for item in data]
    if hasattr(data, "model_dump"):
        return data.model_dump(mode="json")
    return data


def _print_json(data: Any) -> None:
    data = _to_jsonable(data)
    print(json.dumps(data, indent=2, ensure_ascii=False, default=str))


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="feedsync", description="Shopify catalog sync and Google Merchant feed")
    subparsers = parser.add_subparsers(dest="command", required=True)

    sync = subparsers.add_parser("sync", help="Sync the Shopify catalog into the local store")
    sync.add_argument("--incremental", action="store_true", help="Only products updated since the last sync")

    resync = subparsers.add_parser("resync", help="Re-fetch specific products by id")
    resync.add_argument("product_ids", nargs="+")

    feed = subparsers.add_parser("feed", help="Generate the Google Merchant feed workbook")
    feed.add_argument("--vendor")
    feed.add_argument("--product-type")
    feed.add_argument("--min-price", type=float)
    feed.add_argument("--max-price", type=float)

    subparsers.add_parser("status", help="Show sync status and catalog statistics")

    logs = subparsers.add_parser("logs", help="List sync runs")
    logs.add_argument("--page", type=int, default=1)
    logs.add_argument("--limit", type=int, default=20)

    products = subparsers.add_parser("products", help="List stored products")
    products.add_argument("--page", type=int, default=1)
    products.add_argument("--limit", type=int, default=50)
    products.add_argument("--search")

    subparsers.add_parser("validate", help="Check the local catalog for data issues")
    subparsers.add_parser("report", help="Print the sync report")
    subparsers.add_parser("stats", help="Show local catalog statistics")
    subparsers.add_parser("exports", help="List generated feed files")

    history = subparsers.add_parser("history", help="List recorded feed exports")
    history.add_argument("--limit", type=int, default=10)

    delete_export = subparsers.add_parser("delete-export", help="Delete a generated feed file")
    delete_export.add_argument("filename")

    config = subparsers.add_parser("config", help="Show or update the saved configuration")
    config.add_argument("--shop-url")
    config.add_argument("--token")
    config.add_argument("--currency")
    config.add_argument("--higher-variant-policy", choices=["percentage", "blank"])
    config.add_argument("--check", action="store_true", help="Validate the saved configuration")

    cleanup = subparsers.add_parser("cleanup", help="Delete stale unsynced products")
    cleanup.add_argument("--days", type=int)
    cleanup.add_argument("--include-synced", action="store_true")

    test_connection = subparsers.add_parser("test-connection", help="Check Shopify credentials")
    test_connection.add_argument("--shop-url")
    test_connection.add_argument("--token")

    return parser


async def _config_command(args: argparse.Namespace, control: ControlSurface) -> Any:
    if args.check:
        return await control.validate_config()

    update = {}
    if args.shop_url:
        update["shop_url"] = args.shop_url
    if args.token:
        update["access_token"] = args.token
    if args.currency:
        update["feed_settings"] = {"currency": args.currency}
    if args.higher_variant_policy:
        update["labels"] = {"higher_variant_policy": args.higher_variant_policy}

    config = await control.save_config(update) if update else await control.get_config()
    return config.public_dict()


async def run_command(args: argparse.Namespace, control: ControlSurface) -> Any:
    if args.command == "sync":
        return await (control.trigger_incremental_sync() if args.incremental else control.trigger_full_sync())
    if args.command == "resync":
        return await control.resync_products(args.product_ids)
    if args.command == "feed":
        filters = {
            "vendor": args.vendor,
            "product_type": args.product_type,
            "min_price": args.min_price,
            "max_price": args.max_price,
        }
        filters = {key: value for key, value in filters.items() if value is not None}
        return await control.generate_feed(filters or None)
    if args.command == "status":
        return await control.get_sync_status()
    if args.command == "logs":
        return await control.get_logs(page=args.page, limit=args.limit)
    if args.command == "products":
        return await control.get_products(page=args.page, limit=args.limit, search=args.search)
    if args.command == "validate":
        return await control.validate()
    if args.command == "report":
        return await control.export_sync_report()
    if args.command == "stats":
        return await control.get_statistics()
    if args.command == "exports":
        return control.list_export_files()
    if args.command == "history":
        return await control.get_export_history(limit=args.limit)
    if args.command == "delete-export":
        return {"deleted": control.delete_export_file(args.filename)}
    if args.command == "config":
        return await _config_command(args, control)
    if args.command == "cleanup":
        deleted = await control.cleanup(max_age_days=args.days, include_synced=args.include_synced)
        return {"deleted_products": deleted}
    if args.command == "test-connection":
        return await control.test_connection(args.shop_url, args.token)
    raise ValueError(f"Unknown command: {args.command}")


async def main(argv: Optional[List[str]] = None) -> int:
    args = build_parser().parse_args(argv)
    setup_logging()

    async with ControlSurface() as control:
        logger.info(f"▶️ Running command: {args.command}")
        try:
            result = await run_command(args, control)
        except AppException as e:
            log_error(e, {"command": args.command})
            _print_json(create_error_response(e))
            return 1

    _print_json(result)
    return 0


def cli() -> None:
    sys.exit(asyncio.run(main()))


if __name__ == "__main__":
    cli()

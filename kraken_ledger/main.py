"""Application entry point."""

import argparse
import asyncio
import logging
import sys
from datetime import datetime, timezone
from typing import Optional

import uvicorn
from tabulate import tabulate

from kraken_ledger.config import Config
from kraken_ledger.app import build_services, create_app
from kraken_ledger.api.dependencies import Services
from kraken_ledger.models import SyncResult


def configure_logging(level: str) -> None:
    logging.basicConfig(
        level=getattr(logging, level, logging.INFO),
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    )


def _format_time(seconds: Optional[float]) -> str:
    if not seconds:
        return "N/A"
    return datetime.fromtimestamp(seconds, tz=timezone.utc).strftime("%Y-%m-%d %H:%M:%S UTC")


def print_sync_result(result: SyncResult) -> None:
    rows = [
        ["Mode", result.mode],
        ["Success", "yes" if result.success else "no"],
        ["Trades written", result.newTrades],
        ["Trades in database", result.totalTrades],
        ["Pages fetched", result.pagesFetched],
    ]
    if result.error:
        rows.append(["Error", f"{result.errorType}: {result.error}"])
    print(tabulate(rows, tablefmt="simple"))


def print_status(services: Services) -> None:
    store = services.store
    cursor = store.read_cursor()
    oldest = store.min_trade_time()
    newest = store.max_trade_time() or None

    duration = "N/A"
    if oldest and newest:
        duration = f"{round((newest - oldest) / 86400)} days"

    rows = [
        ["Database", services.config.database_path],
        ["Total trades", store.count()],
        ["Oldest trade", _format_time(oldest)],
        ["Newest trade", _format_time(newest)],
        ["Time range", duration],
        ["Last sync", _format_time(cursor.lastSyncedAt) if not cursor.never_synced else "Never"],
        ["Last trade id", cursor.lastTradeId or "N/A"],
        ["Cached count", cursor.totalCount],
        ["Credentials", "configured" if services.config.has_credentials else "missing"],
    ]
    print(tabulate(rows, headers=["Field", "Value"], tablefmt="simple"))


async def run_sync(services: Services, full: bool) -> SyncResult:
    try:
        if full:
            return await services.sync_service.full_resync()
        return await services.sync_service.sync()
    finally:
        await services.datasource.close()


def main(argv: Optional[list[str]] = None) -> int:
    """Run the application."""
    parser = argparse.ArgumentParser(description="Kraken trade ledger")
    parser.add_argument(
        "command",
        nargs="?",
        default="serve",
        choices=["serve", "sync", "resync", "status"],
        help="serve the API (default), sync or resync trades once, or show cache status",
    )
    args = parser.parse_args(argv)

    config = Config.from_env()
    configure_logging(config.log_level)

    if args.command == "serve":
        app = create_app(config)
        uvicorn.run(
            app,
            host=config.host,
            port=config.port,
        )
        return 0

    services = build_services(config)
    try:
        if args.command == "status":
            print_status(services)
            return 0

        if not config.has_credentials:
            print("KRAKEN_API_KEY and KRAKEN_API_PRIVATE_KEY must be set", file=sys.stderr)
            return 2

        result = asyncio.run(run_sync(services, full=args.command == "resync"))
        print_sync_result(result)
        return 0 if result.success else 1
    finally:
        services.store.close()


if __name__ == "__main__":
    sys.exit(main())

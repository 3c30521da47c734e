#!/usr/bin/env python
"""
Discount Analytics Admin

Operator commands for the discount fact store.

Usage:
    python scripts/discount_admin.py provision
    python scripts/discount_admin.py migrate
    python scripts/discount_admin.py status
    python scripts/discount_admin.py capture --order-id 1234
    python scripts/discount_admin.py drop --yes
"""

import argparse
import asyncio
import json
import sys

import structlog

from discount_analytics.config import get_settings
from discount_analytics.config.logging import configure_logging
from discount_analytics.context import AppContext
from discount_analytics.database.connection import close_database, get_session_factory, init_database

logger = structlog.get_logger(__name__)


async def provision(context: AppContext, args) -> int:
    ok = await context.store.provision()
    print(json.dumps({"provisioned": ok, "schema_version": await context.store.schema_version()}))
    return 0 if ok else 1


async def migrate(context: AppContext, args) -> int:
    summary = await context.migrator.run()
    print(json.dumps(summary.to_dict()))
    return 0 if summary.success and not summary.errors else 1


async def status(context: AppContext, args) -> int:
    print(json.dumps({
        "provisioned": await context.store.is_provisioned(),
        "schema_version": await context.store.schema_version(),
        "history_source": (await context.reports.history_source()).value,
    }))
    return 0


async def capture(context: AppContext, args) -> int:
    result = await context.orchestrator.capture_order_id(args.order_id)
    if result is None:
        print(json.dumps({"order_id": args.order_id, "found": False}))
        return 1
    print(json.dumps({
        "order_id": result.order_id,
        "captured": result.captured,
        "facts": len(result.facts),
        "skipped_item_ids": result.skipped_item_ids,
        "failed_item_id": result.failed_item_id,
    }))
    return 1 if result.failed else 0


async def drop(context: AppContext, args) -> int:
    if not args.yes:
        print("Refusing to drop discount tables without --yes", file=sys.stderr)
        return 2
    ok = await context.store.deprovision()
    print(json.dumps({"dropped": ok}))
    return 0 if ok else 1


COMMANDS = {
    "provision": provision,
    "migrate": migrate,
    "status": status,
    "capture": capture,
    "drop": drop,
}


async def run(args) -> int:
    await init_database(args.database_url)
    try:
        context = AppContext.build(get_session_factory(), get_settings())
        return await COMMANDS[args.command](context, args)
    finally:
        await close_database()


def main(argv=None) -> int:
    parser = argparse.ArgumentParser(description="Discount fact store administration")
    parser.add_argument("--database-url", default=None, help="Override DATABASE_URL")
    parser.add_argument("--log-level", default=None, help="Log level")
    subparsers = parser.add_subparsers(dest="command", required=True)
    
    subparsers.add_parser("provision", help="Create discount tables if missing")
    subparsers.add_parser("migrate", help="Migrate legacy item metadata into the fact store")
    subparsers.add_parser("status", help="Show fact store state")
    capture_parser = subparsers.add_parser("capture", help="Capture one order")
    capture_parser.add_argument("--order-id", type=int, required=True)
    drop_parser = subparsers.add_parser("drop", help="Drop discount tables (uninstall)")
    drop_parser.add_argument("--yes", action="store_true", help="Confirm the drop")
    
    args = parser.parse_args(argv)
    configure_logging(args.log_level)
    
    return asyncio.run(run(args))


if __name__ == "__main__":
    sys.exit(main())

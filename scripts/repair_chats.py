#!/usr/bin/env python
"""
Repair chat data in place.

Folds legacy message chat references into `chat_id`, types untyped chats,
removes empty and duplicate direct chats and recomputes every unread counter.
Safe to run repeatedly; `--dry-run` only reports what would change.
"""

import argparse
import asyncio
import logging

from motor.motor_asyncio import AsyncIOMotorClient

from chatwave_app.core import config
from chatwave_app.db import init_db
from chatwave_app.chating.maintenance.repair import run_all

logger = logging.getLogger("repair_chats")


async def repair(dry_run: bool):
    client = AsyncIOMotorClient(config.MONGODB_URL, uuidRepresentation="standard", tz_aware=True)
    try:
        await init_db(client)
        logger.info(f"Connected to MongoDB: {config.DATABASE_NAME}")
        report = await run_all(dry_run=dry_run)
    finally:
        client.close()

    prefix = "[dry run] " if dry_run else ""
    logger.info(f"{prefix}Chat types fixed: {report['chat_types']}")
    logger.info(f"{prefix}Legacy messages: {report['messages']}")
    logger.info(f"{prefix}Empty chats removed: {report['deleted_empty']}")
    logger.info(f"{prefix}Duplicate direct chats removed: {report['deleted_duplicates']}")
    logger.info(f"{prefix}Unread counters: {report['chats_fixed']} of {report['chats_checked']} chats fixed")
    return report


def main():
    parser = argparse.ArgumentParser(description="Repair chat collections")
    parser.add_argument("--dry-run", action="store_true", help="report changes without writing them")
    args = parser.parse_args()

    logging.basicConfig(level=logging.INFO, format="%(asctime)s %(levelname)s %(message)s")
    try:
        asyncio.run(repair(args.dry_run))
    except KeyboardInterrupt:
        logger.warning("Interrupted")


if __name__ == "__main__":
    main()

#!/usr/bin/env python3
"""Maintenance script to rebuild the per-person schedule index from task slots.

Usage:
    python scripts/sync_schedules.py              # reconcile every task
    python scripts/sync_schedules.py <task_id>    # reconcile a single task
"""

import asyncio
import logging
import sys

from opsdesk.core import db_client
from opsdesk.main import register_modules
from opsdesk.modules.scheduling import service
from opsdesk.modules.scheduling.sync import rebuild_all, sync_task_schedule


logging.basicConfig(level=logging.INFO, format="%(message)s")
logger = logging.getLogger(__name__)


async def sync_one(task_id: str) -> None:
    """Reconcile the index rows of one task."""
    task = await service.get_task(task_id=task_id)
    rows = await sync_task_schedule(task)
    logger.info(f"Task {task_id}: {rows} schedule row(s) written")


def print_usage() -> None:
    """Print usage information."""
    logger.info(__doc__)


async def main() -> None:
    """Main entry point."""
    args = sys.argv[1:]

    if "--help" in args or "-h" in args:
        print_usage()
        return

    register_modules()
    await db_client.init_db()
    try:
        if args:
            await sync_one(args[0])
        else:
            synced = await rebuild_all()
            logger.info(f"Reconciled {synced} task(s)")
    finally:
        await db_client.close_connection()


if __name__ == "__main__":
    asyncio.run(main())

#!/usr/bin/env python3
"""
Run a one-off Printify catalog sync outside the worker schedule.

Reads the same environment as the service (DATABASE_URL, PRINTIFY_*).
"""

import asyncio
import os
import sys

# Add project root to path
project_root = os.path.dirname(
    os.path.dirname(os.path.dirname(os.path.abspath(__file__)))
)
sys.path.insert(0, project_root)

from libs.common.logging import configure_logging
from services.store_service.tasks import sync_printify_catalog


async def run():
    configure_logging()
    result = await sync_printify_catalog()
    if result is None:
        print("Printify is not configured; nothing to do.")
        return 1

    print(f"Synced: {result.synced_count}")
    print(f"Pending images: {len(result.pending_image_product_ids)}")
    print(f"Skipped: {len(result.skipped_product_ids)}")
    for failure in result.failed:
        print(f"  FAILED {failure.product_id}: {failure.error}")
    return 1 if result.failed else 0


if __name__ == "__main__":
    print("Syncing Printify catalog...")
    sys.exit(asyncio.run(run()))

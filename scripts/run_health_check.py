#!/usr/bin/env python3
"""
Run one link health sweep outside the scheduler.

Usage:
    python scripts/run_health_check.py [--batch-size N]
"""

import argparse
import asyncio
import sys
from pathlib import Path

# Add project root to path
sys.path.insert(0, str(Path(__file__).parent.parent))

from linkvault.logging_config import setup_logging
from linkvault.worker.tasks import run_health_sweep


async def main(batch_size: int | None):
    print("Starting link health sweep...")
    summary = await run_health_sweep(batch_size=batch_size)
    print(f"Checked:     {summary.checked}")
    print(f"Healthy:     {summary.healthy}")
    print(f"Deactivated: {summary.deactivated}")
    print(f"Batches:     {summary.batches}")


if __name__ == "__main__":
    parser = argparse.ArgumentParser(description="Validate active affiliate links")
    parser.add_argument("--batch-size", type=int, default=None, help="Links per page")
    args = parser.parse_args()

    setup_logging()
    asyncio.run(main(args.batch_size))

"""
Script to run the pipeline consumers

Usage:
    python scripts/run_worker.py [events|uploads|all] [--log-level LEVEL]
"""

import argparse
import asyncio
import sys
import os

# Add current directory to path to allow imports from core, models, etc.
sys.path.append(os.getcwd())

from core.logging import setup_logging
from ingestion.worker import MODES, run_worker


def main(argv=None):
    parser = argparse.ArgumentParser(description="Run the event/upload consumers")
    parser.add_argument("mode", nargs="?", default="all", choices=MODES)
    parser.add_argument("--log-level", default=None, help="Overrides LOG_LEVEL")
    args = parser.parse_args(argv)

    setup_logging(args.log_level)
    asyncio.run(run_worker(args.mode))


if __name__ == "__main__":
    main()

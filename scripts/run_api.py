"""
Script to serve the HTTP API with uvicorn

Usage:
    python scripts/run_api.py [--host HOST] [--port PORT] [--log-level LEVEL]
"""

import argparse
import sys
import os

# Add current directory to path to allow imports from core, models, etc.
sys.path.append(os.getcwd())

import uvicorn

from core.config import settings
from core.logging import setup_logging


def main(argv=None):
    parser = argparse.ArgumentParser(description="Serve the ingestion API")
    parser.add_argument("--host", default=settings.API_HOST)
    parser.add_argument("--port", type=int, default=settings.API_PORT)
    parser.add_argument("--log-level", default=None, help="Overrides LOG_LEVEL")
    args = parser.parse_args(argv)

    setup_logging(args.log_level)
    uvicorn.run("api.main:app", host=args.host, port=args.port, log_config=None)


if __name__ == "__main__":
    main()

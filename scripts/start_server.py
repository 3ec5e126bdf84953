#!/usr/bin/env python3
"""
Serve vote flow layouts over HTTP.
"""

import argparse
import logging
import os
import socket
import sys
from pathlib import Path

import uvicorn

# Add src to path so we can import our modules
sys.path.insert(0, str(Path(__file__).parent.parent / "src"))

from web.main import DATABASE_PATH_ENV, set_database_path  # noqa: E402

logging.basicConfig(
    level=logging.INFO, format="%(asctime)s - %(levelname)s - %(message)s"
)
logger = logging.getLogger(__name__)


def port_is_free(host: str, port: int) -> bool:
    with socket.socket(socket.AF_INET, socket.SOCK_STREAM) as sock:
        try:
            sock.bind((host, port))
        except OSError:
            return False
    return True


def main():
    parser = argparse.ArgumentParser(description="Serve vote flow layouts")
    parser.add_argument(
        "--db",
        default=os.environ.get(DATABASE_PATH_ENV),
        help=f"Path to DuckDB database file (default: ${DATABASE_PATH_ENV})",
    )
    parser.add_argument("--host", default="127.0.0.1", help="Host to bind to")
    parser.add_argument("--port", type=int, default=8000, help="Port to bind to")
    parser.add_argument(
        "--reload", action="store_true", help="Enable auto-reload for development"
    )

    args = parser.parse_args()

    if not args.db or not Path(args.db).exists():
        logger.error(f"Database file not found: {args.db}. Run process_data.py first.")
        sys.exit(1)

    if not port_is_free(args.host, args.port):
        logger.error(f"Port {args.port} on {args.host} is already in use")
        sys.exit(1)

    db_path = str(Path(args.db).absolute())
    set_database_path(db_path)

    print(f"Database: {db_path}")
    print(f"Server: http://{args.host}:{args.port}/api/layout")
    print("Press Ctrl+C to stop")

    uvicorn.run("web.main:app", host=args.host, port=args.port, reload=args.reload)


if __name__ == "__main__":
    main()

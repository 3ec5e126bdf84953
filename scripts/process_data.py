#!/usr/bin/env python3
"""
Data processing pipeline for vote flow tables.
Fetches the votes and transfers tables, validates them, and stores them in DuckDB.
"""

import argparse
import logging
import sys
from pathlib import Path

# Add src to path so we can import our modules
sys.path.insert(0, str(Path(__file__).parent.parent / "src"))

from flow.builder import FlowLayoutBuilder  # noqa: E402
from flow.config import FlowConfig  # noqa: E402
from flow.exceptions import FlowLayoutError  # noqa: E402
from flow.verification import LayoutVerifier  # noqa: E402
from storage.database import FlowDatabase  # noqa: E402
from storage.sources import load_round_tables  # noqa: E402

logging.basicConfig(
    level=logging.INFO, format="%(asctime)s - %(levelname)s - %(message)s"
)
logger = logging.getLogger(__name__)


def main():
    parser = argparse.ArgumentParser(description="Process vote flow tables")
    parser.add_argument("votes", help="Path or URL of the votes-by-round table")
    parser.add_argument("transfers", help="Path or URL of the transfers table")
    parser.add_argument("--db", required=True, help="Path to DuckDB database file")
    parser.add_argument(
        "--starting-round", type=int, default=1, help="Number of the first round (default: 1)"
    )
    parser.add_argument(
        "--final-round", type=int, help="Number of the last round (default: last in table)"
    )
    parser.add_argument(
        "--lenient",
        action="store_true",
        help="Log conservation problems instead of failing",
    )
    parser.add_argument(
        "--timeout", type=float, default=10.0, help="Fetch timeout in seconds for URLs"
    )

    args = parser.parse_args()

    config = FlowConfig(
        starting_round=args.starting_round,
        final_round=args.final_round,
        strict=not args.lenient,
    )
    builder = FlowLayoutBuilder(config)

    try:
        logger.info("=== Step 1: Fetching Tables ===")
        tables = load_round_tables(args.votes, args.transfers, timeout=args.timeout)

        logger.info("=== Step 2: Parsing Tables ===")
        table_parser = builder.parser()
        votes = table_parser.parse_votes(tables.votes_text)
        transfers = table_parser.parse_transfers(tables.transfers_text)
        print(f"✓ Parsed {len(votes)} vote records")
        print(f"✓ Parsed {len(transfers)} transfer records")

        logger.info("=== Step 3: Building Layout ===")
        layout = builder.build(votes, transfers)
        print(f"✓ Rounds {layout.starting_round}-{layout.final_round}")
        print(f"✓ {len(layout.candidate_order) - 1} candidates")
        for round_number, candidate in sorted(layout.eliminated_by_round.items()):
            print(f"  Round {round_number}: {candidate} eliminated")

        logger.info("=== Step 4: Verifying Layout ===")
        report = LayoutVerifier(layout).verify()
        if report["passed"]:
            print("✓ All layout checks passed")
        else:
            for issue in report["issues"]:
                print(f"⚠️  {issue}")

        logger.info("=== Step 5: Storing Results ===")
        with FlowDatabase(args.db, read_only=False) as db:
            db.save_records(votes, transfers, layout.config)
            db.save_layout(layout)
        print(f"\n✓ Data stored in: {args.db}")

    except FlowLayoutError as e:
        logger.error(f"Error processing tables: {e}")
        sys.exit(1)


if __name__ == "__main__":
    main()

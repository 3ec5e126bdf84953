#!/usr/bin/env python3
"""
Build a vote flow layout from stored tables and print or export it.
"""

import argparse
import json
import logging
import sys
from pathlib import Path

# Add src to path so we can import our modules
sys.path.insert(0, str(Path(__file__).parent.parent / "src"))

from flow.builder import FlowLayoutBuilder  # noqa: E402
from flow.exceptions import FlowLayoutError  # noqa: E402
from flow.verification import LayoutVerifier  # noqa: E402
from storage.database import FlowDatabase  # noqa: E402

logging.basicConfig(
    level=logging.INFO, format="%(asctime)s - %(levelname)s - %(message)s"
)
logger = logging.getLogger(__name__)


def main():
    parser = argparse.ArgumentParser(description="Build a vote flow layout")
    parser.add_argument("--db", help="Path to DuckDB database file with processed data")
    parser.add_argument("--export", help="Export the layout to a JSON file")
    parser.add_argument(
        "--verify", action="store_true", help="Check the layout invariants"
    )

    args = parser.parse_args()

    if not args.db or not Path(args.db).exists():
        logger.error("Database file required and must exist. Run process_data.py first.")
        sys.exit(1)

    try:
        with FlowDatabase(args.db) as db:
            if not db.has_records():
                logger.error("No vote tables found. Run process_data.py first.")
                sys.exit(1)
            votes, transfers = db.load_records()
            config = db.load_config()

        layout = FlowLayoutBuilder(config).build(votes, transfers)

        print("\n=== Round-by-Round Layout ===")
        summary = layout.round_summary()
        for round_number in layout.rounds:
            round_data = summary[summary["round"] == round_number]
            print(f"\nRound {round_number} ({layout.round_total(round_number)} votes):")
            for _, row in round_data.iterrows():
                marker = "❌" if row["eliminated"] else "  "
                print(
                    f"  {marker} {row['candidate']:25s}: {row['votes']:8d} votes "
                    f"[{row['y1']:7.2f}, {row['y2']:7.2f}]"
                )

            for link in layout.transfers_for_round(round_number):
                print(
                    f"     -> {link.to_candidate:22s}: {link.votes:8d} votes "
                    f"({link.percentage:.0%})"
                )

        print("\n=== Finalists ===")
        for finalist in layout.finalists():
            print(f"  {finalist.candidate:30s}: {finalist.votes:8d} votes ({finalist.share:.2%})")

        if args.verify:
            report = LayoutVerifier(layout).verify()
            print("\n=== Verification ===")
            for name, passed in report["checks"].items():
                print(f"  {'✓' if passed else '✗'} {name}")
            for issue in report["issues"]:
                print(f"     {issue}")

        if args.export:
            export_path = Path(args.export).with_suffix(".json")
            with open(export_path, "w") as f:
                json.dump(layout.to_dict(), f, indent=2)
            print(f"\n✓ Layout exported to: {export_path}")

    except FlowLayoutError as e:
        logger.error(f"Error building layout: {e}")
        sys.exit(1)


if __name__ == "__main__":
    main()

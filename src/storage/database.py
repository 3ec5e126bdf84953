import logging
import random
import time
from pathlib import Path
from typing import Dict, List, Optional, Sequence, Tuple

import duckdb
import pandas as pd

try:
    from ..flow.builder import FlowLayout
    from ..flow.config import FlowConfig
    from ..flow.records import TransferRecord, VoteRecord
    from ..flow.table_parser import transfers_frame, votes_frame
except ImportError:
    from flow.builder import FlowLayout
    from flow.config import FlowConfig
    from flow.records import TransferRecord, VoteRecord
    from flow.table_parser import transfers_frame, votes_frame

logger = logging.getLogger(__name__)

SCHEMA = {
    "vote_records": """
        CREATE OR REPLACE TABLE vote_records (
            seq INTEGER,
            round INTEGER,
            candidate TEXT,
            votes INTEGER
        )
    """,
    "transfer_records": """
        CREATE OR REPLACE TABLE transfer_records (
            seq INTEGER,
            round INTEGER,
            from_candidate TEXT,
            to_candidate TEXT,
            votes INTEGER
        )
    """,
    "flow_metadata": """
        CREATE OR REPLACE TABLE flow_metadata (
            key TEXT,
            value TEXT
        )
    """,
}

CONFIG_KEYS = {
    "starting_round": int,
    "final_round": int,
    "width": float,
    "height": float,
    "bar_width": float,
    "sentinel": str,
    "tie_break": str,
    "strict": lambda value: value == "True",
}


def connect(db_path: Optional[str], read_only: bool = True, max_retries: int = 3):
    """
    Open a DuckDB connection, retrying while another process holds the lock.

    Read-only connections are only used for files that already exist.
    """
    target = db_path or ":memory:"
    use_read_only = read_only and target != ":memory:" and Path(target).exists()

    for attempt in range(max_retries):
        try:
            conn = duckdb.connect(target, read_only=use_read_only)
            logger.debug(
                f"Opened {'read-only' if use_read_only else 'read-write'} connection to {target}"
            )
            return conn
        except duckdb.IOException as e:
            if "Conflicting lock" in str(e) and attempt < max_retries - 1:
                wait_time = (2**attempt) + random.uniform(0, 1)  # nosec B311
                logger.warning(
                    f"Database locked, retrying in {wait_time:.2f}s (attempt {attempt + 1}/{max_retries})"
                )
                time.sleep(wait_time)
                continue
            logger.error(f"Failed to connect to database {target}: {e}")
            raise


class FlowDatabase:
    """
    Stores parsed vote tables and computed layouts in DuckDB.

    The parsed records are the source of truth; `vote_blocks` and
    `flow_links` are materialized from a layout for ad hoc SQL analysis.
    """

    def __init__(self, db_path: Optional[str] = None, read_only: bool = True):
        """
        Initialize the database wrapper.

        Args:
            db_path: Path to DuckDB file. If None, uses in-memory database.
            read_only: Whether to open existing files read-only
        """
        self.db_path = db_path
        self.read_only = read_only
        self._conn = None

    @property
    def conn(self) -> duckdb.DuckDBPyConnection:
        """Get or create a database connection on-demand."""
        if self._conn is None:
            self._conn = connect(self.db_path, self.read_only)
        return self._conn

    def query(self, sql: str, params: Optional[Sequence] = None) -> pd.DataFrame:
        """Execute a SQL query and return results as DataFrame."""
        if params is None:
            return self.conn.execute(sql).fetchdf()
        return self.conn.execute(sql, list(params)).fetchdf()

    def table_exists(self, table_name: str) -> bool:
        result = self.conn.execute(
            "SELECT COUNT(*) FROM information_schema.tables WHERE table_name = ?",
            [table_name],
        ).fetchone()
        return result[0] > 0

    def has_records(self) -> bool:
        return self.table_exists("vote_records") and self.table_exists("transfer_records")

    def _replace_table(self, table_name: str, frame: pd.DataFrame):
        if table_name in SCHEMA:
            self.conn.execute(SCHEMA[table_name])
            if frame.empty:
                return
            self.conn.register("incoming_frame", frame)
            try:
                self.conn.execute(f"INSERT INTO {table_name} SELECT * FROM incoming_frame")
            finally:
                self.conn.unregister("incoming_frame")
            return

        self.conn.register("incoming_frame", frame)
        try:
            self.conn.execute(
                f"CREATE OR REPLACE TABLE {table_name} AS SELECT * FROM incoming_frame"
            )
        finally:
            self.conn.unregister("incoming_frame")

    def save_records(
        self,
        votes: Sequence[VoteRecord],
        transfers: Sequence[TransferRecord],
        config: FlowConfig,
    ) -> Dict[str, int]:
        """
        Replace the stored vote tables and layout configuration.

        Args:
            votes: Parsed vote records
            transfers: Parsed transfer records
            config: Configuration the records were parsed with

        Returns:
            Dictionary with row counts
        """
        vote_rows = votes_frame(votes)
        vote_rows.insert(0, "seq", range(len(vote_rows)))
        transfer_rows = transfers_frame(transfers)
        transfer_rows.insert(0, "seq", range(len(transfer_rows)))
        metadata = pd.DataFrame(
            [
                (key, str(getattr(config, key)))
                for key in CONFIG_KEYS
                if getattr(config, key) is not None
            ],
            columns=["key", "value"],
        )

        self._replace_table("vote_records", vote_rows)
        self._replace_table("transfer_records", transfer_rows)
        self._replace_table("flow_metadata", metadata)

        stats = {"vote_records": len(vote_rows), "transfer_records": len(transfer_rows)}
        logger.info(
            f"Stored {stats['vote_records']} vote records and "
            f"{stats['transfer_records']} transfer records"
        )
        return stats

    def save_layout(self, layout: FlowLayout) -> Dict[str, int]:
        """Materialize a layout's blocks and links as tables."""
        blocks = layout.round_summary()
        links = layout.link_table()
        self._replace_table("vote_blocks", blocks)
        self._replace_table("flow_links", links)
        logger.info(f"Stored layout: {len(blocks)} blocks, {len(links)} links")
        return {"vote_blocks": len(blocks), "flow_links": len(links)}

    def load_records(self) -> Tuple[List[VoteRecord], List[TransferRecord]]:
        """
        Load the stored vote tables in their original order.

        Returns:
            Tuple of vote records and transfer records
        """
        if not self.has_records():
            raise RuntimeError("No vote tables stored; run process_data.py first")

        vote_rows = self.query(
            "SELECT round, candidate, votes FROM vote_records ORDER BY seq"
        )
        transfer_rows = self.query(
            "SELECT round, from_candidate, to_candidate, votes "
            "FROM transfer_records ORDER BY seq"
        )

        votes = [
            VoteRecord(int(row.round), str(row.candidate), int(row.votes))
            for row in vote_rows.itertuples(index=False)
        ]
        transfers = [
            TransferRecord(
                int(row.round), str(row.from_candidate), str(row.to_candidate), int(row.votes)
            )
            for row in transfer_rows.itertuples(index=False)
        ]
        return votes, transfers

    def load_config(self, defaults: Optional[FlowConfig] = None) -> FlowConfig:
        """Configuration stored with the records, falling back to `defaults`."""
        defaults = defaults or FlowConfig()
        if not self.table_exists("flow_metadata"):
            return defaults

        stored = dict(self.query("SELECT key, value FROM flow_metadata").values.tolist())
        kwargs = {
            key: convert(stored[key])
            for key, convert in CONFIG_KEYS.items()
            if key in stored
        }
        merged = {
            key: getattr(defaults, key) for key in CONFIG_KEYS
        }
        merged.update(kwargs)
        return FlowConfig(**merged)

    def close(self):
        """Close database connection."""
        if self._conn:
            try:
                self._conn.close()
                logger.debug(f"Closed database connection to {self.db_path}")
            except Exception as e:
                logger.warning(f"Error closing database connection: {e}")
            finally:
                self._conn = None

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.close()

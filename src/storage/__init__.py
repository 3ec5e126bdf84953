"""
Input fetching and persistence for the vote flow layout.

- fetch_round_tables: concurrent fetch of the votes and transfers tables
- FlowDatabase: DuckDB storage of parsed records and computed layouts
"""

from .database import FlowDatabase
from .sources import RoundTables, fetch_round_tables, load_round_tables

__all__ = ["FlowDatabase", "RoundTables", "fetch_round_tables", "load_round_tables"]

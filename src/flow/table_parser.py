import csv
import io
import logging
import re
from dataclasses import asdict
from typing import List, Optional, Sequence

import pandas as pd

from .exceptions import MalformedTableError
from .records import TransferRecord, VoteRecord

logger = logging.getLogger(__name__)

_COUNT_PATTERN = re.compile(r"^\d+$")

VOTE_COLUMNS = ["round", "candidate", "votes"]
TRANSFER_COLUMNS = ["round", "from_candidate", "to_candidate", "votes"]


def parse_count(value: str, table: str, row: int, column: int) -> int:
    """
    Parse one table cell into a vote count.

    Blank cells and zero both mean "no votes" and return 0. Anything that is
    not a non-negative base-10 integer is malformed.
    """
    cell = (value or "").strip()
    if not cell:
        return 0
    if not _COUNT_PATTERN.match(cell):
        raise MalformedTableError(
            f"{table} table: cell '{cell}' at row {row}, column {column} "
            f"is not a non-negative integer"
        )
    return int(cell)


class RoundTableParser:
    """
    Parses the votes-by-round and transfers-by-round tables.

    Published tables list one candidate per row with one column per round, so
    by default the parsed grid is transposed before use: afterwards the first
    row is the header and every following row is one round.
    """

    def __init__(
        self,
        starting_round: int = 1,
        final_round: Optional[int] = None,
        transpose: bool = True,
    ):
        """
        Initialize the parser.

        Args:
            starting_round: Round number assigned to the first data row
            final_round: Last round allowed in the tables (None: unbounded)
            transpose: Whether the raw text lists candidates as rows
        """
        self.starting_round = starting_round
        self.final_round = final_round
        self.transpose = transpose

    def read_grid(self, text: str, table: str) -> List[List[str]]:
        """
        Read CSV text into a header-first grid of stripped strings.

        Args:
            text: Raw CSV text
            table: Table name used in error messages

        Returns:
            List of rows, header first, one row per round afterwards
        """
        if text is None or not text.strip():
            raise MalformedTableError(f"{table} table is empty")

        try:
            # Rows may be ragged; size the frame by the widest one
            width = max(len(row) for row in csv.reader(io.StringIO(text)))
            frame = pd.read_csv(
                io.StringIO(text),
                header=None,
                names=range(width),
                dtype=str,
                keep_default_na=False,
                skip_blank_lines=True,
            )
        except (csv.Error, pd.errors.ParserError, pd.errors.EmptyDataError) as e:
            raise MalformedTableError(f"{table} table could not be read: {e}") from e

        frame = frame.fillna("")
        if self.transpose:
            frame = frame.T

        grid = [[str(cell).strip() for cell in row] for row in frame.values.tolist()]

        # A trailing delimiter in the raw file becomes an empty round
        while len(grid) > 1 and not any(grid[-1]):
            grid.pop()

        if len(grid) < 2:
            raise MalformedTableError(f"{table} table has a header but no rounds")

        logger.debug(f"Read {table} table: {len(grid) - 1} rounds, {len(grid[0])} columns")
        return grid

    def _round_number(self, row_index: int, row: Sequence[str], table: str) -> int:
        round_number = self.starting_round + row_index
        if (
            self.final_round is not None
            and round_number > self.final_round
            and any(row)
        ):
            raise MalformedTableError(
                f"{table} table has data for round {round_number}, "
                f"beyond final round {self.final_round}"
            )
        return round_number

    def parse_votes(self, text: str) -> List[VoteRecord]:
        """
        Parse the votes-by-round table.

        Args:
            text: Raw CSV text

        Returns:
            One VoteRecord per candidate and round with a positive count, in
            round-major, column order
        """
        grid = self.read_grid(text, "votes")
        header, rows = grid[0], grid[1:]
        seen_columns = {}
        records = []

        for row_index, row in enumerate(rows):
            round_number = self._round_number(row_index, row, "votes")
            for column, value in enumerate(row):
                votes = parse_count(value, "votes", row_index + 1, column)
                if votes <= 0:
                    continue

                candidate = header[column] if column < len(header) else ""
                if not candidate:
                    raise MalformedTableError(
                        f"votes table: column {column} has votes but no candidate name"
                    )
                owner = seen_columns.setdefault(candidate, column)
                if owner != column:
                    raise MalformedTableError(
                        f"votes table: candidate '{candidate}' appears in columns "
                        f"{owner} and {column}"
                    )

                records.append(VoteRecord(round_number, candidate, votes))

        logger.info(
            f"Parsed {len(records)} vote records across {len(rows)} rounds "
            f"for {len(seen_columns)} candidates"
        )
        return records

    def parse_transfers(self, text: str) -> List[TransferRecord]:
        """
        Parse the transfers-by-round table.

        The first header cell is ignored and the rest name the destination
        candidates. The first cell of each round names the candidate
        eliminated in that round.

        Args:
            text: Raw CSV text

        Returns:
            One TransferRecord per round and destination with a positive count
        """
        grid = self.read_grid(text, "transfers")
        destinations, rows = grid[0][1:], grid[1:]
        records = []

        for row_index, row in enumerate(rows):
            round_number = self._round_number(row_index, row, "transfers")
            eliminated, cells = row[0], row[1:]

            for column, value in enumerate(cells, start=1):
                votes = parse_count(value, "transfers", row_index + 1, column)
                if votes <= 0:
                    continue

                if not eliminated:
                    raise MalformedTableError(
                        f"transfers table: round {round_number} transfers votes "
                        f"but names no eliminated candidate"
                    )
                destination = destinations[column - 1] if column - 1 < len(destinations) else ""
                if not destination:
                    raise MalformedTableError(
                        f"transfers table: column {column} has votes but no destination name"
                    )

                records.append(
                    TransferRecord(round_number, eliminated, destination, votes)
                )

        logger.info(f"Parsed {len(records)} transfer records across {len(rows)} rounds")
        return records


def votes_frame(records: Sequence[VoteRecord]) -> pd.DataFrame:
    """Vote records as a DataFrame with round, candidate and votes columns."""
    return pd.DataFrame([asdict(r) for r in records], columns=VOTE_COLUMNS)


def transfers_frame(records: Sequence[TransferRecord]) -> pd.DataFrame:
    """Transfer records as a DataFrame."""
    return pd.DataFrame([asdict(r) for r in records], columns=TRANSFER_COLUMNS)

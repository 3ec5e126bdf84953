"""
Vote flow layout for ranked-choice elections.

Turns a votes-by-round table and a transfers-by-round table into the
geometry of a flow diagram:
- RoundTableParser: parses both tables into immutable records
- FlowLayoutBuilder: orders candidates, stacks vote blocks, resolves
  carryovers and eliminations, and lays out every link
- LayoutVerifier: checks a layout against the vote conservation invariants
"""

from .builder import FlowLayout, FlowLayoutBuilder, Highlight
from .config import NOT_TRANSFERRED, BandScale, FlowConfig, LinearScale
from .exceptions import (
    FlowLayoutError,
    InconsistentDataError,
    MalformedTableError,
    MissingInputError,
    MultipleEliminationError,
)
from .records import (
    Anchor,
    CarryoverRecord,
    Finalist,
    FlowLink,
    TransferRecord,
    VoteBlock,
    VoteRecord,
)
from .table_parser import RoundTableParser
from .verification import LayoutVerifier

__all__ = [
    "FlowLayoutBuilder",
    "FlowLayout",
    "Highlight",
    "FlowConfig",
    "LinearScale",
    "BandScale",
    "NOT_TRANSFERRED",
    "RoundTableParser",
    "LayoutVerifier",
    "VoteRecord",
    "TransferRecord",
    "VoteBlock",
    "CarryoverRecord",
    "FlowLink",
    "Anchor",
    "Finalist",
    "FlowLayoutError",
    "MalformedTableError",
    "InconsistentDataError",
    "MultipleEliminationError",
    "MissingInputError",
]

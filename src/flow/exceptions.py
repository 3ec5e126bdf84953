"""
Error taxonomy for the vote flow layout pipeline.

Every error aborts the whole computation; nothing is partially laid out.
"""


class FlowLayoutError(Exception):
    """Base class for all layout pipeline errors."""


class MalformedTableError(FlowLayoutError, ValueError):
    """A votes or transfers table could not be parsed."""


class InconsistentDataError(FlowLayoutError):
    """Parsed tables violate vote conservation between rounds."""


class MultipleEliminationError(InconsistentDataError):
    """More than one candidate drops out between two rounds."""

    def __init__(self, round_number, candidates):
        self.round_number = round_number
        self.candidates = list(candidates)
        super().__init__(
            f"Round {round_number} eliminates {len(self.candidates)} candidates "
            f"({', '.join(self.candidates)}); only one elimination per round is supported"
        )


class MissingInputError(FlowLayoutError):
    """One of the input tables is absent or could not be fetched."""

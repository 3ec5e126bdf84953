import logging
from collections import defaultdict
from typing import Dict, List, Sequence

import numpy as np

from .config import LinearScale
from .exceptions import MalformedTableError
from .ordering import rank_of
from .records import VoteBlock, VoteRecord

logger = logging.getLogger(__name__)


def build_vote_scale(
    votes: Sequence[VoteRecord], starting_round: int, height: float
) -> LinearScale:
    """
    Build the vote-to-pixel scale used by every round.

    The domain runs up to the starting round's total so block heights are
    comparable between rounds.

    Args:
        votes: Parsed vote records
        starting_round: Round whose total fills the canvas
        height: Canvas height in pixels

    Returns:
        Shared LinearScale
    """
    total = sum(v.votes for v in votes if v.round == starting_round)
    if total <= 0:
        raise MalformedTableError(
            f"Starting round {starting_round} has no votes; cannot size the layout"
        )
    return LinearScale(domain=(0.0, float(total)), range=(0.0, float(height)))


def stack_rounds(
    votes: Sequence[VoteRecord], order: Sequence[str], scale: LinearScale
) -> Dict[int, List[VoteBlock]]:
    """
    Stack each round's vote blocks top to bottom in display order.

    Args:
        votes: Parsed vote records
        order: Display order from resolve_candidate_order
        scale: Shared vote scale

    Returns:
        Mapping of round number to its blocks, rounds ascending
    """
    ranks = rank_of(order)
    by_round = defaultdict(list)
    for record in votes:
        if record.candidate not in ranks:
            raise MalformedTableError(
                f"Candidate '{record.candidate}' has no display position"
            )
        by_round[record.round].append(record)

    stacked = {}
    for round_number in sorted(by_round):
        records = sorted(by_round[round_number], key=lambda r: ranks[r.candidate])
        counts = np.array([r.votes for r in records], dtype=float)
        ends = np.cumsum(counts)
        starts = ends - counts

        stacked[round_number] = [
            VoteBlock(
                round=record.round,
                candidate=record.candidate,
                votes=record.votes,
                y1=scale(float(start)),
                y2=scale(float(end)),
            )
            for record, start, end in zip(records, starts, ends)
        ]

        logger.debug(
            f"Round {round_number}: stacked {len(records)} blocks, "
            f"{int(ends[-1]) if len(ends) else 0} votes"
        )

    return stacked

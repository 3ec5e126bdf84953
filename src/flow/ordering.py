"""
Candidate display order.

Candidates are ordered by descending votes in the starting round. Equal
counts keep the order in which the candidates were parsed (Python's sort is
stable); that tie-break is accepted rather than meaningful, so callers who
need an order independent of column order can ask for a name tie-break.
The sentinel bucket always comes last.
"""

import logging
from typing import Dict, Iterable, List, Sequence

from .config import NOT_TRANSFERRED
from .records import TransferRecord, VoteRecord

logger = logging.getLogger(__name__)


def resolve_candidate_order(
    votes: Sequence[VoteRecord],
    starting_round: int,
    sentinel: str = NOT_TRANSFERRED,
    tie_break: str = "arrival",
    transfers: Iterable[TransferRecord] = (),
) -> List[str]:
    """
    Compute the display order shared by every round.

    Args:
        votes: Parsed vote records
        starting_round: Round whose counts define the order
        sentinel: Name of the not-transferred bucket, always placed last
        tie_break: "arrival" keeps parse order for equal counts, "name" sorts
            them alphabetically
        transfers: Transfer records; destinations never seen in the votes
            table are appended so every link has a rank

    Returns:
        Candidate names, sentinel last
    """
    starting = [v for v in votes if v.round == starting_round]
    if tie_break == "name":
        starting = sorted(starting, key=lambda v: v.candidate)
    starting = sorted(starting, key=lambda v: v.votes, reverse=True)

    order = [v.candidate for v in starting]
    seen = set(order)

    # Candidates absent from the starting round follow in arrival order
    late = []
    for name in [v.candidate for v in votes] + [
        name for t in transfers for name in (t.from_candidate, t.to_candidate)
    ]:
        if name not in seen:
            seen.add(name)
            late.append(name)
    if tie_break == "name":
        late.sort()
    order.extend(late)

    if sentinel in order:
        order.remove(sentinel)
    order.append(sentinel)

    logger.debug(f"Resolved candidate order: {order}")
    return order


def rank_of(order: Sequence[str]) -> Dict[str, int]:
    """Position of every candidate in the display order."""
    return {candidate: i for i, candidate in enumerate(order)}

import logging
from collections import defaultdict
from typing import Dict, List, Sequence

from .config import BandScale, LinearScale
from .ordering import rank_of
from .records import Anchor, CarryoverRecord, FlowLink, TransferRecord, VoteBlock

logger = logging.getLogger(__name__)


class FlowGeometryBuilder:
    """
    Computes link endpoints between the blocks of adjacent rounds.

    Carryovers leave from the top of a block and enter at the top of the
    same candidate's next block. Transfers fan out down the eliminated block
    in display order and enter each destination block from the bottom, so
    they never overlap the carryover already occupying its top.
    """

    def __init__(
        self,
        blocks: Dict[int, List[VoteBlock]],
        order: Sequence[str],
        vote_scale: LinearScale,
        round_scale: BandScale,
        bar_width: float,
        sentinel: str,
    ):
        self.vote_scale = vote_scale
        self.round_scale = round_scale
        self.bar_width = bar_width
        self.sentinel = sentinel
        self.ranks = rank_of(order)
        self._blocks = {
            (block.round, block.candidate): block
            for round_blocks in blocks.values()
            for block in round_blocks
        }

    def _source_x(self, round_number: int) -> float:
        return self.round_scale(round_number) + self.bar_width

    def _target_x(self, round_number: int) -> float:
        return self.round_scale(round_number + 1)

    def carryover_links(self, carryovers: Sequence[CarryoverRecord]) -> List[FlowLink]:
        links = []
        for carryover in carryovers:
            source = self._blocks[(carryover.round, carryover.from_candidate)]
            target = self._blocks[(carryover.round + 1, carryover.to_candidate)]
            thickness = self.vote_scale(carryover.votes)

            links.append(
                FlowLink(
                    kind="carryover",
                    round=carryover.round,
                    from_candidate=carryover.from_candidate,
                    to_candidate=carryover.to_candidate,
                    votes=carryover.votes,
                    source=Anchor(self._source_x(carryover.round), source.y1 + thickness / 2),
                    target=Anchor(self._target_x(carryover.round), target.y1 + thickness / 2),
                    thickness=thickness,
                )
            )
        return links

    def transfer_links(self, transfers: Sequence[TransferRecord]) -> List[FlowLink]:
        """
        Lay out the transfers of every round.

        Args:
            transfers: Parsed transfer records

        Returns:
            Transfer links, by round and then destination display order,
            each carrying its share of the round's redistributed votes
        """
        by_round = defaultdict(list)
        for transfer in transfers:
            by_round[transfer.round].append(transfer)

        links = []
        for round_number in sorted(by_round):
            round_transfers = sorted(
                by_round[round_number], key=lambda t: self.ranks[t.to_candidate]
            )
            total = sum(t.votes for t in round_transfers)
            outgoing = 0
            incoming = defaultdict(int)

            for transfer in round_transfers:
                source = self._blocks[(transfer.round, transfer.from_candidate)]
                target = self._blocks[(transfer.round + 1, transfer.to_candidate)]
                thickness = self.vote_scale(transfer.votes)
                already_in = self.vote_scale(incoming[transfer.to_candidate])

                links.append(
                    FlowLink(
                        kind="transfer",
                        round=transfer.round,
                        from_candidate=transfer.from_candidate,
                        to_candidate=transfer.to_candidate,
                        votes=transfer.votes,
                        source=Anchor(
                            self._source_x(transfer.round),
                            source.y1 + self.vote_scale(outgoing) + thickness / 2,
                        ),
                        target=Anchor(
                            self._target_x(transfer.round),
                            target.y2 - already_in - thickness / 2,
                        ),
                        thickness=thickness,
                        percentage=transfer.votes / total,
                        exhausted=transfer.to_candidate == self.sentinel,
                    )
                )
                outgoing += transfer.votes
                incoming[transfer.to_candidate] += transfer.votes

            logger.debug(
                f"Round {round_number}: laid out {len(round_transfers)} transfers "
                f"of {total} votes"
            )

        return links

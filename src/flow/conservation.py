import logging
from collections import defaultdict
from dataclasses import dataclass, replace
from typing import Dict, List, Sequence, Tuple

from .records import CarryoverRecord, TransferRecord, VoteBlock
from .exceptions import InconsistentDataError, MultipleEliminationError

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ConservationResult:
    """Blocks with elimination flags, plus the synthesized carryovers."""

    blocks: Dict[int, List[VoteBlock]]
    carryovers: List[CarryoverRecord]
    eliminated_by_round: Dict[int, str]


class ConservationResolver:
    """
    Splits every round transition into carryovers and one elimination.

    A candidate present in both round r and round r + 1 carries its whole
    round r total forward. A candidate missing from round r + 1 was
    eliminated in round r, and its votes must be accounted for by that
    round's rows of the transfers table.
    """

    def __init__(self, final_round: int, sentinel: str, strict: bool = True):
        """
        Initialize the resolver.

        Args:
            final_round: Last round of the layout; nothing flows out of it
            sentinel: Name of the not-transferred bucket
            strict: Raise on conservation violations instead of logging them
        """
        self.final_round = final_round
        self.sentinel = sentinel
        self.strict = strict

    def resolve(
        self,
        blocks: Dict[int, List[VoteBlock]],
        transfers: Sequence[TransferRecord],
    ) -> ConservationResult:
        """
        Classify every block and check the transfers against the eliminations.

        Args:
            blocks: Stacked blocks by round
            transfers: Parsed transfer records

        Returns:
            ConservationResult with eliminated blocks flagged
        """
        present = {
            (block.round, block.candidate)
            for round_blocks in blocks.values()
            for block in round_blocks
        }

        carryovers = []
        eliminated = defaultdict(list)
        resolved = {}

        for round_number, round_blocks in blocks.items():
            flagged = []
            for block in round_blocks:
                if round_number >= self.final_round or block.candidate == self.sentinel:
                    flagged.append(block)
                elif (round_number + 1, block.candidate) in present:
                    carryovers.append(
                        CarryoverRecord(
                            round=round_number,
                            from_candidate=block.candidate,
                            to_candidate=block.candidate,
                            votes=block.votes,
                        )
                    )
                    flagged.append(block)
                else:
                    eliminated[round_number].append(block.candidate)
                    flagged.append(replace(block, eliminated=True))
            resolved[round_number] = flagged

        for round_number in sorted(eliminated):
            if len(eliminated[round_number]) > 1:
                raise MultipleEliminationError(round_number, eliminated[round_number])

        eliminated_by_round = {r: names[0] for r, names in sorted(eliminated.items())}
        for round_number, candidate in eliminated_by_round.items():
            logger.info(f"Round {round_number}: {candidate} eliminated")

        self._check_endpoints(present, transfers)
        self._reconcile(resolved, carryovers, transfers, eliminated_by_round)

        logger.info(
            f"Resolved {len(carryovers)} carryovers and "
            f"{len(eliminated_by_round)} eliminations"
        )
        return ConservationResult(resolved, carryovers, eliminated_by_round)

    def _check_endpoints(self, present, transfers: Sequence[TransferRecord]):
        """Every transfer needs a source block and a destination block."""
        for transfer in transfers:
            if (transfer.round, transfer.from_candidate) not in present:
                raise InconsistentDataError(
                    f"Transfer from '{transfer.from_candidate}' in round {transfer.round} "
                    f"has no matching entry in the votes table"
                )
            if (transfer.round + 1, transfer.to_candidate) not in present:
                raise InconsistentDataError(
                    f"Transfer to '{transfer.to_candidate}' from round {transfer.round} "
                    f"has no matching entry in round {transfer.round + 1} of the votes table"
                )

    def _reconcile(
        self,
        blocks: Dict[int, List[VoteBlock]],
        carryovers: Sequence[CarryoverRecord],
        transfers: Sequence[TransferRecord],
        eliminated_by_round: Dict[int, str],
    ):
        problems = []
        votes_at = {
            (block.round, block.candidate): block.votes
            for round_blocks in blocks.values()
            for block in round_blocks
        }

        transfers_by_round = defaultdict(list)
        for transfer in transfers:
            transfers_by_round[transfer.round].append(transfer)

        for round_number in sorted(set(transfers_by_round) | set(eliminated_by_round)):
            candidate = eliminated_by_round.get(round_number)
            round_transfers = transfers_by_round.get(round_number, [])

            sources = sorted({t.from_candidate for t in round_transfers})
            if candidate is None:
                problems.append(
                    f"Round {round_number} transfers votes from {sources} "
                    f"but no candidate is eliminated"
                )
                continue
            if not round_transfers:
                problems.append(
                    f"Round {round_number}: {candidate} is eliminated but has no transfers"
                )
                continue
            if sources != [candidate]:
                problems.append(
                    f"Round {round_number}: transfers come from {sources} "
                    f"but {candidate} was eliminated"
                )

            transferred = sum(t.votes for t in round_transfers)
            held = votes_at[(round_number, candidate)]
            if transferred != held:
                problems.append(
                    f"Round {round_number}: {candidate} held {held} votes "
                    f"but {transferred} were transferred"
                )

        problems.extend(self._check_next_round_totals(blocks, carryovers, transfers, votes_at))

        if not problems:
            return
        if self.strict:
            raise InconsistentDataError("; ".join(problems))
        for problem in problems:
            logger.warning(problem)

    def _check_next_round_totals(
        self, blocks, carryovers, transfers, votes_at
    ) -> List[str]:
        """Each block after the first round equals what flowed into it."""
        inflow: Dict[Tuple[int, str], int] = defaultdict(int)
        for carryover in carryovers:
            inflow[(carryover.round + 1, carryover.to_candidate)] += carryover.votes
        for transfer in transfers:
            inflow[(transfer.round + 1, transfer.to_candidate)] += transfer.votes

        problems = []
        first_round = min(blocks) if blocks else None
        for round_number, round_blocks in blocks.items():
            if round_number == first_round:
                continue
            for block in round_blocks:
                expected = inflow[(block.round, block.candidate)]
                if block.candidate == self.sentinel:
                    expected += votes_at.get((block.round - 1, block.candidate), 0)
                if block.votes != expected:
                    problems.append(
                        f"Round {block.round}: {block.candidate} has {block.votes} votes "
                        f"but {expected} flowed in from round {block.round - 1}"
                    )
        return problems

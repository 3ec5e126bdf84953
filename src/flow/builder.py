"""
Vote flow layout pipeline.

Runs the parsed tables through ordering, stacking, conservation and link
geometry, and packages the result as an immutable FlowLayout that renderers
and the web API read from.
"""

import logging
from dataclasses import dataclass, field
from typing import Any, Dict, FrozenSet, List, Optional, Sequence, Tuple

import pandas as pd

from .config import BandScale, FlowConfig, LinearScale
from .conservation import ConservationResolver
from .exceptions import MalformedTableError
from .geometry import FlowGeometryBuilder
from .ordering import rank_of, resolve_candidate_order
from .records import Finalist, FlowLink, TransferRecord, VoteBlock, VoteRecord, last_name
from .stack_layout import build_vote_scale, stack_rounds
from .table_parser import RoundTableParser

logger = logging.getLogger(__name__)

SENTINEL_LABEL = "Votes not transferred"


@dataclass(frozen=True)
class Highlight:
    """Element identifiers to emphasize when a round's transfers are focused."""

    round: int
    highlighted: FrozenSet[str]
    revealed_percentages: FrozenSet[str]


@dataclass(frozen=True)
class FlowLayout:
    """Complete, read-only layout of a vote flow diagram."""

    config: FlowConfig
    candidate_order: Tuple[str, ...]
    blocks: Dict[int, Tuple[VoteBlock, ...]]
    carryovers: Tuple[FlowLink, ...]
    transfers: Tuple[FlowLink, ...]
    eliminated_by_round: Dict[int, str]
    vote_scale: LinearScale
    round_scale: BandScale = field(repr=False)

    @property
    def rounds(self) -> List[int]:
        return sorted(self.blocks)

    @property
    def starting_round(self) -> int:
        return self.config.starting_round

    @property
    def final_round(self) -> int:
        return self.config.final_round

    @property
    def total_votes(self) -> int:
        return int(self.vote_scale.domain[1])

    @property
    def links(self) -> List[FlowLink]:
        return list(self.carryovers) + list(self.transfers)

    def round_total(self, round_number: int) -> int:
        return sum(block.votes for block in self.blocks.get(round_number, ()))

    def block(self, round_number: int, candidate: str) -> Optional[VoteBlock]:
        for block in self.blocks.get(round_number, ()):
            if block.candidate == candidate:
                return block
        return None

    def round_x(self, round_number: int) -> float:
        return self.round_scale(round_number)

    def transfers_for_round(self, round_number: int) -> List[FlowLink]:
        return [link for link in self.transfers if link.round == round_number]

    def finalists(self, count: int = 2) -> List[Finalist]:
        """
        Leading candidates of the final round.

        Args:
            count: Number of finalists to report

        Returns:
            Finalists by descending votes, with their share of the
            finalists' combined votes
        """
        contenders = [
            block
            for block in self.blocks.get(self.final_round, ())
            if block.candidate != self.config.sentinel
        ]
        leaders = sorted(contenders, key=lambda b: b.votes, reverse=True)[:count]
        combined = sum(block.votes for block in leaders)
        return [
            Finalist(
                candidate=block.candidate,
                votes=block.votes,
                share=block.votes / combined if combined else 0.0,
                y1=block.y1,
            )
            for block in leaders
        ]

    def elimination_label_id(self, round_number: int) -> str:
        return f"eliminated-label:{round_number}"

    def elimination_labels(self) -> List[Dict[str, Any]]:
        return [
            {
                "id": self.elimination_label_id(round_number),
                "round": round_number,
                "candidate": candidate,
                "text": last_name(candidate),
                "x": self.round_x(round_number) + self.config.bar_width / 2,
            }
            for round_number, candidate in sorted(self.eliminated_by_round.items())
        ]

    def candidate_labels(self) -> List[Dict[str, Any]]:
        """Name labels beside the starting round; the sentinel's sits past the final round."""
        labels = []
        for block in self.blocks.get(self.starting_round, ()):
            if block.candidate == self.config.sentinel:
                continue
            labels.append(
                {
                    "candidate": block.candidate,
                    "text": block.candidate,
                    "x": self.round_x(self.starting_round) - 10,
                    "y": (block.y1 + block.y2) / 2,
                    "anchor": "end",
                }
            )

        sentinel = self.block(self.final_round, self.config.sentinel) or self.block(
            self.starting_round, self.config.sentinel
        )
        if sentinel is not None:
            labels.append(
                {
                    "candidate": sentinel.candidate,
                    "text": SENTINEL_LABEL,
                    "x": self.round_x(self.final_round) + self.config.bar_width + 10,
                    "y": (sentinel.y1 + sentinel.y2) / 2,
                    "anchor": "start",
                }
            )
        return labels

    def highlight_round(self, round_number: int) -> Highlight:
        """
        Elements to keep visible when the transfers out of a round are focused.

        Covers the round's transfers, its eliminated block and label, and
        every block of the following round. Everything else is faded.
        """
        if not self.starting_round <= round_number < self.final_round:
            raise ValueError(
                f"Round {round_number} has no outgoing flows "
                f"(layout covers rounds {self.starting_round}-{self.final_round})"
            )

        round_transfers = self.transfers_for_round(round_number)
        highlighted = {link.element_id for link in round_transfers}
        highlighted.update(block.element_id for block in self.blocks.get(round_number + 1, ()))
        highlighted.update(
            block.element_id
            for block in self.blocks.get(round_number, ())
            if block.eliminated
        )
        if round_number in self.eliminated_by_round:
            highlighted.add(self.elimination_label_id(round_number))

        return Highlight(
            round=round_number,
            highlighted=frozenset(highlighted),
            revealed_percentages=frozenset(link.percentage_id for link in round_transfers),
        )

    def round_summary(self) -> pd.DataFrame:
        """One row per vote block."""
        ranks = rank_of(self.candidate_order)
        rows = []
        for round_number in self.rounds:
            total = self.round_total(round_number)
            for block in self.blocks[round_number]:
                rows.append(
                    {
                        "round": round_number,
                        "candidate": block.candidate,
                        "rank": ranks[block.candidate],
                        "votes": block.votes,
                        "share": block.votes / total if total else 0.0,
                        "y1": block.y1,
                        "y2": block.y2,
                        "eliminated": block.eliminated,
                    }
                )
        return pd.DataFrame(
            rows,
            columns=["round", "candidate", "rank", "votes", "share", "y1", "y2", "eliminated"],
        )

    def link_table(self) -> pd.DataFrame:
        """One row per carryover or transfer link."""
        rows = [
            {
                "kind": link.kind,
                "round": link.round,
                "from_candidate": link.from_candidate,
                "to_candidate": link.to_candidate,
                "votes": link.votes,
                "source_x": link.source.x,
                "source_y": link.source.y,
                "target_x": link.target.x,
                "target_y": link.target.y,
                "thickness": link.thickness,
                "percentage": link.percentage,
                "exhausted": link.exhausted,
            }
            for link in self.links
        ]
        return pd.DataFrame(
            rows,
            columns=[
                "kind", "round", "from_candidate", "to_candidate", "votes",
                "source_x", "source_y", "target_x", "target_y",
                "thickness", "percentage", "exhausted",
            ],
        )

    def to_dict(self) -> Dict[str, Any]:
        """JSON-ready representation for renderers."""
        return {
            "candidate_order": list(self.candidate_order),
            "sentinel": self.config.sentinel,
            "starting_round": self.starting_round,
            "final_round": self.final_round,
            "total_votes": self.total_votes,
            "canvas": {
                "width": self.config.width,
                "height": self.config.height,
                "bar_width": self.config.bar_width,
            },
            "rounds": [
                {
                    "round": round_number,
                    "label": f"Round {round_number}",
                    "x": self.round_x(round_number),
                    "total": self.round_total(round_number),
                    "eliminated": self.eliminated_by_round.get(round_number),
                    "blocks": [block.to_dict() for block in self.blocks[round_number]],
                }
                for round_number in self.rounds
            ],
            "carryovers": [link.to_dict() for link in self.carryovers],
            "transfers": [link.to_dict() for link in self.transfers],
            "elimination_labels": self.elimination_labels(),
            "candidate_labels": self.candidate_labels(),
            "finalists": [
                {
                    "candidate": f.candidate,
                    "votes": f.votes,
                    "share": f.share,
                    "y1": f.y1,
                }
                for f in self.finalists()
            ],
        }


class FlowLayoutBuilder:
    """
    Builds a FlowLayout from the votes and transfers tables.

    Any malformed or inconsistent input aborts the build.
    """

    def __init__(self, config: Optional[FlowConfig] = None, transpose: bool = True):
        """
        Initialize the builder.

        Args:
            config: Layout configuration (defaults to FlowConfig())
            transpose: Whether raw tables list one candidate per row
        """
        self.config = config or FlowConfig()
        self.transpose = transpose

    def parser(self) -> RoundTableParser:
        return RoundTableParser(
            starting_round=self.config.starting_round,
            final_round=self.config.final_round,
            transpose=self.transpose,
        )

    def build_from_text(self, votes_text: str, transfers_text: str) -> FlowLayout:
        """Parse both tables, then build the layout."""
        parser = self.parser()
        votes = parser.parse_votes(votes_text)
        transfers = parser.parse_transfers(transfers_text)
        return self.build(votes, transfers)

    def build(
        self, votes: Sequence[VoteRecord], transfers: Sequence[TransferRecord]
    ) -> FlowLayout:
        """
        Lay out parsed vote and transfer records.

        Args:
            votes: Vote records
            transfers: Transfer records

        Returns:
            The complete FlowLayout
        """
        if not votes:
            raise MalformedTableError("Votes table contains no votes")

        config = self.config
        final_round = config.final_round
        if final_round is None:
            final_round = max(v.round for v in votes)
            config = config.with_final_round(final_round)

        out_of_range = sorted(
            {v.round for v in votes if not config.starting_round <= v.round <= final_round}
        )
        if out_of_range:
            raise MalformedTableError(
                f"Votes table has rounds {out_of_range} outside "
                f"{config.starting_round}-{final_round}"
            )

        logger.info(
            f"Building flow layout for rounds {config.starting_round}-{final_round} "
            f"({len(votes)} vote records, {len(transfers)} transfers)"
        )

        order = resolve_candidate_order(
            votes,
            config.starting_round,
            sentinel=config.sentinel,
            tie_break=config.tie_break,
            transfers=transfers,
        )
        vote_scale = build_vote_scale(votes, config.starting_round, config.height)
        stacked = stack_rounds(votes, order, vote_scale)

        resolver = ConservationResolver(final_round, config.sentinel, strict=config.strict)
        conserved = resolver.resolve(stacked, transfers)

        round_scale = BandScale.for_rounds(list(conserved.blocks), config.width)
        geometry = FlowGeometryBuilder(
            conserved.blocks,
            order,
            vote_scale,
            round_scale,
            bar_width=config.bar_width,
            sentinel=config.sentinel,
        )
        carryovers = geometry.carryover_links(conserved.carryovers)
        transfer_links = geometry.transfer_links(transfers)

        logger.info(
            f"Laid out {len(carryovers)} carryover and {len(transfer_links)} transfer links"
        )

        return FlowLayout(
            config=config,
            candidate_order=tuple(order),
            blocks={r: tuple(blocks) for r, blocks in conserved.blocks.items()},
            carryovers=tuple(carryovers),
            transfers=tuple(transfer_links),
            eliminated_by_round=dict(conserved.eliminated_by_round),
            vote_scale=vote_scale,
            round_scale=round_scale,
        )

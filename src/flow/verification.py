import logging
from collections import defaultdict
from typing import Dict, List

from .builder import FlowLayout
from .ordering import rank_of

logger = logging.getLogger(__name__)

TOLERANCE = 1e-6


def _spans_overlap(spans) -> bool:
    ordered = sorted(spans)
    return any(a[1] > b[0] + TOLERANCE for a, b in zip(ordered, ordered[1:]))


class LayoutVerifier:
    """
    Checks a built layout against the vote flow invariants.

    Each check returns a list of human readable issues; an empty list means
    the check passed.
    """

    def __init__(self, layout: FlowLayout):
        self.layout = layout

    def check_round_totals(self) -> List[str]:
        """Total votes, sentinel included, never change between rounds."""
        issues = []
        expected = self.layout.round_total(self.layout.starting_round)
        for round_number in self.layout.rounds:
            total = self.layout.round_total(round_number)
            if total != expected:
                issues.append(
                    f"Round {round_number} holds {total} votes, expected {expected}"
                )
        return issues

    def check_active_totals(self) -> List[str]:
        """Votes for real candidates can only shrink."""
        issues = []
        sentinel = self.layout.config.sentinel
        previous = None
        for round_number in self.layout.rounds:
            active = sum(
                b.votes for b in self.layout.blocks[round_number] if b.candidate != sentinel
            )
            if previous is not None and active > previous:
                issues.append(
                    f"Round {round_number} has {active} active votes, up from {previous}"
                )
            previous = active
        return issues

    def check_carryovers(self) -> List[str]:
        issues = []
        for link in self.layout.carryovers:
            block = self.layout.block(link.round, link.from_candidate)
            if block is None or block.votes != link.votes:
                issues.append(
                    f"Carryover of {link.from_candidate} in round {link.round} "
                    f"moves {link.votes} votes, block holds "
                    f"{block.votes if block else 'nothing'}"
                )
        return issues

    def check_transfer_totals(self) -> List[str]:
        issues = []
        for round_number, candidate in self.layout.eliminated_by_round.items():
            transferred = sum(
                link.votes for link in self.layout.transfers_for_round(round_number)
            )
            held = self.layout.block(round_number, candidate).votes
            if transferred != held:
                issues.append(
                    f"Round {round_number}: {candidate} held {held} votes, "
                    f"{transferred} transferred"
                )
        return issues

    def check_percentages(self) -> List[str]:
        issues = []
        totals: Dict[int, float] = defaultdict(float)
        for link in self.layout.transfers:
            totals[link.round] += link.percentage
        for round_number, total in sorted(totals.items()):
            if abs(total - 1.0) > TOLERANCE:
                issues.append(
                    f"Round {round_number} transfer percentages sum to {total:.6f}"
                )
        return issues

    def check_order(self) -> List[str]:
        """Blocks follow the display order and the sentinel ranks last."""
        issues = []
        order = self.layout.candidate_order
        if not order or order[-1] != self.layout.config.sentinel:
            issues.append("Sentinel is not last in the candidate order")

        ranks = rank_of(order)
        for round_number in self.layout.rounds:
            blocks = self.layout.blocks[round_number]
            positions = [ranks[b.candidate] for b in blocks]
            if positions != sorted(positions):
                issues.append(f"Round {round_number} blocks are out of display order")
        return issues

    def check_block_stacking(self) -> List[str]:
        issues = []
        for round_number in self.layout.rounds:
            cursor = 0.0
            for block in self.layout.blocks[round_number]:
                if block.y1 > block.y2:
                    issues.append(f"{block.element_id} has y1 > y2")
                if abs(block.y1 - cursor) > TOLERANCE:
                    issues.append(
                        f"{block.element_id} starts at {block.y1:.3f}, expected {cursor:.3f}"
                    )
                cursor = block.y2
        return issues

    def check_link_overlap(self) -> List[str]:
        """Links leaving or entering one block never overlap."""
        outgoing = defaultdict(list)
        incoming = defaultdict(list)
        for link in self.layout.links:
            outgoing[(link.round, link.from_candidate)].append(link.source_span)
            incoming[(link.round + 1, link.to_candidate)].append(link.target_span)

        issues = []
        for (round_number, candidate), spans in sorted(outgoing.items()):
            if _spans_overlap(spans):
                issues.append(f"Links leaving {candidate} in round {round_number} overlap")
        for (round_number, candidate), spans in sorted(incoming.items()):
            if _spans_overlap(spans):
                issues.append(f"Links entering {candidate} in round {round_number} overlap")
        return issues

    def verify(self) -> Dict:
        """
        Run every check.

        Returns:
            Dictionary with overall status, per-check issues and all issues
        """
        checks = {
            "round_totals": self.check_round_totals(),
            "active_totals": self.check_active_totals(),
            "carryovers": self.check_carryovers(),
            "transfer_totals": self.check_transfer_totals(),
            "percentages": self.check_percentages(),
            "order": self.check_order(),
            "block_stacking": self.check_block_stacking(),
            "link_overlap": self.check_link_overlap(),
        }
        issues = [issue for check_issues in checks.values() for issue in check_issues]

        if issues:
            logger.warning(f"Layout verification found {len(issues)} issues")
        else:
            logger.info("Layout verification passed")

        return {
            "passed": not issues,
            "checks": {name: not found for name, found in checks.items()},
            "issues": issues,
        }

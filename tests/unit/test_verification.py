import dataclasses

import pytest

from flow.builder import FlowLayoutBuilder
from flow.config import FlowConfig
from flow.records import TransferRecord, VoteRecord
from flow.verification import LayoutVerifier, _spans_overlap

SENTINEL = "Not Transferred"


class TestLayoutVerifier:
    @pytest.mark.unit
    @pytest.mark.invariant
    def test_sample_layout_passes(self, sample_layout):
        result = LayoutVerifier(sample_layout).verify()

        assert result["passed"], result["issues"]
        assert all(result["checks"].values())
        assert set(result["checks"]) == {
            "round_totals",
            "active_totals",
            "carryovers",
            "transfer_totals",
            "percentages",
            "order",
            "block_stacking",
            "link_overlap",
        }

    @pytest.mark.unit
    @pytest.mark.invariant
    def test_small_layout_passes(self, small_layout):
        assert LayoutVerifier(small_layout).verify()["passed"]

    @pytest.mark.unit
    def test_lenient_layout_reports_short_transfer(self):
        votes = [
            VoteRecord(1, "A", 100),
            VoteRecord(1, "B", 80),
            VoteRecord(2, "A", 160),
            VoteRecord(2, SENTINEL, 20),
        ]
        transfers = [TransferRecord(1, "B", "A", 60)]
        layout = FlowLayoutBuilder(FlowConfig(strict=False)).build(votes, transfers)

        result = LayoutVerifier(layout).verify()

        assert not result["passed"]
        assert not result["checks"]["transfer_totals"]
        assert result["checks"]["round_totals"]
        assert "Round 1: B held 80 votes, 60 transferred" in result["issues"]

    @pytest.mark.unit
    def test_reordered_blocks_are_reported(self, sample_layout):
        blocks = dict(sample_layout.blocks)
        blocks[1] = tuple(reversed(blocks[1]))
        tampered = dataclasses.replace(sample_layout, blocks=blocks)

        verifier = LayoutVerifier(tampered)

        assert verifier.check_order() == ["Round 1 blocks are out of display order"]
        assert verifier.check_block_stacking()

    @pytest.mark.unit
    def test_wrong_carryover_is_reported(self, sample_layout):
        first = dataclasses.replace(sample_layout.carryovers[0], votes=1)
        tampered = dataclasses.replace(
            sample_layout, carryovers=(first,) + sample_layout.carryovers[1:]
        )

        issues = LayoutVerifier(tampered).check_carryovers()

        assert len(issues) == 1
        assert "moves 1 votes, block holds 100" in issues[0]

    @pytest.mark.unit
    def test_overlapping_links_are_reported(self, sample_layout):
        carryover = sample_layout.carryovers[0]
        shifted = dataclasses.replace(
            carryover, target=carryover.target._replace(y=carryover.target.y + 5)
        )
        tampered = dataclasses.replace(
            sample_layout, carryovers=(shifted,) + sample_layout.carryovers[1:]
        )

        issues = LayoutVerifier(tampered).check_link_overlap()

        assert issues == ["Links entering London Breed in round 2 overlap"]


class TestSpanOverlap:
    @pytest.mark.unit
    @pytest.mark.parametrize(
        "spans, expected",
        [
            ([(0.0, 1.0), (1.0, 2.0)], False),
            ([(1.0, 2.0), (0.0, 1.0)], False),
            ([(0.0, 1.5), (1.0, 2.0)], True),
            ([(0.0, 1.0)], False),
            ([], False),
        ],
    )
    def test_spans_overlap(self, spans, expected):
        assert _spans_overlap(spans) is expected

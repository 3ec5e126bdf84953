"""
Unit tests for link geometry.

The sample layout uses a 280 px canvas for 280 votes, so every vertical
coordinate below equals a vote count; rounds are 100 px apart and bars are
10 px wide.
"""

import pytest

SENTINEL = "Not Transferred"


def links_by_target(links):
    return {link.to_candidate: link for link in links}


class TestCarryoverGeometry:
    @pytest.mark.unit
    def test_carryover_anchors(self, sample_layout):
        breed = next(
            link for link in sample_layout.carryovers
            if link.round == 1 and link.from_candidate == "London Breed"
        )

        assert breed.source == (10.0, 50.0)
        assert breed.target == (100.0, 50.0)
        assert breed.thickness == pytest.approx(100.0)
        assert breed.percentage is None

    @pytest.mark.unit
    def test_carryover_enters_top_of_grown_block(self, sample_layout):
        leno = next(
            link for link in sample_layout.carryovers
            if link.round == 1 and link.from_candidate == "Mark Leno"
        )

        # Round 1 block [100, 180], round 2 block [104, 186]
        assert leno.source.y == pytest.approx(140.0)
        assert leno.target.y == pytest.approx(144.0)

    @pytest.mark.unit
    def test_carryover_thickness_matches_votes(self, sample_layout):
        for link in sample_layout.carryovers:
            assert link.thickness == pytest.approx(sample_layout.vote_scale(link.votes))


class TestTransferGeometry:
    @pytest.mark.unit
    def test_transfers_fan_down_eliminated_block(self, sample_layout):
        transfers = sample_layout.transfers_for_round(1)

        assert [t.to_candidate for t in transfers] == [
            "London Breed",
            "Mark Leno",
            "Jane Kim",
            "Angela Alioto",
            SENTINEL,
        ]
        # Zhou's block spans [270, 280]
        assert [t.source.y for t in transfers] == pytest.approx(
            [272.0, 275.0, 276.5, 277.5, 279.0]
        )
        assert all(t.source.x == pytest.approx(10.0) for t in transfers)

    @pytest.mark.unit
    def test_transfers_enter_bottom_of_destination(self, sample_layout):
        targets = links_by_target(sample_layout.transfers_for_round(1))

        assert targets["London Breed"].target == pytest.approx((100.0, 102.0))
        assert targets["Mark Leno"].target == pytest.approx((100.0, 185.0))
        assert targets["Jane Kim"].target == pytest.approx((100.0, 246.5))
        assert targets["Angela Alioto"].target == pytest.approx((100.0, 277.5))
        assert targets[SENTINEL].target == pytest.approx((100.0, 279.0))

    @pytest.mark.unit
    def test_percentages(self, sample_layout):
        shares = {
            link.to_candidate: link.percentage
            for link in sample_layout.transfers_for_round(3)
        }

        assert shares["London Breed"] == pytest.approx(10 / 65)
        assert shares["Mark Leno"] == pytest.approx(45 / 65)
        assert shares[SENTINEL] == pytest.approx(10 / 65)

    @pytest.mark.unit
    @pytest.mark.invariant
    def test_percentages_sum_to_one(self, sample_layout):
        for round_number in sample_layout.eliminated_by_round:
            total = sum(link.percentage for link in sample_layout.transfers_for_round(round_number))
            assert total == pytest.approx(1.0)

    @pytest.mark.unit
    def test_sentinel_transfers_are_exhausted(self, sample_layout):
        for link in sample_layout.transfers:
            assert link.exhausted == (link.to_candidate == SENTINEL)

    @pytest.mark.unit
    @pytest.mark.invariant
    def test_transfers_cover_eliminated_block_exactly(self, sample_layout):
        for round_number, candidate in sample_layout.eliminated_by_round.items():
            block = sample_layout.block(round_number, candidate)
            spans = sorted(t.source_span for t in sample_layout.transfers_for_round(round_number))

            assert spans[0][0] == pytest.approx(block.y1)
            assert spans[-1][1] == pytest.approx(block.y2)
            for upper, lower in zip(spans, spans[1:]):
                assert upper[1] == pytest.approx(lower[0])

    @pytest.mark.unit
    @pytest.mark.invariant
    def test_incoming_links_tile_destination_block(self, sample_layout):
        for round_number in sample_layout.rounds[1:]:
            for block in sample_layout.blocks[round_number]:
                if block.candidate == SENTINEL:
                    # Exhausted votes stay put; only new arrivals are drawn
                    continue
                spans = sorted(
                    link.target_span
                    for link in sample_layout.links
                    if link.round + 1 == round_number and link.to_candidate == block.candidate
                )
                assert spans, f"No links enter {block.element_id}"
                assert spans[0][0] == pytest.approx(block.y1)
                assert spans[-1][1] == pytest.approx(block.y2)
                for upper, lower in zip(spans, spans[1:]):
                    assert upper[1] == pytest.approx(lower[0])


class TestGeometryBuilderDirect:
    @pytest.mark.unit
    def test_multiple_transfers_into_one_block_stack_upward(self):
        from flow.config import BandScale, LinearScale
        from flow.geometry import FlowGeometryBuilder
        from flow.records import TransferRecord, VoteBlock

        blocks = {
            1: [VoteBlock(1, "A", 10, 0.0, 10.0), VoteBlock(1, "B", 6, 10.0, 16.0, True)],
            2: [VoteBlock(2, "A", 16, 0.0, 16.0)],
        }
        transfers = [
            TransferRecord(1, "B", "A", 4),
            TransferRecord(1, "B", "A", 2),
        ]
        builder = FlowGeometryBuilder(
            blocks,
            ["A", "B", SENTINEL],
            LinearScale((0.0, 16.0), (0.0, 16.0)),
            BandScale.for_rounds([1, 2], 200.0),
            bar_width=5.0,
            sentinel=SENTINEL,
        )

        first, second = builder.transfer_links(transfers)
        assert first.target.y == pytest.approx(14.0)
        assert second.target.y == pytest.approx(11.0)
        assert first.source.y == pytest.approx(12.0)
        assert second.source.y == pytest.approx(15.0)
        assert first.source.x == pytest.approx(5.0)
        assert first.target.x == pytest.approx(100.0)

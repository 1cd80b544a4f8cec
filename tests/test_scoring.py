"""Tests for placement points and death-reason classification."""

import pytest

from pubgstats.aggregates.scoring import (
    PLACEMENT_POINTS,
    classify_death_type,
    placement_points,
    resolve_death_reason,
    safe_div,
    total_points,
)


class TestPlacementPoints:
    """Fixed placement table."""

    @pytest.mark.parametrize(
        "rank,expected",
        [(1, 10), (2, 6), (3, 5), (4, 4), (5, 3), (6, 2), (7, 1), (8, 1), (9, 0), (10, 0), (64, 0)],
    )
    def test_table_values(self, rank, expected):
        """Each rank maps to its fixed bonus."""
        assert placement_points(rank) == expected

    def test_monotonically_non_increasing(self):
        """Bonus never grows as the rank gets worse."""
        bonuses = [placement_points(rank) for rank in range(1, 30)]
        assert all(a >= b for a, b in zip(bonuses, bonuses[1:]))

    @pytest.mark.parametrize("rank", [None, 0, -3])
    def test_missing_or_invalid_rank_scores_zero(self, rank):
        """No rank, zero or negative ranks score nothing."""
        assert placement_points(rank) == 0

    def test_table_covers_top_eight_only(self):
        assert sorted(PLACEMENT_POINTS) == list(range(1, 9))

    def test_total_points_is_kills_plus_bonus(self):
        """3 kills at rank 1 is 13 points."""
        assert total_points(3, 1) == 13
        assert total_points(0, 9) == 0


class TestDeathClassification:
    """deathType buckets and the collapsed per-player label."""

    @pytest.mark.parametrize(
        "death_type,bucket",
        [
            ("alive", "alive"),
            ("byplayer", "killed"),
            ("suicide", "suicide"),
            ("byzone", "unknown"),
            ("logout", "unknown"),
            (None, "unknown"),
            ("", "unknown"),
        ],
    )
    def test_bucket(self, death_type, bucket):
        assert classify_death_type(death_type) == bucket

    def test_single_category_is_reported(self):
        """Only 'alive' observed -> 'alive'."""
        assert resolve_death_reason({"alive": 3, "killed": 0, "suicide": 0, "unknown": 0}) == "alive"
        assert resolve_death_reason({"killed": 2}) == "killed"

    def test_mixture_cannot_be_determined(self):
        """'alive' and 'killed' both observed -> 'cannot determine'."""
        assert resolve_death_reason({"alive": 2, "killed": 1}) == "cannot determine"

    def test_unknown_observation_forces_cannot_determine(self):
        assert resolve_death_reason({"alive": 5, "unknown": 1}) == "cannot determine"

    def test_nothing_observed(self):
        assert resolve_death_reason({}) == "cannot determine"


class TestSafeDiv:
    def test_zero_denominator_yields_zero(self):
        assert safe_div(5, 0) == 0.0

    def test_regular_division(self):
        assert safe_div(7, 2) == 3.5

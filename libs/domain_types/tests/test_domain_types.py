"""Tests for shared domain types package."""

import json

import pytest

from libs.domain_types import (
    AlgorithmType,
    BloomsLevel,
    DifficultyBand,
    DifficultySource,
    StopReason,
)


class TestDifficultyBand:
    """Tests for DifficultyBand enum."""

    def test_values(self):
        assert set(DifficultyBand) == {
            DifficultyBand.BEGINNER,
            DifficultyBand.INTERMEDIATE,
            DifficultyBand.ADVANCED,
            DifficultyBand.EXPERT,
        }

    def test_string_values(self):
        assert DifficultyBand.BEGINNER.value == "beginner"
        assert DifficultyBand.INTERMEDIATE.value == "intermediate"
        assert DifficultyBand.ADVANCED.value == "advanced"
        assert DifficultyBand.EXPERT.value == "expert"

    def test_str_mixin(self):
        assert DifficultyBand.EXPERT == "expert"
        assert json.dumps(DifficultyBand.EXPERT) == '"expert"'

    def test_ordering(self):
        assert [b.index for b in DifficultyBand.ordered()] == [0, 1, 2, 3]

    def test_numeric_difficulty_lookup(self):
        assert DifficultyBand.BEGINNER.numeric_difficulty == pytest.approx(0.2)
        assert DifficultyBand.INTERMEDIATE.numeric_difficulty == pytest.approx(0.4)
        assert DifficultyBand.ADVANCED.numeric_difficulty == pytest.approx(0.6)
        assert DifficultyBand.EXPERT.numeric_difficulty == pytest.approx(0.8)

    def test_shifted_moves_within_range(self):
        assert DifficultyBand.INTERMEDIATE.shifted(1) == DifficultyBand.ADVANCED
        assert DifficultyBand.INTERMEDIATE.shifted(-1) == DifficultyBand.BEGINNER

    def test_shifted_clamps_at_ends(self):
        assert DifficultyBand.BEGINNER.shifted(-1) == DifficultyBand.BEGINNER
        assert DifficultyBand.EXPERT.shifted(2) == DifficultyBand.EXPERT


class TestOtherEnums:
    def test_difficulty_source_values(self):
        assert {s.value for s in DifficultySource} == {"calibrated", "band_derived"}

    def test_algorithm_type_values(self):
        assert {a.value for a in AlgorithmType} == {"CAT", "MAP", "HYBRID"}

    def test_stop_reason_values(self):
        assert {r.value for r in StopReason} == {
            "max_items",
            "se_threshold",
            "theta_stable",
        }

    def test_blooms_levels_construct_from_value(self):
        assert BloomsLevel("analyze") is BloomsLevel.ANALYZE

"""
Tests for the CATSessionManager facade.

Tests cover:
- Construction from settings and explicit values
- evaluate(): estimate, counts and stopping decision
- select_next(): selection at the current estimate, strategies, exhaustion
- record_response(): selection-time values carried into the Response
- finalize(): stop reason, metrics and performance summary
- A full simulated question-answer loop
"""
import random

import pytest

from cat_engine.core.cat.ability_estimation import estimate_ability
from cat_engine.core.cat.engine import CATSessionManager, ItemSelection
from cat_engine.core.cat.item_response import probability_correct
from cat_engine.core.cat.models import SelectionConstraints, build_item_lookup
from cat_engine.core.cat.strategies import MissionAlignedStrategy
from cat_engine.core.config import settings
from libs.domain_types import AlgorithmType, DifficultyBand, StopReason
from tests.conftest import BASE_TIME, make_item, make_responses


@pytest.fixture
def manager() -> CATSessionManager:
    """Create a CATSessionManager with default settings."""
    return CATSessionManager()


@pytest.fixture
def large_bank():
    """Forty calibrated items spread over [-2, 2] across two subjects."""
    return [
        make_item(
            f"item-{i}",
            subject="quant" if i % 2 else "verbal",
            topic=f"topic-{i % 5}",
            discrimination=1.5,
            guessing=0.2,
            calibrated_difficulty=-2.0 + 4.0 * i / 39,
        )
        for i in range(40)
    ]


class TestConstruction:
    """Tests for CATSessionManager.__init__()."""

    def test_defaults_from_settings(self, manager: CATSessionManager):
        assert manager.min_items == settings.CAT_MIN_ITEMS
        assert manager.max_items == settings.CAT_MAX_ITEMS
        assert manager.se_threshold == settings.CAT_SE_THRESHOLD
        assert manager.randomesque_k == settings.CAT_RANDOMESQUE_K
        assert manager.algorithm_type is AlgorithmType.CAT

    def test_explicit_values(self):
        manager = CATSessionManager(min_items=3, max_items=12, se_threshold=0.4)
        assert (manager.min_items, manager.max_items, manager.se_threshold) == (
            3,
            12,
            0.4,
        )

    def test_rejects_non_positive_max_items(self):
        with pytest.raises(ValueError, match="max_items"):
            CATSessionManager(max_items=0)

    def test_rejects_non_positive_se_threshold(self):
        with pytest.raises(ValueError, match="se_threshold"):
            CATSessionManager(se_threshold=0.0)


class TestEvaluate:
    """Tests for CATSessionManager.evaluate()."""

    def test_empty_history(self, manager: CATSessionManager, four_band_lookup):
        step = manager.evaluate([], four_band_lookup)
        assert step.ability == 0.0
        assert step.standard_error == 1.0
        assert step.items_administered == 0
        assert step.correct_count == 0
        assert step.should_continue

    def test_counts_and_estimate(self, manager: CATSessionManager, four_band_lookup):
        responses = make_responses(["b1", "i1", "a1"], [True, True, False])
        step = manager.evaluate(responses, four_band_lookup)
        assert step.items_administered == 3
        assert step.correct_count == 2
        assert step.ability == pytest.approx(
            estimate_ability(responses, four_band_lookup)
        )

    def test_per_session_cap(self, manager: CATSessionManager, four_band_lookup):
        ids = ["b1", "i1", "a1", "e1", "b1", "i1"]
        responses = make_responses(ids, [True, False] * 3)
        step = manager.evaluate(responses, four_band_lookup, max_questions=6)
        assert step.should_stop
        assert step.stop_reason is StopReason.MAX_ITEMS

    def test_per_session_se_target(self, manager: CATSessionManager, four_band_lookup):
        ids = ["b1", "i1", "a1", "e1", "b1", "i1"]
        responses = make_responses(ids, [True, False] * 3)
        step = manager.evaluate(responses, four_band_lookup, target_se=5.0)
        assert step.stop_reason is StopReason.SE_THRESHOLD

    def test_manager_min_items(self, four_band_lookup):
        manager = CATSessionManager(min_items=2, max_items=2)
        responses = make_responses(["b1", "i1"], [True, False])
        assert manager.evaluate(responses, four_band_lookup).should_stop


class TestSelectNext:
    """Tests for CATSessionManager.select_next()."""

    def test_selects_at_estimated_ability(self, manager: CATSessionManager, four_band_bank):
        selection = manager.select_next(four_band_bank, [])
        assert isinstance(selection, ItemSelection)
        assert selection.ability == 0.0
        assert selection.information > 0.0

    def test_explicit_ability(self, manager: CATSessionManager, four_band_bank):
        selection = manager.select_next(four_band_bank, [], ability=-2.0)
        assert selection.item.id == "b1"
        assert selection.ability == -2.0

    def test_history_resolved_through_lookup(
        self, manager: CATSessionManager, four_band_bank, four_band_lookup
    ):
        history = make_responses(["b1", "i1", "a1", "e1"], [True] * 4)
        remaining = [make_item("new", DifficultyBand.EXPERT, calibrated_difficulty=3.0)]
        selection = manager.select_next(remaining, history, four_band_lookup)
        assert selection.ability == pytest.approx(4.0)
        assert selection.item.id == "new"

    def test_constraints_applied(self, manager: CATSessionManager, four_band_bank):
        constraints = SelectionConstraints(
            difficulty_constraints=[DifficultyBand.ADVANCED]
        )
        selection = manager.select_next(
            four_band_bank, [], ability=-3.0, constraints=constraints
        )
        assert selection.item.id == "a1"

    def test_strategy_applied(self, manager: CATSessionManager, four_band_bank):
        strategy = MissionAlignedStrategy(target_bands=(DifficultyBand.EXPERT,))
        selection = manager.select_next(
            four_band_bank, [], ability=-3.0, strategy=strategy
        )
        assert selection.item.id == "e1"

    def test_no_candidates(self, manager: CATSessionManager):
        assert manager.select_next([], []) is None

    def test_randomesque_requires_rng(self, four_band_bank):
        manager = CATSessionManager(randomesque_k=3)
        with pytest.raises(ValueError):
            manager.select_next(four_band_bank, [])
        selection = manager.select_next(four_band_bank, [], rng=random.Random(1))
        assert selection is not None


class TestRecordResponse:
    """Tests for CATSessionManager.record_response()."""

    def test_carries_selection_values(self, manager: CATSessionManager, four_band_bank):
        selection = manager.select_next(four_band_bank, [], ability=0.5)
        response = manager.record_response(
            selection,
            is_correct=True,
            response_time_ms=12_500,
            confidence=4,
            timestamp=BASE_TIME,
        )
        assert response.item_id == selection.item.id
        assert response.ability_at_selection == 0.5
        assert response.information_gained == pytest.approx(selection.information)
        assert response.difficulty_band is selection.item.band
        assert response.confidence == 4
        assert response.timestamp == BASE_TIME

    def test_default_timestamp_is_aware(self, manager: CATSessionManager, four_band_bank):
        selection = manager.select_next(four_band_bank, [])
        response = manager.record_response(selection, is_correct=False)
        assert response.timestamp.tzinfo is not None

    @pytest.mark.parametrize("confidence", [0, 6])
    def test_rejects_out_of_range_confidence(
        self, manager: CATSessionManager, four_band_bank, confidence
    ):
        selection = manager.select_next(four_band_bank, [])
        with pytest.raises(ValueError, match="confidence"):
            manager.record_response(selection, is_correct=True, confidence=confidence)


class TestFinalize:
    """Tests for CATSessionManager.finalize()."""

    def test_final_summary(self, four_band_lookup):
        manager = CATSessionManager(algorithm_type=AlgorithmType.HYBRID)
        ids = ["b1", "i1", "a1", "e1"] * 2 + ["b1", "i1"]
        responses = make_responses(ids, [True, False] * 5)
        result = manager.finalize(responses, four_band_lookup, max_questions=10)
        assert result.stop_reason is StopReason.MAX_ITEMS
        assert result.items_administered == 10
        assert result.correct_count == 5
        assert result.metrics.algorithm_type is AlgorithmType.HYBRID
        assert len(result.metrics.convergence_history) == 10
        assert result.performance.total_questions == 10
        assert result.performance.final_ability == pytest.approx(result.ability)

    def test_unfinished_session_has_no_reason(self, manager: CATSessionManager, four_band_lookup):
        responses = make_responses(["b1", "i1"], [True, False])
        result = manager.finalize(responses, four_band_lookup)
        assert result.stop_reason is None


class TestQuestionAnswerLoop:
    """Drive full sessions through evaluate/select/record."""

    def run_session(self, manager, bank, true_theta, seed):
        rng = random.Random(seed)
        lookup = build_item_lookup(bank)
        responses = []
        step = manager.evaluate(responses, lookup)
        while step.should_continue:
            administered = {r.item_id for r in responses}
            remaining = [item for item in bank if item.id not in administered]
            selection = manager.select_next(remaining, responses, lookup)
            if selection is None:
                break
            item = selection.item
            p = probability_correct(
                true_theta, item.difficulty.value, item.discrimination, item.guessing
            )
            responses.append(
                manager.record_response(selection, is_correct=rng.random() < p)
            )
            step = manager.evaluate(responses, lookup)
        return responses, step

    def test_session_stops_within_cap(self, large_bank):
        manager = CATSessionManager(max_items=20)
        responses, step = self.run_session(manager, large_bank, 0.5, seed=3)
        assert step.should_stop
        assert manager.min_items <= len(responses) <= 20
        assert len({r.item_id for r in responses}) == len(responses)

    def test_information_recorded_for_every_response(self, large_bank):
        manager = CATSessionManager(max_items=12)
        responses, _ = self.run_session(manager, large_bank, -0.5, seed=8)
        assert all(r.information_gained > 0.0 for r in responses)
        assert responses[0].ability_at_selection == 0.0

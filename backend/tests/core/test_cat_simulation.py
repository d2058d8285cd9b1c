"""
Tests for the CAT simulation harness.

Tests cover:
- Synthetic item bank generation (parameter ranges, bands, reproducibility)
- Response simulation against the 3PL model
- Single-examinee sessions (no repeats, stop reasons)
- Aggregate metrics (RMSE, bias, convergence rate)
"""

import random

import numpy as np
import pytest

from cat_engine.core.cat.engine import CATSessionManager
from cat_engine.core.cat.simulation import (
    DEFAULT_SUBJECTS,
    NO_ITEMS_REASON,
    ExamineeResult,
    SimulationConfig,
    aggregate_results,
    band_for_difficulty,
    generate_item_bank,
    run_simulation,
    simulate_examinee,
    simulate_response,
)
from cat_engine.core.cat.strategies import ProgressiveStrategy
from libs.domain_types import DifficultyBand
from tests.conftest import make_item


@pytest.fixture(scope="module")
def bank():
    return generate_item_bank(n_items_per_subject=30, seed=7)


class TestSimulationConfig:
    """Tests for SimulationConfig defaults."""

    def test_defaults(self):
        config = SimulationConfig()
        assert config.n_examinees == 200
        assert config.max_items == 30
        assert config.se_threshold == 0.30
        assert config.seed == 42


class TestGenerateItemBank:
    """Tests for synthetic item bank generation."""

    def test_size_and_subjects(self, bank):
        assert len(bank) == 30 * len(DEFAULT_SUBJECTS)
        assert {item.subject for item in bank} == set(DEFAULT_SUBJECTS)

    def test_unique_ids(self, bank):
        assert len({item.id for item in bank}) == len(bank)

    def test_parameter_ranges(self, bank):
        for item in bank:
            assert 0.5 <= item.discrimination <= 2.5
            assert -3.0 <= item.difficulty.value <= 3.0
            assert 0.0 <= item.guessing <= 0.25
            assert item.difficulty.is_calibrated

    def test_band_matches_difficulty(self, bank):
        for item in bank:
            assert item.band is band_for_difficulty(item.difficulty.value)

    def test_reproducible(self):
        first = generate_item_bank(n_items_per_subject=5, seed=1)
        second = generate_item_bank(n_items_per_subject=5, seed=1)
        assert first == second

    def test_custom_subjects(self):
        items = generate_item_bank(n_items_per_subject=3, subjects=["logic"])
        assert [item.id for item in items] == ["logic-1", "logic-2", "logic-3"]

    @pytest.mark.parametrize(
        "difficulty,band",
        [
            (-2.0, DifficultyBand.BEGINNER),
            (-0.5, DifficultyBand.INTERMEDIATE),
            (0.0, DifficultyBand.ADVANCED),
            (0.75, DifficultyBand.EXPERT),
        ],
    )
    def test_band_edges(self, difficulty, band):
        assert band_for_difficulty(difficulty) is band


class TestSimulateResponse:
    """Tests for simulated answers."""

    def test_rate_tracks_probability(self):
        item = make_item("x", discrimination=1.0, guessing=0.2, calibrated_difficulty=0.0)
        rng = random.Random(5)
        correct = sum(simulate_response(0.0, item, rng) for _ in range(4000))
        # P = 0.2 + 0.8 * 0.5 = 0.6
        assert correct / 4000 == pytest.approx(0.6, abs=0.03)

    def test_high_ability_mostly_correct(self):
        item = make_item("x", discrimination=2.0, guessing=0.0, calibrated_difficulty=-1.0)
        rng = random.Random(2)
        correct = sum(simulate_response(3.0, item, rng) for _ in range(500))
        assert correct > 450


class TestSimulateExaminee:
    """Tests for a single simulated session."""

    def test_session_respects_cap_and_never_repeats(self, bank):
        manager = CATSessionManager(max_items=15)
        result = simulate_examinee(0.3, bank, manager, random.Random(9), 15)
        assert 5 <= result.items_administered <= 15
        assert len(set(result.administered_item_ids)) == result.items_administered
        assert result.stopping_reason in {"max_items", "se_threshold", "theta_stable"}
        assert result.bias == pytest.approx(result.estimated_theta - 0.3)

    def test_exhausted_bank(self):
        tiny = [make_item(f"t{i}") for i in range(3)]
        manager = CATSessionManager()
        result = simulate_examinee(0.0, tiny, manager, random.Random(1), 30)
        assert result.items_administered == 3
        assert result.stopping_reason == NO_ITEMS_REASON

    def test_with_strategy(self, bank):
        manager = CATSessionManager(max_items=10)
        result = simulate_examinee(
            -0.5, bank, manager, random.Random(4), 10, strategy=ProgressiveStrategy()
        )
        assert result.items_administered >= 5


class TestRunSimulation:
    """Tests for full simulation runs."""

    def test_small_run(self, bank):
        config = SimulationConfig(n_examinees=12, max_items=20, seed=3)
        result = run_simulation(bank, config)
        assert len(result.examinee_results) == 12
        assert 5 <= result.mean_items <= 20
        assert sum(result.stopping_reason_counts.values()) == 12
        assert 0.0 <= result.convergence_rate <= 1.0
        assert result.rmse >= abs(result.mean_bias)

    def test_reproducible(self, bank):
        config = SimulationConfig(n_examinees=4, max_items=10, seed=11)
        first = run_simulation(bank, config)
        second = run_simulation(bank, config)
        assert [r.estimated_theta for r in first.examinee_results] == [
            r.estimated_theta for r in second.examinee_results
        ]

    def test_rejects_empty_population(self, bank):
        with pytest.raises(ValueError, match="n_examinees"):
            run_simulation(bank, SimulationConfig(n_examinees=0))


class TestAggregateResults:
    """Tests for aggregate metric computation."""

    def _result(self, bias, items, se, reason="se_threshold"):
        return ExamineeResult(
            true_theta=0.0,
            estimated_theta=bias,
            final_se=se,
            bias=bias,
            items_administered=items,
            stopping_reason=reason,
        )

    def test_known_values(self):
        results = [
            self._result(0.3, 10, 0.25),
            self._result(-0.1, 20, 0.35, reason="max_items"),
            self._result(0.1, 15, 0.28),
        ]
        aggregated = aggregate_results(SimulationConfig(se_threshold=0.3), results)
        assert aggregated.mean_items == pytest.approx(15.0)
        assert aggregated.median_items == pytest.approx(15.0)
        assert aggregated.mean_bias == pytest.approx(0.1)
        assert aggregated.rmse == pytest.approx(np.sqrt((0.09 + 0.01 + 0.01) / 3))
        assert aggregated.convergence_rate == pytest.approx(2 / 3)
        assert aggregated.stopping_reason_counts == {"se_threshold": 2, "max_items": 1}

    def test_empty_rejected(self):
        with pytest.raises(ValueError):
            aggregate_results(SimulationConfig(), [])

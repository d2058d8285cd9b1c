"""
Tests for content balancing helpers.

Tests cover:
- Subject coverage tracking, ignoring unknown items
- Current subject proportion over the full history
- Subject weight for under- and over-represented subjects
- Recent-topic window and filtering
"""

import pytest

from cat_engine.core.cat.content_balancing import (
    OVER_REPRESENTED_WEIGHT,
    UNDER_REPRESENTED_WEIGHT,
    current_subject_proportion,
    even_distribution,
    filter_recent_topics,
    recent_topics,
    subject_weight,
    track_subject_coverage,
)
from cat_engine.core.cat.models import build_item_lookup
from tests.conftest import make_item, make_responses


@pytest.fixture
def lookup(mixed_bank):
    return build_item_lookup(mixed_bank)


class TestTrackSubjectCoverage:
    def test_empty_history(self, lookup):
        assert track_subject_coverage([], lookup) == {}

    def test_counts_per_subject(self, lookup):
        history = make_responses(["q-beg", "q-adv", "r-beg"], [True, False, True])
        assert track_subject_coverage(history, lookup) == {"quant": 2, "reasoning": 1}

    def test_unknown_items_not_counted(self, lookup):
        history = make_responses(["q-beg", "gone"], [True, True])
        assert track_subject_coverage(history, lookup) == {"quant": 1}


class TestCurrentSubjectProportion:
    def test_empty_history_is_zero(self, lookup):
        assert current_subject_proportion("quant", [], lookup) == 0.0

    def test_proportion_over_history(self, lookup):
        history = make_responses(["q-beg", "r-beg", "r-adv", "q-adv"], [True] * 4)
        assert current_subject_proportion("quant", history, lookup) == 0.5

    def test_unknown_items_dilute_proportion(self, lookup):
        history = make_responses(["q-beg", "gone"], [True, True])
        assert current_subject_proportion("quant", history, lookup) == 0.5


class TestSubjectWeight:
    def test_under_represented(self, lookup, mixed_bank):
        history = make_responses(["q-beg"], [True])
        weight = subject_weight(
            mixed_bank[2], {"quant": 0.5, "reasoning": 0.5}, history, lookup
        )
        assert weight == UNDER_REPRESENTED_WEIGHT

    def test_over_represented(self, lookup, mixed_bank):
        history = make_responses(["q-beg"], [True])
        weight = subject_weight(
            mixed_bank[0], {"quant": 0.5, "reasoning": 0.5}, history, lookup
        )
        assert weight == OVER_REPRESENTED_WEIGHT

    def test_exactly_on_target_is_not_boosted(self, lookup, mixed_bank):
        history = make_responses(["q-beg", "r-beg"], [True, True])
        weight = subject_weight(
            mixed_bank[0], {"quant": 0.5, "reasoning": 0.5}, history, lookup
        )
        assert weight == OVER_REPRESENTED_WEIGHT

    def test_subject_missing_from_distribution(self, lookup):
        item = make_item("v", subject="verbal")
        assert subject_weight(item, {"quant": 1.0}, [], lookup) == (
            OVER_REPRESENTED_WEIGHT
        )

    def test_empty_history_boosts_any_targeted_subject(self, lookup, mixed_bank):
        assert subject_weight(mixed_bank[0], {"quant": 0.1}, [], lookup) == (
            UNDER_REPRESENTED_WEIGHT
        )


class TestEvenDistribution:
    def test_equal_shares_in_first_seen_order(self):
        distribution = even_distribution(["quant", "verbal", "quant", "spatial"])
        assert list(distribution) == ["quant", "verbal", "spatial"]
        assert all(share == pytest.approx(1 / 3) for share in distribution.values())

    def test_empty(self):
        assert even_distribution([]) == {}


class TestRecentTopics:
    def test_window_limits_topics(self, lookup):
        history = make_responses(["q-beg", "q-adv", "r-beg"], [True] * 3)
        assert recent_topics(history, lookup, 2) == {"algebra", "series"}

    def test_window_larger_than_history(self, lookup):
        history = make_responses(["q-beg"], [True])
        assert recent_topics(history, lookup, 10) == {"arithmetic"}

    def test_zero_window(self, lookup):
        history = make_responses(["q-beg"], [True])
        assert recent_topics(history, lookup, 0) == set()

    def test_filter_keeps_everything_without_avoid_list(self, lookup, mixed_bank):
        history = make_responses(["q-beg"], [True])
        assert filter_recent_topics(mixed_bank, None, history, lookup, 3) == (
            mixed_bank
        )

    def test_filter_removes_recent_avoided_topic(self, lookup, mixed_bank):
        history = make_responses(["q-beg", "r-beg"], [True, True])
        kept = filter_recent_topics(
            mixed_bank, ["arithmetic", "syllogisms"], history, lookup, 3
        )
        assert [item.id for item in kept] == ["q-adv", "r-beg", "r-adv"]

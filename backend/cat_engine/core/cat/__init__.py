"""
CAT (Computerized Adaptive Testing) engine.

Pure functions over explicit inputs: the 3PL response model, MLE ability
estimation, Maximum Fisher Information item selection with selection
strategies, stopping rules and post-hoc reporting.
"""

from .ability_estimation import (
    estimate_ability,
    estimate_ability_with_se,
    standard_error,
)
from .bank_analysis import (
    BankAnalysis,
    SessionEfficiency,
    analyze_item_bank,
    analyze_session_efficiency,
    item_exposure_rates,
    overexposed_items,
)
from .engine import (
    CATResult,
    CATSessionManager,
    CATStepResult,
    ItemSelection,
)
from .item_response import (
    InvalidParameterError,
    fisher_information_3pl,
    probability_correct,
)
from .item_selection import (
    ItemCandidate,
    rank_candidates,
    select_next_item,
)
from .metrics import (
    AdaptiveMetrics,
    TestPerformance,
    build_metrics,
    summarize_performance,
)
from .models import (
    AbilityEstimate,
    Difficulty,
    Item,
    Response,
    SelectionConstraints,
    build_item_lookup,
)
from .stopping_rules import (
    StoppingDecision,
    check_stopping_criteria,
    should_continue,
)
from .strategies import (
    ConfidenceAwareStrategy,
    FatigueAwareStrategy,
    GoalAlignedStrategy,
    MissionAlignedStrategy,
    ProgressiveStrategy,
    StandardStrategy,
    select_with_strategy,
)

__all__ = [
    "probability_correct",
    "fisher_information_3pl",
    "InvalidParameterError",
    "estimate_ability",
    "standard_error",
    "estimate_ability_with_se",
    "select_next_item",
    "rank_candidates",
    "ItemCandidate",
    "check_stopping_criteria",
    "should_continue",
    "StoppingDecision",
    "build_metrics",
    "summarize_performance",
    "AdaptiveMetrics",
    "TestPerformance",
    "StandardStrategy",
    "MissionAlignedStrategy",
    "GoalAlignedStrategy",
    "ProgressiveStrategy",
    "FatigueAwareStrategy",
    "ConfidenceAwareStrategy",
    "select_with_strategy",
    "analyze_item_bank",
    "analyze_session_efficiency",
    "item_exposure_rates",
    "overexposed_items",
    "BankAnalysis",
    "SessionEfficiency",
    "CATSessionManager",
    "CATStepResult",
    "CATResult",
    "ItemSelection",
    "Item",
    "Response",
    "AbilityEstimate",
    "Difficulty",
    "SelectionConstraints",
    "build_item_lookup",
]

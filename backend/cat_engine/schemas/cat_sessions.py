"""
Pydantic schemas for adaptive test session endpoints.
"""
from datetime import datetime
from typing import Dict, List, Literal, Optional, Tuple

from pydantic import BaseModel, ConfigDict, Field

from cat_engine.core.cat.metrics import AdaptiveMetrics
from cat_engine.core.cat.models import Item, Response, SelectionConstraints
from cat_engine.core.cat.strategies import (
    ConfidenceAwareStrategy,
    FatigueAwareStrategy,
    GoalAlignedStrategy,
    MissionAlignedStrategy,
    ProgressiveStrategy,
    SelectionStrategy,
    StandardStrategy,
)
from cat_engine.core.config import settings
from cat_engine.core.datetime_utils import ensure_timezone_aware, utc_now
from libs.domain_types import AlgorithmType, BloomsLevel, DifficultyBand, StopReason


class ItemSchema(BaseModel):
    """Schema for an item with its IRT parameters."""

    model_config = ConfigDict(from_attributes=True)

    id: str = Field(..., min_length=1, description="Opaque item ID")
    subject: str = Field(..., min_length=1, description="Subject tag")
    topic: str = Field(..., min_length=1, description="Topic tag")
    band: DifficultyBand = Field(..., description="Coarse difficulty band")
    discrimination: float = Field(
        1.0, gt=0, allow_inf_nan=False, description="IRT discrimination (a > 0)"
    )
    guessing: float = Field(
        0.25, ge=0, lt=1, allow_inf_nan=False, description="IRT guessing (0 <= c < 1)"
    )
    calibrated_difficulty: Optional[float] = Field(
        None,
        allow_inf_nan=False,
        description="Calibrated IRT difficulty; overrides the band lookup",
    )
    estimated_time_seconds: float = Field(60.0, ge=0)
    blooms_level: Optional[BloomsLevel] = None

    def to_domain(self) -> Item:
        return Item(
            id=self.id,
            subject=self.subject,
            topic=self.topic,
            band=self.band,
            discrimination=self.discrimination,
            guessing=self.guessing,
            calibrated_difficulty=self.calibrated_difficulty,
            estimated_time_seconds=self.estimated_time_seconds,
            blooms_level=self.blooms_level,
        )


class ResponseSchema(BaseModel):
    """Schema for one answered item in the session history."""

    item_id: str = Field(..., min_length=1)
    is_correct: bool
    response_time_ms: float = Field(0.0, ge=0, allow_inf_nan=False)
    confidence: Optional[int] = Field(
        None, ge=1, le=5, description="Self-reported confidence (1-5)"
    )
    ability_at_selection: float = Field(0.0, allow_inf_nan=False)
    information_gained: float = Field(0.0, ge=0, allow_inf_nan=False)
    difficulty_band: Optional[DifficultyBand] = None
    timestamp: Optional[datetime] = None

    def to_domain(self) -> Response:
        return Response(
            item_id=self.item_id,
            is_correct=self.is_correct,
            response_time_ms=self.response_time_ms,
            confidence=self.confidence,
            ability_at_selection=self.ability_at_selection,
            information_gained=self.information_gained,
            difficulty_band=self.difficulty_band,
            timestamp=(
                ensure_timezone_aware(self.timestamp) if self.timestamp else utc_now()
            ),
        )


class SelectionConstraintsSchema(BaseModel):
    """Schema for optional per-request selection constraints."""

    subject_distribution: Optional[Dict[str, float]] = Field(
        None, description="Target share per subject"
    )
    difficulty_constraints: Optional[List[DifficultyBand]] = Field(
        None, description="Allowed bands; an empty list allows none"
    )
    avoid_recent_topics: Optional[List[str]] = None
    recent_window: Optional[int] = Field(
        None, ge=0, description="Trailing responses whose topics count as recent"
    )

    def to_domain(self) -> SelectionConstraints:
        window = self.recent_window
        if window is None:
            window = settings.CAT_RECENT_TOPIC_WINDOW
        return SelectionConstraints(
            subject_distribution=self.subject_distribution,
            difficulty_constraints=self.difficulty_constraints,
            avoid_recent_topics=self.avoid_recent_topics,
            recent_window=window,
        )


class StrategySchema(BaseModel):
    """Schema selecting one of the selection strategies."""

    name: Literal[
        "standard",
        "mission_aligned",
        "goal_aligned",
        "progressive",
        "fatigue_aware",
        "confidence_aware",
    ] = "standard"
    target_bands: List[DifficultyBand] = Field(
        default_factory=list, description="mission_aligned only"
    )
    linked_subjects: List[str] = Field(
        default_factory=list, description="goal_aligned only"
    )

    def to_domain(self) -> SelectionStrategy:
        if self.name == "mission_aligned":
            return MissionAlignedStrategy(target_bands=tuple(self.target_bands))
        if self.name == "goal_aligned":
            return GoalAlignedStrategy(linked_subjects=tuple(self.linked_subjects))
        if self.name == "progressive":
            return ProgressiveStrategy()
        if self.name == "fatigue_aware":
            return FatigueAwareStrategy()
        if self.name == "confidence_aware":
            return ConfidenceAwareStrategy()
        return StandardStrategy()


class NextItemRequest(BaseModel):
    """Schema for POST /v1/sessions/{session_id}/next-item."""

    candidates: List[ItemSchema] = Field(
        ..., description="Items available for administration"
    )
    history: List[ResponseSchema] = Field(default_factory=list)
    item_bank: List[ItemSchema] = Field(
        default_factory=list,
        description="Additional items referenced by the history",
    )
    ability: Optional[float] = Field(
        None,
        allow_inf_nan=False,
        description="Ability to select at; recomputed from the history if omitted",
    )
    constraints: Optional[SelectionConstraintsSchema] = None
    strategy: StrategySchema = Field(default_factory=StrategySchema)
    seed: Optional[int] = Field(
        None, description="Seed for randomesque exposure control"
    )


class NextItemResponse(BaseModel):
    """Schema for the next-item result."""

    status: Literal["item_selected", "no_item_available"]
    item: Optional[ItemSchema] = None
    information: Optional[float] = Field(
        None, description="Fisher information of the item at selection time"
    )
    ability: float = Field(..., description="Ability the item was selected at")


class EstimateRequest(BaseModel):
    """Schema for POST /v1/sessions/{session_id}/estimate."""

    items: List[ItemSchema] = Field(..., description="Items referenced by the history")
    history: List[ResponseSchema] = Field(default_factory=list)
    max_questions: Optional[int] = Field(None, ge=1)
    target_se: Optional[float] = Field(None, gt=0, allow_inf_nan=False)


class EstimateResponse(BaseModel):
    """Schema for the estimate result."""

    model_config = ConfigDict(populate_by_name=True)

    ability: float
    standard_error: float
    continue_: bool = Field(..., alias="continue")
    stop_reason: Optional[StopReason] = None
    responses_used: int = Field(
        ..., description="Responses whose item was found and used in estimation"
    )


class MetricsRequest(BaseModel):
    """Schema for POST /v1/sessions/{session_id}/metrics."""

    items: List[ItemSchema]
    history: List[ResponseSchema] = Field(default_factory=list)
    algorithm_type: AlgorithmType = AlgorithmType.CAT
    final_ability: Optional[float] = Field(
        None,
        allow_inf_nan=False,
        description="Reported final ability; recomputed from the history if omitted",
    )


class AbilityEstimateSchema(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    ability: float
    standard_error: float
    question_number: int
    timestamp: datetime


class GroupPerformanceSchema(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    key: str
    questions_answered: int
    correct_answers: int
    accuracy: float
    average_time_ms: float


class TestPerformanceSchema(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    total_questions: int
    correct_answers: int
    accuracy: float = Field(..., description="Percent correct (0-100)")
    average_response_time_ms: float
    total_time_ms: float
    subject_performance: Dict[str, GroupPerformanceSchema]
    difficulty_performance: Dict[str, GroupPerformanceSchema]
    blooms_performance: Dict[str, GroupPerformanceSchema]
    final_ability: float
    standard_error: float
    confidence_interval: Tuple[float, float]


class MetricsResponse(BaseModel):
    """Schema for the metrics result."""

    algorithm_type: AlgorithmType
    algorithm_efficiency: float
    question_utilization: float
    ability_stability: float
    convergence_history: List[AbilityEstimateSchema]
    performance: TestPerformanceSchema

    @classmethod
    def from_domain(
        cls, metrics: AdaptiveMetrics, performance: TestPerformanceSchema
    ) -> "MetricsResponse":
        return cls(
            algorithm_type=metrics.algorithm_type,
            algorithm_efficiency=metrics.algorithm_efficiency,
            question_utilization=metrics.question_utilization,
            ability_stability=metrics.ability_stability,
            convergence_history=[
                AbilityEstimateSchema.model_validate(e)
                for e in metrics.convergence_history
            ],
            performance=performance,
        )

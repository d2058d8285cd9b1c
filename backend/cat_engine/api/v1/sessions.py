"""
Adaptive test session endpoints.

The engine is stateless: every request carries the items and the response
history it needs, and nothing is stored between calls. ``session_id`` is
used only for log correlation.
"""
import logging
import random
from typing import Dict, List, Sequence

from fastapi import APIRouter

from cat_engine.core.cat.engine import CATSessionManager
from cat_engine.core.cat.metrics import build_metrics, summarize_performance
from cat_engine.core.cat.models import Item, Response, resolve_responses
from cat_engine.core.error_responses import (
    ErrorMessages,
    raise_bad_request,
    raise_unprocessable,
)
from cat_engine.schemas.cat_sessions import (
    EstimateRequest,
    EstimateResponse,
    ItemSchema,
    MetricsRequest,
    MetricsResponse,
    NextItemRequest,
    NextItemResponse,
    ResponseSchema,
    StrategySchema,
    TestPerformanceSchema,
)

logger = logging.getLogger(__name__)

router = APIRouter()


def _to_items(schemas: Sequence[ItemSchema]) -> List[Item]:
    """Convert request items, rejecting duplicate IDs."""
    seen = set()
    items = []
    for schema in schemas:
        if schema.id in seen:
            raise_bad_request(ErrorMessages.duplicate_item_id(schema.id))
        seen.add(schema.id)
        items.append(schema.to_domain())
    return items


def _to_history(schemas: Sequence[ResponseSchema]) -> List[Response]:
    return [schema.to_domain() for schema in schemas]


def _validate_strategy(strategy: StrategySchema) -> None:
    if strategy.name == "mission_aligned" and not strategy.target_bands:
        raise_unprocessable(ErrorMessages.MISSION_BANDS_REQUIRED)
    if strategy.name == "goal_aligned" and not strategy.linked_subjects:
        raise_unprocessable(ErrorMessages.GOAL_SUBJECTS_REQUIRED)


@router.post("/{session_id}/next-item", response_model=NextItemResponse)
def next_item(session_id: str, request: NextItemRequest) -> NextItemResponse:
    """
    Select the next item to administer.

    Returns ``status="no_item_available"`` (not an error) when no candidate
    survives the constraints; the caller may relax them and retry.
    """
    _validate_strategy(request.strategy)

    candidates = _to_items(request.candidates)
    bank = _to_items(request.item_bank)
    history = _to_history(request.history)

    # Candidates take precedence over bank entries with the same ID
    lookup: Dict[str, Item] = {item.id: item for item in bank}
    lookup.update({item.id: item for item in candidates})

    manager = CATSessionManager()
    rng = random.Random(request.seed) if manager.randomesque_k > 1 else None
    selection = manager.select_next(
        candidates,
        history,
        item_lookup=lookup,
        ability=request.ability,
        constraints=request.constraints.to_domain() if request.constraints else None,
        strategy=request.strategy.to_domain(),
        rng=rng,
    )

    if selection is None:
        logger.info(
            f"Session {session_id}: no item available "
            f"({len(candidates)} candidates, {len(history)} responses)",
            extra={"session_id": session_id},
        )
        ability = (
            request.ability
            if request.ability is not None
            else manager.estimate(history, lookup).ability
        )
        return NextItemResponse(status="no_item_available", ability=ability)

    logger.info(
        f"Session {session_id}: selected item {selection.item.id} "
        f"(info={selection.information:.4f}, theta={selection.ability:.3f})",
        extra={"session_id": session_id},
    )
    return NextItemResponse(
        status="item_selected",
        item=ItemSchema.model_validate(selection.item),
        information=selection.information,
        ability=selection.ability,
    )


@router.post("/{session_id}/estimate", response_model=EstimateResponse)
def estimate(session_id: str, request: EstimateRequest) -> EstimateResponse:
    """Re-estimate ability from the full history and evaluate stopping rules."""
    items = _to_items(request.items)
    history = _to_history(request.history)
    lookup = {item.id: item for item in items}

    manager = CATSessionManager()
    step = manager.evaluate(
        history,
        lookup,
        max_questions=request.max_questions,
        target_se=request.target_se,
    )

    logger.info(
        f"Session {session_id}: theta={step.ability:.3f}, "
        f"SE={step.standard_error:.3f}, continue={step.should_continue}",
        extra={"session_id": session_id},
    )
    return EstimateResponse(
        ability=step.ability,
        standard_error=step.standard_error,
        continue_=step.should_continue,
        stop_reason=step.stop_reason,
        responses_used=len(resolve_responses(history, lookup)),
    )


@router.post("/{session_id}/metrics", response_model=MetricsResponse)
def metrics(session_id: str, request: MetricsRequest) -> MetricsResponse:
    """Diagnostic metrics and performance summary for a session history."""
    items = _to_items(request.items)
    history = _to_history(request.history)
    lookup = {item.id: item for item in items}

    performance = summarize_performance(history, lookup)
    final_ability = (
        request.final_ability
        if request.final_ability is not None
        else performance.final_ability
    )

    adaptive = build_metrics(history, lookup, final_ability, request.algorithm_type)

    logger.info(
        f"Session {session_id}: metrics over {len(history)} responses",
        extra={"session_id": session_id},
    )
    return MetricsResponse.from_domain(
        adaptive, TestPerformanceSchema.model_validate(performance)
    )

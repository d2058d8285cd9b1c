"""
Pydantic schemas for request/response validation.
"""
from .cat_sessions import (
    EstimateRequest,
    EstimateResponse,
    ItemSchema,
    MetricsRequest,
    MetricsResponse,
    NextItemRequest,
    NextItemResponse,
    ResponseSchema,
    SelectionConstraintsSchema,
    StrategySchema,
)

__all__ = [
    "ItemSchema",
    "ResponseSchema",
    "SelectionConstraintsSchema",
    "StrategySchema",
    "NextItemRequest",
    "NextItemResponse",
    "EstimateRequest",
    "EstimateResponse",
    "MetricsRequest",
    "MetricsResponse",
]

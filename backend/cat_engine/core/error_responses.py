"""
Standardized error response messages and builders.

Keeps user-facing error messages consistent across endpoints and separate
from log messages.

Error Message Format Guidelines:
- Use sentence case (capitalize first letter only)
- End with a period for complete sentences
- Include the offending value in parentheses when helpful: "(ID: q-12)"

Usage:
    from cat_engine.core.error_responses import ErrorMessages, raise_bad_request

    raise_bad_request(ErrorMessages.duplicate_item_id("q-12"))
"""

from typing import NoReturn

from fastapi import HTTPException, status


class ErrorMessages:
    """Centralized error message constants and templates."""

    # ==========================================================================
    # Unprocessable Errors (422)
    # ==========================================================================
    INVALID_ITEM_PARAMETERS = "Item parameters are outside their valid range."
    MISSION_BANDS_REQUIRED = (
        "The mission_aligned strategy requires at least one target band."
    )
    GOAL_SUBJECTS_REQUIRED = (
        "The goal_aligned strategy requires at least one linked subject."
    )

    # ==========================================================================
    # Server Errors (500)
    # ==========================================================================
    INTERNAL_ERROR = "Internal server error"

    @staticmethod
    def duplicate_item_id(item_id: str) -> str:
        return f"Item IDs must be unique within a request (ID: {item_id})."


def raise_bad_request(detail: str) -> NoReturn:
    """Raise a 400 Bad Request exception.

    Use for client errors where the request is well-formed but inconsistent.

    Args:
        detail: User-facing error message

    Raises:
        HTTPException: 400 Bad Request
    """
    raise HTTPException(
        status_code=status.HTTP_400_BAD_REQUEST,
        detail=detail,
    )


def raise_unprocessable(detail: str) -> NoReturn:
    """Raise a 422 Unprocessable Entity exception.

    Args:
        detail: User-facing error message

    Raises:
        HTTPException: 422 Unprocessable Entity
    """
    raise HTTPException(
        status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
        detail=detail,
    )

"""
Standardized error response messages and builders.

This module provides consistent error messages and HTTPException builders
for the API, keeping user-facing messages separate from log messages.

Error Message Format Guidelines:
- Use sentence case (capitalize first letter only)
- End with a period for complete sentences
- Include relevant IDs in parentheses when helpful for debugging: "(ID: abc)"

Usage:
    from haven_cat.core.error_responses import ErrorMessages, raise_not_found

    if session is None:
        raise_not_found(ErrorMessages.CAT_SESSION_NOT_FOUND)

    raise_conflict(ErrorMessages.item_already_answered(item_id="q-1"))
"""

from typing import NoReturn

from fastapi import HTTPException, status


class ErrorMessages:
    """Centralized error message constants and templates.

    Naming Convention:
    - Constants: SCREAMING_SNAKE_CASE for static messages
    - Methods: snake_case for templates that accept parameters
    """

    # ==========================================================================
    # Not Found Errors (404)
    # ==========================================================================
    CAT_SESSION_NOT_FOUND = "CAT session not found."

    # ==========================================================================
    # Conflict Errors (409)
    # ==========================================================================
    CONCURRENT_SUBMISSION = (
        "Another response for this session is being processed. "
        "Please retry once it completes."
    )
    STALE_SESSION = (
        "This session was updated by another request. "
        "Please reload the session and retry."
    )

    # ==========================================================================
    # Bad Request Errors (400)
    # ==========================================================================
    SESSION_NOT_IN_PROGRESS = "Only in-progress sessions can accept responses."
    SESSION_NOT_COMPLETED = "Reports are available once the session is completed."

    # ==========================================================================
    # Configuration Errors (500)
    # ==========================================================================
    ITEM_BANK_EMPTY = "No calibrated items are available in the item bank."

    # ==========================================================================
    # Template Methods for Dynamic Messages
    # ==========================================================================
    @staticmethod
    def session_already_completed(status: str) -> str:
        """Message for when trying to answer a session that is not in progress."""
        return (
            f"CAT session is already {status}. "
            "Only in-progress sessions can accept responses."
        )

    @staticmethod
    def item_not_found(item_id: str) -> str:
        return f"Item {item_id} not found in the item bank."

    @staticmethod
    def item_already_answered(item_id: str) -> str:
        return f"Item {item_id} was already answered in this session."

    @staticmethod
    def invalid_session_limits(reason: str) -> str:
        return f"Invalid session limits: {reason}."


# ==============================================================================
# HTTPException Builder Functions
# ==============================================================================


def raise_bad_request(detail: str) -> NoReturn:
    """Raise a 400 Bad Request exception.

    Use for client errors where the request is malformed or invalid.

    Args:
        detail: User-facing error message

    Raises:
        HTTPException: 400 Bad Request
    """
    raise HTTPException(
        status_code=status.HTTP_400_BAD_REQUEST,
        detail=detail,
    )


def raise_not_found(detail: str) -> NoReturn:
    """Raise a 404 Not Found exception.

    Use when a requested resource doesn't exist.

    Args:
        detail: User-facing error message

    Raises:
        HTTPException: 404 Not Found
    """
    raise HTTPException(
        status_code=status.HTTP_404_NOT_FOUND,
        detail=detail,
    )


def raise_conflict(detail: str) -> NoReturn:
    """Raise a 409 Conflict exception.

    Use when the request conflicts with current state (already answered
    items, concurrent or stale writes).

    Args:
        detail: User-facing error message

    Raises:
        HTTPException: 409 Conflict
    """
    raise HTTPException(
        status_code=status.HTTP_409_CONFLICT,
        detail=detail,
    )


def raise_not_configured(detail: str) -> NoReturn:
    """Raise a 500 error for missing server configuration.

    Use when the server cannot serve the request as configured (e.g. an
    empty item bank).

    Args:
        detail: Error message describing what's not configured

    Raises:
        HTTPException: 500 Internal Server Error
    """
    raise HTTPException(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        detail=detail,
    )

# -*- coding: utf-8 -*-
"""AgriMRV Exception Hierarchy.

Exceptions raised by the field evidence verification and carbon credit
aggregation engines. Every exception carries rich context for debugging,
monitoring and API error payloads.

Exception Hierarchy:
    AgriMRVException (base)
    ├── OwnershipError          caller does not own the referenced farmer
    ├── NotFoundError           referenced entity or image does not exist
    ├── NoEvidenceError         no verified evidence inside the credit window
    ├── ConflictError           optimistic write contention or duplicate membership
    ├── InvalidTransitionError  credit settlement regression or skipped step
    └── AnalysisFailure         image analyzer error, timeout or malformed output

``AnalysisFailure`` is internal to the verification engine: it is always
converted into the fallback decision and never surfaces to a caller.

Example:
    >>> from agrimrv.exceptions import OwnershipError
    >>> raise OwnershipError(
    ...     message="Not authorized for farmer",
    ...     farmer_id="FRM-0a1b2c3d4e5f",
    ...     user_id="user-42",
    ... )

Author: AgriMRV Platform Team
Date: October 2026
Status: Production Ready
"""

from __future__ import annotations

import json
import re
import traceback as tb
from datetime import datetime
from typing import Any, Dict, Optional


# ==============================================================================
# Base Exception
# ==============================================================================

class AgriMRVException(Exception):
    """Base exception for all AgriMRV errors.

    Attributes:
        message: Human-readable error message
        error_code: Unique error identifier (e.g., "MRV_OWNERSHIP_ERROR")
        engine: Name of the engine that raised the error (optional)
        context: Dictionary with error-specific details
        timestamp: When the error occurred
        traceback_str: Stack at the point the error was created
    """

    ERROR_PREFIX = "MRV"

    def __init__(
        self,
        message: str,
        error_code: Optional[str] = None,
        engine: Optional[str] = None,
        context: Optional[Dict[str, Any]] = None,
    ):
        """Initialize AgriMRV exception with rich context.

        Args:
            message: Human-readable error message
            error_code: Unique error identifier (auto-generated if not provided)
            engine: Name of the engine that raised the error
            context: Dictionary with error-specific details
        """
        super().__init__(message)
        self.message = message
        self.error_code = error_code or self._generate_error_code()
        self.engine = engine
        self.context = context or {}
        self.timestamp = datetime.now()
        self.traceback_str = "".join(tb.format_stack()[:-1])

    def _generate_error_code(self) -> str:
        """Generate error code from the exception class name.

        Returns:
            Error code like "MRV_NOT_FOUND_ERROR"
        """
        error_type = re.sub(r"(?<!^)(?=[A-Z])", "_", self.__class__.__name__).upper()
        return f"{self.ERROR_PREFIX}_{error_type}"

    def to_dict(self) -> Dict[str, Any]:
        """Convert exception to dictionary for serialization.

        Returns:
            Dictionary with all error details
        """
        return {
            "error_type": self.__class__.__name__,
            "error_code": self.error_code,
            "message": self.message,
            "engine": self.engine,
            "context": self.context,
            "timestamp": self.timestamp.isoformat(),
        }

    def to_json(self) -> str:
        """Convert exception to JSON string."""
        return json.dumps(self.to_dict(), indent=2, default=str)

    def __str__(self) -> str:
        parts = [f"[{self.error_code}]"]
        if self.engine:
            parts.append(f"Engine: {self.engine}")
        parts.append(self.message)
        return " - ".join(parts)

    def __repr__(self) -> str:
        return (
            f"{self.__class__.__name__}("
            f"message='{self.message}', "
            f"error_code='{self.error_code}', "
            f"engine='{self.engine}')"
        )


# ==============================================================================
# Caller-facing errors
# ==============================================================================

class OwnershipError(AgriMRVException):
    """The current identity does not own the referenced farmer.

    Also raised when no identity is present or the farmer does not exist,
    so that callers cannot probe for farmer ids they do not own.
    """

    def __init__(
        self,
        message: str = "Not authorized",
        farmer_id: Optional[str] = None,
        user_id: Optional[str] = None,
        engine: Optional[str] = None,
        context: Optional[Dict[str, Any]] = None,
    ):
        context = context or {}
        if farmer_id is not None:
            context["farmer_id"] = farmer_id
        if user_id is not None:
            context["user_id"] = user_id
        super().__init__(message, engine=engine, context=context)


class NotFoundError(AgriMRVException):
    """A referenced record, image, node or profile does not exist."""

    def __init__(
        self,
        message: str,
        entity_type: Optional[str] = None,
        entity_id: Optional[str] = None,
        engine: Optional[str] = None,
        context: Optional[Dict[str, Any]] = None,
    ):
        context = context or {}
        if entity_type is not None:
            context["entity_type"] = entity_type
        if entity_id is not None:
            context["entity_id"] = entity_id
        super().__init__(message, engine=engine, context=context)


class NoEvidenceError(AgriMRVException):
    """Credit generation found no verified evidence inside the window."""

    def __init__(
        self,
        message: str = "No verified practices found in the credit window",
        farmer_id: Optional[str] = None,
        window_days: Optional[int] = None,
        engine: Optional[str] = None,
    ):
        context: Dict[str, Any] = {}
        if farmer_id is not None:
            context["farmer_id"] = farmer_id
        if window_days is not None:
            context["window_days"] = window_days
        super().__init__(message, engine=engine, context=context)


class ConflictError(AgriMRVException):
    """A write could not be applied because of concurrent modification.

    Raised when the compare-and-swap retry budget on a node is exhausted
    and for duplicate node membership.
    """


class InvalidTransitionError(AgriMRVException):
    """A credit settlement event does not advance status by exactly one step."""

    def __init__(
        self,
        message: str,
        current_status: Optional[str] = None,
        requested_status: Optional[str] = None,
        engine: Optional[str] = None,
    ):
        context: Dict[str, Any] = {}
        if current_status is not None:
            context["current_status"] = current_status
        if requested_status is not None:
            context["requested_status"] = requested_status
        super().__init__(message, engine=engine, context=context)


# ==============================================================================
# Internal errors
# ==============================================================================

class AnalysisFailure(AgriMRVException):
    """The image analyzer failed, timed out or returned unusable output.

    Attributes:
        reason: Short machine-readable reason (timeout, analyzer_error,
            http_error, malformed).
    """

    def __init__(
        self,
        message: str,
        reason: str = "analyzer_error",
        context: Optional[Dict[str, Any]] = None,
    ):
        context = context or {}
        context["reason"] = reason
        self.reason = reason
        super().__init__(message, engine="image_analyzer", context=context)


__all__ = [
    "AgriMRVException",
    "OwnershipError",
    "NotFoundError",
    "NoEvidenceError",
    "ConflictError",
    "InvalidTransitionError",
    "AnalysisFailure",
]

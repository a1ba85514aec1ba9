"""Error codes dictionary for the render API.

This is the single source of truth for all error codes, their retryability,
and suggested recovery actions. Used by exception handlers to generate
machine-readable error responses.
"""

from typing import Any, TypedDict


class ErrorCodeSpec(TypedDict, total=False):
    """Specification for an error code."""

    retryable: bool
    suggested_action: str
    suggested_endpoint: str
    suggested_fix: str
    parameters: dict[str, Any]


ERROR_CODES: dict[str, ErrorCodeSpec] = {
    # ==========================================================================
    # Resource errors
    # ==========================================================================
    "PROJECT_NOT_FOUND": {
        "retryable": False,
        "suggested_action": "refresh_ids",
        "suggested_endpoint": "GET /api/projects",
    },
    "RENDER_JOB_NOT_FOUND": {
        "retryable": False,
        "suggested_action": "refresh_ids",
        "suggested_endpoint": "GET /api/projects/{project_id}/render/status",
    },
    "NOTIFICATION_NOT_FOUND": {
        "retryable": False,
        "suggested_endpoint": "GET /api/notifications",
    },
    # ==========================================================================
    # Validation errors (fix the request)
    # ==========================================================================
    "MISSING_PROJECT_ID": {
        "retryable": False,
        "suggested_fix": "Pass the project id as the 'projectId' query parameter",
    },
    "INVALID_DOCUMENT": {
        "retryable": False,
        "suggested_fix": "Send an edit document with a timeline.tracks array",
    },
    # ==========================================================================
    # Conflict errors (state changed underneath the request)
    # ==========================================================================
    "PROJECT_ALREADY_RENDERING": {
        "retryable": True,
        "suggested_action": "wait_for_render",
        "suggested_endpoint": "GET /api/projects/{project_id}/render/status",
        "parameters": {"delay_ms": 5000},
    },
    "INVALID_STATUS_TRANSITION": {
        "retryable": False,
        "suggested_action": "refresh_project",
        "suggested_endpoint": "GET /api/projects/{project_id}",
    },
    "CONCURRENT_MODIFICATION": {
        "retryable": True,
        "suggested_action": "refresh_project",
        "suggested_endpoint": "GET /api/projects/{project_id}",
    },
    # ==========================================================================
    # Upstream / system errors (retryable)
    # ==========================================================================
    "RENDER_DISPATCH_FAILED": {
        "retryable": True,
        "suggested_action": "retry_with_backoff",
        "parameters": {"delay_ms": 5000, "max_retries": 3},
    },
    "INTERNAL_ERROR": {
        "retryable": True,
        "suggested_action": "retry_with_backoff",
        "parameters": {"delay_ms": 2000, "max_retries": 2},
    },
    "DATABASE_ERROR": {
        "retryable": True,
        "suggested_action": "retry_with_backoff",
        "parameters": {"delay_ms": 2000, "max_retries": 2},
    },
    # ==========================================================================
    # Request errors
    # ==========================================================================
    "VALIDATION_ERROR": {
        "retryable": False,
    },
}


def get_error_spec(code: str) -> ErrorCodeSpec:
    """Get error specification by code.

    Args:
        code: The error code

    Returns:
        ErrorCodeSpec with retryable flag and suggested actions
    """
    return ERROR_CODES.get(code, {"retryable": False})

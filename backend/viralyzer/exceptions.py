"""Custom exceptions for the viralyzer backend.

Every exception carries a machine-readable error code, an HTTP status and
suggested recovery actions looked up from the error code dictionary.
"""

from typing import Any

from viralyzer.constants.error_codes import get_error_spec
from viralyzer.schemas.envelope import ErrorInfo, ErrorLocation, SuggestedAction


class ViralyzerError(Exception):
    """Base exception for all viralyzer application errors."""

    code: str = "INTERNAL_ERROR"
    status_code: int = 500
    message: str = "An unexpected error occurred"

    def __init__(
        self,
        message: str | None = None,
        *,
        code: str | None = None,
        status_code: int | None = None,
        location: ErrorLocation | None = None,
        suggested_fix: str | None = None,
    ):
        self.message = message or self.__class__.message
        if code:
            self.code = code
        if status_code:
            self.status_code = status_code
        self.location = location
        self.suggested_fix = suggested_fix
        super().__init__(self.message)

    def to_error_info(self) -> ErrorInfo:
        """Convert exception to ErrorInfo for API response."""
        spec = get_error_spec(self.code)
        retryable = spec.get("retryable", False)

        suggested_actions: list[SuggestedAction] = []
        if "suggested_action" in spec:
            action = SuggestedAction(
                action=spec["suggested_action"],
                endpoint=spec.get("suggested_endpoint"),
                parameters=spec.get("parameters", {}),
            )
            suggested_actions.append(action)

        suggested_fix = self.suggested_fix or spec.get("suggested_fix")

        return ErrorInfo(
            code=self.code,
            message=self.message,
            location=self.location,
            retryable=retryable,
            suggested_fix=suggested_fix,
            suggested_actions=suggested_actions,
        )


# =============================================================================
# Resource Not Found Errors (404)
# =============================================================================


class ResourceNotFoundError(ViralyzerError):
    """Base class for resource not found errors."""

    status_code = 404


class ProjectNotFoundError(ResourceNotFoundError):
    """Project not found."""

    code = "PROJECT_NOT_FOUND"
    message = "Project not found"

    def __init__(self, project_id: Any = None):
        message = f"Project not found: {project_id}" if project_id else self.message
        location = ErrorLocation(project_id=str(project_id)) if project_id else None
        super().__init__(message, location=location)


class RenderJobNotFoundError(ResourceNotFoundError):
    """Render job not found."""

    code = "RENDER_JOB_NOT_FOUND"
    message = "No render job found"

    def __init__(self, project_id: Any = None):
        message = f"No render job found for project: {project_id}" if project_id else self.message
        super().__init__(message)


class NotificationNotFoundError(ResourceNotFoundError):
    """Notification not found."""

    code = "NOTIFICATION_NOT_FOUND"
    message = "Notification not found"


# =============================================================================
# Validation Errors (400)
# =============================================================================


class ValidationError(ViralyzerError):
    """Base class for validation errors."""

    code = "VALIDATION_ERROR"
    status_code = 400


class MissingProjectIdError(ValidationError):
    """Callback arrived without a project identifier."""

    code = "MISSING_PROJECT_ID"
    message = "Project ID is missing from the callback URL"

    def __init__(self):
        super().__init__(location=ErrorLocation(field="projectId"))


class InvalidDocumentError(ValidationError):
    """Edit document does not satisfy the edit model."""

    code = "INVALID_DOCUMENT"
    message = "Invalid edit document"


# =============================================================================
# Conflict Errors (409)
# =============================================================================


class ConflictError(ViralyzerError):
    """Base class for conflict errors."""

    code = "CONFLICT"
    status_code = 409


class ProjectAlreadyRenderingError(ConflictError):
    """A render is already in flight for the project."""

    code = "PROJECT_ALREADY_RENDERING"
    message = "A render is already in progress for this project"

    def __init__(self, project_id: Any = None):
        location = ErrorLocation(project_id=str(project_id)) if project_id else None
        super().__init__(location=location)


class InvalidStatusTransitionError(ConflictError):
    """Requested status change is not a legal transition."""

    code = "INVALID_STATUS_TRANSITION"
    message = "Invalid project status transition"

    def __init__(self, current: str | None = None, target: str | None = None):
        message = self.message
        if current is not None and target is not None:
            message = f"Cannot move project from {current} to {target}"
        super().__init__(message, location=ErrorLocation(field="status"))


class ConcurrentModificationError(ConflictError):
    """Project was modified by another request."""

    code = "CONCURRENT_MODIFICATION"
    message = "Project was modified by another request"


# =============================================================================
# Upstream / System Errors (500/502)
# =============================================================================


class RenderDispatchError(ViralyzerError):
    """The external render service rejected or failed the request."""

    code = "RENDER_DISPATCH_FAILED"
    status_code = 502
    message = "Render service request failed"


class DatabaseError(ViralyzerError):
    """Database error."""

    code = "DATABASE_ERROR"
    status_code = 500
    message = "Database error"

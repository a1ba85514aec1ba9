"""Project status state machine.

    Idea ──────┐
               ├─> Scripting ─> Rendering ─┬─> Rendered ─┬─> Scheduled ─> Published
    Autopilot ─┘       ^                   │             └──────────────> Published
                       └──── Failed <──────┘

Rendering is entered only by the render submitter and left only by the
render callback. Explicit user actions cover every other edge.
"""

from enum import Enum

from viralyzer.exceptions import InvalidStatusTransitionError


class ProjectStatus(str, Enum):
    IDEA = "Idea"
    SCRIPTING = "Scripting"
    RENDERING = "Rendering"
    RENDERED = "Rendered"
    FAILED = "Failed"
    SCHEDULED = "Scheduled"
    PUBLISHED = "Published"
    AUTOPILOT = "Autopilot"


TRANSITIONS: dict[ProjectStatus, frozenset[ProjectStatus]] = {
    ProjectStatus.IDEA: frozenset([ProjectStatus.SCRIPTING]),
    ProjectStatus.AUTOPILOT: frozenset([ProjectStatus.SCRIPTING]),
    ProjectStatus.SCRIPTING: frozenset([ProjectStatus.RENDERING]),
    ProjectStatus.RENDERING: frozenset([ProjectStatus.RENDERED, ProjectStatus.FAILED]),
    ProjectStatus.RENDERED: frozenset([ProjectStatus.SCHEDULED, ProjectStatus.PUBLISHED]),
    ProjectStatus.SCHEDULED: frozenset([ProjectStatus.PUBLISHED]),
    ProjectStatus.FAILED: frozenset([ProjectStatus.SCRIPTING]),
    ProjectStatus.PUBLISHED: frozenset(),
}


def _coerce(status: "ProjectStatus | str") -> ProjectStatus:
    try:
        return ProjectStatus(status)
    except ValueError:
        raise InvalidStatusTransitionError(str(status), str(status)) from None


def allowed_targets(current: "ProjectStatus | str") -> frozenset[ProjectStatus]:
    return TRANSITIONS[_coerce(current)]


def can_transition(current: "ProjectStatus | str", target: "ProjectStatus | str") -> bool:
    try:
        return _coerce(target) in allowed_targets(current)
    except InvalidStatusTransitionError:
        return False


def ensure_transition(current: "ProjectStatus | str", target: "ProjectStatus | str") -> ProjectStatus:
    """Validate a transition and return the target status."""
    if not can_transition(current, target):
        raise InvalidStatusTransitionError(_label(current), _label(target))
    return _coerce(target)


def is_user_settable(current: "ProjectStatus | str", target: "ProjectStatus | str") -> bool:
    """Whether an explicit user action may perform this transition.

    Users never move a project into or out of Rendering; the submitter and
    the callback handler own those edges.
    """
    if ProjectStatus.RENDERING in (_safe(current), _safe(target)):
        return False
    return can_transition(current, target)


def accepts_submission(status: "ProjectStatus | str") -> bool:
    """A render may be submitted from any status except Rendering."""
    return _safe(status) != ProjectStatus.RENDERING


def allows_reorder(status: "ProjectStatus | str") -> bool:
    """Drag/reorder actions are disabled while a render is in flight."""
    return _safe(status) != ProjectStatus.RENDERING


def is_final(status: "ProjectStatus | str") -> bool:
    """Published has no further automated transition."""
    resolved = _safe(status)
    return resolved is not None and not TRANSITIONS[resolved]


def _safe(status: "ProjectStatus | str") -> ProjectStatus | None:
    try:
        return ProjectStatus(status)
    except ValueError:
        return None


def _label(status: "ProjectStatus | str") -> str:
    return status.value if isinstance(status, ProjectStatus) else str(status)

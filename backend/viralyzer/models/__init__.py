from viralyzer.models.base import Base
from viralyzer.models.notification import Notification
from viralyzer.models.project import Project
from viralyzer.models.render_job import RenderJob
from viralyzer.models.user import User

__all__ = [
    "Base",
    "User",
    "Project",
    "RenderJob",
    "Notification",
]

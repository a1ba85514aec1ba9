from datetime import datetime
from typing import Any
from uuid import UUID

from pydantic import BaseModel, Field, computed_field

from viralyzer.services.project_status import ProjectStatus, accepts_submission, allows_reorder


class ProjectCreate(BaseModel):
    name: str = Field(..., min_length=1, max_length=255)
    topic: str | None = None
    # Autopilot projects are driven by the pipeline instead of the board
    autopilot: bool = False


class ProjectStatusUpdate(BaseModel):
    status: ProjectStatus
    scheduled_date: datetime | None = None


class EditUpdateRequest(BaseModel):
    timeline: Any


class ProjectResponse(BaseModel):
    id: UUID
    user_id: UUID
    name: str
    topic: str | None
    status: str
    edit_document: dict[str, Any] | None = None
    render_id: str | None = None
    final_video_url: str | None = None
    published_url: str | None = None
    analysis: dict[str, Any] | None = None
    scheduled_date: datetime | None = None
    created_at: datetime
    updated_at: datetime

    class Config:
        from_attributes = True

    @computed_field  # type: ignore[prop-decorator]
    @property
    def can_submit(self) -> bool:
        return accepts_submission(self.status)

    @computed_field  # type: ignore[prop-decorator]
    @property
    def can_reorder(self) -> bool:
        return allows_reorder(self.status)


class ProjectListResponse(BaseModel):
    id: UUID
    name: str
    topic: str | None
    status: str
    final_video_url: str | None = None
    scheduled_date: datetime | None = None
    updated_at: datetime

    class Config:
        from_attributes = True


class NotificationResponse(BaseModel):
    id: UUID
    project_id: UUID
    render_id: str | None
    kind: str
    message: str
    is_read: bool
    created_at: datetime

    class Config:
        from_attributes = True

from datetime import datetime
from typing import Any
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field


class RenderSubmitRequest(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    project_id: UUID = Field(alias="projectId")
    # Raw edit document; sanitized server-side before anything else
    timeline: Any = None


class RenderSubmitResponse(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    job_id: UUID = Field(alias="jobId")
    render_id: str | None = Field(default=None, alias="renderId")
    status: str


class RenderCallbackPayload(BaseModel):
    """Body the render service posts when a job changes state."""

    model_config = ConfigDict(extra="allow")

    id: str | None = None
    status: str
    url: str | None = None
    data: Any = None
    error: Any = None

    @property
    def error_message(self) -> str | None:
        if isinstance(self.error, dict):
            message = self.error.get("message")
            return message if isinstance(message, str) and message else None
        if isinstance(self.error, str) and self.error:
            return self.error
        return None


class RenderCallbackResponse(BaseModel):
    success: bool = True
    applied: bool


class RenderJobResponse(BaseModel):
    id: UUID
    project_id: UUID
    user_id: UUID
    status: str
    external_id: str | None
    output_url: str | None
    error_message: str | None
    created_at: datetime
    updated_at: datetime

    class Config:
        from_attributes = True


class RenderStatusResponse(BaseModel):
    project_status: str
    job: RenderJobResponse | None = None
    # Live status from the render service, when it could be reached
    service_status: str | None = None
    service_url: str | None = None

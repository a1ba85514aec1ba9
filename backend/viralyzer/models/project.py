import uuid
from datetime import datetime
from typing import Any

from sqlalchemy import DateTime, ForeignKey, String, Text, Uuid
from sqlalchemy.orm import Mapped, mapped_column, relationship

from viralyzer.models.base import Base, JSONType, TimestampMixin, UUIDMixin


class Project(Base, UUIDMixin, TimestampMixin):
    __tablename__ = "projects"

    user_id: Mapped[uuid.UUID] = mapped_column(
        Uuid(as_uuid=True), ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True
    )
    name: Mapped[str] = mapped_column(String(255), nullable=False)
    topic: Mapped[str | None] = mapped_column(Text, nullable=True)

    # Status: Idea, Scripting, Rendering, Rendered, Failed, Scheduled, Published, Autopilot
    status: Mapped[str] = mapped_column(String(50), default="Idea", nullable=False, index=True)

    # Sanitized edit document (output + timeline), stored verbatim
    edit_document: Mapped[dict[str, Any] | None] = mapped_column(JSONType, nullable=True)

    # Render service job id of the most recent submission
    render_id: Mapped[str | None] = mapped_column(String(100), nullable=True, index=True)

    # Completion fields, cleared on every new submission
    final_video_url: Mapped[str | None] = mapped_column(Text, nullable=True)
    published_url: Mapped[str | None] = mapped_column(Text, nullable=True)
    analysis: Mapped[dict[str, Any] | None] = mapped_column(JSONType, nullable=True)

    scheduled_date: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)

    # Relationships
    user: Mapped["User"] = relationship("User", back_populates="projects")  # noqa: F821
    render_jobs: Mapped[list["RenderJob"]] = relationship(  # noqa: F821
        "RenderJob", back_populates="project", cascade="all, delete-orphan"
    )

    def __repr__(self) -> str:
        return f"<Project {self.name} ({self.status})>"

import uuid
from typing import Any

from sqlalchemy import ForeignKey, String, Text, Uuid
from sqlalchemy.orm import Mapped, mapped_column, relationship

from viralyzer.models.base import Base, JSONType, TimestampMixin, UUIDMixin


class RenderJob(Base, UUIDMixin, TimestampMixin):
    """Durable record of one render request. Rows are never deleted."""

    __tablename__ = "video_jobs"

    project_id: Mapped[uuid.UUID] = mapped_column(
        Uuid(as_uuid=True),
        ForeignKey("projects.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    user_id: Mapped[uuid.UUID] = mapped_column(
        Uuid(as_uuid=True), ForeignKey("users.id", ondelete="CASCADE"), nullable=False
    )

    # Status: queued, rendering, done, failed
    status: Mapped[str] = mapped_column(String(50), default="queued", nullable=False, index=True)

    # Sanitized edit document sent to the render service
    job_payload: Mapped[dict[str, Any]] = mapped_column(JSONType, nullable=False)

    # Render service job id, set once dispatch succeeds
    external_id: Mapped[str | None] = mapped_column(String(100), nullable=True, index=True)

    # Output
    output_url: Mapped[str | None] = mapped_column(Text, nullable=True)

    # Error handling
    error_message: Mapped[str | None] = mapped_column(Text, nullable=True)

    # Relationships
    project: Mapped["Project"] = relationship("Project", back_populates="render_jobs")  # noqa: F821

    def __repr__(self) -> str:
        return f"<RenderJob {self.id} ({self.status})>"

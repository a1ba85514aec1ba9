import uuid
from datetime import datetime

from sqlalchemy import Boolean, DateTime, ForeignKey, String, Text, UniqueConstraint, Uuid
from sqlalchemy.orm import Mapped, mapped_column, relationship

from viralyzer.models.base import Base, UUIDMixin, utcnow


class Notification(Base, UUIDMixin):
    """User-facing message created when a render finishes or fails.

    ``(project_id, render_id, kind)`` is unique so that a render callback
    delivered more than once produces a single notification.
    """

    __tablename__ = "notifications"
    __table_args__ = (
        UniqueConstraint("project_id", "render_id", "kind", name="uq_notifications_project_render_kind"),
    )

    user_id: Mapped[uuid.UUID] = mapped_column(
        Uuid(as_uuid=True), ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True
    )
    project_id: Mapped[uuid.UUID] = mapped_column(
        Uuid(as_uuid=True), ForeignKey("projects.id", ondelete="CASCADE"), nullable=False, index=True
    )
    render_id: Mapped[str | None] = mapped_column(String(100), nullable=True)

    # Kind: render_done, render_failed
    kind: Mapped[str] = mapped_column(String(50), nullable=False)
    message: Mapped[str] = mapped_column(Text, nullable=False)
    is_read: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=utcnow, nullable=False
    )

    # Relationships
    user: Mapped["User"] = relationship("User", back_populates="notifications")  # noqa: F821

    def __repr__(self) -> str:
        return f"<Notification {self.kind} (project={self.project_id})>"

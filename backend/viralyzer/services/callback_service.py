"""Render completion callbacks.

The render service calls back with ``?projectId=<id>`` and a body carrying
the render id and its final status. Only ``done`` and ``failed`` change
anything; intermediate statuses are acknowledged and ignored.

Project update, job row update and notification are committed together.
A repeated callback re-applies the same values and finds the notification
already present, so it leaves one notification per outcome. A callback for
an older render that arrives while a newer one is in flight only finishes
its own job row.
"""

import logging
from dataclasses import dataclass
from typing import Any
from uuid import UUID

from sqlalchemy import select, update
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from viralyzer.exceptions import (
    DatabaseError,
    MissingProjectIdError,
    ProjectNotFoundError,
)
from viralyzer.models.notification import Notification
from viralyzer.models.project import Project
from viralyzer.models.render_job import RenderJob
from viralyzer.schemas.render import RenderCallbackPayload
from viralyzer.services.event_manager import (
    RENDER_COMPLETED,
    RENDER_FAILED,
    ProjectEventManager,
    event_manager,
)
from viralyzer.services.project_status import ProjectStatus

logger = logging.getLogger(__name__)

NOTIFICATION_RENDER_DONE = "render_done"
NOTIFICATION_RENDER_FAILED = "render_failed"
UNKNOWN_RENDER_ERROR = "Unknown render error"


def success_message(project_name: str) -> str:
    return f'Your video "{project_name}" has finished rendering and is ready for analysis!'


def failure_message(project_name: str, reason: str | None) -> str:
    return f'Rendering failed for your video "{project_name}". Reason: {reason or UNKNOWN_RENDER_ERROR}'


@dataclass
class CallbackResult:
    applied: bool
    status: str
    notification_created: bool = False


class RenderCallbackHandler:
    def __init__(self, db: AsyncSession, events: ProjectEventManager | None = None) -> None:
        self.db = db
        self.events = events or event_manager

    async def handle(self, project_id: Any, payload: RenderCallbackPayload) -> CallbackResult:
        if project_id is None or not str(project_id).strip():
            raise MissingProjectIdError()
        try:
            pid = project_id if isinstance(project_id, UUID) else UUID(str(project_id).strip())
        except ValueError:
            raise ProjectNotFoundError(project_id)

        if payload.status not in ("done", "failed"):
            logger.info(f"Ignoring render callback with status '{payload.status}' for project {pid}")
            return CallbackResult(applied=False, status=payload.status)

        project = await self.db.scalar(select(Project).where(Project.id == pid))
        if project is None:
            raise ProjectNotFoundError(pid)

        if project.render_id and payload.id and project.render_id != payload.id:
            if project.status == ProjectStatus.RENDERING.value:
                logger.warning(
                    f"Callback for render {payload.id} arrived while render {project.render_id} "
                    f"of project {pid} is in flight; updating its job row only"
                )
                await self._finish_superseded_job(pid, payload)
                return CallbackResult(applied=False, status=ProjectStatus.RENDERING.value)
            logger.warning(
                f"Callback for render {payload.id} does not match current render "
                f"{project.render_id} of project {pid}; applying anyway"
            )
        if project.status not in (ProjectStatus.RENDERING.value, ProjectStatus.RENDERED.value, ProjectStatus.FAILED.value):
            logger.warning(f"Render callback for project {pid} arrived while status is {project.status}")

        render_id = payload.id or project.render_id
        if payload.status == "done":
            new_status = ProjectStatus.RENDERED.value
            kind = NOTIFICATION_RENDER_DONE
            message = success_message(project.name)
        else:
            new_status = ProjectStatus.FAILED.value
            kind = NOTIFICATION_RENDER_FAILED
            message = failure_message(project.name, payload.error_message)

        try:
            project.status = new_status
            if payload.status == "done":
                project.final_video_url = payload.url

            if render_id:
                await self._update_job(pid, render_id, payload)

            created = await self._add_notification(project, render_id, kind, message)
            await self.db.commit()
        except SQLAlchemyError as e:
            await self.db.rollback()
            logger.exception(f"Failed to apply render callback for project {pid}")
            raise DatabaseError(f"Failed to apply render callback: {e}") from e

        logger.info(f"Project {pid} -> {new_status} (render {render_id})")
        await self.events.publish(
            pid,
            RENDER_COMPLETED if payload.status == "done" else RENDER_FAILED,
            data={"status": new_status, "render_id": render_id, "url": payload.url},
        )
        return CallbackResult(applied=True, status=new_status, notification_created=created)

    async def _update_job(self, project_id: UUID, render_id: str, payload: RenderCallbackPayload) -> None:
        values: dict[str, Any] = {"status": payload.status}
        if payload.status == "done":
            values["output_url"] = payload.url
        else:
            values["error_message"] = payload.error_message or UNKNOWN_RENDER_ERROR
        await self.db.execute(
            update(RenderJob)
            .where(RenderJob.project_id == project_id, RenderJob.external_id == render_id)
            .values(**values)
        )

    async def _finish_superseded_job(self, project_id: UUID, payload: RenderCallbackPayload) -> None:
        """Record the outcome of a render that a newer submission replaced."""
        try:
            await self._update_job(project_id, payload.id, payload)
            await self.db.commit()
        except SQLAlchemyError as e:
            await self.db.rollback()
            logger.exception(f"Failed to record superseded render {payload.id} for project {project_id}")
            raise DatabaseError(f"Failed to apply render callback: {e}") from e

    async def _add_notification(
        self, project: Project, render_id: str | None, kind: str, message: str
    ) -> bool:
        """Insert the outcome notification unless it already exists."""
        existing = await self.db.scalar(
            select(Notification.id).where(
                Notification.project_id == project.id,
                Notification.render_id == render_id,
                Notification.kind == kind,
            )
        )
        if existing is not None:
            logger.info(f"Notification {kind} for render {render_id} already exists")
            return False

        try:
            async with self.db.begin_nested():
                self.db.add(
                    Notification(
                        user_id=project.user_id,
                        project_id=project.id,
                        render_id=render_id,
                        kind=kind,
                        message=message,
                    )
                )
        except IntegrityError:
            # Concurrent duplicate callback won the insert
            logger.info(f"Notification {kind} for render {render_id} inserted concurrently")
            return False
        return True

"""Render submission.

Turns an edit document into a render request:

1. sanitize and validate the document
2. store it on the project and flip the status to Rendering (compare-and-swap)
3. insert a queued ``video_jobs`` row
4. dispatch to the render service and record its job id

If step 3 or 4 fails the project status is restored to its pre-submission
value so a project is never left showing Rendering with nothing in flight.
A job row that was already inserted stays ``queued`` for a later retry.
"""

import copy
import logging
from typing import Any
from uuid import UUID

from sqlalchemy import select, update
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from viralyzer.config import Settings, get_settings
from viralyzer.exceptions import (
    ConcurrentModificationError,
    DatabaseError,
    ProjectAlreadyRenderingError,
    ProjectNotFoundError,
    RenderDispatchError,
    ViralyzerError,
)
from viralyzer.models.project import Project
from viralyzer.models.render_job import RenderJob
from viralyzer.schemas.timeline import default_output
from viralyzer.services.draft_cache import DraftCache
from viralyzer.services.event_manager import RENDER_STARTED, ProjectEventManager, event_manager
from viralyzer.services.project_status import ProjectStatus, accepts_submission
from viralyzer.services.render_client import RenderServiceClient, build_callback_url
from viralyzer.services.sanitizer import parse_edit_document, sanitize

logger = logging.getLogger(__name__)


class RenderJobSubmitter:
    """Stateless per-request submitter; all coordination goes through the database."""

    def __init__(
        self,
        db: AsyncSession,
        client: RenderServiceClient | None = None,
        *,
        draft_cache: DraftCache | None = None,
        events: ProjectEventManager | None = None,
        settings: Settings | None = None,
    ) -> None:
        self.db = db
        self.settings = settings or get_settings()
        self.client = client or RenderServiceClient(self.settings)
        self.draft_cache = draft_cache
        self.events = events or event_manager

    def build_payload(self, project_id: UUID, document: dict[str, Any]) -> dict[str, Any]:
        """Render request body: the sanitized edit plus output defaults and callback."""
        payload = copy.deepcopy(document)
        output = payload.get("output")
        if not isinstance(output, dict):
            output = {}
        if not output.get("size"):
            output["size"] = default_output(
                self.settings.render_output_width,
                self.settings.render_output_height,
            ).size.model_dump()
        output.setdefault("format", self.settings.render_output_format)
        payload["output"] = output
        payload["callback"] = build_callback_url(project_id, self.settings)
        return payload

    async def submit(self, project_id: UUID, raw_document: Any, user_id: UUID) -> RenderJob:
        project = await self._get_project(project_id)
        prior_status = project.status
        if not accepts_submission(prior_status):
            raise ProjectAlreadyRenderingError(project_id)

        document = sanitize(raw_document)
        parse_edit_document(document)
        payload = self.build_payload(project_id, document)

        await self._start_rendering(project_id, prior_status, document)
        logger.info(f"Project {project_id} moved {prior_status} -> Rendering")

        job = RenderJob(
            project_id=project_id,
            user_id=user_id,
            status="queued",
            job_payload=document,
        )
        try:
            self.db.add(job)
            await self.db.commit()
        except SQLAlchemyError as e:
            logger.exception(f"Failed to insert render job for project {project_id}")
            await self.db.rollback()
            await self._restore_status(project_id, prior_status)
            raise DatabaseError(f"Failed to create render job: {e}") from e

        try:
            render_id = await self.client.submit(payload)
        except Exception as e:
            logger.error(f"Render dispatch failed for project {project_id} (job {job.id}): {e}")
            await self._restore_status(project_id, prior_status)
            if isinstance(e, ViralyzerError):
                raise
            raise RenderDispatchError(f"Render dispatch failed: {e}") from e

        job.external_id = render_id
        await self.db.execute(
            update(Project)
            .where(Project.id == project_id)
            .values(render_id=render_id)
        )
        await self.db.commit()
        logger.info(f"Render {render_id} queued for project {project_id} (job {job.id})")

        if self.draft_cache is not None:
            self.draft_cache.delete(project_id)
        await self.events.publish(
            project_id,
            RENDER_STARTED,
            data={"job_id": str(job.id), "render_id": render_id},
        )
        return job

    async def _get_project(self, project_id: UUID) -> Project:
        result = await self.db.execute(select(Project).where(Project.id == project_id))
        project = result.scalar_one_or_none()
        if project is None:
            raise ProjectNotFoundError(project_id)
        return project

    async def _start_rendering(self, project_id: UUID, prior_status: str, document: dict[str, Any]) -> None:
        """Store the edit and flip to Rendering only if the status is unchanged."""
        result = await self.db.execute(
            update(Project)
            .where(Project.id == project_id, Project.status == prior_status)
            .values(
                status=ProjectStatus.RENDERING.value,
                edit_document=document,
                render_id=None,
                final_video_url=None,
                published_url=None,
                analysis=None,
            )
        )
        if result.rowcount == 0:
            await self.db.rollback()
            current = await self.db.scalar(select(Project.status).where(Project.id == project_id))
            if current is None:
                raise ProjectNotFoundError(project_id)
            if current == ProjectStatus.RENDERING.value:
                raise ProjectAlreadyRenderingError(project_id)
            raise ConcurrentModificationError(
                f"Project {project_id} changed from {prior_status} to {current} during submission"
            )
        await self.db.commit()

    async def _restore_status(self, project_id: UUID, prior_status: str) -> None:
        try:
            await self.db.execute(
                update(Project)
                .where(Project.id == project_id, Project.status == ProjectStatus.RENDERING.value)
                .values(status=prior_status)
            )
            await self.db.commit()
            logger.info(f"Project {project_id} rolled back to {prior_status}")
        except SQLAlchemyError:
            await self.db.rollback()
            logger.exception(f"Failed to roll back status of project {project_id} to {prior_status}")
            raise

import logging
from collections.abc import AsyncGenerator
from uuid import UUID

from fastapi import APIRouter, Request, status
from fastapi.responses import StreamingResponse
from sqlalchemy import select, update

from viralyzer.api.access import get_accessible_project
from viralyzer.api.deps import CurrentUser, DbSession, RenderClient
from viralyzer.exceptions import (
    ConcurrentModificationError,
    InvalidStatusTransitionError,
    ProjectAlreadyRenderingError,
    RenderDispatchError,
    RenderJobNotFoundError,
)
from viralyzer.models.project import Project
from viralyzer.models.render_job import RenderJob
from viralyzer.schemas.project import (
    EditUpdateRequest,
    ProjectCreate,
    ProjectListResponse,
    ProjectResponse,
    ProjectStatusUpdate,
)
from viralyzer.schemas.render import RenderJobResponse, RenderStatusResponse
from viralyzer.services.event_manager import EDIT_SAVED, STATUS_CHANGED, event_manager
from viralyzer.services.project_status import (
    ProjectStatus,
    accepts_submission,
    is_user_settable,
)
from viralyzer.services.sanitizer import sanitize

logger = logging.getLogger(__name__)

router = APIRouter()


@router.get("", response_model=list[ProjectListResponse])
async def list_projects(
    current_user: CurrentUser,
    db: DbSession,
) -> list[ProjectListResponse]:
    """List all projects for the current user."""
    result = await db.execute(
        select(Project)
        .where(Project.user_id == current_user.id)
        .order_by(Project.updated_at.desc())
    )
    return [ProjectListResponse.model_validate(p) for p in result.scalars().all()]


@router.post("", response_model=ProjectResponse, status_code=status.HTTP_201_CREATED)
async def create_project(
    project_data: ProjectCreate,
    current_user: CurrentUser,
    db: DbSession,
) -> ProjectResponse:
    """Create a new project."""
    initial = ProjectStatus.AUTOPILOT if project_data.autopilot else ProjectStatus.IDEA
    project = Project(
        user_id=current_user.id,
        name=project_data.name,
        topic=project_data.topic,
        status=initial.value,
    )
    db.add(project)
    await db.flush()
    await db.refresh(project)
    logger.info(f"Project {project.id} created ({initial.value})")
    return ProjectResponse.model_validate(project)


@router.get("/{project_id}", response_model=ProjectResponse)
async def get_project(
    project_id: UUID,
    current_user: CurrentUser,
    db: DbSession,
) -> ProjectResponse:
    """Get a project by ID."""
    project = await get_accessible_project(project_id, current_user.id, db)
    return ProjectResponse.model_validate(project)


@router.put("/{project_id}/edit", response_model=ProjectResponse)
async def update_edit(
    project_id: UUID,
    request: EditUpdateRequest,
    current_user: CurrentUser,
    db: DbSession,
) -> ProjectResponse:
    """Store a draft edit document. Not allowed while a render is in flight."""
    project = await get_accessible_project(project_id, current_user.id, db)
    if not accepts_submission(project.status):
        raise ProjectAlreadyRenderingError(project_id)

    document = sanitize(request.timeline)
    result = await db.execute(
        update(Project)
        .where(Project.id == project_id, Project.status != ProjectStatus.RENDERING.value)
        .values(edit_document=document)
    )
    if result.rowcount == 0:
        raise ProjectAlreadyRenderingError(project_id)
    await db.commit()
    await db.refresh(project)

    await event_manager.publish(project_id, EDIT_SAVED)
    return ProjectResponse.model_validate(project)


@router.patch("/{project_id}/status", response_model=ProjectResponse)
async def update_status(
    project_id: UUID,
    request: ProjectStatusUpdate,
    current_user: CurrentUser,
    db: DbSession,
) -> ProjectResponse:
    """Apply an explicit user status action (drag on the board, publish, etc.)."""
    project = await get_accessible_project(project_id, current_user.id, db)
    current = project.status
    target = request.status

    if not is_user_settable(current, target):
        raise InvalidStatusTransitionError(current, target.value)

    values: dict = {"status": target.value}
    if target == ProjectStatus.SCHEDULED and request.scheduled_date is not None:
        values["scheduled_date"] = request.scheduled_date

    result = await db.execute(
        update(Project)
        .where(Project.id == project_id, Project.status == current)
        .values(**values)
    )
    if result.rowcount == 0:
        raise ConcurrentModificationError(f"Project {project_id} changed status during update")
    await db.commit()
    await db.refresh(project)

    logger.info(f"Project {project_id} moved {current} -> {target.value} by user {current_user.id}")
    await event_manager.publish(
        project_id, STATUS_CHANGED, data={"from": current, "to": target.value}
    )
    return ProjectResponse.model_validate(project)


@router.get("/{project_id}/render/status", response_model=RenderStatusResponse)
async def get_render_status(
    project_id: UUID,
    current_user: CurrentUser,
    db: DbSession,
    client: RenderClient,
) -> RenderStatusResponse:
    """Latest render job of the project, refreshed from the render service when possible."""
    project = await get_accessible_project(project_id, current_user.id, db)

    result = await db.execute(
        select(RenderJob)
        .where(RenderJob.project_id == project_id)
        .order_by(RenderJob.created_at.desc())
        .limit(1)
    )
    job = result.scalar_one_or_none()
    if job is None:
        raise RenderJobNotFoundError(project_id)

    response = RenderStatusResponse(project_status=project.status)
    if job.external_id and job.status in ("queued", "rendering"):
        try:
            live = await client.get_status(job.external_id)
        except RenderDispatchError as e:
            logger.warning(f"Could not poll render {job.external_id} for project {project_id}: {e}")
        else:
            response.service_status = live.status
            response.service_url = live.url
            if job.status == "queued" and not live.is_terminal and live.status not in ("submitted", "queued"):
                job.status = "rendering"
                await db.commit()

    response.job = RenderJobResponse.model_validate(job)
    return response


async def _event_stream(request: Request, project_id: UUID) -> AsyncGenerator[str, None]:
    yield ": connected\n\n"
    async for event in event_manager.subscribe(project_id):
        if await request.is_disconnected():
            break
        yield event.to_sse()


@router.get("/{project_id}/events")
async def stream_project_events(
    project_id: UUID,
    request: Request,
    current_user: CurrentUser,
    db: DbSession,
) -> StreamingResponse:
    """Server-Sent Events stream of render and status changes for one project."""
    await get_accessible_project(project_id, current_user.id, db)
    return StreamingResponse(
        _event_stream(request, project_id),
        media_type="text/event-stream",
        headers={"Cache-Control": "no-cache", "X-Accel-Buffering": "no"},
    )

"""Render API endpoints: submission to the external render service and its callback."""

import logging

from fastapi import APIRouter, Query, status

from viralyzer.api.access import get_accessible_project
from viralyzer.api.deps import CurrentUser, DbSession, DraftCacheDep, RenderClient
from viralyzer.exceptions import MissingProjectIdError
from viralyzer.schemas.render import (
    RenderCallbackPayload,
    RenderCallbackResponse,
    RenderSubmitRequest,
    RenderSubmitResponse,
)
from viralyzer.services.callback_service import RenderCallbackHandler
from viralyzer.services.render_service import RenderJobSubmitter

router = APIRouter()
logger = logging.getLogger(__name__)


@router.post(
    "/render",
    response_model=RenderSubmitResponse,
    status_code=status.HTTP_202_ACCEPTED,
)
async def submit_render(
    request: RenderSubmitRequest,
    current_user: CurrentUser,
    db: DbSession,
    client: RenderClient,
    draft_cache: DraftCacheDep,
) -> RenderSubmitResponse:
    """Queue a render of the project's edit document.

    Returns as soon as the render service has accepted the job; completion
    arrives later through ``/render/callback``.
    """
    await get_accessible_project(request.project_id, current_user.id, db)

    submitter = RenderJobSubmitter(db, client, draft_cache=draft_cache)
    job = await submitter.submit(request.project_id, request.timeline, current_user.id)
    return RenderSubmitResponse(job_id=job.id, render_id=job.external_id, status=job.status)


@router.post("/render/callback", response_model=RenderCallbackResponse)
async def render_callback(
    payload: RenderCallbackPayload,
    db: DbSession,
    project_id: str | None = Query(default=None, alias="projectId"),
) -> RenderCallbackResponse:
    """Completion webhook called by the render service (unauthenticated)."""
    if not project_id:
        logger.error(f"Render callback for render {payload.id} arrived without projectId")
        raise MissingProjectIdError()

    result = await RenderCallbackHandler(db).handle(project_id, payload)
    return RenderCallbackResponse(success=True, applied=result.applied)

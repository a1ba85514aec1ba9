"""Project access control."""

from uuid import UUID

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from viralyzer.exceptions import ProjectNotFoundError
from viralyzer.models.project import Project


async def get_accessible_project(
    project_id: UUID,
    user_id: UUID,
    db: AsyncSession,
) -> Project:
    """Get a project if the user owns it.

    Raises:
        ProjectNotFoundError: If the project does not exist or belongs to someone else
    """
    result = await db.execute(
        select(Project).where(Project.id == project_id)
    )
    project = result.scalar_one_or_none()

    if project is None or project.user_id != user_id:
        raise ProjectNotFoundError(project_id)

    return project

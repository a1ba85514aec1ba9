from typing import Annotated, Optional

import firebase_admin
from fastapi import Depends, HTTPException, status
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from firebase_admin import auth as firebase_auth
from firebase_admin import credentials
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from viralyzer.config import get_settings
from viralyzer.models.database import get_db
from viralyzer.models.user import User
from viralyzer.services.draft_cache import DraftCache, get_draft_cache
from viralyzer.services.render_client import RenderServiceClient

settings = get_settings()

# Initialize Firebase Admin SDK
_firebase_app = None


def get_firebase_app() -> firebase_admin.App:
    global _firebase_app
    if _firebase_app is None:
        try:
            _firebase_app = firebase_admin.get_app()
        except ValueError:
            # App not initialized yet
            if settings.firebase_project_id:
                cred = credentials.ApplicationDefault()
                _firebase_app = firebase_admin.initialize_app(
                    cred, {"projectId": settings.firebase_project_id}
                )
            else:
                _firebase_app = firebase_admin.initialize_app()
    return _firebase_app


# Use auto_error=False to allow dev token bypass
security = HTTPBearer(auto_error=False)

# DEV_USER token constant
DEV_TOKEN = "dev-token"


async def _get_or_create_user(
    db: AsyncSession, firebase_uid: str, email: str, name: str, avatar_url: str | None = None
) -> User:
    result = await db.execute(select(User).where(User.firebase_uid == firebase_uid))
    user = result.scalar_one_or_none()
    if user is None:
        user = User(firebase_uid=firebase_uid, email=email, name=name, avatar_url=avatar_url)
        db.add(user)
        await db.flush()
    return user


async def get_current_user(
    credentials: Annotated[Optional[HTTPAuthorizationCredentials], Depends(security)],
    db: Annotated[AsyncSession, Depends(get_db)],
) -> User:
    """Resolve the calling user from a Firebase ID token.

    In dev mode the ``dev-token`` (or no token at all) maps to a local dev user.
    """
    if settings.dev_mode:
        token = credentials.credentials if credentials else None
        if token == DEV_TOKEN or token is None:
            return await _get_or_create_user(
                db, settings.dev_user_id, settings.dev_user_email, settings.dev_user_name
            )

    if not credentials:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Missing authentication token",
            headers={"WWW-Authenticate": "Bearer"},
        )

    try:
        get_firebase_app()
        decoded_token = firebase_auth.verify_id_token(credentials.credentials)
        firebase_uid = decoded_token["uid"]
        email = decoded_token.get("email", "")
        name = decoded_token.get("name", email.split("@")[0])
    except Exception as e:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail=f"Invalid authentication token: {e}",
            headers={"WWW-Authenticate": "Bearer"},
        )

    return await _get_or_create_user(db, firebase_uid, email, name, decoded_token.get("picture"))


def get_render_client() -> RenderServiceClient:
    return RenderServiceClient(settings)


CurrentUser = Annotated[User, Depends(get_current_user)]
DbSession = Annotated[AsyncSession, Depends(get_db)]
RenderClient = Annotated[RenderServiceClient, Depends(get_render_client)]
DraftCacheDep = Annotated[DraftCache, Depends(get_draft_cache)]

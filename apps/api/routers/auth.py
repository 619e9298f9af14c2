"""
Authentication router: verify a provider sign-in, sync the profile and issue a session token.
"""

import logging
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException
from pydantic import BaseModel
from sqlalchemy.ext.asyncio import AsyncSession

from config import is_admin_email
from database import get_db
from routers.auth_scope import AuthContext, get_auth_context
from services.identity_token import IdentityTokenError, verify_identity_token
from services.profiles import get_user, upsert_profile
from services.session_token import create_session_token

router = APIRouter()
logger = logging.getLogger(__name__)


class SyncSessionRequest(BaseModel):
    id_token: str
    display_name: Optional[str] = None
    avatar_url: Optional[str] = None


class SyncSessionResponse(BaseModel):
    user_id: str
    email: str
    display_name: Optional[str] = None
    is_admin: bool = False
    session_token: str
    session_expires_at: int


class CurrentUserResponse(BaseModel):
    user_id: str
    email: str
    display_name: Optional[str] = None
    avatar_url: Optional[str] = None
    is_admin: bool = False


@router.post("/session", response_model=SyncSessionResponse)
async def sync_session(
    request: SyncSessionRequest,
    db: AsyncSession = Depends(get_db),
):
    """
    Persist a provider sign-in as a member profile and return a backend session token.

    Member id and email come only from the verified ID token.
    """
    try:
        identity = await verify_identity_token(request.id_token)
    except IdentityTokenError as exc:
        logger.info("Rejected sign-in: %s", exc)
        raise HTTPException(status_code=401, detail=str(exc)) from exc

    user = await upsert_profile(
        db,
        email=identity.email,
        user_id=identity.user_id,
        display_name=request.display_name or identity.name,
        avatar_url=request.avatar_url or identity.picture,
    )
    session = create_session_token(user.id, user.email, user.display_name)
    return SyncSessionResponse(
        user_id=user.id,
        email=user.email,
        display_name=user.display_name,
        is_admin=is_admin_email(user.email),
        session_token=session["token"],
        session_expires_at=session["expires_at"],
    )


@router.get("/me", response_model=CurrentUserResponse)
async def get_current_user(
    auth: AuthContext = Depends(get_auth_context),
    db: AsyncSession = Depends(get_db),
):
    """Get the signed-in member and whether they can moderate."""
    user = await get_user(auth.user_id, db)
    return CurrentUserResponse(
        user_id=user.id,
        email=user.email,
        display_name=user.display_name,
        avatar_url=user.avatar_url,
        is_admin=is_admin_email(user.email),
    )


@router.post("/logout")
async def logout(_auth: AuthContext = Depends(get_auth_context)):
    """Frontend-managed logout acknowledgment endpoint."""
    return {"message": "Logged out successfully"}

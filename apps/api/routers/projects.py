"""
Project showcase router.
"""

import logging
from typing import Dict, List, Optional

from fastapi import APIRouter, Depends, HTTPException
from pydantic import BaseModel
from sqlalchemy.ext.asyncio import AsyncSession

from database import get_db
from routers.auth_scope import AuthContext, get_auth_context
from services.profiles import ensure_profile
from services.projects import create_project, delete_project, get_project, list_projects, update_project

router = APIRouter()
logger = logging.getLogger(__name__)


class ProjectFields(BaseModel):
    name: Optional[str] = None
    description: Optional[str] = None
    type_of_sharing: Optional[str] = None
    shape: Optional[str] = None
    color: Optional[str] = None
    kind_of_project: Optional[str] = None
    tags: Optional[List[str]] = None
    size: Optional[str] = None
    location: Optional[str] = None
    images: Optional[List[str]] = None
    links: Optional[Dict[str, str]] = None
    contact_person: Optional[Dict[str, str]] = None


@router.get("")
async def list_all_projects(db: AsyncSession = Depends(get_db)):
    items = await list_projects(db)
    return {"items": items, "count": len(items)}


@router.post("")
async def add_project(
    request: ProjectFields,
    auth: AuthContext = Depends(get_auth_context),
    db: AsyncSession = Depends(get_db),
):
    await ensure_profile(db, auth.user_id, auth.email, auth.name)
    try:
        return await create_project(
            request.model_dump(exclude_none=True),
            owner_id=auth.user_id,
            owner_name=auth.display_name,
            db=db,
        )
    except HTTPException:
        raise
    except Exception:
        logger.exception("Project creation failed for %s", auth.user_id)
        raise HTTPException(status_code=500, detail="Failed to create project.")


@router.get("/mine")
async def my_projects(
    auth: AuthContext = Depends(get_auth_context),
    db: AsyncSession = Depends(get_db),
):
    items = await list_projects(db, owner_id=auth.user_id)
    return {"items": items, "count": len(items)}


@router.get("/{project_id}")
async def read_project(project_id: str, db: AsyncSession = Depends(get_db)):
    return await get_project(project_id, db)


@router.patch("/{project_id}")
async def edit_project(
    project_id: str,
    request: ProjectFields,
    auth: AuthContext = Depends(get_auth_context),
    db: AsyncSession = Depends(get_db),
):
    return await update_project(project_id, auth.user_id, request.model_dump(exclude_none=True), db)


@router.delete("/{project_id}")
async def remove_project(
    project_id: str,
    auth: AuthContext = Depends(get_auth_context),
    db: AsyncSession = Depends(get_db),
):
    await delete_project(project_id, auth.user_id, db)
    return {"ok": True}

"""Project showcase CRUD with the community's content limits."""

from __future__ import annotations

from datetime import datetime, timezone
from typing import Any, Dict, List, Optional
import uuid

from fastapi import HTTPException
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.future import select

from models.project import Project

MAX_NAME_WORDS = 10
MAX_DESCRIPTION_WORDS = 50
MAX_TAGS = 5
EDITABLE_FIELDS = (
    "name",
    "description",
    "type_of_sharing",
    "shape",
    "color",
    "kind_of_project",
    "tags",
    "size",
    "location",
    "images",
    "links",
    "contact_person",
)


def count_words(text: Optional[str]) -> int:
    return len(str(text or "").split())


def serialize_project(project: Project) -> Dict[str, Any]:
    return {
        "id": project.id,
        "owner_id": project.owner_id,
        "owner_name": project.owner_name,
        "name": project.name,
        "description": project.description,
        "type_of_sharing": project.type_of_sharing,
        "shape": project.shape,
        "color": project.color,
        "kind_of_project": project.kind_of_project,
        "tags": list(project.tags or []),
        "size": project.size,
        "location": project.location,
        "images": list(project.images or []),
        "thumbnail_url": project.thumbnail_url or "",
        "links": project.links or {},
        "contact_person": project.contact_person or {},
        "created_at": project.created_at.isoformat() if project.created_at else None,
        "updated_at": project.updated_at.isoformat() if project.updated_at else None,
    }


def _validate(project: Project) -> None:
    if not str(project.name or "").strip():
        raise HTTPException(status_code=422, detail="Project name is required")
    if count_words(project.name) > MAX_NAME_WORDS:
        raise HTTPException(status_code=422, detail=f"Name must be maximum {MAX_NAME_WORDS} words")
    if count_words(project.description) > MAX_DESCRIPTION_WORDS:
        raise HTTPException(status_code=422, detail=f"Description must be maximum {MAX_DESCRIPTION_WORDS} words")
    tags = [tag for tag in (project.tags or []) if str(tag).strip()]
    if not tags:
        raise HTTPException(status_code=422, detail="Please add at least one tag")
    if len(tags) > MAX_TAGS:
        raise HTTPException(status_code=422, detail=f"A project can have at most {MAX_TAGS} tags")


def _apply(project: Project, fields: Dict[str, Any]) -> None:
    for key in EDITABLE_FIELDS:
        if key in fields and fields[key] is not None:
            setattr(project, key, fields[key])
    images = list(project.images or [])
    project.thumbnail_url = images[0] if images else ""
    _validate(project)


async def create_project(
    fields: Dict[str, Any],
    *,
    owner_id: str,
    owner_name: Optional[str],
    db: AsyncSession,
) -> Dict[str, Any]:
    now = datetime.now(timezone.utc)
    project = Project(
        id=str(uuid.uuid4()),
        owner_id=owner_id,
        owner_name=owner_name,
        created_at=now,
        updated_at=now,
        **{key: None for key in EDITABLE_FIELDS},
    )
    project.images = []
    _apply(project, fields)
    db.add(project)
    await db.commit()
    return serialize_project(project)


async def list_projects(db: AsyncSession, owner_id: Optional[str] = None) -> List[Dict[str, Any]]:
    query = select(Project).order_by(Project.created_at.desc())
    if owner_id:
        query = query.where(Project.owner_id == owner_id)
    result = await db.execute(query)
    return [serialize_project(item) for item in result.scalars().all()]


async def _get_project(project_id: str, db: AsyncSession) -> Project:
    result = await db.execute(select(Project).where(Project.id == project_id))
    project = result.scalar_one_or_none()
    if not project:
        raise HTTPException(status_code=404, detail="Project not found")
    return project


async def get_project(project_id: str, db: AsyncSession) -> Dict[str, Any]:
    return serialize_project(await _get_project(project_id, db))


async def _get_owned_project(project_id: str, user_id: str, db: AsyncSession) -> Project:
    project = await _get_project(project_id, db)
    if project.owner_id != user_id:
        raise HTTPException(status_code=403, detail="Only the project owner can change this project.")
    return project


async def update_project(project_id: str, user_id: str, fields: Dict[str, Any], db: AsyncSession) -> Dict[str, Any]:
    project = await _get_owned_project(project_id, user_id, db)
    _apply(project, fields)
    project.updated_at = datetime.now(timezone.utc)
    await db.commit()
    return serialize_project(project)


async def delete_project(project_id: str, user_id: str, db: AsyncSession) -> None:
    project = await _get_owned_project(project_id, user_id, db)
    await db.delete(project)
    await db.commit()

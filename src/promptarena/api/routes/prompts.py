"""Prompt API routes."""

from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession

from promptarena.api.results import unwrap
from promptarena.dependencies import get_db, require_permission
from promptarena.models.enums import Action, ContentStatus, Resource
from promptarena.models.prompt import PromptCreate, PromptUpdate
from promptarena.security.org_context import OrgContext
from promptarena.services.prompts import PromptService

router = APIRouter(tags=["Prompts"])

CanRead = Depends(require_permission(Action.READ, Resource.PROMPTS))
CanWrite = Depends(require_permission(Action.WRITE, Resource.PROMPTS))


def _prompt_dict(row) -> dict:
    return {
        "id": row.prompt_id,
        "name": row.name,
        "description": row.description,
        "content": row.content,
        "status": row.status,
        "tags": list(row.tags or []),
        "createdAt": row.created_at,
        "updatedAt": row.updated_at,
    }


@router.get("/prompts")
async def list_prompts(
    search: str | None = None,
    status: ContentStatus | None = None,
    tags: list[str] | None = Query(None),
    ctx: OrgContext = CanRead,
    db: AsyncSession = Depends(get_db),
) -> list[dict]:
    rows = await PromptService(db).list_prompts(ctx, search=search, status=status, tags=tags)
    return [_prompt_dict(row) for row in rows]


@router.post("/prompts", status_code=201)
async def create_prompt(
    body: PromptCreate,
    ctx: OrgContext = CanWrite,
    db: AsyncSession = Depends(get_db),
) -> dict:
    return _prompt_dict(unwrap(await PromptService(db).create(ctx, body)))


@router.get("/prompts/{prompt_id}")
async def get_prompt(
    prompt_id: str,
    ctx: OrgContext = CanRead,
    db: AsyncSession = Depends(get_db),
) -> dict:
    return _prompt_dict(unwrap(await PromptService(db).get(ctx, prompt_id)))


@router.put("/prompts/{prompt_id}")
async def update_prompt(
    prompt_id: str,
    body: PromptUpdate,
    ctx: OrgContext = CanWrite,
    db: AsyncSession = Depends(get_db),
) -> dict:
    return _prompt_dict(unwrap(await PromptService(db).update(ctx, prompt_id, body)))


@router.delete("/prompts/{prompt_id}")
async def delete_prompt(
    prompt_id: str,
    ctx: OrgContext = CanWrite,
    db: AsyncSession = Depends(get_db),
) -> dict:
    unwrap(await PromptService(db).remove(ctx, prompt_id))
    return {"ok": True}


@router.post("/prompts/{prompt_id}/duplicate", status_code=201)
async def duplicate_prompt(
    prompt_id: str,
    ctx: OrgContext = CanWrite,
    db: AsyncSession = Depends(get_db),
) -> dict:
    return _prompt_dict(unwrap(await PromptService(db).duplicate(ctx, prompt_id)))

"""Variable API routes."""

from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from promptarena.api.results import unwrap
from promptarena.dependencies import get_db, require_permission
from promptarena.models.enums import Action, Resource
from promptarena.models.variable import VariableCreate, VariableUpdate
from promptarena.security.org_context import OrgContext
from promptarena.services.variables import VariableService

router = APIRouter(tags=["Variables"])

CanRead = Depends(require_permission(Action.READ, Resource.VARIABLES))
CanWrite = Depends(require_permission(Action.WRITE, Resource.VARIABLES))


def _variable_dict(row) -> dict:
    return {
        "id": row.variable_id,
        "key": row.key,
        "value": row.value,
        "description": row.description,
        "createdAt": row.created_at,
        "updatedAt": row.updated_at,
    }


@router.get("/variables")
async def list_variables(
    search: str | None = None,
    ctx: OrgContext = CanRead,
    db: AsyncSession = Depends(get_db),
) -> list[dict]:
    return [_variable_dict(row) for row in await VariableService(db).list_variables(ctx, search=search)]


@router.post("/variables", status_code=201)
async def create_variable(
    body: VariableCreate,
    ctx: OrgContext = CanWrite,
    db: AsyncSession = Depends(get_db),
) -> dict:
    return _variable_dict(unwrap(await VariableService(db).create(ctx, body)))


@router.get("/variables/{variable_id}")
async def get_variable(
    variable_id: str,
    ctx: OrgContext = CanRead,
    db: AsyncSession = Depends(get_db),
) -> dict:
    return _variable_dict(unwrap(await VariableService(db).get(ctx, variable_id)))


@router.get("/variables/{variable_id}/usage")
async def variable_usage(
    variable_id: str,
    ctx: OrgContext = CanRead,
    db: AsyncSession = Depends(get_db),
) -> dict:
    service = VariableService(db)
    row = unwrap(await service.get(ctx, variable_id))
    return await service.usage(ctx, row.key)


@router.put("/variables/{variable_id}")
async def update_variable(
    variable_id: str,
    body: VariableUpdate,
    ctx: OrgContext = CanWrite,
    db: AsyncSession = Depends(get_db),
) -> dict:
    return _variable_dict(unwrap(await VariableService(db).update(ctx, variable_id, body)))


@router.delete("/variables/{variable_id}")
async def delete_variable(
    variable_id: str,
    ctx: OrgContext = CanWrite,
    db: AsyncSession = Depends(get_db),
) -> dict:
    unwrap(await VariableService(db).remove(ctx, variable_id))
    return {"ok": True}

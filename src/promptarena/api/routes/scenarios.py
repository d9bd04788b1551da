"""Scenario API routes."""

from fastapi import APIRouter, Depends, Query, Response
from sqlalchemy.ext.asyncio import AsyncSession

from promptarena.api.results import unwrap
from promptarena.dependencies import get_db, require_permission
from promptarena.models.enums import Action, ContentStatus, Resource
from promptarena.models.scenario import ScenarioCreate, ScenarioUpdate, TurnCheckBody
from promptarena.security.org_context import OrgContext
from promptarena.services.scenarios import ScenarioService

router = APIRouter(tags=["Scenarios"])

CanRead = Depends(require_permission(Action.READ, Resource.SCENARIOS))
CanWrite = Depends(require_permission(Action.WRITE, Resource.SCENARIOS))


def _summary_dict(row, turn_count: int) -> dict:
    return {
        "id": row.scenario_id,
        "name": row.name,
        "description": row.description,
        "locale": row.locale,
        "status": row.status,
        "tags": list(row.tags or []),
        "version": row.version,
        "turnCount": turn_count,
        "createdAt": row.created_at,
        "updatedAt": row.updated_at,
    }


def _scenario_dict(row) -> dict:
    data = _summary_dict(row, len(row.turns))
    data["turns"] = [
        {
            "id": turn.turn_id,
            "orderIndex": turn.order_index,
            "turnType": turn.turn_type,
            "userText": turn.user_text,
            "expectations": [
                {
                    "id": exp.expectation_id,
                    "expectationKey": exp.expectation_key,
                    "expectationType": exp.expectation_type,
                    "args": exp.args,
                    "weight": exp.weight,
                }
                for exp in turn.expectations
            ],
        }
        for turn in row.turns
    ]
    return data


@router.get("/scenarios")
async def list_scenarios(
    search: str | None = None,
    status: ContentStatus | None = None,
    locale: str | None = None,
    tags: list[str] | None = Query(None),
    ctx: OrgContext = CanRead,
    db: AsyncSession = Depends(get_db),
) -> list[dict]:
    rows = await ScenarioService(db).list_scenarios(ctx, search=search, status=status, locale=locale, tags=tags)
    return [_summary_dict(row, count) for row, count in rows]


@router.get("/scenarios/published")
async def list_published_scenarios(
    response: Response,
    ctx: OrgContext = CanRead,
    db: AsyncSession = Depends(get_db),
) -> list[dict]:
    rows = await ScenarioService(db).list_published(ctx)
    response.headers["Cache-Control"] = "private, max-age=30"
    return [_summary_dict(row, count) for row, count in rows]


@router.post("/scenarios", status_code=201)
async def create_scenario(
    body: ScenarioCreate,
    ctx: OrgContext = CanWrite,
    db: AsyncSession = Depends(get_db),
) -> dict:
    return _scenario_dict(unwrap(await ScenarioService(db).create(ctx, body)))


@router.get("/scenarios/{scenario_id}")
async def get_scenario(
    scenario_id: str,
    ctx: OrgContext = CanRead,
    db: AsyncSession = Depends(get_db),
) -> dict:
    return _scenario_dict(unwrap(await ScenarioService(db).get(ctx, scenario_id)))


@router.put("/scenarios/{scenario_id}")
async def update_scenario(
    scenario_id: str,
    body: ScenarioUpdate,
    ctx: OrgContext = CanWrite,
    db: AsyncSession = Depends(get_db),
) -> dict:
    return _scenario_dict(unwrap(await ScenarioService(db).update(ctx, scenario_id, body)))


@router.delete("/scenarios/{scenario_id}")
async def delete_scenario(
    scenario_id: str,
    ctx: OrgContext = CanWrite,
    db: AsyncSession = Depends(get_db),
) -> dict:
    unwrap(await ScenarioService(db).remove(ctx, scenario_id))
    return {"ok": True}


@router.post("/scenarios/{scenario_id}/duplicate", status_code=201)
async def duplicate_scenario(
    scenario_id: str,
    ctx: OrgContext = CanWrite,
    db: AsyncSession = Depends(get_db),
) -> dict:
    return _scenario_dict(unwrap(await ScenarioService(db).duplicate(ctx, scenario_id)))


@router.post("/scenarios/{scenario_id}/turns/{turn_id}/check")
async def check_turn(
    scenario_id: str,
    turn_id: str,
    body: TurnCheckBody,
    ctx: OrgContext = CanRead,
    db: AsyncSession = Depends(get_db),
) -> dict:
    """Grade a model reply against one turn's expectations, offline."""
    graded = unwrap(await ScenarioService(db).check_turn(ctx, scenario_id, turn_id, body.output))
    results = [
        {
            "expectationKey": exp.expectation_key,
            "expectationType": exp.expectation_type,
            "weight": exp.weight,
            "passed": passed,
        }
        for exp, passed in graded
    ]
    return {
        "turnId": turn_id,
        "results": results,
        "passed": all(item["passed"] is not False for item in results),
    }

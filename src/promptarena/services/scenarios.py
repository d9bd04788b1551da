"""Scenario service: org-scoped CRUD with ordered turns and expectations."""

import logging

from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from promptarena.db.models.scenario import ScenarioRow
from promptarena.models.enums import ContentStatus
from promptarena.models.scenario import ScenarioCreate, ScenarioUpdate, TurnBody
from promptarena.repositories.scenario_repo import ScenarioRepository
from promptarena.security.org_context import OrgContext
from promptarena.services.expectations import evaluate_expectation, parse_expectation
from promptarena.services.id_generator import EXPECTATION_PREFIX, SCENARIO_PREFIX, generate_id
from promptarena.services.naming import copy_name, has_any_tag, matches_search
from promptarena.services.results import DUPLICATE, ServiceResult

logger = logging.getLogger(__name__)

_NAME_MAX = 100


def _duplicate(name: str) -> ServiceResult:
    return ServiceResult.failure(DUPLICATE, f"A scenario named '{name}' already exists")


def turn_columns(turns: list[TurnBody]) -> list[dict]:
    """Normalize request turns into repository dicts with a dense 0..n-1 order."""
    ordered = sorted(
        enumerate(turns),
        key=lambda pair: (pair[1].order_index if pair[1].order_index is not None else pair[0], pair[0]),
    )
    return [
        {
            "order_index": position,
            "turn_type": turn.turn_type,
            "user_text": turn.user_text,
            "expectations": [
                {
                    "expectation_id": generate_id(EXPECTATION_PREFIX),
                    "expectation_key": exp.expectation_key,
                    "expectation_type": exp.expectation_type,
                    "args": exp.args.model_dump(by_alias=True),
                    "weight": exp.weight,
                }
                for exp in turn.expectations
            ],
        }
        for position, (_, turn) in enumerate(ordered)
    ]


def _clone_turns(source: ScenarioRow) -> list[dict]:
    return [
        {
            "order_index": turn.order_index,
            "turn_type": turn.turn_type,
            "user_text": turn.user_text,
            "expectations": [
                {
                    "expectation_id": generate_id(EXPECTATION_PREFIX),
                    "expectation_key": exp.expectation_key,
                    "expectation_type": exp.expectation_type,
                    "args": dict(exp.args or {}),
                    "weight": exp.weight,
                }
                for exp in turn.expectations
            ],
        }
        for turn in source.turns
    ]


class ScenarioService:
    def __init__(self, session: AsyncSession):
        self.session = session
        self.repo = ScenarioRepository(session)

    async def list_scenarios(
        self,
        ctx: OrgContext,
        search: str | None = None,
        status: ContentStatus | None = None,
        locale: str | None = None,
        tags: list[str] | None = None,
    ) -> list[tuple[ScenarioRow, int]]:
        rows = await self.repo.list_with_turn_counts(ctx.active_org_id, status=status, locale=locale)
        return [
            (row, count)
            for row, count in rows
            if matches_search(search, (row.name, row.description, row.scenario_id), row.tags)
            and has_any_tag(row.tags, tags)
        ]

    async def list_published(self, ctx: OrgContext) -> list[tuple[ScenarioRow, int]]:
        return await self.repo.list_with_turn_counts(ctx.active_org_id, status=ContentStatus.PUBLISHED)

    async def get(self, ctx: OrgContext, scenario_id: str) -> ServiceResult[ScenarioRow]:
        row = await self.repo.get_full(ctx.active_org_id, scenario_id)
        if row is None:
            return ServiceResult.not_found("Scenario")
        return ServiceResult.success(row)

    async def create(self, ctx: OrgContext, body: ScenarioCreate) -> ServiceResult[ScenarioRow]:
        if await self.repo.get_by_name(ctx.active_org_id, body.name):
            return _duplicate(body.name)
        return await self._insert(
            ctx,
            turns=turn_columns(body.turns),
            name=body.name,
            description=body.description,
            locale=body.locale,
            status=body.status,
            tags=list(body.tags),
        )

    async def update(self, ctx: OrgContext, scenario_id: str, body: ScenarioUpdate) -> ServiceResult[ScenarioRow]:
        """Apply field changes; a supplied ``turns`` list replaces the whole turn set."""
        row = await self.repo.get_in_org(ctx.active_org_id, scenario_id)
        if row is None:
            return ServiceResult.not_found("Scenario")
        if body.name and body.name != row.name:
            other = await self.repo.get_by_name(ctx.active_org_id, body.name)
            if other is not None and other.scenario_id != row.scenario_id:
                return _duplicate(body.name)

        changes = {
            key: value
            for key, value in body.model_dump(exclude_unset=True, exclude={"turns"}).items()
            if value is not None or key == "description"
        }
        changes["version"] = row.version + 1
        try:
            if body.turns is not None:
                await self.repo.delete_turns(scenario_id)
                await self.repo.add_turns(scenario_id, turn_columns(body.turns))
            await self.repo.update(row, **changes)
            await self.session.commit()
        except IntegrityError:
            await self.session.rollback()
            return _duplicate(body.name or "")
        return await self.get(ctx, scenario_id)

    async def remove(self, ctx: OrgContext, scenario_id: str) -> ServiceResult[None]:
        row = await self.repo.get_in_org(ctx.active_org_id, scenario_id)
        if row is None:
            return ServiceResult.not_found("Scenario")
        await self.repo.delete_turns(scenario_id)
        await self.repo.delete(row)
        await self.session.commit()
        return ServiceResult.success(None)

    async def duplicate(self, ctx: OrgContext, scenario_id: str) -> ServiceResult[ScenarioRow]:
        source = await self.repo.get_full(ctx.active_org_id, scenario_id)
        if source is None:
            return ServiceResult.not_found("Scenario")

        async def taken(candidate: str) -> bool:
            return await self.repo.get_by_name(ctx.active_org_id, candidate) is not None

        return await self._insert(
            ctx,
            turns=_clone_turns(source),
            name=await copy_name(source.name, taken, _NAME_MAX),
            description=source.description,
            locale=source.locale,
            status=ContentStatus.DRAFT,
            tags=list(source.tags or []),
        )

    async def check_turn(self, ctx: OrgContext, scenario_id: str, turn_id: str, output: str) -> ServiceResult[list]:
        """Grade ``output`` against every expectation attached to one turn.

        Each entry pairs the stored expectation row with True/False, or None
        for semantic assertions that need a model to judge.
        """
        scenario = await self.repo.get_full(ctx.active_org_id, scenario_id)
        if scenario is None:
            return ServiceResult.not_found("Scenario")
        turn = next((t for t in scenario.turns if t.turn_id == turn_id), None)
        if turn is None:
            return ServiceResult.not_found("Turn")
        return ServiceResult.success(
            [(row, evaluate_expectation(parse_expectation(row), output)) for row in turn.expectations]
        )

    async def _insert(self, ctx: OrgContext, turns: list[dict], **fields) -> ServiceResult[ScenarioRow]:
        scenario_id = generate_id(SCENARIO_PREFIX)
        try:
            await self.repo.create(
                scenario_id=scenario_id,
                org_id=ctx.active_org_id,
                user_id=ctx.user_id,
                version=1,
                **fields,
            )
            await self.repo.add_turns(scenario_id, turns)
            await self.session.commit()
        except IntegrityError:
            await self.session.rollback()
            return _duplicate(fields["name"])
        logger.info("Scenario %s created in org %s with %d turns", scenario_id, ctx.active_org_id, len(turns))
        return await self.get(ctx, scenario_id)

"""Variable service: org-scoped CRUD with a usage check before delete."""

import logging

from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from promptarena.db.models.variable import VariableRow
from promptarena.models.variable import VariableCreate, VariableUpdate
from promptarena.repositories.prompt_repo import PromptRepository
from promptarena.repositories.scenario_repo import ScenarioRepository
from promptarena.repositories.variable_repo import VariableRepository
from promptarena.security.org_context import OrgContext
from promptarena.services.id_generator import VARIABLE_PREFIX, generate_id
from promptarena.services.naming import matches_search
from promptarena.services.results import DUPLICATE, IN_USE, ServiceResult

logger = logging.getLogger(__name__)


def placeholder(key: str) -> str:
    return "{{" + key + "}}"


def _duplicate(key: str) -> ServiceResult:
    return ServiceResult.failure(DUPLICATE, f"A variable with key '{key}' already exists")


class VariableService:
    def __init__(self, session: AsyncSession):
        self.session = session
        self.repo = VariableRepository(session)
        self.prompts = PromptRepository(session)
        self.scenarios = ScenarioRepository(session)

    async def list_variables(self, ctx: OrgContext, search: str | None = None) -> list[VariableRow]:
        rows = await self.repo.list_for_org(ctx.active_org_id)
        return [row for row in rows if matches_search(search, (row.key, row.description))]

    async def get(self, ctx: OrgContext, variable_id: str) -> ServiceResult[VariableRow]:
        row = await self.repo.get_in_org(ctx.active_org_id, variable_id)
        if row is None:
            return ServiceResult.not_found("Variable")
        return ServiceResult.success(row)

    async def create(self, ctx: OrgContext, body: VariableCreate) -> ServiceResult[VariableRow]:
        if await self.repo.get_by_key(ctx.active_org_id, body.key):
            return _duplicate(body.key)
        try:
            row = await self.repo.create(
                variable_id=generate_id(VARIABLE_PREFIX),
                org_id=ctx.active_org_id,
                user_id=ctx.user_id,
                key=body.key,
                value=body.value,
                description=body.description,
            )
            await self.session.commit()
        except IntegrityError:
            await self.session.rollback()
            return _duplicate(body.key)
        return ServiceResult.success(row)

    async def update(self, ctx: OrgContext, variable_id: str, body: VariableUpdate) -> ServiceResult[VariableRow]:
        row = await self.repo.get_in_org(ctx.active_org_id, variable_id)
        if row is None:
            return ServiceResult.not_found("Variable")
        if body.key and body.key != row.key and await self.repo.get_by_key(ctx.active_org_id, body.key):
            return _duplicate(body.key)

        changes = {
            key: value
            for key, value in body.model_dump(exclude_unset=True).items()
            if value is not None or key == "description"
        }
        try:
            await self.repo.update(row, **changes)
            await self.session.commit()
        except IntegrityError:
            await self.session.rollback()
            return _duplicate(body.key or "")
        return ServiceResult.success(row)

    async def usage(self, ctx: OrgContext, key: str) -> dict[str, list[dict]]:
        """Prompts and scenarios in the org whose text contains ``{{key}}``."""
        token = placeholder(key)
        prompts = await self.prompts.list_containing(ctx.active_org_id, token)
        scenarios: dict[str, str] = {}
        for _, scenario in await self.scenarios.list_user_turns_containing(ctx.active_org_id, token):
            scenarios.setdefault(scenario.scenario_id, scenario.name)
        return {
            "prompts": [{"id": p.prompt_id, "name": p.name} for p in prompts],
            "scenarios": [{"id": sid, "name": name} for sid, name in scenarios.items()],
        }

    async def remove(self, ctx: OrgContext, variable_id: str) -> ServiceResult[None]:
        row = await self.repo.get_in_org(ctx.active_org_id, variable_id)
        if row is None:
            return ServiceResult.not_found("Variable")
        usage = await self.usage(ctx, row.key)
        if usage["prompts"] or usage["scenarios"]:
            return ServiceResult.failure(
                IN_USE,
                f"Variable '{row.key}' is used by {len(usage['prompts'])} prompt(s) "
                f"and {len(usage['scenarios'])} scenario(s)",
                usage,
            )
        await self.repo.delete(row)
        await self.session.commit()
        logger.info("Variable %s deleted from org %s", row.key, ctx.active_org_id)
        return ServiceResult.success(None)

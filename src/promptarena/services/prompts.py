"""Prompt service: org-scoped CRUD, name uniqueness and copy."""

import logging

from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from promptarena.db.models.prompt import PromptRow
from promptarena.models.enums import ContentStatus
from promptarena.models.prompt import PromptCreate, PromptUpdate
from promptarena.repositories.prompt_repo import PromptRepository
from promptarena.security.org_context import OrgContext
from promptarena.services.id_generator import PROMPT_PREFIX, generate_id
from promptarena.services.naming import copy_name, has_any_tag, matches_search
from promptarena.services.results import DUPLICATE, ServiceResult

logger = logging.getLogger(__name__)

_NAME_MAX = 200


def _duplicate(name: str) -> ServiceResult:
    return ServiceResult.failure(DUPLICATE, f"A prompt named '{name}' already exists")


class PromptService:
    def __init__(self, session: AsyncSession):
        self.session = session
        self.repo = PromptRepository(session)

    async def list_prompts(
        self,
        ctx: OrgContext,
        search: str | None = None,
        status: ContentStatus | None = None,
        tags: list[str] | None = None,
    ) -> list[PromptRow]:
        rows = await self.repo.list_for_org(ctx.active_org_id, status=status)
        return [
            row
            for row in rows
            if matches_search(search, (row.name, row.description, row.content), row.tags)
            and has_any_tag(row.tags, tags)
        ]

    async def get(self, ctx: OrgContext, prompt_id: str) -> ServiceResult[PromptRow]:
        row = await self.repo.get_in_org(ctx.active_org_id, prompt_id)
        if row is None:
            return ServiceResult.not_found("Prompt")
        return ServiceResult.success(row)

    async def create(self, ctx: OrgContext, body: PromptCreate) -> ServiceResult[PromptRow]:
        if await self.repo.get_by_name(ctx.active_org_id, body.name):
            return _duplicate(body.name)
        return await self._insert(
            ctx,
            name=body.name,
            description=body.description,
            content=body.content,
            status=body.status,
            tags=list(body.tags),
        )

    async def update(self, ctx: OrgContext, prompt_id: str, body: PromptUpdate) -> ServiceResult[PromptRow]:
        row = await self.repo.get_in_org(ctx.active_org_id, prompt_id)
        if row is None:
            return ServiceResult.not_found("Prompt")
        if body.name and body.name != row.name:
            other = await self.repo.get_by_name(ctx.active_org_id, body.name)
            if other is not None and other.prompt_id != row.prompt_id:
                return _duplicate(body.name)

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
            return _duplicate(body.name or "")
        return ServiceResult.success(row)

    async def remove(self, ctx: OrgContext, prompt_id: str) -> ServiceResult[None]:
        row = await self.repo.get_in_org(ctx.active_org_id, prompt_id)
        if row is None:
            return ServiceResult.not_found("Prompt")
        await self.repo.delete(row)
        await self.session.commit()
        return ServiceResult.success(None)

    async def duplicate(self, ctx: OrgContext, prompt_id: str) -> ServiceResult[PromptRow]:
        """Copy a prompt under the first free "(Copy N)" name; copies start as DRAFT."""
        source = await self.repo.get_in_org(ctx.active_org_id, prompt_id)
        if source is None:
            return ServiceResult.not_found("Prompt")

        async def taken(candidate: str) -> bool:
            return await self.repo.get_by_name(ctx.active_org_id, candidate) is not None

        name = await copy_name(source.name, taken, _NAME_MAX)
        return await self._insert(
            ctx,
            name=name,
            description=source.description,
            content=source.content,
            status=ContentStatus.DRAFT,
            tags=list(source.tags or []),
        )

    async def _insert(self, ctx: OrgContext, **fields) -> ServiceResult[PromptRow]:
        try:
            row = await self.repo.create(
                prompt_id=generate_id(PROMPT_PREFIX),
                org_id=ctx.active_org_id,
                user_id=ctx.user_id,
                **fields,
            )
            await self.session.commit()
        except IntegrityError:
            # Lost a race against a concurrent insert of the same name
            await self.session.rollback()
            return _duplicate(fields["name"])
        logger.info("Prompt %s created in org %s", row.prompt_id, ctx.active_org_id)
        return ServiceResult.success(row)

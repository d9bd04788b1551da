"""Prompt repository."""

from sqlalchemy import select

from promptarena.db.models.prompt import PromptRow
from promptarena.repositories.base import BaseRepository


class PromptRepository(BaseRepository[PromptRow]):
    model = PromptRow
    pk_field = "prompt_id"

    async def get_by_name(self, org_id: str, name: str) -> PromptRow | None:
        return await self.first(PromptRow.org_id == org_id, PromptRow.name == name)

    async def list_for_org(self, org_id: str, status: str | None = None) -> list[PromptRow]:
        criteria = [PromptRow.org_id == org_id]
        if status:
            criteria.append(PromptRow.status == status)
        return await self.all(*criteria, order_by=PromptRow.updated_at.desc())

    async def list_containing(self, org_id: str, needle: str) -> list[PromptRow]:
        """Prompts whose content contains ``needle`` verbatim."""
        stmt = (
            select(PromptRow)
            .where(
                PromptRow.org_id == org_id,
                PromptRow.content.contains(needle, autoescape=True),
            )
            .order_by(PromptRow.name.asc())
        )
        result = await self.session.execute(stmt)
        return list(result.scalars().all())

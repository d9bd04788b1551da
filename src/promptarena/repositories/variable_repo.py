"""Variable repository."""

from sqlalchemy import select

from promptarena.db.models.variable import VariableRow
from promptarena.repositories.base import BaseRepository


class VariableRepository(BaseRepository[VariableRow]):
    model = VariableRow
    pk_field = "variable_id"

    async def get_by_key(self, org_id: str, key: str) -> VariableRow | None:
        return await self.first(VariableRow.org_id == org_id, VariableRow.key == key)

    async def list_for_org(self, org_id: str) -> list[VariableRow]:
        return await self.all(VariableRow.org_id == org_id, order_by=VariableRow.updated_at.desc())

    async def as_mapping(self, org_id: str) -> dict[str, str]:
        """``{key: value}`` snapshot of every variable in the org."""
        stmt = select(VariableRow.key, VariableRow.value).where(VariableRow.org_id == org_id)
        result = await self.session.execute(stmt)
        return {key: value for key, value in result.all()}

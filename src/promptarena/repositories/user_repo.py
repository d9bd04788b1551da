"""User mirror and user profile repositories."""

from sqlalchemy import update

from promptarena.db.models.user import UserProfileRow, UserRow
from promptarena.repositories.base import BaseRepository


class UserRepository(BaseRepository[UserRow]):
    model = UserRow
    pk_field = "user_id"

    async def upsert(self, user_id: str, email: str | None, name: str | None) -> UserRow:
        """Mirror the external identity; refresh email and name when they change."""
        row = await self.get(user_id)
        if row is None:
            return await self.create(user_id=user_id, email=email, name=name)
        if row.email != email or row.name != name:
            await self.update(row, email=email, name=name)
        return row


class UserProfileRepository(BaseRepository[UserProfileRow]):
    model = UserProfileRow
    pk_field = "user_id"

    async def get_or_create(self, user_id: str) -> UserProfileRow:
        row = await self.get(user_id)
        if row is None:
            row = await self.create(user_id=user_id, last_active_org_id=None)
        return row

    async def set_last_active_org(self, user_id: str, org_id: str | None) -> UserProfileRow:
        row = await self.get_or_create(user_id)
        return await self.update(row, last_active_org_id=org_id)

    async def clear_last_active_org(self, org_id: str) -> int:
        """Null out every profile pointing at ``org_id``; returns rows touched."""
        stmt = (
            update(UserProfileRow)
            .where(UserProfileRow.last_active_org_id == org_id)
            .values(last_active_org_id=None)
            .execution_options(synchronize_session="fetch")
        )
        result = await self.session.execute(stmt)
        return result.rowcount or 0

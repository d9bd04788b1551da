"""Provider API key repository.

One row per (org, provider). Deactivated keys keep their row so that
saving a key again reactivates it in place.
"""

from promptarena.db.models.api_key import ProviderApiKeyRow
from promptarena.repositories.base import BaseRepository


class ProviderApiKeyRepository(BaseRepository[ProviderApiKeyRow]):
    model = ProviderApiKeyRow
    pk_field = "key_id"

    async def get_for_provider(self, org_id: str, provider: str) -> ProviderApiKeyRow | None:
        """The org's key row for ``provider`` regardless of its active flag."""
        return await self.first(
            ProviderApiKeyRow.org_id == org_id,
            ProviderApiKeyRow.provider == provider,
        )

    async def get_active(self, org_id: str, provider: str) -> ProviderApiKeyRow | None:
        row = await self.get_for_provider(org_id, provider)
        if row is None or not row.is_active:
            return None
        return row

    async def list_active(self, org_id: str) -> list[ProviderApiKeyRow]:
        return await self.all(
            ProviderApiKeyRow.org_id == org_id,
            ProviderApiKeyRow.is_active.is_(True),
            order_by=ProviderApiKeyRow.updated_at.desc(),
        )

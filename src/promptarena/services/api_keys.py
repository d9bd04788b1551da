"""Provider API key service: one encrypted key per (org, provider)."""

import logging

from sqlalchemy.ext.asyncio import AsyncSession

from promptarena.db.models.api_key import ProviderApiKeyRow
from promptarena.errors.exceptions import ServerMisconfiguredError
from promptarena.models.api_key import ApiKeyBody
from promptarena.models.enums import Provider
from promptarena.repositories.api_key_repo import ProviderApiKeyRepository
from promptarena.security import crypto
from promptarena.security.org_context import OrgContext
from promptarena.services.id_generator import API_KEY_PREFIX, generate_id
from promptarena.services.results import ServiceResult

logger = logging.getLogger(__name__)


class ApiKeyService:
    def __init__(self, session: AsyncSession):
        self.session = session
        self.repo = ProviderApiKeyRepository(session)

    async def list_active(self, ctx: OrgContext) -> list[ProviderApiKeyRow]:
        return await self.repo.list_active(ctx.active_org_id)

    async def upsert_active(self, ctx: OrgContext, body: ApiKeyBody) -> ProviderApiKeyRow:
        """Store (or replace) the org's key for ``body.provider`` and mark it active."""
        crypto.ensure_crypto_ready()
        encrypted = crypto.encrypt(body.api_key)
        key_name = body.key_name or f"{body.provider} API Key"

        row = await self.repo.get_for_provider(ctx.active_org_id, body.provider)
        if row is None:
            row = await self.repo.create(
                key_id=generate_id(API_KEY_PREFIX),
                org_id=ctx.active_org_id,
                user_id=ctx.user_id,
                provider=body.provider,
                key_name=key_name,
                encrypted_key=encrypted,
                is_active=True,
            )
        else:
            await self.repo.update(
                row,
                key_name=key_name,
                encrypted_key=encrypted,
                is_active=True,
                user_id=ctx.user_id,
            )
        await self.session.commit()
        logger.info("API key for %s saved in org %s", body.provider, ctx.active_org_id)
        return row

    async def deactivate(self, ctx: OrgContext, provider: Provider) -> ServiceResult[None]:
        row = await self.repo.get_active(ctx.active_org_id, provider)
        if row is None:
            return ServiceResult.not_found("API key")
        await self.repo.update(row, is_active=False)
        await self.session.commit()
        logger.info("API key for %s deactivated in org %s", provider, ctx.active_org_id)
        return ServiceResult.success(None)

    async def get_decrypted(self, ctx: OrgContext, provider: Provider) -> str | None:
        """Plaintext of the org's active key for ``provider``, or None.

        A stored key that no longer decrypts (rotated secret, corrupted row)
        is treated as missing so callers ask for the key to be re-entered.
        """
        crypto.ensure_crypto_ready()
        row = await self.repo.get_active(ctx.active_org_id, provider)
        if row is None:
            return None
        try:
            return crypto.decrypt(row.encrypted_key)
        except ServerMisconfiguredError:
            logger.error(
                "Stored %s API key %s in org %s could not be decrypted", provider, row.key_id, ctx.active_org_id
            )
            return None

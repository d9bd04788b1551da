"""Provider API key routes. Plaintext keys are accepted but never returned."""

import logging

import openai
from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from promptarena.api.results import unwrap
from promptarena.dependencies import LLMClientFactory, get_db, require_permission
from promptarena.errors.exceptions import AuthorizationError, ServiceUnavailableError, ValidationError
from promptarena.models.api_key import ApiKeyBody
from promptarena.models.enums import Action, Provider, Resource
from promptarena.security.org_context import OrgContext
from promptarena.services.api_keys import ApiKeyService

logger = logging.getLogger(__name__)

router = APIRouter(tags=["ApiKeys"])

CanManageSettings = Depends(require_permission(Action.SETTINGS, Resource.SETTINGS))

VALIDATION_MODEL = "gpt-5-nano"


def _key_dict(row) -> dict:
    return {
        "id": row.key_id,
        "provider": row.provider,
        "keyName": row.key_name,
        "createdAt": row.created_at,
        "updatedAt": row.updated_at,
    }


@router.get("/user/api-keys")
async def list_api_keys(
    ctx: OrgContext = CanManageSettings,
    db: AsyncSession = Depends(get_db),
) -> list[dict]:
    return [_key_dict(row) for row in await ApiKeyService(db).list_active(ctx)]


@router.post("/user/api-keys")
async def save_api_key(
    body: ApiKeyBody,
    ctx: OrgContext = CanManageSettings,
    db: AsyncSession = Depends(get_db),
) -> dict:
    return _key_dict(await ApiKeyService(db).upsert_active(ctx, body))


@router.delete("/user/api-keys")
async def deactivate_api_key(
    provider: Provider,
    ctx: OrgContext = CanManageSettings,
    db: AsyncSession = Depends(get_db),
) -> dict:
    unwrap(await ApiKeyService(db).deactivate(ctx, provider))
    return {"ok": True}


@router.post("/user/api-keys/validate")
async def validate_api_key(
    body: ApiKeyBody,
    client_factory: LLMClientFactory,
    ctx: OrgContext = CanManageSettings,
) -> dict:
    """Make a one-line test completion with the submitted key."""
    if body.provider != Provider.OPENAI:
        raise ValidationError("Only OpenAI key validation is supported currently")

    client = client_factory(body.api_key)
    try:
        await client.chat_completion(VALIDATION_MODEL, [{"role": "user", "content": "Hello world"}])
    except openai.AuthenticationError as exc:
        raise AuthorizationError("The API key is invalid or has been revoked") from exc
    except openai.PermissionDeniedError as exc:
        raise AuthorizationError("The API key doesn't have permission to access this model") from exc
    except openai.RateLimitError as exc:
        raise ServiceUnavailableError("Rate limit or quota exceeded for this API key") from exc
    except (openai.APIError, TimeoutError) as exc:
        logger.warning("API key validation failed: %s", type(exc).__name__)
        raise ServiceUnavailableError("Could not reach the provider to validate the key") from exc
    return {"valid": True}

"""Request-scoped dependencies: session, caller, active org and permission gates."""

from collections.abc import AsyncGenerator
from typing import Annotated

from fastapi import Depends, Request
from sqlalchemy.ext.asyncio import AsyncSession

from promptarena.errors.exceptions import AuthenticationError, AuthorizationError
from promptarena.logging_config import bind_request_context
from promptarena.models.enums import Action, Resource
from promptarena.security.identity import Identity
from promptarena.security.org_context import OrgContext, OrgContextResolver
from promptarena.security.rbac import can
from promptarena.services.llm_client import ChatClientFactory, openai_client_factory


async def get_db(request: Request) -> AsyncGenerator[AsyncSession, None]:
    async with request.app.state.db_session_factory() as session:
        yield session


async def get_identity(request: Request) -> Identity:
    """The caller resolved by ``AuthMiddleware``, or 401."""
    identity = getattr(request.state, "identity", None)
    if identity is None:
        if getattr(request.state, "token_rejected", False):
            raise AuthenticationError("Invalid or expired token")
        raise AuthenticationError("Authentication required")
    return identity


async def get_org_context(
    identity: Identity = Depends(get_identity),
    db: AsyncSession = Depends(get_db),
) -> OrgContext:
    """Resolve (provisioning on first sight) the caller's active org and live role."""
    ctx = await OrgContextResolver(db).require(identity)
    bind_request_context(user_id=ctx.user_id, org_id=ctx.active_org_id)
    return ctx


def require_permission(action: Action, resource: Resource):
    """Dependency factory: the active org context, or 403 unless the role allows ``action`` on ``resource``."""

    async def check(ctx: OrgContext = Depends(get_org_context)) -> OrgContext:
        if not can(ctx, action, resource):
            raise AuthorizationError(f"Missing permission {action}:{resource}")
        return ctx

    return check


def get_llm_client_factory(request: Request) -> ChatClientFactory:
    return getattr(request.app.state, "llm_client_factory", None) or openai_client_factory


LLMClientFactory = Annotated[ChatClientFactory, Depends(get_llm_client_factory)]

"""Dual-prompt simulation endpoint streaming Server-Sent Events."""

import logging

from fastapi import APIRouter, Depends
from fastapi.responses import StreamingResponse
from sqlalchemy.ext.asyncio import AsyncSession

from promptarena.config import settings
from promptarena.dependencies import LLMClientFactory, get_db, get_org_context
from promptarena.errors.exceptions import NotFoundError, ValidationError
from promptarena.models.enums import ContentStatus, Provider, TurnType
from promptarena.models.simulation import SimulateRequest
from promptarena.repositories.scenario_repo import ScenarioRepository
from promptarena.repositories.variable_repo import VariableRepository
from promptarena.security import crypto
from promptarena.security.org_context import OrgContext
from promptarena.services.api_keys import ApiKeyService
from promptarena.services.simulation.builtin_scenarios import BUILTIN_SCENARIOS
from promptarena.services.simulation.engine import ModelSettings, SimulationPlan, stream_simulation

logger = logging.getLogger(__name__)

router = APIRouter(tags=["Simulation"])

_SSE_HEADERS = {
    "Cache-Control": "no-cache",
    "Connection": "keep-alive",
    "X-Accel-Buffering": "no",
}


async def _load_scenario(db: AsyncSession, ctx: OrgContext, key: str) -> tuple[str, list[str]]:
    """Return ``(name, user_turn_texts)`` for a built-in key or a published scenario id."""
    builtin = BUILTIN_SCENARIOS.get(key)
    if builtin is not None:
        return builtin.name, builtin.user_turns

    scenario = await ScenarioRepository(db).get_full(ctx.active_org_id, key)
    if scenario is None or scenario.status != ContentStatus.PUBLISHED:
        raise NotFoundError("Published scenario", key)
    turns = [t.user_text for t in scenario.turns if t.turn_type == TurnType.USER and t.user_text]
    return scenario.name, turns


def _model_settings(body: SimulateRequest) -> ModelSettings:
    if body.llm_options is not None:
        opts = body.llm_options
        return ModelSettings(
            model=opts.model,
            reasoning_effort=opts.reasoning_effort,
            verbosity=opts.verbosity,
            service_tier=opts.service_tier,
        )
    return ModelSettings(model=body.model or settings.default_model)


@router.post("/simulate")
async def simulate(
    body: SimulateRequest,
    client_factory: LLMClientFactory,
    ctx: OrgContext = Depends(get_org_context),
    db: AsyncSession = Depends(get_db),
):
    """Replay a scenario against the current and edited prompts side by side.

    Everything that can fail the request (scenario lookup, provider key,
    variables) is loaded before the stream opens; afterwards failures are
    reported in-band.
    """
    crypto.ensure_crypto_ready()

    scenario_name, user_turns = await _load_scenario(db, ctx, body.scenario_key)
    if not user_turns:
        raise ValidationError("Scenario has no user turns to simulate")

    api_key = await ApiKeyService(db).get_decrypted(ctx, Provider.OPENAI)
    if not api_key:
        raise ValidationError("An OpenAI API key is required. Add one in settings.")

    plan = SimulationPlan(
        scenario_name=scenario_name,
        user_turns=user_turns,
        model=_model_settings(body),
        variables=await VariableRepository(db).as_mapping(ctx.active_org_id),
    )
    logger.info(
        "Simulation started: scenario=%s turns=%d model=%s",
        scenario_name,
        len(user_turns),
        plan.model.model,
    )
    return StreamingResponse(
        stream_simulation(plan, body.old_prompt, body.new_prompt, client_factory(api_key)),
        media_type="text/event-stream",
        headers=_SSE_HEADERS,
    )

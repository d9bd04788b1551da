"""Master API router mounted at /api."""

from fastapi import APIRouter

from promptarena.api.routes import api_keys, health, orgs, prompts, scenarios, simulate, variables

api_router = APIRouter(prefix="/api")
api_router.include_router(health.router)
api_router.include_router(orgs.router)
api_router.include_router(prompts.router)
api_router.include_router(scenarios.router)
api_router.include_router(variables.router)
api_router.include_router(api_keys.router)
api_router.include_router(simulate.router)

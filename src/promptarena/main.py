"""ASGI entry point: ``promptarena.main:app``."""

import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from promptarena.config import settings
from promptarena.logging_config import configure_logging

configure_logging(log_level=settings.log_level, json_output=settings.json_logs)

logger = logging.getLogger(__name__)

API_DESCRIPTION = "Multi-tenant prompt testing: prompts, scenarios, variables and side-by-side simulations."


@asynccontextmanager
async def lifespan(app: FastAPI):
    from promptarena.db.engine import create_db_engine, create_schema, create_session_factory, is_sqlite
    from promptarena.services.llm_client import openai_client_factory

    db_url = settings.effective_database_url
    engine = create_db_engine(db_url)
    # PostgreSQL schemas are managed outside the app; local SQLite files are not
    if is_sqlite(db_url):
        await create_schema(engine)
        logger.info("SQLite schema ready (local mode)")

    if not settings.encryption_key:
        logger.warning("PROMPTARENA_ENCRYPTION_KEY is not set; API key storage and simulations will fail")

    app.state.db_engine = engine
    app.state.db_session_factory = create_session_factory(engine)
    app.state.llm_client_factory = openai_client_factory
    logger.info("PromptArena API started (db=%s, model=%s)", engine.dialect.name, settings.default_model)
    try:
        yield
    finally:
        await engine.dispose()
        logger.info("PromptArena API stopped")


def create_app() -> FastAPI:
    from promptarena.api.middleware.auth import AuthMiddleware
    from promptarena.api.middleware.request_context import RequestContextMiddleware
    from promptarena.api.router import api_router
    from promptarena.errors.handlers import register_exception_handlers

    app = FastAPI(title="PromptArena API", version="0.1.0", description=API_DESCRIPTION, lifespan=lifespan)

    # Starlette runs the last-added middleware first: trace id, then auth, then CORS
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_allowed_origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
        expose_headers=["X-Trace-Id"],
    )
    app.add_middleware(AuthMiddleware)
    app.add_middleware(RequestContextMiddleware)

    register_exception_handlers(app)
    app.include_router(api_router)
    return app


app = create_app()

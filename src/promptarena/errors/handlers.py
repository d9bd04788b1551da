"""Render every failure as ``{error, message, details?, trace_id}``."""

import logging

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse

from promptarena.errors.exceptions import AuthorizationError, PromptArenaError
from promptarena.models.common import ErrorResponse

logger = logging.getLogger(__name__)

GENERIC_MESSAGE = "Something went wrong. Please try again later."


def error_response(request: Request, status_code: int, code: str, message: str, details=None) -> JSONResponse:
    envelope = ErrorResponse(
        error=code,
        message=message,
        details=details,
        trace_id=getattr(request.state, "trace_id", None),
    )
    return JSONResponse(status_code=status_code, content=envelope.model_dump(mode="json", exclude_none=True))


def _caller(request: Request) -> str:
    identity = getattr(request.state, "identity", None)
    return identity.id if identity is not None else "anonymous"


async def domain_error_handler(request: Request, exc: PromptArenaError) -> JSONResponse:
    if isinstance(exc, AuthorizationError):
        logger.warning("Denied %s %s for %s: %s", request.method, request.url.path, _caller(request), exc.message)
    elif exc.status_code >= 500:
        logger.error("%s on %s %s: %s", exc.code, request.method, request.url.path, exc.message)
    return error_response(request, exc.status_code, exc.code, exc.message, exc.details)


async def request_validation_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    details = [
        {"loc": list(err.get("loc", ())), "msg": err.get("msg", ""), "type": err.get("type", "")}
        for err in exc.errors()
    ]
    return error_response(request, 400, "VALIDATION", "Request validation failed", details)


async def unhandled_error_handler(request: Request, exc: Exception) -> JSONResponse:
    logger.exception("Unhandled error on %s %s", request.method, request.url.path)
    return error_response(request, 500, "INTERNAL", GENERIC_MESSAGE)


def register_exception_handlers(app: FastAPI) -> None:
    app.add_exception_handler(PromptArenaError, domain_error_handler)
    app.add_exception_handler(RequestValidationError, request_validation_handler)
    app.add_exception_handler(Exception, unhandled_error_handler)

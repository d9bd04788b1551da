"""Shared pydantic models for API payloads and error responses."""

from typing import Any

from pydantic import BaseModel, ConfigDict
from pydantic.alias_generators import to_camel


class ApiModel(BaseModel):
    """Base for wire models: camelCase on the wire, snake_case in Python."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, from_attributes=True)


class RequestModel(ApiModel):
    """Base for request bodies; unknown fields are rejected."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, extra="forbid")


class ErrorResponse(BaseModel):
    """Stable error envelope returned by every failing endpoint."""

    model_config = ConfigDict(extra="forbid")

    error: str
    message: str
    details: dict[str, Any] | list[Any] | str | None = None
    trace_id: str | None = None


class OkResponse(ApiModel):
    ok: bool = True

"""Request bodies for variable endpoints."""

from pydantic import Field

from promptarena.models.common import RequestModel

VARIABLE_KEY_PATTERN = r"^[A-Za-z0-9_]+$"


class VariableCreate(RequestModel):
    key: str = Field(..., min_length=1, max_length=100, pattern=VARIABLE_KEY_PATTERN)
    value: str = Field(..., min_length=1)
    description: str | None = None


class VariableUpdate(RequestModel):
    key: str | None = Field(None, min_length=1, max_length=100, pattern=VARIABLE_KEY_PATTERN)
    value: str | None = Field(None, min_length=1)
    description: str | None = None

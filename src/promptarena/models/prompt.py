"""Request bodies for prompt endpoints."""

from pydantic import Field

from promptarena.models.common import RequestModel
from promptarena.models.enums import ContentStatus


class PromptCreate(RequestModel):
    name: str = Field(..., min_length=1, max_length=200)
    description: str | None = None
    content: str = Field(..., min_length=1)
    status: ContentStatus = ContentStatus.DRAFT
    tags: list[str] = Field(default_factory=list)


class PromptUpdate(RequestModel):
    name: str | None = Field(None, min_length=1, max_length=200)
    description: str | None = None
    content: str | None = Field(None, min_length=1)
    status: ContentStatus | None = None
    tags: list[str] | None = None

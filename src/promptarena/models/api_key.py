"""Request bodies for provider API key endpoints."""

from pydantic import Field, model_validator

from promptarena.models.common import RequestModel
from promptarena.models.enums import Provider


class ApiKeyBody(RequestModel):
    provider: Provider
    api_key: str = Field(..., min_length=1)
    key_name: str | None = Field(None, max_length=200)

    @model_validator(mode="after")
    def _check_format(self) -> "ApiKeyBody":
        if self.provider == Provider.OPENAI and (not self.api_key.startswith("sk-") or len(self.api_key) < 20):
            raise ValueError("OpenAI API keys start with 'sk-' and are at least 20 characters long")
        return self

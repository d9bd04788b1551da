"""Request body and stream event models for ``/api/simulate``."""

from typing import Any, Literal

from pydantic import Field

from promptarena.models.common import ApiModel, RequestModel
from promptarena.models.enums import PromptType, ReasoningEffort, ServiceTier, Verbosity


class ModelOptions(RequestModel):
    model: str = Field(..., min_length=1)
    reasoning_effort: ReasoningEffort | None = None
    verbosity: Verbosity | None = None
    service_tier: ServiceTier | None = None


class SimulateRequest(RequestModel):
    old_prompt: str = Field(..., min_length=1)
    new_prompt: str = Field(..., min_length=1)
    scenario_key: str = Field(..., min_length=1)
    llm_options: ModelOptions | None = Field(None, alias="modelConfig")
    model: str | None = Field(None, min_length=1)


class SimulationEvent(ApiModel):
    type: Literal["start", "message", "complete", "done", "error"]
    prompt_type: PromptType | None = None
    data: Any = None
    error: str | None = None
    scenario_name: str | None = None
    total_turns: int | None = None

    def to_sse(self) -> str:
        return f"data: {self.model_dump_json(by_alias=True, exclude_none=True)}\n\n"

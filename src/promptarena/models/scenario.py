"""Request bodies for scenario endpoints.

Expectations are a tagged union on ``expectationType``; each kind carries
its own ``args`` shape so evaluators never have to guess.
"""

import re
from typing import Annotated, Literal, Union

from pydantic import Field, field_validator, model_validator

from promptarena.models.common import RequestModel
from promptarena.models.enums import ContentStatus, TurnType

EXPECTATION_KEY_PATTERN = r"^[A-Za-z0-9_-]+$"


class TextArgs(RequestModel):
    text: str = Field(..., min_length=1)
    case_sensitive: bool = False


class AnyOfArgs(RequestModel):
    options: list[str] = Field(..., min_length=1)
    case_sensitive: bool = False


class RegexArgs(RequestModel):
    pattern: str = Field(..., min_length=1)
    flags: str = Field("", pattern=r"^[ims]*$")

    @field_validator("pattern")
    @classmethod
    def _compiles(cls, value: str) -> str:
        try:
            re.compile(value)
        except re.error as exc:
            raise ValueError(f"Invalid regular expression: {exc}") from exc
        return value


class SemanticArgs(RequestModel):
    assertion: str = Field(..., min_length=1)


class _ExpectationBase(RequestModel):
    expectation_key: str = Field(..., min_length=1, max_length=100, pattern=EXPECTATION_KEY_PATTERN)
    weight: float = Field(1.0, ge=0)


class MustContain(_ExpectationBase):
    expectation_type: Literal["MUST_CONTAIN"]
    args: TextArgs


class MustContainAny(_ExpectationBase):
    expectation_type: Literal["MUST_CONTAIN_ANY"]
    args: AnyOfArgs


class MustNotContain(_ExpectationBase):
    expectation_type: Literal["MUST_NOT_CONTAIN"]
    args: TextArgs


class RegexMatch(_ExpectationBase):
    expectation_type: Literal["REGEX"]
    args: RegexArgs


class SemanticAssert(_ExpectationBase):
    expectation_type: Literal["SEMANTIC_ASSERT"]
    args: SemanticArgs


Expectation = Annotated[
    Union[MustContain, MustContainAny, MustNotContain, RegexMatch, SemanticAssert],
    Field(discriminator="expectation_type"),
]


class TurnBody(RequestModel):
    turn_type: TurnType
    order_index: int | None = Field(None, ge=0)
    user_text: str | None = None
    expectations: list[Expectation] = Field(default_factory=list)

    @model_validator(mode="after")
    def _user_turns_need_text(self) -> "TurnBody":
        if self.turn_type == TurnType.USER and not (self.user_text or "").strip():
            raise ValueError("USER turns require userText")
        return self


class ScenarioCreate(RequestModel):
    name: str = Field(..., min_length=1, max_length=100)
    description: str | None = None
    locale: str = Field("en", min_length=2, max_length=20)
    status: ContentStatus = ContentStatus.DRAFT
    tags: list[str] = Field(default_factory=list)
    turns: list[TurnBody] = Field(default_factory=list)


class ScenarioUpdate(RequestModel):
    name: str | None = Field(None, min_length=1, max_length=100)
    description: str | None = None
    locale: str | None = Field(None, min_length=2, max_length=20)
    status: ContentStatus | None = None
    tags: list[str] | None = None
    turns: list[TurnBody] | None = None


class TurnCheckBody(RequestModel):
    """A model reply to grade against one turn's expectations."""

    output: str = Field(..., max_length=100_000)

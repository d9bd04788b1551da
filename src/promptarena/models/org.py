"""Request bodies for organization, membership and invitation endpoints."""

from pydantic import EmailStr, Field, field_validator

from promptarena.models.common import RequestModel
from promptarena.models.enums import OrgRole


class OrgNameBody(RequestModel):
    name: str = Field(..., min_length=2, max_length=100)

    @field_validator("name", mode="before")
    @classmethod
    def _strip(cls, value):
        return value.strip() if isinstance(value, str) else value


class InviteBody(RequestModel):
    email: EmailStr
    role: OrgRole = OrgRole.VIEWER

    @field_validator("email", mode="before")
    @classmethod
    def _strip(cls, value):
        return value.strip() if isinstance(value, str) else value

    @field_validator("email", mode="after")
    @classmethod
    def _lowercase(cls, value: str) -> str:
        return value.lower()


class RoleChangeBody(RequestModel):
    role: OrgRole

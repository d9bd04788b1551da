"""Prompt table."""

from sqlalchemy import JSON, String, Text, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column

from promptarena.db.base import ID_LENGTH, Base, OrgScopedMixin


class PromptRow(Base, OrgScopedMixin):
    __tablename__ = "prompts"
    __table_args__ = (UniqueConstraint("org_id", "name", name="uq_prompts_org_name"),)

    prompt_id: Mapped[str] = mapped_column(String(ID_LENGTH), primary_key=True)
    name: Mapped[str] = mapped_column(String(200), nullable=False)
    description: Mapped[str | None] = mapped_column(Text, nullable=True)
    content: Mapped[str] = mapped_column(Text, nullable=False)
    status: Mapped[str] = mapped_column(String(20), nullable=False, default="DRAFT")
    tags: Mapped[list] = mapped_column(JSON, nullable=False, default=list)

"""Variable table."""

from sqlalchemy import String, Text, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column

from promptarena.db.base import ID_LENGTH, Base, OrgScopedMixin


class VariableRow(Base, OrgScopedMixin):
    __tablename__ = "variables"
    __table_args__ = (UniqueConstraint("org_id", "key", name="uq_variables_org_key"),)

    variable_id: Mapped[str] = mapped_column(String(ID_LENGTH), primary_key=True)
    key: Mapped[str] = mapped_column(String(100), nullable=False)
    value: Mapped[str] = mapped_column(Text, nullable=False)
    description: Mapped[str | None] = mapped_column(Text, nullable=True)

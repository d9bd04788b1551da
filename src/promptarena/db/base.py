"""Declarative base and the column mixins every table draws from."""

from datetime import datetime, timezone

from sqlalchemy import DateTime, ForeignKey, String, func
from sqlalchemy.orm import DeclarativeBase, Mapped, declared_attr, mapped_column

ID_LENGTH = 128


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


class Base(DeclarativeBase):
    pass


class TimestampMixin:
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        default=utcnow,
        server_default=func.now(),
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        default=utcnow,
        server_default=func.now(),
        onupdate=utcnow,
    )


class OrgScopedMixin(TimestampMixin):
    """Owning org (deleted with it) plus the user who created the row.

    Every read of an org-scoped table filters on ``org_id``; a row from
    another org behaves exactly like a missing one.
    """

    @declared_attr
    def org_id(cls) -> Mapped[str]:
        return mapped_column(
            String(ID_LENGTH),
            ForeignKey("orgs.org_id", ondelete="CASCADE"),
            nullable=False,
            index=True,
        )

    @declared_attr
    def user_id(cls) -> Mapped[str]:
        return mapped_column(String(ID_LENGTH), ForeignKey("users.user_id"), nullable=False)

"""User mirror and per-user profile tables."""

from sqlalchemy import ForeignKey, String
from sqlalchemy.orm import Mapped, mapped_column

from promptarena.db.base import ID_LENGTH, Base, TimestampMixin


class UserRow(Base, TimestampMixin):
    __tablename__ = "users"

    user_id: Mapped[str] = mapped_column(String(ID_LENGTH), primary_key=True)
    email: Mapped[str | None] = mapped_column(String(320), nullable=True, index=True)
    name: Mapped[str | None] = mapped_column(String(200), nullable=True)


class UserProfileRow(Base, TimestampMixin):
    __tablename__ = "user_profiles"

    user_id: Mapped[str] = mapped_column(
        String(ID_LENGTH), ForeignKey("users.user_id", ondelete="CASCADE"), primary_key=True
    )
    last_active_org_id: Mapped[str | None] = mapped_column(
        String(ID_LENGTH), ForeignKey("orgs.org_id", ondelete="SET NULL"), nullable=True, index=True
    )

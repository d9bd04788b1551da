"""Encrypted provider API key table."""

from sqlalchemy import Boolean, String, Text, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column

from promptarena.db.base import ID_LENGTH, Base, OrgScopedMixin


class ProviderApiKeyRow(Base, OrgScopedMixin):
    __tablename__ = "provider_api_keys"
    __table_args__ = (UniqueConstraint("org_id", "provider", name="uq_provider_api_keys_org_provider"),)

    key_id: Mapped[str] = mapped_column(String(ID_LENGTH), primary_key=True)
    provider: Mapped[str] = mapped_column(String(50), nullable=False)
    key_name: Mapped[str] = mapped_column(String(200), nullable=False)
    encrypted_key: Mapped[str] = mapped_column(Text, nullable=False)
    is_active: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)

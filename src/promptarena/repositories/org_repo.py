"""Organization, membership and invitation repositories."""

from datetime import datetime

from sqlalchemy import delete, func, select, update

from promptarena.db.models.org import OrgInvitationRow, OrgMemberRow, OrgRow
from promptarena.db.models.user import UserRow
from promptarena.models.enums import InvitationStatus, MemberStatus, OrgRole
from promptarena.repositories.base import BaseRepository


class OrgRepository(BaseRepository[OrgRow]):
    model = OrgRow
    pk_field = "org_id"

    async def slug_exists(self, slug: str) -> bool:
        stmt = select(OrgRow.org_id).where(OrgRow.slug == slug).limit(1)
        result = await self.session.execute(stmt)
        return result.scalar_one_or_none() is not None

    async def release_personal_claim(self, user_id: str) -> int:
        """Detach the user from the workspace provisioned for them; returns rows touched."""
        stmt = (
            update(OrgRow)
            .where(OrgRow.personal_owner_user_id == user_id)
            .values(personal_owner_user_id=None)
            .execution_options(synchronize_session="fetch")
        )
        result = await self.session.execute(stmt)
        return result.rowcount or 0

    async def delete_by_id(self, org_id: str) -> None:
        """Hard delete; memberships and tenant resources go with it via FK cascade."""
        await self.session.execute(delete(OrgRow).where(OrgRow.org_id == org_id))


class MemberRepository(BaseRepository[OrgMemberRow]):
    model = OrgMemberRow
    pk_field = "member_id"

    async def get_for_user(self, org_id: str, user_id: str) -> OrgMemberRow | None:
        return await self.first(OrgMemberRow.org_id == org_id, OrgMemberRow.user_id == user_id)

    async def get_active(self, org_id: str, user_id: str) -> OrgMemberRow | None:
        row = await self.get_for_user(org_id, user_id)
        if row is None or row.status != MemberStatus.ACTIVE:
            return None
        return row

    async def list_active_for_user(self, user_id: str) -> list[OrgMemberRow]:
        """ACTIVE memberships of a user, most recently touched first."""
        stmt = (
            select(OrgMemberRow)
            .where(
                OrgMemberRow.user_id == user_id,
                OrgMemberRow.status == MemberStatus.ACTIVE,
            )
            .order_by(OrgMemberRow.updated_at.desc(), OrgMemberRow.created_at.desc())
        )
        result = await self.session.execute(stmt)
        return list(result.scalars().all())

    async def list_orgs_for_user(self, user_id: str) -> list[tuple[OrgMemberRow, OrgRow]]:
        stmt = (
            select(OrgMemberRow, OrgRow)
            .join(OrgRow, OrgRow.org_id == OrgMemberRow.org_id)
            .where(
                OrgMemberRow.user_id == user_id,
                OrgMemberRow.status == MemberStatus.ACTIVE,
            )
            .order_by(OrgMemberRow.updated_at.desc())
        )
        result = await self.session.execute(stmt)
        return [(member, org) for member, org in result.all()]

    async def list_active_with_users(self, org_id: str) -> list[tuple[OrgMemberRow, UserRow]]:
        stmt = (
            select(OrgMemberRow, UserRow)
            .join(UserRow, UserRow.user_id == OrgMemberRow.user_id)
            .where(
                OrgMemberRow.org_id == org_id,
                OrgMemberRow.status == MemberStatus.ACTIVE,
            )
            .order_by(OrgMemberRow.created_at.asc())
        )
        result = await self.session.execute(stmt)
        return [(member, user) for member, user in result.all()]

    async def count_active_admins(self, org_id: str) -> int:
        stmt = select(func.count()).select_from(OrgMemberRow).where(
            OrgMemberRow.org_id == org_id,
            OrgMemberRow.role == OrgRole.ADMIN,
            OrgMemberRow.status == MemberStatus.ACTIVE,
        )
        result = await self.session.execute(stmt)
        return int(result.scalar_one())

    async def find_other_active(self, user_id: str, exclude_org_id: str) -> OrgMemberRow | None:
        stmt = (
            select(OrgMemberRow)
            .where(
                OrgMemberRow.user_id == user_id,
                OrgMemberRow.status == MemberStatus.ACTIVE,
                OrgMemberRow.org_id != exclude_org_id,
            )
            .order_by(OrgMemberRow.updated_at.desc())
            .limit(1)
        )
        result = await self.session.execute(stmt)
        return result.scalar_one_or_none()

    async def is_active_member_by_email(self, org_id: str, email: str) -> bool:
        stmt = (
            select(OrgMemberRow.member_id)
            .join(UserRow, UserRow.user_id == OrgMemberRow.user_id)
            .where(
                OrgMemberRow.org_id == org_id,
                OrgMemberRow.status == MemberStatus.ACTIVE,
                func.lower(UserRow.email) == email.lower(),
            )
            .limit(1)
        )
        result = await self.session.execute(stmt)
        return result.scalar_one_or_none() is not None


class InvitationRepository(BaseRepository[OrgInvitationRow]):
    model = OrgInvitationRow
    pk_field = "invitation_id"

    async def list_acceptable_for_email(self, email: str, now: datetime) -> list[OrgInvitationRow]:
        """PENDING, unexpired invitations addressed to ``email`` (case-insensitive)."""
        stmt = (
            select(OrgInvitationRow)
            .where(
                func.lower(OrgInvitationRow.email) == email.lower(),
                OrgInvitationRow.status == InvitationStatus.PENDING,
                OrgInvitationRow.expires_at > now,
            )
            .order_by(OrgInvitationRow.created_at.asc())
        )
        result = await self.session.execute(stmt)
        return list(result.scalars().all())

    async def list_pending(self, org_id: str) -> list[OrgInvitationRow]:
        stmt = (
            select(OrgInvitationRow)
            .where(
                OrgInvitationRow.org_id == org_id,
                OrgInvitationRow.status == InvitationStatus.PENDING,
            )
            .order_by(OrgInvitationRow.created_at.desc())
        )
        result = await self.session.execute(stmt)
        return list(result.scalars().all())

"""Organization, membership and invitation management.

Authorization failures raise (``AuthorizationError``/``LastAdminError``);
lookups that miss come back as ``ServiceResult.not_found``.
"""

import logging
import secrets
from datetime import datetime, timedelta, timezone

from sqlalchemy.ext.asyncio import AsyncSession

from promptarena.config import settings
from promptarena.db.models.org import OrgInvitationRow, OrgMemberRow, OrgRow
from promptarena.db.models.user import UserRow
from promptarena.errors.exceptions import AuthorizationError, LastAdminError
from promptarena.models.enums import Action, InvitationStatus, MemberStatus, OrgRole, Resource
from promptarena.repositories.org_repo import InvitationRepository, MemberRepository, OrgRepository
from promptarena.repositories.user_repo import UserProfileRepository
from promptarena.security.org_context import OrgContext, OrgContextResolver
from promptarena.security.rbac import can
from promptarena.services.id_generator import (
    INVITATION_PREFIX,
    MEMBER_PREFIX,
    ORG_PREFIX,
    generate_id,
)
from promptarena.services.results import ServiceResult
from promptarena.services.slug import unique_slug

logger = logging.getLogger(__name__)


class MembershipService:
    def __init__(self, session: AsyncSession, now: datetime | None = None):
        self.session = session
        self._now = now
        self._orgs = OrgRepository(session)
        self._members = MemberRepository(session)
        self._invitations = InvitationRepository(session)
        self._profiles = UserProfileRepository(session)

    def now(self) -> datetime:
        return self._now or datetime.now(timezone.utc)

    # ------------------------------------------------------------------
    # Guards
    # ------------------------------------------------------------------

    async def _require_admin_of(self, user_id: str, org_id: str) -> OrgMemberRow:
        member = await self._members.get_active(org_id, user_id)
        if member is None or member.role != OrgRole.ADMIN:
            raise AuthorizationError("Only admins of this organization can do that")
        return member

    @staticmethod
    def _require_active_org(ctx: OrgContext, org_id: str, action: Action) -> None:
        if ctx.active_org_id != org_id:
            raise AuthorizationError("Switch to this organization first")
        if not can(ctx, action, Resource.MEMBERS):
            raise AuthorizationError(f"Missing permission {action}:members")

    async def _guard_last_admin(self, member: OrgMemberRow) -> None:
        if member.role != OrgRole.ADMIN or member.status != MemberStatus.ACTIVE:
            return
        if await self._members.count_active_admins(member.org_id) <= 1:
            raise LastAdminError()

    # ------------------------------------------------------------------
    # Organizations
    # ------------------------------------------------------------------

    async def list_orgs(self, ctx: OrgContext) -> list[dict]:
        rows = await self._members.list_orgs_for_user(ctx.user_id)
        return [
            {
                "id": org.org_id,
                "name": org.name,
                "slug": org.slug,
                "role": member.role,
                "is_active": org.org_id == ctx.active_org_id,
            }
            for member, org in rows
        ]

    async def create_org(self, user_id: str, name: str) -> OrgRow:
        """Create an organization with the creator as its ACTIVE ADMIN, atomically."""
        org = await self._orgs.create(
            org_id=generate_id(ORG_PREFIX),
            name=name,
            slug=await unique_slug(self._orgs, name),
            created_by_user_id=user_id,
        )
        await self._members.create(
            member_id=generate_id(MEMBER_PREFIX),
            org_id=org.org_id,
            user_id=user_id,
            role=OrgRole.ADMIN,
            status=MemberStatus.ACTIVE,
        )
        await self.session.commit()
        logger.info("Organization %s (%s) created by %s", org.org_id, org.slug, user_id)
        return org

    async def rename_org(self, user_id: str, org_id: str, name: str) -> ServiceResult[OrgRow]:
        await self._require_admin_of(user_id, org_id)
        org = await self._orgs.get(org_id)
        if org is None:
            return ServiceResult.not_found("Organization")
        await self._orgs.update(org, name=name)
        await self.session.commit()
        return ServiceResult.success(org)

    async def delete_org(self, user_id: str, org_id: str) -> ServiceResult[str | None]:
        """Delete an org and everything it owns; returns a suggested next org id."""
        await self._require_admin_of(user_id, org_id)
        if await self._orgs.get(org_id) is None:
            return ServiceResult.not_found("Organization")

        other = await self._members.find_other_active(user_id, org_id)
        next_org_id = other.org_id if other is not None else None

        cleared = await self._profiles.clear_last_active_org(org_id)
        await self._orgs.delete_by_id(org_id)
        await self.session.commit()
        # Deleted rows may still sit in the identity map
        self.session.expunge_all()
        logger.info(
            "Organization %s deleted by %s (%d profiles cleared, next=%s)",
            org_id,
            user_id,
            cleared,
            next_org_id,
        )
        return ServiceResult.success(next_org_id)

    async def switch_active_org(self, user_id: str, org_id: str) -> OrgMemberRow:
        return await OrgContextResolver(self.session).switch_active_org(user_id, org_id)

    # ------------------------------------------------------------------
    # Members
    # ------------------------------------------------------------------

    async def list_members(self, ctx: OrgContext, org_id: str) -> list[tuple[OrgMemberRow, UserRow]]:
        self._require_active_org(ctx, org_id, Action.READ)
        return await self._members.list_active_with_users(org_id)

    async def change_member_role(
        self, ctx: OrgContext, org_id: str, user_id: str, role: OrgRole
    ) -> ServiceResult[OrgMemberRow]:
        self._require_active_org(ctx, org_id, Action.MANAGE)
        member = await self._members.get_active(org_id, user_id)
        if member is None:
            return ServiceResult.not_found("Member")
        if role != OrgRole.ADMIN:
            await self._guard_last_admin(member)
        await self._members.update(member, role=role)
        await self.session.commit()
        logger.info("Member %s in org %s changed to %s by %s", user_id, org_id, role, ctx.user_id)
        return ServiceResult.success(member)

    async def remove_member(self, ctx: OrgContext, org_id: str, user_id: str) -> ServiceResult[OrgMemberRow]:
        """Soft-remove a member; the row stays with status REMOVED."""
        self._require_active_org(ctx, org_id, Action.MANAGE)
        member = await self._members.get_active(org_id, user_id)
        if member is None:
            return ServiceResult.not_found("Member")
        await self._guard_last_admin(member)
        await self._members.update(member, status=MemberStatus.REMOVED)
        await self.session.commit()
        logger.info("Member %s removed from org %s by %s", user_id, org_id, ctx.user_id)
        return ServiceResult.success(member)

    # ------------------------------------------------------------------
    # Invitations
    # ------------------------------------------------------------------

    async def invite_member(
        self, ctx: OrgContext, org_id: str, email: str, role: OrgRole = OrgRole.VIEWER
    ) -> OrgInvitationRow | None:
        """Create a PENDING invitation, or return None if ``email`` is already an active member."""
        if not settings.invite_flow_enabled:
            raise AuthorizationError("Invitations are disabled")
        self._require_active_org(ctx, org_id, Action.MANAGE)

        email = email.strip().lower()
        if await self._members.is_active_member_by_email(org_id, email):
            return None

        invitation = await self._invitations.create(
            invitation_id=generate_id(INVITATION_PREFIX),
            org_id=org_id,
            email=email,
            role=role,
            token=secrets.token_urlsafe(32),
            expires_at=self.now() + timedelta(days=settings.invitation_ttl_days),
            status=InvitationStatus.PENDING,
            invited_by_user_id=ctx.user_id,
        )
        await self.session.commit()
        logger.info("Invitation %s created for org %s as %s", invitation.invitation_id, org_id, role)
        return invitation

    async def list_invitations(self, ctx: OrgContext, org_id: str) -> list[OrgInvitationRow]:
        self._require_active_org(ctx, org_id, Action.MANAGE)
        return await self._invitations.list_pending(org_id)

    async def _get_org_invitation(self, org_id: str, invitation_id: str) -> OrgInvitationRow | None:
        invitation = await self._invitations.get(invitation_id)
        if invitation is None or invitation.org_id != org_id:
            return None
        return invitation

    async def resend_invitation(
        self, ctx: OrgContext, org_id: str, invitation_id: str
    ) -> ServiceResult[OrgInvitationRow]:
        """Record a resend. Token and expiry are left untouched."""
        self._require_active_org(ctx, org_id, Action.MANAGE)
        invitation = await self._get_org_invitation(org_id, invitation_id)
        if invitation is None:
            return ServiceResult.not_found("Invitation")
        await self._invitations.update(invitation, updated_at=self.now())
        await self.session.commit()
        return ServiceResult.success(invitation)

    async def revoke_invitation(self, ctx: OrgContext, org_id: str, invitation_id: str) -> ServiceResult[None]:
        self._require_active_org(ctx, org_id, Action.MANAGE)
        invitation = await self._get_org_invitation(org_id, invitation_id)
        if invitation is None or invitation.status != InvitationStatus.PENDING:
            return ServiceResult.not_found("Invitation")
        await self._invitations.delete(invitation)
        await self.session.commit()
        logger.info("Invitation %s revoked by %s", invitation_id, ctx.user_id)
        return ServiceResult.success(None)

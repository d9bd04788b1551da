"""Per-request organization context resolution.

Every authenticated request is resolved into an ``OrgContext`` triple of
``(user_id, active_org_id, role)``. Resolution runs the same idempotent
sequence each time:

1. mirror the identity into ``users`` and make sure a profile row exists
   (profile failures degrade to "no profile");
2. accept PENDING, unexpired invitations addressed to the identity's email;
3. provision a personal workspace when the user has no ACTIVE membership;
4. pick the active org (remembered choice if still valid, else the most
   recently touched membership) and read the role from that membership.

Nothing is cached between requests; the role is always read fresh.
"""

import logging
from dataclasses import dataclass
from datetime import datetime, timezone

from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from promptarena.db.models.org import OrgInvitationRow, OrgMemberRow
from promptarena.db.models.user import UserProfileRow
from promptarena.errors.exceptions import AuthenticationError, AuthorizationError, OrgRequiredError
from promptarena.models.enums import InvitationStatus, MemberStatus, OrgRole
from promptarena.repositories.org_repo import InvitationRepository, MemberRepository, OrgRepository
from promptarena.repositories.user_repo import UserProfileRepository, UserRepository
from promptarena.security.identity import Identity
from promptarena.services.id_generator import MEMBER_PREFIX, ORG_PREFIX, generate_id
from promptarena.services.slug import unique_slug

logger = logging.getLogger(__name__)

_PROVISION_ATTEMPTS = 3


@dataclass(frozen=True)
class OrgContext:
    user_id: str
    active_org_id: str
    role: str

    @property
    def is_admin(self) -> bool:
        return self.role == OrgRole.ADMIN

    @property
    def is_editor(self) -> bool:
        return self.role in (OrgRole.ADMIN, OrgRole.EDITOR)

    @property
    def is_viewer(self) -> bool:
        # Any resolved member has at least read access
        return True


class OrgContextResolver:
    """Resolve identities into org contexts against one database session."""

    def __init__(self, session: AsyncSession, now: datetime | None = None):
        self.session = session
        self._now = now
        self._users = UserRepository(session)
        self._profiles = UserProfileRepository(session)
        self._orgs = OrgRepository(session)
        self._members = MemberRepository(session)
        self._invitations = InvitationRepository(session)

    def now(self) -> datetime:
        return self._now or datetime.now(timezone.utc)

    async def require(self, identity: Identity | None) -> OrgContext:
        if identity is None:
            raise AuthenticationError()
        ctx = await self.resolve(identity)
        if ctx is None:
            raise AuthenticationError()
        return ctx

    async def resolve(self, identity: Identity | None) -> OrgContext | None:
        if identity is None:
            return None

        await self._users.upsert(identity.id, identity.email, identity.name)
        await self.session.commit()

        # Read before later steps can roll back and expire the row
        profile = await self._ensure_profile(identity.id)
        remembered = profile.last_active_org_id if profile is not None else None

        if identity.email:
            await self._accept_invitations(identity)

        roles = {m.org_id: m.role for m in await self._members.list_active_for_user(identity.id)}
        if not roles:
            membership = await self._provision_personal_org(identity)
            active_org_id, roles = membership.org_id, {membership.org_id: membership.role}
            await self._remember_active_org(identity.id, active_org_id)
        elif remembered in roles:
            active_org_id = remembered
        else:
            # dicts keep insertion order, so this is the most recently touched membership
            active_org_id = next(iter(roles))
            await self._remember_active_org(identity.id, active_org_id)

        if not active_org_id:
            raise OrgRequiredError()

        role = roles.get(active_org_id) or OrgRole.VIEWER
        return OrgContext(user_id=identity.id, active_org_id=active_org_id, role=str(role))

    async def switch_active_org(self, user_id: str, org_id: str) -> OrgMemberRow:
        """Point the user's profile at ``org_id``; requires an ACTIVE membership."""
        member = await self._members.get_active(org_id, user_id)
        if member is None:
            raise AuthorizationError("You are not an active member of this organization")
        await self._profiles.set_last_active_org(user_id, org_id)
        await self.session.commit()
        return member

    async def _ensure_profile(self, user_id: str) -> UserProfileRow | None:
        try:
            profile = await self._profiles.get_or_create(user_id)
            await self.session.commit()
            return profile
        except SQLAlchemyError as exc:
            await self.session.rollback()
            logger.warning("User profile unavailable for %s, continuing without it: %s", user_id, exc)
            return None

    async def _accept_invitations(self, identity: Identity) -> None:
        pending = await self._invitations.list_acceptable_for_email(identity.email, self.now())
        for invitation_id in [inv.invitation_id for inv in pending]:
            invitation = await self._invitations.get(invitation_id)
            if invitation is None or invitation.status != InvitationStatus.PENDING:
                continue
            org_id, role = invitation.org_id, invitation.role
            try:
                await self._accept_one(invitation, identity.id)
                await self.session.commit()
            except IntegrityError:
                # A concurrent request created the membership first; apply the
                # invitation on top of the row it created.
                await self.session.rollback()
                invitation = await self._invitations.get(invitation_id)
                if invitation is None or invitation.status != InvitationStatus.PENDING:
                    continue
                await self._accept_one(invitation, identity.id)
                await self.session.commit()
            logger.info(
                "Invitation %s accepted: user %s joined org %s as %s",
                invitation_id,
                identity.id,
                org_id,
                role,
            )

    async def _accept_one(self, invitation: OrgInvitationRow, user_id: str) -> None:
        member = await self._members.get_for_user(invitation.org_id, user_id)
        if member is None:
            await self._members.create(
                member_id=generate_id(MEMBER_PREFIX),
                org_id=invitation.org_id,
                user_id=user_id,
                role=invitation.role,
                status=MemberStatus.ACTIVE,
            )
        elif member.status != MemberStatus.ACTIVE:
            await self._members.update(member, role=invitation.role, status=MemberStatus.ACTIVE)
        await self._invitations.update(
            invitation,
            status=InvitationStatus.ACCEPTED,
            accepted_by_user_id=user_id,
        )

    async def _provision_personal_org(self, identity: Identity) -> OrgMemberRow:
        name = f"{identity.display_name}'s Workspace"[:100]
        for attempt in range(1, _PROVISION_ATTEMPTS + 1):
            slug = await unique_slug(self._orgs, identity.display_name)
            org_id = generate_id(ORG_PREFIX)
            try:
                await self._orgs.create(
                    org_id=org_id,
                    name=name,
                    slug=slug,
                    created_by_user_id=identity.id,
                    personal_owner_user_id=identity.id,
                )
                member = await self._members.create(
                    member_id=generate_id(MEMBER_PREFIX),
                    org_id=org_id,
                    user_id=identity.id,
                    role=OrgRole.ADMIN,
                    status=MemberStatus.ACTIVE,
                )
                await self.session.commit()
            except IntegrityError:
                # Another request provisioned first (or took the slug); adopt its workspace
                await self.session.rollback()
                logger.info(
                    "Personal workspace creation for %s conflicted (attempt %d), re-reading memberships",
                    identity.id,
                    attempt,
                )
                existing = await self._members.list_active_for_user(identity.id)
                if existing:
                    return existing[0]
                # The earlier personal workspace no longer counts the user as a member
                if await self._orgs.release_personal_claim(identity.id):
                    await self.session.commit()
                continue
            logger.info("Provisioned personal workspace %s (%s) for user %s", org_id, slug, identity.id)
            return member
        raise OrgRequiredError("Could not provision a personal workspace")

    async def _remember_active_org(self, user_id: str, org_id: str) -> None:
        try:
            await self._profiles.set_last_active_org(user_id, org_id)
            await self.session.commit()
        except SQLAlchemyError as exc:
            await self.session.rollback()
            logger.warning("Could not persist active org %s for %s: %s", org_id, user_id, exc)

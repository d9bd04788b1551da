"""Tests for per-request organization context resolution.

Covers:
- lazy provisioning of a personal workspace (idempotent, creator is ADMIN)
- slug collisions get numeric suffixes
- invitation auto-accept (email case-insensitive, expired ignored,
  REMOVED memberships re-activated)
- remembered active org honoured only while the membership is ACTIVE
- switching the active org
"""

from datetime import datetime, timedelta, timezone

import pytest
from sqlalchemy import select

from promptarena.db.models.org import OrgInvitationRow, OrgMemberRow, OrgRow
from promptarena.db.models.user import UserProfileRow, UserRow
from promptarena.errors.exceptions import AuthenticationError, AuthorizationError
from promptarena.models.enums import InvitationStatus, MemberStatus, OrgRole
from promptarena.security.identity import Identity
from promptarena.security import org_context
from promptarena.security.org_context import OrgContextResolver

ALICE = Identity(id="usr_alice", email="alice@example.com", name="Alice")
BOB = Identity(id="usr_bob", email="bob@x.com", name="Bob")


async def _fetch_all(session, stmt):
    result = await session.execute(stmt.execution_options(populate_existing=True))
    return list(result.scalars().all())


async def _seed_user(session, user_id: str, email: str | None = None) -> None:
    if await session.get(UserRow, user_id) is None:
        session.add(UserRow(user_id=user_id, email=email))
        await session.flush()


async def _seed_org(session, org_id: str, slug: str, admin_user_id: str | None = None) -> OrgRow:
    org = OrgRow(org_id=org_id, name=slug.title(), slug=slug)
    session.add(org)
    await session.flush()
    if admin_user_id:
        await _seed_user(session, admin_user_id)
        session.add(
            OrgMemberRow(
                member_id=f"mem_{org_id}_{admin_user_id}",
                org_id=org_id,
                user_id=admin_user_id,
                role=OrgRole.ADMIN,
                status=MemberStatus.ACTIVE,
            )
        )
    await session.commit()
    return org


async def _seed_invitation(session, org_id: str, email: str, role: str, expires_at: datetime) -> str:
    invitation_id = f"inv_{org_id}_{role}_{email}"
    session.add(
        OrgInvitationRow(
            invitation_id=invitation_id,
            org_id=org_id,
            email=email,
            role=role,
            token=f"tok-{invitation_id}",
            expires_at=expires_at,
            status=InvitationStatus.PENDING,
        )
    )
    await session.commit()
    return invitation_id


def _future(days: int = 7) -> datetime:
    return datetime.now(timezone.utc) + timedelta(days=days)


@pytest.mark.asyncio
async def test_first_request_provisions_personal_workspace(db_session):
    ctx = await OrgContextResolver(db_session).resolve(ALICE)

    assert ctx.user_id == "usr_alice"
    assert ctx.role == OrgRole.ADMIN
    assert ctx.is_admin and ctx.is_editor and ctx.is_viewer

    orgs = await _fetch_all(db_session, select(OrgRow))
    assert len(orgs) == 1
    assert orgs[0].org_id == ctx.active_org_id
    assert orgs[0].name == "Alice's Workspace"
    assert orgs[0].slug == "alice"

    profile = (await _fetch_all(db_session, select(UserProfileRow)))[0]
    assert profile.last_active_org_id == ctx.active_org_id


@pytest.mark.asyncio
async def test_provisioning_is_idempotent(db_session):
    resolver = OrgContextResolver(db_session)
    first = await resolver.resolve(ALICE)
    second = await resolver.resolve(ALICE)
    third = await OrgContextResolver(db_session).resolve(ALICE)

    assert first == second == third
    memberships = await _fetch_all(
        db_session, select(OrgMemberRow).where(OrgMemberRow.user_id == "usr_alice")
    )
    assert len(memberships) == 1
    assert memberships[0].role == OrgRole.ADMIN
    assert memberships[0].status == MemberStatus.ACTIVE


@pytest.mark.asyncio
async def test_concurrent_first_logins_share_one_workspace(db_session, monkeypatch):
    real_unique_slug = org_context.unique_slug
    contexts = []

    async def finish_other_login_first(orgs, name):
        # The other request completes its whole first login between our
        # membership check and our insert
        if not contexts:
            contexts.append(None)
            contexts.append(await OrgContextResolver(db_session).resolve(ALICE))
        return await real_unique_slug(orgs, name)

    monkeypatch.setattr(org_context, "unique_slug", finish_other_login_first)
    ctx = await OrgContextResolver(db_session).resolve(ALICE)

    assert ctx == contexts[1]
    orgs = await _fetch_all(db_session, select(OrgRow))
    assert [org.slug for org in orgs] == ["alice"]
    assert orgs[0].personal_owner_user_id == "usr_alice"
    memberships = await _fetch_all(db_session, select(OrgMemberRow))
    assert len(memberships) == 1


@pytest.mark.asyncio
async def test_removed_from_personal_workspace_gets_a_new_one(db_session):
    await _seed_user(db_session, "usr_alice", "alice@example.com")
    db_session.add(OrgRow(org_id="org_old", name="Old", slug="alice", personal_owner_user_id="usr_alice"))
    await db_session.flush()
    db_session.add(
        OrgMemberRow(
            member_id="mem_old_alice",
            org_id="org_old",
            user_id="usr_alice",
            role=OrgRole.ADMIN,
            status=MemberStatus.REMOVED,
        )
    )
    await db_session.commit()

    ctx = await OrgContextResolver(db_session).resolve(ALICE)

    assert ctx.active_org_id != "org_old"
    assert ctx.role == OrgRole.ADMIN
    orgs = {org.org_id: org for org in await _fetch_all(db_session, select(OrgRow))}
    assert orgs["org_old"].personal_owner_user_id is None
    assert orgs[ctx.active_org_id].personal_owner_user_id == "usr_alice"
    assert orgs[ctx.active_org_id].slug == "alice-1"


@pytest.mark.asyncio
async def test_slug_collision_gets_suffix(db_session):
    await _seed_org(db_session, "org_other", "alice")
    await _seed_org(db_session, "org_other2", "alice-1")

    ctx = await OrgContextResolver(db_session).resolve(ALICE)

    org = (await _fetch_all(db_session, select(OrgRow).where(OrgRow.org_id == ctx.active_org_id)))[0]
    assert org.slug == "alice-2"


@pytest.mark.asyncio
async def test_identity_without_name_or_email_still_gets_workspace(db_session):
    ctx = await OrgContextResolver(db_session).resolve(Identity(id="usr_anon"))
    org = (await _fetch_all(db_session, select(OrgRow).where(OrgRow.org_id == ctx.active_org_id)))[0]
    assert org.name == "Personal's Workspace"
    assert org.slug == "personal"


@pytest.mark.asyncio
async def test_no_identity(db_session):
    resolver = OrgContextResolver(db_session)
    assert await resolver.resolve(None) is None
    with pytest.raises(AuthenticationError):
        await resolver.require(None)


@pytest.mark.asyncio
async def test_invitation_auto_accepted_case_insensitive(db_session):
    await _seed_org(db_session, "org_o", "o-team", admin_user_id="usr_owner")
    invitation_id = await _seed_invitation(db_session, "org_o", "bob@x.com", OrgRole.EDITOR, _future())

    ctx = await OrgContextResolver(db_session).resolve(Identity(id="usr_bob", email="BOB@X.com"))

    # Bob now belongs to O and does not get a personal workspace
    assert ctx.active_org_id == "org_o"
    assert ctx.role == OrgRole.EDITOR
    members = await _fetch_all(db_session, select(OrgMemberRow).where(OrgMemberRow.user_id == "usr_bob"))
    assert [(m.org_id, m.role, m.status) for m in members] == [("org_o", OrgRole.EDITOR, MemberStatus.ACTIVE)]

    invitation = (
        await _fetch_all(db_session, select(OrgInvitationRow).where(OrgInvitationRow.invitation_id == invitation_id))
    )[0]
    assert invitation.status == InvitationStatus.ACCEPTED
    assert invitation.accepted_by_user_id == "usr_bob"


@pytest.mark.asyncio
async def test_expired_invitation_not_accepted(db_session):
    await _seed_org(db_session, "org_o", "o-team", admin_user_id="usr_owner")
    past = datetime.now(timezone.utc) - timedelta(minutes=1)
    invitation_id = await _seed_invitation(db_session, "org_o", "bob@x.com", OrgRole.EDITOR, past)

    ctx = await OrgContextResolver(db_session).resolve(BOB)

    assert ctx.active_org_id != "org_o"
    assert ctx.role == OrgRole.ADMIN
    invitation = (
        await _fetch_all(db_session, select(OrgInvitationRow).where(OrgInvitationRow.invitation_id == invitation_id))
    )[0]
    assert invitation.status == InvitationStatus.PENDING
    assert invitation.accepted_by_user_id is None


@pytest.mark.asyncio
async def test_invitation_expiry_uses_resolver_clock(db_session):
    await _seed_org(db_session, "org_o", "o-team", admin_user_id="usr_owner")
    expires = datetime(2030, 1, 1, tzinfo=timezone.utc)
    await _seed_invitation(db_session, "org_o", "bob@x.com", OrgRole.VIEWER, expires)

    later = OrgContextResolver(db_session, now=expires + timedelta(seconds=1))
    ctx = await later.resolve(BOB)
    assert ctx.active_org_id != "org_o"


@pytest.mark.asyncio
async def test_invitation_reactivates_removed_member(db_session):
    await _seed_org(db_session, "org_o", "o-team", admin_user_id="usr_owner")
    await _seed_user(db_session, "usr_bob", "bob@x.com")
    db_session.add(
        OrgMemberRow(
            member_id="mem_old_bob",
            org_id="org_o",
            user_id="usr_bob",
            role=OrgRole.VIEWER,
            status=MemberStatus.REMOVED,
        )
    )
    await db_session.commit()
    await _seed_invitation(db_session, "org_o", "bob@x.com", OrgRole.EDITOR, _future())

    ctx = await OrgContextResolver(db_session).resolve(BOB)

    assert ctx.active_org_id == "org_o"
    assert ctx.role == OrgRole.EDITOR
    members = await _fetch_all(db_session, select(OrgMemberRow).where(OrgMemberRow.user_id == "usr_bob"))
    assert len(members) == 1
    assert members[0].member_id == "mem_old_bob"
    assert members[0].status == MemberStatus.ACTIVE


@pytest.mark.asyncio
async def test_several_invitations_all_accepted(db_session):
    await _seed_org(db_session, "org_a", "team-a", admin_user_id="usr_owner")
    await _seed_org(db_session, "org_b", "team-b", admin_user_id="usr_owner")
    await _seed_invitation(db_session, "org_a", "bob@x.com", OrgRole.VIEWER, _future())
    await _seed_invitation(db_session, "org_b", "bob@x.com", OrgRole.EDITOR, _future())

    ctx = await OrgContextResolver(db_session).resolve(BOB)

    assert ctx.active_org_id in ("org_a", "org_b")
    members = await _fetch_all(db_session, select(OrgMemberRow).where(OrgMemberRow.user_id == "usr_bob"))
    assert {m.org_id: m.role for m in members} == {"org_a": OrgRole.VIEWER, "org_b": OrgRole.EDITOR}


@pytest.mark.asyncio
async def test_remembered_org_is_used_while_membership_active(db_session):
    resolver = OrgContextResolver(db_session)
    personal = await resolver.resolve(ALICE)
    await _seed_org(db_session, "org_team", "team")
    db_session.add(
        OrgMemberRow(
            member_id="mem_team_alice",
            org_id="org_team",
            user_id="usr_alice",
            role=OrgRole.VIEWER,
            status=MemberStatus.ACTIVE,
        )
    )
    await db_session.commit()

    member = await resolver.switch_active_org("usr_alice", "org_team")
    assert member.role == OrgRole.VIEWER

    ctx = await resolver.resolve(ALICE)
    assert ctx.active_org_id == "org_team"
    assert ctx.role == OrgRole.VIEWER

    # Membership removed: the remembered choice is ignored
    member.status = MemberStatus.REMOVED
    await db_session.commit()
    ctx = await resolver.resolve(ALICE)
    assert ctx.active_org_id == personal.active_org_id
    assert ctx.role == OrgRole.ADMIN

    profile = (await _fetch_all(db_session, select(UserProfileRow)))[0]
    assert profile.last_active_org_id == personal.active_org_id


@pytest.mark.asyncio
async def test_role_read_fresh_each_request(db_session):
    resolver = OrgContextResolver(db_session)
    ctx = await resolver.resolve(ALICE)
    member = (await _fetch_all(db_session, select(OrgMemberRow)))[0]
    member.role = OrgRole.EDITOR
    await db_session.commit()

    again = await resolver.resolve(ALICE)
    assert again.active_org_id == ctx.active_org_id
    assert again.role == OrgRole.EDITOR
    assert not again.is_admin


@pytest.mark.asyncio
async def test_switch_to_non_member_org_rejected(db_session):
    resolver = OrgContextResolver(db_session)
    await resolver.resolve(ALICE)
    await _seed_org(db_session, "org_foreign", "foreign", admin_user_id="usr_owner")

    with pytest.raises(AuthorizationError):
        await resolver.switch_active_org("usr_alice", "org_foreign")


@pytest.mark.asyncio
async def test_user_mirror_refreshes_email(db_session):
    await OrgContextResolver(db_session).resolve(ALICE)
    await OrgContextResolver(db_session).resolve(Identity(id="usr_alice", email="alice@new.example", name="Alice"))

    user = (await _fetch_all(db_session, select(UserRow)))[0]
    assert user.email == "alice@new.example"

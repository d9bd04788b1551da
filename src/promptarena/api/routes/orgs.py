"""Organization, member and invitation API routes."""

from fastapi import APIRouter, Depends, Response
from sqlalchemy.ext.asyncio import AsyncSession

from promptarena.api.results import unwrap
from promptarena.dependencies import get_db, get_org_context
from promptarena.models.org import InviteBody, OrgNameBody, RoleChangeBody
from promptarena.security.org_context import OrgContext
from promptarena.services.membership import MembershipService

router = APIRouter(tags=["Organizations"])

# UI hints only; authorization never reads these back
ACTIVE_ORG_COOKIE = "pa_active_org_id"
ORG_ROLE_COOKIE = "pa_org_role"


def _set_claim_cookies(response: Response, org_id: str, role: str) -> None:
    for name, value in ((ACTIVE_ORG_COOKIE, org_id), (ORG_ROLE_COOKIE, role)):
        response.set_cookie(name, value, httponly=False, samesite="lax", path="/")


def _invitation_dict(inv) -> dict:
    return {
        "id": inv.invitation_id,
        "email": inv.email,
        "role": inv.role,
        "status": inv.status,
        "expiresAt": inv.expires_at,
        "createdAt": inv.created_at,
        "updatedAt": inv.updated_at,
    }


# ---------------------------------------------------------------------------
# Organizations
# ---------------------------------------------------------------------------


@router.get("/orgs")
async def list_orgs(
    ctx: OrgContext = Depends(get_org_context),
    db: AsyncSession = Depends(get_db),
) -> list[dict]:
    orgs = await MembershipService(db).list_orgs(ctx)
    return [
        {"id": o["id"], "name": o["name"], "slug": o["slug"], "role": o["role"], "isActive": o["is_active"]}
        for o in orgs
    ]


@router.post("/orgs", status_code=201)
async def create_org(
    body: OrgNameBody,
    ctx: OrgContext = Depends(get_org_context),
    db: AsyncSession = Depends(get_db),
) -> dict:
    org = await MembershipService(db).create_org(ctx.user_id, body.name)
    return {"id": org.org_id, "name": org.name, "slug": org.slug}


@router.patch("/orgs/{org_id}")
async def rename_org(
    org_id: str,
    body: OrgNameBody,
    ctx: OrgContext = Depends(get_org_context),
    db: AsyncSession = Depends(get_db),
) -> dict:
    org = unwrap(await MembershipService(db).rename_org(ctx.user_id, org_id, body.name))
    return {"id": org.org_id, "name": org.name, "slug": org.slug}


@router.delete("/orgs/{org_id}")
async def delete_org(
    org_id: str,
    ctx: OrgContext = Depends(get_org_context),
    db: AsyncSession = Depends(get_db),
) -> dict:
    next_org_id = unwrap(await MembershipService(db).delete_org(ctx.user_id, org_id))
    return {"ok": True, "nextOrgId": next_org_id}


@router.post("/orgs/{org_id}/switch")
async def switch_org(
    org_id: str,
    response: Response,
    ctx: OrgContext = Depends(get_org_context),
    db: AsyncSession = Depends(get_db),
) -> dict:
    member = await MembershipService(db).switch_active_org(ctx.user_id, org_id)
    _set_claim_cookies(response, org_id, member.role)
    return {"ok": True, "activeOrgId": org_id, "orgRole": member.role}


# ---------------------------------------------------------------------------
# Members
# ---------------------------------------------------------------------------


@router.get("/orgs/{org_id}/members")
async def list_members(
    org_id: str,
    ctx: OrgContext = Depends(get_org_context),
    db: AsyncSession = Depends(get_db),
) -> list[dict]:
    rows = await MembershipService(db).list_members(ctx, org_id)
    return [
        {
            "userId": member.user_id,
            "name": user.name,
            "email": user.email,
            "role": member.role,
            "status": member.status,
        }
        for member, user in rows
    ]


@router.patch("/orgs/{org_id}/members/{user_id}")
async def change_member_role(
    org_id: str,
    user_id: str,
    body: RoleChangeBody,
    response: Response,
    ctx: OrgContext = Depends(get_org_context),
    db: AsyncSession = Depends(get_db),
) -> dict:
    member = unwrap(await MembershipService(db).change_member_role(ctx, org_id, user_id, body.role))
    if user_id == ctx.user_id:
        _set_claim_cookies(response, org_id, member.role)
    return {"ok": True, "userId": member.user_id, "role": member.role}


@router.delete("/orgs/{org_id}/members/{user_id}")
async def remove_member(
    org_id: str,
    user_id: str,
    ctx: OrgContext = Depends(get_org_context),
    db: AsyncSession = Depends(get_db),
) -> dict:
    unwrap(await MembershipService(db).remove_member(ctx, org_id, user_id))
    return {"ok": True}


# ---------------------------------------------------------------------------
# Invitations
# ---------------------------------------------------------------------------


@router.post("/orgs/{org_id}/members/invite", status_code=201)
async def invite_member(
    org_id: str,
    body: InviteBody,
    response: Response,
    ctx: OrgContext = Depends(get_org_context),
    db: AsyncSession = Depends(get_db),
) -> dict:
    invitation = await MembershipService(db).invite_member(ctx, org_id, body.email, body.role)
    if invitation is None:
        response.status_code = 200
        return {"status": "already_member"}
    return {"id": invitation.invitation_id, "token": invitation.token, "expiresAt": invitation.expires_at}


@router.get("/orgs/{org_id}/invitations")
async def list_invitations(
    org_id: str,
    ctx: OrgContext = Depends(get_org_context),
    db: AsyncSession = Depends(get_db),
) -> list[dict]:
    invitations = await MembershipService(db).list_invitations(ctx, org_id)
    return [_invitation_dict(inv) for inv in invitations]


@router.post("/orgs/{org_id}/invitations/{invitation_id}/resend")
async def resend_invitation(
    org_id: str,
    invitation_id: str,
    ctx: OrgContext = Depends(get_org_context),
    db: AsyncSession = Depends(get_db),
) -> dict:
    unwrap(await MembershipService(db).resend_invitation(ctx, org_id, invitation_id))
    return {"ok": True}


@router.delete("/orgs/{org_id}/invitations/{invitation_id}")
async def revoke_invitation(
    org_id: str,
    invitation_id: str,
    ctx: OrgContext = Depends(get_org_context),
    db: AsyncSession = Depends(get_db),
) -> dict:
    unwrap(await MembershipService(db).revoke_invitation(ctx, org_id, invitation_id))
    return {"ok": True}

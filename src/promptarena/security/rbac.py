"""Role-based access control: a single pure policy function."""

from promptarena.models.enums import Action, OrgRole, Resource


def can(ctx, action: Action | str, resource: Resource | str) -> bool:
    """Return whether ``ctx.role`` may perform ``action`` on ``resource``.

    ``ctx`` is anything with a ``role`` attribute (usually an ``OrgContext``)
    or ``None``. Unknown roles fall back to read-only access.
    """
    role = getattr(ctx, "role", None) if ctx is not None else None
    if not role:
        return False
    if role == OrgRole.ADMIN:
        return True
    if role == OrgRole.EDITOR:
        if resource == Resource.SETTINGS or action == Action.SETTINGS:
            return False
        if resource == Resource.MEMBERS or action == Action.MANAGE:
            return False
        return True
    return action == Action.READ

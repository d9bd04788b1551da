"""Organization slug derivation."""

import re

from promptarena.repositories.org_repo import OrgRepository

_NON_ALNUM = re.compile(r"[^a-z0-9]+")


def slugify(text: str) -> str:
    """Lowercase, collapse non-alphanumerics to ``-`` and trim edge dashes."""
    slug = _NON_ALNUM.sub("-", text.lower()).strip("-")
    return slug or "workspace"


async def unique_slug(repo: OrgRepository, text: str) -> str:
    """First free slug among ``base``, ``base-1``, ``base-2``, ..."""
    base = slugify(text)
    attempt = 0
    while True:
        candidate = base if attempt == 0 else f"{base}-{attempt}"
        if not await repo.slug_exists(candidate):
            return candidate
        attempt += 1

"""Bearer-token identity: decoding, minting and the request-level Identity."""

import logging
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone

from jose import JWTError, jwt

from promptarena.config import settings

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Identity:
    """Stable user identity as asserted by the token issuer."""

    id: str
    email: str | None = None
    name: str | None = None

    @property
    def display_name(self) -> str:
        return self.name or self.email or "Personal"


def decode_token(token: str) -> dict:
    """Verify signature, issuer and audience; raise ``ValueError`` on failure."""
    try:
        return jwt.decode(
            token,
            settings.jwt_secret,
            algorithms=[settings.jwt_algorithm],
            audience=settings.jwt_audience,
            issuer=settings.jwt_issuer,
        )
    except JWTError as exc:
        logger.debug("JWT decode failed: %s", exc)
        raise ValueError(f"Invalid token: {exc}") from exc


def create_access_token(identity: Identity, expires_minutes: int | None = None) -> str:
    now = datetime.now(timezone.utc)
    ttl = expires_minutes or settings.jwt_access_token_expire_minutes
    claims = {
        "sub": identity.id,
        "iss": settings.jwt_issuer,
        "aud": settings.jwt_audience,
        "iat": int(now.timestamp()),
        "exp": int((now + timedelta(minutes=ttl)).timestamp()),
    }
    if identity.email:
        claims["email"] = identity.email
    if identity.name:
        claims["name"] = identity.name
    return jwt.encode(claims, settings.jwt_secret, algorithm=settings.jwt_algorithm)


def identity_from_claims(claims: dict) -> Identity | None:
    """Identity for verified claims; ``None`` when the token names no subject."""
    sub = claims.get("sub")
    if not sub:
        return None
    return Identity(id=sub, email=claims.get("email") or None, name=claims.get("name") or None)

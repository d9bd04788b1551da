"""Symmetric encryption of provider API keys keyed by the server secret."""

import base64
import hashlib

from cryptography.fernet import Fernet, InvalidToken

from promptarena.config import settings
from promptarena.errors.exceptions import ServerMisconfiguredError


def _fernet(secret: str | None = None) -> Fernet:
    secret = secret if secret is not None else settings.encryption_key
    if not secret:
        raise ServerMisconfiguredError()
    key = base64.urlsafe_b64encode(hashlib.sha256(secret.encode("utf-8")).digest())
    return Fernet(key)


def ensure_crypto_ready() -> None:
    """Raise ``ServerMisconfiguredError`` when no encryption secret is configured."""
    _fernet()


def encrypt(plain_text: str) -> str:
    return _fernet().encrypt(plain_text.encode("utf-8")).decode("ascii")


def decrypt(token: str) -> str:
    try:
        return _fernet().decrypt(token.encode("ascii")).decode("utf-8")
    except InvalidToken as exc:
        # Secret rotated or ciphertext corrupted
        raise ServerMisconfiguredError("Stored API key could not be decrypted") from exc

"""Default encryption and content-hash collaborators."""

from __future__ import annotations

import base64
import hashlib
import logging

from cryptography.fernet import Fernet, InvalidToken

logger = logging.getLogger(__name__)


def content_hash(plaintext: str) -> str:
    """SHA-256 hex digest of the UTF-8 plaintext."""
    return hashlib.sha256(plaintext.encode("utf-8")).hexdigest()


def derive_fernet_key(secret: str | bytes) -> bytes:
    if isinstance(secret, str):
        secret = secret.encode("utf-8")
    if not secret:
        raise ValueError("cipher secret cannot be empty")
    return base64.urlsafe_b64encode(hashlib.sha256(secret).digest())


class FernetCipher:
    """Symmetric cipher shared by every member holding the same secret.

    The identity id is accepted to satisfy the collaborator contract; the
    key is room-wide so that any member can read any other member's
    messages.
    """

    def __init__(self, secret: str | bytes):
        self._fernet = Fernet(derive_fernet_key(secret))

    def encrypt(self, plaintext: str, identity_id: str) -> str:
        token = self._fernet.encrypt(plaintext.encode("utf-8"))
        return token.decode("ascii")

    def decrypt(self, ciphertext: str, identity_id: str) -> str:
        try:
            data = self._fernet.decrypt(ciphertext.encode("ascii"))
        except (InvalidToken, UnicodeEncodeError) as e:
            logger.debug("Decryption failed for reader %s: %s", identity_id, e)
            raise ValueError("message could not be decrypted") from e
        return data.decode("utf-8")

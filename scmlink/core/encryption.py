"""Encryption of repository credentials at rest.

Uses Fernet symmetric encryption (AES-128-CBC with HMAC-SHA256).
The key must be a 32-byte URL-safe base64-encoded string.

Generate a new key:
    python -c "from cryptography.fernet import Fernet; print(Fernet.generate_key().decode())"
"""

import logging

from cryptography.fernet import Fernet, InvalidToken

from scmlink.config import settings

logger = logging.getLogger(__name__)


class CredentialCipher:
    """Reversible cipher for repository passwords.

    The key is handed in at construction and never changes for the lifetime
    of the instance. Without a key the cipher is disabled and values pass
    through unchanged, so a deployment can enable encryption later without
    losing previously stored passwords.
    """

    def __init__(self, key: str | None, warn_if_missing: bool = True) -> None:
        self._cipher: Fernet | None = None

        if key:
            try:
                self._cipher = Fernet(key.encode())
            except (ValueError, TypeError):
                logger.warning("repository_cipher_key has invalid format, encryption disabled")
        elif warn_if_missing:
            logger.warning(
                "SECURITY: repository_cipher_key is not configured. "
                "Repository passwords will be stored in plaintext."
            )

    @property
    def is_enabled(self) -> bool:
        """Check if encryption is properly configured."""
        return self._cipher is not None

    def encrypt(self, plaintext: str) -> str:
        """Encrypt a plaintext string.

        Returns the plaintext unchanged when encryption is disabled.
        """
        if not self._cipher:
            return plaintext

        return self._cipher.encrypt(plaintext.encode()).decode()

    def decrypt(self, ciphertext: str) -> str:
        """Decrypt a stored value.

        Values that are not valid tokens for the configured key (stored
        before encryption was enabled) are returned as-is.
        """
        if not self._cipher:
            return ciphertext

        try:
            return self._cipher.decrypt(ciphertext.encode()).decode()
        except InvalidToken:
            return ciphertext

    def is_encrypted(self, value: str) -> bool:
        """Check if a value looks like a Fernet token (they start with 'gAAAAA')."""
        return value.startswith("gAAAAA") and len(value) >= 100


# Process-wide instance, keyed once from settings at startup
credential_cipher = CredentialCipher(
    settings.repository_cipher_key,
    warn_if_missing=not settings.debug,
)

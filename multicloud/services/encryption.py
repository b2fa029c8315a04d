"""Upload encryption (Fernet, key derived from the configured secret)."""

import base64

from cryptography.fernet import Fernet, InvalidToken
from cryptography.hazmat.primitives import hashes
from cryptography.hazmat.primitives.kdf.pbkdf2 import PBKDF2HMAC

from multicloud.core.config import SecuritySettings
from multicloud.core.exceptions import ProviderError

DECRYPTION_ERROR_MSG = "Failed to decrypt object - invalid key or corrupted data"


class ContentEncryptor:
    """Encrypt object bodies before upload and decrypt them after download."""

    def __init__(self, secret: str, salt: str) -> None:
        self._fernet = Fernet(self._derive_key(secret, salt))

    @classmethod
    def from_settings(cls, settings: SecuritySettings) -> "ContentEncryptor | None":
        if not settings.encrypt_uploads:
            return None
        return cls(settings.encryption_key, settings.encryption_salt)

    @staticmethod
    def _derive_key(secret: str, salt: str) -> bytes:
        """Derive 32-byte key from secret + salt via PBKDF2-HMAC-SHA256."""
        kdf = PBKDF2HMAC(
            algorithm=hashes.SHA256(),
            length=32,
            salt=salt.encode(),
            iterations=100_000,
        )
        return base64.urlsafe_b64encode(kdf.derive(secret.encode()))

    def encrypt(self, content: bytes) -> bytes:
        return self._fernet.encrypt(content)

    def decrypt(self, token: bytes, provider: str | None = None) -> bytes:
        """Decrypt a stored body.

        Raises:
            ProviderError: If the body is not a valid token for this key.
        """
        try:
            return self._fernet.decrypt(token)
        except InvalidToken as e:
            raise ProviderError(DECRYPTION_ERROR_MSG, provider=provider) from e

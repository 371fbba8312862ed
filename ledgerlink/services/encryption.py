"""Fernet encryption for the credential file fallback.

When the OS keychain cannot be used, the token pair lands in a file under the
config directory. With ``SdkSettings.encryption_key`` set, that file holds a
Fernet token instead of plaintext JSON.
"""

from cryptography.fernet import Fernet, InvalidToken

from ledgerlink.core.errors import StorageError


class EncryptionError(StorageError):
    """The fallback file could not be sealed or opened."""


class EncryptionService:
    """Seals token-file contents with a Fernet key.

    Keys are URL-safe base64 text as returned by ``generate_key()``.
    """

    def __init__(self, encryption_key: str):
        if not encryption_key:
            raise EncryptionError("No encryption key given for the token file")
        try:
            self._fernet = Fernet(encryption_key.encode("ascii"))
        except (ValueError, UnicodeEncodeError) as e:
            raise EncryptionError(f"Unusable token file key: {e}")

    @staticmethod
    def generate_key() -> str:
        return Fernet.generate_key().decode("ascii")

    def encrypt(self, plaintext: str) -> str:
        """Return ``plaintext`` as Fernet text suitable for writing to disk."""
        if not plaintext:
            raise EncryptionError("Refusing to seal an empty token file")
        return self._fernet.encrypt(plaintext.encode("utf-8")).decode("ascii")

    def decrypt(self, ciphertext: str) -> str:
        """Open file contents produced by :meth:`encrypt`.

        Surrounding whitespace is ignored. A different key, or a file edited
        by hand, raises ``EncryptionError``.
        """
        if not ciphertext:
            raise EncryptionError("Token file is empty")
        try:
            return self._fernet.decrypt(ciphertext.strip().encode("ascii")).decode("utf-8")
        except (InvalidToken, UnicodeError):
            raise EncryptionError("Token file could not be decrypted with the configured key")

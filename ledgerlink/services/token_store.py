"""Persistent storage for OAuth token pairs.

Tokens go to the OS credential store through ``keyring``. When no usable
keyring backend exists (headless servers, containers) they are written to
``<config_dir>/tokens.json`` with owner-only permissions, optionally Fernet
encrypted. Every use of the file fallback is signalled three ways: a log
warning, a ``CredentialStoreWarning`` and the ``on_fallback`` callback, so the
consuming tool can tell the user their tokens are not in the OS keychain.
"""

import json
import logging
import os
import warnings
from pathlib import Path
from typing import Any, Callable, Optional

import keyring
from keyring.errors import KeyringError, PasswordDeleteError

from ledgerlink.core.config import default_config_dir
from ledgerlink.core.errors import StorageError
from ledgerlink.services.encryption import EncryptionService
from ledgerlink.services.tokens import CredentialKind, TokenPair

logger = logging.getLogger(__name__)


class CredentialStoreWarning(UserWarning):
    """Emitted when tokens are kept in the file fallback."""
    pass


class CredentialStore:
    """Saves, loads and clears the persisted token pair.

    Only authorization-code token pairs are persisted. Client-credentials
    tokens are short-lived and re-requested with the in-memory secret, so
    ``save`` ignores them.
    """

    USERNAME = "tokens"
    FILE_NAME = "tokens.json"

    def __init__(
        self,
        service: str = "ledgerlink",
        config_dir: Optional[Path] = None,
        encryption_key: str = "",
        backend: Any = None,
        on_fallback: Optional[Callable[[Path], None]] = None,
    ):
        """Initialize CredentialStore.

        Args:
            service: Keyring service name
            config_dir: Directory for the fallback file
            encryption_key: Fernet key for the fallback file; empty keeps it
                as plain JSON
            backend: Object with keyring's ``get_password``/``set_password``/
                ``delete_password`` functions. Defaults to the ``keyring`` module.
            on_fallback: Called with the file path whenever the fallback is used
        """
        if config_dir is None:
            config_dir = default_config_dir()
        self.service = service
        self.config_dir = Path(config_dir)
        self.backend = backend if backend is not None else keyring
        self.on_fallback = on_fallback
        self._cipher = EncryptionService(encryption_key) if encryption_key else None

    @property
    def file_path(self) -> Path:
        return self.config_dir / self.FILE_NAME

    # =========================================================================
    # Public API
    # =========================================================================

    def save(self, pair: TokenPair) -> None:
        """Persist ``pair``, preferring the OS credential store.

        Raises:
            StorageError: If neither the keyring nor the file can be written
        """
        if pair.kind is CredentialKind.CLIENT_CREDENTIALS:
            logger.debug("Client-credentials tokens are not persisted")
            return

        payload = json.dumps(pair.to_storage())
        try:
            self.backend.set_password(self.service, self.USERNAME, payload)
        except KeyringError as e:
            logger.debug(f"Keyring storage failed: {e}, using file fallback")
        else:
            logger.debug("Stored tokens in OS keychain")
            self._remove_file()
            return

        self._write_file(payload)
        self._signal_fallback("stored")

    def load(self) -> Optional[TokenPair]:
        """Load the persisted pair, or None if there is nothing usable.

        A stored pair that has expired and carries no refresh token cannot be
        used and is ignored.

        Raises:
            StorageError: If stored data exists but cannot be decoded
        """
        payload: Optional[str] = None
        try:
            payload = self.backend.get_password(self.service, self.USERNAME)
        except KeyringError as e:
            logger.debug(f"Keychain unavailable: {e}, trying file fallback")

        if payload is not None:
            logger.debug("Loaded tokens from OS keychain")
        else:
            payload = self._read_file()
            if payload is None:
                logger.debug("No stored tokens found")
                return None
            self._signal_fallback("loaded")

        pair = self._decode(payload)
        if pair.is_expired() and pair.refresh_token is None:
            logger.info("Ignoring stored tokens: expired with no refresh token")
            return None
        return pair

    def clear(self) -> None:
        """Delete persisted tokens from every location.

        Raises:
            StorageError: If the fallback file exists but cannot be removed
        """
        try:
            self.backend.delete_password(self.service, self.USERNAME)
        except PasswordDeleteError:
            logger.debug("No tokens in OS keychain to delete")
        except KeyringError as e:
            logger.debug(f"Keychain clear failed: {e}")
        self._remove_file()

    # =========================================================================
    # File fallback
    # =========================================================================

    def _signal_fallback(self, action: str) -> None:
        path = self.file_path
        encrypted = "encrypted" if self._cipher else "plaintext JSON"
        message = (
            f"OS keychain unavailable: tokens {action} as {encrypted} at {path} "
            f"(0600 permissions)"
        )
        logger.warning(message)
        warnings.warn(message, CredentialStoreWarning, stacklevel=3)
        if self.on_fallback is not None:
            self.on_fallback(path)

    def _write_file(self, payload: str) -> None:
        content = self._cipher.encrypt(payload) if self._cipher else payload
        path = self.file_path
        tmp_path = path.with_suffix(".tmp")
        try:
            self.config_dir.mkdir(parents=True, exist_ok=True)
            fd = os.open(tmp_path, os.O_WRONLY | os.O_CREAT | os.O_TRUNC, 0o600)
            with os.fdopen(fd, "w", encoding="utf-8") as handle:
                handle.write(content)
            os.chmod(tmp_path, 0o600)
            os.replace(tmp_path, path)
        except OSError as e:
            raise StorageError(f"Failed to write token file {path}: {e}")

    def _read_file(self) -> Optional[str]:
        path = self.file_path
        try:
            content = path.read_text(encoding="utf-8")
        except FileNotFoundError:
            return None
        except OSError as e:
            raise StorageError(f"Failed to read token file {path}: {e}")
        return self._cipher.decrypt(content) if self._cipher else content

    def _remove_file(self) -> None:
        path = self.file_path
        try:
            path.unlink()
        except FileNotFoundError:
            return
        except OSError as e:
            raise StorageError(f"Failed to remove token file {path}: {e}")
        logger.debug(f"Removed token file {path}")

    @staticmethod
    def _decode(payload: str) -> TokenPair:
        try:
            return TokenPair.from_storage(json.loads(payload))
        except ValueError as e:
            raise StorageError(f"Stored tokens could not be parsed: {e}")


class MemoryCredentialStore:
    """Process-local store with the ``CredentialStore`` interface.

    For tests and for unattended callers that must not touch the keychain.
    """

    def __init__(self, pair: Optional[TokenPair] = None):
        self._payload: Optional[str] = json.dumps(pair.to_storage()) if pair else None

    def save(self, pair: TokenPair) -> None:
        if pair.kind is CredentialKind.CLIENT_CREDENTIALS:
            return
        self._payload = json.dumps(pair.to_storage())

    def load(self) -> Optional[TokenPair]:
        if self._payload is None:
            return None
        return TokenPair.from_storage(json.loads(self._payload))

    def clear(self) -> None:
        self._payload = None

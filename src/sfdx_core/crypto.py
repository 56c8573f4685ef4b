"""Symmetric encryption of secret credential fields.

The encryption key lives in a local secure key repository (the OS keyring by
default). It is fetched, or generated and stored, the first time
:meth:`Crypto.create` runs in a process and is then reused for the rest of the
process lifetime. :meth:`Crypto.reset` forgets the cached instance.
"""

from __future__ import annotations

import logging
import threading
from typing import ClassVar, Protocol

import keyring
from cryptography.fernet import Fernet, InvalidToken
from keyring.errors import KeyringError

from sfdx_core.errors import CryptoError
from sfdx_core.settings import get_settings

logger = logging.getLogger(__name__)


class KeyRepository(Protocol):
    """Where the symmetric key is kept."""

    def get_key(self) -> str | None: ...

    def set_key(self, key: str) -> None: ...


class KeyringKeyRepository:
    """Key repository backed by the OS keyring."""

    def __init__(self, service: str | None = None, account: str | None = None) -> None:
        settings = get_settings()
        self.service = service or settings.keychain_service
        self.account = account or settings.keychain_account

    def get_key(self) -> str | None:
        try:
            return keyring.get_password(self.service, self.account)
        except KeyringError as e:
            raise CryptoError(
                f"Failed to read the encryption key from the keyring: {e}",
                actions=["Check that an OS keyring backend is available."],
            ) from e

    def set_key(self, key: str) -> None:
        try:
            keyring.set_password(self.service, self.account, key)
        except KeyringError as e:
            raise CryptoError(f"Failed to store the encryption key in the keyring: {e}") from e


class Crypto:
    """Encrypts and decrypts text with a process-wide key."""

    _instance: ClassVar[Crypto | None] = None
    _lock: ClassVar[threading.Lock] = threading.Lock()

    def __init__(self, key: str) -> None:
        try:
            self._fernet = Fernet(key.encode("utf-8"))
        except (ValueError, TypeError) as e:
            raise CryptoError(
                "The stored encryption key is invalid",
                actions=["Remove the key from the keyring and re-authorize your orgs."],
            ) from e

    @classmethod
    def create(cls, key_repository: KeyRepository | None = None) -> Crypto:
        """Return the process-wide instance, creating the key on first use."""

        with cls._lock:
            if cls._instance is None:
                repository = key_repository or KeyringKeyRepository()
                key = repository.get_key()
                if not key:
                    logger.info("No encryption key found; generating a new one")
                    key = Fernet.generate_key().decode("utf-8")
                    repository.set_key(key)
                cls._instance = cls(key)
            return cls._instance

    @classmethod
    def reset(cls) -> None:
        with cls._lock:
            cls._instance = None

    def encrypt(self, text: str | None) -> str | None:
        if text is None:
            return None
        return self._fernet.encrypt(text.encode("utf-8")).decode("utf-8")

    def decrypt(self, text: str | None) -> str | None:
        if text is None:
            return None
        try:
            return self._fernet.decrypt(text.encode("utf-8")).decode("utf-8")
        except InvalidToken as e:
            raise CryptoError(
                "Failed to decrypt a secret value; the encryption key may have changed",
                actions=["Re-authorize the org to store fresh credentials."],
            ) from e

"""
Application-layer encryption for the most sensitive identifiers.

The SIN and the health card number are encrypted with Fernet before they
reach the record store and decrypted only when a full ``PatientRecord`` is
built for the disclosure filter.
"""

from __future__ import annotations

import logging

from cryptography.fernet import Fernet, InvalidToken

from medical_api.config import settings
from medical_api.errors import StorageFailure

logger = logging.getLogger(__name__)


class EncryptionService:
    """Wraps Fernet symmetric encryption for identifier columns."""

    def __init__(self, key: str | bytes | None = None):
        raw_key = key or settings.PHI_ENCRYPTION_KEY
        if raw_key:
            self._fernet = Fernet(raw_key.encode() if isinstance(raw_key, str) else raw_key)
        else:
            # Ephemeral development key: data encrypted with it is unreadable
            # after a restart. Production keys come from a secrets manager.
            logger.warning("PHI_ENCRYPTION_KEY not set, using an ephemeral key")
            self._fernet = Fernet(Fernet.generate_key())

    def encrypt(self, plaintext: str | None) -> str | None:
        """Encrypt a value; ``None`` and empty strings are stored as ``None``."""
        if not plaintext:
            return None
        return self._fernet.encrypt(plaintext.encode()).decode()

    def decrypt(self, ciphertext: str | None) -> str | None:
        if not ciphertext:
            return None
        try:
            return self._fernet.decrypt(ciphertext.encode()).decode()
        except InvalidToken as exc:
            raise StorageFailure("Stored identifier could not be decrypted") from exc

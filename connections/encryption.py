"""
Token payload encryption at rest.

Uses Fernet (AES-128-CBC + HMAC-SHA256) from the ``cryptography`` library.
The key is loaded from ``config.token_encryption_key``
(env var: ``TOKEN_ENCRYPTION_KEY``).

Without a key the payload is stored as plain JSON and a warning is logged
once.  Generate a key with::

    python -c "from cryptography.fernet import Fernet; print(Fernet.generate_key().decode())"
"""

from __future__ import annotations

import json
import logging
from typing import Any, Dict, Optional

from cryptography.fernet import Fernet, InvalidToken

from config.settings import config

logger = logging.getLogger(__name__)


class TokenCipher:
    """Encrypts token payloads (dicts) to strings and back."""

    def __init__(self, key: Optional[str] = None) -> None:
        key = config.token_encryption_key if key is None else key
        if key:
            self._fernet: Optional[Fernet] = Fernet(key.encode())
        else:
            self._fernet = None
            logger.warning(
                "TOKEN_ENCRYPTION_KEY not set — connection tokens will be stored as plaintext"
            )

    @property
    def enabled(self) -> bool:
        return self._fernet is not None

    def encrypt(self, payload: Optional[Dict[str, Any]]) -> Optional[str]:
        if payload is None:
            return None
        raw = json.dumps(payload, separators=(",", ":"))
        if self._fernet is None:
            return raw
        return self._fernet.encrypt(raw.encode()).decode()

    def decrypt(self, stored: Optional[str]) -> Optional[Dict[str, Any]]:
        """
        Inverse of :meth:`encrypt`.

        Rows written before encryption was enabled are plain JSON; they are
        read as-is.  A payload readable neither way (written under another
        key, or the key has since been removed) yields None.
        """
        if stored is None:
            return None
        if self._fernet is not None:
            try:
                return json.loads(self._fernet.decrypt(stored.encode()))
            except InvalidToken:
                logger.debug("Token payload is not Fernet ciphertext, reading as plain JSON")
        try:
            payload = json.loads(stored)
        except ValueError:
            logger.error(
                "Stored token payload cannot be decrypted with the configured key; ignoring it"
            )
            return None
        return payload if isinstance(payload, dict) else None

"""
Bearer token creation and verification.

Tokens are base64-encoded JSON payloads signed with HMAC-SHA256, issued by
the platform's login service.  Secret key is loaded from
``config.jwt_secret`` (env var: ``JWT_SECRET``).
"""

from __future__ import annotations

import hashlib
import hmac
import json
import time
from base64 import b64decode, b64encode
from typing import Optional

from fastapi import HTTPException, status

from config.settings import config


def _sign(raw: bytes, secret: str) -> str:
    return hmac.new(secret.encode(), raw, hashlib.sha256).hexdigest()


def create_token(user_id: str, secret: Optional[str] = None) -> str:
    """Create a signed token for ``user_id``; used by tests and tooling."""
    payload = {
        "user_id": user_id,
        "exp": int(time.time()) + config.jwt_expiry_seconds,
    }
    raw = json.dumps(payload).encode()
    return b64encode(raw).decode() + "." + _sign(raw, secret or config.jwt_secret)


def verify_token(token: str, secret: Optional[str] = None) -> str:
    """
    Verify token and return ``user_id``.

    Raises ``HTTPException(401)`` on invalid or expired tokens.
    """
    try:
        encoded, sig = token.split(".", 1)
        raw = b64decode(encoded)
        if not hmac.compare_digest(sig, _sign(raw, secret or config.jwt_secret)):
            raise ValueError("bad signature")
        payload = json.loads(raw)
        if not isinstance(payload, dict):
            raise ValueError("payload is not an object")
        if payload.get("exp", 0) < time.time():
            raise ValueError("token expired")
        return str(payload["user_id"])
    except (ValueError, KeyError, TypeError) as exc:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid or expired token",
        ) from exc

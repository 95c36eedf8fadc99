"""
Error kinds raised by the connection flow.

These carry no user-facing text beyond a short default; turning them into
HTTP responses is the job of ``api.errors``.
"""

from __future__ import annotations

from enum import Enum
from typing import List, Optional


class ConnectionErrorKind(str, Enum):
    INVALID_STATE = "invalid_state"
    UNKNOWN_PROVIDER = "unknown_provider"
    PROVIDER_DISABLED = "provider_disabled"
    UPSTREAM_ERROR = "upstream_error"
    MISSING_CODE = "missing_code"


class ConnectionFlowError(Exception):
    """Base for every error the connection flow surfaces to its caller."""

    kind: ConnectionErrorKind

    def __init__(self, message: Optional[str] = None) -> None:
        super().__init__(message or self.kind.value)


class InvalidOAuthState(ConnectionFlowError):
    """State token was never issued, already consumed, or expired."""

    kind = ConnectionErrorKind.INVALID_STATE


class UnknownProvider(ConnectionFlowError):
    kind = ConnectionErrorKind.UNKNOWN_PROVIDER

    def __init__(self, provider_id: str, valid: List[str]) -> None:
        self.provider_id = provider_id
        self.valid = list(valid)
        super().__init__(f"Unknown connection '{provider_id}'")


class ProviderDisabled(ConnectionFlowError):
    kind = ConnectionErrorKind.PROVIDER_DISABLED

    def __init__(self, provider_id: str) -> None:
        self.provider_id = provider_id
        super().__init__(f"Connection '{provider_id}' is disabled")


class UpstreamProviderError(ConnectionFlowError):
    """
    The external provider failed: transport error, timeout, non-2xx status
    or a body we could not understand.  The message never contains the
    provider's response.
    """

    kind = ConnectionErrorKind.UPSTREAM_ERROR

    def __init__(self, provider_id: str) -> None:
        self.provider_id = provider_id
        super().__init__(f"Upstream provider '{provider_id}' request failed")


class MissingAuthorizationCode(ConnectionFlowError):
    kind = ConnectionErrorKind.MISSING_CODE


class DuplicateLinkError(Exception):
    """Raised by a repository when (user_id, external_id) is already taken."""

"""
Pydantic schemas shared by the connection flow.
"""

from __future__ import annotations

from typing import Any, Dict, Optional

from pydantic import BaseModel, ConfigDict, Field


class ConnectionCallbackSchema(BaseModel):
    """Body the client posts after the provider redirected back."""

    state: str
    code: Optional[str] = None
    friend_sync: bool = False


class TokenResponse(BaseModel):
    """Common OAuth2 token response.  Provider extras are kept."""

    model_config = ConfigDict(extra="allow")

    access_token: str
    token_type: Optional[str] = None
    scope: Optional[str] = None
    refresh_token: Optional[str] = None
    expires_in: Optional[int] = None


class ExternalIdentity(BaseModel):
    external_id: str
    name: str


class ConnectedAccountSchema(BaseModel):
    """Data needed to create a connected account."""

    user_id: str
    external_id: str
    name: str
    type: str
    friend_sync: bool = False
    token_data: Optional[Dict[str, Any]] = None


class ConnectedAccountRecord(ConnectedAccountSchema):
    """A persisted connected account."""

    model_config = ConfigDict(from_attributes=True)

    id: str
    verified: bool = True
    revoked: bool = False
    show_activity: bool = True
    visibility: int = 0

    def public_dict(self) -> Dict[str, Any]:
        """Serialisable form with the token payload removed."""
        return self.model_dump(exclude={"token_data"})


class LinkOutcome(BaseModel):
    created: bool
    account: Optional[Dict[str, Any]] = Field(default=None)

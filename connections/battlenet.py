"""
BattleNetConnection — link a Battle.net account.

Plain authorization-code flow: client credentials go in the form body and
the identity comes from the OIDC userinfo endpoint.
"""

from __future__ import annotations

import logging
from typing import List, Optional

from pydantic import BaseModel

from connections.base import BaseConnection
from connections.models import ExternalIdentity, TokenResponse

logger = logging.getLogger(__name__)

# Battle.net OAuth2 endpoints
_BNET_AUTH_URL = "https://oauth.battle.net/authorize"
_BNET_TOKEN_URL = "https://oauth.battle.net/token"
_BNET_USERINFO_URL = "https://us.battle.net/oauth/userinfo"


class BattleNetUser(BaseModel):
    sub: Optional[str] = None
    id: int
    battletag: str


class BattleNetConnection(BaseConnection):
    """Battle.net account connection."""

    id = "battlenet"
    authorize_url = _BNET_AUTH_URL
    token_url = _BNET_TOKEN_URL
    user_info_urls: List[str] = [_BNET_USERINFO_URL]
    scopes: List[str] = []

    async def exchange_code(self, state: str, code: str) -> TokenResponse:
        self.validate_state(state)

        async with self._client() as client:
            data = await self._request_json(
                client,
                "POST",
                self.token_url,
                data={
                    "grant_type": "authorization_code",
                    "code": code,
                    "client_id": self.settings.client_id or "",
                    "client_secret": self.settings.client_secret or "",
                    "redirect_uri": self.get_redirect_uri(),
                },
                headers={"Accept": "application/json"},
            )
        return self._parse(TokenResponse, data)

    async def fetch_identity(self, access_token: str) -> ExternalIdentity:
        async with self._client() as client:
            data = await self._request_json(
                client,
                "GET",
                self.user_info_urls[0],
                headers={"Authorization": f"Bearer {access_token}"},
            )
        user: BattleNetUser = self._parse(BattleNetUser, data)
        # battletags can be changed; the numeric id is stable
        return ExternalIdentity(external_id=str(user.id), name=user.battletag)

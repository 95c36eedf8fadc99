"""
XboxConnection — link an Xbox Live account via a Microsoft account.

The Microsoft access token is not accepted by Xbox Live directly.  It is
traded for an Xbox user token, which is then traded for an XSTS token
whose display claims carry the gamertag and XUID.
"""

from __future__ import annotations

import logging
from typing import Any, Dict, List

from pydantic import BaseModel

from connections.base import BaseConnection
from connections.errors import UpstreamProviderError
from connections.models import ExternalIdentity, TokenResponse

logger = logging.getLogger(__name__)

# Microsoft / Xbox Live endpoints
_MS_AUTH_URL = "https://login.live.com/oauth20_authorize.srf"
_MS_TOKEN_URL = "https://login.live.com/oauth20_token.srf"
_XBL_USER_AUTH_URL = "https://user.auth.xboxlive.com/user/authenticate"
_XBL_XSTS_URL = "https://xsts.auth.xboxlive.com/xsts/authorize"

_XBL_HEADERS = {
    "x-xbl-contract-version": "3",
    "Content-Type": "application/json",
    "Accept": "application/json",
}


class XboxTokenResponse(BaseModel):
    Token: str
    DisplayClaims: Dict[str, List[Dict[str, Any]]] = {}


class XboxConnection(BaseConnection):
    """Xbox Live account connection."""

    id = "xbox"
    authorize_url = _MS_AUTH_URL
    token_url = _MS_TOKEN_URL
    user_info_urls: List[str] = [_XBL_USER_AUTH_URL, _XBL_XSTS_URL]
    scopes: List[str] = ["Xboxlive.signin", "Xboxlive.offline_access"]
    retain_token_data = True

    def authorization_params(self, state: str) -> Dict[str, str]:
        params = super().authorization_params(state)
        params["approval_prompt"] = "auto"
        return params

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
                    "redirect_uri": self.get_redirect_uri(),
                    "scope": " ".join(self.scopes),
                },
                auth=(self.settings.client_id or "", self.settings.client_secret or ""),
                headers={"Accept": "application/json"},
            )
        return self._parse(TokenResponse, data)

    async def fetch_identity(self, access_token: str) -> ExternalIdentity:
        async with self._client() as client:
            # 1. Microsoft access token → Xbox user token
            user_auth = await self._request_json(
                client,
                "POST",
                self.user_info_urls[0],
                json={
                    "RelyingParty": "http://auth.xboxlive.com",
                    "TokenType": "JWT",
                    "Properties": {
                        "AuthMethod": "RPS",
                        "SiteName": "user.auth.xboxlive.com",
                        "RpsTicket": f"d={access_token}",
                    },
                },
                headers=_XBL_HEADERS,
            )
            user_token: XboxTokenResponse = self._parse(XboxTokenResponse, user_auth)

            # 2. user token → XSTS token for xboxlive.com
            xsts = await self._request_json(
                client,
                "POST",
                self.user_info_urls[1],
                json={
                    "RelyingParty": "http://xboxlive.com",
                    "TokenType": "JWT",
                    "Properties": {
                        "UserTokens": [user_token.Token],
                        "SandboxId": "RETAIL",
                    },
                },
                headers=_XBL_HEADERS,
            )
        xsts_token: XboxTokenResponse = self._parse(XboxTokenResponse, xsts)

        try:
            claims = xsts_token.DisplayClaims["xui"][0]
            return ExternalIdentity(external_id=str(claims["xid"]), name=str(claims["gtg"]))
        except (KeyError, IndexError) as exc:
            logger.error("xbox XSTS response lacks xui claims: %s", xsts_token.DisplayClaims)
            raise UpstreamProviderError(self.id) from exc

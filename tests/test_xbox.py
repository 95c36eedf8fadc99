"""
Tests for the Xbox connection and its two-step Xbox Live token exchange.
"""

import base64
from urllib.parse import parse_qs, urlparse

import pytest

from connections.errors import UpstreamProviderError
from connections.models import ConnectionCallbackSchema
from connections.xbox import XboxConnection

TOKEN_URL = "https://login.live.com/oauth20_token.srf"
USER_AUTH_URL = "https://user.auth.xboxlive.com/user/authenticate"
XSTS_URL = "https://xsts.auth.xboxlive.com/xsts/authorize"


@pytest.fixture
def xbox(linker, source, fake_provider):
    fake_provider.on(
        TOKEN_URL,
        payload={"access_token": "MS1", "refresh_token": "R1", "token_type": "bearer", "expires_in": 3600},
    )
    fake_provider.on(
        USER_AUTH_URL,
        payload={"Token": "USER1", "DisplayClaims": {"xui": [{"uhs": "1234"}]}},
    )
    fake_provider.on(
        XSTS_URL,
        payload={
            "Token": "XSTS1",
            "DisplayClaims": {"xui": [{"gtg": "Major Nelson", "xid": "2533274790395904", "uhs": "1234"}]},
        },
    )
    conn = XboxConnection(linker, source, transport=fake_provider.transport)
    conn.initialize()
    return conn


def _state_from(url: str) -> str:
    return parse_qs(urlparse(url).query)["state"][0]


class TestXboxAuthorization:
    def test_url_requests_xbox_scopes(self, xbox):
        query = parse_qs(urlparse(xbox.build_authorization_url("U1")).query)
        assert query["scope"] == ["Xboxlive.signin Xboxlive.offline_access"]
        assert query["approval_prompt"] == ["auto"]
        assert query["response_type"] == ["code"]


class TestXboxExchange:
    @pytest.mark.asyncio
    async def test_token_exchange_uses_basic_auth(self, xbox, fake_provider):
        state = _state_from(xbox.build_authorization_url("U1"))
        await xbox.exchange_code(state, "abc")

        request = fake_provider.requests[0]
        expected = base64.b64encode(b"xbox-id:xbox-secret").decode()
        assert request.headers["Authorization"] == f"Basic {expected}"
        form = parse_qs(request.content.decode())
        assert "client_secret" not in form
        assert form["scope"] == ["Xboxlive.signin Xboxlive.offline_access"]

    @pytest.mark.asyncio
    async def test_identity_goes_through_both_relying_parties(self, xbox, fake_provider):
        identity = await xbox.fetch_identity("MS1")

        assert identity.external_id == "2533274790395904"
        assert identity.name == "Major Nelson"

        user_auth = fake_provider.json_body(0)
        assert user_auth["RelyingParty"] == "http://auth.xboxlive.com"
        assert user_auth["Properties"]["RpsTicket"] == "d=MS1"

        xsts = fake_provider.json_body(1)
        assert xsts["RelyingParty"] == "http://xboxlive.com"
        assert xsts["Properties"]["UserTokens"] == ["USER1"]
        assert xsts["Properties"]["SandboxId"] == "RETAIL"
        assert fake_provider.requests[1].headers["x-xbl-contract-version"] == "3"

    @pytest.mark.asyncio
    async def test_missing_claims_is_upstream_error(self, xbox, fake_provider):
        fake_provider.on(XSTS_URL, payload={"Token": "XSTS1", "DisplayClaims": {"xui": []}})
        with pytest.raises(UpstreamProviderError):
            await xbox.fetch_identity("MS1")

    @pytest.mark.asyncio
    async def test_xsts_rejection_is_upstream_error(self, xbox, fake_provider):
        fake_provider.on(XSTS_URL, status=401, payload={"XErr": 2148916233})
        with pytest.raises(UpstreamProviderError):
            await xbox.fetch_identity("MS1")


class TestXboxCallback:
    @pytest.mark.asyncio
    async def test_link_keeps_token_payload_with_fetch_time(self, xbox):
        state = _state_from(xbox.build_authorization_url("U1"))
        account = await xbox.handle_callback(ConnectionCallbackSchema(state=state, code="abc"))

        assert account.type == "xbox"
        assert account.external_id == "2533274790395904"
        assert account.token_data["access_token"] == "MS1"
        assert account.token_data["refresh_token"] == "R1"
        assert isinstance(account.token_data["fetched_at"], int)

    @pytest.mark.asyncio
    async def test_same_external_id_deduplicates_across_types(self, xbox, repository):
        from connections.models import ConnectedAccountSchema

        await repository.create_link(
            ConnectedAccountSchema(user_id="U1", external_id="2533274790395904", name="x", type="other")
        )
        state = _state_from(xbox.build_authorization_url("U1"))
        assert await xbox.handle_callback(ConnectionCallbackSchema(state=state, code="abc")) is None

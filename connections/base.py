"""
BaseConnection — abstract interface for all account connections.

Every provider (Battle.net, Xbox, …) subclasses this and implements
``build_authorization_url``, ``exchange_code`` and ``fetch_identity``.
State handling, redirect-URI derivation and linking are shared.
"""

from __future__ import annotations

import logging
import time
from abc import ABC, abstractmethod
from typing import Any, Dict, List, Optional
from urllib.parse import urlencode

import httpx

from config.settings import ConnectionSettings, Settings, config
from connections.errors import InvalidOAuthState, MissingAuthorizationCode, UpstreamProviderError
from connections.linker import AccountLinker
from connections.models import (
    ConnectedAccountRecord,
    ConnectedAccountSchema,
    ConnectionCallbackSchema,
    ExternalIdentity,
    TokenResponse,
)
from connections.state_store import StateStore

logger = logging.getLogger(__name__)


class BaseConnection(ABC):
    """Abstract base for all OAuth2 account connections."""

    # ── Identity / endpoints ────────────────────────────────────────────
    id: str
    authorize_url: str
    token_url: str
    user_info_urls: List[str]
    scopes: List[str] = []

    # keep the token payload on the connected account
    retain_token_data: bool = False

    def __init__(
        self,
        linker: AccountLinker,
        source: Optional[Settings] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ) -> None:
        self.linker = linker
        self.source = source or config
        self._transport = transport
        self.settings = ConnectionSettings()
        self.states = StateStore(
            ttl_seconds=self.source.oauth_state_ttl_seconds,
            max_entries=self.source.oauth_state_max_entries,
        )

    def initialize(self, source: Optional[Settings] = None) -> None:
        """(Re)load this connection's settings; safe to call repeatedly."""
        if source is not None:
            self.source = source
        self.settings = self.source.get_connection_config(self.id, self.settings)
        logger.info(
            "Connection %s initialised (enabled=%s)", self.id, self.settings.enabled
        )

    # ── OAuth flow ──────────────────────────────────────────────────────

    def get_redirect_uri(self) -> str:
        return f"{self.source.public_base_url.rstrip('/')}/connections/{self.id}/callback"

    def authorization_params(self, state: str) -> Dict[str, str]:
        """Query parameters for the authorize URL; subclasses may extend."""
        return {
            "client_id": self.settings.client_id or "",
            "redirect_uri": self.get_redirect_uri(),
            "response_type": "code",
            "scope": " ".join(self.scopes),
            "state": state,
        }

    def build_authorization_url(self, user_id: str) -> str:
        """Issue a state for *user_id* and return the provider's authorize URL."""
        state = self.states.create(user_id)
        return f"{self.authorize_url}?{urlencode(self.authorization_params(state))}"

    def get_user_id(self, state: str) -> str:
        """Owner of *state*; raises InvalidOAuthState if unknown."""
        return self.states.peek(state)

    def validate_state(self, state: str) -> str:
        """Consume *state*; raises InvalidOAuthState if unknown or used."""
        return self.states.validate_and_consume(state)

    @abstractmethod
    async def exchange_code(self, state: str, code: str) -> TokenResponse:
        """
        Exchange the authorization code for tokens.

        Implementations must call :meth:`validate_state` before any network
        request.
        """
        ...

    @abstractmethod
    async def fetch_identity(self, access_token: str) -> ExternalIdentity:
        """Fetch the external account behind *access_token*."""
        ...

    async def handle_callback(
        self,
        params: ConnectionCallbackSchema,
        requester_id: Optional[str] = None,
    ) -> Optional[ConnectedAccountRecord]:
        """
        Run the whole callback: exchange, identity, link.

        When *requester_id* is given it must own the state; a state issued
        to someone else is rejected without being consumed.

        Returns the new connected account, or None if the user already had
        this external account linked.
        """
        user_id = self.get_user_id(params.state)
        if requester_id is not None and requester_id != user_id:
            logger.warning(
                "%s callback by user %s presented a state issued to another user",
                self.id,
                requester_id,
            )
            raise InvalidOAuthState()
        if not params.code:
            self.validate_state(params.state)
            raise MissingAuthorizationCode("Authorization code missing from callback")

        token_data = await self.exchange_code(params.state, params.code)
        identity = await self.fetch_identity(token_data.access_token)

        return await self.linker.link(
            ConnectedAccountSchema(
                user_id=user_id,
                external_id=identity.external_id,
                name=identity.name,
                type=self.id,
                friend_sync=params.friend_sync,
                token_data=self._token_payload(token_data),
            )
        )

    # ── Helpers ─────────────────────────────────────────────────────────

    def is_enabled(self) -> bool:
        return self.settings.enabled

    def _token_payload(self, token_data: TokenResponse) -> Optional[Dict[str, Any]]:
        if not self.retain_token_data:
            return None
        payload = token_data.model_dump(exclude_none=True)
        payload["fetched_at"] = int(time.time() * 1000)
        return payload

    def _client(self) -> httpx.AsyncClient:
        return httpx.AsyncClient(
            timeout=self.settings.timeout_seconds,
            transport=self._transport,
        )

    async def _request_json(
        self,
        client: httpx.AsyncClient,
        method: str,
        url: str,
        **kwargs: Any,
    ) -> Dict[str, Any]:
        """
        Send one request and decode its JSON body.

        Transport errors, timeouts, non-2xx responses and undecodable bodies
        are logged and re-raised as UpstreamProviderError.
        """
        try:
            resp = await client.request(method, url, **kwargs)
        except httpx.HTTPError as exc:
            logger.error("%s %s %s failed: %r", self.id, method, url, exc)
            raise UpstreamProviderError(self.id) from exc

        if resp.is_error:
            logger.error(
                "%s %s %s returned %s: %s",
                self.id,
                method,
                url,
                resp.status_code,
                resp.text,
            )
            raise UpstreamProviderError(self.id)

        try:
            data = resp.json()
        except ValueError as exc:
            logger.error("%s %s %s returned non-JSON body: %s", self.id, method, url, resp.text)
            raise UpstreamProviderError(self.id) from exc
        if not isinstance(data, dict):
            logger.error("%s %s %s returned unexpected JSON: %s", self.id, method, url, resp.text)
            raise UpstreamProviderError(self.id)
        return data

    def _parse(self, model: type, data: Dict[str, Any]) -> Any:
        try:
            return model.model_validate(data)
        except ValueError as exc:
            logger.error("%s returned malformed %s: %s", self.id, model.__name__, exc)
            raise UpstreamProviderError(self.id) from exc

"""
CallbackOrchestrator — entry point for provider redirects.

Resolves the connection, refuses disabled ones, runs its callback and
announces newly created links.
"""

from __future__ import annotations

import logging
from typing import Optional

from connections.base import BaseConnection
from connections.errors import ProviderDisabled, UnknownProvider
from connections.events import EventNotifier
from connections.models import ConnectionCallbackSchema, LinkOutcome
from connections.registry import ConnectionRegistry

logger = logging.getLogger(__name__)


class CallbackOrchestrator:
    def __init__(self, registry: ConnectionRegistry, notifier: EventNotifier) -> None:
        self.registry = registry
        self.notifier = notifier

    def resolve(self, provider_id: str) -> BaseConnection:
        """Return the enabled connection for *provider_id* or raise."""
        connection = self.registry.get(provider_id)
        if connection is None:
            raise UnknownProvider(provider_id, self.registry.list_identifiers())
        if not connection.is_enabled():
            raise ProviderDisabled(provider_id)
        return connection

    async def on_callback(
        self,
        provider_id: str,
        params: ConnectionCallbackSchema,
        requester_id: Optional[str] = None,
    ) -> LinkOutcome:
        connection = self.resolve(provider_id)

        account = await connection.handle_callback(params, requester_id)
        if account is None:
            return LinkOutcome(created=False)

        event = await self.notifier.notify_connections_updated(account)
        logger.info(
            "Connected %s account %s for user %s", provider_id, account.external_id, account.user_id
        )
        return LinkOutcome(created=True, account=event.data)

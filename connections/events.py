"""
EventNotifier — in-process fan-out of user events.

Delivery to clients (gateway, websockets, …) subscribes here.
"""

from __future__ import annotations

import logging
from typing import Any, Awaitable, Callable, Dict, List

from pydantic import BaseModel

from connections.models import ConnectedAccountRecord

logger = logging.getLogger(__name__)

USER_CONNECTIONS_UPDATE = "USER_CONNECTIONS_UPDATE"


class UserEvent(BaseModel):
    event: str
    user_id: str
    data: Dict[str, Any]


Subscriber = Callable[[UserEvent], Awaitable[None]]


class EventNotifier:
    def __init__(self) -> None:
        self._subscribers: List[Subscriber] = []

    def subscribe(self, callback: Subscriber) -> None:
        self._subscribers.append(callback)

    def unsubscribe(self, callback: Subscriber) -> None:
        if callback in self._subscribers:
            self._subscribers.remove(callback)

    async def emit(self, event: UserEvent) -> None:
        """Deliver *event* to every subscriber; one failing subscriber does not stop the rest."""
        logger.debug("Emitting %s for user %s", event.event, event.user_id)
        for callback in list(self._subscribers):
            try:
                await callback(event)
            except Exception:
                logger.exception("Subscriber %r failed on %s", callback, event.event)

    async def notify_connections_updated(self, account: ConnectedAccountRecord) -> UserEvent:
        """Announce a new connected account to its owner, tokens removed."""
        event = UserEvent(
            event=USER_CONNECTIONS_UPDATE,
            user_id=account.user_id,
            data=account.public_dict(),
        )
        await self.emit(event)
        return event

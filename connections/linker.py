"""
AccountLinker — create a connected account unless one already exists.
"""

from __future__ import annotations

import logging
from typing import Optional

from connections.errors import DuplicateLinkError
from connections.models import ConnectedAccountRecord, ConnectedAccountSchema
from connections.repository import ConnectedAccountRepository

logger = logging.getLogger(__name__)


class AccountLinker:
    """
    Idempotent front for the connected-account repository.

    ``(user_id, external_id)`` is the dedup key; the provider type is not
    part of it.
    """

    def __init__(self, repository: ConnectedAccountRepository) -> None:
        self.repository = repository

    async def has_connection(self, user_id: str, external_id: str) -> bool:
        return await self.repository.find_link(user_id, external_id, include_tokens=False) is not None

    async def link(self, data: ConnectedAccountSchema) -> Optional[ConnectedAccountRecord]:
        """
        Return the new record, or None when the user already has this
        external account linked.
        """
        if await self.has_connection(data.user_id, data.external_id):
            logger.info(
                "User %s already linked to %s account %s",
                data.user_id,
                data.type,
                data.external_id,
            )
            return None

        try:
            record = await self.repository.create_link(data)
        except DuplicateLinkError:
            # a concurrent callback for the same identity won the insert
            logger.info(
                "Concurrent link for user %s / %s account %s, keeping the existing one",
                data.user_id,
                data.type,
                data.external_id,
            )
            return None

        logger.info(
            "Created %s connection for user %s (%s)", data.type, data.user_id, data.external_id
        )
        return record

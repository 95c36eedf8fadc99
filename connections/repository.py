"""
Persistence for connected accounts.

The connection flow only ever calls ``find_link`` and ``create_link``.
"""

from __future__ import annotations

import logging
from typing import Optional, Protocol

from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from connections.encryption import TokenCipher
from connections.errors import DuplicateLinkError
from connections.models import ConnectedAccountRecord, ConnectedAccountSchema
from database.models import ConnectedAccount

logger = logging.getLogger(__name__)


class ConnectedAccountRepository(Protocol):
    async def find_link(
        self, user_id: str, external_id: str, *, include_tokens: bool = True
    ) -> Optional[ConnectedAccountRecord]:
        """Return the link for the key; token_data is left empty unless *include_tokens*."""
        ...

    async def create_link(self, data: ConnectedAccountSchema) -> ConnectedAccountRecord:
        """Persist a new link; raise DuplicateLinkError if the key is taken."""
        ...


class SqlConnectedAccountRepository:
    """SQLAlchemy implementation; one short session per call."""

    def __init__(
        self,
        session_factory: async_sessionmaker[AsyncSession],
        cipher: Optional[TokenCipher] = None,
    ) -> None:
        self._session_factory = session_factory
        self._cipher = cipher or TokenCipher()

    def _to_record(self, row: ConnectedAccount, include_tokens: bool = True) -> ConnectedAccountRecord:
        return ConnectedAccountRecord(
            id=row.id,
            user_id=row.user_id,
            external_id=row.external_id,
            name=row.name,
            type=row.type,
            friend_sync=row.friend_sync,
            token_data=self._cipher.decrypt(row.token_data) if include_tokens else None,
            verified=row.verified,
            revoked=row.revoked,
            show_activity=row.show_activity,
            visibility=row.visibility,
        )

    async def find_link(
        self, user_id: str, external_id: str, *, include_tokens: bool = True
    ) -> Optional[ConnectedAccountRecord]:
        async with self._session_factory() as session:
            result = await session.execute(
                select(ConnectedAccount).where(
                    ConnectedAccount.user_id == user_id,
                    ConnectedAccount.external_id == external_id,
                )
            )
            row = result.scalar_one_or_none()
            return self._to_record(row, include_tokens) if row else None

    async def create_link(self, data: ConnectedAccountSchema) -> ConnectedAccountRecord:
        row = ConnectedAccount(
            user_id=data.user_id,
            external_id=data.external_id,
            name=data.name,
            type=data.type,
            friend_sync=data.friend_sync,
            token_data=self._cipher.encrypt(data.token_data),
        )
        async with self._session_factory() as session:
            session.add(row)
            try:
                await session.commit()
            except IntegrityError as exc:
                await session.rollback()
                if await self.find_link(data.user_id, data.external_id, include_tokens=False) is None:
                    logger.error("Insert of %s connection for user %s failed: %s", data.type, data.user_id, exc)
                    raise
                raise DuplicateLinkError(
                    f"{data.type} account {data.external_id} already linked to user {data.user_id}"
                ) from exc
            await session.refresh(row)
            return self._to_record(row)

"""
SQLAlchemy ORM models for connected accounts.
"""

from __future__ import annotations

import uuid
from datetime import datetime, timezone

from sqlalchemy import (
    Boolean,
    Column,
    DateTime,
    Integer,
    String,
    Text,
    UniqueConstraint,
)
from sqlalchemy.orm import DeclarativeBase


class Base(DeclarativeBase):
    pass


class ConnectedAccount(Base):
    __tablename__ = "connected_accounts"
    __table_args__ = (
        UniqueConstraint("user_id", "external_id", name="uq_connected_accounts_user_external"),
    )

    id = Column(String(36), primary_key=True, default=lambda: str(uuid.uuid4()))
    user_id = Column(String(64), nullable=False, index=True)
    external_id = Column(String(256), nullable=False)
    name = Column(String(256), nullable=False)
    type = Column(String(32), nullable=False)
    friend_sync = Column(Boolean, nullable=False, default=False)
    token_data = Column(Text)           # Fernet-encrypted JSON, or NULL
    verified = Column(Boolean, nullable=False, default=True)
    revoked = Column(Boolean, nullable=False, default=False)
    show_activity = Column(Boolean, nullable=False, default=True)
    visibility = Column(Integer, nullable=False, default=0)
    created_at = Column(DateTime(timezone=True), default=lambda: datetime.now(timezone.utc))

"""
ConnectionRegistry — process-wide catalog of account connections.
"""

from __future__ import annotations

import logging
from typing import Dict, List, Optional, Type

from config.settings import Settings
from connections.base import BaseConnection
from connections.battlenet import BattleNetConnection
from connections.linker import AccountLinker
from connections.xbox import XboxConnection

logger = logging.getLogger(__name__)

# ── All known connections, add new ones here ────────────────────────────

_ALL_CONNECTIONS: List[Type[BaseConnection]] = [
    BattleNetConnection,
    XboxConnection,
]


class ConnectionRegistry:
    """Singleton registry mapping connection id → initialised connection."""

    _instance: Optional["ConnectionRegistry"] = None

    def __new__(cls) -> "ConnectionRegistry":
        if cls._instance is None:
            inst = super().__new__(cls)
            inst._connections: Dict[str, BaseConnection] = {}
            inst._discovered = False
            cls._instance = inst
        return cls._instance

    @classmethod
    def reset(cls) -> None:
        """Destroy singleton; only useful in test teardown."""
        cls._instance = None

    def register(self, connection: BaseConnection) -> None:
        if connection.id in self._connections:
            logger.warning("Connection %s registered twice, replacing", connection.id)
        self._connections[connection.id] = connection

    def get(self, connection_id: str) -> Optional[BaseConnection]:
        return self._connections.get(connection_id)

    def list_identifiers(self) -> List[str]:
        """Registered ids in registration order."""
        return list(self._connections.keys())

    def list_providers(self) -> List[Dict[str, object]]:
        return [
            {"id": c.id, "enabled": c.is_enabled()}
            for c in self._connections.values()
        ]

    def discover(self, linker: AccountLinker, source: Optional[Settings] = None) -> None:
        """Instantiate, initialise and register every known connection once."""
        if self._discovered:
            return
        for cls in _ALL_CONNECTIONS:
            conn = cls(linker, source)
            conn.initialize()
            self.register(conn)
            if not conn.is_enabled():
                logger.warning("Connection %s is disabled", conn.id)
        self._discovered = True

    def reload(self, source: Optional[Settings] = None) -> None:
        """Re-apply settings to every registered connection without restart."""
        for conn in self._connections.values():
            conn.initialize(source)

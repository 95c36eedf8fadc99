"""
Shared fixtures: settings, in-memory repository, fake provider HTTP.
"""

import json
import uuid
from typing import Callable, Dict, List, Optional, Tuple

import httpx
import pytest

from config.settings import Settings
from connections.errors import DuplicateLinkError
from connections.linker import AccountLinker
from connections.models import ConnectedAccountRecord, ConnectedAccountSchema
from connections.registry import ConnectionRegistry


class InMemoryRepository:
    """Repository fake enforcing the (user_id, external_id) unique key."""

    def __init__(self):
        self.rows: Dict[Tuple[str, str], ConnectedAccountRecord] = {}
        self.create_calls = 0

    async def find_link(self, user_id, external_id, *, include_tokens=True) -> Optional[ConnectedAccountRecord]:
        return self.rows.get((user_id, external_id))

    async def create_link(self, data: ConnectedAccountSchema) -> ConnectedAccountRecord:
        self.create_calls += 1
        key = (data.user_id, data.external_id)
        if key in self.rows:
            raise DuplicateLinkError(str(key))
        record = ConnectedAccountRecord(id=str(uuid.uuid4()), **data.model_dump())
        self.rows[key] = record
        return record


Route = Callable[[httpx.Request], httpx.Response]


class FakeProvider:
    """
    httpx MockTransport routing on URL; every request is recorded.
    Unrouted URLs answer 404.
    """

    def __init__(self):
        self.routes: Dict[str, Route] = {}
        self.requests: List[httpx.Request] = []

    def on(self, url: str, status: int = 200, payload=None, handler: Optional[Route] = None):
        if handler is None:
            def handler(request, _status=status, _payload=payload):
                return httpx.Response(_status, json=_payload)
        self.routes[url] = handler

    def _handle(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        url = str(request.url).split("?", 1)[0]
        handler = self.routes.get(url)
        if handler is None:
            return httpx.Response(404, json={"error": "not_found"})
        return handler(request)

    @property
    def transport(self) -> httpx.MockTransport:
        return httpx.MockTransport(self._handle)

    def json_body(self, index: int) -> dict:
        return json.loads(self.requests[index].content)


@pytest.fixture
def source() -> Settings:
    return Settings(
        _env_file=None,
        public_base_url="https://platform.example",
        token_encryption_key="",
        connections={
            "battlenet": {"enabled": True, "client_id": "bnet-id", "client_secret": "bnet-secret"},
            "xbox": {"enabled": True, "client_id": "xbox-id", "client_secret": "xbox-secret"},
        },
    )


@pytest.fixture
def repository() -> InMemoryRepository:
    return InMemoryRepository()


@pytest.fixture
def linker(repository) -> AccountLinker:
    return AccountLinker(repository)


@pytest.fixture
def fake_provider() -> FakeProvider:
    return FakeProvider()


@pytest.fixture(autouse=True)
def _reset_registry():
    ConnectionRegistry.reset()
    yield
    ConnectionRegistry.reset()

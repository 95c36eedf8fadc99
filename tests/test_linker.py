"""
Tests for AccountLinker and the SQL connected-account repository.
"""

import asyncio

import pytest
import pytest_asyncio
from cryptography.fernet import Fernet
from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.pool import StaticPool

from connections.encryption import TokenCipher
from connections.errors import DuplicateLinkError
from connections.linker import AccountLinker
from connections.models import ConnectedAccountSchema
from connections.repository import SqlConnectedAccountRepository
from database.models import Base, ConnectedAccount


def _link(user="U1", external="42", type_="battlenet", token_data=None):
    return ConnectedAccountSchema(
        user_id=user, external_id=external, name="Foo#123", type=type_, token_data=token_data
    )


class TestAccountLinker:
    @pytest.mark.asyncio
    async def test_link_creates_once(self, linker, repository):
        assert await linker.link(_link()) is not None
        assert await linker.link(_link()) is None
        assert len(repository.rows) == 1
        assert repository.create_calls == 1

    @pytest.mark.asyncio
    async def test_same_external_id_other_user_is_separate(self, linker, repository):
        assert await linker.link(_link(user="U1")) is not None
        assert await linker.link(_link(user="U2")) is not None
        assert len(repository.rows) == 2

    @pytest.mark.asyncio
    async def test_lost_insert_race_reads_as_already_linked(self, repository):
        class RacingRepository(type(repository)):
            async def find_link(self, user_id, external_id, *, include_tokens=True):
                # both callers look before either writes
                await asyncio.sleep(0)
                return None

        racing = RacingRepository()
        linker = AccountLinker(racing)

        results = await asyncio.gather(linker.link(_link()), linker.link(_link()))

        assert sum(r is not None for r in results) == 1
        assert len(racing.rows) == 1


@pytest_asyncio.fixture
async def session_factory():
    engine = create_async_engine("sqlite+aiosqlite:///:memory:", poolclass=StaticPool)
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)
    await engine.dispose()


class TestSqlRepository:
    @pytest.mark.asyncio
    async def test_create_and_find(self, session_factory):
        repo = SqlConnectedAccountRepository(session_factory, TokenCipher(key=""))
        created = await repo.create_link(_link())

        found = await repo.find_link("U1", "42")
        assert found.id == created.id
        assert found.type == "battlenet"
        assert await repo.find_link("U1", "43") is None

    @pytest.mark.asyncio
    async def test_unique_key_raises_duplicate(self, session_factory):
        repo = SqlConnectedAccountRepository(session_factory, TokenCipher(key=""))
        await repo.create_link(_link(type_="battlenet"))
        with pytest.raises(DuplicateLinkError):
            await repo.create_link(_link(type_="xbox"))

    @pytest.mark.asyncio
    async def test_token_payload_encrypted_at_rest(self, session_factory):
        cipher = TokenCipher(key=Fernet.generate_key().decode())
        repo = SqlConnectedAccountRepository(session_factory, cipher)
        await repo.create_link(_link(token_data={"access_token": "MS1", "fetched_at": 1}))

        async with session_factory() as session:
            stored = (await session.execute(select(ConnectedAccount.token_data))).scalar_one()
        assert "MS1" not in stored

        found = await repo.find_link("U1", "42")
        assert found.token_data == {"access_token": "MS1", "fetched_at": 1}

    @pytest.mark.asyncio
    @pytest.mark.parametrize("later_key", [Fernet.generate_key().decode(), ""], ids=["other-key", "no-key"])
    async def test_relink_after_key_change_is_already_linked(self, session_factory, later_key):
        first = SqlConnectedAccountRepository(
            session_factory, TokenCipher(key=Fernet.generate_key().decode())
        )
        await first.create_link(_link(type_="xbox", token_data={"access_token": "MS1"}))

        rotated = SqlConnectedAccountRepository(session_factory, TokenCipher(key=later_key))
        linker = AccountLinker(rotated)

        assert await linker.link(_link(type_="xbox", token_data={"access_token": "MS2"})) is None
        found = await rotated.find_link("U1", "42")
        assert found.external_id == "42"
        assert found.token_data is None

    @pytest.mark.asyncio
    async def test_other_integrity_errors_are_not_duplicates(self, session_factory):
        repo = SqlConnectedAccountRepository(session_factory, TokenCipher(key=""))
        broken = ConnectedAccountSchema.model_construct(
            user_id="U1", external_id="42", name=None, type="battlenet", friend_sync=False, token_data=None
        )
        with pytest.raises(IntegrityError):
            await repo.create_link(broken)
        assert await repo.find_link("U1", "42") is None


class TestTokenCipher:
    def test_plain_rows_readable_after_enabling_key(self):
        plain = TokenCipher(key="").encrypt({"access_token": "T"})
        cipher = TokenCipher(key=Fernet.generate_key().decode())
        assert cipher.enabled
        assert cipher.decrypt(plain) == {"access_token": "T"}

    def test_none_passes_through(self):
        cipher = TokenCipher(key="")
        assert cipher.encrypt(None) is None
        assert cipher.decrypt(None) is None

    def test_payload_from_another_key_reads_as_none(self):
        stored = TokenCipher(key=Fernet.generate_key().decode()).encrypt({"access_token": "T"})
        assert TokenCipher(key=Fernet.generate_key().decode()).decrypt(stored) is None
        assert TokenCipher(key="").decrypt(stored) is None

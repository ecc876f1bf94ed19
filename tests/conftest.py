import os
import tempfile

# settings are read at import time
os.environ.setdefault("SECRET_KEY", "test-secret-key")
os.environ.setdefault("RECOVERY_SECRET_KEY", "test-recovery-secret-key")
os.environ.setdefault("DATABASE_URL", "sqlite://:memory:")
os.environ.setdefault("MEDIA_ROOT", tempfile.mkdtemp(prefix="carcollection-media-"))

from typing import AsyncGenerator, Dict, Iterable, Optional
from uuid import UUID, uuid4

import pyotp
import pytest
from httpx import ASGITransport, AsyncClient

from app.main import app
from app.models.user import User
from app.core.database import DatabaseManager
from app.core.security.security import get_password_hash, hasher
from app.services.auth_service import issue_access_token
from app.services.auth.identity import Identity
from app.services.bidding.engine import BidEngine
from app.services.bidding.ledger import InMemoryBidLedger

# full-cost hashing makes the suite crawl
hasher.rounds = 4


class FakeDirectory:
    """Identity directory backed by a dict"""

    def __init__(self):
        self.names: Dict[UUID, str] = {}

    def add(self, name: str) -> Identity:
        identity = Identity(user_id=uuid4(), display_name=name)
        self.names[identity.user_id] = name
        return identity

    async def lookup_display_name(self, user_id: UUID) -> Optional[str]:
        return self.names.get(user_id)

    async def lookup_display_names(self, user_ids: Iterable[UUID]) -> Dict[UUID, str]:
        return {uid: self.names[uid] for uid in user_ids if uid in self.names}


@pytest.fixture
async def db():
    """Fresh in-memory database for each test"""
    await DatabaseManager.init("sqlite://:memory:")
    yield
    await DatabaseManager.close()


@pytest.fixture
async def client(db) -> AsyncGenerator:
    """Create async HTTP client for testing"""
    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as ac:
        yield ac


async def create_user(username: str, password: str = "testpass123", **kwargs) -> User:
    return await User.create(
        username=username,
        email=f"{username}@example.com",
        password_hash=get_password_hash(password),
        full_name=kwargs.pop("full_name", username.title()),
        **kwargs
    )


@pytest.fixture
async def test_user(db) -> User:
    return await create_user("alice")


@pytest.fixture
async def other_user(db) -> User:
    return await create_user("bob")


@pytest.fixture
def user_token(test_user: User) -> str:
    return issue_access_token(test_user)


@pytest.fixture
def other_token(other_user: User) -> str:
    return issue_access_token(other_user)


@pytest.fixture
def directory() -> FakeDirectory:
    return FakeDirectory()


@pytest.fixture
def ledger() -> InMemoryBidLedger:
    return InMemoryBidLedger()


@pytest.fixture
def engine(ledger: InMemoryBidLedger, directory: FakeDirectory) -> BidEngine:
    return BidEngine(ledger, directory)


@pytest.fixture
async def mfa_user(db) -> User:
    return await create_user("carol", mfa_secret=pyotp.random_base32(), mfa_enabled=True)

"""
Pytest configuration and fixtures
"""
import os

# Settings are read at import time
os.environ["DATABASE_URL"] = "sqlite+aiosqlite:///:memory:"
os.environ["SECRET_KEY"] = "storefront-test-secret-key-0123456789abcdef"
os.environ["RATE_LIMIT_ENABLED"] = "false"
os.environ["DEBUG"] = "true"

import asyncio
import json
import re
from contextlib import asynccontextmanager
from typing import AsyncGenerator, Dict, List, Optional, Tuple

import httpx
import pytest
from sqlalchemy.ext.asyncio import AsyncSession, create_async_engine, async_sessionmaker
from sqlalchemy.pool import StaticPool

from storefront.database import Base, get_db
from storefront.core.security import create_user_token
from storefront.core.redis import redis_client
from storefront.core.line_items import clean_line_items, dump_line_items
from storefront.models.user import User
from storefront.schemas.user import UserCreate
from storefront.client.config import ClientSettings
from storefront.client.storage import StateStorage
from storefront.client.storefront import Storefront

# Test database URL (SQLite in memory)
TEST_DATABASE_URL = "sqlite+aiosqlite:///:memory:"

test_engine = create_async_engine(
    TEST_DATABASE_URL,
    connect_args={"check_same_thread": False},
    poolclass=StaticPool,
    echo=False
)

TestSessionLocal = async_sessionmaker(
    test_engine,
    class_=AsyncSession,
    expire_on_commit=False,
    autoflush=False
)


@pytest.fixture(autouse=True)
def clear_blacklist():
    """Logged-out tokens must not leak between tests"""
    redis_client.clear_local_blacklist()
    yield
    redis_client.clear_local_blacklist()


@pytest.fixture(scope="function")
async def db_session() -> AsyncGenerator[AsyncSession, None]:
    """Create a fresh database for each test"""
    async with test_engine.begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)
        await conn.run_sync(Base.metadata.create_all)

    async with TestSessionLocal() as session:
        yield session
        await session.rollback()


def _install_overrides():
    async def override_get_db():
        async with TestSessionLocal() as session:
            yield session

    # Mock the lifespan to skip database and Redis startup
    @asynccontextmanager
    async def mock_lifespan(app):
        yield

    from storefront.main import app
    app.router.lifespan_context = mock_lifespan
    app.dependency_overrides[get_db] = override_get_db
    return app


@pytest.fixture(scope="function")
async def app(db_session: AsyncSession):
    """FastAPI app bound to the test database"""
    application = _install_overrides()
    yield application
    application.dependency_overrides.clear()


@pytest.fixture(scope="function")
async def client(app) -> AsyncGenerator[httpx.AsyncClient, None]:
    """HTTP client running the app in the test's event loop"""
    transport = httpx.ASGITransport(app=app)
    async with httpx.AsyncClient(transport=transport, base_url="http://testserver") as test_client:
        yield test_client


# User fixtures
async def _create_user(db: AsyncSession, username: str, email: str, is_admin: bool = False) -> User:
    from storefront.services.user_service import user_service
    user, error = await user_service.create(db, UserCreate(
        firstname="Test",
        lastname="User",
        username=username,
        email=email,
        password="secret123",
    ))
    assert error is None
    if is_admin:
        user.is_admin = True
        await db.commit()
        await db.refresh(user)
    return user


@pytest.fixture
async def test_user(db_session: AsyncSession) -> User:
    """Create a regular customer"""
    return await _create_user(db_session, "ada", "ada@example.com")


@pytest.fixture
async def other_user(db_session: AsyncSession) -> User:
    """A second customer whose cart test_user must not touch"""
    return await _create_user(db_session, "grace", "grace@example.com")


@pytest.fixture
async def admin_user(db_session: AsyncSession) -> User:
    """Create an admin user"""
    return await _create_user(db_session, "admin", "admin@example.com", is_admin=True)


# Token fixtures
@pytest.fixture
def user_token(test_user: User) -> str:
    return create_user_token(test_user)


@pytest.fixture
def admin_token(admin_user: User) -> str:
    return create_user_token(admin_user)


# Header fixtures
@pytest.fixture
def auth_headers(user_token: str) -> dict:
    """Auth header for the regular customer"""
    return {"x-auth-token": user_token}


@pytest.fixture
def admin_headers(admin_token: str) -> dict:
    """Auth header for the admin"""
    return {"x-auth-token": admin_token}


# Product snapshots as the catalog sends them
@pytest.fixture
def scarf() -> dict:
    return {"_id": "prod-a", "name": "Silk Scarf", "price": 1200, "images": ["scarf.jpg"]}


@pytest.fixture
def necklace() -> dict:
    return {"_id": "prod-b", "name": "Bead Necklace", "price": 450.5, "images": []}


# Client side: an in-memory imitation of the REST API behind httpx.MockTransport

FAKE_USER = {
    "id": 7,
    "firstname": "Ada",
    "lastname": "Lovelace",
    "username": "ada",
    "email": "ada@example.com",
    "isAdmin": False,
}

CART_PATH = re.compile(r"^/api/cart/(\d+)$")


class FakeBackend:
    """
    Records every call and answers like the storefront API would.
    fail_next() makes the next matching call fail once; offline drops the connection.
    """

    def __init__(self):
        self.calls: List[Tuple[str, str]] = []
        self.carts: Dict[int, dict] = {}
        self.valid_tokens = set()
        self.offline = False
        self.auth_gate: Optional[asyncio.Event] = None
        self._failures: Dict[Tuple[str, str], Tuple[int, str]] = {}
        self._token_counter = 0

    def issue_token(self) -> str:
        self._token_counter += 1
        token = f"token-{self._token_counter}"
        self.valid_tokens.add(token)
        return token

    def fail_next(self, method: str, path: str, status: int, detail: str = "failure"):
        self._failures[(method, path)] = (status, detail)

    def count(self, method: str, path: str) -> int:
        return sum(1 for call in self.calls if call == (method, path))

    def seed_cart(self, user_id: int, products: list, version: int = 1):
        self.carts[user_id] = {
            "products": dump_line_items(clean_line_items(products)),
            "version": version,
        }

    def cart_body(self, user_id: int) -> dict:
        cart = self.carts[user_id]
        return {"id": user_id, "userId": user_id, "products": cart["products"], "version": cart["version"]}

    def _authorized(self, request: httpx.Request) -> bool:
        return request.headers.get("x-auth-token") in self.valid_tokens

    async def handler(self, request: httpx.Request) -> httpx.Response:
        method, path = request.method, request.url.path
        self.calls.append((method, path))

        if self.offline:
            raise httpx.ConnectError("backend unreachable", request=request)

        failure = self._failures.pop((method, path), None)
        if failure:
            return httpx.Response(failure[0], json={"detail": failure[1]})

        body = json.loads(request.content) if request.content else None

        if path == "/api/auth" and method == "POST":
            if body.get("password") != "secret123":
                return httpx.Response(400, json={"detail": "Invalid email/username or password."})
            return httpx.Response(200, json={"token": self.issue_token(), "user": FAKE_USER})

        if not self._authorized(request):
            return httpx.Response(401, json={"detail": "Token expired, please login again"})

        if path == "/api/auth" and method == "GET":
            if self.auth_gate is not None:
                await self.auth_gate.wait()
            return httpx.Response(200, json=FAKE_USER)

        if path == "/api/auth/refresh":
            self.valid_tokens.discard(request.headers["x-auth-token"])
            return httpx.Response(200, json={
                "token": self.issue_token(),
                "message": "Token refreshed successfully",
                "expiresIn": "24h",
            })

        if path == "/api/auth/logout":
            self.valid_tokens.discard(request.headers["x-auth-token"])
            return httpx.Response(200, json={"message": "Logged out successfully", "success": True})

        if path == "/api/cart/" and method == "POST":
            user_id = body["userId"]
            if user_id in self.carts:
                return httpx.Response(400, json={"detail": "Cart already exists for this user"})
            self.seed_cart(user_id, body["products"])
            return httpx.Response(200, json=self.cart_body(user_id))

        match = CART_PATH.match(path)
        if match:
            user_id = int(match.group(1))
            if method == "GET":
                if user_id not in self.carts:
                    return httpx.Response(200, json=None)
                return httpx.Response(200, json=self.cart_body(user_id))
            if method == "PUT":
                existing = self.carts.get(user_id)
                expected = body.get("version")
                if existing and expected is not None and expected != existing["version"]:
                    return httpx.Response(409, json={"detail": "Cart was modified by another session"})
                version = existing["version"] + 1 if existing else 1
                self.seed_cart(user_id, body["products"], version=version)
                return httpx.Response(200, json=self.cart_body(user_id))
            if method == "DELETE":
                if user_id not in self.carts:
                    return httpx.Response(404, json={"detail": "Cart not found"})
                del self.carts[user_id]
                return httpx.Response(200, json={"msg": "Cart is successfully deleted"})

        return httpx.Response(404, json={"detail": "Not Found"})


@pytest.fixture
def backend() -> FakeBackend:
    return FakeBackend()


@pytest.fixture
def client_settings(tmp_path) -> ClientSettings:
    return ClientSettings(
        API_BASE_URL="http://shop.test/api",
        STATE_FILE=str(tmp_path / "state.json"),
    )


@pytest.fixture
def state_storage(client_settings: ClientSettings) -> StateStorage:
    return StateStorage(client_settings.STATE_FILE)


@pytest.fixture
async def storefront(backend: FakeBackend, client_settings: ClientSettings) -> AsyncGenerator[Storefront, None]:
    """Storefront client talking to the fake backend"""
    shop = Storefront(settings=client_settings, transport=httpx.MockTransport(backend.handler))
    yield shop
    await shop.close()

"""
End-to-end tests for the /api/v1/auth endpoint.

Runs the real app, UserManager and SQLAlchemyUserDatabase against an
in-memory SQLite database; outbound email, billing and analytics are patched.
"""

from unittest.mock import AsyncMock, patch

import httpx
import pytest
import pytest_asyncio
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.pool import StaticPool

from api import auth as auth_api
from config.settings import config
from database.models import Account, Base, User, UserType
from database.session import get_db_session
from main import app

AUTH_URL = "/api/v1/auth"


@pytest_asyncio.fixture
async def session_factory():
    engine = create_async_engine(
        "sqlite+aiosqlite://",
        poolclass=StaticPool,
        connect_args={"check_same_thread": False},
    )
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    factory = async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)

    async def override_db_session():
        async with factory() as session:
            try:
                yield session
                await session.commit()
            except Exception:
                await session.rollback()
                raise

    app.dependency_overrides[get_db_session] = override_db_session
    yield factory
    app.dependency_overrides.pop(get_db_session, None)
    await engine.dispose()


@pytest_asyncio.fixture
async def client(session_factory):
    transport = httpx.ASGITransport(app=app)
    with patch.object(auth_api, "send_welcome_email", new_callable=AsyncMock), \
            patch.object(auth_api, "create_subscription", new_callable=AsyncMock), \
            patch.object(auth_api, "capture_event"):
        async with httpx.AsyncClient(transport=transport, base_url="https://testserver") as http:
            yield http


class TestAuthEndpoint:
    @pytest.mark.asyncio
    async def test_signup_login_logout(self, client, session_factory):
        response = await client.post(AUTH_URL, json={
            "method": "signup",
            "username": "ada@example.com",
            "password": "correct horse battery staple",
            "name": "Ada",
        })
        assert response.status_code == 201
        body = response.json()
        assert set(body) == {"id", "email"}
        assert body["email"] == "ada@example.com"
        assert client.cookies.get(config.cookie_name)

        async with session_factory() as session:
            user = (await session.execute(select(User))).scalar_one()
            account = (await session.execute(select(Account))).scalar_one()
        assert str(user.id) == body["id"]
        assert user.account_id == account.id
        assert user.type == UserType.OWNER
        assert user.name == "Ada"
        assert user.hashed_password.startswith(user.salt)

        response = await client.get(AUTH_URL, params={"method": "getToken"})
        assert response.status_code == 200
        assert response.text == body["id"]

        response = await client.post(AUTH_URL, json={"method": "logout"})
        assert response.status_code == 200
        assert not client.cookies.get(config.cookie_name)

        response = await client.post(AUTH_URL, json={
            "method": "login",
            "username": "ada@example.com",
            "password": "correct horse battery staple",
        })
        assert response.status_code == 200
        assert response.json() == body
        assert client.cookies.get(config.cookie_name)

    @pytest.mark.asyncio
    async def test_long_password_round_trip(self, client):
        password = "p" * 120
        response = await client.post(AUTH_URL, json={
            "method": "signup", "username": "grace@example.com", "password": password,
        })
        assert response.status_code == 201

        client.cookies.clear()
        response = await client.post(AUTH_URL, json={
            "method": "login", "username": "grace@example.com", "password": password,
        })
        assert response.status_code == 200

    @pytest.mark.asyncio
    async def test_duplicate_signup_rejected(self, client):
        payload = {"method": "signup", "username": "ada@example.com", "password": "pw"}
        assert (await client.post(AUTH_URL, json=payload)).status_code == 201

        response = await client.post(AUTH_URL, json=payload)
        assert response.status_code == 400
        assert response.json() == {"error": "Username `ada@example.com` already in use"}

    @pytest.mark.asyncio
    async def test_wrong_password_returns_error(self, client):
        await client.post(AUTH_URL, json={
            "method": "signup", "username": "ada@example.com", "password": "pw",
        })
        client.cookies.clear()

        response = await client.post(AUTH_URL, json={
            "method": "login", "username": "ada@example.com", "password": "nope",
        })
        assert response.status_code == 400
        assert response.json() == {"error": "Incorrect password for ada@example.com"}
        assert config.cookie_name not in response.cookies

    @pytest.mark.asyncio
    async def test_unknown_username_and_method(self, client):
        response = await client.post(AUTH_URL, json={
            "method": "login", "username": "nobody@example.com", "password": "pw",
        })
        assert response.json() == {"error": "Username nobody@example.com not found"}

        response = await client.post(AUTH_URL, json={"method": "frobnicate"})
        assert response.status_code == 404
        assert response.json() == {"error": "Unknown auth method 'frobnicate'"}

    @pytest.mark.asyncio
    async def test_webauthn_disabled(self, client):
        response = await client.post(AUTH_URL, json={"method": "webAuthnRegOptions"})
        assert response.status_code == 400
        assert response.json() == {"error": "WebAuthn is not enabled"}

"""Shared test fixtures.

Tests run against a throwaway SQLite database (aiosqlite) per test, so no
PostgreSQL server is needed. The credential verifier is replaced by
MockVerifier, and verification emails are captured instead of sent.
"""

from collections.abc import AsyncGenerator, Iterator
from typing import Any
from unittest.mock import AsyncMock, patch

import pytest
import pytest_asyncio
from httpx import ASGITransport, AsyncClient
from sqlalchemy import pool
from sqlalchemy.ext.asyncio import (
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)

from authn.actors.system import ActorSystem, set_actor_system
from authn.models.base import Base
from authn.providers import factory
from authn.providers.verifier.mock_adapter import MockVerifier, make_client_data
from authn.services.challenge_orchestrator import ChallengeOrchestrator

# Site embedding the widget (consistent across tests)
ORIGIN = "https://site.example"
OTHER_ORIGIN = "https://evil.example"

TEST_EMAIL = "a@x.com"
TEST_SESSION_TTL_SECONDS = 60

_PATCH_SEND_EMAIL = "authn.api.challenge.send_verification_email"


def make_credential(credential_id: str = "cred-1") -> dict[str, Any]:
    """Wire-format credential reference."""
    return {
        "id": credential_id,
        "publicKey": "MFkwEwYHKoZIzj0CAQYIKoZIzj0DAQcDQgAE",
        "algorithm": "ES256",
        "transports": ["internal"],
    }


def make_registration(
    challenge: str,
    origin: str = ORIGIN,
    *,
    credential_id: str = "cred-1",
) -> dict[str, Any]:
    """Wire-format registration proof accepted by MockVerifier."""
    return {
        "username": TEST_EMAIL,
        "credential": make_credential(credential_id),
        "authenticatorData": "AAAA",
        "clientData": make_client_data("webauthn.create", challenge, origin),
    }


def make_authentication(
    challenge: str,
    origin: str = ORIGIN,
    *,
    credential_id: str = "cred-1",
) -> dict[str, Any]:
    """Wire-format authentication proof accepted by MockVerifier."""
    return {
        "credentialId": credential_id,
        "authenticatorData": "AAAA",
        "clientData": make_client_data("webauthn.get", challenge, origin),
        "signature": "AAAA",
    }


@pytest_asyncio.fixture(scope="function")
async def db_engine(tmp_path):
    """Create a fresh SQLite database with all tables."""
    engine = create_async_engine(
        f"sqlite+aiosqlite:///{tmp_path / 'authn_test.db'}",
        poolclass=pool.NullPool,
    )

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    yield engine

    await engine.dispose()


@pytest.fixture
def session_factory(db_engine) -> async_sessionmaker[AsyncSession]:
    """Session factory bound to the test database."""
    return async_sessionmaker(
        db_engine,
        class_=AsyncSession,
        expire_on_commit=False,
    )


@pytest_asyncio.fixture
async def system(session_factory) -> AsyncGenerator[ActorSystem, None]:
    """Actor system bound to the test database.

    Installed as the process singleton for the duration of the test.
    """
    actor_system = ActorSystem(
        session_factory, session_ttl_seconds=TEST_SESSION_TTL_SECONDS
    )
    set_actor_system(actor_system)

    yield actor_system

    await actor_system.shutdown()
    set_actor_system(None)


@pytest.fixture
def mock_verifier() -> Iterator[MockVerifier]:
    """Fixture that provides MockVerifier and resets after test.

    Injected into the factory singleton.

    Yields:
        MockVerifier instance.
    """
    mock = MockVerifier()

    factory._verifier = mock

    yield mock

    factory.reset_verifier()


@pytest.fixture
def orchestrator(system, mock_verifier) -> ChallengeOrchestrator:
    """Orchestrator over the test actor system and mock verifier."""
    return ChallengeOrchestrator(system, mock_verifier)


@pytest.fixture
def mock_send_email() -> Iterator[AsyncMock]:
    """Capture verification emails instead of sending them.

    Yields:
        AsyncMock standing in for send_verification_email.
    """
    with patch(_PATCH_SEND_EMAIL, new_callable=AsyncMock) as mock_send:
        yield mock_send


@pytest_asyncio.fixture
async def client(
    orchestrator, mock_send_email  # noqa: ARG001 - ensures emails are captured
) -> AsyncGenerator[AsyncClient, None]:
    """Async HTTP client for API tests.

    Sends an Origin header like a browser embedding the widget would.

    Yields:
        Configured AsyncClient.
    """
    from authn.api.deps import get_orchestrator
    from authn.main import app

    app.dependency_overrides[get_orchestrator] = lambda: orchestrator

    transport = ASGITransport(app=app)
    async with AsyncClient(
        transport=transport,
        base_url="http://test",
        headers={"Origin": ORIGIN},
    ) as ac:
        yield ac

    app.dependency_overrides.clear()


@pytest.fixture(autouse=True)
def disable_rate_limiting() -> Iterator[None]:
    """Disable rate limiting during tests.

    Security: Rate limiting is tested separately; disable for other tests
    to avoid flaky failures from rate limit triggers.

    Yields:
        None (autouse fixture).
    """
    from authn.core.rate_limiting import limiter

    original_enabled = limiter.enabled
    limiter.enabled = False

    yield

    limiter.enabled = original_enabled

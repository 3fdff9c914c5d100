"""Tests for the identity index."""

import asyncio
import base64
import hashlib

import pytest

from authn.models.base import now_ms
from authn.models.identity_index import IdentityIndexEntry
from authn.services.identity_index import (
    email_to_user_key,
    normalize_email,
    verification_token_key,
)


class TestKeys:
    """Key derivation."""

    def test_email_key_is_hash_of_email(self):
        """Only a one-way hash of the address appears in the key."""
        digest = base64.b64encode(hashlib.sha256(b"a@x.com").digest()).decode()

        key = email_to_user_key("a@x.com")

        assert key == f"email:{digest}"
        assert "a@x.com" not in key

    def test_normalize_email(self):
        """Addresses are stripped and lowercased."""
        assert normalize_email("  A@X.com ") == "a@x.com"

    def test_verification_token_key(self):
        """Tokens live under the verify: prefix."""
        assert verification_token_key("tok") == "verify:tok"


class TestGetPut:
    """Plain key/value operations."""

    @pytest.mark.asyncio
    async def test_put_then_get(self, system):
        """A stored value is returned."""
        await system.index.put("email:abc", "user-1")

        assert await system.index.get("email:abc") == "user-1"

    @pytest.mark.asyncio
    async def test_missing_key_is_none(self, system):
        """Unknown keys resolve to None."""
        assert await system.index.get("email:missing") is None

    @pytest.mark.asyncio
    async def test_put_overwrites(self, system):
        """put() replaces the previous value."""
        await system.index.put("k", "v1")
        await system.index.put("k", "v2")

        assert await system.index.get("k") == "v2"

    @pytest.mark.asyncio
    async def test_expired_entry_is_invisible(self, system, session_factory):
        """An entry past expires_at reads as absent."""
        async with session_factory() as db:
            db.add(IdentityIndexEntry(key="k", value="v", expires_at=now_ms() - 1))
            await db.commit()

        assert await system.index.get("k") is None

    @pytest.mark.asyncio
    async def test_delete(self, system):
        """Deleted keys read as absent."""
        await system.index.put("k", "v")
        await system.index.delete("k")

        assert await system.index.get("k") is None

    @pytest.mark.asyncio
    async def test_take_returns_value_and_deletes(self, system):
        """take() hands back the value exactly once."""
        await system.index.put("k", "v")

        assert await system.index.take("k") == "v"
        assert await system.index.take("k") is None
        assert await system.index.get("k") is None

    @pytest.mark.asyncio
    async def test_take_ignores_expired_entry(self, system, session_factory):
        """An expired entry is removed but its value is not returned."""
        async with session_factory() as db:
            db.add(IdentityIndexEntry(key="k", value="v", expires_at=now_ms() - 1))
            await db.commit()

        assert await system.index.take("k") is None


class TestPutIfAbsent:
    """First write wins."""

    @pytest.mark.asyncio
    async def test_first_writer_wins(self, system):
        """A second claim returns the first value."""
        first = await system.index.put_if_absent("k", "user-1")
        second = await system.index.put_if_absent("k", "user-2")

        assert first == "user-1"
        assert second == "user-1"
        assert await system.index.get("k") == "user-1"

    @pytest.mark.asyncio
    async def test_concurrent_claims_agree(self, system):
        """Concurrent first-time claims for one email resolve to one user."""
        results = await asyncio.gather(
            system.index.claim_user_id("a@x.com", "user-1"),
            system.index.claim_user_id("a@x.com", "user-2"),
            system.index.claim_user_id("a@x.com", "user-3"),
        )

        assert len(set(results)) == 1
        assert await system.index.find_user_id("a@x.com") == results[0]

    @pytest.mark.asyncio
    async def test_expired_entry_can_be_reclaimed(self, system, session_factory):
        """An expired value does not block a new writer."""
        async with session_factory() as db:
            db.add(IdentityIndexEntry(key="k", value="old", expires_at=now_ms() - 1))
            await db.commit()

        assert await system.index.put_if_absent("k", "new") == "new"


class TestVerificationTokens:
    """One-shot verification tokens."""

    @pytest.mark.asyncio
    async def test_issue_resolve_redeem(self, system):
        """A token resolves to its session until redeemed."""
        token = await system.index.issue_verification_token("session-1", 3600)

        assert len(token) >= 43
        assert await system.index.resolve_verification_token(token) == "session-1"

        assert await system.index.redeem_verification_token(token) == "session-1"

        assert await system.index.resolve_verification_token(token) is None

    @pytest.mark.asyncio
    async def test_tokens_are_unique(self, system):
        """Every issue call mints a fresh token."""
        first = await system.index.issue_verification_token("session-1", 3600)
        second = await system.index.issue_verification_token("session-1", 3600)

        assert first != second

    @pytest.mark.asyncio
    async def test_token_redeems_once(self, system):
        """A second redeem finds nothing."""
        token = await system.index.issue_verification_token("session-1", 3600)

        assert await system.index.redeem_verification_token(token) == "session-1"
        assert await system.index.redeem_verification_token(token) is None

    @pytest.mark.asyncio
    async def test_concurrent_redeems_have_one_winner(self, system):
        """Only one of several simultaneous redeems gets the session id."""
        token = await system.index.issue_verification_token("session-1", 3600)

        results = await asyncio.gather(
            *(system.index.redeem_verification_token(token) for _ in range(5))
        )

        assert results.count("session-1") == 1
        assert results.count(None) == 4


class TestPurgeExpired:
    """purge_expired() only removes expired entries."""

    @pytest.mark.asyncio
    async def test_purge_keeps_live_and_permanent_entries(
        self, system, session_factory
    ):
        """Permanent and live entries survive; expired ones are removed."""
        async with session_factory() as db:
            db.add(IdentityIndexEntry(key="old", value="v", expires_at=now_ms() - 1))
            db.add(IdentityIndexEntry(key="live", value="v", expires_at=now_ms() + 60_000))
            db.add(IdentityIndexEntry(key="forever", value="v", expires_at=None))
            await db.commit()

        removed = await system.index.purge_expired()

        assert removed == 1
        assert await system.index.get("live") == "v"
        assert await system.index.get("forever") == "v"

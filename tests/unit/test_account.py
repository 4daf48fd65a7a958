# =============================================================================
# tests/unit/test_account.py
# Unit Tests for AccountService
# =============================================================================

import asyncio

import pytest

from arwords_core.auth.account import AccountService
from arwords_core.errors import AuthenticationError, NetworkFault
from arwords_core.models import EntitlementRecord
from arwords_core.offline.entitlement_cache import access_key

from tests.conftest import USER_ID


@pytest.fixture
def accounts(identity, store, gateway, entitlements):
    return AccountService(identity, store, gateway, entitlements)


class TestRegisterLogin:
    """Profiles follow the identity"""

    def test_register_creates_profile_without_access(self, accounts, gateway, store, preferences):
        session = asyncio.run(accounts.register("amal@example.com", "secret"))

        assert session.user_id == "user-amal"
        assert gateway.profiles["user-amal"].has_access is False
        assert asyncio.run(store.get_profile("user-amal")).has_access is False
        assert asyncio.run(preferences.get_bool(access_key("user-amal"))) is False

    def test_login_refreshes_entitlement(self, accounts, gateway, preferences):
        gateway.profiles["user-amal"] = EntitlementRecord(user_id="user-amal", has_access=True)

        asyncio.run(accounts.login("amal@example.com", "secret"))

        assert asyncio.run(preferences.get_bool(access_key("user-amal"))) is True

    def test_login_clears_previous_user_flags(self, accounts, preferences):
        asyncio.run(preferences.set_bool(access_key(USER_ID), True))

        asyncio.run(accounts.login("amal@example.com", "secret"))

        assert asyncio.run(preferences.get_bool(access_key(USER_ID))) is None

    def test_login_creates_missing_profile(self, accounts, gateway):
        asyncio.run(accounts.login("amal@example.com", "secret"))

        assert gateway.profiles["user-amal"].has_access is False

    def test_login_survives_profile_outage(self, accounts, gateway):
        gateway.fail_with = NetworkFault("503", operation="fetch_entitlement")

        session = asyncio.run(accounts.login("amal@example.com", "secret"))

        assert session.user_id == "user-amal"

    def test_bad_credentials(self, accounts):
        with pytest.raises(AuthenticationError):
            asyncio.run(accounts.login("amal@example.com", "wrong"))


class TestLogoutDelete:
    """Local state is cleared on the way out"""

    def test_logout_clears_everything(self, accounts, identity, store, preferences, sample_entries):
        async def scenario():
            await store.upsert_batch(sample_entries)
            await store.save_profile(EntitlementRecord(user_id=USER_ID, has_access=True))
            await preferences.set_bool(access_key(USER_ID), True)
            failed = await accounts.logout()
            return (
                failed,
                await store.row_count(),
                await store.get_profile(USER_ID),
                await preferences.get_bool(access_key(USER_ID)),
            )

        failed, count, profile, flag = asyncio.run(scenario())

        assert failed == []
        assert count == 0
        assert profile is None
        assert flag is None
        assert identity.user_id is None

    def test_logout_continues_after_failed_step(self, accounts, identity, store, monkeypatch):
        async def broken():
            raise RuntimeError("database is locked")

        monkeypatch.setattr(store, "clear_content", broken)

        failed = asyncio.run(accounts.logout())

        assert failed == ["clear_content"]
        assert identity.user_id is None

    def test_delete_account(self, accounts, identity, gateway, premium_user):
        asyncio.run(accounts.delete_account())

        assert USER_ID not in gateway.profiles
        assert identity.deleted == [USER_ID]

    def test_delete_requires_user(self, accounts, identity):
        identity.user_id = None

        with pytest.raises(AuthenticationError):
            asyncio.run(accounts.delete_account())

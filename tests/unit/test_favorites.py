# =============================================================================
# tests/unit/test_favorites.py
# Unit Tests for FavoritesReconciler
# =============================================================================

import asyncio

import pytest

from arwords_core.errors import NetworkFault, OfflineUnavailable

from tests.conftest import USER_ID


@pytest.fixture
def downloaded(store, sample_entries, premium_user):
    asyncio.run(store.upsert_batch(sample_entries))
    return store


class TestAddRemove:
    """Local-first writes with remote propagation"""

    def test_online_premium_updates_both_stores(self, favorites, gateway, store, downloaded):
        asyncio.run(favorites.add_favorite("w-book"))

        assert (USER_ID, "w-book") in gateway.favorites
        assert asyncio.run(store.get_by_id("w-book")).is_favorite

    def test_remote_failure_after_local_write_is_swallowed(self, favorites, gateway, store, downloaded):
        async def scenario():
            assert await favorites.entitlements.check_access()
            gateway.fail_with = NetworkFault("500", operation="add_favorite")
            await favorites.add_favorite("w-book")
            return await store.get_by_id("w-book")

        entry = asyncio.run(scenario())

        assert entry.is_favorite
        assert (USER_ID, "w-book") not in gateway.favorites

    def test_offline_premium_writes_locally(self, favorites, connectivity, store, downloaded):
        async def scenario():
            assert await favorites.entitlements.check_access()
            connectivity.force_offline()
            await favorites.add_favorite("w-hello")
            return await store.get_by_id("w-hello")

        assert asyncio.run(scenario()).is_favorite

    def test_free_user_remote_failure_propagates(self, favorites, gateway):
        gateway.fail_with = NetworkFault("500", operation="add_favorite")

        with pytest.raises(NetworkFault):
            asyncio.run(favorites.add_favorite("w-book"))

    def test_free_user_offline_is_unavailable(self, favorites, connectivity):
        connectivity.force_offline()

        with pytest.raises(OfflineUnavailable):
            asyncio.run(favorites.add_favorite("w-book"))

    def test_add_twice_keeps_one_link(self, favorites, gateway):
        asyncio.run(favorites.add_favorite("w-book"))
        asyncio.run(favorites.add_favorite("w-book"))

        assert gateway.favorites == {(USER_ID, "w-book")}

    def test_remove(self, favorites, gateway, store, downloaded):
        gateway.favorites.add((USER_ID, "w-book"))
        asyncio.run(store.set_favorite("w-book", True))

        asyncio.run(favorites.remove_favorite("w-book"))

        assert gateway.favorites == set()
        assert not asyncio.run(store.get_by_id("w-book")).is_favorite

    def test_remove_never_favorited_is_noop(self, favorites, gateway):
        asyncio.run(favorites.remove_favorite("w-hello"))

        assert gateway.favorites == set()


class TestIsFavorited:
    """Read path never raises"""

    def test_remote_flag(self, favorites, gateway):
        gateway.favorites.add((USER_ID, "w-book"))

        assert asyncio.run(favorites.is_favorited("w-book")) is True

    def test_unauthenticated_is_false(self, favorites, identity):
        identity.user_id = None

        assert asyncio.run(favorites.is_favorited("w-book")) is False

    def test_errors_are_false(self, favorites, gateway):
        gateway.fail_with = RuntimeError("unexpected")

        assert asyncio.run(favorites.is_favorited("w-book")) is False

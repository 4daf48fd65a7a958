# =============================================================================
# tests/unit/test_purchase_bridge.py
# Unit Tests for PurchaseAccessBridge and Verifiers
# =============================================================================

import asyncio
from unittest.mock import AsyncMock, MagicMock

import httpx
import pytest

from arwords_core.billing import purchase_bridge
from arwords_core.billing.purchase_bridge import (
    MSG_CANCELLED,
    MSG_PRODUCT_NOT_FOUND,
    MSG_STORE_UNAVAILABLE,
    MSG_SUCCESS,
    PurchaseAccessBridge,
    PurchaseState,
)
from arwords_core.billing.verifier import (
    RevenueCatVerifier,
    TrustingVerifier,
    transaction_in_customer_info,
)
from arwords_core.errors import NetworkFault, TimeoutFault, VerificationFault
from arwords_core.models import Product, PurchaseEvent, PurchaseStatus, PurchaseUpdateStatus
from arwords_core.offline.entitlement_cache import access_key

from tests.conftest import USER_ID


def purchased(token="tok-1", status=PurchaseStatus.PURCHASED, product_id="premium_access"):
    return PurchaseEvent(
        product_id=product_id,
        status=status,
        purchase_token=token,
        verification_data="receipt",
        pending_complete=True,
    )


@pytest.fixture
def updates():
    return []


@pytest.fixture
def bridge(billing, identity, gateway, entitlements, sync_engine, updates):
    instance = PurchaseAccessBridge(
        platform=billing,
        verifier=TrustingVerifier(),
        identity=identity,
        gateway=gateway,
        entitlements=entitlements,
        sync_engine=sync_engine,
        store_query_timeout=0.05,
        billing_connect_timeout=0.05,
    )
    instance.register_listener(updates.append)
    return instance


class TestInitialize:
    """Store availability and product lookup"""

    def test_loads_product(self, bridge):
        assert asyncio.run(bridge.initialize()) is True
        assert bridge.product.id == "premium_access"

    def test_store_unavailable(self, bridge, billing, updates):
        billing.available = False

        assert asyncio.run(bridge.initialize()) is False
        assert updates[-1].message == MSG_STORE_UNAVAILABLE

    def test_unknown_product(self, bridge, billing, updates):
        billing.product = Product(id="something_else", title="Other")

        assert asyncio.run(bridge.initialize()) is False
        assert updates[-1].message == MSG_PRODUCT_NOT_FOUND

    def test_slow_store_times_out(self, bridge, billing, updates):
        billing.delay = 0.5

        with pytest.raises(TimeoutFault):
            asyncio.run(bridge.initialize())

        assert updates[-1].status == PurchaseUpdateStatus.ERROR
        assert updates[-1].error_code == "TIMEOUT_001"

    def test_slow_restore_times_out(self, bridge, billing):
        billing.delay = 0.5

        with pytest.raises(TimeoutFault):
            asyncio.run(bridge.restore())

    def test_buy_launches_platform_flow(self, bridge, billing):
        assert asyncio.run(bridge.buy()) is True
        assert [p.id for p in billing.purchased] == ["premium_access"]
        assert bridge.state == PurchaseState.AWAITING_STORE_RESPONSE


class TestPurchaseFlow:
    """Verified purchase grants access and downloads"""

    def test_purchase_grants_caches_and_downloads(
        self, bridge, billing, gateway, preferences, store, updates
    ):
        event = purchased()

        asyncio.run(bridge.handle_event(event))

        assert gateway.profiles[USER_ID].has_access is True
        assert asyncio.run(preferences.get_bool(access_key(USER_ID))) is True
        assert asyncio.run(store.get_profile(USER_ID)).has_access is True
        assert asyncio.run(store.row_count()) == 3
        assert billing.consumed == [event]
        assert billing.completed == [event]
        assert bridge.state == PurchaseState.DONE
        assert updates[-1].status == PurchaseUpdateStatus.PURCHASED
        assert updates[-1].message == MSG_SUCCESS

    def test_download_failure_does_not_block_consumption(self, bridge, billing, gateway, updates):
        gateway.entries.clear()
        event = purchased()

        asyncio.run(bridge.handle_event(event))

        assert gateway.profiles[USER_ID].has_access is True
        assert billing.consumed == [event]
        assert updates[-1].status == PurchaseUpdateStatus.PURCHASED

    def test_same_token_is_granted_once(self, bridge, billing, gateway):
        event = purchased()

        async def scenario():
            await bridge.handle_event(event)
            await bridge.handle_event(event)

        asyncio.run(scenario())

        assert gateway.calls.count("grant_entitlement") == 1
        assert len(billing.consumed) == 2
        assert billing.completed == [event]

    def test_token_history_is_bounded(self, bridge, billing, gateway, monkeypatch):
        monkeypatch.setattr(purchase_bridge, "TOKEN_HISTORY", 2)

        async def scenario():
            for token in ("tok-1", "tok-2", "tok-3"):
                await bridge.handle_event(purchased(token=token))

        asyncio.run(scenario())

        assert list(bridge._granted_tokens) == ["tok-2", "tok-3"]
        assert list(bridge._completed_tokens) == ["tok-2", "tok-3"]
        assert len(billing.completed) == 3

    def test_failed_verification_changes_nothing(
        self, bridge, billing, gateway, preferences, updates
    ):
        verifier = MagicMock()
        verifier.verify = AsyncMock(return_value=False)
        bridge.verifier = verifier
        event = purchased()

        asyncio.run(bridge.handle_event(event))

        assert USER_ID not in gateway.profiles
        assert asyncio.run(preferences.get_bool(access_key(USER_ID))) is None
        assert billing.consumed == []
        assert billing.completed == [event]
        assert bridge.state == PurchaseState.DENIED
        assert updates[-1].error_code == VerificationFault("x").code

    def test_grant_failure_skips_consumption(self, bridge, billing, gateway, updates):
        gateway.fail_with = NetworkFault("500", operation="grant_entitlement")
        event = purchased()

        asyncio.run(bridge.handle_event(event))

        assert billing.consumed == []
        assert billing.completed == [event]
        assert bridge.state == PurchaseState.IDLE
        assert updates[-1].status == PurchaseUpdateStatus.ERROR

    def test_purchase_without_user_is_rejected(self, bridge, identity, billing, gateway, updates):
        identity.user_id = None

        asyncio.run(bridge.handle_event(purchased()))

        assert gateway.profiles == {}
        assert updates[-1].error_code == "AUTH_001"
        assert len(billing.completed) == 1


class TestOtherEvents:
    """Pending, canceled, restored and unrelated events"""

    def test_restored_is_consumed_without_grant(self, bridge, billing, gateway):
        event = purchased(status=PurchaseStatus.RESTORED)

        asyncio.run(bridge.handle_event(event))

        assert "grant_entitlement" not in gateway.calls
        assert billing.consumed == [event]
        assert billing.completed == [event]

    def test_canceled(self, bridge, billing, updates):
        event = purchased(status=PurchaseStatus.CANCELED)

        asyncio.run(bridge.handle_event(event))

        assert updates[-1].message == MSG_CANCELLED
        assert billing.completed == [event]

    def test_unrelated_product_ignored(self, bridge, billing, gateway, updates):
        asyncio.run(bridge.handle_event(purchased(product_id="coins")))

        assert gateway.calls == []
        assert updates == []

    def test_listen_processes_stream(self, bridge, billing, gateway, updates):
        billing.events = [
            PurchaseEvent(product_id="premium_access", status=PurchaseStatus.PENDING,
                          purchase_token="tok-9"),
            purchased(token="tok-9"),
        ]

        asyncio.run(bridge.listen())

        assert updates[0].status == PurchaseUpdateStatus.PENDING
        assert updates[-1].status == PurchaseUpdateStatus.PURCHASED
        assert len(billing.completed) == 1

    def test_listener_errors_are_isolated(self, bridge, updates):
        def broken(update):
            raise RuntimeError("listener bug")

        bridge.register_listener(broken)
        asyncio.run(bridge.handle_event(purchased(status=PurchaseStatus.CANCELED)))

        assert updates[-1].message == MSG_CANCELLED

    def test_unregistered_listener_hears_nothing(self, bridge, updates):
        bridge.unregister_listener(updates.append)

        asyncio.run(bridge.handle_event(purchased(status=PurchaseStatus.CANCELED)))

        assert updates == []


class TestRevenueCatVerifier:
    """Receipt lookup against the RevenueCat subscriber record"""

    CUSTOMER_INFO = {
        "subscriber": {
            "non_subscriptions": {
                "premium_access": [{"id": "abc", "store_transaction_id": "GPA.1"}],
            },
            "other_purchases": {},
        }
    }

    def _verifier(self, handler):
        client = httpx.AsyncClient(transport=httpx.MockTransport(handler))
        return RevenueCatVerifier(api_key="rc-key", client=client)

    def test_transaction_found(self):
        seen = {}

        def handler(request):
            seen["auth"] = request.headers["Authorization"]
            seen["path"] = request.url.path
            return httpx.Response(200, json=self.CUSTOMER_INFO)

        verifier = self._verifier(handler)

        assert asyncio.run(verifier.verify(USER_ID, purchased(token="GPA.1"))) is True
        assert seen["auth"] == "Bearer rc-key"
        assert seen["path"] == f"/v1/subscribers/{USER_ID}"

    def test_unknown_transaction(self):
        verifier = self._verifier(lambda request: httpx.Response(200, json=self.CUSTOMER_INFO))

        assert asyncio.run(verifier.verify(USER_ID, purchased(token="GPA.2"))) is False

    def test_server_error_is_network_fault(self):
        verifier = self._verifier(lambda request: httpx.Response(503))

        with pytest.raises(NetworkFault) as exc_info:
            asyncio.run(verifier.verify(USER_ID, purchased()))

        assert exc_info.value.details["status"] == "503"

    def test_missing_api_key(self):
        with pytest.raises(VerificationFault):
            RevenueCatVerifier(api_key="")

    def test_matches_any_transaction_identifier(self):
        """The store token matches even when RevenueCat's own id differs"""
        info = {
            "subscriber": {
                "non_subscriptions": {
                    "premium_access": [
                        {"id": "rc-1", "store_transaction_id": "GPA.7"},
                        {"id": "rc-2", "transaction_id": "1000000123"},
                    ],
                },
            }
        }

        assert transaction_in_customer_info(info, "premium_access", "GPA.7")
        assert transaction_in_customer_info(info, "premium_access", "rc-1")
        assert transaction_in_customer_info(info, "premium_access", "1000000123")
        assert not transaction_in_customer_info(info, "premium_access", "GPA.8")

    def test_sandbox_purchases_and_missing_token(self):
        info = {"subscriber": {"other_purchases": {"premium_access": {"id": "t-1"}}}}

        assert transaction_in_customer_info(info, "premium_access", "t-1")
        assert transaction_in_customer_info(info, "premium_access", None)
        assert not transaction_in_customer_info({}, "premium_access", None)

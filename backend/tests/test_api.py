"""
HTTP API tests

The FastAPI app runs against the in-memory repositories through
dependency overrides; sessions are plain bearer tokens.
"""

import hashlib
import hmac
import json
import time
from datetime import timedelta

import httpx
import pytest
from fastapi.testclient import TestClient

import api.webhooks
from api import dependencies
from main import app
from middleware.jwt_session import create_access_token
from models.domain.platform import UserTimeout
from models.domain.subscription import CreditPackage
from services.cache import SimpleCache
from services.config_store import ConfigStore
from services.credits_store import StoreRegistry
from services.payments import KIND_CREDITS, StripeGateway
from services.purchase_guard import LocalInFlightGuard
from tests.fakes import (
    FakeContentRepository,
    FakeLedgerRepository,
    FakeModerationRepository,
    FakePurchaseRepository,
    FakeSettingsRepository,
    FakeSubscriptionRepository,
    FakeUserRepository,
    add_item,
    add_user,
)
from utils.datetime_utils import utc_now

WEBHOOK_SECRET = "whsec_api_test"


@pytest.fixture
def client(db):
    settings_repo = FakeSettingsRepository(db)
    config_store = ConfigStore(settings_repo, cache=SimpleCache())
    stores = StoreRegistry()
    guard = LocalInFlightGuard()
    gateway = StripeGateway("sk_test", api_base="https://stripe.test/v1", transport=httpx.MockTransport(
        lambda request: httpx.Response(200, json={"id": "cs_api", "url": "https://checkout.test/cs_api"})
    ))

    app.dependency_overrides = {
        dependencies.get_user_repository: lambda: FakeUserRepository(db),
        dependencies.get_content_repository: lambda: FakeContentRepository(db),
        dependencies.get_ledger_repository: lambda: FakeLedgerRepository(db),
        dependencies.get_purchase_repository: lambda: FakePurchaseRepository(db),
        dependencies.get_subscription_repository: lambda: FakeSubscriptionRepository(db),
        dependencies.get_settings_repository: lambda: settings_repo,
        dependencies.get_moderation_repository: lambda: FakeModerationRepository(db),
        dependencies.get_config_store: lambda: config_store,
        dependencies.get_store_registry: lambda: stores,
        dependencies.get_purchase_guard: lambda: guard,
        dependencies.get_payment_gateway: lambda: gateway,
    }
    yield TestClient(app)
    app.dependency_overrides = {}


def auth_headers(user):
    return {"Authorization": f"Bearer {create_access_token(user)}"}


# =============================================================================
# ACCOUNTS
# =============================================================================

class TestAuthEndpoints:

    def test_signup_then_me(self, client):
        response = client.post("/api/auth/signup", json={
            "email": "fan@funfans.com",
            "password": "secret123",
        })
        assert response.status_code == 201
        body = response.json()
        assert body["user"]["credits_balance"] == 100
        assert "password_hash" not in body["user"]

        me = client.get("/api/auth/me", headers={"Authorization": f"Bearer {body['access_token']}"})
        assert me.status_code == 200
        assert me.json()["email"] == "fan@funfans.com"

    def test_duplicate_signup(self, client):
        payload = {"email": "fan@funfans.com", "password": "secret123"}
        client.post("/api/auth/signup", json=payload)

        assert client.post("/api/auth/signup", json=payload).status_code == 409

    def test_me_requires_session(self, client):
        assert client.get("/api/auth/me").status_code == 401

    def test_status_anonymous(self, client):
        assert client.get("/api/auth/status").json() == {"authenticated": False, "user": None}

    def test_timed_out_user_gets_423(self, client, db):
        user = add_user(db, "fan@funfans.com")
        end = utc_now() + timedelta(hours=3)
        db.timeouts[user.user_id] = UserTimeout(user.user_id, end, "Take a break")

        response = client.get("/api/credits/balance", headers=auth_headers(user))

        assert response.status_code == 423
        assert response.json()["detail"]["message"] == "Take a break"
        assert response.json()["detail"]["end_time"] == end.isoformat()


# =============================================================================
# PURCHASES
# =============================================================================

class TestPurchaseEndpoint:

    def test_purchase(self, client, db, creator):
        buyer = add_user(db, "buyer@funfans.com", balance=500)
        item = add_item(db, creator, price=200)

        response = client.post(f"/api/credits/purchase/{item.id}", headers=auth_headers(buyer))

        assert response.status_code == 200
        body = response.json()
        assert body["new_balance"] == 300
        assert body["transaction"]["amount"] == -200
        assert body["transaction"]["type"] == "purchase"

        unlocks = client.get("/api/credits/unlocks", headers=auth_headers(buyer)).json()
        assert unlocks["content_ids"] == [item.id]

    def test_insufficient_credits(self, client, db, creator):
        buyer = add_user(db, "buyer@funfans.com", balance=100)
        item = add_item(db, creator, price=150)

        response = client.post(f"/api/credits/purchase/{item.id}", headers=auth_headers(buyer))

        assert response.status_code == 400
        assert db.balances[buyer.user_id] == 100

    def test_unknown_item(self, client, db):
        buyer = add_user(db, "buyer@funfans.com", balance=100)

        response = client.post("/api/credits/purchase/ci_zzzzzzzz", headers=auth_headers(buyer))
        assert response.status_code == 404

    def test_already_unlocked(self, client, db, creator):
        buyer = add_user(db, "buyer@funfans.com", balance=500)
        item = add_item(db, creator, price=10)
        client.post(f"/api/credits/purchase/{item.id}", headers=auth_headers(buyer))

        response = client.post(f"/api/credits/purchase/{item.id}", headers=auth_headers(buyer))

        assert response.status_code == 409
        assert db.balances[buyer.user_id] == 490

    def test_external_link_hidden_until_unlocked(self, client, db, creator):
        buyer = add_user(db, "buyer@funfans.com", balance=500)
        item = add_item(db, creator, price=10)
        db.items[item.id].external_link = "https://private.example/full"

        before = client.get(f"/api/content/{item.id}", headers=auth_headers(buyer)).json()
        client.post(f"/api/credits/purchase/{item.id}", headers=auth_headers(buyer))
        after = client.get(f"/api/content/{item.id}", headers=auth_headers(buyer)).json()

        assert before["external_link"] is None
        assert after["external_link"] == "https://private.example/full"


# =============================================================================
# ADMIN
# =============================================================================

class TestAdminEndpoints:

    def test_non_admin_forbidden(self, client, db):
        user = add_user(db, "fan@funfans.com")

        response = client.patch("/api/admin/settings", json={"platform_commission": 0.1},
                                headers=auth_headers(user))
        assert response.status_code == 403

    def test_update_commission(self, client, db, developer):
        response = client.patch("/api/admin/settings", json={"platform_commission": 0.3},
                                headers=auth_headers(developer))

        assert response.status_code == 200
        assert response.json()["platform_commission"] == 0.3
        assert db.dev_settings.platform_commission == 0.3

    def test_invalid_commission(self, client, developer):
        response = client.patch("/api/admin/settings", json={"platform_commission": 2},
                                headers=auth_headers(developer))
        assert response.status_code == 400

    def test_admin_content_listing_pages_hidden_items(self, client, db, developer, creator):
        now = utc_now()
        hidden = add_item(db, creator, price=10, hidden=True, created_at=now - timedelta(days=30))
        add_item(db, creator, price=10, created_at=now)

        first = client.get("/api/admin/content?limit=1", headers=auth_headers(developer)).json()
        second = client.get("/api/admin/content?limit=1&offset=1", headers=auth_headers(developer)).json()

        assert len(first) == 1
        assert [i["id"] for i in second] == [hidden.id]

    def test_set_timeout(self, client, db, developer):
        user = add_user(db, "fan@funfans.com")

        response = client.put(f"/api/admin/users/{user.user_id}/timeout",
                              json={"duration_hours": 2, "message": "Slow down"},
                              headers=auth_headers(developer))

        assert response.status_code == 200
        assert db.timeouts[user.user_id].message == "Slow down"
        assert client.get("/api/auth/me", headers=auth_headers(user)).status_code == 423


# =============================================================================
# WEBHOOKS
# =============================================================================

class TestStripeWebhook:

    def _signed(self, event):
        payload = json.dumps(event).encode()
        timestamp = int(time.time())
        digest = hmac.new(WEBHOOK_SECRET.encode(), f"{timestamp}.".encode() + payload,
                          hashlib.sha256).hexdigest()
        return payload, f"t={timestamp},v1={digest}"

    def test_credits_once_per_event(self, client, db, monkeypatch):
        monkeypatch.setattr(api.webhooks.settings, "stripe_webhook_secret", WEBHOOK_SECRET)
        db.packages["pkg_100"] = CreditPackage(id="pkg_100", credits=100, price=0.99)
        user = add_user(db, "fan@funfans.com")
        payload, header = self._signed({
            "id": "evt_api_1",
            "type": "checkout.session.completed",
            "data": {"object": {"payment_status": "paid",
                                "metadata": {"user_id": user.user_id, "kind": KIND_CREDITS,
                                             "item_id": "pkg_100"}}},
        })

        first = client.post("/api/webhooks/stripe", content=payload, headers={"Stripe-Signature": header})
        second = client.post("/api/webhooks/stripe", content=payload, headers={"Stripe-Signature": header})

        assert first.json()["status"] == "fulfilled"
        assert second.json()["status"] == "duplicate"
        assert db.balances[user.user_id] == 100

    def test_bad_signature_rejected(self, client, db, monkeypatch):
        monkeypatch.setattr(api.webhooks.settings, "stripe_webhook_secret", WEBHOOK_SECRET)
        user = add_user(db, "fan@funfans.com")
        payload, _ = self._signed({"id": "evt_x", "type": "checkout.session.completed"})

        response = client.post("/api/webhooks/stripe", content=payload,
                               headers={"Stripe-Signature": "t=1,v1=bad"})

        assert response.status_code == 400
        assert db.balances[user.user_id] == 0

    def test_unknown_user_acknowledged(self, client, db, monkeypatch):
        monkeypatch.setattr(api.webhooks.settings, "stripe_webhook_secret", WEBHOOK_SECRET)
        db.packages["pkg_100"] = CreditPackage(id="pkg_100", credits=100, price=0.99)
        payload, header = self._signed({
            "id": "evt_api_2",
            "type": "checkout.session.completed",
            "data": {"object": {"payment_status": "paid",
                                "metadata": {"user_id": "00000000-0000-0000-0000-000000000000",
                                             "kind": KIND_CREDITS, "item_id": "pkg_100"}}},
        })

        response = client.post("/api/webhooks/stripe", content=payload, headers={"Stripe-Signature": header})

        assert response.status_code == 200
        assert response.json()["status"] == "ignored"

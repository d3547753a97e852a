import os

# Avant tout import de l'app: pas de Redis pendant les tests
os.environ.setdefault("DISABLE_FASTAPI_LIMITER_INIT_FOR_TESTS", "1")

import itertools
from decimal import Decimal, ROUND_HALF_EVEN
from typing import Any, Dict, Generator, List, Optional
from unittest.mock import MagicMock

import pytest
from fastapi.testclient import TestClient

from backend.app import app as fastapi_app
from backend.config import CheckoutSettings
from backend.payments.errors import ConflictError, GatewayUnavailableError
from backend.utils.security import require_user

# Marquage automatique selon le dossier
def pytest_collection_modifyitems(config, items):
    for item in items:
        nodeid = item.nodeid.replace("\\", "/")
        if "/tests/unit/" in nodeid or nodeid.startswith("tests/unit/"):
            item.add_marker(pytest.mark.unit)
        elif "/tests/integration/" in nodeid or nodeid.startswith("tests/integration/"):
            item.add_marker(pytest.mark.integration)


class FakeGateway:
    """Double déterministe de backend.payments.stripe_client (mêmes signatures)."""

    def __init__(self):
        self._ids = itertools.count(1)
        self.sessions: Dict[str, Dict[str, Any]] = {}
        self.discounts: Dict[str, int] = {}
        self.create_session_calls: List[Dict[str, Any]] = []
        self.fail_discount = False
        self.fail_session = False

    def create_one_time_discount(self, percent_off: int) -> str:
        if self.fail_discount:
            raise GatewayUnavailableError("Stripe down")
        ref = f"coupon_test_{next(self._ids)}"
        self.discounts[ref] = percent_off
        return ref

    def create_session(self, *, line_items, metadata, success_url, cancel_url, discounts=None, mode="payment"):
        self.create_session_calls.append({
            "line_items": line_items, "metadata": metadata, "discounts": discounts or [],
            "success_url": success_url, "cancel_url": cancel_url,
        })
        if self.fail_session:
            raise GatewayUnavailableError("Stripe down")
        subtotal = sum(li["price_data"]["unit_amount"] * li["quantity"] for li in line_items)
        pct = sum(self.discounts.get(d["coupon"], 0) for d in (discounts or []))
        off = (Decimal(subtotal) * pct / 100).quantize(Decimal("1"), rounding=ROUND_HALF_EVEN)
        session_id = f"cs_test_{next(self._ids)}"
        session = {
            "id": session_id,
            "url": f"https://checkout.stripe.test/{session_id}",
            "amount_total": int(subtotal - off),
            "currency": "usd",
            "payment_status": "unpaid",
            "metadata": dict(metadata),
        }
        self.sessions[session_id] = session
        return dict(session)

    def get_session(self, session_id: str) -> Dict[str, Any]:
        if session_id not in self.sessions:
            raise GatewayUnavailableError(f"Session Stripe introuvable: {session_id}")
        return dict(self.sessions[session_id])

    def mark_paid(self, session_id: str) -> None:
        self.sessions[session_id]["payment_status"] = "paid"


class FakeStore:
    """Tables coupons/commandes en mémoire, avec les mêmes contraintes d'unicité."""

    def __init__(self):
        self.coupons: Dict[str, Any] = {}  # user_id -> Coupon (UNIQUE user_id)
        self.orders: Dict[str, Any] = {}   # stripe_session_id -> Order (UNIQUE)
        self._order_ids = itertools.count(1)
        self.fail_coupon_insert = False
        self.deactivate_calls: List[tuple] = []

    # coupons
    def find_active_coupon(self, code, user_id):
        c = self.coupons.get(user_id)
        return c if c is not None and c.code == code and c.is_active else None

    def find_coupon_for_user(self, user_id):
        c = self.coupons.get(user_id)
        return c if c is not None and c.is_active else None

    def deactivate_coupon(self, code, user_id):
        from dataclasses import replace
        self.deactivate_calls.append((code, user_id))
        c = self.coupons.get(user_id)
        if c is not None and c.code == code:
            self.coupons[user_id] = replace(c, is_active=False)

    def delete_coupons_for_user(self, user_id):
        self.coupons.pop(user_id, None)

    def insert_coupon(self, coupon):
        if self.fail_coupon_insert:
            raise RuntimeError("insert failed")
        self.coupons[coupon.user_id] = coupon
        return coupon

    def active_coupons(self, user_id) -> list:
        c = self.coupons.get(user_id)
        return [c] if c is not None and c.is_active else []

    # commandes
    def insert_order(self, order):
        from dataclasses import replace
        if order.stripe_session_id in self.orders:
            raise ConflictError(order.stripe_session_id)
        saved = replace(order, id=f"order-{next(self._order_ids)}")
        self.orders[order.stripe_session_id] = saved
        return saved

    def find_order_by_session(self, session_id):
        return self.orders.get(session_id)

    def list_user_orders(self, user_id, limit=50):
        return [o for o in self.orders.values() if o.user_id == user_id][:limit]


@pytest.fixture
def settings() -> CheckoutSettings:
    return CheckoutSettings()


@pytest.fixture
def gateway(monkeypatch) -> FakeGateway:
    """FakeGateway branché aussi à la place du client Stripe réel (chemin des vues)."""
    fake = FakeGateway()
    monkeypatch.setattr("backend.payments.stripe_client.create_session", fake.create_session)
    monkeypatch.setattr("backend.payments.stripe_client.get_session", fake.get_session)
    monkeypatch.setattr("backend.payments.stripe_client.create_one_time_discount", fake.create_one_time_discount)
    return fake


@pytest.fixture
def store(monkeypatch) -> FakeStore:
    fake = FakeStore()
    for name in ("find_active_coupon", "find_coupon_for_user", "deactivate_coupon",
                 "delete_coupons_for_user", "insert_coupon"):
        monkeypatch.setattr(f"backend.coupons.repository.{name}", getattr(fake, name))
    for name in ("insert_order", "find_order_by_session", "list_user_orders"):
        monkeypatch.setattr(f"backend.commandes.repository.{name}", getattr(fake, name))
    return fake


@pytest.fixture(autouse=True)
def _no_real_supabase(monkeypatch):
    # Aucun test ne doit joindre Supabase
    monkeypatch.setattr("backend.infra.supabase_client.get_supabase", lambda: MagicMock())
    monkeypatch.setattr("backend.infra.supabase_client.get_service_supabase", lambda: MagicMock())


@pytest.fixture(scope="session")
def app():
    return fastapi_app


@pytest.fixture()
def client(app) -> Generator[TestClient, None, None]:
    with TestClient(app) as c:
        yield c


# Simuler un utilisateur authentifié pour les endpoints protégés
@pytest.fixture(autouse=True)
def _override_require_user(app):
    fake_user: Dict[str, Any] = {"id": "test-user", "email": "test@example.com", "token": "fake-token"}
    app.dependency_overrides[require_user] = lambda: fake_user
    try:
        yield
    finally:
        app.dependency_overrides.pop(require_user, None)


def make_item(item_id: str = "p1", price: Any = 1000, quantity: Optional[int] = 1, **extra) -> Dict[str, Any]:
    item = {"id": item_id, "name": f"Produit {item_id}", "image": f"https://img.test/{item_id}.png", "price": price}
    if quantity is not None:
        item["quantity"] = quantity
    item.update(extra)
    return item


@pytest.fixture
def item_factory():
    return make_item

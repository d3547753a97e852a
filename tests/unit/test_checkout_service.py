import json
import logging
import random
from datetime import datetime, timedelta, timezone
from decimal import Decimal

import pytest

from backend.coupons.models import Coupon
from backend.payments.errors import GatewayUnavailableError, InvalidCartError
from backend.payments.service import create_checkout

from conftest import make_item

NOW = datetime(2024, 5, 1, 12, 0, tzinfo=timezone.utc)
USER = "user-1"


def _give_coupon(store, code="GIFTTEST01", pct=10, days=30, user_id=USER):
    coupon = Coupon(code=code, user_id=user_id, discount_percentage=pct,
                    expiration_date=NOW + timedelta(days=days))
    store.coupons[user_id] = coupon
    return coupon


def _checkout(gateway, settings, items, coupon_code=None, **kw):
    return create_checkout(USER, items, coupon_code, settings=settings, gateway=gateway,
                           rng=random.Random(7), now=NOW, **kw)


def test_checkout_without_coupon_charges_full_converted_total(gateway, store, settings):
    res = _checkout(gateway, settings, [make_item("p1", 1000, 2)])

    call = gateway.create_session_calls[0]
    assert call["discounts"] == []
    assert call["line_items"][0]["price_data"]["unit_amount"] == 1200
    assert call["success_url"] == settings.success_url
    assert call["cancel_url"] == settings.cancel_url
    assert res.session_id.startswith("cs_test_")
    assert res.url
    assert res.displayed_total == Decimal("24.00")
    assert res.discount_percentage == 0
    assert res.reward_coupon is None
    assert gateway.discounts == {}


def test_checkout_with_valid_coupon_applies_one_time_discount(gateway, store, settings):
    _give_coupon(store)
    res = _checkout(gateway, settings, [make_item("p1", 1000, 2)], "GIFTTEST01")

    call = gateway.create_session_calls[0]
    assert len(call["discounts"]) == 1
    ref = call["discounts"][0]["coupon"]
    assert gateway.discounts[ref] == 10
    assert call["metadata"]["coupon_code"] == "GIFTTEST01"
    assert res.discount_percentage == 10
    # 2400 cents - 10%
    assert res.displayed_total == Decimal("21.60")
    # 2000 - 10% = 1800 < seuil
    assert res.reward_coupon is None
    # le coupon reste actif jusqu'au paiement
    assert store.active_coupons(USER)[0].code == "GIFTTEST01"


def test_checkout_metadata_carries_cart_snapshot(gateway, store, settings):
    _checkout(gateway, settings, [make_item("a", "10.50", 3), make_item("b", 4, 1)])
    md = gateway.create_session_calls[0]["metadata"]
    assert md["user_id"] == USER
    assert md["coupon_code"] == ""
    cart = json.loads("".join(md[f"cart_{i}"] for i in range(int(md["cart_chunks"]))))
    assert cart == [
        {"id": "a", "quantity": 3, "price": "10.50"},
        {"id": "b", "quantity": 1, "price": "4"},
    ]


@pytest.mark.parametrize("case", ["unknown", "expired", "other_user"])
def test_checkout_with_unusable_coupon_falls_back_to_full_price(gateway, store, settings, case):
    if case == "expired":
        _give_coupon(store, days=-1)
    elif case == "other_user":
        _give_coupon(store, user_id="someone-else")
    res = _checkout(gateway, settings, [make_item("p1", 1000, 2)], "GIFTTEST01")

    assert gateway.create_session_calls[0]["discounts"] == []
    assert gateway.create_session_calls[0]["metadata"]["coupon_code"] == ""
    assert res.displayed_total == Decimal("24.00")
    assert res.discount_percentage == 0


def test_large_cart_issues_reward_coupon(gateway, store, settings):
    res = _checkout(gateway, settings, [make_item("tv", 25000, 1)])

    assert res.displayed_total == Decimal("300.00")
    assert res.reward_coupon is not None
    assert res.reward_coupon.code.startswith("GIFT")
    assert res.reward_coupon.discount_percentage == 10
    assert res.reward_coupon.expiration_date == NOW + timedelta(days=30)
    assert store.active_coupons(USER) == [res.reward_coupon]


def test_reward_threshold_is_inclusive(gateway, store, settings):
    res = _checkout(gateway, settings, [make_item("p1", 10000, 2)])
    assert res.reward_coupon is not None


def test_reward_threshold_uses_discounted_total(gateway, store, settings):
    _give_coupon(store)
    # 21000 - 10% = 18900
    res = _checkout(gateway, settings, [make_item("p1", 21000, 1)], "GIFTTEST01")
    assert res.reward_coupon is None
    assert store.active_coupons(USER)[0].code == "GIFTTEST01"


def test_reward_failure_does_not_fail_checkout(gateway, store, settings, caplog):
    store.fail_coupon_insert = True
    with caplog.at_level(logging.ERROR, logger="backend.payments.service"):
        res = _checkout(gateway, settings, [make_item("tv", 25000, 1)])

    assert res.session_id in gateway.sessions
    assert res.reward_coupon is None
    assert any("reward issuance failed" in r.getMessage() for r in caplog.records)


def test_discount_failure_aborts_before_session(gateway, store, settings):
    _give_coupon(store)
    gateway.fail_discount = True
    with pytest.raises(GatewayUnavailableError):
        _checkout(gateway, settings, [make_item("p1", 1000, 2)], "GIFTTEST01")
    assert gateway.create_session_calls == []
    assert store.active_coupons(USER)[0].is_active


def test_session_failure_creates_no_reward(gateway, store, settings):
    gateway.fail_session = True
    with pytest.raises(GatewayUnavailableError):
        _checkout(gateway, settings, [make_item("tv", 25000, 1)])
    assert store.coupons == {}


@pytest.mark.parametrize("items", [[], [make_item(quantity=0)], [make_item(price=-10)]])
def test_invalid_cart_touches_nothing(gateway, store, settings, items):
    _give_coupon(store)
    with pytest.raises(InvalidCartError):
        _checkout(gateway, settings, items, "GIFTTEST01")
    assert gateway.create_session_calls == []
    assert gateway.discounts == {}


def test_displayed_total_falls_back_to_local_computation(monkeypatch, store, settings):
    class NoTotalGateway:
        def create_one_time_discount(self, percent_off):
            return "coupon_x"

        def create_session(self, **kwargs):
            return {"id": "cs_x", "url": "https://checkout.test/cs_x"}

    _give_coupon(store)
    res = create_checkout(USER, [make_item("p1", 1000, 2)], "GIFTTEST01", settings=settings,
                          gateway=NoTotalGateway(), now=NOW)
    assert res.displayed_total == Decimal("21.60")


def test_oversized_cart_with_coupon_creates_no_discount(gateway, store, settings):
    _give_coupon(store)
    items = [make_item(f"produit-{i:04d}-" + "x" * 40, 1, 1) for i in range(1000)]

    with pytest.raises(InvalidCartError) as exc:
        _checkout(gateway, settings, items, "GIFTTEST01")

    assert exc.value.code == "cart_too_large"
    assert gateway.discounts == {}
    assert gateway.create_session_calls == []
    assert store.active_coupons(USER)[0].is_active

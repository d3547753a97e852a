import pytest

from backend.payments.discounts import create_gateway_discount
from backend.payments.errors import GatewayUnavailableError


def test_creates_one_time_discount(gateway):
    ref = create_gateway_discount(10, gateway=gateway)
    assert gateway.discounts[ref] == 10


def test_default_gateway_is_stripe_client(gateway):
    # la fixture remplace les fonctions du module stripe_client
    ref = create_gateway_discount(25)
    assert gateway.discounts[ref] == 25


@pytest.mark.parametrize("pct", [0, -5, 101, True, 10.5, "10", None])
def test_rejects_invalid_percentage(gateway, pct):
    with pytest.raises(ValueError):
        create_gateway_discount(pct, gateway=gateway)
    assert gateway.discounts == {}


def test_gateway_failure_propagates(gateway):
    gateway.fail_discount = True
    with pytest.raises(GatewayUnavailableError):
        create_gateway_discount(10, gateway=gateway)

"""
Pont entre un coupon local et une remise Stripe à usage unique.
Le coupon Stripe n'est jamais stocké en base: il ne vit que le temps du paiement.
"""
import logging

from . import stripe_client

logger = logging.getLogger(__name__)


def create_gateway_discount(percentage: int, gateway=stripe_client) -> str:
    """
    Crée la remise Stripe correspondant au pourcentage du coupon local.
    - percentage doit être compris entre 1 et 100 (ValueError sinon)
    - GatewayUnavailableError remonte telle quelle: le checkout doit s'arrêter
    """
    if isinstance(percentage, bool) or not isinstance(percentage, int) or not 1 <= percentage <= 100:
        raise ValueError(f"Pourcentage de remise invalide: {percentage!r}")
    discount_ref = gateway.create_one_time_discount(percentage)
    logger.info("payments.discounts created percent_off=%s ref=%s", percentage, discount_ref)
    return discount_ref

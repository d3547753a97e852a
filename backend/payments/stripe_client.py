"""
Adaptateur Stripe: centralise les appels et la configuration Stripe.
Toute erreur du SDK (réseau, authentification, requête refusée) est traduite
en GatewayUnavailableError pour que le service n'ait pas à connaître Stripe.
"""
import json
import logging
from typing import Any, Dict, List, Optional

import stripe
from fastapi import Request

from backend.config import STRIPE_SECRET_KEY, STRIPE_WEBHOOK_SECRET
from .errors import GatewayUnavailableError

logger = logging.getLogger(__name__)


# module backend.payments.stripe_client
def require_stripe():
    """
    Prépare et retourne le module stripe prêt à l'emploi.
    - Lève GatewayUnavailableError si STRIPE_SECRET_KEY est absent.
    """
    if not STRIPE_SECRET_KEY:
        raise GatewayUnavailableError("STRIPE_SECRET_KEY manquant", "gateway_not_configured")
    stripe.api_key = STRIPE_SECRET_KEY
    return stripe


def _to_dict(obj: Any) -> Dict[str, Any]:
    if isinstance(obj, dict):
        return obj
    to_dict = getattr(obj, "to_dict_recursive", None) or getattr(obj, "to_dict", None)
    return to_dict() if to_dict else dict(obj)


def create_session(
    *,
    line_items: List[Dict[str, Any]],
    metadata: Dict[str, str],
    success_url: str,
    cancel_url: str,
    discounts: Optional[List[Dict[str, str]]] = None,
    mode: str = "payment",
) -> Dict[str, Any]:
    """
    Crée une session Stripe Checkout.
    Retour: dict session (ex: {"id": "cs_test_...", "url": "https://...", "amount_total": 1200})
    """
    require_stripe()
    try:
        session = stripe.checkout.Session.create(
            payment_method_types=["card"],
            line_items=line_items,
            mode=mode,
            success_url=success_url,
            cancel_url=cancel_url,
            discounts=discounts or [],
            metadata=metadata,
        )
    except stripe.StripeError as e:
        logger.exception("stripe_client.create_session failed")
        raise GatewayUnavailableError(f"Création de session Stripe impossible: {e}")
    return _to_dict(session)


def get_session(session_id: str) -> Dict[str, Any]:
    """
    Récupère une session Stripe Checkout par son identifiant.
    Retour: dict session incluant "id", "payment_status", "amount_total", "metadata".
    """
    require_stripe()
    try:
        session = stripe.checkout.Session.retrieve(session_id)
    except stripe.StripeError as e:
        logger.exception("stripe_client.get_session failed session_id=%s", session_id)
        raise GatewayUnavailableError(f"Session Stripe introuvable: {e}")
    return _to_dict(session)


def create_one_time_discount(percent_off: int) -> str:
    """Crée un coupon Stripe à usage unique (duration="once") et retourne son id."""
    require_stripe()
    try:
        coupon = stripe.Coupon.create(percent_off=percent_off, duration="once")
    except stripe.StripeError as e:
        logger.exception("stripe_client.create_one_time_discount failed percent_off=%s", percent_off)
        raise GatewayUnavailableError(f"Création du coupon Stripe impossible: {e}")
    return coupon["id"]


async def parse_event(request: Request) -> Dict[str, Any]:
    """
    Parse et valide un événement Stripe signé (webhook).
    - Valide la signature via Webhook.construct_event (STRIPE_WEBHOOK_SECRET)
    - Sans secret configuré (dev uniquement), lit le JSON brut sans vérification
    """
    payload = await request.body()
    if not STRIPE_WEBHOOK_SECRET:
        logger.warning("STRIPE_WEBHOOK_SECRET absent: webhook non vérifié (dev uniquement)")
        return json.loads(payload.decode("utf-8"))
    sig_header = request.headers.get("stripe-signature") or ""
    event = stripe.Webhook.construct_event(payload, sig_header, STRIPE_WEBHOOK_SECRET)
    return _to_dict(event)

"""
Cas d'usage 'payments': orchestre panier, coupons, Stripe et commandes.

Cycle d'une tentative de paiement:
  Created -> AwaitingPayment -> Paid -> Reconciled
  Created -> AwaitingPayment -> Abandoned (aucune commande)
Reconciled est atteint au plus une fois par session Stripe (clé naturelle).
"""
import logging
from dataclasses import dataclass
from datetime import datetime
from decimal import Decimal, ROUND_HALF_EVEN
from typing import Any, Dict, List, Optional

from backend.config import CheckoutSettings, load_checkout_settings
from backend.coupons import repository as coupons_repository
from backend.coupons import service as coupons_service
from backend.coupons.models import Coupon
from backend.commandes import repository as commandes_repository
from backend.commandes.models import Order, OrderLine

from . import cart as cart_logic
from . import stripe_client
from .discounts import create_gateway_discount
from .errors import MalformedMetadataError, SessionNotPaidError, SessionOwnershipError
from .metadata import CheckoutMetadata

logger = logging.getLogger(__name__)

PAID = "paid"
_CENTS = Decimal("0.01")


@dataclass(frozen=True)
class CheckoutResult:
    session_id: str
    url: Optional[str]
    displayed_total: Decimal
    discount_percentage: int = 0
    reward_coupon: Optional[Coupon] = None


@dataclass(frozen=True)
class ReconcileResult:
    order: Order
    created: bool


def _displayed_total(session: Dict[str, Any], local_settlement_total: int) -> Decimal:
    # amount_total Stripe fait foi (remise appliquée par Stripe); sinon calcul local
    amount_total = session.get("amount_total")
    cents = int(amount_total) if amount_total is not None else local_settlement_total
    return (Decimal(cents) / 100).quantize(_CENTS, rounding=ROUND_HALF_EVEN)


def create_checkout(
    user_id: str,
    items: List[Dict[str, Any]],
    coupon_code: Optional[str] = None,
    *,
    settings: Optional[CheckoutSettings] = None,
    gateway=stripe_client,
    rng=None,
    now: Optional[datetime] = None,
) -> CheckoutResult:
    """
    Prépare la session Stripe à partir d'un user_id, d'un panier et d'un code coupon optionnel.
    Étapes:
      1) Valider et chiffrer le panier (InvalidCartError sinon)
      2) Résoudre le coupon (absent/expiré/consommé => plein tarif)
      3) Créer la remise Stripe à usage unique si un coupon est valide
      4) Créer la session avec line_items, remise et métadonnées de réconciliation
      5) Émettre un coupon récompense si le total net (devise source) atteint le seuil
    Aucune écriture locale n'a lieu avant la création de la session: un échec
    aux étapes 1-4 peut être rejoué sans risque.
    """
    settings = settings or load_checkout_settings()
    priced = cart_logic.price_cart(items, settings)

    coupon = coupons_service.find_valid_coupon(coupon_code, user_id, now=now)
    # cart_too_large doit tomber avant toute remise Stripe
    stripe_metadata = CheckoutMetadata.from_cart(user_id, priced.items, coupon.code if coupon else "").to_stripe()

    discounts: List[Dict[str, str]] = []
    percentage = 0
    if coupon is not None:
        percentage = coupon.discount_percentage
        discounts.append({"coupon": create_gateway_discount(percentage, gateway=gateway)})

    session = gateway.create_session(
        line_items=priced.line_items,
        metadata=stripe_metadata,
        success_url=settings.success_url,
        cancel_url=settings.cancel_url,
        discounts=discounts,
    )
    session_id = session.get("id")
    logger.info(
        "payments.create_checkout session_id=%s user_id=%s items=%s coupon=%s",
        session_id, user_id, len(priced.items), coupon.code if coupon else "",
    )

    net_source_total = cart_logic.apply_discount(priced.source_total, percentage)
    net_settlement_total = int(cart_logic.apply_discount(Decimal(priced.settlement_total), percentage))

    reward: Optional[Coupon] = None
    if net_source_total >= settings.reward_threshold:
        try:
            reward = coupons_service.issue_reward_coupon(user_id, settings=settings, rng=rng, now=now)
        except Exception:
            # Avantage annexe: la session est créée, le client doit pouvoir payer
            logger.exception("payments.create_checkout reward issuance failed user_id=%s", user_id)

    return CheckoutResult(
        session_id=session_id,
        url=session.get("url"),
        displayed_total=_displayed_total(session, net_settlement_total),
        discount_percentage=percentage,
        reward_coupon=reward,
    )


def _order_from_metadata(session_id: str, session: Dict[str, Any], meta: CheckoutMetadata, settings: CheckoutSettings) -> Order:
    amount_total = session.get("amount_total")
    if amount_total is None:
        raise MalformedMetadataError(f"amount_total absent pour la session {session_id}")
    return Order(
        user_id=meta.user_id,
        products=[OrderLine(product=i.id, quantity=i.quantity, price=i.price) for i in meta.items],
        total_amount=int(amount_total),
        currency=str(session.get("currency") or settings.settlement_currency),
        stripe_session_id=session_id,
    )


def reconcile_session(
    session_id: str,
    *,
    gateway=stripe_client,
    expected_user_id: Optional[str] = None,
    settings: Optional[CheckoutSettings] = None,
) -> ReconcileResult:
    """
    Transforme un paiement Stripe confirmé en commande durable.
    - SessionNotPaidError si payment_status != 'paid' (aucune écriture)
    - Session déjà réconciliée: renvoie la commande existante (created=False)
    - MalformedMetadataError si le panier sérialisé est illisible
    - Désactive le coupon consommé (idempotent) puis insère la commande une seule fois
    Rejouable en entier: la désactivation est idempotente et l'insertion est
    protégée par l'unicité de stripe_session_id.
    """
    settings = settings or load_checkout_settings()
    session = gateway.get_session(session_id)

    payment_status = session.get("payment_status") or ""
    if payment_status != PAID:
        raise SessionNotPaidError(payment_status)

    existing = commandes_repository.find_order_by_session(session_id)
    if existing is not None:
        if expected_user_id and existing.user_id != expected_user_id:
            raise SessionOwnershipError()
        logger.info("payments.reconcile_session already_reconciled session_id=%s", session_id)
        return ReconcileResult(order=existing, created=False)

    try:
        meta = CheckoutMetadata.from_stripe(session.get("metadata"))
        order = _order_from_metadata(session_id, session, meta, settings)
    except MalformedMetadataError as e:
        logger.error("payments.reconcile_session malformed metadata session_id=%s: %s", session_id, e.message)
        raise

    if expected_user_id and meta.user_id != expected_user_id:
        raise SessionOwnershipError()

    if meta.coupon_code:
        coupons_repository.deactivate_coupon(meta.coupon_code, meta.user_id)

    order, created = commandes_repository.insert_order_if_absent(session_id, order)
    logger.info(
        "payments.reconcile_session session_id=%s order_id=%s created=%s", session_id, order.id, created,
    )
    return ReconcileResult(order=order, created=created)

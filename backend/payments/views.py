import logging
from typing import Any, Dict

from fastapi import APIRouter, Request, Depends, HTTPException
from fastapi.responses import JSONResponse

from backend.utils.security import require_user
from backend.utils.rate_limit import optional_rate_limit
from backend.payments import stripe_client
from backend.payments import service as payments_service
from backend.payments.errors import SessionNotPaidError

logger = logging.getLogger(__name__)
router = APIRouter(prefix="/api/v1/payments", tags=["Payments API"])

COMPLETED_EVENTS = {"checkout.session.completed", "checkout.session.async_payment_succeeded"}

async def _json_body(request: Request) -> Dict[str, Any]:
    try:
        body = await request.json()
    except Exception:
        raise HTTPException(status_code=400, detail="Corps JSON invalide")
    if not isinstance(body, dict):
        raise HTTPException(status_code=400, detail="Corps JSON invalide")
    return body

# module backend.payments.views
@router.post("/checkout", dependencies=[Depends(optional_rate_limit(times=10, seconds=60))])
async def create_checkout_session(request: Request, user: dict = Depends(require_user)):
    """
    Crée une session Checkout Stripe pour le panier de l'utilisateur authentifié.
    - Entrée JSON: { "items": [ {id, name, image, price, quantity}, ... ], "couponCode": "GIFT..." }
    - Réponse: { "sessionId", "url", "displayedTotal" }
    - Erreurs: 400 panier invalide, 502 Stripe indisponible (voir app_setup.exceptions)
    """
    body = await _json_body(request)
    result = payments_service.create_checkout(
        user_id=user["id"],
        items=body.get("items"),
        coupon_code=body.get("couponCode") or body.get("coupon_code"),
    )
    return JSONResponse({
        "sessionId": result.session_id,
        "url": result.url,
        "displayedTotal": float(result.displayed_total),
    })

@router.post("/confirm")
async def confirm_checkout(request: Request, user: dict = Depends(require_user)):
    """
    Alternative au webhook: confirme la session Stripe et enregistre la commande.
    - Accepte session_id en query ou JSON body {"sessionId": "..."}.
    - 200 {"orderId", "status": "created" | "already_reconciled"}
    - 422 si la session n'est pas payée, 403 si elle appartient à un autre utilisateur
    """
    session_id = request.query_params.get("session_id")
    if not session_id:
        body = await _json_body(request)
        session_id = body.get("sessionId") or body.get("session_id")
    if not session_id:
        raise HTTPException(status_code=400, detail="session_id manquant")

    result = payments_service.reconcile_session(str(session_id), expected_user_id=user["id"])
    return {
        "orderId": result.order.id,
        "status": "created" if result.created else "already_reconciled",
    }

@router.post("/webhook", include_in_schema=False)
async def webhook_stripe(request: Request):
    """
    Webhook Stripe: réconcilie la session sur checkout.session.completed
    (et async_payment_succeeded pour les moyens de paiement différés).
    - Session non payée: {"status": "ignored"} (le paiement différé rappellera)
    - Métadonnées corrompues: 500 pour que Stripe rejoue et que l'incident soit visible
    """
    try:
        event = await stripe_client.parse_event(request)
    except Exception:
        logger.exception("Erreur webhook_stripe: payload/signature invalide")
        raise HTTPException(status_code=400, detail="Invalid Stripe webhook payload")

    if (event or {}).get("type") not in COMPLETED_EVENTS:
        return {"status": "ignored"}

    session_obj = ((event.get("data") or {}).get("object") or {})
    session_id = session_obj.get("id")
    if not session_id:
        raise HTTPException(status_code=400, detail="Invalid Stripe webhook payload")
    try:
        result = payments_service.reconcile_session(session_id)
    except SessionNotPaidError as e:
        logger.info("payments.webhook ignored session_id=%s payment_status=%s", session_id, e.payment_status)
        return {"status": "ignored"}
    logger.info("payments.webhook session_id=%s order_id=%s created=%s", session_id, result.order.id, result.created)
    return {"status": "ok", "orderId": result.order.id, "created": result.created}

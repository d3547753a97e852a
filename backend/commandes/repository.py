"""
Accès aux données pour la feature 'commandes'.

Schéma attendu: commandes(id uuid default gen_random_uuid(), user_id uuid,
products jsonb, total_amount int, currency text,
stripe_session_id text UNIQUE, created_at timestamptz default now()).
L'unicité de stripe_session_id transforme deux confirmations concurrentes
d'une même session en conflit détectable (code Postgres 23505).
"""
from typing import List, Optional, Tuple
import logging

from postgrest.exceptions import APIError

import backend.infra.supabase_client as supabase_client
from backend.payments.errors import ConflictError
from .models import Order

logger = logging.getLogger(__name__)

TABLE = "commandes"
UNIQUE_VIOLATION = "23505"


def find_order_by_session(session_id: str) -> Optional[Order]:
    try:
        res = (
            supabase_client.get_service_supabase()
            .table(TABLE)
            .select("*")
            .eq("stripe_session_id", session_id)
            .limit(1)
            .execute()
        )
    except Exception:
        logger.exception("commandes.repository.find_order_by_session failed session_id=%s", session_id)
        raise
    rows = res.data or []
    return Order.from_row(rows[0]) if rows else None


def insert_order(order: Order) -> Order:
    """Insertion atomique d'une commande; ConflictError si la session est déjà enregistrée."""
    try:
        res = (
            supabase_client.get_service_supabase()
            .table(TABLE)
            .insert(order.to_row())
            .execute()
        )
    except APIError as e:
        if getattr(e, "code", None) == UNIQUE_VIOLATION:
            raise ConflictError(order.stripe_session_id)
        logger.exception("commandes.repository.insert_order failed session_id=%s", order.stripe_session_id)
        raise
    rows = res.data or []
    return Order.from_row(rows[0]) if rows else order


def insert_order_if_absent(session_id: str, order: Order) -> Tuple[Order, bool]:
    """
    Insère la commande sauf si la session en possède déjà une.
    Retourne (commande, created): created=False si une commande existait (course gagnée ailleurs).
    """
    try:
        return insert_order(order), True
    except ConflictError:
        existing = find_order_by_session(session_id)
        if existing is None:
            # Conflit sans ligne lisible: incohérence à remonter
            raise
        logger.info("commandes.repository.insert_order_if_absent already_reconciled session_id=%s", session_id)
        return existing, False


def list_user_orders(user_id: str, limit: int = 50) -> List[Order]:
    try:
        res = (
            supabase_client.get_service_supabase()
            .table(TABLE)
            .select("*")
            .eq("user_id", user_id)
            .order("created_at", desc=True)
            .limit(limit)
            .execute()
        )
    except Exception:
        logger.exception("commandes.repository.list_user_orders failed user_id=%s", user_id)
        raise
    return [Order.from_row(row) for row in (res.data or [])]

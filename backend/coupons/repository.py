"""
Accès aux données pour la feature 'coupons'.

Schéma attendu (Postgres/Supabase):
  coupons(code text, user_id uuid UNIQUE, discount_percentage int,
          is_active bool default true, expiration_date timestamptz)
La contrainte UNIQUE sur user_id garantit au plus un coupon (donc au plus un
coupon actif) par utilisateur.
"""
import logging
from typing import Optional

import backend.infra.supabase_client as supabase_client
from .models import Coupon

logger = logging.getLogger(__name__)

TABLE = "coupons"


# module backend.coupons.repository
def find_active_coupon(code: str, user_id: str) -> Optional[Coupon]:
    """Coupon actif (code, user_id) ou None."""
    try:
        res = (
            supabase_client.get_service_supabase()
            .table(TABLE)
            .select("*")
            .eq("code", code)
            .eq("user_id", user_id)
            .eq("is_active", True)
            .limit(1)
            .execute()
        )
    except Exception:
        logger.exception("coupons.repository.find_active_coupon failed user_id=%s", user_id)
        raise
    rows = res.data or []
    return Coupon.from_row(rows[0]) if rows else None


def find_coupon_for_user(user_id: str) -> Optional[Coupon]:
    """Coupon actif de l'utilisateur, quel que soit son code."""
    try:
        res = (
            supabase_client.get_service_supabase()
            .table(TABLE)
            .select("*")
            .eq("user_id", user_id)
            .eq("is_active", True)
            .limit(1)
            .execute()
        )
    except Exception:
        logger.exception("coupons.repository.find_coupon_for_user failed user_id=%s", user_id)
        raise
    rows = res.data or []
    return Coupon.from_row(rows[0]) if rows else None


def deactivate_coupon(code: str, user_id: str) -> None:
    """Passe le coupon à is_active=false. Idempotent: sans effet s'il l'est déjà."""
    try:
        (
            supabase_client.get_service_supabase()
            .table(TABLE)
            .update({"is_active": False})
            .eq("code", code)
            .eq("user_id", user_id)
            .execute()
        )
    except Exception:
        logger.exception("coupons.repository.deactivate_coupon failed code=%s user_id=%s", code, user_id)
        raise


def delete_coupons_for_user(user_id: str) -> None:
    try:
        (
            supabase_client.get_service_supabase()
            .table(TABLE)
            .delete()
            .eq("user_id", user_id)
            .execute()
        )
    except Exception:
        logger.exception("coupons.repository.delete_coupons_for_user failed user_id=%s", user_id)
        raise


def insert_coupon(coupon: Coupon) -> Coupon:
    """
    Enregistre le coupon. Upsert sur user_id: deux émissions concurrentes pour
    le même utilisateur se résolvent en « dernier écrit gagne », sans doublon.
    """
    try:
        res = (
            supabase_client.get_service_supabase()
            .table(TABLE)
            .upsert(coupon.to_row(), on_conflict="user_id")
            .execute()
        )
    except Exception:
        logger.exception("coupons.repository.insert_coupon failed user_id=%s", coupon.user_id)
        raise
    rows = res.data or []
    return Coupon.from_row(rows[0]) if rows else coupon

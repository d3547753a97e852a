"""
Cas d'usage 'coupons': validation d'un code saisi et émission des coupons récompense.
"""
import logging
import secrets
import string
from datetime import datetime, timedelta, timezone
from typing import Optional

from backend.config import CheckoutSettings, load_checkout_settings
from . import repository
from .models import Coupon

logger = logging.getLogger(__name__)

CODE_ALPHABET = string.ascii_uppercase + string.digits
CODE_LENGTH = 6

_system_random = secrets.SystemRandom()


def generate_coupon_code(prefix: str = "GIFT", rng=None, length: int = CODE_LENGTH) -> str:
    """
    Code promotionnel: préfixe + `length` caractères [A-Z0-9].
    rng: source aléatoire compatible random.Random (SystemRandom par défaut).
    """
    rng = rng or _system_random
    return prefix + "".join(rng.choice(CODE_ALPHABET) for _ in range(length))


def find_valid_coupon(code: Optional[str], user_id: str, now: Optional[datetime] = None) -> Optional[Coupon]:
    """
    Retourne le coupon actif (code, user_id) ou None.
    Un code vide, inconnu, déjà consommé ou expiré n'est pas une erreur:
    le checkout continue simplement sans remise.
    """
    code = (code or "").strip()
    if not code or not user_id:
        return None
    coupon = repository.find_active_coupon(code, user_id)
    if coupon is None:
        logger.info("coupons.service.find_valid_coupon not found code=%s user_id=%s", code, user_id)
        return None
    if coupon.is_expired(now):
        logger.info("coupons.service.find_valid_coupon expired code=%s user_id=%s", code, user_id)
        return None
    return coupon


def issue_reward_coupon(
    user_id: str,
    *,
    settings: Optional[CheckoutSettings] = None,
    rng=None,
    now: Optional[datetime] = None,
) -> Coupon:
    """
    Remplace le coupon de l'utilisateur par un nouveau coupon récompense.
    - Supprime les coupons existants puis insère le nouveau (upsert sur user_id)
    - Remise fixe settings.reward_discount_percentage, expiration à now + reward_validity_days
    """
    settings = settings or load_checkout_settings()
    now = now or datetime.now(timezone.utc)
    coupon = Coupon(
        code=generate_coupon_code(settings.reward_code_prefix, rng),
        user_id=user_id,
        discount_percentage=settings.reward_discount_percentage,
        expiration_date=now + timedelta(days=settings.reward_validity_days),
        is_active=True,
    )
    repository.delete_coupons_for_user(user_id)
    saved = repository.insert_coupon(coupon)
    logger.info("coupons.service.issue_reward_coupon user_id=%s code=%s", user_id, saved.code)
    return saved

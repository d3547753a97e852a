# backend.config
from dataclasses import dataclass
from decimal import Decimal
from pathlib import Path
import os
from dotenv import load_dotenv

# Calculer le chemin du projet puis charger .env de manière explicite
BASE_DIR = Path(__file__).resolve().parent.parent
ENV_PATH = BASE_DIR / ".env"
load_dotenv(dotenv_path=ENV_PATH, override=True)

"""
Configuration centrale du backend.

- Charge le fichier .env à la racine du projet (BASE_DIR/.env)
- Normalise et expose les secrets/URLs (Supabase, Stripe), CORS
- Construit CheckoutSettings: valeur immuable injectée dans les services
  (taux de change, seuil de récompense, URLs de redirection du checkout)
"""

def _clean_env(v: str) -> str:
    """
    Nettoie une valeur d'environnement:
    - supprime les espaces et guillemets (simples, doubles) et backticks
    - retourne toujours une chaîne (jamais None)
    """
    return (v or "").strip().strip("'").strip('"').strip("`")

# Supabase: URL et clés (anon/service)
SUPABASE_URL = _clean_env(os.getenv("SUPABASE_URL") or "")
SUPABASE_ANON = _clean_env(os.getenv("SUPABASE_ANON_KEY") or os.getenv("SUPABASE_KEY") or "")
SUPABASE_SERVICE_KEY = _clean_env(os.getenv("SUPABASE_SERVICE_KEY") or "")

if SUPABASE_URL and not SUPABASE_URL.startswith("http"):
    SUPABASE_URL = "https://" + SUPABASE_URL
SUPABASE_URL = SUPABASE_URL.rstrip("/")

COOKIE_SECURE = (os.getenv("COOKIE_SECURE", "false").lower() == "true")

# CORS
CORS_ORIGINS = [o.strip() for o in os.getenv("CORS_ORIGINS", "*").split(",") if o.strip()]

# Stripe: clé secrète et secret webhook
STRIPE_SECRET_KEY = _clean_env(os.getenv("STRIPE_SECRET_KEY") or "")
STRIPE_WEBHOOK_SECRET = _clean_env(os.getenv("STRIPE_WEBHOOK_SECRET") or "")

# Front: base des pages de succès/annulation du checkout
CLIENT_URL = _clean_env(os.getenv("CLIENT_URL") or "http://localhost:5173").rstrip("/")


@dataclass(frozen=True)
class CheckoutSettings:
    """
    Paramètres métier du checkout.
    - exchange_rate: 1 unité source = exchange_rate unité de règlement (taux fixe)
    - reward_threshold: exprimé en devise source (pas en centimes)
    """
    exchange_rate: Decimal = Decimal("0.012")
    source_currency: str = "inr"
    settlement_currency: str = "usd"
    reward_threshold: Decimal = Decimal("20000")
    reward_discount_percentage: int = 10
    reward_validity_days: int = 30
    reward_code_prefix: str = "GIFT"
    success_url: str = "http://localhost:5173/purchase-success?session_id={CHECKOUT_SESSION_ID}"
    cancel_url: str = "http://localhost:5173/purchase-cancel"


def load_checkout_settings() -> CheckoutSettings:
    """Construit CheckoutSettings depuis l'environnement (valeurs par défaut sinon)."""
    settings = CheckoutSettings(
        exchange_rate=Decimal(_clean_env(os.getenv("CHECKOUT_EXCHANGE_RATE")) or "0.012"),
        source_currency=(_clean_env(os.getenv("CHECKOUT_SOURCE_CURRENCY")) or "inr").lower(),
        settlement_currency=(_clean_env(os.getenv("CHECKOUT_SETTLEMENT_CURRENCY")) or "usd").lower(),
        reward_threshold=Decimal(_clean_env(os.getenv("REWARD_THRESHOLD")) or "20000"),
        reward_discount_percentage=int(os.getenv("REWARD_DISCOUNT_PERCENTAGE", "10")),
        reward_validity_days=int(os.getenv("REWARD_VALIDITY_DAYS", "30")),
        reward_code_prefix=_clean_env(os.getenv("REWARD_CODE_PREFIX")) or "GIFT",
        success_url=f"{CLIENT_URL}/purchase-success?session_id={{CHECKOUT_SESSION_ID}}",
        cancel_url=f"{CLIENT_URL}/purchase-cancel",
    )
    if not 1 <= settings.reward_discount_percentage <= 100:
        raise ValueError(f"REWARD_DISCOUNT_PERCENTAGE hors de [1, 100]: {settings.reward_discount_percentage}")
    if settings.reward_validity_days < 1:
        raise ValueError(f"REWARD_VALIDITY_DAYS doit être >= 1: {settings.reward_validity_days}")
    return settings

from fastapi import APIRouter, Request
from backend.config import STRIPE_SECRET_KEY, SUPABASE_SERVICE_KEY, SUPABASE_URL

router = APIRouter(prefix="/health", tags=["Health"])

@router.get("")
def health_root(request: Request):
    """État de configuration (sans appel réseau)."""
    return {
        "ok": True,
        "stripe_configured": bool(STRIPE_SECRET_KEY),
        "supabase_configured": bool(SUPABASE_URL and SUPABASE_SERVICE_KEY),
        "rate_limit_enabled": getattr(request.app.state, "rate_limit_enabled", None),
    }

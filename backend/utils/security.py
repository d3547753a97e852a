from fastapi import Request, HTTPException, Depends
from typing import Dict, Any
import logging

import backend.infra.supabase_client as supabase_client

logger = logging.getLogger(__name__)

COOKIE_NAME = "sb_access"

def _token_from_request(request: Request) -> str:
    # Hybride: priorité au Bearer, fallback cookie
    auth_header = request.headers.get("Authorization", "")
    if auth_header.startswith("Bearer "):
        return auth_header[7:].strip()
    return request.cookies.get(COOKIE_NAME) or ""

def get_current_user(request: Request) -> Dict[str, Any]:
    """
    Résout l'utilisateur Supabase associé au jeton (Bearer ou cookie sb_access).
    L'identité est fournie par Supabase Auth; ce module ne fait que la lire.
    """
    token = _token_from_request(request)
    if not token:
        raise HTTPException(status_code=401, detail="Non authentifié")
    try:
        res = supabase_client.get_supabase().auth.get_user(token)
        user = getattr(res, "user", None)
    except Exception:
        logger.warning("security.get_current_user: jeton refusé par Supabase")
        raise HTTPException(status_code=401, detail="Session expirée, veuillez vous connecter")
    user_id = getattr(user, "id", None)
    if not user_id:
        raise HTTPException(status_code=401, detail="Session expirée, veuillez vous connecter")
    return {"id": str(user_id), "email": getattr(user, "email", None), "token": token}

def require_user(user: Dict[str, Any] = Depends(get_current_user)) -> Dict[str, Any]:
    return user

from typing import Any, Dict
from fastapi import Request, Response, HTTPException
import hashlib
import logging
import os
import time

from backend.utils.security import COOKIE_NAME

logger = logging.getLogger(__name__)

def _client_key(req: Request) -> str:
    # Priorité: jeton (hashé, Bearer ou cookie) puis IP; la clé inclut le chemin
    path = req.url.path
    auth_header = req.headers.get("Authorization", "")
    token = auth_header[7:].strip() if auth_header.startswith("Bearer ") else req.cookies.get(COOKIE_NAME)
    if token:
        h = hashlib.sha256(token.encode("utf-8")).hexdigest()[:16]
        return f"user:{h}:{path}"
    ip = req.client.host if req.client else "local"
    return f"ip:{ip}:{path}"

def optional_rate_limit(times: int, seconds: int):
    """
    Dépendance FastAPI de limitation de débit.
    - LOCAL_RATE_LIMIT_FALLBACK=1: fenêtre glissante en mémoire (dev/tests)
    - app.state.rate_limit_enabled=False: aucune limite
    - sinon fastapi-limiter (Redis) initialisé par le lifespan
    """
    async def _dep(request: Request, response: Response):
        if os.getenv("LOCAL_RATE_LIMIT_FALLBACK") == "1":
            now = time.time()
            key = _client_key(request)
            store: Dict[str, Any] = getattr(request.app.state, "_rl_store", {})
            hits = [t for t in store.get(key, []) if now - t < seconds]
            if len(hits) >= times:
                raise HTTPException(status_code=429, detail="Too Many Requests")
            hits.append(now)
            store[key] = hits
            request.app.state._rl_store = store
            return

        if getattr(request.app.state, "rate_limit_enabled", None) is False:
            return

        from fastapi_limiter.depends import RateLimiter

        async def _identifier(req: Request) -> str:
            return _client_key(req)

        try:
            await RateLimiter(times=times, seconds=seconds, identifier=_identifier)(request, response)
        except HTTPException:
            raise
        except Exception:
            # Redis indisponible: on laisse passer plutôt que de bloquer le paiement
            logger.warning("rate_limit: limiter indisponible, requête non limitée path=%s", request.url.path)
    return _dep

"""
Middlewares transverses de l'application.
- register_basic_middlewares: CORS pour le front (origines configurées via CORS_ORIGINS).
- register_security_middleware: en-têtes de sécurité sur toutes les réponses de l'API.
"""
from fastapi import Request, FastAPI
from fastapi.middleware.cors import CORSMiddleware
from backend.config import CORS_ORIGINS, COOKIE_SECURE

def register_basic_middlewares(app: FastAPI) -> None:
    app.add_middleware(
        CORSMiddleware,
        allow_origins=CORS_ORIGINS,
        allow_credentials="*" not in CORS_ORIGINS,
        allow_methods=["*"],
        allow_headers=["*"],
    )

def register_security_middleware(app: FastAPI) -> None:
    @app.middleware("http")
    async def security_headers(request: Request, call_next):
        response = await call_next(request)
        response.headers.setdefault("X-Content-Type-Options", "nosniff")
        response.headers.setdefault("X-Frame-Options", "DENY")
        response.headers.setdefault("Referrer-Policy", "no-referrer")
        # Les réponses checkout/confirm contiennent des identifiants de session
        if request.url.path.startswith("/api/v1/payments"):
            response.headers["Cache-Control"] = "no-store"
        if COOKIE_SECURE:
            response.headers.setdefault("Strict-Transport-Security", "max-age=63072000; includeSubDomains")
        return response

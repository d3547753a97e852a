"""
Gestionnaires d'exceptions.
- CheckoutError (et sous-classes): JSON {"detail", "code"} avec le statut porté par l'erreur.
- Les défauts d'intégrité (statut 500) sont journalisés en erreur: ils demandent une investigation.
- HTTPException: corps JSON FastAPI standard.
"""
import logging
from fastapi import FastAPI, HTTPException, Request
from fastapi.responses import JSONResponse

from backend.payments.errors import CheckoutError

logger = logging.getLogger(__name__)

def register_exception_handlers(app: FastAPI) -> None:
    @app.exception_handler(CheckoutError)
    async def checkout_error_handler(request: Request, exc: CheckoutError):
        if exc.status_code >= 500:
            logger.error("%s %s -> %s (%s)", request.method, request.url.path, exc.code, exc.message)
        else:
            logger.info("%s %s -> %s (%s)", request.method, request.url.path, exc.code, exc.message)
        return JSONResponse(status_code=exc.status_code, content={"detail": exc.message, "code": exc.code})

    @app.exception_handler(HTTPException)
    async def http_exception_handler(request: Request, exc: HTTPException):
        return JSONResponse(status_code=exc.status_code, content={"detail": exc.detail}, headers=exc.headers)

"""
Registre central des routers (API v1 et health).
"""
from fastapi import FastAPI
from backend.payments import views as payments_views
from backend.coupons import views as coupons_views
from backend.commandes import views as commandes_views
from backend.health.router import router as health_router

def register_routers(app: FastAPI) -> None:
    # API v1
    app.include_router(payments_views.router)
    app.include_router(coupons_views.router)
    app.include_router(commandes_views.router)
    # Health & monitoring
    app.include_router(health_router)

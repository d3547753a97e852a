# module backend.commandes.views
"""Historique des commandes de l'utilisateur connecté."""
from fastapi import APIRouter, Depends

from backend.utils.security import require_user
from backend.commandes import repository as commandes_repository

router = APIRouter(prefix="/api/v1/commandes", tags=["Commandes API"])


@router.get("")
def list_my_orders(limit: int = 50, user: dict = Depends(require_user)):
    orders = commandes_repository.list_user_orders(user["id"], limit=max(1, min(limit, 100)))
    return {"commandes": [o.to_public() for o in orders]}

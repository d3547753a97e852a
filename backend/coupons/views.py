# module backend.coupons.views
"""Endpoints coupons de l'utilisateur connecté (lecture et vérification d'un code)."""
from fastapi import APIRouter, Depends, HTTPException
from pydantic import BaseModel, Field

from backend.utils.security import require_user
from backend.coupons import repository as coupons_repository
from backend.coupons import service as coupons_service

router = APIRouter(prefix="/api/v1/coupons", tags=["Coupons API"])


class ValidateCouponRequest(BaseModel):
    code: str = Field(..., min_length=1, max_length=64)


@router.get("")
def get_my_coupon(user: dict = Depends(require_user)):
    """Coupon actif de l'utilisateur, ou null."""
    coupon = coupons_repository.find_coupon_for_user(user["id"])
    return coupon.to_public() if coupon else None


@router.post("/validate")
def validate_coupon(body: ValidateCouponRequest, user: dict = Depends(require_user)):
    """Vérifie un code avant paiement; 404 si inconnu, consommé ou expiré."""
    coupon = coupons_service.find_valid_coupon(body.code, user["id"])
    if coupon is None:
        raise HTTPException(status_code=404, detail="Coupon invalide ou expiré")
    return {"message": "Coupon valide", **coupon.to_public()}

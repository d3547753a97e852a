# module backend.coupons.models
"""Coupon de réduction rattaché à un utilisateur (table 'coupons')."""
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any, Dict, Optional


def _parse_datetime(value: Any) -> datetime:
    if isinstance(value, datetime):
        dt = value
    else:
        # Supabase renvoie de l'ISO 8601, parfois suffixé par 'Z'
        dt = datetime.fromisoformat(str(value).replace("Z", "+00:00"))
    return dt if dt.tzinfo else dt.replace(tzinfo=timezone.utc)


@dataclass(frozen=True)
class Coupon:
    code: str
    user_id: str
    discount_percentage: int
    expiration_date: datetime
    is_active: bool = True

    def is_expired(self, now: Optional[datetime] = None) -> bool:
        return self.expiration_date <= (now or datetime.now(timezone.utc))

    def to_row(self) -> Dict[str, Any]:
        return {
            "code": self.code,
            "user_id": self.user_id,
            "discount_percentage": self.discount_percentage,
            "is_active": self.is_active,
            "expiration_date": self.expiration_date.isoformat(),
        }

    @classmethod
    def from_row(cls, row: Dict[str, Any]) -> "Coupon":
        return cls(
            code=str(row["code"]),
            user_id=str(row["user_id"]),
            discount_percentage=int(row["discount_percentage"]),
            expiration_date=_parse_datetime(row["expiration_date"]),
            is_active=bool(row.get("is_active", True)),
        )

    def to_public(self) -> Dict[str, Any]:
        """Représentation JSON exposée au front."""
        return {
            "code": self.code,
            "discountPercentage": self.discount_percentage,
            "expirationDate": self.expiration_date.isoformat(),
            "isActive": self.is_active,
        }

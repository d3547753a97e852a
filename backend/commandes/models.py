# module backend.commandes.models
"""Commande créée après un paiement Stripe confirmé (table 'commandes')."""
from dataclasses import dataclass, field
from datetime import datetime, timezone
from decimal import Decimal
from typing import Any, Dict, List, Optional


@dataclass(frozen=True)
class OrderLine:
    product: str
    quantity: int
    price: Decimal

    def to_row(self) -> Dict[str, Any]:
        return {"product": self.product, "quantity": self.quantity, "price": str(self.price)}


@dataclass(frozen=True)
class Order:
    user_id: str
    products: List[OrderLine]
    total_amount: int
    stripe_session_id: str
    currency: str = "usd"
    id: Optional[str] = None
    created_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))

    def to_row(self) -> Dict[str, Any]:
        # id et created_at: valeurs par défaut côté base si absentes
        row: Dict[str, Any] = {
            "user_id": self.user_id,
            "products": [line.to_row() for line in self.products],
            "total_amount": self.total_amount,
            "currency": self.currency,
            "stripe_session_id": self.stripe_session_id,
            "created_at": self.created_at.isoformat(),
        }
        if self.id:
            row["id"] = self.id
        return row

    @classmethod
    def from_row(cls, row: Dict[str, Any]) -> "Order":
        created = row.get("created_at")
        if isinstance(created, str):
            created = datetime.fromisoformat(created.replace("Z", "+00:00"))
        return cls(
            id=str(row["id"]) if row.get("id") is not None else None,
            user_id=str(row["user_id"]),
            products=[
                OrderLine(product=str(p["product"]), quantity=int(p["quantity"]), price=Decimal(str(p["price"])))
                for p in (row.get("products") or [])
            ],
            total_amount=int(row.get("total_amount") or 0),
            currency=str(row.get("currency") or "usd"),
            stripe_session_id=str(row["stripe_session_id"]),
            created_at=created or datetime.now(timezone.utc),
        )

    def to_public(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "products": [
                {"product": l.product, "quantity": l.quantity, "price": float(l.price)} for l in self.products
            ],
            "totalAmount": self.total_amount / 100,
            "currency": self.currency,
            "stripeSessionId": self.stripe_session_id,
            "createdAt": self.created_at.isoformat(),
        }

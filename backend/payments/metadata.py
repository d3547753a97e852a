"""
Sérialisation/désérialisation des métadonnées Stripe (user_id, coupon_code, cart).

Stripe n'accepte que des valeurs str de 500 caractères maximum: le panier JSON
est découpé en cart_0..cart_n, cart_chunks donnant le nombre de morceaux.
La lecture valide le schéma complet et lève MalformedMetadataError au moindre
écart: ces métadonnées sont la seule source de vérité pour créer la commande.
"""
import json
from dataclasses import dataclass, field
from decimal import Decimal, InvalidOperation
from typing import Any, Dict, List, Mapping

from .errors import InvalidCartError, MalformedMetadataError

STRIPE_METADATA_VALUE_LIMIT = 500
# Stripe limite à 50 clés; user_id, coupon_code et cart_chunks en prennent 3
MAX_CART_CHUNKS = 40


@dataclass(frozen=True)
class CartSnapshotItem:
    id: str
    quantity: int
    price: Decimal


@dataclass(frozen=True)
class CheckoutMetadata:
    user_id: str
    coupon_code: str = ""
    items: List[CartSnapshotItem] = field(default_factory=list)

    @classmethod
    def from_cart(cls, user_id: str, items, coupon_code: str | None = None) -> "CheckoutMetadata":
        snapshot = [CartSnapshotItem(id=i.id, quantity=i.quantity, price=i.price) for i in items]
        return cls(user_id=str(user_id), coupon_code=(coupon_code or "").strip(), items=snapshot)

    def to_stripe(self) -> Dict[str, str]:
        """Métadonnées prêtes pour stripe.checkout.Session.create(metadata=...)."""
        cart_json = json.dumps(
            [{"id": i.id, "quantity": i.quantity, "price": str(i.price)} for i in self.items],
            separators=(",", ":"),
        )
        chunks = [
            cart_json[pos:pos + STRIPE_METADATA_VALUE_LIMIT]
            for pos in range(0, len(cart_json), STRIPE_METADATA_VALUE_LIMIT)
        ]
        if len(chunks) > MAX_CART_CHUNKS:
            raise InvalidCartError("Panier trop volumineux pour la session de paiement", "cart_too_large")
        metadata = {
            "user_id": self.user_id,
            "coupon_code": self.coupon_code,
            "cart_chunks": str(len(chunks)),
        }
        for index, chunk in enumerate(chunks):
            metadata[f"cart_{index}"] = chunk
        return metadata

    @classmethod
    def from_stripe(cls, metadata: Mapping[str, Any] | None) -> "CheckoutMetadata":
        """Relit les métadonnées d'une session; lève MalformedMetadataError si invalides."""
        if not isinstance(metadata, Mapping):
            raise MalformedMetadataError("Métadonnées absentes")
        user_id = str(metadata.get("user_id") or "").strip()
        if not user_id:
            raise MalformedMetadataError("user_id manquant dans les métadonnées")
        coupon_code = str(metadata.get("coupon_code") or "").strip()

        try:
            count = int(metadata.get("cart_chunks") or 0)
        except (TypeError, ValueError):
            raise MalformedMetadataError("cart_chunks invalide")
        if count <= 0 or count > MAX_CART_CHUNKS:
            raise MalformedMetadataError("cart_chunks invalide")

        parts = []
        for index in range(count):
            chunk = metadata.get(f"cart_{index}")
            if not isinstance(chunk, str):
                raise MalformedMetadataError(f"cart_{index} manquant")
            parts.append(chunk)

        try:
            raw_items = json.loads("".join(parts))
        except ValueError:
            raise MalformedMetadataError("Panier JSON illisible")
        if not isinstance(raw_items, list) or not raw_items:
            raise MalformedMetadataError("Panier vide dans les métadonnées")

        items: List[CartSnapshotItem] = []
        for entry in raw_items:
            items.append(_snapshot_item(entry))
        return cls(user_id=user_id, coupon_code=coupon_code, items=items)


def _snapshot_item(entry: Any) -> CartSnapshotItem:
    if not isinstance(entry, dict):
        raise MalformedMetadataError("Ligne de panier invalide")
    item_id = str(entry.get("id") or "").strip()
    quantity = entry.get("quantity")
    if not item_id or isinstance(quantity, bool) or not isinstance(quantity, int) or quantity <= 0:
        raise MalformedMetadataError(f"Ligne de panier invalide: {entry!r}")
    try:
        price = Decimal(str(entry.get("price")))
    except (InvalidOperation, ValueError):
        raise MalformedMetadataError(f"Prix invalide pour {item_id}")
    if not price.is_finite() or price < 0:
        raise MalformedMetadataError(f"Prix invalide pour {item_id}")
    return CartSnapshotItem(id=item_id, quantity=quantity, price=price)


def extract_metadata_from_session(session: Mapping[str, Any] | None) -> CheckoutMetadata:
    """Raccourci: lit session["metadata"] (objet Stripe ou dict)."""
    meta = (session or {}).get("metadata") if session is not None else None
    return CheckoutMetadata.from_stripe(meta)

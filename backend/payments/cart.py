"""
Logique panier pure (pas de Stripe, pas de DB).

Arrondi: toutes les conversions passent par Decimal et ROUND_HALF_EVEN
(arrondi bancaire). Une même entrée produit toujours les mêmes montants,
ce qui permet de recalculer un total à l'identique lors de la réconciliation.
"""
from dataclasses import dataclass
from decimal import Decimal, InvalidOperation, ROUND_HALF_EVEN
from typing import Any, Dict, List, Optional, Sequence

from backend.config import CheckoutSettings
from .errors import InvalidCartError

_UNIT = Decimal("1")
_HUNDRED = Decimal("100")
# Bornes d'entrée: au-delà, les conversions Decimal débordent la précision du contexte
MAX_UNIT_PRICE = Decimal("1000000000")
MAX_QUANTITY = 10000


@dataclass(frozen=True)
class CartItem:
    id: str
    name: str
    price: Decimal
    quantity: int
    image: Optional[str] = None

    @property
    def subtotal(self) -> Decimal:
        return self.price * self.quantity


@dataclass(frozen=True)
class PricedCart:
    items: List[CartItem]
    line_items: List[Dict[str, Any]]
    source_total: Decimal
    settlement_total: int


# module backend.payments.cart
def _to_decimal(value: Any) -> Optional[Decimal]:
    if isinstance(value, bool) or value is None:
        return None
    try:
        parsed = Decimal(str(value).strip())
    except (InvalidOperation, ValueError):
        return None
    return parsed if parsed.is_finite() else None


def _to_quantity(value: Any) -> Optional[int]:
    if value is None:
        return 1
    if isinstance(value, bool):
        return None
    try:
        qty = Decimal(str(value).strip())
    except (InvalidOperation, ValueError):
        return None
    if not qty.is_finite() or qty != qty.to_integral_value():
        return None
    return int(qty)


def parse_cart_items(raw: Any) -> List[CartItem]:
    """
    Valide un panier brut [{id|_id, name, image, price, quantity}, ...].
    - quantity absente => 1; quantity <= 0 ou > MAX_QUANTITY => InvalidCartError
    - price négatif, non numérique ou > MAX_UNIT_PRICE => InvalidCartError
    - panier vide ou qui n'est pas une liste => InvalidCartError
    """
    if not isinstance(raw, (list, tuple)) or not raw:
        raise InvalidCartError("Panier vide ou invalide", "empty_cart")

    items: List[CartItem] = []
    for index, entry in enumerate(raw):
        if not isinstance(entry, dict):
            raise InvalidCartError(f"Article #{index} invalide", "invalid_item")
        item_id = str(entry.get("id") or entry.get("_id") or "").strip()
        name = str(entry.get("name") or "").strip()
        if not item_id or not name:
            raise InvalidCartError(f"Article #{index}: id et name requis", "invalid_item")
        price = _to_decimal(entry.get("price"))
        if price is None or price < 0 or price > MAX_UNIT_PRICE:
            raise InvalidCartError(f"Article {item_id}: prix invalide", "invalid_price")
        qty = _to_quantity(entry.get("quantity"))
        if qty is None or qty <= 0 or qty > MAX_QUANTITY:
            raise InvalidCartError(f"Article {item_id}: quantité invalide", "invalid_quantity")
        image = str(entry.get("image") or "").strip() or None
        items.append(CartItem(id=item_id, name=name, price=price, quantity=qty, image=image))
    return items


def to_unit_amount(price: Decimal, rate: Decimal) -> int:
    """Prix source -> centimes de la devise de règlement: round(price * rate * 100)."""
    return int((price * rate * _HUNDRED).quantize(_UNIT, rounding=ROUND_HALF_EVEN))


def to_line_items(items: Sequence[CartItem], settings: CheckoutSettings) -> List[Dict[str, Any]]:
    """
    Construit les line_items Stripe (price_data) à partir des articles validés.
    - unit_amount en centimes de settings.settlement_currency
    - images uniquement si l'article en fournit une (Stripe refuse les chaînes vides)
    """
    line_items: List[Dict[str, Any]] = []
    for item in items:
        product_data: Dict[str, Any] = {"name": item.name}
        if item.image:
            product_data["images"] = [item.image]
        line_items.append({
            "quantity": item.quantity,
            "price_data": {
                "currency": settings.settlement_currency,
                "unit_amount": to_unit_amount(item.price, settings.exchange_rate),
                "product_data": product_data,
            },
        })
    return line_items


def cart_total(items: Sequence[CartItem]) -> Decimal:
    """Total avant remise, en devise source."""
    return sum((item.subtotal for item in items), Decimal("0"))


def settlement_total(line_items: Sequence[Dict[str, Any]]) -> int:
    """Somme des unit_amount * quantity (centimes), indépendante de l'ordre des lignes."""
    return sum(int(li["price_data"]["unit_amount"]) * int(li["quantity"]) for li in line_items)


def discount_amount(total: Decimal, percentage: int) -> Decimal:
    """Montant de remise arrondi à l'unité (ROUND_HALF_EVEN)."""
    if percentage <= 0:
        return Decimal("0")
    return (Decimal(total) * Decimal(percentage) / _HUNDRED).quantize(_UNIT, rounding=ROUND_HALF_EVEN)


def apply_discount(total: Decimal, percentage: int) -> Decimal:
    """Total après remise, jamais négatif."""
    return max(Decimal("0"), Decimal(total) - discount_amount(total, percentage))


def price_cart(raw: Any, settings: CheckoutSettings) -> PricedCart:
    """Valide le panier puis calcule line_items, total source et total de règlement."""
    items = parse_cart_items(raw)
    try:
        line_items = to_line_items(items, settings)
    except InvalidOperation:
        raise InvalidCartError("Montant du panier hors limites", "invalid_price")
    return PricedCart(
        items=items,
        line_items=line_items,
        source_total=cart_total(items),
        settlement_total=settlement_total(line_items),
    )

"""
Module 'payments' (feature-first): point d'entrée public.
Réunit logique panier, métadonnées Stripe, client Stripe et erreurs métier.
Les cas d'usage (create_checkout, reconcile_session) vivent dans backend.payments.service.
"""

from .errors import (
    CheckoutError,
    InvalidCartError,
    GatewayUnavailableError,
    SessionNotPaidError,
    MalformedMetadataError,
    ConflictError,
    SessionOwnershipError,
)
from .cart import CartItem, PricedCart, parse_cart_items, to_line_items, price_cart, apply_discount
from .metadata import CheckoutMetadata, extract_metadata_from_session

__all__ = [
    # errors
    "CheckoutError",
    "InvalidCartError",
    "GatewayUnavailableError",
    "SessionNotPaidError",
    "MalformedMetadataError",
    "ConflictError",
    "SessionOwnershipError",
    # cart
    "CartItem",
    "PricedCart",
    "parse_cart_items",
    "to_line_items",
    "price_cart",
    "apply_discount",
    # metadata
    "CheckoutMetadata",
    "extract_metadata_from_session",
]

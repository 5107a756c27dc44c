"""
Module 'cart' (feature-first): point d'entrée public.
Réunit les types du panier, la logique de prix pure et le lecteur API.
"""

from .models import CartLine, CartSnapshot, PriceBreakdown, to_minor_units, to_money
from .pricing import aggregate_lines, price_from_item, compute_breakdown, to_order_items
from .repository import ApiCartReader

__all__ = [
    # models
    "CartLine",
    "CartSnapshot",
    "PriceBreakdown",
    "to_money",
    "to_minor_units",
    # pricing
    "aggregate_lines",
    "price_from_item",
    "compute_breakdown",
    "to_order_items",
    # repository
    "ApiCartReader",
]

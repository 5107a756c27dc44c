"""
Logique panier pure (pas de réseau, pas de Stripe).
"""
from decimal import Decimal, InvalidOperation
from typing import Any, Callable, Dict, List, Optional, Union
import logging

from storefront.errors import EmptyCartError
from .models import CartLine, CartSnapshot, PriceBreakdown, to_money

logger = logging.getLogger(__name__)

ShippingRate = Union[Decimal, Callable[[CartSnapshot, Decimal], Decimal]]

# module storefront.cart.pricing
def price_from_item(item: Dict[str, Any]) -> Decimal:
    """
    Prix unitaire d'une ligne brute du panier.
    - Priorité au prix soldé (product.salePrice), puis product.price, puis unitPrice/price.
    - Autorise str|float|int; retourne Decimal("0") si parsing impossible.
    """
    product = item.get("product") if isinstance(item.get("product"), dict) else {}
    raw = (
        product.get("salePrice")
        or product.get("price")
        or item.get("unitPrice")
        or item.get("price")
        or 0
    )
    try:
        return to_money(raw)
    except (InvalidOperation, ValueError, TypeError):
        return Decimal("0")


def _options_from_item(item: Dict[str, Any]) -> Dict[str, str]:
    options = item.get("selectedOptions") or item.get("selected_options") or {}
    if not isinstance(options, dict):
        return {}
    return {str(k): str(v) for k, v in options.items() if v is not None and str(v) != ""}


def aggregate_lines(items: List[Dict[str, Any]]) -> CartSnapshot:
    """
    Construit un CartSnapshot à partir du panier brut de l'API.
    - Lignes identiques (même produit, mêmes options) fusionnées, ordre de première apparition conservé.
    - Ignore les lignes invalides (id vide, quantity <= 0, prix négatif).
    - Soulève EmptyCartError si aucune ligne valide n'est présente (checkout impossible).
    """
    merged: Dict[tuple, Dict[str, Any]] = {}
    for it in items or []:
        product = it.get("product") if isinstance(it.get("product"), dict) else {}
        product_id = str(it.get("productId") or it.get("product_id") or product.get("_id") or product.get("id") or "").strip()
        try:
            qty = int(it.get("quantity") or 0)
        except (TypeError, ValueError):
            qty = 0
        price = price_from_item(it)
        if not product_id or qty <= 0 or price < 0:
            logger.warning("cart.pricing.aggregate_lines skipped invalid line product_id=%s quantity=%s", product_id, qty)
            continue
        options = _options_from_item(it)
        key = (product_id, tuple(sorted(options.items())))
        if key in merged:
            merged[key]["quantity"] += qty
            continue
        merged[key] = {
            "product_id": product_id,
            "name": str(it.get("name") or product.get("name") or "Article"),
            "unit_price": price,
            "quantity": qty,
            "selected_options": options,
        }
    if not merged:
        raise EmptyCartError("Your cart is empty")
    return CartSnapshot(lines=tuple(CartLine(**line) for line in merged.values()))


def compute_breakdown(
    cart: CartSnapshot,
    tax_rate: Decimal,
    shipping: Optional[ShippingRate] = None,
    currency: str = "gbp",
) -> PriceBreakdown:
    """
    Décompose le prix du panier (toujours recalculé depuis le panier fourni).
    - subtotal = Σ(unit_price × quantity)
    - tax = subtotal × tax_rate, arrondi au centime
    - shipping: montant fixe ou callable(cart, subtotal) (service de frais de port externe)
    - total = subtotal + tax + shipping
    """
    subtotal = to_money(sum((line.line_total for line in cart.lines), Decimal("0")))
    tax = to_money(subtotal * Decimal(str(tax_rate)))
    if callable(shipping):
        shipping_amount = to_money(shipping(cart, subtotal))
    else:
        shipping_amount = to_money(shipping or 0)
    total = subtotal + tax + shipping_amount
    return PriceBreakdown(subtotal=subtotal, tax=tax, shipping=shipping_amount, total=total, currency=currency)


def to_order_items(cart: CartSnapshot) -> List[Dict[str, Any]]:
    """
    Lignes 'items' du corps POST /orders.
    Les montants sont sérialisés en nombres JSON à 2 décimales.
    """
    return [
        {
            "productId": line.product_id,
            "name": line.name,
            "price": float(line.unit_price),
            "quantity": line.quantity,
            "selectedOptions": dict(line.selected_options),
        }
        for line in cart.lines
    ]

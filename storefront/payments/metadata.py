"""
Sérialisation des métadonnées attachées au PaymentIntent (valeurs str, limites Stripe).
"""
import json
from typing import Any, Dict, Optional

from storefront.cart.models import CartSnapshot

# Stripe: 50 clés max, valeurs limitées à 500 caractères
METADATA_VALUE_LIMIT = 500

# module storefront.payments.metadata
def _stringify(value: Any) -> str:
    if isinstance(value, str):
        text = value
    elif isinstance(value, (dict, list)):
        text = json.dumps(value, separators=(",", ":"))
    else:
        text = str(value)
    return text[:METADATA_VALUE_LIMIT]


def make_intent_metadata(
    cart: CartSnapshot,
    checkout_attempt: str,
    extra: Optional[Dict[str, Any]] = None,
) -> Dict[str, str]:
    """
    Métadonnées du PaymentIntent.
    - orderType / itemCount: repris du parcours d'achat d'origine
    - checkoutAttempt: clé d'idempotence de la tentative (rapprochement support)
    - cart: JSON [{id, quantity}] tronqué à la limite Stripe
    """
    cart_meta = [{"id": line.product_id, "quantity": line.quantity} for line in cart.lines]
    metadata: Dict[str, Any] = {
        "orderType": "product_purchase",
        "itemCount": cart.item_count,
        "checkoutAttempt": checkout_attempt,
        "cart": cart_meta,
    }
    metadata.update(extra or {})
    return {str(k): _stringify(v) for k, v in metadata.items() if v is not None}

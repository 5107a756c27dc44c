"""
Accès au panier (collaborateur externe) via l'API REST.
"""
from typing import Any, Dict, List
import logging

from storefront.infra.api_client import StorefrontApi
from .models import CartSnapshot
from .pricing import aggregate_lines

logger = logging.getLogger(__name__)

CART_PATH = "/cart"
CART_CLEAR_PATH = "/cart/clear"

# module storefront.cart.repository
def _extract_items(data: Any) -> List[Dict[str, Any]]:
    if isinstance(data, list):
        return data
    if isinstance(data, dict):
        items = data.get("items")
        if items is None and isinstance(data.get("cart"), dict):
            items = data["cart"].get("items")
        return items or []
    return []


class ApiCartReader:
    """
    Lecteur de panier injecté dans l'orchestrateur.
    - snapshot(): GET /cart puis agrégation en CartSnapshot (ApiError/EmptyCartError propagées)
    - clear(): DELETE /cart/clear, appelé uniquement après une commande créée
    """

    def __init__(self, api: StorefrontApi):
        self._api = api

    async def snapshot(self) -> CartSnapshot:
        data = await self._api.get(CART_PATH)
        return aggregate_lines(_extract_items(data))

    async def clear(self) -> None:
        await self._api.delete(CART_CLEAR_PATH)
        logger.info("cart.repository.clear done")

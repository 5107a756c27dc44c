"""
Accès en lecture au profil utilisateur (pré-remplissage du checkout uniquement).
"""
from typing import Any, Dict, List, Tuple
import logging

from storefront.infra.api_client import ApiError, StorefrontApi

logger = logging.getLogger(__name__)

PROFILE_PATH = "/users/profile"
ADDRESSES_PATH = "/users/addresses"

# module storefront.profile.repository
class ApiProfileReader:
    """
    Charge profil + adresses.
    - Retourne ({}, []) pour la partie en échec: le checkout n'est jamais bloqué par le profil.
    """

    def __init__(self, api: StorefrontApi):
        self._api = api

    async def fetch_profile(self) -> Dict[str, Any]:
        try:
            data = await self._api.get(PROFILE_PATH)
        except ApiError as e:
            logger.warning("profile.repository.fetch_profile failed status=%s msg=%s", e.status_code, e.message)
            return {}
        if isinstance(data, dict) and isinstance(data.get("user"), dict):
            return data["user"]
        return data if isinstance(data, dict) else {}

    async def fetch_addresses(self) -> List[Dict[str, Any]]:
        try:
            data = await self._api.get(ADDRESSES_PATH)
        except ApiError as e:
            logger.warning("profile.repository.fetch_addresses failed status=%s msg=%s", e.status_code, e.message)
            return []
        if isinstance(data, dict):
            data = data.get("addresses") or []
        return [a for a in data if isinstance(a, dict)] if isinstance(data, list) else []

    async def load(self) -> Tuple[Dict[str, Any], List[Dict[str, Any]]]:
        return await self.fetch_profile(), await self.fetch_addresses()

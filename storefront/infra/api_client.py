"""
Adaptateur HTTP vers l'API REST du storefront (serveur externe).
- Un httpx.AsyncClient partagé (créé à la demande, fermé par le lifespan)
- StorefrontApi: ajoute le Bearer utilisateur, déballe l'enveloppe {success, data}
  et lève ApiError pour toute réponse non exploitable.
"""
from typing import Any, Dict, Optional
import logging
import httpx
from storefront.config import API_BASE_URL, HTTP_TIMEOUT_SECONDS

logger = logging.getLogger(__name__)

_client: Optional[httpx.AsyncClient] = None


class ApiError(Exception):
    """
    Échec d'un appel à l'API REST.
    - status_code: code HTTP (None si aucune réponse: réseau, timeout)
    - timeout: True si le délai a expiré (l'effet côté serveur est alors inconnu)
    """

    def __init__(self, message: str, status_code: Optional[int] = None, payload: Any = None, timeout: bool = False):
        super().__init__(message)
        self.message = message
        self.status_code = status_code
        self.payload = payload
        self.timeout = timeout

    @property
    def network(self) -> bool:
        return self.status_code is None


def get_http_client() -> httpx.AsyncClient:
    global _client
    if _client is None or _client.is_closed:
        _client = httpx.AsyncClient(
            base_url=API_BASE_URL,
            timeout=HTTP_TIMEOUT_SECONDS,
            headers={"Accept": "application/json"},
        )
    return _client


async def close_http_client() -> None:
    global _client
    if _client is not None and not _client.is_closed:
        await _client.aclose()
    _client = None


def _error_message(body: Any, default: str) -> str:
    if isinstance(body, dict):
        for key in ("message", "error", "detail"):
            value = body.get(key)
            if isinstance(value, str) and value.strip():
                return value.strip()
            if isinstance(value, dict) and value.get("message"):
                return str(value["message"])
    return default


class StorefrontApi:
    """
    Client applicatif au nom d'un utilisateur.
    À instancier par requête/session: le token n'est jamais stocké dans le client partagé.
    """

    def __init__(self, user_token: Optional[str] = None, client: Optional[httpx.AsyncClient] = None):
        self._token = user_token
        self._client = client

    @property
    def client(self) -> httpx.AsyncClient:
        return self._client or get_http_client()

    def _headers(self, extra: Optional[Dict[str, str]] = None) -> Dict[str, str]:
        headers: Dict[str, str] = {}
        if self._token:
            headers["Authorization"] = f"Bearer {self._token}"
        if extra:
            headers.update(extra)
        return headers

    async def request(
        self,
        method: str,
        path: str,
        *,
        json: Any = None,
        headers: Optional[Dict[str, str]] = None,
    ) -> Any:
        """
        Exécute la requête et retourne `data` de l'enveloppe (ou le corps brut sans enveloppe).
        Lève ApiError si:
        - réseau / timeout (status_code=None)
        - statut non 2xx
        - corps non JSON
        - enveloppe {success: false}
        """
        try:
            resp = await self.client.request(method, path, json=json, headers=self._headers(headers))
        except httpx.TimeoutException as e:
            logger.warning("infra.api_client timeout method=%s path=%s", method, path)
            raise ApiError("The request timed out", timeout=True) from e
        except httpx.HTTPError as e:
            logger.warning("infra.api_client network error method=%s path=%s err=%s", method, path, e)
            raise ApiError(f"Network error: {e}") from e

        try:
            body = resp.json() if resp.content else {}
        except ValueError:
            body = None

        if not (200 <= resp.status_code < 300):
            logger.error("infra.api_client failed: method=%s path=%s status=%s", method, path, resp.status_code)
            raise ApiError(_error_message(body, f"HTTP {resp.status_code}"), status_code=resp.status_code, payload=body)
        if body is None:
            raise ApiError("Malformed JSON response", status_code=resp.status_code)
        if isinstance(body, dict) and body.get("success") is False:
            raise ApiError(_error_message(body, "Request rejected"), status_code=resp.status_code, payload=body)
        if isinstance(body, dict) and "data" in body:
            return body["data"]
        return body

    async def get(self, path: str, **kwargs) -> Any:
        return await self.request("GET", path, **kwargs)

    async def post(self, path: str, **kwargs) -> Any:
        return await self.request("POST", path, **kwargs)

    async def delete(self, path: str, **kwargs) -> Any:
        return await self.request("DELETE", path, **kwargs)

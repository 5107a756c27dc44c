from fastapi import Request, HTTPException, Depends
from typing import Optional
from storefront.config import COOKIE_NAME


def get_user_token(request: Request) -> Optional[str]:
    # Hybride: priorité au Bearer, fallback cookie
    token = None
    auth_header = request.headers.get("Authorization", "")
    if auth_header.startswith("Bearer "):
        token = auth_header[7:].strip()
    if not token:
        token = request.cookies.get(COOKIE_NAME)
    return token or None


def require_user_token(token: Optional[str] = Depends(get_user_token)) -> str:
    """
    Exige un token utilisateur. Il est relayé tel quel à l'API REST (qui l'authentifie);
    aucune vérification locale n'est faite ici.
    """
    if not token:
        raise HTTPException(status_code=401, detail="Not authenticated")
    return token

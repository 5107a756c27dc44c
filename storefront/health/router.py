from fastapi import APIRouter
from storefront.config import API_BASE_URL, STRIPE_PUBLIC_KEY, CHECKOUT_CURRENCY

router = APIRouter(prefix="/health", tags=["Health"])


@router.get("")
def health_root():
    return {"ok": True}


@router.get("/config")
def health_config():
    # Aucune valeur secrète: seulement la présence de la clé publique
    return {
        "api_base_url": API_BASE_URL,
        "stripe_configured": bool(STRIPE_PUBLIC_KEY),
        "currency": CHECKOUT_CURRENCY,
    }

"""
Lifespan FastAPI: initialisation/arrêt des ressources partagées.
- Registre des sessions de checkout (app.state.checkout_registry), conservé s'il est déjà injecté (tests)
- SDK Stripe préparé au démarrage (aucun retry réseau implicite)
- Client HTTP partagé vers l'API REST fermé à l'arrêt
Variables d'environnement supportées:
  - CHECKOUT_SESSION_TTL_SECONDS: durée de vie d'une session de checkout (défaut 3600)
"""
import os
import logging
from contextlib import asynccontextmanager
from fastapi import FastAPI

from storefront.config import STRIPE_PUBLIC_KEY, API_BASE_URL
from storefront.checkout.service import CheckoutRegistry
from storefront.infra.api_client import close_http_client
from storefront.payments.stripe_client import require_stripe


@asynccontextmanager
async def lifespan(app: FastAPI):
    logger = logging.getLogger("uvicorn.error")
    if getattr(app.state, "checkout_registry", None) is None:
        ttl = float(os.getenv("CHECKOUT_SESSION_TTL_SECONDS", "3600"))
        app.state.checkout_registry = CheckoutRegistry(ttl_seconds=ttl)
    require_stripe()
    if not STRIPE_PUBLIC_KEY:
        logger.warning("STRIPE_PUBLIC_KEY is not set: payment confirmation will fail")
    logger.info("Storefront checkout ready (api=%s)", API_BASE_URL)
    try:
        yield
    finally:
        await close_http_client()
        logger.info("Storefront HTTP client closed")

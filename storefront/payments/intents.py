"""
Création du PaymentIntent via l'API du storefront (qui détient la clé secrète Stripe).
"""
from decimal import Decimal
from typing import Dict, Optional
import logging

from storefront.cart.models import to_minor_units, to_money
from storefront.errors import GatewayError
from storefront.infra.api_client import ApiError, StorefrontApi
from .models import PaymentIntentHandle, intent_id_from_secret

logger = logging.getLogger(__name__)

CREATE_INTENT_PATH = "/payments/create-payment-intent"

# module storefront.payments.intents
class PaymentIntentClient:
    """
    Un seul appel sortant par create_intent(), sans retry interne:
    la décision de réessayer appartient à l'appelant (l'utilisateur resoumet le formulaire).
    """

    def __init__(self, api: StorefrontApi):
        self._api = api

    async def create_intent(
        self,
        amount: Decimal,
        currency: str,
        metadata: Optional[Dict[str, str]] = None,
    ) -> PaymentIntentHandle:
        """
        Demande un PaymentIntent pour `amount` (unité monétaire, 2 décimales).
        Lève GatewayError si: statut non 2xx, success=false, corps sans clientSecret, réseau, timeout.
        """
        amount = to_money(amount)
        if amount <= 0:
            raise GatewayError("Invalid payment amount")
        currency = (currency or "").lower()

        payload = {"amount": float(amount), "currency": currency, "metadata": metadata or {}}
        try:
            data = await self._api.post(CREATE_INTENT_PATH, json=payload)
        except ApiError as e:
            retryable = e.network or (e.status_code or 0) >= 500
            logger.warning(
                "payments.intents.create_intent failed status=%s timeout=%s msg=%s",
                e.status_code, e.timeout, e.message,
            )
            if e.timeout:
                raise GatewayError("Payment service timed out. Please try again.", retryable=True) from e
            raise GatewayError(
                f"Failed to initialize payment: {e.message}",
                retryable=retryable,
                status_code=e.status_code,
            ) from e

        secret = data.get("clientSecret") if isinstance(data, dict) else None
        if not secret or not isinstance(secret, str):
            logger.error("payments.intents.create_intent malformed response keys=%s", list(data or {}) if isinstance(data, dict) else type(data))
            raise GatewayError("Failed to initialize payment: malformed response from payment service")

        intent_id = str(data.get("paymentIntentId") or intent_id_from_secret(secret))
        handle = PaymentIntentHandle(
            client_secret=secret,
            payment_intent_id=intent_id,
            amount=amount,
            amount_minor=to_minor_units(amount),
            currency=currency,
        )
        logger.info("payments.intents.create_intent ok intent=%s amount=%s currency=%s", intent_id, amount, currency)
        return handle

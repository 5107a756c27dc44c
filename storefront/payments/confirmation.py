"""
Confirmation du paiement côté client: traduit les statuts Stripe en issues du checkout.

- succeeded / processing -> ConfirmedPayment
- requires_action -> RequiresAction (non fatal, l'utilisateur doit compléter le challenge)
- requires_payment_method / canceled / erreur SDK -> PaymentError (raison Stripe affichée telle quelle)
"""
import asyncio
from typing import Any, Dict, Union
import logging

import stripe

from storefront.config import CHECKOUT_STEP_TIMEOUT_SECONDS
from storefront.errors import PaymentError
from . import stripe_client
from .models import ConfirmedPayment, PaymentDetails, PaymentIntentHandle, RequiresAction

logger = logging.getLogger(__name__)

CONFIRMED_STATUSES = ("succeeded", "processing")
UNEXPECTED_STATE = "payment_intent_unexpected_state"

ConfirmationOutcome = Union[ConfirmedPayment, RequiresAction]


class IntentCanceledError(PaymentError):
    """L'intent n'est plus utilisable: une nouvelle tentative doit repartir d'un intent neuf."""


def _failure_message(intent: Dict[str, Any]) -> str:
    err = intent.get("last_payment_error") or {}
    return str(err.get("message") or "Your payment was declined")


# module storefront.payments.confirmation
class PaymentConfirmation:
    """
    Pilote la confirmation d'un PaymentIntent existant.
    Plusieurs confirmations successives sur le même handle sont permises par la passerelle.
    """

    def __init__(self, timeout: float = CHECKOUT_STEP_TIMEOUT_SECONDS):
        self._timeout = timeout

    def _outcome(self, handle: PaymentIntentHandle, intent: Dict[str, Any], details: Union[PaymentDetails, None]) -> ConfirmationOutcome:
        status = str(intent.get("status") or "")
        intent_id = str(intent.get("id") or handle.payment_intent_id)
        if status in CONFIRMED_STATUSES:
            return ConfirmedPayment(
                payment_intent_id=intent_id,
                status=status,
                amount_minor=int(intent.get("amount") or handle.amount_minor),
                currency=str(intent.get("currency") or handle.currency),
                payment_method=(details.payment_method if details else intent.get("payment_method")),
            )
        if status == "requires_action":
            return RequiresAction(payment_intent_id=intent_id, next_action=intent.get("next_action") or {})
        if status == "canceled":
            raise IntentCanceledError("This payment was canceled. Please start the checkout again.")
        raise PaymentError(_failure_message(intent))

    async def _call(self, fn, **kwargs) -> Dict[str, Any]:
        try:
            return await asyncio.wait_for(asyncio.to_thread(fn, **kwargs), timeout=self._timeout)
        except asyncio.TimeoutError as e:
            raise PaymentError("Payment confirmation timed out. Please try again.", code="timeout") from e

    async def confirm(self, handle: PaymentIntentHandle, details: PaymentDetails) -> ConfirmationOutcome:
        """
        Confirme `handle` avec la méthode de paiement fournie par le widget Stripe.
        Si la passerelle signale un intent déjà confirmé (ex: réponse précédente perdue),
        relit l'intent et retourne son issue réelle plutôt qu'une erreur.
        """
        try:
            intent = await self._call(
                stripe_client.confirm_intent,
                client_secret=handle.client_secret,
                payment_method=details.payment_method,
                return_url=details.return_url,
            )
        except stripe.CardError as e:
            logger.info("payments.confirmation.confirm declined intent=%s code=%s", handle.payment_intent_id, e.code)
            raise PaymentError(
                e.user_message or str(e),
                code=e.code,
                decline_code=getattr(e, "decline_code", None),
            ) from e
        except stripe.StripeError as e:
            if e.code == UNEXPECTED_STATE:
                logger.warning("payments.confirmation.confirm unexpected state intent=%s, re-reading", handle.payment_intent_id)
                return await self.refresh(handle)
            logger.exception("payments.confirmation.confirm failed intent=%s", handle.payment_intent_id)
            raise PaymentError(e.user_message or "Payment failed. Please try again.", code=e.code) from e

        outcome = self._outcome(handle, intent, details)
        logger.info("payments.confirmation.confirm intent=%s status=%s", handle.payment_intent_id, intent.get("status"))
        return outcome

    async def refresh(self, handle: PaymentIntentHandle) -> ConfirmationOutcome:
        """Relit l'intent (après un challenge 3-D Secure) et retourne son issue."""
        try:
            intent = await self._call(stripe_client.retrieve_intent, client_secret=handle.client_secret)
        except stripe.StripeError as e:
            logger.exception("payments.confirmation.refresh failed intent=%s", handle.payment_intent_id)
            raise PaymentError(e.user_message or "Could not verify your payment. Please try again.", code=e.code) from e
        return self._outcome(handle, intent, None)

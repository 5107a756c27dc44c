"""
Module 'payments' (feature-first): point d'entrée public.
Réunit types de la passerelle, metadata, client Stripe, création et confirmation d'intent.
"""

from .models import (
    PaymentIntentHandle,
    PaymentDetails,
    ConfirmedPayment,
    RequiresAction,
    intent_id_from_secret,
)
from .metadata import make_intent_metadata
from .stripe_client import require_stripe, confirm_intent, retrieve_intent
from .intents import PaymentIntentClient
from .confirmation import PaymentConfirmation, IntentCanceledError

__all__ = [
    # models
    "PaymentIntentHandle",
    "PaymentDetails",
    "ConfirmedPayment",
    "RequiresAction",
    "intent_id_from_secret",
    # metadata
    "make_intent_metadata",
    # stripe
    "require_stripe",
    "confirm_intent",
    "retrieve_intent",
    # services
    "PaymentIntentClient",
    "PaymentConfirmation",
    "IntentCanceledError",
]

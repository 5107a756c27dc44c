"""
Module 'checkout' (feature-first): point d'entrée public.
Réunit formulaire, soumission de commande, orchestrateur et registre de sessions.
"""

from storefront.errors import (
    CheckoutError,
    ValidationError,
    GatewayError,
    PaymentError,
    OrderError,
    EmptyCartError,
)
from .models import (
    SubmissionState,
    TERMINAL_STATES,
    ContactInfo,
    Address,
    CheckoutForm,
    ValidatedForm,
    OrderRequest,
    OrderRecord,
    TransitionEvent,
)
from .form import validate, prefill_form, clear_form, import_profile, import_address, saved_address_options
from .orders import OrderSubmitter, build_order_request, to_payload, support_message
from .orchestrator import CheckoutOrchestrator
from .service import build_orchestrator, CheckoutRegistry, CheckoutSession

__all__ = [
    # errors
    "CheckoutError",
    "ValidationError",
    "GatewayError",
    "PaymentError",
    "OrderError",
    "EmptyCartError",
    # models
    "SubmissionState",
    "TERMINAL_STATES",
    "ContactInfo",
    "Address",
    "CheckoutForm",
    "ValidatedForm",
    "OrderRequest",
    "OrderRecord",
    "TransitionEvent",
    # form
    "validate",
    "prefill_form",
    "clear_form",
    "import_profile",
    "import_address",
    "saved_address_options",
    # orders
    "OrderSubmitter",
    "build_order_request",
    "to_payload",
    "support_message",
    # services
    "CheckoutOrchestrator",
    "build_orchestrator",
    "CheckoutRegistry",
    "CheckoutSession",
]

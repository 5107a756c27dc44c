"""
Types du checkout: formulaire, états de soumission, requête et résultat de commande.
"""
from enum import Enum
from typing import Any, Dict, FrozenSet, Optional
from pydantic import BaseModel, ConfigDict, Field

from storefront.config import CHECKOUT_DEFAULT_COUNTRY
from storefront.cart.models import CartSnapshot, PriceBreakdown
from storefront.payments.models import ConfirmedPayment


class SubmissionState(str, Enum):
    IDLE = "idle"
    FORM_VALIDATED = "form_validated"
    AWAITING_PAYMENT_INTENT = "awaiting_payment_intent"
    COLLECTING_PAYMENT = "collecting_payment"
    CONFIRMING_PAYMENT = "confirming_payment"
    SUBMITTING_ORDER = "submitting_order"
    COMPLETED = "completed"
    PAYMENT_FAILED = "payment_failed"
    ORDER_FAILED = "order_failed"


TERMINAL_STATES: FrozenSet[SubmissionState] = frozenset([
    SubmissionState.COMPLETED,
    SubmissionState.PAYMENT_FAILED,
    SubmissionState.ORDER_FAILED,
])


class ContactInfo(BaseModel):
    first_name: str = ""
    last_name: str = ""
    email: str = ""
    phone: str = ""


class Address(BaseModel):
    address: str = ""
    city: str = ""
    postcode: str = ""
    country: str = CHECKOUT_DEFAULT_COUNTRY


class CheckoutForm(BaseModel):
    """
    Formulaire de checkout, tel que saisi (non validé, éventuellement partiel).
    billing_address n'est lu que si billing_same_as_shipping est False.
    """
    contact: ContactInfo = Field(default_factory=ContactInfo)
    shipping_address: Address = Field(default_factory=Address)
    billing_same_as_shipping: bool = True
    billing_address: Optional[Address] = None
    save_payment: bool = False
    newsletter: bool = False


class ValidatedForm(BaseModel):
    model_config = ConfigDict(frozen=True)

    contact: ContactInfo
    shipping_address: Address
    billing_address: Optional[Address] = None
    save_payment: bool = False
    newsletter: bool = False
    warnings: Dict[str, str] = Field(default_factory=dict)


class OrderRequest(BaseModel):
    """
    Requête de création de commande, construite une seule fois juste avant la soumission.
    Ne contient jamais de donnée carte: seulement la référence du PaymentIntent.
    """
    model_config = ConfigDict(frozen=True)

    form: ValidatedForm
    cart: CartSnapshot
    breakdown: PriceBreakdown
    payment: ConfirmedPayment
    idempotency_key: str
    payment_method: str = "stripe"


class OrderRecord(BaseModel):
    model_config = ConfigDict(frozen=True)

    order_number: str
    order_id: Optional[str] = None
    status: Optional[str] = None


class TransitionEvent(BaseModel):
    model_config = ConfigDict(frozen=True)

    previous: SubmissionState
    current: SubmissionState
    message: Optional[str] = None
    detail: Dict[str, Any] = Field(default_factory=dict)

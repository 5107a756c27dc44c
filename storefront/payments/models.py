"""
Types de la passerelle de paiement (PaymentIntent Stripe, confirmation côté client).
"""
import re
from decimal import Decimal
from typing import Any, Dict, Optional
from pydantic import BaseModel, ConfigDict, Field, field_validator

SECRET_SEPARATOR = "_secret_"
_CARD_LIKE = re.compile(r"^[\d\s-]{12,}$")


def intent_id_from_secret(client_secret: str) -> str:
    """'pi_123_secret_abc' -> 'pi_123' (format des client secrets Stripe)."""
    return (client_secret or "").split(SECRET_SEPARATOR, 1)[0]


class PaymentIntentHandle(BaseModel):
    model_config = ConfigDict(frozen=True)

    client_secret: str
    payment_intent_id: str
    amount: Decimal
    amount_minor: int
    currency: str


class PaymentDetails(BaseModel):
    """
    Détails de paiement transmis à la confirmation.
    - payment_method: référence 'pm_...' produite par le widget Stripe (Elements)
    - return_url: URL de retour après un challenge 3-D Secure
    Un numéro de carte brut est refusé: il ne doit jamais transiter par ce client.
    """
    model_config = ConfigDict(frozen=True)

    payment_method: str
    return_url: Optional[str] = None

    @field_validator("payment_method")
    @classmethod
    def _gateway_reference_only(cls, v: str) -> str:
        v = (v or "").strip()
        if _CARD_LIKE.match(v):
            raise ValueError("raw card data is not accepted, use the payment widget")
        if not v.startswith("pm_"):
            raise ValueError("payment_method must be a gateway payment method id (pm_...)")
        return v


class ConfirmedPayment(BaseModel):
    model_config = ConfigDict(frozen=True)

    payment_intent_id: str
    status: str
    amount_minor: int
    currency: str
    payment_method: Optional[str] = None


class RequiresAction(BaseModel):
    """Issue non fatale: une étape utilisateur (ex: 3-D Secure) est requise avant le débit."""
    model_config = ConfigDict(frozen=True)

    payment_intent_id: str
    next_action: Dict[str, Any] = Field(default_factory=dict)
    message: str = "Additional authentication is required to complete your payment"

    @property
    def redirect_url(self) -> Optional[str]:
        redirect = (self.next_action or {}).get("redirect_to_url") or {}
        return redirect.get("url") if isinstance(redirect, dict) else None

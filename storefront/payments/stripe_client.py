"""
Adaptateur Stripe: centralise les appels au SDK (clé publique uniquement).
"""
import stripe
from typing import Any, Dict, Optional

from storefront.config import STRIPE_PUBLIC_KEY
from .models import intent_id_from_secret

# module storefront.payments.stripe_client
def require_stripe() -> stripe:
    """
    Prépare et retourne le module stripe prêt à l'emploi.
    - Aucun retry réseau implicite du SDK: un retry éventuel est décidé par l'utilisateur.
    - La clé publique est passée à chaque appel (jamais de clé secrète côté client).
    """
    stripe.max_network_retries = 0
    return stripe


def _to_dict(obj: Any) -> Dict[str, Any]:
    if hasattr(obj, "to_dict"):
        return obj.to_dict()
    return dict(obj)


def confirm_intent(
    *,
    client_secret: str,
    payment_method: str,
    return_url: Optional[str] = None,
) -> Dict[str, Any]:
    """
    Confirme un PaymentIntent comme le fait Stripe.js (client secret + clé publique).
    Retour: dict intent incluant "id", "status", "next_action", "last_payment_error".
    Les erreurs SDK (stripe.StripeError et sous-classes) sont propagées.
    """
    require_stripe()
    params: Dict[str, Any] = {"client_secret": client_secret, "payment_method": payment_method}
    if return_url:
        params["return_url"] = return_url
    intent = stripe.PaymentIntent.confirm(
        intent_id_from_secret(client_secret),
        api_key=STRIPE_PUBLIC_KEY or None,
        **params,
    )
    return _to_dict(intent)


def retrieve_intent(client_secret: str) -> Dict[str, Any]:
    """
    Relit un PaymentIntent (ex: après un challenge 3-D Secure).
    Retour: dict intent incluant "id", "status".
    """
    require_stripe()
    intent = stripe.PaymentIntent.retrieve(
        intent_id_from_secret(client_secret),
        api_key=STRIPE_PUBLIC_KEY or None,
        client_secret=client_secret,
    )
    return _to_dict(intent)

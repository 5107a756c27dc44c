"""
Soumission de la commande après un paiement confirmé.
- build_order_request: assemble la requête (une seule fois, juste avant l'envoi)
- OrderSubmitter.submit: POST /orders avec l'en-tête Idempotency-Key, jamais réessayé
"""
from typing import Any, Dict, Optional
import logging

from storefront.cart.models import CartSnapshot, PriceBreakdown
from storefront.cart.pricing import to_order_items
from storefront.errors import OrderError
from storefront.infra.api_client import ApiError, StorefrontApi
from storefront.payments.models import ConfirmedPayment
from .models import Address, OrderRecord, OrderRequest, ValidatedForm

logger = logging.getLogger(__name__)

ORDERS_PATH = "/orders"
IDEMPOTENCY_HEADER = "Idempotency-Key"


def support_message(payment_reference: Optional[str], support_email: str) -> str:
    """Message affiché quand le paiement a réussi mais que la commande n'a pas été créée."""
    ref = payment_reference or "unknown"
    return (
        "Your payment was received but we could not create your order. "
        f"Please contact {support_email} with your payment reference {ref}. "
        "Do not place the order again."
    )


def build_order_request(
    form: ValidatedForm,
    cart: CartSnapshot,
    breakdown: PriceBreakdown,
    payment: ConfirmedPayment,
    idempotency_key: str,
) -> OrderRequest:
    return OrderRequest(
        form=form,
        cart=cart,
        breakdown=breakdown,
        payment=payment,
        idempotency_key=idempotency_key,
    )


def _address_payload(address: Address, form: ValidatedForm) -> Dict[str, Any]:
    return {
        "firstName": form.contact.first_name,
        "lastName": form.contact.last_name,
        "address": address.address,
        "city": address.city,
        "postcode": address.postcode,
        "country": address.country,
    }


# module storefront.checkout.orders
def to_payload(request: OrderRequest) -> Dict[str, Any]:
    """
    Corps JSON de POST /orders.
    {items[], shippingAddress, billingAddress|null, paymentMethod{method, amount, paymentIntentId},
     subtotal, tax, shipping, total, contactInfo, preferences}
    """
    form = request.form
    breakdown = request.breakdown
    billing = _address_payload(form.billing_address, form) if form.billing_address else None
    return {
        "items": to_order_items(request.cart),
        "shippingAddress": _address_payload(form.shipping_address, form),
        "billingAddress": billing,
        "contactInfo": {"email": form.contact.email, "phone": form.contact.phone},
        "paymentMethod": {
            "method": request.payment_method,
            "amount": float(breakdown.total),
            "paymentIntentId": request.payment.payment_intent_id,
        },
        **breakdown.as_dict(),
        "preferences": {"savePayment": form.save_payment, "newsletter": form.newsletter},
    }


class OrderSubmitter:
    """
    Crée la commande. Toute erreur après un paiement confirmé devient OrderError:
    l'appelant ne doit ni réessayer automatiquement ni annoncer un échec de paiement.
    """

    def __init__(self, api: StorefrontApi):
        self._api = api

    async def submit(self, request: OrderRequest) -> OrderRecord:
        ref = request.payment.payment_intent_id
        try:
            data = await self._api.post(
                ORDERS_PATH,
                json=to_payload(request),
                headers={IDEMPOTENCY_HEADER: request.idempotency_key},
            )
        except ApiError as e:
            logger.error(
                "checkout.orders.submit failed payment=%s status=%s timeout=%s msg=%s",
                ref, e.status_code, e.timeout, e.message,
            )
            raise OrderError(e.message, payment_reference=ref, timeout=e.timeout, status_code=e.status_code) from e

        data = data if isinstance(data, dict) else {}
        order = data.get("order") if isinstance(data.get("order"), dict) else data
        order_number = order.get("orderNumber") or order.get("order_number")
        if not order_number:
            logger.error("checkout.orders.submit missing orderNumber payment=%s keys=%s", ref, list(order))
            raise OrderError("Order response did not include an order number", payment_reference=ref)

        record = OrderRecord(
            order_number=str(order_number),
            order_id=str(order.get("_id") or order.get("id") or order.get("orderId") or "") or None,
            status=order.get("status"),
        )
        logger.info("checkout.orders.submit ok order=%s payment=%s", record.order_number, ref)
        return record

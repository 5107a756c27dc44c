import time
from decimal import Decimal

import pytest
import stripe

from storefront.errors import PaymentError
from storefront.payments.confirmation import IntentCanceledError, PaymentConfirmation
from storefront.payments.models import ConfirmedPayment, PaymentDetails, PaymentIntentHandle, RequiresAction

HANDLE = PaymentIntentHandle(
    client_secret="pi_1_secret_abc",
    payment_intent_id="pi_1",
    amount=Decimal("958.80"),
    amount_minor=95880,
    currency="gbp",
)
DETAILS = PaymentDetails(payment_method="pm_card_visa", return_url="https://shop.test/checkout")


def _patch_confirm(monkeypatch, fn):
    monkeypatch.setattr("storefront.payments.stripe_client.confirm_intent", fn)


@pytest.mark.asyncio
async def test_confirm_succeeded(monkeypatch):
    seen = {}

    def fake_confirm(**kwargs):
        seen.update(kwargs)
        return {"id": "pi_1", "status": "succeeded", "amount": 95880, "currency": "gbp"}

    _patch_confirm(monkeypatch, fake_confirm)
    outcome = await PaymentConfirmation().confirm(HANDLE, DETAILS)
    assert isinstance(outcome, ConfirmedPayment)
    assert outcome.payment_intent_id == "pi_1"
    assert outcome.payment_method == "pm_card_visa"
    assert seen == {"client_secret": "pi_1_secret_abc", "payment_method": "pm_card_visa", "return_url": "https://shop.test/checkout"}


@pytest.mark.asyncio
async def test_confirm_processing_counts_as_confirmed(monkeypatch):
    _patch_confirm(monkeypatch, lambda **kw: {"id": "pi_1", "status": "processing"})
    outcome = await PaymentConfirmation().confirm(HANDLE, DETAILS)
    assert isinstance(outcome, ConfirmedPayment)
    assert outcome.amount_minor == 95880


@pytest.mark.asyncio
async def test_confirm_requires_action(monkeypatch):
    next_action = {"type": "redirect_to_url", "redirect_to_url": {"url": "https://hooks.stripe.test/3ds"}}
    _patch_confirm(monkeypatch, lambda **kw: {"id": "pi_1", "status": "requires_action", "next_action": next_action})
    outcome = await PaymentConfirmation().confirm(HANDLE, DETAILS)
    assert isinstance(outcome, RequiresAction)
    assert outcome.redirect_url == "https://hooks.stripe.test/3ds"


@pytest.mark.asyncio
async def test_confirm_declined_keeps_gateway_reason(monkeypatch):
    _patch_confirm(monkeypatch, lambda **kw: {
        "id": "pi_1",
        "status": "requires_payment_method",
        "last_payment_error": {"message": "Your card has insufficient funds."},
    })
    with pytest.raises(PaymentError) as exc:
        await PaymentConfirmation().confirm(HANDLE, DETAILS)
    assert exc.value.message == "Your card has insufficient funds."


@pytest.mark.asyncio
async def test_confirm_card_error(monkeypatch):
    def fake_confirm(**kw):
        raise stripe.CardError("Your card was declined.", None, "card_declined")

    _patch_confirm(monkeypatch, fake_confirm)
    with pytest.raises(PaymentError) as exc:
        await PaymentConfirmation().confirm(HANDLE, DETAILS)
    assert exc.value.message == "Your card was declined."
    assert exc.value.code == "card_declined"


@pytest.mark.asyncio
async def test_confirm_canceled(monkeypatch):
    _patch_confirm(monkeypatch, lambda **kw: {"id": "pi_1", "status": "canceled"})
    with pytest.raises(IntentCanceledError):
        await PaymentConfirmation().confirm(HANDLE, DETAILS)


@pytest.mark.asyncio
async def test_confirm_unexpected_state_rereads_intent(monkeypatch):
    def fake_confirm(**kw):
        raise stripe.InvalidRequestError("already succeeded", None, code="payment_intent_unexpected_state")

    _patch_confirm(monkeypatch, fake_confirm)
    monkeypatch.setattr(
        "storefront.payments.stripe_client.retrieve_intent",
        lambda client_secret: {"id": "pi_1", "status": "succeeded"},
    )
    outcome = await PaymentConfirmation().confirm(HANDLE, DETAILS)
    assert isinstance(outcome, ConfirmedPayment)
    assert outcome.status == "succeeded"


@pytest.mark.asyncio
async def test_confirm_timeout(monkeypatch):
    def slow(**kw):
        time.sleep(0.2)
        return {"id": "pi_1", "status": "succeeded"}

    _patch_confirm(monkeypatch, slow)
    with pytest.raises(PaymentError) as exc:
        await PaymentConfirmation(timeout=0.01).confirm(HANDLE, DETAILS)
    assert exc.value.code == "timeout"


def test_payment_details_rejects_raw_card_numbers():
    with pytest.raises(ValueError):
        PaymentDetails(payment_method="4242 4242 4242 4242")
    with pytest.raises(ValueError):
        PaymentDetails(payment_method="tok_visa")

from decimal import Decimal

import pytest

from storefront.errors import GatewayError
from storefront.infra.api_client import ApiError
from storefront.payments.intents import PaymentIntentClient, CREATE_INTENT_PATH


class _Api:
    def __init__(self, result=None, error=None):
        self.result = result
        self.error = error
        self.calls = []

    async def post(self, path, **kwargs):
        self.calls.append((path, kwargs))
        if self.error:
            raise self.error
        return self.result


@pytest.mark.asyncio
async def test_create_intent_returns_handle():
    api = _Api({"clientSecret": "pi_42_secret_xyz"})
    handle = await PaymentIntentClient(api).create_intent(Decimal("958.80"), "GBP", {"itemCount": "2"})
    assert handle.client_secret == "pi_42_secret_xyz"
    assert handle.payment_intent_id == "pi_42"
    assert handle.amount == Decimal("958.80")
    assert handle.amount_minor == 95880
    assert handle.currency == "gbp"
    path, kwargs = api.calls[0]
    assert path == CREATE_INTENT_PATH
    assert kwargs["json"] == {"amount": 958.8, "currency": "gbp", "metadata": {"itemCount": "2"}}


@pytest.mark.asyncio
async def test_create_intent_single_call_on_failure():
    api = _Api(error=ApiError("boom", status_code=500))
    with pytest.raises(GatewayError) as exc:
        await PaymentIntentClient(api).create_intent(Decimal("10"), "gbp")
    assert exc.value.retryable is True
    assert exc.value.status_code == 500
    assert len(api.calls) == 1


@pytest.mark.asyncio
async def test_create_intent_client_error_not_retryable():
    api = _Api(error=ApiError("Amount too small", status_code=400))
    with pytest.raises(GatewayError) as exc:
        await PaymentIntentClient(api).create_intent(Decimal("10"), "gbp")
    assert exc.value.retryable is False
    assert "Amount too small" in exc.value.message


@pytest.mark.asyncio
async def test_create_intent_timeout():
    api = _Api(error=ApiError("The request timed out", timeout=True))
    with pytest.raises(GatewayError) as exc:
        await PaymentIntentClient(api).create_intent(Decimal("10"), "gbp")
    assert exc.value.retryable is True


@pytest.mark.asyncio
async def test_create_intent_missing_secret():
    with pytest.raises(GatewayError):
        await PaymentIntentClient(_Api({"paymentIntentId": "pi_1"})).create_intent(Decimal("10"), "gbp")


@pytest.mark.asyncio
async def test_create_intent_rejects_non_positive_amount():
    api = _Api({"clientSecret": "pi_1_secret_a"})
    with pytest.raises(GatewayError):
        await PaymentIntentClient(api).create_intent(Decimal("0"), "gbp")
    assert api.calls == []


@pytest.mark.asyncio
async def test_create_intent_minor_units_match_breakdown_rounding():
    from storefront.cart.models import PriceBreakdown

    api = _Api({"clientSecret": "pi_7_secret_q"})
    handle = await PaymentIntentClient(api).create_intent(Decimal("19.995"), "gbp")
    breakdown = PriceBreakdown(subtotal=Decimal("20.00"), tax=Decimal("0"), shipping=Decimal("0"), total=handle.amount)
    assert handle.amount == Decimal("20.00")
    assert handle.amount_minor == 2000 == breakdown.amount_minor_units

import asyncio
from decimal import Decimal
from typing import Any, Dict, List, Optional

import pytest
from fastapi.testclient import TestClient

from storefront.app_setup.factory import create_app
from storefront.cart.models import CartLine, CartSnapshot, to_minor_units
from storefront.checkout.models import Address, CheckoutForm, ContactInfo, OrderRecord
from storefront.checkout.orchestrator import CheckoutOrchestrator
from storefront.checkout.service import CheckoutRegistry
from storefront.payments.models import ConfirmedPayment, PaymentIntentHandle

# Marquage automatique selon le dossier
def pytest_collection_modifyitems(config, items):
    for item in items:
        nodeid = item.nodeid.replace("\\", "/")
        if "/tests/unit/" in nodeid or nodeid.startswith("tests/unit/"):
            item.add_marker(pytest.mark.unit)
        elif "/tests/integration/" in nodeid or nodeid.startswith("tests/integration/"):
            item.add_marker(pytest.mark.integration)


# --- Collaborateurs factices de l'orchestrateur -------------------------------

class FakeCartReader:
    def __init__(self, cart: Optional[CartSnapshot] = None, error: Optional[Exception] = None):
        self.cart = cart
        self.error = error
        self.clear_error: Optional[Exception] = None
        self.snapshot_calls = 0
        self.clear_calls = 0

    async def snapshot(self) -> CartSnapshot:
        self.snapshot_calls += 1
        if self.error:
            raise self.error
        return self.cart

    async def clear(self) -> None:
        self.clear_calls += 1
        if self.clear_error:
            raise self.clear_error


class FakeProfileReader:
    def __init__(self, profile=None, addresses=None, error: Optional[Exception] = None):
        self.profile = profile or {}
        self.addresses = addresses or []
        self.error = error

    async def load(self):
        if self.error:
            raise self.error
        return self.profile, self.addresses


class FakeIntents:
    """create_intent: lève `error` si défini, sinon retourne un handle; `gate` bloque l'appel."""

    def __init__(self):
        self.calls: List[Dict[str, Any]] = []
        self.error: Optional[Exception] = None
        self.gate: Optional[asyncio.Event] = None

    async def create_intent(self, amount, currency, metadata=None):
        self.calls.append({"amount": amount, "currency": currency, "metadata": metadata})
        if self.gate is not None:
            await self.gate.wait()
        if self.error:
            raise self.error
        n = len(self.calls)
        return PaymentIntentHandle(
            client_secret=f"pi_{n}_secret_abc",
            payment_intent_id=f"pi_{n}",
            amount=Decimal(str(amount)),
            amount_minor=to_minor_units(amount),
            currency=currency,
        )


class FakeConfirmation:
    """Rejoue `outcomes` dans l'ordre (une Exception est levée, le reste est retourné)."""

    def __init__(self, *outcomes):
        self.outcomes = list(outcomes)
        self.confirm_calls: List[Any] = []
        self.refresh_calls: List[Any] = []
        self.gate: Optional[asyncio.Event] = None

    async def _next(self):
        if self.gate is not None:
            await self.gate.wait()
        outcome = self.outcomes.pop(0)
        if isinstance(outcome, Exception):
            raise outcome
        return outcome

    async def confirm(self, handle, details):
        self.confirm_calls.append((handle, details))
        return await self._next()

    async def refresh(self, handle):
        self.refresh_calls.append(handle)
        return await self._next()


class FakeOrders:
    def __init__(self, order_number: str = "ORD-1001"):
        self.order_number = order_number
        self.requests: List[Any] = []
        self.error: Optional[Exception] = None
        self.hang = False
        self.gate: Optional[asyncio.Event] = None

    async def submit(self, request):
        self.requests.append(request)
        if self.hang:
            await asyncio.Event().wait()
        if self.gate is not None:
            await self.gate.wait()
        if self.error:
            raise self.error
        return OrderRecord(order_number=self.order_number, order_id="o-1", status="pending")


def confirmed(intent_id: str = "pi_1") -> ConfirmedPayment:
    return ConfirmedPayment(payment_intent_id=intent_id, status="succeeded", amount_minor=95880, currency="gbp", payment_method="pm_card_visa")


# --- Fixtures -------------------------------------------------------------------

@pytest.fixture
def cart() -> CartSnapshot:
    # 2 × 399.50 = 799.00 -> TVA 159.80 -> total 958.80
    return CartSnapshot(lines=(
        CartLine(product_id="p1", name="Oak Chair", unit_price=Decimal("399.50"), quantity=2, selected_options={"color": "natural"}),
    ))


@pytest.fixture
def valid_form() -> CheckoutForm:
    return CheckoutForm(
        contact=ContactInfo(first_name="John", last_name="Smith", email="john@example.com", phone="+447700900123"),
        shipping_address=Address(address="10 Downing Street", city="London", postcode="SW1A 2AA", country="United Kingdom"),
    )


@pytest.fixture
def fakes(cart):
    class _Fakes:
        pass
    f = _Fakes()
    f.cart_reader = FakeCartReader(cart)
    f.profile_reader = FakeProfileReader(
        {"firstName": "John", "lastName": "Smith", "email": "john@example.com", "phone": "+447700900123"},
        [{"address": "10 Downing Street", "city": "London", "postcode": "SW1A 2AA", "country": "United Kingdom", "isDefault": True}],
    )
    f.intents = FakeIntents()
    f.confirmation = FakeConfirmation(confirmed())
    f.orders = FakeOrders()
    f.navigations = []
    return f


@pytest.fixture
def make_orchestrator(fakes):
    def _make(**overrides) -> CheckoutOrchestrator:
        keys = iter(f"key-{i}" for i in range(1, 100))
        params = dict(
            cart_reader=fakes.cart_reader,
            profile_reader=fakes.profile_reader,
            intents=fakes.intents,
            confirmation=fakes.confirmation,
            orders=fakes.orders,
            navigate=fakes.navigations.append,
            tax_rate=Decimal("0.20"),
            shipping=Decimal("0.00"),
            currency="gbp",
            step_timeout=5,
            support_email="support@example.com",
            confirmation_path="/order-confirmation",
            key_factory=lambda: next(keys),
            strict_countries=[],
        )
        params.update(overrides)
        return CheckoutOrchestrator(**params)
    return _make


@pytest.fixture
def registry(make_orchestrator) -> CheckoutRegistry:
    return CheckoutRegistry(factory=lambda token: make_orchestrator())


@pytest.fixture
def app(registry):
    application = create_app()
    application.state.checkout_registry = registry
    return application


@pytest.fixture
def client(app):
    with TestClient(app) as c:
        yield c


@pytest.fixture
def auth_headers() -> Dict[str, str]:
    return {"Authorization": "Bearer user-token-1"}

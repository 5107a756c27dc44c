"""
Orchestrateur du checkout: machine à états séquentielle, sans dépendance de rendu.

Cas d'usage: formulaire validé -> PaymentIntent -> confirmation -> commande -> panier vidé -> redirection.

Garanties:
- Un seul état, modifié uniquement ici (SubmissionState).
- Un déclencheur reçu hors de son état source, ou pendant une étape en vol, est ignoré
  (double clic = un seul appel). La commande est soumise au plus une fois par paiement confirmé.
- Compteur de génération: un résultat arrivé après abandon() n'est jamais appliqué.
- Panier figé à l'entrée de awaiting_payment_intent, jamais relu ensuite.
- Échec (ou timeout) de création de commande après paiement -> order_failed, jamais de retry.
"""
import asyncio
from decimal import Decimal
from typing import Any, Awaitable, Callable, Dict, List, Optional, Protocol
from uuid import uuid4
import logging

from storefront.cart.models import CartSnapshot, PriceBreakdown
from storefront.cart.pricing import ShippingRate, compute_breakdown
from storefront.config import (
    CHECKOUT_CURRENCY,
    CHECKOUT_FLAT_SHIPPING,
    CHECKOUT_STEP_TIMEOUT_SECONDS,
    CHECKOUT_TAX_RATE,
    ORDER_CONFIRMATION_PATH,
    SUPPORT_EMAIL,
)
from storefront.errors import CheckoutError, GatewayError, OrderError, PaymentError, ValidationError
from storefront.infra.api_client import ApiError
from storefront.payments.confirmation import IntentCanceledError, PaymentConfirmation
from storefront.payments.intents import PaymentIntentClient
from storefront.payments.metadata import make_intent_metadata
from storefront.payments.models import ConfirmedPayment, PaymentDetails, PaymentIntentHandle, RequiresAction
from . import form as form_state
from .models import (
    CheckoutForm,
    OrderRecord,
    SubmissionState,
    TERMINAL_STATES,
    TransitionEvent,
    ValidatedForm,
)
from .orders import OrderSubmitter, build_order_request, support_message

logger = logging.getLogger(__name__)

S = SubmissionState
Listener = Callable[[TransitionEvent], Any]


class CartReader(Protocol):
    async def snapshot(self) -> CartSnapshot: ...
    async def clear(self) -> None: ...


class ProfileReader(Protocol):
    async def load(self) -> Any: ...


class CheckoutOrchestrator:
    def __init__(
        self,
        *,
        cart_reader: CartReader,
        intents: PaymentIntentClient,
        confirmation: PaymentConfirmation,
        orders: OrderSubmitter,
        profile_reader: Optional[ProfileReader] = None,
        navigate: Optional[Callable[[str], Any]] = None,
        tax_rate: Decimal = CHECKOUT_TAX_RATE,
        shipping: Optional[ShippingRate] = CHECKOUT_FLAT_SHIPPING,
        currency: str = CHECKOUT_CURRENCY,
        step_timeout: float = CHECKOUT_STEP_TIMEOUT_SECONDS,
        support_email: str = SUPPORT_EMAIL,
        confirmation_path: str = ORDER_CONFIRMATION_PATH,
        key_factory: Callable[[], str] = lambda: uuid4().hex,
        strict_countries: Optional[List[str]] = None,
    ):
        self._cart_reader = cart_reader
        self._intents = intents
        self._confirmation = confirmation
        self._orders = orders
        self._profile_reader = profile_reader
        self._navigate = navigate
        self._tax_rate = tax_rate
        self._shipping = shipping
        self._currency = currency
        self._timeout = step_timeout
        self._support_email = support_email
        self._confirmation_path = confirmation_path.rstrip("/")
        self._key_factory = key_factory
        self._strict_countries = strict_countries

        self._state = S.IDLE
        self._in_flight = False
        self._generation = 0
        self._abandoned = False
        self._listeners: List[Listener] = []

        self.form = CheckoutForm()
        self._profile: Dict[str, Any] = {}
        self._addresses: List[Dict[str, Any]] = []
        self.field_errors: Dict[str, str] = {}
        self.warnings: Dict[str, str] = {}
        self.message: Optional[str] = None
        self._validated: Optional[ValidatedForm] = None
        self._cart: Optional[CartSnapshot] = None
        self._breakdown: Optional[PriceBreakdown] = None
        self._handle: Optional[PaymentIntentHandle] = None
        self._pending_action: Optional[RequiresAction] = None
        self._payment: Optional[ConfirmedPayment] = None
        self._order: Optional[OrderRecord] = None
        self._idempotency_key: Optional[str] = None
        self._cart_cleared = False
        self.navigation_target: Optional[str] = None
        self.support_reference: Optional[str] = None

    # --- état observable -------------------------------------------------

    @property
    def state(self) -> SubmissionState:
        return self._state

    @property
    def in_flight(self) -> bool:
        return self._in_flight

    @property
    def handle(self) -> Optional[PaymentIntentHandle]:
        return self._handle

    @property
    def order(self) -> Optional[OrderRecord]:
        return self._order

    @property
    def idempotency_key(self) -> Optional[str]:
        return self._idempotency_key

    def subscribe(self, listener: Listener) -> Callable[[], None]:
        """Abonne un rendu aux transitions; retourne la fonction de désabonnement."""
        self._listeners.append(listener)

        def _unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)
        return _unsubscribe

    def _transition(self, new_state: SubmissionState, message: Optional[str] = None, **detail: Any) -> None:
        previous = self._state
        self._state = new_state
        if message is not None:
            self.message = message
        event = TransitionEvent(previous=previous, current=new_state, message=message, detail=detail)
        logger.info("checkout.orchestrator %s -> %s", previous.value, new_state.value)
        for listener in list(self._listeners):
            try:
                listener(event)
            except Exception:
                logger.exception("checkout.orchestrator listener failed on %s", new_state.value)

    # --- garde de ré-entrance -------------------------------------------

    def _begin(self, source: SubmissionState, trigger: str) -> Optional[int]:
        if self._abandoned or self._in_flight or self._state != source:
            logger.info(
                "checkout.orchestrator ignored trigger=%s state=%s in_flight=%s",
                trigger, self._state.value, self._in_flight,
            )
            return None
        self._in_flight = True
        return self._generation

    def _end(self, generation: int) -> None:
        if generation == self._generation:
            self._in_flight = False

    def _stale(self, generation: int) -> bool:
        if generation != self._generation:
            logger.info("checkout.orchestrator dropped result of abandoned step generation=%s", generation)
            return True
        return False

    async def _bounded(self, awaitable: Awaitable[Any]) -> Any:
        return await asyncio.wait_for(awaitable, timeout=self._timeout)

    # --- déclencheurs ----------------------------------------------------

    async def start(self) -> Dict[str, Any]:
        """
        Entrée sur la page: pré-remplit le formulaire (profil, adresse par défaut)
        et calcule un aperçu du prix. Aucun échec ici ne bloque le checkout.
        """
        generation = self._begin(S.IDLE, "start")
        if generation is None:
            return self.snapshot()
        try:
            profile, addresses = {}, []
            if self._profile_reader is not None:
                try:
                    profile, addresses = await self._bounded(self._profile_reader.load())
                except Exception:
                    logger.exception("checkout.orchestrator.start profile prefill failed")
            preview: Optional[PriceBreakdown] = None
            try:
                preview = self._price(await self._bounded(self._cart_reader.snapshot()))
            except (ApiError, CheckoutError, asyncio.TimeoutError) as e:
                logger.warning("checkout.orchestrator.start cart preview failed: %s", e)
                self.message = getattr(e, "message", None) or "Could not load your cart"
            if not self._stale(generation):
                self._profile = profile or {}
                self._addresses = [a for a in (addresses or []) if isinstance(a, dict)]
                if self.form == CheckoutForm():
                    self.form = form_state.prefill_form(self._profile, self._addresses)
                self._breakdown = preview
        finally:
            self._end(generation)
        return self.snapshot()

    async def submit_form(self, form: CheckoutForm) -> bool:
        """
        idle -> form_validated -> awaiting_payment_intent -> collecting_payment.
        Validation en échec: reste idle avec field_errors. Intent en échec: retour idle, formulaire conservé.
        """
        generation = self._begin(S.IDLE, "submit_form")
        if generation is None:
            return False
        try:
            self.form = form
            try:
                validated = form_state.validate(form, self._strict_countries)
            except ValidationError as e:
                self.field_errors = e.field_errors
                self._transition(S.IDLE, e.message, field_errors=e.field_errors)
                return False
            self.field_errors = {}
            self.warnings = dict(validated.warnings)
            self._validated = validated
            self._transition(S.FORM_VALIDATED, "")

            try:
                cart = (await self._bounded(self._cart_reader.snapshot())).freeze()
            except Exception as e:
                if not isinstance(e, (ApiError, CheckoutError, asyncio.TimeoutError)):
                    logger.exception("checkout.orchestrator.submit_form unexpected cart failure")
                if self._stale(generation):
                    return False
                message = getattr(e, "message", None) or "Could not load your cart. Please try again."
                self._transition(S.IDLE, message)
                return False
            if self._stale(generation):
                return False

            self._cart = cart
            self._breakdown = self._price(cart)
            self._idempotency_key = self._key_factory()
            self._handle = None
            self._pending_action = None
            self._transition(S.AWAITING_PAYMENT_INTENT)

            error: Optional[GatewayError] = None
            handle: Optional[PaymentIntentHandle] = None
            try:
                handle = await self._bounded(self._intents.create_intent(
                    self._breakdown.total,
                    self._currency,
                    make_intent_metadata(cart, self._idempotency_key),
                ))
            except asyncio.TimeoutError:
                error = GatewayError("Payment service timed out. Please try again.", retryable=True)
            except GatewayError as e:
                error = e
            except Exception:
                logger.exception("checkout.orchestrator.submit_form unexpected intent failure")
                error = GatewayError("Failed to initialize payment. Please try again.", retryable=True)
            if self._stale(generation):
                return False
            if error is not None:
                logger.warning("checkout.orchestrator.submit_form intent failed: %s", error.message)
                self._cart = None
                self._idempotency_key = None
                self._transition(S.IDLE, error.message, retryable=error.retryable)
                return False

            self._handle = handle
            self._transition(S.COLLECTING_PAYMENT, "")
            return True
        finally:
            self._end(generation)

    async def submit_payment(self, details: PaymentDetails) -> bool:
        """
        collecting_payment -> confirming_payment -> (submitting_order -> completed | order_failed).
        PaymentError: retour collecting_payment avec le même intent.
        """
        generation = self._begin(S.COLLECTING_PAYMENT, "submit_payment")
        if generation is None:
            return False
        try:
            self._transition(S.CONFIRMING_PAYMENT, "")
            return await self._confirm(generation, self._confirmation.confirm(self._handle, details))
        finally:
            self._end(generation)

    async def complete_action(self) -> bool:
        """Après un challenge (3-D Secure): relit l'intent et poursuit le flux."""
        if self._pending_action is None:
            logger.info("checkout.orchestrator ignored trigger=complete_action (no pending action)")
            return False
        generation = self._begin(S.COLLECTING_PAYMENT, "complete_action")
        if generation is None:
            return False
        try:
            self._transition(S.CONFIRMING_PAYMENT, "")
            return await self._confirm(generation, self._confirmation.refresh(self._handle))
        finally:
            self._end(generation)

    def restart(self) -> bool:
        """payment_failed -> idle (intent annulé): le formulaire est conservé, un nouvel intent sera demandé."""
        if self._abandoned or self._in_flight or self._state != S.PAYMENT_FAILED:
            return False
        self._handle = None
        self._cart = None
        self._idempotency_key = None
        self._transition(S.IDLE, "")
        return True

    # --- édition du formulaire (état idle uniquement) -------------------

    def _editable(self, trigger: str) -> bool:
        if self._abandoned or self._in_flight or self._state != S.IDLE:
            logger.info("checkout.orchestrator ignored trigger=%s state=%s", trigger, self._state.value)
            return False
        return True

    def import_profile(self) -> bool:
        """Recopie les coordonnées du profil chargé au démarrage."""
        if not self._editable("import_profile"):
            return False
        self.form = form_state.import_profile(self.form, self._profile)
        self.field_errors = {}
        return True

    def import_address(self, address_id: str) -> bool:
        """Recopie une adresse enregistrée dans l'adresse de livraison."""
        if not self._editable("import_address"):
            return False
        try:
            self.form = form_state.import_address(self.form, self._addresses, address_id)
        except KeyError:
            self.message = "This saved address is no longer available"
            return False
        self.field_errors = {}
        return True

    def clear_form(self) -> bool:
        if not self._editable("clear_form"):
            return False
        self.form = form_state.clear_form()
        self.field_errors = {}
        self.warnings = {}
        return True

    def abandon(self) -> None:
        """Navigation hors du checkout: les résultats en vol seront ignorés."""
        self._generation += 1
        self._in_flight = False
        self._abandoned = True
        logger.info("checkout.orchestrator abandoned state=%s", self._state.value)

    # --- étapes internes -------------------------------------------------

    def _price(self, cart: CartSnapshot) -> PriceBreakdown:
        return compute_breakdown(cart, self._tax_rate, self._shipping, self._currency)

    async def _confirm(self, generation: int, confirming: Awaitable[Any]) -> bool:
        try:
            outcome = await confirming
        except IntentCanceledError as e:
            if self._stale(generation):
                return False
            self._handle = None
            self._pending_action = None
            self._transition(S.PAYMENT_FAILED, e.message)
            return False
        except PaymentError as e:
            if self._stale(generation):
                return False
            self._pending_action = None
            self._transition(S.COLLECTING_PAYMENT, e.message, code=e.code)
            return False
        except Exception:
            logger.exception("checkout.orchestrator.confirm unexpected failure intent=%s", self._handle.payment_intent_id)
            if self._stale(generation):
                return False
            self._pending_action = None
            self._transition(S.COLLECTING_PAYMENT, "Payment failed. Please try again.", code="unexpected")
            return False
        if self._stale(generation):
            return False

        if isinstance(outcome, RequiresAction):
            self._pending_action = outcome
            self._transition(
                S.COLLECTING_PAYMENT,
                outcome.message,
                next_action=outcome.next_action,
                redirect_url=outcome.redirect_url,
            )
            return False

        self._pending_action = None
        self._payment = outcome
        self._transition(S.SUBMITTING_ORDER, "")
        return await self._submit_order(generation)

    async def _submit_order(self, generation: int) -> bool:
        request = build_order_request(
            self._validated, self._cart, self._breakdown, self._payment, self._idempotency_key,
        )
        reference = self._payment.payment_intent_id
        error: Optional[OrderError] = None
        record: Optional[OrderRecord] = None
        try:
            record = await self._bounded(self._orders.submit(request))
        except asyncio.TimeoutError:
            error = OrderError("Order creation timed out", payment_reference=reference, timeout=True)
        except OrderError as e:
            error = e
        except Exception as e:
            logger.exception("checkout.orchestrator.submit_order unexpected failure payment=%s", reference)
            error = OrderError(str(e), payment_reference=reference)
        if self._stale(generation):
            logger.warning("checkout.orchestrator order result ignored after abandon payment=%s", reference)
            return False

        if error is not None:
            self.support_reference = reference
            self._transition(
                S.ORDER_FAILED,
                support_message(reference, self._support_email),
                payment_reference=reference,
                timeout=error.timeout,
            )
            return False

        self._order = record
        try:
            await self._bounded(self._cart_reader.clear())
            self._cart_cleared = True
        except Exception:
            logger.exception("checkout.orchestrator cart clear failed order=%s", record.order_number)
            self.warnings["cart"] = "Your order was placed but your cart could not be emptied"
        self.navigation_target = f"{self._confirmation_path}/{record.order_number}"
        self._transition(S.COMPLETED, "Order placed successfully!", order_number=record.order_number)
        if self._navigate is not None:
            self._navigate(self.navigation_target)
        return True

    # --- vue pour le rendu -----------------------------------------------

    def snapshot(self) -> Dict[str, Any]:
        collecting = self._state in (S.COLLECTING_PAYMENT, S.CONFIRMING_PAYMENT) and self._handle is not None
        return {
            "state": self._state.value,
            "terminal": self._state in TERMINAL_STATES,
            "in_flight": self._in_flight,
            "can_submit_form": self._state == S.IDLE and not self._in_flight and not self._abandoned,
            "can_submit_payment": self._state == S.COLLECTING_PAYMENT and not self._in_flight and not self._abandoned,
            "message": self.message or None,
            "field_errors": dict(self.field_errors),
            "warnings": dict(self.warnings),
            "form": self.form.model_dump(),
            "saved_addresses": form_state.saved_address_options(self._addresses),
            "breakdown": self._breakdown.as_dict() if self._breakdown else None,
            "currency": self._currency,
            "payment": {
                "client_secret": self._handle.client_secret,
                "payment_intent_id": self._handle.payment_intent_id,
                "amount": float(self._handle.amount),
            } if collecting else None,
            "requires_action": {
                "next_action": self._pending_action.next_action,
                "redirect_url": self._pending_action.redirect_url,
            } if self._pending_action else None,
            "order_number": self._order.order_number if self._order else None,
            "navigation_target": self.navigation_target,
            "support_reference": self.support_reference,
            "cart_cleared": self._cart_cleared,
        }

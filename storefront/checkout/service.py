"""
Cas d'usage 'checkout': assemble les collaborateurs réels et garde les sessions actives.
"""
import hashlib
import time
from typing import Callable, Dict, List, Optional
from uuid import uuid4
import logging

import httpx

from storefront.cart.repository import ApiCartReader
from storefront.infra.api_client import StorefrontApi
from storefront.payments.confirmation import PaymentConfirmation
from storefront.payments.intents import PaymentIntentClient
from storefront.profile.repository import ApiProfileReader
from .models import TransitionEvent
from .orchestrator import CheckoutOrchestrator
from .orders import OrderSubmitter

logger = logging.getLogger(__name__)

MAX_EVENTS = 50


def build_orchestrator(user_token: str, client: Optional[httpx.AsyncClient] = None) -> CheckoutOrchestrator:
    """
    Racine de composition: un orchestrateur par session de checkout, lié au token utilisateur.
    Tous les collaborateurs partagent le même StorefrontApi (même Bearer).
    """
    api = StorefrontApi(user_token, client=client)
    return CheckoutOrchestrator(
        cart_reader=ApiCartReader(api),
        profile_reader=ApiProfileReader(api),
        intents=PaymentIntentClient(api),
        confirmation=PaymentConfirmation(),
        orders=OrderSubmitter(api),
    )


def _owner(user_token: str) -> str:
    return hashlib.sha256((user_token or "").encode("utf-8")).hexdigest()


class SessionNotFound(KeyError):
    pass


class SessionForbidden(PermissionError):
    pass


class CheckoutSession:
    def __init__(self, checkout_id: str, owner: str, orchestrator: CheckoutOrchestrator):
        self.checkout_id = checkout_id
        self.owner = owner
        self.orchestrator = orchestrator
        self.created_at = time.monotonic()
        self.events: List[TransitionEvent] = []
        orchestrator.subscribe(self._record)

    def _record(self, event: TransitionEvent) -> None:
        self.events.append(event)
        del self.events[:-MAX_EVENTS]

    def view(self) -> Dict:
        data = self.orchestrator.snapshot()
        data["checkout_id"] = self.checkout_id
        data["events"] = [
            {"from": e.previous.value, "to": e.current.value, "message": e.message}
            for e in self.events
        ]
        return data


class CheckoutRegistry:
    """
    Sessions de checkout en mémoire, une par onglet.
    - Une session n'est accessible qu'avec le token qui l'a créée.
    - Les sessions trop anciennes sont abandonnées puis purgées à chaque création.
    """

    def __init__(
        self,
        factory: Callable[[str], CheckoutOrchestrator] = build_orchestrator,
        ttl_seconds: float = 3600,
    ):
        self._factory = factory
        self._ttl = ttl_seconds
        self._sessions: Dict[str, CheckoutSession] = {}

    def __len__(self) -> int:
        return len(self._sessions)

    def _purge(self) -> None:
        now = time.monotonic()
        for checkout_id, session in list(self._sessions.items()):
            if now - session.created_at > self._ttl:
                session.orchestrator.abandon()
                del self._sessions[checkout_id]
                logger.info("checkout.service purged expired session id=%s", checkout_id)

    def create(self, user_token: str) -> CheckoutSession:
        self._purge()
        checkout_id = uuid4().hex
        session = CheckoutSession(checkout_id, _owner(user_token), self._factory(user_token))
        self._sessions[checkout_id] = session
        logger.info("checkout.service created session id=%s", checkout_id)
        return session

    def get(self, checkout_id: str, user_token: str) -> CheckoutSession:
        session = self._sessions.get(checkout_id)
        if session is None:
            raise SessionNotFound(checkout_id)
        if session.owner != _owner(user_token):
            raise SessionForbidden(checkout_id)
        return session

    def discard(self, checkout_id: str, user_token: str) -> None:
        session = self.get(checkout_id, user_token)
        session.orchestrator.abandon()
        del self._sessions[checkout_id]
        logger.info("checkout.service discarded session id=%s state=%s", checkout_id, session.orchestrator.state.value)

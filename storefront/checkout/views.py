import logging
from typing import Any, Dict

from fastapi import APIRouter, Depends, HTTPException, Request

from storefront.utils.security import require_user_token
from storefront.payments.models import PaymentDetails
from .models import CheckoutForm
from .service import CheckoutRegistry, CheckoutSession, SessionForbidden, SessionNotFound

logger = logging.getLogger(__name__)
router = APIRouter(prefix="/api/v1/checkout", tags=["Checkout API"])


def get_registry(request: Request) -> CheckoutRegistry:
    return request.app.state.checkout_registry


def _session(checkout_id: str, token: str, registry: CheckoutRegistry) -> CheckoutSession:
    try:
        return registry.get(checkout_id, token)
    except SessionNotFound:
        raise HTTPException(status_code=404, detail="Checkout session not found")
    except SessionForbidden:
        raise HTTPException(status_code=403, detail="Checkout session belongs to another user")


def _step_conflict(session: CheckoutSession, flag: str) -> None:
    view = session.orchestrator.snapshot()
    if not view[flag]:
        raise HTTPException(
            status_code=409,
            detail=f"Action not allowed in state '{view['state']}'" + (" (step in progress)" if view["in_flight"] else ""),
        )


# module storefront.checkout.views
@router.post("/start")
async def start_checkout(
    token: str = Depends(require_user_token),
    registry: CheckoutRegistry = Depends(get_registry),
) -> Dict[str, Any]:
    """
    Ouvre une session de checkout (une par onglet).
    - Pré-remplit le formulaire depuis le profil (échec -> formulaire vide)
    - Calcule un aperçu du prix depuis le panier courant
    Réponse: vue de la session (state, form, breakdown, checkout_id, ...)
    """
    session = registry.create(token)
    await session.orchestrator.start()
    return session.view()


@router.get("/{checkout_id}")
async def get_checkout(
    checkout_id: str,
    token: str = Depends(require_user_token),
    registry: CheckoutRegistry = Depends(get_registry),
) -> Dict[str, Any]:
    return _session(checkout_id, token, registry).view()


@router.post("/{checkout_id}/submit")
async def submit_checkout_form(
    checkout_id: str,
    form: CheckoutForm,
    token: str = Depends(require_user_token),
    registry: CheckoutRegistry = Depends(get_registry),
) -> Dict[str, Any]:
    """
    Soumet le formulaire: validation puis création du PaymentIntent.
    - 200 + field_errors si invalide (état idle)
    - 200 + payment.client_secret si prêt pour le widget Stripe (état collecting_payment)
    - 409 si une étape est déjà en cours ou si l'état ne le permet pas
    """
    session = _session(checkout_id, token, registry)
    _step_conflict(session, "can_submit_form")
    await session.orchestrator.submit_form(form)
    return session.view()


@router.post("/{checkout_id}/pay")
async def submit_checkout_payment(
    checkout_id: str,
    details: PaymentDetails,
    token: str = Depends(require_user_token),
    registry: CheckoutRegistry = Depends(get_registry),
) -> Dict[str, Any]:
    """
    Confirme le paiement (référence pm_... issue du widget) puis crée la commande.
    - état completed: navigation_target contient le numéro de commande
    - état collecting_payment: refus (message Stripe) ou challenge requis (requires_action)
    - état order_failed: paiement reçu, commande non créée -> message support
    """
    session = _session(checkout_id, token, registry)
    _step_conflict(session, "can_submit_payment")
    await session.orchestrator.submit_payment(details)
    view = session.view()
    logger.info("checkout.pay state=%s checkout_id=%s", view["state"], checkout_id)
    return view


@router.post("/{checkout_id}/action-complete")
async def complete_checkout_action(
    checkout_id: str,
    token: str = Depends(require_user_token),
    registry: CheckoutRegistry = Depends(get_registry),
) -> Dict[str, Any]:
    """Retour du challenge 3-D Secure: relit l'intent et poursuit."""
    session = _session(checkout_id, token, registry)
    _step_conflict(session, "can_submit_payment")
    if session.orchestrator.snapshot()["requires_action"] is None:
        raise HTTPException(status_code=409, detail="No pending authentication")
    await session.orchestrator.complete_action()
    return session.view()


@router.post("/{checkout_id}/restart")
async def restart_checkout(
    checkout_id: str,
    token: str = Depends(require_user_token),
    registry: CheckoutRegistry = Depends(get_registry),
) -> Dict[str, Any]:
    session = _session(checkout_id, token, registry)
    if not session.orchestrator.restart():
        raise HTTPException(status_code=409, detail="Checkout cannot be restarted")
    return session.view()


@router.post("/{checkout_id}/import-profile")
async def import_checkout_profile(
    checkout_id: str,
    token: str = Depends(require_user_token),
    registry: CheckoutRegistry = Depends(get_registry),
) -> Dict[str, Any]:
    session = _session(checkout_id, token, registry)
    _step_conflict(session, "can_submit_form")
    session.orchestrator.import_profile()
    return session.view()


@router.post("/{checkout_id}/import-address/{address_id}")
async def import_checkout_address(
    checkout_id: str,
    address_id: str,
    token: str = Depends(require_user_token),
    registry: CheckoutRegistry = Depends(get_registry),
) -> Dict[str, Any]:
    """Recopie une adresse enregistrée (voir saved_addresses de la vue) dans l'adresse de livraison."""
    session = _session(checkout_id, token, registry)
    _step_conflict(session, "can_submit_form")
    if not session.orchestrator.import_address(address_id):
        raise HTTPException(status_code=404, detail="Saved address not found")
    return session.view()


@router.post("/{checkout_id}/clear-form")
async def clear_checkout_form(
    checkout_id: str,
    token: str = Depends(require_user_token),
    registry: CheckoutRegistry = Depends(get_registry),
) -> Dict[str, Any]:
    session = _session(checkout_id, token, registry)
    _step_conflict(session, "can_submit_form")
    session.orchestrator.clear_form()
    return session.view()


@router.delete("/{checkout_id}")
async def abandon_checkout(
    checkout_id: str,
    token: str = Depends(require_user_token),
    registry: CheckoutRegistry = Depends(get_registry),
) -> Dict[str, Any]:
    try:
        registry.discard(checkout_id, token)
    except SessionNotFound:
        raise HTTPException(status_code=404, detail="Checkout session not found")
    except SessionForbidden:
        raise HTTPException(status_code=403, detail="Checkout session belongs to another user")
    return {"status": "abandoned", "checkout_id": checkout_id}

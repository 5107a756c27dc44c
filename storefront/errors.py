"""
Taxonomie des erreurs du checkout (partagée par cart, payments et checkout).

- ValidationError: erreurs de champs, corrigeables sur place
- GatewayError: création du PaymentIntent échouée, corrigeable en resoumettant le formulaire
- PaymentError: confirmation refusée, corrigeable en réessayant avec le même intent
- OrderError: commande non créée alors que le paiement a réussi (terminal, support)
- EmptyCartError: panier vide, le checkout ne démarre pas

RequiresAction n'est pas une erreur: c'est une issue de confirmation (voir payments.confirmation).
"""
from typing import Dict, Optional


class CheckoutError(Exception):
    """Base des erreurs du flux de checkout (message toujours affichable)."""

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


class ValidationError(CheckoutError):
    def __init__(self, field_errors: Dict[str, str], message: str = "Please correct the highlighted fields"):
        super().__init__(message)
        self.field_errors = dict(field_errors)


class GatewayError(CheckoutError):
    def __init__(self, message: str, retryable: bool = False, status_code: Optional[int] = None):
        super().__init__(message)
        self.retryable = retryable
        self.status_code = status_code


class PaymentError(CheckoutError):
    def __init__(self, message: str, code: Optional[str] = None, decline_code: Optional[str] = None):
        super().__init__(message)
        self.code = code
        self.decline_code = decline_code


class OrderError(CheckoutError):
    def __init__(self, message: str, payment_reference: Optional[str] = None, timeout: bool = False, status_code: Optional[int] = None):
        super().__init__(message)
        self.payment_reference = payment_reference
        self.timeout = timeout
        self.status_code = status_code


class EmptyCartError(CheckoutError):
    """Panier vide ou sans ligne valide: le checkout ne peut pas démarrer."""

"""
État et validation du formulaire de checkout (pur, synchrone, déterministe).
"""
import re
from typing import Any, Dict, Iterable, List, Optional, Tuple

from storefront.config import CHECKOUT_STRICT_FORMAT_COUNTRIES
from storefront.errors import ValidationError
from .models import Address, CheckoutForm, ContactInfo, ValidatedForm

CONTACT_LABELS = {
    "first_name": "First name",
    "last_name": "Last name",
    "email": "Email",
    "phone": "Phone",
}
ADDRESS_LABELS = {
    "address": "Address",
    "city": "City",
    "postcode": "Postcode",
    "country": "Country",
}

# Formats indicatifs (dépendants du pays): avertissements sauf pays "stricts"
PHONE_RE = re.compile(r"^\+?[1-9]\d{0,15}$")
EMAIL_RE = re.compile(r"^[^@\s]+@[^@\s]+\.[^@\s]+$")
POSTCODE_RE = re.compile(r"^[A-Z0-9\s-]{2,10}$", re.IGNORECASE)
UK_POSTCODE_RE = re.compile(r"^[A-Z]{1,2}\d[A-Z\d]?\s*\d[A-Z]{2}$", re.IGNORECASE)
UK_COUNTRIES = {"united kingdom", "uk", "gb", "great britain"}


def _trimmed(model) -> Dict[str, Any]:
    return {k: (v.strip() if isinstance(v, str) else v) for k, v in model.model_dump().items()}


def _required(prefix: str, values: Dict[str, Any], labels: Dict[str, str], errors: Dict[str, str]) -> None:
    for name, label in labels.items():
        if not values.get(name):
            errors[f"{prefix}.{name}"] = f"{label} is required"


def _format_issues(prefix: str, contact: Optional[Dict[str, Any]], address: Dict[str, Any]) -> List[Tuple[str, str]]:
    issues: List[Tuple[str, str]] = []
    if contact is not None:
        email = contact.get("email") or ""
        if email and not EMAIL_RE.match(email):
            issues.append(("contact.email", "Please enter a valid email address"))
        phone = re.sub(r"[\s().-]", "", contact.get("phone") or "")
        if phone and not PHONE_RE.match(phone):
            issues.append(("contact.phone", "Please enter a valid phone number"))
    postcode = address.get("postcode") or ""
    if postcode:
        uk = (address.get("country") or "").lower() in UK_COUNTRIES
        pattern = UK_POSTCODE_RE if uk else POSTCODE_RE
        if not pattern.match(postcode):
            issues.append((f"{prefix}.postcode", "Please enter a valid postcode"))
    return issues


# module storefront.checkout.form
def validate(form: CheckoutForm, strict_countries: Optional[Iterable[str]] = None) -> ValidatedForm:
    """
    Valide le formulaire et retourne une version normalisée (valeurs trimées).
    - Lève ValidationError avec une erreur par champ requis vide (clé "section.champ").
    - Adresse de facturation exigée seulement si billing_same_as_shipping est False.
    - Formats (email, téléphone, code postal): avertissements dans ValidatedForm.warnings,
      bloquants uniquement si le pays figure dans strict_countries.
    Aucune dépendance réseau: deux appels sur le même formulaire donnent le même résultat.
    """
    strict = {c.lower() for c in (CHECKOUT_STRICT_FORMAT_COUNTRIES if strict_countries is None else strict_countries)}
    errors: Dict[str, str] = {}

    contact = _trimmed(form.contact)
    shipping = _trimmed(form.shipping_address)
    _required("contact", contact, CONTACT_LABELS, errors)
    _required("shipping_address", shipping, ADDRESS_LABELS, errors)

    billing: Optional[Dict[str, Any]] = None
    if not form.billing_same_as_shipping:
        billing = _trimmed(form.billing_address or Address(country=""))
        _required("billing_address", billing, ADDRESS_LABELS, errors)

    warnings: Dict[str, str] = {}
    checks = [("shipping_address", contact, shipping)]
    if billing is not None:
        checks.append(("billing_address", None, billing))
    for prefix, contact_part, address_part in checks:
        country_strict = (address_part.get("country") or "").lower() in strict
        for field, message in _format_issues(prefix, contact_part, address_part):
            if field in errors:
                continue
            if country_strict:
                errors[field] = message
            else:
                warnings[field] = message

    if errors:
        raise ValidationError(errors)

    return ValidatedForm(
        contact=ContactInfo(**contact),
        shipping_address=Address(**shipping),
        billing_address=Address(**billing) if billing is not None else None,
        save_payment=form.save_payment,
        newsletter=form.newsletter,
        warnings=warnings,
    )


def clear_form() -> CheckoutForm:
    return CheckoutForm()


def address_id(addr: Dict[str, Any], index: int) -> str:
    return str(addr.get("_id") or addr.get("id") or index)


def saved_address_options(addresses: Optional[List[Dict[str, Any]]]) -> List[Dict[str, Any]]:
    """Adresses enregistrées proposées à l'import: [{id, label, is_default}]."""
    options = []
    for index, addr in enumerate(addresses or []):
        parts = [str(addr.get(k) or "").strip() for k in ("address", "city", "postcode")]
        options.append({
            "id": address_id(addr, index),
            "label": str(addr.get("label") or ", ".join(p for p in parts if p) or "Address"),
            "is_default": bool(addr.get("isDefault") or addr.get("is_default")),
        })
    return options


def _default_address(addresses: List[Dict[str, Any]]) -> Optional[Dict[str, Any]]:
    if not addresses:
        return None
    for addr in addresses:
        if addr.get("isDefault") or addr.get("is_default"):
            return addr
    return addresses[0]


def to_address(addr: Dict[str, Any]) -> Address:
    return Address(
        address=str(addr.get("address") or addr.get("address1") or addr.get("street") or ""),
        city=str(addr.get("city") or ""),
        postcode=str(addr.get("postcode") or addr.get("zipCode") or addr.get("postalCode") or ""),
        country=str(addr.get("country") or Address().country),
    )


def import_profile(form: CheckoutForm, profile: Optional[Dict[str, Any]]) -> CheckoutForm:
    """Remplace les coordonnées du formulaire par celles du profil (adresses inchangées)."""
    profile = profile or {}
    contact = ContactInfo(
        first_name=str(profile.get("firstName") or profile.get("first_name") or ""),
        last_name=str(profile.get("lastName") or profile.get("last_name") or ""),
        email=str(profile.get("email") or ""),
        phone=str(profile.get("phone") or ""),
    )
    return form.model_copy(update={"contact": contact})


def import_address(form: CheckoutForm, addresses: Optional[List[Dict[str, Any]]], selected_id: str) -> CheckoutForm:
    """
    Copie l'adresse enregistrée `selected_id` dans l'adresse de livraison.
    Lève KeyError si l'identifiant ne correspond à aucune adresse chargée.
    """
    for index, addr in enumerate(addresses or []):
        if address_id(addr, index) == str(selected_id):
            return form.model_copy(update={"shipping_address": to_address(addr)})
    raise KeyError(selected_id)


def prefill_form(profile: Optional[Dict[str, Any]], addresses: Optional[List[Dict[str, Any]]]) -> CheckoutForm:
    """
    Pré-remplit le formulaire depuis le profil et l'adresse par défaut de l'utilisateur.
    Données manquantes -> champs vides (le checkout n'est jamais bloqué par le profil).
    """
    form = import_profile(CheckoutForm(), profile)
    addr = _default_address([a for a in (addresses or []) if isinstance(a, dict)])
    if addr:
        form = form.model_copy(update={"shipping_address": to_address(addr)})
    return form

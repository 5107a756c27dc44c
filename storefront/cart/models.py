"""
Types du panier: lignes, instantané figé et décomposition du prix.
"""
from decimal import Decimal, ROUND_HALF_UP
from typing import Dict, Tuple
from pydantic import BaseModel, ConfigDict, Field, field_validator

CENT = Decimal("0.01")


def to_money(value) -> Decimal:
    """Arrondi monétaire à 2 décimales (ROUND_HALF_UP)."""
    return Decimal(str(value)).quantize(CENT, rounding=ROUND_HALF_UP)


def to_minor_units(value) -> int:
    """Montant en centimes/pence attendu par Stripe (arrondi ROUND_HALF_UP)."""
    return int((to_money(value) * 100).to_integral_value(rounding=ROUND_HALF_UP))


class CartLine(BaseModel):
    model_config = ConfigDict(frozen=True)

    product_id: str
    name: str
    unit_price: Decimal
    quantity: int = Field(ge=1)
    selected_options: Dict[str, str] = Field(default_factory=dict)

    @field_validator("unit_price")
    @classmethod
    def _money(cls, v: Decimal) -> Decimal:
        if v < 0:
            raise ValueError("unit_price must not be negative")
        return to_money(v)

    @property
    def line_total(self) -> Decimal:
        return self.unit_price * self.quantity


class CartSnapshot(BaseModel):
    """
    Vue en lecture seule du panier à un instant donné.
    L'ordre des lignes est conservé tel que fourni par le panier.
    """
    model_config = ConfigDict(frozen=True)

    lines: Tuple[CartLine, ...] = ()

    @property
    def is_empty(self) -> bool:
        return not self.lines

    @property
    def item_count(self) -> int:
        return sum(line.quantity for line in self.lines)

    def freeze(self) -> "CartSnapshot":
        # Copie profonde: les options (dict) ne sont plus partagées avec l'appelant
        return self.model_copy(deep=True)


class PriceBreakdown(BaseModel):
    model_config = ConfigDict(frozen=True)

    subtotal: Decimal
    tax: Decimal
    shipping: Decimal
    total: Decimal
    currency: str = "gbp"

    @property
    def amount_minor_units(self) -> int:
        return to_minor_units(self.total)

    def as_dict(self) -> Dict[str, float]:
        return {
            "subtotal": float(self.subtotal),
            "tax": float(self.tax),
            "shipping": float(self.shipping),
            "total": float(self.total),
        }

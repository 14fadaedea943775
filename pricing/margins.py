"""Margin policy: category inheritance, margin math and floor validation.

Margins are expressed over cost: ``((price - cost) / cost) * 100``.
Category margins that are NULL or zero inherit from the nearest ancestor
that defines one; the root falls back to the system settings.
"""

import logging
from dataclasses import asdict, dataclass
from decimal import ROUND_HALF_UP, Decimal
from typing import Optional

from catalog.selectors import category_chain

from .providers import SettingsProvider, get_settings_provider

logger = logging.getLogger("erpcore.pricing")

DEFAULT_NORMAL_MARGIN = Decimal("25")
DEFAULT_MIN_MARGIN = Decimal("10")

TWO_PLACES = Decimal("0.01")


def to_decimal(value) -> Decimal:
    return value if isinstance(value, Decimal) else Decimal(str(value))


class LowMarginError(Exception):
    """Raised when a price yields a margin below the minimum allowed."""

    def __init__(self, margin: Decimal, minimum: Decimal, product_id: Optional[int] = None):
        super().__init__(f"Margin {margin}% is below the minimum of {minimum}%")
        self.margin = margin
        self.minimum = minimum
        self.product_id = product_id

    def as_dict(self) -> dict:
        return {
            "error": "low_margin",
            "margin": str(self.margin),
            "minimum": str(self.minimum),
            "product_id": self.product_id,
        }


@dataclass(frozen=True)
class MarginCheck:
    passed: bool
    margin: Decimal
    minimum: Decimal
    product_id: Optional[int] = None

    def as_dict(self) -> dict:
        data = asdict(self)
        data["margin"] = str(self.margin)
        data["minimum"] = str(self.minimum)
        return data


def _inherited(category, field: str) -> Optional[Decimal]:
    for node in category_chain(category):
        value = getattr(node, field)
        if value is not None and Decimal(value) != 0:
            return to_decimal(value)
    return None


def effective_min_margin(category, default=None, *, provider: Optional[SettingsProvider] = None) -> Decimal:
    """Minimum margin for ``category``, walking up to the root then to settings."""
    value = _inherited(category, "min_margin_percentage")
    if value is not None:
        return value
    if default is not None:
        return to_decimal(default)
    provider = provider or get_settings_provider()
    return provider.get_decimal("margins", "min_margin_percentage", DEFAULT_MIN_MARGIN)


def effective_normal_margin(category, default=None, *, provider: Optional[SettingsProvider] = None) -> Decimal:
    value = _inherited(category, "normal_margin_percentage")
    if value is not None:
        return value
    if default is not None:
        return to_decimal(default)
    provider = provider or get_settings_provider()
    return provider.get_decimal("margins", "default_margin_percentage", DEFAULT_NORMAL_MARGIN)


def calculate_margin(unit_price, unit_cost) -> Decimal:
    """Percentage margin over cost (2 dp); zero when the cost is not positive."""
    cost = to_decimal(unit_cost)
    if cost <= 0:
        return Decimal("0.00")
    margin = (to_decimal(unit_price) - cost) / cost * 100
    return margin.quantize(TWO_PLACES, rounding=ROUND_HALF_UP)


def suggested_price(cost, target_margin) -> Decimal:
    return (to_decimal(cost) * (1 + to_decimal(target_margin) / 100)).quantize(TWO_PLACES, rounding=ROUND_HALF_UP)


def check_minimum(unit_price, unit_cost, min_margin, product_id: Optional[int] = None) -> MarginCheck:
    margin = calculate_margin(unit_price, unit_cost)
    minimum = to_decimal(min_margin)
    return MarginCheck(passed=margin >= minimum, margin=margin, minimum=minimum, product_id=product_id)


def validate_minimum(
    unit_price,
    unit_cost,
    min_margin,
    *,
    product_id: Optional[int] = None,
    alert_enabled: bool = True,
) -> MarginCheck:
    """Raise ``LowMarginError`` when the floor is violated and alerts are on.

    With alerts disabled the check result is returned unchanged so callers
    can still surface the computed margin.
    """
    result = check_minimum(unit_price, unit_cost, min_margin, product_id=product_id)
    if not result.passed and alert_enabled:
        logger.warning(
            "pricing.low_margin_rejected",
            extra={
                "event": "pricing.low_margin_rejected",
                "product_id": product_id,
                "margin": str(result.margin),
                "minimum": str(result.minimum),
            },
        )
        raise LowMarginError(result.margin, result.minimum, product_id)
    return result


def validate_minimum_for_category(
    unit_price,
    unit_cost,
    category,
    *,
    product_id: Optional[int] = None,
    provider: Optional[SettingsProvider] = None,
) -> MarginCheck:
    provider = provider or get_settings_provider()
    minimum = effective_min_margin(category, provider=provider)
    alert_enabled = provider.get_bool("margins", "alert_low_margin", True)
    return validate_minimum(unit_price, unit_cost, minimum, product_id=product_id, alert_enabled=alert_enabled)

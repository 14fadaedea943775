"""Selectors for read-only cart queries."""

from decimal import Decimal

from django.db.models import DecimalField, F, Sum

from .models import Cart


def get_active_cart_for_user(*, user) -> Cart:
    """Return the user's active cart, creating it if missing."""

    cart, _ = Cart.objects.get_or_create(user=user, status=Cart.STATUS_ACTIVE)
    return cart


def cart_totals(*, cart: Cart):
    """Subtotal and item count in the base currency. Tax is applied at checkout."""

    agg = cart.items.aggregate(
        subtotal=Sum(F("unit_price") * F("quantity"), output_field=DecimalField(max_digits=14, decimal_places=2)),
        units=Sum("quantity"),
    )
    subtotal = agg.get("subtotal") or Decimal("0.00")
    return {
        "subtotal": subtotal,
        "units": int(agg.get("units") or 0),
    }

"""Quotation services: margin-checked lines, totals and the status lifecycle.

Lines are priced in the quotation currency. Unit costs come from the lot
ledger (base currency) and are converted with the quotation's exchange
rate before margins are computed.
"""

import logging
from datetime import timedelta
from decimal import ROUND_HALF_UP, Decimal
from typing import Iterable, Optional

from catalog.models import Product
from common.choices import SourceType
from django.db import transaction
from django.utils import timezone
from inventory.costing import weighted_average_cost
from pricing.margins import calculate_margin, to_decimal, validate_minimum_for_category
from pricing.providers import ExchangeRateProvider, SettingsProvider, get_settings_provider

from .models import Quotation, QuotationDetail, QuotationStatusHistory

logger = logging.getLogger("erpcore.quotations")

DEFAULT_VALIDITY_DAYS = 15
DEFAULT_IGV_RATE = Decimal("0.18")
TWO_PLACES = Decimal("0.01")

ALLOWED_TRANSITIONS = {
    Quotation.STATUS_DRAFT: {Quotation.STATUS_SENT, Quotation.STATUS_EXPIRED},
    Quotation.STATUS_SENT: {Quotation.STATUS_ACCEPTED, Quotation.STATUS_REJECTED, Quotation.STATUS_EXPIRED},
    Quotation.STATUS_ACCEPTED: {Quotation.STATUS_CONVERTED},
    Quotation.STATUS_REJECTED: set(),
    Quotation.STATUS_EXPIRED: set(),
    Quotation.STATUS_CONVERTED: set(),
}


class QuotationError(Exception):
    code = "quotation_error"

    def as_dict(self) -> dict:
        return {"error": self.code, "detail": str(self)}


class QuotationNotEditable(QuotationError):
    """Raised when lines of a non-draft quotation are changed."""

    code = "quotation_not_editable"

    def __init__(self, quotation: Quotation):
        super().__init__(f"Quotation {quotation.code} is {quotation.status}; only drafts can be edited")
        self.quotation_id = quotation.id
        self.status = quotation.status

    def as_dict(self) -> dict:
        return {**super().as_dict(), "quotation_id": self.quotation_id, "status": self.status}


class InvalidQuotationTransition(QuotationError):
    code = "invalid_transition"

    def __init__(self, current: str, target: str, detail: str = ""):
        super().__init__(detail or f"Cannot move quotation from {current} to {target}")
        self.current = current
        self.target = target

    def as_dict(self) -> dict:
        return {**super().as_dict(), "current": self.current, "target": self.target}


def _q(amount) -> Decimal:
    return to_decimal(amount).quantize(TWO_PLACES, rounding=ROUND_HALF_UP)


def _ensure_editable(quotation: Quotation) -> None:
    if not quotation.is_editable:
        raise QuotationNotEditable(quotation)


def generate_code(today=None) -> str:
    """Next ``COT-<year>-000001`` code. Must run inside a transaction."""
    year = (today or timezone.localdate()).year
    prefix = f"COT-{year}-"
    last = (
        Quotation.objects.select_for_update()
        .filter(code__startswith=prefix)
        .order_by("-code")
        .values_list("code", flat=True)
        .first()
    )
    number = int(last[-6:]) + 1 if last else 1
    return f"{prefix}{number:06d}"


def resolve_unit_cost(
    *,
    product,
    source_type: str,
    warehouse=None,
    supplier_price=None,
    purchase_price=None,
) -> Decimal:
    """Base-currency unit cost of a quoted line.

    Warehouse lines use the weighted-average cost of that warehouse's lots,
    falling back to ``purchase_price`` when it holds none. Supplier lines
    use the supplier's price when known.
    """
    fallback = to_decimal(purchase_price or 0)
    if source_type == SourceType.WAREHOUSE and warehouse is not None:
        cost = weighted_average_cost(product, warehouse)
        return cost if cost > 0 else fallback
    if source_type == SourceType.SUPPLIER and supplier_price is not None:
        return to_decimal(supplier_price)
    return fallback


def _price_detail(detail: QuotationDetail, *, provider: SettingsProvider) -> QuotationDetail:
    """Recompute cost, margin and amounts for one line, enforcing the category floor."""
    quotation = detail.quotation
    base_cost = resolve_unit_cost(
        product=detail.product,
        source_type=detail.source_type,
        warehouse=detail.warehouse,
        supplier_price=detail.supplier_price,
        purchase_price=detail.purchase_price,
    )
    rate = to_decimal(quotation.exchange_rate or 1)
    unit_cost = _q(base_cost / rate) if rate > 0 else _q(base_cost)
    unit_price = to_decimal(detail.unit_price)
    validate_minimum_for_category(
        unit_price,
        unit_cost,
        detail.product.category,
        product_id=detail.product_id,
        provider=provider,
    )
    quantity = int(detail.quantity)
    igv_rate = provider.get_decimal("sales", "igv_rate", DEFAULT_IGV_RATE)
    subtotal = _q(unit_price * quantity - to_decimal(detail.discount or 0))
    detail.unit_cost = unit_cost
    detail.total_cost = _q(unit_cost * quantity)
    detail.unit_margin = _q(unit_price - unit_cost)
    detail.total_margin = subtotal - detail.total_cost
    detail.margin_percentage = calculate_margin(unit_price, unit_cost)
    detail.subtotal = subtotal
    detail.tax = _q(subtotal * igv_rate)
    detail.total = subtotal + detail.tax
    return detail


def _record_transition(quotation: Quotation, prev: str, new: str, *, note: str = "", actor=None) -> None:
    QuotationStatusHistory.objects.create(
        quotation=quotation,
        status_from=prev,
        status_to=new,
        note=(note or "")[:255],
        actor=actor if getattr(actor, "is_authenticated", False) else None,
    )
    logger.info(
        "quotation_status_changed",
        extra={
            "event": "quotation_status_changed",
            "quotation_id": quotation.id,
            "code": quotation.code,
            "status_from": prev,
            "status_to": new,
        },
    )


@transaction.atomic
def create_quotation(
    *,
    created_by,
    customer_name: str,
    warehouse,
    items: Iterable[dict] = (),
    currency: Optional[str] = None,
    exchange_rate=None,
    valid_days: Optional[int] = None,
    customer_document: str = "",
    customer_email: str = "",
    customer_phone: str = "",
    shipping_cost=Decimal("0.00"),
    observations: str = "",
    settings_provider: Optional[SettingsProvider] = None,
    rates: Optional[ExchangeRateProvider] = None,
) -> Quotation:
    """Open a draft quotation, add ``items`` and compute its totals."""
    provider = settings_provider or get_settings_provider()
    rates = rates or ExchangeRateProvider(settings_provider=provider)
    currency = (currency or rates.base_currency()).upper()
    if exchange_rate is None:
        exchange_rate = rates.get_rate(currency)
        if exchange_rate is None:
            raise QuotationError(f"No exchange rate configured for {currency}")
    if valid_days is None:
        valid_days = int(provider.get("quotations", "default_validity_days", DEFAULT_VALIDITY_DAYS))
    today = timezone.localdate()

    quotation = Quotation.objects.create(
        code=generate_code(today),
        created_by=created_by,
        warehouse_id=getattr(warehouse, "pk", warehouse),
        quotation_date=today,
        valid_until=today + timedelta(days=int(valid_days)),
        status=Quotation.STATUS_DRAFT,
        currency=currency,
        exchange_rate=to_decimal(exchange_rate),
        customer_name=customer_name,
        customer_document=customer_document,
        customer_email=customer_email,
        customer_phone=customer_phone,
        shipping_cost=_q(shipping_cost),
        observations=observations,
    )
    _record_transition(quotation, "", Quotation.STATUS_DRAFT, note="Quotation created", actor=created_by)
    for item in items:
        add_item(quotation=quotation, recalculate=False, settings_provider=provider, **item)
    return recalculate_totals(quotation=quotation, settings_provider=provider)


@transaction.atomic
def add_item(
    *,
    quotation: Quotation,
    product,
    quantity: int,
    unit_price,
    discount=Decimal("0.00"),
    source_type: str = SourceType.WAREHOUSE,
    warehouse=None,
    supplier_price=None,
    purchase_price=Decimal("0.00"),
    recalculate: bool = True,
    settings_provider: Optional[SettingsProvider] = None,
) -> QuotationDetail:
    """Add a margin-checked line. Raises ``LowMarginError`` below the category floor."""
    _ensure_editable(quotation)
    if int(quantity) <= 0:
        raise QuotationError("Quantity must be positive")
    provider = settings_provider or get_settings_provider()
    if not isinstance(product, Product):
        product = Product.objects.select_related("category").get(pk=product)
    if source_type == SourceType.WAREHOUSE and warehouse is None:
        warehouse = quotation.warehouse_id
    detail = QuotationDetail(
        quotation=quotation,
        product=product,
        product_name=product.title,
        sku=product.sku,
        quantity=int(quantity),
        unit_price=_q(unit_price),
        discount=_q(discount or 0),
        source_type=source_type,
        warehouse_id=getattr(warehouse, "pk", warehouse),
        supplier_price=supplier_price,
        purchase_price=_q(purchase_price or 0),
    )
    _price_detail(detail, provider=provider)
    detail.save()
    if recalculate:
        recalculate_totals(quotation=quotation, settings_provider=provider)
    return detail


@transaction.atomic
def update_item(
    *,
    detail: QuotationDetail,
    quantity: Optional[int] = None,
    unit_price=None,
    discount=None,
    settings_provider: Optional[SettingsProvider] = None,
) -> QuotationDetail:
    quotation = detail.quotation
    _ensure_editable(quotation)
    provider = settings_provider or get_settings_provider()
    if quantity is not None:
        if int(quantity) <= 0:
            raise QuotationError("Quantity must be positive")
        detail.quantity = int(quantity)
    if unit_price is not None:
        detail.unit_price = _q(unit_price)
    if discount is not None:
        detail.discount = _q(discount)
    _price_detail(detail, provider=provider)
    detail.save()
    recalculate_totals(quotation=quotation, settings_provider=provider)
    return detail


@transaction.atomic
def remove_item(*, detail: QuotationDetail) -> Quotation:
    quotation = detail.quotation
    _ensure_editable(quotation)
    detail.delete()
    return recalculate_totals(quotation=quotation)


def recalculate_totals(*, quotation: Quotation, settings_provider: Optional[SettingsProvider] = None) -> Quotation:
    """Roll line amounts up into the quotation header.

    The margin percentage is taken over total cost, on amounts before tax.
    """
    details = list(quotation.details.all())
    subtotal = sum((d.subtotal for d in details), Decimal("0.00"))
    tax = sum((d.tax for d in details), Decimal("0.00"))
    total_cost = sum((d.total_cost for d in details), Decimal("0.00"))
    quotation.subtotal = _q(subtotal)
    quotation.tax = _q(tax)
    quotation.total = _q(subtotal + tax + to_decimal(quotation.shipping_cost or 0))
    quotation.total_margin = _q(subtotal - total_cost)
    quotation.margin_percentage = _q(quotation.total_margin / total_cost * 100) if total_cost > 0 else Decimal("0.00")
    quotation.save(
        update_fields=["subtotal", "tax", "total", "total_margin", "margin_percentage", "updated_at"],
    )
    return quotation


def _transition(quotation: Quotation, new_status: str, *, note: str = "", actor=None, extra_fields=()) -> Quotation:
    prev = quotation.status
    if new_status not in ALLOWED_TRANSITIONS.get(prev, set()):
        raise InvalidQuotationTransition(prev, new_status)
    quotation.status = new_status
    quotation.save(update_fields=["status", "updated_at", *extra_fields])
    _record_transition(quotation, prev, new_status, note=note, actor=actor)
    return quotation


def _locked(quotation: Quotation) -> Quotation:
    return Quotation.objects.select_for_update().get(id=quotation.id)


@transaction.atomic
def mark_sent(*, quotation: Quotation, note: str = "", actor=None) -> Quotation:
    quotation = _locked(quotation)
    if quotation.status == Quotation.STATUS_DRAFT and not quotation.details.exists():
        raise QuotationError(f"Quotation {quotation.code} has no items")
    quotation.sent_at = timezone.now()
    return _transition(quotation, Quotation.STATUS_SENT, note=note, actor=actor, extra_fields=["sent_at"])


@transaction.atomic
def mark_accepted(*, quotation: Quotation, note: str = "", actor=None) -> Quotation:
    quotation = _locked(quotation)
    if quotation.valid_until < timezone.localdate():
        raise InvalidQuotationTransition(
            quotation.status,
            Quotation.STATUS_ACCEPTED,
            detail=f"Quotation {quotation.code} expired on {quotation.valid_until.isoformat()}",
        )
    return _transition(quotation, Quotation.STATUS_ACCEPTED, note=note, actor=actor)


@transaction.atomic
def mark_rejected(*, quotation: Quotation, note: str = "", actor=None) -> Quotation:
    return _transition(_locked(quotation), Quotation.STATUS_REJECTED, note=note, actor=actor)


@transaction.atomic
def mark_expired(*, quotation: Quotation, note: str = "", actor=None) -> Quotation:
    quotation = _locked(quotation)
    return _transition(quotation, Quotation.STATUS_EXPIRED, note=note or "Validity period elapsed", actor=actor)


@transaction.atomic
def mark_converted(*, quotation: Quotation, sale, actor=None) -> Quotation:
    """Link an accepted quotation to the sale that fulfilled it."""
    quotation = _locked(quotation)
    quotation.converted_sale = sale
    quotation.converted_at = timezone.now()
    return _transition(
        quotation,
        Quotation.STATUS_CONVERTED,
        note=f"Converted to sale {sale.number or sale.id}",
        actor=actor,
        extra_fields=["converted_sale", "converted_at"],
    )


def expire_overdue(today=None) -> int:
    """Expire drafts and sent quotations past their ``valid_until``."""
    today = today or timezone.localdate()
    expired = 0
    for quotation in Quotation.objects.overdue(today).order_by("id"):
        mark_expired(quotation=quotation)
        expired += 1
    if expired:
        logger.info("quotations.expired", extra={"event": "quotations.expired", "count": expired})
    return expired

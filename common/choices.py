"""Shared enumerations and choices used across apps."""

from django.db import models


class LotStatus(models.TextChoices):
    ACTIVE = "active", "Active"
    DEPLETED = "depleted", "Depleted"


class MovementType(models.TextChoices):
    INBOUND = "in", "Inbound"
    OUTBOUND = "out", "Outbound"
    TRANSFER = "transfer", "Transfer"
    ADJUSTMENT = "adjustment", "Adjustment"


class MovementReference(models.TextChoices):
    """Business document that caused a stock movement."""

    PURCHASE = "purchase", "Purchase"
    SALE = "sale", "Sale"
    ORDER = "order", "Order"
    TRANSFER_OUT = "transfer_out", "Transfer out"
    TRANSFER_IN = "transfer_in", "Transfer in"
    ADJUSTMENT_IN = "adjustment_in", "Adjustment in"
    ADJUSTMENT_OUT = "adjustment_out", "Adjustment out"
    RESERVATION_RELEASE = "reservation_release", "Reservation release"


class ReservationState(models.TextChoices):
    ACTIVE = "active", "Active"
    RELEASED = "released", "Released"
    CONVERTED = "converted", "Converted"


class CartStatus(models.TextChoices):
    """Statuses for shopping carts."""

    ACTIVE = "active", "Active"
    ORDERED = "ordered", "Ordered"
    ABANDONED = "abandoned", "Abandoned"


class OrderStatus(models.TextChoices):
    """Lifecycle statuses for orders."""

    PENDING = "pendiente", "Pending"
    CONFIRMED = "confirmado", "Confirmed"
    PREPARING = "preparando", "Preparing"
    SHIPPED = "enviado", "Shipped"
    DELIVERED = "entregado", "Delivered"
    CANCELLED = "cancelado", "Cancelled"


class PaymentStatus(models.TextChoices):
    PENDING = "pending", "Pending"
    PAID = "paid", "Paid"


class QuotationStatus(models.TextChoices):
    """Lifecycle statuses for quotations. Only drafts are editable."""

    DRAFT = "draft", "Draft"
    SENT = "sent", "Sent"
    ACCEPTED = "accepted", "Accepted"
    REJECTED = "rejected", "Rejected"
    EXPIRED = "expired", "Expired"
    CONVERTED = "converted", "Converted"


class SourceType(models.TextChoices):
    """Where a quotation line is sourced from."""

    WAREHOUSE = "warehouse", "Warehouse"
    SUPPLIER = "supplier", "Supplier"


class SettingType(models.TextChoices):
    STRING = "string", "String"
    INTEGER = "integer", "Integer"
    DECIMAL = "decimal", "Decimal"
    BOOLEAN = "boolean", "Boolean"
    JSON = "json", "JSON"

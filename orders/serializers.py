"""DRF serializers for Orders.

Amounts are exposed as stored: in the order currency, with ``base_total``
kept in the base currency for reporting.
"""

from common.choices import OrderStatus
from rest_framework import serializers

from .models import Order, OrderItem, OrderStatusHistory, Payment, Sale


class OrderItemSerializer(serializers.ModelSerializer):
    class Meta:
        model = OrderItem
        fields = ["id", "product", "product_title", "sku", "quantity", "unit_price", "subtotal", "tax", "total"]
        read_only_fields = fields


class OrderStatusHistorySerializer(serializers.ModelSerializer):
    class Meta:
        model = OrderStatusHistory
        fields = ["status_from", "status_to", "note", "tracking_code", "actor", "created_at"]
        read_only_fields = fields


class OrderSerializer(serializers.ModelSerializer):
    """API representation for an order with its lines and allocation."""

    items = OrderItemSerializer(many=True, read_only=True)
    history = OrderStatusHistorySerializer(many=True, read_only=True)

    class Meta:
        model = Order
        fields = [
            "id",
            "number",
            "status",
            "currency",
            "exchange_rate",
            "subtotal",
            "tax",
            "shipping_cost",
            "total",
            "base_total",
            "allocation",
            "allocation_notes",
            "customer_info",
            "shipping_address",
            "observations",
            "tracking_code",
            "created_at",
            "items",
            "history",
        ]
        read_only_fields = fields


class PaymentSerializer(serializers.ModelSerializer):
    class Meta:
        model = Payment
        fields = ["id", "method", "amount", "currency", "transaction_id", "status", "paid_at"]
        read_only_fields = fields


class SaleSerializer(serializers.ModelSerializer):
    payments = PaymentSerializer(many=True, read_only=True)

    class Meta:
        model = Sale
        fields = [
            "id",
            "number",
            "order",
            "currency",
            "subtotal",
            "tax",
            "total",
            "payment_status",
            "sold_at",
            "payments",
        ]
        read_only_fields = fields


class ConfirmOrderSerializer(serializers.Serializer):
    payment_method = serializers.CharField(max_length=32)
    transaction_id = serializers.CharField(max_length=128, required=False, allow_blank=True)


class CancelOrderSerializer(serializers.Serializer):
    reason = serializers.CharField(max_length=255, required=False, allow_blank=True)


class OrderStatusUpdateSerializer(serializers.Serializer):
    """Fulfilment transitions. Confirmation goes through the confirm endpoint."""

    status = serializers.ChoiceField(choices=OrderStatus.choices)
    note = serializers.CharField(max_length=255, required=False, allow_blank=True)
    tracking_code = serializers.CharField(max_length=64, required=False, allow_blank=True)

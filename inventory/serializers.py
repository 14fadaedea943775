"""Serializers for inventory domain.

Read-only serializers for records, lots, movements and reservations, plus
input serializers for the staff-only stock operations.
"""

from decimal import Decimal

from catalog.models import Product
from rest_framework import serializers

from .models import InventoryRecord, Lot, StockMovement, StockReservation, Warehouse


class InventoryRecordSerializer(serializers.ModelSerializer):
    """Stock for a product in one warehouse, with computed ``free`` stock."""

    sku = serializers.CharField(source="product.sku", read_only=True)
    warehouse_name = serializers.CharField(source="warehouse.name", read_only=True)
    free = serializers.IntegerField(source="free_stock", read_only=True)

    class Meta:
        model = InventoryRecord
        fields = [
            "id",
            "product",
            "sku",
            "warehouse",
            "warehouse_name",
            "available_stock",
            "reserved_stock",
            "free",
            "average_cost",
            "sale_price",
            "last_movement_at",
        ]
        read_only_fields = fields


class LotSerializer(serializers.ModelSerializer):
    total_value = serializers.DecimalField(max_digits=16, decimal_places=4, read_only=True)

    class Meta:
        model = Lot
        fields = [
            "id",
            "batch_code",
            "product",
            "warehouse",
            "quantity_purchased",
            "quantity_available",
            "purchase_price",
            "distribution_price",
            "acquired_on",
            "expires_on",
            "status",
            "origin_note",
            "total_value",
        ]
        read_only_fields = fields


class StockMovementSerializer(serializers.ModelSerializer):
    class Meta:
        model = StockMovement
        fields = [
            "id",
            "product",
            "warehouse",
            "lot",
            "movement_type",
            "quantity",
            "reserved_delta",
            "unit_cost",
            "reference_type",
            "reference_id",
            "notes",
            "moved_at",
        ]
        read_only_fields = fields


class StockReservationSerializer(serializers.ModelSerializer):
    class Meta:
        model = StockReservation
        fields = [
            "id",
            "product",
            "warehouse",
            "quantity",
            "reference",
            "state",
            "expires_at",
            "created_at",
        ]
        read_only_fields = fields


def _warehouse_field(**kwargs):
    return serializers.PrimaryKeyRelatedField(queryset=Warehouse.objects.all(), **kwargs)


def _product_field(**kwargs):
    return serializers.PrimaryKeyRelatedField(queryset=Product.objects.all(), **kwargs)


class AdjustInSerializer(serializers.Serializer):
    product = _product_field()
    warehouse = _warehouse_field()
    quantity = serializers.IntegerField(min_value=1)
    reason = serializers.CharField(max_length=255)
    unit_cost = serializers.DecimalField(max_digits=12, decimal_places=4, min_value=Decimal("0"), required=False)
    expires_on = serializers.DateField(required=False)


class AdjustOutSerializer(serializers.Serializer):
    product = _product_field()
    warehouse = _warehouse_field()
    quantity = serializers.IntegerField(min_value=1)
    reason = serializers.CharField(max_length=255)


class TransferSerializer(serializers.Serializer):
    product = _product_field()
    from_warehouse = _warehouse_field()
    to_warehouse = _warehouse_field()
    quantity = serializers.IntegerField(min_value=1)
    notes = serializers.CharField(max_length=255, required=False, allow_blank=True)

    def validate(self, attrs):
        if attrs["from_warehouse"].id == attrs["to_warehouse"].id:
            raise serializers.ValidationError({"to_warehouse": "Must differ from the source warehouse."})
        return attrs


class SyncSerializer(serializers.Serializer):
    product = _product_field(required=False)
    warehouse = _warehouse_field(required=False)


class AllocationRequestItemSerializer(serializers.Serializer):
    product_id = serializers.IntegerField()
    quantity = serializers.IntegerField(min_value=1)


class AllocationPreviewSerializer(serializers.Serializer):
    items = AllocationRequestItemSerializer(many=True, allow_empty=False)
    online_only = serializers.BooleanField(default=False)


# EOF

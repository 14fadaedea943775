from decimal import Decimal

from catalog.models import Product
from rest_framework import serializers


class MarginCheckSerializer(serializers.Serializer):
    """Input for checking a proposed price. ``cost`` defaults to the global average cost."""

    product = serializers.PrimaryKeyRelatedField(queryset=Product.objects.select_related("category"))
    proposed_price = serializers.DecimalField(max_digits=12, decimal_places=2, min_value=Decimal("0"))
    cost = serializers.DecimalField(max_digits=12, decimal_places=4, min_value=Decimal("0"), required=False)


class MarginCheckResultSerializer(serializers.Serializer):
    is_valid = serializers.BooleanField()
    margin = serializers.DecimalField(max_digits=9, decimal_places=2)
    min_margin = serializers.DecimalField(max_digits=9, decimal_places=2)
    suggested_min_price = serializers.DecimalField(max_digits=12, decimal_places=2)
    category = serializers.CharField(allow_blank=True)
    cost = serializers.DecimalField(max_digits=12, decimal_places=4)

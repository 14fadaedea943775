"""Cart serializers for read and write operations."""

from rest_framework import serializers

from .models import CartItem
from .selectors import cart_totals
from .services import add_item, update_item_quantity


class CartItemReadSerializer(serializers.ModelSerializer):
    """Read serializer for a cart item."""

    product_id = serializers.IntegerField(source="product.id")
    sku = serializers.CharField(source="product.sku")
    line_total = serializers.DecimalField(max_digits=12, decimal_places=2, read_only=True)

    class Meta:
        model = CartItem
        fields = [
            "id",
            "product_id",
            "sku",
            "quantity",
            "unit_price",
            "line_total",
        ]


class CartReadSerializer(serializers.Serializer):
    """Read serializer for the cart summary and items. Amounts are in the base currency."""

    id = serializers.IntegerField()
    items = CartItemReadSerializer(many=True)
    units = serializers.IntegerField()
    subtotal = serializers.DecimalField(max_digits=12, decimal_places=2)

    @classmethod
    def from_cart(cls, *, cart):
        totals = cart_totals(cart=cart)
        return cls(
            {
                "id": cart.id,
                "items": list(cart.items.select_related("product").all()),
                "units": totals["units"],
                "subtotal": totals["subtotal"],
            }
        )


class AddItemSerializer(serializers.Serializer):
    """Write serializer for adding a product to the cart."""

    product_id = serializers.IntegerField()
    quantity = serializers.IntegerField(min_value=1)

    def create(self, validated_data):  # type: ignore[override]
        user = self.context["request"].user
        return add_item(user=user, **validated_data)


class UpdateItemQuantitySerializer(serializers.Serializer):
    quantity = serializers.IntegerField(min_value=1)

    def update(self, instance, validated_data):  # type: ignore[override]
        user = self.context["request"].user
        return update_item_quantity(user=user, item_id=instance.id, quantity=validated_data["quantity"])


class CheckoutSerializer(serializers.Serializer):
    """Checkout inputs. ``currency`` defaults to the base currency."""

    currency = serializers.CharField(max_length=3, required=False, allow_blank=True)
    customer_info = serializers.DictField(required=False)
    shipping_address = serializers.DictField(required=False)
    observations = serializers.CharField(required=False, allow_blank=True)

    def validate_currency(self, value: str) -> str:
        return value.upper()

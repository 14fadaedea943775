"""DRF views for cart operations."""

from common.api import domain_error_response
from drf_spectacular.utils import OpenApiExample, extend_schema, inline_serializer
from inventory.errors import InsufficientStock, InventoryError
from orders.services import CheckoutError, checkout
from rest_framework import serializers as rf_serializers
from rest_framework import status
from rest_framework.permissions import IsAuthenticated
from rest_framework.response import Response
from rest_framework.views import APIView

from .models import Cart, CartItem
from .selectors import get_active_cart_for_user
from .serializers import AddItemSerializer, CartReadSerializer, CheckoutSerializer, UpdateItemQuantitySerializer
from .services import CartError, abandon_cart, clear_cart, remove_item

ErrorResponse = inline_serializer(
    name="CartErrorResponse",
    fields={"error": rf_serializers.CharField(), "detail": rf_serializers.CharField()},
)
NotFoundResponse = inline_serializer(name="CartNotFoundError", fields={"detail": rf_serializers.CharField()})


def _stock_or_cart_error(exc: Exception) -> Response:
    if isinstance(exc, InsufficientStock):
        return domain_error_response(exc, status.HTTP_409_CONFLICT)
    return domain_error_response(exc)


class CartDetailView(APIView):
    """Return the authenticated user's active cart."""

    permission_classes = [IsAuthenticated]
    throttle_scope = "cart"

    @extend_schema(
        tags=["Cart Endpoints"],
        summary="Get active cart",
        description="Returns the authenticated user's active cart with items and base-currency subtotal.",
        examples=[
            OpenApiExample(
                "Cart",
                value={
                    "id": 1,
                    "items": [
                        {
                            "id": 10,
                            "product_id": 100,
                            "sku": "TAL-001",
                            "quantity": 2,
                            "unit_price": "125.00",
                            "line_total": "250.00",
                        }
                    ],
                    "units": 2,
                    "subtotal": "250.00",
                },
            )
        ],
    )
    def get(self, request):
        cart = get_active_cart_for_user(user=request.user)
        return Response(CartReadSerializer.from_cart(cart=cart).data, status=status.HTTP_200_OK)


class CartAddItemView(APIView):
    """Add a product to the cart."""

    permission_classes = [IsAuthenticated]
    throttle_scope = "cart_write"

    @extend_schema(
        tags=["Cart Endpoints"],
        summary="Add item to cart",
        description="Adds a product to the user's cart after checking free stock in online warehouses.",
        request=AddItemSerializer,
        responses={
            201: inline_serializer(name="CartItemCreatedResponse", fields={"id": rf_serializers.IntegerField()}),
            400: ErrorResponse,
            404: NotFoundResponse,
            409: ErrorResponse,
        },
        examples=[
            OpenApiExample("Added", value={"id": 10}, response_only=True),
            OpenApiExample(
                "Insufficient stock",
                value={"error": "insufficient_stock", "product_id": 100, "requested": 12, "available": 5},
                response_only=True,
                status_codes=["409"],
            ),
        ],
    )
    def post(self, request):
        serializer = AddItemSerializer(data=request.data, context={"request": request})
        serializer.is_valid(raise_exception=True)
        try:
            item = serializer.save()
        except (InventoryError, CartError) as exc:
            return _stock_or_cart_error(exc)
        return Response({"id": item.id}, status=status.HTTP_201_CREATED)


class CartItemUpdateView(APIView):
    """Update a cart item's quantity."""

    permission_classes = [IsAuthenticated]
    throttle_scope = "cart_write"

    @extend_schema(
        tags=["Cart Endpoints"],
        summary="Update cart item quantity",
        request=UpdateItemQuantitySerializer,
        responses={
            200: inline_serializer(name="CartItemUpdatedResponse", fields={"id": rf_serializers.IntegerField()}),
            400: ErrorResponse,
            404: NotFoundResponse,
            409: ErrorResponse,
        },
        examples=[OpenApiExample("Updated", value={"id": 10}, response_only=True)],
    )
    def patch(self, request, item_id: int):
        try:
            item = CartItem.objects.get(id=item_id, cart__user_id=request.user.id, cart__status=Cart.STATUS_ACTIVE)
        except CartItem.DoesNotExist:
            return Response({"detail": "Not found."}, status=status.HTTP_404_NOT_FOUND)
        serializer = UpdateItemQuantitySerializer(instance=item, data=request.data, context={"request": request})
        serializer.is_valid(raise_exception=True)
        try:
            serializer.save()
        except (InventoryError, CartError) as exc:
            return _stock_or_cart_error(exc)
        return Response({"id": item.id}, status=status.HTTP_200_OK)


class CartItemDeleteView(APIView):
    """Remove an item from the cart."""

    permission_classes = [IsAuthenticated]
    throttle_scope = "cart_write"

    @extend_schema(
        tags=["Cart Endpoints"],
        summary="Delete cart item",
        responses={204: None, 404: NotFoundResponse},
    )
    def delete(self, request, item_id: int):
        if not CartItem.objects.filter(id=item_id, cart__user_id=request.user.id).exists():
            return Response({"detail": "Not found."}, status=status.HTTP_404_NOT_FOUND)
        remove_item(user=request.user, item_id=item_id)
        return Response(status=status.HTTP_204_NO_CONTENT)


class CartCheckoutView(APIView):
    """Checkout the active cart into a pending order with reserved stock."""

    permission_classes = [IsAuthenticated]
    throttle_scope = "cart_write"

    @extend_schema(
        tags=["Cart Endpoints"],
        summary="Checkout cart",
        description=(
            "Plans the allocation over online warehouses, reserves stock and creates a pending order "
            "priced in the requested currency. Nothing is written when any line cannot be covered."
        ),
        request=CheckoutSerializer,
        responses={
            201: inline_serializer(
                name="CheckoutResponse",
                fields={
                    "order_id": rf_serializers.IntegerField(),
                    "number": rf_serializers.CharField(),
                    "status": rf_serializers.CharField(),
                    "currency": rf_serializers.CharField(),
                    "total": rf_serializers.DecimalField(max_digits=14, decimal_places=2),
                    "allocation_notes": rf_serializers.CharField(),
                },
            ),
            400: ErrorResponse,
            409: ErrorResponse,
        },
        examples=[
            OpenApiExample(
                "Checked out",
                value={
                    "order_id": 7,
                    "number": "ORD-000007",
                    "status": "pendiente",
                    "currency": "USD",
                    "total": "68.42",
                    "allocation_notes": "Product 3 allocated from Main (5), North (7)",
                },
                response_only=True,
            ),
            OpenApiExample(
                "Insufficient stock",
                value={"error": "insufficient_stock", "product_id": 3, "requested": 20, "available": 12},
                response_only=True,
                status_codes=["409"],
            ),
        ],
    )
    def post(self, request):
        serializer = CheckoutSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        data = serializer.validated_data
        cart = get_active_cart_for_user(user=request.user)
        try:
            order = checkout(
                cart=cart,
                customer_info=data.get("customer_info"),
                shipping_address=data.get("shipping_address"),
                currency=data.get("currency") or None,
                observations=data.get("observations", ""),
                actor=request.user,
            )
        except (InventoryError, CartError, CheckoutError) as exc:
            return _stock_or_cart_error(exc)
        body = {
            "order_id": order.id,
            "number": order.number,
            "status": order.status,
            "currency": order.currency,
            "total": str(order.total),
            "allocation_notes": order.allocation_notes,
        }
        return Response(body, status=status.HTTP_201_CREATED)


class CartAbandonView(APIView):
    """Abandon the active cart."""

    permission_classes = [IsAuthenticated]
    throttle_scope = "cart_write"

    @extend_schema(
        tags=["Cart Endpoints"],
        summary="Abandon cart",
        responses={200: inline_serializer(name="CartStatusAbandoned", fields={"status": rf_serializers.CharField()})},
        examples=[OpenApiExample("Abandoned", value={"status": "abandoned"})],
    )
    def post(self, request):
        abandon_cart(cart=get_active_cart_for_user(user=request.user))
        return Response({"status": "abandoned"}, status=status.HTTP_200_OK)


class CartClearView(APIView):
    """Delete every line of the active cart."""

    permission_classes = [IsAuthenticated]
    throttle_scope = "cart_write"

    @extend_schema(
        tags=["Cart Endpoints"],
        summary="Clear cart",
        responses={200: inline_serializer(name="CartStatusCleared", fields={"status": rf_serializers.CharField()})},
        examples=[OpenApiExample("Cleared", value={"status": "cleared"})],
    )
    def post(self, request):
        clear_cart(user=request.user)
        return Response({"status": "cleared"}, status=status.HTTP_200_OK)

"""Orders API endpoints.

Customers list and read their own orders and may cancel pending ones.
Staff confirm payments and move orders along the fulfilment chain.
"""

from common.api import domain_error_response
from django.http import Http404
from drf_spectacular.utils import OpenApiExample, OpenApiParameter, extend_schema
from inventory.errors import InsufficientStock, InventoryError
from rest_framework import generics, status
from rest_framework.pagination import PageNumberPagination
from rest_framework.permissions import IsAdminUser, IsAuthenticated
from rest_framework.response import Response
from rest_framework.views import APIView

from .models import Order
from .serializers import (
    CancelOrderSerializer,
    ConfirmOrderSerializer,
    OrderSerializer,
    OrderStatusUpdateSerializer,
    SaleSerializer,
)
from .services import (
    CheckoutError,
    InvalidOrderTransition,
    ReservationShortfall,
    cancel_order,
    confirm_order,
    update_status,
)


def _order_error(exc: Exception) -> Response:
    if isinstance(exc, (InvalidOrderTransition, InsufficientStock, ReservationShortfall)):
        return domain_error_response(exc, status.HTTP_409_CONFLICT)
    return domain_error_response(exc)


class DefaultPagination(PageNumberPagination):
    page_size = 20
    page_size_query_param = "page_size"


class OrderListView(generics.ListAPIView):
    """List the authenticated user's orders.

    Filters:
    - `status`: one of the OrderStatus values
    - `number`: exact match of order number
    - `start` / `end`: ISO date/time bounds on `created_at`
    """

    permission_classes = [IsAuthenticated]
    serializer_class = OrderSerializer
    pagination_class = DefaultPagination
    throttle_scope = "orders"

    def get_queryset(self):
        qs = Order.objects.filter(user_id=self.request.user.id).order_by("-id").prefetch_related("items", "history")
        params = self.request.query_params
        if params.get("status"):
            qs = qs.filter(status=params["status"])
        if params.get("number"):
            qs = qs.filter(number=params["number"])
        if params.get("start"):
            qs = qs.filter(created_at__gte=params["start"])
        if params.get("end"):
            qs = qs.filter(created_at__lte=params["end"])
        return qs

    @extend_schema(
        tags=["Orders"],
        summary="List orders",
        parameters=[
            OpenApiParameter(name="status", description="Order status filter", required=False, type=str),
            OpenApiParameter(name="number", description="Order number exact match", required=False, type=str),
            OpenApiParameter(name="start", description="Created at >= start (ISO)", required=False, type=str),
            OpenApiParameter(name="end", description="Created at <= end (ISO)", required=False, type=str),
            OpenApiParameter(name="page", description="Page number", required=False, type=int),
            OpenApiParameter(name="page_size", description="Items per page", required=False, type=int),
        ],
    )
    def get(self, request, *args, **kwargs):
        return super().get(request, *args, **kwargs)


class OrderDetailView(generics.RetrieveAPIView):
    """Retrieve one order. Staff may read any order, customers only their own."""

    permission_classes = [IsAuthenticated]
    throttle_scope = "orders"
    serializer_class = OrderSerializer

    def get_queryset(self):
        qs = Order.objects.prefetch_related("items", "history")
        if self.request.user.is_staff:
            return qs
        return qs.filter(user_id=self.request.user.id)

    def get_object(self):
        try:
            return self.get_queryset().get(id=int(self.kwargs["order_id"]))
        except (Order.DoesNotExist, ValueError):
            raise Http404("Not found.")

    @extend_schema(
        tags=["Orders"],
        summary="Get order detail",
        examples=[
            OpenApiExample(
                "Split order",
                value={
                    "id": 7,
                    "number": "ORD-000007",
                    "status": "pendiente",
                    "currency": "PEN",
                    "exchange_rate": "1.000000",
                    "subtotal": "1200.00",
                    "tax": "216.00",
                    "shipping_cost": "0.00",
                    "total": "1416.00",
                    "base_total": "1416.00",
                    "allocation": [
                        {
                            "product_id": 3,
                            "allocation": [
                                {"warehouse_id": 1, "warehouse_name": "Main", "quantity": 5},
                                {"warehouse_id": 2, "warehouse_name": "North", "quantity": 7},
                            ],
                        }
                    ],
                    "allocation_notes": "Product 3 allocated from Main (5), North (7)",
                },
                response_only=True,
            )
        ],
    )
    def get(self, request, *args, **kwargs):
        return super().get(request, *args, **kwargs)


class OrderConfirmView(APIView):
    """Register payment for a pending order, turning it into a sale."""

    permission_classes = [IsAdminUser]
    throttle_scope = "orders_write"

    @extend_schema(
        tags=["Orders"],
        summary="Confirm order",
        description="Creates the sale and payment and consumes the reserved stock FIFO.",
        request=ConfirmOrderSerializer,
        responses={201: SaleSerializer},
        examples=[
            OpenApiExample("Confirm", value={"payment_method": "card", "transaction_id": "tx-991"}, request_only=True),
            OpenApiExample(
                "Wrong state",
                value={"error": "invalid_transition", "current": "cancelado", "target": "confirmado"},
                response_only=True,
                status_codes=["409"],
            ),
            OpenApiExample(
                "Stock no longer reserved",
                value={"error": "reservation_shortfall", "product_id": 3, "required": 12, "reserved": 7},
                response_only=True,
                status_codes=["409"],
            ),
        ],
    )
    def post(self, request, order_id: int):
        try:
            order = Order.objects.get(pk=order_id)
        except Order.DoesNotExist:
            raise Http404
        serializer = ConfirmOrderSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        try:
            sale = confirm_order(
                order=order,
                payment_method=serializer.validated_data["payment_method"],
                transaction_id=serializer.validated_data.get("transaction_id") or None,
                actor=request.user,
            )
        except (InvalidOrderTransition, CheckoutError, InventoryError) as exc:
            return _order_error(exc)
        return Response(SaleSerializer(sale).data, status=status.HTTP_201_CREATED)


class OrderCancelView(APIView):
    """Cancel an order and release its reserved stock.

    Customers can cancel their own pending orders; staff can cancel any order
    that is not delivered yet.
    """

    permission_classes = [IsAuthenticated]
    throttle_scope = "orders_write"

    @extend_schema(
        tags=["Orders"],
        summary="Cancel order",
        request=CancelOrderSerializer,
        responses={200: OrderSerializer},
        examples=[OpenApiExample("Cancelled", value={"id": 1, "status": "cancelado"}, response_only=True)],
    )
    def post(self, request, order_id: int):
        qs = Order.objects.all() if request.user.is_staff else Order.objects.filter(user=request.user)
        try:
            order = qs.get(pk=order_id)
        except Order.DoesNotExist:
            raise Http404
        if not request.user.is_staff and order.status != Order.STATUS_PENDING:
            return _order_error(InvalidOrderTransition(order.status, Order.STATUS_CANCELLED))
        serializer = CancelOrderSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        try:
            updated = cancel_order(order=order, reason=serializer.validated_data.get("reason", ""), actor=request.user)
        except InvalidOrderTransition as exc:
            return _order_error(exc)
        return Response(OrderSerializer(updated).data, status=status.HTTP_200_OK)


class OrderStatusUpdateView(APIView):
    """Staff-only fulfilment transitions (preparing, shipped, delivered, cancelled)."""

    permission_classes = [IsAdminUser]
    throttle_scope = "orders_write"

    @extend_schema(
        tags=["Orders"],
        summary="Update order status",
        request=OrderStatusUpdateSerializer,
        responses={200: OrderSerializer},
        examples=[
            OpenApiExample(
                "Shipped",
                value={"status": "enviado", "tracking_code": "OLV-123456", "note": "Left the main warehouse"},
                request_only=True,
            )
        ],
    )
    def post(self, request, order_id: int):
        try:
            order = Order.objects.get(pk=order_id)
        except Order.DoesNotExist:
            raise Http404
        serializer = OrderStatusUpdateSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        data = serializer.validated_data
        try:
            updated = update_status(
                order=order,
                new_status=data["status"],
                note=data.get("note", ""),
                tracking_code=data.get("tracking_code", ""),
                actor=request.user,
            )
        except InvalidOrderTransition as exc:
            return _order_error(exc)
        return Response(OrderSerializer(updated).data, status=status.HTTP_200_OK)

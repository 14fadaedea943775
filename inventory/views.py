"""Inventory read-only lists and staff-only stock operations."""

from common.api import domain_error_response
from django.utils.dateparse import parse_datetime
from drf_spectacular.utils import OpenApiExample, extend_schema, inline_serializer
from rest_framework import generics, permissions, status
from rest_framework import serializers as rf_serializers
from rest_framework.response import Response
from rest_framework.views import APIView

from .allocation import plan_allocation
from .errors import InsufficientStock, InventoryError
from .models import InventoryRecord, Lot, StockMovement, StockReservation
from .selectors import sellable_warehouses
from .serializers import (
    AdjustInSerializer,
    AdjustOutSerializer,
    AllocationPreviewSerializer,
    InventoryRecordSerializer,
    LotSerializer,
    StockMovementSerializer,
    StockReservationSerializer,
    SyncSerializer,
    TransferSerializer,
)
from .services import adjust_in, adjust_out, sync_with_lots, transfer

INVENTORY_ERROR = inline_serializer(
    name="InventoryError",
    fields={"error": rf_serializers.CharField(), "detail": rf_serializers.CharField()},
)


class InventoryHealthView(APIView):
    throttle_classes = []

    @extend_schema(
        tags=["Inventory Endpoints"],
        summary="Inventory health",
        examples=[OpenApiExample("Health OK", value={"status": "ok", "app": "inventory"})],
    )
    def get(self, request):
        return Response({"status": "ok", "app": "inventory"})


class StaffListView(generics.ListAPIView):
    permission_classes = [permissions.IsAdminUser]
    throttle_scope = "inventory"

    def filter_product_warehouse(self, qs):
        product_id = self.request.query_params.get("product_id")
        warehouse_id = self.request.query_params.get("warehouse_id")
        if product_id:
            qs = qs.filter(product_id=product_id)
        if warehouse_id:
            qs = qs.filter(warehouse_id=warehouse_id)
        return qs


class StockListView(StaffListView):
    serializer_class = InventoryRecordSerializer

    @extend_schema(
        tags=["Inventory Endpoints"],
        summary="List stock per warehouse",
        description="Stock records per product and warehouse. Filters: product_id, warehouse_id, sku.",
        examples=[
            OpenApiExample(
                "Stock",
                value={
                    "results": [
                        {
                            "id": 1,
                            "product": 10,
                            "sku": "SKU-00010",
                            "warehouse": 1,
                            "warehouse_name": "Main",
                            "available_stock": 50,
                            "reserved_stock": 5,
                            "free": 45,
                            "average_cost": "100.0000",
                            "sale_price": "125.00",
                            "last_movement_at": "2025-01-01T12:00:00Z",
                        }
                    ]
                },
            )
        ],
    )
    def get(self, request, *args, **kwargs):
        return super().get(request, *args, **kwargs)

    def get_queryset(self):
        qs = InventoryRecord.objects.select_related("product", "warehouse").order_by("product_id", "warehouse_id")
        sku = self.request.query_params.get("sku")
        if sku:
            qs = qs.filter(product__sku__iexact=sku)
        return self.filter_product_warehouse(qs)


class LotListView(StaffListView):
    serializer_class = LotSerializer

    @extend_schema(
        tags=["Inventory Endpoints"],
        summary="List purchase batches",
        description="Lots in FIFO order. Filters: product_id, warehouse_id, status (active/depleted).",
    )
    def get(self, request, *args, **kwargs):
        return super().get(request, *args, **kwargs)

    def get_queryset(self):
        qs = Lot.objects.order_by("acquired_on", "id")
        state = self.request.query_params.get("status")
        if state:
            qs = qs.filter(status=state)
        return self.filter_product_warehouse(qs)


class MovementListView(StaffListView):
    serializer_class = StockMovementSerializer

    @extend_schema(
        tags=["Inventory Endpoints"],
        summary="List stock movements",
        description=(
            "Movement ledger. Filters: product_id, warehouse_id, movement_type, reference_type, moved_after (ISO)."
        ),
    )
    def get(self, request, *args, **kwargs):
        return super().get(request, *args, **kwargs)

    def get_queryset(self):
        qs = StockMovement.objects.order_by("-moved_at", "-id")
        movement_type = self.request.query_params.get("movement_type")
        reference_type = self.request.query_params.get("reference_type")
        moved_after = self.request.query_params.get("moved_after")
        if movement_type:
            qs = qs.filter(movement_type=movement_type)
        if reference_type:
            qs = qs.filter(reference_type=reference_type)
        if moved_after:
            dt = parse_datetime(moved_after)
            if dt:
                qs = qs.filter(moved_at__gte=dt)
        return self.filter_product_warehouse(qs)


class ReservationListView(StaffListView):
    serializer_class = StockReservationSerializer

    @extend_schema(
        tags=["Inventory Endpoints"],
        summary="List stock reservations",
        description="Filters: product_id, warehouse_id, state, reference, expires_before (ISO).",
    )
    def get(self, request, *args, **kwargs):
        return super().get(request, *args, **kwargs)

    def get_queryset(self):
        qs = StockReservation.objects.order_by("-created_at", "id")
        state = self.request.query_params.get("state")
        reference = self.request.query_params.get("reference")
        expires_before = self.request.query_params.get("expires_before")
        if state:
            qs = qs.filter(state=state)
        if reference:
            qs = qs.filter(reference=reference)
        if expires_before:
            dt = parse_datetime(expires_before)
            if dt:
                qs = qs.filter(expires_at__lte=dt)
        return self.filter_product_warehouse(qs)


class StaffOperationView(APIView):
    permission_classes = [permissions.IsAdminUser]
    throttle_scope = "inventory_write"

    def run(self, func, **kwargs):
        try:
            return func(**kwargs), None
        except InsufficientStock as exc:
            return None, domain_error_response(exc, status.HTTP_409_CONFLICT)
        except InventoryError as exc:
            return None, domain_error_response(exc)


class AdjustInView(StaffOperationView):
    @extend_schema(
        tags=["Inventory Endpoints"],
        summary="Adjust stock in",
        description="Adds units as a new lot. Cost defaults to the current average cost.",
        request=AdjustInSerializer,
        responses={201: LotSerializer, 400: INVENTORY_ERROR},
    )
    def post(self, request):
        serializer = AdjustInSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        data = serializer.validated_data
        lot, error = self.run(
            adjust_in,
            product=data["product"],
            warehouse=data["warehouse"],
            quantity=data["quantity"],
            reason=data["reason"],
            unit_cost=data.get("unit_cost"),
            expires_on=data.get("expires_on"),
            actor=request.user,
        )
        if error:
            return error
        return Response(LotSerializer(lot).data, status=status.HTTP_201_CREATED)


class AdjustOutView(StaffOperationView):
    @extend_schema(
        tags=["Inventory Endpoints"],
        summary="Adjust stock out",
        description="Removes free units, oldest lots first. Reserved units cannot be adjusted out.",
        request=AdjustOutSerializer,
        responses={200: StockMovementSerializer(many=True), 400: INVENTORY_ERROR, 409: INVENTORY_ERROR},
        examples=[
            OpenApiExample(
                "Insufficient",
                value={
                    "error": "insufficient_stock",
                    "detail": "Insufficient stock for product 10 in warehouse 1: requested 8, available 5",
                    "product_id": 10,
                    "warehouse_id": 1,
                    "requested": 8,
                    "available": 5,
                },
                response_only=True,
                status_codes=["409"],
            )
        ],
    )
    def post(self, request):
        serializer = AdjustOutSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        data = serializer.validated_data
        movements, error = self.run(
            adjust_out,
            product=data["product"],
            warehouse=data["warehouse"],
            quantity=data["quantity"],
            reason=data["reason"],
            actor=request.user,
        )
        if error:
            return error
        return Response(StockMovementSerializer(movements, many=True).data, status=status.HTTP_200_OK)


class TransferView(StaffOperationView):
    @extend_schema(
        tags=["Inventory Endpoints"],
        summary="Transfer stock between warehouses",
        description="Moves free units FIFO; destination lots keep the original cost basis.",
        request=TransferSerializer,
        responses={201: LotSerializer(many=True), 400: INVENTORY_ERROR, 409: INVENTORY_ERROR},
    )
    def post(self, request):
        serializer = TransferSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        data = serializer.validated_data
        lots, error = self.run(
            transfer,
            product=data["product"],
            from_warehouse=data["from_warehouse"],
            to_warehouse=data["to_warehouse"],
            quantity=data["quantity"],
            notes=data.get("notes", ""),
            actor=request.user,
        )
        if error:
            return error
        return Response(LotSerializer(lots, many=True).data, status=status.HTTP_201_CREATED)


class SyncView(StaffOperationView):
    @extend_schema(
        tags=["Inventory Endpoints"],
        summary="Reconcile stock with lots",
        request=SyncSerializer,
        responses={
            200: inline_serializer(
                name="SyncReport",
                fields={
                    "checked": rf_serializers.IntegerField(),
                    "corrected": rf_serializers.IntegerField(),
                    "corrections": rf_serializers.ListField(child=rf_serializers.DictField()),
                },
            )
        },
        examples=[OpenApiExample("Clean", value={"checked": 4, "corrected": 0, "corrections": []})],
    )
    def post(self, request):
        serializer = SyncSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        data = serializer.validated_data
        report = sync_with_lots(product=data.get("product"), warehouse=data.get("warehouse"))
        return Response(
            {"checked": report.checked, "corrected": report.corrected, "corrections": report.corrections},
            status=status.HTTP_200_OK,
        )


class AllocationPreviewView(StaffOperationView):
    @extend_schema(
        tags=["Inventory Endpoints"],
        summary="Preview a stock allocation",
        description="Plans where each requested quantity would be taken from. No stock is reserved.",
        request=AllocationPreviewSerializer,
        responses={200: rf_serializers.ListField(child=rf_serializers.DictField()), 409: INVENTORY_ERROR},
        examples=[
            OpenApiExample(
                "Split",
                value=[
                    {
                        "product_id": 10,
                        "allocation": [
                            {"warehouse_id": 1, "warehouse_name": "Main", "quantity": 5},
                            {"warehouse_id": 2, "warehouse_name": "North", "quantity": 7},
                        ],
                    }
                ],
                response_only=True,
            )
        ],
    )
    def post(self, request):
        serializer = AllocationPreviewSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        data = serializer.validated_data
        warehouses = list(sellable_warehouses(online_only=data["online_only"]))
        plan, error = self.run(
            plan_allocation,
            requests=[(i["product_id"], i["quantity"]) for i in data["items"]],
            warehouses=warehouses,
        )
        if error:
            return error
        return Response(plan.to_json(), status=status.HTTP_200_OK)


# EOF

"""DRF views for pricing checks."""

from drf_spectacular.utils import OpenApiExample, extend_schema
from inventory.costing import weighted_average_cost
from rest_framework import permissions, status
from rest_framework.response import Response
from rest_framework.views import APIView

from .serializers import MarginCheckResultSerializer, MarginCheckSerializer
from .services import validate_proposed_price


class MarginCheckView(APIView):
    """Validate a proposed sale price against the product's minimum margin."""

    permission_classes = [permissions.IsAdminUser]
    throttle_scope = "pricing"

    @extend_schema(
        tags=["Pricing Endpoints"],
        summary="Check a proposed price",
        description=(
            "Computes the margin over cost and compares it with the minimum inherited from the product's "
            "category. Without an explicit cost the weighted-average cost across warehouses is used."
        ),
        request=MarginCheckSerializer,
        responses={200: MarginCheckResultSerializer},
        examples=[
            OpenApiExample(
                "Below minimum",
                value={
                    "is_valid": False,
                    "margin": "10.00",
                    "min_margin": "20.00",
                    "suggested_min_price": "120.00",
                    "category": "Hardware > Storage",
                    "cost": "100.0000",
                },
                response_only=True,
            )
        ],
    )
    def post(self, request):
        serializer = MarginCheckSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        data = serializer.validated_data
        product = data["product"]
        cost = data.get("cost")
        if cost is None:
            cost = weighted_average_cost(product)
        result = validate_proposed_price(data["proposed_price"], cost, product)
        return Response(MarginCheckResultSerializer(result).data, status=status.HTTP_200_OK)

from django.urls import path

from .views import (
    AdjustInView,
    AdjustOutView,
    AllocationPreviewView,
    InventoryHealthView,
    LotListView,
    MovementListView,
    ReservationListView,
    StockListView,
    SyncView,
    TransferView,
)

urlpatterns = [
    path("health/", InventoryHealthView.as_view(), name="inventory-health"),
    # Read-only endpoints
    path("stock/", StockListView.as_view(), name="stock-list"),
    path("batches/", LotListView.as_view(), name="lot-list"),
    path("movements/", MovementListView.as_view(), name="movement-list"),
    path("reservations/", ReservationListView.as_view(), name="reservation-list"),
    # Staff operations
    path("adjust-in/", AdjustInView.as_view(), name="inventory-adjust-in"),
    path("adjust-out/", AdjustOutView.as_view(), name="inventory-adjust-out"),
    path("transfer/", TransferView.as_view(), name="inventory-transfer"),
    path("sync/", SyncView.as_view(), name="inventory-sync"),
    path("allocation-preview/", AllocationPreviewView.as_view(), name="inventory-allocation-preview"),
]

# EOF

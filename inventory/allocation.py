"""Allocation planner: spread requested quantities over warehouses.

Planning is read-only. It takes one snapshot of free stock
(``available_stock - reserved_stock``) and walks warehouses in priority
order; the resulting plan is only binding once it is reserved through
``inventory.services.reserve_allocation``.
"""

from collections import OrderedDict
from dataclasses import dataclass, field
from typing import Dict, Iterable, List, Optional, Tuple

from .errors import InsufficientGlobalStock, InventoryError
from .models import InventoryRecord, Warehouse


@dataclass
class AllocationEntry:
    warehouse_id: int
    warehouse_name: str
    quantity: int


@dataclass
class ProductAllocation:
    product_id: int
    requested: int
    entries: List[AllocationEntry] = field(default_factory=list)

    @property
    def allocated(self) -> int:
        return sum(e.quantity for e in self.entries)

    def requires_notes(self, main_warehouse_id: Optional[int]) -> bool:
        """True when the product is split or served outside the main warehouse."""
        if len(self.entries) > 1:
            return True
        return any(e.warehouse_id != main_warehouse_id for e in self.entries)


@dataclass
class AllocationPlan:
    products: List[ProductAllocation] = field(default_factory=list)
    main_warehouse_id: Optional[int] = None

    def for_product(self, product_id: int) -> Optional[ProductAllocation]:
        for pa in self.products:
            if pa.product_id == product_id:
                return pa
        return None

    def entries(self) -> List[Tuple[int, AllocationEntry]]:
        """Flat ``(product_id, entry)`` pairs in (product, warehouse) order."""
        pairs = [(pa.product_id, e) for pa in self.products for e in pa.entries]
        return sorted(pairs, key=lambda pair: (pair[0], pair[1].warehouse_id))

    def requires_notes(self) -> bool:
        return any(pa.requires_notes(self.main_warehouse_id) for pa in self.products)

    def notes(self) -> str:
        lines = []
        for pa in self.products:
            if not pa.requires_notes(self.main_warehouse_id):
                continue
            sources = ", ".join(f"{e.warehouse_name} ({e.quantity})" for e in pa.entries)
            lines.append(f"Product {pa.product_id} allocated from {sources}")
        return "\n".join(lines)

    def to_json(self) -> List[dict]:
        return [
            {
                "product_id": pa.product_id,
                "allocation": [
                    {"warehouse_id": e.warehouse_id, "warehouse_name": e.warehouse_name, "quantity": e.quantity}
                    for e in pa.entries
                ],
            }
            for pa in self.products
        ]

    @classmethod
    def from_json(cls, data: Optional[List[dict]], main_warehouse_id: Optional[int] = None) -> "AllocationPlan":
        products = []
        for row in data or []:
            entries = [
                AllocationEntry(
                    warehouse_id=int(a["warehouse_id"]),
                    warehouse_name=a.get("warehouse_name", ""),
                    quantity=int(a["quantity"]),
                )
                for a in row.get("allocation", [])
            ]
            products.append(
                ProductAllocation(
                    product_id=int(row["product_id"]),
                    requested=sum(e.quantity for e in entries),
                    entries=entries,
                )
            )
        return cls(products=products, main_warehouse_id=main_warehouse_id)


def _merge_requests(requests: Iterable) -> "OrderedDict[int, int]":
    merged: "OrderedDict[int, int]" = OrderedDict()
    for req in requests:
        if isinstance(req, dict):
            product_id, quantity = req["product_id"], req["quantity"]
        else:
            product_id, quantity = req
        quantity = int(quantity)
        if quantity <= 0:
            raise InventoryError(f"Requested quantity for product {product_id} must be positive")
        merged[int(product_id)] = merged.get(int(product_id), 0) + quantity
    return merged


def _priority_key(w: Warehouse):
    return (not w.is_main, -int(w.picking_priority), w.id)


def free_stock_snapshot(product_ids, warehouse_ids) -> Dict[Tuple[int, int], int]:
    rows = InventoryRecord.objects.filter(product_id__in=product_ids, warehouse_id__in=warehouse_ids).values_list(
        "product_id", "warehouse_id", "available_stock", "reserved_stock"
    )
    return {(p, w): max(0, int(a) - int(r)) for p, w, a, r in rows}


def plan_allocation(requests: Iterable, warehouses: Optional[Iterable[Warehouse]] = None) -> AllocationPlan:
    """Plan where each requested quantity will be taken from.

    ``requests`` holds ``(product_id, quantity)`` pairs or dicts with those
    keys; duplicates are merged. Raises ``InsufficientGlobalStock`` for the
    first product the active warehouses cannot cover.
    """
    merged = _merge_requests(requests)
    if warehouses is None:
        ranked = list(Warehouse.objects.active().by_priority())
    else:
        ranked = sorted((w for w in warehouses if w.is_active), key=_priority_key)
    main = next((w for w in ranked if w.is_main), None)
    snapshot = free_stock_snapshot(list(merged.keys()), [w.id for w in ranked])

    plan = AllocationPlan(main_warehouse_id=main.id if main else None)
    for product_id, requested in merged.items():
        remaining = requested
        allocation = ProductAllocation(product_id=product_id, requested=requested)
        for w in ranked:
            if remaining == 0:
                break
            free = snapshot.get((product_id, w.id), 0)
            take = min(remaining, free)
            if take > 0:
                allocation.entries.append(AllocationEntry(warehouse_id=w.id, warehouse_name=w.name, quantity=take))
                remaining -= take
        if remaining > 0:
            raise InsufficientGlobalStock(product_id=product_id, requested=requested, available=requested - remaining)
        plan.products.append(allocation)
    return plan


def global_free_stock(product_id: int, warehouses: Optional[Iterable[Warehouse]] = None) -> int:
    if warehouses is None:
        warehouses = Warehouse.objects.active()
    ids = [w.id for w in warehouses if w.is_active]
    return sum(free_stock_snapshot([product_id], ids).values())

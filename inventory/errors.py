"""Inventory domain errors.

Each error carries the data needed to report it and renders itself with
``as_dict()`` for API responses.
"""

from typing import Optional


class InventoryError(Exception):
    code = "inventory_error"

    def as_dict(self) -> dict:
        return {"error": self.code, "detail": str(self)}


class InsufficientStock(InventoryError):
    code = "insufficient_stock"

    def __init__(self, product_id: int, requested: int, available: int, warehouse_id: Optional[int] = None):
        where = f" in warehouse {warehouse_id}" if warehouse_id is not None else ""
        super().__init__(
            f"Insufficient stock for product {product_id}{where}: requested {requested}, available {available}"
        )
        self.product_id = product_id
        self.requested = requested
        self.available = available
        self.warehouse_id = warehouse_id

    def as_dict(self) -> dict:
        return {
            "error": self.code,
            "detail": str(self),
            "product_id": self.product_id,
            "warehouse_id": self.warehouse_id,
            "requested": self.requested,
            "available": self.available,
        }


class InsufficientLotStock(InventoryError):
    """Active lots do not cover the requested quantity."""

    code = "insufficient_lot_stock"

    def __init__(self, requested: int, available: int):
        super().__init__(f"Insufficient lot stock: requested {requested}, available {available}")
        self.requested = requested
        self.available = available

    def as_dict(self) -> dict:
        return {"error": self.code, "detail": str(self), "requested": self.requested, "available": self.available}


class InsufficientGlobalStock(InsufficientStock):
    """No combination of warehouses covers the requested quantity."""

    code = "insufficient_global_stock"

    def __init__(self, product_id: int, requested: int, available: int):
        super().__init__(product_id, requested, available)

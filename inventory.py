"""
Stock reconciliation for placed orders.

Stock is tracked at up to three granularities on a product document:

    stock                               scalar counter
    colors[i].stock                     per color
    colors[i].sizeStock[j].quantity     per color + size

plan_decrements() checks availability against an in-memory copy of the loaded
products and returns one StockAdjustment per catalog line; nothing is written.
apply_adjustments() then writes each adjustment as a single conditional
update_one, so a counter is only decremented if it is still large enough at
write time. A color or size the product does not track is ignored and only
the scalar counter moves.
"""
import copy
import logging
from typing import Dict, List, Optional

from pydantic import BaseModel
from pymongo.database import Database
from pymongo.errors import PyMongoError

from errors import InsufficientStock, PersistenceError
from line_items import LineRequest, as_document_id

log = logging.getLogger(__name__)


class StockAdjustment(BaseModel):
    product_id: str
    product_name: str
    quantity: int
    color: Optional[str] = None
    size: Optional[str] = None
    color_index: Optional[int] = None
    size_index: Optional[int] = None

    def _color_path(self) -> str:
        return f"colors.{self.color_index}"

    def _size_path(self) -> str:
        return f"colors.{self.color_index}.sizeStock.{self.size_index}"

    def counter_increments(self, sign: int) -> Dict[str, int]:
        inc = {"stock": sign * self.quantity}
        if self.color_index is not None:
            inc[f"{self._color_path()}.stock"] = sign * self.quantity
            if self.size_index is not None:
                inc[f"{self._size_path()}.quantity"] = sign * self.quantity
        return inc

    def decrement_filter(self) -> Dict:
        """Matches the product only while every touched counter still covers the quantity."""
        filt = {"_id": as_document_id(self.product_id), "stock": {"$gte": self.quantity}}
        if self.color_index is not None:
            filt[f"{self._color_path()}.color"] = self.color
            filt[f"{self._color_path()}.stock"] = {"$gte": self.quantity}
            if self.size_index is not None:
                filt[f"{self._size_path()}.size"] = self.size
                filt[f"{self._size_path()}.quantity"] = {"$gte": self.quantity}
        return filt


class InventoryPlan(BaseModel):
    adjustments: List[StockAdjustment]
    products: Dict[str, dict]


def find_color_index(product: dict, color: Optional[str]) -> Optional[int]:
    if not color:
        return None
    for i, entry in enumerate(product.get("colors") or []):
        if entry.get("color") == color:
            return i
    return None


def find_size_index(color_entry: dict, size: Optional[str]) -> Optional[int]:
    if not size:
        return None
    for i, entry in enumerate(color_entry.get("sizeStock") or []):
        if entry.get("size") == size:
            return i
    return None


def _take(name: str, available: int, quantity: int) -> int:
    if available < quantity:
        raise InsufficientStock(name, available, quantity)
    return available - quantity


def plan_decrements(lines: List[LineRequest], products: Dict[str, dict]) -> InventoryPlan:
    """
    Check every catalog line against the loaded products and compute the new
    counter values in memory.

    Lines for the same product are checked cumulatively. Raises
    InsufficientStock on the first shortfall; the loaded documents are left
    unmodified.
    """
    working = {pid: copy.deepcopy(doc) for pid, doc in products.items()}
    adjustments = []

    for line in lines:
        if line.is_custom_design:
            continue
        key = line.key
        product = working[key.product_id]
        name = product.get("name", key.product_id)
        qty = line.quantity

        product["stock"] = _take(name, product.get("stock") or 0, qty)

        color_index = find_color_index(product, key.color)
        size_index = None
        if color_index is not None:
            color_entry = product["colors"][color_index]
            color_entry["stock"] = _take(f"{name} ({key.color})", color_entry.get("stock") or 0, qty)
            size_index = find_size_index(color_entry, key.size)
            if size_index is not None:
                size_entry = color_entry["sizeStock"][size_index]
                size_entry["quantity"] = _take(f"{name} ({key.color}, {key.size})",
                                               size_entry.get("quantity") or 0, qty)
            elif key.size:
                log.info(f"Size {key.size} not tracked for {name} ({key.color}); only color and scalar stock change")
        elif key.color:
            log.info(f"Color {key.color} not tracked for {name}; only scalar stock changes")

        adjustments.append(StockAdjustment(
            product_id=key.product_id,
            product_name=name,
            quantity=qty,
            color=key.color,
            size=key.size,
            color_index=color_index,
            size_index=size_index,
        ))

    return InventoryPlan(adjustments=adjustments, products=working)


def release_adjustments(db: Database, applied: List[StockAdjustment]):
    """Give back stock taken by adjustments that were already written."""
    for adj in reversed(applied):
        try:
            db["product"].update_one({"_id": as_document_id(adj.product_id)},
                                     {"$inc": adj.counter_increments(+1)})
            log.info(f"Released {adj.quantity} x {adj.product_name}")
        except Exception as e:
            log.critical(f"Stock release failed for {adj.product_name} ({adj.quantity}): {e}. Manual correction needed!")


def apply_adjustments(db: Database, adjustments: List[StockAdjustment]) -> List[StockAdjustment]:
    """
    Write the planned decrements, one atomic conditional update per line.

    If a counter ran short since planning (a concurrent checkout got there
    first) or the database fails, everything written so far is released and
    InsufficientStock / PersistenceError is raised.
    """
    applied: List[StockAdjustment] = []
    for adj in adjustments:
        try:
            result = db["product"].update_one(adj.decrement_filter(), {"$inc": adj.counter_increments(-1)})
        except Exception as e:
            release_adjustments(db, applied)
            raise PersistenceError(str(e)) from e
        if result.modified_count == 0:
            log.warning(f"Stock for {adj.product_name} changed during checkout; releasing {len(applied)} adjustment(s)")
            release_adjustments(db, applied)
            raise InsufficientStock(adj.product_name)
        applied.append(adj)
    return applied


def get_available_stock(product: dict, color: Optional[str] = None, size: Optional[str] = None) -> int:
    """Stock available at the finest granularity the product tracks for this color/size."""
    color_index = find_color_index(product, color)
    if color_index is None:
        return product.get("stock") or 0
    color_entry = product["colors"][color_index]
    size_index = find_size_index(color_entry, size)
    if size_index is None:
        return color_entry.get("stock") or 0
    return color_entry["sizeStock"][size_index].get("quantity") or 0


def check_availability(product: dict, color: Optional[str], size: Optional[str], requested: int) -> dict:
    available = get_available_stock(product, color, size)
    if available >= requested:
        message = "In Stock"
    elif available > 0:
        message = f"Only {available} available"
    else:
        message = "Out of Stock"
    return {
        "isAvailable": available >= requested,
        "availableStock": available,
        "requestedQuantity": requested,
        "canPartialFulfill": 0 < available < requested,
        "message": message,
    }

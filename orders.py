"""
Order placement: validated cart in, persisted order out.

Steps, once per request:
    1. resolve cart keys into lines and load the referenced products/designs
    2. plan stock decrements in memory (fails before any write)
    3. price the order
    4. commit: conditional stock decrements, order insert, cart cleanup

Failures of steps 1-3 leave the database untouched. A failure while
committing releases the stock taken so far. Errors are returned as an
OrderResult, never raised to the caller.
"""
import logging
from typing import Any, Dict, List, Optional

import bson
from bson.errors import InvalidDocument
from pydantic import ValidationError
from pymongo.database import Database
from pymongo.errors import PyMongoError

from database import create_document, get_documents
from errors import InvalidRequest, OrderError, PersistenceError, ProductNotFound, Unauthenticated, UserNotFound
from inventory import InventoryPlan, apply_adjustments, plan_decrements, release_adjustments
from line_items import LineRequest, load_products, resolve_lines
from pricing import PriceBreakdown, price_order
from schemas import Order, OrderLine, OrderRequest, OrderResult

log = logging.getLogger(__name__)

ORDER_PLACED = "Order Placed"
CART_CLEANUP_ATTEMPTS = 3


def parse_order_request(payload: Any) -> OrderRequest:
    if not isinstance(payload, dict):
        raise InvalidRequest()
    try:
        return OrderRequest.model_validate(payload)
    except ValidationError as e:
        log.info(f"Rejected order payload: {e.errors()}")
        raise InvalidRequest() from e


def load_user(db: Database, user_id: str) -> dict:
    try:
        user = db["user"].find_one({"_id": user_id})
    except PyMongoError as e:
        raise PersistenceError(str(e)) from e
    if user is None:
        raise UserNotFound()
    return user


def load_custom_designs(db: Database, user_id: str, lines: List[LineRequest]) -> Dict[str, dict]:
    design_ids = [line.key.design_id for line in lines if line.is_custom_design]
    if not design_ids:
        return {}
    stored = load_user(db, user_id).get("customDesigns") or {}
    designs = {}
    for design_id in design_ids:
        if design_id not in stored:
            raise ProductNotFound(design_id)
        designs[design_id] = stored[design_id]
    return designs


def build_order_lines(lines: List[LineRequest], pricing: PriceBreakdown, designs: Dict[str, dict]) -> List[OrderLine]:
    order_lines = []
    for line, unit_price in zip(lines, pricing.unit_prices):
        if line.is_custom_design:
            design = designs[line.key.design_id]
            order_lines.append(OrderLine(
                product=line.key.design_id,
                quantity=line.quantity,
                price=unit_price,
                color=design.get("color") or "As specified",
                size=design.get("size") or "M",
                isCustomDesign=True,
                customDesignId=line.key.design_id,
                customDesignImage=design.get("designImage") or "",
                designName=design.get("designName") or "Custom Design",
            ))
        else:
            order_lines.append(OrderLine(
                product=line.key.product_id,
                quantity=line.quantity,
                price=unit_price,
                color=line.key.color,
                size=line.key.size,
            ))
    return order_lines


def ensure_storable(doc: Dict[str, Any]):
    """Reject documents MongoDB cannot store (oversized ints, unencodable values)."""
    try:
        bson.encode(doc)
    except (InvalidDocument, OverflowError) as e:
        log.info(f"Order document cannot be stored: {e}")
        raise InvalidRequest() from e


def clear_ordered_cart_keys(db: Database, user_id: str, lines: List[LineRequest]) -> bool:
    """
    Remove the ordered keys from the user's cart; unrelated keys stay.

    The cart is rewritten as a whole, guarded by its previous value, so keys
    containing '.' or '$' are removed like any other. Returns True only when
    none of the ordered keys remain.
    """
    ordered = {line.key.raw for line in lines}
    try:
        for _ in range(CART_CLEANUP_ATTEMPTS):
            user = db["user"].find_one({"_id": user_id}, {"cartItems": 1})
            if user is None:
                log.warning(f"[User: {user_id}] User not found for cart cleanup")
                return False
            cart = user.get("cartItems") or {}
            remaining = {k: v for k, v in cart.items() if k not in ordered}
            if len(remaining) == len(cart):
                return True
            result = db["user"].update_one({"_id": user_id, "cartItems": cart}, {"$set": {"cartItems": remaining}})
            if result.matched_count:
                return True
            log.info(f"[User: {user_id}] Cart changed during cleanup, retrying")
    except PyMongoError as e:
        log.error(f"[User: {user_id}] Cart cleanup failed after order was stored: {e}")
        return False
    log.error(f"[User: {user_id}] Cart kept changing; ordered keys left in cart")
    return False


def commit_order(db: Database, user_id: str, request: OrderRequest, lines: List[LineRequest],
                 plan: InventoryPlan, pricing: PriceBreakdown, designs: Dict[str, dict]) -> OrderResult:
    # Order line shape is fixed: color/size are always present, None when not applicable.
    order = Order(
        userId=str(user_id),
        address=request.address,
        items=build_order_lines(lines, pricing, designs),
        subtotal=pricing.subtotal,
        amount=pricing.amount,
        paymentMethod=request.paymentMethod or "COD",
        paymentStatus=request.paymentStatus or "Pending",
    )

    order_doc = order.model_dump()
    ensure_storable(order_doc)

    applied = apply_adjustments(db, plan.adjustments)
    try:
        order_id = create_document("order", order_doc, database=db)
    except Exception as e:
        log.error(f"[User: {user_id}] Order insert failed, releasing stock: {e}")
        release_adjustments(db, applied)
        raise PersistenceError(str(e)) from e

    log.info(f"[User: {user_id}] Order {order_id} stored, amount {order.amount}")
    cart_cleared = clear_ordered_cart_keys(db, user_id, lines)
    return OrderResult(success=True, message=ORDER_PLACED, orderId=order_id,
                       amount=order.amount, cartCleared=cart_cleared)


def _place_order(db: Database, user_id: Optional[str], payload: Any) -> OrderResult:
    if not user_id:
        raise Unauthenticated()

    request = parse_order_request(payload)
    lines = resolve_lines(request.items)
    log.info(f"[User: {user_id}] Placing order with {len(lines)} line(s), payment {request.paymentMethod}")

    products = load_products(db, lines)
    designs = load_custom_designs(db, user_id, lines)
    plan = plan_decrements(lines, products)
    pricing = price_order(lines, products, designs)

    return commit_order(db, user_id, request, lines, plan, pricing, designs)


def place_order(db: Database, user_id: Optional[str], payload: Any) -> OrderResult:
    """
    Place an order for `user_id` from a raw request payload
    `{address, items: [{product, quantity}], paymentMethod, paymentStatus?}`.

    Always returns an OrderResult.
    """
    try:
        return _place_order(db, user_id, payload)
    except OrderError as e:
        log.warning(f"[User: {user_id}] Order rejected: {e.message}")
        return OrderResult(success=False, message=e.message)
    except PyMongoError as e:
        log.error(f"[User: {user_id}] Database error during checkout: {e}")
        return OrderResult(success=False, message=str(e))
    except Exception as e:
        log.critical(f"[User: {user_id}] Unexpected checkout failure: {e}", exc_info=True)
        return OrderResult(success=False, message=str(e))


def list_orders(db: Database, user_id: str) -> List[Dict[str, Any]]:
    orders = get_documents("order", {"userId": str(user_id)}, sort=[("date", -1)], database=db)
    for o in orders:
        o["id"] = str(o.pop("_id"))
    return orders

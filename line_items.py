"""
Turns submitted cart keys into concrete order lines.

A cart key is either a catalog key `productId[_color[_size]]` or a custom
design key `custom_<designId>`. Keys are parsed once, here; the rest of the
order code works with the typed ProductKey / CustomDesignKey models.
"""
import logging
from typing import Dict, List, Literal, Optional, Union

from bson import ObjectId
from pydantic import BaseModel
from pymongo.database import Database
from pymongo.errors import PyMongoError

from errors import InvalidRequest, PersistenceError, ProductNotFound
from schemas import OrderItemIn

log = logging.getLogger(__name__)

CART_KEY_DELIMITER = "_"
CUSTOM_DESIGN_PREFIX = "custom_"


class ProductKey(BaseModel):
    kind: Literal["product"] = "product"
    raw: str
    product_id: str
    color: Optional[str] = None
    size: Optional[str] = None


class CustomDesignKey(BaseModel):
    kind: Literal["custom_design"] = "custom_design"
    raw: str
    design_id: str


CartKey = Union[ProductKey, CustomDesignKey]


class LineRequest(BaseModel):
    key: CartKey
    quantity: int

    @property
    def is_custom_design(self) -> bool:
        return self.key.kind == "custom_design"


def parse_cart_key(raw: str) -> CartKey:
    """
    Parse a cart key.

    `p1` -> product only, `p1_#FF0000` -> product + color,
    `p1_#FF0000_L` -> product + color + size. Anything with more segments, or
    an empty segment, is rejected.
    """
    if raw.startswith(CUSTOM_DESIGN_PREFIX):
        design_id = raw[len(CUSTOM_DESIGN_PREFIX):]
        if not design_id:
            raise InvalidRequest()
        return CustomDesignKey(raw=raw, design_id=design_id)

    parts = raw.split(CART_KEY_DELIMITER)
    if len(parts) > 3 or any(not p for p in parts):
        raise InvalidRequest()

    color = parts[1] if len(parts) >= 2 else None
    size = parts[2] if len(parts) == 3 else None
    return ProductKey(raw=raw, product_id=parts[0], color=color, size=size)


def resolve_lines(items: List[OrderItemIn]) -> List[LineRequest]:
    return [LineRequest(key=parse_cart_key(item.product), quantity=item.quantity) for item in items]


def as_document_id(value: str):
    """Catalog ids are ObjectIds in production; plain strings are kept as-is."""
    if ObjectId.is_valid(value):
        return ObjectId(value)
    return value


def load_products(db: Database, lines: List[LineRequest]) -> Dict[str, dict]:
    """
    Load every product referenced by the catalog lines, keyed by product id.

    Raises ProductNotFound for the first id that does not exist, before any
    write happens.
    """
    products: Dict[str, dict] = {}
    for line in lines:
        if line.is_custom_design:
            continue
        product_id = line.key.product_id
        if product_id in products:
            continue
        try:
            product = db["product"].find_one({"_id": as_document_id(product_id)})
        except PyMongoError as e:
            raise PersistenceError(str(e)) from e
        if product is None:
            log.warning(f"Product {product_id} not found")
            raise ProductNotFound(product_id)
        products[product_id] = product
    return products

"""Order totals: line subtotals plus the flat 2% service surcharge."""
from decimal import ROUND_HALF_UP, Decimal
from typing import Dict, List

from pydantic import BaseModel

from line_items import LineRequest

SURCHARGE_RATE = Decimal("0.02")
# Quotes on custom designs are stored in minor units (paisa).
QUOTE_MINOR_UNITS = 100
DEFAULT_CUSTOM_DESIGN_PRICE = Decimal("11000")


class PriceBreakdown(BaseModel):
    unit_prices: List[float]
    subtotal: float
    amount: int


def to_decimal(value) -> Decimal:
    return Decimal(str(value))


def apply_surcharge(subtotal: Decimal) -> int:
    """subtotal x 1.02, rounded half-up to whole currency units."""
    total = subtotal * (1 + SURCHARGE_RATE)
    return int(total.quantize(Decimal("1"), rounding=ROUND_HALF_UP))


def catalog_unit_price(product: dict) -> Decimal:
    price = product.get("offerPrice")
    if price is None:
        price = product.get("price", 0)
    return to_decimal(price)


def custom_design_unit_price(design: dict) -> Decimal:
    quote = design.get("quote") or {}
    if quote.get("amount"):
        return to_decimal(quote["amount"]) / QUOTE_MINOR_UNITS
    return DEFAULT_CUSTOM_DESIGN_PRICE


def price_order(lines: List[LineRequest], products: Dict[str, dict], designs: Dict[str, dict]) -> PriceBreakdown:
    unit_prices = []
    subtotal = Decimal("0")
    for line in lines:
        if line.is_custom_design:
            unit = custom_design_unit_price(designs[line.key.design_id])
        else:
            unit = catalog_unit_price(products[line.key.product_id])
        unit_prices.append(float(unit))
        subtotal += unit * line.quantity
    return PriceBreakdown(unit_prices=unit_prices, subtotal=float(subtotal), amount=apply_surcharge(subtotal))

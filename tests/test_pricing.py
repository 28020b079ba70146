from decimal import ROUND_HALF_UP, Decimal

import pytest

from line_items import resolve_lines
from pricing import apply_surcharge, price_order
from schemas import OrderItemIn


def _lines(*items):
    return resolve_lines([OrderItemIn(product=key, quantity=qty) for key, qty in items])


def test_two_units_at_100():
    pricing = price_order(_lines(("p1", 2)), {"p1": {"offerPrice": 100}}, {})
    assert pricing.subtotal == 200
    assert pricing.amount == 204


def test_surcharge_applies_to_whole_order():
    products = {"p1": {"offerPrice": 10}, "p2": {"offerPrice": 15}}
    # per-line rounding would give 10 + 15 = 25; the order total is round(25 * 1.02) = 26
    pricing = price_order(_lines(("p1", 1), ("p2", 1)), products, {})
    assert pricing.amount == 26


def test_half_up_rounding():
    assert apply_surcharge(Decimal("125")) == 128
    assert apply_surcharge(Decimal("75")) == 77


@pytest.mark.parametrize("offer_price,quantity", [(100, 1), (499, 3), (799.5, 2), (1299, 7)])
def test_single_line_amount(offer_price, quantity):
    pricing = price_order(_lines(("p1", quantity)), {"p1": {"offerPrice": offer_price}}, {})
    expected = (Decimal(str(offer_price)) * quantity * Decimal("1.02")).quantize(Decimal("1"), rounding=ROUND_HALF_UP)
    assert pricing.amount == int(expected)


def test_falls_back_to_list_price():
    pricing = price_order(_lines(("p1", 1)), {"p1": {"price": 50}}, {})
    assert pricing.amount == 51


def test_custom_design_price_from_quote():
    designs = {"d1": {"quote": {"amount": 250000}}}
    pricing = price_order(_lines(("custom_d1", 2)), {}, designs)
    assert pricing.unit_prices == [2500.0]
    assert pricing.amount == 5100


def test_custom_design_without_quote_uses_default_price():
    pricing = price_order(_lines(("custom_d1", 1)), {}, {"d1": {"designName": "Team kit"}})
    assert pricing.unit_prices == [11000.0]

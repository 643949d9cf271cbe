"""Unit tests for the valuation engine.

Usages are built through ``payloads`` where the point is how a raw backend
value ends up priced, and as dataclasses directly otherwise.
"""

from decimal import Decimal

import pytest

from apps.service_orders.domain import (
    Catalog,
    Order,
    OrderStatus,
    Part,
    PartSelection,
    PartUsage,
    Service,
    ServiceUsage,
)
from apps.service_orders.money import round_money
from apps.service_orders.payloads import parse_order, parse_part_usage, parse_service_usage
from apps.service_orders.valuation import (
    compute_form_total,
    compute_order_total,
    price_of_part_usage,
    price_of_service_usage,
    resolve_display_total,
    summarize_orders,
)


def service_usage(price):
    return ServiceUsage(service_id="s", service=Service(id="s", name="Alignment", price=price))


def part_usage(price, quantity=1):
    return PartUsage(part_id="p", part=Part(id="p", name="Filter", price=price), quantity=quantity)


def test_service_price_prefers_nested_catalog_record():
    usage = parse_service_usage({"service": {"id": "s1", "price": 80}, "price": 10})
    assert price_of_service_usage(usage) == Decimal("80")


def test_service_price_falls_back_to_flat_price_then_zero():
    assert price_of_service_usage(parse_service_usage({"preco": "35.5"})) == Decimal("35.5")
    assert price_of_service_usage(parse_service_usage({"service": {"price": "n/a"}})) == Decimal("0")
    assert price_of_service_usage(parse_service_usage({})) == Decimal("0")


def test_part_price_multiplies_by_quantity():
    usage = parse_part_usage({"part": {"price": "45.00"}, "quantity": 3})
    assert price_of_part_usage(usage) == Decimal("135")


def test_part_price_with_non_numeric_quantity_is_zero():
    usage = parse_part_usage({"part": {"price": "45.00"}, "quantity": "abc"})
    assert usage.quantity == 0
    assert price_of_part_usage(usage) == Decimal("0")


@pytest.mark.parametrize(
    "raw, expected",
    [
        ({"part": {"price": 10}}, 1),
        ({"part": {"price": 10}, "quantity": None, "quantidade": 4}, 4),
        ({"part": {"price": 10}, "qty": "2"}, 2),
        ({"part": {"price": 10}, "amount": 5}, 5),
        ({"part": {"price": 10}, "quantity": 0}, 0),
        ({"part": {"price": 10}, "quantity": 1.5}, 0),
        ({"part": {"price": 10}, "quantity": -2}, 0),
    ],
)
def test_part_quantity_resolution(raw, expected):
    assert parse_part_usage(raw).quantity == expected


@pytest.mark.parametrize(
    "price, expected",
    [
        ("10.005", Decimal("10.01")),
        ("10.004", Decimal("10.00")),
        (2.675, Decimal("2.68")),
    ],
)
def test_total_rounds_half_away_from_zero(price, expected):
    usage = parse_service_usage({"service": {"price": price}})
    assert compute_order_total([usage], []) == expected


def test_total_is_deterministic_and_never_negative():
    services = [service_usage(Decimal("80")), service_usage(None), service_usage(Decimal("19.99"))]
    parts = [part_usage(Decimal("12.50"), 2), part_usage(Decimal("7"), 0)]
    first = compute_order_total(services, parts)
    assert first == compute_order_total(services, parts)
    assert first == Decimal("124.99")
    assert compute_order_total([], []) == Decimal("0.00")


def test_bad_term_does_not_zero_the_whole_order():
    services = [service_usage(Decimal("NaN")), service_usage(Decimal("50"))]
    assert compute_order_total(services, []) == Decimal("50.00")


def test_form_total_uses_live_catalog_and_ignores_unknown_ids():
    catalog = Catalog.build(
        [Service(id="s1", price=Decimal("80")), Service(id="s2", price=None)],
        [Part(id="p1", price=Decimal("10"))],
    )
    total = compute_form_total(
        ["s1", "s2", "missing"],
        [PartSelection("p1", 3), PartSelection("p1", None), PartSelection("ghost", 2)],
        catalog,
    )
    assert total == Decimal("120.00")


def test_form_total_coerces_bad_quantities_to_zero():
    catalog = Catalog.build([], [Part(id="p1", price=Decimal("10"))])
    selections = [PartSelection("p1", "abc"), PartSelection("p1", 2.5), PartSelection("p1", "2")]
    assert compute_form_total([], selections, catalog) == Decimal("20.00")


def test_display_total_falls_back_to_computed_value():
    order = Order(id="o1", services_performed=(service_usage(Decimal("80")),))
    assert resolve_display_total(order) == Decimal("80.00")


def test_display_total_prefers_stored_value():
    order = Order(id="o1", total_value=Decimal("999"), services_performed=(service_usage(Decimal("80")),))
    assert resolve_display_total(order) == Decimal("999.00")


def test_display_total_of_normalized_order():
    order = parse_order(
        {
            "id": "o1",
            "totalValue": None,
            "servicesPerformed": [{"service": {"price": 80}}],
            "partsUsed": [{"part": {"price": 10}, "quantity": 3}],
        }
    )
    assert resolve_display_total(order) == Decimal("110.00")


def test_summary_counts_statuses_and_finished_revenue():
    orders = [
        Order(id="1", status=OrderStatus.FINISHED, total_value=Decimal("150")),
        Order(id="2", status=OrderStatus.FINISHED, services_performed=(service_usage(Decimal("40.10")),)),
        Order(id="3", status=OrderStatus.OPEN, total_value=Decimal("500")),
        Order(id="4", status=OrderStatus.CANCELED),
    ]
    summary = summarize_orders(orders)
    assert summary.total == 4
    assert summary.by_status[OrderStatus.FINISHED] == 2
    assert summary.by_status[OrderStatus.IN_PROGRESS] == 0
    assert summary.revenue == Decimal("190.10")


@pytest.mark.parametrize("huge", ["1e30", 1e300, "9e999999", 10**400])
def test_oversized_price_counts_as_zero_for_that_line_only(huge):
    order = parse_order({"servicesPerformed": [{"service": {"price": huge}}, {"service": {"price": 80}}]})
    assert compute_order_total(order.services_performed, order.parts_used) == Decimal("80.00")


def test_oversized_quantity_prices_the_line_at_zero():
    usage = parse_part_usage({"quantity": "9e999999", "part": {"price": 50}})
    assert price_of_part_usage(usage) == Decimal("0")
    assert price_of_part_usage(part_usage(Decimal("50"), 10**30)) == Decimal("0")


def test_oversized_stored_total_falls_back_to_computed():
    order = parse_order({"totalValue": 1e300, "servicesPerformed": [{"service": {"price": 80}}]})
    assert resolve_display_total(order) == Decimal("80.00")


def test_oversized_decimal_built_directly_is_ignored():
    assert price_of_service_usage(service_usage(Decimal("1e30"))) == Decimal("0")
    assert compute_form_total(["s"], [], Catalog.build([Service(id="s", price=Decimal("1e40"))], [])) == Decimal("0.00")


def test_round_money_never_raises():
    assert round_money(Decimal("1e40")) == Decimal("0")
    assert round_money(Decimal("999999999999.995")) == Decimal("1000000000000.00")

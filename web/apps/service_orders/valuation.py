"""Valuation of service orders.

Pure, synchronous functions computing monetary totals from canonical
usages and the live catalog. They are total functions: malformed values
have already been coerced by ``payloads.py`` and any term that still turns
out unusable contributes zero instead of raising, so one bad line never
zeroes a whole order.

Rounding: totals are rounded to cents with ``ROUND_HALF_UP`` (half away
from zero), e.g. ``10.005 -> 10.01`` and ``10.004 -> 10.00``.

Prices are always read from the catalog records attached to the usage at
read time; no price is snapshotted when a usage is created.
"""

from decimal import Decimal
from typing import Iterable, Optional, Sequence

from .domain import (
    Catalog,
    Order,
    OrderStatus,
    OrderSummary,
    PartSelection,
    PartUsage,
    ServiceUsage,
)
from .money import MAX_QUANTITY, ZERO, finite_or_zero, round_money, to_decimal, to_quantity


def _unit_price(nested_price: Optional[Decimal], flat_price: Optional[Decimal]) -> Decimal:
    """Resolve a unit price: nested catalog record, then flat usage field, then 0."""
    for candidate in (nested_price, flat_price):
        price = to_decimal(candidate)
        if price is not None:
            return price
    return ZERO


def price_of_service_usage(usage: ServiceUsage) -> Decimal:
    """Price of one service usage (services are always quantity 1)."""
    nested = usage.service.price if usage.service is not None else None
    return _unit_price(nested, usage.price)


def price_of_part_usage(usage: PartUsage) -> Decimal:
    """Price of one part usage: unit price times quantity.

    Returns:
        Non-negative Decimal. A quantity that was coerced to 0 yields 0.
    """
    nested = usage.part.price if usage.part is not None else None
    quantity = usage.quantity if isinstance(usage.quantity, int) and 0 < usage.quantity <= MAX_QUANTITY else 0
    return finite_or_zero(_unit_price(nested, usage.price) * quantity)


def compute_order_total(
    service_usages: Iterable[ServiceUsage],
    part_usages: Iterable[PartUsage],
) -> Decimal:
    """Sum all service and part usages and round to cents.

    Args:
        service_usages: Service usages of the order.
        part_usages: Part usages of the order.

    Returns:
        The rounded total, always finite and non-negative.
    """
    total = ZERO
    for usage in service_usages:
        total += finite_or_zero(price_of_service_usage(usage))
    for usage in part_usages:
        total += finite_or_zero(price_of_part_usage(usage))
    return round_money(total)


def compute_form_total(
    service_ids: Iterable[str],
    part_selections: Iterable[PartSelection],
    catalog: Catalog,
) -> Decimal:
    """Total of an order being composed, before any usage is persisted.

    Each selected id is looked up in the live catalog; unknown ids
    contribute 0. Part selection quantities follow the same coercion as
    persisted usages (non-numeric or fractional -> 0).
    """
    total = ZERO
    for service_id in service_ids:
        service = catalog.services.get(service_id)
        if service is not None:
            total += _unit_price(service.price, None)
    for selection in part_selections:
        part = catalog.parts.get(selection.id)
        if part is None:
            continue
        quantity = 1 if selection.quantity is None else to_quantity(selection.quantity)
        total += finite_or_zero(_unit_price(part.price, None) * quantity)
    return round_money(total)


def resolve_display_total(order: Order) -> Decimal:
    """Total to show for an order.

    A stored ``total_value`` (explicit entry or finalized value) wins; when
    it is absent the total is computed from the order's usages.
    """
    stored = to_decimal(order.total_value)
    if stored is not None:
        return round_money(stored)
    return compute_order_total(order.services_performed, order.parts_used)


def summarize_orders(orders: Sequence[Order]) -> OrderSummary:
    """Dashboard figures: counts per status and revenue of finished orders."""
    by_status = {status: 0 for status in OrderStatus}
    revenue = ZERO
    for order in orders:
        by_status[order.status] += 1
        if order.status == OrderStatus.FINISHED:
            revenue += resolve_display_total(order)
    return OrderSummary(total=len(orders), by_status=by_status, revenue=round_money(revenue))

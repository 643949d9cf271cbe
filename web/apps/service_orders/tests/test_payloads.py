"""Normalization of both backend shapes into canonical orders."""

from datetime import datetime
from decimal import Decimal

import pytest

from apps.service_orders.domain import OrderStatus
from apps.service_orders.money import to_decimal, to_quantity
from apps.service_orders.payloads import parse_catalog, parse_order, parse_orders


def test_rest_shape_is_parsed():
    order = parse_order(
        {
            "id": "o1",
            "number": "OS-1700000000000",
            "description": "Brake pads",
            "status": "IN_PROGRESS",
            "startDate": "2024-03-01T09:30:00+00:00",
            "endDate": None,
            "clientId": "c1",
            "vehicleId": "v1",
            "totalValue": 150,
            "servicesPerformed": [{"id": "u1", "serviceId": "s1", "service": {"id": "s1", "name": "Labor", "price": 100}}],
            "partsUsed": [{"id": "u2", "partId": "p1", "quantity": 2, "part": {"id": "p1", "price": "25"}}],
        }
    )
    assert order.status is OrderStatus.IN_PROGRESS
    assert order.start_date == datetime.fromisoformat("2024-03-01T09:30:00+00:00")
    assert order.end_date is None
    assert order.total_value == Decimal("150")
    assert order.services_performed[0].service.name == "Labor"
    assert order.parts_used[0].quantity == 2
    assert order.parts_used[0].part.price == Decimal("25")


def test_legacy_shape_is_parsed():
    order = parse_order(
        {
            "id": "o2",
            "numero": "42",
            "descricao": "Troca de oleo",
            "status": "concluida",
            "dataInicio": "2023-11-02",
            "dataFim": "2023-11-03T18:00:00",
            "observacoes": "cliente aguarda",
            "clienteId": "c9",
            "veiculoId": "v9",
            "valor": "89.90",
            "servicos": [{"servicoId": "s1", "servico": {"nome": "Oleo", "preco": "60"}}],
            "pecas": [{"pecaId": "p1", "quantidade": "2", "peca": {"nome": "Filtro", "preco": 14.95}}],
        }
    )
    assert order.number == "42"
    assert order.description == "Troca de oleo"
    assert order.status is OrderStatus.FINISHED
    assert order.observations == "cliente aguarda"
    assert (order.client_id, order.vehicle_id) == ("c9", "v9")
    assert order.total_value == Decimal("89.90")
    assert order.services_performed[0].service_id == "s1"
    assert order.services_performed[0].service.price == Decimal("60")
    assert order.parts_used[0].quantity == 2
    assert order.parts_used[0].part.name == "Filtro"


@pytest.mark.parametrize(
    "raw, expected",
    [
        ("OPEN", OrderStatus.OPEN),
        ("aberta", OrderStatus.OPEN),
        ("andamento", OrderStatus.IN_PROGRESS),
        ("concluida", OrderStatus.FINISHED),
        ("cancelada", OrderStatus.CANCELED),
        ("CANCELED", OrderStatus.CANCELED),
        ("archived", OrderStatus.OPEN),
        (None, OrderStatus.OPEN),
    ],
)
def test_status_normalization(raw, expected):
    assert parse_order({"id": "o", "status": raw}).status is expected


def test_null_value_falls_through_to_next_synonym():
    order = parse_order({"id": "o", "totalValue": None, "valor": "12.5"})
    assert order.total_value == Decimal("12.5")


def test_garbage_never_raises():
    order = parse_order(
        {
            "id": "o",
            "totalValue": "twelve",
            "startDate": "yesterday",
            "servicesPerformed": "not a list",
            "partsUsed": [{"part": "not a mapping", "quantity": True}],
        }
    )
    assert order.total_value is None
    assert order.start_date is None
    assert order.services_performed == ()
    assert order.parts_used[0].part is None
    assert order.parts_used[0].quantity == 0


def test_parse_orders_ignores_non_list_payloads():
    assert parse_orders(None) == []
    assert [o.id for o in parse_orders([{"id": "a"}, {"id": "b"}])] == ["a", "b"]


def test_catalog_skips_entries_without_id():
    catalog = parse_catalog(
        [{"id": "s1", "name": "Labor", "price": 100}, {"name": "orphan"}],
        [{"id": "p1", "nome": "Pad", "valor": "25.5", "estoque": 4, "estoqueMinimo": 2}],
    )
    assert list(catalog.services) == ["s1"]
    part = catalog.parts["p1"]
    assert (part.name, part.price, part.stock, part.min_stock) == ("Pad", Decimal("25.5"), 4, 2)


@pytest.mark.parametrize(
    "raw, expected",
    [
        (12, Decimal("12")),
        ("  7.25 ", Decimal("7.25")),
        (0.1, Decimal("0.1")),
        ("", None),
        ("abc", None),
        (float("nan"), None),
        (float("inf"), None),
        (-1, None),
        (True, None),
    ],
)
def test_to_decimal(raw, expected):
    assert to_decimal(raw) == expected


def test_to_quantity():
    assert to_quantity("3") == 3
    assert to_quantity(2.0) == 2
    assert to_quantity(2.5) == 0
    assert to_quantity("x") == 0


@pytest.mark.parametrize("huge", ["1e30", 1e300, "9e999999", 10**40])
def test_oversized_amounts_are_unusable(huge):
    order = parse_order({"id": "o", "totalValue": huge, "partsUsed": [{"quantity": huge, "part": {"price": huge}}]})
    assert order.total_value is None
    assert order.parts_used[0].quantity == 0
    assert order.parts_used[0].part.price is None


def test_amount_limits_are_inclusive():
    assert to_decimal("1000000000000") == Decimal("1e12")
    assert to_quantity(1_000_000) == 1_000_000
    assert to_quantity(1_000_001) == 0

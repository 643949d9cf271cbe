"""Normalization of backend payloads into canonical domain types.

The order backend has gone through several schema revisions: the
key-value backend stored Portuguese field names (``valor``, ``preco``,
``quantidade``, ``dataInicio``...) and lowercase statuses, while the REST
backend uses ``totalValue``, ``price``, ``quantity`` and upper-case
statuses. Both shapes still show up, sometimes in the same response.

Each raw model below declares, per logical field, an ordered tuple of
candidate keys. A single ``before`` validator picks the first candidate
that is present and not null; per-field ``BeforeValidator`` hooks then
coerce the value so that validation never fails on bad data.
The ``to_domain()`` methods produce the frozen dataclasses from
``domain.py``; nothing past this module sees raw dictionaries.
"""

import logging
from collections.abc import Mapping
from datetime import date, datetime
from decimal import Decimal
from typing import Annotated, Any, ClassVar, Dict, List, Optional, Tuple

from pydantic import BaseModel, BeforeValidator, ConfigDict, model_validator

from .domain import (
    Catalog,
    Order,
    OrderStatus,
    Part,
    PartUsage,
    Service,
    ServiceUsage,
)
from .money import to_decimal, to_quantity

logger = logging.getLogger(__name__)

Synonyms = Dict[str, Tuple[str, ...]]

LEGACY_STATUSES = {
    "aberta": OrderStatus.OPEN,
    "open": OrderStatus.OPEN,
    "andamento": OrderStatus.IN_PROGRESS,
    "em_andamento": OrderStatus.IN_PROGRESS,
    "in_progress": OrderStatus.IN_PROGRESS,
    "concluida": OrderStatus.FINISHED,
    "finished": OrderStatus.FINISHED,
    "cancelada": OrderStatus.CANCELED,
    "canceled": OrderStatus.CANCELED,
    "cancelled": OrderStatus.CANCELED,
}

PRICE_KEYS = ("price", "preco", "unitPrice", "unit_price", "valor")


# ---- Coercion hooks ----
def _as_text(value: Any) -> str:
    if isinstance(value, bool) or value is None:
        return ""
    if isinstance(value, (str, int)):
        return str(value)
    return ""


def _as_optional_text(value: Any) -> Optional[str]:
    text = _as_text(value)
    return text or None


def _as_datetime(value: Any) -> Optional[datetime]:
    if isinstance(value, datetime):
        return value
    if isinstance(value, date):
        return datetime(value.year, value.month, value.day)
    if isinstance(value, str) and value.strip():
        try:
            return datetime.fromisoformat(value.strip())
        except ValueError:
            logger.warning("unparsable date in payload", extra={"value": value})
    return None


def _as_status(value: Any) -> OrderStatus:
    if isinstance(value, OrderStatus):
        return value
    if isinstance(value, str):
        text = value.strip()
        if text in OrderStatus.__members__:
            return OrderStatus(text)
        legacy = LEGACY_STATUSES.get(text.lower())
        if legacy is not None:
            return legacy
    logger.warning("unknown order status, defaulting to OPEN", extra={"value": repr(value)})
    return OrderStatus.OPEN


def _as_mapping(value: Any) -> Optional[Mapping]:
    return value if isinstance(value, Mapping) else None


def _as_list(value: Any) -> list:
    return list(value) if isinstance(value, (list, tuple)) else []


Text = Annotated[str, BeforeValidator(_as_text)]
OptionalText = Annotated[Optional[str], BeforeValidator(_as_optional_text)]
Money = Annotated[Optional[Decimal], BeforeValidator(to_decimal)]
Quantity = Annotated[int, BeforeValidator(to_quantity)]
Timestamp = Annotated[Optional[datetime], BeforeValidator(_as_datetime)]
Status = Annotated[OrderStatus, BeforeValidator(_as_status)]


# ---- Raw records ----
class RawRecord(BaseModel):
    """Loosely-typed backend record with synonym resolution.

    Subclasses set ``SYNONYMS``: a mapping of field name to the ordered
    candidate keys looked up in the incoming payload. The first candidate
    with a non-null value wins; a null value counts as absent so the next
    candidate (or the field default) is used.
    """

    model_config = ConfigDict(frozen=True)

    SYNONYMS: ClassVar[Synonyms] = {}

    @model_validator(mode="before")
    @classmethod
    def _resolve_synonyms(cls, data: Any) -> Dict[str, Any]:
        if not isinstance(data, Mapping):
            return {}
        resolved: Dict[str, Any] = {}
        for name, candidates in cls.SYNONYMS.items():
            for key in candidates:
                if data.get(key) is not None:
                    resolved[name] = data[key]
                    break
        return resolved


class RawService(RawRecord):
    SYNONYMS: ClassVar[Synonyms] = {
        "id": ("id", "serviceId", "servicoId"),
        "name": ("name", "nome"),
        "price": PRICE_KEYS,
    }

    id: Text = ""
    name: Text = ""
    price: Money = None

    def to_domain(self) -> Service:
        return Service(id=self.id, name=self.name, price=self.price)


class RawPart(RawRecord):
    SYNONYMS: ClassVar[Synonyms] = {
        "id": ("id", "partId", "pecaId"),
        "name": ("name", "nome"),
        "price": PRICE_KEYS,
        "stock": ("stock", "stockQuantity", "estoque"),
        "min_stock": ("minStock", "minimumStock", "estoqueMinimo"),
    }

    id: Text = ""
    name: Text = ""
    price: Money = None
    stock: Quantity = 0
    min_stock: Quantity = 0

    def to_domain(self) -> Part:
        return Part(
            id=self.id,
            name=self.name,
            price=self.price,
            stock=self.stock,
            min_stock=self.min_stock,
        )


class RawServiceUsage(RawRecord):
    SYNONYMS: ClassVar[Synonyms] = {
        "id": ("id",),
        "order_id": ("orderId", "ordemId"),
        "service_id": ("serviceId", "servicoId"),
        "service": ("service", "servico"),
        "price": PRICE_KEYS,
    }

    id: OptionalText = None
    order_id: OptionalText = None
    service_id: OptionalText = None
    service: Annotated[Optional[RawService], BeforeValidator(_as_mapping)] = None
    price: Money = None

    def to_domain(self) -> ServiceUsage:
        service = self.service.to_domain() if self.service is not None else None
        return ServiceUsage(
            id=self.id,
            order_id=self.order_id,
            service_id=self.service_id or (service.id if service else None),
            service=service,
            price=self.price,
        )


class RawPartUsage(RawRecord):
    SYNONYMS: ClassVar[Synonyms] = {
        "id": ("id",),
        "order_id": ("orderId", "ordemId"),
        "part_id": ("partId", "pecaId"),
        "part": ("part", "peca"),
        "price": PRICE_KEYS,
        "quantity": ("quantity", "quantidade", "qty", "amount"),
    }

    id: OptionalText = None
    order_id: OptionalText = None
    part_id: OptionalText = None
    part: Annotated[Optional[RawPart], BeforeValidator(_as_mapping)] = None
    price: Money = None
    quantity: Quantity = 1

    def to_domain(self) -> PartUsage:
        part = self.part.to_domain() if self.part is not None else None
        return PartUsage(
            id=self.id,
            order_id=self.order_id,
            part_id=self.part_id or (part.id if part else None),
            part=part,
            price=self.price,
            quantity=self.quantity,
        )


class RawOrder(RawRecord):
    SYNONYMS: ClassVar[Synonyms] = {
        "id": ("id",),
        "number": ("number", "numero"),
        "description": ("description", "descricao"),
        "status": ("status",),
        "start_date": ("startDate", "dataInicio"),
        "end_date": ("endDate", "dataFim"),
        "observations": ("observations", "observacoes"),
        "client_id": ("clientId", "clienteId"),
        "vehicle_id": ("vehicleId", "veiculoId"),
        "total_value": ("totalValue", "valor", "total"),
        "services_performed": ("servicesPerformed", "servicos"),
        "parts_used": ("partsUsed", "pecas"),
    }

    id: Text = ""
    number: Text = ""
    description: Text = ""
    status: Status = OrderStatus.OPEN
    start_date: Timestamp = None
    end_date: Timestamp = None
    observations: OptionalText = None
    client_id: OptionalText = None
    vehicle_id: OptionalText = None
    total_value: Money = None
    services_performed: Annotated[List[RawServiceUsage], BeforeValidator(_as_list)] = []
    parts_used: Annotated[List[RawPartUsage], BeforeValidator(_as_list)] = []

    def to_domain(self) -> Order:
        return Order(
            id=self.id,
            number=self.number,
            description=self.description,
            status=self.status,
            start_date=self.start_date,
            end_date=self.end_date,
            observations=self.observations,
            client_id=self.client_id,
            vehicle_id=self.vehicle_id,
            total_value=self.total_value,
            services_performed=tuple(u.to_domain() for u in self.services_performed),
            parts_used=tuple(u.to_domain() for u in self.parts_used),
        )


# ---- Public entry points ----
def parse_service(payload: Any) -> Service:
    return RawService.model_validate(payload).to_domain()


def parse_part(payload: Any) -> Part:
    return RawPart.model_validate(payload).to_domain()


def parse_service_usage(payload: Any) -> ServiceUsage:
    return RawServiceUsage.model_validate(payload).to_domain()


def parse_part_usage(payload: Any) -> PartUsage:
    return RawPartUsage.model_validate(payload).to_domain()


def parse_order(payload: Any) -> Order:
    """Normalize a single order payload (either backend shape)."""
    return RawOrder.model_validate(payload).to_domain()


def parse_orders(payload: Any) -> List[Order]:
    return [parse_order(item) for item in _as_list(payload)]


def parse_catalog(services: Any, parts: Any) -> Catalog:
    """Build a Catalog from the two catalog listings.

    Entries without an id cannot be selected and are skipped.
    """
    return Catalog.build(
        [s for s in (parse_service(item) for item in _as_list(services)) if s.id],
        [p for p in (parse_part(item) for item in _as_list(parts)) if p.id],
    )

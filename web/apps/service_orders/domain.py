"""Domain models and ports for workshop service orders.

This module contains the canonical dataclasses the rest of the app works
with (catalog items, usages, orders), the order status enumeration, the
explicit authentication context, and the protocol describing the
persistence collaborator. Everything that reaches the valuation engine or
the lifecycle service has already been normalized into these types; raw
backend payloads never leave ``payloads.py``.
"""

from dataclasses import dataclass, field
from datetime import datetime
from decimal import Decimal
from enum import Enum
from typing import Any, Dict, List, Optional, Protocol, Tuple


# ---- Enums ----
class OrderStatus(str, Enum):
    """Enumeration of the service order statuses.

    The values are the exact wire literals exchanged with the backend.
    """

    OPEN = "OPEN"
    IN_PROGRESS = "IN_PROGRESS"
    FINISHED = "FINISHED"
    CANCELED = "CANCELED"

    @property
    def label(self) -> str:
        return _STATUS_LABELS[self]


_STATUS_LABELS = {
    OrderStatus.OPEN: "Open",
    OrderStatus.IN_PROGRESS: "In progress",
    OrderStatus.FINISHED: "Finished",
    OrderStatus.CANCELED: "Canceled",
}


class CatalogKind(str, Enum):
    SERVICE = "service"
    PART = "part"


# ---- Auth ----
@dataclass(frozen=True)
class AuthContext:
    """Credentials of the caller on whose behalf the backend is queried.

    Built once per request by ``gateway.middleware.AuthContextMiddleware``
    and handed to store adapters through their constructors.

    Attributes:
        access_token: Bearer token forwarded to the backend, if any.
        user_id: Owner identifier used for per-owner scoping.
    """

    access_token: Optional[str] = None
    user_id: Optional[str] = None

    @property
    def owner(self) -> str:
        return self.user_id or "anonymous"

    def headers(self) -> Dict[str, str]:
        if not self.access_token:
            return {}
        return {"Authorization": f"Bearer {self.access_token}"}


# ---- Catalog entities ----
@dataclass(frozen=True)
class Service:
    """A catalog service. Services are always billed with quantity 1."""

    id: str
    name: str = ""
    price: Optional[Decimal] = None


@dataclass(frozen=True)
class Part:
    """A catalog part.

    Attributes:
        id: Catalog identifier.
        name: Display name.
        price: Current unit price, or None when the backend sent an
            unusable value.
        stock: Units currently in stock.
        min_stock: Minimum-stock threshold.
    """

    id: str
    name: str = ""
    price: Optional[Decimal] = None
    stock: int = 0
    min_stock: int = 0


@dataclass(frozen=True)
class Catalog:
    """Live catalog snapshot keyed by item id."""

    services: Dict[str, Service] = field(default_factory=dict)
    parts: Dict[str, Part] = field(default_factory=dict)

    @classmethod
    def build(cls, services: List[Service], parts: List[Part]) -> "Catalog":
        return cls(
            services={s.id: s for s in services},
            parts={p.id: p for p in parts},
        )


# ---- Usages ----
@dataclass(frozen=True)
class ServiceUsage:
    """Join record between an order and a catalog service.

    ``service`` is the nested catalog record when the backend populated the
    relation; ``price`` is the flat price some backend shapes put directly
    on the usage.
    """

    id: Optional[str] = None
    order_id: Optional[str] = None
    service_id: Optional[str] = None
    service: Optional[Service] = None
    price: Optional[Decimal] = None


@dataclass(frozen=True)
class PartUsage:
    """Join record between an order and a catalog part.

    ``quantity`` is already coerced: 1 when the backend omitted it, 0 when
    it sent something unusable.
    """

    id: Optional[str] = None
    order_id: Optional[str] = None
    part_id: Optional[str] = None
    part: Optional[Part] = None
    price: Optional[Decimal] = None
    quantity: int = 1


@dataclass(frozen=True)
class PartSelection:
    """A part picked in the order form before any usage exists."""

    id: str
    quantity: Any = 1


# ---- Orders ----
@dataclass(frozen=True)
class Order:
    """Canonical service order.

    Attributes:
        id: Backend identifier.
        number: Human-readable order number (e.g. ``OS-1700000000000``).
        status: Current OrderStatus.
        total_value: Stored total, or None when it was never entered or
            was cleared by a non-finalizing transition.
        services_performed: Service usages, in backend order.
        parts_used: Part usages, in backend order.
    """

    id: str
    number: str = ""
    description: str = ""
    status: OrderStatus = OrderStatus.OPEN
    start_date: Optional[datetime] = None
    end_date: Optional[datetime] = None
    observations: Optional[str] = None
    client_id: Optional[str] = None
    vehicle_id: Optional[str] = None
    total_value: Optional[Decimal] = None
    services_performed: Tuple[ServiceUsage, ...] = ()
    parts_used: Tuple[PartUsage, ...] = ()


@dataclass
class OrderDraft:
    """Header fields entered in the order form prior to creation."""

    client_id: Optional[str]
    vehicle_id: Optional[str]
    description: str = ""
    number: Optional[str] = None
    status: OrderStatus = OrderStatus.OPEN
    start_date: Optional[datetime] = None
    end_date: Optional[datetime] = None
    observations: Optional[str] = None
    total_value: Optional[Decimal] = None


@dataclass(frozen=True)
class OrderSummary:
    """Dashboard figures over a list of orders."""

    total: int
    by_status: Dict[OrderStatus, int]
    revenue: Decimal


# ---- Ports (DIP) ----
class OrderStorePort(Protocol):
    """Port describing the persistence collaborator.

    Implementations return raw JSON-like payloads; the lifecycle service
    normalizes them. Every method may raise ``TransportError``.
    """

    def fetch_catalog(self, kind: CatalogKind) -> List[dict]:
        raise NotImplementedError()

    def fetch_order(self, order_id: str) -> dict:
        raise NotImplementedError()

    def fetch_orders(self) -> List[dict]:
        raise NotImplementedError()

    def create_order(self, header: dict) -> dict:
        raise NotImplementedError()

    def attach_service(self, order_id: str, service_id: str) -> dict:
        raise NotImplementedError()

    def attach_part(self, order_id: str, part_id: str, quantity: int) -> dict:
        raise NotImplementedError()

    def update_order(self, order_id: str, fields: dict) -> dict:
        """Apply a partial update.

        Keys present with a None value clear the field; missing keys leave
        it untouched.
        """
        raise NotImplementedError()

    def update_order_status(self, order_id: str, fields: dict) -> dict:
        raise NotImplementedError()

    def delete_order(self, order_id: str) -> None:
        raise NotImplementedError()

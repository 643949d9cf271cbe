"""Pydantic schemas for the service orders API.

Request DTOs validate what the UI sends (camelCase on the wire, snake_case
in Python). Read DTOs render canonical orders back to JSON; money is
rendered as JSON numbers, dates as ISO-8601 strings.
"""

from datetime import datetime
from decimal import Decimal
from typing import List, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator
from pydantic.alias_generators import to_camel

from .domain import Order, OrderDraft, OrderStatus, OrderSummary, PartSelection
from .money import MAX_AMOUNT, to_wire
from .valuation import price_of_part_usage, price_of_service_usage, resolve_display_total


class CamelModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class PartSelectionIn(CamelModel):
    """A selected part and how many units of it.

    Attributes:
        id: Catalog part id.
        quantity: Positive integer, 1 when omitted.
    """

    id: str = Field(min_length=1)
    quantity: int = Field(default=1, gt=0)

    def to_domain(self) -> PartSelection:
        return PartSelection(id=self.id, quantity=self.quantity)


class CreateOrderDTO(CamelModel):
    """Schema for creating an order from the order form.

    Client and vehicle are optional here: the lifecycle service
    owns that rule and reports it as ``MISSING_CLIENT_OR_VEHICLE``.
    """

    client_id: Optional[str] = None
    vehicle_id: Optional[str] = None
    description: str = ""
    number: Optional[str] = None
    status: OrderStatus = OrderStatus.OPEN
    start_date: Optional[datetime] = None
    end_date: Optional[datetime] = None
    observations: Optional[str] = None
    total_value: Optional[Decimal] = Field(default=None, ge=0, le=MAX_AMOUNT)
    services: List[str] = []
    parts: List[PartSelectionIn] = []

    @field_validator("services")
    @classmethod
    def validate_services(cls, v: List[str]) -> List[str]:
        """Reject blank service ids.

        Raises:
            ValueError: When an id is empty.
        """
        if any(not s.strip() for s in v):
            raise ValueError("Service ids cannot be blank")
        return v

    def to_draft(self) -> OrderDraft:
        return OrderDraft(
            client_id=self.client_id,
            vehicle_id=self.vehicle_id,
            description=self.description,
            number=self.number,
            status=self.status,
            start_date=self.start_date,
            end_date=self.end_date,
            observations=self.observations,
            total_value=self.total_value,
        )

    def part_selections(self) -> List[PartSelection]:
        return [p.to_domain() for p in self.parts]


class UpdateOrderDTO(CamelModel):
    """Partial update of order header fields.

    Only fields present in the request are forwarded (``exclude_unset``);
    an explicit null clears the field.
    """

    number: Optional[str] = None
    description: Optional[str] = None
    start_date: Optional[datetime] = None
    end_date: Optional[datetime] = None
    observations: Optional[str] = None
    status: Optional[OrderStatus] = None
    total_value: Optional[Decimal] = Field(default=None, ge=0, le=MAX_AMOUNT)

    def changes(self) -> dict:
        return self.model_dump(exclude_unset=True)


class StatusChangeDTO(CamelModel):
    status: OrderStatus
    total_value: Optional[Decimal] = Field(default=None, ge=0, le=MAX_AMOUNT)


class QuoteDTO(CamelModel):
    services: List[str] = []
    parts: List[PartSelectionIn] = []


class ServiceLineOut(CamelModel):
    id: Optional[str] = None
    service_id: Optional[str] = None
    name: str = ""
    price: float


class PartLineOut(CamelModel):
    id: Optional[str] = None
    part_id: Optional[str] = None
    name: str = ""
    quantity: int
    line_total: float


class OrderReadDTO(CamelModel):
    """Order as returned to the UI.

    ``total_value`` is the stored value (None when unset) while
    ``display_total`` is what the UI should show.
    """

    id: str
    number: str
    description: str
    status: OrderStatus
    status_label: str
    start_date: Optional[datetime] = None
    end_date: Optional[datetime] = None
    observations: Optional[str] = None
    client_id: Optional[str] = None
    vehicle_id: Optional[str] = None
    total_value: Optional[float] = None
    display_total: float
    services_performed: List[ServiceLineOut] = []
    parts_used: List[PartLineOut] = []

    @classmethod
    def from_order(cls, order: Order) -> "OrderReadDTO":
        return cls(
            id=order.id,
            number=order.number,
            description=order.description,
            status=order.status,
            status_label=order.status.label,
            start_date=order.start_date,
            end_date=order.end_date,
            observations=order.observations,
            client_id=order.client_id,
            vehicle_id=order.vehicle_id,
            total_value=to_wire(order.total_value),
            display_total=to_wire(resolve_display_total(order)),
            services_performed=[
                ServiceLineOut(
                    id=u.id,
                    service_id=u.service_id,
                    name=u.service.name if u.service else "",
                    price=to_wire(price_of_service_usage(u)),
                )
                for u in order.services_performed
            ],
            parts_used=[
                PartLineOut(
                    id=u.id,
                    part_id=u.part_id,
                    name=u.part.name if u.part else "",
                    quantity=u.quantity,
                    line_total=to_wire(price_of_part_usage(u)),
                )
                for u in order.parts_used
            ],
        )

    def render(self) -> dict:
        return self.model_dump(mode="json", by_alias=True)


class OrderSummaryDTO(CamelModel):
    total_orders: int
    by_status: dict
    revenue: float

    @classmethod
    def from_summary(cls, summary: OrderSummary) -> "OrderSummaryDTO":
        return cls(
            total_orders=summary.total,
            by_status={status.value: count for status, count in summary.by_status.items()},
            revenue=to_wire(summary.revenue),
        )

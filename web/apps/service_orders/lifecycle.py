"""Service order lifecycle: creation, detail updates and status changes.

``OrderLifecycleService`` orchestrates the persistence port. It validates
input before any network call, computes totals through the valuation
engine, and builds the partial-update payloads sent to the backend.

Payload convention: a key present with ``None`` clears the field on the
backend, a missing key leaves it untouched. Leaving FINISHED therefore
clears ``totalValue`` but never sends ``endDate``, so a previous completion
date stays in place.
"""

import logging
from datetime import date, datetime, timezone
from decimal import Decimal
from typing import Any, Callable, Dict, Iterable, List, Mapping, Optional, Sequence

from .domain import (
    Catalog,
    CatalogKind,
    Order,
    OrderDraft,
    OrderStatus,
    OrderStorePort,
    OrderSummary,
    PartSelection,
)
from .errors import OrderValidationError, PartialCreationError, TransportError
from .money import to_decimal, to_quantity, to_wire
from .payloads import parse_catalog, parse_order, parse_orders
from .valuation import compute_form_total, compute_order_total, summarize_orders

logger = logging.getLogger(__name__)

# Opt-in transition table. Without strict mode any status can be selected
# from any other, which is how the workshop UI has always behaved.
ALLOWED_TRANSITIONS = {
    OrderStatus.OPEN: {OrderStatus.IN_PROGRESS, OrderStatus.FINISHED, OrderStatus.CANCELED},
    OrderStatus.IN_PROGRESS: {OrderStatus.OPEN, OrderStatus.FINISHED, OrderStatus.CANCELED},
    OrderStatus.FINISHED: {OrderStatus.IN_PROGRESS},
    OrderStatus.CANCELED: {OrderStatus.OPEN},
}

# Fields accepted by update_order_details, mapped to their wire names.
DETAIL_FIELDS = {
    "number": "number",
    "description": "description",
    "start_date": "startDate",
    "end_date": "endDate",
    "observations": "observations",
    "status": "status",
    "total_value": "totalValue",
}


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def _wire_value(value: Any) -> Any:
    if isinstance(value, OrderStatus):
        return value.value
    if isinstance(value, (datetime, date)):
        return value.isoformat()
    if isinstance(value, Decimal):
        return to_wire(value)
    return value


def build_status_update(
    order: Order,
    new_status: OrderStatus,
    now: datetime,
    total_value: Optional[Decimal] = None,
) -> Dict[str, Any]:
    """Build the payload of a status-only update.

    Args:
        order: Current order, used for its usages.
        new_status: Target status.
        now: Timestamp used as completion date when finishing.
        total_value: Optional explicit final value overriding the computed
            one (only used when finishing).

    Returns:
        ``{"status", "totalValue", "endDate"}`` when finishing, otherwise
        ``{"status", "totalValue": None}`` with no ``endDate`` key.
    """
    if new_status != OrderStatus.FINISHED:
        return {"status": new_status.value, "totalValue": None}

    final = to_decimal(total_value)
    if final is None:
        final = compute_order_total(order.services_performed, order.parts_used)
    return {
        "status": new_status.value,
        "totalValue": to_wire(final),
        "endDate": now.isoformat(),
    }


class OrderLifecycleService:
    """Domain service driving service orders through their lifecycle.

    The service does not retry nor roll back: a failing backend call
    surfaces as ``TransportError`` and callers re-fetch the order to learn
    its authoritative state.
    """

    def __init__(
        self,
        store: OrderStorePort,
        clock: Callable[[], datetime] = _utcnow,
        strict_transitions: bool = False,
    ):
        """Initialize the service.

        Args:
            store: Persistence port (HTTP client or in-memory store).
            clock: Returns "now"; injected so finalization is testable.
            strict_transitions: Enforce ``ALLOWED_TRANSITIONS``.
        """
        self.store = store
        self.clock = clock
        self.strict_transitions = strict_transitions

    # ---- Reads ----
    def get_catalog(self) -> Catalog:
        return parse_catalog(
            self.store.fetch_catalog(CatalogKind.SERVICE),
            self.store.fetch_catalog(CatalogKind.PART),
        )

    def get_order(self, order_id: str) -> Order:
        return parse_order(self.store.fetch_order(order_id))

    def list_orders(self) -> List[Order]:
        return parse_orders(self.store.fetch_orders())

    def dashboard(self) -> OrderSummary:
        return summarize_orders(self.list_orders())

    # ---- Mutations ----
    def create_order(
        self,
        draft: OrderDraft,
        service_ids: Sequence[str] = (),
        part_selections: Sequence[PartSelection] = (),
        catalog: Optional[Catalog] = None,
    ) -> Order:
        """Create an order header, then attach its usages one by one.

        Args:
            draft: Header fields from the order form.
            service_ids: Selected catalog service ids.
            part_selections: Selected parts with quantities (None means 1).
            catalog: Live catalog, fetched when a total must be computed
                and none is given.

        Returns:
            The refreshed order as stored by the backend.

        Raises:
            OrderValidationError: ``MISSING_CLIENT_OR_VEHICLE`` or
                ``INVALID_QUANTITY``; no backend call has been made.
            TransportError: The header could not be created.
            PartialCreationError: The header exists but an attachment
                failed. The order is not deleted.
        """
        if not draft.client_id or not draft.vehicle_id:
            raise OrderValidationError("MISSING_CLIENT_OR_VEHICLE", "Select a client and a vehicle.")
        quantities = self._validated_quantities(part_selections)

        total = to_decimal(draft.total_value)
        if total is None:
            total = compute_form_total(service_ids, part_selections, catalog or self.get_catalog())

        created = parse_order(self.store.create_order(self._header_payload(draft, total)))
        logger.info("order header created", extra={"order_id": created.id, "total_value": str(total)})

        attached: List[str] = []
        for service_id in service_ids:
            self._attach(created.id, attached, f"service:{service_id}",
                         lambda: self.store.attach_service(created.id, service_id))
        for selection, quantity in zip(part_selections, quantities):
            self._attach(created.id, attached, f"part:{selection.id}",
                         lambda: self.store.attach_part(created.id, selection.id, quantity))

        return self.get_order(created.id)

    def update_order_details(self, order_id: str, changes: Mapping[str, Any]) -> Order:
        """Update header fields of an existing order.

        Only the keys present in ``changes`` are sent; a present ``None``
        clears the field. Usages are never modified here. ``totalValue`` is
        always sent: the explicit value when it is a usable number,
        otherwise the total computed from the order's current usages.

        Raises:
            OrderValidationError: ``UNKNOWN_FIELD`` for unsupported keys.
            TransportError: Backend failure.
        """
        unknown = set(changes) - set(DETAIL_FIELDS)
        if unknown:
            raise OrderValidationError("UNKNOWN_FIELD", f"Cannot update: {', '.join(sorted(unknown))}")

        fields = {DETAIL_FIELDS[name]: _wire_value(value) for name, value in changes.items()}
        total = to_decimal(changes.get("total_value"))
        if total is None:
            current = self.get_order(order_id)
            total = compute_order_total(current.services_performed, current.parts_used)
        fields["totalValue"] = to_wire(total)

        self.store.update_order(order_id, fields)
        logger.info("order details updated", extra={"order_id": order_id, "fields": sorted(fields)})
        return self.get_order(order_id)

    def transition_status(
        self,
        order_id: str,
        new_status: OrderStatus,
        total_value: Optional[Decimal] = None,
    ) -> Order:
        """Move an order to ``new_status``.

        Finishing fixes the final value (``total_value`` if given, else
        computed from the current usages) and sets the end date to now.
        Any other target clears the stored total and leaves the end date
        alone.

        Raises:
            TransportError: The current order could not be read or the
                update failed; nothing was changed in the first case.
            OrderValidationError: ``INVALID_TRANSITION`` in strict mode.
        """
        new_status = OrderStatus(new_status)
        current = self.get_order(order_id)
        if self.strict_transitions and new_status not in ALLOWED_TRANSITIONS[current.status]:
            raise OrderValidationError(
                "INVALID_TRANSITION",
                f"Cannot move order from {current.status.value} to {new_status.value}.",
            )

        payload = build_status_update(current, new_status, self.clock(), total_value)
        self.store.update_order_status(order_id, payload)
        logger.info(
            "order status changed",
            extra={"order_id": order_id, "from": current.status.value, "to": new_status.value},
        )
        return self.get_order(order_id)

    def discard_order(self, order_id: str) -> None:
        """Delete an order, e.g. one left behind by a PartialCreationError."""
        self.store.delete_order(order_id)
        logger.info("order deleted", extra={"order_id": order_id})

    # ---- Helpers ----
    def _header_payload(self, draft: OrderDraft, total: Decimal) -> Dict[str, Any]:
        header = {
            "clientId": draft.client_id,
            "vehicleId": draft.vehicle_id,
            "description": draft.description,
            "status": OrderStatus(draft.status).value,
            "startDate": _wire_value(draft.start_date or self.clock()),
            "endDate": _wire_value(draft.end_date),
            "observations": draft.observations or None,
            "totalValue": to_wire(total),
        }
        if draft.number:
            header["number"] = draft.number
        return header

    @staticmethod
    def _validated_quantities(part_selections: Iterable[PartSelection]) -> List[int]:
        quantities = []
        for selection in part_selections:
            quantity = 1 if selection.quantity is None else to_quantity(selection.quantity)
            if quantity < 1:
                raise OrderValidationError(
                    "INVALID_QUANTITY", f"Quantity for part {selection.id} must be a positive integer."
                )
            quantities.append(quantity)
        return quantities

    @staticmethod
    def _attach(order_id: str, attached: List[str], label: str, call: Callable[[], Any]) -> None:
        try:
            call()
        except TransportError as e:
            logger.warning(
                "order partially created",
                extra={"order_id": order_id, "attached": attached, "failed": label, "code": e.code},
            )
            raise PartialCreationError(order_id, list(attached), label, e) from e
        attached.append(label)

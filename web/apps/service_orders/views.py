"""HTTP views for the service orders app.

Views are kept small: they validate requests (via Pydantic), obtain an
``OrderLifecycleService`` bound to the caller's ``AuthContext`` from
``get_order_service()``, delegate, and render the canonical order back with
``OrderReadDTO``.

Error mapping:

- 400 for DTO validation errors and ``OrderValidationError`` codes
  (``MISSING_CLIENT_OR_VEHICLE``, ``INVALID_QUANTITY``, ``UNKNOWN_FIELD``);
- 409 for ``INVALID_TRANSITION``;
- 404 when the backend does not know the order;
- 502 with ``ORDER_PARTIALLY_CREATED`` and the created ``order_id`` when
  usage attachment failed after the header was stored;
- 503 for other backend failures, with the server-provided message.
"""

import logging
import re

from django.core.paginator import Paginator
from pydantic import ValidationError
from rest_framework import status
from rest_framework.response import Response
from rest_framework.throttling import ScopedRateThrottle
from rest_framework.views import APIView

from .domain import AuthContext, Order
from .errors import OrderValidationError, PartialCreationError, TransportError
from .money import to_wire
from .providers import get_order_service
from .schemas import (
    CreateOrderDTO,
    OrderReadDTO,
    OrderSummaryDTO,
    QuoteDTO,
    StatusChangeDTO,
    UpdateOrderDTO,
)
from .valuation import compute_form_total

logger = logging.getLogger(__name__)


def _auth(request) -> AuthContext:
    return getattr(request, "auth_context", None) or AuthContext()


def _number_key(order: Order):
    """Sort key for order numbers such as ``OS-1700000000000`` (newest first)."""
    match = re.search(r"(\d+)$", order.number)
    return (int(match.group(1)) if match else -1, order.number)


def _validation_response(exc: OrderValidationError) -> Response:
    code = status.HTTP_409_CONFLICT if exc.code == "INVALID_TRANSITION" else status.HTTP_400_BAD_REQUEST
    return Response({"detail": exc.code, "message": exc.message}, status=code)


def _transport_response(exc: TransportError) -> Response:
    if isinstance(exc, PartialCreationError):
        return Response(
            {
                "detail": exc.code,
                "message": exc.detail,
                "order_id": exc.order_id,
                "attached": exc.attached,
                "failed": exc.failed,
            },
            status=status.HTTP_502_BAD_GATEWAY,
        )
    if exc.code == "NOT_FOUND":
        return Response({"detail": "NOT_FOUND", "message": exc.detail}, status=status.HTTP_404_NOT_FOUND)
    logger.warning("order backend failure", extra={"code": exc.code, "upstream_status": exc.status_code})
    return Response({"detail": exc.code, "message": exc.detail}, status=status.HTTP_503_SERVICE_UNAVAILABLE)


def _bad_request(exc: ValidationError) -> Response:
    return Response({"detail": "INVALID_PAYLOAD", "message": str(exc)}, status=status.HTTP_400_BAD_REQUEST)


class OrdersPingView(APIView):
    """Liveness endpoint for the orders module."""

    def get(self, request):
        return Response({"ok": True})


class OrdersCollectionView(APIView):
    """List orders (GET) and create an order with its usages (POST)."""

    throttle_classes = [ScopedRateThrottle]

    def get_throttles(self):
        # DRF evaluates throttles in initial(), before get/post
        self.throttle_scope = "orders_list" if self.request.method == "GET" else "orders_create"
        return [throttle() for throttle in self.throttle_classes]

    def get(self, request):
        try:
            orders = get_order_service(_auth(request)).list_orders()
        except TransportError as e:
            return _transport_response(e)

        orders.sort(key=_number_key, reverse=True)
        status_filter = request.GET.get("status")
        if status_filter:
            orders = [o for o in orders if o.status.value == status_filter]

        page_size = request.GET.get("page_size", "20")
        page_size = int(page_size) if page_size.isdigit() and int(page_size) > 0 else 20
        p = Paginator(orders, page_size)
        page_obj = p.get_page(request.GET.get("page"))  # get_page clamps invalid pages

        return Response(
            {
                "count": p.count,
                "page": page_obj.number,
                "page_size": page_size,
                "results": [OrderReadDTO.from_order(o).render() for o in page_obj.object_list],
            },
            status=200,
        )

    def post(self, request):
        """Create a new order.

        Returns:
            Response: 201 with the refreshed order, or an error body as
            described in the module docstring.
        """
        try:
            dto = CreateOrderDTO.model_validate(request.data)
        except ValidationError as e:
            return _bad_request(e)

        service = get_order_service(_auth(request))
        try:
            order = service.create_order(dto.to_draft(), dto.services, dto.part_selections())
        except OrderValidationError as e:
            return _validation_response(e)
        except TransportError as e:
            return _transport_response(e)

        return Response(OrderReadDTO.from_order(order).render(), status=status.HTTP_201_CREATED)


class OrderDetailView(APIView):
    """Read, update (header fields only) or delete one order."""

    throttle_classes = [ScopedRateThrottle]
    throttle_scope = "orders_detail"

    def get(self, request, oid: str):
        try:
            order = get_order_service(_auth(request)).get_order(oid)
        except TransportError as e:
            return _transport_response(e)
        return Response(OrderReadDTO.from_order(order).render(), status=200)

    def put(self, request, oid: str):
        try:
            dto = UpdateOrderDTO.model_validate(request.data)
        except ValidationError as e:
            return _bad_request(e)
        try:
            order = get_order_service(_auth(request)).update_order_details(oid, dto.changes())
        except OrderValidationError as e:
            return _validation_response(e)
        except TransportError as e:
            return _transport_response(e)
        return Response(OrderReadDTO.from_order(order).render(), status=200)

    def delete(self, request, oid: str):
        try:
            get_order_service(_auth(request)).discard_order(oid)
        except TransportError as e:
            return _transport_response(e)
        return Response(status=status.HTTP_204_NO_CONTENT)


class OrderStatusView(APIView):
    """Change the status of an order; FINISHED fixes value and end date."""

    throttle_classes = [ScopedRateThrottle]
    throttle_scope = "orders_detail"

    def post(self, request, oid: str):
        try:
            dto = StatusChangeDTO.model_validate(request.data)
        except ValidationError as e:
            return _bad_request(e)
        try:
            order = get_order_service(_auth(request)).transition_status(oid, dto.status, dto.total_value)
        except OrderValidationError as e:
            return _validation_response(e)
        except TransportError as e:
            return _transport_response(e)
        return Response(OrderReadDTO.from_order(order).render(), status=200)


class OrderQuoteView(APIView):
    """Total of an order being composed, priced against the live catalog."""

    def post(self, request):
        try:
            dto = QuoteDTO.model_validate(request.data)
        except ValidationError as e:
            return _bad_request(e)
        try:
            catalog = get_order_service(_auth(request)).get_catalog()
        except TransportError as e:
            return _transport_response(e)
        selections = [p.to_domain() for p in dto.parts]
        total = compute_form_total(dto.services, selections, catalog)
        return Response({"total": to_wire(total)}, status=200)


class DashboardView(APIView):
    """Order counts per status and revenue of finished orders."""

    def get(self, request):
        try:
            summary = get_order_service(_auth(request)).dashboard()
        except TransportError as e:
            return _transport_response(e)
        return Response(OrderSummaryDTO.from_summary(summary).model_dump(by_alias=True), status=200)

"""HTTP implementation of ``OrderStorePort`` for the workshop REST backend.

This module implements the persistence port with ``httpx``. It adds:

- Request correlation: propagates ``X-Request-ID`` from the ContextVar set
    by the gateway middleware.
- Authentication: forwards the caller's bearer token from the explicit
    ``AuthContext`` given to the client, never from global state.
- A circuit breaker shared by all backend calls, so an unhealthy backend
    is not hammered; HALF_OPEN probing after a timeout.
- Error mapping: transport failures and non-2xx responses become
    ``TransportError`` carrying the server-provided message when there is
    one. Calls are never retried: order creation and usage attachment are
    not idempotent on the backend.
"""

import threading
import time
from typing import Any, List, Optional

import httpx
from django.conf import settings
from django.utils.module_loading import import_string

from .domain import AuthContext, CatalogKind, OrderStorePort
from .errors import TransportError

REQUEST_ID_CTX = import_string("gateway.middleware.REQUEST_ID_CTX")

CATALOG_PATHS = {
    CatalogKind.SERVICE: "/services",
    CatalogKind.PART: "/parts",
}


# ---------------- Circuit Breaker ---------------- #

class CircuitBreaker:
    """Minimal circuit breaker with CLOSED/OPEN/HALF_OPEN states.

    Transitions:
    - CLOSED → OPEN when failures reach ``fail_threshold``.
    - OPEN → HALF_OPEN after ``reset_timeout`` seconds.
    - HALF_OPEN → CLOSED on a successful probe; only one probe may be in
      flight; back to OPEN on failure.

    Only transport errors and 5xx responses count as failures; 4xx answers
    mean the backend is healthy.
    """

    def __init__(self, name: str, fail_threshold: int, reset_timeout: float):
        self.name = name
        self.fail_threshold = fail_threshold
        self.reset_timeout = reset_timeout
        self._lock = threading.RLock()
        self._failures = 0
        self._state = "CLOSED"  # CLOSED | OPEN | HALF_OPEN
        self._opened_at = 0.0
        self._half_open_probe_in_flight = False

    @property
    def state(self) -> str:
        with self._lock:
            if self._state == "OPEN" and (time.monotonic() - self._opened_at) >= self.reset_timeout:
                self._state = "HALF_OPEN"
                self._half_open_probe_in_flight = False
            return self._state

    def before_call(self) -> str:
        """Check the breaker before a call.

        Raises:
            TransportError: ``CIRCUIT_OPEN`` when the circuit is open or a
                HALF_OPEN probe is already running.
        """
        with self._lock:
            st = self.state
            if st == "OPEN" or (st == "HALF_OPEN" and self._half_open_probe_in_flight):
                raise TransportError("CIRCUIT_OPEN", f"The {self.name} backend is temporarily unavailable.")
            if st == "HALF_OPEN":
                self._half_open_probe_in_flight = True
            return st

    def on_success(self):
        with self._lock:
            self._failures = 0
            self._state = "CLOSED"
            self._half_open_probe_in_flight = False

    def on_failure(self):
        with self._lock:
            self._failures += 1
            if self._state == "HALF_OPEN" or (self._failures >= self.fail_threshold and self._state != "OPEN"):
                self._state = "OPEN"
                self._opened_at = time.monotonic()
                self._half_open_probe_in_flight = False

    def reset(self):
        self.on_success()


_backend_cb = CircuitBreaker(
    "orders",
    getattr(settings, "HTTP_CIRCUIT_FAIL_THRESHOLD", 5),
    getattr(settings, "HTTP_CIRCUIT_RESET_TIMEOUT", 30.0),
)


# ---------------- Helpers ---------------- #

def _request_headers(auth: AuthContext) -> dict:
    """Build headers with ``X-Request-ID`` (when known) and credentials."""
    headers: dict[str, str] = {"Accept": "application/json"}
    rid = REQUEST_ID_CTX.get()
    if rid and rid != "-":
        headers["X-Request-ID"] = rid
    headers.update(auth.headers())
    return headers


def _error_detail(resp: httpx.Response) -> Optional[str]:
    """Extract the backend's error message (``error``/``detail``/``message``)."""
    try:
        body = resp.json()
    except ValueError:
        return None
    if isinstance(body, dict):
        for key in ("error", "detail", "message"):
            if isinstance(body.get(key), str):
                return body[key]
    return None


# ---------------- Store Adapter ---------------- #

class HttpOrderStore(OrderStorePort):
    """HTTP client for the workshop order backend.

    Args:
        auth: Caller context whose token is sent as a bearer credential.
        base_url: Backend root URL; defaults to ``settings.SHOP_API_BASE_URL``.
        timeout: Per-request timeout in seconds; defaults to
            ``settings.HTTP_TIMEOUT_SECS``.
    """

    def __init__(self, auth: AuthContext, base_url: str | None = None, timeout: float | None = None):
        self.auth = auth
        self.base_url = (base_url or settings.SHOP_API_BASE_URL).rstrip("/")
        self.timeout = timeout or settings.HTTP_TIMEOUT_SECS

    def _call(self, method: str, path: str, payload: Optional[dict] = None) -> Any:
        """Perform one request and map failures to ``TransportError``.

        Returns:
            The decoded JSON body, or None for empty (204) responses.
        """
        _backend_cb.before_call()
        try:
            with httpx.Client(timeout=self.timeout) as client:
                resp = client.request(
                    method,
                    f"{self.base_url}{path}",
                    json=payload,
                    headers=_request_headers(self.auth),
                )
        except httpx.RequestError as e:
            _backend_cb.on_failure()
            raise TransportError("UPSTREAM_UNAVAILABLE") from e

        if resp.status_code >= 500:
            _backend_cb.on_failure()
            raise TransportError("UPSTREAM_ERROR", _error_detail(resp), resp.status_code)
        _backend_cb.on_success()

        if resp.status_code == 404:
            raise TransportError("NOT_FOUND", _error_detail(resp), 404)
        if resp.status_code >= 400:
            raise TransportError("UPSTREAM_ERROR", _error_detail(resp), resp.status_code)
        if resp.status_code == 204:
            return None
        try:
            return resp.json()
        except ValueError as e:
            raise TransportError("UPSTREAM_ERROR", "The order backend returned an invalid body.",
                                 resp.status_code) from e

    def fetch_catalog(self, kind: CatalogKind) -> List[dict]:
        return self._call("GET", CATALOG_PATHS[CatalogKind(kind)]) or []

    def fetch_order(self, order_id: str) -> dict:
        return self._call("GET", f"/orders/{order_id}")

    def fetch_orders(self) -> List[dict]:
        return self._call("GET", "/orders") or []

    def create_order(self, header: dict) -> dict:
        return self._call("POST", "/orders", header)

    def attach_service(self, order_id: str, service_id: str) -> dict:
        return self._call("POST", f"/orders/{order_id}/services", {"serviceId": service_id})

    def attach_part(self, order_id: str, part_id: str, quantity: int) -> dict:
        return self._call("POST", f"/orders/{order_id}/parts", {"partId": part_id, "quantity": quantity})

    def update_order(self, order_id: str, fields: dict) -> dict:
        return self._call("PUT", f"/orders/{order_id}", fields)

    def update_order_status(self, order_id: str, fields: dict) -> dict:
        return self._call("PATCH", f"/orders/{order_id}/status", fields)

    def delete_order(self, order_id: str) -> None:
        self._call("DELETE", f"/orders/{order_id}")

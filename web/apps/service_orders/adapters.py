"""In-process key-value implementation of ``OrderStorePort``.

Used by tests and local development when ``USE_HTTP_ADAPTERS`` is off. It
behaves like the key-value backend the workshop used before the REST API:

- records live under owner-scoped keys (``order:{owner}:{id}``), so each
  user only sees their own catalog and orders;
- new orders get a human-readable number ``OS-{epoch millis}`` and default
  to status ``OPEN``;
- updates are shallow merges: a key sent as None overwrites the stored
  value, a key that is not sent leaves it alone;
- usages are returned with their catalog item joined at read time, so an
  edited catalog price is reflected in existing orders.
"""

import copy
import threading
import time
import uuid
from datetime import datetime, timezone
from decimal import Decimal
from typing import Dict, List, Optional

from .domain import AuthContext, CatalogKind, OrderStorePort
from .errors import TransportError
from .money import to_wire


class MemoryKV:
    """Thread-safe dictionary with prefix scans."""

    def __init__(self):
        self._lock = threading.RLock()
        self._data: Dict[str, dict] = {}

    def get(self, key: str) -> Optional[dict]:
        with self._lock:
            value = self._data.get(key)
            return copy.deepcopy(value) if value is not None else None

    def set(self, key: str, value: dict) -> None:
        with self._lock:
            self._data[key] = copy.deepcopy(value)

    def delete(self, key: str, *prefixes: str) -> None:
        """Remove ``key`` and every key starting with one of ``prefixes``."""
        with self._lock:
            self._data.pop(key, None)
            if prefixes:
                for k in [k for k in self._data if k.startswith(prefixes)]:
                    del self._data[k]

    def get_by_prefix(self, prefix: str) -> List[dict]:
        with self._lock:
            return [copy.deepcopy(v) for k, v in self._data.items() if k.startswith(prefix)]


def _now_iso() -> str:
    return datetime.now(timezone.utc).isoformat()


def _not_found(what: str) -> TransportError:
    return TransportError("NOT_FOUND", f"{what} not found", 404)


class InMemoryOrderStore(OrderStorePort):
    """Owner-scoped order store backed by a shared ``MemoryKV``.

    Args:
        kv: Shared key-value storage.
        auth: Caller context; ``auth.owner`` scopes every key.
    """

    def __init__(self, kv: MemoryKV, auth: AuthContext):
        self.kv = kv
        self.auth = auth

    def _key(self, kind: str, *parts: str) -> str:
        return ":".join((kind, self.auth.owner) + parts)

    # ---- Catalog seeding ----
    def add_service(self, name: str, price, service_id: Optional[str] = None) -> dict:
        record = {"id": service_id or uuid.uuid4().hex, "name": name, "price": _json_number(price)}
        self.kv.set(self._key("service", record["id"]), record)
        return record

    def add_part(
        self,
        name: str,
        price,
        part_id: Optional[str] = None,
        stock: int = 0,
        min_stock: int = 0,
    ) -> dict:
        record = {
            "id": part_id or uuid.uuid4().hex,
            "name": name,
            "price": _json_number(price),
            "stock": stock,
            "minStock": min_stock,
        }
        self.kv.set(self._key("part", record["id"]), record)
        return record

    # ---- Port ----
    def fetch_catalog(self, kind: CatalogKind) -> List[dict]:
        return self.kv.get_by_prefix(self._key(CatalogKind(kind).value) + ":")

    def fetch_order(self, order_id: str) -> dict:
        order = self.kv.get(self._key("order", order_id))
        if order is None:
            raise _not_found("Service order")
        order["servicesPerformed"] = [
            {**u, "service": self.kv.get(self._key("service", u["serviceId"]))}
            for u in self.kv.get_by_prefix(self._key("service_usage", order_id) + ":")
        ]
        order["partsUsed"] = [
            {**u, "part": self.kv.get(self._key("part", u["partId"]))}
            for u in self.kv.get_by_prefix(self._key("part_usage", order_id) + ":")
        ]
        return order

    def fetch_orders(self) -> List[dict]:
        return [self.fetch_order(o["id"]) for o in self.kv.get_by_prefix(self._key("order") + ":")]

    def create_order(self, header: dict) -> dict:
        millis = int(time.time() * 1000)
        order = {
            "id": uuid.uuid4().hex,
            "number": f"OS-{millis}",
            **header,
            "status": header.get("status") or "OPEN",
            "createdAt": _now_iso(),
            "userId": self.auth.owner,
        }
        self.kv.set(self._key("order", order["id"]), order)
        return copy.deepcopy(order)

    def attach_service(self, order_id: str, service_id: str) -> dict:
        self._require_order(order_id)
        usage = {"id": uuid.uuid4().hex, "orderId": order_id, "serviceId": service_id}
        self.kv.set(self._key("service_usage", order_id, usage["id"]), usage)
        return usage

    def attach_part(self, order_id: str, part_id: str, quantity: int) -> dict:
        self._require_order(order_id)
        usage = {"id": uuid.uuid4().hex, "orderId": order_id, "partId": part_id, "quantity": quantity}
        self.kv.set(self._key("part_usage", order_id, usage["id"]), usage)
        return usage

    def update_order(self, order_id: str, fields: dict) -> dict:
        existing = self._require_order(order_id)
        updated = {**existing, **fields, "updatedAt": _now_iso()}
        self.kv.set(self._key("order", order_id), updated)
        return updated

    def update_order_status(self, order_id: str, fields: dict) -> dict:
        return self.update_order(order_id, fields)

    def delete_order(self, order_id: str) -> None:
        self._require_order(order_id)
        self.kv.delete(
            self._key("order", order_id),
            self._key("service_usage", order_id) + ":",
            self._key("part_usage", order_id) + ":",
        )

    def _require_order(self, order_id: str) -> dict:
        order = self.kv.get(self._key("order", order_id))
        if order is None:
            raise _not_found("Service order")
        return order


def _json_number(value):
    if isinstance(value, Decimal):
        return to_wire(value)
    return value

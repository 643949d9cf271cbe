"""Service provider helpers for wiring OrderLifecycleService with a store.

``get_order_service`` returns a lifecycle service bound to the caller's
``AuthContext``. When ``settings.USE_HTTP_ADAPTERS`` is truthy the service
talks to the REST backend through ``HttpOrderStore``; otherwise it uses the
process-local key-value store, which is what tests and local development
run against.
"""

from django.conf import settings

from .adapters import InMemoryOrderStore, MemoryKV
from .domain import AuthContext, OrderStorePort
from .http_adapters import HttpOrderStore
from .lifecycle import OrderLifecycleService

# Shared by every request of the process when HTTP adapters are off.
MEMORY_KV = MemoryKV()


def get_order_store(auth: AuthContext) -> OrderStorePort:
    if getattr(settings, "USE_HTTP_ADAPTERS", True):
        return HttpOrderStore(auth)
    return InMemoryOrderStore(MEMORY_KV, auth)


def get_order_service(auth: AuthContext) -> OrderLifecycleService:
    """Return an OrderLifecycleService for the given caller.

    Args:
        auth: Credentials of the current request.

    Returns:
        OrderLifecycleService: Service bound to the configured store.
    """
    return OrderLifecycleService(
        store=get_order_store(auth),
        strict_transitions=getattr(settings, "ORDERS_STRICT_TRANSITIONS", False),
    )

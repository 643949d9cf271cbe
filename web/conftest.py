import pytest


@pytest.fixture(autouse=True)
def use_memory_store(settings, monkeypatch):
    """Run every test against a fresh in-process store."""
    from apps.service_orders import providers
    from apps.service_orders.adapters import MemoryKV
    from apps.service_orders.http_adapters import _backend_cb

    settings.USE_HTTP_ADAPTERS = False
    settings.ORDERS_STRICT_TRANSITIONS = False
    kv = MemoryKV()
    monkeypatch.setattr(providers, "MEMORY_KV", kv)
    _backend_cb.reset()
    yield kv
    _backend_cb.reset()

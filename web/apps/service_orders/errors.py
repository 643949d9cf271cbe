"""Typed errors raised by the service orders domain.

Each error carries a short ``code`` string, the same way the domain
signals failures with codes such as ``MISSING_CLIENT_OR_VEHICLE``; views
map those codes to HTTP statuses.
"""

from typing import List, Optional


class OrderValidationError(ValueError):
    """Input rejected before any call to the persistence collaborator."""

    def __init__(self, code: str, message: str = ""):
        super().__init__(code)
        self.code = code
        self.message = message or code


class TransportError(RuntimeError):
    """A persistence collaborator call failed.

    Attributes:
        code: Short error code (``UPSTREAM_ERROR``, ``UPSTREAM_UNAVAILABLE``,
            ``CIRCUIT_OPEN``, ``NOT_FOUND``).
        detail: Server-provided message when available, otherwise a
            generic one.
        status_code: Upstream HTTP status, if a response was received.
    """

    GENERIC_DETAIL = "The order backend could not complete the request."

    def __init__(self, code: str, detail: Optional[str] = None, status_code: Optional[int] = None):
        super().__init__(code)
        self.code = code
        self.detail = detail or self.GENERIC_DETAIL
        self.status_code = status_code


class PartialCreationError(TransportError):
    """Order header persisted but a usage attachment failed.

    The created order is left in place; ``order_id`` lets the caller
    inspect it or discard it explicitly.
    """

    def __init__(
        self,
        order_id: str,
        attached: List[str],
        failed: str,
        cause: TransportError,
    ):
        super().__init__("ORDER_PARTIALLY_CREATED", cause.detail, cause.status_code)
        self.order_id = order_id
        self.attached = attached
        self.failed = failed
        self.cause = cause

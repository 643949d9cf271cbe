"""Gateway middleware: request ids, caller credentials and size limits.

- ``RequestIdMiddleware`` reuses the incoming ``X-Request-Id`` header or
  generates a UUIDv4, stores it on the request and in ``REQUEST_ID_CTX``,
  and echoes it back in the ``X-Request-ID`` response header.
- ``AuthContextMiddleware`` reads the bearer token and the caller id from
  the request and attaches an explicit ``AuthContext`` as
  ``request.auth_context``. Token issuance and role resolution happen
  elsewhere; this only carries what the client presented.
- ``ApiSizeLimitMiddleware`` rejects oversized API bodies with 413.
"""

import contextvars
import os
import uuid

from django.http import JsonResponse
from django.utils.deprecation import MiddlewareMixin

from apps.service_orders.domain import AuthContext

REQUEST_ID_CTX = contextvars.ContextVar("request_id", default="-")
USER_ID_CTX = contextvars.ContextVar("user_id", default="-")
MAX_API_BYTES = int(os.getenv("API_MAX_BYTES", str(1 * 1024 * 1024)))


class RequestIdMiddleware(MiddlewareMixin):
    """Sets and returns a per-request identifier.

    Attributes:
        HEADER (str): Incoming header in ``request.META`` casing.
        RESPONSE_HEADER (str): Header added to outgoing responses.
    """

    HEADER = "HTTP_X_REQUEST_ID"
    RESPONSE_HEADER = "X-Request-ID"

    def process_request(self, request):
        rid = request.META.get(self.HEADER)
        if not rid:
            rid = str(uuid.uuid4())
        request.request_id = rid
        REQUEST_ID_CTX.set(rid)

    def process_response(self, request, response):
        rid = getattr(request, "request_id", REQUEST_ID_CTX.get())
        response[self.RESPONSE_HEADER] = rid
        return response


class AuthContextMiddleware(MiddlewareMixin):
    """Attach ``request.auth_context`` built from the request headers.

    The token comes from ``Authorization: Bearer <token>``; the owner id
    from ``X-User-Id`` as set by the authentication proxy. Both are
    optional: without them the context is anonymous.
    """

    AUTH_HEADER = "HTTP_AUTHORIZATION"
    USER_HEADER = "HTTP_X_USER_ID"

    def process_request(self, request):
        token = None
        scheme, _, value = request.META.get(self.AUTH_HEADER, "").partition(" ")
        if scheme.lower() == "bearer" and value.strip():
            token = value.strip()
        user_id = request.META.get(self.USER_HEADER) or None
        request.auth_context = AuthContext(access_token=token, user_id=user_id)
        USER_ID_CTX.set(user_id or "-")


class ApiSizeLimitMiddleware(MiddlewareMixin):
    def process_request(self, request):
        if request.path.startswith("/api/"):
            clen = request.META.get("CONTENT_LENGTH")
            if clen and clen.isdigit() and int(clen) > MAX_API_BYTES:
                return JsonResponse({"detail": "PAYLOAD_TOO_LARGE"}, status=413)

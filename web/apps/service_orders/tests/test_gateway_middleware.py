import logging

from django.http import HttpResponse
from django.test import RequestFactory

from apps.service_orders.domain import AuthContext
from gateway.logging_filters import RequestContextFilter
from gateway.middleware import REQUEST_ID_CTX, USER_ID_CTX, AuthContextMiddleware, RequestIdMiddleware


def test_auth_context_from_headers():
    request = RequestFactory().get("/api/orders/", HTTP_AUTHORIZATION="Bearer abc", HTTP_X_USER_ID="u7")
    AuthContextMiddleware(lambda r: HttpResponse()).process_request(request)
    assert request.auth_context == AuthContext(access_token="abc", user_id="u7")
    assert request.auth_context.headers() == {"Authorization": "Bearer abc"}
    USER_ID_CTX.set("-")


def test_non_bearer_credentials_are_ignored():
    request = RequestFactory().get("/api/orders/", HTTP_AUTHORIZATION="Basic dXNlcjpwYXNz")
    AuthContextMiddleware(lambda r: HttpResponse()).process_request(request)
    assert request.auth_context.access_token is None
    assert request.auth_context.owner == "anonymous"


def test_request_id_is_generated_and_logged():
    request = RequestFactory().get("/api/orders/ping/")
    response = RequestIdMiddleware(lambda r: HttpResponse())(request)
    rid = response["X-Request-ID"]
    assert rid and rid == request.request_id

    record = logging.LogRecord("x", logging.INFO, __file__, 1, "msg", None, None)
    assert RequestContextFilter().filter(record) is True
    assert record.request_id == rid
    REQUEST_ID_CTX.set("-")

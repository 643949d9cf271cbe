"""Logging filter that enriches log records with request context.

Adds ``request_id`` and ``user_id`` (from the ContextVars set by the
gateway middleware) to every record so the JSON formatter can emit them
without each log call passing them explicitly.
"""

from logging import Filter, LogRecord

from .middleware import REQUEST_ID_CTX, USER_ID_CTX


class RequestContextFilter(Filter):
    """Attach ``request_id`` and ``user_id`` attributes to log records.

    Missing values are rendered as a hyphen so formatters can reference
    ``%(request_id)s`` and ``%(user_id)s`` unconditionally.
    """

    def filter(self, record: LogRecord) -> bool:
        record.request_id = REQUEST_ID_CTX.get()
        record.user_id = USER_ID_CTX.get()
        return True

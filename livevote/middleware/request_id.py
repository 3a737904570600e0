import logging
import uuid
from flask import g, request


class RequestIdFilter(logging.Filter):
    """Adds ``request_id`` to every log record emitted inside a request."""

    def filter(self, record):
        try:
            record.request_id = getattr(g, "request_id", "-")
        except RuntimeError:
            # Outside an app context (CLI, background threads)
            record.request_id = "-"
        return True


def init_request_id(app):
    @app.before_request
    def _assign_request_id():
        g.request_id = request.headers.get("X-Request-Id") or str(uuid.uuid4())

    @app.after_request
    def _add_request_id_header(response):
        if hasattr(g, "request_id"):
            response.headers["X-Request-Id"] = g.request_id
        return response

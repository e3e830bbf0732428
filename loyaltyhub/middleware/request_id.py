"""
Request ID tracking.

Every request gets an id (the caller's X-Request-ID or a fresh uuid). It is
stored on ``g.request_id``, added to log lines by the logging filter and
echoed back in the response headers.
"""
import uuid
from flask import g, request

REQUEST_ID_HEADER = 'X-Request-ID'


def init_request_id_tracking(app):
    """Register before/after request hooks for request ids."""

    @app.before_request
    def assign_request_id():
        incoming = request.headers.get(REQUEST_ID_HEADER, '').strip()
        g.request_id = incoming[:64] if incoming else uuid.uuid4().hex

    @app.after_request
    def echo_request_id(response):
        request_id = getattr(g, 'request_id', None)
        if request_id:
            response.headers[REQUEST_ID_HEADER] = request_id
        return response

"""
=============================================================================
HTTP PROTOCOL IMPLEMENTATION
=============================================================================

The slice of HTTP/1.x this server speaks:

    request.py       one request line + ignored headers → Request or status
    response.py      status line + blank line + optional error page
    status_codes.py  status code → reason phrase catalog

=============================================================================
"""

from .status_codes import HTTPStatus, STATUS_PHRASES, reason_phrase
from .request import (
    Request,
    RequestParser,
    ParseResult,
    HTTPParseError,
    contains_traversal,
    parse_request,
)
from .response import ResponseWriter, render_status

__all__ = [
    "HTTPStatus",
    "STATUS_PHRASES",
    "reason_phrase",
    "Request",
    "RequestParser",
    "ParseResult",
    "HTTPParseError",
    "contains_traversal",
    "parse_request",
    "ResponseWriter",
    "render_status",
]

"""
=============================================================================
HTTP STATUS CODES
=============================================================================

The status catalog: every status code this server can put on a status line,
together with its reason phrase.

=============================================================================
WHICH CODES WE KNOW
=============================================================================

    ┌────────┬───────────────────────────────────────────────────────────┐
    │  2xx   │ 200 OK, 201 Created, 202 Accepted, 204 No Content         │
    ├────────┼───────────────────────────────────────────────────────────┤
    │  3xx   │ 301 Moved Permanently, 302 Moved Temporarily,             │
    │        │ 304 Not Modified                                          │
    ├────────┼───────────────────────────────────────────────────────────┤
    │  4xx   │ 400 Bad Request, 401 Unauthorized, 403 Forbidden,         │
    │        │ 404 Not Found                                             │
    ├────────┼───────────────────────────────────────────────────────────┤
    │  5xx   │ 500 Internal Server Error, 501 Not Implemented,           │
    │        │ 502 Bad Gateway, 503 Service Unavailable                  │
    └────────┴───────────────────────────────────────────────────────────┘

Only a handful are ever emitted (200, 400, 403, 404, 500, 501, 503), but the
table carries the full HTTP/1.0 set so that a lookup by number always has an
answer. Note the HTTP/1.0 wording for 302 ("Moved Temporarily", RFC 1945).

The phrase table is wrapped in a MappingProxyType: it is built once at import
time and nobody can mutate it afterwards.

=============================================================================
"""

from enum import IntEnum
from types import MappingProxyType
from typing import Mapping


UNKNOWN_STATUS_PHRASE = "Unknown Status Code"


class HTTPStatus(IntEnum):
    """
    HTTP status codes known to the server.

    IntEnum, so members compare equal to plain integers:

        >>> HTTPStatus.NOT_FOUND == 404
        True
        >>> HTTPStatus.NOT_FOUND.phrase
        'Not Found'
    """

    # 2xx SUCCESS
    OK = 200
    CREATED = 201
    ACCEPTED = 202
    NO_CONTENT = 204

    # 3xx REDIRECTION
    MOVED_PERMANENTLY = 301
    MOVED_TEMPORARILY = 302
    NOT_MODIFIED = 304

    # 4xx CLIENT ERRORS
    BAD_REQUEST = 400        # Unreadable request, bad URI, traversal attempt
    UNAUTHORIZED = 401
    FORBIDDEN = 403          # URI resolved to a directory
    NOT_FOUND = 404          # File could not be opened

    # 5xx SERVER ERRORS
    INTERNAL_SERVER_ERROR = 500
    NOT_IMPLEMENTED = 501    # Wrong token count, non-GET, unknown version
    BAD_GATEWAY = 502
    SERVICE_UNAVAILABLE = 503  # Worker queue full

    @property
    def phrase(self) -> str:
        """Reason phrase for the status line (e.g. "Not Found")."""
        return STATUS_PHRASES[self]

    @property
    def is_success(self) -> bool:
        """True for 2xx codes."""
        return 200 <= self < 300

    @property
    def is_error(self) -> bool:
        """True for 4xx and 5xx codes."""
        return self >= 400


STATUS_PHRASES: Mapping[int, str] = MappingProxyType({
    HTTPStatus.OK: "OK",
    HTTPStatus.CREATED: "Created",
    HTTPStatus.ACCEPTED: "Accepted",
    HTTPStatus.NO_CONTENT: "No Content",
    HTTPStatus.MOVED_PERMANENTLY: "Moved Permanently",
    HTTPStatus.MOVED_TEMPORARILY: "Moved Temporarily",
    HTTPStatus.NOT_MODIFIED: "Not Modified",
    HTTPStatus.BAD_REQUEST: "Bad Request",
    HTTPStatus.UNAUTHORIZED: "Unauthorized",
    HTTPStatus.FORBIDDEN: "Forbidden",
    HTTPStatus.NOT_FOUND: "Not Found",
    HTTPStatus.INTERNAL_SERVER_ERROR: "Internal Server Error",
    HTTPStatus.NOT_IMPLEMENTED: "Not Implemented",
    HTTPStatus.BAD_GATEWAY: "Bad Gateway",
    HTTPStatus.SERVICE_UNAVAILABLE: "Service Unavailable",
})


def reason_phrase(code: int) -> str:
    """
    Look up the reason phrase for a numeric status code.

    Codes outside the catalog get "Unknown Status Code" rather than an
    exception, so a status line can always be produced.
    """
    return STATUS_PHRASES.get(code, UNKNOWN_STATUS_PHRASE)

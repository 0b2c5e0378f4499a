"""
=============================================================================
HTTP RESPONSE WRITER
=============================================================================

Builds the first bytes of every response: the status line, the blank line
that ends the (empty) header section, and, for anything other than 200 OK,
a tiny HTML page naming the error.

=============================================================================
WIRE FORMAT
=============================================================================

    Success:

        HTTP/1.0 200 OK\r\n
        \r\n
        <body bytes appended later by the handler>

    Error:

        HTTP/1.0 404 Not Found\r\n
        \r\n
        <html><body>\n
        <h1>404 Not Found</h1>\n
        </body></html>\n

We always answer with HTTP/1.0, whatever version the client spoke. There is
no Content-Length and no Connection header: the response ends when we close
the socket, which is exactly how HTTP/1.0 without keep-alive works.

=============================================================================
WHO WRITES WHAT
=============================================================================

    ResponseWriter.send_status()     exactly once per connection, first
    StaticFileHandler                file bytes, after the 200 status
    LookupHandler                    form + table HTML, after the 200 status

Handlers append their bodies with Connection.send() directly, not through
this module.

=============================================================================
"""

import logging
from typing import Protocol

from .status_codes import HTTPStatus, reason_phrase


logger = logging.getLogger(__name__)


RESPONSE_VERSION = "HTTP/1.0"

ERROR_BODY_TEMPLATE = (
    "<html><body>\n"
    "<h1>{code} {phrase}</h1>\n"
    "</body></html>\n"
)


class Writable(Protocol):
    """Anything we can push response bytes into (normally a Connection)."""

    def send(self, data: bytes) -> bool:
        ...


class ResponseWriter:
    """
    Renders and sends status responses.

    Usage:
        writer = ResponseWriter()
        if not writer.send_status(conn, HTTPStatus.NOT_FOUND):
            return  # client went away, unwind
    """

    def __init__(self, version: str = RESPONSE_VERSION):
        self.version = version

    def status_line(self, status: int) -> str:
        """
        Format the status line without its terminator.

            >>> ResponseWriter().status_line(403)
            'HTTP/1.0 403 Forbidden'
        """
        return f"{self.version} {int(status)} {reason_phrase(status)}"

    def error_body(self, status: int) -> str:
        """HTML page shown for non-200 responses."""
        return ERROR_BODY_TEMPLATE.format(code=int(status), phrase=reason_phrase(status))

    def render(self, status: int) -> bytes:
        """
        Serialize status line, header terminator and (optional) error body.

        Args:
            status: Status code, an HTTPStatus member or a plain int.

        Returns:
            The bytes to put on the wire.
        """
        text = self.status_line(status) + "\r\n" + "\r\n"
        if status != HTTPStatus.OK:
            text += self.error_body(status)
        return text.encode("latin-1")

    def send_status(self, conn: Writable, status: int) -> bool:
        """
        Write the status response to a connection.

        Never raises on a dead peer: the connection reports the failure and
        we hand back False so the caller can stop writing.

        Returns:
            True if every byte was written.
        """
        ok = conn.send(self.render(status))
        if not ok:
            logger.debug(f"Could not send status {int(status)}, peer gone")
        return ok


def render_status(status: int) -> bytes:
    """Shortcut for ResponseWriter().render(status)."""
    return ResponseWriter().render(status)

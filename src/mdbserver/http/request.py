"""
=============================================================================
HTTP REQUEST PARSER
=============================================================================

Reads one request from a connection and decides whether we will serve it.

=============================================================================
WHAT WE ACCEPT
=============================================================================

    ┌─────────────────────────────────────────────────────────────────────┐
    │                                                                      │
    │    GET /mdb-lookup?key=alice HTTP/1.0\r\n     ← request line        │
    │    ─┬─ ──────────┬────────── ────┬───                                │
    │     │            │               │                                   │
    │   Method        URI           Version                                │
    │   (GET only)    (starts       (HTTP/1.0 or HTTP/1.1)                │
    │                 with "/")                                            │
    │                                                                      │
    │    Host: localhost\r\n                        ← headers: read and    │
    │    User-Agent: curl/8.0\r\n                     thrown away          │
    │    \r\n                                       ← end of headers       │
    │                                                                      │
    └─────────────────────────────────────────────────────────────────────┘

No body is ever read: GET has none, and we close after one response.

=============================================================================
CHECK ORDER AND STATUS CODES
=============================================================================

The checks run in this order, and the first failure decides the response:

    1. No request line at all (client closed, timed out)  → 400
    2. Not exactly three tokens (split on SP, HT, CR, LF)  → 501
    3. Method is not GET                                   → 501
    4. Version is not HTTP/1.0 or HTTP/1.1                 → 501
    5. URI does not start with "/"                         → 400
    6. URI ends with "/.." or contains "/../"              → 400
    7. Stream ends before the blank line ending headers    → 400

Step 6 is a substring test, not a canonicalization. "/a/./b", "//etc" and
friends pass it. The file handler joins the URI *under* the web root, so
those stay inside it; what this check exists to stop is climbing out.

=============================================================================
NEVER RAISES
=============================================================================

parse() always returns a ParseResult: either a Request or the status code
to send back. Internally each failed check raises HTTPParseError, and
parse() converts it at the boundary, so the dispatcher never needs a
try/except around parsing.

=============================================================================
"""

import io
import re
import logging
from dataclasses import dataclass
from typing import Optional, Protocol, Tuple

from .status_codes import HTTPStatus


logger = logging.getLogger(__name__)


SUPPORTED_METHOD = "GET"
SUPPORTED_VERSIONS = ("HTTP/1.0", "HTTP/1.1")
LINE_TERMINATORS = (b"\r\n", b"\n")

# Only these separate request line tokens; 0x0B, 0x85, 0xA0 etc. are URI bytes
TOKEN_SEPARATORS = re.compile(r"[ \t\r\n]+")


class HTTPParseError(Exception):
    """
    Raised by the individual parsing steps when a check fails.

    Carries the status code the client should see. Never escapes
    RequestParser.parse().
    """

    def __init__(self, message: str, status_code: int = HTTPStatus.BAD_REQUEST):
        super().__init__(message)
        self.status_code = HTTPStatus(status_code)


class LineReader(Protocol):
    """Source of request bytes: a Connection, or io.BytesIO in tests."""

    def readline(self, limit: int = -1) -> bytes:
        ...


@dataclass
class Request:
    """
    A validated request line.

    Attributes:
        method: Always "GET" once validated.
        uri: Request target exactly as sent, starting with "/".
        version: "HTTP/1.0" or "HTTP/1.1".
        client_address: Peer (ip, port), when known.
    """

    method: str
    uri: str
    version: str
    client_address: Optional[Tuple[str, int]] = None

    @property
    def path(self) -> str:
        """URI without its query string."""
        return self.uri.split("?", 1)[0]

    @property
    def query(self) -> str:
        """Everything after the first "?", or "" when there is none."""
        if "?" not in self.uri:
            return ""
        return self.uri.split("?", 1)[1]


@dataclass
class ParseResult:
    """
    Outcome of parsing one connection's request.

    Exactly one of `request` / `status` is meaningful:
    - ok → `request` is set and `status` is None
    - rejected → `status` is the code to send, `request` is None

    `request_line` holds the first line (stripped) for the access log,
    even when the request was rejected.
    """

    request: Optional[Request] = None
    status: Optional[HTTPStatus] = None
    request_line: str = ""
    reason: str = ""

    @property
    def ok(self) -> bool:
        return self.request is not None

    @classmethod
    def accepted(cls, request: Request, request_line: str) -> "ParseResult":
        return cls(request=request, request_line=request_line)

    @classmethod
    def rejected(cls, error: HTTPParseError, request_line: str = "") -> "ParseResult":
        return cls(status=error.status_code, request_line=request_line, reason=str(error))


def contains_traversal(uri: str) -> bool:
    """
    The traversal check: True if `uri` ends with "/.." or has "/../" in it.

        >>> contains_traversal("/a/../b")
        True
        >>> contains_traversal("/a/..")
        True
        >>> contains_traversal("/a/..b")
        False
    """
    return uri.endswith("/..") or "/../" in uri


class RequestParser:
    """
    Parses and validates one request from a line-oriented byte stream.

    ┌─────────────────────────────────────────────────────────────────────┐
    │                        parse() Flow                                  │
    ├─────────────────────────────────────────────────────────────────────┤
    │                                                                      │
    │   _read_request_line()   read one line, decode latin-1               │
    │          │                                                           │
    │   _parse_request_line()  tokens, method, version, URI checks         │
    │          │                                                           │
    │   _skip_headers()        consume lines up to the blank line          │
    │          │                                                           │
    │   ParseResult.accepted(Request(...))                                 │
    │                                                                      │
    │   Any HTTPParseError along the way → ParseResult.rejected(status)    │
    │                                                                      │
    └─────────────────────────────────────────────────────────────────────┘

    Usage:
        parser = RequestParser()
        result = parser.parse(conn, conn.address)
        if not result.ok:
            writer.send_status(conn, result.status)
    """

    def __init__(self, max_line_length: int = 8192):
        """
        Args:
            max_line_length: Longest request line we will buffer. Header
                lines longer than this are consumed in pieces.
        """
        self.max_line_length = max_line_length

    def parse(
        self,
        reader: LineReader,
        client_address: Optional[Tuple[str, int]] = None,
    ) -> ParseResult:
        """
        Read one request from `reader`.

        Returns:
            ParseResult holding either the Request or the status to send.
        """
        request_line = ""
        try:
            request_line = self._read_request_line(reader)
            method, uri, version = self._parse_request_line(request_line)
            self._skip_headers(reader)
        except HTTPParseError as e:
            logger.debug(f"Rejected request {request_line!r}: {e} ({e.status_code})")
            return ParseResult.rejected(e, request_line)

        request = Request(method=method, uri=uri, version=version, client_address=client_address)
        return ParseResult.accepted(request, request_line)

    def _readline(self, reader: LineReader) -> bytes:
        """readline() that turns timeouts and socket errors into EOF."""
        try:
            return reader.readline(self.max_line_length)
        except OSError as e:
            # socket.timeout is an OSError too
            logger.debug(f"Read failed: {e}")
            return b""

    def _read_request_line(self, reader: LineReader) -> str:
        raw = self._readline(reader)
        if not raw:
            raise HTTPParseError("No request line")

        if not raw.endswith(b"\n") and len(raw) >= self.max_line_length:
            raise HTTPParseError(f"Request line longer than {self.max_line_length} bytes")

        # latin-1 maps every byte to one code point, so nothing is lost and
        # the URI round-trips back to the exact bytes the client sent.
        return raw.decode("latin-1").rstrip("\r\n")

    def _parse_request_line(self, line: str) -> Tuple[str, str, str]:
        """
        Validate "METHOD SP URI SP VERSION".

        Returns:
            (method, uri, version)

        Raises:
            HTTPParseError: With 501 or 400, see the module docstring.
        """
        # str.split() would also split on every other Unicode whitespace char
        tokens = [token for token in TOKEN_SEPARATORS.split(line) if token]
        if len(tokens) != 3:
            raise HTTPParseError(
                f"Expected 3 tokens in request line, got {len(tokens)}",
                status_code=HTTPStatus.NOT_IMPLEMENTED,
            )

        method, uri, version = tokens

        if method != SUPPORTED_METHOD:
            raise HTTPParseError(
                f"Unsupported method: {method}",
                status_code=HTTPStatus.NOT_IMPLEMENTED,
            )

        if version not in SUPPORTED_VERSIONS:
            raise HTTPParseError(
                f"Unsupported version: {version}",
                status_code=HTTPStatus.NOT_IMPLEMENTED,
            )

        if not uri.startswith("/"):
            raise HTTPParseError(f"URI must start with '/': {uri}")

        if contains_traversal(uri):
            raise HTTPParseError(f"Path traversal in URI: {uri}")

        return method, uri, version

    def _skip_headers(self, reader: LineReader) -> None:
        """Discard header lines through the terminating blank line."""
        while True:
            line = self._readline(reader)
            if not line:
                raise HTTPParseError("Connection closed before end of headers")
            if line in LINE_TERMINATORS:
                return


def parse_request(data: bytes) -> ParseResult:
    """
    Parse a complete request held in memory.

    Convenience wrapper for tests and tools:

        result = parse_request(b"GET / HTTP/1.0\\r\\n\\r\\n")
    """
    return RequestParser().parse(io.BytesIO(data))

"""
=============================================================================
LOOKUP HANDLER
=============================================================================

Bridges HTTP to the line-oriented mdb-lookup backend.

=============================================================================
WHAT THE BROWSER SEES
=============================================================================

    GET /mdb-lookup                  → search form only
    GET /mdb-lookup?key=alice        → search form + table of matches

    HTTP/1.0 200 OK
                                             ┐
    <html><body>                             │
    <h1>mdb-lookup</h1>                      │  always
    <p>                                      │
    <form method=GET action=/mdb-lookup>     │
    lookup: <input type=text name=key>       │
    <input type=submit>                      │
    </form>                                  │
    <p>                                      ┘
    <p><table border>                        ┐
    <tr><td>alice,555-1234                   │  only with ?key=
    <tr><td bgcolor=yellow>alice b,555-9876  │  rows alternate shading
    <tr><td>alice c,555-0000                 │
    </table>                                 ┘
    </body></html>

=============================================================================
THE KEY
=============================================================================

The key is everything after "/mdb-lookup?key=", taken literally. No URL
decoding: "/mdb-lookup?key=a%20b" sends "a%20b" to the backend, and
"/mdb-lookup?key=a&x=1" sends "a&x=1". Result rows are written back as the
backend produced them, without HTML escaping.

=============================================================================
FAILURE
=============================================================================

The 200 status line and the form are already out before we talk to the
backend, so a backend failure cannot become an error status any more. We
log it and stop: the client gets a truncated page and the connection is
closed. The handler still reports 200, because that is what was sent.

=============================================================================
"""

import logging
from typing import Iterable, Optional

from ..core.backend import BackendConnection, BackendError
from ..http.response import ResponseWriter
from ..http.status_codes import HTTPStatus


logger = logging.getLogger(__name__)


FORM_TEMPLATE = (
    "<html><body>\n"
    "<h1>mdb-lookup</h1>\n"
    "<p>\n"
    "<form method=GET action={action}>\n"
    "lookup: <input type=text name=key>\n"
    "<input type=submit>\n"
    "</form>\n"
    "<p>\n"
)

TABLE_START = b"<p><table border>"
TABLE_END = b"\n</table>\n"
ODD_ROW = b"\n<tr><td>"
EVEN_ROW = b"\n<tr><td bgcolor=yellow>"
PAGE_END = b"</body></html>\n"


def render_rows(rows: Iterable[bytes]) -> bytes:
    """
    Turn backend result lines into table rows.

    Rows are numbered from 1; odd rows are plain, even rows shaded:

        >>> render_rows([b"a\\n", b"b\\n", b"c\\n"])
        b'\\n<tr><td>a\\n\\n<tr><td bgcolor=yellow>b\\n\\n<tr><td>c\\n'
    """
    parts = []
    for index, row in enumerate(rows, start=1):
        parts.append(ODD_ROW if index % 2 else EVEN_ROW)
        parts.append(row)
    return b"".join(parts)


def render_table(rows: Iterable[bytes]) -> bytes:
    """Complete <table> element for a list of result rows."""
    return TABLE_START + render_rows(rows) + TABLE_END


class LookupHandler:
    """
    Serves the lookup page, forwarding keys to the shared backend.

    Usage:
        lookup = LookupHandler(backend)
        status = lookup.handle("/mdb-lookup?key=alice", conn)
    """

    def __init__(
        self,
        backend: BackendConnection,
        lookup_path: str = "/mdb-lookup",
        writer: Optional[ResponseWriter] = None,
        key_prefix: Optional[str] = None,
    ):
        """
        Args:
            backend: Shared connection to the lookup server.
            lookup_path: URI prefix routed here; also the form action.
            writer: Status line writer (a default one if not given).
            key_prefix: URI prefix whose remainder is the key. Defaults to
                lookup_path + "?key=".
        """
        self.backend = backend
        self.lookup_path = lookup_path
        self.key_prefix = key_prefix or f"{lookup_path}?key="
        self.writer = writer or ResponseWriter()
        self.form = FORM_TEMPLATE.format(action=lookup_path).encode("latin-1")

    def extract_key(self, uri: str) -> Optional[str]:
        """
        The lookup key in `uri`, or None for a bare form request.

            >>> LookupHandler(None).extract_key("/mdb-lookup?key=alice")
            'alice'
            >>> LookupHandler(None).extract_key("/mdb-lookup") is None
            True
        """
        if uri.startswith(self.key_prefix):
            return uri[len(self.key_prefix):]
        return None

    def handle(self, uri: str, conn) -> HTTPStatus:
        """
        Write the lookup page for `uri` to `conn`.

        Returns:
            Always HTTPStatus.OK: the status line goes out first, whatever
            happens afterwards.
        """
        status = HTTPStatus.OK
        if not self.writer.send_status(conn, status):
            return status

        if not conn.send(self.form):
            return status

        key = self.extract_key(uri)
        if key is not None:
            logger.info(f"looking up [{key}]")
            try:
                rows = self.backend.lookup(key)
            except BackendError as e:
                logger.error(f"Lookup [{key}] aborted: {e}")
                return status

            logger.debug(f"Lookup [{key}] returned {len(rows)} rows")
            if not conn.send(render_table(rows)):
                return status

        conn.send(PAGE_END)
        return status

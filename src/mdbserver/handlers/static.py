"""
=============================================================================
STATIC FILE HANDLER
=============================================================================

Serves files from the web root, streaming them to the client in chunks.

=============================================================================
URI → PATH
=============================================================================

    web root:  /var/www

    GET /index.html       → /var/www/index.html
    GET /docs/            → /var/www/docs/index.html     (trailing slash)
    GET /                 → /var/www/index.html
    GET /docs             → /var/www/docs → directory → 403 Forbidden
    GET /nope.html        → cannot open → 404 Not Found

The URI is used as-is, query string included: "/a.html?x=1" looks for a
file literally named "a.html?x=1". There is no URL decoding either.

We join with os.path.join() after stripping the URI's leading slashes
(joining an absolute component would throw the root away), and we re-run
the same traversal check the parser applies before touching the disk.

=============================================================================
STREAMING
=============================================================================

Files are never read into memory whole:

    open(path, "rb")
    while chunk := read(chunk_size):      (4096 bytes by default)
        conn.send(chunk) or stop

A client that disconnects mid-download ends the loop with a warning; the
status line has already gone out, so all we can do is stop writing.

=============================================================================
"""

import os
import logging
from typing import Optional

from ..http.request import contains_traversal
from ..http.response import ResponseWriter
from ..http.status_codes import HTTPStatus


logger = logging.getLogger(__name__)


class StaticFileHandler:
    """
    Handler for serving static files.

    Usage:
        static = StaticFileHandler("/var/www")
        status = static.handle("/index.html", conn)
    """

    def __init__(
        self,
        root_dir: str,
        index_file: str = "index.html",
        chunk_size: int = 4096,
        writer: Optional[ResponseWriter] = None,
    ):
        """
        Args:
            root_dir: Directory URIs are resolved against.
            index_file: File served for URIs ending in "/".
            chunk_size: Bytes per read/send while streaming.
            writer: Status line writer (a default one if not given).
        """
        self.root_dir = root_dir
        self.index_file = index_file
        self.chunk_size = chunk_size
        self.writer = writer or ResponseWriter()

    def resolve(self, uri: str) -> str:
        """
        Map a request URI to a filesystem path under root_dir.

            >>> StaticFileHandler("/var/www").resolve("/docs/")
            '/var/www/docs/index.html'

        Raises:
            ValueError: The URI fails the traversal check.
        """
        if contains_traversal(uri):
            raise ValueError(f"Path traversal in URI: {uri}")

        # The parser decodes as latin-1; get the wire bytes back so a UTF-8
        # name on the wire names the same file on disk.
        name = os.fsdecode(uri.lstrip("/").encode("latin-1"))
        path = os.path.join(self.root_dir, name)
        if uri.endswith("/"):
            path = os.path.join(path, self.index_file)
        return path

    def handle(self, uri: str, conn) -> HTTPStatus:
        """
        Serve `uri` on `conn`.

        Returns:
            The status code that was sent.
        """
        try:
            path = self.resolve(uri)
        except ValueError as e:
            logger.warning(str(e))
            self.writer.send_status(conn, HTTPStatus.BAD_REQUEST)
            return HTTPStatus.BAD_REQUEST

        if os.path.isdir(path):
            self.writer.send_status(conn, HTTPStatus.FORBIDDEN)
            return HTTPStatus.FORBIDDEN

        try:
            f = open(path, "rb")
        except (OSError, ValueError) as e:
            # ValueError: embedded NUL byte in the name
            logger.debug(f"Cannot open {path!r}: {e}")
            self.writer.send_status(conn, HTTPStatus.NOT_FOUND)
            return HTTPStatus.NOT_FOUND

        with f:
            if self.writer.send_status(conn, HTTPStatus.OK):
                self._stream(f, path, conn)
        return HTTPStatus.OK

    def _stream(self, f, path: str, conn) -> int:
        """Copy the open file to the connection. Returns bytes sent."""
        sent = 0
        while True:
            try:
                chunk = f.read(self.chunk_size)
            except OSError as e:
                logger.error(f"Read failed on {path!r} after {sent} bytes: {e}")
                break

            if not chunk:
                break

            if not conn.send(chunk):
                logger.warning(f"Client went away after {sent} bytes of {path!r}")
                break
            sent += len(chunk)

        return sent

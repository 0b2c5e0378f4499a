"""
=============================================================================
LOOKUP BACKEND CONNECTION
=============================================================================

The single persistent TCP connection to the mdb-lookup server.

=============================================================================
BACKEND WIRE PROTOCOL
=============================================================================

    us      → backend:   alice\n
    backend → us:        alice,555-1234\n         ← zero or more result rows
                         alice smith,555-9876\n
                         \n                       ← bare newline: end of results

There is no request id and no length prefix. The only way to know which
reply belongs to which key is order: the first block of rows answers the
first key written, and so on.

=============================================================================
WHY A LOCK
=============================================================================

Every client connection shares this one backend stream. If two worker
threads each wrote a key and then started reading, thread A could consume
thread B's rows. So lookup() holds a lock across the whole exchange:

    ┌──────────────── lock held ────────────────┐
    │  sendall(key + "\n")                       │
    │  readline() ... readline() until "\n"      │
    └────────────────────────────────────────────┘

and it always reads through the sentinel before returning, even if the HTTP
client that asked has already disconnected. Rows go back to the caller as a
list, so nothing the caller does afterwards can leave half a reply sitting
on the stream for the next lookup.

=============================================================================
FAILURE
=============================================================================

If the backend closes the stream or a socket call fails, we cannot know
where the next reply starts any more. The connection is marked broken and
every later lookup() raises BackendError right away. There is no reconnect
and no retry; restarting the server is the recovery path.

=============================================================================
"""

import socket
import logging
import threading
from typing import BinaryIO, List, Optional, Union


logger = logging.getLogger(__name__)


RESULT_SENTINEL = b"\n"


class BackendError(Exception):
    """Raised when the lookup backend can't be reached or breaks mid-reply."""


class BackendConnection:
    """
    Persistent, lock-guarded connection to a line-oriented lookup backend.

    Usage:
        backend = BackendConnection("localhost", 9999)
        backend.connect()              # once, before serving
        rows = backend.lookup("alice")  # [b"alice,555-1234\\n"]
    """

    def __init__(self, host: str, port: int, connect_timeout: Optional[float] = None):
        """
        Args:
            host: Backend host name or address (resolved by DNS).
            port: Backend TCP port.
            connect_timeout: Timeout for establishing the connection only.
                Reads and writes afterwards are fully blocking.
        """
        self.host = host
        self.port = port
        self.connect_timeout = connect_timeout

        self._socket: Optional[socket.socket] = None
        self._reader: Optional[BinaryIO] = None
        self._lock = threading.Lock()
        self._broken = False
        self.lookups = 0

    @classmethod
    def from_socket(cls, sock: socket.socket, name: str = "backend") -> "BackendConnection":
        """Wrap an already connected socket (used by tests)."""
        backend = cls(name, 0)
        backend._attach(sock)
        return backend

    @property
    def connected(self) -> bool:
        return self._socket is not None and not self._broken

    @property
    def address(self) -> str:
        return f"{self.host}:{self.port}"

    def connect(self) -> None:
        """
        Resolve the host and open the connection.

        Raises:
            BackendError: Name resolution or connect() failed.
        """
        try:
            sock = socket.create_connection((self.host, self.port), timeout=self.connect_timeout)
        except OSError as e:
            raise BackendError(f"Cannot connect to lookup backend {self.address}: {e}") from e

        self._attach(sock)
        logger.info(f"Connected to lookup backend {self.address}")

    def _attach(self, sock: socket.socket) -> None:
        # create_connection leaves the connect timeout on the socket
        sock.settimeout(None)
        self._socket = sock
        self._reader = sock.makefile("rb")
        self._broken = False

    def lookup(self, key: Union[str, bytes]) -> List[bytes]:
        """
        Send one key and collect its result rows.

        Args:
            key: The lookup key, forwarded verbatim. A str is encoded as
                latin-1 so it maps back to the exact bytes of the request.

        Returns:
            Result rows in backend order, each with its trailing newline.

        Raises:
            BackendError: Not connected, or the stream failed or closed
                before the end-of-results blank line.
        """
        if isinstance(key, str):
            key = key.encode("latin-1")

        with self._lock:
            if self._socket is None or self._reader is None:
                raise BackendError("Lookup backend is not connected")
            if self._broken:
                raise BackendError(f"Lookup backend {self.address} connection is broken")

            try:
                self._socket.sendall(key + b"\n")
                rows = self._read_results()
            except OSError as e:
                self._broken = True
                raise BackendError(f"Lookup backend {self.address} connection failed: {e}") from e
            except BackendError:
                self._broken = True
                raise

            self.lookups += 1
            return rows

    def _read_results(self) -> List[bytes]:
        """Read rows up to (not including) the sentinel line."""
        rows = []
        while True:
            line = self._reader.readline()
            if not line:
                raise BackendError(f"Lookup backend {self.address} connection terminated")
            if line == RESULT_SENTINEL:
                return rows
            rows.append(line)

    def close(self) -> None:
        """Close the backend connection."""
        with self._lock:
            if self._reader is not None:
                try:
                    self._reader.close()
                except OSError:
                    pass
                self._reader = None
            if self._socket is not None:
                try:
                    self._socket.close()
                except OSError:
                    pass
                self._socket = None
        logger.debug(f"Closed lookup backend {self.address}")

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.close()
        return False

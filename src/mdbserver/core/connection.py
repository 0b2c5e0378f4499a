"""
=============================================================================
CONNECTION MANAGEMENT
=============================================================================

Wraps one accepted client socket with the small API the rest of the server
needs: read a line, write bytes, close exactly once.

=============================================================================
TCP IS A BYTE STREAM, NOT A MESSAGE PROTOCOL
=============================================================================

TCP does not preserve message boundaries. The client may write

    "GET / HTTP/1.0\r\n\r\n"

in one send() and we may receive it as "GET / HT" + "TP/1.0\r\n" + "\r\n".
Our request format is line oriented, so we let a buffered file object
(socket.makefile("rb")) do the reassembly and just ask it for lines:

    conn.readline()  → b"GET / HTTP/1.0\r\n"
    conn.readline()  → b"\r\n"

=============================================================================
CONNECTION STATE MACHINE
=============================================================================

    ACCEPTED ──► READING ──► HEADER_READ ──► ROUTED ──────┐
                    │                                     │
                    └──────► REJECTED ────────────────────┤
                                                          ▼
                                                       CLOSED

    ACCEPTED     socket handed to us by accept()
    READING      parser is consuming the request line and headers
    HEADER_READ  request validated, headers consumed
    ROUTED       a handler (file or lookup) is writing the response
    REJECTED     parsing failed, an error status is being sent
    CLOSED       socket released; close() is a no-op from here on

=============================================================================
WRITE FAILURES DON'T RAISE
=============================================================================

When the browser goes away mid-response, sendall() raises BrokenPipeError
or ConnectionResetError. send() catches those, logs, and returns False.
Callers check the result and stop writing. This keeps a dead client scoped
to its own connection instead of unwinding through the dispatcher.

=============================================================================
"""

import socket
import time
import logging
import uuid
from enum import Enum
from dataclasses import dataclass, field
from typing import BinaryIO, Optional


logger = logging.getLogger(__name__)


class ConnectionState(Enum):
    """Lifecycle states of a client connection."""
    ACCEPTED = "accepted"
    READING = "reading"
    HEADER_READ = "header_read"
    ROUTED = "routed"
    REJECTED = "rejected"
    CLOSED = "closed"


@dataclass
class Connection:
    """
    Represents a client connection.

    Attributes:
        socket: The client socket.
        address: Client's (ip, port) tuple.
        id: Short identifier used in log lines.
        state: Current connection state.
        created_at: Timestamp when the connection was accepted.
        bytes_sent: Response bytes successfully written so far.
        timeout: Socket timeout in seconds, None for fully blocking I/O.
        drain_timeout: How long close() waits for the client to finish.
    """

    socket: socket.socket
    address: tuple

    id: str = field(default_factory=lambda: str(uuid.uuid4())[:8])
    state: ConnectionState = ConnectionState.ACCEPTED
    created_at: float = field(default_factory=time.time)
    bytes_sent: int = 0

    timeout: Optional[float] = 30.0
    drain_timeout: float = 0.5

    _reader: Optional[BinaryIO] = field(default=None, repr=False)

    def __post_init__(self):
        # Blocking mode with an optional timeout; accept() on a listening
        # socket that has a timeout can hand back a non-blocking socket.
        self.socket.setblocking(True)
        if self.timeout:
            self.socket.settimeout(self.timeout)
        self._reader = self.socket.makefile("rb")

    @property
    def client_ip(self) -> str:
        """Get the client IP address."""
        return self.address[0] if self.address else "-"

    @property
    def age(self) -> float:
        """Seconds since the connection was accepted."""
        return time.time() - self.created_at

    @property
    def closed(self) -> bool:
        return self.state == ConnectionState.CLOSED

    # =========================================================================
    # READING
    # =========================================================================

    def readline(self, limit: int = -1) -> bytes:
        """
        Read one line, terminator included.

        Returns b"" at end of stream. Timeouts and socket errors propagate
        as OSError; the request parser treats them like end of stream.

        Args:
            limit: Maximum bytes to return; -1 for no limit.
        """
        if self._reader is None:
            return b""
        return self._reader.readline(limit)

    # =========================================================================
    # WRITING
    # =========================================================================

    def send(self, data: bytes) -> bool:
        """
        Send bytes to the client.

        Uses sendall() so a short write can't silently drop part of the
        response.

        Returns:
            True if everything was sent, False if the client is gone.
        """
        if self.closed:
            return False
        try:
            self.socket.sendall(data)
        except OSError as e:
            # BrokenPipeError / ConnectionResetError / socket.timeout
            logger.warning(f"[{self.id}] Send to {self.client_ip} failed: {e}")
            return False
        self.bytes_sent += len(data)
        return True

    # =========================================================================
    # CLOSING
    # =========================================================================

    def close(self):
        """
        Close the connection. Safe to call more than once.

        1. shutdown(SHUT_WR): send FIN so the client sees end of response
        2. drain: read whatever the client still has in flight, briefly.
           Closing with unread data makes the kernel send RST, and an RST
           can destroy the response before the client has read it (this
           matters for requests we reject before reading their headers).
        3. close(): release the file descriptors
        """
        if self.closed:
            return

        try:
            self.socket.shutdown(socket.SHUT_WR)
        except OSError:
            pass  # Peer already gone

        try:
            self.socket.settimeout(self.drain_timeout)
            while self.socket.recv(1024):
                pass
        except OSError:
            pass

        try:
            if self._reader is not None:
                self._reader.close()
            self.socket.close()
        except OSError:
            pass

        self._reader = None
        self.state = ConnectionState.CLOSED
        logger.debug(f"[{self.id}] Connection closed after {self.age:.3f}s")

    def __enter__(self):
        """
        Context manager entry.

            with conn:
                result = parser.parse(conn)
                ...
            # closed here, on every path
        """
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.close()
        return False

"""
=============================================================================
LOW-LEVEL TCP SOCKET SERVER
=============================================================================

Owns the listening socket and the accept loop. Every accepted client socket
is wrapped in a Connection and handed to a callback; what happens to it
after that (inline processing or a thread pool) is the HTTP layer's call.

=============================================================================
SOCKET LIFECYCLE
=============================================================================

    1. socket()    TCP/IPv4 socket
    2. bind()      ("", port): every local interface
    3. listen()    backlog (default 5) pending connections queued by the OS
    4. accept()    block until a client connects, returns a new socket
    5. close()     release the listening socket on shutdown

    ┌───────────────────────┐
    │   Listening Socket    │ ◄── created once, never carries data
    └───────────┬───────────┘
                │ accept()
        ┌───────┴───────┬───────────────┐
        ▼               ▼               ▼
    Connection      Connection      Connection

=============================================================================
SIGNALS
=============================================================================

SIGPIPE:
    Writing to a socket whose peer has gone away raises SIGPIPE, whose
    default action kills the process. We set it to SIG_IGN so the failed
    write shows up as BrokenPipeError instead, which Connection.send()
    turns into a False return. (CPython already ignores SIGPIPE at start-up;
    we set it explicitly so embedding applications get the same behavior.)

SIGINT / SIGTERM:
    Trigger a graceful shutdown: the accept loop notices within one
    accept timeout and exits.

Signal handlers can only be installed from the main thread. When the
server runs in a background thread (tests, embedding) we skip them.

=============================================================================
"""

import socket
import signal
import logging
import threading
from typing import Optional, Callable, Tuple

from ..config import ServerConfig
from .connection import Connection


logger = logging.getLogger(__name__)


class SocketServer:
    """
    Low-level TCP socket server.

    Usage:
        def handle_connection(conn: Connection):
            ...

        server = SocketServer(config)
        server.start(handle_connection)  # Blocks until shutdown()
    """

    # accept() wakes up this often to check whether we should stop
    ACCEPT_POLL_INTERVAL = 0.5

    def __init__(self, config: ServerConfig):
        self.config = config

        self._socket: Optional[socket.socket] = None
        self._running = False
        self._ready_event = threading.Event()
        self._original_handlers: dict = {}

    @property
    def is_running(self) -> bool:
        return self._running

    @property
    def address(self) -> Tuple[str, int]:
        """The bound (host, port); the real port once bound, even for port 0."""
        if self._socket is not None:
            return self._socket.getsockname()[:2]
        return (self.config.host, self.config.port)

    def _create_socket(self) -> socket.socket:
        sock = socket.socket(socket.AF_INET, socket.SOCK_STREAM)

        # Restart without waiting out TIME_WAIT on the old socket
        sock.setsockopt(socket.SOL_SOCKET, socket.SO_REUSEADDR, 1)

        sock.settimeout(self.ACCEPT_POLL_INTERVAL)
        return sock

    def _setup_signals(self):
        """Ignore SIGPIPE and route SIGINT/SIGTERM to shutdown()."""
        if threading.current_thread() is not threading.main_thread():
            logger.debug("Not in main thread, leaving signal handlers alone")
            return

        def shutdown_handler(signum, frame):
            signal_name = signal.Signals(signum).name
            logger.info(f"Received {signal_name}, initiating shutdown...")
            self.shutdown()

        if hasattr(signal, "SIGPIPE"):
            self._original_handlers[signal.SIGPIPE] = signal.signal(signal.SIGPIPE, signal.SIG_IGN)
        self._original_handlers[signal.SIGTERM] = signal.signal(signal.SIGTERM, shutdown_handler)
        self._original_handlers[signal.SIGINT] = signal.signal(signal.SIGINT, shutdown_handler)

    def _restore_signals(self):
        for sig, handler in self._original_handlers.items():
            signal.signal(sig, handler)
        self._original_handlers.clear()

    def bind(self):
        """
        Create, bind and listen.

        Separate from start() so callers can fail fast on "address already
        in use" before doing anything else.

        Raises:
            OSError: socket(), bind() or listen() failed.
        """
        self._socket = self._create_socket()
        try:
            self._socket.bind((self.config.host, self.config.port))
            self._socket.listen(self.config.backlog)
        except OSError as e:
            logger.error(f"Failed to bind to {self.config.host or '*'}:{self.config.port}: {e}")
            self._socket.close()
            self._socket = None
            raise

        host, port = self.address
        logger.info(f"Server listening on {host or '*'}:{port} (backlog {self.config.backlog})")

    def start(self, connection_handler: Callable[[Connection], None]):
        """
        Run the accept loop, handing each Connection to `connection_handler`.

        Blocks until shutdown() is called. Binds first if bind() wasn't.
        """
        if self._socket is None:
            self.bind()

        self._running = True
        self._setup_signals()
        self._ready_event.set()

        try:
            self._accept_loop(connection_handler)
        finally:
            self._cleanup()

    def _accept_loop(self, connection_handler: Callable[[Connection], None]):
        while self._running:
            try:
                client_socket, client_address = self._socket.accept()
            except socket.timeout:
                continue
            except OSError as e:
                if self._running:
                    logger.error(f"Accept error: {e}")
                break

            logger.debug(f"Accepted connection from {client_address[0]}:{client_address[1]}")

            conn = Connection(
                socket=client_socket,
                address=client_address,
                timeout=self.config.timeout,
            )
            connection_handler(conn)

    def wait_until_ready(self, timeout: Optional[float] = None) -> bool:
        """Block until the accept loop is running. Returns False on timeout."""
        return self._ready_event.wait(timeout)

    def shutdown(self):
        """Ask the accept loop to stop. Idempotent, callable from any thread."""
        logger.info("Shutting down socket server...")
        self._running = False

    def _cleanup(self):
        self._restore_signals()

        if self._socket:
            try:
                self._socket.close()
            except OSError:
                pass
            self._socket = None

        self._ready_event.clear()
        logger.info("Socket server stopped")

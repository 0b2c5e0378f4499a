"""
=============================================================================
HTTP SERVER
=============================================================================

Ties the pieces together: accept a connection, parse its request, route it
to the file handler or the lookup handler, close it, log it.

=============================================================================
REQUEST FLOW
=============================================================================

    SocketServer.accept()
        │
        ▼
    _handle_connection(conn) ── concurrent? ──► ThreadPool.submit()
        │                                           │
        └────────────── inline ─────────────────────┤
                                                    ▼
                                        process_connection(conn)
                                                    │
                              RequestParser.parse(conn)
                                     │            │
                                 rejected        ok
                                     │            │
                     ResponseWriter.send_status   route by URI prefix
                         (400 / 501)              │
                                           ┌──────┴───────┐
                                   /mdb-lookup...     anything else
                                           │              │
                                  LookupHandler   StaticFileHandler
                                           │              │
                                           └──────┬───────┘
                                                  ▼
                                       conn.close() (exactly once)
                                                  ▼
                                          access log line

=============================================================================
STARTUP ORDER
=============================================================================

    1. configure logging
    2. connect to the lookup backend    ← fatal if it fails
    3. bind + listen                    ← fatal if it fails
    4. start worker threads
    5. accept loop (blocks)

The backend is connected before we listen, so the server never accepts a
client it couldn't serve.

=============================================================================
"""

import logging
import time
from typing import Optional, Tuple

from .access_log import AccessLogger
from .config import ServerConfig
from .core import BackendConnection, Connection, ConnectionState, SocketServer, ThreadPool
from .handlers import LookupHandler, StaticFileHandler
from .http import HTTPStatus, ParseResult, RequestParser, ResponseWriter


logger = logging.getLogger(__name__)


class HTTPServer:
    """
    The lookup HTTP server.

    =========================================================================
    USAGE
    =========================================================================

        config = ServerConfig(
            port=8888,
            web_root="./www",
            backend_host="localhost",
            backend_port=9999,
        )
        server = HTTPServer(config)
        server.run()  # blocks until Ctrl+C / SIGTERM

    An already connected BackendConnection may be passed in; the server
    then leaves it open on shutdown, since it doesn't own it.

    =========================================================================
    """

    def __init__(
        self,
        config: Optional[ServerConfig] = None,
        backend: Optional[BackendConnection] = None,
    ):
        self.config = config or ServerConfig()
        self.config.validate()

        self._owns_backend = backend is None
        self.backend = backend or BackendConnection(
            self.config.backend_host, self.config.backend_port
        )

        self._socket_server = SocketServer(self.config)
        self._thread_pool: Optional[ThreadPool] = None
        if self.config.concurrent:
            self._thread_pool = ThreadPool(
                min_workers=self.config.min_workers,
                max_workers=self.config.max_workers,
                queue_size=self.config.queue_size,
            )

        self._parser = RequestParser(max_line_length=self.config.max_line_length)
        self._writer = ResponseWriter()
        self._static = StaticFileHandler(
            self.config.web_root,
            index_file=self.config.index_file,
            chunk_size=self.config.chunk_size,
            writer=self._writer,
        )
        self._lookup = LookupHandler(
            self.backend,
            lookup_path=self.config.lookup_path,
            writer=self._writer,
            key_prefix=self.config.lookup_key_prefix,
        )
        self._access_log = AccessLogger(log_format=self.config.log_format)

        self._running = False

    @property
    def address(self) -> Tuple[str, int]:
        """Bound (host, port) once listening."""
        return self._socket_server.address

    @property
    def is_running(self) -> bool:
        return self._running

    # =========================================================================
    # SERVER LIFECYCLE
    # =========================================================================

    def run(self):
        """
        Start the server (blocking).

        Raises:
            BackendError: The lookup backend could not be reached.
            OSError: The listening socket could not be set up.
        """
        self._setup_logging()

        if not self.backend.connected:
            self.backend.connect()

        self._socket_server.bind()

        if self._thread_pool is not None:
            self._thread_pool.start()

        mode = (
            f"{self.config.min_workers}-{self.config.max_workers} worker threads"
            if self._thread_pool is not None else "sequential"
        )
        logger.info(
            f"Serving {self.config.web_root} and {self.config.lookup_path} "
            f"(backend {self.backend.address}, {mode})"
        )

        self._running = True
        try:
            self._socket_server.start(self._handle_connection)
        except KeyboardInterrupt:
            logger.info("Received keyboard interrupt")
        finally:
            self._shutdown()

    def shutdown(self):
        """Stop accepting connections; run() returns shortly after."""
        self._socket_server.shutdown()

    def wait_until_ready(self, timeout: Optional[float] = None) -> bool:
        """Block until the server is accepting connections."""
        return self._socket_server.wait_until_ready(timeout)

    def _setup_logging(self):
        """Configure logging based on config."""
        level = getattr(logging, self.config.log_level.upper(), logging.INFO)

        logging.basicConfig(
            level=level,
            format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
            datefmt="%Y-%m-%d %H:%M:%S",
        )
        logging.getLogger("mdbserver").setLevel(level)

    def _shutdown(self):
        logger.info("Shutting down server...")
        self._running = False

        if self._thread_pool is not None:
            self._thread_pool.shutdown(wait=True, timeout=30.0)

        if self._owns_backend:
            self.backend.close()

        logger.info("Server stopped")

    # =========================================================================
    # REQUEST HANDLING
    # =========================================================================

    def _handle_connection(self, conn: Connection):
        """Called by the accept loop for every new connection."""
        if self._thread_pool is None:
            self.process_connection(conn)
            return

        if not self._thread_pool.submit(self.process_connection, args=(conn,)):
            logger.warning(f"[{conn.id}] Thread pool full, rejecting connection")
            with conn:
                self._writer.send_status(conn, HTTPStatus.SERVICE_UNAVAILABLE)

    def process_connection(self, conn: Connection) -> HTTPStatus:
        """
        Handle one connection from start to close.

        Returns:
            The status code sent to the client.
        """
        started_at = time.time()
        request_line = ""
        status = HTTPStatus.INTERNAL_SERVER_ERROR

        with conn:
            try:
                conn.state = ConnectionState.READING
                result = self._parser.parse(conn, conn.address)
                request_line = result.request_line
                status = self.dispatch(conn, result)
            except Exception as e:
                logger.exception(f"[{conn.id}] Handler error: {e}")
                if conn.bytes_sent == 0:
                    self._writer.send_status(conn, HTTPStatus.INTERNAL_SERVER_ERROR)

        self._access_log.log(conn, request_line, status, started_at)
        return status

    def dispatch(self, conn: Connection, result: ParseResult) -> HTTPStatus:
        """
        Send the rejection for a failed parse, or route a valid request.

        Returns:
            The status code the active handler sent.
        """
        if not result.ok:
            conn.state = ConnectionState.REJECTED
            self._writer.send_status(conn, result.status)
            return result.status

        conn.state = ConnectionState.HEADER_READ
        uri = result.request.uri

        conn.state = ConnectionState.ROUTED
        if uri.startswith(self.config.lookup_path):
            return self._lookup.handle(uri, conn)
        return self._static.handle(uri, conn)

"""
=============================================================================
SERVER CONFIGURATION
=============================================================================

Every tunable of the server in one dataclass.

=============================================================================
CONFIGURATION SOURCES
=============================================================================

    1. Command-line arguments (highest priority)
       └── mdb-http-server 8888 ./www localhost 9999 --workers 8

    2. Environment variables, via ServerConfig.from_env()
       └── MDB_HTTP_PORT=8888 MDB_WEB_ROOT=./www ...

    3. The defaults below

The four positional values (port, web root, backend host, backend port)
are what the server is really about; the rest has sensible defaults.

=============================================================================
"""

import os
from dataclasses import dataclass
from typing import Optional


@dataclass
class ServerConfig:
    """
    Configuration for the lookup HTTP server.

    =========================================================================
    CONFIGURATION GROUPS
    =========================================================================

    REQUIRED AT THE CLI
    - port, web_root, backend_host, backend_port

    NETWORK
    - host, backlog, timeout

    HTTP
    - max_line_length, chunk_size, index_file, lookup_path

    CONCURRENCY
    - concurrent, min_workers, max_workers, queue_size

    LOGGING
    - log_level, log_format

    =========================================================================
    """

    # ─────────────────────────────────────────────────────────────────────
    # REQUIRED
    # ─────────────────────────────────────────────────────────────────────

    port: int = 8080
    """Port to listen on."""

    web_root: str = "."
    """Directory static files are served from."""

    backend_host: str = "localhost"
    """Host of the mdb-lookup server (name or address)."""

    backend_port: int = 9999
    """Port of the mdb-lookup server."""

    # ─────────────────────────────────────────────────────────────────────
    # NETWORK SETTINGS
    # ─────────────────────────────────────────────────────────────────────

    host: str = ""
    """Address to bind to. "" means every interface (INADDR_ANY)."""

    backlog: int = 5
    """Pending connections the OS queues before refusing new ones."""

    timeout: Optional[float] = 30.0
    """
    Client socket timeout in seconds.
    None = fully blocking; a silent client then holds its worker forever.
    The backend connection never has a timeout.
    """

    # ─────────────────────────────────────────────────────────────────────
    # HTTP SETTINGS
    # ─────────────────────────────────────────────────────────────────────

    max_line_length: int = 8192
    """Longest request line accepted (400 beyond that)."""

    chunk_size: int = 4096
    """Bytes read from a file per send() while streaming."""

    index_file: str = "index.html"
    """Appended to URIs ending in "/"."""

    lookup_path: str = "/mdb-lookup"
    """URIs starting with this go to the lookup handler."""

    # ─────────────────────────────────────────────────────────────────────
    # CONCURRENCY
    # ─────────────────────────────────────────────────────────────────────

    concurrent: bool = True
    """
    True: each connection runs on a worker thread.
    False: one connection at a time, processed inside the accept loop.
    """

    min_workers: int = 4
    max_workers: int = 16
    queue_size: int = 100

    # ─────────────────────────────────────────────────────────────────────
    # LOGGING
    # ─────────────────────────────────────────────────────────────────────

    log_level: str = "INFO"
    """DEBUG, INFO, WARNING, ERROR."""

    log_format: str = "text"
    """Access log format: "text" or "json"."""

    @property
    def lookup_key_prefix(self) -> str:
        """The URI prefix whose remainder is the lookup key."""
        return f"{self.lookup_path}?key="

    @classmethod
    def from_env(cls) -> "ServerConfig":
        """
        Create configuration from environment variables.

        =====================================================================
        ENVIRONMENT VARIABLES
        =====================================================================

        MDB_HTTP_PORT       Listening port (default: 8080)
        MDB_WEB_ROOT        Static file root (default: .)
        MDB_LOOKUP_HOST     Backend host (default: localhost)
        MDB_LOOKUP_PORT     Backend port (default: 9999)
        MDB_HTTP_WORKERS    Max worker threads (default: 16)
        MDB_LOG_LEVEL       Logging level (default: INFO)

        =====================================================================
        """
        return cls(
            port=int(os.getenv("MDB_HTTP_PORT", "8080")),
            web_root=os.getenv("MDB_WEB_ROOT", "."),
            backend_host=os.getenv("MDB_LOOKUP_HOST", "localhost"),
            backend_port=int(os.getenv("MDB_LOOKUP_PORT", "9999")),
            max_workers=int(os.getenv("MDB_HTTP_WORKERS", "16")),
            log_level=os.getenv("MDB_LOG_LEVEL", "INFO"),
        )

    def validate(self) -> None:
        """
        Validate configuration values. Fails fast at startup.

        Raises:
            ValueError: On the first invalid value.
        """
        # Port 0 lets the OS pick (handy in tests)
        if not 0 <= self.port < 65536:
            raise ValueError(f"Invalid port: {self.port}. Must be 0-65535.")

        if not 0 < self.backend_port < 65536:
            raise ValueError(f"Invalid backend port: {self.backend_port}. Must be 1-65535.")

        if not os.path.isdir(self.web_root):
            raise ValueError(f"Web root is not a directory: {self.web_root}")

        if self.backlog < 1:
            raise ValueError("backlog must be >= 1")

        if self.chunk_size < 1:
            raise ValueError("chunk_size must be >= 1")

        if self.max_line_length < 16:
            raise ValueError("max_line_length must be >= 16")

        if self.timeout is not None and self.timeout <= 0:
            raise ValueError("timeout must be > 0 (or None)")

        if not self.lookup_path.startswith("/"):
            raise ValueError(f"lookup_path must start with '/': {self.lookup_path}")

        if self.min_workers < 1:
            raise ValueError("min_workers must be >= 1")

        if self.max_workers < self.min_workers:
            raise ValueError("max_workers must be >= min_workers")

        if self.log_format not in ("text", "json"):
            raise ValueError(f"log_format must be 'text' or 'json': {self.log_format}")

"""
=============================================================================
CORE SERVER COMPONENTS
=============================================================================

The networking plumbing under the HTTP layer:

    ┌─────────────────────────────────────────────────────────────────────┐
    │  SocketServer       listening socket + accept loop                  │
    │  Connection         one client socket: readline / send / close      │
    │  ThreadPool         worker threads that process connections         │
    │  BackendConnection  the one persistent, lock-guarded stream to the  │
    │                     mdb-lookup server                               │
    └─────────────────────────────────────────────────────────────────────┘

=============================================================================
"""

from .socket_server import SocketServer
from .connection import Connection, ConnectionState
from .thread_pool import ThreadPool
from .backend import BackendConnection, BackendError

__all__ = [
    "SocketServer",
    "Connection",
    "ConnectionState",
    "ThreadPool",
    "BackendConnection",
    "BackendError",
]

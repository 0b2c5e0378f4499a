"""
=============================================================================
MDBSERVER - HTTP Front End for an mdb-lookup Server
=============================================================================

A small HTTP/1.0 server on raw Python sockets. It does two things:

    1. Serves static files from a web root
    2. Turns /mdb-lookup?key=... into a query against a persistent
       connection to a line-oriented lookup server, and renders the
       matching records as an HTML table

=============================================================================
PACKAGE STRUCTURE
=============================================================================

    mdbserver/
    ├── __init__.py          # This file - package exports
    ├── __main__.py          # CLI entry point (python -m mdbserver)
    ├── server.py            # HTTPServer: accept, parse, route, close
    ├── config.py            # ServerConfig dataclass
    ├── access_log.py        # One log line per connection
    ├── core/
    │   ├── socket_server.py # Listening socket + accept loop
    │   ├── connection.py    # Client socket wrapper
    │   ├── thread_pool.py   # Worker threads
    │   └── backend.py       # Persistent lookup backend connection
    ├── http/
    │   ├── request.py       # Request line parsing and validation
    │   ├── response.py      # Status line / error page writer
    │   └── status_codes.py  # Status catalog
    └── handlers/
        ├── static.py        # Static files
        └── lookup.py        # mdb-lookup form and result table

=============================================================================
QUICK START
=============================================================================

    $ mdb-lookup-server my.mdb 9999 &
    $ mdb-http-server 8888 ./www localhost 9999

    $ curl 'http://localhost:8888/mdb-lookup?key=alice'

Or from Python:

    from mdbserver import HTTPServer, ServerConfig

    server = HTTPServer(ServerConfig(
        port=8888, web_root="./www",
        backend_host="localhost", backend_port=9999,
    ))
    server.run()

=============================================================================
"""

__version__ = "1.0.0"

from .server import HTTPServer
from .config import ServerConfig

__all__ = ["HTTPServer", "ServerConfig", "__version__"]

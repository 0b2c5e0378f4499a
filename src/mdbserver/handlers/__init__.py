"""
=============================================================================
HANDLERS
=============================================================================

Each handler writes a complete response for a validated request and
returns the status code it sent.

    ┌──────────────────────┬──────────────────────────────────────────────┐
    │ URI                  │ Handler                                      │
    ├──────────────────────┼──────────────────────────────────────────────┤
    │ /mdb-lookup...       │ LookupHandler: search form + backend results │
    │ anything else        │ StaticFileHandler: file from the web root    │
    └──────────────────────┴──────────────────────────────────────────────┘

=============================================================================
"""

from .static import StaticFileHandler
from .lookup import LookupHandler, render_rows, render_table

__all__ = [
    "StaticFileHandler",
    "LookupHandler",
    "render_rows",
    "render_table",
]

"""
=============================================================================
ACCESS LOG
=============================================================================

One log line per connection, written after the connection is closed:

    127.0.0.1 "GET /mdb-lookup?key=alice HTTP/1.0" 200 OK 412 1.87ms

or, with log_format="json":

    {"connection_id": "3f2a9c1e", "client_ip": "127.0.0.1",
     "request_line": "GET /mdb-lookup?key=alice HTTP/1.0",
     "status_code": 200, "reason": "OK", "bytes_sent": 412,
     "duration_ms": 1.87, "timestamp": "18/Oct/2026:15:33:02 +0000"}

The status is the one the handler reports having sent. For a request that
never produced a request line the quoted part is empty.

=============================================================================
"""

import json
import time
import logging
from dataclasses import asdict, dataclass

from .http.status_codes import reason_phrase


logger = logging.getLogger(__name__)


@dataclass
class RequestLog:
    """Structured log entry for one connection."""

    connection_id: str
    client_ip: str
    request_line: str
    status_code: int
    reason: str
    bytes_sent: int
    duration_ms: float
    timestamp: str

    def to_dict(self) -> dict:
        entry = asdict(self)
        entry["duration_ms"] = round(self.duration_ms, 2)
        return entry

    def to_text(self) -> str:
        return (
            f'{self.client_ip} "{self.request_line}" {self.status_code} {self.reason} '
            f'{self.bytes_sent} {self.duration_ms:.2f}ms'
        )


class AccessLogger:
    """
    Emits RequestLog entries on the "mdbserver.access_log" logger.

    Usage:
        access = AccessLogger(log_format="json")
        access.log(conn, request_line, status, started_at)
    """

    def __init__(self, log_format: str = "text", log_level: int = logging.INFO):
        self.log_format = log_format
        self.log_level = log_level

    def build(self, conn, request_line: str, status: int, started_at: float) -> RequestLog:
        return RequestLog(
            connection_id=conn.id,
            client_ip=conn.client_ip,
            request_line=request_line,
            status_code=int(status),
            reason=reason_phrase(status),
            bytes_sent=conn.bytes_sent,
            duration_ms=(time.time() - started_at) * 1000,
            timestamp=time.strftime("%d/%b/%Y:%H:%M:%S %z"),
        )

    def log(self, conn, request_line: str, status: int, started_at: float) -> RequestLog:
        entry = self.build(conn, request_line, status, started_at)
        if self.log_format == "json":
            logger.log(self.log_level, json.dumps(entry.to_dict()))
        else:
            logger.log(self.log_level, entry.to_text())
        return entry

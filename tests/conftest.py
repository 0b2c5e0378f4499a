"""
pytest configuration and fixtures.
"""

import io
import socket
import threading
import time
from typing import Generator, List, Optional

import pytest

# Add src to path for imports
import sys
from pathlib import Path
sys.path.insert(0, str(Path(__file__).parent.parent / "src"))

from mdbserver import HTTPServer, ServerConfig
from mdbserver.core import ConnectionState


CHUNK_SIZE = 4096


class FakeConnection:
    """
    In-memory stand-in for core.connection.Connection.

    Reads come from `request`, writes pile up in `sent`. With `fail_after`
    set, that many send() calls succeed and every later one fails, like a
    client that hung up mid-response.
    """

    def __init__(self, request: bytes = b"", fail_after: Optional[int] = None):
        self._reader = io.BytesIO(request)
        self.sent = bytearray()
        self.sends = 0
        self.fail_after = fail_after
        self.bytes_sent = 0
        self.id = "test0001"
        self.client_ip = "127.0.0.1"
        self.address = ("127.0.0.1", 50000)
        self.state = ConnectionState.ACCEPTED
        self.closes = 0

    def readline(self, limit: int = -1) -> bytes:
        return self._reader.readline(limit)

    def send(self, data: bytes) -> bool:
        if self.fail_after is not None and self.sends >= self.fail_after:
            return False
        self.sends += 1
        self.sent += data
        self.bytes_sent += len(data)
        return True

    def close(self):
        self.closes += 1
        self.state = ConnectionState.CLOSED

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.close()
        return False


class FakeLookupBackend:
    """
    A threaded mdb-lookup server for tests.

    Speaks the real wire protocol: reads "<key>\\n", answers with every
    record containing the key as a substring, one per line, then a bare
    "\\n". Keys received are recorded in `keys`.

    With `die_after` set, the backend closes the connection instead of
    answering the (die_after + 1)-th lookup.
    """

    def __init__(self, records: List[str], die_after: Optional[int] = None, delay: float = 0.0):
        self.records = [r.encode("latin-1") for r in records]
        self.die_after = die_after
        self.delay = delay
        self.keys: List[bytes] = []

        self._sock = socket.socket(socket.AF_INET, socket.SOCK_STREAM)
        self._sock.setsockopt(socket.SOL_SOCKET, socket.SO_REUSEADDR, 1)
        self._sock.bind(("127.0.0.1", 0))
        self._sock.listen(5)
        self._sock.settimeout(0.2)
        self.port = self._sock.getsockname()[1]

        self._running = False
        self._thread: Optional[threading.Thread] = None

    def start(self) -> "FakeLookupBackend":
        self._running = True
        self._thread = threading.Thread(target=self._serve, daemon=True)
        self._thread.start()
        return self

    def stop(self):
        self._running = False
        if self._thread is not None:
            self._thread.join(timeout=5.0)
        self._sock.close()

    def _serve(self):
        while self._running:
            try:
                conn, _ = self._sock.accept()
            except socket.timeout:
                continue
            except OSError:
                return
            conn.settimeout(None)
            with conn, conn.makefile("rb") as reader:
                self._answer(conn, reader)

    def _answer(self, conn: socket.socket, reader):
        for line in reader:
            if self.die_after is not None and len(self.keys) >= self.die_after:
                return
            key = line.rstrip(b"\n")
            self.keys.append(key)
            if self.delay:
                time.sleep(self.delay)
            rows = [record + b"\n" for record in self.records if key in record]
            try:
                conn.sendall(b"".join(rows) + b"\n")
            except OSError:
                return


def http_get(port: int, raw_request: bytes, timeout: float = 5.0) -> bytes:
    """Send raw request bytes and read the response until the server closes."""
    with socket.create_connection(("127.0.0.1", port), timeout=timeout) as s:
        s.sendall(raw_request)
        chunks = []
        while True:
            chunk = s.recv(65536)
            if not chunk:
                break
            chunks.append(chunk)
    return b"".join(chunks)


def split_response(response: bytes):
    """Split a response into (status line, body)."""
    head, _, body = response.partition(b"\r\n\r\n")
    return head.decode("latin-1"), body


@pytest.fixture
def free_port() -> int:
    """Get a free port for testing."""
    with socket.socket(socket.AF_INET, socket.SOCK_STREAM) as s:
        s.bind(("127.0.0.1", 0))
        return s.getsockname()[1]


@pytest.fixture
def web_root(tmp_path: Path) -> Path:
    """A small web root with files, an indexed directory and a bare one."""
    root = tmp_path / "www"
    root.mkdir()
    (root / "index.html").write_bytes(b"<html><body>home</body></html>\n")
    (root / "hello.txt").write_bytes(b"hello, world\n")
    (root / "empty.bin").write_bytes(b"")
    (root / "one.bin").write_bytes(b"x")
    (root / "big.bin").write_bytes(bytes(range(256)) * (CHUNK_SIZE * 3 // 256) + b"!")
    (root / "docs").mkdir()
    (root / "docs" / "index.html").write_bytes(b"docs index\n")
    (root / "bare").mkdir()
    return root


@pytest.fixture
def records() -> List[str]:
    return [
        "alice,555-1234",
        "bob,555-2222",
        "carol,555-3333",
        "alicia,555-4444",
        "malice,555-5555",
    ]


@pytest.fixture
def lookup_backend(records) -> Generator[FakeLookupBackend, None, None]:
    backend = FakeLookupBackend(records).start()
    yield backend
    backend.stop()


@pytest.fixture
def make_conn():
    """Factory for FakeConnection objects."""
    return FakeConnection


class TestServer:
    """Runs an HTTPServer in a background thread."""

    __test__ = False  # not a test class, despite the name

    def __init__(self, server: HTTPServer, port: int):
        self.server = server
        self.port = port
        self._thread: Optional[threading.Thread] = None
        self.error: Optional[BaseException] = None

    def start(self):
        self._thread = threading.Thread(target=self._run, daemon=True)
        self._thread.start()
        if not self.server.wait_until_ready(timeout=5.0):
            raise RuntimeError(f"Server failed to start: {self.error!r}")

    def _run(self):
        try:
            self.server.run()
        except BaseException as e:
            self.error = e

    def get(self, raw_request: bytes) -> bytes:
        return http_get(self.port, raw_request)

    def stop(self):
        self.server.shutdown()
        if self._thread and self._thread.is_alive():
            self._thread.join(timeout=10.0)


def make_config(port: int, web_root: Path, backend_port: int, **overrides) -> ServerConfig:
    settings = dict(
        port=port,
        web_root=str(web_root),
        backend_host="127.0.0.1",
        backend_port=backend_port,
        timeout=5.0,
        min_workers=2,
        max_workers=4,
        log_level="WARNING",
    )
    settings.update(overrides)
    return ServerConfig(**settings)


@pytest.fixture
def test_server(free_port, web_root, lookup_backend) -> Generator[TestServer, None, None]:
    """A running concurrent server wired to the fake backend."""
    server = HTTPServer(make_config(free_port, web_root, lookup_backend.port))
    test_srv = TestServer(server, free_port)
    test_srv.start()

    yield test_srv

    test_srv.stop()


@pytest.fixture
def sequential_server(free_port, web_root, lookup_backend) -> Generator[TestServer, None, None]:
    """A running one-connection-at-a-time server."""
    server = HTTPServer(make_config(free_port, web_root, lookup_backend.port, concurrent=False))
    test_srv = TestServer(server, free_port)
    test_srv.start()

    yield test_srv

    test_srv.stop()

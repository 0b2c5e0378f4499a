"""
Unit tests for the static file handler.
"""

import os

import pytest

from mdbserver.handlers.static import StaticFileHandler
from mdbserver.http.response import render_status
from mdbserver.http.status_codes import HTTPStatus


OK_HEAD = b"HTTP/1.0 200 OK\r\n\r\n"


@pytest.fixture
def handler(web_root) -> StaticFileHandler:
    return StaticFileHandler(str(web_root))


class TestResolve:
    """Tests for URI to path mapping."""

    def test_plain_file(self, handler, web_root):
        assert handler.resolve("/hello.txt") == os.path.join(str(web_root), "hello.txt")

    def test_trailing_slash_gets_index(self, handler, web_root):
        """Test that a URI ending in '/' gets index.html appended."""
        assert handler.resolve("/docs/") == os.path.join(str(web_root), "docs", "index.html")
        assert handler.resolve("/") == os.path.join(str(web_root), "index.html")

    def test_query_string_kept(self, handler, web_root):
        """Test that the query string is part of the file name."""
        assert handler.resolve("/a.html?x=1") == os.path.join(str(web_root), "a.html?x=1")

    def test_stays_under_root(self, handler, web_root):
        """Test that extra leading slashes can't escape the root."""
        assert handler.resolve("//etc/passwd").startswith(str(web_root))

    def test_traversal(self, handler):
        with pytest.raises(ValueError):
            handler.resolve("/docs/../../secret")


class TestStaticFileHandler:
    """Tests for StaticFileHandler.handle()."""

    def test_serves_file(self, handler, make_conn):
        """Test a small file is served byte for byte."""
        conn = make_conn()
        assert handler.handle("/hello.txt", conn) == HTTPStatus.OK
        assert bytes(conn.sent) == OK_HEAD + b"hello, world\n"

    def test_empty_file(self, handler, make_conn):
        """Test a zero-byte file: status line only."""
        conn = make_conn()
        assert handler.handle("/empty.bin", conn) == HTTPStatus.OK
        assert bytes(conn.sent) == OK_HEAD

    def test_one_byte_file(self, handler, make_conn):
        conn = make_conn()
        handler.handle("/one.bin", conn)
        assert bytes(conn.sent) == OK_HEAD + b"x"

    def test_multi_chunk_file(self, handler, make_conn, web_root):
        """Test a file one byte past a chunk boundary arrives intact."""
        expected = (web_root / "big.bin").read_bytes()
        assert len(expected) % handler.chunk_size == 1

        conn = make_conn()
        assert handler.handle("/big.bin", conn) == HTTPStatus.OK
        assert bytes(conn.sent) == OK_HEAD + expected
        # status line + one send per chunk
        assert conn.sends == 1 + len(expected) // handler.chunk_size + 1

    def test_index_substitution(self, handler, make_conn):
        conn = make_conn()
        assert handler.handle("/docs/", conn) == HTTPStatus.OK
        assert bytes(conn.sent) == OK_HEAD + b"docs index\n"

    def test_directory_forbidden(self, handler, make_conn):
        """Test a directory without a trailing slash gets 403."""
        conn = make_conn()
        assert handler.handle("/docs", conn) == HTTPStatus.FORBIDDEN
        assert bytes(conn.sent) == render_status(403)

    def test_missing_index(self, handler, make_conn):
        """Test a directory with no index file gets 404."""
        conn = make_conn()
        assert handler.handle("/bare/", conn) == HTTPStatus.NOT_FOUND
        assert bytes(conn.sent) == render_status(404)

    def test_missing_file(self, handler, make_conn):
        conn = make_conn()
        assert handler.handle("/missing.html", conn) == HTTPStatus.NOT_FOUND
        assert b"404 Not Found" in conn.sent

    def test_nul_byte_is_not_found(self, handler, make_conn):
        conn = make_conn()
        assert handler.handle("/a\x00b", conn) == HTTPStatus.NOT_FOUND

    def test_traversal_rejected(self, handler, make_conn):
        """Test the handler repeats the parser's traversal check."""
        conn = make_conn()
        assert handler.handle("/../etc/passwd", conn) == HTTPStatus.BAD_REQUEST
        assert bytes(conn.sent) == render_status(400)

    def test_utf8_file_name(self, handler, make_conn, web_root):
        """Test a URI carrying raw UTF-8 bytes opens the file of that name."""
        (web_root / "à.html").write_bytes(b"accent\n")
        uri = "/à.html".encode("utf-8").decode("latin-1")

        conn = make_conn()
        assert handler.handle(uri, conn) == HTTPStatus.OK
        assert bytes(conn.sent) == OK_HEAD + b"accent\n"

    def test_client_gone_mid_stream(self, handler, make_conn):
        """Test that a send failure stops streaming quietly."""
        conn = make_conn(fail_after=2)
        assert handler.handle("/big.bin", conn) == HTTPStatus.OK
        assert conn.sends == 2
        assert conn.sent.startswith(OK_HEAD)
        assert len(conn.sent) == len(OK_HEAD) + handler.chunk_size

    def test_client_gone_before_status(self, handler, make_conn):
        conn = make_conn(fail_after=0)
        assert handler.handle("/hello.txt", conn) == HTTPStatus.OK
        assert conn.sent == b""

    def test_small_chunks(self, web_root, make_conn):
        """Test a custom chunk size."""
        handler = StaticFileHandler(str(web_root), chunk_size=4)
        conn = make_conn()
        handler.handle("/hello.txt", conn)
        assert bytes(conn.sent) == OK_HEAD + b"hello, world\n"
        assert conn.sends == 1 + 4

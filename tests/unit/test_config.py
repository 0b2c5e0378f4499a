"""
Unit tests for configuration and the command line.
"""

import pytest

from mdbserver.__main__ import build_parser, config_from_args, main
from mdbserver.config import ServerConfig


class TestServerConfig:
    """Tests for ServerConfig."""

    def test_defaults(self):
        config = ServerConfig()
        assert config.backlog == 5
        assert config.chunk_size == 4096
        assert config.index_file == "index.html"
        assert config.lookup_path == "/mdb-lookup"
        assert config.lookup_key_prefix == "/mdb-lookup?key="
        assert config.concurrent is True

    def test_valid(self, web_root):
        ServerConfig(port=0, web_root=str(web_root)).validate()

    @pytest.mark.parametrize("overrides,message", [
        ({"port": 70000}, "port"),
        ({"port": -1}, "port"),
        ({"backend_port": 0}, "backend port"),
        ({"backlog": 0}, "backlog"),
        ({"chunk_size": 0}, "chunk_size"),
        ({"max_line_length": 4}, "max_line_length"),
        ({"timeout": 0}, "timeout"),
        ({"lookup_path": "mdb-lookup"}, "lookup_path"),
        ({"min_workers": 0}, "min_workers"),
        ({"min_workers": 8, "max_workers": 4}, "max_workers"),
        ({"log_format": "xml"}, "log_format"),
    ])
    def test_invalid(self, web_root, overrides, message):
        config = ServerConfig(web_root=str(web_root), **overrides)
        with pytest.raises(ValueError, match=message):
            config.validate()

    def test_web_root_must_be_directory(self, web_root):
        with pytest.raises(ValueError, match="Web root"):
            ServerConfig(web_root=str(web_root / "hello.txt")).validate()
        with pytest.raises(ValueError, match="Web root"):
            ServerConfig(web_root=str(web_root / "nope")).validate()

    def test_no_timeout_allowed(self, web_root):
        ServerConfig(web_root=str(web_root), timeout=None).validate()

    def test_from_env(self, monkeypatch):
        monkeypatch.setenv("MDB_HTTP_PORT", "8888")
        monkeypatch.setenv("MDB_WEB_ROOT", "/srv/www")
        monkeypatch.setenv("MDB_LOOKUP_HOST", "lookup.internal")
        monkeypatch.setenv("MDB_LOOKUP_PORT", "7777")
        monkeypatch.setenv("MDB_HTTP_WORKERS", "32")
        monkeypatch.setenv("MDB_LOG_LEVEL", "DEBUG")

        config = ServerConfig.from_env()
        assert config.port == 8888
        assert config.web_root == "/srv/www"
        assert config.backend_host == "lookup.internal"
        assert config.backend_port == 7777
        assert config.max_workers == 32
        assert config.log_level == "DEBUG"


class TestCommandLine:
    """Tests for argument parsing and main()."""

    def test_positionals(self):
        args = build_parser().parse_args(["8888", "./www", "localhost", "9999"])
        config = config_from_args(args)

        assert config.port == 8888
        assert config.web_root == "./www"
        assert config.backend_host == "localhost"
        assert config.backend_port == 9999
        assert config.concurrent is True
        assert config.timeout == 30.0

    def test_options(self):
        args = build_parser().parse_args([
            "8888", "./www", "localhost", "9999",
            "--sequential", "--workers", "3", "--timeout", "0",
            "--log-level", "DEBUG", "--log-format", "json",
        ])
        config = config_from_args(args)

        assert config.concurrent is False
        assert config.min_workers == 3
        assert config.max_workers == 6
        assert config.timeout is None
        assert config.log_level == "DEBUG"
        assert config.log_format == "json"

    @pytest.mark.parametrize("argv", [
        [],
        ["8888"],
        ["8888", "./www", "localhost"],
        ["8888", "./www", "localhost", "9999", "extra"],
        ["notaport", "./www", "localhost", "9999"],
    ])
    def test_usage_errors(self, argv, capsys):
        """Test that a wrong argument list exits with status 2."""
        with pytest.raises(SystemExit) as exc_info:
            main(argv)
        assert exc_info.value.code == 2
        assert "usage" in capsys.readouterr().err

    def test_bad_web_root(self, tmp_path, capsys):
        assert main(["0", str(tmp_path / "missing"), "127.0.0.1", "9999"]) == 1
        assert "Web root" in capsys.readouterr().err

    def test_backend_unreachable(self, web_root, free_port, capsys):
        """Test that startup fails when the backend can't be reached."""
        assert main(["0", str(web_root), "127.0.0.1", str(free_port)]) == 1
        assert "Cannot connect" in capsys.readouterr().err

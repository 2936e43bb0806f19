"""Tests for configuration parsing, validation and environment overrides."""

import tomllib

import pytest

from tunebox.core import config as config_module
from tunebox.core.config import (
    DEFAULT_PORT,
    Config,
    apply_env_overrides,
    create_default_config,
    load_config,
    parse_config,
)


class TestParseConfig:
    def test_empty_file_gives_defaults(self):
        config = parse_config({})
        assert config.daemon.host == "127.0.0.1"
        assert config.daemon.port == DEFAULT_PORT
        assert config.playlist.wrap is False
        assert config.ui.autostart_attempts == 6
        assert config.logging.level == "INFO"

    def test_default_config_template_round_trips(self):
        config = parse_config(tomllib.loads(create_default_config()))
        assert config == Config()

    def test_values_are_read(self):
        config = parse_config(
            tomllib.loads(
                """
                [daemon]
                port = 23456

                [player]
                volume = 30
                supported_formats = ["flac", ".ogg"]

                [playlist]
                wrap = true

                [logging]
                level = "debug"
                """
            )
        )
        assert config.daemon.port == 23456
        assert config.player.volume == 30
        assert config.player.supported_formats == [".flac", ".ogg"]
        assert config.playlist.wrap is True
        assert config.logging.level == "DEBUG"

    @pytest.mark.parametrize("port", [0, 70000, "12345"])
    def test_invalid_port_falls_back_to_defaults(self, port):
        config = parse_config({"daemon": {"port": port}})
        assert config.daemon.port == DEFAULT_PORT

    def test_invalid_log_level(self):
        assert parse_config({"logging": {"level": "LOUD"}}).logging.level == "INFO"

    def test_non_table_section_is_ignored(self):
        assert parse_config({"daemon": "oops"}).daemon.port == DEFAULT_PORT

    def test_request_timeout_exceeds_command_timeout(self):
        config = parse_config({"daemon": {"command_timeout": 30.0}})
        assert config.daemon.request_timeout > config.daemon.command_timeout
        assert Config().daemon.request_timeout > Config().daemon.command_timeout


class TestEnvOverrides:
    def test_overrides(self, monkeypatch):
        monkeypatch.setenv("TUNEBOX_HOST", "127.0.0.2")
        monkeypatch.setenv("TUNEBOX_PORT", "4000")
        monkeypatch.setenv("TUNEBOX_LOG_LEVEL", "warning")

        config = apply_env_overrides(Config())

        assert config.daemon.host == "127.0.0.2"
        assert config.daemon.port == 4000
        assert config.logging.level == "WARNING"

    def test_invalid_port_is_ignored(self, monkeypatch):
        monkeypatch.setenv("TUNEBOX_PORT", "many")
        assert apply_env_overrides(Config()).daemon.port == DEFAULT_PORT


class TestLoadConfig:
    @pytest.fixture
    def config_path(self, tmp_path, monkeypatch):
        path = tmp_path / "config.toml"
        monkeypatch.setattr(config_module, "get_config_dir", lambda: tmp_path)
        monkeypatch.setattr(config_module, "get_config_path", lambda: path)
        # setenv first so monkeypatch restores whatever load_dotenv writes
        for name in ("TUNEBOX_HOST", "TUNEBOX_PORT", "TUNEBOX_LOG_LEVEL"):
            monkeypatch.setenv(name, "")
            monkeypatch.delenv(name)
        return path

    def test_creates_default_file(self, config_path):
        config = load_config()
        assert config_path.exists()
        assert config == Config()

    def test_reads_existing_file(self, config_path):
        config_path.write_text("[daemon]\nport = 15000\n")
        assert load_config().daemon.port == 15000

    def test_broken_toml_uses_defaults(self, config_path):
        config_path.write_text("[daemon\nport = ")
        assert load_config() == Config()

    def test_dotenv_file_is_loaded(self, config_path, monkeypatch):
        (config_path.parent / ".env").write_text("TUNEBOX_PORT=16000\n")
        config = load_config()
        assert config.daemon.port == 16000

"""Tests for compiler configuration and logging setup."""

import logging

import pytest

from vela_compiler.config import CompilerConfig, get_config, reset_config
from vela_compiler.exceptions import ConfigurationError
from vela_compiler.logging_config import ROOT_LOGGER_NAME, configure_logging


class TestCompilerConfig:
    def test_defaults(self):
        config = CompilerConfig()
        assert config.step_limit == 5000
        assert config.default_engine == "native"
        assert config.default_version == "1"
        assert config.log_level == "WARNING"
        assert config.validate() == []

    def test_environment(self, monkeypatch):
        monkeypatch.setenv("VELA_COMPILER_STEP_LIMIT", "250")
        monkeypatch.setenv("VELA_COMPILER_ENGINE", "starlark")
        config = CompilerConfig()
        assert config.step_limit == 250
        assert config.default_engine == "starlark"
        config.check()

    def test_cached_until_reset(self, monkeypatch):
        first = get_config()
        monkeypatch.setenv("VELA_COMPILER_STEP_LIMIT", "7")
        assert get_config() is first
        reset_config()
        assert get_config().step_limit == 7

    @pytest.mark.parametrize("step_limit,fragment", [
        (-1, "negative"),
        (0, "every sandboxed render"),
        (2_000_000, "very large"),
    ])
    def test_validate_warnings(self, step_limit, fragment):
        warnings = CompilerConfig(step_limit=step_limit).validate()
        assert len(warnings) == 1
        assert fragment in warnings[0]

    def test_validate_empty_version(self):
        assert CompilerConfig(default_version="").validate() == ["Default pipeline version is empty"]

    def test_check_negative_limit(self):
        with pytest.raises(ConfigurationError, match="step limit must be non-negative"):
            CompilerConfig(step_limit=-1).check()

    def test_check_unknown_engine(self):
        with pytest.raises(ConfigurationError, match="unknown template engine"):
            CompilerConfig(default_engine="lua").check()


class TestConfigureLogging:
    def test_level_and_handler(self):
        logger = configure_logging("debug")
        assert logger.name == ROOT_LOGGER_NAME
        assert logger.level == logging.DEBUG
        assert len(logger.handlers) == 1
        assert logger.propagate is False

    def test_reconfigure_replaces_handlers(self):
        configure_logging("info")
        logger = configure_logging(logging.WARNING)
        assert len(logger.handlers) == 1
        assert logger.level == logging.WARNING

    def test_configured_level(self, monkeypatch):
        monkeypatch.setenv("VELA_COMPILER_LOG_LEVEL", "ERROR")
        assert configure_logging().level == logging.ERROR

    def test_log_file(self, tmp_path):
        log_file = tmp_path / "logs" / "compiler.log"
        logger = configure_logging("info", log_file=log_file)
        logging.getLogger(f"{ROOT_LOGGER_NAME}.test").info("hello file")
        for handler in logger.handlers:
            handler.flush()
        assert "hello file" in log_file.read_text(encoding="utf-8")

    def test_unknown_level(self):
        with pytest.raises(ValueError, match="Unknown log level"):
            configure_logging("chatty")

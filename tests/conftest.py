"""
Shared pytest fixtures for the Vela template compiler tests.

Provides the template fixtures under ``tests/testdata``, a representative
platform environment, and isolation of the process-wide configuration and
logging state between tests.
"""

import logging
from pathlib import Path

import pytest

from vela_compiler.config import reset_config
from vela_compiler.logging_config import ROOT_LOGGER_NAME

TESTDATA = Path(__file__).parent / "testdata"


@pytest.fixture(autouse=True)
def isolated_config(monkeypatch):
    """
    Clear compiler settings from the environment for every test.

    Tests that need a setting use ``monkeypatch.setenv`` themselves; the
    cached config is dropped before and after so each test re-reads it.
    """
    for name in (
        "VELA_COMPILER_STEP_LIMIT",
        "VELA_COMPILER_ENGINE",
        "VELA_COMPILER_DEFAULT_VERSION",
        "VELA_COMPILER_LOG_LEVEL",
        "VELA_COMPILER_DEBUG_LOG",
    ):
        monkeypatch.delenv(name, raising=False)
    reset_config()
    yield
    reset_config()


@pytest.fixture(autouse=True)
def restore_logging():
    """Undo configure_logging() so caplog keeps receiving package records."""
    logger = logging.getLogger(ROOT_LOGGER_NAME)
    yield
    for handler in logger.handlers[:]:
        handler.close()
        logger.removeHandler(handler)
    logger.setLevel(logging.NOTSET)
    logger.propagate = True


@pytest.fixture
def testdata():
    """Path to the template fixtures directory."""
    return TESTDATA


@pytest.fixture
def read_template():
    """Read a template fixture by its path relative to ``testdata``."""
    def _read(relative: str) -> str:
        return (TESTDATA / relative).read_text(encoding="utf-8")
    return _read


@pytest.fixture
def platform_env():
    """A platform environment as injected by the server."""
    return {
        "VELA_BUILD_AUTHOR": "octocat",
        "VELA_BUILD_NUMBER": "42",
        "VELA_REPO_FULL_NAME": "go-vela/hello-world",
        "VELA_USER_ADMIN": "true",
        "VELA_WORKSPACE": "/vela/src/github.com/go-vela/hello-world",
        "DEPLOYMENT_PARAMETER_REGION": "us-east-1",
        "HOME": "/root",
        "PATH": "/usr/bin",
    }

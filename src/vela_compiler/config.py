"""
Compiler Configuration.

Configuration dataclass with environment variable support. Only the
entry-point layer reads configuration; renderers receive explicit arguments.

Environment variables:
    - VELA_COMPILER_STEP_LIMIT: sandbox step budget (default: 5000)
    - VELA_COMPILER_ENGINE: engine used when none is given (default: native)
    - VELA_COMPILER_DEFAULT_VERSION: pipeline version assumed when absent (default: "1")
    - VELA_COMPILER_LOG_LEVEL: log level for the vela_compiler loggers (default: WARNING)
"""

import os
from dataclasses import dataclass, field
from typing import List, Optional

from .constants import DEFAULT_PIPELINE_VERSION, DEFAULT_STEP_LIMIT
from .exceptions import ConfigurationError


# =============================================================================
# Default Values
# =============================================================================

DEFAULT_ENGINE = "native"
DEFAULT_LOG_LEVEL = "WARNING"

# step budgets above this are accepted but reported by validate()
LARGE_STEP_LIMIT = 1_000_000


@dataclass
class CompilerConfig:
    """Settings for the template compiler entry points."""

    step_limit: int = field(default_factory=lambda: int(os.environ.get(
        "VELA_COMPILER_STEP_LIMIT", DEFAULT_STEP_LIMIT
    )))
    default_engine: str = field(default_factory=lambda: os.environ.get("VELA_COMPILER_ENGINE", DEFAULT_ENGINE))
    default_version: str = field(default_factory=lambda: os.environ.get(
        "VELA_COMPILER_DEFAULT_VERSION", DEFAULT_PIPELINE_VERSION
    ))
    log_level: str = field(default_factory=lambda: os.environ.get("VELA_COMPILER_LOG_LEVEL", DEFAULT_LOG_LEVEL))

    def validate(self) -> List[str]:
        """Validate configuration and return list of warnings."""
        warnings = []

        if self.step_limit < 0:
            warnings.append(f"Step limit {self.step_limit} is negative - sandboxed renders will be rejected")
        elif self.step_limit == 0:
            warnings.append("Step limit is 0 - every sandboxed render will exhaust its budget")
        elif self.step_limit > LARGE_STEP_LIMIT:
            warnings.append(f"Step limit {self.step_limit} is very large, hostile templates may run for a long time")

        if not self.default_version:
            warnings.append("Default pipeline version is empty")

        return warnings

    def check(self) -> None:
        """Raise ConfigurationError for settings no render can succeed with."""
        # imported here to avoid a cycle with compiler.py
        from .compiler import Engine

        if self.step_limit < 0:
            raise ConfigurationError(f"step limit must be non-negative, got {self.step_limit}")
        Engine.parse(self.default_engine)


_config: Optional[CompilerConfig] = None


def get_config() -> CompilerConfig:
    """Get the process-wide configuration, reading the environment on first use."""
    global _config
    if _config is None:
        _config = CompilerConfig()
    return _config


def reset_config() -> None:
    """Forget the cached configuration so the environment is read again."""
    global _config
    _config = None

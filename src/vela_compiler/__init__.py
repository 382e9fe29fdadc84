"""
Vela Template Compiler - pipeline template rendering and normalization

Renders Vela step and pipeline templates with either the native (Jinja2)
engine or the step-metered sandboxed script engine, then decodes and
validates the result as a pipeline document.
"""

__version__ = "0.1.0"

from .compiler import Engine, RenderResult, render_full_pipeline_template, render_step_template
from .config import CompilerConfig, get_config, reset_config
from .exceptions import (
    CompilerError,
    ConfigurationError,
    ConversionError,
    EnvironmentMergeError,
    InvalidMainFunctionError,
    InvalidPipelineReturnError,
    MissingMainFunctionError,
    PipelineValidationError,
    ResourceExhaustedError,
    StructuralError,
    TemplateExecutionError,
    TemplateParseError,
    UnmarshalError,
)
from .logging_config import configure_logging
from .models import Build, parse_yaml
from .template import PlatformVariables
from .validator import PipelineValidator, Severity, Target, ValidationIssue, ValidationResult

__all__ = [
    "Engine",
    "RenderResult",
    "render_full_pipeline_template",
    "render_step_template",
    "CompilerConfig",
    "get_config",
    "reset_config",
    "CompilerError",
    "ConfigurationError",
    "ConversionError",
    "EnvironmentMergeError",
    "InvalidMainFunctionError",
    "InvalidPipelineReturnError",
    "MissingMainFunctionError",
    "PipelineValidationError",
    "ResourceExhaustedError",
    "StructuralError",
    "TemplateExecutionError",
    "TemplateParseError",
    "UnmarshalError",
    "configure_logging",
    "Build",
    "parse_yaml",
    "PlatformVariables",
    "PipelineValidator",
    "Severity",
    "Target",
    "ValidationIssue",
    "ValidationResult",
]

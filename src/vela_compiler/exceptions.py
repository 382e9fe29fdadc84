"""
Vela Compiler Exception Hierarchy

Contains all exception classes raised while rendering templates and
compiling pipeline documents. Every error can carry the template display
name and the engine that produced it so callers can present a user-facing
compile failure without extra bookkeeping.
"""

from typing import List, Optional


class CompilerError(Exception):
    """
    Base exception for all compiler operations.

    Compilation is a pure function of its inputs, so none of these errors
    are retried internally.
    """

    def __init__(
        self,
        message: str,
        *,
        template: Optional[str] = None,
        engine: Optional[str] = None,
    ):
        super().__init__(message)
        self.message = message
        self.template = template
        self.engine = engine

    def with_context(self, template: Optional[str] = None, engine: Optional[str] = None) -> "CompilerError":
        """Fill in template/engine context if it was not known where the error was raised."""
        if self.template is None:
            self.template = template
        if self.engine is None:
            self.engine = engine
        return self

    def __str__(self) -> str:
        prefix = ""
        if self.engine:
            prefix += f"[{self.engine}] "
        if self.template:
            prefix += f"{self.template}: "
        return f"{prefix}{self.message}"


class ConfigurationError(CompilerError):
    """Raised for invalid caller configuration (negative step limit, unknown engine)."""
    pass


class TemplateParseError(CompilerError):
    """Raised when template or script syntax is invalid."""
    pass


class TemplateExecutionError(CompilerError):
    """
    Raised for runtime failures while executing a template or script.

    Covers undefined references, calls to disallowed functions and
    errors raised by the script itself (e.g. ``fail()``).
    """
    pass


class ResourceExhaustedError(TemplateExecutionError):
    """
    Raised when a sandboxed script exceeds its step budget.

    Callers should either raise the limit or reject the template.
    """

    def __init__(self, message: str, *, limit: int, steps: int, **kwargs):
        super().__init__(message, **kwargs)
        self.limit = limit
        self.steps = steps


class StructuralError(CompilerError):
    """Raised when a template is structurally invalid."""
    pass


class MissingMainFunctionError(StructuralError):
    """Raised when a script does not define ``main``."""

    def __init__(self, **kwargs):
        super().__init__("unable to find main function in template", **kwargs)


class InvalidMainFunctionError(StructuralError):
    """Raised when ``main`` is bound to something that is not callable."""

    def __init__(self, **kwargs):
        super().__init__("invalid main function (main must be a function) in template", **kwargs)


class InvalidPipelineReturnError(StructuralError):
    """Raised when ``main`` returns neither a mapping nor a list of mappings."""

    def __init__(self, type_name: str, **kwargs):
        super().__init__(f"invalid pipeline return in template: {type_name}", **kwargs)
        self.type_name = type_name


class ConversionError(CompilerError):
    """Raised when a value cannot cross the host/sandbox boundary or be written as JSON."""
    pass


class UnmarshalError(CompilerError):
    """Raised when rendered text is not valid pipeline YAML."""
    pass


class PipelineValidationError(CompilerError):
    """Raised when a compiled document violates a field or enum constraint."""

    def __init__(self, message: str, issues: Optional[List[object]] = None, **kwargs):
        super().__init__(message, **kwargs)
        self.issues = list(issues or [])


class EnvironmentMergeError(CompilerError):
    """Raised when an environment merge is given no environment to merge."""
    pass


__all__ = [
    "CompilerError",
    "ConfigurationError",
    "TemplateParseError",
    "TemplateExecutionError",
    "ResourceExhaustedError",
    "StructuralError",
    "MissingMainFunctionError",
    "InvalidMainFunctionError",
    "InvalidPipelineReturnError",
    "ConversionError",
    "UnmarshalError",
    "PipelineValidationError",
    "EnvironmentMergeError",
]

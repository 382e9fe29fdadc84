"""
Sandboxed script engine (Starlark dialect, step-metered).
"""

from .interpreter import ENGINE_NAME, Interpreter, parse_script
from .render import execute, render, render_build
from .values import from_sandbox, to_sandbox
from .writer import Many, PipelineFragment, Single, fragment_from_value, write_fragment, write_json

__all__ = [
    "ENGINE_NAME",
    "Interpreter",
    "parse_script",
    "execute",
    "render",
    "render_build",
    "from_sandbox",
    "to_sandbox",
    "Many",
    "PipelineFragment",
    "Single",
    "fragment_from_value",
    "write_fragment",
    "write_json",
]

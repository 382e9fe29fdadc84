"""
Native template engine (Jinja2, sandboxed, allow-listed functions).
"""

from .funcs import build_filters, build_functions, build_globals
from .render import PipelineSandbox, render, render_build, render_text

__all__ = [
    "PipelineSandbox",
    "build_filters",
    "build_functions",
    "build_globals",
    "render",
    "render_build",
    "render_text",
]

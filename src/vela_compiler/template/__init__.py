"""
Template engines.

- native: Jinja2 text templates in a sandboxed environment
- script: step-metered Starlark-dialect scripts
"""

from .platform import PlatformVariables, strip_platform_prefix

__all__ = ["PlatformVariables", "strip_platform_prefix"]

"""
Native template rendering.

Templates are Jinja2 text executed in a ``SandboxedEnvironment`` whose
globals and filters are exactly the allow-list from ``funcs.py``. The
rendered text is decoded as pipeline YAML.

Expressions use ``{{ }}`` as usual, but statements are written
``{{% for x in items %}} ... {{% endfor %}}`` and comments
``{{/* ... */}}``. Plain ``{%`` and ``{#`` are ordinary text, so shell
such as ``echo ${#FILES[@]}`` passes through unchanged.
"""

import logging
from typing import Any, Dict, List, Mapping, Optional, Tuple

from jinja2 import StrictUndefined, TemplateAssertionError, TemplateError, TemplateSyntaxError
from jinja2.exceptions import SecurityError
from jinja2.sandbox import MAX_RANGE, SandboxedEnvironment

from ...constants import DEFAULT_PIPELINE_VERSION, FULL_PIPELINE_TEMPLATE_NAME, NATIVE_MAX_POWER_BITS
from ...exceptions import CompilerError, TemplateExecutionError, TemplateParseError
from ...models import Build, parse_yaml
from ..platform import PlatformVariables
from .funcs import build_filters, build_globals

logger = logging.getLogger(__name__)

ENGINE_NAME = "native"


def _is_int(value: Any) -> bool:
    return isinstance(value, int) and not isinstance(value, bool)


def bounded_power(base: Any, exponent: Any) -> Any:
    if _is_int(base) and _is_int(exponent) and exponent > 0 and abs(base) > 1:
        if (abs(base).bit_length() - 1) * exponent > NATIVE_MAX_POWER_BITS:
            raise SecurityError(f"integer power exceeds {NATIVE_MAX_POWER_BITS} bits")
    return base ** exponent


def bounded_multiply(left: Any, right: Any) -> Any:
    for sequence, count in ((left, right), (right, left)):
        if isinstance(sequence, (str, list, tuple)) and _is_int(count):
            if len(sequence) * count > MAX_RANGE:
                raise SecurityError(f"repetition result is longer than {MAX_RANGE} items")
    return left * right


class PipelineSandbox(SandboxedEnvironment):
    """
    Sandboxed Jinja2 environment for pipeline templates.

    ``**`` and ``*`` are intercepted so integer powers and sequence
    repetition stay bounded.
    """

    intercepted_binops = frozenset(["**", "*"])

    def __init__(self):
        super().__init__(
            block_start_string="{{%",
            block_end_string="%}}",
            comment_start_string="{{/*",
            comment_end_string="*/}}",
            undefined=StrictUndefined,
            autoescape=False,
            keep_trailing_newline=True,
        )

    def call_binop(self, context, operator, left, right):
        if operator == "**":
            return bounded_power(left, right)
        if operator == "*":
            return bounded_multiply(left, right)
        return super().call_binop(context, operator, left, right)


def _create_environment(platform: PlatformVariables) -> PipelineSandbox:
    env = PipelineSandbox()
    # replace, not extend: nothing outside the allow-list is reachable
    env.globals = build_globals(platform)
    env.filters = build_filters(platform)
    return env


def render_text(
    body: str,
    name: str,
    platform: PlatformVariables,
    variables: Optional[Mapping[str, Any]] = None,
) -> str:
    """
    Execute a native template and return the raw text it produces.

    Raises:
        TemplateParseError: on template syntax errors
        TemplateExecutionError: on undefined references, disallowed
            functions or errors raised while executing
    """
    env = _create_environment(platform)

    try:
        template = env.from_string(body)
    except TemplateAssertionError as e:
        # unknown filters/tests are reported at compile time
        raise TemplateExecutionError(
            f"unable to execute template: {e.message}", template=name, engine=ENGINE_NAME
        ) from e
    except TemplateSyntaxError as e:
        raise TemplateParseError(
            f"unable to parse template: line {e.lineno}: {e.message}", template=name, engine=ENGINE_NAME
        ) from e

    context: Dict[str, Any] = dict(variables or {})
    try:
        return template.render(context)
    except TemplateError as e:
        raise TemplateExecutionError(
            f"unable to execute template: {e}", template=name, engine=ENGINE_NAME
        ) from e
    except (ArithmeticError, LookupError, TypeError, ValueError) as e:
        raise TemplateExecutionError(
            f"unable to execute template: {type(e).__name__}: {e}", template=name, engine=ENGINE_NAME
        ) from e


def _decode(text: str, name: str, default_version: str) -> Tuple[Build, List[str]]:
    try:
        return parse_yaml(text, default_version=default_version)
    except CompilerError as e:
        e.with_context(template=name, engine=ENGINE_NAME)
        raise


def render(
    body: str,
    step_name: str,
    template_name: str,
    environment: Optional[Mapping[str, str]] = None,
    variables: Optional[Mapping[str, Any]] = None,
    *,
    default_version: str = DEFAULT_PIPELINE_VERSION,
) -> Tuple[Build, List[str]]:
    """
    Render a step template.

    Every produced step is renamed ``<template_name>_<step name>``.

    Args:
        body: Template source
        step_name: Name of the step that references the template
        template_name: Display name of the template
        environment: Platform environment (``VELA_*`` etc.)
        variables: User variables from the step's ``template.vars``

    Returns:
        Tuple of (build, warnings)
    """
    logger.debug(f"Rendering native step template '{template_name}' for step '{step_name}'")

    platform = PlatformVariables.from_environment(environment, template_name)
    text = render_text(body, template_name, platform, variables)
    build, warnings = _decode(text, template_name, default_version)

    for step in build.steps:
        step.name = f"{template_name}_{step.name}"

    logger.debug(f"Native template '{template_name}' produced {len(build.steps)} step(s)")
    return build, warnings


def render_build(
    body: str,
    environment: Optional[Mapping[str, str]] = None,
    variables: Optional[Mapping[str, Any]] = None,
    *,
    name: str = FULL_PIPELINE_TEMPLATE_NAME,
    default_version: str = DEFAULT_PIPELINE_VERSION,
) -> Tuple[Build, List[str]]:
    """Render a whole-pipeline template. Step names are left as written."""
    logger.debug(f"Rendering native pipeline template '{name}'")

    platform = PlatformVariables.from_environment(environment, name)
    text = render_text(body, name, platform, variables)
    return _decode(text, name, default_version)

"""
Sandboxed script rendering.

A script's top level is executed to collect its globals, then its ``main``
function is called with ``{"vela": <platform namespaces>, "vars": <user
variables>}``. ``main`` must return a dict or a list of dicts; the return
value is written out as YAML documents and decoded as a pipeline.
"""

import logging
from typing import Any, Dict, List, Mapping, Optional, Tuple

from ...constants import DEFAULT_PIPELINE_VERSION, FULL_PIPELINE_TEMPLATE_NAME
from ...exceptions import (
    CompilerError,
    ConfigurationError,
    InvalidMainFunctionError,
    MissingMainFunctionError,
)
from ...models import Build, parse_yaml
from ..platform import PlatformVariables
from .interpreter import ENGINE_NAME, Interpreter
from .values import is_callable, to_sandbox
from .writer import fragment_from_value, write_fragment

logger = logging.getLogger(__name__)

MAIN_FUNCTION = "main"


def execute(
    body: str,
    name: str,
    platform: PlatformVariables,
    variables: Optional[Mapping[str, Any]],
    step_limit: int,
) -> str:
    """
    Run a script and return the YAML text its ``main`` produces.

    Raises:
        ConfigurationError: if step_limit is negative
        TemplateParseError: on syntax errors or disallowed constructs
        TemplateExecutionError: on runtime errors
        ResourceExhaustedError: when the step budget is exceeded
        StructuralError: when ``main`` is missing, not callable or
            returns something other than a dict or list of dicts
        ConversionError: when a value cannot be converted
    """
    if step_limit < 0:
        raise ConfigurationError(
            f"step limit must be non-negative, got {step_limit}", template=name, engine=ENGINE_NAME
        )

    interp = Interpreter(name, step_limit)
    try:
        module_globals = interp.exec_module(body)

        if MAIN_FUNCTION not in module_globals:
            raise MissingMainFunctionError(template=name, engine=ENGINE_NAME)
        main = module_globals[MAIN_FUNCTION]
        if not is_callable(main):
            raise InvalidMainFunctionError(template=name, engine=ENGINE_NAME)

        ctx: Dict[str, Any] = {
            "vela": to_sandbox(platform.as_dict()),
            "vars": to_sandbox(dict(variables or {})),
        }
        result = interp.call(main, (ctx,))
        text = write_fragment(fragment_from_value(result, template=name))
    except CompilerError as e:
        e.with_context(template=name, engine=ENGINE_NAME)
        logger.debug(f"Script '{name}' failed after {interp.steps} step(s): {e.message}")
        raise

    logger.debug(f"Script '{name}' finished in {interp.steps} of {step_limit} step(s)")
    return text


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
    step_limit: int = 0,
    *,
    default_version: str = DEFAULT_PIPELINE_VERSION,
) -> Tuple[Build, List[str]]:
    """
    Render a step template script.

    Every produced step is renamed ``<template_name>_<step name>``.

    Returns:
        Tuple of (build, warnings)
    """
    logger.debug(f"Rendering script step template '{template_name}' for step '{step_name}'")

    platform = PlatformVariables.from_environment(environment, template_name)
    text = execute(body, template_name, platform, variables, step_limit)
    build, warnings = _decode(text, template_name, default_version)

    for step in build.steps:
        step.name = f"{template_name}_{step.name}"

    logger.debug(f"Script '{template_name}' produced {len(build.steps)} step(s)")
    return build, warnings


def render_build(
    body: str,
    environment: Optional[Mapping[str, str]] = None,
    variables: Optional[Mapping[str, Any]] = None,
    step_limit: int = 0,
    *,
    name: str = FULL_PIPELINE_TEMPLATE_NAME,
    default_version: str = DEFAULT_PIPELINE_VERSION,
) -> Tuple[Build, List[str]]:
    """Render a whole-pipeline script. Step names are left as written."""
    logger.debug(f"Rendering script pipeline template '{name}'")

    platform = PlatformVariables.from_environment(environment, name)
    text = execute(body, name, platform, variables, step_limit)
    return _decode(text, name, default_version)

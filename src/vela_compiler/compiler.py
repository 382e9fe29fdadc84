"""
Template compiler entry points.

Selects the engine for a template, renders it, decodes the result into a
Build and validates it for the compile target:

    result = render_step_template(Engine.NATIVE, body, "sample", "golang", env, {"image": "alpine"})
    result.pipeline.steps  # [Step(name="golang_install", ...), ...]

Compile failures are logged at INFO and re-raised; no partial document is
ever returned alongside an error.
"""

import logging
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, List, Mapping, Optional, Union

from .config import get_config
from .constants import FULL_PIPELINE_TEMPLATE_NAME
from .exceptions import CompilerError, ConfigurationError
from .models import Build
from .template import native, script
from .validator import PipelineValidator, Target

logger = logging.getLogger(__name__)


class Engine(Enum):
    """Template engines, keyed by the template ``format`` value."""
    NATIVE = "native"
    SANDBOXED = "sandboxed"

    @classmethod
    def parse(cls, value: Union["Engine", str, None]) -> "Engine":
        """
        Resolve an engine from its name or one of its aliases.

        Raises:
            ConfigurationError: for an unknown engine
        """
        if isinstance(value, Engine):
            return value
        key = (value or "").strip().lower()
        engine = ENGINE_ALIASES.get(key)
        if engine is None:
            raise ConfigurationError(
                f"unknown template engine '{value}', expected one of {sorted(a for a in ENGINE_ALIASES if a)}"
            )
        return engine


ENGINE_ALIASES = {
    "": Engine.NATIVE,
    "native": Engine.NATIVE,
    "go": Engine.NATIVE,
    "golang": Engine.NATIVE,
    "sandboxed": Engine.SANDBOXED,
    "starlark": Engine.SANDBOXED,
}


@dataclass
class RenderResult:
    """A rendered, validated pipeline document and its warnings."""
    pipeline: Build
    warnings: List[str] = field(default_factory=list)


def _resolve_step_limit(step_limit: Optional[int]) -> int:
    limit = get_config().step_limit if step_limit is None else step_limit
    if limit < 0:
        raise ConfigurationError(f"step limit must be non-negative, got {limit}")
    return limit


def _finish(build: Build, warnings: List[str], target: Target, name: str, engine: Engine) -> RenderResult:
    result = PipelineValidator(target).validate(build)
    result.raise_for_errors(template=name, engine=engine.value)
    for issue in result.warnings:
        warnings.append(str(issue))
    return RenderResult(pipeline=build, warnings=warnings)


def render_step_template(
    engine: Union[Engine, str],
    body: str,
    step_name: str,
    template_name: str,
    environment: Optional[Mapping[str, str]] = None,
    variables: Optional[Mapping[str, Any]] = None,
    step_limit: Optional[int] = None,
) -> RenderResult:
    """
    Render a step template and prefix its steps with ``template_name``.

    Args:
        engine: Engine or engine name/alias (``go``, ``starlark``...)
        body: Template source
        step_name: Name of the step that references the template
        template_name: Display name of the template
        environment: Platform environment (``VELA_*``, ``DEPLOYMENT_PARAMETER_*``)
        variables: User variables from ``template.vars``
        step_limit: Sandbox step budget; None uses the configured default.
            Ignored by the native engine.

    Returns:
        RenderResult with the validated Build and any warnings

    Raises:
        CompilerError: for any render, decode or validation failure
    """
    config = get_config()
    try:
        resolved = Engine.parse(engine)
        if resolved == Engine.SANDBOXED:
            build, warnings = script.render(
                body, step_name, template_name, environment, variables,
                _resolve_step_limit(step_limit),
                default_version=config.default_version,
            )
        else:
            build, warnings = native.render(
                body, step_name, template_name, environment, variables,
                default_version=config.default_version,
            )
        result = _finish(build, warnings, Target.STEP_TEMPLATE, template_name, resolved)
    except CompilerError as e:
        logger.info(f"Step template '{template_name}' for step '{step_name}' failed to compile: {e}")
        raise

    logger.debug(f"Step template '{template_name}' compiled with {len(result.warnings)} warning(s)")
    return result


def render_full_pipeline_template(
    engine: Union[Engine, str],
    body: str,
    environment: Optional[Mapping[str, str]] = None,
    variables: Optional[Mapping[str, Any]] = None,
    step_limit: Optional[int] = None,
    name: str = FULL_PIPELINE_TEMPLATE_NAME,
) -> RenderResult:
    """
    Render a template that produces an entire pipeline.

    Step names are left as written. See render_step_template for arguments.
    """
    config = get_config()
    try:
        resolved = Engine.parse(engine)
        if resolved == Engine.SANDBOXED:
            build, warnings = script.render_build(
                body, environment, variables, _resolve_step_limit(step_limit),
                name=name,
                default_version=config.default_version,
            )
        else:
            build, warnings = native.render_build(
                body, environment, variables,
                name=name,
                default_version=config.default_version,
            )
        result = _finish(build, warnings, Target.FULL_PIPELINE, name, resolved)
    except CompilerError as e:
        logger.info(f"Pipeline template '{name}' failed to compile: {e}")
        raise

    logger.debug(f"Pipeline template '{name}' compiled with {len(result.warnings)} warning(s)")
    return result

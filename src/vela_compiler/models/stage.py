"""
Stages: named groups of steps with dependencies.

In YAML a ``stages`` block is a mapping keyed by stage name rather than a
sequence; ``parse_stages`` turns it into an ordered list and
``stages_to_yaml`` restores the mapping shape.
"""

from typing import Any, Dict, List, Optional

from pydantic import Field, ValidationInfo, field_validator

from ..constants import IMPLICIT_NEEDS_EXEMPT, STAGE_CLONE
from ..pipeline import Stage as PipelineStage
from .base import YamlModel, merge_environment
from .raw import coerce_str, coerce_string_slice, coerce_string_slice_map, scalar_to_str
from .step import Step, parse_steps

# the only fields carried when a stage is written back out
YAML_FIELDS = {"name", "needs", "independent", "steps"}


class Stage(YamlModel):
    environment: Optional[Dict[str, str]] = None
    name: str = ""
    needs: List[str] = Field(default_factory=list)
    independent: bool = False
    steps: List[Step] = Field(default_factory=list)

    @field_validator("name", mode="before")
    @classmethod
    def _scalar(cls, value: Any) -> str:
        return coerce_str(value)

    @field_validator("needs", mode="before")
    @classmethod
    def _string_slice(cls, value: Any) -> List[str]:
        return coerce_string_slice(value)

    @field_validator("environment", mode="before")
    @classmethod
    def _environment(cls, value: Any) -> Optional[Dict[str, str]]:
        return coerce_string_slice_map(value)

    @field_validator("steps", mode="before")
    @classmethod
    def _steps(cls, value: Any, info: ValidationInfo) -> List[Any]:
        return parse_steps(value, info)

    def merge_env(self, environment: Optional[Dict[str, str]]) -> None:
        merge_environment(self.environment, environment, "stage", self.name)

    def to_yaml_dict(self) -> Dict[str, Any]:
        return self.model_dump(by_alias=True, exclude_defaults=True, include=YAML_FIELDS)

    def to_pipeline(self) -> PipelineStage:
        return PipelineStage(
            name=self.name,
            needs=list(self.needs),
            independent=self.independent,
            environment=dict(self.environment or {}),
            steps=[step.to_pipeline() for step in self.steps],
        )


def add_implicit_needs(stage: Stage) -> None:
    """Make every stage other than clone/init depend on clone, without duplicates."""
    if stage.name in IMPLICIT_NEEDS_EXEMPT:
        return
    if STAGE_CLONE not in stage.needs:
        stage.needs.append(STAGE_CLONE)


def parse_stages(value: Any, info: Optional[ValidationInfo] = None) -> List[Stage]:
    """
    Decode a ``stages`` mapping into an ordered list of stages.

    Raises:
        ValueError: if the block is not a mapping
    """
    if value is None:
        return []
    if isinstance(value, list) and all(isinstance(item, Stage) for item in value):
        return value
    if not isinstance(value, dict):
        raise ValueError("invalid yaml: expected map node for stage")

    context = info.context if info is not None else None
    stages: List[Stage] = []
    for key, body in value.items():
        stage = Stage.model_validate(body if body is not None else {}, context=context)
        if not stage.name:
            stage.name = scalar_to_str(key)
        add_implicit_needs(stage)
        stages.append(stage)
    return stages


def stages_to_yaml(stages: List[Stage]) -> Dict[str, Any]:
    """Inverse of ``parse_stages``: a mapping keyed by stage name."""
    return {stage.name: stage.to_yaml_dict() for stage in stages}

"""
Steps: the sequential execution units of a pipeline.
"""

from typing import Any, Dict, List, Optional

from pydantic import Field, ValidationInfo, field_validator

from ..pipeline import Container
from .base import YamlModel, merge_environment, normalize_pull
from .raw import coerce_str, coerce_string_slice, coerce_string_slice_map
from .ruleset import Ruleset
from .secret import StepSecret, parse_step_secrets
from .template import StepTemplate
from .ulimit import Ulimit, parse_ulimits
from .volume import Volume, parse_volumes


class Step(YamlModel):
    name: str = ""
    image: str = ""
    ruleset: Ruleset = Field(default_factory=Ruleset)
    commands: List[str] = Field(default_factory=list)
    entrypoint: List[str] = Field(default_factory=list)
    secrets: List[StepSecret] = Field(default_factory=list)
    template: StepTemplate = Field(default_factory=StepTemplate)
    ulimits: List[Ulimit] = Field(default_factory=list)
    volumes: List[Volume] = Field(default_factory=list)
    pull: str = ""
    environment: Optional[Dict[str, str]] = None
    parameters: Optional[Dict[str, Any]] = None
    detach: bool = False
    privileged: bool = False
    user: str = ""
    report_as: str = ""
    id_request: str = ""

    @field_validator("name", "image", "pull", "user", "report_as", "id_request", mode="before")
    @classmethod
    def _scalar(cls, value: Any) -> str:
        return coerce_str(value)

    @field_validator("commands", "entrypoint", mode="before")
    @classmethod
    def _string_slice(cls, value: Any) -> List[str]:
        return coerce_string_slice(value)

    @field_validator("environment", mode="before")
    @classmethod
    def _environment(cls, value: Any) -> Optional[Dict[str, str]]:
        return coerce_string_slice_map(value)

    @field_validator("ruleset", "template", mode="before")
    @classmethod
    def _null_block(cls, value: Any) -> Any:
        return {} if value is None else value

    @field_validator("secrets", mode="before")
    @classmethod
    def _secrets(cls, value: Any) -> List[StepSecret]:
        return parse_step_secrets(value)

    @field_validator("ulimits", mode="before")
    @classmethod
    def _ulimits(cls, value: Any) -> List[Any]:
        return parse_ulimits(value)

    @field_validator("volumes", mode="before")
    @classmethod
    def _volumes(cls, value: Any) -> List[Any]:
        return parse_volumes(value)

    def merge_env(self, environment: Optional[Dict[str, str]]) -> None:
        """
        Overlay ``environment`` onto the step environment.

        Raises:
            EnvironmentMergeError: if the step has an environment and none was supplied
        """
        merge_environment(self.environment, environment, "step", self.name)

    def to_pipeline(self) -> Container:
        return Container(
            name=self.name,
            image=self.image,
            commands=list(self.commands),
            entrypoint=list(self.entrypoint),
            environment=dict(self.environment or {}),
            ruleset=self.ruleset.to_pipeline(),
            secrets=[secret.to_pipeline() for secret in self.secrets],
            volumes=[volume.to_pipeline() for volume in self.volumes],
            ulimits=[ulimit.to_pipeline() for ulimit in self.ulimits],
            pull=self.pull,
            detach=self.detach,
            privileged=self.privileged,
            user=self.user,
        )


def parse_steps(value: Any, info: Optional[ValidationInfo] = None) -> List[Any]:
    """
    Decode a ``steps`` list: reject nil entries, default and translate pull policies.

    Raises:
        ValueError: for a nil entry or a non-list block
    """
    if value is None:
        return []
    if not isinstance(value, list):
        raise ValueError(f"unable to unmarshal {type(value).__name__} into steps")

    steps: List[Any] = []
    for item in value:
        if item is None:
            raise ValueError("invalid step with nil content found")
        if isinstance(item, Step):
            steps.append(item)
            continue
        if isinstance(item, dict):
            item = dict(item)
            name = coerce_str(item.get("name"))
            item["pull"] = normalize_pull(item.get("pull"), f"step {name}", info)
        steps.append(item)
    return steps

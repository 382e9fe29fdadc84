"""
The Build document: the root of a pipeline YAML file.
"""

from dataclasses import dataclass
from typing import Any, Dict, List, Optional

import yaml
from pydantic import Field, ValidationInfo, field_serializer, field_validator, model_validator

from ..constants import DEFAULT_METADATA_ENVIRONMENT, DEFAULT_PIPELINE_VERSION
from ..pipeline import PipelineBuild
from .base import YamlModel
from .raw import coerce_str, coerce_string_slice, coerce_string_slice_map
from .secret import Secret, parse_secrets
from .service import Service, parse_services
from .stage import Stage, parse_stages, stages_to_yaml
from .step import Step, parse_steps
from .template import Template


# ============================================================
# METADATA / WORKER / GIT
# ============================================================

class CancelOptions(YamlModel):
    pending: Optional[bool] = None
    running: Optional[bool] = None
    default_branch: Optional[bool] = None


class Metadata(YamlModel):
    template: bool = False
    clone: Optional[bool] = None
    render_inline: bool = False
    auto_cancel: Optional[CancelOptions] = None
    environment: List[str] = Field(default_factory=lambda: list(DEFAULT_METADATA_ENVIRONMENT))

    @field_validator("environment", mode="before")
    @classmethod
    def _environment(cls, value: Any) -> List[str]:
        # an explicit null still gets the documented default
        if value is None:
            return list(DEFAULT_METADATA_ENVIRONMENT)
        return coerce_string_slice(value)


class Worker(YamlModel):
    flavor: str = ""
    platform: str = ""

    @field_validator("flavor", "platform", mode="before")
    @classmethod
    def _scalar(cls, value: Any) -> str:
        return coerce_str(value)


class Token(YamlModel):
    repositories: List[str] = Field(default_factory=list)
    permissions: Dict[str, str] = Field(default_factory=dict)

    @field_validator("repositories", mode="before")
    @classmethod
    def _string_slice(cls, value: Any) -> List[str]:
        return coerce_string_slice(value)


class Git(YamlModel):
    token: Token = Field(default_factory=Token)


# ============================================================
# SUMMARY
# ============================================================

@dataclass
class PipelineSummary:
    """What the API layer records about a compiled pipeline."""
    flavor: str
    platform: str
    version: str
    services: bool
    stages: bool
    steps: bool
    templates: bool
    external_secrets: bool
    internal_secrets: bool


# ============================================================
# BUILD
# ============================================================

class Build(YamlModel):
    """
    A pipeline document.

    Exactly one of ``steps``/``stages`` is expected to be populated; that
    rule is checked by ``PipelineValidator`` rather than at decode time so
    callers get every problem at once.
    """

    version: str = ""
    metadata: Metadata = Field(default_factory=Metadata)
    environment: Optional[Dict[str, str]] = None
    worker: Worker = Field(default_factory=Worker)
    secrets: List[Secret] = Field(default_factory=list)
    services: List[Service] = Field(default_factory=list)
    stages: List[Stage] = Field(default_factory=list)
    steps: List[Step] = Field(default_factory=list)
    templates: List[Template] = Field(default_factory=list)
    git: Git = Field(default_factory=Git)

    @field_validator("version", mode="before")
    @classmethod
    def _version(cls, value: Any) -> str:
        return coerce_str(value)

    @field_validator("environment", mode="before")
    @classmethod
    def _environment(cls, value: Any) -> Optional[Dict[str, str]]:
        return coerce_string_slice_map(value)

    @field_validator("metadata", "worker", "git", mode="before")
    @classmethod
    def _null_block(cls, value: Any) -> Any:
        return {} if value is None else value

    @field_validator("templates", mode="before")
    @classmethod
    def _templates(cls, value: Any) -> Any:
        return [] if value is None else value

    @field_validator("secrets", mode="before")
    @classmethod
    def _secrets(cls, value: Any) -> List[Any]:
        return parse_secrets(value)

    @field_validator("services", mode="before")
    @classmethod
    def _services(cls, value: Any, info: ValidationInfo) -> List[Any]:
        return parse_services(value, info)

    @field_validator("stages", mode="before")
    @classmethod
    def _stages(cls, value: Any, info: ValidationInfo) -> List[Stage]:
        return parse_stages(value, info)

    @field_validator("steps", mode="before")
    @classmethod
    def _steps(cls, value: Any, info: ValidationInfo) -> List[Any]:
        return parse_steps(value, info)

    @model_validator(mode="after")
    def _default_version(self, info: ValidationInfo) -> "Build":
        if not self.version:
            default = None
            if isinstance(info.context, dict):
                default = info.context.get("default_version")
            self.version = default or DEFAULT_PIPELINE_VERSION
        return self

    @field_serializer("stages")
    def _serialize_stages(self, stages: List[Stage]) -> Dict[str, Any]:
        return stages_to_yaml(stages)

    def to_pipeline_api(self) -> PipelineSummary:
        internal = any(secret.is_internal() for secret in self.secrets)
        external = any(not secret.is_internal() for secret in self.secrets)
        return PipelineSummary(
            flavor=self.worker.flavor,
            platform=self.worker.platform,
            version=self.version,
            services=bool(self.services),
            stages=bool(self.stages),
            steps=bool(self.steps),
            templates=bool(self.templates),
            external_secrets=external,
            internal_secrets=internal,
        )

    def to_pipeline(self) -> PipelineBuild:
        worker = {}
        if self.worker.flavor:
            worker["flavor"] = self.worker.flavor
        if self.worker.platform:
            worker["platform"] = self.worker.platform
        return PipelineBuild(
            version=self.version,
            environment=dict(self.environment or {}),
            worker=worker,
            secrets=[secret.to_pipeline() for secret in self.secrets],
            services=[service.to_pipeline() for service in self.services],
            stages=[stage.to_pipeline() for stage in self.stages],
            steps=[step.to_pipeline() for step in self.steps],
        )

    def to_yaml_dict(self) -> Dict[str, Any]:
        data = self.model_dump(by_alias=True, exclude_defaults=True)
        # version is always written so the document stays self-describing
        data["version"] = self.version
        return data

    def to_yaml(self) -> str:
        return yaml.safe_dump(self.to_yaml_dict(), sort_keys=False, default_flow_style=False)

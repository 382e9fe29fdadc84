"""
Pipeline secrets and the per-step secret references.

Internal secrets are fetched from a storage backend by name; secrets with
an ``origin`` are produced by an external plugin container.
"""

from typing import Any, Dict, List, Optional

from pydantic import Field, ValidationInfo, field_validator, model_validator

from ..constants import DRIVER_NATIVE, PULL_ALWAYS, PULL_NOT_PRESENT, SECRET_PULL_BUILD, SECRET_REPO
from ..pipeline import Container
from ..pipeline import Secret as PipelineSecret
from ..pipeline import StepSecret as PipelineStepSecret
from .base import YamlModel, add_warning, merge_environment
from .raw import coerce_str, coerce_string_slice_map
from .ruleset import Ruleset


# ============================================================
# STEP SECRETS
# ============================================================

class StepSecret(YamlModel):
    """A secret injected into a step as environment variable ``target``."""

    source: str = ""
    target: str = ""

    def to_pipeline(self) -> PipelineStepSecret:
        return PipelineStepSecret(source=self.source, target=self.target)


def parse_step_secrets(value: Any) -> List[StepSecret]:
    """
    Decode a step ``secrets`` block.

    ``foo`` is shorthand for ``{source: foo, target: FOO}``; explicit
    objects must name both source and target.
    """
    if value is None:
        return []
    if isinstance(value, str):
        value = [value]
    if not isinstance(value, list):
        raise ValueError("failed to unmarshal step secrets")

    if all(isinstance(item, str) for item in value):
        return [StepSecret(source=item, target=item.upper()) for item in value]

    secrets: List[StepSecret] = []
    for item in value:
        if not isinstance(item, dict):
            raise ValueError("failed to unmarshal step secrets")
        secret = StepSecret.model_validate(item)
        if not secret.source or not secret.target:
            raise ValueError("no secret source or target found")
        secret.target = secret.target.upper()
        secrets.append(secret)
    return secrets


# ============================================================
# ORIGIN
# ============================================================

class Origin(YamlModel):
    """Container that retrieves secrets from a non-internal provider."""

    environment: Optional[Dict[str, str]] = None
    image: str = ""
    name: str = ""
    parameters: Optional[Dict[str, Any]] = None
    secrets: List[StepSecret] = Field(default_factory=list)
    pull: str = ""
    ruleset: Ruleset = Field(default_factory=Ruleset)

    @field_validator("environment", mode="before")
    @classmethod
    def _environment(cls, value: Any) -> Optional[Dict[str, str]]:
        return coerce_string_slice_map(value)

    @field_validator("image", "name", "pull", mode="before")
    @classmethod
    def _scalar(cls, value: Any) -> str:
        return coerce_str(value)

    @field_validator("secrets", mode="before")
    @classmethod
    def _secrets(cls, value: Any) -> List[StepSecret]:
        return parse_step_secrets(value)

    def empty(self) -> bool:
        """True when no origin field was provided."""
        return (
            self.environment is None
            and not self.image
            and not self.name
            and self.parameters is None
            and not self.secrets
            and not self.pull
        )

    def merge_env(self, environment: Optional[Dict[str, str]]) -> None:
        if self.empty():
            return
        if self.environment is None:
            self.environment = {}
        merge_environment(self.environment, environment, "secret", self.name)

    def to_pipeline(self) -> Container:
        return Container(
            name=self.name,
            image=self.image,
            environment=dict(self.environment or {}),
            pull=self.pull,
            ruleset=self.ruleset.to_pipeline(),
            secrets=[secret.to_pipeline() for secret in self.secrets],
        )


# ============================================================
# SECRETS
# ============================================================

class Secret(YamlModel):
    name: str = ""
    key: str = ""
    engine: str = ""
    type: str = ""
    origin: Origin = Field(default_factory=Origin)
    pull: str = ""

    @field_validator("name", "key", "engine", "type", "pull", mode="before")
    @classmethod
    def _scalar(cls, value: Any) -> str:
        return coerce_str(value)

    @field_validator("origin", mode="before")
    @classmethod
    def _origin(cls, value: Any) -> Any:
        return {} if value is None else value

    @model_validator(mode="after")
    def _apply_defaults(self, info: ValidationInfo) -> "Secret":
        if self.origin.empty():
            if not self.key:
                self.key = self.name
            if not self.engine:
                self.engine = DRIVER_NATIVE
            if not self.type:
                self.type = SECRET_REPO
            if not self.pull:
                self.pull = SECRET_PULL_BUILD
            return self

        pull = self.origin.pull
        if not pull:
            self.origin.pull = PULL_NOT_PRESENT
        elif pull.lower() == "true":
            add_warning(info, f"secret {self.origin.name}: pull policy 'true' is deprecated, use 'always'")
            self.origin.pull = PULL_ALWAYS
        elif pull.lower() == "false":
            add_warning(info, f"secret {self.origin.name}: pull policy 'false' is deprecated, use 'not_present'")
            self.origin.pull = PULL_NOT_PRESENT
        return self

    def is_internal(self) -> bool:
        return self.origin.empty()

    def to_pipeline(self) -> PipelineSecret:
        return PipelineSecret(
            name=self.name,
            key=self.key,
            engine=self.engine,
            type=self.type,
            origin=None if self.origin.empty() else self.origin.to_pipeline(),
            pull=self.pull,
        )


def parse_secrets(value: Any) -> List[Any]:
    """Decode a pipeline ``secrets`` block, dropping internal secrets without a name."""
    if value is None:
        return []
    if not isinstance(value, list):
        raise ValueError(f"unable to unmarshal {type(value).__name__} into secrets")

    kept: List[Any] = []
    for item in value:
        if item is None:
            continue
        if isinstance(item, dict):
            origin = item.get("origin")
            if not origin and not coerce_str(item.get("name")):
                continue
        kept.append(item)
    return kept

"""
Services: detached containers running alongside the steps of a build.
"""

from typing import Any, Dict, List, Optional

from pydantic import Field, ValidationInfo, field_validator

from ..pipeline import Container
from .base import YamlModel, merge_environment, normalize_pull
from .raw import coerce_str, coerce_string_slice, coerce_string_slice_map
from .ulimit import Ulimit, parse_ulimits


class Service(YamlModel):
    image: str = ""
    name: str = ""
    entrypoint: List[str] = Field(default_factory=list)
    environment: Optional[Dict[str, str]] = None
    ports: List[str] = Field(default_factory=list)
    pull: str = ""
    ulimits: List[Ulimit] = Field(default_factory=list)
    user: str = ""

    @field_validator("image", "name", "pull", "user", mode="before")
    @classmethod
    def _scalar(cls, value: Any) -> str:
        return coerce_str(value)

    @field_validator("entrypoint", "ports", mode="before")
    @classmethod
    def _string_slice(cls, value: Any) -> List[str]:
        return coerce_string_slice(value)

    @field_validator("environment", mode="before")
    @classmethod
    def _environment(cls, value: Any) -> Optional[Dict[str, str]]:
        return coerce_string_slice_map(value)

    @field_validator("ulimits", mode="before")
    @classmethod
    def _ulimits(cls, value: Any) -> List[Any]:
        return parse_ulimits(value)

    def merge_env(self, environment: Optional[Dict[str, str]]) -> None:
        merge_environment(self.environment, environment, "service", self.name)

    def to_pipeline(self) -> Container:
        return Container(
            name=self.name,
            image=self.image,
            entrypoint=list(self.entrypoint),
            environment=dict(self.environment or {}),
            ports=list(self.ports),
            pull=self.pull,
            ulimits=[ulimit.to_pipeline() for ulimit in self.ulimits],
            user=self.user,
            detach=True,
        )


def parse_services(value: Any, info: Optional[ValidationInfo] = None) -> List[Any]:
    """Decode a ``services`` list the same way steps are decoded."""
    if value is None:
        return []
    if not isinstance(value, list):
        raise ValueError(f"unable to unmarshal {type(value).__name__} into services")

    services: List[Any] = []
    for item in value:
        if item is None:
            raise ValueError("invalid service with nil content found")
        if isinstance(item, dict):
            item = dict(item)
            name = coerce_str(item.get("name"))
            item["pull"] = normalize_pull(item.get("pull"), f"service {name}", info)
        services.append(item)
    return services

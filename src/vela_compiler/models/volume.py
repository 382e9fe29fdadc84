"""
Volume mounts: ``source[:destination[:mode]]`` shorthand or explicit objects.
"""

from typing import Any, List

from pydantic import field_validator, model_validator

from ..pipeline import Volume as PipelineVolume
from .base import YamlModel
from .raw import coerce_str

DEFAULT_ACCESS_MODE = "ro"


class Volume(YamlModel):
    source: str = ""
    destination: str = ""
    access_mode: str = ""

    @field_validator("source", "destination", "access_mode", mode="before")
    @classmethod
    def _scalar(cls, value: Any) -> str:
        return coerce_str(value)

    @model_validator(mode="after")
    def _apply_defaults(self) -> "Volume":
        if not self.destination:
            self.destination = self.source
        if not self.access_mode:
            self.access_mode = DEFAULT_ACCESS_MODE
        return self

    @classmethod
    def from_shorthand(cls, text: str) -> "Volume":
        """
        Parse ``/src``, ``/src:/dst`` or ``/src:/dst:mode``.

        Raises:
            ValueError: for any other number of colon-separated parts
        """
        parts = text.split(":")
        if len(parts) == 1:
            return cls(source=parts[0], destination=parts[0], access_mode=DEFAULT_ACCESS_MODE)
        if len(parts) == 2:
            return cls(source=parts[0], destination=parts[1], access_mode=DEFAULT_ACCESS_MODE)
        if len(parts) == 3:
            return cls(source=parts[0], destination=parts[1], access_mode=parts[2])
        raise ValueError(f"volume {text} must contain at least 1 but no more than 2 `:`(colons)")

    def to_pipeline(self) -> PipelineVolume:
        return PipelineVolume(
            source=self.source,
            destination=self.destination,
            access_mode=self.access_mode,
        )


def parse_volumes(value: Any) -> List[Any]:
    """Decode a volumes block; shorthand strings become Volume instances."""
    if value is None:
        return []
    if isinstance(value, str):
        return [Volume.from_shorthand(value)]
    if not isinstance(value, list):
        raise ValueError(f"unable to unmarshal {type(value).__name__} into volumes")
    if all(isinstance(item, str) for item in value):
        return [Volume.from_shorthand(item) for item in value]
    return value

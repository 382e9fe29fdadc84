"""
Container ulimits: ``name=soft[:hard]`` shorthand or explicit objects.
"""

from typing import Any, List

from pydantic import model_validator

from ..pipeline import Ulimit as PipelineUlimit
from .base import YamlModel


class Ulimit(YamlModel):
    name: str = ""
    soft: int = 0
    hard: int = 0

    @model_validator(mode="after")
    def _default_hard(self) -> "Ulimit":
        if self.hard == 0:
            self.hard = self.soft
        return self

    @classmethod
    def from_shorthand(cls, text: str) -> "Ulimit":
        """
        Parse ``nofile=1024`` or ``nofile=1024:2048``.

        Raises:
            ValueError: on a malformed entry or a non-integer limit
        """
        parts = text.split("=")
        if len(parts) != 2:
            raise ValueError(f"ulimit {text} must contain 1 `=` (equal)")

        limits = parts[1].split(":")
        if len(limits) > 2:
            raise ValueError(f"ulimit {text} can only contain 1 `:` (colon)")

        values = [_parse_limit(text, limit) for limit in limits]
        soft = values[0]
        hard = values[1] if len(values) == 2 else soft
        return cls(name=parts[0], soft=soft, hard=hard)

    def to_pipeline(self) -> PipelineUlimit:
        return PipelineUlimit(name=self.name, soft=self.soft, hard=self.hard)


def _parse_limit(text: str, limit: str) -> int:
    try:
        return int(limit, 10)
    except ValueError:
        raise ValueError(f"ulimit {text} has a non-integer limit {limit!r}") from None


def parse_ulimits(value: Any) -> List[Any]:
    """Decode a ulimits block; shorthand strings become Ulimit instances."""
    if value is None:
        return []
    if isinstance(value, str):
        return [Ulimit.from_shorthand(value)]
    if not isinstance(value, list):
        raise ValueError(f"unable to unmarshal {type(value).__name__} into ulimits")
    if all(isinstance(item, str) for item in value):
        return [Ulimit.from_shorthand(item) for item in value]
    return value

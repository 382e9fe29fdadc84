"""
Template declarations and per-step template references.
"""

from typing import Any, Dict, Optional

from pydantic import field_validator

from .base import YamlModel
from .raw import coerce_str


class Template(YamlModel):
    """A template declared in the top-level ``templates`` block."""

    name: str = ""
    source: str = ""
    format: str = ""
    type: str = ""
    variables: Optional[Dict[str, Any]] = None

    @field_validator("name", "source", "format", "type", mode="before")
    @classmethod
    def _scalar(cls, value: Any) -> str:
        return coerce_str(value)


class StepTemplate(YamlModel):
    """Reference from a step to a declared template, with its variables."""

    name: str = ""
    variables: Optional[Dict[str, Any]] = None

    @field_validator("name", mode="before")
    @classmethod
    def _scalar(cls, value: Any) -> str:
        return coerce_str(value)

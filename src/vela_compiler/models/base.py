"""
Shared base for the YAML document models.
"""

from typing import Any, Dict, List, Optional

from pydantic import BaseModel, ConfigDict, ValidationInfo

from ..constants import PULL_ALWAYS, PULL_NOT_PRESENT
from ..exceptions import EnvironmentMergeError


class YamlModel(BaseModel):
    """Base model for pipeline YAML types: unknown keys ignored, aliases accepted."""

    model_config = ConfigDict(
        extra="ignore",
        populate_by_name=True,
        coerce_numbers_to_str=True,
    )


def add_warning(info: Optional[ValidationInfo], message: str) -> None:
    """Record a non-fatal parse warning in the validation context, if one was supplied."""
    if info is None or not isinstance(info.context, dict):
        return
    warnings: List[str] = info.context.setdefault("warnings", [])
    if message not in warnings:
        warnings.append(message)


def normalize_pull(value: Any, owner: str, info: Optional[ValidationInfo] = None) -> str:
    """
    Default an empty pull policy and translate deprecated boolean policies.

    ``true`` means ``always`` and ``false`` means ``not_present``
    (case-insensitive, string or YAML boolean).
    """
    if value is None or value == "":
        return PULL_NOT_PRESENT
    if isinstance(value, bool):
        text = "true" if value else "false"
    else:
        text = str(value)

    lowered = text.lower()
    if lowered == "true":
        add_warning(info, f"{owner}: pull policy 'true' is deprecated, use '{PULL_ALWAYS}'")
        return PULL_ALWAYS
    if lowered == "false":
        add_warning(info, f"{owner}: pull policy 'false' is deprecated, use '{PULL_NOT_PRESENT}'")
        return PULL_NOT_PRESENT
    return text


def merge_environment(
    current: Optional[Dict[str, str]],
    environment: Optional[Dict[str, str]],
    kind: str,
    name: str,
) -> None:
    """
    Overlay ``environment`` onto ``current`` in place.

    A missing ``current`` map is a no-op; a missing ``environment`` for an
    existing map is an error naming the entity.

    Raises:
        EnvironmentMergeError: if ``environment`` is None
    """
    if current is None:
        return
    if environment is None:
        raise EnvironmentMergeError(f"empty environment provided for {kind} {name}")
    current.update(environment)

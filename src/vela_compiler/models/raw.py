"""
Raw YAML value coercions.

Pipeline authors may write most list fields either as a single scalar or
as a sequence, and environment blocks either as a mapping or as a list of
``KEY=VALUE`` strings. These helpers normalise both shapes before the
pydantic models validate them.
"""

import json
from typing import Any, Dict, List, Optional


def scalar_to_str(value: Any) -> str:
    """Render a YAML scalar the way it was written (``true`` -> ``"true"``)."""
    if value is None:
        return ""
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, (dict, list, tuple)):
        return json.dumps(value, separators=(",", ":"), default=str)
    return str(value)


def coerce_string_slice(value: Any) -> List[str]:
    """
    Normalise a scalar-or-sequence value into a list of strings.

    Raises:
        ValueError: for mappings, which have no list interpretation
    """
    if value is None:
        return []
    if isinstance(value, (list, tuple)):
        return [scalar_to_str(item) for item in value]
    if isinstance(value, dict):
        raise ValueError("unable to unmarshal mapping into a string slice")
    return [scalar_to_str(value)]


def coerce_string_slice_map(value: Any) -> Optional[Dict[str, str]]:
    """
    Normalise an environment block into a ``{str: str}`` mapping.

    Accepts a mapping, a list of ``KEY=VALUE`` strings or a single
    ``KEY=VALUE`` string. ``None`` stays ``None`` so callers can tell an
    absent block from an empty one.
    """
    if value is None:
        return None
    if isinstance(value, dict):
        return {scalar_to_str(k): scalar_to_str(v) for k, v in value.items()}

    entries = [value] if isinstance(value, str) else value
    if not isinstance(entries, (list, tuple)):
        raise ValueError(f"unable to unmarshal {type(value).__name__} into a string map")

    result: Dict[str, str] = {}
    for entry in entries:
        if not isinstance(entry, str) or "=" not in entry:
            raise ValueError(f"string map entry {entry!r} must be of the form KEY=VALUE")
        key, _, val = entry.partition("=")
        result[key] = val
    return result


def coerce_str(value: Any) -> str:
    """Coerce a YAML scalar destined for a string field."""
    if isinstance(value, (dict, list, tuple)):
        raise ValueError(f"expected a scalar value, got {type(value).__name__}")
    return scalar_to_str(value)

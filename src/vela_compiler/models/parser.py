"""
YAML -> Build decoding.
"""

import logging
from typing import Any, Dict, List, Optional, Tuple

import yaml
from pydantic import ValidationError

from ..constants import DEFAULT_PIPELINE_VERSION
from ..exceptions import UnmarshalError
from .build import Build

logger = logging.getLogger(__name__)


def _format_validation_error(error: ValidationError) -> str:
    messages = []
    for item in error.errors():
        location = ".".join(str(part) for part in item.get("loc", ()))
        message = item.get("msg", "")
        # pydantic prefixes errors raised from validators
        if message.startswith("Value error, "):
            message = message[len("Value error, "):]
        messages.append(f"{location}: {message}" if location else message)
    return "; ".join(messages)


def parse_yaml(
    text: str,
    *,
    default_version: str = DEFAULT_PIPELINE_VERSION,
) -> Tuple[Build, List[str]]:
    """
    Decode pipeline YAML into a Build.

    Only the first document is used; any further documents are ignored
    with a warning.

    Args:
        text: Pipeline YAML
        default_version: Version assumed when the document has none

    Returns:
        Tuple of (build, warnings)

    Raises:
        UnmarshalError: on YAML syntax errors or decode failures
    """
    try:
        documents = [doc for doc in yaml.safe_load_all(text)]
    except yaml.YAMLError as e:
        raise UnmarshalError(f"unable to unmarshal yaml: {e}") from e

    warnings: List[str] = []
    data: Optional[Any] = documents[0] if documents else None
    if len(documents) > 1:
        ignored = len(documents) - 1
        warnings.append(f"ignoring {ignored} additional YAML document(s); only the first is used")
        logger.debug(f"Ignoring {ignored} additional YAML document(s)")

    if data is None:
        data = {}
    if not isinstance(data, dict):
        raise UnmarshalError(
            f"unable to unmarshal yaml: expected a mapping at the document root, got {type(data).__name__}"
        )

    context: Dict[str, Any] = {"warnings": warnings, "default_version": default_version}
    try:
        build = Build.model_validate(data, context=context)
    except ValidationError as e:
        raise UnmarshalError(f"unable to unmarshal yaml: {_format_validation_error(e)}") from e

    return build, warnings

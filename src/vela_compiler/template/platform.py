"""
Platform variable namespacing.

The server injects ``VELA_*`` and ``DEPLOYMENT_PARAMETER_*`` variables
into every template render. Both engines see the same variables after the
same prefix stripping:

- native templates get a flat lookup (``vela("BUILD_AUTHOR")``)
- sandboxed scripts get nested namespaces (``ctx["vela"]["build"]["author"]``)

Any other key in the environment is dropped.
"""

from dataclasses import dataclass, field
from typing import Dict, Mapping, Optional

from ..constants import (
    DEPLOYMENT_PREFIX,
    NAMESPACE_BUILD,
    NAMESPACE_DEPLOYMENT,
    NAMESPACE_REPO,
    NAMESPACE_SYSTEM,
    NAMESPACE_USER,
    PLATFORM_PREFIX,
    TEMPLATE_NAME_KEY,
)

# second-level prefixes under vela_, checked in order
ROUTED_NAMESPACES = (NAMESPACE_BUILD, NAMESPACE_REPO, NAMESPACE_USER)


def strip_platform_prefix(key: str) -> str:
    """Lower-case ``key`` and drop a leading ``deployment_parameter_`` or ``vela_``."""
    key = key.lower()
    if key.startswith(DEPLOYMENT_PREFIX):
        return key[len(DEPLOYMENT_PREFIX):]
    if key.startswith(PLATFORM_PREFIX):
        return key[len(PLATFORM_PREFIX):]
    return key


@dataclass(frozen=True)
class PlatformVariables:
    """Namespaced, read-only snapshot of the platform environment for one render."""

    template_name: str = ""
    build: Dict[str, str] = field(default_factory=dict)
    repo: Dict[str, str] = field(default_factory=dict)
    user: Dict[str, str] = field(default_factory=dict)
    deployment: Dict[str, str] = field(default_factory=dict)
    system: Dict[str, str] = field(default_factory=dict)

    @classmethod
    def from_environment(
        cls,
        environment: Optional[Mapping[str, str]],
        template_name: str,
    ) -> "PlatformVariables":
        namespaces: Dict[str, Dict[str, str]] = {
            NAMESPACE_BUILD: {},
            NAMESPACE_REPO: {},
            NAMESPACE_USER: {},
            NAMESPACE_DEPLOYMENT: {},
            NAMESPACE_SYSTEM: {},
        }

        for key, value in (environment or {}).items():
            lowered = key.lower()

            if lowered.startswith(DEPLOYMENT_PREFIX):
                namespaces[NAMESPACE_DEPLOYMENT][lowered[len(DEPLOYMENT_PREFIX):]] = value
                continue

            if not lowered.startswith(PLATFORM_PREFIX):
                continue

            name = lowered[len(PLATFORM_PREFIX):]
            for namespace in ROUTED_NAMESPACES:
                prefix = f"{namespace}_"
                if name.startswith(prefix):
                    namespaces[namespace][name[len(prefix):]] = value
                    break
            else:
                namespaces[NAMESPACE_SYSTEM][name] = value

        # always present, and never overridden by an injected variable
        namespaces[NAMESPACE_SYSTEM][TEMPLATE_NAME_KEY] = template_name

        return cls(template_name=template_name, **namespaces)

    def flat(self) -> Dict[str, str]:
        """
        Flat lookup map used by the native engine.

        Keys keep their second-level prefix (``build_author``); deployment
        parameters and system variables are unprefixed. When a deployment
        parameter and a system variable share a name, the system variable wins.
        """
        result: Dict[str, str] = dict(self.deployment)
        for namespace in ROUTED_NAMESPACES:
            for key, value in getattr(self, namespace).items():
                result[f"{namespace}_{key}"] = value
        result.update(self.system)
        result[TEMPLATE_NAME_KEY] = self.template_name
        return result

    def as_dict(self) -> Dict[str, Dict[str, str]]:
        """
        Nested namespaces used by the sandboxed engine.

        Empty namespaces are omitted; ``system`` is always present.
        """
        result: Dict[str, Dict[str, str]] = {}
        for namespace in (NAMESPACE_BUILD, NAMESPACE_REPO, NAMESPACE_USER, NAMESPACE_SYSTEM, NAMESPACE_DEPLOYMENT):
            values = getattr(self, namespace)
            if values or namespace == NAMESPACE_SYSTEM:
                result[namespace] = dict(values)
        return result

    def lookup(self, key: str) -> str:
        """Case-insensitive, prefix-tolerant lookup; empty string on a miss."""
        return self.flat().get(strip_platform_prefix(key), "")

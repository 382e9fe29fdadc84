"""
Canonical executable pipeline form.

The YAML models in ``vela_compiler.models`` carry decode scaffolding
(ruleset-level matcher/operator, stage map keys, deprecated pull values).
``to_pipeline()`` on those models produces the plain dataclasses below,
which are what the execution layer consumes.
"""

from dataclasses import asdict, dataclass, field
from typing import Any, Dict, List, Optional


# ============================================================
# RULES
# ============================================================

@dataclass
class Rules:
    """Match predicates plus the matcher/operator that combine them."""
    branch: List[str] = field(default_factory=list)
    comment: List[str] = field(default_factory=list)
    event: List[str] = field(default_factory=list)
    path: List[str] = field(default_factory=list)
    repo: List[str] = field(default_factory=list)
    sender: List[str] = field(default_factory=list)
    status: List[str] = field(default_factory=list)
    tag: List[str] = field(default_factory=list)
    target: List[str] = field(default_factory=list)
    label: List[str] = field(default_factory=list)
    instance: List[str] = field(default_factory=list)
    eval: str = ""
    matcher: str = ""
    operator: str = ""


@dataclass
class Ruleset:
    """Conditional execution gate. Only If, Unless and Continue survive compilation."""
    if_: Rules = field(default_factory=Rules)
    unless: Rules = field(default_factory=Rules)
    continue_: bool = False


# ============================================================
# CONTAINER PARTS
# ============================================================

@dataclass
class Volume:
    source: str = ""
    destination: str = ""
    access_mode: str = ""


@dataclass
class Ulimit:
    name: str = ""
    soft: int = 0
    hard: int = 0


@dataclass
class StepSecret:
    source: str = ""
    target: str = ""


@dataclass
class Container:
    """A step, a service or an external secret origin ready for execution."""
    id: str = ""
    name: str = ""
    image: str = ""
    commands: List[str] = field(default_factory=list)
    entrypoint: List[str] = field(default_factory=list)
    environment: Dict[str, str] = field(default_factory=dict)
    ruleset: Ruleset = field(default_factory=Ruleset)
    secrets: List[StepSecret] = field(default_factory=list)
    volumes: List[Volume] = field(default_factory=list)
    ulimits: List[Ulimit] = field(default_factory=list)
    ports: List[str] = field(default_factory=list)
    pull: str = ""
    detach: bool = False
    privileged: bool = False
    user: str = ""


@dataclass
class Stage:
    name: str = ""
    needs: List[str] = field(default_factory=list)
    independent: bool = False
    environment: Dict[str, str] = field(default_factory=dict)
    steps: List[Container] = field(default_factory=list)


@dataclass
class Secret:
    name: str = ""
    key: str = ""
    engine: str = ""
    type: str = ""
    origin: Optional[Container] = None
    pull: str = ""


# ============================================================
# BUILD
# ============================================================

@dataclass
class PipelineBuild:
    """The compiled, executable definition handed to the execution layer."""
    version: str = ""
    environment: Dict[str, str] = field(default_factory=dict)
    worker: Dict[str, str] = field(default_factory=dict)
    secrets: List[Secret] = field(default_factory=list)
    services: List[Container] = field(default_factory=list)
    stages: List[Stage] = field(default_factory=list)
    steps: List[Container] = field(default_factory=list)

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)

"""
Ruleset / Rules grammar.

A ruleset may be written in two shapes at once:

- simple: rule types directly under ``ruleset`` (``branch: main``)
- advanced: rule types nested under ``if``/``unless`` together with
  ``matcher``, ``operator`` and ``continue``

Both shapes are read from the same node and merged: simple rules are
appended to ``if``, ruleset-level matcher/operator default to
``filepath``/``and`` and are pushed down into the rules that do not set
their own, then cleared from the ruleset itself.
"""

from typing import Any, Dict, List, Optional

from pydantic import Field, field_validator, model_validator

from ..constants import LEGACY_EVENT_EXPANSIONS, MATCHER_FILEPATH, OPERATOR_AND
from ..pipeline import Rules as PipelineRules
from ..pipeline import Ruleset as PipelineRuleset
from .base import YamlModel
from .raw import coerce_str, coerce_string_slice

# rule types that accept a string or a list of strings
RULE_TYPES = (
    "branch",
    "comment",
    "event",
    "path",
    "repo",
    "sender",
    "status",
    "tag",
    "target",
    "label",
    "instance",
)


def expand_events(events: List[str]) -> List[str]:
    """
    Expand legacy event names into their scoped equivalents.

    ``pull_request`` -> opened/synchronize/reopened, ``deployment`` ->
    created, ``comment`` -> created/edited. Other events pass through.
    """
    expanded: List[str] = []
    for event in events:
        expanded.extend(LEGACY_EVENT_EXPANSIONS.get(event, [event]))
    return expanded


class Rules(YamlModel):
    """The rule types of a ruleset block plus their matching behaviour."""

    branch: List[str] = Field(default_factory=list)
    comment: List[str] = Field(default_factory=list)
    event: List[str] = Field(default_factory=list)
    path: List[str] = Field(default_factory=list)
    repo: List[str] = Field(default_factory=list)
    sender: List[str] = Field(default_factory=list)
    status: List[str] = Field(default_factory=list)
    tag: List[str] = Field(default_factory=list)
    target: List[str] = Field(default_factory=list)
    label: List[str] = Field(default_factory=list)
    instance: List[str] = Field(default_factory=list)
    eval: str = ""
    matcher: str = ""
    operator: str = ""

    @field_validator(*RULE_TYPES, mode="before")
    @classmethod
    def _string_slice(cls, value: Any) -> List[str]:
        return coerce_string_slice(value)

    @field_validator("eval", "matcher", "operator", mode="before")
    @classmethod
    def _scalar(cls, value: Any) -> str:
        return coerce_str(value)

    @field_validator("event")
    @classmethod
    def _expand_events(cls, value: List[str]) -> List[str]:
        return expand_events(value)

    def is_empty(self) -> bool:
        """True when no rule type or eval expression is set."""
        return not self.eval and not any(getattr(self, name) for name in RULE_TYPES)

    def to_pipeline(self) -> PipelineRules:
        return PipelineRules(
            branch=list(self.branch),
            comment=list(self.comment),
            event=list(self.event),
            path=list(self.path),
            repo=list(self.repo),
            sender=list(self.sender),
            status=list(self.status),
            tag=list(self.tag),
            target=list(self.target),
            label=list(self.label),
            instance=list(self.instance),
            eval=self.eval,
            matcher=self.matcher,
            operator=self.operator,
        )


class Ruleset(YamlModel):
    """
    Conditional execution gate of a step.

    ``unless`` is ``None`` when the source did not provide it, which is
    distinct from an explicitly provided empty block.
    """

    if_: Rules = Field(default_factory=Rules, alias="if")
    unless: Optional[Rules] = None
    matcher: str = ""
    operator: str = ""
    continue_: bool = Field(default=False, alias="continue")

    @model_validator(mode="before")
    @classmethod
    def _merge_simple_and_advanced(cls, data: Any) -> Any:
        if data is None:
            data = {}
        if not isinstance(data, dict):
            raise ValueError(f"invalid ruleset: expected a mapping, got {type(data).__name__}")

        # the simple form reads rule types straight off the ruleset node
        simple = Rules.model_validate(data)
        advanced_if = Rules.model_validate(data.get("if") or {})

        unless: Optional[Rules] = None
        if data.get("unless") is not None:
            unless = Rules.model_validate(data["unless"])

        matcher = coerce_str(data.get("matcher")) or MATCHER_FILEPATH
        operator = coerce_str(data.get("operator")) or OPERATOR_AND

        merged: Dict[str, Any] = advanced_if.model_dump()
        for rule_type in RULE_TYPES:
            merged[rule_type] = merged[rule_type] + getattr(simple, rule_type)
        if simple.eval:
            merged["eval"] = simple.eval
        if_rules = Rules.model_construct(**merged)

        # rule level always wins over ruleset level
        if not if_rules.operator:
            if_rules.operator = operator
        if not if_rules.matcher:
            if_rules.matcher = matcher

        if unless is not None:
            if not unless.operator:
                unless.operator = operator
            if not unless.matcher:
                unless.matcher = matcher

        return {
            "if": if_rules,
            "unless": unless,
            # ruleset-level values only live on the rules from here on
            "matcher": "",
            "operator": "",
            "continue": data.get("continue", False) or False,
        }

    def to_pipeline(self) -> PipelineRuleset:
        unless = self.unless if self.unless is not None else Rules()
        return PipelineRuleset(
            if_=self.if_.to_pipeline(),
            unless=unless.to_pipeline(),
            continue_=self.continue_,
        )

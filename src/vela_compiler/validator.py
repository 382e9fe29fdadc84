"""
Pipeline Validator - Post-render validation of compiled Build documents.

Checks a decoded Build for:
- Shape (steps vs stages for the compile target)
- Enum correctness (pull policies, rule matchers and operators)
- Naming (missing, duplicate step and stage names)
- Stage references (``needs`` naming unknown stages)
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import Dict, List, Optional, Set

from .constants import IMPLICIT_NEEDS_EXEMPT, MATCHERS, OPERATORS, PULL_POLICIES
from .exceptions import PipelineValidationError
from .models import Build, Rules, Ruleset, Step


# ============================================================
# VALIDATION RESULT TYPES
# ============================================================

class Severity(Enum):
    """Severity level for validation issues."""
    ERROR = "error"      # Must be fixed, fails the compile
    WARNING = "warning"  # Reported alongside a successful compile


class Target(Enum):
    """What the rendered document is meant to be."""
    STEP_TEMPLATE = "step_template"
    FULL_PIPELINE = "full_pipeline"


@dataclass
class ValidationIssue:
    """A single problem found in a Build."""
    severity: Severity
    message: str
    path: Optional[str] = None

    def __str__(self) -> str:
        loc = f" at {self.path}" if self.path else ""
        return f"[{self.severity.value.upper()}]{loc}: {self.message}"


@dataclass
class ValidationResult:
    """Result of validating a Build."""
    valid: bool
    issues: List[ValidationIssue] = field(default_factory=list)

    @property
    def errors(self) -> List[ValidationIssue]:
        return [i for i in self.issues if i.severity == Severity.ERROR]

    @property
    def warnings(self) -> List[ValidationIssue]:
        return [i for i in self.issues if i.severity == Severity.WARNING]

    def raise_for_errors(self, template: Optional[str] = None, engine: Optional[str] = None) -> None:
        """
        Raise if any ERROR issue was found.

        Raises:
            PipelineValidationError: carrying every issue
        """
        errors = self.errors
        if not errors:
            return
        summary = "; ".join(str(issue) for issue in errors)
        raise PipelineValidationError(
            f"invalid pipeline: {summary}",
            issues=self.issues,
            template=template,
            engine=engine,
        )

    def __bool__(self) -> bool:
        return self.valid


# ============================================================
# VALIDATOR
# ============================================================

class PipelineValidator:
    """
    Validates a decoded Build for the given compile target.

    Usage:
        result = PipelineValidator(Target.STEP_TEMPLATE).validate(build)
        result.raise_for_errors()
    """

    def __init__(self, target: Target = Target.FULL_PIPELINE):
        self.target = target
        self.issues: List[ValidationIssue] = []

    def validate(self, build: Build) -> ValidationResult:
        self.issues = []

        self._validate_shape(build)

        self._validate_steps(build.steps, "steps")
        stage_names: Set[str] = set()
        for stage in build.stages:
            path = f"stages.{stage.name}"
            if stage.name in stage_names:
                self._add_issue(Severity.ERROR, f"duplicate stage name '{stage.name}'", path)
            stage_names.add(stage.name)
            self._validate_steps(stage.steps, f"{path}.steps")

        for stage in build.stages:
            for need in stage.needs:
                if need in IMPLICIT_NEEDS_EXEMPT or need in stage_names:
                    continue
                self._add_issue(
                    Severity.WARNING,
                    f"stage '{stage.name}' needs unknown stage '{need}'",
                    f"stages.{stage.name}.needs",
                )

        for index, service in enumerate(build.services):
            self._validate_pull(service.pull, f"services[{index}]")

        for index, secret in enumerate(build.secrets):
            if secret.origin.empty():
                continue
            path = f"secrets[{index}].origin"
            self._validate_pull(secret.origin.pull, path)
            self._validate_ruleset(secret.origin.ruleset, f"{path}.ruleset")

        has_errors = any(i.severity == Severity.ERROR for i in self.issues)
        return ValidationResult(valid=not has_errors, issues=self.issues)

    # ============================================================
    # SHAPE
    # ============================================================

    def _validate_shape(self, build: Build) -> None:
        if build.steps and build.stages:
            self._add_issue(Severity.ERROR, "pipeline cannot contain both steps and stages")

        if self.target == Target.STEP_TEMPLATE:
            if build.stages:
                self._add_issue(Severity.ERROR, "step templates cannot produce stages", "stages")
        elif not build.steps and not build.stages:
            self._add_issue(Severity.ERROR, "pipeline must contain steps or stages")

    # ============================================================
    # STEPS
    # ============================================================

    def _validate_steps(self, steps: List[Step], path: str) -> None:
        seen: Dict[str, int] = {}
        for index, step in enumerate(steps):
            step_path = f"{path}[{index}]"
            if not step.name:
                self._add_issue(Severity.ERROR, "step has no name", step_path)
            elif step.name in seen:
                self._add_issue(Severity.ERROR, f"duplicate step name '{step.name}'", step_path)
            else:
                seen[step.name] = index

            if not step.image and not step.template.name:
                self._add_issue(Severity.ERROR, f"step '{step.name}' has no image", step_path)

            self._validate_pull(step.pull, step_path)
            self._validate_ruleset(step.ruleset, f"{step_path}.ruleset")

    def _validate_pull(self, pull: str, path: str) -> None:
        if pull and pull not in PULL_POLICIES:
            self._add_issue(
                Severity.ERROR,
                f"invalid pull policy '{pull}', expected one of {sorted(PULL_POLICIES)}",
                f"{path}.pull",
            )

    # ============================================================
    # RULESETS
    # ============================================================

    def _validate_ruleset(self, ruleset: Ruleset, path: str) -> None:
        self._validate_rules(ruleset.if_, f"{path}.if")
        if ruleset.unless is not None:
            self._validate_rules(ruleset.unless, f"{path}.unless")

    def _validate_rules(self, rules: Rules, path: str) -> None:
        # empty means the ruleset block was never written
        if rules.matcher and rules.matcher not in MATCHERS:
            self._add_issue(
                Severity.ERROR,
                f"invalid matcher '{rules.matcher}', expected one of {sorted(MATCHERS)}",
                f"{path}.matcher",
            )
        if rules.operator and rules.operator not in OPERATORS:
            self._add_issue(
                Severity.ERROR,
                f"invalid operator '{rules.operator}', expected one of {sorted(OPERATORS)}",
                f"{path}.operator",
            )

    def _add_issue(self, severity: Severity, message: str, path: Optional[str] = None) -> None:
        self.issues.append(ValidationIssue(severity=severity, message=message, path=path))


def validate_build(build: Build, target: Target = Target.FULL_PIPELINE) -> ValidationResult:
    """Convenience wrapper around PipelineValidator."""
    return PipelineValidator(target).validate(build)

"""Tests for post-render pipeline validation."""

import pytest

from vela_compiler.exceptions import PipelineValidationError
from vela_compiler.models import parse_yaml
from vela_compiler.validator import PipelineValidator, Severity, Target, ValidationIssue, validate_build


def validate(text: str, target: Target = Target.FULL_PIPELINE):
    build, _ = parse_yaml(text)
    return PipelineValidator(target).validate(build)


def messages(result, severity=Severity.ERROR):
    return [issue.message for issue in result.issues if issue.severity == severity]


VALID = """
steps:
  - name: test
    image: golang
    ruleset:
      branch: main
"""


class TestShape:
    def test_valid_pipeline(self):
        result = validate(VALID)
        assert result.valid
        assert bool(result)
        assert result.issues == []

    def test_empty_full_pipeline(self):
        result = validate("version: '1'\n")
        assert not result.valid
        assert messages(result) == ["pipeline must contain steps or stages"]

    def test_empty_step_template_allowed(self):
        assert validate("version: '1'\n", Target.STEP_TEMPLATE).valid

    def test_step_template_cannot_produce_stages(self):
        result = validate("stages:\n  build:\n    steps:\n      - name: a\n        image: alpine\n", Target.STEP_TEMPLATE)
        assert "step templates cannot produce stages" in messages(result)

    def test_steps_and_stages(self):
        result = validate(
            "steps:\n  - name: a\n    image: alpine\n"
            "stages:\n  build:\n    steps:\n      - name: b\n        image: alpine\n"
        )
        assert "pipeline cannot contain both steps and stages" in messages(result)


class TestSteps:
    def test_missing_name(self):
        result = validate("steps:\n  - image: alpine\n")
        assert messages(result) == ["step has no name"]

    def test_duplicate_name(self):
        result = validate("steps:\n  - name: a\n    image: alpine\n  - name: a\n    image: alpine\n")
        assert messages(result) == ["duplicate step name 'a'"]
        assert result.errors[0].path == "steps[1]"

    def test_missing_image(self):
        result = validate("steps:\n  - name: a\n")
        assert messages(result) == ["step 'a' has no image"]

    def test_template_reference_needs_no_image(self):
        result = validate("steps:\n  - name: a\n    template:\n      name: go\n")
        assert result.valid

    def test_invalid_pull_policy(self):
        result = validate("steps:\n  - name: a\n    image: alpine\n    pull: sometimes\n")
        assert result.errors[0].path == "steps[0].pull"
        assert "invalid pull policy 'sometimes'" in result.errors[0].message

    def test_stage_steps_checked(self):
        result = validate("stages:\n  build:\n    steps:\n      - name: a\n        image: alpine\n        pull: later\n")
        assert result.errors[0].path == "stages.build.steps[0].pull"


class TestRulesets:
    def test_invalid_matcher(self):
        result = validate("steps:\n  - name: a\n    image: alpine\n    ruleset:\n      matcher: glob\n      branch: main\n")
        assert result.errors[0].path == "steps[0].ruleset.if.matcher"
        assert "invalid matcher 'glob'" in result.errors[0].message

    def test_invalid_operator_in_unless(self):
        result = validate(
            "steps:\n"
            "  - name: a\n"
            "    image: alpine\n"
            "    ruleset:\n"
            "      unless:\n"
            "        branch: main\n"
            "        operator: xor\n"
        )
        assert [issue.path for issue in result.errors] == ["steps[0].ruleset.unless.operator"]

    def test_regexp_matcher_valid(self):
        assert validate("steps:\n  - name: a\n    image: alpine\n    ruleset:\n      matcher: regexp\n").valid


class TestStagesAndSecrets:
    def test_unknown_need_is_warning(self):
        result = validate(
            "stages:\n"
            "  test:\n"
            "    needs: [ missing ]\n"
            "    steps:\n"
            "      - name: a\n"
            "        image: alpine\n"
        )
        assert result.valid
        assert messages(result, Severity.WARNING) == ["stage 'test' needs unknown stage 'missing'"]

    def test_duplicate_stage_name(self):
        result = validate(
            "stages:\n"
            "  a:\n    name: x\n    steps:\n      - name: one\n        image: alpine\n"
            "  b:\n    name: x\n    steps:\n      - name: two\n        image: alpine\n"
        )
        assert "duplicate stage name 'x'" in messages(result)

    def test_secret_origin_pull(self):
        result = validate(
            "secrets:\n"
            "  - origin:\n"
            "      name: vault\n"
            "      image: target/vela-vault\n"
            "      pull: sometimes\n"
            "steps:\n"
            "  - name: a\n"
            "    image: alpine\n"
        )
        assert [issue.path for issue in result.errors] == ["secrets[0].origin.pull"]


class TestResult:
    def test_issue_str(self):
        issue = ValidationIssue(Severity.ERROR, "bad", "steps[0]")
        assert str(issue) == "[ERROR] at steps[0]: bad"
        assert str(ValidationIssue(Severity.WARNING, "odd")) == "[WARNING]: odd"

    def test_raise_for_errors(self):
        result = validate("steps:\n  - name: a\n")
        with pytest.raises(PipelineValidationError) as exc_info:
            result.raise_for_errors(template="golang", engine="native")
        error = exc_info.value
        assert error.message.startswith("invalid pipeline: [ERROR] at steps[0]")
        assert error.template == "golang"
        assert len(error.issues) == 1

    def test_raise_for_errors_ignores_warnings(self):
        build, _ = parse_yaml("stages:\n  a:\n    needs: [ b ]\n    steps:\n      - name: x\n        image: alpine\n")
        validate_build(build).raise_for_errors()

    def test_validator_reusable(self):
        validator = PipelineValidator()
        bad, _ = parse_yaml("steps:\n  - name: a\n")
        good, _ = parse_yaml(VALID)
        assert not validator.validate(bad).valid
        assert validator.validate(good).valid

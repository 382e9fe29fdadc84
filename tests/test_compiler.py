"""Tests for the compiler entry points: engine selection, validation and configuration."""

import logging

import pytest

from vela_compiler import (
    ConfigurationError,
    Engine,
    PipelineValidationError,
    ResourceExhaustedError,
    TemplateExecutionError,
    render_full_pipeline_template,
    render_step_template,
)

STEP_SCRIPT = """
def main(ctx):
    steps = []
    for i in range(ctx["vars"]["count"]):
        steps.append({"name": "step-%d" % i, "image": "alpine"})
    return {"steps": steps}
"""


class TestEngineParse:
    @pytest.mark.parametrize("value,engine", [
        ("", Engine.NATIVE),
        (None, Engine.NATIVE),
        ("native", Engine.NATIVE),
        ("go", Engine.NATIVE),
        ("Golang", Engine.NATIVE),
        ("starlark", Engine.SANDBOXED),
        (" sandboxed ", Engine.SANDBOXED),
        (Engine.SANDBOXED, Engine.SANDBOXED),
    ])
    def test_aliases(self, value, engine):
        assert Engine.parse(value) == engine

    def test_unknown(self):
        with pytest.raises(ConfigurationError, match="unknown template engine 'lua'"):
            Engine.parse("lua")


class TestRenderStepTemplate:
    def test_native(self, read_template, platform_env):
        result = render_step_template(
            "golang", read_template("native/step.yml"), "sample", "golang", platform_env, {"image": "golang"}
        )
        assert [step.name for step in result.pipeline.steps] == ["golang_install", "golang_test"]
        assert result.warnings == []

    def test_sandboxed(self, read_template, platform_env):
        result = render_step_template(
            Engine.SANDBOXED, read_template("script/step.star"), "sample", "go", platform_env, {"image": "golang"}
        )
        assert [step.name for step in result.pipeline.steps] == ["go_install", "go_test"]

    def test_engines_agree(self, read_template, platform_env):
        native = render_step_template(
            "native", read_template("native/step.yml"), "sample", "golang", platform_env, {"image": "golang"}
        )
        sandboxed = render_step_template(
            "starlark", read_template("script/step.star"), "sample", "golang", platform_env, {"image": "golang"}
        )
        native_steps = [(s.name, s.image, s.pull, s.commands) for s in native.pipeline.steps]
        sandboxed_steps = [(s.name, s.image, s.pull, s.commands) for s in sandboxed.pipeline.steps]
        assert native_steps == sandboxed_steps

    def test_stages_rejected(self):
        body = "stages:\n  build:\n    steps:\n      - name: a\n        image: alpine\n"
        with pytest.raises(PipelineValidationError) as exc_info:
            render_step_template("native", body, "sample", "golang")
        assert "step templates cannot produce stages" in str(exc_info.value)
        assert exc_info.value.template == "golang"
        assert exc_info.value.engine == "native"

    def test_decode_warnings_returned(self):
        body = "steps:\n  - name: a\n    image: alpine\n    pull: true\n"
        result = render_step_template("native", body, "sample", "golang")
        assert result.pipeline.steps[0].pull == "always"
        assert result.warnings == ["step a: pull policy 'true' is deprecated, use 'always'"]

    def test_unknown_engine(self):
        with pytest.raises(ConfigurationError):
            render_step_template("lua", "steps: []\n", "sample", "golang")

    def test_failure_logged(self, caplog):
        with caplog.at_level(logging.INFO, logger="vela_compiler"):
            with pytest.raises(TemplateExecutionError):
                render_step_template("native", "image: {{ missing }}\n", "sample", "golang")
        assert "Step template 'golang' for step 'sample' failed to compile" in caplog.text


class TestRenderFullPipelineTemplate:
    def test_native(self, read_template):
        result = render_full_pipeline_template("native", read_template("native/pipeline.yml"), {}, {"names": ["a"]})
        assert [step.name for step in result.pipeline.steps] == ["a"]

    def test_sandboxed_stages(self, read_template):
        result = render_full_pipeline_template(
            "starlark", read_template("script/stages.star"), variables={"stages": ["build"]}
        )
        assert result.pipeline.stages[0].name == "build"

    def test_validation_warnings(self):
        body = "stages:\n  test:\n    needs: [ lint ]\n    steps:\n      - name: a\n        image: alpine\n"
        result = render_full_pipeline_template("native", body)
        assert result.warnings == ["[WARNING] at stages.test.needs: stage 'test' needs unknown stage 'lint'"]

    def test_empty_pipeline_rejected(self):
        with pytest.raises(PipelineValidationError, match="pipeline must contain steps or stages"):
            render_full_pipeline_template("native", "version: '1'\n")

    def test_custom_name_in_errors(self):
        with pytest.raises(TemplateExecutionError) as exc_info:
            render_full_pipeline_template("native", "{{ missing }}", name="base")
        assert exc_info.value.template == "base"


class TestStepLimit:
    def test_explicit_limit(self):
        with pytest.raises(ResourceExhaustedError) as exc_info:
            render_full_pipeline_template("starlark", STEP_SCRIPT, variables={"count": 50}, step_limit=20)
        assert exc_info.value.limit == 20

    def test_configured_default(self, monkeypatch):
        monkeypatch.setenv("VELA_COMPILER_STEP_LIMIT", "20")
        with pytest.raises(ResourceExhaustedError) as exc_info:
            render_full_pipeline_template("starlark", STEP_SCRIPT, variables={"count": 50})
        assert exc_info.value.limit == 20

    def test_default_limit_is_enough_for_typical_scripts(self):
        result = render_full_pipeline_template("starlark", STEP_SCRIPT, variables={"count": 10})
        assert len(result.pipeline.steps) == 10

    def test_negative_limit(self):
        with pytest.raises(ConfigurationError):
            render_full_pipeline_template("starlark", STEP_SCRIPT, variables={"count": 1}, step_limit=-5)

    def test_native_ignores_limit(self, read_template):
        result = render_full_pipeline_template(
            "native", read_template("native/pipeline.yml"), variables={"names": ["a"]}, step_limit=0
        )
        assert len(result.pipeline.steps) == 1

    def test_configured_default_version(self, monkeypatch):
        monkeypatch.setenv("VELA_COMPILER_DEFAULT_VERSION", "2")
        result = render_full_pipeline_template("native", "steps:\n  - name: a\n    image: alpine\n")
        assert result.pipeline.version == "2"

"""Tests for stage map decoding, implicit clone dependencies and serialization."""

import pytest

from vela_compiler.exceptions import EnvironmentMergeError, UnmarshalError
from vela_compiler.models import Stage, parse_yaml

STAGES = """
version: "1"
stages:
  build:
    steps:
      - name: compile
        image: golang
        commands: [ go build ]
  test:
    needs: [ build ]
    environment:
      GOFLAGS: -mod=vendor
    steps:
      - name: unit
        image: golang
        pull: true
"""


class TestStageDecode:
    def test_name_from_map_key(self):
        build, _ = parse_yaml(STAGES)
        assert [stage.name for stage in build.stages] == ["build", "test"]

    def test_implicit_clone_dependency(self):
        build, _ = parse_yaml(STAGES)
        assert build.stages[0].needs == ["clone"]
        assert build.stages[1].needs == ["build", "clone"]

    def test_clone_not_duplicated(self):
        build, _ = parse_yaml("stages:\n  build:\n    needs: [ clone ]\n    steps: []\n")
        assert build.stages[0].needs == ["clone"]

    @pytest.mark.parametrize("name", ["clone", "init"])
    def test_exempt_stages(self, name):
        build, _ = parse_yaml(f"stages:\n  {name}:\n    steps: []\n")
        assert build.stages[0].needs == []

    def test_explicit_name_wins(self):
        build, _ = parse_yaml("stages:\n  build:\n    name: compile\n    steps: []\n")
        assert build.stages[0].name == "compile"

    def test_empty_stage_body(self):
        build, _ = parse_yaml("stages:\n  build:\n")
        assert build.stages[0].name == "build"
        assert build.stages[0].steps == []

    def test_sequence_rejected(self):
        with pytest.raises(UnmarshalError, match="invalid yaml: expected map node for stage"):
            parse_yaml("stages:\n  - name: build\n")

    def test_stage_steps_normalized(self):
        build, warnings = parse_yaml(STAGES)
        assert build.stages[0].steps[0].pull == "not_present"
        assert build.stages[1].steps[0].pull == "always"
        assert warnings == ["step unit: pull policy 'true' is deprecated, use 'always'"]

    def test_nil_stage_step_rejected(self):
        with pytest.raises(UnmarshalError, match="invalid step with nil content found"):
            parse_yaml("stages:\n  build:\n    steps:\n      -\n")


class TestStageSerialization:
    def test_mapping_shape_restored(self):
        build, _ = parse_yaml(STAGES)
        stages = build.to_yaml_dict()["stages"]
        assert list(stages) == ["build", "test"]
        assert stages["test"]["name"] == "test"
        assert stages["test"]["needs"] == ["build", "clone"]
        assert stages["test"]["steps"][0]["name"] == "unit"

    def test_environment_not_serialized(self):
        build, _ = parse_yaml(STAGES)
        stages = build.to_yaml_dict()["stages"]
        assert "environment" not in stages["test"]
        assert set(stages["test"]) <= {"name", "needs", "independent", "steps"}

    def test_yaml_round_trip(self):
        build, _ = parse_yaml(STAGES)
        again, _ = parse_yaml(build.to_yaml())
        assert [stage.name for stage in again.stages] == ["build", "test"]
        assert again.stages[1].needs == ["build", "clone"]
        assert again.stages[1].steps[0].pull == "always"


class TestStageMergeEnv:
    def test_merge(self):
        stage = Stage.model_validate({"name": "build", "environment": {"A": "1"}})
        stage.merge_env({"B": "2"})
        assert stage.environment == {"A": "1", "B": "2"}

    def test_missing_supplied_environment(self):
        stage = Stage.model_validate({"name": "build", "environment": {"A": "1"}})
        with pytest.raises(EnvironmentMergeError, match="empty environment provided for stage build"):
            stage.merge_env(None)

    def test_pipeline_form_keeps_environment(self):
        build, _ = parse_yaml(STAGES)
        pipeline_stage = build.stages[1].to_pipeline()
        assert pipeline_stage.environment == {"GOFLAGS": "-mod=vendor"}
        assert pipeline_stage.steps[0].name == "unit"

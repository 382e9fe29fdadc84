"""Tests for pipeline document decoding, summaries and conversion."""

import pytest
import yaml

from vela_compiler.exceptions import UnmarshalError
from vela_compiler.models import Build, parse_yaml

PIPELINE = """
version: "1"

worker:
  flavor: large
  platform: docker

environment:
  GLOBAL: yes-please

secrets:
  - name: docker_password
  - origin:
      name: vault
      image: target/vela-vault

services:
  - name: redis
    image: redis

steps:
  - name: test
    image: golang
    commands: [ go test ./... ]
    ruleset:
      event: [ push, pull_request ]
"""


class TestParseYaml:
    def test_version_default(self):
        build, _ = parse_yaml("steps: []\n")
        assert build.version == "1"

    def test_configured_default_version(self):
        build, _ = parse_yaml("steps: []\n", default_version="2")
        assert build.version == "2"

    def test_numeric_version_stringified(self):
        build, _ = parse_yaml("version: 1\n")
        assert build.version == "1"

    def test_empty_document(self):
        build, warnings = parse_yaml("")
        assert build.version == "1"
        assert build.steps == []
        assert warnings == []

    def test_extra_documents_ignored(self):
        build, warnings = parse_yaml("---\nversion: '1'\n---\nversion: '2'\n")
        assert build.version == "1"
        assert warnings == ["ignoring 1 additional YAML document(s); only the first is used"]

    def test_non_mapping_root(self):
        with pytest.raises(UnmarshalError, match="expected a mapping"):
            parse_yaml("- a\n- b\n")

    def test_syntax_error(self):
        with pytest.raises(UnmarshalError, match="unable to unmarshal yaml"):
            parse_yaml("steps: [\n")

    def test_unknown_keys_ignored(self):
        build, _ = parse_yaml("version: '1'\nunknown: value\n")
        assert build.version == "1"


class TestMetadata:
    def test_environment_default(self):
        build, _ = parse_yaml("version: '1'\n")
        assert build.metadata.environment == ["steps", "services", "secrets"]

    def test_null_environment_gets_default(self):
        build, _ = parse_yaml("metadata:\n  environment: ~\n")
        assert build.metadata.environment == ["steps", "services", "secrets"]

    def test_explicit_environment(self):
        build, _ = parse_yaml("metadata:\n  template: true\n  environment: [ steps ]\n")
        assert build.metadata.environment == ["steps"]
        assert build.metadata.template is True

    def test_auto_cancel(self):
        build, _ = parse_yaml("metadata:\n  auto_cancel:\n    running: true\n")
        assert build.metadata.auto_cancel.running is True
        assert build.metadata.auto_cancel.pending is None


class TestBuildConversion:
    def test_pipeline_api_summary(self):
        build, _ = parse_yaml(PIPELINE)
        summary = build.to_pipeline_api()
        assert summary.flavor == "large"
        assert summary.platform == "docker"
        assert summary.version == "1"
        assert summary.steps is True
        assert summary.services is True
        assert summary.stages is False
        assert summary.templates is False
        assert summary.internal_secrets is True
        assert summary.external_secrets is True

    def test_to_pipeline(self):
        build, _ = parse_yaml(PIPELINE)
        pipeline = build.to_pipeline()
        assert pipeline.worker == {"flavor": "large", "platform": "docker"}
        assert pipeline.environment == {"GLOBAL": "yes-please"}
        assert pipeline.services[0].detach is True
        assert pipeline.steps[0].ruleset.if_.event[0] == "push"
        assert pipeline.secrets[0].origin is None
        assert pipeline.secrets[1].origin.name == "vault"

    def test_to_dict(self):
        build, _ = parse_yaml(PIPELINE)
        data = build.to_pipeline().to_dict()
        assert data["steps"][0]["name"] == "test"
        assert data["steps"][0]["ruleset"]["if_"]["matcher"] == "filepath"

    def test_to_yaml_round_trip(self):
        build, _ = parse_yaml(PIPELINE)
        text = build.to_yaml()
        assert yaml.safe_load(text)["version"] == "1"

        again, _ = parse_yaml(text)
        assert [step.name for step in again.steps] == ["test"]
        assert again.steps[0].ruleset.if_.event == build.steps[0].ruleset.if_.event
        assert again.secrets[0].key == "docker_password"

    def test_model_validate_without_context(self):
        build = Build.model_validate({"steps": [{"name": "a", "image": "alpine"}]})
        assert build.version == "1"
        assert build.steps[0].pull == "not_present"

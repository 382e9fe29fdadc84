"""Tests for volume and ulimit shorthand decoding."""

import pytest

from vela_compiler.exceptions import UnmarshalError
from vela_compiler.models import Step, Ulimit, Volume, parse_yaml
from vela_compiler.pipeline import Ulimit as PipelineUlimit
from vela_compiler.pipeline import Volume as PipelineVolume


# ============================================================
# Volumes
# ============================================================


class TestVolumeShorthand:
    def test_three_parts(self):
        volume = Volume.from_shorthand("/foo:/bar:ro")
        assert (volume.source, volume.destination, volume.access_mode) == ("/foo", "/bar", "ro")

    def test_one_part(self):
        volume = Volume.from_shorthand("/foo")
        assert (volume.source, volume.destination, volume.access_mode) == ("/foo", "/foo", "ro")

    def test_two_parts(self):
        volume = Volume.from_shorthand("/foo:/bar")
        assert (volume.source, volume.destination, volume.access_mode) == ("/foo", "/bar", "ro")

    def test_explicit_mode(self):
        assert Volume.from_shorthand("/foo:/bar:rw").access_mode == "rw"

    def test_too_many_colons(self):
        with pytest.raises(ValueError, match="must contain at least 1 but no more than 2"):
            Volume.from_shorthand("/a:/b:/c:/d")


class TestVolumeObjects:
    def test_destination_defaults_to_source(self):
        volume = Volume.model_validate({"source": "/foo"})
        assert volume.destination == "/foo"
        assert volume.access_mode == "ro"

    def test_explicit_object(self):
        volume = Volume.model_validate({"source": "/x", "destination": "/y", "access_mode": "rw"})
        assert volume.to_pipeline() == PipelineVolume(source="/x", destination="/y", access_mode="rw")

    def test_step_shorthand_list(self):
        step = Step.model_validate({"name": "a", "image": "alpine", "volumes": ["/foo:/bar", "/tmp"]})
        assert [v.destination for v in step.volumes] == ["/bar", "/tmp"]

    def test_step_single_string(self):
        step = Step.model_validate({"name": "a", "image": "alpine", "volumes": "/foo:/bar:rw"})
        assert step.volumes[0].access_mode == "rw"

    def test_step_object_list(self):
        step = Step.model_validate({
            "name": "a",
            "image": "alpine",
            "volumes": [{"source": "/cache", "destination": "/root/.cache"}],
        })
        assert step.volumes[0].access_mode == "ro"

    def test_malformed_shorthand_fails_decode(self):
        text = "steps:\n  - name: a\n    image: alpine\n    volumes: [ '/a:/b:/c:/d' ]\n"
        with pytest.raises(UnmarshalError, match="no more than 2"):
            parse_yaml(text)


# ============================================================
# Ulimits
# ============================================================


class TestUlimits:
    def test_soft_only(self):
        ulimit = Ulimit.from_shorthand("nofile=1024")
        assert (ulimit.name, ulimit.soft, ulimit.hard) == ("nofile", 1024, 1024)

    def test_soft_and_hard(self):
        ulimit = Ulimit.from_shorthand("nofile=1024:2048")
        assert (ulimit.soft, ulimit.hard) == (1024, 2048)

    def test_missing_equal(self):
        with pytest.raises(ValueError, match="must contain 1 `=` \\(equal\\)"):
            Ulimit.from_shorthand("nofile")

    def test_too_many_colons(self):
        with pytest.raises(ValueError, match="can only contain 1 `:` \\(colon\\)"):
            Ulimit.from_shorthand("nofile=1:2:3")

    def test_non_integer(self):
        with pytest.raises(ValueError, match="non-integer"):
            Ulimit.from_shorthand("nofile=lots")

    def test_object_hard_defaults_to_soft(self):
        ulimit = Ulimit.model_validate({"name": "nproc", "soft": 64})
        assert ulimit.to_pipeline() == PipelineUlimit(name="nproc", soft=64, hard=64)

    def test_step_ulimits(self):
        step = Step.model_validate({"name": "a", "image": "alpine", "ulimits": ["nofile=1024:2048"]})
        assert step.ulimits[0].hard == 2048

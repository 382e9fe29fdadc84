"""
YAML document models for Vela pipelines.

The validators on these models are the decode hooks that normalise
rendered template output: ruleset merging, legacy event expansion,
stage-map decoding, volume/ulimit/secret shorthand and pull defaulting.
"""

from .build import Build, CancelOptions, Git, Metadata, PipelineSummary, Token, Worker
from .parser import parse_yaml
from .ruleset import Rules, Ruleset, expand_events
from .secret import Origin, Secret, StepSecret
from .service import Service
from .stage import Stage
from .step import Step
from .template import StepTemplate, Template
from .ulimit import Ulimit
from .volume import Volume

__all__ = [
    "Build",
    "CancelOptions",
    "Git",
    "Metadata",
    "Origin",
    "PipelineSummary",
    "Rules",
    "Ruleset",
    "Secret",
    "Service",
    "Stage",
    "Step",
    "StepSecret",
    "StepTemplate",
    "Template",
    "Token",
    "Ulimit",
    "Volume",
    "Worker",
    "expand_events",
    "parse_yaml",
]

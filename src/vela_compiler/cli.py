"""
vela-compile command line.

Renders a template file and prints the compiled pipeline YAML:

    vela-compile render stages.yml --engine native --vars vars.yml
    vela-compile render build.star --engine starlark --step build --template-name go
"""

import argparse
import logging
import sys
from pathlib import Path
from typing import Any, Dict, List, Optional

import yaml
from rich.console import Console
from rich.markup import escape
from rich.syntax import Syntax

from .compiler import Engine, RenderResult, render_full_pipeline_template, render_step_template
from .config import get_config
from .exceptions import CompilerError
from .logging_config import configure_logging

logger = logging.getLogger(__name__)


def _parse_env(pairs: List[str]) -> Dict[str, str]:
    environment: Dict[str, str] = {}
    for pair in pairs:
        key, sep, value = pair.partition("=")
        if not sep or not key:
            raise argparse.ArgumentTypeError(f"invalid --env value '{pair}', expected KEY=VALUE")
        environment[key] = value
    return environment


def _load_vars(path: Optional[Path]) -> Dict[str, Any]:
    if path is None:
        return {}
    data = yaml.safe_load(path.read_text(encoding="utf-8"))
    if data is None:
        return {}
    if not isinstance(data, dict):
        raise argparse.ArgumentTypeError(f"variables file {path} must contain a mapping")
    return data


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="vela-compile", description="Vela pipeline template compiler")
    subparsers = parser.add_subparsers(dest="command", required=True)

    render = subparsers.add_parser("render", help="Render a template and print the pipeline YAML")
    render.add_argument("template", type=Path, help="Template file")
    render.add_argument("--engine", "-e", help="Template engine: native (go, golang) or sandboxed (starlark)")
    render.add_argument("--step", help="Render as a step template for this step name")
    render.add_argument("--template-name", help="Template display name used to prefix steps (default: file stem)")
    render.add_argument("--vars", type=Path, help="YAML/JSON file with template variables")
    render.add_argument("--env", action="append", default=[], metavar="KEY=VALUE",
                        help="Platform variable, e.g. VELA_BUILD_AUTHOR=octocat (repeatable)")
    render.add_argument("--step-limit", type=int, help="Sandbox step budget (default: configured limit)")
    render.add_argument("--verbose", "-v", action="store_true", help="Verbose logging")
    return parser


def _render(args: argparse.Namespace) -> RenderResult:
    body = args.template.read_text(encoding="utf-8")
    engine = Engine.parse(args.engine if args.engine is not None else get_config().default_engine)
    environment = _parse_env(args.env)
    variables = _load_vars(args.vars)

    if args.step:
        return render_step_template(
            engine, body, args.step, args.template_name or args.template.stem,
            environment, variables, args.step_limit,
        )
    if args.template_name:
        return render_full_pipeline_template(
            engine, body, environment, variables, args.step_limit, name=args.template_name,
        )
    return render_full_pipeline_template(engine, body, environment, variables, args.step_limit)


def main(argv: Optional[List[str]] = None) -> int:
    """Entry point for the vela-compile console script."""
    parser = build_parser()
    args = parser.parse_args(argv)

    configure_logging(logging.DEBUG if args.verbose else None)
    console = Console()
    err_console = Console(stderr=True)

    try:
        result = _render(args)
    except CompilerError as e:
        err_console.print(f"[bold red]error:[/bold red] {escape(str(e))}", markup=True, highlight=False)
        return 1
    except (OSError, argparse.ArgumentTypeError, yaml.YAMLError) as e:
        err_console.print(f"[bold red]error:[/bold red] {escape(str(e))}", markup=True, highlight=False)
        return 1

    console.print(Syntax(result.pipeline.to_yaml(), "yaml", background_color="default"))
    for warning in result.warnings:
        err_console.print(f"[yellow]warning:[/yellow] {escape(warning)}", markup=True, highlight=False)
    return 0


if __name__ == "__main__":
    sys.exit(main())

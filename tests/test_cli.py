"""Tests for the vela-compile command line."""

import argparse

import pytest

from vela_compiler.cli import _load_vars, _parse_env, build_parser, main


@pytest.fixture
def pipeline_file(tmp_path, read_template):
    path = tmp_path / "pipeline.yml"
    path.write_text(read_template("native/pipeline.yml"), encoding="utf-8")
    return path


@pytest.fixture
def vars_file(tmp_path):
    path = tmp_path / "vars.yml"
    path.write_text("names: [ lint, test ]\nimage: golang\n", encoding="utf-8")
    return path


class TestArguments:
    def test_parse_env(self):
        assert _parse_env(["VELA_BUILD_AUTHOR=octocat", "A=b=c"]) == {"VELA_BUILD_AUTHOR": "octocat", "A": "b=c"}

    def test_parse_env_invalid(self):
        with pytest.raises(argparse.ArgumentTypeError, match="expected KEY=VALUE"):
            _parse_env(["NOVALUE"])

    def test_load_vars(self, vars_file):
        assert _load_vars(vars_file) == {"names": ["lint", "test"], "image": "golang"}

    def test_load_vars_requires_mapping(self, tmp_path):
        path = tmp_path / "vars.yml"
        path.write_text("- a\n", encoding="utf-8")
        with pytest.raises(argparse.ArgumentTypeError, match="must contain a mapping"):
            _load_vars(path)

    def test_parser_defaults(self):
        args = build_parser().parse_args(["render", "x.yml"])
        assert args.engine is None
        assert args.step is None
        assert args.env == []
        assert args.step_limit is None


class TestMain:
    def test_render_pipeline(self, pipeline_file, vars_file, capsys):
        assert main(["render", str(pipeline_file), "--vars", str(vars_file)]) == 0
        out = capsys.readouterr().out
        assert "name: lint" in out
        assert "name: test" in out

    def test_render_step_template(self, tmp_path, read_template, vars_file, capsys):
        path = tmp_path / "golang.star"
        path.write_text(read_template("script/step.star"), encoding="utf-8")
        code = main([
            "render", str(path),
            "--engine", "starlark",
            "--step", "sample",
            "--vars", str(vars_file),
            "--env", "VELA_BUILD_AUTHOR=octocat",
        ])
        assert code == 0
        out = capsys.readouterr().out
        assert "golang_install" in out
        assert "octocat" in out

    def test_template_name_override(self, pipeline_file, vars_file, capsys):
        code = main(["render", str(pipeline_file), "--vars", str(vars_file), "--step", "s", "--template-name", "go"])
        assert code == 0
        assert "go_lint" in capsys.readouterr().out

    def test_compile_error(self, pipeline_file, capsys):
        assert main(["render", str(pipeline_file)]) == 1
        err = capsys.readouterr().err
        assert "error:" in err
        assert "[native] templated-base:" in err

    def test_sandboxed_error_keeps_engine_tag(self, tmp_path, capsys):
        path = tmp_path / "broken.star"
        path.write_text("def main(ctx):\n    fail('[/oops]')\n", encoding="utf-8")
        assert main(["render", str(path), "-e", "starlark"]) == 1
        assert "[sandboxed] templated-base: line 2: fail: [/oops]" in capsys.readouterr().err

    def test_missing_file(self, tmp_path, capsys):
        assert main(["render", str(tmp_path / "missing.yml")]) == 1
        assert "error:" in capsys.readouterr().err

    def test_unknown_engine(self, pipeline_file, capsys):
        assert main(["render", str(pipeline_file), "--engine", "lua"]) == 1
        assert "unknown template engine" in capsys.readouterr().err

    def test_step_limit(self, tmp_path, capsys):
        path = tmp_path / "loop.star"
        path.write_text("def main(ctx):\n    return {'steps': [{'name': str(i)} for i in range(100)]}\n")
        assert main(["render", str(path), "-e", "starlark", "--step-limit", "10"]) == 1
        assert "computation cancelled" in capsys.readouterr().err

    def test_warnings_on_stderr(self, tmp_path, capsys):
        path = tmp_path / "legacy.yml"
        path.write_text("steps:\n  - name: a\n    image: alpine\n    pull: true\n", encoding="utf-8")
        assert main(["render", str(path)]) == 0
        captured = capsys.readouterr()
        assert "deprecated" in captured.err
        assert "pull: always" in captured.out

    def test_warning_text_is_not_markup(self, tmp_path, capsys):
        path = tmp_path / "legacy.yml"
        path.write_text("steps:\n  - name: a[/x]\n    image: alpine\n    pull: true\n", encoding="utf-8")
        assert main(["render", str(path)]) == 0
        assert "step a[/x]: pull policy 'true' is deprecated" in capsys.readouterr().err

    def test_subcommand_required(self):
        with pytest.raises(SystemExit):
            main([])

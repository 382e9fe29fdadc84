"""Tests for sandbox value -> JSON/YAML text conversion."""

import pytest
import yaml

from vela_compiler.exceptions import ConversionError, InvalidPipelineReturnError
from vela_compiler.template.script import Many, Single, fragment_from_value, write_fragment, write_json
from vela_compiler.template.script.values import Builtin, SandboxRange
from vela_compiler.template.script.writer import format_float, json_string, quote_string


class TestFormatFloat:
    @pytest.mark.parametrize("value,expected", [
        (1.5, "1.5"),
        (1.0, "1"),
        (-2.5, "-2.5"),
        (0.0, "0"),
        (123456.0, "123456"),
        (1e6, "1e+06"),
        (1e21, "1e+21"),
        (0.0001, "0.0001"),
        (1e-05, "1e-05"),
        (1.25e-07, "1.25e-07"),
        (float("nan"), "NaN"),
        (float("inf"), "+Inf"),
        (float("-inf"), "-Inf"),
    ])
    def test_format(self, value, expected):
        assert format_float(value) == expected


class TestStrings:
    def test_plain_string_quoted(self):
        assert write_json("hello") == '"hello"'

    def test_quotes_and_backslashes(self):
        assert quote_string('say "hi" \\o/') == '"say \\"hi\\" \\\\o/"'

    def test_html_characters_kept_in_plain_strings(self):
        assert write_json("<x> & y") == '"<x> & y"'

    def test_control_characters_use_json_escaping(self):
        assert write_json("a\n<b>") == '"a\\n\\u003cb\\u003e"'

    def test_non_printable_escapes(self):
        assert quote_string("\x7f") == '"\\x7f"'
        assert quote_string("\u200b") == '"\\u200b"'

    def test_unicode_kept(self):
        assert write_json("héllo") == '"héllo"'

    def test_json_string_escapes_line_separators(self):
        assert json_string("\u2028") == '"\\u2028"'


class TestWriteJson:
    def test_containers(self):
        value = {"a": [1, 2.5, None, True], "b": (1,), "c": SandboxRange(range(3))}
        assert write_json(value) == '{"a": [1, 2.5, null, true], "b": [1], "c": [0, 1, 2]}'

    def test_insertion_order(self):
        assert write_json({"z": 1, "a": 2}) == '{"z": 1, "a": 2}'

    def test_output_is_valid_yaml(self):
        value = {"steps": [{"name": "a", "commands": ["echo \"hi\"", "x: y"]}], "n": 1.5}
        assert yaml.safe_load(write_json(value)) == {
            "steps": [{"name": "a", "commands": ['echo "hi"', "x: y"]}],
            "n": 1.5,
        }

    def test_function_rejected(self):
        with pytest.raises(ConversionError, match="builtin_function_or_method"):
            write_json({"f": Builtin("len", lambda interp, x: len(x))})

    def test_cycle_rejected(self):
        value = {}
        value["self"] = value
        with pytest.raises(ConversionError, match="cyclic"):
            write_json(value)


class TestFragments:
    def test_single(self):
        fragment = fragment_from_value({"version": "1"})
        assert isinstance(fragment, Single)
        assert write_fragment(fragment) == '---\n{"version": "1"}\n'

    def test_many(self):
        fragment = fragment_from_value([{"a": 1}, {"b": 2}])
        assert isinstance(fragment, Many)
        assert write_fragment(fragment) == '---\n{"a": 1}\n---\n{"b": 2}\n'

    @pytest.mark.parametrize("value,type_name", [
        ("steps", "string"),
        (None, "NoneType"),
        ((), "tuple"),
        ([{"a": 1}, 2], "list of int"),
    ])
    def test_invalid_return(self, value, type_name):
        with pytest.raises(InvalidPipelineReturnError) as exc_info:
            fragment_from_value(value, template="t")
        assert exc_info.value.type_name == type_name
        assert exc_info.value.template == "t"
        assert f"invalid pipeline return in template: {type_name}" in str(exc_info.value)

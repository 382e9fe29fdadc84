"""
Sandbox value -> JSON text.

The text is fed to the YAML decoder, so it only has to be valid YAML, but
it is kept byte-compatible with the output pipelines have always received:

- ``None`` -> ``null``, booleans -> ``true``/``false``
- ints in exact decimal form
- floats in shortest general form (``1.5``, ``1e+06``, ``1e-05``)
- strings double-quoted; strings with control characters or characters
  beyond the Basic Multilingual Plane use full JSON escaping
- lists, tuples and ranges as ``[a, b]``; dicts as ``{k: v}`` in
  insertion order
"""

import json
import math
from dataclasses import dataclass
from decimal import Decimal
from typing import Any, List, Optional, Set, Union

from ...exceptions import ConversionError, InvalidPipelineReturnError
from .values import SandboxRange, type_name

DOCUMENT_SEPARATOR = "---\n"


# ============================================================
# SCALARS
# ============================================================

def format_float(value: float) -> str:
    """Shortest round-tripping digits, exponent form when exp < -4 or exp >= 6."""
    if math.isnan(value):
        return "NaN"
    if math.isinf(value):
        return "+Inf" if value > 0 else "-Inf"
    if value == 0:
        return "-0" if math.copysign(1.0, value) < 0 else "0"

    sign = "-" if value < 0 else ""
    _, digit_tuple, exponent = Decimal(repr(abs(value))).as_tuple()
    digits = list(digit_tuple)
    while len(digits) > 1 and digits[-1] == 0:
        digits.pop()
        exponent += 1
    text = "".join(str(d) for d in digits)
    exp = exponent + len(digits) - 1

    if exp < -4 or exp >= 6:
        mantissa = text[0] + ("." + text[1:] if len(text) > 1 else "")
        exp_sign = "-" if exp < 0 else "+"
        return f"{sign}{mantissa}e{exp_sign}{abs(exp):02d}"

    if exp < 0:
        return f"{sign}0.{'0' * (-exp - 1)}{text}"
    integer = text[:exp + 1].ljust(exp + 1, "0")
    fraction = text[exp + 1:]
    return f"{sign}{integer}.{fraction}" if fraction else f"{sign}{integer}"


def quote_is_safe(text: str) -> bool:
    """True when every character is at least 0x20 and inside the BMP."""
    return all(0x20 <= ord(ch) < 0x10000 for ch in text)


NAMED_ESCAPES = {
    "\a": "\\a",
    "\b": "\\b",
    "\f": "\\f",
    "\n": "\\n",
    "\r": "\\r",
    "\t": "\\t",
    "\v": "\\v",
}


def quote_string(text: str) -> str:
    """Double-quote ``text``, escaping quotes, backslashes and non-printable characters."""
    parts = ['"']
    for ch in text:
        code = ord(ch)
        if ch == '"':
            parts.append('\\"')
        elif ch == "\\":
            parts.append("\\\\")
        elif ch in NAMED_ESCAPES:
            parts.append(NAMED_ESCAPES[ch])
        elif ch.isprintable():
            parts.append(ch)
        elif code < 0x80:
            parts.append(f"\\x{code:02x}")
        elif code < 0x10000:
            parts.append(f"\\u{code:04x}")
        else:
            parts.append(f"\\U{code:08x}")
    parts.append('"')
    return "".join(parts)


def json_string(text: str) -> str:
    data = json.dumps(text, ensure_ascii=False)
    for raw, escaped in (("<", "\\u003c"), (">", "\\u003e"), ("&", "\\u0026"),
                         ("\u2028", "\\u2028"), ("\u2029", "\\u2029")):
        data = data.replace(raw, escaped)
    return data


# ============================================================
# WRITER
# ============================================================

def write_json(value: Any) -> str:
    """
    Serialize a sandbox value.

    Raises:
        ConversionError: for functions and cyclic values
    """
    out: List[str] = []
    _write(out, value, set())
    return "".join(out)


def _write(out: List[str], value: Any, seen: Set[int]) -> None:
    if value is None:
        out.append("null")
    elif isinstance(value, bool):
        out.append("true" if value else "false")
    elif isinstance(value, int):
        out.append(str(value))
    elif isinstance(value, float):
        out.append(format_float(value))
    elif isinstance(value, str):
        out.append(quote_string(value) if quote_is_safe(value) else json_string(value))
    elif isinstance(value, (list, tuple, SandboxRange, dict)):
        if id(value) in seen:
            raise ConversionError("unable to convert to json: cyclic value")
        seen.add(id(value))
        if isinstance(value, dict):
            out.append("{")
            for i, (key, item) in enumerate(value.items()):
                if i:
                    out.append(", ")
                _write(out, key, seen)
                out.append(": ")
                _write(out, item, seen)
            out.append("}")
        else:
            out.append("[")
            for i, item in enumerate(value):
                if i:
                    out.append(", ")
                _write(out, item, seen)
            out.append("]")
        seen.discard(id(value))
    else:
        raise ConversionError(f"unable to convert to json: {type_name(value)} value")


# ============================================================
# PIPELINE FRAGMENTS
# ============================================================

@dataclass
class Single:
    """``main`` returned one mapping."""
    mapping: dict


@dataclass
class Many:
    """``main`` returned a list of mappings."""
    mappings: List[dict]


PipelineFragment = Union[Single, Many]


def fragment_from_value(value: Any, template: Optional[str] = None) -> PipelineFragment:
    """
    Resolve the shape of a ``main`` return value.

    Raises:
        InvalidPipelineReturnError: for anything but a dict or a list of dicts
    """
    if isinstance(value, dict):
        return Single(value)
    if isinstance(value, list):
        for item in value:
            if not isinstance(item, dict):
                raise InvalidPipelineReturnError(f"list of {type_name(item)}", template=template)
        return Many(value)
    raise InvalidPipelineReturnError(type_name(value), template=template)


def write_fragment(fragment: PipelineFragment) -> str:
    """Emit each mapping of the fragment as its own YAML document."""
    mappings = [fragment.mapping] if isinstance(fragment, Single) else fragment.mappings
    return "".join(f"{DOCUMENT_SEPARATOR}{write_json(mapping)}\n" for mapping in mappings)

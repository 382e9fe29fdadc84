"""
Native Template Functions - the allow-list exposed to native templates.

Templates see Jinja2's own filter library plus a small set of sprig-named
helpers (``toYaml``, ``b64enc``, ``hasPrefix``, ...) for pipelines written
against the Go template function names. Nothing reachable from a template
can observe the host process (no environment variable, file or network
access); the only platform data a template can see is what ``vela(key)``
returns from the supplied PlatformVariables.

Each helper takes its subject as the first argument so it works both as
a call (``{{ b64enc(name) }}``) and as a filter (``{{ name | b64enc }}``).

Categories:
- Platform lookup
- Serialization
- String operations
- Collections
- Arithmetic
- Formatting
"""

import base64
import binascii
import json
from typing import Any, Callable, Dict, List

import yaml
from jinja2.defaults import DEFAULT_FILTERS, DEFAULT_NAMESPACE
from jinja2.filters import do_indent
from jinja2.sandbox import safe_range

from ..platform import PlatformVariables

# Jinja defaults whose output changes from one render to the next
NONDETERMINISTIC = frozenset({"random", "lipsum"})


# ============================================================
# SERIALIZATION
# ============================================================

def to_yaml(value: Any) -> str:
    """Serialize to block-style YAML without a trailing newline."""
    return yaml.safe_dump(value, default_flow_style=False, sort_keys=False).rstrip("\n")


def to_json(value: Any) -> str:
    """Plain ``json.dumps``; Jinja's ``tojson`` HTML-escapes ``<``, ``>``, ``&`` and ``'``."""
    return json.dumps(value)


def b64enc(value: Any) -> str:
    return base64.b64encode(str(value).encode("utf-8")).decode("ascii")


def b64dec(value: Any) -> str:
    try:
        return base64.b64decode(str(value), validate=True).decode("utf-8")
    except (binascii.Error, UnicodeDecodeError) as e:
        raise ValueError(f"b64dec: invalid base64 input: {e}") from e


# ============================================================
# STRING OPERATIONS
# ============================================================

def split(value: Any, sep: str) -> List[str]:
    return str(value).split(sep)


def contains(value: Any, needle: Any) -> bool:
    """Substring test for strings, membership test for collections."""
    if isinstance(value, str):
        return str(needle) in value
    return needle in value


def has_prefix(value: Any, prefix: str) -> bool:
    return str(value).startswith(prefix)


def has_suffix(value: Any, suffix: str) -> bool:
    return str(value).endswith(suffix)


# ============================================================
# COLLECTIONS / LOGIC
# ============================================================

def ternary(condition: Any, if_true: Any, if_false: Any) -> Any:
    return if_true if condition else if_false


def make_list(*items: Any) -> List[Any]:
    return list(items)


def make_dict(*pairs: Any, **kwargs: Any) -> Dict[Any, Any]:
    """Build a dict from alternating key/value arguments and/or keyword arguments."""
    if len(pairs) % 2:
        raise ValueError("dict: expected an even number of key/value arguments")
    result = {pairs[i]: pairs[i + 1] for i in range(0, len(pairs), 2)}
    result.update(kwargs)
    return result


def keys(mapping: Dict[Any, Any]) -> List[Any]:
    return list(mapping.keys())


def has_key(mapping: Dict[Any, Any], key: Any) -> bool:
    return key in mapping


# ============================================================
# ARITHMETIC
# ============================================================

def _is_int(value: Any) -> bool:
    return isinstance(value, int) and not isinstance(value, bool)


def add(a: Any, b: Any) -> Any:
    return a + b


def sub(a: Any, b: Any) -> Any:
    return a - b


def mul(a: Any, b: Any) -> Any:
    return a * b


def div(a: Any, b: Any) -> Any:
    """Integer division truncating toward zero for integers, true division otherwise."""
    if _is_int(a) and _is_int(b):
        quotient = abs(a) // abs(b)
        return -quotient if (a < 0) != (b < 0) else quotient
    return a / b


def mod(a: Any, b: Any) -> Any:
    return a % b


# ============================================================
# FORMATTING
# ============================================================

def quote(value: Any) -> str:
    return json.dumps("" if value is None else str(value))


def squote(value: Any) -> str:
    return "'" + ("" if value is None else str(value)) + "'"


def nindent(value: Any, spaces: int) -> str:
    """Newline, then every line (blank ones included) indented by ``spaces``."""
    return "\n" + do_indent(str(value), spaces, first=True, blank=True)


# ============================================================
# REGISTRY
# ============================================================

def build_functions(platform: PlatformVariables) -> Dict[str, Callable]:
    """
    Build the sprig-named helpers for one render call.

    A new table is returned every call so no render can alter what
    another render sees.
    """
    return {
        # Platform lookup
        "vela": platform.lookup,

        # Serialization
        "toYaml": to_yaml,
        "toJson": to_json,
        "b64enc": b64enc,
        "b64dec": b64dec,

        # String operations
        "split": split,
        "contains": contains,
        "hasPrefix": has_prefix,
        "hasSuffix": has_suffix,

        # Collections / logic
        "ternary": ternary,
        "keys": keys,
        "hasKey": has_key,

        # Arithmetic
        "add": add,
        "sub": sub,
        "mul": mul,
        "div": div,
        "mod": mod,

        # Formatting
        "quote": quote,
        "squote": squote,
        "nindent": nindent,
    }


def build_filters(platform: PlatformVariables) -> Dict[str, Callable]:
    """Jinja2's filter library without its nondeterministic entries, plus the helpers."""
    filters = {name: f for name, f in DEFAULT_FILTERS.items() if name not in NONDETERMINISTIC}
    filters.update(build_functions(platform))
    return filters


def build_globals(platform: PlatformVariables) -> Dict[str, Any]:
    """Jinja2's default namespace with a bounded ``range``, plus the helpers."""
    namespace = {name: f for name, f in DEFAULT_NAMESPACE.items() if name not in NONDETERMINISTIC}
    namespace.update(build_functions(platform))
    namespace.update({
        "range": safe_range,
        "list": make_list,
        "dict": make_dict,
    })
    return namespace

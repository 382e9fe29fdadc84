"""
Sandbox value model and the host <-> sandbox value bridge.

Inside the sandbox, data is plain Python ``None``, ``bool``, ``int``,
``float``, ``str``, ``list``, ``tuple`` and ``dict``, plus the callable and
range types defined here. Host values cross the boundary through a closed
set of conversions chosen by ``classify``:

- PRIMITIVE: passed through (bytes are decoded as UTF-8)
- SEQUENCE: converted element-wise into a tuple
- MAPPING: converted key- and value-wise into a dict
- OPAQUE: pydantic models and dataclasses are dumped to JSON-compatible
  data first; anything else must survive a JSON round-trip
"""

import dataclasses
import json
from collections.abc import Mapping, Sequence
from enum import Enum
from typing import Any, Callable, Dict, Optional, Set

from pydantic import BaseModel

from ...exceptions import ConversionError


# ============================================================
# SANDBOX RUNTIME TYPES
# ============================================================

class Function:
    """A function defined by a script with ``def`` or ``lambda``."""

    def __init__(self, name, node, defaults, kw_defaults, closure, local_names, is_lambda=False):
        self.name = name
        self.node = node
        self.defaults = defaults
        self.kw_defaults = kw_defaults
        self.closure = closure
        self.local_names = local_names
        self.is_lambda = is_lambda

    def __repr__(self) -> str:
        return f"<function {self.name}>"


class Builtin:
    """A predeclared function; ``impl`` receives the interpreter first."""

    def __init__(self, name: str, impl: Callable):
        self.name = name
        self.impl = impl

    def __repr__(self) -> str:
        return f"<built-in function {self.name}>"


class BoundMethod:
    """A string/list/dict method bound to its receiver."""

    def __init__(self, name: str, receiver: Any, impl: Callable):
        self.name = name
        self.receiver = receiver
        self.impl = impl

    def __repr__(self) -> str:
        return f"<built-in method {self.name} of {type_name(self.receiver)} value>"


class SandboxRange:
    """Immutable lazy integer sequence returned by ``range()``."""

    def __init__(self, values: range):
        self.values = values

    def __len__(self) -> int:
        return len(self.values)

    def __iter__(self):
        return iter(self.values)

    def __getitem__(self, index):
        if isinstance(index, slice):
            return SandboxRange(self.values[index])
        return self.values[index]

    def __eq__(self, other) -> bool:
        return isinstance(other, SandboxRange) and self.values == other.values

    def __hash__(self) -> int:
        return hash(self.values)

    def __repr__(self) -> str:
        r = self.values
        if r.step == 1:
            return f"range({r.start}, {r.stop})"
        return f"range({r.start}, {r.stop}, {r.step})"


CALLABLE_TYPES = (Function, Builtin, BoundMethod)


def is_callable(value: Any) -> bool:
    return isinstance(value, CALLABLE_TYPES)


def type_name(value: Any) -> str:
    """The type name scripts see from ``type()`` and in error messages."""
    if value is None:
        return "NoneType"
    if isinstance(value, bool):
        return "bool"
    if isinstance(value, int):
        return "int"
    if isinstance(value, float):
        return "float"
    if isinstance(value, str):
        return "string"
    if isinstance(value, list):
        return "list"
    if isinstance(value, tuple):
        return "tuple"
    if isinstance(value, dict):
        return "dict"
    if isinstance(value, SandboxRange):
        return "range"
    if isinstance(value, Function):
        return "function"
    if isinstance(value, (Builtin, BoundMethod)):
        return "builtin_function_or_method"
    return type(value).__name__


# ============================================================
# HOST -> SANDBOX
# ============================================================

class Kind(Enum):
    """How a host value crosses into the sandbox."""
    PRIMITIVE = "primitive"
    SEQUENCE = "sequence"
    MAPPING = "mapping"
    OPAQUE = "opaque"


def classify(value: Any) -> Kind:
    if value is None or isinstance(value, (bool, int, float, str, bytes)):
        return Kind.PRIMITIVE
    if isinstance(value, Mapping):
        return Kind.MAPPING
    if isinstance(value, Sequence):
        return Kind.SEQUENCE
    return Kind.OPAQUE


def _opaque_to_data(value: Any) -> Any:
    if isinstance(value, BaseModel):
        return value.model_dump(mode="json")
    if dataclasses.is_dataclass(value) and not isinstance(value, type):
        data = dataclasses.asdict(value)
    else:
        data = value
    try:
        return json.loads(json.dumps(data))
    except (TypeError, ValueError) as e:
        raise ConversionError(f"unable to convert to starlark type: {value!r}") from e


def to_sandbox(value: Any, _seen: Optional[Set[int]] = None) -> Any:
    """
    Convert a host value into a sandbox value.

    Raises:
        ConversionError: for values with no JSON representation and for
            self-referencing sequences or mappings
    """
    kind = classify(value)
    if kind == Kind.PRIMITIVE:
        if isinstance(value, bytes):
            return value.decode("utf-8", errors="replace")
        return value
    if kind == Kind.OPAQUE:
        return to_sandbox(_opaque_to_data(value), _seen)

    seen = _seen if _seen is not None else set()
    if id(value) in seen:
        raise ConversionError(f"unable to convert cyclic {kind.value} value into the sandbox")
    seen.add(id(value))
    try:
        if kind == Kind.SEQUENCE:
            return tuple(to_sandbox(item, seen) for item in value)
        return {to_sandbox(k, seen): to_sandbox(v, seen) for k, v in value.items()}
    finally:
        seen.discard(id(value))


# ============================================================
# SANDBOX -> HOST
# ============================================================

def from_sandbox(value: Any, _seen: Optional[Set[int]] = None) -> Any:
    """
    Convert a sandbox value back into plain host data.

    Tuples and ranges become lists. Callables cannot leave the sandbox.

    Raises:
        ConversionError: for callables and cyclic values
    """
    if value is None or isinstance(value, (bool, int, float, str)):
        return value
    if is_callable(value):
        raise ConversionError(f"unable to convert {type_name(value)} value out of the sandbox")

    seen = _seen if _seen is not None else set()
    if id(value) in seen:
        raise ConversionError("unable to convert cyclic value out of the sandbox")
    seen.add(id(value))
    try:
        if isinstance(value, (list, tuple, SandboxRange)):
            return [from_sandbox(item, seen) for item in value]
        if isinstance(value, dict):
            result: Dict[Any, Any] = {}
            for k, v in value.items():
                key = from_sandbox(k, seen)
                if isinstance(key, list):
                    key = tuple(key)
                result[key] = from_sandbox(v, seen)
            return result
    finally:
        seen.discard(id(value))
    raise ConversionError(f"unable to convert {type_name(value)} value out of the sandbox")

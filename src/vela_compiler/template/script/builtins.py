"""
Script Builtins - the predeclared universe and method allow-lists.

Every builtin receives the running interpreter as its first argument so it
can iterate (and be charged for) sandbox values, call back into script
functions and raise positioned errors. Nothing here can reach the host:
there is no file, network, process or environment access.

Categories:
- String conversion (str/repr)
- Universe functions
- String, list and dict methods
"""

import logging
import string
from typing import Any, Callable, Dict, Iterator, List, Optional, Set

from .values import Builtin, BoundMethod, SandboxRange, is_callable, type_name
from .writer import quote_string

logger = logging.getLogger(__name__)


# ============================================================
# STRING CONVERSION
# ============================================================

def to_str(value: Any, interp=None) -> str:
    """``str(x)``: strings are returned as-is, everything else as ``repr(x)``."""
    if isinstance(value, str):
        if interp is not None:
            interp.charge_bulk(len(value))
        return value
    return to_repr(value, interp)


def to_repr(value: Any, interp=None, _seen: Optional[Set[int]] = None) -> str:
    """
    ``repr(x)`` for sandbox values.

    With ``interp`` given, every container element visited is ticked and
    every string is charged before it is quoted, so shared references
    cannot build an output larger than the budget allows.
    """
    if value is None:
        return "None"
    if isinstance(value, bool):
        return "True" if value else "False"
    if isinstance(value, (int, float)):
        return repr(value)
    if isinstance(value, str):
        if interp is not None:
            interp.charge_bulk(len(value))
        return quote_string(value)
    if isinstance(value, SandboxRange) or is_callable(value):
        return repr(value)

    seen = _seen if _seen is not None else set()
    if id(value) in seen:
        return "[...]" if isinstance(value, list) else "{...}"
    seen.add(id(value))
    try:
        if isinstance(value, list):
            return "[" + ", ".join(_repr_elements(value, interp, seen)) + "]"
        if isinstance(value, tuple):
            if len(value) == 1:
                return "(" + "".join(_repr_elements(value, interp, seen)) + ",)"
            return "(" + ", ".join(_repr_elements(value, interp, seen)) + ")"
        if isinstance(value, dict):
            return "{" + ", ".join(_repr_items(value, interp, seen)) + "}"
    finally:
        seen.discard(id(value))
    return f"<{type_name(value)}>"


def _repr_elements(values, interp, seen: Set[int]) -> Iterator[str]:
    for v in values:
        if interp is not None:
            interp.tick()
        yield to_repr(v, interp, seen)


def _repr_items(mapping: Dict[Any, Any], interp, seen: Set[int]) -> Iterator[str]:
    for k, v in mapping.items():
        if interp is not None:
            interp.tick()
        yield f"{to_repr(k, interp, seen)}: {to_repr(v, interp, seen)}"


def java_string_hash(text: str) -> int:
    """32-bit signed hash over UTF-16 code units (``h = 31*h + c``)."""
    data = text.encode("utf-16-le", "surrogatepass")
    h = 0
    for i in range(0, len(data), 2):
        h = (31 * h + (data[i] | (data[i + 1] << 8))) & 0xFFFFFFFF
    return h - 0x100000000 if h >= 0x80000000 else h


def _is_number(value: Any) -> bool:
    return isinstance(value, (int, float)) and not isinstance(value, bool)


def _is_int(value: Any) -> bool:
    return isinstance(value, int) and not isinstance(value, bool)


def _pairs_into(interp, target: Dict[Any, Any], source: Any, fname: str) -> None:
    if isinstance(source, dict):
        interp.charge_bulk(len(source))
        target.update(source)
        return
    for pair in interp.iterate(source):
        if not isinstance(pair, (list, tuple)) or len(pair) != 2:
            raise ValueError(f"{fname}: element is not a pair: {to_repr(pair, interp)}")
        interp.check_hashable(pair[0])
        target[pair[0]] = pair[1]


# ============================================================
# UNIVERSE FUNCTIONS
# ============================================================

def _abs(interp, x):
    if not _is_number(x):
        raise TypeError(f"got {type_name(x)}, want int or float")
    return interp.check_int(abs(x))


def _all(interp, iterable):
    for value in interp.iterate(iterable):
        if not value:
            return False
    return True


def _any(interp, iterable):
    for value in interp.iterate(iterable):
        if value:
            return True
    return False


def _bool(interp, x=False):
    return bool(x)


def _dict(interp, *args, **kwargs):
    if len(args) > 1:
        raise TypeError(f"got {len(args)} positional arguments, want at most 1")
    result: Dict[Any, Any] = {}
    if args:
        _pairs_into(interp, result, args[0], "dict")
    result.update(kwargs)
    return result


def _enumerate(interp, iterable, start=0):
    if not _is_int(start):
        raise TypeError(f"start: got {type_name(start)}, want int")
    return [(start + i, value) for i, value in enumerate(interp.iterate(iterable))]


def _fail(interp, *args, sep=" "):
    message = sep.join(to_str(arg, interp) for arg in args)
    raise interp.error(f"fail: {message}")


def _float(interp, x=0.0):
    if isinstance(x, (bool, int, float)):
        return float(x)
    if isinstance(x, str):
        return float(x)
    raise TypeError(f"got {type_name(x)}, want number or string")


def _getattr(interp, obj, name, *default):
    if not isinstance(name, str):
        raise TypeError(f"attribute name: got {type_name(name)}, want string")
    method = lookup_method(obj, name)
    if method is not None:
        return method
    if default:
        return default[0]
    raise interp.error(f"{type_name(obj)} has no .{name} field or method")


def _hasattr(interp, obj, name):
    if not isinstance(name, str):
        raise TypeError(f"attribute name: got {type_name(name)}, want string")
    return lookup_method(obj, name) is not None


def _hash(interp, x):
    if not isinstance(x, str):
        raise TypeError(f"got {type_name(x)}, want string")
    interp.charge_bulk(len(x))
    return java_string_hash(x)


def _int(interp, x=0, base=None):
    if base is not None:
        if not isinstance(x, str):
            raise TypeError("can't convert non-string with explicit base")
        return interp.check_int(int(x, base))
    if isinstance(x, str):
        return interp.check_int(int(x, 10))
    if isinstance(x, (bool, int, float)):
        return interp.check_int(int(x))
    raise TypeError(f"got {type_name(x)}, want int, float or string")


def _len(interp, x):
    if isinstance(x, (str, list, tuple, dict, SandboxRange)):
        return len(x)
    raise TypeError(f"value of type {type_name(x)} has no len")


def _list(interp, iterable=()):
    return list(interp.iterate(iterable))


def _extreme(interp, fname: str, pick: Callable, args, key):
    if not args:
        raise TypeError("expected at least one argument")
    items = list(interp.iterate(args[0])) if len(args) == 1 else list(args)
    if not items:
        raise ValueError(f"{fname}: argument is an empty sequence")
    if key is None:
        return pick(items)
    keys = [interp.call(key, (item,)) for item in items]
    return items[pick(range(len(items)), key=keys.__getitem__)]


def _max(interp, *args, key=None):
    return _extreme(interp, "max", max, args, key)


def _min(interp, *args, key=None):
    return _extreme(interp, "min", min, args, key)


def _print(interp, *args, sep=" "):
    logger.debug(f"{interp.name}: {sep.join(to_str(arg, interp) for arg in args)}")
    return None


def _range(interp, *args):
    if not 1 <= len(args) <= 3:
        raise TypeError(f"got {len(args)} arguments, want 1-3")
    for arg in args:
        if not _is_int(arg):
            raise TypeError(f"got {type_name(arg)}, want int")
    if len(args) == 3 and args[2] == 0:
        raise ValueError("step argument must not be zero")
    return SandboxRange(range(*args))


def _repr(interp, x):
    return to_repr(x, interp)


def _reversed(interp, iterable):
    items = list(interp.iterate(iterable))
    items.reverse()
    return items


def _sorted(interp, iterable, key=None, reverse=False):
    items = list(interp.iterate(iterable))
    interp.charge_bulk(len(items))
    if key is None:
        return sorted(items, reverse=bool(reverse))
    keys = [interp.call(key, (item,)) for item in items]
    order = sorted(range(len(items)), key=keys.__getitem__, reverse=bool(reverse))
    return [items[i] for i in order]


def _str(interp, x):
    return to_str(x, interp)


def _tuple(interp, iterable=()):
    return tuple(interp.iterate(iterable))


def _type(interp, x):
    return type_name(x)


def _zip(interp, *iterables):
    columns = [list(interp.iterate(iterable)) for iterable in iterables]
    return list(zip(*columns))


UNIVERSE_FUNCTIONS: Dict[str, Callable] = {
    "abs": _abs,
    "all": _all,
    "any": _any,
    "bool": _bool,
    "dict": _dict,
    "enumerate": _enumerate,
    "fail": _fail,
    "float": _float,
    "getattr": _getattr,
    "hasattr": _hasattr,
    "hash": _hash,
    "int": _int,
    "len": _len,
    "list": _list,
    "max": _max,
    "min": _min,
    "print": _print,
    "range": _range,
    "repr": _repr,
    "reversed": _reversed,
    "sorted": _sorted,
    "str": _str,
    "tuple": _tuple,
    "type": _type,
    "zip": _zip,
}


def build_universe() -> Dict[str, Builtin]:
    """Fresh predeclared bindings for one interpreter."""
    return {name: Builtin(name, impl) for name, impl in UNIVERSE_FUNCTIONS.items()}


# ============================================================
# STRING METHODS
# ============================================================

class SafeFormatter(string.Formatter):
    """
    ``str.format`` limited to ``{}``, ``{0}``, ``{name}`` with ``!s``/``!r``.

    Every substituted value is charged to ``interp`` as it is converted.
    """

    def __init__(self, interp):
        super().__init__()
        self.interp = interp

    def get_field(self, field_name, args, kwargs):
        if "." in field_name or "[" in field_name:
            raise ValueError("attribute and index access are not supported in format fields")
        return super().get_field(field_name, args, kwargs)

    def convert_field(self, value, conversion):
        if conversion is None or conversion == "s":
            return value
        if conversion == "r":
            return to_repr(value, self.interp)
        raise ValueError(f"unknown conversion {conversion!r}")

    def format_field(self, value, format_spec):
        if format_spec:
            raise ValueError("format specifications are not supported")
        return to_str(value, self.interp)


def _sized(interp, result):
    interp.charge_bulk(len(result))
    return result


def _str_format(interp, s, *args, **kwargs):
    return SafeFormatter(interp).vformat(s, args, kwargs)


def _str_join(interp, s, iterable):
    items: List[str] = []
    for item in interp.iterate(iterable):
        if not isinstance(item, str):
            raise TypeError(f"join: in list, want string, got {type_name(item)}")
        items.append(item)
    interp.charge_bulk(sum(len(item) for item in items) + len(s) * max(len(items) - 1, 0))
    return s.join(items)


def _str_replace(interp, s, old, new, count=-1):
    if not isinstance(old, str) or not isinstance(new, str):
        raise TypeError("replace: arguments must be strings")
    occurrences = s.count(old) if old else len(s) + 1
    if count >= 0:
        occurrences = min(occurrences, count)
    interp.charge_bulk(len(s) + occurrences * (len(new) - len(old)))
    return s.replace(old, new, count)


def _str_split(interp, s, sep=None, maxsplit=-1):
    return _sized(interp, s.split(sep, maxsplit))


def _str_rsplit(interp, s, sep=None, maxsplit=-1):
    return _sized(interp, s.rsplit(sep, maxsplit))


def _plain(method_name: str, sized: bool = False) -> Callable:
    def impl(interp, s, *args):
        result = getattr(s, method_name)(*args)
        return _sized(interp, result) if sized else result
    return impl


STRING_METHODS: Dict[str, Callable] = {
    "capitalize": _plain("capitalize", sized=True),
    "count": _plain("count"),
    "elems": lambda interp, s: _sized(interp, list(s)),
    "endswith": _plain("endswith"),
    "find": _plain("find"),
    "format": _str_format,
    "index": _plain("index"),
    "isalnum": _plain("isalnum"),
    "isalpha": _plain("isalpha"),
    "isdigit": _plain("isdigit"),
    "islower": _plain("islower"),
    "isspace": _plain("isspace"),
    "istitle": _plain("istitle"),
    "isupper": _plain("isupper"),
    "join": _str_join,
    "lower": _plain("lower", sized=True),
    "lstrip": _plain("lstrip"),
    "partition": _plain("partition"),
    "removeprefix": _plain("removeprefix"),
    "removesuffix": _plain("removesuffix"),
    "replace": _str_replace,
    "rfind": _plain("rfind"),
    "rindex": _plain("rindex"),
    "rpartition": _plain("rpartition"),
    "rsplit": _str_rsplit,
    "rstrip": _plain("rstrip"),
    "split": _str_split,
    "splitlines": _plain("splitlines", sized=True),
    "startswith": _plain("startswith"),
    "strip": _plain("strip"),
    "title": _plain("title", sized=True),
    "upper": _plain("upper", sized=True),
}


# ============================================================
# LIST METHODS
# ============================================================

def _list_append(interp, lst, x):
    lst.append(x)


def _list_clear(interp, lst):
    lst.clear()


def _list_extend(interp, lst, iterable):
    interp.extend_list(lst, iterable)


def _list_index(interp, lst, x, start=0, end=None):
    return lst.index(x, start, len(lst) if end is None else end)


def _list_insert(interp, lst, index, x):
    if not _is_int(index):
        raise TypeError(f"index: got {type_name(index)}, want int")
    lst.insert(index, x)


def _list_pop(interp, lst, index=-1):
    if not _is_int(index):
        raise TypeError(f"index: got {type_name(index)}, want int")
    return lst.pop(index)


def _list_remove(interp, lst, x):
    lst.remove(x)


LIST_METHODS: Dict[str, Callable] = {
    "append": _list_append,
    "clear": _list_clear,
    "extend": _list_extend,
    "index": _list_index,
    "insert": _list_insert,
    "pop": _list_pop,
    "remove": _list_remove,
}


# ============================================================
# DICT METHODS
# ============================================================

def _dict_clear(interp, d):
    d.clear()


def _dict_get(interp, d, key, default=None):
    interp.check_hashable(key)
    return d.get(key, default)


def _dict_items(interp, d):
    return _sized(interp, list(d.items()))


def _dict_keys(interp, d):
    return _sized(interp, list(d.keys()))


def _dict_values(interp, d):
    return _sized(interp, list(d.values()))


def _dict_pop(interp, d, key, *default):
    interp.check_hashable(key)
    if key in d:
        return d.pop(key)
    if default:
        return default[0]
    raise KeyError(key)


def _dict_popitem(interp, d):
    if not d:
        raise ValueError("popitem: empty dict")
    key = next(iter(d))
    return (key, d.pop(key))


def _dict_setdefault(interp, d, key, default=None):
    interp.check_hashable(key)
    return d.setdefault(key, default)


def _dict_update(interp, d, *args, **kwargs):
    if len(args) > 1:
        raise TypeError(f"got {len(args)} positional arguments, want at most 1")
    if args:
        _pairs_into(interp, d, args[0], "update")
    d.update(kwargs)


DICT_METHODS: Dict[str, Callable] = {
    "clear": _dict_clear,
    "get": _dict_get,
    "items": _dict_items,
    "keys": _dict_keys,
    "pop": _dict_pop,
    "popitem": _dict_popitem,
    "setdefault": _dict_setdefault,
    "update": _dict_update,
    "values": _dict_values,
}


def lookup_method(obj: Any, name: str) -> Optional[BoundMethod]:
    """Bind an allow-listed method of ``obj``, or None if there is none."""
    if isinstance(obj, str):
        table = STRING_METHODS
    elif isinstance(obj, list):
        table = LIST_METHODS
    elif isinstance(obj, dict):
        table = DICT_METHODS
    else:
        return None
    impl = table.get(name)
    if impl is None:
        return None
    return BoundMethod(name, obj, impl)

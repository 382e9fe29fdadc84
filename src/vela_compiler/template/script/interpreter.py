"""
Script Interpreter - parse, validate and evaluate sandboxed pipeline scripts.

Scripts use a small, deterministic subset of Python syntax. Source is parsed
with ``ast`` and checked against an allow-list before anything runs; the
tree is then evaluated directly, so no host bytecode is ever produced.

Execution is metered: every statement, expression and iterated element costs
one step, and bulk operations (repetition, concatenation, joins, slices) are
charged in proportion to the size of their result before it is allocated.
String conversion (str, repr, formatting, print, fail) ticks per element
visited and charges each string as it is emitted.
When the count passes the limit the run is cancelled with
ResourceExhaustedError.
"""

import ast
import logging
from typing import Any, Dict, FrozenSet, Iterator, List, Optional, Sequence, Set

from ...exceptions import ConfigurationError, ResourceExhaustedError, TemplateExecutionError, TemplateParseError
from .builtins import build_universe, lookup_method, to_repr, to_str
from .values import BoundMethod, Builtin, Function, SandboxRange, type_name

logger = logging.getLogger(__name__)

ENGINE_NAME = "sandboxed"

# one step per this many produced elements/characters
BULK_UNIT = 16

MAX_INT_BITS = 4096
MAX_SHIFT = 512


# ============================================================
# VALIDATION
# ============================================================

ALLOWED_NODES = (
    ast.Module, ast.FunctionDef, ast.Return, ast.Assign, ast.AugAssign,
    ast.For, ast.If, ast.Expr, ast.Pass, ast.Break, ast.Continue,
    ast.BoolOp, ast.BinOp, ast.UnaryOp, ast.Lambda, ast.IfExp, ast.Compare,
    ast.Call, ast.keyword, ast.Attribute, ast.Subscript, ast.Slice, ast.Name,
    ast.Constant, ast.List, ast.Tuple, ast.Dict, ast.ListComp, ast.DictComp,
    ast.comprehension, ast.arguments, ast.arg,
    ast.Load, ast.Store,
    ast.And, ast.Or,
    ast.Add, ast.Sub, ast.Mult, ast.Div, ast.FloorDiv, ast.Mod,
    ast.BitAnd, ast.BitOr, ast.BitXor, ast.LShift, ast.RShift,
    ast.Invert, ast.Not, ast.UAdd, ast.USub,
    ast.Eq, ast.NotEq, ast.Lt, ast.LtE, ast.Gt, ast.GtE, ast.In, ast.NotIn,
)

REJECTED_CONSTRUCTS = {
    "While": "while loops",
    "Import": "import statements",
    "ImportFrom": "import statements",
    "ClassDef": "class definitions",
    "Try": "try statements",
    "TryStar": "try statements",
    "With": "with statements",
    "Global": "global declarations",
    "Nonlocal": "nonlocal declarations",
    "Delete": "del statements",
    "Raise": "raise statements (use fail())",
    "Assert": "assert statements",
    "AnnAssign": "annotations",
    "JoinedStr": "f-strings",
    "FormattedValue": "f-strings",
    "Set": "set literals",
    "SetComp": "set comprehensions",
    "GeneratorExp": "generator expressions",
    "Yield": "generators",
    "YieldFrom": "generators",
    "Await": "async constructs",
    "AsyncFunctionDef": "async constructs",
    "AsyncFor": "async constructs",
    "AsyncWith": "async constructs",
    "NamedExpr": "assignment expressions",
    "Pow": "the ** operator",
    "MatMult": "the @ operator",
    "Is": "the is operator",
    "IsNot": "the is not operator",
    "Match": "match statements",
}

OPERATOR_SYMBOLS = {
    ast.Add: "+", ast.Sub: "-", ast.Mult: "*", ast.Div: "/", ast.FloorDiv: "//",
    ast.Mod: "%", ast.BitAnd: "&", ast.BitOr: "|", ast.BitXor: "^",
    ast.LShift: "<<", ast.RShift: ">>",
    ast.Lt: "<", ast.LtE: "<=", ast.Gt: ">", ast.GtE: ">=",
}


class ScriptValidator(ast.NodeVisitor):
    """
    Reject every construct outside the sandbox dialect.

    Beyond the node allow-list this enforces: no identifiers or attributes
    starting with ``_``, no decorators or annotations, no for/else, star
    arguments only at call sites, and break/continue/return only where they
    make sense.
    """

    def __init__(self, name: str):
        self.name = name
        self.loop_depth = 0
        self.function_depth = 0

    def _reject(self, node: ast.AST, message: str):
        raise TemplateParseError(
            f"line {getattr(node, 'lineno', 0)}: {message}", template=self.name, engine=ENGINE_NAME
        )

    def _check_name(self, node: ast.AST, name: str) -> None:
        if name.startswith("_"):
            self._reject(node, f"identifier {name!r} is not allowed (names must not start with '_')")

    def _check_target(self, node: ast.AST) -> None:
        if isinstance(node, (ast.Tuple, ast.List)):
            for elt in node.elts:
                self._check_target(elt)
        elif isinstance(node, ast.Attribute):
            self._reject(node, "attribute assignment is not allowed")
        elif isinstance(node, ast.Subscript) and isinstance(node.slice, ast.Slice):
            self._reject(node, "slice assignment is not allowed")
        elif not isinstance(node, (ast.Name, ast.Subscript)):
            self._reject(node, f"cannot assign to {type(node).__name__}")

    def generic_visit(self, node: ast.AST) -> None:
        if not isinstance(node, ALLOWED_NODES):
            kind = type(node).__name__
            self._reject(node, f"{REJECTED_CONSTRUCTS.get(kind, kind)} not allowed")
        super().generic_visit(node)

    def visit_FunctionDef(self, node: ast.FunctionDef) -> None:
        if node.decorator_list:
            self._reject(node, "decorators not allowed")
        if node.returns is not None:
            self._reject(node, "annotations not allowed")
        self._check_name(node, node.name)
        self.visit(node.args)

        saved_loops = self.loop_depth
        self.loop_depth = 0
        self.function_depth += 1
        for stmt in node.body:
            self.visit(stmt)
        self.function_depth -= 1
        self.loop_depth = saved_loops

    def visit_Lambda(self, node: ast.Lambda) -> None:
        self.visit(node.args)
        self.function_depth += 1
        self.visit(node.body)
        self.function_depth -= 1

    def visit_arg(self, node: ast.arg) -> None:
        if node.annotation is not None:
            self._reject(node, "annotations not allowed")
        self._check_name(node, node.arg)

    def visit_Name(self, node: ast.Name) -> None:
        self._check_name(node, node.id)

    def visit_Attribute(self, node: ast.Attribute) -> None:
        if node.attr.startswith("_"):
            self._reject(node, f"attribute {node.attr!r} is not allowed")
        self.generic_visit(node)

    def visit_Constant(self, node: ast.Constant) -> None:
        value = node.value
        if not (value is None or isinstance(value, (bool, int, float, str))):
            self._reject(node, f"{type(value).__name__} literals not allowed")

    def visit_Assign(self, node: ast.Assign) -> None:
        for target in node.targets:
            self._check_target(target)
        self.generic_visit(node)

    def visit_AugAssign(self, node: ast.AugAssign) -> None:
        if isinstance(node.target, (ast.Tuple, ast.List)):
            self._reject(node, "augmented assignment to a tuple is not allowed")
        self._check_target(node.target)
        self.generic_visit(node)

    def visit_For(self, node: ast.For) -> None:
        if node.orelse:
            self._reject(node, "for/else not allowed")
        self._check_target(node.target)
        self.visit(node.target)
        self.visit(node.iter)
        self.loop_depth += 1
        for stmt in node.body:
            self.visit(stmt)
        self.loop_depth -= 1

    def visit_Break(self, node: ast.Break) -> None:
        if self.loop_depth == 0:
            self._reject(node, "'break' outside loop")

    def visit_Continue(self, node: ast.Continue) -> None:
        if self.loop_depth == 0:
            self._reject(node, "'continue' outside loop")

    def visit_Return(self, node: ast.Return) -> None:
        if self.function_depth == 0:
            self._reject(node, "'return' outside function")
        self.generic_visit(node)

    def visit_Call(self, node: ast.Call) -> None:
        self.visit(node.func)
        for arg in node.args:
            # *args is only valid at call sites
            self.visit(arg.value if isinstance(arg, ast.Starred) else arg)
        for keyword in node.keywords:
            if keyword.arg is not None:
                self._check_name(keyword, keyword.arg)
            self.visit(keyword.value)

    def visit_Starred(self, node: ast.Starred) -> None:
        self._reject(node, "starred expressions not allowed here")

    def visit_Dict(self, node: ast.Dict) -> None:
        if any(key is None for key in node.keys):
            self._reject(node, "dict unpacking not allowed")
        self.generic_visit(node)

    def visit_comprehension(self, node: ast.comprehension) -> None:
        if node.is_async:
            self._reject(node.target, "async constructs not allowed")
        self._check_target(node.target)
        self.generic_visit(node)


def parse_script(source: str, name: str = "") -> ast.Module:
    """
    Parse and validate script source.

    Raises:
        TemplateParseError: on syntax errors or disallowed constructs
    """
    try:
        tree = ast.parse(source, filename=name or "<script>", mode="exec")
    except SyntaxError as e:
        raise TemplateParseError(f"line {e.lineno}: {e.msg}", template=name, engine=ENGINE_NAME) from e
    except (ValueError, RecursionError) as e:
        raise TemplateParseError(f"unable to parse script: {e}", template=name, engine=ENGINE_NAME) from e

    try:
        ScriptValidator(name).visit(tree)
    except RecursionError as e:
        raise TemplateParseError("script is nested too deeply", template=name, engine=ENGINE_NAME) from e
    return tree


# ============================================================
# SCOPES
# ============================================================

def _collect_target(node: ast.AST, names: Set[str]) -> None:
    if isinstance(node, ast.Name):
        names.add(node.id)
    elif isinstance(node, (ast.Tuple, ast.List)):
        for elt in node.elts:
            _collect_target(elt, names)


def _collect_statement(node: ast.stmt, names: Set[str]) -> None:
    if isinstance(node, ast.FunctionDef):
        names.add(node.name)
    elif isinstance(node, ast.Assign):
        for target in node.targets:
            _collect_target(target, names)
    elif isinstance(node, ast.AugAssign):
        _collect_target(node.target, names)
    elif isinstance(node, ast.For):
        _collect_target(node.target, names)
        for stmt in node.body:
            _collect_statement(stmt, names)
    elif isinstance(node, ast.If):
        for stmt in node.body + node.orelse:
            _collect_statement(stmt, names)


def _parameter_names(args: ast.arguments) -> Set[str]:
    names = {a.arg for a in args.posonlyargs + args.args + args.kwonlyargs}
    if args.vararg is not None:
        names.add(args.vararg.arg)
    if args.kwarg is not None:
        names.add(args.kwarg.arg)
    return names


def function_locals(node: ast.FunctionDef) -> FrozenSet[str]:
    """Names bound anywhere in a function body, nested functions excluded."""
    names = _parameter_names(node.args)
    for stmt in node.body:
        _collect_statement(stmt, names)
    return frozenset(names)


class Frame:
    """
    One lexical scope.

    ``local_names`` is the static set of names the scope binds; the module
    scope has ``None`` and binds straight into the interpreter globals.
    """

    __slots__ = ("locals", "local_names", "parent")

    def __init__(self, locals: Dict[str, Any], local_names: Optional[FrozenSet[str]], parent: Optional["Frame"]):
        self.locals = locals
        self.local_names = local_names
        self.parent = parent


class _Return(Exception):
    def __init__(self, value: Any):
        self.value = value


class _Break(Exception):
    pass


class _Continue(Exception):
    pass


_NO_DEFAULT = object()

# host errors raised by operators and builtins, reported as script errors
CONVERTIBLE_ERRORS = (TypeError, ValueError, ArithmeticError, LookupError)


def describe_error(error: Exception, interp=None) -> str:
    if isinstance(error, KeyError) and error.args:
        return f"key {to_repr(error.args[0], interp)} not found"
    return str(error) or type(error).__name__


def _is_number(value: Any) -> bool:
    return isinstance(value, (int, float)) and not isinstance(value, bool)


def _is_int(value: Any) -> bool:
    return isinstance(value, int) and not isinstance(value, bool)


# ============================================================
# INTERPRETER
# ============================================================

class Interpreter:
    """
    Evaluates one script with a fixed step budget.

    A fresh interpreter (and fresh universe) is used for every render, so
    nothing a script does can leak into another render.

    Usage:
        interp = Interpreter("my-template", step_limit=5000)
        globals_ = interp.exec_module(source)
        result = interp.call(globals_["main"], (ctx,))
    """

    def __init__(self, name: str, step_limit: int):
        if step_limit < 0:
            raise ConfigurationError(f"step limit must not be negative, got {step_limit}", template=name)
        self.name = name
        self.step_limit = step_limit
        self.steps = 0
        self.globals: Dict[str, Any] = {}
        self.universe = build_universe()
        self._active: Set[int] = set()
        self._line = 0

    # ------------------------------------------------------------
    # Budget and errors
    # ------------------------------------------------------------

    def tick(self, n: int = 1) -> None:
        self.steps += n
        if self.steps > self.step_limit:
            raise ResourceExhaustedError(
                f"computation cancelled: too many steps (limit {self.step_limit})",
                limit=self.step_limit,
                steps=self.steps,
                template=self.name,
                engine=ENGINE_NAME,
            )

    def charge_bulk(self, size: int) -> None:
        """Charge for producing ``size`` elements or characters."""
        if size > 0:
            self.tick((size + BULK_UNIT - 1) // BULK_UNIT)

    def error(self, message: str) -> TemplateExecutionError:
        return TemplateExecutionError(f"line {self._line}: {message}", template=self.name, engine=ENGINE_NAME)

    def check_int(self, value: Any) -> Any:
        if _is_int(value) and value.bit_length() > MAX_INT_BITS:
            raise self.error(f"integer overflow: result exceeds {MAX_INT_BITS} bits")
        return value

    def check_hashable(self, key: Any) -> None:
        if isinstance(key, tuple):
            for item in key:
                self.check_hashable(item)
        elif isinstance(key, (list, dict)):
            raise self.error(f"unhashable type: {type_name(key)}")

    # ------------------------------------------------------------
    # Entry points
    # ------------------------------------------------------------

    def exec_module(self, source: str) -> Dict[str, Any]:
        """Execute top-level statements and return the module globals."""
        tree = parse_script(source, self.name)
        frame = Frame(self.globals, None, None)
        try:
            self._exec_block(tree.body, frame)
        except RecursionError as e:
            raise self.error("maximum call depth exceeded") from e
        logger.debug(f"Script '{self.name}' loaded in {self.steps} step(s)")
        return self.globals

    def call(self, fn: Any, args: Sequence[Any] = (), kwargs: Optional[Dict[str, Any]] = None) -> Any:
        kwargs = kwargs or {}
        try:
            if isinstance(fn, Function):
                return self._call_function(fn, list(args), kwargs)
            if isinstance(fn, Builtin):
                return fn.impl(self, *args, **kwargs)
            if isinstance(fn, BoundMethod):
                return fn.impl(self, fn.receiver, *args, **kwargs)
        except CONVERTIBLE_ERRORS as e:
            label = fn.name if not isinstance(fn, BoundMethod) else f"{type_name(fn.receiver)}.{fn.name}"
            raise self.error(f"{label}: {describe_error(e, self)}") from e
        except RecursionError as e:
            raise self.error("maximum call depth exceeded") from e
        raise self.error(f"invalid call of non-function ({type_name(fn)})")

    # ------------------------------------------------------------
    # Functions
    # ------------------------------------------------------------

    def _call_function(self, fn: Function, args: List[Any], kwargs: Dict[str, Any]) -> Any:
        key = id(fn.node)
        if key in self._active:
            raise self.error(f"function {fn.name} called recursively")

        frame = Frame(self._bind_arguments(fn, args, kwargs), fn.local_names, fn.closure)
        saved_line = self._line
        self._active.add(key)
        try:
            if fn.is_lambda:
                return self._eval(fn.node.body, frame)
            try:
                self._exec_block(fn.node.body, frame)
            except _Return as r:
                return r.value
            return None
        finally:
            self._active.discard(key)
            self._line = saved_line

    def _bind_arguments(self, fn: Function, args: List[Any], kwargs: Dict[str, Any]) -> Dict[str, Any]:
        spec = fn.node.args
        positional = [a.arg for a in spec.posonlyargs + spec.args]
        positional_only = {a.arg for a in spec.posonlyargs}
        keyword_only = [a.arg for a in spec.kwonlyargs]

        bound: Dict[str, Any] = dict(zip(positional, args))
        extra = args[len(positional):]
        if spec.vararg is not None:
            bound[spec.vararg.arg] = tuple(extra)
        elif extra:
            raise self.error(
                f"function {fn.name} accepts at most {len(positional)} positional argument(s) ({len(args)} given)"
            )

        extra_kwargs: Dict[str, Any] = {}
        for key, value in kwargs.items():
            if (key in positional and key not in positional_only) or key in keyword_only:
                if key in bound:
                    raise self.error(f"function {fn.name} got multiple values for parameter {key}")
                bound[key] = value
            elif spec.kwarg is not None:
                extra_kwargs[key] = value
            else:
                raise self.error(f"function {fn.name} got an unexpected keyword argument {key}")

        # defaults align with the trailing positional parameters
        first_default = len(positional) - len(fn.defaults)
        for i, param in enumerate(positional):
            if param not in bound:
                if i < first_default:
                    raise self.error(f"function {fn.name} missing argument for {param}")
                bound[param] = fn.defaults[i - first_default]
        for param, default in zip(keyword_only, fn.kw_defaults):
            if param not in bound:
                if default is _NO_DEFAULT:
                    raise self.error(f"function {fn.name} missing argument for {param}")
                bound[param] = default

        if spec.kwarg is not None:
            bound[spec.kwarg.arg] = extra_kwargs
        return bound

    def _make_function(self, name: str, node, frame: Frame, local_names: FrozenSet[str], is_lambda: bool) -> Function:
        defaults = [self._eval(d, frame) for d in node.args.defaults]
        kw_defaults = [_NO_DEFAULT if d is None else self._eval(d, frame) for d in node.args.kw_defaults]
        return Function(name, node, defaults, kw_defaults, frame, local_names, is_lambda=is_lambda)

    # ------------------------------------------------------------
    # Names and iteration
    # ------------------------------------------------------------

    def _lookup(self, name: str, frame: Frame) -> Any:
        scope = frame
        while scope is not None and scope.local_names is not None:
            if name in scope.local_names:
                if name in scope.locals:
                    return scope.locals[name]
                raise self.error(f"local variable {name} referenced before assignment")
            scope = scope.parent
        if name in self.globals:
            return self.globals[name]
        if name in self.universe:
            return self.universe[name]
        raise self.error(f"undefined: {name}")

    def iterate(self, value: Any) -> Iterator[Any]:
        """Iterate a sandbox value, one step per element."""
        if isinstance(value, (list, tuple)):
            items = tuple(value)
        elif isinstance(value, dict):
            items = tuple(value.keys())
        elif isinstance(value, SandboxRange):
            items = value.values
        elif isinstance(value, str):
            raise self.error("string value is not iterable (use .elems())")
        else:
            raise self.error(f"{type_name(value)} value is not iterable")
        return self._metered(items)

    def _metered(self, items) -> Iterator[Any]:
        for item in items:
            self.tick()
            yield item

    def extend_list(self, target: list, iterable: Any) -> None:
        target.extend(list(self.iterate(iterable)))

    # ------------------------------------------------------------
    # Statements
    # ------------------------------------------------------------

    def _exec_block(self, body: List[ast.stmt], frame: Frame) -> None:
        for stmt in body:
            self._exec(stmt, frame)

    def _exec(self, node: ast.stmt, frame: Frame) -> None:
        self.tick()
        self._line = node.lineno
        try:
            getattr(self, f"_exec_{type(node).__name__}")(node, frame)
        except CONVERTIBLE_ERRORS as e:
            raise self.error(describe_error(e, self)) from e

    def _exec_Expr(self, node: ast.Expr, frame: Frame) -> None:
        self._eval(node.value, frame)

    def _exec_Pass(self, node: ast.Pass, frame: Frame) -> None:
        pass

    def _exec_Break(self, node: ast.Break, frame: Frame) -> None:
        raise _Break()

    def _exec_Continue(self, node: ast.Continue, frame: Frame) -> None:
        raise _Continue()

    def _exec_Return(self, node: ast.Return, frame: Frame) -> None:
        raise _Return(None if node.value is None else self._eval(node.value, frame))

    def _exec_Assign(self, node: ast.Assign, frame: Frame) -> None:
        value = self._eval(node.value, frame)
        for target in node.targets:
            self._assign(target, value, frame)

    def _exec_AugAssign(self, node: ast.AugAssign, frame: Frame) -> None:
        target = node.target
        if isinstance(target, ast.Name):
            current = self._lookup(target.id, frame)
            frame.locals[target.id] = self._augmented(node.op, current, self._eval(node.value, frame))
            return
        container = self._eval(target.value, frame)
        key = self._eval(target.slice, frame)
        current = self.index(container, key)
        self._set_index(container, key, self._augmented(node.op, current, self._eval(node.value, frame)))

    def _augmented(self, op: ast.operator, current: Any, value: Any) -> Any:
        if isinstance(op, ast.Add) and isinstance(current, list):
            self.extend_list(current, value)
            return current
        return self._binop(op, current, value)

    def _exec_If(self, node: ast.If, frame: Frame) -> None:
        if self._eval(node.test, frame):
            self._exec_block(node.body, frame)
        else:
            self._exec_block(node.orelse, frame)

    def _exec_For(self, node: ast.For, frame: Frame) -> None:
        for item in self.iterate(self._eval(node.iter, frame)):
            self._assign(node.target, item, frame)
            try:
                self._exec_block(node.body, frame)
            except _Break:
                break
            except _Continue:
                continue

    def _exec_FunctionDef(self, node: ast.FunctionDef, frame: Frame) -> None:
        frame.locals[node.name] = self._make_function(node.name, node, frame, function_locals(node), False)

    def _assign(self, target: ast.AST, value: Any, frame: Frame) -> None:
        if isinstance(target, ast.Name):
            frame.locals[target.id] = value
        elif isinstance(target, (ast.Tuple, ast.List)):
            items = list(self.iterate(value))
            if len(items) != len(target.elts):
                word = "too many" if len(items) > len(target.elts) else "not enough"
                raise self.error(f"{word} values to unpack (got {len(items)}, want {len(target.elts)})")
            for elt, item in zip(target.elts, items):
                self._assign(elt, item, frame)
        elif isinstance(target, ast.Subscript):
            container = self._eval(target.value, frame)
            self._set_index(container, self._eval(target.slice, frame), value)
        else:
            raise self.error(f"cannot assign to {type(target).__name__}")

    def _set_index(self, container: Any, key: Any, value: Any) -> None:
        if isinstance(container, list):
            container[self._check_index(key, len(container))] = value
        elif isinstance(container, dict):
            self.check_hashable(key)
            container[key] = value
        else:
            raise self.error(f"{type_name(container)} value does not support item assignment")

    # ------------------------------------------------------------
    # Expressions
    # ------------------------------------------------------------

    def _eval(self, node: ast.expr, frame: Frame) -> Any:
        self.tick()
        return getattr(self, f"_eval_{type(node).__name__}")(node, frame)

    def _eval_Constant(self, node: ast.Constant, frame: Frame) -> Any:
        return node.value

    def _eval_Name(self, node: ast.Name, frame: Frame) -> Any:
        return self._lookup(node.id, frame)

    def _eval_List(self, node: ast.List, frame: Frame) -> list:
        return [self._eval(elt, frame) for elt in node.elts]

    def _eval_Tuple(self, node: ast.Tuple, frame: Frame) -> tuple:
        return tuple(self._eval(elt, frame) for elt in node.elts)

    def _eval_Dict(self, node: ast.Dict, frame: Frame) -> dict:
        result = {}
        for key_node, value_node in zip(node.keys, node.values):
            key = self._eval(key_node, frame)
            self.check_hashable(key)
            result[key] = self._eval(value_node, frame)
        return result

    def _eval_BoolOp(self, node: ast.BoolOp, frame: Frame) -> Any:
        result = None
        for value_node in node.values:
            result = self._eval(value_node, frame)
            if isinstance(node.op, ast.And) and not result:
                return result
            if isinstance(node.op, ast.Or) and result:
                return result
        return result

    def _eval_UnaryOp(self, node: ast.UnaryOp, frame: Frame) -> Any:
        operand = self._eval(node.operand, frame)
        if isinstance(node.op, ast.Not):
            return not operand
        if isinstance(node.op, ast.Invert):
            if not _is_int(operand):
                raise self.error(f"unknown unary op: ~{type_name(operand)}")
            return ~operand
        if not _is_number(operand):
            symbol = "-" if isinstance(node.op, ast.USub) else "+"
            raise self.error(f"unknown unary op: {symbol}{type_name(operand)}")
        return -operand if isinstance(node.op, ast.USub) else operand

    def _eval_BinOp(self, node: ast.BinOp, frame: Frame) -> Any:
        left = self._eval(node.left, frame)
        right = self._eval(node.right, frame)
        return self._binop(node.op, left, right)

    def _eval_Compare(self, node: ast.Compare, frame: Frame) -> bool:
        left = self._eval(node.left, frame)
        for op, comparator in zip(node.ops, node.comparators):
            right = self._eval(comparator, frame)
            if not self._compare(op, left, right):
                return False
            left = right
        return True

    def _eval_IfExp(self, node: ast.IfExp, frame: Frame) -> Any:
        if self._eval(node.test, frame):
            return self._eval(node.body, frame)
        return self._eval(node.orelse, frame)

    def _eval_Call(self, node: ast.Call, frame: Frame) -> Any:
        fn = self._eval(node.func, frame)
        args: List[Any] = []
        for arg in node.args:
            if isinstance(arg, ast.Starred):
                args.extend(self.iterate(self._eval(arg.value, frame)))
            else:
                args.append(self._eval(arg, frame))

        kwargs: Dict[str, Any] = {}
        for keyword in node.keywords:
            if keyword.arg is None:
                mapping = self._eval(keyword.value, frame)
                if not isinstance(mapping, dict):
                    raise self.error(f"argument after ** must be a dict, not {type_name(mapping)}")
                items = list(mapping.items())
            else:
                items = [(keyword.arg, self._eval(keyword.value, frame))]
            for key, value in items:
                if not isinstance(key, str):
                    raise self.error(f"keywords must be strings, not {type_name(key)}")
                if key in kwargs:
                    raise self.error(f"got multiple values for keyword argument {key}")
                kwargs[key] = value
        return self.call(fn, args, kwargs)

    def _eval_Attribute(self, node: ast.Attribute, frame: Frame) -> Any:
        obj = self._eval(node.value, frame)
        method = lookup_method(obj, node.attr)
        if method is None:
            raise self.error(f"{type_name(obj)} has no .{node.attr} field or method")
        return method

    def _eval_Subscript(self, node: ast.Subscript, frame: Frame) -> Any:
        obj = self._eval(node.value, frame)
        if isinstance(node.slice, ast.Slice):
            bounds = [
                None if part is None else self._eval(part, frame)
                for part in (node.slice.lower, node.slice.upper, node.slice.step)
            ]
            return self._slice(obj, *bounds)
        return self.index(obj, self._eval(node.slice, frame))

    def _eval_Lambda(self, node: ast.Lambda, frame: Frame) -> Function:
        return self._make_function("lambda", node, frame, frozenset(_parameter_names(node.args)), True)

    def _eval_ListComp(self, node: ast.ListComp, frame: Frame) -> list:
        result: List[Any] = []
        self._comprehension(node.generators, frame, lambda inner: result.append(self._eval(node.elt, inner)))
        return result

    def _eval_DictComp(self, node: ast.DictComp, frame: Frame) -> dict:
        result: Dict[Any, Any] = {}

        def emit(inner: Frame) -> None:
            key = self._eval(node.key, inner)
            self.check_hashable(key)
            result[key] = self._eval(node.value, inner)

        self._comprehension(node.generators, frame, emit)
        return result

    def _comprehension(self, generators: List[ast.comprehension], frame: Frame, emit) -> None:
        names: Set[str] = set()
        for generator in generators:
            _collect_target(generator.target, names)
        inner = Frame({}, frozenset(names), frame)
        self._run_generators(generators, 0, inner, emit)

    def _run_generators(self, generators: List[ast.comprehension], i: int, frame: Frame, emit) -> None:
        if i == len(generators):
            emit(frame)
            return
        generator = generators[i]
        # the first iterable is evaluated in the enclosing scope
        iterable = self._eval(generator.iter, frame.parent if i == 0 else frame)
        for item in self.iterate(iterable):
            self._assign(generator.target, item, frame)
            if all(self._eval(condition, frame) for condition in generator.ifs):
                self._run_generators(generators, i + 1, frame, emit)

    # ------------------------------------------------------------
    # Operators
    # ------------------------------------------------------------

    def _check_index(self, key: Any, length: int) -> int:
        if not _is_int(key):
            raise self.error(f"invalid index: got {type_name(key)}, want int")
        index = key + length if key < 0 else key
        if not 0 <= index < length:
            raise self.error(f"index {key} out of range: sequence of length {length}")
        return index

    def index(self, obj: Any, key: Any) -> Any:
        if isinstance(obj, dict):
            self.check_hashable(key)
            if key not in obj:
                raise self.error(f"key {to_repr(key, self)} not in dict")
            return obj[key]
        if isinstance(obj, (list, tuple, str, SandboxRange)):
            return obj[self._check_index(key, len(obj))]
        raise self.error(f"unhandled index operation {type_name(obj)}[{type_name(key)}]")

    def _slice(self, obj: Any, lower: Any, upper: Any, step: Any) -> Any:
        if not isinstance(obj, (list, tuple, str, SandboxRange)):
            raise self.error(f"invalid slice operand {type_name(obj)}")
        for bound in (lower, upper, step):
            if bound is not None and not _is_int(bound):
                raise self.error(f"invalid slice index: got {type_name(bound)}, want int")
        if step == 0:
            raise self.error("zero is not a valid slice step")
        result = obj[slice(lower, upper, step)]
        self.charge_bulk(len(result))
        return result

    def _repeat(self, sequence: Any, count: int) -> Any:
        if count <= 0:
            return sequence[:0]
        self.charge_bulk(len(sequence) * count)
        return sequence * count

    def _binop(self, op: ast.operator, left: Any, right: Any) -> Any:
        numbers = _is_number(left) and _is_number(right)

        if isinstance(op, ast.Add):
            if numbers:
                return self.check_int(left + right)
            if type(left) is type(right) and isinstance(left, (str, list, tuple)):
                self.charge_bulk(len(left) + len(right))
                return left + right
        elif isinstance(op, ast.Sub):
            if numbers:
                return self.check_int(left - right)
        elif isinstance(op, ast.Mult):
            if numbers:
                return self.check_int(left * right)
            if isinstance(left, (str, list, tuple)) and _is_int(right):
                return self._repeat(left, right)
            if _is_int(left) and isinstance(right, (str, list, tuple)):
                return self._repeat(right, left)
        elif isinstance(op, ast.Div):
            if numbers:
                if right == 0:
                    raise self.error("floating-point division by zero")
                return left / right
        elif isinstance(op, ast.FloorDiv):
            if numbers:
                if right == 0:
                    raise self.error("floored division by zero")
                return self.check_int(left // right)
        elif isinstance(op, ast.Mod):
            if numbers:
                if right == 0:
                    raise self.error("integer modulo by zero")
                return left % right
            if isinstance(left, str):
                return self._percent_format(left, right)
        elif isinstance(op, (ast.BitAnd, ast.BitOr, ast.BitXor)):
            if _is_int(left) and _is_int(right):
                if isinstance(op, ast.BitAnd):
                    return left & right
                if isinstance(op, ast.BitOr):
                    return left | right
                return left ^ right
        elif isinstance(op, (ast.LShift, ast.RShift)):
            if _is_int(left) and _is_int(right):
                if right < 0:
                    raise self.error("negative shift count")
                if right >= MAX_SHIFT:
                    raise self.error(f"shift count too large: {right}")
                if isinstance(op, ast.LShift):
                    return self.check_int(left << right)
                return left >> right

        symbol = OPERATOR_SYMBOLS.get(type(op), type(op).__name__)
        raise self.error(f"unknown binary op: {type_name(left)} {symbol} {type_name(right)}")

    def _compare(self, op: ast.cmpop, left: Any, right: Any) -> bool:
        if isinstance(op, ast.Eq):
            return left == right
        if isinstance(op, ast.NotEq):
            return left != right
        if isinstance(op, (ast.In, ast.NotIn)):
            found = self._contains(right, left)
            return found if isinstance(op, ast.In) else not found

        comparable = (
            (_is_number(left) and _is_number(right))
            or (isinstance(left, bool) and isinstance(right, bool))
            or (type(left) is type(right) and isinstance(left, (str, list, tuple)))
        )
        if not comparable:
            symbol = OPERATOR_SYMBOLS.get(type(op), type(op).__name__)
            raise self.error(f"{type_name(left)} {symbol} {type_name(right)} not implemented")
        if isinstance(op, ast.Lt):
            return left < right
        if isinstance(op, ast.LtE):
            return left <= right
        if isinstance(op, ast.Gt):
            return left > right
        return left >= right

    def _contains(self, container: Any, item: Any) -> bool:
        if isinstance(container, dict):
            self.check_hashable(item)
            return item in container
        if isinstance(container, (list, tuple, SandboxRange)):
            self.charge_bulk(len(container))
            return item in container
        if isinstance(container, str):
            if not isinstance(item, str):
                raise self.error(f"'in <string>' requires string as left operand, not {type_name(item)}")
            return item in container
        raise self.error(f"unknown binary op: {type_name(item)} in {type_name(container)}")

    def _percent_format(self, fmt: str, args: Any) -> str:
        """``%`` string formatting: ``%s %r %d %i %o %x %X %e %f %g %c %%`` and ``%(key)s``."""
        self.charge_bulk(len(fmt))
        values = list(args) if isinstance(args, tuple) else [args]
        out: List[str] = []
        position = 0
        used_key = False
        i = 0
        while i < len(fmt):
            ch = fmt[i]
            i += 1
            if ch != "%":
                out.append(ch)
                continue
            if i >= len(fmt):
                raise self.error("incomplete format")

            key = None
            if fmt[i] == "(":
                end = fmt.find(")", i)
                if end < 0:
                    raise self.error("incomplete format key")
                key = fmt[i + 1:end]
                i = end + 1
                if i >= len(fmt):
                    raise self.error("incomplete format")

            conversion = fmt[i]
            i += 1
            if conversion == "%":
                out.append("%")
                continue

            if key is not None:
                if not isinstance(args, dict):
                    raise self.error("format requires a mapping")
                if key not in args:
                    raise self.error(f"key {to_repr(key, self)} not in dict")
                used_key = True
                value = args[key]
            else:
                if position >= len(values):
                    raise self.error("not enough arguments for format string")
                value = values[position]
                position += 1

            out.append(self._format_value(conversion, value))

        if not used_key and position < len(values):
            raise self.error("too many arguments for format string")
        return "".join(out)

    def _format_value(self, conversion: str, value: Any) -> str:
        if conversion == "s":
            return to_str(value, self)
        if conversion == "r":
            return to_repr(value, self)
        if conversion in "di":
            if not _is_number(value):
                raise self.error(f"%{conversion} format requires integer: {type_name(value)}")
            return str(int(value))
        if conversion in "oxX":
            if not _is_int(value):
                raise self.error(f"%{conversion} format requires integer: {type_name(value)}")
            return format(value, conversion)
        if conversion in "eEfFgG":
            if not _is_number(value):
                raise self.error(f"%{conversion} format requires float: {type_name(value)}")
            return format(float(value), conversion)
        if conversion == "c":
            if _is_int(value):
                return chr(value)
            if isinstance(value, str) and len(value) == 1:
                return value
            raise self.error(f"%c requires a single-character string or int: {to_repr(value, self)}")
        raise self.error(f"unsupported format character {conversion!r}")

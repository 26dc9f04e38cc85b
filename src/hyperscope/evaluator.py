"""Scoped evaluator: a small interpreter for directive text.

Directive values are written in a restricted subset of Python. Source is parsed
with ``ast`` and walked here against an Environment: the node's Scope plus the
fixed identifiers ``this``, ``old``, ``element`` and ``component``, and any
extra arguments a directive supplies (the triggering event for fetch).

Free names that are not declared anywhere fall through to a whitelist of
builtins and the runtime's globals, and finally to a lazily created Scope
variable, so reading an unknown name yields ``None`` rather than an error.
Assigning a free name (``x = 1`` in a script, ``(x := 1)`` in an expression)
writes the Scope.

Nothing here catches faults raised by user code; they propagate to the caller.
"""

from __future__ import annotations

import ast
import builtins
import functools
import inspect
import operator
import re
import textwrap
from typing import Any, Callable

from hyperscope.scope import PreviousValues, Scope

TEMPLATE_PATTERN = re.compile(r"\$\{([^}]+)\}")

SAFE_BUILTINS: dict[str, Any] = {
    name: getattr(builtins, name)
    for name in (
        "abs", "all", "any", "bool", "dict", "divmod", "enumerate", "filter",
        "float", "format", "int", "isinstance", "len", "list", "map", "max",
        "min", "print", "range", "repr", "reversed", "round", "set", "sorted",
        "str", "sum", "tuple", "zip",
    )
}

_BINARY = {
    ast.Add: operator.add,
    ast.Sub: operator.sub,
    ast.Mult: operator.mul,
    ast.Div: operator.truediv,
    ast.FloorDiv: operator.floordiv,
    ast.Mod: operator.mod,
    ast.Pow: operator.pow,
    ast.MatMult: operator.matmul,
    ast.LShift: operator.lshift,
    ast.RShift: operator.rshift,
    ast.BitOr: operator.or_,
    ast.BitXor: operator.xor,
    ast.BitAnd: operator.and_,
}

_UNARY = {
    ast.UAdd: operator.pos,
    ast.USub: operator.neg,
    ast.Not: operator.not_,
    ast.Invert: operator.invert,
}

_COMPARE = {
    ast.Eq: operator.eq,
    ast.NotEq: operator.ne,
    ast.Lt: operator.lt,
    ast.LtE: operator.le,
    ast.Gt: operator.gt,
    ast.GtE: operator.ge,
    ast.Is: operator.is_,
    ast.IsNot: operator.is_not,
    ast.In: lambda a, b: a in b,
    ast.NotIn: lambda a, b: a not in b,
}


class ExpressionError(SyntaxError):
    """Directive text uses syntax outside the supported subset."""


class Environment:
    """The fixed evaluation environment for one directive."""

    __slots__ = ("scope", "node", "component", "extra", "globals")

    def __init__(
        self,
        scope: Scope,
        *,
        node: Any = None,
        component: Any = None,
        extra: dict[str, Any] | None = None,
        globals: dict[str, Any] | None = None,
    ) -> None:
        self.scope = scope
        self.node = node
        self.component = component
        self.extra = extra or {}
        self.globals = globals or {}

    def bind(self, **extra: Any) -> Environment:
        """A copy of this environment with additional named arguments."""
        return Environment(
            self.scope,
            node=self.node,
            component=self.component,
            extra={**self.extra, **extra},
            globals=self.globals,
        )

    def lookup(self, name: str) -> Any:
        if name in self.extra:
            return self.extra[name]
        if name == "this":
            return self.scope
        if name == "old":
            return PreviousValues(self.scope)
        if name == "element":
            return self.node
        if name == "component":
            return self.component
        if self.scope.exists(name):
            return self.scope.read(name)
        if name in self.globals:
            return self.globals[name]
        if name in SAFE_BUILTINS:
            return SAFE_BUILTINS[name]
        return self.scope.read(name)


class _Frame:
    """Local names of a function call, comprehension or script body."""

    __slots__ = ("names", "parent")

    def __init__(self, names: dict[str, Any] | None = None, parent: _Frame | None = None) -> None:
        self.names = names if names is not None else {}
        self.parent = parent

    def holder(self, name: str) -> _Frame | None:
        frame: _Frame | None = self
        while frame is not None:
            if name in frame.names:
                return frame
            frame = frame.parent
        return None


class _Break(Exception):
    pass


class _Continue(Exception):
    pass


class _Return(Exception):
    def __init__(self, value: Any) -> None:
        super().__init__()
        self.value = value


class _Function:
    """A lambda or def created by directive text; callable from Python."""

    def __init__(self, interpreter, name, signature, body, frame, expression) -> None:
        self.__name__ = name
        self._interpreter = interpreter
        self._signature = signature
        self._body = body
        self._frame = frame
        self._expression = expression

    def __call__(self, *args: Any, **kwargs: Any) -> Any:
        bound = self._signature.bind(*args, **kwargs)
        bound.apply_defaults()
        frame = _Frame(dict(bound.arguments), self._frame)
        if self._expression:
            return self._interpreter.eval(self._body, frame)
        try:
            self._interpreter.exec_block(self._body, frame)
        except _Return as result:
            return result.value
        return None

    def __repr__(self) -> str:
        return f"<function {self.__name__}{self._signature}>"


class _Interpreter:
    def __init__(self, env: Environment) -> None:
        self.env = env

    # --- Statements ---

    def exec_block(self, body: list[ast.stmt], frame: _Frame) -> None:
        for statement in body:
            self.exec(statement, frame)

    def exec(self, statement: ast.stmt, frame: _Frame) -> None:
        method = getattr(self, "_exec_" + type(statement).__name__, None)
        if method is None:
            raise ExpressionError(f"unsupported statement: {type(statement).__name__}")
        method(statement, frame)

    def _exec_Expr(self, node: ast.Expr, frame: _Frame) -> None:
        self.eval(node.value, frame)

    def _exec_Assign(self, node: ast.Assign, frame: _Frame) -> None:
        value = self.eval(node.value, frame)
        for target in node.targets:
            self._assign(target, value, frame)

    def _exec_AugAssign(self, node: ast.AugAssign, frame: _Frame) -> None:
        op = _BINARY[type(node.op)]
        target = node.target
        if isinstance(target, ast.Name):
            current = self.eval(target, frame)
            self._assign_name(target.id, op(current, self.eval(node.value, frame)), frame)
        elif isinstance(target, ast.Attribute):
            obj = self.eval(target.value, frame)
            setattr(obj, target.attr, op(getattr(obj, target.attr), self.eval(node.value, frame)))
        elif isinstance(target, ast.Subscript):
            obj = self.eval(target.value, frame)
            key = self.eval(target.slice, frame)
            obj[key] = op(obj[key], self.eval(node.value, frame))
        else:
            raise ExpressionError(f"cannot assign to {type(target).__name__}")

    def _exec_If(self, node: ast.If, frame: _Frame) -> None:
        self.exec_block(node.body if self.eval(node.test, frame) else node.orelse, frame)

    def _exec_For(self, node: ast.For, frame: _Frame) -> None:
        for item in self.eval(node.iter, frame):
            self._bind(node.target, item, frame)
            try:
                self.exec_block(node.body, frame)
            except _Break:
                break
            except _Continue:
                continue
        else:
            self.exec_block(node.orelse, frame)

    def _exec_While(self, node: ast.While, frame: _Frame) -> None:
        while self.eval(node.test, frame):
            try:
                self.exec_block(node.body, frame)
            except _Break:
                break
            except _Continue:
                continue
        else:
            self.exec_block(node.orelse, frame)

    def _exec_Break(self, node: ast.Break, frame: _Frame) -> None:
        raise _Break()

    def _exec_Continue(self, node: ast.Continue, frame: _Frame) -> None:
        raise _Continue()

    def _exec_Pass(self, node: ast.Pass, frame: _Frame) -> None:
        pass

    def _exec_Return(self, node: ast.Return, frame: _Frame) -> None:
        raise _Return(None if node.value is None else self.eval(node.value, frame))

    def _exec_FunctionDef(self, node: ast.FunctionDef, frame: _Frame) -> None:
        if node.decorator_list:
            raise ExpressionError("decorators are not supported")
        function = _Function(self, node.name, self._signature(node.args, frame), node.body, frame, False)
        self._assign_name(node.name, function, frame)

    # --- Binding ---

    def _assign_name(self, name: str, value: Any, frame: _Frame | None) -> None:
        holder = frame.holder(name) if frame is not None else None
        if holder is not None:
            holder.names[name] = value
        else:
            self.env.scope.write(name, value)

    def _assign(self, target: ast.expr, value: Any, frame: _Frame | None) -> None:
        if isinstance(target, ast.Name):
            self._assign_name(target.id, value, frame)
        elif isinstance(target, ast.Attribute):
            setattr(self.eval(target.value, frame), target.attr, value)
        elif isinstance(target, ast.Subscript):
            self.eval(target.value, frame)[self.eval(target.slice, frame)] = value
        elif isinstance(target, (ast.Tuple, ast.List)):
            for sub, item in zip(target.elts, self._unpack(target, value), strict=True):
                self._assign(sub, item, frame)
        else:
            raise ExpressionError(f"cannot assign to {type(target).__name__}")

    def _bind(self, target: ast.expr, value: Any, frame: _Frame) -> None:
        """Bind loop and comprehension targets as frame locals."""
        if isinstance(target, ast.Name):
            frame.names[target.id] = value
        elif isinstance(target, (ast.Tuple, ast.List)):
            for sub, item in zip(target.elts, self._unpack(target, value), strict=True):
                self._bind(sub, item, frame)
        else:
            self._assign(target, value, frame)

    @staticmethod
    def _unpack(target: ast.Tuple | ast.List, value: Any) -> list:
        items = list(value)
        if len(items) != len(target.elts):
            raise ValueError(f"expected {len(target.elts)} values to unpack, got {len(items)}")
        return items

    def _signature(self, args: ast.arguments, frame: _Frame | None) -> inspect.Signature:
        P = inspect.Parameter
        positional = args.posonlyargs + args.args
        defaults = [self.eval(default, frame) for default in args.defaults]
        first_default = len(positional) - len(defaults)
        params = []
        for index, arg in enumerate(positional):
            kind = P.POSITIONAL_ONLY if index < len(args.posonlyargs) else P.POSITIONAL_OR_KEYWORD
            default = defaults[index - first_default] if index >= first_default else P.empty
            params.append(P(arg.arg, kind, default=default))
        if args.vararg is not None:
            params.append(P(args.vararg.arg, P.VAR_POSITIONAL))
        for arg, default in zip(args.kwonlyargs, args.kw_defaults):
            value = P.empty if default is None else self.eval(default, frame)
            params.append(P(arg.arg, P.KEYWORD_ONLY, default=value))
        if args.kwarg is not None:
            params.append(P(args.kwarg.arg, P.VAR_KEYWORD))
        return inspect.Signature(params)

    # --- Expressions ---

    def eval(self, node: ast.expr, frame: _Frame | None) -> Any:
        method = getattr(self, "_eval_" + type(node).__name__, None)
        if method is None:
            raise ExpressionError(f"unsupported expression: {type(node).__name__}")
        return method(node, frame)

    def _eval_Constant(self, node, frame):
        return node.value

    def _eval_Name(self, node, frame):
        holder = frame.holder(node.id) if frame is not None else None
        if holder is not None:
            return holder.names[node.id]
        return self.env.lookup(node.id)

    def _eval_NamedExpr(self, node, frame):
        value = self.eval(node.value, frame)
        self._assign_name(node.target.id, value, frame)
        return value

    def _items(self, elts, frame) -> list:
        items = []
        for elt in elts:
            if isinstance(elt, ast.Starred):
                items.extend(self.eval(elt.value, frame))
            else:
                items.append(self.eval(elt, frame))
        return items

    def _eval_List(self, node, frame):
        return self._items(node.elts, frame)

    def _eval_Tuple(self, node, frame):
        return tuple(self._items(node.elts, frame))

    def _eval_Set(self, node, frame):
        return set(self._items(node.elts, frame))

    def _eval_Dict(self, node, frame):
        result = {}
        for key, value in zip(node.keys, node.values):
            if key is None:
                result.update(self.eval(value, frame))
            else:
                result[self.eval(key, frame)] = self.eval(value, frame)
        return result

    def _eval_BinOp(self, node, frame):
        return _BINARY[type(node.op)](self.eval(node.left, frame), self.eval(node.right, frame))

    def _eval_UnaryOp(self, node, frame):
        return _UNARY[type(node.op)](self.eval(node.operand, frame))

    def _eval_BoolOp(self, node, frame):
        is_and = isinstance(node.op, ast.And)
        value = None
        for operand in node.values:
            value = self.eval(operand, frame)
            if bool(value) is not is_and:
                return value
        return value

    def _eval_Compare(self, node, frame):
        left = self.eval(node.left, frame)
        for op, comparator in zip(node.ops, node.comparators):
            right = self.eval(comparator, frame)
            if not _COMPARE[type(op)](left, right):
                return False
            left = right
        return True

    def _eval_IfExp(self, node, frame):
        return self.eval(node.body if self.eval(node.test, frame) else node.orelse, frame)

    def _eval_Attribute(self, node, frame):
        return getattr(self.eval(node.value, frame), node.attr)

    def _eval_Subscript(self, node, frame):
        return self.eval(node.value, frame)[self.eval(node.slice, frame)]

    def _eval_Slice(self, node, frame):
        return slice(
            None if node.lower is None else self.eval(node.lower, frame),
            None if node.upper is None else self.eval(node.upper, frame),
            None if node.step is None else self.eval(node.step, frame),
        )

    def call_arguments(self, node: ast.Call, frame: _Frame | None) -> tuple[list, dict]:
        args = self._items(node.args, frame)
        kwargs: dict[str, Any] = {}
        for keyword in node.keywords:
            if keyword.arg is None:
                kwargs.update(self.eval(keyword.value, frame))
            else:
                kwargs[keyword.arg] = self.eval(keyword.value, frame)
        return args, kwargs

    def _eval_Call(self, node, frame):
        function = self.eval(node.func, frame)
        args, kwargs = self.call_arguments(node, frame)
        return function(*args, **kwargs)

    def _eval_Lambda(self, node, frame):
        return _Function(self, "<lambda>", self._signature(node.args, frame), node.body, frame, True)

    def _comprehension(self, generators, frame, emit: Callable[[_Frame], None]) -> None:
        def loop(index: int, outer: _Frame | None) -> None:
            if index == len(generators):
                emit(outer)
                return
            generator = generators[index]
            for item in self.eval(generator.iter, outer):
                inner = _Frame({}, outer)
                self._bind(generator.target, item, inner)
                if all(self.eval(condition, inner) for condition in generator.ifs):
                    loop(index + 1, inner)

        loop(0, frame)

    def _eval_ListComp(self, node, frame):
        result: list = []
        self._comprehension(node.generators, frame, lambda f: result.append(self.eval(node.elt, f)))
        return result

    def _eval_GeneratorExp(self, node, frame):
        return iter(self._eval_ListComp(node, frame))

    def _eval_SetComp(self, node, frame):
        return set(self._eval_ListComp(node, frame))

    def _eval_DictComp(self, node, frame):
        result: dict = {}

        def emit(f: _Frame) -> None:
            result[self.eval(node.key, f)] = self.eval(node.value, f)

        self._comprehension(node.generators, frame, emit)
        return result

    def _eval_JoinedStr(self, node, frame):
        return "".join(str(self.eval(part, frame)) for part in node.values)

    def _eval_FormattedValue(self, node, frame):
        value = self.eval(node.value, frame)
        if node.conversion == ord("r"):
            value = repr(value)
        elif node.conversion == ord("s"):
            value = str(value)
        elif node.conversion == ord("a"):
            value = ascii(value)
        spec = "" if node.format_spec is None else self.eval(node.format_spec, frame)
        return format(value, spec)


@functools.lru_cache(maxsize=1024)
def _parse(source: str, mode: str) -> ast.AST:
    return ast.parse(source, mode=mode)


def stringify(value: Any) -> str:
    """Text form used for attributes, templates and persisted stores."""
    return "" if value is None else str(value)


def is_template(source: str) -> bool:
    return TEMPLATE_PATTERN.search(source) is not None


def evaluate(source: str, env: Environment, **extra: Any) -> Any:
    """Evaluate one expression. Empty source evaluates to None."""
    source = source.strip()
    if not source:
        return None
    if extra:
        env = env.bind(**extra)
    tree = _parse(source, "eval")
    return _Interpreter(env).eval(tree.body, None)


def execute(source: str, env: Environment) -> None:
    """Run a script body. Loop variables stay local to the script."""
    tree = _parse(textwrap.dedent(source).strip(), "exec")
    interpreter = _Interpreter(env)
    try:
        interpreter.exec_block(tree.body, _Frame())
    except _Return:
        pass


def evaluate_arguments(source: str, env: Environment) -> tuple[list, dict]:
    """Evaluate a call-argument list such as ``'/api', method='POST'``."""
    tree = _parse(f"_({source.strip()})", "eval")
    return _Interpreter(env).call_arguments(tree.body, None)


def render_template(source: str, env: Environment) -> str:
    """Replace every ``${expr}`` with the stringified value of expr."""
    return TEMPLATE_PATTERN.sub(lambda match: stringify(evaluate(match.group(1), env)), source)

"""Predicate expression language.

Compiles analysis conditions such as ``result < 300 && result >= 0`` into
callables of the measured value. Supported syntax:

- literals: integers, floats, quoted strings, ``true``, ``false``, ``nil``
- arrays: ``[1, 2, 3]``
- the variable ``result``
- arithmetic: ``+ - * / % **`` (``^`` is an alias of ``**``)
- comparisons: ``== != < <= > >=``, ``in``, ``not in``
- logic: ``&&``/``and``, ``||``/``or``, ``!``/``not``
- ternary: ``cond ? a : b``
- builtins: ``abs(x)``, ``min(...)``, ``max(...)``

Names and operand types are checked at compile time, so a typo or a
comparison such as ``result < "abc"`` fails before any query is evaluated.
"""

import operator
import re
from dataclasses import dataclass
from typing import Any, Callable, Mapping

from honeycomb_metrics.domain.errors import PredicateCompileError, PredicateEvaluationError
from honeycomb_metrics.domain.ports import PredicateEnginePort
from honeycomb_metrics.domain.types import Predicate

RESULT_VARIABLE = "result"

Env = Mapping[str, Any]
Evaluator = Callable[[Env], Any]

_TOKEN_RE = re.compile(
    r"""
    (?P<ws>\s+)
    | (?P<number>\d+\.\d+(?:[eE][+-]?\d+)?|\d+[eE][+-]?\d+|\d+)
    | (?P<string>"(?:[^"\\]|\\.)*"|'(?:[^'\\]|\\.)*')
    | (?P<name>[A-Za-z_][A-Za-z0-9_]*)
    | (?P<op>\*\*|==|!=|<=|>=|&&|\|\||[-+*/%^<>!()\[\],?:])
    """,
    re.VERBOSE,
)

_KEYWORD_OPS = {"and", "or", "not", "in"}

# Static kinds of expression nodes; ANY is used when the kind depends on data
NUMBER = "number"
BOOL = "bool"
STRING = "string"
NIL = "nil"
ARRAY = "array"
ANY = "any"

_CONSTANTS: dict[str, tuple[Any, str]] = {
    "true": (True, BOOL),
    "false": (False, BOOL),
    "nil": (None, NIL),
}


@dataclass(frozen=True)
class _Token:
    """Lexical token."""

    kind: str
    text: str
    pos: int


@dataclass(frozen=True)
class _Node:
    """Compiled expression node with its static kind."""

    evaluate: Evaluator
    kind: str


_EOF = "eof"


def _tokenize(source: str) -> list[_Token]:
    """Split predicate source into tokens."""
    tokens: list[_Token] = []
    pos = 0
    while pos < len(source):
        match = _TOKEN_RE.match(source, pos)
        if match is None:
            raise PredicateCompileError(
                f"unexpected character {source[pos]!r} at position {pos} in {source!r}"
            )
        kind = match.lastgroup
        text = match.group()
        if kind == "name" and text in _KEYWORD_OPS:
            kind = "op"
        if kind != "ws":
            tokens.append(_Token(kind, text, pos))
        pos = match.end()
    tokens.append(_Token(_EOF, "", len(source)))
    return tokens


# ============================================================================
# Static typing
# ============================================================================


def _accepts(kind: str, expected: str) -> bool:
    return kind == ANY or kind == expected


_ARITHMETIC_OPS = {"-", "*", "/", "%", "**", "^"}
_ORDERING_OPS = {"<", "<=", ">", ">="}


def _binary_kind(op: str, left: str, right: str) -> str | None:
    """Kind of ``left op right``, or None if the operand kinds are invalid."""
    if op == "+":
        for kind in (NUMBER, STRING):
            if _accepts(left, kind) and _accepts(right, kind):
                return kind if kind in (left, right) else ANY
        return None
    if op in _ARITHMETIC_OPS:
        return NUMBER if _accepts(left, NUMBER) and _accepts(right, NUMBER) else None
    if op in _ORDERING_OPS:
        valid = any(_accepts(left, kind) and _accepts(right, kind) for kind in (NUMBER, STRING))
        return BOOL if valid else None
    if op in ("==", "!="):
        valid = left == right or ANY in (left, right) or NIL in (left, right)
        return BOOL if valid else None
    # in / not in
    if right == STRING:
        return BOOL if _accepts(left, STRING) else None
    return BOOL if _accepts(right, ARRAY) else None


# ============================================================================
# Runtime helpers
# ============================================================================


def _is_number(value: Any) -> bool:
    return isinstance(value, (int, float)) and not isinstance(value, bool)


def _require_bool(value: Any, op: str) -> bool:
    if not isinstance(value, bool):
        raise TypeError(f"operator {op!r} expects bool, got {type(value).__name__}")
    return value


def _numeric(func: Callable[[Any, Any], Any], op: str) -> Callable[[Any, Any], Any]:
    """Wrap a binary operator so it only accepts numbers."""

    def apply(left: Any, right: Any) -> Any:
        if not (_is_number(left) and _is_number(right)):
            raise TypeError(
                f"invalid operation: {type(left).__name__} {op} {type(right).__name__}"
            )
        return func(left, right)

    return apply


def _add(left: Any, right: Any) -> Any:
    if isinstance(left, str) and isinstance(right, str):
        return left + right
    return _numeric(operator.add, "+")(left, right)


def _modulo(left: Any, right: Any) -> int:
    if not all(isinstance(v, int) and not isinstance(v, bool) for v in (left, right)):
        raise TypeError(f"invalid operation: {type(left).__name__} % {type(right).__name__}")
    return left % right


def _contains(item: Any, container: Any) -> bool:
    if isinstance(container, str):
        if not isinstance(item, str):
            raise TypeError(f"invalid operation: {type(item).__name__} in string")
        return item in container
    if isinstance(container, (list, tuple)):
        return item in container
    raise TypeError(f"invalid operation: in {type(container).__name__}")


def _not_contains(item: Any, container: Any) -> bool:
    return not _contains(item, container)


_BINARY_OPS: dict[str, Callable[[Any, Any], Any]] = {
    "+": _add,
    "-": _numeric(operator.sub, "-"),
    "*": _numeric(operator.mul, "*"),
    "/": _numeric(operator.truediv, "/"),
    "%": _modulo,
    "**": _numeric(operator.pow, "**"),
    "^": _numeric(operator.pow, "**"),
    "==": operator.eq,
    "!=": operator.ne,
    "<": operator.lt,
    "<=": operator.le,
    ">": operator.gt,
    ">=": operator.ge,
    "in": _contains,
    "not in": _not_contains,
}


def _builtin_abs(*args: Any) -> Any:
    (value,) = args
    if not _is_number(value):
        raise TypeError(f"abs expects a number, got {type(value).__name__}")
    return abs(value)


def _builtin_extreme(func: Callable[..., Any]) -> Callable[..., Any]:
    def apply(*args: Any) -> Any:
        values = args[0] if len(args) == 1 and isinstance(args[0], list) else list(args)
        if not values:
            raise ValueError(f"{func.__name__} of empty array")
        if not all(_is_number(value) for value in values):
            raise TypeError(f"{func.__name__} expects numbers")
        return func(values)

    return apply


# name -> (callable, min arity, max arity or None)
_BUILTINS: dict[str, tuple[Callable[..., Any], int, int | None]] = {
    "abs": (_builtin_abs, 1, 1),
    "min": (_builtin_extreme(min), 1, None),
    "max": (_builtin_extreme(max), 1, None),
}


# ============================================================================
# Parser
# ============================================================================


class _Parser:
    """Recursive descent parser producing typed closures over the environment."""

    def __init__(self, source: str, names: frozenset[str]) -> None:
        self.source = source
        self.names = names
        self.tokens = _tokenize(source)
        self.index = 0

    @property
    def current(self) -> _Token:
        return self.tokens[self.index]

    def _advance(self) -> _Token:
        token = self.tokens[self.index]
        self.index += 1
        return token

    def _at(self, *ops: str) -> bool:
        return self.current.kind == "op" and self.current.text in ops

    def _expect(self, op: str) -> None:
        if not self._at(op):
            raise self._error(f"expected {op!r}")
        self._advance()

    def _error(self, message: str) -> PredicateCompileError:
        token = self.current
        found = "end of input" if token.kind == _EOF else repr(token.text)
        return PredicateCompileError(
            f"{message}, found {found} at position {token.pos} in {self.source!r}"
        )

    def _type_error(self, token: _Token, message: str) -> PredicateCompileError:
        return PredicateCompileError(
            f"invalid operation: {message} at position {token.pos} in {self.source!r}"
        )

    def parse(self) -> _Node:
        if self.current.kind == _EOF:
            raise PredicateCompileError("empty expression")
        node = self._ternary()
        if self.current.kind != _EOF:
            raise self._error("unexpected token")
        return node

    def _ternary(self) -> _Node:
        condition = self._or()
        if not self._at("?"):
            return condition
        token = self._advance()
        if not _accepts(condition.kind, BOOL):
            raise self._type_error(token, f"{condition.kind} ? ... (condition must be bool)")
        when_true = self._ternary()
        self._expect(":")
        when_false = self._ternary()
        kind = when_true.kind if when_true.kind == when_false.kind else ANY
        return _Node(
            lambda env: (
                when_true.evaluate(env)
                if _require_bool(condition.evaluate(env), "?:")
                else when_false.evaluate(env)
            ),
            kind,
        )

    def _or(self) -> _Node:
        left = self._and()
        while self._at("||", "or"):
            token = self._advance()
            left = self._logical(left, token, self._and(), stop_on=True)
        return left

    def _and(self) -> _Node:
        left = self._equality()
        while self._at("&&", "and"):
            token = self._advance()
            left = self._logical(left, token, self._equality(), stop_on=False)
        return left

    def _logical(self, left: _Node, token: _Token, right: _Node, stop_on: bool) -> _Node:
        op = token.text
        if not (_accepts(left.kind, BOOL) and _accepts(right.kind, BOOL)):
            raise self._type_error(token, f"{left.kind} {op} {right.kind}")

        def evaluate(env: Env) -> bool:
            if _require_bool(left.evaluate(env), op) is stop_on:
                return stop_on
            return _require_bool(right.evaluate(env), op)

        return _Node(evaluate, BOOL)

    def _equality(self) -> _Node:
        left = self._comparison()
        while self._at("==", "!="):
            token = self._advance()
            left = self._binary(left, token, token.text, self._comparison())
        return left

    def _comparison(self) -> _Node:
        left = self._additive()
        while True:
            token = self.current
            if self._at("<", "<=", ">", ">=", "in"):
                op = self._advance().text
            elif self._at("not") and self._peek_is("in"):
                self._advance()
                self._advance()
                op = "not in"
            else:
                return left
            left = self._binary(left, token, op, self._additive())

    def _peek_is(self, op: str) -> bool:
        token = self.tokens[self.index + 1]
        return token.kind == "op" and token.text == op

    def _additive(self) -> _Node:
        left = self._multiplicative()
        while self._at("+", "-"):
            token = self._advance()
            left = self._binary(left, token, token.text, self._multiplicative())
        return left

    def _multiplicative(self) -> _Node:
        left = self._unary()
        while self._at("*", "/", "%"):
            token = self._advance()
            left = self._binary(left, token, token.text, self._unary())
        return left

    def _unary(self) -> _Node:
        if self._at("!", "not"):
            token = self._advance()
            operand = self._unary()
            if not _accepts(operand.kind, BOOL):
                raise self._type_error(token, f"{token.text} {operand.kind}")
            return _Node(lambda env: not _require_bool(operand.evaluate(env), token.text), BOOL)
        if self._at("-", "+"):
            token = self._advance()
            operand = self._unary()
            if not _accepts(operand.kind, NUMBER):
                raise self._type_error(token, f"{token.text} {operand.kind}")
            func = _BINARY_OPS[token.text]
            return _Node(lambda env: func(0, operand.evaluate(env)), NUMBER)
        return self._power()

    def _power(self) -> _Node:
        base = self._primary()
        if self._at("**", "^"):
            token = self._advance()
            # right associative
            return self._binary(base, token, token.text, self._unary())
        return base

    def _binary(self, left: _Node, token: _Token, op: str, right: _Node) -> _Node:
        kind = _binary_kind(op, left.kind, right.kind)
        if kind is None:
            raise self._type_error(token, f"{left.kind} {op} {right.kind}")
        func = _BINARY_OPS[op]
        return _Node(lambda env: func(left.evaluate(env), right.evaluate(env)), kind)

    def _primary(self) -> _Node:
        token = self.current
        if token.kind == "number":
            self._advance()
            value = float(token.text) if any(c in token.text for c in ".eE") else int(token.text)
            return _Node(lambda env: value, NUMBER)
        if token.kind == "string":
            self._advance()
            text = _unquote(token.text)
            return _Node(lambda env: text, STRING)
        if token.kind == "name":
            return self._name()
        if self._at("("):
            self._advance()
            inner = self._ternary()
            self._expect(")")
            return inner
        if self._at("["):
            return self._array()
        raise self._error("unexpected token")

    def _name(self) -> _Node:
        token = self._advance()
        name = token.text
        if self._at("("):
            return self._call(token)
        if name in _CONSTANTS:
            constant, kind = _CONSTANTS[name]
            return _Node(lambda env: constant, kind)
        if name not in self.names:
            raise PredicateCompileError(
                f"unknown name {name!r} at position {token.pos} in {self.source!r}"
            )
        # the bound variable is always the integer measurement
        return _Node(lambda env: env[name], NUMBER)

    def _call(self, token: _Token) -> _Node:
        if token.text not in _BUILTINS:
            raise PredicateCompileError(
                f"unknown function {token.text!r} at position {token.pos} in {self.source!r}"
            )
        func, min_args, max_args = _BUILTINS[token.text]
        args = self._sequence(")")
        if len(args) < min_args or (max_args is not None and len(args) > max_args):
            raise PredicateCompileError(
                f"wrong number of arguments for {token.text}: {len(args)} in {self.source!r}"
            )
        single_array = len(args) == 1 and _accepts(args[0].kind, ARRAY) and token.text != "abs"
        if not single_array and not all(_accepts(arg.kind, NUMBER) for arg in args):
            kinds = ", ".join(arg.kind for arg in args)
            raise self._type_error(token, f"{token.text}({kinds})")
        return _Node(lambda env: func(*(arg.evaluate(env) for arg in args)), NUMBER)

    def _array(self) -> _Node:
        items = self._sequence("]")
        return _Node(lambda env: [item.evaluate(env) for item in items], ARRAY)

    def _sequence(self, closing: str) -> list[_Node]:
        """Parse a comma-separated list after an opening bracket."""
        self._advance()
        items: list[_Node] = []
        if not self._at(closing):
            items.append(self._ternary())
            while self._at(","):
                self._advance()
                items.append(self._ternary())
        self._expect(closing)
        return items


def _unquote(text: str) -> str:
    body = text[1:-1]
    return re.sub(r"\\(.)", lambda m: {"n": "\n", "t": "\t"}.get(m.group(1), m.group(1)), body)


# ============================================================================
# Engine
# ============================================================================


class ExprPredicateEngine(PredicateEnginePort):
    """Predicate engine backed by the expression language above."""

    def __init__(self, variable: str = RESULT_VARIABLE) -> None:
        """Initialize engine with the name the measured value is bound to."""
        self.variable = variable

    def compile(self, source: str) -> Predicate:
        """Compile predicate source.

        Raises:
            PredicateCompileError: if the source is not a valid expression.
        """
        try:
            node = _Parser(source, frozenset({self.variable})).parse()
        except RecursionError as e:
            raise PredicateCompileError(f"expression is nested too deeply: {source[:50]!r}...") from e
        variable = self.variable

        def predicate(value: int) -> Any:
            try:
                return node.evaluate({variable: value})
            except RecursionError as e:
                raise PredicateEvaluationError(f"expression is nested too deeply: {source[:50]!r}...") from e
            except (TypeError, ValueError, ZeroDivisionError, OverflowError) as e:
                raise PredicateEvaluationError(f"failed to evaluate {source!r}: {e}") from e

        return predicate

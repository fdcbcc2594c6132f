"""
Prerequisite Expression Evaluator.

Evaluates the small expression language operators use to gate
whether an actor may act on a target.

Supports:
- Literals: numbers, 'single' or "double" quoted strings, true/false
- Context paths: actor.stats.wealth, relationship.weights["fear"]
- Derived paths: actor.offices, actor.knowledge, actor.location
- Comparisons: ==, !=, <, >, <=, >=
- Arithmetic: +, -, *, / with parentheses (division by zero yields 0)
- Membership: actor.bdi.beliefs includes "Rome is burning"
- Existence: target.status.wanted exists
- Bare values: true unless false, zero, empty string, NaN or missing;
  lists and objects are true even when empty

Grammar:
    expression  := membership | existence | comparison
    membership  := PATH "includes" value
    existence   := PATH "exists"
    comparison  := arithmetic (COMPARATOR arithmetic)?
    arithmetic  := value (("+" | "-" | "*" | "/") value)*
    value       := NUMBER | STRING | BOOLEAN | PATH | "-" value | "(" arithmetic ")"

Evaluation never raises past evaluate_expression() / evaluate_prereqs();
every failure comes back as an error string on the result.
"""

from __future__ import annotations
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Iterable, Mapping

from .paths import PathResolutionError, resolve_context_path
from .values import is_number, is_truthy, strict_equals, to_text, type_name


class ExpressionError(Exception):
    """Raised for tokenizer, parser and evaluation failures."""


class TokenType(Enum):
    PATH = "path"
    COMPARATOR = "comparator"
    NUMBER = "number"
    STRING = "string"
    BOOLEAN = "boolean"
    KEYWORD = "keyword"
    ARITHMETIC = "arithmetic"
    LPAREN = "lparen"
    RPAREN = "rparen"


@dataclass(frozen=True)
class Token:
    type: TokenType
    value: str
    position: int = 0


COMPARATORS = ("==", "!=", ">=", "<=", ">", "<")
ARITHMETIC = ("+", "-", "*", "/")
KEYWORDS = ("includes", "exists")
BOOLEANS = ("true", "false")


def tokenize(expr: str) -> list[Token]:
    """
    Split an expression into tokens.

    Two-character comparators are matched before one-character ones.
    Identifiers may contain dots and bracket accessors, including quoted
    keys: ``relationship.weights["fear"]``.
    """
    tokens: list[Token] = []
    i = 0
    n = len(expr)

    while i < n:
        ch = expr[i]

        if ch.isspace():
            i += 1
            continue

        if ch == "(":
            tokens.append(Token(TokenType.LPAREN, ch, i))
            i += 1
            continue
        if ch == ")":
            tokens.append(Token(TokenType.RPAREN, ch, i))
            i += 1
            continue

        two = expr[i:i + 2]
        if two in COMPARATORS:
            tokens.append(Token(TokenType.COMPARATOR, two, i))
            i += 2
            continue
        if ch in COMPARATORS:
            tokens.append(Token(TokenType.COMPARATOR, ch, i))
            i += 1
            continue

        if ch in ARITHMETIC:
            tokens.append(Token(TokenType.ARITHMETIC, ch, i))
            i += 1
            continue

        if ch in ("'", '"'):
            end = expr.find(ch, i + 1)
            if end == -1:
                raise ExpressionError(f"Unterminated string starting at position {i}")
            tokens.append(Token(TokenType.STRING, expr[i + 1:end], i))
            i = end + 1
            continue

        if ch.isdigit() or ch == ".":
            start = i
            while i < n and (expr[i].isdigit() or expr[i] == "."):
                i += 1
            tokens.append(Token(TokenType.NUMBER, expr[start:i], start))
            continue

        if ch.isalpha() or ch == "_":
            start = i
            i = _scan_identifier(expr, i)
            ident = expr[start:i]
            if ident in BOOLEANS:
                tokens.append(Token(TokenType.BOOLEAN, ident, start))
            elif ident in KEYWORDS:
                tokens.append(Token(TokenType.KEYWORD, ident, start))
            else:
                tokens.append(Token(TokenType.PATH, ident, start))
            continue

        raise ExpressionError(f"Unexpected character at position {i}: '{ch}'")

    return tokens


def _scan_identifier(expr: str, i: int) -> int:
    """Return the index just past an identifier starting at i."""
    n = len(expr)
    while i < n:
        ch = expr[i]
        if ch.isalnum() or ch in "_.":
            i += 1
        elif ch == "[":
            close = _bracket_end(expr, i)
            if close == -1:
                raise ExpressionError(f"Unterminated '[' at position {i}")
            i = close + 1
        else:
            break
    return i


def _bracket_end(expr: str, i: int) -> int:
    quote: str | None = None
    for j in range(i + 1, len(expr)):
        ch = expr[j]
        if quote:
            if ch == quote:
                quote = None
        elif ch in ("'", '"'):
            quote = ch
        elif ch == "]":
            return j
    return -1


# =============================================================================
# Context and results
# =============================================================================

@dataclass
class EvaluationContext:
    """
    Everything an expression may reference.

    actor/target/relationship are raw entity dicts, world is the world
    document. assets and secrets are the full documents, used only by the
    derived ``offices`` and ``knowledge`` paths.
    """
    actor: dict[str, Any] | None = None
    target: dict[str, Any] | None = None
    world: dict[str, Any] | None = None
    relationship: dict[str, Any] | None = None
    assets: dict[str, Any] | None = None
    secrets: dict[str, Any] | None = None


@dataclass
class EvaluationResult:
    """Outcome of evaluating one expression."""
    success: bool
    value: Any = None
    error: str | None = None

    @classmethod
    def ok(cls, value: Any) -> EvaluationResult:
        return cls(success=True, value=value)

    @classmethod
    def failure(cls, error: str) -> EvaluationResult:
        return cls(success=False, error=error)


@dataclass
class PrereqResult:
    """Per-expression outcome within a prerequisite batch."""
    expr: str
    passed: bool
    error: str | None = None


@dataclass
class PrereqReport:
    """Aggregate outcome of a prerequisite batch."""
    all_passed: bool
    results: list[PrereqResult] = field(default_factory=list)

    @property
    def failures(self) -> list[PrereqResult]:
        return [r for r in self.results if not r.passed]


# =============================================================================
# Parser / evaluator
# =============================================================================

class _Parser:
    """Recursive-descent parser that evaluates as it parses."""

    def __init__(self, tokens: list[Token], context: EvaluationContext):
        self.tokens = tokens
        self.context = context
        self.pos = 0

    def peek(self, offset: int = 0) -> Token | None:
        index = self.pos + offset
        return self.tokens[index] if index < len(self.tokens) else None

    def advance(self) -> Token:
        token = self.tokens[self.pos]
        self.pos += 1
        return token

    def resolve(self, path: str) -> Any:
        try:
            return resolve_context_path(path, self.context)
        except PathResolutionError as e:
            raise ExpressionError(str(e)) from e

    def parse(self) -> Any:
        if not self.tokens:
            raise ExpressionError("Empty expression")
        result = self.expression()
        leftover = self.peek()
        if leftover is not None:
            raise ExpressionError(
                f"Unexpected token at position {leftover.position}: '{leftover.value}'"
            )
        return result

    def expression(self) -> Any:
        first, second = self.peek(), self.peek(1)
        if (
            first is not None and first.type == TokenType.PATH
            and second is not None and second.type == TokenType.KEYWORD
        ):
            self.pos += 2
            if second.value == "exists":
                return self.resolve(first.value) is not None
            needle = self.value()
            return self._includes(self.resolve(first.value), needle)

        left = self.arithmetic()
        token = self.peek()
        if token is None or token.type != TokenType.COMPARATOR:
            return is_truthy(left)

        self.advance()
        right = self.arithmetic()
        return self._compare(left, right, token.value)

    def arithmetic(self) -> Any:
        left = self.value()
        while self.peek() is not None and self.peek().type == TokenType.ARITHMETIC:
            op = self.advance().value
            right = self.value()
            left = self._arithmetic(left, right, op)
        return left

    def value(self) -> Any:
        token = self.peek()
        if token is None:
            raise ExpressionError("Unexpected end of expression")

        if token.type == TokenType.NUMBER:
            self.advance()
            return self._number(token)
        if token.type == TokenType.STRING:
            self.advance()
            return token.value
        if token.type == TokenType.BOOLEAN:
            self.advance()
            return token.value == "true"
        if token.type == TokenType.PATH:
            self.advance()
            return self.resolve(token.value)
        if token.type == TokenType.ARITHMETIC and token.value == "-":
            self.advance()
            operand = self.value()
            if not is_number(operand):
                raise ExpressionError(f"Cannot negate {type_name(operand)}")
            return -operand
        if token.type == TokenType.LPAREN:
            self.advance()
            result = self.arithmetic()
            closing = self.peek()
            if closing is None or closing.type != TokenType.RPAREN:
                raise ExpressionError("Expected ')'")
            self.advance()
            return result

        raise ExpressionError(f"Unexpected token: {token.type.name} ({token.value})")

    @staticmethod
    def _number(token: Token) -> int | float:
        text = token.value
        try:
            return float(text) if "." in text else int(text)
        except ValueError:
            raise ExpressionError(
                f"Invalid number at position {token.position}: '{text}'"
            ) from None

    @staticmethod
    def _arithmetic(left: Any, right: Any, op: str) -> int | float:
        if not is_number(left) or not is_number(right):
            raise ExpressionError(
                f"Arithmetic requires numeric operands, "
                f"got {type_name(left)} and {type_name(right)}"
            )
        try:
            if op == "+":
                return left + right
            if op == "-":
                return left - right
            if op == "*":
                return left * right
            return left / right if right != 0 else 0
        except OverflowError:
            raise ExpressionError(f"Arithmetic overflow: {op} on out-of-range numbers") from None

    @staticmethod
    def _compare(left: Any, right: Any, op: str) -> bool:
        if op == "==":
            return strict_equals(left, right)
        if op == "!=":
            return not strict_equals(left, right)
        try:
            if op == "<":
                return left < right
            if op == ">":
                return left > right
            if op == "<=":
                return left <= right
            if op == ">=":
                return left >= right
        except TypeError:
            return False
        raise ExpressionError(f"Unknown operator: {op}")

    @staticmethod
    def _includes(haystack: Any, needle: Any) -> bool:
        if isinstance(haystack, list):
            return any(strict_equals(item, needle) for item in haystack)
        if isinstance(haystack, str):
            return to_text(needle) in haystack
        return False


class ExpressionEvaluator:
    """
    Evaluates prerequisite expressions against a context.

    Stateless; a single instance can be shared.
    """

    def evaluate(self, expr: str, context: EvaluationContext) -> EvaluationResult:
        try:
            tokens = tokenize(expr)
            return EvaluationResult.ok(_Parser(tokens, context).parse())
        except ExpressionError as e:
            return EvaluationResult.failure(str(e))
        except RecursionError:
            return EvaluationResult.failure("Expression is nested too deeply")
        except (ArithmeticError, ValueError) as e:
            return EvaluationResult.failure(f"Evaluation failed: {e}")

    def evaluate_prereqs(
        self,
        prereqs: Iterable[Mapping[str, Any] | str],
        context: EvaluationContext,
    ) -> PrereqReport:
        """
        Evaluate every prerequisite independently.

        The batch passes only if each expression parses and evaluates to
        exactly True. A failing expression never stops the others.
        """
        results = []
        for prereq in prereqs:
            expr = prereq if isinstance(prereq, str) else str(prereq.get("expr", ""))
            result = self.evaluate(expr, context)
            results.append(PrereqResult(
                expr=expr,
                passed=result.success and result.value is True,
                error=result.error,
            ))
        return PrereqReport(
            all_passed=all(r.passed for r in results),
            results=results,
        )


_default_evaluator = ExpressionEvaluator()


def evaluate_expression(expr: str, context: EvaluationContext) -> EvaluationResult:
    """Evaluate a single expression string."""
    return _default_evaluator.evaluate(expr, context)


def evaluate_prereqs(
    prereqs: Iterable[Mapping[str, Any] | str],
    context: EvaluationContext,
) -> PrereqReport:
    """Evaluate a list of ``{"expr": ...}`` prerequisites (or plain strings)."""
    return _default_evaluator.evaluate_prereqs(prereqs, context)

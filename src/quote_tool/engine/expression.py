"""
Expression Evaluator - restricted arithmetic for derived-value formulas.

Formulas are sanitized, tokenized and parsed into a small AST which is then
evaluated over a variable environment. Only numbers, parentheses, the four
arithmetic operators and (for formulas) identifiers bound to numbers are
understood. Nothing here ever hands text to eval() or exec().

Evaluation fails soft: any syntax error, unknown identifier, division by zero
or non-finite result evaluates to 0.
"""
import logging
import math
import re
from dataclasses import dataclass
from typing import Mapping, Optional, Union

logger = logging.getLogger(__name__)

# Characters allowed through after substitution
_UNSAFE_EXPRESSION = re.compile(r'[^0-9+\-*/().\s]')
# Same set plus identifier characters, for formulas evaluated with bindings
_UNSAFE_FORMULA = re.compile(r'[^0-9A-Za-z_+\-*/().\s]')

# Deepest parenthesis or unary-sign nesting the parser accepts
MAX_NESTING = 100

_TOKEN = re.compile(
    r'\s*(?:'
    r'(?P<number>\d+\.?\d*|\.\d+)'
    r'|(?P<name>[A-Za-z_][A-Za-z0-9_]*)'
    r'|(?P<op>[+\-*/()])'
    r')'
)


class ExpressionError(ValueError):
    """Raised when an expression cannot be tokenized, parsed or evaluated."""


# ══════════════════════════════════════════════════════════════
# AST
# ══════════════════════════════════════════════════════════════

@dataclass(frozen=True)
class Number:
    value: float


@dataclass(frozen=True)
class Variable:
    name: str


@dataclass(frozen=True)
class UnaryOp:
    op: str
    operand: 'Node'


@dataclass(frozen=True)
class BinaryOp:
    op: str
    left: 'Node'
    right: 'Node'


Node = Union[Number, Variable, UnaryOp, BinaryOp]


@dataclass(frozen=True)
class Token:
    kind: str  # "number", "name" or "op"
    text: str


# ══════════════════════════════════════════════════════════════
# TOKENIZER
# ══════════════════════════════════════════════════════════════

def sanitize_expression(expression: str) -> str:
    """Strip every character outside digits, '.', '()', whitespace and + - * /."""
    return _UNSAFE_EXPRESSION.sub('', str(expression))


def sanitize_formula(formula: str) -> str:
    """Like sanitize_expression, but keeps identifier characters."""
    return _UNSAFE_FORMULA.sub('', str(formula))


def tokenize(text: str) -> list[Token]:
    """Split sanitized text into number, name and operator tokens."""
    tokens = []
    pos = 0
    text = text.rstrip()
    while pos < len(text):
        match = _TOKEN.match(text, pos)
        if not match or match.end() == pos:
            raise ExpressionError(f"Unexpected character {text[pos]!r} at position {pos}")
        kind = match.lastgroup
        tokens.append(Token(kind=kind, text=match.group(kind)))
        pos = match.end()
    return tokens


# ══════════════════════════════════════════════════════════════
# PARSER (recursive descent)
# ══════════════════════════════════════════════════════════════

class _Parser:
    """
    expr   := term (('+' | '-') term)*
    term   := unary (('*' | '/') unary)*
    unary  := ('+' | '-') unary | atom
    atom   := number | name | '(' expr ')'
    """

    def __init__(self, tokens: list[Token]):
        self._tokens = tokens
        self._pos = 0
        self._depth = 0

    def _peek(self) -> Optional[Token]:
        if self._pos < len(self._tokens):
            return self._tokens[self._pos]
        return None

    def _peek_op(self, *ops: str) -> bool:
        tok = self._peek()
        return tok is not None and tok.kind == 'op' and tok.text in ops

    def _nest(self):
        self._depth += 1
        if self._depth > MAX_NESTING:
            raise ExpressionError(f"Expression nested deeper than {MAX_NESTING} levels")

    def _consume(self) -> Token:
        tok = self._peek()
        if tok is None:
            raise ExpressionError("Unexpected end of expression")
        self._pos += 1
        return tok

    def parse(self) -> Node:
        if not self._tokens:
            raise ExpressionError("Empty expression")
        node = self._parse_expr()
        if self._peek() is not None:
            raise ExpressionError(f"Unexpected token {self._peek().text!r}")
        return node

    def _parse_expr(self) -> Node:
        node = self._parse_term()
        while self._peek_op('+', '-'):
            op = self._consume().text
            node = BinaryOp(op, node, self._parse_term())
        return node

    def _parse_term(self) -> Node:
        node = self._parse_unary()
        while self._peek_op('*', '/'):
            op = self._consume().text
            node = BinaryOp(op, node, self._parse_unary())
        return node

    def _parse_unary(self) -> Node:
        if self._peek_op('+', '-'):
            op = self._consume().text
            self._nest()
            node = UnaryOp(op, self._parse_unary())
            self._depth -= 1
            return node
        return self._parse_atom()

    def _parse_atom(self) -> Node:
        tok = self._consume()
        if tok.kind == 'number':
            return Number(float(tok.text))
        if tok.kind == 'name':
            return Variable(tok.text)
        if tok.text == '(':
            self._nest()
            node = self._parse_expr()
            self._depth -= 1
            closing = self._consume()
            if closing.text != ')':
                raise ExpressionError("Expected ')'")
            return node
        raise ExpressionError(f"Unexpected token {tok.text!r}")


def parse(text: str) -> Node:
    """Parse already-sanitized text into an AST."""
    return _Parser(tokenize(text)).parse()


def parse_formula(formula: str) -> Node:
    """Sanitize and parse a formula that may reference parameter names."""
    return parse(sanitize_formula(formula))


def referenced_names(formula: str) -> set[str]:
    """Identifiers a formula reads; empty when the formula does not parse."""
    try:
        node = parse_formula(formula)
    except ExpressionError:
        return set()
    names = set()
    stack = [node]
    while stack:
        current = stack.pop()
        if isinstance(current, Variable):
            names.add(current.name)
        elif isinstance(current, UnaryOp):
            stack.append(current.operand)
        elif isinstance(current, BinaryOp):
            stack.extend((current.left, current.right))
    return names


# ══════════════════════════════════════════════════════════════
# EVALUATION
# ══════════════════════════════════════════════════════════════

def evaluate_node(node: Node, variables: Mapping[str, float]) -> float:
    """Evaluate an AST; raises ExpressionError on any failure."""
    if isinstance(node, Number):
        return node.value
    if isinstance(node, Variable):
        if node.name not in variables:
            raise ExpressionError(f"Unknown name {node.name!r}")
        return float(variables[node.name])
    if isinstance(node, UnaryOp):
        operand = evaluate_node(node.operand, variables)
        return -operand if node.op == '-' else operand
    if isinstance(node, BinaryOp):
        left = evaluate_node(node.left, variables)
        right = evaluate_node(node.right, variables)
        if node.op == '+':
            return left + right
        if node.op == '-':
            return left - right
        if node.op == '*':
            return left * right
        if right == 0:
            raise ExpressionError("Division by zero")
        return left / right
    raise ExpressionError(f"Unsupported node {node!r}")


def _finite_or_zero(value: float, source: str) -> float:
    if not math.isfinite(value):
        logger.debug("Expression %r produced a non-finite result", source)
        return 0.0
    return value


def evaluate_expression(expression: str) -> float:
    """
    Evaluate a plain arithmetic expression.

    Characters outside the safe set are stripped first. Returns 0 on any
    failure; never raises.
    """
    try:
        result = evaluate_node(parse(sanitize_expression(expression)), {})
    except (ExpressionError, OverflowError, RecursionError) as e:
        logger.debug("Expression %r could not be evaluated: %s", expression, e)
        return 0.0
    return _finite_or_zero(result, expression)


def evaluate_formula(formula: str, variables: Mapping[str, float]) -> float:
    """
    Evaluate a formula with parameter names bound to numbers.

    Names are resolved from `variables` directly, so one name being a prefix
    of another ("width" / "width2") cannot corrupt the formula. Raises
    ExpressionError so callers can tell a failed formula from a real zero.
    """
    try:
        result = evaluate_node(parse_formula(formula), variables)
    except (OverflowError, RecursionError) as e:
        raise ExpressionError(f"Formula could not be evaluated: {e}") from e
    if not math.isfinite(result):
        raise ExpressionError("Formula produced a non-finite result")
    return result

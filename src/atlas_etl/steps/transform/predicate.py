"""
Linguagem de predicados do transform/filter.

Gramática (v1), com precedência `not` > `and` > `or`:

    expr       := or_expr
    or_expr    := and_expr ("or" and_expr)*
    and_expr   := not_expr ("and" not_expr)*
    not_expr   := "not" not_expr | comparison
    comparison := operand (OP operand)?
    operand    := "(" expr ")" | COLUMN | LITERAL
    OP         := "=" | "==" | "!=" | "<" | "<=" | ">" | ">="

- COLUMN: identificador (`amount`, `orders.status`) ou entre crases (`` `order id` ``)
- LITERAL: inteiro, decimal, string entre aspas simples/duplas, true, false, null
- palavras-chave são case-insensitive

Semântica:
- a avaliação é vetorizada sobre um DataFrame e retorna uma máscara booleana
- lógica de três valores: comparações envolvendo nulo são desconhecidas
  (nem verdadeiras nem falsas), `not` preserva o desconhecido e só linhas
  verdadeiras passam; `= null` / `!= null` testam nulidade
- coluna desconhecida falha com UnknownColumnError NA AVALIAÇÃO, nunca no parse
"""

from __future__ import annotations

import operator
import re
from dataclasses import dataclass
from typing import Any, Callable, Dict, List, Optional, Tuple, Union

import pandas as pd

from atlas_etl.core.exceptions import PredicateSyntaxError, SchemaMismatchError, UnknownColumnError


_TOKEN_RE = re.compile(
    r"""
    (?P<number>\d+(?:\.\d+)?(?:[eE][+-]?\d+)?)
    |(?P<string>'(?:[^'\\]|\\.)*'|"(?:[^"\\]|\\.)*")
    |(?P<quoted>`[^`]+`)
    |(?P<op><=|>=|!=|==|=|<|>)
    |(?P<lparen>\()
    |(?P<rparen>\))
    |(?P<minus>-)
    |(?P<ident>[A-Za-z_][A-Za-z0-9_.]*)
    """,
    re.VERBOSE,
)

_KEYWORDS = {"and", "or", "not", "true", "false", "null"}

_COMPARATORS: Dict[str, Callable[[Any, Any], Any]] = {
    "=": operator.eq,
    "==": operator.eq,
    "!=": operator.ne,
    "<": operator.lt,
    "<=": operator.le,
    ">": operator.gt,
    ">=": operator.ge,
}


# ---------------------------------------------------------------------------
# AST
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class ColumnRef:
    name: str


@dataclass(frozen=True)
class Literal:
    value: Any


@dataclass(frozen=True)
class Compare:
    op: str
    left: "Node"
    right: "Node"


@dataclass(frozen=True)
class And:
    left: "Node"
    right: "Node"


@dataclass(frozen=True)
class Or:
    left: "Node"
    right: "Node"


@dataclass(frozen=True)
class Not:
    operand: "Node"


Node = Union[ColumnRef, Literal, Compare, And, Or, Not]


@dataclass(frozen=True)
class _Token:
    kind: str
    text: str
    pos: int


# ---------------------------------------------------------------------------
# Tokenizer + parser (descendente recursivo)
# ---------------------------------------------------------------------------

def _tokenize(condition: str) -> List[_Token]:
    tokens: List[_Token] = []
    pos = 0
    while pos < len(condition):
        if condition[pos].isspace():
            pos += 1
            continue
        m = _TOKEN_RE.match(condition, pos)
        if m is None:
            raise PredicateSyntaxError(
                f"Unexpected character {condition[pos]!r}", condition=condition, position=pos
            )
        kind = m.lastgroup or ""
        text = m.group(kind)
        if kind == "ident" and text.lower() in _KEYWORDS:
            kind = text.lower()
        tokens.append(_Token(kind, text, pos))
        pos = m.end()
    return tokens


class _Parser:
    def __init__(self, condition: str) -> None:
        self.condition = condition
        self.tokens = _tokenize(condition)
        self.i = 0

    def _peek(self) -> Optional[_Token]:
        return self.tokens[self.i] if self.i < len(self.tokens) else None

    def _error(self, message: str) -> PredicateSyntaxError:
        tok = self._peek()
        pos = tok.pos if tok is not None else len(self.condition)
        return PredicateSyntaxError(message, condition=self.condition, position=pos)

    def _take(self, kind: str) -> Optional[_Token]:
        tok = self._peek()
        if tok is not None and tok.kind == kind:
            self.i += 1
            return tok
        return None

    def parse(self) -> Node:
        if not self.tokens:
            raise self._error("Empty condition")
        node = self._or()
        if self._peek() is not None:
            raise self._error(f"Unexpected token {self._peek().text!r}")
        return node

    def _or(self) -> Node:
        node = self._and()
        while self._take("or"):
            node = Or(node, self._and())
        return node

    def _and(self) -> Node:
        node = self._not()
        while self._take("and"):
            node = And(node, self._not())
        return node

    def _not(self) -> Node:
        if self._take("not"):
            return Not(self._not())
        return self._comparison()

    def _comparison(self) -> Node:
        left = self._operand()
        op = self._take("op")
        if op is None:
            return left
        return Compare(op.text, left, self._operand())

    def _operand(self) -> Node:
        tok = self._peek()
        if tok is None:
            raise self._error("Unexpected end of condition")

        if self._take("lparen"):
            node = self._or()
            if not self._take("rparen"):
                raise self._error("Expected ')'")
            return node

        if self._take("minus"):
            number = self._take("number")
            if number is None:
                raise self._error("Expected number after '-'")
            return Literal(-_number(number.text))

        self.i += 1
        if tok.kind == "number":
            return Literal(_number(tok.text))
        if tok.kind == "string":
            return Literal(re.sub(r"\\(.)", r"\1", tok.text[1:-1]))
        if tok.kind == "quoted":
            return ColumnRef(tok.text[1:-1])
        if tok.kind == "ident":
            return ColumnRef(tok.text)
        if tok.kind in ("true", "false"):
            return Literal(tok.kind == "true")
        if tok.kind == "null":
            return Literal(None)

        self.i -= 1
        raise self._error(f"Unexpected token {tok.text!r}")


def _number(text: str) -> Union[int, float]:
    if re.fullmatch(r"\d+", text):
        return int(text)
    return float(text)


def parse_condition(condition: str) -> Node:
    """Converte o texto da condição em AST. Não consulta nenhum schema."""
    if not isinstance(condition, str):
        raise PredicateSyntaxError("Condition must be a string", condition=str(condition), position=0)
    return _Parser(condition).parse()


def referenced_columns(node: Node) -> List[str]:
    if isinstance(node, ColumnRef):
        return [node.name]
    if isinstance(node, Literal):
        return []
    if isinstance(node, Not):
        return referenced_columns(node.operand)
    names = referenced_columns(node.left) + referenced_columns(node.right)
    return list(dict.fromkeys(names))


# ---------------------------------------------------------------------------
# Avaliação vetorizada
# ---------------------------------------------------------------------------

def _value(node: Node, df: pd.DataFrame) -> Any:
    if isinstance(node, ColumnRef):
        if node.name not in df.columns:
            raise UnknownColumnError(node.name, available=[str(c) for c in df.columns])
        return df[node.name]
    if isinstance(node, Literal):
        return node.value
    return evaluate(node, df)


def _constant(value: bool, df: pd.DataFrame) -> pd.Series:
    return pd.Series(bool(value), index=df.index, dtype=bool)


Truth = Tuple[pd.Series, pd.Series]


def _as_truth(value: Any, df: pd.DataFrame) -> Truth:
    """(verdadeiro, falso) de um operando usado como booleano; nulo não é nenhum dos dois."""
    if isinstance(value, pd.Series):
        known = value.notna()
        true = value.where(known, False).astype(bool) & known
        return true, known & ~true
    if value is None:
        return _constant(False, df), _constant(False, df)
    return _constant(bool(value), df), _constant(not bool(value), df)


def _compare(node: Compare, df: pd.DataFrame) -> Truth:
    left = _value(node.left, df)
    right = _value(node.right, df)

    if left is None or right is None:
        other = right if left is None else left
        if node.op not in ("=", "==", "!="):
            return _constant(False, df), _constant(False, df)
        if isinstance(other, pd.Series):
            nulls = other.isna().astype(bool)
        else:
            nulls = _constant(other is None, df)
        true = nulls if node.op != "!=" else ~nulls
        return true, ~true

    try:
        result = _COMPARATORS[node.op](left, right)
    except TypeError as e:
        raise SchemaMismatchError(
            f"Cannot apply '{node.op}' to operands of incompatible types",
            details={"op": node.op, "error": str(e)},
        ) from e

    known = _constant(True, df)
    for side in (left, right):
        if isinstance(side, pd.Series):
            known = known & side.notna()
    true, _ = _as_truth(result, df)
    true = true & known
    return true, known & ~true


def _truth(node: Node, df: pd.DataFrame) -> Truth:
    if isinstance(node, Compare):
        return _compare(node, df)
    if isinstance(node, And):
        lt, lf = _truth(node.left, df)
        rt, rf = _truth(node.right, df)
        return lt & rt, lf | rf
    if isinstance(node, Or):
        lt, lf = _truth(node.left, df)
        rt, rf = _truth(node.right, df)
        return lt | rt, lf & rf
    if isinstance(node, Not):
        true, false = _truth(node.operand, df)
        return false, true
    return _as_truth(_value(node, df), df)


def evaluate(node: Node, df: pd.DataFrame) -> pd.Series:
    """
    Avalia a AST sobre o DataFrame, retornando máscara booleana alinhada ao índice.

    Lógica de três valores: comparações com nulo são desconhecidas, `not`
    de desconhecido continua desconhecido, e só linhas verdadeiras entram.
    """
    true, _ = _truth(node, df)
    return true

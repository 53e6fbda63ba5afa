"""Field grammars that turn user query clauses into FTS5 match expressions.

The engine's native grammar (SQLite FTS5) is strict: bare words may only hold
alphanumerics, adjacent phrases are implicitly AND-ed, and ``NOT`` is a binary
operator. Users type something looser, closer to classic search-box syntax::

    report.txt "data structures" analis* AND (java OR python) NOT draft

This module lexes a clause into operands and operators, rejects malformed
input with :class:`QueryGrammarError`, and renders an expression the engine
accepts:

- every operand becomes an FTS5 string, so the engine's own tokenizer splits
  ``report.txt`` into the phrase ``report txt``
- adjacent operands are OR-ed, the classic default operator
- ``term*`` becomes an FTS5 prefix query
- field-scoped clauses are wrapped in a column filter

Tokenization, matching and ranking stay with the engine.
"""

from __future__ import annotations

from collections.abc import Sequence
from dataclasses import dataclass
from enum import Enum

from txtsearch.exceptions import QueryGrammarError
from txtsearch.search.fields import INDEX_COLUMNS, UNIT_WEIGHTS, FieldBoosts, SearchField


class TokenKind(str, Enum):
    TERM = "term"
    PHRASE = "phrase"
    AND = "AND"
    OR = "OR"
    NOT = "NOT"
    LPAREN = "("
    RPAREN = ")"


_OPERATOR_KINDS = {"AND": TokenKind.AND, "OR": TokenKind.OR, "NOT": TokenKind.NOT}
_BINARY_KINDS = frozenset({TokenKind.AND, TokenKind.OR, TokenKind.NOT})
_OPERAND_START = frozenset({TokenKind.TERM, TokenKind.PHRASE, TokenKind.LPAREN})
_OPERAND_END = frozenset({TokenKind.TERM, TokenKind.PHRASE, TokenKind.RPAREN})
_WORD_BREAKS = '()"'
_WILDCARDS = "*?"


@dataclass(frozen=True)
class ClauseToken:
    """One lexical unit of a query clause."""

    kind: TokenKind
    text: str = ""
    prefix: bool = False
    position: int = 0


@dataclass(frozen=True)
class FtsQuery:
    """A parsed sub-query ready for the engine.

    ``weights`` are the per-column bm25 weights the engine scores this
    sub-query with, in index column order.
    """

    expression: str
    weights: tuple[float, ...] = UNIT_WEIGHTS
    clause: str = ""


def lex_clause(text: str) -> list[ClauseToken]:
    """Split a clause into operand, operator and parenthesis tokens."""

    tokens: list[ClauseToken] = []
    length = len(text)
    index = 0
    while index < length:
        char = text[index]
        if char.isspace():
            index += 1
            continue
        if char == "(":
            tokens.append(ClauseToken(TokenKind.LPAREN, position=index))
            index += 1
            continue
        if char == ")":
            tokens.append(ClauseToken(TokenKind.RPAREN, position=index))
            index += 1
            continue
        if char == '"':
            close = text.find('"', index + 1)
            if close == -1:
                msg = f"Unbalanced quote at position {index} in '{text}'"
                raise QueryGrammarError(msg, clause=text)
            phrase = text[index + 1 : close]
            start = index
            index = close + 1
            prefix = index < length and text[index] == "*"
            if prefix:
                index += 1
            if phrase.strip():
                tokens.append(ClauseToken(TokenKind.PHRASE, phrase, prefix=prefix, position=start))
            continue

        start = index
        while index < length and not text[index].isspace() and text[index] not in _WORD_BREAKS:
            index += 1
        word = text[start:index]
        operator = _OPERATOR_KINDS.get(word)
        if operator is not None:
            tokens.append(ClauseToken(operator, word, position=start))
        else:
            tokens.append(_term_token(word, start, text))
    return tokens


def _term_token(word: str, position: int, clause: str) -> ClauseToken:
    core = word.rstrip("*")
    prefix = core != word
    if not core:
        msg = f"Wildcard at position {position} has no term to expand in '{clause}'"
        raise QueryGrammarError(msg, clause=clause)
    if any(char in _WILDCARDS for char in core):
        msg = f"Wildcards are only supported as a term suffix: '{word}'"
        raise QueryGrammarError(msg, clause=clause)
    return ClauseToken(TokenKind.TERM, core, prefix=prefix, position=position)


def normalize_tokens(tokens: Sequence[ClauseToken], clause: str) -> list[ClauseToken]:
    """Validate operator placement and drop dangling edge connectives.

    Leading and trailing ``AND``/``OR`` are removed: they are what is left of
    the unscoped text once field terms have been lifted out of
    ``name:a AND content:b``. A dangling ``NOT`` raises, as does anything
    else out of place.
    """

    depth = 0
    for token in tokens:
        if token.kind is TokenKind.LPAREN:
            depth += 1
        elif token.kind is TokenKind.RPAREN:
            depth -= 1
            if depth < 0:
                msg = f"Unbalanced ')' at position {token.position} in '{clause}'"
                raise QueryGrammarError(msg, clause=clause)
    if depth:
        msg = f"Unbalanced '(' in '{clause}'"
        raise QueryGrammarError(msg, clause=clause)

    trimmed = list(tokens)
    while trimmed and trimmed[0].kind in (TokenKind.AND, TokenKind.OR):
        trimmed.pop(0)
    while trimmed and trimmed[-1].kind in (TokenKind.AND, TokenKind.OR):
        trimmed.pop()
    if trimmed and trimmed[-1].kind is TokenKind.NOT:
        dangling = trimmed[-1]
        msg = f"'NOT' must be followed by a term (position {dangling.position} in '{clause}')"
        raise QueryGrammarError(msg, clause=clause)

    previous: ClauseToken | None = None
    for token in trimmed:
        if token.kind in _BINARY_KINDS and (previous is None or previous.kind not in _OPERAND_END):
            msg = f"'{token.text}' must follow a term (position {token.position} in '{clause}')"
            raise QueryGrammarError(msg, clause=clause)
        if token.kind is TokenKind.RPAREN and previous is not None:
            if previous.kind is TokenKind.LPAREN:
                msg = f"Empty parentheses at position {previous.position} in '{clause}'"
                raise QueryGrammarError(msg, clause=clause)
            if previous.kind in _BINARY_KINDS:
                msg = f"'{previous.text}' must be followed by a term (position {previous.position} in '{clause}')"
                raise QueryGrammarError(msg, clause=clause)
        previous = token
    return trimmed


def _render_operand(token: ClauseToken) -> str:
    quoted = '"' + token.text.replace('"', '""') + '"'
    return f"{quoted} *" if token.prefix else quoted


def render_expression(tokens: Sequence[ClauseToken]) -> str:
    """Render normalized tokens as an FTS5 expression with default OR."""

    parts: list[str] = []
    previous: ClauseToken | None = None
    for token in tokens:
        if previous is not None and previous.kind in _OPERAND_END and token.kind in _OPERAND_START:
            parts.append("OR")
        if token.kind in (TokenKind.TERM, TokenKind.PHRASE):
            parts.append(_render_operand(token))
        else:
            parts.append(token.kind.value)
        previous = token
    return " ".join(parts)


def build_match_expression(clause: str) -> str | None:
    """Return the FTS5 expression for ``clause`` or None when nothing is left."""

    tokens = normalize_tokens(lex_clause(clause), clause)
    if not tokens:
        return None
    return render_expression(tokens)


class FieldQueryParser:
    """Grammar for a clause scoped to a single field."""

    def __init__(self, field: SearchField) -> None:
        self.field = field

    def parse(self, clause: str) -> FtsQuery | None:
        expression = build_match_expression(clause)
        if expression is None:
            return None
        return FtsQuery(
            expression=f"{self.field.column} : ({expression})",
            weights=UNIT_WEIGHTS,
            clause=clause,
        )


class MultiFieldQueryParser:
    """Grammar for unscoped text searched across every field with boosts."""

    def __init__(self, boosts: FieldBoosts, columns: Sequence[str] = INDEX_COLUMNS) -> None:
        self.boosts = boosts
        self.columns = tuple(columns)
        self._weights = tuple(boosts.for_column(column) for column in INDEX_COLUMNS)

    def parse(self, clause: str) -> FtsQuery | None:
        expression = build_match_expression(clause)
        if expression is None:
            return None
        colspec = "{" + " ".join(self.columns) + "}"
        return FtsQuery(
            expression=f"{colspec} : ({expression})",
            weights=self._weights,
            clause=clause,
        )

"""Minimal GraphQL reader for query composition.

Only what the combiner needs is understood: operation header, variable
definitions, the ``{ guillotine { ... } }`` wrapper, fragment definitions and
fragment spreads.
Everything else is kept as source text, so rewriting never re-serializes the
parts of a query it does not touch.
"""

from __future__ import annotations

import re
from collections.abc import Iterable
from dataclasses import dataclass, field
from typing import NamedTuple

from xpfetch.core.exceptions import InvalidInputError

GUILLOTINE_FIELD = "guillotine"

_TOKEN_RE = re.compile(
    r"""
    (?P<ignored>(?:[\s,﻿]+|\#[^\n\r]*)+)
    |(?P<block_string>\"\"\"(?:\\\"\"\"|(?!\"\"\")[\s\S])*\"\"\")
    |(?P<string>"(?:\\.|[^"\\\n\r])*")
    |(?P<spread>\.\.\.)
    |(?P<number>-?\d+(?:\.\d+)?(?:[eE][+-]?\d+)?)
    |(?P<name>[_A-Za-z][_0-9A-Za-z]*)
    |(?P<punct>[!$&():=@\[\]{|}])
    """,
    re.VERBOSE,
)

_OPENERS = {"{": "}", "(": ")", "[": "]"}
_CLOSERS = frozenset(_OPENERS.values())


class GraphQLSyntaxError(InvalidInputError):
    """Raised when a query cannot be tokenized or has unbalanced brackets."""


@dataclass(frozen=True)
class Token:
    kind: str
    value: str
    start: int
    end: int

    def is_punct(self, value: str) -> bool:
        return self.kind == "punct" and self.value == value

    def is_name(self, value: str | None = None) -> bool:
        return self.kind == "name" and (value is None or self.value == value)


def tokenize(source: str) -> list[Token]:
    """Split GraphQL source into significant tokens (whitespace, commas and comments dropped)."""
    tokens: list[Token] = []
    pos = 0
    while pos < len(source):
        match = _TOKEN_RE.match(source, pos)
        if match is None:
            msg = f"Unexpected character {source[pos]!r} at offset {pos}"
            raise GraphQLSyntaxError(msg)
        kind = match.lastgroup or ""
        if kind != "ignored":
            tokens.append(Token(kind, match.group(), match.start(), match.end()))
        pos = match.end()
    return tokens


@dataclass(frozen=True)
class VariableReference:
    """A ``$name`` occurrence; ``start``/``end`` span the dollar sign and the name."""

    name: str
    start: int
    end: int


@dataclass(frozen=True)
class VariableDefinition:
    name: str
    # Source offsets of the whole definition, e.g. "$path: ID! = \"/\""
    start: int
    end: int
    reference: VariableReference


@dataclass(frozen=True)
class FragmentSpread:
    """A ``...Name`` occurrence; ``start``/``end`` span the fragment name only."""

    name: str
    start: int
    end: int


class Replacement(NamedTuple):
    start: int
    end: int
    text: str


@dataclass(frozen=True)
class FragmentDefinition:
    name: str
    start: int
    end: int
    # Offsets of the name token, for renaming the definition itself
    name_start: int = 0
    name_end: int = 0
    variables: tuple[VariableReference, ...] = ()
    spreads: tuple[FragmentSpread, ...] = ()


@dataclass(frozen=True)
class GuillotineOperation:
    """A ``query [name] [(vars)] { guillotine { body } }`` operation."""

    variables: tuple[VariableDefinition, ...]
    body_start: int
    body_end: int
    body_variables: tuple[VariableReference, ...]
    body_spreads: tuple[FragmentSpread, ...] = ()


@dataclass
class ParsedQuery:
    source: str
    operation: GuillotineOperation | None = None
    fragments: list[FragmentDefinition] = field(default_factory=list)

    def text(self, start: int, end: int) -> str:
        return self.source[start:end]

    def rewrite(self, start: int, end: int, replacements: Iterable[Replacement]) -> str:
        """Return source[start:end] with every replacement inside that span applied."""
        pieces: list[str] = []
        cursor = start
        for replacement in sorted(replacements, key=lambda r: r.start):
            if replacement.start < cursor or replacement.end > end:
                continue
            pieces.append(self.source[cursor : replacement.start])
            pieces.append(replacement.text)
            cursor = replacement.end
        pieces.append(self.source[cursor:end])
        return "".join(pieces)


class _Reader:
    def __init__(self, source: str) -> None:
        self.source = source
        self.tokens = tokenize(source)
        self.index = 0

    def peek(self, offset: int = 0) -> Token | None:
        pos = self.index + offset
        return self.tokens[pos] if pos < len(self.tokens) else None

    def next(self) -> Token:
        token = self.peek()
        if token is None:
            msg = "Unexpected end of query"
            raise GraphQLSyntaxError(msg)
        self.index += 1
        return token

    def expect_punct(self, value: str) -> Token:
        token = self.next()
        if not token.is_punct(value):
            msg = f"Expected {value!r} but found {token.value!r} at offset {token.start}"
            raise GraphQLSyntaxError(msg)
        return token

    def expect_name(self) -> Token:
        token = self.next()
        if not token.is_name():
            msg = f"Expected a name but found {token.value!r} at offset {token.start}"
            raise GraphQLSyntaxError(msg)
        return token

    def skip_balanced(self) -> tuple[Token, Token]:
        """Consume one bracketed group starting at the current token; return its first and last token."""
        first = self.next()
        if first.kind != "punct" or first.value not in _OPENERS:
            msg = f"Expected an opening bracket at offset {first.start}"
            raise GraphQLSyntaxError(msg)
        stack = [_OPENERS[first.value]]
        last = first
        while stack:
            last = self.next()
            if last.kind != "punct":
                continue
            if last.value in _OPENERS:
                stack.append(_OPENERS[last.value])
            elif last.value in _CLOSERS:
                if last.value != stack.pop():
                    msg = f"Unbalanced {last.value!r} at offset {last.start}"
                    raise GraphQLSyntaxError(msg)
        return first, last

    def skip_directives(self) -> None:
        while (token := self.peek()) is not None and token.is_punct("@"):
            self.next()
            self.expect_name()
            if (after := self.peek()) is not None and after.is_punct("("):
                self.skip_balanced()

    def references_between(self, start_index: int, end_index: int) -> tuple[VariableReference, ...]:
        refs = []
        for pos in range(start_index, end_index):
            token = self.tokens[pos]
            if token.is_punct("$") and pos + 1 < end_index and self.tokens[pos + 1].is_name():
                name_token = self.tokens[pos + 1]
                refs.append(VariableReference(name_token.value, token.start, name_token.end))
        return tuple(refs)

    def spreads_between(self, start_index: int, end_index: int) -> tuple[FragmentSpread, ...]:
        """Named fragment spreads in the token range; inline fragments (``... on T``) are skipped."""
        spreads = []
        for pos in range(start_index, end_index - 1):
            name_token = self.tokens[pos + 1]
            if self.tokens[pos].kind == "spread" and name_token.is_name() and name_token.value != "on":
                spreads.append(FragmentSpread(name_token.value, name_token.start, name_token.end))
        return tuple(spreads)


def parse_query(source: str) -> ParsedQuery:
    """Parse a registered query into its guillotine operation and fragment definitions.

    ``operation`` is None when the query has no operation of the expected
    ``{ guillotine { ... } }`` shape. Fragments are collected either way.

    Raises:
        GraphQLSyntaxError: If the text cannot be tokenized or brackets do not balance.

    """
    reader = _Reader(source)
    parsed = ParsedQuery(source=source)
    operations = 0

    while (token := reader.peek()) is not None:
        if token.is_name("fragment"):
            parsed.fragments.append(_read_fragment(reader))
            continue
        operations += 1
        operation = _read_operation(reader)
        if operation is not None and parsed.operation is None:
            parsed.operation = operation

    if operations != 1:
        parsed.operation = None
    return parsed


def _read_fragment(reader: _Reader) -> FragmentDefinition:
    start = reader.next().start
    name = reader.expect_name()
    on = reader.expect_name()
    if on.value != "on":
        msg = f"Expected 'on' in fragment {name.value} at offset {on.start}"
        raise GraphQLSyntaxError(msg)
    reader.expect_name()
    reader.skip_directives()
    first_index = reader.index
    _, last = reader.skip_balanced()
    return FragmentDefinition(
        name=name.value,
        start=start,
        end=last.end,
        name_start=name.start,
        name_end=name.end,
        variables=reader.references_between(first_index, reader.index),
        spreads=reader.spreads_between(first_index, reader.index),
    )


def _read_operation(reader: _Reader) -> GuillotineOperation | None:
    """Read one operation. Returns None (after consuming it) if it is not a guillotine query."""
    shape_ok = True

    if (token := reader.peek()) is not None and token.is_name():
        keyword = reader.next()
        shape_ok = keyword.value == "query"
        if (name := reader.peek()) is not None and name.is_name():
            reader.next()

    variables: tuple[VariableDefinition, ...] = ()
    if (token := reader.peek()) is not None and token.is_punct("("):
        variables = _read_variable_definitions(reader)

    reader.skip_directives()

    token = reader.peek()
    if token is None or not token.is_punct("{"):
        found = token.value if token is not None else "end of query"
        msg = f"Expected selection set but found {found!r}"
        raise GraphQLSyntaxError(msg)

    outer_start = reader.index
    reader.skip_balanced()
    outer_end = reader.index
    if not shape_ok:
        return None
    return _match_guillotine(reader, outer_start, outer_end, variables)


def _match_guillotine(
    reader: _Reader,
    outer_start: int,
    outer_end: int,
    variables: tuple[VariableDefinition, ...],
) -> GuillotineOperation | None:
    tokens = reader.tokens
    # Expect exactly: "{" "guillotine" "{" ... "}" "}"
    if outer_end - outer_start < 4:
        return None
    field_token = tokens[outer_start + 1]
    inner_open = tokens[outer_start + 2]
    inner_close = tokens[outer_end - 2]
    if not field_token.is_name(GUILLOTINE_FIELD) or not inner_open.is_punct("{") or not inner_close.is_punct("}"):
        return None

    depth = 0
    for pos in range(outer_start + 2, outer_end - 1):
        token = tokens[pos]
        if token.kind == "punct" and token.value in _OPENERS:
            depth += 1
        elif token.kind == "punct" and token.value in _CLOSERS:
            depth -= 1
            if depth == 0 and pos != outer_end - 2:
                # guillotine selection closed early: more fields follow it
                return None

    return GuillotineOperation(
        variables=variables,
        body_start=inner_open.end,
        body_end=inner_close.start,
        body_variables=reader.references_between(outer_start + 3, outer_end - 2),
        body_spreads=reader.spreads_between(outer_start + 3, outer_end - 2),
    )


def _read_variable_definitions(reader: _Reader) -> tuple[VariableDefinition, ...]:
    open_index = reader.index
    reader.skip_balanced()
    close_index = reader.index - 1
    tokens = reader.tokens

    definitions: list[VariableDefinition] = []
    depth = 0
    pos = open_index + 1
    starts: list[int] = []
    while pos < close_index:
        token = tokens[pos]
        if token.kind == "punct" and token.value in _OPENERS:
            depth += 1
        elif token.kind == "punct" and token.value in _CLOSERS:
            depth -= 1
        elif depth == 0 and token.is_punct("$"):
            prev = tokens[pos - 1]
            # "$" right after "=" or ":" would be a default value, which GraphQL forbids anyway
            if not (prev.is_punct("=") or prev.is_punct(":")):
                starts.append(pos)
        pos += 1

    for n, start_pos in enumerate(starts):
        end_pos = starts[n + 1] if n + 1 < len(starts) else close_index
        name_token = tokens[start_pos + 1] if start_pos + 1 < end_pos else None
        if name_token is None or not name_token.is_name():
            msg = f"Malformed variable definition at offset {tokens[start_pos].start}"
            raise GraphQLSyntaxError(msg)
        colon = tokens[start_pos + 2] if start_pos + 2 < end_pos else None
        if colon is None or not colon.is_punct(":") or start_pos + 3 >= end_pos:
            msg = f"Variable ${name_token.value} has no type"
            raise GraphQLSyntaxError(msg)
        dollar = tokens[start_pos]
        definitions.append(
            VariableDefinition(
                name=name_token.value,
                start=dollar.start,
                end=tokens[end_pos - 1].end,
                reference=VariableReference(name_token.value, dollar.start, name_token.end),
            )
        )
    return tuple(definitions)

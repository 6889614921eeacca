"""Combine per-component Guillotine queries into one batched query.

Each contributing query becomes an aliased ``request<i>:guillotine { ... }``
field, so the backend resolves all of them in a single call. Variables are
renamed to ``request<i>_<name>`` so queries never collide, and fragment
definitions are hoisted to the document root. A fragment that reads a query
variable is hoisted once per alias, as ``<name>_request<i>``.
"""

from __future__ import annotations

import logging
from collections.abc import Iterable, Sequence
from dataclasses import dataclass, field
from typing import Any

from xpfetch.core.types import ComponentDescriptor, QueryAndVariables
from xpfetch.engine.graphql import (
    FragmentSpread,
    GraphQLSyntaxError,
    ParsedQuery,
    Replacement,
    VariableReference,
    parse_query,
)

logger = logging.getLogger(__name__)

ALIAS_PREFIX = "request"


def alias_for(index: int) -> str:
    return f"{ALIAS_PREFIX}{index}"


@dataclass
class CombinedQuery:
    """Result of combining descriptor queries.

    ``aliases`` runs parallel to the input descriptors: the alias under which a
    descriptor's result comes back, or None if it contributed no query.
    """

    query: str
    variables: dict[str, Any] = field(default_factory=dict)
    aliases: list[str | None] = field(default_factory=list)

    @property
    def is_empty(self) -> bool:
        return not any(self.aliases)

    def to_query_and_variables(self) -> QueryAndVariables:
        return QueryAndVariables(query=self.query, variables=self.variables)


def combine_multiple_queries(descriptors: Sequence[ComponentDescriptor]) -> CombinedQuery:
    """Rewrite every descriptor's query into one aliased super-query.

    Args:
        descriptors: Ordered descriptors; the position of each one is the
            index used in its alias and variable prefix.

    Returns:
        The combined query, the merged variables and the per-descriptor aliases.
        Descriptors without a query, or whose query is not of the
        ``query [(params)] { guillotine { ... } }`` shape, get no alias and
        contribute no variables.

    """
    queries: list[str] = []
    params: list[str] = []
    fragments: dict[str, str] = {}
    variables: dict[str, Any] = {}
    aliases: list[str | None] = []

    for index, descriptor in enumerate(descriptors):
        query_and_vars = descriptor.query_and_variables
        if query_and_vars is None:
            aliases.append(None)
            continue

        alias = alias_for(index)
        try:
            parsed = parse_query(query_and_vars.query)
        except GraphQLSyntaxError as exc:
            logger.warning("Skipping unparseable query for %s: %s", _describe(descriptor), exc.message)
            aliases.append(None)
            continue

        renames = _renames_for(parsed, alias)
        operation = parsed.operation
        body = ""
        if operation is not None:
            body = parsed.rewrite(
                operation.body_start,
                operation.body_end,
                _replacements(operation.body_variables, operation.body_spreads, renames),
            )
        if operation is None or not body.strip():
            logger.warning(
                "Query for %s does not match 'query { guillotine { ... } }', skipping it",
                _describe(descriptor),
            )
            aliases.append(None)
            continue

        _hoist_fragments(parsed, renames, fragments)
        for definition in operation.variables:
            params.append(
                parsed.rewrite(definition.start, definition.end, _replacements((definition.reference,), (), renames))
            )
        queries.append(f"{alias}:{_guillotine_field(body)}")
        for key, value in (query_and_vars.variables or {}).items():
            variables[f"{alias}_{key}"] = value
        aliases.append(alias)
        logger.debug("Added %s for %s", alias, _describe(descriptor))

    params_text = f"({', '.join(params)})" if params else ""
    super_query = (
        f"query {params_text} {{\n"
        + "\n".join(queries)
        + "\n}\n"
        + "\n".join(fragments.values())
    )
    return CombinedQuery(query=super_query, variables=variables, aliases=aliases)


@dataclass(frozen=True)
class _Renames:
    variables: dict[str, str]
    fragments: dict[str, str]


def _renames_for(parsed: ParsedQuery, alias: str) -> _Renames:
    """Prefix every declared variable, and suffix every fragment that reads one.

    A fragment reads a variable directly or through a spread of another such
    fragment. Those fragments get one copy per alias; the others can be shared.
    """
    if parsed.operation is None:
        return _Renames(variables={}, fragments={})
    variables = {definition.name: f"{alias}_{definition.name}" for definition in parsed.operation.variables}

    bound = {f.name for f in parsed.fragments if any(ref.name in variables for ref in f.variables)}
    grew = True
    while grew:
        grew = False
        for fragment in parsed.fragments:
            if fragment.name not in bound and any(spread.name in bound for spread in fragment.spreads):
                bound.add(fragment.name)
                grew = True

    return _Renames(variables=variables, fragments={name: f"{name}_{alias}" for name in bound})


def _replacements(
    references: Iterable[VariableReference],
    spreads: Iterable[FragmentSpread],
    renames: _Renames,
) -> list[Replacement]:
    edits = [
        Replacement(ref.start, ref.end, f"${renames.variables[ref.name]}")
        for ref in references
        if ref.name in renames.variables
    ]
    edits.extend(
        Replacement(spread.start, spread.end, renames.fragments[spread.name])
        for spread in spreads
        if spread.name in renames.fragments
    )
    return edits


def _hoist_fragments(parsed: ParsedQuery, renames: _Renames, fragments: dict[str, str]) -> None:
    """Move fragment definitions to the shared root, keeping the first one per name."""
    for fragment in parsed.fragments:
        edits = _replacements(fragment.variables, fragment.spreads, renames)
        name = renames.fragments.get(fragment.name, fragment.name)
        if name != fragment.name:
            edits.append(Replacement(fragment.name_start, fragment.name_end, name))
        text = parsed.rewrite(fragment.start, fragment.end, edits)

        existing = fragments.get(name)
        if existing is None:
            fragments[name] = text
        elif existing != text:
            logger.warning("Fragment %s is defined differently by several queries; keeping the first", name)


def _guillotine_field(body: str) -> str:
    return f"guillotine {{{body}}}"


def _describe(descriptor: ComponentDescriptor) -> str:
    if descriptor.component is not None:
        return f"component [{descriptor.component.path}]"
    return "content type query"

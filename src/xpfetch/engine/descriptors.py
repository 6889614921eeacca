"""Collect the queries registered for a component tree."""

from __future__ import annotations

import logging
from collections.abc import Mapping, Sequence
from typing import Any

from xpfetch.core.constants import ComponentType
from xpfetch.core.exceptions import RegistryError
from xpfetch.core.ports import ComponentRegistryPort
from xpfetch.core.types import (
    ComponentData,
    ComponentDescriptor,
    FragmentContent,
    PageComponent,
    QueryAndVariables,
    QuerySpec,
)

logger = logging.getLogger(__name__)


def normalize_component_config(component: PageComponent, app_name: str, app_name_dashed: str) -> PageComponent:
    """Return a copy of ``component`` with its app-scoped config flattened.

    XP delivers ``configAsJson`` as ``{<app-name-dashed>: {<component-name>: {...}}}``.
    For components described by this app the inner mapping becomes ``config``
    and ``configAsJson`` is dropped. Fragment contents are normalized too.
    """
    updates: dict[str, Any] = {}

    payload = component.payload
    if isinstance(payload, ComponentData) and payload.descriptor and payload.config_as_json:
        scoped = payload.config_as_json.get(app_name_dashed)
        if payload.app_name == app_name and isinstance(scoped, Mapping) and scoped.get(payload.local_name):
            updates[component.type] = payload.model_copy(
                update={"config": scoped[payload.local_name], "config_as_json": None}
            )

    nested = component.nested_components
    fragment = component.fragment
    if nested and fragment is not None:
        normalized = normalize_components(nested, app_name, app_name_dashed)
        updates[ComponentType.FRAGMENT.value] = fragment.model_copy(
            update={"fragment": FragmentContent(components=normalized)}
        )

    return component.model_copy(update=updates) if updates else component


def normalize_components(
    components: Sequence[PageComponent], app_name: str, app_name_dashed: str
) -> list[PageComponent]:
    return [normalize_component_config(component, app_name, app_name_dashed) for component in components]


def get_query_and_variables(
    owner: str,
    path: str,
    selected_query: QuerySpec | None,
    context: Any = None,
    config: Any = None,
) -> QueryAndVariables | None:
    """Normalize a registered query contract into one QueryAndVariables.

    Args:
        owner: Content type or component type, used in error messages
        path: Content path handed to the variables resolver
        selected_query: A query string, a ``(query, resolver)`` pair or a
            mapping with ``query`` and ``variables`` keys
        context: Request context handed to the resolver
        config: Component or page config handed to the resolver

    Returns:
        The query with its variables (``{"path": path}`` without a resolver),
        or None when nothing is registered.

    Raises:
        RegistryError: If the resolver is not callable or the query is not a string.

    """
    query: Any = None
    get_variables: Any = None

    if isinstance(selected_query, str):
        query = selected_query
    elif isinstance(selected_query, (list, tuple)):
        query = selected_query[0] if len(selected_query) > 0 else None
        get_variables = selected_query[1] if len(selected_query) > 1 else None
    elif isinstance(selected_query, Mapping):
        query = selected_query.get("query")
        get_variables = selected_query.get("variables")

    if get_variables is not None and not callable(get_variables):
        msg = f"getVariables for content type {owner} should be a function, not: {type(get_variables).__name__}"
        raise RegistryError(msg)

    if query and not isinstance(query, str):
        msg = f"Query for content type {owner} should be a string, not: {type(query).__name__}"
        raise RegistryError(msg)

    if not query:
        return None

    variables = get_variables(path, context, config) if get_variables is not None else {"path": path}
    return QueryAndVariables(query=query, variables=dict(variables or {}))


def collect_component_descriptors(
    components: Sequence[PageComponent] | None,
    registry: ComponentRegistryPort,
    content_path: str,
    context: Any = None,
) -> list[ComponentDescriptor]:
    """Resolve the registered query of every component, recursing into fragments.

    Components are expected to be normalized already (see
    :func:`normalize_components`). Components without a registered query get
    no descriptor; fragment components contribute the descriptors of the
    components they contain.
    """
    descriptors: list[ComponentDescriptor] = []

    for component in components or ():
        if component.type == ComponentType.FRAGMENT:
            descriptors.extend(
                collect_component_descriptors(component.nested_components, registry, content_path, context)
            )
            continue

        definition = registry.get_by_component(component)
        if definition is None:
            continue

        payload = component.payload
        config = payload.config if isinstance(payload, ComponentData) else None
        query_and_variables = get_query_and_variables(component.type, content_path, definition.query, context, config)
        if query_and_variables is not None:
            descriptors.append(
                ComponentDescriptor(definition=definition, component=component, query_and_variables=query_and_variables)
            )

    logger.debug("Collected %d component descriptor(s)", len(descriptors))
    return descriptors

"""In-memory registry of content types and components.

Applications fill a registry at startup and freeze it; the fetcher only reads
from it through :class:`~xpfetch.core.ports.ComponentRegistryPort`.
"""

from __future__ import annotations

import logging
from typing import Any

from xpfetch.core.constants import CATCH_ALL, ComponentType
from xpfetch.core.exceptions import RegistryError
from xpfetch.core.types import ComponentDefinition, PageComponent, QuerySpec

logger = logging.getLogger(__name__)


class ComponentRegistry:
    """Maps content types and component descriptors to their definitions."""

    def __init__(self) -> None:
        self._content_types: dict[str, ComponentDefinition] = {}
        self._pages: dict[str, ComponentDefinition] = {}
        self._layouts: dict[str, ComponentDefinition] = {}
        self._parts: dict[str, ComponentDefinition] = {}
        self._macros: dict[str, ComponentDefinition] = {}
        self._components: dict[str, ComponentDefinition] = {}
        self._common_query: QuerySpec | None = None
        self._frozen = False

    @property
    def _by_component_type(self) -> dict[str, dict[str, ComponentDefinition]]:
        """Data over logic: descriptor-bearing component types and their maps."""
        return {
            ComponentType.PAGE.value: self._pages,
            ComponentType.LAYOUT.value: self._layouts,
            ComponentType.PART.value: self._parts,
        }

    @property
    def frozen(self) -> bool:
        return self._frozen

    def freeze(self) -> ComponentRegistry:
        """Make the registry read-only. Returns self for chaining."""
        self._frozen = True
        return self

    # ========== Registration ==========

    def add_content_type(self, name: str, definition: ComponentDefinition | None = None, **kwargs: Any) -> None:
        self._add(self._content_types, name, definition, kwargs)

    def add_page(self, descriptor: str, definition: ComponentDefinition | None = None, **kwargs: Any) -> None:
        self._add(self._pages, descriptor, definition, kwargs)

    def add_layout(self, descriptor: str, definition: ComponentDefinition | None = None, **kwargs: Any) -> None:
        self._add(self._layouts, descriptor, definition, kwargs)

    def add_part(self, descriptor: str, definition: ComponentDefinition | None = None, **kwargs: Any) -> None:
        self._add(self._parts, descriptor, definition, kwargs)

    def add_macro(self, name: str, definition: ComponentDefinition | None = None, **kwargs: Any) -> None:
        self._add(self._macros, name, definition, kwargs)

    def add_component(
        self, component_type: str, definition: ComponentDefinition | None = None, **kwargs: Any
    ) -> None:
        self._add(self._components, str(ComponentType(component_type).value), definition, kwargs)

    def set_common_query(self, query: QuerySpec | None) -> None:
        self._check_writable()
        self._common_query = query

    def _add(
        self,
        target: dict[str, ComponentDefinition],
        key: str,
        definition: ComponentDefinition | None,
        kwargs: dict[str, Any],
    ) -> None:
        self._check_writable()
        if definition is None:
            definition = ComponentDefinition(**kwargs)
        elif kwargs:
            msg = "Pass either a ComponentDefinition or keyword fields, not both"
            raise RegistryError(msg)
        if key in target:
            logger.warning("Overriding registered definition for %s", key)
        target[key] = definition

    def _check_writable(self) -> None:
        if self._frozen:
            msg = "Registry is frozen; register definitions before the first request"
            raise RegistryError(msg)

    # ========== Lookup ==========

    def get_content_type(self, name: str) -> ComponentDefinition | None:
        definition = self._content_types.get(name)
        if definition is not None:
            return definition
        catch_all = self._content_types.get(CATCH_ALL)
        if catch_all is not None:
            return catch_all.as_catch_all()
        return None

    def get_page(self, descriptor: str) -> ComponentDefinition | None:
        return self._pages.get(descriptor)

    def get_layout(self, descriptor: str) -> ComponentDefinition | None:
        return self._layouts.get(descriptor)

    def get_part(self, descriptor: str) -> ComponentDefinition | None:
        return self._parts.get(descriptor)

    def get_macro(self, name: str) -> ComponentDefinition | None:
        return self._macros.get(name)

    def get_component(self, component_type: str) -> ComponentDefinition | None:
        return self._components.get(component_type)

    def get_by_component(self, component: PageComponent) -> ComponentDefinition | None:
        """Find the definition for a component by its descriptor, or by its type."""
        descriptor_map = self._by_component_type.get(component.type)
        if descriptor_map is not None:
            descriptor = component.descriptor
            return descriptor_map.get(descriptor) if descriptor else None
        return self._components.get(component.type)

    def get_common_query(self) -> QuerySpec | None:
        return self._common_query

from typing import Protocol, runtime_checkable

from xpfetch.core.types import ComponentDefinition, PageComponent, QuerySpec


@runtime_checkable
class ComponentRegistryPort(Protocol):
    """Lookup interface the fetcher needs from the application's registry."""

    def get_content_type(self, name: str) -> ComponentDefinition | None: ...
    def get_by_component(self, component: PageComponent) -> ComponentDefinition | None: ...
    def get_common_query(self) -> QuerySpec | None: ...

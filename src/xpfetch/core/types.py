"""Core data types for xpfetch.

Everything here is request-scoped: built from one metadata response, annotated
once with processor outcomes, and discarded when the result is returned.
"""

from __future__ import annotations

from collections.abc import Awaitable, Callable, Mapping
from dataclasses import dataclass, replace
from typing import Any, TypeAlias

from pydantic import BaseModel, ConfigDict, Field, model_validator
from pydantic.alias_generators import to_camel

from xpfetch.core.constants import ComponentType, RenderMode, RequestType

VariablesResolver: TypeAlias = Callable[[str, Any, Any], Mapping[str, Any]]
Processor: TypeAlias = Callable[[Any, Any], Any | Awaitable[Any]]
# A registered query: a bare string, a (query, variables-resolver) pair,
# or a mapping with "query" and "variables" keys.
QuerySpec: TypeAlias = str | tuple[str, VariablesResolver] | list[Any] | Mapping[str, Any]


class _XpModel(BaseModel):
    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        extra="allow",
    )


# --- Component tree ---
class ComponentData(_XpModel):
    """Descriptor-bearing payload of a page, layout or part component."""

    descriptor: str | None = None
    config_as_json: dict[str, Any] | None = None
    config: Any = None

    @property
    def app_name(self) -> str | None:
        if not self.descriptor or ":" not in self.descriptor:
            return None
        return self.descriptor.split(":", 1)[0]

    @property
    def local_name(self) -> str | None:
        if not self.descriptor or ":" not in self.descriptor:
            return None
        return self.descriptor.split(":", 1)[1]


class PageData(ComponentData):
    template: str | None = None


class TextData(_XpModel):
    value: str | None = None


class FragmentContent(_XpModel):
    components: list[PageComponent] = Field(default_factory=list)


class FragmentData(_XpModel):
    id: str | None = None
    fragment: FragmentContent | None = None


class PageRegion(_XpModel):
    name: str
    components: list[PageComponent] = Field(default_factory=list)


RegionTree: TypeAlias = dict[str, PageRegion]


class PageComponent(_XpModel):
    """One node of the component tree.

    ``type`` selects which payload attribute is meaningful. ``data`` and
    ``error`` are the mutually exclusive outcomes of the component's processor.
    """

    type: str
    path: str
    page: PageData | None = None
    part: ComponentData | None = None
    layout: ComponentData | None = None
    text: TextData | None = None
    fragment: FragmentData | None = None
    regions: RegionTree | None = None
    data: Any = None
    error: str | None = None

    @model_validator(mode="after")
    def _data_or_error(self) -> PageComponent:
        if self.error is not None and self.data is not None:
            msg = f"Component [{self.path}] cannot carry both data and error"
            raise ValueError(msg)
        return self

    @property
    def payload(self) -> ComponentData | TextData | FragmentData | None:
        """Return the type-specific payload, e.g. ``self.part`` for parts."""
        if self.type in _PAYLOAD_FIELDS:
            return getattr(self, self.type)
        return None

    @property
    def descriptor(self) -> str | None:
        payload = self.payload
        if isinstance(payload, ComponentData):
            return payload.descriptor
        return None

    @property
    def nested_components(self) -> list[PageComponent]:
        """Components held inside a fragment component, empty otherwise."""
        if self.type != ComponentType.FRAGMENT or self.fragment is None or self.fragment.fragment is None:
            return []
        return self.fragment.fragment.components


_PAYLOAD_FIELDS = frozenset(t.value for t in ComponentType)

FragmentContent.model_rebuild()
PageRegion.model_rebuild()
PageComponent.model_rebuild()


# --- Request results ---
class ErrorInfo(_XpModel):
    code: str
    message: str


class MetaData(_XpModel):
    type: str = ""
    path: str = ""
    request_type: RequestType = RequestType.PAGE
    render_mode: RenderMode = RenderMode.NEXT
    can_render: bool = False
    catch_all: bool = False
    requested_component: PageComponent | None = None


class FetchContentResult(_XpModel):
    data: Any = None
    common: Any = None
    meta: MetaData
    page: PageComponent | None = None
    error: ErrorInfo | None = None

    def to_json_dict(self) -> dict[str, Any]:
        """Serialize with camelCase keys. ``data``, ``common`` and ``page`` are always present."""
        payload = self.model_dump(mode="json", by_alias=True, exclude_none=True, exclude={"data", "common"})
        payload.update(self.model_dump(mode="json", include={"data", "common"}))
        payload.setdefault("page", None)
        return payload


class RawMetaData(_XpModel):
    """Payload of the first Guillotine call (``guillotine.get``)."""

    path: str | None = Field(default=None, alias="_path")
    type: str | None = None
    page_as_json: dict[str, Any] | None = None
    components: list[PageComponent] | None = None


# --- Query composition ---
class QueryAndVariables(BaseModel):
    query: str
    variables: dict[str, Any] = Field(default_factory=dict)


@dataclass(frozen=True)
class ComponentDefinition:
    """What the application registered for a content type or component."""

    query: QuerySpec | None = None
    processor: Processor | None = None
    view: Any = None
    catch_all: bool = False

    def as_catch_all(self) -> ComponentDefinition:
        return replace(self, catch_all=True)


@dataclass(frozen=True)
class ComponentDescriptor:
    """Pairs a component (if any) with its definition and resolved query."""

    definition: ComponentDefinition | None = None
    component: PageComponent | None = None
    query_and_variables: QueryAndVariables | None = None

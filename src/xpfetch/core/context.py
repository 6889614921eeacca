"""Request context for content fetching.

Carries the incoming request's headers through one fetch without using globals,
so concurrent requests never see each other's base URL or render mode."""

import re
from collections.abc import Mapping
from dataclasses import dataclass, field
from types import MappingProxyType
from typing import Any

from xpfetch.core.constants import (
    COMPONENT_SUBPATH_HEADER,
    FROM_XP_PARAM,
    RENDER_MODE_HEADER,
    XP_BASE_URL_HEADER,
    RenderMode,
    RequestType,
)

_EDIT_SEGMENT = re.compile(r"/edit/")


@dataclass(frozen=True)
class RequestContext:
    """Request-scoped view of the incoming HTTP request.

    Attributes:
        headers: Request headers; lookups are case-insensitive
        metadata: Additional values for variable resolvers and processors (frozen dict)
    """

    headers: Mapping[str, str] = field(default_factory=dict)
    metadata: Mapping[str, Any] = field(default_factory=dict)

    def __post_init__(self):
        """Normalize header names and freeze both mappings."""
        lowered = {str(k).lower(): v for k, v in dict(self.headers).items()}
        object.__setattr__(self, "headers", MappingProxyType(lowered))
        if not isinstance(self.metadata, MappingProxyType):
            object.__setattr__(self, "metadata", MappingProxyType(dict(self.metadata)))

    def header(self, name: str) -> str | None:
        return self.headers.get(name.lower())

    @property
    def is_request_from_xp(self) -> bool:
        return bool(self.header(FROM_XP_PARAM))

    @property
    def request_type(self) -> RequestType:
        value = (self.header(FROM_XP_PARAM) or "").lower()
        try:
            return RequestType(value)
        except ValueError:
            return RequestType.PAGE

    @property
    def render_mode(self) -> RenderMode:
        value = (self.header(RENDER_MODE_HEADER) or "").lower()
        try:
            return RenderMode(value)
        except ValueError:
            return RenderMode.NEXT

    @property
    def component_path(self) -> str | None:
        return self.header(COMPONENT_SUBPATH_HEADER)

    @property
    def base_url(self) -> str:
        return self.header(XP_BASE_URL_HEADER) or ""

    def get_url(self, resource_path: str) -> str:
        """Return an absolute URL for a site-relative resource path.

        Edit mode URLs are rewritten to inline mode, since XP does not map
        pattern controllers in edit mode.
        """
        site_url = _EDIT_SEGMENT.sub("/inline/", self.base_url or "/", count=1)
        return site_url + resource_path

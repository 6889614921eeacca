"""Names shared between the backend (XP) and the fetcher."""

from enum import Enum


class RequestType(str, Enum):
    COMPONENT = "component"
    TYPE = "type"
    PAGE = "page"


class RenderMode(str, Enum):
    INLINE = "inline"
    EDIT = "edit"
    PREVIEW = "preview"
    LIVE = "live"
    ADMIN = "admin"
    # Not proxied through XP, rendered directly by the frontend
    NEXT = "next"


class ComponentType(str, Enum):
    PAGE = "page"
    PART = "part"
    LAYOUT = "layout"
    TEXT = "text"
    FRAGMENT = "fragment"


FRAGMENT_CONTENTTYPE_NAME = "portal:fragment"
FRAGMENT_DEFAULT_REGION_NAME = "fragment"

PAGE_TEMPLATE_CONTENTTYPE_NAME = "portal:page-template"
PAGE_TEMPLATE_FOLDER = "portal:template-folder"

# Content types that only make sense inside Content Studio
XP_ONLY_CONTENTTYPES = frozenset(
    {FRAGMENT_CONTENTTYPE_NAME, PAGE_TEMPLATE_CONTENTTYPE_NAME, PAGE_TEMPLATE_FOLDER}
)

# Must match the values used by the XP-side proxy
FROM_XP_PARAM = "__fromxp__"
XP_BASE_URL_HEADER = "xpbaseurl"
COMPONENT_SUBPATH_HEADER = "xp-component-path"
RENDER_MODE_HEADER = "content-studio-mode"

SITE_PATH_PREFIX = "${site}/"

CATCH_ALL = "*"

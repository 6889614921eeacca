"""Fold a flat component list into a page/region/component tree.

XP addresses every component by a path of ``/<region>/<index>`` pairs, e.g.
``/main/0/left/1`` is slot 1 of region ``left`` inside the layout at slot 0 of
region ``main``. Fragment content has no owning region for its root, so its
paths are read as if prefixed by ``/fragment/0``.
"""

from __future__ import annotations

import bisect
import re
from collections.abc import Sequence
from typing import NamedTuple

from xpfetch.core.constants import FRAGMENT_CONTENTTYPE_NAME, FRAGMENT_DEFAULT_REGION_NAME, ComponentType
from xpfetch.core.exceptions import StructuralInconsistencyError
from xpfetch.core.types import PageComponent, PageRegion, RegionTree

ROOT_PATH = "/"

_PATH_FRAGMENT_RE = re.compile(r"(\w+)/(\d+)")


class PathFragment(NamedTuple):
    region: str
    index: int


def parse_component_path(content_type: str, path: str) -> list[PathFragment]:
    """Split a component path into ``(region, index)`` pairs, left to right.

    Examples:
        >>> parse_component_path("app:page", "/main/0/left/1")
        [PathFragment(region='main', index=0), PathFragment(region='left', index=1)]
        >>> parse_component_path("portal:fragment", "/")
        [PathFragment(region='fragment', index=0)]

    """
    fragments = [PathFragment(m.group(1), int(m.group(2))) for m in _PATH_FRAGMENT_RE.finditer(path)]
    if content_type == FRAGMENT_CONTENTTYPE_NAME:
        fragments.insert(0, PathFragment(FRAGMENT_DEFAULT_REGION_NAME, 0))
    return fragments


def prefix_layout_path(content_type: str, path: str) -> str:
    """Return the path a layout has in the region tree.

    For fragment content ``/`` becomes ``/fragment/0`` and ``/left/1`` becomes
    ``/fragment/0/left/1``; other content types are unchanged.
    """
    if content_type != FRAGMENT_CONTENTTYPE_NAME:
        return path
    return f"/{FRAGMENT_DEFAULT_REGION_NAME}/0{'' if path == ROOT_PATH else path}"


def get_parent_region(
    tree: RegionTree,
    content_type: str,
    component_path: str,
    components: Sequence[PageComponent] = (),
    create_missing: bool = False,
) -> PageRegion | None:
    """Find the region that owns the component at ``component_path``.

    Descends through the layouts named by the path; each layout's ``regions``
    is created on first use.

    Raises:
        StructuralInconsistencyError: If a layout the path passes through is
            not among ``components``, or if a region is missing and
            ``create_missing`` is False.

    """
    current_tree = tree
    current_region: PageRegion | None = None
    parent_path = ""
    path = parse_component_path(content_type, component_path)

    for position, fragment in enumerate(path):
        parent_path += f"/{fragment.region}/{fragment.index}"
        current_region = current_tree.get(fragment.region)

        if current_region is None:
            if not create_missing:
                msg = f"Region [{fragment.region}] was not found"
                raise StructuralInconsistencyError(msg)
            current_region = PageRegion(name=fragment.region)
            current_tree[fragment.region] = current_region

        if position < len(path) - 1:
            layout = _find_layout(components, content_type, parent_path)
            if layout is None:
                msg = f"Layout [{parent_path}] not found among components, but needed for component [{component_path}]"
                raise StructuralInconsistencyError(msg)
            if layout.regions is None:
                layout.regions = {}
            current_tree = layout.regions

    return current_region


def _find_layout(components: Sequence[PageComponent], content_type: str, path: str) -> PageComponent | None:
    for component in components:
        if component.type == ComponentType.LAYOUT and prefix_layout_path(content_type, component.path) == path:
            return component
    return None


def _slot_index(content_type: str, component: PageComponent) -> int:
    path = parse_component_path(content_type, component.path)
    return path[-1].index if path else 0


def build_page(content_type: str, components: Sequence[PageComponent] = ()) -> PageComponent:
    """Build the page tree for ``components``.

    The input components are copied first; the returned tree owns its nodes.
    Within each region components are ordered by slot index, whatever order
    the list declares them in.

    Raises:
        StructuralInconsistencyError: If a component path needs a layout that
            is not in the list.

    """
    nodes = [component.model_copy(deep=True) for component in components]
    tree: RegionTree = {}
    page = PageComponent(type=ComponentType.PAGE.value, path=ROOT_PATH)

    for node in nodes:
        if node.path == ROOT_PATH and node.type == ComponentType.PAGE:
            page = node
            continue

        region = get_parent_region(tree, content_type, node.path, nodes, create_missing=True)
        if region is not None:
            bisect.insort(region.components, node, key=lambda cmp: _slot_index(content_type, cmp))

    page.regions = tree
    return page

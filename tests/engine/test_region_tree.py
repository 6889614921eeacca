import pytest

from xpfetch.core.exceptions import StructuralInconsistencyError
from xpfetch.engine.regions import (
    PathFragment,
    build_page,
    get_parent_region,
    parse_component_path,
    prefix_layout_path,
)

PAGE_TYPE = "com.example.myproject:landing-page"
FRAGMENT_TYPE = "portal:fragment"


def test_parse_component_path():
    assert parse_component_path(PAGE_TYPE, "/") == []
    assert parse_component_path(PAGE_TYPE, "/main/0/left/12") == [
        PathFragment("main", 0),
        PathFragment("left", 12),
    ]


def test_fragment_paths_get_the_default_region():
    assert parse_component_path(FRAGMENT_TYPE, "/") == [PathFragment("fragment", 0)]
    assert parse_component_path(FRAGMENT_TYPE, "/left/1") == [PathFragment("fragment", 0), PathFragment("left", 1)]
    assert prefix_layout_path(FRAGMENT_TYPE, "/") == "/fragment/0"
    assert prefix_layout_path(FRAGMENT_TYPE, "/left/1") == "/fragment/0/left/1"
    assert prefix_layout_path(PAGE_TYPE, "/main/0") == "/main/0"


def test_components_are_placed_by_slot(make_component):
    components = [
        make_component("page", "/", "com.example.myproject:main"),
        make_component("part", "/main/0", "com.example.myproject:hero"),
        make_component("part", "/main/1", "com.example.myproject:movie-list"),
    ]

    page = build_page(PAGE_TYPE, components)

    assert page.page.descriptor == "com.example.myproject:main"
    assert list(page.regions) == ["main"]
    assert [c.path for c in page.regions["main"].components] == ["/main/0", "/main/1"]


def test_slot_order_wins_over_list_order(make_component):
    components = [
        make_component("part", "/main/2", "com.example.myproject:c"),
        make_component("part", "/main/0", "com.example.myproject:a"),
        make_component("part", "/main/1", "com.example.myproject:b"),
    ]

    page = build_page(PAGE_TYPE, components)

    assert [c.path for c in page.regions["main"].components] == ["/main/0", "/main/1", "/main/2"]
    assert page.path == "/"


def test_nested_layout_regions(make_component):
    components = [
        make_component("page", "/", "com.example.myproject:main"),
        make_component("layout", "/main/0", "com.example.myproject:two-columns"),
        make_component("part", "/main/0/right/0", "com.example.myproject:b"),
        make_component("part", "/main/0/left/0", "com.example.myproject:a"),
    ]

    page = build_page(PAGE_TYPE, components)

    layout = page.regions["main"].components[0]
    assert layout.type == "layout"
    assert sorted(layout.regions) == ["left", "right"]
    assert layout.regions["left"].components[0].descriptor == "com.example.myproject:a"


def test_missing_layout_is_a_structural_error(make_component):
    components = [make_component("part", "/main/0/left/1", "com.example.myproject:a")]

    with pytest.raises(StructuralInconsistencyError) as exc:
        build_page(PAGE_TYPE, components)

    assert exc.value.code == "Local"
    assert "/main/0" in exc.value.message


def test_fragment_root_goes_to_default_region(make_component):
    components = [
        make_component("layout", "/", "com.example.myproject:two-columns"),
        make_component("part", "/left/0", "com.example.myproject:a"),
    ]

    page = build_page(FRAGMENT_TYPE, components)

    region = page.regions["fragment"]
    assert [c.type for c in region.components] == ["layout"]
    assert region.components[0].regions["left"].components[0].path == "/left/0"


def test_input_components_are_not_mutated(make_component):
    layout = make_component("layout", "/main/0", "com.example.myproject:two-columns")
    part = make_component("part", "/main/0/left/0", "com.example.myproject:a")

    build_page(PAGE_TYPE, [layout, part])

    assert layout.regions is None


def test_get_parent_region_without_create_missing():
    with pytest.raises(StructuralInconsistencyError, match="Region \\[main\\] was not found"):
        get_parent_region({}, PAGE_TYPE, "/main/0")

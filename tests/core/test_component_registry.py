import logging

import pytest

from xpfetch.core.exceptions import RegistryError
from xpfetch.core.ports import ComponentRegistryPort
from xpfetch.core.registry import ComponentRegistry
from xpfetch.core.types import ComponentDefinition

MOVIE_QUERY = "query($path:ID!){ guillotine { get(key:$path) { displayName } } }"


def test_registry_satisfies_port(registry):
    assert isinstance(registry, ComponentRegistryPort)


def test_content_type_lookup(registry):
    registry.add_content_type("com.example.myproject:movie", query=MOVIE_QUERY, view="MovieView")

    definition = registry.get_content_type("com.example.myproject:movie")

    assert definition is not None
    assert definition.query == MOVIE_QUERY
    assert definition.view == "MovieView"
    assert definition.catch_all is False
    assert registry.get_content_type("com.example.myproject:person") is None


def test_catch_all_content_type_is_flagged(registry):
    registry.add_content_type("*", view="FallbackView")

    definition = registry.get_content_type("base:folder")

    assert definition is not None
    assert definition.view == "FallbackView"
    assert definition.catch_all is True


def test_explicit_registration_wins_over_catch_all(registry):
    registry.add_content_type("*", view="FallbackView")
    registry.add_content_type("base:folder", view="FolderView")

    definition = registry.get_content_type("base:folder")

    assert definition.view == "FolderView"
    assert definition.catch_all is False


def test_get_by_component_uses_descriptors(registry, make_component):
    registry.add_part("com.example.myproject:movie-list", view="MovieList")
    registry.add_layout("com.example.myproject:two-columns", view="TwoColumns")
    registry.add_page("com.example.myproject:main", view="MainPage")
    registry.add_component("text", view="RichText")

    part = make_component("part", "/main/0", "com.example.myproject:movie-list")
    layout = make_component("layout", "/main/1", "com.example.myproject:two-columns")
    page = make_component("page", "/", "com.example.myproject:main")
    text = make_component("text", "/main/2", value="<p>hi</p>")
    unknown = make_component("part", "/main/3", "com.example.myproject:unknown")

    assert registry.get_by_component(part).view == "MovieList"
    assert registry.get_by_component(layout).view == "TwoColumns"
    assert registry.get_by_component(page).view == "MainPage"
    assert registry.get_by_component(text).view == "RichText"
    assert registry.get_by_component(unknown) is None


def test_common_query(registry):
    assert registry.get_common_query() is None

    registry.set_common_query(MOVIE_QUERY)

    assert registry.get_common_query() == MOVIE_QUERY


def test_definition_and_kwargs_are_exclusive(registry):
    with pytest.raises(RegistryError):
        registry.add_part("com.example.myproject:x", ComponentDefinition(view="X"), view="Y")


def test_unknown_component_type_is_rejected(registry):
    with pytest.raises(ValueError):
        registry.add_component("widget", view="Widget")


def test_frozen_registry_rejects_registration(registry):
    registry.add_macro("embed", view="Embed")
    assert registry.freeze() is registry
    assert registry.frozen

    with pytest.raises(RegistryError, match="frozen"):
        registry.add_content_type("base:folder", view="FolderView")
    with pytest.raises(RegistryError):
        registry.set_common_query(MOVIE_QUERY)

    assert registry.get_macro("embed").view == "Embed"


def test_override_logs_a_warning(registry, caplog):
    registry.add_part("com.example.myproject:a", view="First")

    with caplog.at_level(logging.WARNING, logger="xpfetch.core.registry"):
        registry.add_part("com.example.myproject:a", view="Second")

    assert registry.get_part("com.example.myproject:a").view == "Second"
    assert "Overriding registered definition" in caplog.text
